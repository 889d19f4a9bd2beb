"""Declarative endpoint metadata and the descriptors built from it.

Resource interfaces are plain classes. Methods become endpoints with the
``endpoint`` decorator, parameters get their role from ``typing.Annotated``
markers, and ``raises`` maps status-code ranges to error types:

    @resource("/users")
    class UserResource:
        @endpoint(RequestMethod.GET, "/{user_id}")
        @raises(UserNotFound, 404, 404)
        def get_user(
            self,
            user_id: Annotated[int, PathParam("user_id")],
            trace: Annotated[str | None, Header("X-Trace")] = None,
        ) -> User: ...

ResourceFactory.create_resource() turns each decorated method into an
EndpointDescriptor once, when the resource is created.
"""

from __future__ import annotations

import inspect
import typing
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, TypeVar

from rested.media import MediaType
from rested.request import RequestMethod

DEFAULT_CHARSET_NAME = "UTF-8"

_ENDPOINT_ATTR = "__rested_endpoint__"
_ERRORS_ATTR = "__rested_errors__"
_BASE_PATH_ATTR = "__rested_base_path__"

F = TypeVar("F", bound=Callable[..., Any])
C = TypeVar("C", bound=type)


class EndpointDefinitionError(Exception):
    """Raised when a resource interface declares an endpoint incorrectly."""


# =============================================================================
# Parameter markers (used inside typing.Annotated)
# =============================================================================


@dataclass(frozen=True)
class Header:
    """Send the argument as a header. Iterables add one value per element."""

    name: str


@dataclass(frozen=True)
class PathParam:
    """Replace ``{name}`` in the endpoint path with the argument."""

    name: str


@dataclass(frozen=True)
class QueryParam:
    """Send the argument as a query parameter. Iterables add one value per element."""

    name: str


@dataclass(frozen=True)
class Body:
    """Encode the argument as the request body.

    At most one parameter per endpoint may be the body. A None argument sends
    no body.
    """

    media_type: str = MediaType.JSON
    charset: str = DEFAULT_CHARSET_NAME


_ROLE_MARKERS = (Header, PathParam, QueryParam, Body)


# =============================================================================
# Descriptors
# =============================================================================


class ParameterRole(str, Enum):
    HEADER = "header"
    PATH = "path"
    QUERY = "query"
    BODY = "body"
    NONE = "none"


@dataclass(frozen=True)
class ParameterSpec:
    """Role of one endpoint parameter.

    key is the header, placeholder or query parameter name. media_type and
    charset are only set for the body parameter.
    """

    name: str
    role: ParameterRole
    key: str | None = None
    media_type: str | None = None
    charset: str | None = None


@dataclass(frozen=True)
class ErrorRule:
    """Maps an inclusive status-code range to the error type to produce."""

    error_type: type[BaseException]
    start_code: int = 1
    end_code: int = 599

    def matches(self, status_code: int) -> bool:
        return self.start_code <= status_code <= self.end_code


@dataclass(frozen=True)
class EndpointOptions:
    """Arguments given to the endpoint decorator."""

    method: RequestMethod
    path: str
    media_types: tuple[str, ...]
    charsets: tuple[str, ...]


@dataclass(frozen=True)
class EndpointDescriptor:
    """Everything the dispatcher needs to know about one resource method."""

    name: str
    function: Callable[..., Any]
    signature: inspect.Signature
    method: RequestMethod
    base_path: str
    path: str
    media_types: tuple[str, ...]
    charsets: tuple[str, ...]
    error_rules: tuple[ErrorRule, ...]
    parameters: tuple[ParameterSpec, ...]
    return_type: Any

    @property
    def full_path(self) -> str:
        """Base path of the resource followed by the endpoint path template."""
        return self.base_path + self.path

    @property
    def returns_nothing(self) -> bool:
        return self.return_type is type(None)

    def parameters_with_role(self, role: ParameterRole) -> list[tuple[int, ParameterSpec]]:
        """(position, spec) pairs for every parameter with the given role."""
        return [(i, p) for i, p in enumerate(self.parameters) if p.role is role]

    def error_type_for(self, status_code: int) -> type[BaseException] | None:
        """First declared error type whose range contains status_code."""
        for rule in self.error_rules:
            if rule.matches(status_code):
                return rule.error_type
        return None


# =============================================================================
# Decorators
# =============================================================================


def endpoint(
    method: RequestMethod | str,
    path: str = "",
    *,
    media_types: tuple[str, ...] | list[str] = (MediaType.JSON,),
    charsets: tuple[str, ...] | list[str] = (DEFAULT_CHARSET_NAME,),
) -> Callable[[F], F]:
    """Mark an interface method as a REST endpoint.

    Args:
        method: HTTP method, as RequestMethod or its name.
        path: Path template, starting with a slash and ending without one.
            May contain ``{name}`` placeholders filled by PathParam arguments.
            A resource base path is prepended.
        media_types: Values for the default Accept header.
        charsets: Values for the default Accept-Charset header.
    """
    options = EndpointOptions(
        method=RequestMethod(method.upper() if isinstance(method, str) else method),
        path=path,
        media_types=tuple(media_types),
        charsets=tuple(charsets),
    )

    def decorator(func: F) -> F:
        setattr(func, _ENDPOINT_ATTR, options)
        return func

    return decorator


def raises(
    error_type: type[BaseException],
    start_code: int = 1,
    end_code: int = 599,
) -> Callable[[F], F]:
    """Raise error_type for responses with a status in [start_code, end_code].

    Stack several to cover several ranges; the topmost matching declaration
    wins. Ranges that overlap 200-299 never apply since 2xx is success.
    Undeclared ranges produce rested.results.RESTError.
    """
    if start_code > end_code:
        raise EndpointDefinitionError(
            f"Error range start {start_code} is greater than end {end_code}"
        )
    rule = ErrorRule(error_type, start_code, end_code)

    def decorator(func: F) -> F:
        # Decorators apply bottom-up; prepend to keep source order.
        rules = getattr(func, _ERRORS_ATTR, ())
        setattr(func, _ERRORS_ATTR, (rule, *rules))
        return func

    return decorator


def resource(base_path: str) -> Callable[[C], C]:
    """Prefix every endpoint path declared in the decorated class with base_path."""

    def decorator(cls: C) -> C:
        setattr(cls, _BASE_PATH_ATTR, base_path)
        return cls

    return decorator


def is_endpoint(member: Any) -> bool:
    return callable(member) and hasattr(member, _ENDPOINT_ATTR)


# =============================================================================
# Descriptor construction
# =============================================================================


def build_descriptors(interface: type) -> dict[str, EndpointDescriptor]:
    """Build a descriptor for every endpoint method of interface.

    Raises:
        EndpointDefinitionError: If any endpoint is declared incorrectly.
    """
    descriptors: dict[str, EndpointDescriptor] = {}
    seen: set[str] = set()
    for owner in interface.__mro__:
        for name, member in vars(owner).items():
            if name in seen:
                continue
            seen.add(name)
            if is_endpoint(member):
                descriptors[name] = build_descriptor(owner, name, member)
    return descriptors


def build_descriptor(
    owner: type,
    name: str,
    function: Callable[..., Any],
) -> EndpointDescriptor:
    """Build the descriptor for one endpoint method declared on owner."""
    options: EndpointOptions = getattr(function, _ENDPOINT_ATTR)
    qualified = f"{owner.__name__}.{name}"

    try:
        hints = typing.get_type_hints(function, include_extras=True)
    except NameError as e:
        raise EndpointDefinitionError(
            f"{qualified}: cannot resolve type annotations: {e}"
        ) from e

    signature = inspect.signature(function)
    parameters = list(signature.parameters.values())
    if not parameters or parameters[0].name != "self":
        raise EndpointDefinitionError(f"{qualified}: endpoint must be an instance method")

    specs: list[ParameterSpec] = []
    for parameter in parameters[1:]:
        if parameter.kind in (parameter.VAR_POSITIONAL, parameter.VAR_KEYWORD):
            raise EndpointDefinitionError(
                f"{qualified}: variadic parameter '{parameter.name}' is not supported"
            )
        specs.append(_parameter_spec(qualified, parameter.name, hints.get(parameter.name)))

    body_count = sum(1 for spec in specs if spec.role is ParameterRole.BODY)
    if body_count > 1:
        raise EndpointDefinitionError(f"{qualified}: only one Body parameter is allowed")

    return EndpointDescriptor(
        name=name,
        function=function,
        signature=signature,
        method=options.method,
        base_path=vars(owner).get(_BASE_PATH_ATTR, ""),
        path=options.path,
        media_types=options.media_types,
        charsets=options.charsets,
        error_rules=getattr(function, _ERRORS_ATTR, ()),
        parameters=tuple(specs),
        return_type=_strip_annotated(hints.get("return", Any)),
    )


def _parameter_spec(qualified: str, name: str, hint: Any) -> ParameterSpec:
    markers = [
        m for m in getattr(hint, "__metadata__", ()) if isinstance(m, _ROLE_MARKERS)
    ]
    if not markers:
        return ParameterSpec(name, ParameterRole.NONE)
    if len(markers) > 1:
        raise EndpointDefinitionError(
            f"{qualified}: parameter '{name}' has more than one role marker"
        )
    marker = markers[0]
    if isinstance(marker, Header):
        return ParameterSpec(name, ParameterRole.HEADER, key=marker.name)
    if isinstance(marker, PathParam):
        return ParameterSpec(name, ParameterRole.PATH, key=marker.name)
    if isinstance(marker, QueryParam):
        return ParameterSpec(name, ParameterRole.QUERY, key=marker.name)
    return ParameterSpec(
        name,
        ParameterRole.BODY,
        media_type=marker.media_type,
        charset=marker.charset,
    )


def _strip_annotated(hint: Any) -> Any:
    if typing.get_origin(hint) is typing.Annotated:
        return typing.get_args(hint)[0]
    return hint
