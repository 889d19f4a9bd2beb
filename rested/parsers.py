"""Built-in body parsers.

Each parser implements both RequestBodyParser.encode and
ResponseBodyParser.decode, so one instance can be registered on both sides.
Decoded payloads are converted to the requested type by convert_payload():

- Any / object: the raw payload (dict, list, str, bytes, ...)
- RESTResponse subclasses: a default-constructed instance whose attributes
  are set from a mapping payload. Any other payload is dropped.
- exception types: as above for a mapping payload, otherwise the payload is
  passed to the constructor.
- pydantic models: Model.model_validate(payload)
- anything else: pydantic.TypeAdapter(target).validate_python(payload)

An empty body decodes to None, or to a default instance for RESTResponse and
exception targets.
"""

from __future__ import annotations

import dataclasses
import json
import xml.etree.ElementTree as ET
from collections.abc import Mapping
from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, TypeAdapter

from rested.media import MediaType
from rested.results import RESTResponse

if TYPE_CHECKING:
    from rested.factory import ResourceFactory
    from rested.request import Request
    from rested.response import Response

_UNTYPED = (Any, object)


def convert_payload(target_type: Any, payload: Any) -> Any:
    """Convert a decoded payload into an instance of target_type."""
    if target_type in _UNTYPED:
        return payload
    if isinstance(target_type, type) and issubclass(target_type, RESTResponse):
        instance = target_type()
        if isinstance(payload, Mapping):
            _copy_fields(instance, payload)
        return instance
    if isinstance(target_type, type) and issubclass(target_type, BaseException):
        if payload is None or isinstance(payload, Mapping):
            instance = target_type()
            _copy_fields(instance, payload or {})
            return instance
        return target_type(payload)
    if payload is None:
        return None
    if isinstance(target_type, type) and issubclass(target_type, BaseModel):
        return target_type.model_validate(payload)
    return TypeAdapter(target_type).validate_python(payload)


def _copy_fields(instance: Any, payload: Mapping[str, Any]) -> None:
    for name, value in payload.items():
        # Skip read-only properties such as status_code; the dispatcher fills those.
        if isinstance(getattr(type(instance), name, None), property):
            continue
        setattr(instance, name, value)


def to_jsonable(value: Any) -> Any:
    """json.dumps default hook for models, dataclasses, enums and plain objects."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    if hasattr(value, "__dict__"):
        return {k: v for k, v in vars(value).items() if not k.startswith("_")}
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class JsonParser:
    """JSON bodies via the standard json module."""

    def encode(self, body: Any, media_type: str, charset: str) -> bytes | None:
        return json.dumps(body, default=to_jsonable, ensure_ascii=False).encode(charset)

    def decode(
        self,
        target_type: Any,
        request: Request,
        response: Response,
        media_type: str,
        charset: str,
    ) -> Any:
        content = response.read_body()
        payload = json.loads(content.decode(charset)) if content.strip() else None
        return convert_payload(target_type, payload)


class TextParser:
    """Plain text bodies. Encodes str(body); decodes to str."""

    def encode(self, body: Any, media_type: str, charset: str) -> bytes | None:
        return str(body).encode(charset)

    def decode(
        self,
        target_type: Any,
        request: Request,
        response: Response,
        media_type: str,
        charset: str,
    ) -> Any:
        content = response.read_body()
        return convert_payload(target_type, content.decode(charset) if content else None)


class BinaryParser:
    """Raw bytes. Accepts bytes-like bodies and file-like objects."""

    def encode(self, body: Any, media_type: str, charset: str) -> bytes | None:
        if isinstance(body, (bytes, bytearray, memoryview)):
            return bytes(body)
        if hasattr(body, "read"):
            return body.read()
        if isinstance(body, str):
            return body.encode(charset)
        raise TypeError(f"Cannot send {type(body).__name__} as {media_type}")

    def decode(
        self,
        target_type: Any,
        request: Request,
        response: Response,
        media_type: str,
        charset: str,
    ) -> Any:
        content = response.read_body()
        return convert_payload(target_type, content or None)


# =============================================================================
# XML
# =============================================================================


class XmlParser:
    """XML bodies converted to and from dicts.

    A dict body must have exactly one key, the root element. Models and
    dataclasses are wrapped in a root element named after their class.
    ``@name`` keys become attributes and ``#text`` becomes element text.
    Decoded documents are unwrapped from their root element before conversion
    unless the target is untyped or a dict.
    """

    def __init__(self, force_list: set[str] | None = None) -> None:
        """
        Args:
            force_list: Tag names that always decode to a list, even when only
                one element is present.
        """
        self._force_list = force_list or set()

    def encode(self, body: Any, media_type: str, charset: str) -> bytes | None:
        if isinstance(body, (str, bytes)):
            return body.encode(charset) if isinstance(body, str) else body
        if not isinstance(body, Mapping):
            body = {type(body).__name__: to_jsonable(body)}
        return dict_to_xml(body, charset)

    def decode(
        self,
        target_type: Any,
        request: Request,
        response: Response,
        media_type: str,
        charset: str,
    ) -> Any:
        content = response.read_body()
        if not content.strip():
            return convert_payload(target_type, None)
        document = xml_to_dict(content, self._force_list)
        if target_type in _UNTYPED or target_type is dict:
            return convert_payload(target_type, document)
        return convert_payload(target_type, next(iter(document.values())))


def xml_to_dict(content: bytes, force_list: set[str] | None = None) -> dict[str, Any]:
    """Parse XML into ``{root_tag: value}`` with namespace URIs stripped.

    Raises:
        ET.ParseError: If content is not well-formed XML.
    """
    root = ET.fromstring(content)
    return {_local_name(root.tag): _element_value(root, force_list or set())}


def _local_name(tag: str) -> str:
    return tag.split("}", 1)[1] if tag.startswith("{") else tag


def _element_value(element: ET.Element, force_list: set[str]) -> Any:
    value: dict[str, Any] = {
        f"@{name}": attr
        for name, attr in element.attrib.items()
        if not name.startswith(("xmlns", "{"))
    }

    grouped: dict[str, list[Any]] = {}
    for child in element:
        grouped.setdefault(_local_name(child.tag), []).append(
            _element_value(child, force_list)
        )
    for tag, items in grouped.items():
        value[tag] = items if tag in force_list or len(items) > 1 else items[0]

    text = (element.text or "").strip()
    if text and not value:
        return text
    if text:
        value["#text"] = text
    return value or None


def dict_to_xml(document: Mapping[str, Any], charset: str = "UTF-8") -> bytes:
    """Serialize ``{root_tag: value}`` into XML bytes with a declaration.

    Raises:
        ValueError: If document does not have exactly one root key.
    """
    if len(document) != 1:
        raise ValueError(
            f"XML bodies need exactly one root element, got {len(document)} keys"
        )
    tag, value = next(iter(document.items()))
    root = _build_element(tag, value)
    ET.indent(root)
    return ET.tostring(root, encoding=charset, xml_declaration=True)


def _build_element(tag: str, value: Any) -> ET.Element:
    element = ET.Element(tag)
    if isinstance(value, Mapping):
        for key, child in value.items():
            if key == "#text":
                element.text = str(child)
            elif key.startswith("@"):
                element.set(key[1:], str(child))
            elif isinstance(child, list):
                element.extend(_build_element(key, item) for item in child)
            else:
                element.append(_build_element(key, child))
    elif isinstance(value, list):
        element.extend(_build_element("item", item) for item in value)
    elif isinstance(value, bool):
        element.text = "true" if value else "false"
    elif value is not None:
        element.text = str(value)
    return element


def install_default_parsers(factory: ResourceFactory) -> ResourceFactory:
    """Register the built-in parsers on both sides of factory.

    JSON for application/json, XML for application/xml and text/xml, text
    for text/*, and raw bytes for everything else.
    """
    json_parser = JsonParser()
    xml_parser = XmlParser()
    text_parser = TextParser()
    binary_parser = BinaryParser()
    for register in (factory.register_request_parser, factory.register_response_parser):
        register(json_parser, MediaType.JSON)
        register(xml_parser, MediaType.XML, MediaType.XML_TEXT)
        register(text_parser, "text/*")
        register(binary_parser, MediaType.ANY)
    return factory
