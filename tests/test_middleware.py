"""Tests for interceptor chains and interception errors."""

import threading

from rested.middleware import (
    InterceptedError,
    InterceptorChain,
    RequestInterceptedError,
    ResponseInterceptedError,
)
from rested.request import RequestBuilder
from rested.response import Response


class TestInterceptorChain:
    """Tests for ordered registration and snapshots."""

    def test_add_keeps_order_and_skips_none(self) -> None:
        chain: InterceptorChain[str] = InterceptorChain()
        chain.add("a", None, "b")
        chain.add("c")
        assert chain.snapshot() == ("a", "b", "c")
        assert len(chain) == 3

    def test_remove_first_occurrence(self) -> None:
        chain: InterceptorChain[str] = InterceptorChain()
        chain.add("a", "b", "a")
        chain.remove("a")
        assert list(chain) == ["b", "a"]

    def test_remove_unknown_is_ignored(self) -> None:
        chain: InterceptorChain[str] = InterceptorChain()
        chain.add("a")
        chain.remove("zzz")
        assert list(chain) == ["a"]

    def test_snapshot_is_unaffected_by_changes(self) -> None:
        chain: InterceptorChain[str] = InterceptorChain()
        chain.add("a")
        snapshot = chain.snapshot()
        chain.add("b")
        chain.remove("a")
        assert snapshot == ("a",)

    def test_iteration_during_modification(self) -> None:
        chain: InterceptorChain[str] = InterceptorChain()
        chain.add("a", "b")
        seen = []
        for item in chain:
            seen.append(item)
            chain.add(item + "!")
        assert seen == ["a", "b"]
        assert len(chain) == 4


class TestInterceptorChainThreading:
    """Adds and removes racing with snapshots taken by other threads."""

    WORKERS = 6
    ROUNDS = 300

    def test_concurrent_add_remove_and_snapshot(self) -> None:
        chain: InterceptorChain[object] = InterceptorChain()
        base = object()
        chain.add(base)
        start = threading.Barrier(self.WORKERS * 2)
        errors: list[BaseException] = []

        def mutator() -> None:
            first, second = object(), object()
            try:
                start.wait()
                for _ in range(self.ROUNDS):
                    chain.add(first, second)
                    snapshot = chain.snapshot()
                    assert snapshot.index(first) < snapshot.index(second)
                    chain.remove(first, second)
            except BaseException as e:
                errors.append(e)

        def iterator() -> None:
            try:
                start.wait()
                for _ in range(self.ROUNDS):
                    items = list(chain)
                    assert items[0] is base
                    assert len(items) % 2 == 1
                    assert len(chain) >= 1
            except BaseException as e:
                errors.append(e)

        threads = [threading.Thread(target=mutator) for _ in range(self.WORKERS)]
        threads += [threading.Thread(target=iterator) for _ in range(self.WORKERS)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        assert not any(thread.is_alive() for thread in threads)
        assert errors == []
        assert chain.snapshot() == (base,)


class TestInterceptionErrors:
    def test_request_intercepted(self) -> None:
        request = RequestBuilder().build()
        error = RequestInterceptedError(request, "blocked")
        assert isinstance(error, InterceptedError)
        assert error.request is request
        assert str(error) == "blocked"

    def test_request_intercepted_without_message(self) -> None:
        error = RequestInterceptedError(RequestBuilder().build())
        assert error.args == ()

    def test_response_intercepted(self) -> None:
        request = RequestBuilder().build()
        response = Response(500)
        error = ResponseInterceptedError(request, response, "bad response")
        assert isinstance(error, InterceptedError)
        assert error.request is request
        assert error.response is response
        assert str(error) == "bad response"
