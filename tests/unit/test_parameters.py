"""Tests for DeferredParameters — laziness, memoization, error wrapping."""

from __future__ import annotations

import threading

import pytest

from stepforge.core.parameters import DeferredParameters, ParameterResolutionError
from stepforge.models.links import internal_image_link


class _Counter:
    def __init__(self, value: str = "v") -> None:
        self.value = value
        self.calls = 0

    def __call__(self) -> str:
        self.calls += 1
        return self.value


class TestDeferredParameters:
    def test_registration_does_not_invoke_provider(self, params: DeferredParameters):
        provider = _Counter()
        params.add("IMAGE_X", internal_image_link("x"), provider)
        assert provider.calls == 0
        assert params.names() == ["IMAGE_X"]

    def test_get_invokes_provider_once(self, params: DeferredParameters):
        provider = _Counter("registry/ns/stable:x")
        params.add("IMAGE_X", None, provider)
        assert params.get("IMAGE_X") == "registry/ns/stable:x"
        assert params.get("IMAGE_X") == "registry/ns/stable:x"
        assert provider.calls == 1

    def test_duplicate_name_rejected(self, params: DeferredParameters):
        params.add("IMAGE_X", None, _Counter())
        with pytest.raises(ValueError, match="already provided"):
            params.add("IMAGE_X", None, _Counter())

    def test_unknown_name(self, params: DeferredParameters):
        with pytest.raises(ParameterResolutionError, match="no step provides it"):
            params.get("IMAGE_MISSING")

    def test_provider_error_is_wrapped(self, params: DeferredParameters):
        def broken() -> str:
            raise RuntimeError("imagestream not found")

        params.add("IMAGE_X", None, broken)
        with pytest.raises(ParameterResolutionError) as exc_info:
            params.get("IMAGE_X")
        assert exc_info.value.name == "IMAGE_X"
        assert "imagestream not found" in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_failed_resolution_is_not_cached(self, params: DeferredParameters):
        attempts = []

        def flaky() -> str:
            attempts.append(1)
            if len(attempts) == 1:
                raise RuntimeError("not yet")
            return "ok"

        params.add("IMAGE_X", None, flaky)
        with pytest.raises(ParameterResolutionError):
            params.get("IMAGE_X")
        assert params.get("IMAGE_X") == "ok"

    def test_unused_broken_provider_never_fails(self, params: DeferredParameters):
        def broken() -> str:
            raise RuntimeError("boom")

        params.add("IMAGE_BROKEN", None, broken)
        params.add("IMAGE_OK", None, _Counter("fine"))
        assert params.get("IMAGE_OK") == "fine"
        assert params.resolved() == {"IMAGE_OK": "fine"}

    def test_map_resolves_everything(self, params: DeferredParameters):
        params.add_map({"IMAGE_B": _Counter("b"), "IMAGE_A": _Counter("a")}, None)
        assert params.map() == {"IMAGE_A": "a", "IMAGE_B": "b"}
        assert params.names() == ["IMAGE_A", "IMAGE_B"]

    def test_all_links_skip_unlinked_parameters(self, params: DeferredParameters):
        link = internal_image_link("x")
        params.add("IMAGE_X", link, _Counter())
        params.add("IMAGE_Y", None, _Counter())
        assert params.all_links() == frozenset({link})

    def test_concurrent_gets_agree(self, params: DeferredParameters):
        params.add("IMAGE_X", None, _Counter("same"))
        results: list[str] = []

        def worker() -> None:
            results.append(params.get("IMAGE_X"))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert results == ["same"] * 8
