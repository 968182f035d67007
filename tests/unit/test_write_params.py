"""Tests for the parameter writer step."""

from __future__ import annotations

import io
from pathlib import Path

import pytest

from stepforge.core.parameters import DeferredParameters
from stepforge.models.links import internal_image_link
from stepforge.steps.base import Operation, StepError
from stepforge.steps.write_params import WriteParametersStep


class TestWriteParametersStep:
    def test_requires_every_parameter_link(self, params: DeferredParameters, tmp_dir: Path):
        params.add("IMAGE_A", internal_image_link("a"), lambda: "x")
        params.add("IMAGE_B", internal_image_link("b"), lambda: "y")
        step = WriteParametersStep(params, tmp_dir / "params.env")
        assert step.requires() == frozenset({internal_image_link("a"), internal_image_link("b")})
        assert step.creates() == frozenset()
        assert step.name == "[parameters:write]"

    def test_writes_sorted_quoted_values(self, params: DeferredParameters, tmp_dir: Path):
        params.add("IMAGE_B", None, lambda: "registry/ns/stable:b")
        params.add("IMAGE_A", None, lambda: "value with space")
        path = tmp_dir / "out" / "params.env"
        WriteParametersStep(params, path).run(dry_run=False)
        assert path.read_text(encoding="utf-8") == (
            "IMAGE_A='value with space'\nIMAGE_B=registry/ns/stable:b\n"
        )

    def test_never_done(self, params: DeferredParameters, tmp_dir: Path):
        assert WriteParametersStep(params, tmp_dir / "p.env").done() is False

    def test_dry_run_does_not_resolve(self, params: DeferredParameters, tmp_dir: Path):
        calls = []

        def provider() -> str:
            calls.append(1)
            return "x"

        params.add("IMAGE_A", None, provider)
        out = io.StringIO()
        path = tmp_dir / "params.env"
        WriteParametersStep(params, path, out=out).run(dry_run=True)
        assert calls == []
        assert out.getvalue() == "IMAGE_A=<deferred>\n"
        assert not path.exists()

    def test_resolution_failure(self, params: DeferredParameters, tmp_dir: Path):
        def broken() -> str:
            raise RuntimeError("no registry")

        params.add("IMAGE_A", None, broken)
        with pytest.raises(StepError) as exc_info:
            WriteParametersStep(params, tmp_dir / "p.env").run(dry_run=False)
        assert exc_info.value.operation == Operation.RESOLVE_PARAMETER
        assert "IMAGE_A" in str(exc_info.value)

    def test_write_failure(self, params: DeferredParameters, tmp_dir: Path):
        params.add("IMAGE_A", None, lambda: "x")
        blocker = tmp_dir / "file"
        blocker.write_text("", encoding="utf-8")
        with pytest.raises(StepError) as exc_info:
            WriteParametersStep(params, blocker / "p.env").run(dry_run=False)
        assert exc_info.value.operation == Operation.WRITE
