"""Adversarial tests: misconfigured pipelines must fail before anything runs."""

from __future__ import annotations

import pytest

from stepforge.core.parameters import DeferredParameters
from stepforge.core.pipeline import build_steps
from stepforge.core.runner import PipelineRunner
from stepforge.core.step_graph import (
    CyclicDependencyError,
    DuplicateStepError,
    GraphError,
    UnresolvedLinkError,
)
from stepforge.models.config import (
    ImageStreamTagReference,
    InputImageTagStepConfiguration,
    OutputImageTagStepConfiguration,
    PipelineConfig,
    RunContext,
)
from stepforge.store.memory import InMemoryImageStore


def _output(from_: str, tag: str, export_as: str = "") -> OutputImageTagStepConfiguration:
    return OutputImageTagStepConfiguration(
        from_=from_,
        to=ImageStreamTagReference(name="stable", tag=tag, export_as=export_as),
    )


def _runner(config: PipelineConfig, store: InMemoryImageStore, context: RunContext) -> PipelineRunner:
    params = DeferredParameters()
    steps = build_steps(
        config, context, store.image_stream_tags, store.image_streams, params=params
    )
    return PipelineRunner(steps, context, params=params)


class TestGraphMisconfiguration:
    def test_output_of_unbuilt_image(self, store: InMemoryImageStore, context: RunContext):
        config = PipelineConfig(output_images=[_output("never-built", "latest")])
        with pytest.raises(UnresolvedLinkError) as exc_info:
            _runner(config, store, context)
        assert exc_info.value.missing[0][0] == "[output:stable:latest]"
        assert store.calls == []

    def test_exports_feeding_each_other(self, store: InMemoryImageStore, context: RunContext):
        # Each export creates the pipeline link the other one tags from.
        config = PipelineConfig(
            output_images=[_output("b", "one", export_as="a"), _output("a", "two", export_as="b")]
        )
        with pytest.raises(CyclicDependencyError):
            _runner(config, store, context)

    def test_duplicate_export_names(self, store: InMemoryImageStore, context: RunContext):
        config = PipelineConfig(
            input_images=[
                InputImageTagStepConfiguration(
                    base_image=ImageStreamTagReference(name="golang", tag="1"), to="root"
                )
            ],
            output_images=[
                _output("root", "one", export_as="dup"),
                _output("root", "two", export_as="dup"),
            ],
        )
        with pytest.raises(ValueError, match="already provided"):
            _runner(config, store, context)

    def test_duplicate_input_targets(self, store: InMemoryImageStore, context: RunContext):
        base = ImageStreamTagReference(name="golang", tag="1")
        config = PipelineConfig(
            input_images=[
                InputImageTagStepConfiguration(base_image=base, to="root"),
                InputImageTagStepConfiguration(base_image=base, to="root"),
            ]
        )
        with pytest.raises(DuplicateStepError):
            _runner(config, store, context)

    def test_graph_errors_share_a_base(self):
        for exc_type in (UnresolvedLinkError, CyclicDependencyError, DuplicateStepError):
            assert issubclass(exc_type, GraphError)
            assert issubclass(exc_type, ValueError)
