"""Tests for the StepGraph — edges from links, validation, cascade blocking."""

from __future__ import annotations

import pytest

from stepforge.core.step_graph import (
    CyclicDependencyError,
    DuplicateStepError,
    StepGraph,
    UnresolvedLinkError,
)
from stepforge.models.steps import StepState


class TestStepGraph:
    def test_edge_from_creates_to_requires(self, make_step):
        graph = StepGraph([make_step("consumer", needs=["src"]), make_step("producer", makes=["src"])])
        assert graph.step_names == ["producer", "consumer"]
        assert graph.get_prerequisites("consumer") == ["producer"]
        assert graph.get_prerequisites("producer") == []

    def test_independent_steps_keep_declaration_order(self, make_step):
        graph = StepGraph([make_step("b"), make_step("a"), make_step("c")])
        assert graph.step_names == ["b", "a", "c"]

    def test_diamond(self, make_step):
        graph = StepGraph(
            [
                make_step("root", makes=["base"]),
                make_step("left", needs=["base"], makes=["l"]),
                make_step("right", needs=["base"], makes=["r"]),
                make_step("join", needs=["l", "r"]),
            ]
        )
        assert graph.layers() == [["root"], ["left", "right"], ["join"]]
        assert graph.get_prerequisites("join") == ["left", "right"]
        assert set(graph.get_dependents("root")) == {"left", "right", "join"}

    def test_unresolved_link(self, make_step):
        with pytest.raises(UnresolvedLinkError) as exc_info:
            StepGraph([make_step("consumer", needs=["missing"])])
        assert exc_info.value.missing[0][0] == "consumer"
        assert "internal_image(pipeline:missing)" in str(exc_info.value)

    def test_step_cannot_satisfy_itself(self, make_step):
        with pytest.raises(UnresolvedLinkError):
            StepGraph([make_step("loop", needs=["x"], makes=["x"])])

    def test_cycle(self, make_step):
        with pytest.raises(CyclicDependencyError, match="cycle"):
            StepGraph(
                [
                    make_step("a", needs=["y"], makes=["x"]),
                    make_step("b", needs=["x"], makes=["y"]),
                ]
            )

    def test_duplicate_names(self, make_step):
        with pytest.raises(DuplicateStepError):
            StepGraph([make_step("a"), make_step("a")])

    def test_prerequisites_met(self, make_step):
        graph = StepGraph([make_step("p", makes=["x"]), make_step("c", needs=["x"])])
        states = {"p": StepState.PENDING, "c": StepState.PENDING}
        assert graph.are_prerequisites_met("p", states) is True
        assert graph.are_prerequisites_met("c", states) is False
        states["p"] = StepState.SKIPPED
        assert graph.are_prerequisites_met("c", states) is True
        states["p"] = StepState.FAILED
        assert graph.are_prerequisites_met("c", states) is False

    def test_cascade_block(self, make_step):
        graph = StepGraph(
            [
                make_step("a", makes=["x"]),
                make_step("b", needs=["x"], makes=["y"]),
                make_step("c", needs=["y"]),
                make_step("d"),
            ]
        )
        states = {name: StepState.PENDING for name in graph.step_names}
        states["a"] = StepState.FAILED
        blocked = graph.cascade_block("a", states)
        assert blocked == ["b", "c"]
        assert states["b"] == StepState.BLOCKED
        assert states["d"] == StepState.PENDING

    def test_cascade_block_leaves_finished_steps(self, make_step):
        graph = StepGraph([make_step("a", makes=["x"]), make_step("b", needs=["x"])])
        states = {"a": StepState.FAILED, "b": StepState.SUCCEEDED}
        assert graph.cascade_block("a", states) == []
        assert states["b"] == StepState.SUCCEEDED

    def test_len(self, make_step):
        assert len(StepGraph([make_step("a"), make_step("b")])) == 2
