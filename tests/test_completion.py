"""Tests for step completion and navigation gating."""

import pytest

from roundtable.workflow.completion import (
    completed_steps,
    is_step_completed,
    is_step_reachable,
    step_status,
)
from roundtable.workflow.state import Citation, WorkflowState

from conftest import make_characters


class TestStepCompletion:
    def test_step_1_requires_confirmation(self):
        assert not is_step_completed(WorkflowState(topic="X"), 1)
        assert is_step_completed(WorkflowState(topic="X", topic_confirmed=True), 1)

    def test_step_2_whitespace_only_is_incomplete(self):
        assert not is_step_completed(WorkflowState(research_data="   "), 2)

    def test_step_2_counts_non_whitespace_chars(self):
        assert not is_step_completed(WorkflowState(research_data="a" * 50), 2)
        assert is_step_completed(WorkflowState(research_data="a" * 51), 2)
        # whitespace does not count towards the threshold
        assert not is_step_completed(WorkflowState(research_data=" a" * 50), 2)

    def test_step_2_citations_alone_complete_it(self):
        state = WorkflowState(citations=[Citation(title="t", uri="u")])
        assert is_step_completed(state, 2)

    def test_step_3_needs_a_character(self):
        assert not is_step_completed(WorkflowState(), 3)
        assert is_step_completed(WorkflowState(characters=make_characters(1)), 3)

    def test_steps_4_and_5_ignore_blank_text(self):
        assert not is_step_completed(WorkflowState(transcript="\n  "), 4)
        assert is_step_completed(WorkflowState(transcript="A: hi"), 4)
        assert not is_step_completed(WorkflowState(final_article=" "), 5)
        assert is_step_completed(WorkflowState(final_article="# T"), 5)

    @pytest.mark.parametrize("step", [0, 6, -1])
    def test_unknown_steps_never_complete(self, step):
        assert not is_step_completed(WorkflowState(), step)

    def test_completed_steps(self, populated_state):
        assert completed_steps(populated_state) == [1, 2, 3, 4, 5]
        assert completed_steps(WorkflowState()) == []


class TestNavigation:
    def test_steps_up_to_current_are_reachable(self):
        state = WorkflowState(current_step=3)
        assert [is_step_reachable(state, s) for s in range(1, 6)] == [True, True, True, False, False]

    def test_completed_step_ahead_is_reachable(self):
        state = WorkflowState(current_step=2, transcript="A: hi")
        assert is_step_reachable(state, 4)
        assert not is_step_reachable(state, 3)

    def test_out_of_range_unreachable(self):
        assert not is_step_reachable(WorkflowState(), 0)
        assert not is_step_reachable(WorkflowState(), 6)

    def test_step_status_is_positional(self):
        state = WorkflowState(current_step=3)
        assert [step_status(state, s) for s in range(1, 6)] == [
            "completed", "completed", "active", "locked", "locked",
        ]
