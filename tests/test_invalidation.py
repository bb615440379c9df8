"""Tests for cascade invalidation."""

import pytest

from roundtable.workflow.invalidation import invalidate_from
from roundtable.workflow.state import WorkflowState


class TestInvalidateFrom:
    def test_from_3_keeps_steps_1_and_2(self, populated_state):
        result = invalidate_from(populated_state, 3)

        assert result.topic == "X"
        assert result.topic_confirmed is True
        assert result.research_data == populated_state.research_data
        assert result.supplemental_query == "補充"
        assert result.citations == populated_state.citations

        assert result.characters == []
        assert result.transcript == ""
        assert result.final_article == ""
        assert all(k < 3 for k in result.loading)
        assert result.loading == {1: False, 2: False}
        assert result.last_error is None

    def test_from_1_clears_everything(self, populated_state):
        result = invalidate_from(populated_state, 1)
        defaults = WorkflowState()
        for field in ("topic", "topic_confirmed", "research_data", "supplemental_query",
                      "citations", "characters", "transcript", "final_article"):
            assert getattr(result, field) == getattr(defaults, field)
        assert result.loading == {}

    def test_from_2_clears_research_fields(self, populated_state):
        result = invalidate_from(populated_state, 2)
        assert result.topic_confirmed is True
        assert result.research_data == ""
        assert result.supplemental_query == ""
        assert result.citations == []

    def test_from_5_only_clears_article(self, populated_state):
        result = invalidate_from(populated_state, 5)
        assert result.transcript == populated_state.transcript
        assert result.characters == populated_state.characters
        assert result.final_article == ""
        assert 5 not in result.loading
        assert result.loading[3] is True

    def test_navigation_prompts_and_preparing_untouched(self, populated_state):
        state = populated_state.model_copy(update={"preparing_step": 2})
        result = invalidate_from(state, 2)
        assert result.current_step == 5
        assert result.prompts == state.prompts
        assert result.preparing_step == 2

    def test_input_state_not_modified(self, populated_state):
        invalidate_from(populated_state, 1)
        assert populated_state.topic == "X"
        assert 3 in populated_state.loading

    @pytest.mark.parametrize("step", [0, 6])
    def test_rejects_unknown_step(self, populated_state, step):
        with pytest.raises(ValueError):
            invalidate_from(populated_state, step)
