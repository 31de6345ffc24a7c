# Overview: Pytest coverage for the transition validator and status action resolver.

"""
Transition Tests

Properties are checked exhaustively over every built-in table: for each
workflow, every (current, requested) pair of declared states.
"""

import pytest

from opscore.services.transition_service import (
    DESTRUCTIVE_STATES,
    TransitionError,
    TransitionResult,
    default_label,
    next_actions,
    require_transition,
    validate_transition,
)
from opscore.services.workflow_tables import (
    DEFAULT_WORKFLOWS,
    LAUNDRY_ORDER,
    LEGAL_CASE,
    PROJECT,
    REPAIR_ORDER,
)


WORKFLOW_IDS = [wf.name for wf in DEFAULT_WORKFLOWS]


@pytest.mark.parametrize("workflow", DEFAULT_WORKFLOWS, ids=WORKFLOW_IDS)
class TestTableProperties:
    def test_same_state_always_valid(self, workflow):
        for state in workflow.states:
            assert validate_transition(workflow, state, state).valid, state

    def test_terminal_states_reject_everything_else(self, workflow):
        for terminal in workflow.terminal_states():
            for other in workflow.states:
                if other == terminal:
                    continue
                result = validate_transition(workflow, terminal, other)
                assert not result.valid, (terminal, other)

    def test_valid_iff_declared_successor_or_same(self, workflow):
        for current, spec in workflow.states.items():
            for requested in workflow.states:
                expected = requested in spec.successors or requested == current
                assert validate_transition(workflow, current, requested).valid is expected, (current, requested)

    def test_actions_agree_with_validator(self, workflow):
        for current in workflow.states:
            offered = [action.state for action in next_actions(workflow, current)]
            for state in offered:
                assert validate_transition(workflow, current, state).valid
            accepted = [
                requested for requested in workflow.states
                if requested != current and validate_transition(workflow, current, requested).valid
            ]
            assert sorted(offered) == sorted(accepted)

    def test_terminal_states_offer_nothing(self, workflow):
        for terminal in workflow.terminal_states():
            assert next_actions(workflow, terminal) == []


class TestScenarios:
    def test_repair_received_to_diagnosed(self):
        assert validate_transition(REPAIR_ORDER, "received", "diagnosed") == TransitionResult(valid=True)

    def test_repair_cannot_skip_to_approved(self):
        result = validate_transition(REPAIR_ORDER, "received", "approved")
        assert not result.valid
        assert result.error == "Cannot transition from 'received' to 'approved'"

    def test_repair_cancelled_is_final(self):
        assert not validate_transition(REPAIR_ORDER, "cancelled", "received").valid

    def test_laundry_drying_can_skip_ironing(self):
        assert validate_transition(LAUNDRY_ORDER, "drying", "ready").valid

    def test_laundry_cannot_cancel_once_washing(self):
        assert not validate_transition(LAUNDRY_ORDER, "washing", "cancelled").valid

    def test_project_back_edge(self):
        assert validate_transition(PROJECT, "on_hold", "in_progress").valid

    def test_legal_case_back_edge(self):
        assert validate_transition(LEGAL_CASE, "pending_hearing", "in_progress").valid

    def test_unknown_current_state_rejected(self):
        result = validate_transition(REPAIR_ORDER, "teleported", "received")
        assert not result.valid
        assert "'teleported'" in result.error

    def test_unknown_same_state_is_noop(self):
        assert validate_transition(REPAIR_ORDER, "teleported", "teleported").valid

    def test_result_to_dict(self):
        assert TransitionResult(valid=True).to_dict() == {"valid": True}
        assert TransitionResult(valid=False, error="x").to_dict() == {"valid": False, "error": "x"}


class TestRequireTransition:
    def test_allowed_passes(self):
        require_transition(REPAIR_ORDER, "received", "diagnosed")

    def test_rejected_raises_with_states(self):
        with pytest.raises(TransitionError) as exc:
            require_transition(REPAIR_ORDER, "received", "approved")
        assert str(exc.value) == "Cannot transition from 'received' to 'approved'"
        assert exc.value.current == "received"
        assert exc.value.requested == "approved"


class TestNextActions:
    def test_declaration_order_and_flags(self):
        actions = next_actions(REPAIR_ORDER, "received")
        assert [a.state for a in actions] == ["diagnosed", "cancelled"]

        diagnosed, cancelled = actions
        assert diagnosed.label == "Diagnosed"
        assert not diagnosed.terminal
        assert not diagnosed.requires_confirmation
        assert cancelled.terminal
        assert cancelled.requires_confirmation

    def test_caller_labels_override_default(self):
        actions = next_actions(REPAIR_ORDER, "received", labels={"diagnosed": "Start diagnosis"})
        assert actions[0].label == "Start diagnosis"
        assert actions[1].label == "Cancelled"

    def test_unknown_state_offers_nothing(self):
        assert next_actions(REPAIR_ORDER, "teleported") == []

    def test_default_label(self):
        assert default_label("pending_hearing") == "Pending hearing"
        assert default_label("no_show") == "No show"

    def test_destructive_states(self):
        assert DESTRUCTIVE_STATES == {"cancelled", "no_show", "withdrawn", "archived"}

    def test_action_to_dict(self):
        data = next_actions(LEGAL_CASE, "closed")[0].to_dict()
        assert data == {
            "state": "archived",
            "label": "Archived",
            "terminal": True,
            "requires_confirmation": True,
        }
