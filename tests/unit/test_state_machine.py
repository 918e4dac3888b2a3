"""
Unit tests for the tournament, category and registration state machines.
Pure logic, no database.
"""
import pytest
from workflow.errors import InvalidTransition
from workflow.state_machine import (
    TournamentStateMachine, TournamentStatus,
    CategoryStateMachine, CategoryStatus,
    RegistrationStateMachine, RegistrationStatus,
    parent_tournament_open_guard,
)


class TestTournamentInitialState:
    """Tests for state machine initialization."""

    def test_default_initial_state(self):
        """Default initial state should be DRAFT."""
        sm = TournamentStateMachine()
        assert sm.state == TournamentStatus.DRAFT

    def test_from_state_string(self):
        sm = TournamentStateMachine.from_state_string("registration_closed")
        assert sm.state == TournamentStatus.REGISTRATION_CLOSED

    def test_from_unknown_state_string(self):
        with pytest.raises(InvalidTransition):
            TournamentStateMachine.from_state_string("archived")


class TestTournamentTransitions:
    """Tests for the tournament lifecycle."""

    def test_full_lifecycle_through_auction(self):
        sm = TournamentStateMachine()
        sm.transition("open_registration")
        sm.transition("close_registration")
        sm.transition("start_auction")
        sm.transition("start_tournament")
        assert sm.transition("complete_tournament") == TournamentStatus.COMPLETED
        assert sm.is_terminal

    def test_start_without_auction(self):
        """start_tournament is also legal straight from REGISTRATION_CLOSED."""
        sm = TournamentStateMachine(TournamentStatus.REGISTRATION_CLOSED)
        assert sm.transition("start_tournament") == TournamentStatus.ONGOING

    def test_cannot_start_auction_from_draft(self):
        sm = TournamentStateMachine(TournamentStatus.DRAFT)
        with pytest.raises(InvalidTransition) as exc_info:
            sm.transition("start_auction")
        assert exc_info.value.from_state == "draft"
        assert exc_info.value.to_state == "auction_in_progress"
        assert sm.state == TournamentStatus.DRAFT  # State unchanged

    def test_cannot_start_auction_while_registration_open(self):
        sm = TournamentStateMachine(TournamentStatus.REGISTRATION_OPEN)
        with pytest.raises(InvalidTransition):
            sm.transition("start_auction")

    @pytest.mark.parametrize("status", [
        TournamentStatus.DRAFT,
        TournamentStatus.REGISTRATION_OPEN,
        TournamentStatus.REGISTRATION_CLOSED,
        TournamentStatus.AUCTION_IN_PROGRESS,
        TournamentStatus.ONGOING,
    ])
    def test_cancel_from_non_terminal(self, status):
        sm = TournamentStateMachine(status)
        assert sm.transition("cancel") == TournamentStatus.CANCELLED

    @pytest.mark.parametrize("status", [TournamentStatus.COMPLETED, TournamentStatus.CANCELLED])
    def test_terminal_states_reject_everything(self, status):
        sm = TournamentStateMachine(status)
        assert sm.allowed_actions == []
        with pytest.raises(InvalidTransition):
            sm.transition("cancel")

    def test_unknown_action(self):
        sm = TournamentStateMachine()
        with pytest.raises(InvalidTransition) as exc_info:
            sm.transition("publish")
        assert exc_info.value.to_state is None


class TestLegalSources:
    """Actions are legal only from the states listed in the transition table."""

    def test_start_tournament_sources(self):
        legal = [s for s in TournamentStatus if TournamentStateMachine(s).can_transition("start_tournament")]
        assert set(legal) == {TournamentStatus.AUCTION_IN_PROGRESS, TournamentStatus.REGISTRATION_CLOSED}

    def test_registration_assign_sources(self):
        legal = [s for s in RegistrationStatus if RegistrationStateMachine(s).can_transition("assign")]
        assert set(legal) == {
            RegistrationStatus.APPROVED,
            RegistrationStatus.AUCTIONED,
            RegistrationStatus.ASSIGNED,
        }

    def test_target(self):
        assert CategoryStateMachine.target("configure_bracket") == CategoryStatus.BRACKET_CONFIGURED
        assert CategoryStateMachine.target("nope") is None


class TestCategoryTransitions:
    """Tests for the category lifecycle and its parent guard."""

    def test_linear_lifecycle(self):
        sm = CategoryStateMachine()
        context = {"tournament_status": "ongoing"}
        for action in ["open_registration", "start_auction", "configure_bracket",
                       "start_category", "complete_category"]:
            sm.transition(action, context)
        assert sm.state == CategoryStatus.COMPLETED

    def test_cannot_skip_steps(self):
        sm = CategoryStateMachine()
        with pytest.raises(InvalidTransition):
            sm.transition("configure_bracket", {"tournament_status": "draft"})

    @pytest.mark.parametrize("parent", ["cancelled", "completed"])
    def test_guard_blocks_closed_parent(self, parent):
        sm = CategoryStateMachine(CategoryStatus.SETUP)
        with pytest.raises(InvalidTransition) as exc_info:
            sm.transition("open_registration", {"tournament_status": parent})
        assert "Guard" in exc_info.value.message
        assert sm.state == CategoryStatus.SETUP

    def test_guard_function(self):
        assert parent_tournament_open_guard({"tournament_status": "draft"}) is True
        assert parent_tournament_open_guard({"tournament_status": "cancelled"}) is False


class TestRegistrationTransitions:
    """Tests for the registration lifecycle."""

    def test_approve_and_reject_from_pending(self):
        assert RegistrationStateMachine().transition("approve") == RegistrationStatus.APPROVED
        assert RegistrationStateMachine().transition("reject") == RegistrationStatus.REJECTED

    def test_withdraw_twice(self):
        sm = RegistrationStateMachine(RegistrationStatus.APPROVED)
        sm.transition("withdraw")
        with pytest.raises(InvalidTransition):
            sm.transition("withdraw")

    def test_cannot_withdraw_when_holding_team(self):
        for status in (RegistrationStatus.AUCTIONED, RegistrationStatus.ASSIGNED):
            sm = RegistrationStateMachine(status)
            assert sm.holds_team is True
            assert sm.can_transition("withdraw") is False

    def test_auction_only_from_approved(self):
        assert RegistrationStateMachine(RegistrationStatus.APPROVED).can_transition("auction")
        assert not RegistrationStateMachine(RegistrationStatus.PENDING).can_transition("auction")
        assert not RegistrationStateMachine(RegistrationStatus.ASSIGNED).can_transition("auction")

    def test_reassign_stays_assigned(self):
        sm = RegistrationStateMachine(RegistrationStatus.ASSIGNED)
        assert sm.transition("assign") == RegistrationStatus.ASSIGNED

    def test_unassign_returns_to_approved(self):
        sm = RegistrationStateMachine(RegistrationStatus.AUCTIONED)
        assert sm.transition("unassign") == RegistrationStatus.APPROVED


class TestHistory:
    """Tests for transition history tracking."""

    def test_history_records_transitions(self):
        sm = TournamentStateMachine()
        sm.transition("open_registration")

        history = sm.get_history()
        assert history == [(TournamentStatus.DRAFT, "open_registration", TournamentStatus.REGISTRATION_OPEN)]

    def test_failed_transition_not_recorded(self):
        sm = TournamentStateMachine()
        with pytest.raises(InvalidTransition):
            sm.transition("complete_tournament")
        assert sm.get_history() == []

    def test_history_returns_copy(self):
        sm = TournamentStateMachine()
        sm.transition("open_registration")
        sm.get_history().clear()
        assert len(sm.get_history()) == 1
