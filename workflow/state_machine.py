from enum import Enum
from typing import Optional, Callable, List, Type
from dataclasses import dataclass

from .errors import InvalidTransition


class TournamentStatus(str, Enum):
    DRAFT = "draft"
    REGISTRATION_OPEN = "registration_open"
    REGISTRATION_CLOSED = "registration_closed"
    AUCTION_IN_PROGRESS = "auction_in_progress"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class CategoryStatus(str, Enum):
    SETUP = "setup"
    REGISTRATION = "registration"
    AUCTION = "auction"
    BRACKET_CONFIGURED = "bracket_configured"
    ONGOING = "ongoing"
    COMPLETED = "completed"


class RegistrationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    AUCTIONED = "auctioned"
    ASSIGNED = "assigned"
    WITHDRAWN = "withdrawn"


@dataclass
class Transition:
    from_state: Enum
    to_state: Enum
    action: str
    guard: Optional[Callable] = None


class StateMachine:
    """
    Table-driven state machine.

    Subclasses declare STATES (the status enum), INITIAL and TRANSITIONS.
    A transition fires when the current state and action match an entry;
    its guard, if any, is evaluated against the supplied context.
    """
    STATES: Type[Enum] = None
    INITIAL: Enum = None
    TRANSITIONS: List[Transition] = []
    TERMINAL: tuple = ()

    def __init__(self, initial_state: Enum = None):
        self._state = initial_state if initial_state is not None else self.INITIAL
        self._history: List[tuple] = []

    @property
    def state(self) -> Enum:
        return self._state

    @property
    def is_terminal(self) -> bool:
        return self._state in self.TERMINAL

    @property
    def allowed_actions(self) -> List[str]:
        return [t.action for t in self.TRANSITIONS if t.from_state == self._state]

    def can_transition(self, action: str) -> bool:
        return self._find(action) is not None

    def _find(self, action: str) -> Optional[Transition]:
        for t in self.TRANSITIONS:
            if t.from_state == self._state and t.action == action:
                return t
        return None

    @classmethod
    def target(cls, action: str) -> Optional[Enum]:
        for t in cls.TRANSITIONS:
            if t.action == action:
                return t.to_state
        return None

    def transition(self, action: str, guard_context: dict = None) -> Enum:
        t = self._find(action)
        if t is None:
            raise InvalidTransition(
                self._state.value,
                self.target(action).value if self.target(action) else None,
                f"No valid transition for action '{action}' from state '{self._state.value}'"
            )

        if t.guard and not t.guard(guard_context or {}):
            raise InvalidTransition(
                self._state.value,
                t.to_state.value,
                f"Guard condition failed for action '{action}'"
            )

        old_state = self._state
        self._state = t.to_state
        self._history.append((old_state, action, self._state))
        return self._state

    def get_history(self) -> List[tuple]:
        return self._history.copy()

    @classmethod
    def from_state_string(cls, state_str: str) -> "StateMachine":
        try:
            state = cls.STATES(state_str)
        except ValueError:
            raise InvalidTransition(state_str, None, f"Unknown state '{state_str}'")
        return cls(initial_state=state)


def parent_tournament_open_guard(context: dict) -> bool:
    """Category transitions require a tournament that is neither cancelled nor completed."""
    status = context.get("tournament_status")
    return status not in (TournamentStatus.CANCELLED.value, TournamentStatus.COMPLETED.value)


def _cancel_from_everywhere() -> List[Transition]:
    return [
        Transition(s, TournamentStatus.CANCELLED, "cancel")
        for s in TournamentStatus
        if s not in (TournamentStatus.COMPLETED, TournamentStatus.CANCELLED)
    ]


class TournamentStateMachine(StateMachine):
    STATES = TournamentStatus
    INITIAL = TournamentStatus.DRAFT
    TERMINAL = (TournamentStatus.COMPLETED, TournamentStatus.CANCELLED)
    TRANSITIONS = [
        Transition(TournamentStatus.DRAFT, TournamentStatus.REGISTRATION_OPEN, "open_registration"),
        Transition(TournamentStatus.REGISTRATION_OPEN, TournamentStatus.REGISTRATION_CLOSED, "close_registration"),
        Transition(TournamentStatus.REGISTRATION_CLOSED, TournamentStatus.AUCTION_IN_PROGRESS, "start_auction"),
        Transition(TournamentStatus.AUCTION_IN_PROGRESS, TournamentStatus.ONGOING, "start_tournament"),
        Transition(TournamentStatus.REGISTRATION_CLOSED, TournamentStatus.ONGOING, "start_tournament"),
        Transition(TournamentStatus.ONGOING, TournamentStatus.COMPLETED, "complete_tournament"),
    ] + _cancel_from_everywhere()


class CategoryStateMachine(StateMachine):
    STATES = CategoryStatus
    INITIAL = CategoryStatus.SETUP
    TERMINAL = (CategoryStatus.COMPLETED,)
    TRANSITIONS = [
        Transition(CategoryStatus.SETUP, CategoryStatus.REGISTRATION, "open_registration",
                   parent_tournament_open_guard),
        Transition(CategoryStatus.REGISTRATION, CategoryStatus.AUCTION, "start_auction",
                   parent_tournament_open_guard),
        Transition(CategoryStatus.AUCTION, CategoryStatus.BRACKET_CONFIGURED, "configure_bracket",
                   parent_tournament_open_guard),
        Transition(CategoryStatus.BRACKET_CONFIGURED, CategoryStatus.ONGOING, "start_category",
                   parent_tournament_open_guard),
        Transition(CategoryStatus.ONGOING, CategoryStatus.COMPLETED, "complete_category",
                   parent_tournament_open_guard),
    ]


class RegistrationStateMachine(StateMachine):
    STATES = RegistrationStatus
    INITIAL = RegistrationStatus.PENDING
    TERMINAL = (RegistrationStatus.REJECTED, RegistrationStatus.WITHDRAWN)
    # auction/assign/unassign are driven by the assignment coordinator only
    TRANSITIONS = [
        Transition(RegistrationStatus.PENDING, RegistrationStatus.APPROVED, "approve"),
        Transition(RegistrationStatus.PENDING, RegistrationStatus.REJECTED, "reject"),
        Transition(RegistrationStatus.PENDING, RegistrationStatus.WITHDRAWN, "withdraw"),
        Transition(RegistrationStatus.APPROVED, RegistrationStatus.WITHDRAWN, "withdraw"),
        Transition(RegistrationStatus.APPROVED, RegistrationStatus.AUCTIONED, "auction"),
        Transition(RegistrationStatus.APPROVED, RegistrationStatus.ASSIGNED, "assign"),
        Transition(RegistrationStatus.AUCTIONED, RegistrationStatus.ASSIGNED, "assign"),
        Transition(RegistrationStatus.ASSIGNED, RegistrationStatus.ASSIGNED, "assign"),
        Transition(RegistrationStatus.AUCTIONED, RegistrationStatus.APPROVED, "unassign"),
        Transition(RegistrationStatus.ASSIGNED, RegistrationStatus.APPROVED, "unassign"),
    ]

    @property
    def holds_team(self) -> bool:
        return self._state in (RegistrationStatus.AUCTIONED, RegistrationStatus.ASSIGNED)
