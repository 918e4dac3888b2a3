from enum import Enum
from dataclasses import dataclass
from datetime import datetime
import json


class EventType(str, Enum):
    # Lifecycle
    TOURNAMENT_CREATED = "tournament.created"
    TOURNAMENT_STATE_CHANGED = "tournament.state_changed"
    CATEGORY_STATE_CHANGED = "category.state_changed"
    STAFF_CHANGED = "tournament.staff_changed"

    # Registrations
    REGISTRATION_CREATED = "registration.created"
    REGISTRATION_STATE_CHANGED = "registration.state_changed"

    # Team allocation
    PLAYER_AUCTIONED = "assignment.auctioned"
    PLAYER_ASSIGNED = "assignment.assigned"
    PLAYER_UNASSIGNED = "assignment.unassigned"

    # Ledger
    BUDGET_CHANGED = "ledger.budget_changed"


@dataclass
class Event:
    type: EventType
    tournament_id: str
    timestamp: str = None
    data: dict = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.utcnow().isoformat() + "Z"
        if self.data is None:
            self.data = {}

    def to_dict(self) -> dict:
        return {
            "type": self.type.value if isinstance(self.type, EventType) else self.type,
            "tournament_id": self.tournament_id,
            "timestamp": self.timestamp,
            "data": self.data
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


def state_changed_event(
    event_type: EventType,
    tournament_id: str,
    entity_id: str,
    from_state: str,
    to_state: str
) -> Event:
    return Event(
        type=event_type,
        tournament_id=tournament_id,
        data={
            "entity_id": entity_id,
            "from_state": from_state,
            "to_state": to_state
        }
    )


def assignment_event(
    event_type: EventType,
    tournament_id: str,
    registration_id: str,
    team_id: str = None,
    sold_price: int = None,
    previous_team_id: str = None
) -> Event:
    return Event(
        type=event_type,
        tournament_id=tournament_id,
        data={
            "registration_id": registration_id,
            "team_id": team_id,
            "sold_price": sold_price,
            "previous_team_id": previous_team_id
        }
    )


def budget_changed_event(tournament_id: str, team_id: str, delta: int, balance: int) -> Event:
    return Event(
        type=EventType.BUDGET_CHANGED,
        tournament_id=tournament_id,
        data={
            "team_id": team_id,
            "delta": delta,
            "balance": balance
        }
    )
