"""
Unit tests for event payloads published to redis.
"""
import json

from workflow.events import (
    Event, EventType,
    state_changed_event, assignment_event, budget_changed_event,
)


class TestEvent:

    def test_defaults(self):
        event = Event(type=EventType.TOURNAMENT_CREATED, tournament_id="t_1")
        assert event.data == {}
        assert event.timestamp.endswith("Z")

    def test_to_dict_uses_type_value(self):
        event = Event(type=EventType.BUDGET_CHANGED, tournament_id="t_1",
                      timestamp="2026-01-01T00:00:00Z", data={"delta": -5})
        assert event.to_dict() == {
            "type": "ledger.budget_changed",
            "tournament_id": "t_1",
            "timestamp": "2026-01-01T00:00:00Z",
            "data": {"delta": -5},
        }

    def test_to_json_is_plain_json(self):
        event = Event(type=EventType.STAFF_CHANGED, tournament_id="t_1")
        payload = json.loads(event.to_json())
        assert payload["type"] == "tournament.staff_changed"
        assert payload["data"] == {}


class TestEventFactories:

    def test_state_changed(self):
        event = state_changed_event(EventType.CATEGORY_STATE_CHANGED, "t_1", "c_1", "setup", "registration")
        assert event.type == EventType.CATEGORY_STATE_CHANGED
        assert event.data == {"entity_id": "c_1", "from_state": "setup", "to_state": "registration"}

    def test_assignment_defaults(self):
        event = assignment_event(EventType.PLAYER_UNASSIGNED, "t_1", "r_1", previous_team_id="tm_a")
        assert event.data == {
            "registration_id": "r_1",
            "team_id": None,
            "sold_price": None,
            "previous_team_id": "tm_a",
        }

    def test_budget_changed(self):
        event = budget_changed_event("t_1", "tm_a", 200, 1200)
        assert event.type == EventType.BUDGET_CHANGED
        assert event.data == {"team_id": "tm_a", "delta": 200, "balance": 1200}
