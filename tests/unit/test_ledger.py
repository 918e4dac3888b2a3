"""
Unit tests for the team budget Ledger.
Tests: debit, credit, reset, set_budget, event publishing
"""
import json

import pytest

import redis

from tests.conftest import get_team
from tourney.event_publisher import EventPublisher, GLOBAL_CHANNEL
from tourney.ledger import Ledger
from workflow.errors import NotFound, InsufficientFunds, ValidationFailed


class TestDebit:

    def test_debit_reduces_budget(self, db_session, sample_teams):
        ledger = Ledger()
        assert ledger.debit('tm_team_a', 300) == 700
        assert get_team('tm_team_a').budget == 700

    def test_debit_entire_budget(self, db_session, sample_teams):
        ledger = Ledger()
        assert ledger.debit('tm_team_a', 1000) == 0

    def test_insufficient_funds_leaves_budget(self, db_session, sample_teams):
        ledger = Ledger()
        with pytest.raises(InsufficientFunds) as exc_info:
            ledger.debit('tm_team_a', 1001)

        assert exc_info.value.available == 1000
        assert exc_info.value.status_code == 402
        assert get_team('tm_team_a').budget == 1000

    def test_negative_amount_rejected(self, db_session, sample_teams):
        with pytest.raises(ValidationFailed):
            Ledger().debit('tm_team_a', -5)

    def test_non_integer_amount_rejected(self, db_session, sample_teams):
        with pytest.raises(ValidationFailed):
            Ledger().debit('tm_team_a', 12.5)

    def test_unknown_team(self, db_session, sample_teams):
        with pytest.raises(NotFound):
            Ledger().debit('tm_missing', 10)

    def test_inactive_team_cannot_be_debited(self, db_session, sample_teams):
        get_team('tm_team_a').is_active = False
        db_session.commit()

        with pytest.raises(NotFound):
            Ledger().debit('tm_team_a', 10)

    def test_sequential_debits_never_overdraw(self, db_session, sample_teams):
        """Only the debits the budget covers succeed."""
        ledger = Ledger()
        outcomes = []
        for _ in range(4):
            try:
                ledger.debit('tm_team_a', 400)
                outcomes.append(True)
            except InsufficientFunds:
                outcomes.append(False)

        assert outcomes == [True, True, False, False]
        assert get_team('tm_team_a').budget == 200


class TestCreditAndReset:

    def test_credit_increases_budget(self, db_session, sample_teams):
        ledger = Ledger()
        ledger.debit('tm_team_a', 500)
        assert ledger.credit('tm_team_a', 200) == 700

    def test_credit_unknown_team(self, db_session, sample_teams):
        with pytest.raises(NotFound):
            Ledger().credit('tm_missing', 10)

    def test_reset_restores_initial_budget(self, db_session, sample_teams):
        ledger = Ledger()
        ledger.debit('tm_team_a', 900)
        assert ledger.reset('tm_team_a') == 1000

    def test_set_budget(self, db_session, sample_teams):
        ledger = Ledger()
        assert ledger.set_budget('tm_team_b', 2500) == 2500
        assert ledger.balance('tm_team_b') == 2500

    def test_set_budget_negative(self, db_session, sample_teams):
        with pytest.raises(ValidationFailed):
            Ledger().set_budget('tm_team_b', -1)

    def test_balance_unknown_team(self, db_session):
        with pytest.raises(NotFound):
            Ledger().balance('tm_missing')


class TestBudgetEvents:

    def test_debit_publishes_budget_changed(self, db_session, sample_teams, mocker):
        redis_client = mocker.MagicMock()
        ledger = Ledger(EventPublisher(redis_client))

        ledger.debit('tm_team_a', 250)

        channels = [c.args[0] for c in redis_client.publish.call_args_list]
        assert channels == ['tournament:t_test0001:events', GLOBAL_CHANNEL]

        payload = json.loads(redis_client.publish.call_args_list[0].args[1])
        assert payload['type'] == 'ledger.budget_changed'
        assert payload['data'] == {'team_id': 'tm_team_a', 'delta': -250, 'balance': 750}

    def test_reset_publishes_delta(self, db_session, sample_teams, mocker):
        redis_client = mocker.MagicMock()
        ledger = Ledger(EventPublisher(redis_client))
        ledger.set_budget('tm_team_a', 400)
        redis_client.reset_mock()

        ledger.reset('tm_team_a')

        payload = json.loads(redis_client.publish.call_args_list[0].args[1])
        assert payload['data']['delta'] == 600

    def test_failed_debit_publishes_nothing(self, db_session, sample_teams, mocker):
        redis_client = mocker.MagicMock()
        ledger = Ledger(EventPublisher(redis_client))

        with pytest.raises(InsufficientFunds):
            ledger.debit('tm_team_a', 5000)
        redis_client.publish.assert_not_called()

    def test_redis_outage_does_not_fail_debit(self, db_session, sample_teams, mocker):
        redis_client = mocker.MagicMock()
        redis_client.publish.side_effect = redis.exceptions.ConnectionError("down")
        ledger = Ledger(EventPublisher(redis_client))

        assert ledger.debit('tm_team_a', 100) == 900
