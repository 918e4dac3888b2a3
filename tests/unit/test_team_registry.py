"""
Unit tests for TeamRegistry.
"""
import pytest

from tests.conftest import ORGANIZER, STAFF, OUTSIDER, get_team
from tourney.ledger import Ledger
from tourney.team_registry import TeamRegistry
from workflow.errors import NotFound, Forbidden, Conflict, ValidationFailed


class TestCreateTeam:

    def test_budget_defaults_to_tournament(self, db_session, sample_tournament):
        team = TeamRegistry().create_team(sample_tournament, ORGANIZER, 'Smashers', owner_name='Ravi')

        assert team.budget == 1000
        assert team.initial_budget == 1000
        assert team.team_id.startswith('tm_')

    def test_explicit_budget(self, db_session, sample_tournament):
        team = TeamRegistry().create_team(sample_tournament, STAFF, 'Smashers', initial_budget=2500)
        assert team.budget == team.initial_budget == 2500

    def test_max_teams_enforced(self, db_session, sample_teams):
        with pytest.raises(Conflict):
            TeamRegistry().create_team('t_test0001', ORGANIZER, 'Third Team')

    def test_duplicate_name(self, db_session, sample_tournament):
        registry = TeamRegistry()
        registry.create_team(sample_tournament, ORGANIZER, 'Smashers')
        with pytest.raises(Conflict):
            registry.create_team(sample_tournament, ORGANIZER, 'SMASHERS')

    def test_negative_budget(self, db_session, sample_tournament):
        with pytest.raises(ValidationFailed):
            TeamRegistry().create_team(sample_tournament, ORGANIZER, 'Broke', initial_budget=-10)

    def test_boolean_budget(self, db_session, sample_tournament):
        with pytest.raises(ValidationFailed):
            TeamRegistry().create_team(sample_tournament, ORGANIZER, 'Truthy', initial_budget=True)

    def test_outsider_forbidden(self, db_session, sample_tournament):
        with pytest.raises(Forbidden):
            TeamRegistry().create_team(sample_tournament, OUTSIDER, 'Intruders')


class TestTeamUpdates:

    def test_update_owner(self, db_session, sample_teams):
        team = TeamRegistry().update_team('tm_team_a', STAFF, owner_name='New Owner')
        assert team.owner_name == 'New Owner'

    def test_budget_not_patchable(self, db_session, sample_teams):
        with pytest.raises(ValidationFailed):
            TeamRegistry().update_team('tm_team_a', ORGANIZER, budget=999999)

    def test_rename_to_taken_name(self, db_session, sample_teams):
        with pytest.raises(Conflict):
            TeamRegistry().update_team('tm_team_a', ORGANIZER, name='team b')

    def test_delete_team(self, db_session, sample_teams):
        registry = TeamRegistry()
        registry.delete_team('tm_team_a', ORGANIZER)

        with pytest.raises(NotFound):
            registry.require_team('tm_team_a')
        assert [t.team_id for t in registry.list_by_tournament('t_test0001')] == ['tm_team_b']


class TestBudgetAdministration:

    def test_update_budget(self, db_session, sample_teams):
        team = TeamRegistry().update_budget('tm_team_a', 4000, ORGANIZER)
        assert team.budget == 4000

    def test_reset_budget(self, db_session, sample_teams):
        Ledger().debit('tm_team_a', 600)
        team = TeamRegistry().reset_budget('tm_team_a', STAFF)
        assert team.budget == 1000

    def test_outsider_cannot_touch_budget(self, db_session, sample_teams):
        with pytest.raises(Forbidden):
            TeamRegistry().update_budget('tm_team_a', 4000, OUTSIDER)
        assert get_team('tm_team_a').budget == 1000
