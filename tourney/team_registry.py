import logging
from typing import List, Optional

from sqlalchemy import func

from workflow.errors import NotFound, Conflict, ValidationFailed
from .authorization import AuthorizationGuard
from .ledger import Ledger
from .models import db, Team, Tournament

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ('name', 'owner_name', 'owner_phone')


class TeamRegistry:
    """Team records and budget administration."""

    def __init__(self, guard: AuthorizationGuard = None, ledger: Ledger = None):
        self.guard = guard or AuthorizationGuard()
        self.ledger = ledger or Ledger()

    def _name_taken(self, tournament_id: str, name: str, exclude_id: str = None) -> bool:
        query = Team.query.filter(
            Team.tournament_id == tournament_id,
            Team.is_active.is_(True),
            func.lower(Team.name) == name.strip().lower()
        )
        if exclude_id:
            query = query.filter(Team.team_id != exclude_id)
        return query.first() is not None

    def create_team(
        self,
        tournament_id: str,
        principal_id: str,
        name: str,
        owner_name: str = None,
        owner_phone: str = None,
        initial_budget: int = None
    ) -> Team:
        tournament = Tournament.query.filter_by(tournament_id=tournament_id, is_active=True).first()
        if not tournament:
            raise NotFound('Tournament not found.')

        self.guard.require_organizer_or_staff(
            tournament_id, principal_id, 'You are not authorized to create teams for this tournament.'
        )

        if not (name or '').strip():
            raise ValidationFailed('Team name is required.')

        team_count = Team.query.filter_by(tournament_id=tournament_id, is_active=True).count()
        if team_count >= tournament.max_teams:
            raise Conflict(f"Maximum team limit ({tournament.max_teams}) reached.")

        if self._name_taken(tournament_id, name):
            raise Conflict('A team with this name already exists in the tournament.')

        if initial_budget is None:
            initial_budget = tournament.default_budget
        if not isinstance(initial_budget, int) or isinstance(initial_budget, bool) or initial_budget < 0:
            raise ValidationFailed('initial_budget must be a non-negative integer.')

        team = Team(
            tournament_id=tournament_id,
            name=name.strip(),
            owner_name=owner_name,
            owner_phone=owner_phone,
            initial_budget=initial_budget,
            budget=initial_budget
        )
        db.session.add(team)
        db.session.commit()

        logger.info(f"Team {team.team_id} created in tournament {tournament_id} with budget {initial_budget}")
        return team

    def get_team(self, team_id: str) -> Optional[Team]:
        return Team.query.filter_by(team_id=team_id, is_active=True).first()

    def require_team(self, team_id: str) -> Team:
        team = self.get_team(team_id)
        if not team:
            raise NotFound('Team not found.')
        return team

    def list_by_tournament(self, tournament_id: str) -> List[Team]:
        if not Tournament.query.filter_by(tournament_id=tournament_id, is_active=True).first():
            raise NotFound('Tournament not found.')
        return Team.query.filter_by(tournament_id=tournament_id, is_active=True).order_by(Team.id).all()

    def update_team(self, team_id: str, principal_id: str, **changes) -> Team:
        team = self.require_team(team_id)
        self.guard.require_organizer_or_staff(
            team.tournament_id, principal_id, 'You are not authorized to update this team.'
        )

        unknown = set(changes) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValidationFailed(f"Fields cannot be updated: {', '.join(sorted(unknown))}")

        if 'name' in changes:
            if not (changes['name'] or '').strip():
                raise ValidationFailed('Team name is required.')
            if self._name_taken(team.tournament_id, changes['name'], team_id):
                raise Conflict('A team with this name already exists in the tournament.')
            changes['name'] = changes['name'].strip()

        for field, value in changes.items():
            setattr(team, field, value)
        db.session.commit()
        return team

    def delete_team(self, team_id: str, principal_id: str):
        team = self.require_team(team_id)
        self.guard.require_organizer(
            team.tournament_id, principal_id, 'Only the tournament organizer can delete teams.'
        )
        team.is_active = False
        db.session.commit()
        logger.info(f"Team {team_id} deleted by {principal_id}")

    # ==================== Budget administration ====================

    def update_budget(self, team_id: str, budget: int, principal_id: str) -> Team:
        team = self.require_team(team_id)
        self.guard.require_organizer_or_staff(
            team.tournament_id, principal_id, 'You are not authorized to update this team.'
        )
        self.ledger.set_budget(team_id, budget)
        return self.require_team(team_id)

    def reset_budget(self, team_id: str, principal_id: str) -> Team:
        team = self.require_team(team_id)
        self.guard.require_organizer_or_staff(
            team.tournament_id, principal_id, 'You are not authorized to update this team.'
        )
        self.ledger.reset(team_id)
        return self.require_team(team_id)
