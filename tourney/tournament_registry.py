import logging
from typing import Optional, List

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from workflow.errors import NotFound, Conflict, InvalidTransition, ValidationFailed
from workflow.events import Event, EventType, state_changed_event
from workflow.state_machine import TournamentStateMachine, TournamentStatus
from .authorization import AuthorizationGuard
from .event_publisher import EventPublisher
from .models import db, conditional_update, Tournament, TournamentStaff

logger = logging.getLogger(__name__)

AUCTION_TYPES = ('manual', 'live')
SPORTS = ('badminton', 'cricket', 'football', 'kabaddi', 'table_tennis', 'tennis')
UPDATABLE_FIELDS = ('name', 'description', 'sport', 'max_teams', 'default_budget',
                    'auction_type', 'allow_late_registration')


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _validate_settings(data: dict):
    if 'name' in data and not (data['name'] or '').strip():
        raise ValidationFailed('Tournament name is required.')
    if 'sport' in data and data['sport'] not in SPORTS:
        raise ValidationFailed(f"Unsupported sport '{data['sport']}'.")
    if 'max_teams' in data and (not _is_int(data['max_teams']) or data['max_teams'] < 2):
        raise ValidationFailed('max_teams must be an integer of at least 2.')
    if 'default_budget' in data and (not _is_int(data['default_budget']) or data['default_budget'] < 0):
        raise ValidationFailed('default_budget must be a non-negative integer.')
    if 'auction_type' in data and data['auction_type'] not in AUCTION_TYPES:
        raise ValidationFailed(f"auction_type must be one of {', '.join(AUCTION_TYPES)}.")


class TournamentRegistry:
    """
    Manages tournament records:
    - Create/update/delete tournaments
    - Drive the tournament lifecycle
    - Maintain the staff delegated by the organizer
    """

    def __init__(self, guard: AuthorizationGuard = None, publisher: EventPublisher = None):
        self.guard = guard or AuthorizationGuard()
        self.publisher = publisher or EventPublisher()

    def create_tournament(
        self,
        created_by: str,
        name: str,
        sport: str = 'badminton',
        description: str = None,
        max_teams: int = None,
        default_budget: int = None,
        auction_type: str = 'manual',
        allow_late_registration: bool = False
    ) -> Tournament:
        """Create a new tournament in draft state, owned by ``created_by``."""
        if max_teams is None:
            max_teams = current_app.config.get('DEFAULT_MAX_TEAMS', 8)
        if default_budget is None:
            default_budget = current_app.config.get('DEFAULT_TEAM_BUDGET', 100000)

        _validate_settings({
            'name': name,
            'sport': sport,
            'max_teams': max_teams,
            'default_budget': default_budget,
            'auction_type': auction_type,
        })

        tournament = Tournament(
            name=name.strip(),
            sport=sport,
            description=description,
            status=TournamentStatus.DRAFT.value,
            created_by=created_by,
            max_teams=max_teams,
            default_budget=default_budget,
            auction_type=auction_type,
            allow_late_registration=allow_late_registration
        )
        db.session.add(tournament)
        db.session.commit()

        logger.info(f"Tournament {tournament.tournament_id} created by {created_by}")
        self.publisher.publish(Event(
            type=EventType.TOURNAMENT_CREATED,
            tournament_id=tournament.tournament_id,
            data={'name': tournament.name, 'created_by': created_by}
        ))
        return tournament

    def get_tournament(self, tournament_id: str) -> Optional[Tournament]:
        """Get an active tournament by its public ID."""
        return Tournament.query.filter_by(tournament_id=tournament_id, is_active=True).first()

    def require_tournament(self, tournament_id: str) -> Tournament:
        tournament = self.get_tournament(tournament_id)
        if not tournament:
            raise NotFound('Tournament not found.')
        return tournament

    def list_tournaments(
        self,
        status: str = None,
        sport: str = None,
        limit: int = 20,
        offset: int = 0
    ) -> List[Tournament]:
        query = Tournament.query.filter_by(is_active=True)

        if status:
            query = query.filter_by(status=status)
        if sport:
            query = query.filter_by(sport=sport)

        query = query.order_by(Tournament.created_at.desc(), Tournament.id.desc())
        return query.offset(offset).limit(limit).all()

    def list_for_principal(self, principal_id: str) -> List[Tournament]:
        """Tournaments the principal created or is staff on."""
        staffed = db.select(TournamentStaff.tournament_id).where(TournamentStaff.staff_id == principal_id)
        return Tournament.query.filter(
            Tournament.is_active.is_(True),
            or_(Tournament.created_by == principal_id, Tournament.tournament_id.in_(staffed))
        ).order_by(Tournament.created_at.desc(), Tournament.id.desc()).all()

    def update_tournament(self, tournament_id: str, principal_id: str, **changes) -> Tournament:
        tournament = self.require_tournament(tournament_id)
        self.guard.require_organizer_or_staff(
            tournament_id, principal_id, 'You are not authorized to update this tournament.'
        )

        unknown = set(changes) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValidationFailed(f"Fields cannot be updated: {', '.join(sorted(unknown))}")
        _validate_settings(changes)

        for field, value in changes.items():
            setattr(tournament, field, value.strip() if field == 'name' else value)
        db.session.commit()
        return tournament

    def delete_tournament(self, tournament_id: str, principal_id: str):
        """Soft-delete a tournament (organizer only)."""
        tournament = self.require_tournament(tournament_id)
        self.guard.require_organizer(
            tournament_id, principal_id, 'Only the tournament organizer can delete this tournament.'
        )
        tournament.is_active = False
        db.session.commit()
        logger.info(f"Tournament {tournament_id} deleted by {principal_id}")

    # ==================== Lifecycle ====================

    def open_registration(self, tournament_id: str, principal_id: str) -> Tournament:
        return self._transition(tournament_id, principal_id, 'open_registration')

    def close_registration(self, tournament_id: str, principal_id: str) -> Tournament:
        return self._transition(tournament_id, principal_id, 'close_registration')

    def start_auction(self, tournament_id: str, principal_id: str) -> Tournament:
        return self._transition(tournament_id, principal_id, 'start_auction')

    def start_tournament(self, tournament_id: str, principal_id: str) -> Tournament:
        return self._transition(tournament_id, principal_id, 'start_tournament')

    def complete_tournament(self, tournament_id: str, principal_id: str) -> Tournament:
        return self._transition(tournament_id, principal_id, 'complete_tournament')

    def cancel_tournament(self, tournament_id: str, principal_id: str) -> Tournament:
        return self._transition(tournament_id, principal_id, 'cancel', organizer_only=True)

    def _transition(
        self,
        tournament_id: str,
        principal_id: str,
        action: str,
        organizer_only: bool = False
    ) -> Tournament:
        tournament = self.require_tournament(tournament_id)

        if organizer_only:
            self.guard.require_organizer(tournament_id, principal_id)
        else:
            self.guard.require_organizer_or_staff(tournament_id, principal_id)

        sm = TournamentStateMachine.from_state_string(tournament.status)
        old_state = sm.state
        new_state = sm.transition(action)

        applied = conditional_update(
            Tournament,
            {'tournament_id': tournament_id, 'status': old_state.value},
            {'status': new_state.value}
        )
        if not applied:
            raise InvalidTransition(
                old_state.value, new_state.value,
                'Tournament status changed concurrently; retry with the current status.'
            )

        logger.info(f"Tournament {tournament_id}: {old_state.value} -> {new_state.value} ({action} by {principal_id})")
        self.publisher.publish(state_changed_event(
            EventType.TOURNAMENT_STATE_CHANGED, tournament_id, tournament_id,
            old_state.value, new_state.value
        ))
        return self.require_tournament(tournament_id)

    # ==================== Staff ====================

    def add_staff(self, tournament_id: str, staff_id: str, principal_id: str) -> Tournament:
        tournament = self.require_tournament(tournament_id)
        self.guard.require_organizer(
            tournament_id, principal_id, 'Only the tournament organizer can add staff.'
        )

        if not staff_id:
            raise ValidationFailed('staff_id is required.')
        if staff_id == tournament.created_by:
            raise Conflict('Tournament organizer cannot be added as staff.')
        if staff_id in tournament.staff_ids:
            raise Conflict('User is already staff for this tournament.')

        db.session.add(TournamentStaff(tournament_id=tournament_id, staff_id=staff_id))
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise Conflict('User is already staff for this tournament.')

        logger.info(f"Staff {staff_id} added to tournament {tournament_id}")
        self.publisher.publish(Event(
            type=EventType.STAFF_CHANGED,
            tournament_id=tournament_id,
            data={'added': staff_id}
        ))
        return self.require_tournament(tournament_id)

    def remove_staff(self, tournament_id: str, staff_id: str, principal_id: str) -> Tournament:
        self.require_tournament(tournament_id)
        self.guard.require_organizer(
            tournament_id, principal_id, 'Only the tournament organizer can remove staff.'
        )

        membership = TournamentStaff.query.filter_by(tournament_id=tournament_id, staff_id=staff_id).first()
        if not membership:
            raise NotFound('User is not staff for this tournament.')

        db.session.delete(membership)
        db.session.commit()

        logger.info(f"Staff {staff_id} removed from tournament {tournament_id}")
        self.publisher.publish(Event(
            type=EventType.STAFF_CHANGED,
            tournament_id=tournament_id,
            data={'removed': staff_id}
        ))
        return self.require_tournament(tournament_id)
