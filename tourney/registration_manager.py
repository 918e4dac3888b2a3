import logging
from typing import List, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from workflow.errors import WorkflowError, NotFound, Forbidden, Conflict, InvalidTransition, ValidationFailed
from workflow.events import Event, EventType, state_changed_event
from workflow.state_machine import RegistrationStateMachine, RegistrationStatus, TournamentStatus
from .authorization import AuthorizationGuard
from .event_publisher import EventPublisher
from .models import db, conditional_update, Registration, Category, Team, Tournament

logger = logging.getLogger(__name__)

SKILL_LEVELS = ('beginner', 'intermediate', 'advanced', 'professional')


class RegistrationManager:
    """
    Player registrations for a tournament category.

    Players register and withdraw; organizers and staff approve or reject.
    Team assignment is handled by the AssignmentCoordinator.
    """

    def __init__(self, guard: AuthorizationGuard = None, publisher: EventPublisher = None):
        self.guard = guard or AuthorizationGuard()
        self.publisher = publisher or EventPublisher()

    # ==================== Player actions ====================

    def register(
        self,
        player_id: str,
        tournament_id: str,
        category_id: str,
        player_name: str,
        age: int = None,
        gender: str = None,
        phone: str = None,
        skill_level: str = None,
        base_price: int = None
    ) -> Registration:
        tournament = Tournament.query.filter_by(tournament_id=tournament_id, is_active=True).first()
        if not tournament:
            raise NotFound('Tournament not found.')
        if tournament.status != TournamentStatus.REGISTRATION_OPEN.value:
            raise InvalidTransition(tournament.status, None, 'Tournament is not open for registration.')

        category = Category.query.filter_by(category_id=category_id, is_active=True).first()
        if not category or category.tournament_id != tournament_id:
            raise NotFound('Category not found in this tournament.')

        if not (player_name or '').strip():
            raise ValidationFailed('Player name is required.')
        if skill_level is not None and skill_level not in SKILL_LEVELS:
            raise ValidationFailed(f"skill_level must be one of {', '.join(SKILL_LEVELS)}.")
        if base_price is None:
            base_price = current_app.config.get('DEFAULT_BASE_PRICE', 1000)
        if not isinstance(base_price, int) or isinstance(base_price, bool) or base_price < 0:
            raise ValidationFailed('base_price must be a non-negative integer.')

        if self._exists(player_id, tournament_id, category_id):
            raise Conflict('You are already registered for this category.')

        registration = Registration(
            player_id=player_id,
            tournament_id=tournament_id,
            category_id=category_id,
            player_name=player_name.strip(),
            age=age,
            gender=gender,
            phone=phone,
            skill_level=skill_level,
            status=RegistrationStatus.PENDING.value,
            base_price=base_price
        )
        db.session.add(registration)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise Conflict('You are already registered for this category.')

        logger.info(f"Player {player_id} registered for category {category_id} ({registration.registration_id})")
        self.publisher.publish(Event(
            type=EventType.REGISTRATION_CREATED,
            tournament_id=tournament_id,
            data={'registration_id': registration.registration_id, 'category_id': category_id}
        ))
        return registration

    def _exists(self, player_id: str, tournament_id: str, category_id: str) -> bool:
        return Registration.query.filter_by(
            player_id=player_id,
            tournament_id=tournament_id,
            category_id=category_id,
            is_active=True
        ).first() is not None

    def withdraw(self, registration_id: str, player_id: str) -> Registration:
        registration = self.require_registration(registration_id)
        if registration.player_id != player_id:
            raise Forbidden('You can only withdraw your own registration.')
        if RegistrationStateMachine.from_state_string(registration.status).holds_team:
            raise InvalidTransition(
                registration.status, RegistrationStatus.WITHDRAWN.value,
                'Cannot withdraw after being assigned to a team.'
            )
        return self._transition(registration, 'withdraw', player_id)

    def list_for_player(self, player_id: str) -> List[Registration]:
        return Registration.query.filter_by(player_id=player_id, is_active=True).order_by(
            Registration.created_at.desc(), Registration.id.desc()
        ).all()

    # ==================== Organizer/staff actions ====================

    def approve(self, registration_id: str, principal_id: str) -> Registration:
        registration = self._authorized(registration_id, principal_id)
        return self._transition(registration, 'approve', principal_id)

    def reject(self, registration_id: str, principal_id: str) -> Registration:
        registration = self._authorized(registration_id, principal_id)
        return self._transition(registration, 'reject', principal_id)

    def bulk_approve(self, registration_ids: List[str], principal_id: str) -> List[dict]:
        """Approve each registration independently and report per-id outcomes."""
        results = []
        for registration_id in registration_ids:
            try:
                registration = self.approve(registration_id, principal_id)
                results.append({'registration_id': registration_id, 'status': registration.status})
            except WorkflowError as e:
                results.append({'registration_id': registration_id, 'error': e.code, 'message': e.message})
        return results

    def list_by_tournament(
        self,
        tournament_id: str,
        principal_id: str,
        category_id: str = None,
        status: str = None,
        team_id: str = None
    ) -> List[Registration]:
        if not Tournament.query.filter_by(tournament_id=tournament_id, is_active=True).first():
            raise NotFound('Tournament not found.')
        self.guard.require_organizer_or_staff(
            tournament_id, principal_id, 'You are not authorized to view registrations.'
        )

        query = Registration.query.filter_by(tournament_id=tournament_id, is_active=True)
        if category_id:
            query = query.filter_by(category_id=category_id)
        if status:
            query = query.filter_by(status=status)
        if team_id:
            query = query.filter_by(team_id=team_id)
        return query.order_by(Registration.created_at.desc(), Registration.id.desc()).all()

    def list_by_category(self, category_id: str) -> List[Registration]:
        if not Category.query.filter_by(category_id=category_id, is_active=True).first():
            raise NotFound('Category not found.')
        return Registration.query.filter_by(category_id=category_id, is_active=True).order_by(
            Registration.player_name
        ).all()

    def available_for_auction(self, category_id: str, principal_id: str) -> List[Registration]:
        """Approved players in the category that no team holds yet."""
        category = Category.query.filter_by(category_id=category_id, is_active=True).first()
        if not category:
            raise NotFound('Category not found.')
        self.guard.require_organizer_or_staff(
            category.tournament_id, principal_id, 'You are not authorized to view the auction pool.'
        )
        return Registration.query.filter(
            Registration.category_id == category_id,
            Registration.status == RegistrationStatus.APPROVED.value,
            Registration.team_id.is_(None),
            Registration.is_active.is_(True)
        ).order_by(Registration.player_name).all()

    def team_roster(self, team_id: str) -> dict:
        team = Team.query.filter_by(team_id=team_id, is_active=True).first()
        if not team:
            raise NotFound('Team not found.')
        players = Registration.query.filter_by(team_id=team_id, is_active=True).order_by(
            Registration.player_name
        ).all()
        return {
            'team': team,
            'players': players,
            'total_players': len(players),
        }

    # ==================== Helpers ====================

    def get_registration(self, registration_id: str) -> Optional[Registration]:
        return Registration.query.filter_by(registration_id=registration_id, is_active=True).first()

    def require_registration(self, registration_id: str) -> Registration:
        registration = self.get_registration(registration_id)
        if not registration:
            raise NotFound('Registration not found.')
        return registration

    def _authorized(self, registration_id: str, principal_id: str) -> Registration:
        registration = self.require_registration(registration_id)
        self.guard.require_organizer_or_staff(registration.tournament_id, principal_id)
        return registration

    def _transition(self, registration: Registration, action: str, principal_id: str) -> Registration:
        registration_id = registration.registration_id
        tournament_id = registration.tournament_id

        sm = RegistrationStateMachine.from_state_string(registration.status)
        old_state = sm.state
        new_state = sm.transition(action)

        applied = conditional_update(
            Registration,
            {'registration_id': registration_id, 'status': old_state.value},
            {'status': new_state.value}
        )
        if not applied:
            raise InvalidTransition(
                old_state.value, new_state.value,
                'Registration status changed concurrently; retry with the current status.'
            )

        logger.info(f"Registration {registration_id}: {old_state.value} -> {new_state.value} ({action} by {principal_id})")
        self.publisher.publish(state_changed_event(
            EventType.REGISTRATION_STATE_CHANGED, tournament_id, registration_id,
            old_state.value, new_state.value
        ))
        return self.require_registration(registration_id)
