"""
Team allocation of registered players.

Moving a player onto or off a team touches two records, the team budget
and the registration, with no transaction spanning both. Each operation is
therefore a Saga:

- assign_via_auction: debit the team, then claim the registration. If the
  claim fails the debit is credited back before the error surfaces.
- manual_assign / unassign: claim the registration first, then refund any
  auction price to the team that paid it. The claim is conditional on the
  full prior snapshot, so a refund is paid out at most once.

Claims are conditional updates keyed on the expected prior status, team and
price, which gives at most one winner among concurrent attempts.
"""
import logging
from datetime import datetime

from flask import current_app

from workflow.errors import NotFound, InvalidTransition, ValidationFailed
from workflow.events import EventType, assignment_event
from workflow.saga import Saga
from workflow.state_machine import RegistrationStateMachine, RegistrationStatus
from .authorization import AuthorizationGuard
from .event_publisher import EventPublisher
from .ledger import Ledger
from .models import conditional_update, Registration, Team

logger = logging.getLogger(__name__)


class AssignmentCoordinator:

    def __init__(
        self,
        guard: AuthorizationGuard = None,
        ledger: Ledger = None,
        publisher: EventPublisher = None
    ):
        self.guard = guard or AuthorizationGuard()
        self.publisher = publisher or EventPublisher()
        self.ledger = ledger or Ledger(self.publisher)

    def _saga(self, name: str) -> Saga:
        return Saga(
            name,
            max_attempts=current_app.config.get('COMPENSATION_MAX_ATTEMPTS', 0),
            backoff_seconds=current_app.config.get('COMPENSATION_BACKOFF_SECONDS', 0.5)
        )

    def _load(self, registration_id: str, principal_id: str) -> Registration:
        registration = Registration.query.filter_by(registration_id=registration_id, is_active=True).first()
        if not registration:
            raise NotFound('Registration not found.')
        self.guard.require_organizer_or_staff(registration.tournament_id, principal_id)
        return registration

    def _require_team_in_tournament(self, team_id: str, tournament_id: str) -> Team:
        team = Team.query.filter_by(team_id=team_id, is_active=True).first()
        if not team or team.tournament_id != tournament_id:
            raise NotFound('Team not found in this tournament.')
        return team

    def _claim(self, snapshot: dict, values: dict):
        """Write ``values`` only if the registration still matches ``snapshot``."""
        if not conditional_update(Registration, snapshot, values):
            raise InvalidTransition(
                snapshot['status'], values['status'],
                'Registration was modified concurrently; reload and retry.'
            )

    def assign_via_auction(
        self,
        registration_id: str,
        team_id: str,
        sold_price: int,
        principal_id: str
    ) -> Registration:
        registration = self._load(registration_id, principal_id)
        tournament_id = registration.tournament_id

        sm = RegistrationStateMachine.from_state_string(registration.status)
        if sm.state != RegistrationStatus.APPROVED:
            raise InvalidTransition(
                sm.state.value, RegistrationStatus.AUCTIONED.value,
                'Only approved players can be assigned to teams.'
            )
        new_state = sm.transition('auction')

        self._require_team_in_tournament(team_id, tournament_id)
        if not isinstance(sold_price, int) or isinstance(sold_price, bool) or sold_price < 0:
            raise ValidationFailed('sold_price must be a non-negative integer.')

        snapshot = {
            'registration_id': registration_id,
            'status': RegistrationStatus.APPROVED.value,
            'team_id': None,
        }
        values = {
            'status': new_state.value,
            'team_id': team_id,
            'sold_price': sold_price,
            'auctioned_at': datetime.utcnow(),
        }

        saga = self._saga('assign_via_auction')
        saga.step(
            'debit_team',
            lambda: self.ledger.debit(team_id, sold_price),
            compensation=lambda: self.ledger.credit(team_id, sold_price)
        )
        saga.step('claim_registration', lambda: self._claim(snapshot, values))
        saga.run()

        logger.info(f"Registration {registration_id} auctioned to team {team_id} for {sold_price}")
        self.publisher.publish(assignment_event(
            EventType.PLAYER_AUCTIONED, tournament_id, registration_id,
            team_id=team_id, sold_price=sold_price
        ))
        return Registration.query.filter_by(registration_id=registration_id).first()

    def manual_assign(self, registration_id: str, team_id: str, principal_id: str) -> Registration:
        registration = self._load(registration_id, principal_id)
        tournament_id = registration.tournament_id

        sm = RegistrationStateMachine.from_state_string(registration.status)
        if not sm.can_transition('assign'):
            raise InvalidTransition(
                sm.state.value, RegistrationStatus.ASSIGNED.value,
                'Player cannot be assigned in current status.'
            )
        new_state = sm.transition('assign')

        self._require_team_in_tournament(team_id, tournament_id)

        previous_team_id = registration.team_id
        refund = registration.sold_price if previous_team_id and registration.sold_price else 0

        snapshot = {
            'registration_id': registration_id,
            'status': registration.status,
            'team_id': previous_team_id,
            'sold_price': registration.sold_price,
        }
        values = {
            'status': new_state.value,
            'team_id': team_id,
            'sold_price': None,
            'auctioned_at': None,
        }

        saga = self._saga('manual_assign')
        saga.step('claim_registration', lambda: self._claim(snapshot, values))
        if refund:
            saga.step(
                'refund_previous_team',
                lambda: self.ledger.credit(previous_team_id, refund),
                durable=True
            )
        saga.run()

        logger.info(
            f"Registration {registration_id} manually assigned to team {team_id}"
            + (f" (refunded {refund} to {previous_team_id})" if refund else "")
        )
        self.publisher.publish(assignment_event(
            EventType.PLAYER_ASSIGNED, tournament_id, registration_id,
            team_id=team_id, previous_team_id=previous_team_id
        ))
        return Registration.query.filter_by(registration_id=registration_id).first()

    def unassign(self, registration_id: str, principal_id: str) -> Registration:
        registration = self._load(registration_id, principal_id)
        tournament_id = registration.tournament_id

        if not registration.team_id:
            raise InvalidTransition(
                registration.status, RegistrationStatus.APPROVED.value,
                'Player is not assigned to any team.'
            )

        sm = RegistrationStateMachine.from_state_string(registration.status)
        new_state = sm.transition('unassign')

        previous_team_id = registration.team_id
        refund = registration.sold_price or 0

        snapshot = {
            'registration_id': registration_id,
            'status': registration.status,
            'team_id': previous_team_id,
            'sold_price': registration.sold_price,
        }
        values = {
            'status': new_state.value,
            'team_id': None,
            'sold_price': None,
            'auctioned_at': None,
        }

        saga = self._saga('unassign')
        saga.step('claim_registration', lambda: self._claim(snapshot, values))
        if refund:
            saga.step(
                'refund_team',
                lambda: self.ledger.credit(previous_team_id, refund),
                durable=True
            )
        saga.run()

        logger.info(f"Registration {registration_id} unassigned from team {previous_team_id}")
        self.publisher.publish(assignment_event(
            EventType.PLAYER_UNASSIGNED, tournament_id, registration_id,
            previous_team_id=previous_team_id, sold_price=refund or None
        ))
        return Registration.query.filter_by(registration_id=registration_id).first()
