"""
Per-team budget ledger.

Every mutation is a single conditional UPDATE against the teams table, so
the precondition and the write cannot be separated by a concurrent request.
Two debits racing for the last of a budget leave exactly one winner.
"""
import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from workflow.errors import NotFound, InsufficientFunds, ValidationFailed
from workflow.events import budget_changed_event
from .event_publisher import EventPublisher
from .models import db, Team

logger = logging.getLogger(__name__)


def _check_amount(amount: int):
    if not isinstance(amount, int) or isinstance(amount, bool):
        raise ValidationFailed('Amount must be an integer.')
    if amount < 0:
        raise ValidationFailed('Amount cannot be negative.')


class Ledger:
    def __init__(self, publisher: Optional[EventPublisher] = None):
        self.publisher = publisher or EventPublisher()

    def balance(self, team_id: str) -> int:
        budget = db.session.query(Team.budget).filter_by(team_id=team_id).scalar()
        if budget is None:
            raise NotFound('Team not found.')
        return budget

    def debit(self, team_id: str, amount: int) -> int:
        """Reduce the budget by ``amount`` if it covers it; return the new balance."""
        _check_amount(amount)

        try:
            rows = db.session.query(Team).filter(
                Team.team_id == team_id,
                Team.is_active.is_(True),
                Team.budget >= amount
            ).update({Team.budget: Team.budget - amount}, synchronize_session=False)

            if rows == 0:
                db.session.rollback()
                exists = db.session.query(Team.budget).filter_by(team_id=team_id, is_active=True).scalar()
                if exists is None:
                    raise NotFound('Team not found.')
                raise InsufficientFunds(team_id, amount, exists)

            # the row stays locked until commit, so this is our own result
            balance, tournament_id = db.session.query(Team.budget, Team.tournament_id).filter_by(
                team_id=team_id
            ).one()
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise

        logger.info(f"Debited {amount} from team {team_id}, balance {balance}")
        self.publisher.publish(budget_changed_event(tournament_id, team_id, -amount, balance))
        return balance

    def credit(self, team_id: str, amount: int) -> int:
        """
        Increase the budget by ``amount``.

        No cap is applied: callers only credit back amounts previously
        debited for the same registration.
        """
        _check_amount(amount)
        return self._apply(team_id, {Team.budget: Team.budget + amount}, amount, 'Credited')

    def reset(self, team_id: str) -> int:
        """Restore the budget to the team's initial budget."""
        return self._apply(team_id, {Team.budget: Team.initial_budget}, None, 'Reset')

    def set_budget(self, team_id: str, amount: int) -> int:
        _check_amount(amount)
        return self._apply(team_id, {Team.budget: amount}, None, 'Set')

    def _apply(self, team_id: str, values: dict, delta: Optional[int], verb: str) -> int:
        try:
            previous = db.session.query(Team.budget).filter_by(team_id=team_id).scalar()
            rows = db.session.query(Team).filter(
                Team.team_id == team_id
            ).update(values, synchronize_session=False)

            if rows == 0:
                db.session.rollback()
                raise NotFound('Team not found.')

            balance, tournament_id = db.session.query(Team.budget, Team.tournament_id).filter_by(
                team_id=team_id
            ).one()
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise

        if delta is None:
            delta = balance - previous
        logger.info(f"{verb} budget of team {team_id} by {delta}, balance {balance}")
        self.publisher.publish(budget_changed_event(tournament_id, team_id, delta, balance))
        return balance
