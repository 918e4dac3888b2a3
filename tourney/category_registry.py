import logging
from typing import List, Optional

from sqlalchemy import func

from workflow.errors import NotFound, Conflict, InvalidTransition, ValidationFailed
from workflow.events import EventType, state_changed_event
from workflow.state_machine import CategoryStateMachine, CategoryStatus
from .authorization import AuthorizationGuard
from .event_publisher import EventPublisher
from .models import db, conditional_update, Category, Tournament

logger = logging.getLogger(__name__)

GENDERS = ('male', 'female', 'mixed')
MATCH_TYPES = ('singles', 'doubles')
BRACKET_TYPES = ('league', 'knockout', 'hybrid')
UPDATABLE_FIELDS = ('name', 'gender', 'match_type', 'bracket_type', 'league_size', 'top_n')


def _validate_hybrid(bracket_type: str, league_size: Optional[int], top_n: Optional[int]):
    if bracket_type != 'hybrid':
        return
    if not league_size or not top_n:
        raise ValidationFailed('Hybrid config (league_size, top_n) is required for hybrid bracket type.')
    if league_size < 2 or top_n < 1:
        raise ValidationFailed('league_size must be at least 2 and top_n at least 1.')
    if top_n >= league_size:
        raise ValidationFailed('top_n must be less than league_size.')


def _validate_choices(data: dict):
    if 'name' in data and not (data['name'] or '').strip():
        raise ValidationFailed('Category name is required.')
    for field, choices in (('gender', GENDERS), ('match_type', MATCH_TYPES), ('bracket_type', BRACKET_TYPES)):
        if field in data and data[field] not in choices:
            raise ValidationFailed(f"{field} must be one of {', '.join(choices)}.")


class CategoryRegistry:
    """Categories partition a tournament's players; each has its own lifecycle."""

    def __init__(self, guard: AuthorizationGuard = None, publisher: EventPublisher = None):
        self.guard = guard or AuthorizationGuard()
        self.publisher = publisher or EventPublisher()

    def _name_taken(self, tournament_id: str, name: str, exclude_id: str = None) -> bool:
        query = Category.query.filter(
            Category.tournament_id == tournament_id,
            Category.is_active.is_(True),
            func.lower(Category.name) == name.strip().lower()
        )
        if exclude_id:
            query = query.filter(Category.category_id != exclude_id)
        return query.first() is not None

    def create_category(
        self,
        tournament_id: str,
        principal_id: str,
        name: str,
        gender: str = 'mixed',
        match_type: str = 'singles',
        bracket_type: str = 'knockout',
        league_size: int = None,
        top_n: int = None
    ) -> Category:
        tournament = Tournament.query.filter_by(tournament_id=tournament_id, is_active=True).first()
        if not tournament:
            raise NotFound('Tournament not found.')

        self.guard.require_organizer_or_staff(
            tournament_id, principal_id, 'You are not authorized to create categories for this tournament.'
        )

        _validate_choices({'name': name, 'gender': gender, 'match_type': match_type,
                           'bracket_type': bracket_type})
        if self._name_taken(tournament_id, name):
            raise Conflict('A category with this name already exists in the tournament.')
        _validate_hybrid(bracket_type, league_size, top_n)

        category = Category(
            tournament_id=tournament_id,
            name=name.strip(),
            gender=gender,
            match_type=match_type,
            bracket_type=bracket_type,
            league_size=league_size if bracket_type == 'hybrid' else None,
            top_n=top_n if bracket_type == 'hybrid' else None,
            status=CategoryStatus.SETUP.value
        )
        db.session.add(category)
        db.session.commit()

        logger.info(f"Category {category.category_id} created in tournament {tournament_id}")
        return category

    def get_category(self, category_id: str) -> Optional[Category]:
        return Category.query.filter_by(category_id=category_id, is_active=True).first()

    def require_category(self, category_id: str) -> Category:
        category = self.get_category(category_id)
        if not category:
            raise NotFound('Category not found.')
        return category

    def list_by_tournament(self, tournament_id: str) -> List[Category]:
        if not Tournament.query.filter_by(tournament_id=tournament_id, is_active=True).first():
            raise NotFound('Tournament not found.')
        return Category.query.filter_by(
            tournament_id=tournament_id, is_active=True
        ).order_by(Category.id).all()

    def update_category(self, category_id: str, principal_id: str, **changes) -> Category:
        category = self.require_category(category_id)
        self.guard.require_organizer_or_staff(
            category.tournament_id, principal_id, 'You are not authorized to update this category.'
        )

        unknown = set(changes) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValidationFailed(f"Fields cannot be updated: {', '.join(sorted(unknown))}")
        _validate_choices(changes)

        if 'name' in changes and self._name_taken(category.tournament_id, changes['name'], category_id):
            raise Conflict('A category with this name already exists in the tournament.')

        _validate_hybrid(
            changes.get('bracket_type', category.bracket_type),
            changes.get('league_size', category.league_size),
            changes.get('top_n', category.top_n)
        )

        for field, value in changes.items():
            setattr(category, field, value.strip() if field == 'name' else value)
        if category.bracket_type != 'hybrid':
            category.league_size = None
            category.top_n = None
        db.session.commit()
        return category

    def delete_category(self, category_id: str, principal_id: str):
        category = self.require_category(category_id)
        self.guard.require_organizer(
            category.tournament_id, principal_id, 'Only the tournament organizer can delete categories.'
        )
        category.is_active = False
        db.session.commit()
        logger.info(f"Category {category_id} deleted by {principal_id}")

    # ==================== Lifecycle ====================

    def open_registration(self, category_id: str, principal_id: str) -> Category:
        return self._transition(category_id, principal_id, 'open_registration')

    def start_auction(self, category_id: str, principal_id: str) -> Category:
        return self._transition(category_id, principal_id, 'start_auction')

    def configure_bracket(self, category_id: str, principal_id: str) -> Category:
        return self._transition(category_id, principal_id, 'configure_bracket')

    def start_category(self, category_id: str, principal_id: str) -> Category:
        return self._transition(category_id, principal_id, 'start_category')

    def complete_category(self, category_id: str, principal_id: str) -> Category:
        return self._transition(category_id, principal_id, 'complete_category')

    def _transition(self, category_id: str, principal_id: str, action: str) -> Category:
        category = self.require_category(category_id)
        tournament_id = category.tournament_id

        self.guard.require_organizer_or_staff(
            tournament_id, principal_id, 'You are not authorized to update this category.'
        )

        tournament_status = db.session.query(Tournament.status).filter_by(
            tournament_id=tournament_id
        ).scalar()

        sm = CategoryStateMachine.from_state_string(category.status)
        old_state = sm.state
        new_state = sm.transition(action, {'tournament_status': tournament_status})

        applied = conditional_update(
            Category,
            {'category_id': category_id, 'status': old_state.value},
            {'status': new_state.value}
        )
        if not applied:
            raise InvalidTransition(
                old_state.value, new_state.value,
                'Category status changed concurrently; retry with the current status.'
            )

        logger.info(f"Category {category_id}: {old_state.value} -> {new_state.value} ({action} by {principal_id})")
        self.publisher.publish(state_changed_event(
            EventType.CATEGORY_STATE_CHANGED, tournament_id, category_id,
            old_state.value, new_state.value
        ))
        return self.require_category(category_id)
