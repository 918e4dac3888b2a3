from flask import jsonify
from flask_login import LoginManager, UserMixin

from workflow.errors import Forbidden
from .models import db, Tournament, TournamentStaff

login_manager = LoginManager()


class Principal(UserMixin):
    """An already-authenticated caller, identified only by its id."""

    def __init__(self, principal_id: str):
        self.id = principal_id

    def get_id(self):
        return self.id


@login_manager.user_loader
def load_principal(principal_id: str):
    return Principal(principal_id)


@login_manager.request_loader
def load_principal_from_request(request):
    # Authentication happens upstream; the gateway forwards the principal id.
    principal_id = request.headers.get('X-Principal-Id')
    if principal_id:
        return Principal(principal_id)
    return None


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({'error': 'UNAUTHENTICATED', 'message': 'Principal id is required'}), 401


class AuthorizationGuard:
    """
    Answers capability questions about a tournament:
    - is_organizer: the principal created the tournament
    - is_organizer_or_staff: organizer, or a delegated staff member
    """

    def is_organizer(self, tournament_id: str, principal_id: str) -> bool:
        if not principal_id:
            return False
        found = db.session.query(Tournament.id).filter_by(
            tournament_id=tournament_id,
            created_by=principal_id
        ).first()
        return found is not None

    def is_organizer_or_staff(self, tournament_id: str, principal_id: str) -> bool:
        if self.is_organizer(tournament_id, principal_id):
            return True
        found = db.session.query(TournamentStaff.id).filter_by(
            tournament_id=tournament_id,
            staff_id=principal_id
        ).first()
        return found is not None

    def require_organizer(self, tournament_id: str, principal_id: str, message: str = None):
        if not self.is_organizer(tournament_id, principal_id):
            raise Forbidden(message or 'Only the tournament organizer can perform this action.')

    def require_organizer_or_staff(self, tournament_id: str, principal_id: str, message: str = None):
        if not self.is_organizer_or_staff(tournament_id, principal_id):
            raise Forbidden(message) if message else Forbidden()
