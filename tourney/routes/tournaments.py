from flask import Blueprint, request, jsonify, current_app
from flask_login import login_required, current_user

bp = Blueprint('tournaments', __name__, url_prefix='/api/v1')

LIFECYCLE_ACTIONS = {
    'open-registration': 'open_registration',
    'close-registration': 'close_registration',
    'start-auction': 'start_auction',
    'start': 'start_tournament',
    'complete': 'complete_tournament',
    'cancel': 'cancel_tournament',
}

CATEGORY_ACTIONS = {
    'open-registration': 'open_registration',
    'start-auction': 'start_auction',
    'configure-bracket': 'configure_bracket',
    'start': 'start_category',
    'complete': 'complete_category',
}


# ==================== Tournament CRUD ====================

@bp.route('/tournaments', methods=['GET'])
def list_tournaments():
    """List tournaments with optional filtering."""
    limit = request.args.get('limit', 20, type=int)
    offset = request.args.get('offset', 0, type=int)

    tournaments = current_app.registry.list_tournaments(
        status=request.args.get('status'),
        sport=request.args.get('sport'),
        limit=limit,
        offset=offset
    )
    return jsonify({
        'tournaments': [t.to_dict() for t in tournaments],
        'count': len(tournaments),
        'limit': limit,
        'offset': offset
    })


@bp.route('/tournaments', methods=['POST'])
@login_required
def create_tournament():
    data = request.get_json(silent=True) or {}
    settings = data.get('settings') or {}

    tournament = current_app.registry.create_tournament(
        created_by=current_user.id,
        name=data.get('name'),
        sport=data.get('sport', 'badminton'),
        description=data.get('description'),
        max_teams=settings.get('max_teams'),
        default_budget=settings.get('default_budget'),
        auction_type=settings.get('auction_type', 'manual'),
        allow_late_registration=settings.get('allow_late_registration', False)
    )
    return jsonify(tournament.to_dict()), 201


@bp.route('/tournaments/mine', methods=['GET'])
@login_required
def my_tournaments():
    tournaments = current_app.registry.list_for_principal(current_user.id)
    return jsonify({'tournaments': [t.to_dict() for t in tournaments]})


@bp.route('/tournaments/<tournament_id>', methods=['GET'])
def get_tournament(tournament_id: str):
    return jsonify(current_app.registry.require_tournament(tournament_id).to_dict())


@bp.route('/tournaments/<tournament_id>', methods=['PATCH'])
@login_required
def update_tournament(tournament_id: str):
    data = request.get_json(silent=True) or {}
    tournament = current_app.registry.update_tournament(tournament_id, current_user.id, **data)
    return jsonify(tournament.to_dict())


@bp.route('/tournaments/<tournament_id>', methods=['DELETE'])
@login_required
def delete_tournament(tournament_id: str):
    current_app.registry.delete_tournament(tournament_id, current_user.id)
    return jsonify({'message': 'Tournament deleted'})


# ==================== Tournament Lifecycle ====================

@bp.route('/tournaments/<tournament_id>/<action>', methods=['POST'])
@login_required
def tournament_lifecycle(tournament_id: str, action: str):
    method = LIFECYCLE_ACTIONS.get(action)
    if method is None:
        return jsonify({'error': 'NOT_FOUND', 'message': f"Unknown action '{action}'"}), 404

    tournament = getattr(current_app.registry, method)(tournament_id, current_user.id)
    return jsonify(tournament.to_dict())


# ==================== Staff ====================

@bp.route('/tournaments/<tournament_id>/staff', methods=['POST'])
@login_required
def add_staff(tournament_id: str):
    data = request.get_json(silent=True) or {}
    tournament = current_app.registry.add_staff(tournament_id, data.get('staff_id'), current_user.id)
    return jsonify(tournament.to_dict())


@bp.route('/tournaments/<tournament_id>/staff/<staff_id>', methods=['DELETE'])
@login_required
def remove_staff(tournament_id: str, staff_id: str):
    tournament = current_app.registry.remove_staff(tournament_id, staff_id, current_user.id)
    return jsonify(tournament.to_dict())


# ==================== Categories ====================

@bp.route('/tournaments/<tournament_id>/categories', methods=['GET'])
def list_categories(tournament_id: str):
    categories = current_app.categories.list_by_tournament(tournament_id)
    return jsonify({
        'categories': [c.to_dict() for c in categories],
        'count': len(categories)
    })


@bp.route('/tournaments/<tournament_id>/categories', methods=['POST'])
@login_required
def create_category(tournament_id: str):
    data = request.get_json(silent=True) or {}
    hybrid = data.get('hybrid_config') or {}

    category = current_app.categories.create_category(
        tournament_id,
        current_user.id,
        name=data.get('name'),
        gender=data.get('gender', 'mixed'),
        match_type=data.get('match_type', 'singles'),
        bracket_type=data.get('bracket_type', 'knockout'),
        league_size=hybrid.get('league_size'),
        top_n=hybrid.get('top_n')
    )
    return jsonify(category.to_dict()), 201


@bp.route('/categories/<category_id>', methods=['GET'])
def get_category(category_id: str):
    return jsonify(current_app.categories.require_category(category_id).to_dict())


@bp.route('/categories/<category_id>', methods=['PATCH'])
@login_required
def update_category(category_id: str):
    data = dict(request.get_json(silent=True) or {})
    hybrid = data.pop('hybrid_config', None) or {}
    data.update(hybrid)
    category = current_app.categories.update_category(category_id, current_user.id, **data)
    return jsonify(category.to_dict())


@bp.route('/categories/<category_id>', methods=['DELETE'])
@login_required
def delete_category(category_id: str):
    current_app.categories.delete_category(category_id, current_user.id)
    return jsonify({'message': 'Category deleted'})


@bp.route('/categories/<category_id>/<action>', methods=['POST'])
@login_required
def category_lifecycle(category_id: str, action: str):
    method = CATEGORY_ACTIONS.get(action)
    if method is None:
        return jsonify({'error': 'NOT_FOUND', 'message': f"Unknown action '{action}'"}), 404

    category = getattr(current_app.categories, method)(category_id, current_user.id)
    return jsonify(category.to_dict())
