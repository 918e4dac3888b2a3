from flask import Blueprint, request, jsonify, current_app
from flask_login import login_required, current_user

bp = Blueprint('registrations', __name__, url_prefix='/api/v1')


# ==================== Player actions ====================

@bp.route('/registrations', methods=['POST'])
@login_required
def register():
    data = request.get_json(silent=True) or {}
    profile = data.get('profile') or {}

    registration = current_app.registrations.register(
        player_id=current_user.id,
        tournament_id=data.get('tournament_id'),
        category_id=data.get('category_id'),
        player_name=profile.get('name'),
        age=profile.get('age'),
        gender=profile.get('gender'),
        phone=profile.get('phone'),
        skill_level=profile.get('skill_level'),
        base_price=data.get('base_price')
    )
    return jsonify(registration.to_dict()), 201


@bp.route('/registrations/mine', methods=['GET'])
@login_required
def my_registrations():
    registrations = current_app.registrations.list_for_player(current_user.id)
    return jsonify({'registrations': [r.to_dict() for r in registrations]})


@bp.route('/registrations/<registration_id>/withdraw', methods=['POST'])
@login_required
def withdraw(registration_id: str):
    registration = current_app.registrations.withdraw(registration_id, current_user.id)
    return jsonify(registration.to_dict())


# ==================== Organizer/staff actions ====================

@bp.route('/tournaments/<tournament_id>/registrations', methods=['GET'])
@login_required
def list_registrations(tournament_id: str):
    registrations = current_app.registrations.list_by_tournament(
        tournament_id,
        current_user.id,
        category_id=request.args.get('category_id'),
        status=request.args.get('status'),
        team_id=request.args.get('team_id')
    )
    return jsonify({
        'registrations': [r.to_dict() for r in registrations],
        'count': len(registrations)
    })


@bp.route('/categories/<category_id>/registrations', methods=['GET'])
def category_registrations(category_id: str):
    registrations = current_app.registrations.list_by_category(category_id)
    return jsonify({'registrations': [r.to_dict() for r in registrations]})


@bp.route('/categories/<category_id>/available', methods=['GET'])
@login_required
def available_for_auction(category_id: str):
    registrations = current_app.registrations.available_for_auction(category_id, current_user.id)
    return jsonify({'registrations': [r.to_dict() for r in registrations]})


@bp.route('/registrations/<registration_id>/approve', methods=['POST'])
@login_required
def approve(registration_id: str):
    registration = current_app.registrations.approve(registration_id, current_user.id)
    return jsonify(registration.to_dict())


@bp.route('/registrations/<registration_id>/reject', methods=['POST'])
@login_required
def reject(registration_id: str):
    registration = current_app.registrations.reject(registration_id, current_user.id)
    return jsonify(registration.to_dict())


@bp.route('/registrations/bulk-approve', methods=['POST'])
@login_required
def bulk_approve():
    data = request.get_json(silent=True) or {}
    results = current_app.registrations.bulk_approve(data.get('registration_ids') or [], current_user.id)
    return jsonify({'results': results})


# ==================== Team assignment ====================

@bp.route('/registrations/<registration_id>/auction', methods=['POST'])
@login_required
def assign_via_auction(registration_id: str):
    data = request.get_json(silent=True) or {}
    registration = current_app.coordinator.assign_via_auction(
        registration_id, data.get('team_id'), data.get('sold_price'), current_user.id
    )
    return jsonify(registration.to_dict())


@bp.route('/registrations/<registration_id>/manual-assign', methods=['POST'])
@login_required
def manual_assign(registration_id: str):
    data = request.get_json(silent=True) or {}
    registration = current_app.coordinator.manual_assign(
        registration_id, data.get('team_id'), current_user.id
    )
    return jsonify(registration.to_dict())


@bp.route('/registrations/<registration_id>/unassign', methods=['POST'])
@login_required
def unassign(registration_id: str):
    registration = current_app.coordinator.unassign(registration_id, current_user.id)
    return jsonify(registration.to_dict())
