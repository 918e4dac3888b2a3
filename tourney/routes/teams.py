from flask import Blueprint, request, jsonify, current_app
from flask_login import login_required, current_user

bp = Blueprint('teams', __name__, url_prefix='/api/v1')


@bp.route('/tournaments/<tournament_id>/teams', methods=['GET'])
def list_teams(tournament_id: str):
    """List teams in a tournament."""
    teams = current_app.teams.list_by_tournament(tournament_id)
    return jsonify({
        'teams': [t.to_dict() for t in teams],
        'count': len(teams)
    })


@bp.route('/tournaments/<tournament_id>/teams', methods=['POST'])
@login_required
def create_team(tournament_id: str):
    data = request.get_json(silent=True) or {}
    owner = data.get('owner') or {}

    team = current_app.teams.create_team(
        tournament_id,
        current_user.id,
        name=data.get('name'),
        owner_name=owner.get('name'),
        owner_phone=owner.get('phone'),
        initial_budget=data.get('initial_budget')
    )
    return jsonify(team.to_dict()), 201


@bp.route('/teams/<team_id>', methods=['GET'])
def get_team(team_id: str):
    return jsonify(current_app.teams.require_team(team_id).to_dict())


@bp.route('/teams/<team_id>', methods=['PATCH'])
@login_required
def update_team(team_id: str):
    data = request.get_json(silent=True) or {}
    team = current_app.teams.update_team(team_id, current_user.id, **data)
    return jsonify(team.to_dict())


@bp.route('/teams/<team_id>', methods=['DELETE'])
@login_required
def delete_team(team_id: str):
    current_app.teams.delete_team(team_id, current_user.id)
    return jsonify({'message': 'Team deleted'})


@bp.route('/teams/<team_id>/budget', methods=['PUT'])
@login_required
def update_budget(team_id: str):
    data = request.get_json(silent=True) or {}
    team = current_app.teams.update_budget(team_id, data.get('budget'), current_user.id)
    return jsonify(team.to_dict())


@bp.route('/teams/<team_id>/budget/reset', methods=['POST'])
@login_required
def reset_budget(team_id: str):
    team = current_app.teams.reset_budget(team_id, current_user.id)
    return jsonify(team.to_dict())


@bp.route('/teams/<team_id>/roster', methods=['GET'])
def team_roster(team_id: str):
    roster = current_app.registrations.team_roster(team_id)
    return jsonify({
        'team': roster['team'].to_dict(),
        'players': [r.to_dict() for r in roster['players']],
        'total_players': roster['total_players']
    })
