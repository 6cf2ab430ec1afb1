from flask import jsonify, request
from flask_login import login_required

from errors import HTTP_STATUS
from models import DEFAULT_COLOR
from . import api_bp, habit_service


def respond(result, status=200):
    if result['success']:
        return jsonify(result), status
    return jsonify(result), HTTP_STATUS.get(result.get('kind'), 500)


def _payload():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


@api_bp.route('/habits', methods=['GET'])
@login_required
def list_habits():
    return respond(habit_service().get_habits())


@api_bp.route('/habits', methods=['POST'])
@login_required
def create_habit():
    data = _payload()
    return respond(habit_service().create_habit(data.get('name'), data.get('color') or DEFAULT_COLOR), 201)


@api_bp.route('/habits/<habit_id>', methods=['PATCH'])
@login_required
def update_habit(habit_id):
    data = _payload()
    fields = {k: data[k] for k in ('name', 'color') if k in data}
    return respond(habit_service().update_habit(habit_id, fields))


@api_bp.route('/habits/<habit_id>', methods=['DELETE'])
@login_required
def delete_habit(habit_id):
    return respond(habit_service().delete_habit(habit_id))


@api_bp.route('/habits/<habit_id>/toggle', methods=['POST'])
@login_required
def toggle_entry(habit_id):
    return respond(habit_service().toggle_entry(habit_id, _payload().get('date')))


@api_bp.route('/habits/<habit_id>/summary', methods=['GET'])
@login_required
def habit_summary(habit_id):
    return respond(habit_service().get_habit_summary(habit_id))


@api_bp.route('/entries', methods=['GET'])
@login_required
def entries_in_range():
    return respond(habit_service().get_range(request.args.get('start'), request.args.get('end')))


@api_bp.route('/summary', methods=['GET'])
@login_required
def year_summary():
    return respond(habit_service().get_year_summary())
