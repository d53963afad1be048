"""Timetable API endpoints."""
from flask import Blueprint, request, g
from flask_jwt_extended import jwt_required
from attendance_engine.engine import get_engine
from attendance_engine.utils.decorators import authenticated, faculty_required
from attendance_engine.utils.helpers import success_response, error_response
from attendance_engine.utils.validators import Validator

timetable_bp = Blueprint('timetable', __name__)


def _entries_for(user):
    timetable = get_engine().timetable
    if user.is_faculty:
        return timetable.entries_for(user.id)
    return timetable.entries_for_department(user.department)


@timetable_bp.route('', methods=['GET'])
@jwt_required()
@authenticated
def list_entries():
    """Faculty see their own slots; students see their department's."""
    return success_response(data=[e.to_dict() for e in _entries_for(g.current_user)])


@timetable_bp.route('', methods=['POST'])
@jwt_required()
@faculty_required
def add_entry():
    """Add a weekly slot."""
    data = Validator.require(
        request.get_json(silent=True),
        ['subject', 'day', 'start_time', 'end_time']
    )
    entry = get_engine().timetable.add_entry(
        g.current_user.id,
        data['subject'],
        data['day'],
        data['start_time'],
        data['end_time']
    )
    return success_response(data=entry.to_dict(), message="Timetable entry added", status_code=201)


@timetable_bp.route('/<entry_id>', methods=['DELETE'])
@jwt_required()
@faculty_required
def delete_entry(entry_id):
    """Remove one of the instructor's slots."""
    if not get_engine().timetable.delete_entry(g.current_user.id, entry_id):
        return error_response("Timetable entry not found", 404)
    return success_response(message="Timetable entry deleted")


@timetable_bp.route('/status', methods=['GET'])
@jwt_required()
@authenticated
def status():
    """The class running now and the next one today."""
    entries = _entries_for(g.current_user)
    return success_response(data=get_engine().timetable.schedule_status(entries))
