"""Attendance API endpoints with QR, face and location verification."""
from flask import Blueprint, request, g
from flask_jwt_extended import jwt_required
from attendance_engine import limiter
from attendance_engine.engine import get_engine
from attendance_engine.utils.decorators import (
    admin_required, authenticated, rate_limit_key, staff_required, student_required
)
from attendance_engine.utils.helpers import success_response, error_response, round_half_up
from attendance_engine.utils.validators import Validator

attendance_bp = Blueprint('attendance', __name__)


@attendance_bp.route('/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return success_response(message='Attendance service is running')


@attendance_bp.route('/validate-qr', methods=['POST'])
@jwt_required()
@authenticated
@limiter.limit("60 per minute", key_func=rate_limit_key)
def validate_qr():
    """Check a scanned payload without marking attendance."""
    data = Validator.require(request.get_json(silent=True), ['qr_data'])
    result = get_engine().qr_service.validate(data['qr_data'])

    if not result.valid:
        return error_response(f"Invalid QR code: {result.reason}", 400)

    return success_response(data=result.to_dict(), message="QR code is valid")


@attendance_bp.route('/checkin', methods=['POST'])
@jwt_required()
@student_required
@limiter.limit("20 per minute", key_func=rate_limit_key)
def check_in():
    """Verify QR, face and location, then mark the student present."""
    data = Validator.require(request.get_json(silent=True), ['qr_data', 'image'])
    location = Validator.parse_location(data, required=False)

    outcome = get_engine().verifier.verify(
        g.current_user,
        data['qr_data'],
        data['image'],
        location
    )

    return success_response(
        data=outcome.to_dict(),
        message="Attendance marked successfully",
        status_code=201
    )


@attendance_bp.route('/history', methods=['GET'])
@jwt_required()
@student_required
def history():
    """The student's attendance including derived absences."""
    records = get_engine().ledger.history_for(g.current_user)
    present = sum(1 for r in records if r.is_present)

    return success_response(data={
        'records': [r.to_dict() for r in records],
        'total': len(records),
        'present': present,
        'percentage': round_half_up(100 * present / len(records)) if records else 100
    })


@attendance_bp.route('/session/<session_id>', methods=['GET'])
@jwt_required()
@staff_required
def session_attendance(session_id):
    """Present records of one session."""
    engine = get_engine()
    session = engine.registry.get_session(session_id)
    if session is None:
        return error_response("Session not found", 404)
    if g.current_user.is_faculty and session.instructor_id != g.current_user.id:
        return error_response("You can only view your own sessions", 403)

    records = engine.ledger.records_for_session(session_id)
    return success_response(data=[r.to_dict() for r in records])


@attendance_bp.route('/manual', methods=['POST'])
@jwt_required()
@staff_required
def manual_attendance():
    """Mark a student present without device verification."""
    data = Validator.require(request.get_json(silent=True), ['student_id', 'subject'])
    engine = get_engine()

    student = engine.get_user(data['student_id'])
    if student is None or not student.is_student:
        return error_response("Student not found", 404)

    session_id = data.get('session_id')
    if session_id is not None:
        session = engine.registry.get_session(str(session_id))
        if session is None:
            return error_response("Session not found", 404)
        if session.subject != data['subject']:
            return error_response("Subject does not match the session", 400)
        session_id = session.id
    elif g.current_user.is_faculty:
        active = engine.registry.active_session_for(g.current_user.id)
        if active is not None and active.subject == data['subject']:
            session_id = active.id

    record = engine.ledger.mark_manual(student, data['subject'], session_id)
    return success_response(
        data=record.to_dict(),
        message=f"Marked {student.name} present for {data['subject']}",
        status_code=201
    )


@attendance_bp.route('/<record_id>', methods=['DELETE'])
@jwt_required()
@admin_required
def delete_attendance(record_id):
    """Delete an attendance record."""
    if not get_engine().ledger.delete_record(record_id):
        return error_response("Attendance record not found", 404)
    return success_response(message="Attendance record deleted")
