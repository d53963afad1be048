"""Class session API endpoints."""
from flask import Blueprint, request, g
from flask_jwt_extended import jwt_required
from attendance_engine import limiter
from attendance_engine.engine import get_engine
from attendance_engine.services.qr_service import QRService
from attendance_engine.utils.decorators import faculty_required, rate_limit_key, staff_required
from attendance_engine.utils.helpers import success_response, error_response
from attendance_engine.utils.validators import Validator

sessions_bp = Blueprint('sessions', __name__)


def _qr_data(session):
    payload = session.current_qr_code
    return {
        'payload': payload,
        'qr_image': QRService.render_qr_image(payload) if payload else None,
        'issued_at': session.token_issued_at
    }


def _owned_session(session_id):
    session = get_engine().registry.get_session(session_id)
    if session is None:
        return None, error_response("Session not found", 404)
    if session.instructor_id != g.current_user.id:
        return None, error_response("You can only manage your own sessions", 403)
    return session, None


@sessions_bp.route('/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return success_response(message='Session service is running')


@sessions_bp.route('/start', methods=['POST'])
@jwt_required()
@faculty_required
@limiter.limit("30 per hour")
def start_session():
    """Start an attendance session anchored at the instructor's location."""
    data = Validator.require(request.get_json(silent=True), ['subject'])
    location = Validator.parse_location(data)

    engine = get_engine()
    session = engine.registry.start_session(g.current_user.id, data['subject'], location)
    session = engine.registry.get_session(session.id)

    return success_response(
        data={'session': session.to_public_dict(), 'qr': _qr_data(session)},
        message="Session started",
        status_code=201
    )


@sessions_bp.route('/<session_id>/end', methods=['POST'])
@jwt_required()
@faculty_required
def end_session(session_id):
    """End a session. Ending twice is harmless."""
    session, error = _owned_session(session_id)
    if error:
        return error

    session = get_engine().registry.end_session(session.id)
    return success_response(data=session.to_public_dict(), message="Session ended")


@sessions_bp.route('/active', methods=['GET'])
@jwt_required()
@faculty_required
@limiter.limit("30 per minute", key_func=rate_limit_key)
def active_session():
    """The instructor's active session with its current QR code."""
    session = get_engine().registry.active_session_for(g.current_user.id)
    if session is None:
        return success_response(data=None, message="No active session")

    return success_response(data={'session': session.to_public_dict(), 'qr': _qr_data(session)})


@sessions_bp.route('/<session_id>/qr', methods=['GET'])
@jwt_required()
@faculty_required
@limiter.limit("30 per minute", key_func=rate_limit_key)
def session_qr(session_id):
    """Current QR code of an active session."""
    session, error = _owned_session(session_id)
    if error:
        return error
    if not session.is_active:
        return error_response("Session has ended", 400)

    return success_response(data=_qr_data(session))


@sessions_bp.route('', methods=['GET'])
@jwt_required()
@staff_required
def list_sessions():
    """All sessions for admins, own sessions for faculty."""
    registry = get_engine().registry
    if g.current_user.is_admin:
        sessions = sorted(registry.all_sessions(), key=lambda s: s.start_time, reverse=True)
    else:
        sessions = registry.sessions_for(g.current_user.id)

    return success_response(data=[s.to_public_dict() for s in sessions])
