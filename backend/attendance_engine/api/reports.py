"""Reporting API endpoints: alerts, summaries, statistics and export."""
from datetime import datetime, timedelta
from flask import Blueprint, Response, current_app, request
from flask_jwt_extended import jwt_required
from attendance_engine.engine import get_engine
from attendance_engine.utils.decorators import admin_required, staff_required
from attendance_engine.utils.helpers import success_response, ms_from_iso, now_ms
from attendance_engine.utils.validators import ValidationError

reports_bp = Blueprint('reports', __name__)


@reports_bp.route('/alerts', methods=['GET'])
@jwt_required()
@staff_required
def alerts():
    """Students below the attendance thresholds, critical first."""
    warning = request.args.get('warning', current_app.config['ALERT_WARNING_THRESHOLD'], type=int)
    critical = request.args.get('critical', current_app.config['ALERT_CRITICAL_THRESHOLD'], type=int)
    if critical > warning:
        raise ValidationError("Critical threshold cannot exceed warning threshold")

    engine = get_engine()
    result = engine.alerts.generate_alerts(
        engine.all_users(),
        engine.registry.all_sessions(),
        engine.ledger.all_records(),
        warning_threshold=warning,
        critical_threshold=critical
    )

    return success_response(data={
        'alerts': [a.to_dict() for a in result],
        'critical': sum(1 for a in result if a.is_critical),
        'warning': sum(1 for a in result if not a.is_critical)
    })


@reports_bp.route('/summary', methods=['GET'])
@jwt_required()
@admin_required
def summary():
    """Per-student report for a date range (defaults to the last 30 days)."""
    try:
        end = ms_from_iso(request.args.get('end'))
        start = ms_from_iso(request.args.get('start'))
    except ValueError:
        raise ValidationError("Dates must be ISO formatted (YYYY-MM-DD)")

    if end is None:
        end = now_ms()
    else:
        # include the whole end day
        end += int(timedelta(days=1).total_seconds() * 1000)
    if start is None:
        start = end - int(timedelta(days=30).total_seconds() * 1000)

    engine = get_engine()
    reports = engine.reports.build_reports(
        engine.all_users(),
        engine.registry.all_sessions(),
        engine.ledger.all_records(),
        start,
        end,
        department=request.args.get('department')
    )

    return success_response(data={
        'start': start,
        'end': end,
        'reports': [r.to_dict() for r in reports]
    })


@reports_bp.route('/stats', methods=['GET'])
@jwt_required()
@admin_required
def stats():
    """Global counts for the dashboard."""
    engine = get_engine()
    return success_response(data=engine.reports.global_stats(
        engine.all_users(),
        engine.registry.all_sessions(),
        engine.ledger.all_records()
    ))


@reports_bp.route('/export', methods=['GET'])
@jwt_required()
@admin_required
def export():
    """Download every attendance record as CSV."""
    csv_data = get_engine().reports.export_records_csv(get_engine().ledger.all_records())
    filename = f"attendance_{datetime.utcnow().strftime('%Y%m%d')}.csv"

    return Response(
        csv_data,
        mimetype='text/csv',
        headers={'Content-Disposition': f'attachment; filename={filename}'}
    )
