"""
Reporting API routes for the Lecturer Attendance Management System
Exports, analytics, stored and scheduled reports, bulk import
"""

from io import BytesIO

from flask import Blueprint, jsonify, request, send_file

from models.user import UserRole
from routes.auth import current_user, int_arg, json_body, login_required, permission_required
from services.import_service import ImportService
from services.reporting_service import ReportingService
from services.scheduled_report_service import ScheduledReportService
from utils.errors import ValidationError
from utils.permissions import Permission

reports_bp = Blueprint('reports', __name__)

XLSX_MIMETYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'


@reports_bp.route('/reports/export', methods=['GET'])
@permission_required(Permission.REPORTS_GENERATE, Permission.DATA_EXPORT)
def export_report():
    content, mimetype, filename = ReportingService.export(
        current_user(),
        export_format=request.args.get('format', 'csv'),
        tab=request.args.get('tab', 'overview'),
        range_name=request.args.get('range', 'month'),
        start_date=request.args.get('start_date'),
        end_date=request.args.get('end_date'),
        lecturer_id=int_arg('lecturer_id'),
    )
    return send_file(BytesIO(content), mimetype=mimetype, as_attachment=True, download_name=filename)


@reports_bp.route('/reports/claim-form', methods=['GET'])
@login_required(UserRole.ADMIN, UserRole.COORDINATOR, UserRole.LECTURER)
def claim_form():
    claim = ReportingService.claim_form(current_user(), int_arg('lecturer_id'),
                                        request.args.get('start_date'), request.args.get('end_date'))
    if request.args.get('format', 'json') == 'pdf':
        return send_file(BytesIO(ReportingService.claim_form_pdf(claim)), mimetype='application/pdf',
                         as_attachment=True, download_name=f"{claim['filename']}.pdf")
    return jsonify(claim)


@reports_bp.route('/analytics', methods=['GET'])
@permission_required(Permission.ANALYTICS_READ)
def analytics():
    return jsonify(ReportingService.get_analytics(current_user(), request.args.get('period', '30d')))


# Stored reports

@reports_bp.route('/reports', methods=['GET'])
@permission_required(Permission.REPORTS_GENERATE)
def list_reports():
    return jsonify(ReportingService.list_reports(current_user(), limit=int_arg('limit', 50),
                                                 offset=int_arg('offset', 0)))


@reports_bp.route('/reports', methods=['POST'])
@permission_required(Permission.REPORTS_GENERATE)
def generate_report():
    report = ReportingService.generate_report(current_user(), json_body())
    status = 201 if report.status == 'completed' else 500
    return jsonify({'report': report.to_dict()}), status


@reports_bp.route('/reports/<int:report_id>/download', methods=['GET'])
@permission_required(Permission.REPORTS_GENERATE)
def download_report(report_id):
    report, path, mimetype = ReportingService.get_report_file(current_user(), report_id)
    return send_file(path, mimetype=mimetype, as_attachment=True,
                     download_name=f"{report.title}.{report.format}")


# Scheduled reports

@reports_bp.route('/reports/scheduled', methods=['GET'])
@login_required(*UserRole.MANAGERS)
def list_scheduled():
    active = request.args.get('active')
    result = ScheduledReportService.list_scheduled(
        current_user(),
        is_active=None if active is None else active.lower() == 'true',
        report_type=request.args.get('type'),
        limit=int_arg('limit', 10),
        offset=int_arg('offset', 0),
    )
    return jsonify(result)


@reports_bp.route('/reports/scheduled', methods=['POST'])
@login_required(*UserRole.MANAGERS)
def create_scheduled():
    scheduled = ScheduledReportService.create_scheduled(current_user(), json_body())
    return jsonify({'message': 'Scheduled report created', 'scheduled_report': scheduled.to_dict()}), 201


@reports_bp.route('/reports/scheduled/<int:scheduled_id>', methods=['GET'])
@login_required(*UserRole.MANAGERS)
def get_scheduled(scheduled_id):
    scheduled = ScheduledReportService.get_scheduled(current_user(), scheduled_id)
    return jsonify({'scheduled_report': scheduled.to_dict()})


@reports_bp.route('/reports/scheduled/<int:scheduled_id>', methods=['PUT', 'PATCH'])
@login_required(*UserRole.MANAGERS)
def update_scheduled(scheduled_id):
    scheduled = ScheduledReportService.update_scheduled(current_user(), scheduled_id, json_body())
    return jsonify({'message': 'Scheduled report updated', 'scheduled_report': scheduled.to_dict()})


@reports_bp.route('/reports/scheduled/<int:scheduled_id>', methods=['DELETE'])
@login_required(*UserRole.MANAGERS)
def delete_scheduled(scheduled_id):
    ScheduledReportService.delete_scheduled(current_user(), scheduled_id)
    return jsonify({'message': 'Scheduled report deleted'})


@reports_bp.route('/reports/scheduled/<int:scheduled_id>/trigger', methods=['POST'])
@login_required(*UserRole.MANAGERS)
def trigger_scheduled(scheduled_id):
    report = ScheduledReportService.trigger(current_user(), scheduled_id)
    return jsonify({'message': 'Scheduled report triggered', 'report': report.to_dict()})


# Bulk import

@reports_bp.route('/import', methods=['POST'])
@permission_required(Permission.DATA_IMPORT)
def import_data():
    upload = request.files.get('file')
    if upload is None or not upload.filename:
        raise ValidationError("No file uploaded")
    job = ImportService.import_file(current_user(), request.form.get('type', ''), upload.stream,
                                    upload.filename)
    return jsonify({'job': job.to_dict()}), 200 if job.status != 'failed' else 400


@reports_bp.route('/import/template', methods=['GET'])
@permission_required(Permission.DATA_IMPORT)
def import_template():
    import_type = request.args.get('type', '')
    content = ImportService.template(import_type)
    return send_file(BytesIO(content), mimetype=XLSX_MIMETYPE, as_attachment=True,
                     download_name=f"{import_type}-import-template.xlsx")
