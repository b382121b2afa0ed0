"""
Reporting service for the Lecturer Attendance Management System
Attendance reports (CSV, PDF, Excel), chart analytics and stored report files
"""

import csv
import io
import json
import logging
import os
import re
from collections import Counter, OrderedDict, defaultdict
from datetime import datetime, timedelta
from io import BytesIO
from xml.sax.saxutils import escape as xml_escape

from flask import current_app, has_app_context
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import PageBreak, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from database import db, handle_db_error
from models.attendance import AttendanceMethod, AttendanceRecord, SupervisorLog
from models.report import Report
from models.schedule import DAY_NAMES, CourseSchedule, python_weekday_to_day_of_week
from models.user import Lecturer, UserRole
from services.attendance_service import AttendanceService
from services.excel_export_service import ExcelExportService
from services.schedule_service import lecturer_for
from utils.db_helpers import get_or_404, paginate
from utils.errors import NotFoundError, PermissionDeniedError, ValidationError
from utils.validators import parse_date

logger = logging.getLogger(__name__)

REPORT_TABS = {
    'overview': 'overview',
    'courses': 'courses',
    'by-course': 'courses',
    'lecturers': 'lecturers',
    'by-lecturer': 'lecturers',
    'trends': 'trends',
    'daily-trends': 'trends',
}
DATE_RANGES = ('week', 'month', 'semester', 'year')
EXPORT_FORMATS = ('csv', 'pdf', 'xlsx')
MIME_TYPES = {
    'csv': 'text/csv',
    'pdf': 'application/pdf',
    'xlsx': 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
}
ANALYTICS_PERIODS = {'7d': 7, '30d': 30, '3m': 90, '6m': 182, '1y': 365}
CLAIM_CANCEL_WINDOW = timedelta(hours=2)
CLAIM_COLUMNS = ['NO.', 'WEEK', 'DAY', 'PERIOD(TIME)', 'HOURS', 'STATUS/ REMARKS']

TAB_TITLES = {
    'overview': 'Attendance Overview',
    'courses': 'Attendance by Course',
    'lecturers': 'Attendance by Lecturer',
    'trends': 'Daily Attendance Trends',
}


def resolve_date_range(range_name='month', start_date=None, end_date=None, now=None):
    """
    Turn either explicit dates or a named range into (start, end).

    Explicit dates win; the end date is inclusive of its whole day.
    Named ranges end now: week is the last 7 days, month starts on the 1st,
    semester on Sep 1 (from September) or Jan 1, year on Jan 1.
    Unknown names fall back to month.
    """
    now = now or datetime.now()
    if start_date and end_date:
        start, end = parse_date(start_date), parse_date(end_date)
        if start is None or end is None:
            raise ValidationError("Invalid date format. Use YYYY-MM-DD")
        if end.hour == end.minute == end.second == 0:
            end = end + timedelta(days=1) - timedelta(microseconds=1)
        if start > end:
            raise ValidationError("Start date must be before end date")
        return start, end

    if range_name == 'week':
        start = now - timedelta(days=7)
    elif range_name == 'semester':
        start = datetime(now.year, 9 if now.month >= 9 else 1, 1)
    elif range_name == 'year':
        start = datetime(now.year, 1, 1)
    else:
        start = datetime(now.year, now.month, 1)
    return start, now


def _percent(part, whole):
    return round(part / whole * 100, 2) if whole else 0


def _slug(text):
    return re.sub(r'[^a-z0-9]+', '-', text.lower()).strip('-')


def _slot_hours(record):
    """Scheduled length of the slot in hours, or the measured session length"""
    schedule = record.course_schedule
    try:
        start = datetime.strptime(schedule.start_time, '%H:%M')
        end = datetime.strptime(schedule.end_time, '%H:%M')
    except (TypeError, ValueError):
        minutes = record.session_duration_minutes
        return round(minutes / 60, 1) if minutes else 0
    return round((end - start).total_seconds() / 3600, 1)


class ReportingService:
    """Service for generating reports"""

    @staticmethod
    def _records(user, start, end, lecturer_id=None):
        query = AttendanceService.scoped_query(user).filter(
            AttendanceRecord.timestamp >= start,
            AttendanceRecord.timestamp <= end,
        )
        if lecturer_id:
            query = query.filter(AttendanceRecord.lecturer_id == lecturer_id)
        return query.order_by(AttendanceRecord.timestamp.desc()).all()

    # Report tables

    @staticmethod
    def _overview_rows(records):
        rows = []
        for record in records:
            schedule = record.course_schedule
            classroom = schedule.classroom
            if record.method == AttendanceMethod.VIRTUAL:
                location = 'Virtual'
            else:
                location = classroom.name if classroom else 'Onsite'
                if record.gps_latitude is not None and record.gps_longitude is not None:
                    location += f" (GPS: {record.gps_latitude:.4f}, {record.gps_longitude:.4f})"
            check_in = record.session_start_time or record.timestamp
            rows.append({
                'Date': record.timestamp.strftime('%Y-%m-%d'),
                'Time': record.timestamp.strftime('%H:%M'),
                'Start Time': schedule.start_time,
                'End Time': schedule.end_time,
                'Lecturer': record.lecturer.name,
                'Course': f"{schedule.course.course_code} - {schedule.course.title}",
                'Class Group': schedule.class_group.name,
                'Classroom': (f"{classroom.name} ({classroom.building.name})"
                              if classroom and classroom.building else ''),
                'Method': record.method.title(),
                'Status': record.verification_status.title(),
                'Check In': check_in.strftime('%H:%M'),
                'Check Out': record.session_end_time.strftime('%H:%M') if record.session_end_time else '',
                'Location': location,
                'Remarks': record.remarks or '',
            })
        return rows

    @staticmethod
    def _course_rows(records):
        groups = OrderedDict()
        for record in records:
            schedule = record.course_schedule
            key = (schedule.course.course_code, schedule.course.title, schedule.class_group.name)
            groups.setdefault(key, []).append(record)

        rows = []
        for (code, title, class_group), items in sorted(groups.items()):
            verified = sum(1 for r in items if r.verification_status == 'verified')
            rows.append({
                'Course Code': code,
                'Course Title': title,
                'Class Group': class_group,
                'Sessions Recorded': len(items),
                'Verified': verified,
                'Verification Rate (%)': _percent(verified, len(items)),
            })
        return rows

    @staticmethod
    def _lecturer_rows(records):
        groups = OrderedDict()
        for record in records:
            groups.setdefault(record.lecturer, []).append(record)

        rows = []
        for lecturer, items in sorted(groups.items(), key=lambda item: item[0].name):
            statuses = Counter(r.verification_status for r in items)
            rows.append({
                'Lecturer': lecturer.name,
                'Employee ID': lecturer.employee_id,
                'Email': lecturer.user.email if lecturer.user else '',
                'Sessions Recorded': len(items),
                'Verified': statuses['verified'],
                'Disputed': statuses['disputed'],
                'Verification Rate (%)': _percent(statuses['verified'], len(items)),
            })
        return rows

    @staticmethod
    def _trend_rows(records):
        days = defaultdict(Counter)
        for record in records:
            days[record.timestamp.strftime('%Y-%m-%d')][record.verification_status] += 1

        return [{
            'Date': day,
            'Sessions': sum(counts.values()),
            'Verified': counts['verified'],
            'Disputed': counts['disputed'],
            'Pending': counts['pending'],
        } for day, counts in sorted(days.items())]

    @staticmethod
    def build_report(user, tab='overview', range_name='month', start_date=None, end_date=None,
                     lecturer_id=None, now=None):
        """Assemble a report table for one tab over a date range"""
        tab_key = REPORT_TABS.get(tab or 'overview')
        if tab_key is None:
            raise ValidationError(f"Unknown report tab: {tab}")

        start, end = resolve_date_range(range_name, start_date, end_date, now=now)
        lecturer = get_or_404(Lecturer, lecturer_id, 'Lecturer') if lecturer_id else None
        records = ReportingService._records(user, start, end, lecturer.id if lecturer else None)

        builders = {
            'overview': ReportingService._overview_rows,
            'courses': ReportingService._course_rows,
            'lecturers': ReportingService._lecturer_rows,
            'trends': ReportingService._trend_rows,
        }
        rows = builders[tab_key](records)
        columns = list(rows[0].keys()) if rows else []

        filename = f"attendance-report-{tab_key}-{range_name or 'custom'}"
        if lecturer:
            filename += f"-{_slug(lecturer.name)}"

        return {
            'title': TAB_TITLES[tab_key],
            'tab': tab_key,
            'range': range_name,
            'start_date': start.strftime('%Y-%m-%d'),
            'end_date': end.strftime('%Y-%m-%d'),
            'generated_at': (now or datetime.now()).strftime('%Y-%m-%d %H:%M'),
            'lecturer': lecturer.name if lecturer else None,
            'columns': columns,
            'rows': rows,
            'percent_columns': ('Verification Rate (%)',),
            'filename': filename,
        }

    # Renderers

    @staticmethod
    def to_csv(report):
        if not report['rows']:
            return 'No data available'
        output = io.StringIO()
        writer = csv.DictWriter(output, fieldnames=report['columns'])
        writer.writeheader()
        writer.writerows(report['rows'])
        return output.getvalue()

    @staticmethod
    def _cell(value, style):
        return Paragraph(xml_escape('' if value is None else str(value)), style)

    @staticmethod
    def to_pdf(report):
        """Render the report table with reportlab and return bytes"""
        wide = len(report['columns']) > 7
        pagesize = landscape(A4) if wide else A4
        buffer = BytesIO()
        doc = SimpleDocTemplate(buffer, pagesize=pagesize, leftMargin=12*mm, rightMargin=12*mm,
                                topMargin=15*mm, bottomMargin=15*mm)
        elements = []
        styles = getSampleStyleSheet()

        institution = (current_app.config.get('INSTITUTION_NAME') if has_app_context() else None) \
            or 'Attendance Management System'
        header_title = ParagraphStyle('HeaderTitle', parent=styles['Title'], alignment=0, fontSize=16, leading=19)
        body = ParagraphStyle('Cell', parent=styles['Normal'], fontSize=7 if wide else 8, leading=9 if wide else 10)
        head = ParagraphStyle('HeadCell', parent=body, textColor=colors.white, fontName='Helvetica-Bold')

        elements.append(Paragraph(xml_escape(institution), header_title))
        elements.append(Paragraph(report['title'], styles['Heading2']))

        meta_rows = [
            ['Period', f"{report['start_date']} - {report['end_date']}"],
            ['Generated', report['generated_at']],
            ['Total Records', str(len(report['rows']))],
        ]
        if report.get('lecturer'):
            meta_rows.append(['Lecturer', report['lecturer']])
        meta_table = Table(meta_rows, colWidths=[40*mm, 100*mm], hAlign='LEFT')
        meta_table.setStyle(TableStyle([
            ('BOX', (0, 0), (-1, -1), 0.5, colors.grey),
            ('INNERGRID', (0, 0), (-1, -1), 0.25, colors.lightgrey),
        ]))
        elements.extend([Spacer(1, 6), meta_table, Spacer(1, 10)])

        if report['rows']:
            data = [[ReportingService._cell(col, head) for col in report['columns']]]
            for row in report['rows']:
                data.append([ReportingService._cell(row.get(col), body) for col in report['columns']])
            page_width = pagesize[0] - 24*mm
            col_width = page_width / len(report['columns'])
            table = Table(data, repeatRows=1, colWidths=[col_width] * len(report['columns']))
            table.setStyle(TableStyle([
                ('BOX', (0, 0), (-1, -1), 0.5, colors.grey),
                ('INNERGRID', (0, 0), (-1, -1), 0.25, colors.lightgrey),
                ('BACKGROUND', (0, 0), (-1, 0), colors.black),
                ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.whitesmoke]),
                ('VALIGN', (0, 0), (-1, -1), 'TOP'),
            ]))
            elements.append(table)
        else:
            elements.append(Paragraph('No data available for the selected criteria.', styles['Normal']))

        # Sign-off blocks
        elements.append(Spacer(1, 30))
        signatures = Table([
            ['Approved by Dean of Graduate School', 'Verified by The School Office'],
            ['', ''],
            ['Signature and Date', 'Signature and Date'],
        ], colWidths=[90*mm, 90*mm], rowHeights=[14, 24, 12], hAlign='LEFT')
        signatures.setStyle(TableStyle([
            ('LINEBELOW', (0, 1), (0, 1), 0.75, colors.black),
            ('LINEBELOW', (1, 1), (1, 1), 0.75, colors.black),
            ('FONTSIZE', (0, 2), (-1, 2), 8),
            ('RIGHTPADDING', (0, 0), (-1, -1), 12),
        ]))
        elements.append(signatures)

        doc.build(elements)
        pdf_bytes = buffer.getvalue()
        buffer.close()
        return pdf_bytes

    @staticmethod
    def render(report, export_format):
        """Return (bytes, mimetype, filename) for a built report"""
        if export_format not in EXPORT_FORMATS:
            raise ValidationError(f"Invalid format. Must be one of: {', '.join(EXPORT_FORMATS)}")
        if export_format == 'csv':
            content = ReportingService.to_csv(report).encode('utf-8')
        elif export_format == 'pdf':
            content = ReportingService.to_pdf(report)
        else:
            content = ExcelExportService.export_report(report)
        return content, MIME_TYPES[export_format], f"{report['filename']}.{export_format}"

    @staticmethod
    def export(user, export_format='csv', tab='overview', range_name='month', start_date=None,
               end_date=None, lecturer_id=None, now=None):
        if export_format not in EXPORT_FORMATS:
            raise ValidationError(f"Invalid format. Must be one of: {', '.join(EXPORT_FORMATS)}")
        report = ReportingService.build_report(user, tab, range_name, start_date, end_date,
                                               lecturer_id, now=now)
        logger.info("User %s exported %s report (%s, %d rows)", user.id, report['tab'],
                    export_format, len(report['rows']))
        return ReportingService.render(report, export_format)

    # Claim form

    @staticmethod
    def _cancelled(record, cancelled_logs):
        """A supervisor logged the slot as cancelled near the time attendance was taken"""
        if record.supervisor_verified:
            return False
        return any(log.course_schedule_id == record.course_schedule_id
                   and log.check_in_time.date() == record.timestamp.date()
                   and abs(log.check_in_time - record.timestamp) < CLAIM_CANCEL_WINDOW
                   for log in cancelled_logs)

    @staticmethod
    def claim_form(user, lecturer_id, start_date, end_date, now=None):
        """
        Teaching claim for one lecturer over a period, grouped by course.

        Each course lists the sessions taught (numbered, with the week
        counted from the start date), per-week session and hour totals and
        the course total. A session is left out when a supervisor logged
        its slot as cancelled on the same day within two hours of the
        record, unless a supervisor verified the record itself.

        Admins and coordinators may claim for any lecturer; lecturers only
        for themselves.
        """
        if user.role == UserRole.LECTURER:
            own_id = lecturer_for(user).id
            lecturer_id = lecturer_id or own_id
            if lecturer_id != own_id:
                raise PermissionDeniedError("You can only view your own claim form")
        elif user.role not in UserRole.MANAGERS:
            raise PermissionDeniedError("Insufficient permissions")
        if not lecturer_id or not start_date or not end_date:
            raise ValidationError("lecturer_id, start_date and end_date are required")

        start, end = resolve_date_range(None, start_date, end_date)
        lecturer = get_or_404(Lecturer, lecturer_id, 'Lecturer')

        records = (AttendanceRecord.query
                   .filter(AttendanceRecord.lecturer_id == lecturer.id,
                           AttendanceRecord.timestamp >= start,
                           AttendanceRecord.timestamp <= end)
                   .order_by(AttendanceRecord.timestamp).all())
        cancelled_logs = (SupervisorLog.query
                          .join(CourseSchedule, SupervisorLog.course_schedule_id == CourseSchedule.id)
                          .filter(CourseSchedule.lecturer_id == lecturer.id,
                                  SupervisorLog.status == 'cancelled',
                                  SupervisorLog.check_in_time >= start,
                                  SupervisorLog.check_in_time <= end)
                          .all())

        courses = OrderedDict()
        excluded = 0
        for record in records:
            if ReportingService._cancelled(record, cancelled_logs):
                excluded += 1
                continue

            schedule = record.course_schedule
            course = schedule.course
            if course.id not in courses:
                if course.semester_level:
                    level = f"LEVEL {course.semester_level}00"
                else:
                    level = course.programme.level if course.programme else 'N/A'
                courses[course.id] = {
                    'course_id': course.id,
                    'course_code': course.course_code,
                    'course_title': course.title,
                    'level': level,
                    'sessions': [],
                    'weeks': OrderedDict(),
                }
            claim = courses[course.id]

            week = f"WEEK {(record.timestamp.date() - start.date()).days // 7 + 1}"
            hours = _slot_hours(record)
            claim['sessions'].append({
                'no': len(claim['sessions']) + 1,
                'record_id': record.id,
                'week': week,
                'date': record.timestamp.strftime('%d/%m/%Y'),
                'day': DAY_NAMES[python_weekday_to_day_of_week(record.timestamp.weekday())],
                'period': f"{schedule.start_time}-{schedule.end_time}",
                'hours': hours,
                'status': 'PRESENT',
            })
            totals = claim['weeks'].setdefault(week, {'week': week, 'sessions': 0, 'hours': 0})
            totals['sessions'] += 1
            totals['hours'] = round(totals['hours'] + hours, 1)

        claims = list(courses.values())
        for claim in claims:
            claim['weeks'] = list(claim['weeks'].values())
            claim['total_sessions'] = len(claim['sessions'])
            claim['total_hours'] = round(sum(s['hours'] for s in claim['sessions']), 1)

        logger.info("User %s built claim form for lecturer %s (%d sessions, %d cancelled)",
                    user.id, lecturer.id, sum(c['total_sessions'] for c in claims), excluded)
        return {
            'lecturer': {
                'id': lecturer.id,
                'name': lecturer.name.upper(),
                'employee_id': lecturer.employee_id,
                'department': (lecturer.department or 'N/A').upper(),
            },
            'start_date': start.strftime('%Y-%m-%d'),
            'end_date': end.strftime('%Y-%m-%d'),
            'month': start.strftime('%B, %Y').upper(),
            'generated_at': (now or datetime.now()).strftime('%d/%m/%Y'),
            'claims': claims,
            'total_sessions': sum(c['total_sessions'] for c in claims),
            'total_hours': round(sum(c['total_hours'] for c in claims), 1),
            'cancelled_sessions': excluded,
            'filename': f"claim-form-{_slug(lecturer.name)}-{start.strftime('%Y-%m')}",
        }

    @staticmethod
    def claim_form_pdf(claim):
        """Render a claim form with reportlab: one page per course, with sign-off lines"""
        buffer = BytesIO()
        doc = SimpleDocTemplate(buffer, pagesize=A4, leftMargin=15*mm, rightMargin=15*mm,
                                topMargin=15*mm, bottomMargin=15*mm)
        styles = getSampleStyleSheet()
        heading = ParagraphStyle('ClaimHeading', parent=styles['Heading3'], alignment=1, spaceAfter=2)
        title = ParagraphStyle('ClaimTitle', parent=heading, fontSize=12)
        info = ParagraphStyle('ClaimInfo', parent=styles['Normal'], fontName='Helvetica-Bold', fontSize=10)
        info_right = ParagraphStyle('ClaimInfoRight', parent=info, alignment=2)

        institution, officer = 'Attendance Management System', None
        if has_app_context():
            institution = current_app.config.get('INSTITUTION_NAME') or institution
            officer = current_app.config.get('CLAIM_RECEIVING_OFFICER')

        lecturer = claim['lecturer']
        elements = []
        for index, course in enumerate(claim['claims'] or [None]):
            if index:
                elements.append(PageBreak())
            elements.append(Paragraph(xml_escape(institution.upper()), heading))
            elements.append(Paragraph('<u>PART-TIME / FULL-TIME LECTURERS CLAIM FORM</u>', title))
            elements.append(Spacer(1, 6))

            info_rows = [(lecturer['name'], f"FACULTY: {lecturer['department']}")]
            if course:
                info_rows.append((f"COURSE: {course['course_title']} ({course['course_code']})", course['level']))
            info_rows.append((f"MONTH: {claim['month']}", ''))
            info_table = Table([[Paragraph(xml_escape(left), info), Paragraph(xml_escape(right), info_right)]
                                for left, right in info_rows], colWidths=[110*mm, 70*mm])
            info_table.setStyle(TableStyle([('LINEBELOW', (0, -1), (-1, -1), 0.5, colors.black)]))
            elements.extend([info_table, Spacer(1, 8)])

            if course is None:
                elements.append(Paragraph('No claimable sessions in the selected period.', styles['Normal']))
            else:
                data = [CLAIM_COLUMNS]
                for session in course['sessions']:
                    data.append([str(session['no']), session['week'], session['date'], session['period'],
                                 str(session['hours']), session['status']])
                data.append(['', '', '', 'TOTAL HOURS', str(course['total_hours']), ''])
                table = Table(data, repeatRows=1, colWidths=[14*mm, 22*mm, 26*mm, 34*mm, 20*mm, 64*mm])
                table.setStyle(TableStyle([
                    ('GRID', (0, 0), (-1, -1), 0.5, colors.black),
                    ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#f0f0f0')),
                    ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
                    ('FONTNAME', (0, -1), (-1, -1), 'Helvetica-Bold'),
                    ('FONTSIZE', (0, 0), (-1, -1), 9),
                    ('ALIGN', (0, 0), (4, -1), 'CENTER'),
                    ('ALIGN', (3, -1), (3, -1), 'RIGHT'),
                ]))
                elements.append(table)

            elements.append(Spacer(1, 24))
            signatures = Table([
                ['Name of Receiving Officer:', officer or ''],
                ['Signature of Receiving Officer:', ''],
                ['Date Received:', claim['generated_at']],
            ], colWidths=[60*mm, 120*mm], rowHeights=[20, 20, 20], hAlign='LEFT')
            signatures.setStyle(TableStyle([
                ('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'),
                ('LINEBELOW', (1, 1), (1, 1), 0.5, colors.black),
                ('VALIGN', (0, 0), (-1, -1), 'BOTTOM'),
            ]))
            elements.append(signatures)

        doc.build(elements)
        pdf_bytes = buffer.getvalue()
        buffer.close()
        return pdf_bytes

    # Analytics

    @staticmethod
    def get_analytics(user, period='30d', now=None):
        """Chart data over the last N days, scoped to what the user may see"""
        if period not in ANALYTICS_PERIODS:
            raise ValidationError(f"Invalid period. Must be one of: {', '.join(ANALYTICS_PERIODS)}")
        now = now or datetime.now()
        start = now - timedelta(days=ANALYTICS_PERIODS[period])
        records = ReportingService._records(user, start, now)

        statuses = Counter(r.verification_status for r in records)
        methods = Counter(r.method for r in records)
        total = len(records)
        onsite = [r for r in records if r.method == AttendanceMethod.ONSITE]

        daily = defaultdict(Counter)
        courses = OrderedDict()
        lecturers = OrderedDict()
        heatmap = Counter()
        for record in records:
            status = record.verification_status
            daily[record.timestamp.strftime('%Y-%m-%d')][status] += 1

            course = record.course_schedule.course
            courses.setdefault(course.id, {'course_id': course.id, 'course_code': course.course_code,
                                           'title': course.title, 'sessions': 0, 'verified': 0})
            courses[course.id]['sessions'] += 1
            courses[course.id]['verified'] += status == 'verified'

            lecturer = record.lecturer
            lecturers.setdefault(lecturer.id, {'lecturer_id': lecturer.id, 'name': lecturer.name,
                                               'sessions': 0, 'verified': 0, 'disputed': 0})
            lecturers[lecturer.id]['sessions'] += 1
            lecturers[lecturer.id]['verified'] += status == 'verified'
            lecturers[lecturer.id]['disputed'] += status == 'disputed'

            day = python_weekday_to_day_of_week(record.timestamp.weekday())
            heatmap[(day, record.timestamp.hour)] += 1

        for bucket in list(courses.values()) + list(lecturers.values()):
            bucket['verification_rate'] = _percent(bucket['verified'], bucket['sessions'])

        return {
            'period': period,
            'start_date': start.isoformat(),
            'end_date': now.isoformat(),
            'summary': {
                'total_records': total,
                'verified_records': statuses['verified'],
                'pending_records': statuses['pending'],
                'disputed_records': statuses['disputed'],
                'verification_rate': _percent(statuses['verified'], total),
                'pending_rate': _percent(statuses['pending'], total),
                'location_verified_rate': _percent(sum(1 for r in onsite if r.location_verified), len(onsite)),
                'active_lecturers': len(lecturers),
            },
            'daily_trends': [{'date': day, 'total': sum(c.values()), 'verified': c['verified'],
                              'disputed': c['disputed'], 'pending': c['pending']}
                             for day, c in sorted(daily.items())],
            'course_attendance': sorted(courses.values(), key=lambda c: -c['sessions'])[:10],
            'lecturer_performance': sorted(lecturers.values(), key=lambda l: -l['sessions']),
            'verification_distribution': [{'status': s, 'count': statuses[s]}
                                          for s in ('verified', 'pending', 'disputed')],
            'heatmap': [{'day_of_week': d, 'day': DAY_NAMES[d], 'hour': h, 'count': c}
                        for (d, h), c in sorted(heatmap.items())],
            'method_breakdown': [{'method': m, 'count': methods[m]} for m in AttendanceMethod.ALL],
            'recent_activity': [{
                'id': r.id,
                'course': f"{r.course_schedule.course.course_code} - {r.course_schedule.course.title}",
                'lecturer': r.lecturer.name,
                'class_group': r.course_schedule.class_group.name,
                'date': r.timestamp.isoformat(),
                'status': r.verification_status,
                'method': r.method,
            } for r in records[:10]],
        }

    # Stored reports

    @staticmethod
    def reports_folder():
        folder = current_app.config.get('REPORTS_FOLDER') or 'reports'
        if not os.path.isabs(folder):
            folder = os.path.join(current_app.instance_path, folder)
        os.makedirs(folder, exist_ok=True)
        return folder

    @staticmethod
    def parameters_from(data):
        return {
            'tab': data.get('tab') or data.get('type') or 'overview',
            'range': data.get('range') or 'month',
            'start_date': data.get('start_date'),
            'end_date': data.get('end_date'),
            'lecturer_id': data.get('lecturer_id'),
        }

    @staticmethod
    @handle_db_error
    def generate_report(user, data, now=None):
        """Build, render and store a report file; returns the Report row"""
        export_format = data.get('format') or 'pdf'
        params = ReportingService.parameters_from(data)
        report = ReportingService.build_report(user, params['tab'], params['range'], params['start_date'],
                                               params['end_date'], params['lecturer_id'], now=now)
        content, _, filename = ReportingService.render(report, export_format)

        stored = Report(
            generated_by=user.id,
            title=data.get('title') or report['title'],
            type=report['tab'],
            format=export_format,
            parameters=json.dumps(params),
        )
        db.session.add(stored)
        db.session.commit()

        try:
            path = os.path.join(ReportingService.reports_folder(), f"{stored.id}-{filename}")
            with open(path, 'wb') as handle:
                handle.write(content)
        except OSError as e:
            logger.exception("Could not write report %s", stored.id)
            stored.status = 'failed'
            stored.error_message = str(e)
        else:
            stored.file_path = path
            stored.file_size = len(content)
            stored.status = 'completed'
        db.session.commit()
        return stored

    @staticmethod
    def list_reports(user, limit=50, offset=0):
        query = Report.query
        if user.role != UserRole.ADMIN:
            query = query.filter(Report.generated_by == user.id)
        items, total = paginate(query.order_by(Report.created_at.desc()), limit, offset)
        return {'reports': [r.to_dict() for r in items], 'total': total}

    @staticmethod
    @handle_db_error
    def get_report_file(user, report_id):
        """Resolve a stored report for download and count the download"""
        report = get_or_404(Report, report_id, 'Report')
        if user.role != UserRole.ADMIN and report.generated_by != user.id:
            raise PermissionDeniedError("You cannot download this report")
        if report.status != 'completed' or not report.file_path or not os.path.exists(report.file_path):
            raise NotFoundError("Report file not available")

        report.download_count += 1
        db.session.commit()
        return report, report.file_path, MIME_TYPES.get(report.format, 'application/octet-stream')
