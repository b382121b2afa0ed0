"""
Virtual classroom verification for the Lecturer Attendance Management System
Time window, meeting link, session duration and request fingerprint helpers
"""

import hashlib
import math
from datetime import datetime, timedelta
from urllib.parse import urlparse

from flask import current_app, has_app_context

DEFAULT_TIME_WINDOW_MINUTES = 15
DEFAULT_MINIMUM_DURATION_PERCENTAGE = 0.75
DEFAULT_MEETING_DOMAINS = (
    'zoom.us',
    'meet.google.com',
    'teams.microsoft.com',
    'teams.live.com',
    'webex.com',
    'gotomeeting.com',
)

CLIENT_IP_HEADERS = (
    'x-forwarded-for',
    'x-real-ip',
    'x-client-ip',
    'cf-connecting-ip',
    'x-forwarded',
    'forwarded-for',
    'forwarded',
)


def _setting(name, default):
    if has_app_context():
        return current_app.config.get(name, default)
    return default


def parse_hhmm(value):
    """Parse 'HH:MM' into (hour, minute); raises ValueError when malformed"""
    parsed = datetime.strptime(str(value).strip(), '%H:%M')
    return parsed.hour, parsed.minute


def minutes_of_day(value):
    hour, minute = parse_hhmm(value)
    return hour * 60 + minute


def verify_time_window(scheduled_start, scheduled_end, now=None):
    """Check that now lies within the scheduled start plus or minus the configured window"""
    now = now or datetime.now()
    window = _setting('VIRTUAL_TIME_WINDOW_MINUTES', DEFAULT_TIME_WINDOW_MINUTES)
    try:
        start_hour, start_minute = parse_hhmm(scheduled_start)
        parse_hhmm(scheduled_end)
    except (TypeError, ValueError):
        return {'verified': False, 'error': 'Invalid time format'}

    start = now.replace(hour=start_hour, minute=start_minute, second=0, microsecond=0)
    allowed_start = start - timedelta(minutes=window)
    allowed_end = start + timedelta(minutes=window)
    verified = allowed_start <= now <= allowed_end

    result = {
        'verified': verified,
        'allowed_start': allowed_start.isoformat(),
        'allowed_end': allowed_end.isoformat(),
    }
    if not verified:
        result['error'] = (
            'Current time is outside allowed window. Class can be started between '
            f'{allowed_start.strftime("%H:%M")} and {allowed_end.strftime("%H:%M")}'
        )
    return result


def verify_meeting_link(meeting_link):
    """Accept http(s) links whose host is, or is a subdomain of, a supported provider"""
    if not meeting_link:
        return {'verified': False, 'error': 'No meeting link provided'}

    try:
        parsed = urlparse(meeting_link.strip())
    except (AttributeError, ValueError):
        return {'verified': False, 'error': 'Invalid meeting link format'}

    hostname = (parsed.hostname or '').lower()
    if parsed.scheme not in ('http', 'https') or not hostname:
        return {'verified': False, 'error': 'Invalid meeting link format'}

    domains = _setting('SUPPORTED_MEETING_DOMAINS', DEFAULT_MEETING_DOMAINS)
    if not any(hostname == domain or hostname.endswith('.' + domain) for domain in domains):
        return {
            'verified': False,
            'error': 'Meeting link must be from a supported platform '
                     '(Zoom, Google Meet, Teams, WebEx, GoToMeeting)',
        }
    return {'verified': True}


def verify_session_duration(session_start, session_end, scheduled_start, scheduled_end):
    """Actual whole minutes must reach the configured share of the scheduled length"""
    percentage = _setting('MINIMUM_SESSION_DURATION_PERCENTAGE', DEFAULT_MINIMUM_DURATION_PERCENTAGE)
    try:
        actual = int((session_end - session_start).total_seconds() // 60)
        scheduled = minutes_of_day(scheduled_end) - minutes_of_day(scheduled_start)
    except (TypeError, ValueError):
        return {
            'verified': False,
            'actual_duration_minutes': 0,
            'required_duration_minutes': 0,
            'error': 'Error calculating session duration',
        }

    required = math.floor(scheduled * percentage)
    verified = actual >= required
    result = {
        'verified': verified,
        'actual_duration_minutes': actual,
        'required_duration_minutes': required,
    }
    if not verified:
        result['error'] = (f'Session duration ({actual} min) is less than '
                           f'required minimum ({required} min)')
    return result


def verify_virtual_classroom(meeting_link, scheduled_start, scheduled_end,
                             session_start=None, session_end=None, now=None):
    """Run every virtual check and collect the failures"""
    errors = []

    time_check = verify_time_window(scheduled_start, scheduled_end, now=now)
    if not time_check['verified']:
        errors.append(time_check['error'])

    link_check = verify_meeting_link(meeting_link)
    if not link_check['verified']:
        errors.append(link_check['error'])

    duration_met = True
    if session_start and session_end:
        duration_check = verify_session_duration(session_start, session_end, scheduled_start, scheduled_end)
        duration_met = duration_check['verified']
        if not duration_met:
            errors.append(duration_check['error'])

    return {
        'verified': time_check['verified'] and link_check['verified'] and duration_met,
        'time_window_verified': time_check['verified'],
        'meeting_link_verified': link_check['verified'],
        'session_duration_met': duration_met,
        'errors': errors,
    }


def generate_device_fingerprint(user_agent, ip_address):
    combined = f'{user_agent or ""}|{ip_address or ""}'
    return hashlib.sha256(combined.encode('utf-8')).hexdigest()[:16]


def get_client_ip_address(headers, remote_addr=None):
    """First address from the proxy headers, else the socket address"""
    for header in CLIENT_IP_HEADERS:
        value = headers.get(header)
        if value:
            return value.split(',')[0].strip()
    return remote_addr or 'unknown'
