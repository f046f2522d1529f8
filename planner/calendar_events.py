"""
Calendar event model and per-source normalization

Every event source maps its raw payload into one CalendarEvent shape before
anything is laid out. Mapping functions return None for events that cannot be
shown (missing ids, unparseable times, end before start); callers drop those.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Dict, Iterable, List, Optional


DEFAULT_EVENT_COLOR = '#0859dbff'
UNTITLED_EVENT = 'Untitled event'

# Google Calendar event colorId palette
GOOGLE_EVENT_COLORS = {
    '1': '#7986cbff',
    '2': '#33b679ff',
    '3': '#8e24aaff',
    '4': '#e67c73ff',
    '5': '#f6bf26ff',
    '6': '#f4511eff',
    '7': '#039be5ff',
    '8': '#616161ff',
    '9': '#3f51b5ff',
    '10': '#0b8043ff',
    '11': '#d50000ff',
}

AUTO_EVENT_HELPER_TEXT = (
    'To see detailed information for automatically created events like this one, '
    'use the official Google Calendar app.'
)
AUTO_EVENT_MARKER = 'to see detailed information for automatically created events'

_URL_PATTERN = re.compile(r'https?://[^\s<>"\')\]]+')


@dataclass(frozen=True)
class CalendarEvent:
    """A concrete event instance, normalized at ingestion

    start and end are timezone-aware UTC instants with end >= start.
    """
    id: str
    summary: str
    start: datetime
    end: datetime
    color: str = DEFAULT_EVENT_COLOR
    is_all_day: bool = False
    description: str = ''
    location: str = ''
    status: Optional[str] = None
    calendar_url: Optional[str] = None
    is_automatically_created: bool = False
    original_email_url: Optional[str] = None


def _text(value) -> str:
    """Stripped string for optional payload fields"""
    if not isinstance(value, str):
        return ''
    return value.strip()


def parse_instant(raw: str, tz: Optional[tzinfo] = None) -> Optional[datetime]:
    """Parse an ISO 8601 date-time into a UTC instant

    A trailing 'Z' is accepted. Strings without an offset are read in the
    rendering zone (tz=None means the system zone).
    """
    if not isinstance(raw, str) or not raw.strip():
        return None
    try:
        parsed = datetime.fromisoformat(raw.strip().replace('Z', '+00:00'))
    except ValueError:
        return None

    if parsed.tzinfo is None:
        if tz is None:
            parsed = parsed.astimezone()
        else:
            parsed = parsed.replace(tzinfo=tz)
    return parsed.astimezone(timezone.utc)


def parse_all_day_date(raw: str, tz: Optional[tzinfo] = None) -> Optional[datetime]:
    """Local midnight of a YYYY-MM-DD all-day date, as a UTC instant"""
    if not isinstance(raw, str) or not raw.strip():
        return None
    try:
        day = date.fromisoformat(raw.strip())
    except ValueError:
        return None

    midnight = datetime.combine(day, time.min)
    if tz is None:
        midnight = midnight.astimezone()
    else:
        midnight = midnight.replace(tzinfo=tz)
    return midnight.astimezone(timezone.utc)


def resolve_event_color(color_id) -> str:
    if not color_id:
        return DEFAULT_EVENT_COLOR
    return GOOGLE_EVENT_COLORS.get(str(color_id), DEFAULT_EVENT_COLOR)


def build_fallback_description(event_data: Dict) -> str:
    """Description assembled from links and attachments when the event has none"""
    lines = []
    source = event_data.get('source') or {}
    source_title = _text(source.get('title'))
    source_url = _text(source.get('url'))

    if source_title and source_title != AUTO_EVENT_HELPER_TEXT:
        lines.append(source_title)
    if source_url and 'g.co/calendar' not in source_url:
        lines.append(source_url)

    hangout_link = _text(event_data.get('hangoutLink'))
    if hangout_link:
        lines.append(f"Meeting link: {hangout_link}")

    conference = event_data.get('conferenceData') or {}
    for entry_point in conference.get('entryPoints') or []:
        uri = _text(entry_point.get('uri'))
        label = _text(entry_point.get('label'))
        if not uri and not label:
            continue
        if label and uri:
            lines.append(f"{label}: {uri}")
            continue
        lines.append(label or uri)

    for attachment in event_data.get('attachments') or []:
        title = _text(attachment.get('title'))
        file_url = _text(attachment.get('fileUrl'))
        if not title and not file_url:
            continue
        if title and file_url:
            lines.append(f"Attachment: {title} ({file_url})")
            continue
        lines.append(f"Attachment: {title or file_url}")

    return '\n'.join(lines)


def _is_gmail_url(url: str) -> bool:
    match = re.match(r'https?://([^/?#]+)', url.strip(), re.IGNORECASE)
    return bool(match) and 'mail.google.com' in match.group(1).lower()


def is_automatically_created(event_data: Dict, description: str) -> bool:
    """Events Google creates from Gmail (flights, reservations, ...)"""
    source = event_data.get('source') or {}
    source_title = _text(source.get('title')).lower()
    if AUTO_EVENT_MARKER in source_title or source_title == AUTO_EVENT_HELPER_TEXT.lower():
        return True

    if AUTO_EVENT_MARKER in description.lower():
        return True

    source_url = _text(source.get('url')).lower()
    return 'mail.google.com' in source_url


def find_original_email_url(source_url: str, fallback_text: str) -> Optional[str]:
    """Gmail link for an auto-created event, from its source or its description"""
    if source_url and _is_gmail_url(source_url):
        return source_url.strip()

    for url in _URL_PATTERN.findall(fallback_text):
        if _is_gmail_url(url):
            return url
    return None


def map_google_event(event_data: Dict, tz: Optional[tzinfo] = None) -> Optional[CalendarEvent]:
    """Normalize a Google Calendar event (as listed by the MCP server)

    Timed events need both start.dateTime and end.dateTime. All-day events use
    the date fields; Google's end date is exclusive, so the event ends one
    second before local midnight of that day.
    """
    if not isinstance(event_data, dict):
        return None

    event_id = _text(event_data.get('id'))
    start = event_data.get('start')
    end = event_data.get('end')
    if not event_id or not isinstance(start, dict) or not isinstance(end, dict):
        return None

    has_date_time = bool(start.get('dateTime')) and bool(end.get('dateTime'))
    start_time = None
    end_time = None

    if has_date_time:
        start_time = parse_instant(start['dateTime'], tz)
        end_time = parse_instant(end['dateTime'], tz)
    elif start.get('date') and end.get('date'):
        start_time = parse_all_day_date(start['date'], tz)
        end_exclusive = parse_all_day_date(end['date'], tz)
        if end_exclusive is not None:
            end_time = end_exclusive - timedelta(seconds=1)

    if start_time is None or end_time is None or end_time < start_time:
        return None

    description = _text(event_data.get('description')) or build_fallback_description(event_data)
    auto_created = is_automatically_created(event_data, description)
    source = event_data.get('source') or {}

    return CalendarEvent(
        id=event_id,
        summary=_text(event_data.get('summary')) or UNTITLED_EVENT,
        start=start_time,
        end=end_time,
        color=resolve_event_color(event_data.get('colorId')),
        is_all_day=not has_date_time,
        description=description,
        location=event_data.get('location') or '',
        status=event_data.get('status'),
        calendar_url=event_data.get('htmlLink') or None,
        is_automatically_created=auto_created,
        original_email_url=find_original_email_url(_text(source.get('url')), description) if auto_created else None,
    )


def parse_api_event(raw: Dict) -> Optional[CalendarEvent]:
    """Normalize an event from the planner backend API (RFC 3339 start/end)"""
    if not isinstance(raw, dict):
        return None

    event_id = _text(raw.get('id'))
    start_time = parse_instant(raw.get('start'), timezone.utc)
    end_time = parse_instant(raw.get('end'), timezone.utc)
    if not event_id or start_time is None or end_time is None or end_time < start_time:
        return None

    return CalendarEvent(
        id=event_id,
        summary=_text(raw.get('summary')) or UNTITLED_EVENT,
        start=start_time,
        end=end_time,
        color=_text(raw.get('color')) or DEFAULT_EVENT_COLOR,
        is_all_day=bool(raw.get('isAllDay', False)),
        description=_text(raw.get('description')),
        location=raw.get('location') or '',
        status=raw.get('status'),
        calendar_url=raw.get('calendarURL') or None,
    )


def sort_events_by_time(events: Iterable[CalendarEvent]) -> List[CalendarEvent]:
    """Events ordered by start, then end, then summary"""
    return sorted(events, key=lambda e: (e.start, e.end, e.summary))


def filter_events_in_range(events: Iterable[CalendarEvent],
                           start: Optional[datetime] = None,
                           end: Optional[datetime] = None) -> List[CalendarEvent]:
    """Drop events that end before `start` or begin after `end`"""
    filtered = []
    for event in events:
        if start is not None and event.end < start:
            continue
        if end is not None and event.start > end:
            continue
        filtered.append(event)
    return filtered
