"""
Year grid layout for the planner

Builds the Monday-first week grid for a year, month-start labels, and the
per-week placement of events: long events become bars stacked into lanes,
short events are bucketed under the day they start on.

Everything here is pure: no I/O, no caches, no state between calls.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Dict, List, Optional, Tuple

from calendar_events import CalendarEvent


WEEKDAYS = ['Mon', 'Tue', 'Wed', 'Thu', 'Fri', 'Sat', 'Sun']
MAX_VISIBLE_BARS = 3
MAX_VISIBLE_TIMED = 3

MIN_YEAR = 1
MAX_YEAR = 9999

SHORT_EVENT_LIMIT = timedelta(hours=24)
FALLBACK_RGB = (123, 150, 83)

_MONTH_ABBR = ['Jan', 'Feb', 'Mar', 'Apr', 'May', 'Jun',
               'Jul', 'Aug', 'Sep', 'Oct', 'Nov', 'Dec']
_HEX_DIGITS = set('0123456789abcdefABCDEF')


@dataclass(frozen=True)
class MonthStartLabel:
    full: str
    short: str


@dataclass(frozen=True)
class Placement:
    """A long event's day range inside one week, before lane assignment"""
    event: CalendarEvent
    start_idx: int
    end_idx: int
    continues_from_previous_week: bool
    continues_to_next_week: bool


@dataclass(frozen=True)
class WeekBar:
    event: CalendarEvent
    lane: int
    start_idx: int
    end_idx: int
    continues_from_previous_week: bool
    continues_to_next_week: bool

    @property
    def span(self) -> int:
        """Number of day cells the bar covers"""
        return self.end_idx - self.start_idx + 1

    @property
    def bar_id(self) -> str:
        return f"{self.event.id}-{self.lane}-{self.start_idx}-{self.end_idx}"

    def covers(self, day_idx: int) -> bool:
        return self.start_idx <= day_idx <= self.end_idx


@dataclass
class WeekRenderData:
    week_bars: List[WeekBar]
    short_events_by_date_key: Dict[str, List[CalendarEvent]]
    overflow_bars_by_date_key: Dict[str, int]
    active_bars_by_date_key: Dict[str, int]


@dataclass
class YearLayout:
    year: int
    weeks: List[List[date]]
    month_start_labels: Dict[str, MonthStartLabel]
    week_render_data: List[WeekRenderData]


# ---------------------------------------------------------------------------
# Year navigation
# ---------------------------------------------------------------------------

def is_valid_year(value) -> bool:
    """True iff value is an integer year in [1, 9999]"""
    if isinstance(value, bool) or not isinstance(value, int):
        return False
    return MIN_YEAR <= value <= MAX_YEAR


def clamp_year(value: int) -> int:
    return max(MIN_YEAR, min(MAX_YEAR, value))


def previous_year(year: int) -> int:
    return clamp_year(year - 1)


def next_year(year: int) -> int:
    return clamp_year(year + 1)


def resolve_year(raw, current_year: int) -> int:
    """Parse a requested year, redirecting anything invalid to current_year

    Accepts ints or strings such as "2026" (from the command line).
    """
    if isinstance(raw, str):
        try:
            raw = int(raw.strip())
        except ValueError:
            return current_year

    if is_valid_year(raw):
        return raw
    return current_year


# ---------------------------------------------------------------------------
# Date helpers
# ---------------------------------------------------------------------------

def to_local(instant: datetime, tz: Optional[tzinfo] = None) -> datetime:
    """Convert an instant to the rendering zone (tz=None means the system zone)"""
    return instant.astimezone(tz)


def local_day(instant: datetime, tz: Optional[tzinfo] = None) -> date:
    """Calendar day an instant falls on in the rendering zone"""
    return to_local(instant, tz).date()


def format_date_key(value, tz: Optional[tzinfo] = None) -> str:
    """Canonical YYYY-MM-DD key for a date or an instant"""
    # datetime is a subclass of date, so check it first
    if isinstance(value, datetime):
        value = local_day(value, tz)
    return f"{value.year:04d}-{value.month:02d}-{value.day:02d}"


def format_event_time(instant: datetime, tz: Optional[tzinfo] = None) -> str:
    """24-hour HH:MM in the rendering zone"""
    return to_local(instant, tz).strftime('%H:%M')


def format_event_date_time(instant: datetime, tz: Optional[tzinfo] = None) -> str:
    """e.g. '16 Feb 2026 09:00', independent of the process locale"""
    local = to_local(instant, tz)
    return f"{local.day:02d} {_MONTH_ABBR[local.month - 1]} {local.year:04d} {local.strftime('%H:%M')}"


def days_between(start: date, end: date) -> int:
    return (end - start).days


def monday_on_or_before(day: date) -> date:
    return day - timedelta(days=day.weekday())


def sunday_on_or_after(day: date) -> date:
    remaining = 6 - day.weekday()
    # Dec 31, 9999 is a Friday and the following Sunday is not representable
    if date.max - day < timedelta(days=remaining):
        return date.max
    return day + timedelta(days=remaining)


# ---------------------------------------------------------------------------
# Grid builder
# ---------------------------------------------------------------------------

def build_year_weeks(year: int) -> List[List[date]]:
    """Monday-to-Sunday weeks covering every day of the year

    The first week starts on the Monday on or before Jan 1 and the last week
    ends on the Sunday on or after Dec 31, so the padding days belong to the
    neighbouring years.
    """
    if not is_valid_year(year):
        raise ValueError(f"Year must be an integer between {MIN_YEAR} and {MAX_YEAR}, got {year!r}")

    start = monday_on_or_before(date(year, 1, 1))
    end = sunday_on_or_after(date(year, 12, 31))

    weeks = []
    cursor = start
    while cursor <= end:
        week = []
        for offset in range(7):
            day = cursor + timedelta(days=offset)
            week.append(day)
            if day == end:
                break
        weeks.append(week)
        if end - cursor < timedelta(days=7):
            break
        cursor += timedelta(days=7)

    return weeks


def build_month_start_labels(weeks: List[List[date]]) -> Dict[str, MonthStartLabel]:
    """Full and abbreviated month names keyed by each first-of-month date"""
    labels = {}
    for week in weeks:
        for day in week:
            if day.day != 1:
                continue
            labels[format_date_key(day)] = MonthStartLabel(
                full=day.strftime('%B'),
                short=day.strftime('%b'),
            )
    return labels


# ---------------------------------------------------------------------------
# Classifier
# ---------------------------------------------------------------------------

def _absolute(instant: datetime) -> datetime:
    # Aware datetimes sharing a tzinfo subtract as wall-clock time, so compare in UTC
    if instant.tzinfo is None:
        return instant
    return instant.astimezone(timezone.utc)


def event_duration(event: CalendarEvent) -> timedelta:
    return _absolute(event.end) - _absolute(event.start)


def is_short_event(event: CalendarEvent) -> bool:
    """Events under 24 hours render as a timed entry in their start day's cell"""
    return event_duration(event) < SHORT_EVENT_LIMIT


def place_in_week(event: CalendarEvent, week: List[date],
                  tz: Optional[tzinfo] = None) -> Optional[Placement]:
    """Day-offset range of a long event within a week, or None if disjoint"""
    week_start = week[0]
    week_end = week[-1]
    event_start_day = local_day(event.start, tz)
    event_end_day = local_day(event.end, tz)

    if not (event_start_day <= week_end and event_end_day >= week_start):
        return None

    return Placement(
        event=event,
        start_idx=max(0, days_between(week_start, event_start_day)),
        end_idx=min(len(week) - 1, days_between(week_start, event_end_day)),
        continues_from_previous_week=event_start_day < week_start,
        continues_to_next_week=event_end_day > week_end,
    )


# ---------------------------------------------------------------------------
# Lane assignment
# ---------------------------------------------------------------------------

def _placement_order(placement: Placement):
    span = placement.end_idx - placement.start_idx
    return (placement.start_idx, -span, _absolute(placement.event.start))


def assign_lanes(placements: List[Placement]) -> List[WeekBar]:
    """First-fit lane assignment over one week's placements

    Placements are taken by start day, longest first among equal starts, then
    by the event's start instant. Each goes into the lowest lane whose previous
    occupant ended before it starts. Returns every bar, in assignment order.
    """
    lane_end_indexes: List[int] = []
    bars = []

    for placement in sorted(placements, key=_placement_order):
        lane = 0
        while lane < len(lane_end_indexes):
            if placement.start_idx > lane_end_indexes[lane]:
                break
            lane += 1

        if lane == len(lane_end_indexes):
            lane_end_indexes.append(-1)
        lane_end_indexes[lane] = placement.end_idx

        bars.append(WeekBar(
            event=placement.event,
            lane=lane,
            start_idx=placement.start_idx,
            end_idx=placement.end_idx,
            continues_from_previous_week=placement.continues_from_previous_week,
            continues_to_next_week=placement.continues_to_next_week,
        ))

    return bars


def count_bars_per_day(bars: List[WeekBar], day_count: int) -> Tuple[List[int], List[int]]:
    """(active, overflow) bar counts for each day index of the week"""
    active = []
    overflow = []
    for day_idx in range(day_count):
        count = sum(1 for bar in bars if bar.covers(day_idx))
        active.append(count)
        overflow.append(max(0, count - MAX_VISIBLE_BARS))
    return active, overflow


def visible_bars(bars: List[WeekBar]) -> List[WeekBar]:
    """Bars that fit in the visible lanes, ordered for drawing"""
    shown = [bar for bar in bars if bar.lane < MAX_VISIBLE_BARS]
    shown.sort(key=lambda bar: (bar.lane, bar.start_idx, _absolute(bar.event.start)))
    return shown


# ---------------------------------------------------------------------------
# Week render aggregator
# ---------------------------------------------------------------------------

def build_week_render_data(week: List[date], events: List[CalendarEvent],
                           tz: Optional[tzinfo] = None) -> WeekRenderData:
    """Bars, per-day counts and timed entries for one week row

    Args:
        week: Monday..Sunday dates of the row
        events: every event of the year, in any order
        tz: rendering zone used to bucket instants into days (None = system zone)
    """
    week_keys = [format_date_key(day) for day in week]
    short_events_by_date_key: Dict[str, List[CalendarEvent]] = {key: [] for key in week_keys}
    placements = []

    for event in events:
        if is_short_event(event):
            key = format_date_key(event.start, tz)
            if key in short_events_by_date_key:
                short_events_by_date_key[key].append(event)
            continue

        placement = place_in_week(event, week, tz)
        if placement is not None:
            placements.append(placement)

    all_bars = assign_lanes(placements)
    active, overflow = count_bars_per_day(all_bars, len(week))

    for key in week_keys:
        # list.sort is stable, so equal starts keep input order
        short_events_by_date_key[key].sort(key=lambda e: _absolute(e.start))

    return WeekRenderData(
        week_bars=visible_bars(all_bars),
        short_events_by_date_key=short_events_by_date_key,
        overflow_bars_by_date_key=dict(zip(week_keys, overflow)),
        active_bars_by_date_key=dict(zip(week_keys, active)),
    )


def build_year_layout(year: int, events: List[CalendarEvent],
                      tz: Optional[tzinfo] = None) -> YearLayout:
    """Weeks, month labels and one WeekRenderData per week for a whole year"""
    weeks = build_year_weeks(year)
    return YearLayout(
        year=year,
        weeks=weeks,
        month_start_labels=build_month_start_labels(weeks),
        week_render_data=[build_week_render_data(week, events, tz) for week in weeks],
    )


# ---------------------------------------------------------------------------
# Colors
# ---------------------------------------------------------------------------

def parse_hex_color(color: str) -> Optional[Tuple[int, int, int, float]]:
    """(red, green, blue, alpha 0..1) for #rgb, #rgba, #rrggbb or #rrggbbaa"""
    normalized = color.replace('#', '').strip()
    if len(normalized) not in (3, 4, 6, 8) or not set(normalized) <= _HEX_DIGITS:
        return None

    full = normalized
    if len(normalized) in (3, 4):
        full = ''.join(char * 2 for char in normalized)
    if len(full) == 6:
        full = f"{full}ff"

    red = int(full[0:2], 16)
    green = int(full[2:4], 16)
    blue = int(full[4:6], 16)
    return red, green, blue, int(full[6:8], 16) / 255


def _format_number(value: float) -> str:
    if value == int(value):
        return str(int(value))
    return repr(value)


def to_rgba(color: str, alpha: float, cache: Optional[Dict[str, str]] = None) -> str:
    """CSS rgba() string for a color token at the given opacity

    An alpha embedded in the token multiplies the requested alpha. Tokens that
    are not hex colors fall back to the default green. Pass a dict as `cache`
    to memoize results across calls.
    """
    cache_key = f"{color}|{alpha}"
    if cache is not None and cache_key in cache:
        return cache[cache_key]

    parsed = parse_hex_color(color)
    if parsed is None:
        red, green, blue = FALLBACK_RGB
        rgba = f"rgba({red}, {green}, {blue}, {_format_number(alpha)})"
    else:
        red, green, blue, embedded_alpha = parsed
        effective_alpha = max(0.0, min(1.0, alpha * embedded_alpha))
        rgba = f"rgba({red}, {green}, {blue}, {_format_number(effective_alpha)})"

    if cache is not None:
        cache[cache_key] = rgba
    return rgba
