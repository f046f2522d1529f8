#!/usr/bin/env python3
"""
Year Planner - Terminal Year View
Shows a whole year as Monday-first week rows with multi-day events drawn as
bars and timed events listed under their day. Events come from the Google
Calendar MCP server or from a planner backend JSON export.

Requirements:
    pip install mcp pyyaml
"""

import curses
import json
import asyncio
import sys
from dataclasses import dataclass
from datetime import date, datetime, tzinfo
from pathlib import Path
from typing import Dict, List, Optional
import argparse

from calendar_events import CalendarEvent
from event_sources import (
    EventSourceError,
    JSONFileEventSource,
    MCPClient,
    MCPEventSource,
    debug_log,
)
from planner_config import ConfigError, get_system_timezone, load_config, resolve_tzinfo
from year_layout import (
    MAX_VISIBLE_BARS,
    MAX_VISIBLE_TIMED,
    WEEKDAYS,
    MonthStartLabel,
    WeekRenderData,
    YearLayout,
    build_year_layout,
    format_date_key,
    format_event_date_time,
    format_event_time,
    next_year,
    parse_hex_color,
    previous_year,
    resolve_year,
    to_local,
)


MIN_CELL_WIDTH = 6
TIMED_ROWS = MAX_VISIBLE_TIMED

# Basic terminal colors as (curses color, approximate RGB)
TERMINAL_COLORS = [
    (curses.COLOR_RED, (205, 0, 0)),
    (curses.COLOR_GREEN, (0, 205, 0)),
    (curses.COLOR_YELLOW, (205, 205, 0)),
    (curses.COLOR_BLUE, (0, 0, 238)),
    (curses.COLOR_MAGENTA, (205, 0, 205)),
    (curses.COLOR_CYAN, (0, 205, 205)),
    (curses.COLOR_WHITE, (229, 229, 229)),
]

# Color pairs 1-4 are UI colors, bar pairs start at 20
BAR_PAIR_BASE = 20


@dataclass
class Segment:
    """A run of text drawn with one style: normal, dim, today, month, bar, overflow, timed or selected"""
    text: str
    style: str = 'normal'
    color: Optional[str] = None


def fit(text: str, width: int) -> str:
    """Pad or truncate text to exactly width characters"""
    if width <= 0:
        return ''
    if len(text) > width:
        if width == 1:
            return text[:1]
        return text[:width - 1] + '…'
    return text.ljust(width)


def nearest_curses_color(color: str) -> int:
    """Closest basic terminal color to a #rrggbb(aa) token (blue if unparseable)"""
    parsed = parse_hex_color(color)
    if parsed is None:
        return curses.COLOR_BLUE

    red, green, blue, _ = parsed
    best_color, best_distance = curses.COLOR_BLUE, None
    for curses_color, (r, g, b) in TERMINAL_COLORS:
        distance = (red - r) ** 2 + (green - g) ** 2 + (blue - b) ** 2
        if best_distance is None or distance < best_distance:
            best_color, best_distance = curses_color, distance
    return best_color


def render_date_row(week: List[date], year: int, month_labels: Dict[str, MonthStartLabel],
                    today_key: str, cell_width: int) -> List[Segment]:
    """Day numbers, with the month name on the 1st and today highlighted"""
    segments = []
    for day in week:
        key = format_date_key(day)
        label = month_labels.get(key)
        text = f" {day.day:>2}"
        if label is not None:
            text += f" {label.short}"

        if key == today_key:
            style = 'today'
        elif day.year != year:
            style = 'dim'
        elif label is not None:
            style = 'month'
        else:
            style = 'normal'
        segments.append(Segment(fit(text, cell_width), style))
    return segments


def render_lane_row(week_data: WeekRenderData, lane: int, day_count: int, cell_width: int,
                    selected_id: Optional[str] = None) -> List[Segment]:
    """One lane of bars; '<' and '>' mark bars continuing into other weeks"""
    segments = []
    cursor = 0
    bars = sorted((bar for bar in week_data.week_bars if bar.lane == lane), key=lambda bar: bar.start_idx)

    for bar in bars:
        if bar.start_idx > cursor:
            segments.append(Segment(' ' * (cell_width * (bar.start_idx - cursor))))

        width = cell_width * bar.span
        left = '<' if bar.continues_from_previous_week else ' '
        right = '>' if bar.continues_to_next_week else ' '
        body = fit(bar.event.summary, max(0, width - 2))
        style = 'selected' if bar.event.id == selected_id else 'bar'
        segments.append(Segment((left + body + right)[:width], style, bar.event.color))
        cursor = bar.end_idx + 1

    if cursor < day_count:
        segments.append(Segment(' ' * (cell_width * (day_count - cursor))))
    return segments


def render_overflow_row(week: List[date], week_data: WeekRenderData, cell_width: int) -> List[Segment]:
    segments = []
    for day in week:
        hidden = week_data.overflow_bars_by_date_key.get(format_date_key(day), 0)
        if hidden:
            segments.append(Segment(fit(f" +{hidden} more", cell_width), 'overflow'))
        else:
            segments.append(Segment(' ' * cell_width))
    return segments


def render_timed_rows(week: List[date], week_data: WeekRenderData, cell_width: int,
                      rows: int = TIMED_ROWS, tz: Optional[tzinfo] = None,
                      selected_id: Optional[str] = None) -> List[List[Segment]]:
    """Timed events under each day; the last row notes how many did not fit"""
    keys = [format_date_key(day) for day in week]
    busiest = max((len(week_data.short_events_by_date_key.get(key, [])) for key in keys), default=0)
    row_count = min(rows, busiest)

    result = []
    for row in range(row_count):
        segments = []
        for key in keys:
            events = week_data.short_events_by_date_key.get(key, [])
            if row >= len(events):
                segments.append(Segment(' ' * cell_width))
                continue

            event = events[row]
            text = f" {format_event_time(event.start, tz)} {event.summary}"
            hidden = len(events) - row_count
            if row == row_count - 1 and hidden > 0:
                suffix = f" +{hidden}"
                text = fit(text, max(0, cell_width - len(suffix))) + suffix
            style = 'selected' if event.id == selected_id else 'timed'
            segments.append(Segment(fit(text, cell_width), style, event.color))
        result.append(segments)
    return result


def render_week_rows(week: List[date], week_data: WeekRenderData, year: int,
                     month_labels: Dict[str, MonthStartLabel], today_key: str,
                     cell_width: int, tz: Optional[tzinfo] = None,
                     timed_rows: int = TIMED_ROWS, selected_id: Optional[str] = None) -> List[List[Segment]]:
    """All terminal rows for one week: dates, bar lanes, overflow, timed events"""
    rows = [render_date_row(week, year, month_labels, today_key, cell_width)]

    lanes_used = max((bar.lane for bar in week_data.week_bars), default=-1) + 1
    for lane in range(min(lanes_used, MAX_VISIBLE_BARS)):
        rows.append(render_lane_row(week_data, lane, len(week), cell_width, selected_id))

    if any(week_data.overflow_bars_by_date_key.values()):
        rows.append(render_overflow_row(week, week_data, cell_width))

    rows.extend(render_timed_rows(week, week_data, cell_width, timed_rows, tz, selected_id))
    return rows


def describe_event(event: CalendarEvent, tz: Optional[tzinfo] = None) -> List[str]:
    """Text lines for the event detail popup"""
    if event.is_all_day:
        # Date part of 'DD Mon YYYY HH:MM'
        when = f"All day {format_event_date_time(event.start, tz)[:11]}"
        if to_local(event.end, tz).date() != to_local(event.start, tz).date():
            when += f" - {format_event_date_time(event.end, tz)[:11]}"
    else:
        when = f"{format_event_date_time(event.start, tz)} - {format_event_date_time(event.end, tz)}"

    lines = [event.summary, when]
    if event.location:
        lines.append(f"📍 {event.location}")
    if event.status and event.status != 'confirmed':
        lines.append(f"Status: {event.status}")
    if event.is_automatically_created:
        lines.append("✉️  Created automatically from Gmail")
        if event.original_email_url:
            lines.append(event.original_email_url)
    if event.description:
        lines.append("")
        lines.extend(event.description.splitlines())
    if event.calendar_url:
        lines.append("")
        lines.append(event.calendar_url)
    return lines


def layout_to_dict(layout: YearLayout, tz: Optional[tzinfo] = None) -> Dict:
    """JSON-ready form of a year layout (used by --dump)"""
    def event_dict(event):
        return {
            "id": event.id,
            "summary": event.summary,
            "start": event.start.isoformat(),
            "end": event.end.isoformat(),
            "color": event.color,
            "is_all_day": event.is_all_day,
        }

    weeks = []
    for week, data in zip(layout.weeks, layout.week_render_data):
        weeks.append({
            "days": [format_date_key(day) for day in week],
            "bars": [
                {
                    "id": bar.bar_id,
                    "event": event_dict(bar.event),
                    "lane": bar.lane,
                    "start_idx": bar.start_idx,
                    "end_idx": bar.end_idx,
                    "continues_from_previous_week": bar.continues_from_previous_week,
                    "continues_to_next_week": bar.continues_to_next_week,
                }
                for bar in data.week_bars
            ],
            "short_events": {
                key: [dict(event_dict(event), time=format_event_time(event.start, tz)) for event in events]
                for key, events in data.short_events_by_date_key.items()
                if events
            },
            "active_bars": data.active_bars_by_date_key,
            "overflow_bars": data.overflow_bars_by_date_key,
        })

    return {
        "year": layout.year,
        "month_start_labels": {
            key: {"full": label.full, "short": label.short}
            for key, label in layout.month_start_labels.items()
        },
        "weeks": weeks,
    }


def week_index_of(layout: YearLayout, day: date) -> int:
    """Index of the week row containing day, or 0 if it is not in the grid"""
    for index, week in enumerate(layout.weeks):
        if week[0] <= day <= week[-1]:
            return index
    return 0


def first_event_on_or_after(events: List[CalendarEvent], day: date, tz: Optional[tzinfo] = None) -> int:
    """Index of the first event starting on or after day (last event if none do)"""
    for index, event in enumerate(events):
        if to_local(event.start, tz).date() >= day:
            return index
    return max(0, len(events) - 1)


class YearTUI:
    """Terminal year view"""

    def __init__(self, stdscr, source, year: int, tz: Optional[tzinfo] = None, debug: bool = False):
        self.stdscr = stdscr
        self.source = source
        self.year = year
        self.tz = tz
        self.debug = debug
        self.events = []
        self.layout = build_year_layout(year, [], tz)
        self.scroll_offset = 0
        self.status_message = ""

        # Event selection (n/p) and detail popup (Enter)
        self.selected_index: Optional[int] = None
        self.detail_event: Optional[CalendarEvent] = None

        # Spinner for loading states
        self.spinner_frames = ['⠋', '⠙', '⠹', '⠸', '⠼', '⠴', '⠦', '⠧', '⠇', '⠏']
        self.spinner_index = 0
        self.is_loading = False
        self.loading_message = ""

        self.bar_pairs: Dict[int, int] = {}
        self._setup_colors()

    def _setup_colors(self):
        curses.start_color()
        curses.init_pair(1, curses.COLOR_BLACK, curses.COLOR_WHITE)   # Today
        curses.init_pair(2, curses.COLOR_RED, curses.COLOR_BLACK)     # Overflow / errors
        curses.init_pair(3, curses.COLOR_GREEN, curses.COLOR_BLACK)   # Status line
        curses.init_pair(4, curses.COLOR_CYAN, curses.COLOR_BLACK)    # Month starts

        # Black text on each basic color for bars
        for offset, (curses_color, _) in enumerate(TERMINAL_COLORS):
            pair = BAR_PAIR_BASE + offset
            curses.init_pair(pair, curses.COLOR_BLACK, curses_color)
            self.bar_pairs[curses_color] = pair

        # Hide cursor
        curses.curs_set(0)

    def debug_log(self, message: str):
        debug_log(self.debug, message)

    def start_loading(self, message: str):
        """Start loading animation with message"""
        self.is_loading = True
        self.loading_message = message
        self.spinner_index = 0

    def update_spinner(self):
        """Update spinner to next frame"""
        if self.is_loading:
            self.spinner_index = (self.spinner_index + 1) % len(self.spinner_frames)
            spinner = self.spinner_frames[self.spinner_index]
            self.status_message = f"{spinner} {self.loading_message}"

    async def run_with_spinner(self, coro, loading_msg: str, success_msg: str = None):
        """Run a coroutine while animating the spinner

        Args:
            coro: The coroutine to run
            loading_msg: Message to show while loading
            success_msg: Message to show on success (None = don't change status message)
        """
        self.start_loading(loading_msg)
        task = asyncio.create_task(coro)

        while not task.done():
            self.update_spinner()
            self.update_status_line()
            await asyncio.sleep(0.05)

        try:
            result = await task
        finally:
            self.is_loading = False

        if success_msg is not None:
            self.status_message = success_msg
            self.update_status_line()
        return result

    def rebuild_layout(self):
        """Recompute the whole year layout from the current events"""
        self.layout = build_year_layout(self.year, self.events, self.tz)

    async def load_events(self):
        """Fetch the year's events and lay them out"""
        self.rebuild_layout()
        try:
            self.events = await self.run_with_spinner(
                self.source.get_events_for_year(self.year, self.tz),
                f"Loading {self.year}...",
            )
        except EventSourceError as e:
            self.debug_log(f"Fetch failed: {e}")
            self.events = []
            self.status_message = f"❌ {e}"
        else:
            self.status_message = f"✅ {len(self.events)} events in {self.year}"
        self.selected_index = None
        self.detail_event = None
        self.rebuild_layout()

    @property
    def selected_event(self) -> Optional[CalendarEvent]:
        if self.selected_index is None or self.selected_index >= len(self.events):
            return None
        return self.events[self.selected_index]

    def select_event(self, direction: int):
        """Move the selection to the next/previous event and scroll it into view"""
        if not self.events:
            self.status_message = "No events to select"
            return

        if self.selected_index is None:
            self.selected_index = first_event_on_or_after(self.events, self.scroll_start_day(), self.tz)
        else:
            self.selected_index = max(0, min(len(self.events) - 1, self.selected_index + direction))

        event = self.events[self.selected_index]
        day = to_local(event.start, self.tz).date()
        if day.year == self.year:
            self.scroll_offset = week_index_of(self.layout, day)
        self.status_message = f"{format_event_date_time(event.start, self.tz)}  {event.summary}"

    def scroll_start_day(self) -> date:
        return self.layout.weeks[self.scroll_offset][0]

    async def show_details(self):
        """Open the detail popup for the selected event, fetching full details"""
        event = self.selected_event
        if event is None:
            self.status_message = "Select an event with n/p first"
            return

        try:
            details = await self.run_with_spinner(
                self.source.get_event_details(event.id, self.tz),
                "Loading event details...",
                "",
            )
        except EventSourceError as e:
            self.debug_log(f"Detail fetch failed for {event.id}: {e}")
            self.status_message = f"❌ {e}"
            details = None

        self.detail_event = details or event

    def scroll_to_today(self):
        today = datetime.now().astimezone(self.tz).date()
        if today.year == self.year:
            self.scroll_offset = week_index_of(self.layout, today)
        else:
            self.scroll_offset = 0

    async def change_year(self, year: int):
        if year == self.year:
            return
        self.year = year
        self.events = []
        await self.load_events()
        self.scroll_to_today()

    def _attr_for(self, segment: Segment) -> int:
        if segment.style == 'today':
            return curses.color_pair(1) | curses.A_BOLD
        if segment.style == 'dim':
            return curses.A_DIM
        if segment.style == 'month':
            return curses.color_pair(4) | curses.A_BOLD
        if segment.style == 'overflow':
            return curses.color_pair(2)
        if segment.style == 'bar':
            return curses.color_pair(self.bar_pairs[nearest_curses_color(segment.color or '')])
        if segment.style == 'selected':
            return curses.A_REVERSE | curses.A_BOLD
        return curses.A_NORMAL

    def draw_header(self, width: int):
        title = f"📅 The Planner   ◀ {self.year} ▶"
        self.stdscr.addstr(0, max(0, (width - len(title)) // 2), title[:width - 1], curses.A_BOLD)

    def draw_weekdays(self, y: int, cell_width: int):
        for index, weekday in enumerate(WEEKDAYS):
            attr = curses.A_BOLD | (curses.A_DIM if index >= 5 else 0)
            self.stdscr.addstr(y, 1 + index * cell_width, fit(f" {weekday}", cell_width), attr)

    def draw_weeks(self, start_y: int, max_y: int, cell_width: int):
        """Draw week blocks from the scroll offset until the screen is full"""
        today_key = format_date_key(datetime.now().astimezone(self.tz), self.tz)
        selected = self.selected_event
        y = start_y

        for week_index in range(self.scroll_offset, len(self.layout.weeks)):
            week = self.layout.weeks[week_index]
            rows = render_week_rows(
                week,
                self.layout.week_render_data[week_index],
                self.year,
                self.layout.month_start_labels,
                today_key,
                cell_width,
                self.tz,
                selected_id=selected.id if selected else None,
            )
            if y + len(rows) > max_y:
                break

            for row in rows:
                x = 1
                for segment in row:
                    self.stdscr.addstr(y, x, segment.text, self._attr_for(segment))
                    x += len(segment.text)
                y += 1

            self.stdscr.addstr(y, 1, "─" * (cell_width * 7), curses.A_DIM)
            y += 1

    def draw_footer(self, height: int, width: int):
        help_text = "←/→: Prev/Next Year | t: This Year | ↑/↓: Scroll | PgUp/PgDn: Page | n/p: Select | Enter: Details | R: Refresh | q: Quit"
        if self.debug:
            help_text += " | 🐛 DEBUG"
        self.stdscr.addstr(height - 1, 2, help_text[:width - 4])
        if self.status_message:
            self.stdscr.addstr(height - 2, 2, self.status_message[:width - 4], curses.color_pair(3))

    def update_status_line(self):
        """Update only the status message line without redrawing entire screen"""
        height, width = self.stdscr.getmaxyx()
        try:
            self.stdscr.addstr(height - 2, 0, " " * (width - 1))
            if self.status_message:
                self.stdscr.addstr(height - 2, 2, self.status_message[:width - 4], curses.color_pair(3))
            self.stdscr.refresh()
        except curses.error:
            pass

    def draw(self):
        """Draw the entire UI"""
        self.stdscr.erase()
        height, width = self.stdscr.getmaxyx()
        cell_width = max(MIN_CELL_WIDTH, (width - 2) // 7)

        try:
            self.draw_header(width)
            self.draw_weekdays(2, cell_width)
            self.draw_weeks(3, height - 3, cell_width)
            self.draw_footer(height, width)
            if self.detail_event:
                self.draw_details()
        except curses.error:
            # Terminal too small for the full grid
            pass

        self.stdscr.refresh()

    def draw_details(self):
        """Draw event detail overlay for the selected event"""
        height, width = self.stdscr.getmaxyx()
        lines = describe_event(self.detail_event, self.tz)

        modal_width = min(80, width - 4)
        modal_height = min(len(lines) + 4, height - 4)
        start_x = (width - modal_width) // 2
        start_y = (height - modal_height) // 2

        # Top border with title
        self.stdscr.addstr(start_y, start_x, "╔" + "═" * (modal_width - 2) + "╗", curses.color_pair(1) | curses.A_BOLD)
        title = f" {fit(lines[0], modal_width - 6).rstrip()} "
        self.stdscr.addstr(start_y, start_x + (modal_width - len(title)) // 2, title, curses.color_pair(1) | curses.A_BOLD)

        body = lines[1:modal_height - 3]
        for offset in range(modal_height - 2):
            text = body[offset] if offset < len(body) else ""
            self.stdscr.addstr(start_y + 1 + offset, start_x, "║ " + fit(text, modal_width - 4) + " ║", curses.color_pair(1))

        # Bottom border with hint
        self.stdscr.addstr(start_y + modal_height - 1, start_x, "╚" + "═" * (modal_width - 2) + "╝", curses.color_pair(1) | curses.A_BOLD)
        hint = " Enter/Esc: Close "
        self.stdscr.addstr(start_y + modal_height - 1, start_x + (modal_width - len(hint)) // 2, hint, curses.color_pair(1))

    def visible_week_count(self) -> int:
        height, _ = self.stdscr.getmaxyx()
        return max(1, (height - 6) // (2 + MAX_VISIBLE_BARS))

    def scroll(self, delta: int):
        last = max(0, len(self.layout.weeks) - 1)
        self.scroll_offset = max(0, min(last, self.scroll_offset + delta))

    async def handle_key(self, key: int) -> bool:
        """Apply a key press; returns False when the user quits"""
        if key in (ord('q'), ord('Q')):
            return False

        # Enter or Esc closes the detail popup; other keys are ignored while it is open
        if self.detail_event:
            if key in (ord('\n'), curses.KEY_ENTER, 27):
                self.detail_event = None
            return True

        if key in (ord('\n'), curses.KEY_ENTER):
            await self.show_details()
        elif key == ord('n'):
            self.select_event(1)
        elif key == ord('p'):
            self.select_event(-1)
        elif key == curses.KEY_LEFT:
            await self.change_year(previous_year(self.year))
        elif key == curses.KEY_RIGHT:
            await self.change_year(next_year(self.year))
        elif key == ord('t'):
            await self.change_year(datetime.now().astimezone(self.tz).year)
            self.scroll_to_today()
        elif key == curses.KEY_UP:
            self.scroll(-1)
        elif key == curses.KEY_DOWN:
            self.scroll(1)
        elif key == curses.KEY_PPAGE:
            self.scroll(-self.visible_week_count())
        elif key == curses.KEY_NPAGE:
            self.scroll(self.visible_week_count())
        elif key == ord('R'):
            await self.load_events()
        return True

    async def run(self):
        """Main event loop"""
        self.draw()
        await self.load_events()
        self.scroll_to_today()

        # Set non-blocking input
        self.stdscr.nodelay(True)
        self.draw()

        while True:
            key = self.stdscr.getch()

            # Small delay to prevent busy-waiting
            await asyncio.sleep(0.05)

            if key == -1:
                continue

            if key == curses.KEY_RESIZE:
                self.draw()
                continue

            if not await self.handle_key(key):
                break
            self.draw()


def build_source(config, timezone_name: str, debug: bool):
    """Event source for the configured backend; returns (source, mcp_client or None)"""
    if config.events_file:
        return JSONFileEventSource(config.events_file, padding_days=config.fetch_padding_days, debug=debug), None

    mcp_client = MCPClient(config.server_path)
    source = MCPEventSource(
        mcp_client,
        calendar_id=config.calendar_id,
        timezone_name=timezone_name,
        max_results=config.max_results,
        padding_days=config.fetch_padding_days,
        debug=debug,
    )
    return source, mcp_client


async def dump_layout(source, year: int, tz: Optional[tzinfo]) -> Dict:
    events = await source.get_events_for_year(year, tz)
    return layout_to_dict(build_year_layout(year, events, tz), tz)


def main() -> int:
    """Main entry point"""
    parser = argparse.ArgumentParser(description='Year planner terminal view')
    parser.add_argument('year', nargs='?', default=None, help='Year to show (default: current year)')
    parser.add_argument('--config', default=None, help='Path to config YAML')
    parser.add_argument('--timezone', default=None, help='Time zone for day boundaries (default: system timezone)')
    parser.add_argument('--server-path', help='Path to gcal-mcp-server binary')
    parser.add_argument('--events-file', help='Read events from a planner API JSON export instead of MCP')
    parser.add_argument('--dump', action='store_true', help='Print the year layout as JSON and exit')
    parser.add_argument('--debug', action='store_true', help='Enable debug logging to stderr')

    args = parser.parse_args()

    try:
        config = load_config(Path(args.config) if args.config else None)
        if args.timezone:
            config.timezone = args.timezone
        if args.server_path:
            config.server_path = args.server_path
        if args.events_file:
            config.events_file = args.events_file
        tz = resolve_tzinfo(config.timezone)
    except ConfigError as e:
        print(f"Config error: {e}", file=sys.stderr)
        return 2

    current_year = datetime.now().astimezone(tz).year
    year = resolve_year(args.year, current_year)
    if args.year is not None and str(year) != str(args.year).strip():
        debug_log(args.debug, f"Invalid year {args.year!r}, showing {year}")

    timezone_name = config.timezone.strip() if tz is not None else get_system_timezone()
    source, mcp_client = build_source(config, timezone_name, args.debug)

    if args.dump:
        async def async_dump():
            if mcp_client:
                await mcp_client.connect()
            try:
                return await dump_layout(source, year, tz)
            finally:
                if mcp_client:
                    await mcp_client.disconnect()

        try:
            payload = asyncio.run(async_dump())
        except (EventSourceError, OSError) as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        print(json.dumps(payload, indent=2, ensure_ascii=False))
        return 0

    async def async_run_app(stdscr):
        """Async function that runs inside curses"""
        if mcp_client:
            await mcp_client.connect()
        try:
            app = YearTUI(stdscr, source, year, tz=tz, debug=args.debug)
            await app.run()
        finally:
            if mcp_client:
                await mcp_client.disconnect()

    def curses_main(stdscr):
        """Curses wrapper function - runs the async event loop"""
        asyncio.run(async_run_app(stdscr))

    # Print debug instructions before curses takes over the terminal
    if args.debug:
        print("\n" + "="*70, file=sys.stderr)
        print("🐛 DEBUG MODE ENABLED", file=sys.stderr)
        print("="*70, file=sys.stderr)
        print("Debug logs are being written to stderr.", file=sys.stderr)
        print("\nRun with output redirection to keep them off the screen:", file=sys.stderr)
        print("  year-planner --debug 2>debug.log", file=sys.stderr)
        print("\nPress Enter to start the planner...", file=sys.stderr)
        print("="*70 + "\n", file=sys.stderr)
        input()

    try:
        curses.wrapper(curses_main)
    except KeyboardInterrupt:
        pass
    except Exception as e:
        print(f"Error: {e}")
        import traceback
        traceback.print_exc()
        return 1

    return 0


if __name__ == '__main__':
    raise SystemExit(main())
