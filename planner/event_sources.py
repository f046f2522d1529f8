"""
Event sources for the year planner

MCPEventSource reads a calendar through the Google Calendar MCP server
(gcal-mcp-server) over stdio. JSONFileEventSource reads an export of the
planner backend API. Both hand back normalized CalendarEvent lists for a year.

Requirements:
    pip install mcp
"""

import json
import sys
from datetime import datetime, timedelta, timezone, tzinfo
from pathlib import Path
from typing import Dict, List, Optional, Tuple

try:
    from mcp import ClientSession, StdioServerParameters
    from mcp.client.stdio import stdio_client
except ImportError:
    print("Error: MCP SDK not installed. Install with: pip install mcp")
    sys.exit(1)

from calendar_events import (
    CalendarEvent,
    filter_events_in_range,
    map_google_event,
    parse_api_event,
    sort_events_by_time,
)


DEFAULT_PADDING_DAYS = 31
MAX_PAGES = 50
_MIN_INSTANT = datetime.min.replace(tzinfo=timezone.utc)
_MAX_INSTANT = datetime.max.replace(tzinfo=timezone.utc)


class EventSourceError(Exception):
    pass


def debug_log(enabled: bool, message: str):
    """Log debug message to stderr if debug mode is enabled"""
    if enabled:
        print(f"[DEBUG] {message}", file=sys.stderr, flush=True)


def fetch_window(year: int, padding_days: int = DEFAULT_PADDING_DAYS) -> Tuple[datetime, datetime]:
    """UTC range to request for a year, padded so the grid's edge weeks have events"""
    padding = timedelta(days=padding_days)

    year_start = datetime(year, 1, 1, tzinfo=timezone.utc)
    start = year_start - padding if year_start - _MIN_INSTANT >= padding else _MIN_INSTANT

    if year >= 9999:
        return start, _MAX_INSTANT
    next_year_start = datetime(year + 1, 1, 1, tzinfo=timezone.utc)
    end = next_year_start + padding if _MAX_INSTANT - next_year_start >= padding else _MAX_INSTANT
    return start, end


def _is_error_reply(result) -> bool:
    return isinstance(result, str) and result.strip().startswith("Error")


def _decode_payload(result):
    """Tool replies arrive as JSON text; empty replies decode to {}"""
    if not isinstance(result, str):
        return result if result else {}
    if not result.strip():
        return {}
    try:
        return json.loads(result)
    except json.JSONDecodeError as e:
        raise EventSourceError(f"JSON parse error: {e}. Result: {result[:200]}") from e


class MCPClient:
    """Client for interacting with MCP server via stdio"""

    def __init__(self, server_path: str, args: Optional[List[str]] = None):
        self.server_path = server_path
        self.args = args or []
        self.session: Optional[ClientSession] = None
        self.stdio_context = None
        self.session_context = None

    async def connect(self):
        """Connect to MCP server"""
        server_params = StdioServerParameters(
            command=self.server_path,
            args=self.args,
            env=None
        )

        # Enter the stdio context
        self.stdio_context = stdio_client(server_params)
        stdio, write = await self.stdio_context.__aenter__()

        # Enter the session context
        self.session_context = ClientSession(stdio, write)
        self.session = await self.session_context.__aenter__()

        # Initialize the session
        await self.session.initialize()

    async def disconnect(self):
        """Disconnect from MCP server"""
        # Exit contexts in reverse order
        if self.session_context:
            await self.session_context.__aexit__(None, None, None)
            self.session_context = None
            self.session = None

        if self.stdio_context:
            await self.stdio_context.__aexit__(None, None, None)
            self.stdio_context = None

    async def call_tool(self, tool_name: str, arguments: Dict):
        """Call an MCP tool and return the text of its first content item"""
        if not self.session:
            raise RuntimeError("Not connected to MCP server")

        result = await self.session.call_tool(tool_name, arguments)
        return result.content[0].text if result.content else {}


class MCPEventSource:
    """Year events from Google Calendar via the MCP list_events tool"""

    def __init__(self, mcp_client: MCPClient, calendar_id: str = "primary",
                 timezone_name: Optional[str] = None, max_results: int = 2500,
                 padding_days: int = DEFAULT_PADDING_DAYS, debug: bool = False):
        self.mcp_client = mcp_client
        self.calendar_id = calendar_id.strip() or "primary"
        self.timezone_name = timezone_name
        self.max_results = max_results
        self.padding_days = padding_days
        self.debug = debug

    def build_list_params(self, year: int, page_token: Optional[str] = None) -> Dict:
        """Arguments for one list_events call covering the year's fetch window"""
        time_min, time_max = fetch_window(year, self.padding_days)
        params = {
            "time_filter": "custom",
            "time_min": time_min.isoformat(),
            "time_max": time_max.isoformat(),
            "detect_overlaps": False,
            "show_declined": False,
            "max_results": self.max_results,
            "output_format": "json"
        }
        if self.timezone_name:
            params["timezone"] = self.timezone_name
        if self.calendar_id != "primary":
            params["calendar_id"] = self.calendar_id
        if page_token:
            params["page_token"] = page_token
        return params

    async def get_events_for_year(self, year: int, tz: Optional[tzinfo] = None) -> List[CalendarEvent]:
        """Fetch, normalize and sort every event in the year's fetch window"""
        events = []
        dropped = 0
        page_token = None

        for page in range(MAX_PAGES):
            params = self.build_list_params(year, page_token)
            debug_log(self.debug, f"list_events page {page + 1}: {params['time_min']} .. {params['time_max']}")

            try:
                result = await self.mcp_client.call_tool("list_events", params)
            except RuntimeError:
                raise
            except Exception as e:
                raise EventSourceError(f"list_events failed: {e}") from e

            if _is_error_reply(result):
                raise EventSourceError(f"list_events failed: {result.strip()[:200]}")

            data = _decode_payload(result)
            if isinstance(data, list):
                raw_events, page_token = data, None
            elif isinstance(data, dict):
                raw_events = data.get('events') or data.get('items') or []
                page_token = data.get('nextPageToken') or data.get('next_page_token')
            else:
                raise EventSourceError(f"Unexpected list_events payload: {type(data).__name__}")

            for raw in raw_events:
                event = map_google_event(raw, tz)
                if event is None:
                    dropped += 1
                    continue
                events.append(event)

            if not page_token:
                break
        else:
            debug_log(self.debug, f"Stopped after {MAX_PAGES} pages, results may be incomplete")

        debug_log(self.debug, f"Loaded {len(events)} events for {year} ({dropped} dropped)")
        return sort_events_by_time(events)

    async def get_event_details(self, event_id: str, tz: Optional[tzinfo] = None) -> Optional[CalendarEvent]:
        """Full event (description, links) for the detail view; None if not found"""
        if not event_id or not event_id.strip():
            return None

        params = {"event_id": event_id.strip(), "output_format": "json"}
        if self.calendar_id != "primary":
            params["calendar_id"] = self.calendar_id

        try:
            result = await self.mcp_client.call_tool("get_event", params)
        except RuntimeError:
            raise
        except Exception as e:
            raise EventSourceError(f"get_event failed: {e}") from e

        if _is_error_reply(result):
            if "not found" in result.lower() or "404" in result:
                return None
            raise EventSourceError(f"get_event failed: {result.strip()[:200]}")

        data = _decode_payload(result)
        if isinstance(data, dict) and isinstance(data.get('event'), dict):
            data = data['event']
        if not data:
            return None
        return map_google_event(data, tz)


class JSONFileEventSource:
    """Year events from a planner backend API export (JSON file)"""

    def __init__(self, path, padding_days: int = DEFAULT_PADDING_DAYS, debug: bool = False):
        self.path = Path(path)
        self.padding_days = padding_days
        self.debug = debug
        self._events_by_id: Dict[str, CalendarEvent] = {}

    def _read_raw_events(self) -> List[Dict]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except OSError as e:
            raise EventSourceError(f"Cannot read events file {self.path}: {e}") from e
        except json.JSONDecodeError as e:
            raise EventSourceError(f"Events file {self.path} is not valid JSON: {e}") from e

        if isinstance(data, dict):
            data = data.get('events', [])
        if not isinstance(data, list):
            raise EventSourceError(f"Events file {self.path} must hold a list of events")
        return data

    async def get_events_for_year(self, year: int, tz: Optional[tzinfo] = None) -> List[CalendarEvent]:
        """Events from the file that overlap the year's fetch window"""
        raw_events = self._read_raw_events()
        parsed = [parse_api_event(raw) for raw in raw_events]
        events = [event for event in parsed if event is not None]
        debug_log(self.debug, f"Read {len(raw_events)} events from {self.path} ({len(raw_events) - len(events)} dropped)")

        time_min, time_max = fetch_window(year, self.padding_days)
        events = sort_events_by_time(filter_events_in_range(events, time_min, time_max))
        self._events_by_id = {event.id: event for event in events}
        return events

    async def get_event_details(self, event_id: str, tz: Optional[tzinfo] = None) -> Optional[CalendarEvent]:
        """The file already holds full events; return the one last loaded"""
        return self._events_by_id.get(event_id)
