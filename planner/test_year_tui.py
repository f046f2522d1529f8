#!/usr/bin/env python3
"""
Tests for the terminal year view
Rendering helpers are pure; YearTUI is driven with a mock screen and fake source,
so no curses terminal is needed.
"""

import asyncio
import curses
import json
import os
import sys
from datetime import date, datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

# Add this directory to path to import the planner modules
sys.path.insert(0, os.path.dirname(__file__))

from calendar_events import CalendarEvent
from event_sources import EventSourceError
from year_layout import MAX_VISIBLE_TIMED, build_week_render_data, build_year_layout, format_date_key
from year_tui import (
    YearTUI,
    describe_event,
    first_event_on_or_after,
    fit,
    layout_to_dict,
    nearest_curses_color,
    render_week_rows,
    week_index_of,
)


UTC = timezone.utc
CELL = 10
FEB_WEEK = [date(2026, 2, 16) + timedelta(days=offset) for offset in range(7)]


def utc(*args):
    return datetime(*args, tzinfo=UTC)


def make_event(event_id, start, end, summary=None, **extra):
    return CalendarEvent(id=event_id, summary=summary or event_id, start=start, end=end, **extra)


def row_text(row):
    return "".join(segment.text for segment in row)


def test_fit():
    print("\n" + "="*60)
    print("Testing fit")
    print("="*60)

    assert fit("abc", 5) == "abc  "
    assert fit("abcdef", 4) == "abc…"
    assert fit("abc", 1) == "a"
    assert fit("abc", 0) == ""
    print("✓ Text is padded or truncated to the cell width")


def test_nearest_curses_color():
    print("\n" + "="*60)
    print("Testing terminal color matching")
    print("="*60)

    assert nearest_curses_color("#0859dbff") == curses.COLOR_BLUE
    assert nearest_curses_color("#d50000ff") == curses.COLOR_RED
    assert nearest_curses_color("#ffffff") == curses.COLOR_WHITE
    assert nearest_curses_color("#0b8043ff") == curses.COLOR_GREEN
    assert nearest_curses_color("not-a-color") == curses.COLOR_BLUE
    print("✓ Event colors map to the closest basic color")


def test_render_date_row():
    """Padding days are dim, month starts labelled, today highlighted"""
    print("\n" + "="*60)
    print("Testing the date row")
    print("="*60)

    layout = build_year_layout(2026, [], UTC)
    first_week = layout.weeks[0]
    rows = render_week_rows(first_week, layout.week_render_data[0], 2026,
                            layout.month_start_labels, "2026-01-02", CELL, UTC)

    assert len(rows) == 1, "A week without events has only the date row"
    dates = rows[0]
    assert [segment.style for segment in dates] == ['dim', 'dim', 'dim', 'month', 'today', 'normal', 'normal']
    assert dates[3].text == fit(f"  1 {date(2026, 1, 1).strftime('%b')}", CELL)
    assert dates[0].text == fit(" 29", CELL)
    assert all(len(segment.text) == CELL for segment in dates)
    print("✓ Dec 29-31 dim, Jan 1 labelled, Jan 2 marked as today")


def test_render_bars():
    print("\n" + "="*60)
    print("Testing bar rows")
    print("="*60)

    trip = make_event("trip", utc(2026, 2, 16, 9), utc(2026, 2, 19, 12), "Trip")
    long_stay = make_event("stay", utc(2026, 2, 12), utc(2026, 2, 25), "Stay")
    data = build_week_render_data(FEB_WEEK, [trip, long_stay], UTC)
    rows = render_week_rows(FEB_WEEK, data, 2026, {}, "", CELL, UTC)

    assert len(rows) == 3, "Date row plus two lanes"
    for row in rows:
        assert len(row_text(row)) == CELL * 7

    stay_row, trip_row = rows[1], rows[2]
    assert stay_row[0].style == 'bar' and stay_row[0].text.startswith("<Stay")
    assert stay_row[0].text.endswith(">")
    assert len(stay_row[0].text) == CELL * 7
    print("✓ Week-long bar carries both continuation marks")

    assert trip_row[0].text.startswith(" Trip") and len(trip_row[0].text) == CELL * 4
    assert trip_row[0].color == trip.color
    assert trip_row[1].style == 'normal' and trip_row[1].text == " " * (CELL * 3)
    print("✓ Four-day bar is followed by blank cells")

    selected = render_week_rows(FEB_WEEK, data, 2026, {}, "", CELL, UTC, selected_id="trip")
    assert selected[2][0].style == 'selected'
    assert selected[1][0].style == 'bar'
    print("✓ The selected event is highlighted")


def test_render_overflow_and_timed():
    print("\n" + "="*60)
    print("Testing overflow and timed rows")
    print("="*60)

    bars = [make_event(f"conf-{i}", utc(2026, 2, 17, i), utc(2026, 2, 19, 12 + i)) for i in range(5)]
    standup = make_event("standup", utc(2026, 2, 16, 9, 5), utc(2026, 2, 16, 9, 20), "Standup")
    review = make_event("review", utc(2026, 2, 16, 14), utc(2026, 2, 16, 15), "Review")
    data = build_week_render_data(FEB_WEEK, bars + [review, standup], UTC)

    rows = render_week_rows(FEB_WEEK, data, 2026, {}, "", 16, UTC)
    assert len(rows) == 1 + 3 + 1 + 2, "Dates, three lanes, overflow, Monday's two timed events"

    overflow = rows[4]
    assert overflow[0].text.strip() == ""
    assert overflow[2].style == 'overflow' and overflow[2].text.strip() == "+2 more"
    print("✓ Hidden bars show as '+2 more'")

    timed = rows[5]
    assert timed[0].style == 'timed'
    assert timed[0].text.startswith(" 09:05 Stand")
    assert timed[1].text == " " * 16
    assert rows[6][0].text.startswith(" 14:00 Review")
    assert not rows[6][0].text.endswith(" +1")
    print(f"✓ Up to {MAX_VISIBLE_TIMED} timed events per day by default")

    one_row = render_week_rows(FEB_WEEK, data, 2026, {}, "", 16, UTC, timed_rows=1)
    assert one_row[-1][0].text.startswith(" 09:05 Stand")
    assert one_row[-1][0].text.endswith(" +1"), "One more timed event on Monday"
    assert len(one_row[-1][0].text) == 16
    print("✓ A single timed row counts the rest")

    crowded = [make_event(f"call-{i}", utc(2026, 2, 18, 8 + i), utc(2026, 2, 18, 8 + i, 30), f"Call {i}")
               for i in range(5)]
    crowded_data = build_week_render_data(FEB_WEEK, crowded, UTC)
    crowded_rows = render_week_rows(FEB_WEEK, crowded_data, 2026, {}, "", 16, UTC)
    assert len(crowded_rows) == 1 + MAX_VISIBLE_TIMED
    assert crowded_rows[-1][2].text.startswith(" 10:00 Call 2")
    assert crowded_rows[-1][2].text.endswith(" +2")
    print("✓ Wednesday shows three calls and '+2'")


def test_describe_event():
    print("\n" + "="*60)
    print("Testing event detail text")
    print("="*60)

    meeting = make_event(
        "m", utc(2026, 2, 16, 9), utc(2026, 2, 16, 10, 30), "Planning",
        location="Room 4", description="Agenda\nBudget", status="tentative",
        calendar_url="https://calendar.google.com/event?eid=m",
    )
    lines = describe_event(meeting, UTC)
    assert lines[0] == "Planning"
    assert lines[1] == "16 Feb 2026 09:00 - 16 Feb 2026 10:30"
    assert "📍 Room 4" in lines
    assert "Status: tentative" in lines
    assert lines[-4:] == ["Agenda", "Budget", "", "https://calendar.google.com/event?eid=m"]
    print("✓ Timed event details")

    holiday = make_event("h", utc(2026, 2, 16), utc(2026, 2, 18, 23, 59, 59), "Holiday", is_all_day=True)
    assert describe_event(holiday, UTC)[1] == "All day 16 Feb 2026 - 18 Feb 2026"
    single = make_event("s", utc(2026, 2, 16), utc(2026, 2, 16, 23, 59, 59), "Day off", is_all_day=True)
    assert describe_event(single, UTC)[1] == "All day 16 Feb 2026"
    print("✓ All-day ranges show dates only")

    flight = make_event("f", utc(2026, 3, 1, 7), utc(2026, 3, 1, 9), "Flight",
                        is_automatically_created=True, original_email_url="https://mail.google.com/mail/u/0/#inbox/1")
    lines = describe_event(flight, UTC)
    assert "✉️  Created automatically from Gmail" in lines
    assert "https://mail.google.com/mail/u/0/#inbox/1" in lines
    print("✓ Gmail-created events link to their email")


def test_layout_to_dict():
    print("\n" + "="*60)
    print("Testing the JSON layout dump")
    print("="*60)

    trip = make_event("trip", utc(2026, 2, 16, 9), utc(2026, 2, 19, 12), "Trip")
    standup = make_event("standup", utc(2026, 2, 17, 9, 5), utc(2026, 2, 17, 9, 20), "Standup")
    dumped = layout_to_dict(build_year_layout(2026, [trip, standup], UTC), UTC)

    json.dumps(dumped)
    assert dumped["year"] == 2026
    assert len(dumped["weeks"]) == 53
    assert "2026-02-01" in dumped["month_start_labels"]

    week = next(week for week in dumped["weeks"] if week["days"][0] == "2026-02-16")
    assert week["bars"] == [{
        "id": "trip-0-0-3",
        "event": {
            "id": "trip",
            "summary": "Trip",
            "start": "2026-02-16T09:00:00+00:00",
            "end": "2026-02-19T12:00:00+00:00",
            "color": trip.color,
            "is_all_day": False,
        },
        "lane": 0,
        "start_idx": 0,
        "end_idx": 3,
        "continues_from_previous_week": False,
        "continues_to_next_week": False,
    }]
    assert list(week["short_events"]) == ["2026-02-17"]
    assert week["short_events"]["2026-02-17"][0]["time"] == "09:05"
    assert week["active_bars"]["2026-02-18"] == 1
    assert week["overflow_bars"]["2026-02-18"] == 0
    print("✓ Weeks, bars and timed events are serializable")


def test_navigation_helpers():
    print("\n" + "="*60)
    print("Testing week lookup and event selection helpers")
    print("="*60)

    layout = build_year_layout(2026, [], UTC)
    assert week_index_of(layout, date(2025, 12, 29)) == 0
    assert week_index_of(layout, date(2026, 2, 16)) == 7
    assert week_index_of(layout, date(2027, 1, 3)) == 52
    assert week_index_of(layout, date(2030, 1, 1)) == 0
    print("✓ Dates map to their week row")

    events = [
        make_event("a", utc(2026, 1, 5, 9), utc(2026, 1, 5, 10)),
        make_event("b", utc(2026, 2, 16, 9), utc(2026, 2, 16, 10)),
    ]
    assert first_event_on_or_after(events, date(2026, 1, 1), UTC) == 0
    assert first_event_on_or_after(events, date(2026, 2, 1), UTC) == 1
    assert first_event_on_or_after(events, date(2026, 6, 1), UTC) == 1
    assert first_event_on_or_after([], date(2026, 6, 1), UTC) == 0
    print("✓ Selection starts at the first event in view")


def make_tui(source, year=2026):
    stdscr = MagicMock()
    stdscr.getmaxyx.return_value = (40, 120)
    with patch.object(YearTUI, "_setup_colors"):
        return YearTUI(stdscr, source, year, tz=UTC)


def test_year_tui_keys():
    """Year navigation, selection and the detail popup without a terminal"""
    print("\n" + "="*60)
    print("Testing YearTUI key handling")
    print("="*60)

    events = [
        make_event("a", utc(2026, 1, 5, 9), utc(2026, 1, 5, 10), "Kickoff"),
        make_event("b", utc(2026, 2, 16, 9), utc(2026, 2, 19, 12), "Trip"),
    ]
    source = MagicMock()
    source.get_events_for_year = AsyncMock(return_value=events)
    source.get_event_details = AsyncMock(return_value=None)

    async def scenario():
        tui = make_tui(source)
        await tui.load_events()
        assert tui.events == events
        assert tui.status_message == "✅ 2 events in 2026"
        print("✓ Events load into the layout")

        assert await tui.handle_key(curses.KEY_RIGHT)
        assert tui.year == 2027
        source.get_events_for_year.assert_awaited_with(2027, UTC)
        assert await tui.handle_key(curses.KEY_LEFT)
        assert tui.year == 2026
        print("✓ Left/right change the year and reload")

        tui.scroll_offset = 0
        assert await tui.handle_key(ord('n'))
        assert tui.selected_event.id == "a"
        assert await tui.handle_key(ord('n'))
        assert tui.selected_event.id == "b"
        assert tui.scroll_offset == 7, "Selecting scrolls to the event's week"
        assert await tui.handle_key(ord('n'))
        assert tui.selected_event.id == "b", "Selection stops at the last event"
        assert await tui.handle_key(ord('p'))
        assert tui.selected_event.id == "a"
        print("✓ n/p move the selection")

        assert await tui.handle_key(ord('\n'))
        assert tui.detail_event is events[0], "Listed event is used when details are unavailable"
        source.get_event_details.assert_awaited_with("a", UTC)
        assert await tui.handle_key(curses.KEY_DOWN)
        assert tui.detail_event is not None, "Keys other than Enter/Esc keep the popup open"
        assert await tui.handle_key(27)
        assert tui.detail_event is None
        print("✓ Enter opens details, Esc closes them")

        tui.scroll_offset = 0
        assert await tui.handle_key(curses.KEY_DOWN)
        assert tui.scroll_offset == 1
        assert await tui.handle_key(curses.KEY_UP)
        assert await tui.handle_key(curses.KEY_UP)
        assert tui.scroll_offset == 0, "Scrolling stops at the first week"
        print("✓ Up/down scroll week rows")

        assert not await tui.handle_key(ord('q'))
        print("✓ q quits")

    asyncio.run(scenario())


def test_year_tui_fetch_error():
    print("\n" + "="*60)
    print("Testing YearTUI fetch errors")
    print("="*60)

    source = MagicMock()
    source.get_events_for_year = AsyncMock(side_effect=EventSourceError("list_events failed: quota"))

    async def scenario():
        tui = make_tui(source)
        await tui.load_events()
        assert tui.events == []
        assert tui.status_message == "❌ list_events failed: quota"
        assert len(tui.layout.weeks) == 53

    asyncio.run(scenario())
    print("✓ Errors show in the status line and leave an empty grid")


def test_year_tui_clamps_years():
    print("\n" + "="*60)
    print("Testing YearTUI year bounds")
    print("="*60)

    source = MagicMock()
    source.get_events_for_year = AsyncMock(return_value=[])

    async def scenario():
        tui = make_tui(source, year=9999)
        assert await tui.handle_key(curses.KEY_RIGHT)
        assert tui.year == 9999
        assert source.get_events_for_year.await_count == 0, "Staying on the same year does not reload"

        tui = make_tui(source, year=1)
        assert await tui.handle_key(curses.KEY_LEFT)
        assert tui.year == 1

    asyncio.run(scenario())
    print("✓ Navigation stops at years 1 and 9999")


ALL_TESTS = [
    ("Fit", test_fit),
    ("Nearest Curses Color", test_nearest_curses_color),
    ("Date Row", test_render_date_row),
    ("Bar Rows", test_render_bars),
    ("Overflow And Timed Rows", test_render_overflow_and_timed),
    ("Describe Event", test_describe_event),
    ("Layout To Dict", test_layout_to_dict),
    ("Navigation Helpers", test_navigation_helpers),
    ("YearTUI Keys", test_year_tui_keys),
    ("YearTUI Fetch Error", test_year_tui_fetch_error),
    ("YearTUI Year Bounds", test_year_tui_clamps_years),
]


if __name__ == "__main__":
    results = []
    for test_name, test in ALL_TESTS:
        try:
            test()
            results.append((test_name, True))
        except Exception as e:
            print(f"\n❌ {test_name} test failed: {str(e)}")
            import traceback
            traceback.print_exc()
            results.append((test_name, False))

    # Print summary
    print("\n" + "="*60)
    print("TEST SUMMARY")
    print("="*60)
    for test_name, passed in results:
        status = "✅ PASS" if passed else "❌ FAIL"
        print(f"{status} - {test_name}")

    total = len(results)
    passed = sum(1 for _, success in results if success)
    print(f"\nTotal: {passed}/{total} tests passed")

    sys.exit(0 if passed == total else 1)
