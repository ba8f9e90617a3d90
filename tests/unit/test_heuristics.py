"""Tests for HTML heuristics."""

import asyncio

import pytest

from events_pipeline.extractors.heuristics import (
    HeuristicExtractor,
    extract_date_from_text,
    extract_location_from_text,
    extract_price_from_text,
    extract_time_from_text,
    find_pagination_links,
    parse_detail_page,
    passes_heuristic_gate,
    scan_containers,
    scan_links,
    scan_tables,
)
from events_pipeline.models import RawCandidate


class TestFieldPatterns:
    """Tests for text pattern extraction."""

    @pytest.mark.parametrize("text,expected", [
        ("Join us on January 15, 2025 at 7pm", "2025-01-15"),
        ("Saturday 15 March 2025, doors at 8", "2025-03-15"),
        ("Updated 2025-02-10", "2025-02-10"),
        ("Date: 02/14/2025", "2025-02-14"),
        ("Sat, Dec 14 - all ages", "2024-12-14"),
        ("Nothing scheduled here", None),
        ("Archived: January 15, 2019", None),
    ])
    def test_dates(self, now, text, expected):
        """First plausible date wins; stale dates are ignored."""
        assert extract_date_from_text(text, now) == expected

    def test_full_date_beats_yearless(self, now):
        """A date with a year is preferred over an earlier year-less one."""
        text = "Posted Nov 2. Show on February 3, 2025."
        assert extract_date_from_text(text, now) == "2025-02-03"

    @pytest.mark.parametrize("text,expected", [
        ("Doors at 7:30 PM sharp", "7:30 PM"),
        ("starts 8pm", "8pm"),
        ("Kickoff 19:00", "19:00"),
        ("", ""),
    ])
    def test_times(self, text, expected):
        """Time patterns in precedence order."""
        assert extract_time_from_text(text) == expected

    @pytest.mark.parametrize("text,expected", [
        ("Live at Millennium Park tonight", "Millennium Park"),
        ("Venue: The Green Mill, Uptown", "The Green Mill"),
        ("Picnic in Humboldt Park", "Humboldt Park"),
        ("just some words", ""),
    ])
    def test_locations(self, text, expected):
        """Venue suffixes and explicit labels are recognised."""
        assert extract_location_from_text(text) == expected

    @pytest.mark.parametrize("text,expected", [
        ("Tickets $15.00 at the door", "$15.00"),
        ("Free admission", "Free"),
        ("Pay what you can", "Pay what you can"),
        ("Sold out", ""),
    ])
    def test_prices(self, text, expected):
        """Prices, free and pay-what-you-can."""
        assert extract_price_from_text(text) == expected


class TestScans:
    """Tests for the page scans."""

    def test_containers(self, make_doc, now, card_page):
        """Event cards yield title, link, date, time, venue and price."""
        doc = make_doc(card_page, "https://venue.test/events")
        events = {e.title: e for e in scan_containers(doc, now)}

        assert set(events) == {"Jazz Night", "Comedy Hour"}
        jazz = events["Jazz Night"]
        assert jazz.url == "https://venue.test/events/jazz-night"
        assert jazz.date_text == "2025-01-05"
        assert jazz.time_text == "7:30 PM"
        assert jazz.location == "The Green Mill"
        assert jazz.price == "$15"
        assert jazz.description == "An evening of live jazz with the house trio."
        assert jazz.method == "heuristic:container"

    def test_container_without_date_skipped(self, make_doc, now):
        """Cards with no plausible date are not candidates."""
        html = '<div class="card"><h3>About our venue</h3><p>We have been open since forever.</p></div>'
        assert scan_containers(make_doc(html), now) == []

    def test_tables(self, make_doc, now, table_page):
        """Dated rows become candidates, preferring the linked cell as title."""
        doc = make_doc(table_page, "https://pier.test/calendar")
        events = {e.title: e for e in scan_tables(doc, now)}

        assert set(events) == {"Valentine Dance", "Poetry Slam"}
        dance = events["Valentine Dance"]
        assert dance.url == "https://pier.test/events/valentine-dance"
        assert dance.date_text == "2025-02-14"
        assert "Navy Pier" in dance.location
        assert events["Poetry Slam"].url == "https://pier.test/calendar"

    def test_links_with_context_date(self, make_doc, now):
        """Event-shaped links pick up a date from their container."""
        html = '<ul><li><a href="/show/improv-night">Improv Night</a> Saturday March 8, 2025</li></ul>'
        events = scan_links(make_doc(html, "https://club.test/"), now)

        assert len(events) == 1
        assert events[0].title == "Improv Night"
        assert events[0].date_text == "2025-03-08"
        assert events[0].url == "https://club.test/show/improv-night"

    def test_short_undated_links_dropped(self, make_doc, now):
        """Links with neither a date nor descriptive text are ignored."""
        html = '<div><a href="/events/x">More</a></div>'
        assert scan_links(make_doc(html, "https://club.test/"), now) == []

    def test_undated_descriptive_links_kept(self, make_doc, now):
        """Descriptive links are kept even without a date."""
        html = '<div><a href="/concert/winter-orchestra">Winter Orchestra Gala</a></div>'
        events = scan_links(make_doc(html, "https://hall.test/"), now)
        assert [e.title for e in events] == ["Winter Orchestra Gala"]
        assert events[0].date_text == ""

    def test_extractor_runs_all_scans(self, make_doc, now, card_page):
        """HeuristicExtractor combines every scan."""
        doc = make_doc(card_page, "https://venue.test/events")
        methods = {c.method for c in asyncio.run(HeuristicExtractor(now).extract(doc))}
        assert "heuristic:container" in methods
        assert "heuristic:link" in methods


class TestPagination:
    """Tests for pagination link discovery."""

    def test_pagination_links(self, make_doc):
        """Page links are absolute, distinct and fragment-free."""
        html = """
        <a href="?page=2">2</a>
        <a rel="next" href="/events?page=2">Next</a>
        <a class="pagination" href="/events?page=3">3</a>
        <a class="next" href="#top">Top</a>
        <a href="/about">About</a>
        """
        links = find_pagination_links(make_doc(html, "https://venue.test/events"))
        assert links == ["https://venue.test/events?page=2", "https://venue.test/events?page=3"]

    def test_limit(self, make_doc):
        """No more than ``limit`` pagination links."""
        html = "".join(f'<a href="/events?page={i}">{i}</a>' for i in range(2, 30))
        assert len(find_pagination_links(make_doc(html), limit=10)) == 10


class TestDetailPage:
    """Tests for single event page parsing."""

    def test_detail(self, make_doc, now, detail_page):
        """Title, description, venue, date and time come from the page."""
        candidate = parse_detail_page(make_doc(detail_page, "https://secondcity.test/shows/improv"), now)

        assert candidate.title == "Improv Night"
        assert candidate.description == "Sketch and improv from the touring company."
        assert candidate.location == "Second City Mainstage"
        assert candidate.date_text == "March 8, 2025"
        assert candidate.time_text == "8:00 PM"
        assert candidate.url == "https://secondcity.test/shows/improv"
        assert candidate.method == "heuristic:detail"

    def test_title_from_head(self, make_doc, now):
        """Without an h1 the <title> before the pipe is used."""
        html = "<html><head><title>Trivia Tuesday | Pub</title></head><body></body></html>"
        assert parse_detail_page(make_doc(html), now).title == "Trivia Tuesday"

    def test_no_title(self, make_doc, now):
        """Pages without a usable title yield nothing."""
        assert parse_detail_page(make_doc("<p>hi</p>"), now) is None


class TestHeuristicGate:
    """Tests for the shared heuristic admission gate."""

    @pytest.mark.parametrize("title,url,date_text,expected", [
        ("Jazz Night", "https://venue.test/jazz", "2025-01-05", True),
        ("Jazz", "https://venue.test/jazz", "2025-01-05", True),
        ("Jaz", "https://venue.test/jazz", "2025-01-05", False),
        ("Jazz Night", "/jazz", "2025-01-05", False),
        ("Jazz Night", "https://venue.test/jazz", "2019-01-05", False),
        ("Jazz Night", "https://venue.test/jazz", "", False),
        ("J" * 201, "https://venue.test/jazz", "2025-01-05", False),
    ])
    def test_gate(self, now, title, url, date_text, expected):
        """Title length, absolute URL and plausible date are all required."""
        candidate = RawCandidate(title=title, url=url, date_text=date_text, source_url="https://venue.test/")
        assert passes_heuristic_gate(candidate, now) is expected
