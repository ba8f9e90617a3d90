"""Tests for dataset consolidation."""

import json

import pytest

from events_pipeline import consolidator
from events_pipeline.consolidator import (
    admit,
    clean_field,
    consolidate,
    is_trusted_source,
    load_records,
    merge_record_sets,
    write_records,
)
from events_pipeline.errors import AdmissionRejected
from events_pipeline.models import CanonicalEvent
from events_pipeline.normalizers import fingerprint, normalize_record
from events_pipeline.pipeline import build_dataset


class TestCleanField:
    """Tests for free-text cleaning."""

    def test_sanitizes(self):
        """Markup is stripped and whitespace collapsed."""
        assert clean_field("<b>The   Green Mill</b>") == "The Green Mill"

    @pytest.mark.parametrize("value", [
        "var x = 1; console.log(x)",
        "body { margin: 0 !important }",
        "width: 12px; height: 4px;",
        "A" * 2001,
        None,
    ])
    def test_junk_dropped(self, value):
        """Script, style residue and oversized text become empty."""
        assert clean_field(value) == ""


class TestAdmission:
    """Tests for the admission filter."""

    def _event(self, make_record, **overrides):
        return normalize_record(make_record(**overrides))

    def test_good_record(self, make_record, now):
        """The baseline record is admitted."""
        admit(self._event(make_record), now)

    @pytest.mark.parametrize("overrides,reason", [
        ({"title": "Hi"}, "short_title"),
        ({"event_url": "/events/jazz"}, "bad_url"),
        ({"event_url": "ftp://greenmill.test/jazz"}, "bad_url"),
        ({"location": "Pub"}, "no_location"),
        ({"description": "Live jazz"}, "thin_description"),
        ({"description": "12345 67890 1"}, "thin_description"),
        ({"title": "FOIA Request Guide"}, "banned_title"),
        ({"title": "Building Permits"}, "banned_title"),
        ({"title": "Jazz Quartet", "date_info": "", "time_start": ""}, "implausible_date"),
    ])
    def test_rejections(self, make_record, now, overrides, reason):
        """Each rule rejects with its own reason."""
        with pytest.raises(AdmissionRejected) as exc:
            admit(self._event(make_record, **overrides), now)
        assert exc.value.reason == reason

    def test_banned_fragment_is_word_prefix(self, make_record, now):
        """Fragments match at word starts only, not inside words."""
        admit(self._event(make_record, title="Espresso Tasting"), now)

    def test_time_rescues_missing_date(self, make_record, now):
        """A start time alone counts as date evidence."""
        admit(self._event(make_record, date_info="", time_start="7:00 PM"), now)


class TestTrustedSources:
    """Tests for the trusted-source location fallback."""

    @pytest.mark.parametrize("url,expected", [
        ("https://do312.com/events/x", True),
        ("https://www.timeout.com/chicago/things", True),
        ("https://notdo312.com/events/x", False),
        ("https://example-blog.test/x", False),
        (None, False),
    ])
    def test_is_trusted(self, url, expected):
        """Trusted hosts match exactly or by subdomain."""
        assert is_trusted_source(url) is expected

    def test_placeholder_location(self, make_record, now):
        """Trusted records without a venue get the city placeholder."""
        records = [
            make_record(title="Rooftop Party", location="", event_url="https://do312.com/events/rooftop"),
            make_record(title="Blog Meetup", location="", event_url="https://example-blog.test/meetup"),
        ]
        result = consolidate(records, now=now, city_placeholder="Chicago")

        assert [(e.title, e.location) for e in result.events] == [("Rooftop Party", "Chicago")]
        assert result.rejected["no_location"] == 1


class TestConsolidate:
    """Tests for the full consolidation pass."""

    def test_retention_window(self, make_record, now):
        """Events more than a year old are dropped, recent ones kept."""
        records = [
            make_record(title="Old Gala", date_info="2023-10-28", time_start=""),
            make_record(title="Recent Gala", date_info="2024-11-01", time_start=""),
        ]
        result = consolidate(records, now=now)

        assert [e.title for e in result.events] == ["Recent Gala"]
        assert result.rejected["outside_window"] == 1

    def test_duplicates(self, make_record, now):
        """Same title and date text is one event; the first wins."""
        records = [
            make_record(location="The Green Mill"),
            make_record(title="JAZZ  night", location="Green Mill Lounge"),
        ]
        result = consolidate(records, now=now)

        assert len(result.events) == 1
        assert result.events[0].location == "The Green Mill"
        assert result.rejected["duplicate"] == 1

    def test_missing_title(self, make_record, now):
        """Records without a title are counted, not raised."""
        result = consolidate([make_record(title=""), "not a record"], now=now)
        assert result.events == []
        assert result.rejected["no_title"] == 2

    def test_sorted_soonest_first(self, make_record, now):
        """Output is ordered by resolved timestamp."""
        records = [
            make_record(title="February Show", date_info="Feb 2, 2025"),
            make_record(title="January Show", date_info="Jan 3, 2025"),
        ]
        titles = [e.title for e in consolidate(records, now=now).events]
        assert titles == ["January Show", "February Show"]

    def test_id_recomputed(self, make_record, now):
        """Incoming ids are replaced by the content fingerprint."""
        event = consolidate([make_record(id="bogus")], now=now).events[0]
        assert event.id == fingerprint("Jazz Night", "Jan 5, 2025", "The Green Mill")
        assert event.resolved_timestamp == "2025-01-05T20:00:00"

    def test_junk_description_rejected(self, make_record, now):
        """A description that is all script is cleaned away, then rejected."""
        result = consolidate([make_record(description="function() { return 1 }")], now=now)
        assert result.rejected["thin_description"] == 1

    def test_oversized_location_rejected(self, make_record, now):
        """Oversized location text is dropped rather than truncated."""
        result = consolidate([make_record(location="Hall " * 500)], now=now)
        assert result.rejected["no_location"] == 1

    def test_idempotent(self, make_record, now):
        """Consolidating the output again changes nothing."""
        records = [
            make_record(),
            make_record(title="Comedy Hour", date_info="Jan 12, 2025", location="Laugh Factory"),
            make_record(title="Rooftop Party", location="", event_url="https://do312.com/e/1"),
            make_record(title="Tom Trio", description="Tom &amp;lt;b&amp;gt; plays jazz standards all night."),
        ]
        first = consolidate(records, now=now).events
        second = consolidate(first, now=now).events

        assert [e.to_record() for e in second] == [e.to_record() for e in first]
        assert "Tom plays jazz standards all night." in [e.description for e in first]

    def test_odd_provenance_is_kept_as_text(self, make_record, now):
        """Non-text provenance values do not stop the run."""
        records = [
            make_record(provenance={"source": 7}),
            make_record(title="Other Gig", scraped_at=1735689600),
        ]
        result = consolidate(records, now=now)

        assert [e.title for e in result.events] == ["Jazz Night", "Other Gig"]
        assert result.events[0].provenance.source == "7"
        assert result.events[1].provenance.scraped_at == "1735689600"

    def test_malformed_record_is_counted(self, make_record, now, monkeypatch):
        """A record the model refuses is counted as malformed, not raised."""
        def refuse(record, cleaner):
            if record["title"] == "Bad Gig":
                return CanonicalEvent(id="x", title="", event_url="https://x.test/")
            return normalize_record(record, cleaner=cleaner)

        monkeypatch.setattr(consolidator, "normalize_record", refuse)
        result = consolidate([make_record(title="Bad Gig"), make_record()], now=now)

        assert [e.title for e in result.events] == ["Jazz Night"]
        assert result.rejected["malformed"] == 1

    def test_alias_fields(self, now):
        """Older flat shapes are mapped onto the canonical fields."""
        record = {
            "name": "Trivia Tuesday",
            "startDate": "2025-01-07",
            "startTime": "7:00 PM",
            "venue": "Fountainhead Pub",
            "description": "Six rounds of general knowledge trivia.",
            "link": "https://pub.test/trivia",
            "source": "legacy",
        }
        event = consolidate([record], now=now).events[0]
        assert event.event_url == "https://pub.test/trivia"
        assert event.location == "Fountainhead Pub"
        assert event.provenance.source == "legacy"


class TestRecordFiles:
    """Tests for loading, merging and writing record files."""

    def test_merge_record_sets(self, make_record):
        """Exact repeats across sets are dropped, order kept."""
        a = [make_record(), make_record(title="Comedy Hour")]
        b = [make_record(title="jazz night "), make_record(title="Poetry Slam")]
        merged = merge_record_sets(a, b)
        assert [r["title"] for r in merged] == ["Jazz Night", "Comedy Hour", "Poetry Slam"]

    def test_load_shapes(self, tmp_path, make_record):
        """Arrays and ``{"events": [...]}`` wrappers both load."""
        wrapped = tmp_path / "wrapped.json"
        wrapped.write_text(json.dumps({"events": [make_record(), 3]}))
        flat = tmp_path / "flat.json"
        flat.write_text(json.dumps([make_record()]))

        assert len(load_records(wrapped)) == 1
        assert len(load_records(flat)) == 1

    def test_load_unreadable(self, tmp_path):
        """Missing or broken files load as empty."""
        broken = tmp_path / "broken.json"
        broken.write_text("{nope")
        assert load_records(tmp_path / "missing.json") == []
        assert load_records(broken) == []

    def test_write_records(self, tmp_path, make_record, now):
        """Events are written as a JSON array of records."""
        events = consolidate([make_record()], now=now).events
        path = tmp_path / "out" / "events.json"

        assert write_records(path, events) == 1
        data = json.loads(path.read_text())
        assert data[0]["title"] == "Jazz Night"
        assert data[0]["provenance"]["source"] == "test"


class TestBuildDataset:
    """End-to-end consolidation from record files."""

    def test_two_sources_one_event(self, tmp_path, make_record, now):
        """The same event from two sources appears once in the dataset."""
        one = tmp_path / "crawl.json"
        one.write_text(json.dumps([make_record()]))
        two = tmp_path / "feed.json"
        two.write_text(json.dumps({"events": [make_record(location="Green Mill Cocktail Lounge")]}))
        out = tmp_path / "dataset.json"

        result = build_dataset([one, two], out, now=now)

        assert len(result.events) == 1
        assert result.rejected["duplicate"] == 1
        assert len(json.loads(out.read_text())) == 1
