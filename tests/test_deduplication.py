"""Tests for duplicate scoring, grouping and merging."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from hacksniffer.core.exceptions import ValidationError
from hacksniffer.scrapers.base import CandidateRecord, SourceId
from hacksniffer.services.deduplication import (
    SimilarityWeights,
    content_fingerprint,
    find_duplicate_groups,
    is_duplicate,
    levenshtein_distance,
    levenshtein_similarity,
    merge_duplicates,
    similarity,
)

START = datetime(2030, 10, 15, tzinfo=timezone.utc)


def make_record(**overrides) -> CandidateRecord:
    values = dict(
        title="AI Hack 2030",
        description=None,
        start_date=START,
        end_date=START + timedelta(days=2),
        location="Online",
        is_online=True,
        website_url="https://devpost.com/hackathons/ai-hack",
        source=SourceId.DEVPOST,
    )
    values.update(overrides)
    return CandidateRecord(**values)


class TestCandidateRecord:
    """Construction-time validation."""

    def test_start_must_precede_end(self):
        with pytest.raises(ValidationError):
            make_record(end_date=START)

    def test_title_and_location_required(self):
        with pytest.raises(ValidationError):
            make_record(title="   ")
        with pytest.raises(ValidationError):
            make_record(location="")

    def test_unknown_source_rejected(self):
        with pytest.raises(ValidationError):
            make_record(source="meetup")

    def test_naive_dates_become_utc(self):
        record = make_record(start_date=datetime(2030, 10, 15), end_date=datetime(2030, 10, 17))
        assert record.start_date.tzinfo is not None
        assert record.start_date == START

    def test_canonical_url_falls_back_to_registration(self):
        record = make_record(website_url=None, registration_url="https://www.lu.ma/ai?utm_source=x")
        assert record.canonical_url == "https://lu.ma/ai"


class TestSimilarity:
    """Weighted pairwise score."""

    def test_levenshtein(self):
        assert levenshtein_distance("kitten", "sitting") == 3
        assert levenshtein_similarity("Hack", "hack ") == 1.0
        assert levenshtein_similarity("", "hack") == 0.0

    def test_identical_records_score_one(self):
        assert similarity(make_record(), make_record()) == pytest.approx(1.0)

    def test_symmetric(self):
        a = make_record(title="HackMIT", location="Cambridge, MA", is_online=False)
        b = make_record(title="Hack MIT 2030", location="Cambridge", start_date=START + timedelta(days=1))
        assert similarity(a, b) == pytest.approx(similarity(b, a))
        assert 0.0 <= similarity(a, b) <= 1.0

    def test_online_and_virtual_same_event(self):
        a = make_record(title="AI Hack 2024", location="Online")
        b = make_record(title="AI Hackathon 2024", location="Virtual", source=SourceId.MLH)

        assert similarity(a, b) >= 0.85
        groups = find_duplicate_groups([a, b])
        assert len(groups) == 1
        assert groups[0].primary is a
        assert groups[0].duplicates == [b]

    def test_near_dates_earn_half_credit(self):
        a = make_record()
        b = make_record(start_date=START + timedelta(days=2), end_date=START + timedelta(days=4))
        c = make_record(start_date=START + timedelta(days=10), end_date=START + timedelta(days=12))

        assert similarity(a, b) == pytest.approx(0.4 + 0.15 + 0.2 + 0.1)
        assert similarity(a, c) == pytest.approx(0.4 + 0.2 + 0.1)

    def test_synthesized_dates_never_match(self):
        a = make_record(dates_synthesized=True)
        b = make_record()
        assert similarity(a, b) == pytest.approx(0.7)

    def test_custom_weights(self):
        weights = SimilarityWeights(title=1.0, date=0.0, location=0.0, online=0.0)
        a = make_record(location="Berlin", is_online=False)
        b = make_record(location="Tokyo", is_online=True)
        assert similarity(a, b, weights) == pytest.approx(1.0)

    def test_malformed_records_score_zero(self):
        broken = SimpleNamespace(title="", location="Online", start_date=START, end_date=START, is_online=True)
        assert similarity(make_record(), broken) == 0.0
        assert content_fingerprint(broken) is None
        assert is_duplicate(make_record(), broken) is False


class TestFingerprint:
    def test_case_and_whitespace_insensitive(self):
        a = make_record(title="  AI Hack 2030 ", location="ONLINE")
        b = make_record(title="ai hack 2030", location="online")
        assert content_fingerprint(a) == content_fingerprint(b)
        assert is_duplicate(a, b)

    def test_differs_on_dates(self):
        a = make_record()
        b = make_record(end_date=START + timedelta(days=3))
        assert content_fingerprint(a) != content_fingerprint(b)


class TestGrouping:
    """Greedy single-pass grouping."""

    def test_unique_records_form_no_groups(self):
        records = [
            make_record(title="Climate Hack", location="Oslo", is_online=False),
            make_record(title="Fintech Jam", location="London", is_online=False, start_date=START + timedelta(days=30), end_date=START + timedelta(days=32)),
        ]
        assert find_duplicate_groups(records) == []

    def test_each_record_joins_one_group(self):
        a = make_record()
        b = make_record(title="AI Hack 2030!")
        c = make_record(title="Quantum Weekend", location="Zurich", is_online=False, start_date=START + timedelta(days=60), end_date=START + timedelta(days=62))
        d = make_record(title="ai hack 2030")

        groups = find_duplicate_groups([a, b, c, d])

        assert len(groups) == 1
        assert groups[0].primary is a
        assert groups[0].duplicates == [b, d]
        assert groups[0].members == [a, b, d]

    def test_threshold_is_respected(self):
        a = make_record(title="AI Hack 2024", location="Online")
        b = make_record(title="AI Hackathon 2024", location="Virtual")
        assert find_duplicate_groups([a, b], threshold=0.95) == []


class TestMerge:
    """Merging a duplicate group into one record."""

    def test_highest_priority_source_is_base(self):
        devpost = make_record(title="AI Hack 2024", source=SourceId.DEVPOST)
        eventbrite = make_record(title="AI Hack (Eventbrite)", source=SourceId.EVENTBRITE)
        mlh = make_record(title="AI Hackathon 2024", location="Virtual", source=SourceId.MLH)

        merged = merge_duplicates([eventbrite, devpost, mlh])

        assert merged.source == SourceId.MLH
        assert merged.title == "AI Hackathon 2024"
        assert merged.location == "Virtual"

    def test_ties_go_to_earliest(self):
        first = make_record(title="First")
        second = make_record(title="Second")
        assert merge_duplicates([first, second]).title == "First"

    def test_field_rules(self):
        early = START - timedelta(days=10)
        late = START - timedelta(days=3)
        base = make_record(source=SourceId.MLH, website_url=None, description="Short", registration_deadline=late)
        other = make_record(
            description="A much longer description of the event",
            registration_url="https://devpost.com/register/ai",
            registration_deadline=early,
        )

        merged = merge_duplicates([other, base])

        assert merged.description == "A much longer description of the event"
        assert merged.registration_deadline == early
        assert merged.registration_url == "https://devpost.com/register/ai"
        assert merged.website_url == "https://devpost.com/hackathons/ai-hack"

    def test_base_website_url_wins(self):
        base = make_record(source=SourceId.MLH, website_url="https://mlh.io/events/ai")
        other = make_record(website_url="https://devpost.com/hackathons/ai-hack")
        assert merge_duplicates([other, base]).website_url == "https://mlh.io/events/ai"

    def test_accepts_stored_rows(self):
        row = SimpleNamespace(**make_record().to_fields())
        merged = merge_duplicates([make_record(description="From the scrape"), row])
        assert merged.description == "From the scrape"

    def test_real_dates_survive_placeholder_rescrape(self):
        placeholder_start = START + timedelta(days=40)
        rescrape = make_record(
            start_date=placeholder_start,
            end_date=placeholder_start + timedelta(days=30),
            dates_synthesized=True,
        )
        stored = SimpleNamespace(**make_record(description="Stored").to_fields())

        merged = merge_duplicates([rescrape, stored])

        assert merged.start_date == START
        assert merged.end_date == START + timedelta(days=2)
        assert merged.dates_synthesized is False
        assert merged.description == "Stored"

    def test_placeholder_dates_kept_when_nothing_better(self):
        placeholder_start = START + timedelta(days=40)
        only = make_record(
            start_date=placeholder_start,
            end_date=placeholder_start + timedelta(days=30),
            dates_synthesized=True,
        )
        also_guessed = make_record(
            start_date=placeholder_start + timedelta(days=1),
            end_date=placeholder_start + timedelta(days=31),
            dates_synthesized=True,
            source=SourceId.EVENTBRITE,
        )

        merged = merge_duplicates([only, also_guessed])

        assert merged.start_date == placeholder_start
        assert merged.dates_synthesized is True

    def test_empty_group_rejected(self):
        with pytest.raises(ValueError):
            merge_duplicates([])
