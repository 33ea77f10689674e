import pandas as pd
import pytest

from team_perf.core.config import Fields
from team_perf.core.fields import (
    assigned_to_name,
    days_between,
    extract_field,
    month_key,
    parse_date,
    resolve_now,
)
from team_perf.core.mappers import map_person
from team_perf.core.models import Person, WorkItem


def test_extract_field_defaults_for_missing_and_null():
    item = WorkItem(id=1, fields={Fields.TITLE: "Fix login", Fields.REASON: None})
    assert extract_field(item, Fields.TITLE) == "Fix login"
    assert extract_field(item, Fields.REASON, "") == ""
    assert extract_field(item, Fields.STATE, "Unknown") == "Unknown"


@pytest.mark.parametrize(
    "value, expected",
    [
        (None, "Unassigned"),
        ("   ", "Unassigned"),
        ("Ada Lovelace", "Ada Lovelace"),
        (Person(display_name="Grace Hopper", unique_name="grace@example.com"), "Grace Hopper"),
        (Person(display_name=None), "Unknown"),
        ({"displayName": "Linus"}, "Linus"),
        ({}, "Unassigned"),
        ({"uniqueName": "nobody@example.com"}, "Unknown"),
    ],
)
def test_assigned_to_name_normalizes_union(value, expected):
    assert assigned_to_name(value) == expected


def test_parse_date_handles_bad_input_and_sentinel():
    ts = parse_date("2025-01-11T08:30:00Z")
    assert ts == pd.Timestamp("2025-01-11T08:30:00", tz="UTC")
    assert parse_date("2025-01-11").tzinfo is not None
    assert parse_date(None) is None
    assert parse_date("") is None
    assert parse_date("not a date") is None
    assert parse_date("9999-01-01T00:00:00Z") is None


def test_days_between_floors_whole_days():
    start = parse_date("2025-01-01T00:00:00Z")
    assert days_between(start, parse_date("2025-01-11T00:00:00Z")) == 10
    assert days_between(start, parse_date("2025-01-01T23:00:00Z")) == 0
    assert days_between(start, parse_date("2024-12-31T23:00:00Z")) == -1


def test_month_key():
    assert month_key("2025-03-05T10:00:00Z") == "2025-03"
    assert month_key(None) is None


def test_resolve_now_uses_injected_value():
    assert resolve_now("2025-03-01") == pd.Timestamp("2025-03-01", tz="UTC")
    with pytest.raises(ValueError):
        resolve_now("garbage")


@pytest.mark.parametrize(
    "raw, expected",
    [
        (None, None),
        ({}, None),
        ("Ada", "Ada"),
        ({"displayName": "Ada", "uniqueName": "ada@example.com"}, Person("Ada", "ada@example.com")),
    ],
)
def test_map_person_returns_name_identity_or_none(raw, expected):
    assert map_person(raw) == expected
