import pytest

from team_perf.analytics.metrics.daily_wip import analyze_daily_wip, build_active_periods
from team_perf.analytics.metrics.flow_efficiency import analyze_flow_efficiency, efficiency_rating
from team_perf.analytics.metrics.time_in_state import analyze_time_in_state
from team_perf.core.config import Fields
from team_perf.core.fields import parse_date
from team_perf.core.models import FieldChange, TeamMember, UpdateEvent, WorkItem

ROSTER = [TeamMember("Ada"), TeamMember("Bob")]
NOW = "2025-01-10T00:00:00Z"


def _item(item_id, assignee="Ada", created="2025-01-01T00:00:00Z", state="Active"):
    return WorkItem(
        id=item_id,
        fields={
            Fields.TITLE: f"Item {item_id}",
            Fields.ASSIGNED_TO: assignee,
            Fields.CREATED_DATE: created,
            Fields.STATE: state,
        },
    )


def _update(item_id, rev, when, state=None, assignee=None):
    changes = {}
    if state is not None:
        changes[Fields.STATE] = FieldChange(*state)
    if assignee is not None:
        changes[Fields.ASSIGNED_TO] = FieldChange(*assignee)
    return UpdateEvent(work_item_id=item_id, rev=rev, revised_date=parse_date(when), fields=changes)


def _timeline_fixture():
    items = [_item(1, state="Closed"), _item(2), _item(3, assignee="Carol"), _item(4)]
    updates = [
        _update(1, 1, "2025-01-01T00:00:00Z", state=(None, "New")),
        _update(1, 2, "2025-01-03T00:00:00Z", state=("New", "Active")),
        _update(1, 3, "2025-01-08T00:00:00Z", state=("Active", "Closed")),
        _update(2, 1, "2025-01-01T00:00:00Z", state=(None, "New")),
        _update(2, 2, "2025-01-05T00:00:00Z", state=("New", "Active")),
        _update(3, 1, "2025-01-01T00:00:00Z", state=(None, "New")),
        _update(3, 2, "2025-01-02T00:00:00Z", state=("New", "Active")),
    ]
    return items, updates


def test_time_in_state_per_item_member_and_team():
    items, updates = _timeline_fixture()
    result = analyze_time_in_state(items, updates, ROSTER, now=NOW)

    assert [b.id for b in result.by_work_item] == [1, 2]
    first = result.by_work_item[0]
    assert first.state_breakdown == {"New": 2, "Active": 5, "Closed": 2}
    assert first.total_cycle_time == 9
    assert (first.longest_state, first.longest_state_days) == ("Active", 5)

    ada = result.by_member["Ada"]
    assert ada.total_items == 2
    # trailing intervals are not pooled: New [2, 4], Active [5]
    assert ada.avg_time_in_states == {"New": 3.0, "Active": 5.0}
    assert (ada.bottleneck_state, ada.bottleneck_avg_days) == ("Active", 5.0)
    assert "Bob" not in result.by_member
    assert result.overall.items_analyzed == 2
    assert result.overall.common_bottleneck == "Active"


def test_time_in_state_is_idempotent_with_injected_now():
    items, updates = _timeline_fixture()
    first = analyze_time_in_state(items, updates, ROSTER, now=NOW)
    second = analyze_time_in_state(items, updates, ROSTER, now=NOW)
    assert first == second


def test_flow_efficiency_bounds_and_unclassified_as_wait():
    items = [_item(1), _item(2), _item(3)]
    updates = [
        _update(1, 1, "2025-01-01T00:00:00Z", state=(None, "Active")),
        _update(1, 2, "2025-01-05T00:00:00Z", state=("Active", "In Progress")),
        _update(2, 1, "2025-01-01T00:00:00Z", state=(None, "New")),
        _update(2, 2, "2025-01-05T00:00:00Z", state=("New", "Blocked")),
        _update(3, 1, "2025-01-01T00:00:00Z", state=(None, "Design")),
        _update(3, 2, "2025-01-07T00:00:00Z", state=("Design", "Active")),
    ]
    result = analyze_flow_efficiency(items, updates, ROSTER, now=NOW)
    pct = {e.id: e.efficiency_pct for e in result.by_work_item}
    assert pct[1] == 100.0
    assert pct[2] == 0.0
    assert pct[3] == pytest.approx(100 * 3 / 9)
    assert all(0 <= p <= 100 for p in pct.values())

    ada = result.by_member["Ada"]
    assert ada.items_analyzed == 3
    assert ada.avg_efficiency_pct == pytest.approx((100 + 0 + 100 * 3 / 9) / 3)
    assert ada.efficiency_rating == "Excellent"
    assert result.overall.rating_counts == {"Excellent": 1, "Good": 1, "Fair": 0, "Poor": 1}


@pytest.mark.parametrize(
    "pct, label",
    [(40.0, "Excellent"), (39.99, "Good"), (25.0, "Good"), (15.0, "Fair"), (14.99, "Poor"), (0.0, "Poor")],
)
def test_efficiency_rating_lower_bound_inclusive(pct, label):
    assert efficiency_rating(pct) == label


def _wip_fixture():
    items = [
        _item(1, created="2025-02-20T09:00:00Z", state="Closed"),
        _item(2, created="2025-03-02T09:00:00Z"),
    ]
    updates = [
        _update(1, 1, "2025-02-20T09:00:00Z", state=(None, "New"), assignee=(None, "Ada")),
        _update(1, 2, "2025-03-01T09:00:00Z", state=("New", "Active")),
        _update(1, 3, "2025-03-10T09:00:00Z", state=("Active", "Closed")),
        _update(2, 1, "2025-03-02T09:00:00Z", state=(None, "New"), assignee=(None, "Ada")),
        _update(2, 2, "2025-03-04T00:00:00Z", state=("New", "Active")),
    ]
    return items, updates


def test_daily_wip_overlapping_periods():
    items, updates = _wip_fixture()
    result = analyze_daily_wip(items, updates, ROSTER, "2025-03-01", "2025-03-12", now="2025-03-20")

    assert result.by_date["2025-03-01"].member_wip["Ada"] == 0
    assert result.by_date["2025-03-02"].member_wip["Ada"] == 1
    assert result.by_date["2025-03-05"].member_wip["Ada"] == 2
    assert result.by_date["2025-03-11"].member_wip["Ada"] == 1

    ada = result.by_member["Ada"]
    assert ada.total_days_tracked == 12
    assert (ada.max_wip, ada.max_wip_date) == (2, "2025-03-04")
    assert ada.days_over_warning == 0
    assert result.by_member["Bob"].max_wip_date is None
    assert result.overall.peak_wip_count == 2
    assert result.overall.peak_wip_date == "2025-03-04"
    assert result.overall.high_concurrency_days == 0


def test_active_periods_follow_reassignment_and_unassignment():
    item = _item(5, created="2025-03-01T00:00:00Z")
    updates = [
        _update(5, 1, "2025-03-01T00:00:00Z", state=(None, "Active"), assignee=(None, "Ada")),
        _update(5, 2, "2025-03-05T12:00:00Z", assignee=("Ada", {"displayName": "Bob"})),
        _update(5, 3, "2025-03-08T00:00:00Z", assignee=({"displayName": "Bob"}, None)),
        _update(5, 4, "2025-03-09T00:00:00Z", assignee=(None, "Ada")),
    ]
    periods = build_active_periods(item, updates)
    assert [(p.assigned_to, p.start, p.end) for p in periods] == [
        ("Ada", parse_date("2025-03-01T00:00:00Z"), parse_date("2025-03-05T12:00:00Z")),
        ("Bob", parse_date("2025-03-05T12:00:00Z"), parse_date("2025-03-08T00:00:00Z")),
        ("Ada", parse_date("2025-03-09T00:00:00Z"), None),
    ]


def test_active_periods_close_on_state_exit():
    item = _item(6, created="2025-03-01T00:00:00Z", state="Closed")
    updates = [
        _update(6, 1, "2025-03-01T00:00:00Z", state=(None, "In Progress"), assignee=(None, "Bob")),
        _update(6, 2, "2025-03-03T00:00:00Z", state=("In Progress", "Closed")),
    ]
    periods = build_active_periods(item, updates)
    assert len(periods) == 1
    assert periods[0].end == parse_date("2025-03-03T00:00:00Z")


def _same_day_fixture():
    items = [_item(1, created="2025-01-10T00:00:00Z"), _item(2, assignee="Bob")]
    updates = [
        _update(1, 1, "2025-01-10T00:00:00Z", state=(None, "New")),
        _update(1, 2, "2025-01-10T05:00:00Z", state=("New", "Active")),
        _update(2, 1, "2025-01-01T00:00:00Z", state=(None, "New")),
        _update(2, 2, "2025-01-05T00:00:00Z", state=("New", "Active")),
    ]
    return items, updates


def test_time_in_state_skips_items_with_zero_day_history():
    items, updates = _same_day_fixture()
    result = analyze_time_in_state(items, updates, ROSTER, now="2025-01-10T12:00:00Z")

    assert [b.id for b in result.by_work_item] == [2]
    assert "Ada" not in result.by_member
    assert result.by_member["Bob"].total_items == 1
    assert result.overall.items_analyzed == 1
    assert result.overall.avg_time_by_state == {"New": 4.0}


def test_flow_efficiency_skips_items_with_zero_day_history():
    items, updates = _same_day_fixture()
    result = analyze_flow_efficiency(items, updates, ROSTER, now="2025-01-10T12:00:00Z")

    assert [e.id for e in result.by_work_item] == [2]
    assert "Ada" not in result.by_member
    assert result.by_member["Bob"].items_analyzed == 1
    assert sum(result.overall.rating_counts.values()) == 1


def _busy_fixture():
    # 3 items active from 03-01, a 4th from 03-02, two more from 03-03
    starts = {
        1: "2025-03-01T00:00:00Z",
        2: "2025-03-01T00:00:00Z",
        3: "2025-03-01T00:00:00Z",
        4: "2025-03-02T00:00:00Z",
        5: "2025-03-03T00:00:00Z",
        6: "2025-03-03T00:00:00Z",
    }
    items = [_item(item_id, created=created) for item_id, created in starts.items()]
    updates = [
        _update(item_id, 1, created, state=(None, "Active"), assignee=(None, "Ada"))
        for item_id, created in starts.items()
    ]
    return items, updates


def test_daily_wip_threshold_counts_are_strict():
    items, updates = _busy_fixture()
    result = analyze_daily_wip(items, updates, [TeamMember("Ada")], "2025-03-01", "2025-03-04", now="2025-03-20")

    series = [result.by_date[d].member_wip["Ada"] for d in ("2025-03-01", "2025-03-02", "2025-03-03", "2025-03-04")]
    assert series == [3, 4, 6, 6]
    ada = result.by_member["Ada"]
    assert ada.days_over_warning == 3
    assert ada.days_over_critical == 2
    assert (ada.max_wip, ada.max_wip_date) == (6, "2025-03-03")
    assert ada.avg_wip == pytest.approx(4.75)
    assert ada.wip_distribution == {3: 1, 4: 1, 6: 2}
    assert result.thresholds == (3, 5)
    # team average per member above 3: the 4, 6 and 6 days
    assert result.overall.high_concurrency_days == 3


def test_high_concurrency_divides_by_roster_size():
    items, updates = _busy_fixture()
    result = analyze_daily_wip(items, updates, ROSTER, "2025-03-01", "2025-03-04", now="2025-03-20")

    assert result.by_member["Ada"].days_over_warning == 3
    assert result.by_member["Bob"].days_over_warning == 0
    assert result.overall.high_concurrency_days == 0
