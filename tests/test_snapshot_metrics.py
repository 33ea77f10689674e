import pandas as pd

from team_perf.analytics.metrics.cycle_time import analyze_cycle_time
from team_perf.analytics.metrics.estimation import analyze_estimation_accuracy
from team_perf.analytics.metrics.rework import analyze_reopened_items, is_rework
from team_perf.analytics.metrics.state_distribution import analyze_state_distribution
from team_perf.analytics.metrics.work_item_age import analyze_work_item_age
from team_perf.analytics.metrics.work_patterns import analyze_work_patterns, bucket_sizes
from team_perf.core.config import Fields
from team_perf.core.models import Person, TeamMember, WorkItem

ROSTER = [TeamMember("Ada"), TeamMember("Bob")]


def _item(item_id, **fields):
    names = {
        "state": Fields.STATE,
        "assignee": Fields.ASSIGNED_TO,
        "created": Fields.CREATED_DATE,
        "changed": Fields.CHANGED_DATE,
        "closed": Fields.CLOSED_DATE,
        "common_closed": Fields.COMMON_CLOSED_DATE,
        "reason": Fields.REASON,
        "estimate": Fields.ORIGINAL_ESTIMATE,
        "completed": Fields.COMPLETED_WORK,
        "type": Fields.WORK_ITEM_TYPE,
    }
    return WorkItem(id=item_id, fields={names[k]: v for k, v in fields.items()})


def test_cycle_time_closed_item_is_ten_days():
    items = [_item(1, state="Closed", assignee="Ada", created="2025-01-01", closed="2025-01-11")]
    result = analyze_cycle_time(items, ROSTER)
    assert result.by_member["Ada"].avg == 10
    assert result.by_member["Ada"].median == 10
    assert result.by_month["2025-01"].count == 1
    assert result.overall.count == 1
    assert "Bob" not in result.by_member


def test_cycle_time_filters_and_type_minimum():
    items = [
        _item(1, state="Done", assignee="Ada", created="2025-01-01", common_closed="2025-01-03", type="Bug"),
        _item(2, state="5 - Done", assignee=Person("Ada"), created="2025-01-01", closed="2025-01-05", type="Bug"),
        _item(3, state="Closed", assignee="Bob", created="2025-02-01", closed="2025-02-07", type="Bug"),
        _item(4, state="Closed", assignee="Bob", created="2025-02-01", closed="2025-02-02", type="Task"),
        _item(5, state="Active", assignee="Ada", created="2025-01-01", closed="2025-01-09"),
        _item(6, state="Closed", assignee="Ada", created="2025-01-10", closed="2025-01-01"),
        _item(7, state="Closed", assignee="Carol", created="2025-01-01", closed="2025-01-02"),
    ]
    result = analyze_cycle_time(items, ROSTER)
    assert result.by_member["Ada"].count == 2
    assert result.by_member["Ada"].avg == 3
    assert list(result.by_type) == ["Bug"]
    assert result.by_type["Bug"].count == 3
    assert result.overall.count == 5
    assert set(result.by_month) == {"2025-01", "2025-02"}


def test_estimation_accuracy_variance_and_high_variance_count():
    items = [
        _item(1, assignee="Ada", created="2025-01-02", estimate=10, completed=15),
        _item(2, assignee="Ada", created="2025-01-03", estimate=10, completed=4),
        _item(3, assignee="Ada", created="2025-01-04", estimate=0, completed=4),
        _item(4, assignee="Ada", created="2025-01-05", estimate=8, completed=0),
        _item(5, assignee="Ada", created="2025-01-05", estimate=8),
    ]
    result = analyze_estimation_accuracy(items, ROSTER, high_variance_threshold=50)
    ada = result.by_member["Ada"]
    assert ada.item_count == 2
    assert (ada.total_estimate, ada.total_actual) == (20, 19)
    assert ada.variance_pct == -5.0
    assert ada.avg_variance == -5.0
    assert ada.median_variance == 50.0
    assert ada.high_variance_items == 1
    assert result.by_month["2025-01"].item_count == 2


def test_work_item_age_counts_open_roster_items():
    items = [
        _item(1, state="Active", assignee="Ada", created="2025-01-01"),
        _item(2, state="New", assignee="Ada", created="2024-12-01"),
        _item(3, state="Closed", assignee="Ada", created="2024-01-01"),
        _item(4, state="Removed", assignee="Ada", created="2024-01-01"),
        _item(5, state="Active", assignee="Carol", created="2024-01-01"),
    ]
    result = analyze_work_item_age(items, ROSTER, 60, now="2025-03-01")
    ada = result.by_member["Ada"]
    assert ada.count == 2
    assert ada.max_age_days == 90
    assert ada.items_over_threshold == 1
    assert result.overall.total_items == 2
    assert result.overall.items_over_threshold == 1


def test_work_patterns_months_and_size_buckets():
    items = [
        _item(1, state="Closed", created="2025-01-05", closed="2025-02-01", completed=2),
        _item(2, state="Active", created="2025-01-10", completed=8),
        _item(3, state="New", created="2025-02-01"),
        _item(4, state="New", created="2025-02-03", completed=0),
        _item(5, state="Closed", created="2025-02-03", closed="2025-02-04", completed=41),
    ]
    result = analyze_work_patterns(items)
    jan = result.creation_vs_completion["2025-01"]
    feb = result.creation_vs_completion["2025-02"]
    assert (jan.created, jan.completed, jan.delta) == (2, 0, -2)
    assert (feb.created, feb.completed, feb.delta) == (3, 2, -1)
    sizes = result.size_distribution
    assert sizes["Tiny (0-2h)"] == 1
    assert sizes["Small (2-8h)"] == 1
    assert sizes["XLarge (>40h)"] == 1
    assert sizes["No estimate"] == 2
    assert sum(sizes.values()) == len(items)


def test_bucket_sizes_right_inclusive_edges():
    labels = bucket_sizes(pd.Series([2.0, 2.5, 20.0, 40.0, None]))
    assert list(labels) == ["Tiny (0-2h)", "Small (2-8h)", "Medium (8-20h)", "Large (20-40h)", "No estimate"]


def test_state_distribution_by_month_and_member():
    items = [
        _item(1, state="Active", assignee="Ada", changed="2025-01-05"),
        _item(2, state="Active", assignee="Ada", changed="2025-01-20"),
        _item(3, state="Closed", assignee="Carol", changed="2025-02-01"),
        _item(4, assignee="Bob", changed="2025-02-02"),
    ]
    result = analyze_state_distribution(items, ROSTER)
    assert result.by_month["2025-01"] == {"Active": 2}
    assert result.by_month["2025-02"] == {"Closed": 1, "Unknown": 1}
    assert result.by_member["Ada"] == {"Active": 2}
    assert result.by_member["Bob"] == {"Unknown": 1}


def test_rework_detects_reactivated_items():
    items = [
        _item(1, state="Active", assignee="Ada", reason="Reactivated by QA"),
        _item(2, state="Closed", assignee="Ada", reason="Completed"),
        _item(3, state="Active", reason="REOPENED"),
        _item(4, state="New"),
    ]
    result = analyze_reopened_items(items)
    assert [i.id for i in result.items] == [1, 3]
    assert result.rework_count == 2
    assert result.rework_rate_pct == 50.0
    assert result.by_member == {"Ada": 1, "Unassigned": 1}
    assert not is_rework(None, ["reopened"])
