from __future__ import annotations

import datetime as dt

import pytest

from sitegrid.timeline import (
    COLUMN_WIDTHS,
    apply_task_filters,
    build_arrow_path,
    calculate_task_dates_from_estimate,
    calculate_timeline_bounds,
    calculate_timeline_position,
    derive_project_milestones,
    generate_timeline_units,
    get_column_index_for_date,
    get_snap_date,
    get_task_grid_position,
    get_today_indicator_position,
    identify_critical_tasks,
    position_milestones,
    validate_task_drag,
    validate_view_mode,
)

JAN_1 = dt.datetime(2025, 1, 1)
JAN_31 = dt.datetime(2025, 1, 31)


def _task(**fields) -> dict:
    base = {"id": 1, "title": "Frame walls", "priority": "medium", "category": None}
    base.update(fields)
    return base


def test_day_units_cover_range_in_order():
    units = generate_timeline_units(dt.datetime(2025, 1, 6, 10, 30), dt.datetime(2025, 1, 12), "days")

    assert [unit.start.day for unit in units] == [6, 7, 8, 9, 10, 11, 12]
    assert units[0].start == dt.datetime(2025, 1, 6)
    assert units[0].label == "Jan 6"
    assert units[0].key == int(dt.datetime(2025, 1, 6, tzinfo=dt.timezone.utc).timestamp() * 1000)
    assert [unit.is_weekend for unit in units] == [False] * 5 + [True, True]
    assert all(earlier.key < later.key for earlier, later in zip(units, units[1:]))


def test_week_units_are_sunday_aligned():
    units = generate_timeline_units(dt.datetime(2025, 1, 8), dt.datetime(2025, 1, 20), "weeks")

    assert [unit.start.date() for unit in units] == [dt.date(2025, 1, 5), dt.date(2025, 1, 12), dt.date(2025, 1, 19)]
    assert not any(unit.is_weekend for unit in units)


def test_month_units_start_on_first():
    units = generate_timeline_units(dt.date(2025, 1, 15), dt.date(2025, 3, 2), "months")

    assert [unit.label for unit in units] == ["Jan 2025", "Feb 2025", "Mar 2025"]
    assert units[1].start == dt.datetime(2025, 2, 1)


def test_reversed_range_produces_no_units():
    assert generate_timeline_units(JAN_31, JAN_1, "days") == []


def test_unknown_view_mode_is_rejected():
    with pytest.raises(ValueError):
        generate_timeline_units(JAN_1, JAN_31, "quarters")


@pytest.mark.parametrize("view_mode", ["days", "weeks", "months"])
def test_unit_start_maps_back_to_its_own_column(view_mode):
    units = generate_timeline_units(JAN_1, dt.datetime(2025, 6, 30), view_mode)

    assert units
    for index, unit in enumerate(units):
        assert get_column_index_for_date(unit.start, units, view_mode) == index


def test_column_index_is_monotonic_and_clamped():
    units = generate_timeline_units(JAN_1, JAN_31, "days")
    dates = [JAN_1 + dt.timedelta(hours=7 * step) for step in range(100)]

    indices = [get_column_index_for_date(value, units, "days") for value in dates]

    assert indices == sorted(indices)
    assert get_column_index_for_date(dt.datetime(2024, 12, 1), units, "days") == 0
    assert get_column_index_for_date(dt.datetime(2025, 3, 1), units, "days") == len(units) - 1
    assert get_column_index_for_date(JAN_1, [], "days") == 0


def test_dates_from_explicit_start_and_due():
    start, end = calculate_task_dates_from_estimate(
        _task(start_date=dt.datetime(2025, 1, 6), due_date=dt.datetime(2025, 1, 9), estimated_hours=80)
    )

    assert (start, end) == (dt.datetime(2025, 1, 6), dt.datetime(2025, 1, 9))


def test_dates_from_start_and_estimate_round_up_to_whole_days():
    start, end = calculate_task_dates_from_estimate(_task(start_date="2025-01-06T08:00:00", estimated_hours=20))

    assert start == dt.datetime(2025, 1, 6, 8)
    assert end == dt.datetime(2025, 1, 9, 8)


def test_dates_from_due_and_estimate():
    start, end = calculate_task_dates_from_estimate(_task(due_date=dt.date(2025, 1, 10), estimated_hours=8))

    assert start == dt.datetime(2025, 1, 9)
    assert end == dt.datetime(2025, 1, 10)


def test_unscheduled_task_defaults_to_today():
    start, end = calculate_task_dates_from_estimate(_task(estimated_hours=0), today=dt.date(2025, 2, 3))

    assert start == dt.datetime(2025, 2, 3)
    assert end == dt.datetime(2025, 2, 4)


def test_due_before_start_never_inverts_range():
    start, end = calculate_task_dates_from_estimate(
        _task(start_date=dt.datetime(2025, 1, 9), due_date=dt.datetime(2025, 1, 6))
    )

    assert start <= end


def test_grid_position_for_task_inside_timeline():
    position = get_task_grid_position(
        _task(start_date=dt.datetime(2025, 1, 7), due_date=dt.datetime(2025, 1, 9)),
        dt.datetime(2025, 1, 6),
        JAN_31,
        "days",
    )

    assert position.start_column_index == 1
    assert position.column_span == 2
    assert position.pixel_left("days") == COLUMN_WIDTHS["days"]
    assert position.pixel_width("days") == 2 * COLUMN_WIDTHS["days"]


@pytest.mark.parametrize("view_mode", ["days", "weeks", "months"])
def test_grid_position_maps_back_to_the_unit_holding_the_task_start(view_mode):
    task = _task(start_date=dt.datetime(2025, 2, 12, 9), due_date=dt.datetime(2025, 2, 20))
    timeline_end = dt.datetime(2025, 6, 30)
    units = generate_timeline_units(JAN_1, timeline_end, view_mode)

    position = get_task_grid_position(task, JAN_1, timeline_end, view_mode, units=units)
    unit = units[position.start_column_index]

    assert get_column_index_for_date(task["start_date"], units, view_mode) == position.start_column_index
    assert unit.start <= task["start_date"]
    if position.start_column_index + 1 < len(units):
        assert task["start_date"] < units[position.start_column_index + 1].start


def test_grid_span_is_clamped_to_remaining_columns():
    position = get_task_grid_position(
        _task(start_date=dt.datetime(2025, 1, 30), due_date=dt.datetime(2025, 2, 10)),
        dt.datetime(2025, 1, 6),
        JAN_31,
        "days",
    )

    assert position.start_column_index == 24
    assert position.column_span == 2


def test_grid_span_is_at_least_one_column():
    position = get_task_grid_position(
        _task(start_date=dt.datetime(2025, 1, 7, 8), due_date=dt.datetime(2025, 1, 7, 8)),
        JAN_1,
        JAN_31,
        "weeks",
    )

    assert position.column_span == 1


def test_drop_on_saturday_is_a_weekend_warning():
    task = _task(start_date=dt.datetime(2025, 1, 7), due_date=dt.datetime(2025, 1, 9))

    result = validate_task_drag(task, dt.datetime(2025, 1, 11, 8), JAN_1, JAN_31)

    assert result.is_valid
    assert result.validity == "warning"
    assert any("weekend" in message for message in result.messages)


def test_drop_running_past_timeline_end_is_invalid():
    task = _task(start_date=dt.datetime(2025, 1, 7), due_date=dt.datetime(2025, 1, 9))

    result = validate_task_drag(task, dt.datetime(2025, 1, 30, 8), JAN_1, JAN_31)

    assert not result.is_valid
    assert result.validity == "invalid"
    assert "Task duration would extend beyond project timeline" in result.messages


def test_combined_drop_problems_collect_every_message_and_keep_worst_validity():
    task = _task(start_date=dt.datetime(2025, 1, 6), due_date=dt.datetime(2025, 1, 16))

    result = validate_task_drag(task, dt.datetime(2025, 1, 25, 8), JAN_1, JAN_31)

    assert not result.is_valid
    assert result.validity == "invalid"
    assert result.messages == [
        "Task scheduled on weekend",
        "Task duration would extend beyond project timeline",
    ]


def test_drop_outside_timeline_is_invalid():
    task = _task(start_date=dt.datetime(2025, 1, 7), due_date=dt.datetime(2025, 1, 9))

    result = validate_task_drag(task, dt.datetime(2024, 12, 20), JAN_1, JAN_31)

    assert result.validity == "invalid"
    assert "Task cannot be moved outside the project timeline" in result.messages


def test_drop_within_one_day_buffer_is_allowed():
    task = _task(start_date=dt.datetime(2025, 1, 7), due_date=dt.datetime(2025, 1, 7, 4))

    result = validate_task_drag(task, dt.datetime(2024, 12, 31, 12), JAN_1, JAN_31)

    assert result.is_valid
    assert "Task cannot be moved outside the project timeline" not in result.messages


def test_clean_drop_describes_the_move():
    task = _task(start_date=dt.datetime(2025, 1, 7), due_date=dt.datetime(2025, 1, 9))

    result = validate_task_drag(task, dt.datetime(2025, 1, 14), JAN_1, JAN_31)

    assert result.validity == "valid"
    assert result.messages == ["Move task to 2025-01-14 (2 days)"]


def test_overlap_with_same_assignee_warns_per_task():
    task = _task(id=1, assignee_id=7, start_date=dt.datetime(2025, 1, 7), due_date=dt.datetime(2025, 1, 9))
    others = [
        task,
        _task(id=2, title="Pour slab", assignee_id=7, start_date=dt.datetime(2025, 1, 15), due_date=dt.datetime(2025, 1, 17)),
        _task(id=3, title="Roofing", assignee_id=7, start_date=dt.datetime(2025, 1, 16), due_date=dt.datetime(2025, 1, 20)),
        _task(id=4, title="Paint", assignee_id=8, start_date=dt.datetime(2025, 1, 15), due_date=dt.datetime(2025, 1, 17)),
    ]

    result = validate_task_drag(task, dt.datetime(2025, 1, 16), JAN_1, JAN_31, all_tasks=others)

    assert result.validity == "warning"
    assert 'Would overlap with "Pour slab"' in result.messages
    assert 'Would overlap with "Roofing"' in result.messages
    assert not any("Paint" in message for message in result.messages)


def test_moving_critical_task_earlier_warns():
    task = _task(priority="critical", start_date=dt.datetime(2025, 1, 14), due_date=dt.datetime(2025, 1, 16))

    result = validate_task_drag(task, dt.datetime(2025, 1, 8), JAN_1, JAN_31)

    assert result.validity == "warning"
    assert "Moving critical task earlier may affect project timeline" in result.messages


def test_short_task_warns_about_duration():
    task = _task(start_date=dt.datetime(2025, 1, 7, 8), due_date=dt.datetime(2025, 1, 7, 8, 30))

    result = validate_task_drag(task, dt.datetime(2025, 1, 8, 8), JAN_1, JAN_31)

    assert result.validity == "warning"
    assert "Task duration is shorter than one hour" in result.messages


def test_unparseable_drop_date_returns_early():
    result = validate_task_drag(_task(), "not-a-date", JAN_1, JAN_31)

    assert result.validity == "invalid"
    assert result.messages == ["Invalid drop date"]


def test_reversed_bounds_return_early():
    result = validate_task_drag(_task(), dt.datetime(2025, 1, 8), JAN_31, JAN_1)

    assert result.messages == ["Invalid timeline bounds"]


def test_snap_dates_per_view_mode():
    assert get_snap_date(dt.datetime(2025, 1, 8, 10, 15), "days") == dt.datetime(2025, 1, 8, 12)
    assert get_snap_date(dt.datetime(2025, 1, 8, 2, 0), "days") == dt.datetime(2025, 1, 8)
    assert get_snap_date(dt.datetime(2025, 1, 8, 21, 0), "days") == dt.datetime(2025, 1, 9)
    assert get_snap_date(dt.datetime(2025, 1, 8, 21, 0), "weeks") == dt.datetime(2025, 1, 8)
    assert get_snap_date(dt.datetime(2025, 1, 8, 21, 0), "months") == dt.datetime(2025, 1, 6)


def test_timeline_bounds_pad_task_dates_by_a_week():
    tasks = [
        _task(start_date=dt.datetime(2025, 2, 3), due_date=dt.datetime(2025, 2, 7)),
        _task(start_date=dt.datetime(2025, 2, 10), due_date=None),
    ]

    start, end = calculate_timeline_bounds(tasks)

    assert start == dt.datetime(2025, 1, 27)
    assert end == dt.datetime(2025, 2, 17)


def test_timeline_bounds_without_dates_span_three_months():
    start, end = calculate_timeline_bounds([_task()], today=dt.date(2025, 1, 15))

    assert start == dt.datetime(2025, 1, 1)
    assert end == dt.datetime(2025, 3, 31)


def test_timeline_position_is_clamped_percentage():
    assert calculate_timeline_position(dt.datetime(2025, 1, 16), JAN_1, JAN_31) == 50.0
    assert calculate_timeline_position(dt.datetime(2024, 12, 1), JAN_1, JAN_31) == 0.0
    assert calculate_timeline_position(dt.datetime(2025, 3, 1), JAN_1, JAN_31) == 100.0


def test_today_indicator_centres_on_todays_column():
    units = generate_timeline_units(JAN_1, JAN_31, "days")

    assert get_today_indicator_position(units, "days", today=dt.datetime(2025, 1, 3, 15)) == 2 * 96 + 48
    assert get_today_indicator_position(units, "days", today=dt.datetime(2025, 2, 3)) is None


def test_critical_tasks_by_priority_category_or_length():
    tasks = [
        _task(id=1, priority="critical", start_date=JAN_1, due_date=JAN_31),
        _task(id=2, category="Foundation", start_date=JAN_1, due_date=JAN_31),
        _task(id=3, start_date=JAN_1, due_date=dt.datetime(2025, 1, 2)),
        _task(id=4, category="painting", start_date=JAN_1, due_date=JAN_31),
    ]

    assert [task["id"] for task in identify_critical_tasks(tasks)] == [1, 2, 3]


def test_arrow_paths():
    assert build_arrow_path(100, 30, 200, 90, "finish-to-start") == "M 105 30 C 125 30, 175 90, 195 90"
    assert build_arrow_path(100, 30, 200, 35, "finish-to-start") == "M 105 30 L 195 35"
    assert build_arrow_path(100, 30, 200, 90, "start-to-start").startswith("M 95 30")


def test_view_mode_report_for_consistent_grid():
    tasks = [
        _task(id=1, start_date=dt.datetime(2025, 1, 6), due_date=dt.datetime(2025, 1, 10)),
        _task(id=2, start_date=dt.datetime(2025, 1, 13), due_date=dt.datetime(2025, 1, 14)),
    ]

    report = validate_view_mode(tasks, JAN_1, JAN_31, "days")

    assert report["is_valid"], report["issues"]
    assert report["stats"]["total_tasks"] == 2
    assert report["stats"]["average_column_span"] == 2.5
    assert report["stats"]["average_start_column"] == 8.5


def test_view_mode_report_flags_zero_length_tasks():
    tasks = [_task(id=1, title="Inspection", start_date=dt.datetime(2025, 1, 6), due_date=dt.datetime(2025, 1, 6))]

    report = validate_view_mode(tasks, JAN_1, JAN_31, "days")

    assert not report["is_valid"]
    assert report["stats"]["tasks_with_issues"] == 1
    assert report["issues"][0].startswith('Task "Inspection"')


def test_task_filters_combine():
    tasks = [
        _task(id=1, title="Pour footing", status="in-progress", priority="high", category="Foundation"),
        _task(id=2, title="Hang drywall", status="not-started", priority="high", category="Interior"),
        _task(id=3, title="Pour slab", status="completed", priority="low", category="foundation"),
    ]

    assert [t["id"] for t in apply_task_filters(tasks, search="pour")] == [1, 3]
    assert [t["id"] for t in apply_task_filters(tasks, search="pour", statuses=["completed"])] == [3]
    assert [t["id"] for t in apply_task_filters(tasks, priorities=["high"], categories=["FOUNDATION"])] == [1]
    assert len(apply_task_filters(tasks)) == 3


RIVERSIDE = {
    "id": 7,
    "name": "Riverside Duplex",
    "status": "active",
    "progress": 60,
    "start_date": dt.date(2025, 1, 1),
    "end_date": dt.date(2025, 6, 30),
}
MILESTONE_TASKS = [
    _task(id=1, start_date=dt.datetime(2025, 1, 6), due_date=dt.datetime(2025, 1, 10)),
    _task(id=2, start_date=dt.datetime(2025, 1, 6), due_date=dt.datetime(2025, 1, 20)),
    _task(id=3, start_date=dt.datetime(2025, 1, 13), due_date=dt.datetime(2025, 1, 20)),
]


def test_project_milestones_follow_project_dates():
    start, midpoint, end = derive_project_milestones(RIVERSIDE, MILESTONE_TASKS, today=dt.date(2025, 7, 15))

    assert [m.id for m in (start, midpoint, end)] == ["7-start", "7-midpoint", "7-end"]
    assert start.title == "Riverside Duplex - Project Start"
    assert (start.due_date, start.status, start.linked_task_ids) == (JAN_1, "completed", [1, 2])
    assert (midpoint.due_date, midpoint.status) == (dt.datetime(2025, 4, 1), "completed")
    assert (end.due_date, end.status, end.linked_task_ids) == (dt.datetime(2025, 6, 30), "overdue", [2, 3])


def test_undated_project_milestones_fall_back_to_today():
    project = {"id": 8, "name": "Shed", "status": "completed", "progress": 10, "start_date": None, "end_date": None}

    start, midpoint, end = derive_project_milestones(project, today=dt.date(2025, 3, 1))

    assert (start.due_date, start.status, start.linked_task_ids) == (dt.datetime(2025, 3, 1), "pending", [])
    assert (midpoint.due_date, midpoint.status) == (dt.datetime(2025, 3, 31), "in-progress")
    assert (end.due_date, end.status) == (dt.datetime(2025, 4, 30), "completed")


def test_milestone_markers_sit_on_their_linked_rows():
    milestones = derive_project_milestones(RIVERSIDE, MILESTONE_TASKS, today=dt.date(2025, 7, 15))

    markers = position_milestones(milestones, MILESTONE_TASKS, JAN_1, dt.datetime(2025, 7, 1))

    assert [marker.milestone.id for marker in markers] == ["7-start", "7-midpoint", "7-end"]
    assert [marker.y_position for marker in markers] == [60, 30, 120]
    assert markers[0].x_position == 0
    assert markers[1].x_position == pytest.approx(90 / 181 * 100)
    assert markers[2].x_position == pytest.approx(180 / 181 * 100)

    later = position_milestones(milestones, MILESTONE_TASKS, dt.datetime(2025, 2, 1), dt.datetime(2025, 5, 1))
    assert [marker.milestone.id for marker in later] == ["7-midpoint"]
