import random
from datetime import date, datetime, timedelta, timezone

import pytest

import jira_worklog_report.aggregate as mod
from jira_worklog_report.worklogs import WorklogEntry


def entry(started, key, hours, comment=""):
    return WorklogEntry(started=started, issue_key=key, hours_spent=hours, comment=comment)


def utc(y, m, d, h=9):
    return datetime(y, m, d, h, tzinfo=timezone.utc)


def test_format_hours_uses_decimal_comma():
    assert mod.format_hours(1.5) == "1,5"
    assert mod.format_hours(2) == "2,0"
    assert mod.format_hours(0.25) == "0,25"


def test_detailed_table_example():
    entries = [
        entry(utc(2024, 1, 2), "AB-1", 1.5, "fix"),
        entry(utc(2024, 1, 1), "AB-2", 2.0, ""),
    ]
    assert mod.build_detailed_table(entries) == [
        ["Date", "Issue", "Hours spent", "Comment"],
        ["2024-01-01", "AB-2", "2,0", ""],
        ["2024-01-02", "AB-1", "1,5", "fix"],
        ["Total", "", "3,5", ""],
    ]


def test_detailed_table_empty_has_header_and_total():
    assert mod.build_detailed_table([]) == [
        ["Date", "Issue", "Hours spent", "Comment"],
        ["Total", "", "0,0", ""],
    ]


def test_detailed_total_is_float_sum_regardless_of_order():
    rng = random.Random(7)
    entries = [entry(utc(2024, 3, 1) + timedelta(hours=i), f"AB-{i % 4}", rng.randint(1, 32) / 8 + 1 / 3)
               for i in range(40)]
    expected = sum(e.hours_spent for e in entries)
    shuffled = entries[:]
    rng.shuffle(shuffled)
    total_cell = mod.build_detailed_table(shuffled)[-1][2]
    assert float(total_cell.replace(",", ".")) == pytest.approx(expected)


def test_daily_summary_same_issue_listed_once():
    entries = [
        entry(utc(2024, 1, 1, 9), "AB-1", 1.0),
        entry(utc(2024, 1, 1, 14), "AB-1", 2.0),
    ]
    table = mod.build_daily_summary_table(entries, mod.TEXT_LAYOUT)
    assert table[1] == ["2024-01-01", 3.0, "AB-1"]
    assert table[-1] == ["Total", 3.0, ""]


def test_daily_summary_rows_ascending_and_keys_first_seen():
    entries = [
        entry(utc(2024, 1, 3, 8), "AB-3", 1.0),
        entry(utc(2024, 1, 1, 16), "AB-2", 0.5),
        entry(utc(2024, 1, 1, 9), "AB-1", 1.0),
        entry(utc(2024, 1, 1, 12), "AB-2", 0.25),
    ]
    table = mod.build_daily_summary_table(entries, mod.TEXT_LAYOUT)
    assert table[0] == ["Date", "Hours", "Issues"]
    assert table[1:-1] == [
        ["2024-01-01", 1.75, "AB-1, AB-2"],
        ["2024-01-03", 1.0, "AB-3"],
    ]
    assert table[-1] == ["Total", 2.75, ""]


def test_daily_summary_document_layout_comma_total():
    entries = [entry(utc(2024, 1, 1), "AB-1", 1.5), entry(utc(2024, 1, 2), "AB-2", 1.0)]
    table = mod.build_daily_summary_table(entries, mod.DOCUMENT_LAYOUT)
    assert table[0] == ["Date", "Hours spent", "Issues"]
    # per-day hours stay numeric, only the total is rendered with a comma
    assert table[1][1] == 1.5
    assert table[-1] == ["Total", "2,5", ""]


def test_summarize_by_day_properties():
    rng = random.Random(3)
    entries = [entry(utc(2024, 2, rng.randint(1, 10), rng.randint(0, 23)), f"AB-{rng.randint(1, 5)}",
                     rng.randint(1, 16) / 4) for _ in range(60)]
    summaries = mod.summarize_by_day(entries)

    assert sum(s.total_hours for s in summaries) == pytest.approx(sum(e.hours_spent for e in entries))
    assert [s.day for s in summaries] == sorted(s.day for s in summaries)
    for s in summaries:
        assert len(s.issue_keys) == len(set(s.issue_keys))
        assert set(s.issue_keys) == {e.issue_key for e in entries if e.day == s.day}



def test_daily_summary_ascending_with_mixed_offsets():
    # 2024-01-01T23:30Z reads as 2024-01-02 in +01:00, yet starts before the UTC entry
    plus_one = timezone(timedelta(hours=1))
    entries = [
        entry(datetime(2024, 1, 2, 0, 30, tzinfo=plus_one), "AB-1", 1.0),
        entry(datetime(2024, 1, 1, 23, 45, tzinfo=timezone.utc), "AB-2", 2.0),
    ]
    assert [s.day.isoformat() for s in mod.summarize_by_day(entries)] == ["2024-01-01", "2024-01-02"]
    table = mod.build_daily_summary_table(entries)
    assert [row[0] for row in table[1:-1]] == ["2024-01-01", "2024-01-02"]
    assert table[1][2] == "AB-2"

def test_daily_summary_add_accumulates():
    s = mod.DailySummary(day=date(2024, 1, 1))
    s.add(entry(utc(2024, 1, 1), "AB-1", 1.0))
    s.add(entry(utc(2024, 1, 1), "AB-2", 0.5))
    s.add(entry(utc(2024, 1, 1), "AB-1", 0.5))
    assert s.total_hours == 2.0
    assert s.issue_keys == ["AB-1", "AB-2"]
