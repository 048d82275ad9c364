"""Progress statistics are pure and treat a missing verdict as pending."""

import itertools
import uuid
from types import SimpleNamespace

import pytest

from siteproof.services.progress import compute_stats, status_for, summarize


def _items(n):
    return [SimpleNamespace(id=uuid.uuid4()) for _ in range(n)]


def _record(item, verdict):
    return SimpleNamespace(item_id=item.id, result_pass_fail=verdict)


class TestComputeStats:
    def test_two_of_three_completed(self):
        i1, i2, i3 = _items(3)
        stats = compute_stats([i1, i2, i3], [_record(i1, "PASS"), _record(i2, "FAIL")])

        assert (stats.total, stats.completed, stats.passed, stats.failed, stats.na, stats.pending) == (3, 2, 1, 1, 0, 1)
        assert stats.percentage == 67

    def test_empty_item_set_has_zero_percentage(self):
        stats = compute_stats([], [])
        assert stats.total == 0
        assert stats.percentage == 0

    def test_missing_verdict_is_pending_not_failed(self):
        (item,) = _items(1)
        stats = compute_stats([item], [_record(item, None)])
        assert stats.pending == 1
        assert stats.failed == 0

    def test_records_for_unknown_items_are_ignored(self):
        items = _items(2)
        stranger = SimpleNamespace(id=uuid.uuid4())
        stats = compute_stats(items, [_record(stranger, "PASS")])
        assert stats.total == 2
        assert stats.completed == 0

    def test_identical_inputs_give_identical_outputs(self):
        items = _items(4)
        records = [_record(items[0], "N/A"), _record(items[3], "PASS")]
        assert compute_stats(items, records) == compute_stats(items, records)

    @pytest.mark.parametrize("n", [1, 2, 3, 5])
    def test_counts_always_add_up(self, n):
        items = _items(n)
        for verdicts in itertools.product(["PASS", "FAIL", "N/A", None], repeat=n):
            records = [_record(item, v) for item, v in zip(items, verdicts)]
            stats = compute_stats(items, records)
            assert stats.completed + stats.pending == stats.total == n
            assert stats.passed + stats.failed + stats.na == stats.completed
            assert 0 <= stats.percentage <= 100


class TestRounding:
    @pytest.mark.parametrize(
        "completed,total,expected",
        [(1, 8, 13), (1, 3, 33), (2, 3, 67), (1, 2, 50), (0, 5, 0), (5, 5, 100), (1, 200, 1)],
    )
    def test_half_up(self, completed, total, expected):
        statuses = ["passed"] * completed + ["pending"] * (total - completed)
        assert summarize(statuses).percentage == expected


def test_status_for_maps_verdicts():
    assert status_for("PASS") == "passed"
    assert status_for("FAIL") == "failed"
    assert status_for("N/A") == "na"
    assert status_for(None) == "pending"
    assert status_for("") == "pending"
