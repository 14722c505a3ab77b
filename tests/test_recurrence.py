"""Tests for the recurrence heuristic."""

from datetime import date
from decimal import Decimal

from descriptor_engine.lib.nature import ExpenseNature, NatureSource
from descriptor_engine.lib.recurrence import (
    RecurrenceHeuristic,
    TransactionHistoryEntry,
    longest_consecutive_run,
)

CATEGORY = "vida-saude"
SUBCATEGORY = "vida-saude-academia"


def _history(amounts_by_month, subcategory=SUBCATEGORY):
    return [
        TransactionHistoryEntry(
            category_id=CATEGORY,
            subcategory_id=subcategory,
            amount=Decimal(str(amount)),
            date=f"{month}-10",
        )
        for month, amount in amounts_by_month
    ]


def test_stable_amounts_promote_to_fixed():
    history = _history([("2024-01", 100), ("2024-02", 118), ("2024-03", 95)])
    result = RecurrenceHeuristic().evaluate(CATEGORY, SUBCATEGORY, history)
    assert result is not None
    assert result.nature is ExpenseNature.FIXED
    assert result.source is NatureSource.AI_INFERENCE
    assert result.confidence == 0.75
    assert "3" in result.reason
    assert "20%" in result.reason


def test_unstable_amounts_do_not_promote():
    history = _history([("2024-01", 100), ("2024-02", 130), ("2024-03", 90)])
    assert RecurrenceHeuristic().evaluate(CATEGORY, SUBCATEGORY, history) is None


def test_variation_boundary_is_inclusive():
    history = _history([("2024-01", 100), ("2024-02", 120), ("2024-03", 80)])
    assert RecurrenceHeuristic().evaluate(CATEGORY, SUBCATEGORY, history) is not None


def test_too_few_entries():
    history = _history([("2024-01", 100), ("2024-02", 100)])
    assert RecurrenceHeuristic().evaluate(CATEGORY, SUBCATEGORY, history) is None


def test_too_few_months():
    history = _history([("2024-01", 50), ("2024-01", 50), ("2024-02", 100)])
    assert RecurrenceHeuristic().evaluate(CATEGORY, SUBCATEGORY, history) is None


def test_amounts_summed_per_month():
    history = _history(
        [("2024-01", 50), ("2024-01", 50), ("2024-02", 100), ("2024-03", 105)]
    )
    heuristic = RecurrenceHeuristic()
    totals = heuristic.monthly_totals(CATEGORY, SUBCATEGORY, history)
    assert totals == {
        "2024-01": Decimal("100"),
        "2024-02": Decimal("100"),
        "2024-03": Decimal("105"),
    }
    assert heuristic.evaluate(CATEGORY, SUBCATEGORY, history) is not None


def test_other_subcategories_ignored():
    history = _history([("2024-01", 100), ("2024-02", 100)]) + _history(
        [("2024-03", 100)], subcategory="vida-saude-personal"
    )
    assert RecurrenceHeuristic().evaluate(CATEGORY, SUBCATEGORY, history) is None


def test_non_positive_mean_never_promotes():
    history = _history([("2024-01", 0), ("2024-02", 0), ("2024-03", 0)])
    assert RecurrenceHeuristic().evaluate(CATEGORY, SUBCATEGORY, history) is None


def test_distinct_months_are_enough_by_default():
    history = _history([("2024-01", 100), ("2024-03", 100), ("2024-05", 100)])
    assert RecurrenceHeuristic().evaluate(CATEGORY, SUBCATEGORY, history) is not None
    strict = RecurrenceHeuristic(require_consecutive=True)
    assert strict.evaluate(CATEGORY, SUBCATEGORY, history) is None


def test_consecutive_run_across_year_boundary():
    assert longest_consecutive_run(["2023-12", "2024-01", "2024-02"]) == 3
    assert longest_consecutive_run(["2024-01", "2024-03", "2024-04"]) == 2
    assert longest_consecutive_run(["garbage"]) == 0


def test_date_objects_and_float_amounts():
    history = [
        TransactionHistoryEntry(CATEGORY, 99.9, date(2024, m, 5), subcategory_id=SUBCATEGORY)
        for m in (1, 2, 3)
    ]
    assert history[0].amount == Decimal("99.9")
    assert history[0].month_key == "2024-01"
    assert RecurrenceHeuristic().evaluate(CATEGORY, SUBCATEGORY, history) is not None


def test_history_entry_from_json():
    entry = TransactionHistoryEntry.from_json(
        '{"category_id": "casa", "subcategory_id": null, "amount": "12.50", "date": "2024-02-01"}'
    )
    assert entry.amount == Decimal("12.50")
    assert entry.month_key == "2024-02"
    assert TransactionHistoryEntry.from_json(entry.to_json()) == entry


def test_non_finite_amounts_are_skipped():
    heuristic = RecurrenceHeuristic()
    with_nan = _history([("2024-01", 100), ("2024-02", 100), ("2024-03", 100)]) + [
        TransactionHistoryEntry(CATEGORY, float("nan"), "2024-04-10", subcategory_id=SUBCATEGORY)
    ]
    assert heuristic.monthly_totals(CATEGORY, SUBCATEGORY, with_nan) == {
        "2024-01": Decimal("100"),
        "2024-02": Decimal("100"),
        "2024-03": Decimal("100"),
    }
    assert heuristic.evaluate(CATEGORY, SUBCATEGORY, with_nan) is not None


def test_non_finite_amounts_never_raise():
    for bad in (float("nan"), float("inf"), float("-inf"), "sNaN"):
        history = [
            TransactionHistoryEntry(CATEGORY, amount, f"2024-0{m}-10", subcategory_id=SUBCATEGORY)
            for m, amount in ((1, 100), (2, bad), (3, 100))
        ]
        assert RecurrenceHeuristic().evaluate(CATEGORY, SUBCATEGORY, history) is None
