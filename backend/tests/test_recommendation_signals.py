"""Tests for signal collection and popularity ranking."""
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest
from app.models import BorrowingStatus
from app.services.recommendation_signals import (
    build_exclude_set,
    collect_signals,
    derive_top_categories,
    rank_popular_items,
)


@pytest.fixture
def executor():
    with ThreadPoolExecutor(max_workers=2) as pool:
        yield pool


def test_derive_top_categories_requires_two_occurrences(fake_store, now):
    fake_store.add_item("a", category="Physics")
    fake_store.add_item("b", category="Chemistry")
    history = [
        fake_store.add_borrowing("u1", "a"),
        fake_store.add_borrowing("u1", "a"),
        fake_store.add_borrowing("u1", "b"),
    ]
    assert derive_top_categories(history) == ["Physics"]


def test_derive_top_categories_orders_by_frequency_then_recency(fake_store, now):
    for item_id, category in [("m", "Maths"), ("p", "Physics"), ("c", "Civil")]:
        fake_store.add_item(item_id, category=category)
    # History arrives most recent first: Civil seen first, then Maths
    order = ["c", "m", "c", "m", "p", "p", "p"]
    history = [
        fake_store.add_borrowing("u1", item_id, borrowed_at=now - timedelta(days=i))
        for i, item_id in enumerate(order)
    ]
    assert derive_top_categories(history) == ["Physics", "Civil", "Maths"]


def test_derive_top_categories_ignores_blank_categories(fake_store):
    history = [fake_store.add_borrowing("u1", "unknown-book") for _ in range(3)]
    assert derive_top_categories(history) == []


def test_build_exclude_set_unions_caller_and_active_ids(fake_store):
    active = [
        fake_store.add_borrowing("u1", "held-1", status=BorrowingStatus.BORROWED),
        fake_store.add_borrowing("u1", "held-2", status=BorrowingStatus.OVERDUE),
    ]
    assert build_exclude_set(["mine", ""], active) == frozenset({"mine", "held-1", "held-2"})


def test_collect_signals_excludes_every_active_status(fake_store, executor, now):
    user = fake_store.add_user("u1", interests=["Physics"], affiliation="Civil")
    for item_id, status in [
        ("borrowed", BorrowingStatus.BORROWED),
        ("overdue", BorrowingStatus.OVERDUE),
        ("renewed", BorrowingStatus.RENEWED),
        ("returned", BorrowingStatus.RETURNED),
    ]:
        fake_store.add_item(item_id, category="Physics")
        fake_store.add_borrowing("u1", item_id, status=status)

    signals = collect_signals(fake_store, user, ["extra"], executor)

    assert signals.exclude_ids == frozenset({"borrowed", "overdue", "renewed", "extra"})
    assert signals.explicit_interests == ["Physics"]
    assert signals.derived_categories == ["Physics"]
    assert signals.department == "Civil"


def test_collect_signals_samples_forty_most_recent(fake_store, executor, now):
    user = fake_store.add_user("u1")
    fake_store.add_item("old", category="History")
    fake_store.add_item("new", category="Physics")
    for day in range(40):
        fake_store.add_borrowing("u1", "new", borrowed_at=now - timedelta(days=day))
    for day in range(40, 45):
        fake_store.add_borrowing("u1", "old", borrowed_at=now - timedelta(days=day))

    signals = collect_signals(fake_store, user, None, executor)

    history_query = next(arg for name, arg in fake_store.calls if name == "find_borrowings" and arg.statuses is None)
    assert history_query.limit == 40
    assert signals.derived_categories == ["Physics"]


def test_collect_signals_survives_history_failure(fake_store, executor, monkeypatch):
    user = fake_store.add_user("u1", interests=["Physics"])
    fake_store.add_borrowing("u1", "held", status=BorrowingStatus.BORROWED)
    original = fake_store.find_borrowings

    def flaky(filters):
        if filters.statuses is None:
            raise RuntimeError("history store unavailable")
        return original(filters)

    monkeypatch.setattr(fake_store, "find_borrowings", flaky)

    signals = collect_signals(fake_store, user, None, executor)

    assert signals.derived_categories == []
    assert signals.exclude_ids == frozenset({"held"})


def test_collect_signals_active_borrowings_failure_propagates(fake_store, executor, monkeypatch):
    user = fake_store.add_user("u1", interests=["Physics"])
    fake_store.add_borrowing("u1", "held", status=BorrowingStatus.BORROWED)
    original = fake_store.find_borrowings

    def flaky(filters):
        if filters.statuses is not None:
            raise RuntimeError("loans table unavailable")
        return original(filters)

    monkeypatch.setattr(fake_store, "find_borrowings", flaky)

    with pytest.raises(RuntimeError, match="loans table unavailable"):
        collect_signals(fake_store, user, None, executor)


def test_candidate_categories_merges_without_repeats(fake_store, executor):
    user = fake_store.add_user("u1", interests=["Physics", "Maths"])
    fake_store.add_item("p", category="Physics")
    fake_store.add_item("c", category="Civil")
    for item_id in ["p", "p", "c", "c"]:
        fake_store.add_borrowing("u1", item_id)

    signals = collect_signals(fake_store, user, None, executor)

    assert signals.candidate_categories == ["Physics", "Maths", "Civil"]


def test_rank_popular_items_counts_within_lookback(fake_store, now):
    for _ in range(3):
        fake_store.add_borrowing("other", "hot", borrowed_at=now - timedelta(days=10))
    fake_store.add_borrowing("other", "warm", borrowed_at=now - timedelta(days=20))
    for _ in range(5):
        fake_store.add_borrowing("other", "stale", borrowed_at=now - timedelta(days=120))

    assert rank_popular_items(fake_store, now) == ["hot", "warm"]


def test_rank_popular_items_samples_at_most_300_records(fake_store, now):
    # 300 newest borrowings are all "recent"; the older "classic" ones fall outside the sample
    for i in range(300):
        fake_store.add_borrowing("other", f"recent-{i % 150}", borrowed_at=now - timedelta(minutes=i))
    for _ in range(10):
        fake_store.add_borrowing("other", "classic", borrowed_at=now - timedelta(days=30))

    ranked = rank_popular_items(fake_store, now)

    assert "classic" not in ranked
    assert len(ranked) == 150


def test_rank_popular_items_ties_keep_sample_order(fake_store, now):
    """
    Equal counts are NOT broken by any secondary key: they stay in sample order
    (newest borrowing first). This is an accepted nondeterminism when the store
    returns equal timestamps in arbitrary order.
    """
    fake_store.add_borrowing("other", "older", borrowed_at=now - timedelta(days=3))
    fake_store.add_borrowing("other", "newer", borrowed_at=now - timedelta(days=1))

    assert rank_popular_items(fake_store, now) == ["newer", "older"]
