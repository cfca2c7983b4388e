"""Tests for the catalog-snapshot fallback."""
from app.schemas.library import SnapshotBook
from app.services.catalog_snapshot import CatalogSnapshotCache
from app.services.dataset_bridge import build_dataset_fallback, rank_snapshot_books


def _book(book_id, title, author="", department="H & AS", copies=1):
    return SnapshotBook(id=book_id, title=title, author=author, department=department, copies=copies)


def test_interest_substring_in_title_or_author_scores(now):
    books = [
        _book("book-1", "Learning Python", "Mark Lutz"),
        _book("book-2", "Poems", "Guido Pythonson"),
        _book("book-3", "Thermodynamics", "Cengel"),
    ]

    ranked = rank_snapshot_books(books, ["Python"], None, limit=5)

    assert [rec.id for rec in ranked] == ["dataset-book-1", "dataset-book-2", "dataset-book-3"]
    top = ranked[0]
    assert top.score == 4
    assert top.reasons == ["Matches your interest in Python"]
    assert top.category == "Python"
    # Unmatched entries keep the base score and a generic reason
    assert ranked[2].score == 1
    assert ranked[2].reasons == ["Featured from the library catalog"]
    assert ranked[2].category == "H & AS"


def test_first_matched_interest_becomes_category():
    books = [_book("book-1", "Data Structures in Java and C", "Someone")]
    ranked = rank_snapshot_books(books, ["Java", "Data Structures"], None, limit=1)
    assert ranked[0].score == 7
    assert ranked[0].category == "Java"


def test_department_and_stock_signals():
    books = [_book("book-1", "Surveying", department="Civil", copies=6)]

    rec = rank_snapshot_books(books, [], "civil", limit=1)[0]

    assert rec.score == 4
    assert rec.reasons == ["From your department collection", "Popular in the general catalog"]
    assert rec.is_popular
    assert not rec.is_new_arrival


def test_zero_copies_presented_as_one():
    rec = rank_snapshot_books([_book("book-1", "Rare Book", copies=0)], [], None, limit=1)[0]
    assert rec.available_copies == 1
    assert rec.author == "Unknown author"


def test_full_deterministic_tie_break():
    books = [
        _book("book-1", "beta", copies=2),
        _book("book-2", "Alpha", copies=2),
        _book("book-3", "Gamma", copies=3),
    ]
    first = rank_snapshot_books(books, [], None, limit=3)
    second = rank_snapshot_books(list(reversed(books)), [], None, limit=3)

    assert [rec.title for rec in first] == ["Gamma", "Alpha", "beta"]
    assert [rec.id for rec in first] == [rec.id for rec in second]


def test_excluded_entries_are_skipped():
    books = [_book("book-1", "One"), _book("book-2", "Two")]
    ranked = rank_snapshot_books(books, [], None, limit=5, exclude_ids={"book-1", "dataset-book-2"})
    assert ranked == []


def test_build_dataset_fallback_reads_snapshot(write_snapshot):
    path = write_snapshot(
        "Python Crash Course,Eric Matthes,NSP,Computer Engg,2\n"
        "Strength of Materials,Ramamrutham,DPC,Civil,7\n"
    )

    items = build_dataset_fallback(CatalogSnapshotCache(path), ["python"], "Computer Engineering", limit=1)

    assert len(items) == 1
    assert items[0].id == "dataset-book-1"
    assert items[0].score == 6


def test_build_dataset_fallback_swallows_missing_file(tmp_path, caplog):
    items = build_dataset_fallback(CatalogSnapshotCache(tmp_path / "nope.csv"), ["python"], None, limit=3)

    assert items == []
    assert "Failed to load catalog snapshot" in caplog.text


def test_build_dataset_fallback_empty_snapshot(write_snapshot):
    path = write_snapshot("")
    assert build_dataset_fallback(CatalogSnapshotCache(path), ["python"], None, limit=3) == []
