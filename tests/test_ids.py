"""Tests for entry id and sequence number allocation."""

from snitch.ids import compute_id, next_sequence_number, normalize_title, resolve_id_strategy
from snitch.models.tracker import Entry, Section, TrackingDocument, parse_sequence_number


def _entry(title: str, number: str | None = None) -> Entry:
    properties = {"SNITCH_NUM": number} if number is not None else {}
    return Entry(title=title, properties=properties)


def _document(*sections: list[Entry]) -> TrackingDocument:
    return TrackingDocument(
        sections=[Section(heading=f"S{i}", entries=entries) for i, entries in enumerate(sections)]
    )


def test_compute_id_known_digest():
    """Test that ids are the MD5 hex digest of the title."""
    assert compute_id("Fix login bug") == "6ee6aad8a2c07efc303174a5f97fc204"
    assert compute_id("Fix race condition") == "6beb45c9843b5f9361f03c8e6a97e7cb"


def test_compute_id_is_idempotent():
    """Test that equal titles always give equal ids."""
    title = "".join(["Fix ", "login", " bug"])
    assert compute_id(title) == compute_id("Fix login bug") == compute_id("Fix login bug")


def test_compute_id_ignores_surrounding_whitespace():
    assert normalize_title("  New issue \n") == "New issue"
    assert compute_id("  New issue \n") == compute_id("New issue")
    assert compute_id("New issue") == "6cdac531da425dac31bbb3e3e007d707"


def test_compute_id_distinct_titles():
    """Test that a fixed corpus of distinct titles yields distinct ids."""
    titles = ["Fix login bug", "fix login bug", "Fix race condition", "New issue", "a", "b", ""]
    ids = [compute_id(t) for t in titles]
    assert len(set(ids)) == len(titles)
    assert all(len(i) == 32 and i == i.lower() for i in ids)


def test_next_sequence_number_empty_document():
    assert next_sequence_number(TrackingDocument()) == 1
    assert next_sequence_number(_document([])) == 1


def test_next_sequence_number_uses_max_across_sections():
    """Test numbering {1,3,4} gives 5 regardless of order or section."""
    doc = _document([_entry("a", "4"), _entry("b", "1")], [_entry("c", "3")])
    assert next_sequence_number(doc) == 5


def test_next_sequence_number_ignores_invalid_numbers():
    """Test that missing and malformed numbers do not contribute."""
    doc = _document(
        [
            _entry("a", "2"),
            _entry("b"),
            _entry("c", "banana"),
            _entry("d", "-7"),
            _entry("e", "0"),
            _entry("f", " 3 "),
            _entry("g", "99x"),
        ]
    )
    assert next_sequence_number(doc) == 4


def test_next_sequence_number_accepts_entry_iterable():
    assert next_sequence_number([_entry("a", "1"), _entry("b", "2")]) == 3
    assert next_sequence_number([]) == 1


def test_parse_sequence_number():
    assert parse_sequence_number("12") == 12
    assert parse_sequence_number(None) is None
    assert parse_sequence_number("") is None
    assert parse_sequence_number("1.5") is None
    assert parse_sequence_number("²") is None


def test_resolve_id_strategy_fallback_and_override():
    assert resolve_id_strategy(None) is compute_id

    def custom(title: str) -> str:
        return f"custom-{len(title)}"

    assert resolve_id_strategy(custom)("abc") == "custom-3"


def test_resolve_id_strategy_rejects_non_callable():
    try:
        resolve_id_strategy("not callable")
        assert False, "Should have raised TypeError"
    except TypeError:
        pass  # Expected
