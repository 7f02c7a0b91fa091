from __future__ import annotations

from campusmod.moderation.domain.models import BannedWord
from campusmod.moderation.domain.scanner import ContentScanner, Segment


def _words(*entries: str | tuple[str, str | None]) -> list[BannedWord]:
    words: list[BannedWord] = []
    for idx, entry in enumerate(entries):
        word, category = entry if isinstance(entry, tuple) else (entry, None)
        words.append(BannedWord(id=str(idx), word=word, category=category, created_by="mod"))
    return words


def test_scan_matches_whole_word() -> None:
    matches = ContentScanner().scan("This is a damn shame", _words("damn"))
    assert [m.word for m in matches] == ["damn"]


def test_scan_ignores_substrings_inside_other_words() -> None:
    assert ContentScanner().scan("classroom", _words("ass")) == []
    assert ContentScanner().scan("we met in class today", _words("ass")) == []


def test_scan_is_case_insensitive() -> None:
    scanner = ContentScanner()
    assert [m.word for m in scanner.scan("DAMN", _words("damn"))] == ["damn"]
    assert [m.word for m in scanner.scan("oh damn", _words("  DaMn  "))] == ["  DaMn  "]


def test_scan_empty_inputs() -> None:
    scanner = ContentScanner()
    assert scanner.scan("", _words("damn")) == []
    assert scanner.scan(None, _words("damn")) == []
    assert scanner.scan("damn it", []) == []


def test_scan_skips_blank_words() -> None:
    matches = ContentScanner().scan("nothing to see", _words("", "   ", "see"))
    assert [m.word for m in matches] == ["see"]


def test_scan_treats_metacharacters_literally() -> None:
    scanner = ContentScanner()
    words = _words("a.b")
    assert [m.word for m in scanner.scan("look at a.b here", words)] == ["a.b"]
    assert scanner.scan("look at axb here", words) == []
    assert scanner.scan("(hello)", _words("(hello")) == []
    assert [m.word for m in scanner.scan("c++ rocks", _words("c++"))] == []
    assert [m.word for m in scanner.scan("we use c++code", _words("c++code"))] == ["c++code"]


def test_scan_keeps_word_list_order_and_counts_once() -> None:
    words = _words("second", "first")
    matches = ContentScanner().scan("first first second", words)
    assert [m.word for m in matches] == ["second", "first"]


def test_scan_returns_copies_with_category() -> None:
    words = _words(("jerk", "harassment"))
    matches = ContentScanner().scan("what a jerk", words)
    assert matches == words
    assert matches[0] is not words[0]
    assert matches[0].category == "harassment"


def test_scan_tolerates_duplicate_words() -> None:
    matches = ContentScanner().scan("darn", _words("darn", "DARN"))
    assert len(matches) == 2


def test_highlight_marks_each_occurrence() -> None:
    scanner = ContentScanner()
    text = "Damn, that was damn rude"
    segments = scanner.highlight(text, scanner.scan(text, _words("damn")))
    assert segments == [
        Segment("Damn", True),
        Segment(", that was "),
        Segment("damn", True),
        Segment(" rude"),
    ]
    assert "".join(segment.text for segment in segments) == text


def test_highlight_without_matches_returns_plain_text() -> None:
    scanner = ContentScanner()
    assert scanner.highlight("all good", []) == [Segment("all good")]
    assert scanner.highlight("", _words("x")) == []


def test_highlight_prefers_longer_word() -> None:
    scanner = ContentScanner()
    segments = scanner.highlight("bad words", _words("bad", "bad words"))
    assert segments == [Segment("bad words", True)]


def test_highlight_leaves_substrings_alone() -> None:
    scanner = ContentScanner()
    text = "ass in class"
    segments = scanner.highlight(text, scanner.scan(text, _words("ass")))
    assert segments == [Segment("ass", True), Segment(" in class")]
