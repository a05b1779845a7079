"""Tests for mapping playback time onto synced lyrics"""
import pytest

from lyrics import LinePosition, export_lrc, locate, parse_lrc, surrounding_lines
from system_utils.state import LyricLine

SYNCED = "[00:10]Line A\n[00:20]Line B"


def test_current_and_next_with_lead():
    position = locate(SYNCED, 10.4, lead=0.5)
    assert position.current_line == LyricLine(10.0, "Line A")
    assert position.next_line == LyricLine(20.0, "Line B")


@pytest.mark.parametrize("time_seconds, expected", [
    (19.4, "Line A"),  # 19.9 < 20
    (19.5, "Line B"),  # 20.0 == 20: inclusive boundary
    (19.6, "Line B"),  # 20.1 > 20
])
def test_boundary_is_inclusive(time_seconds, expected):
    assert locate(SYNCED, time_seconds, lead=0.5).current_line.text == expected


def test_end_of_song_keeps_previous_next_line():
    previous = LinePosition(LyricLine(10.0, "Line A"), LyricLine(20.0, "Line B"))
    position = locate(SYNCED, 30.0, previous=previous, lead=0.5)

    assert position.current_line.text == "Line B"
    assert position.next_line == previous.next_line


@pytest.mark.parametrize("lyrics, time_seconds", [
    ("", 5.0),
    (None, 5.0),
    ("no timestamps here\n[xx:yy]broken", 5.0),
    (SYNCED, float("nan")),
    (SYNCED, None),
    (SYNCED, 1.0),  # before the first line
])
def test_degrades_to_no_update(lyrics, time_seconds):
    previous = LinePosition(LyricLine(1.0, "old"), LyricLine(2.0, "older"))
    assert locate(lyrics, time_seconds, previous=previous) is previous


def test_parse_skips_untimed_and_metadata_lines():
    lines = parse_lrc("[ar:Someone]\nplain words\n[00:05.50]Hi\n[01:02.50]There")
    assert lines == [LyricLine(5.5, "Hi"), LyricLine(62.5, "There")]


def test_parse_expands_repeated_markers_in_time_order():
    lines = parse_lrc("[00:01][00:03]chorus\n[00:02]verse")
    assert [(line.time, line.text) for line in lines] == [(1.0, "chorus"), (2.0, "verse"), (3.0, "chorus")]


def test_surrounding_lines_window():
    lyrics = "\n".join(f"[00:{i:02d}]L{i}" for i in range(10, 20))
    assert surrounding_lines(lyrics, 13.0, before=1, after=2, lead=0.0) == ("L12", "L13", "L14", "L15")
    assert surrounding_lines(lyrics, 0.0, before=1, after=2, lead=0.0) == ("", "♪", "L10", "L11")
    assert surrounding_lines("", 1.0) == ()


def test_export_lrc_writes_sanitized_file(tmp_path):
    path = export_lrc(SYNCED, "AC/DC", "Thunderstruck?", directory=tmp_path)

    assert path.name == "AC_DC - Thunderstruck_.lrc"
    assert path.read_text(encoding="utf-8") == SYNCED + "\n"


def test_export_lrc_rejects_empty(tmp_path):
    with pytest.raises(ValueError):
        export_lrc("  ", "A", "B", directory=tmp_path)
