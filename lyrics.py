"""
Playback time -> lyric line mapping for LRC-style synced lyrics.

Lines look like "[mm:ss]text" or "[mm:ss.xx]text" and may carry several
markers ("[00:10][01:10]chorus"). Lines without a parsable marker, including
metadata tags such as [ar:...], are kept in the text but never selected.
"""
import math
import os
import re
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple, Union

from config import LRC_DIR, LYRICS
from logging_config import get_logger
from system_utils.helpers import sanitize_filename
from system_utils.state import LyricLine

logger = get_logger(__name__)

LEAD = LYRICS.get("lead_time", 0.5)

_MARKER = re.compile(r"\[(\d+):(\d{1,2}(?:[.:]\d+)?)\]")


@dataclass(frozen=True)
class LinePosition:
    current_line: Optional[LyricLine] = None
    next_line: Optional[LyricLine] = None


def _marker_seconds(minutes: str, seconds: str) -> float:
    return int(minutes) * 60 + float(seconds.replace(":", "."))


def parse_lrc(lyrics: Optional[str]) -> List[LyricLine]:
    """Timed lines sorted by time; untimed lines are skipped."""
    if not lyrics:
        return []

    lines = []
    for raw in lyrics.splitlines():
        raw = raw.strip()
        timestamps = []
        pos = 0
        # Only markers at the start of the line count
        while True:
            match = _MARKER.match(raw, pos)
            if not match:
                break
            try:
                timestamps.append(_marker_seconds(match.group(1), match.group(2)))
            except ValueError:
                timestamps = []
                break
            pos = match.end()

        if not timestamps:
            continue
        text = raw[pos:].strip()
        lines.extend(LyricLine(t, text) for t in timestamps)

    # sorted() is stable, so lines sharing a timestamp keep file order
    return sorted(lines, key=lambda line: line.time)


def _split(lines: List[LyricLine], at: float) -> Tuple[int, int]:
    """Index of the current line (timestamp <= at) and of the next one (> at)."""
    current = -1
    for i, line in enumerate(lines):
        if line.time <= at:
            current = i
        else:
            return current, i
    return current, -1


def locate(lyrics: Optional[str], time_seconds: float,
           previous: Optional[LinePosition] = None, lead: float = LEAD) -> LinePosition:
    """
    Current and next line at `time_seconds + lead`.

    A line is current once its timestamp is <= the lead-adjusted time. When
    there is no line after the current one, the previous next_line is kept.
    Never raises; anything it cannot map returns `previous` unchanged.
    """
    previous = previous or LinePosition()
    try:
        if time_seconds is None or not math.isfinite(float(time_seconds)):
            return previous
        lines = parse_lrc(lyrics)
    except (TypeError, ValueError) as e:
        logger.debug(f"Cannot map time {time_seconds!r} onto lyrics: {e}")
        return previous

    if not lines:
        return previous

    current_index, next_index = _split(lines, float(time_seconds) + lead)
    if current_index < 0:
        return previous

    next_line = lines[next_index] if next_index >= 0 else previous.next_line
    return LinePosition(current_line=lines[current_index], next_line=next_line)


def surrounding_lines(lyrics: Optional[str], time_seconds: float,
                      before: int = 2, after: int = 3, lead: float = LEAD) -> Tuple[str, ...]:
    """
    Context window for the multi-line terminal view: `before` lines, the
    current line, then `after` lines. Empty strings pad the edges; an
    instrumental gap shows as a note symbol.
    """
    lines = parse_lrc(lyrics)
    if not lines:
        return ()

    current_index, next_index = _split(lines, time_seconds + lead)

    def safe_get_line(idx):
        if 0 <= idx < len(lines):
            return lines[idx].text or "♪"
        return ""

    if current_index < 0:
        # Intro: nothing sung yet, show what is coming
        return tuple([""] * before + ["♪"] + [safe_get_line(i) for i in range(after)])

    return tuple(safe_get_line(current_index + offset) for offset in range(-before, after + 1))


def export_lrc(lyrics: str, artist: str, title: str,
               directory: Union[str, Path] = LRC_DIR) -> Path:
    """Write lyrics to '<directory>/Artist - Title.lrc' (atomic replace) and return the path."""
    if not lyrics or not lyrics.strip():
        raise ValueError("Nothing to export")

    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{sanitize_filename(f'{artist} - {title}')}.lrc"

    fd, temp_path = tempfile.mkstemp(dir=str(directory), suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(lyrics if lyrics.endswith("\n") else lyrics + "\n")
        os.replace(temp_path, path)
    except Exception:
        if os.path.exists(temp_path):
            os.unlink(temp_path)
        raise

    logger.info(f"Saved lyrics to {path}")
    return path
