"""
SRT parsing and writing.
"""

import logging
import re
from collections.abc import Iterable

from .models import Segment

logger = logging.getLogger("dubstudio")

_TIMING_RE = re.compile(r"(\d\d:\d\d:\d\d,\d\d\d)\s+--\>\s+(\d\d:\d\d:\d\d,\d\d\d)")


def format_timestamp(t: float) -> str:
    total_ms = int(round(t * 1000))
    h, rem = divmod(total_ms, 3_600_000)
    m, rem = divmod(rem, 60_000)
    s, ms = divmod(rem, 1000)
    return f"{h:02}:{m:02}:{s:02},{ms:03}"


def parse_timestamp(ts: str) -> float:
    h, m, rest = ts.split(":")
    s, ms = rest.split(",")
    return int(h) * 3600 + int(m) * 60 + int(s) + int(ms) / 1000.0


def wrap_lines(text: str, max_chars: int = 42, max_lines: int = 3) -> str:
    """Wrap text to specified character and line limits."""
    words = text.split()
    lines: list[str] = []
    cur: list[str] = []
    for w in words:
        if sum(len(x) for x in cur) + len(cur) + len(w) > max_chars and cur:
            lines.append(" ".join(cur))
            cur = []
            if len(lines) >= max_lines - 1:
                break
        cur.append(w)
    if cur and len(lines) < max_lines:
        lines.append(" ".join(cur))
    return "\n".join(lines)


def write_srt(segments: Iterable[Segment], path: str, wrap_chars: int | None = None) -> None:
    """Write segments to SRT file."""
    with open(path, "w", encoding="utf-8") as f:
        for i, s in enumerate(segments, 1):
            text = wrap_lines(s.text, max_chars=wrap_chars) if wrap_chars else s.text
            f.write(f"{i}\n{format_timestamp(s.start)} --> {format_timestamp(s.end)}\n{text}\n\n")


def parse_srt_text(raw: str) -> list[Segment]:
    """Parse SRT content into segments; cues with unusable timing are skipped."""
    blocks = re.split(r"\n\s*\n", raw.strip(), flags=re.M)
    out: list[Segment] = []
    for b in blocks:
        lines = [ln for ln in b.splitlines() if ln.strip()]
        if not lines:
            continue
        if re.match(r"^\d+$", lines[0].strip()):
            lines = lines[1:]
        if not lines:
            continue
        m = _TIMING_RE.match(lines[0].strip())
        if not m:
            continue
        start = parse_timestamp(m.group(1))
        end = parse_timestamp(m.group(2))
        text = " ".join(ln.strip() for ln in lines[1:])
        if end <= start:
            logger.warning(f"Skipping SRT cue with invalid timing {m.group(1)} --> {m.group(2)}")
            continue
        out.append(Segment(start=start, end=end, text=text))
    return out


def parse_srt(path: str) -> list[Segment]:
    """Parse SRT file into segments."""
    with open(path, encoding="utf-8-sig") as f:
        return parse_srt_text(f.read())
