# Subtitle Timing - Rebase transcript fragments onto the edited timeline
# and convert them to/from SRT

import logging
import re
from collections.abc import Mapping
from typing import Any, List, Optional, Sequence

from timeline_engine import SegmentOffset, TimelineSegment, compute_segment_offsets

logger = logging.getLogger(__name__)

_SRT_TIMING_RE = re.compile(
    r'(\d{2}):(\d{2}):(\d{2})[,.](\d{3})\s*-->\s*(\d{2}):(\d{2}):(\d{2})[,.](\d{3})'
)


def _fields(fragment: Any) -> tuple:
    if isinstance(fragment, Mapping):
        return fragment['start'], fragment['end'], fragment['text']
    return fragment.start, fragment.end, fragment.text


def format_srt_time(seconds: float) -> str:
    """Format time for SRT subtitles (HH:MM:SS,mmm)"""
    clamped = max(0.0, seconds)
    hours = int(clamped // 3600)
    minutes = int((clamped % 3600) // 60)
    secs = int(clamped % 60)
    millis = int((clamped % 1) * 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d},{millis:03d}"


def format_ass_time(seconds: float) -> str:
    """Format time for ASS subtitles (H:MM:SS.cs)"""
    clamped = max(0.0, seconds)
    hours = int(clamped // 3600)
    minutes = int((clamped % 3600) // 60)
    secs = int(clamped % 60)
    centisecs = int((clamped * 100) % 100)
    return f"{hours}:{minutes:02d}:{secs:02d}.{centisecs:02d}"


def filter_fragments_for_clip(
    fragments: Sequence[Any],
    clip_start: float,
    clip_end: float
) -> List[dict]:
    """
    Keep fragments overlapping a single source range, relative to its start

    Args:
        fragments: Transcript fragments in source time
        clip_start: Range start in source time
        clip_end: Range end in source time

    Returns:
        Fragments clipped to the range and shifted so the range starts at 0
    """
    clipped = []

    for fragment in fragments:
        start, end, text = _fields(fragment)
        if end <= clip_start or start >= clip_end:
            continue
        clipped.append({
            'start': max(0.0, start - clip_start),
            'end': min(clip_end - clip_start, end - clip_start),
            'text': text,
        })

    return clipped


def rebase_fragments_for_segments(
    fragments: Sequence[Any],
    segments: Sequence[TimelineSegment],
    offsets: Optional[Sequence[SegmentOffset]] = None
) -> List[dict]:
    """
    Map transcript fragments onto the virtual timeline of an edited clip

    Each fragment overlapping a segment yields one block, clipped to the
    segment bounds and shifted by ``timelineStart - sourceStart``. A
    fragment spanning two segments yields one block per segment; a
    fragment inside a removed region yields none.

    Returns:
        Blocks ordered by segment, then by fragment order
    """
    if offsets is None:
        offsets = compute_segment_offsets(segments)

    blocks = []

    for seg, off in zip(segments, offsets):
        shift = off.timeline_start - seg.source_start

        for fragment in fragments:
            start, end, text = _fields(fragment)
            if end <= seg.source_start or start >= seg.source_end:
                continue

            new_start = max(start, seg.source_start) + shift
            new_end = min(end, seg.source_end) + shift
            if new_end > new_start:
                blocks.append({'start': new_start, 'end': new_end, 'text': text})

    logger.debug(f"Rebased {len(blocks)} subtitle blocks over {len(segments)} segments")
    return blocks


def to_srt(blocks: Sequence[Any]) -> str:
    """Serialize subtitle blocks as SRT, numbered from 1"""
    lines = []
    for index, block in enumerate(blocks, start=1):
        start, end, text = _fields(block)
        lines.append(f"{index}\n{format_srt_time(start)} --> {format_srt_time(end)}\n{text}\n\n")
    return ''.join(lines)


def generate_srt(fragments: Sequence[Any], clip_start: float, clip_end: float) -> str:
    """SRT for a single source range"""
    return to_srt(filter_fragments_for_clip(fragments, clip_start, clip_end))


def generate_srt_for_segments(
    fragments: Sequence[Any],
    segments: Sequence[TimelineSegment],
    offsets: Optional[Sequence[SegmentOffset]] = None
) -> str:
    """SRT for an edited, multi-segment clip"""
    return to_srt(rebase_fragments_for_segments(fragments, segments, offsets))


def parse_srt(srt: str) -> List[dict]:
    """
    Parse SRT text into subtitle blocks

    Blocks without a timing line, with fewer than three lines or with
    empty text are skipped. Multi-line text is joined with spaces.
    """
    blocks = []
    content = srt.replace('\r\n', '\n').strip()

    for raw_block in re.split(r'\n\n+', content):
        lines = raw_block.strip().split('\n')
        if len(lines) < 3:
            continue

        match = _SRT_TIMING_RE.search(lines[1])
        if not match:
            continue

        h1, m1, s1, ms1, h2, m2, s2, ms2 = (int(g) for g in match.groups())
        text = ' '.join(lines[2:]).strip()

        if text:
            blocks.append({
                'start': h1 * 3600 + m1 * 60 + s1 + ms1 / 1000,
                'end': h2 * 3600 + m2 * 60 + s2 + ms2 / 1000,
                'text': text,
            })

    return blocks
