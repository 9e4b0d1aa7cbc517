# Boundary Snapper - Align AI-proposed clip ranges on sentence boundaries
# Fragments ending in terminal punctuation close a sentence. Each clip edge
# moves to the nearest sentence boundary within a bounded drift, then gets a
# small asymmetric buffer. Clips left under the minimum length, and any
# degenerate input, come back unchanged.

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, List, Sequence, TypeVar

from clip_utils import round_seconds

logger = logging.getLogger(__name__)

MAX_DRIFT = 3.0            # seconds an edge may move before preferring a neighbour
START_BUFFER = 0.15        # seconds before the sentence start
END_BUFFER = 0.3           # seconds after the sentence end
MIN_CLIP_DURATION = 30.0   # seconds

_SENTENCE_END_RE = re.compile(r'[.!?…»"]$')

S = TypeVar('S')


@dataclass(frozen=True)
class Sentence:
    start: float
    end: float

    def contains(self, timestamp: float) -> bool:
        return self.start <= timestamp <= self.end


def _get(item: Any, name: str) -> Any:
    """Read a field from a dict or an attribute-style object"""
    if isinstance(item, Mapping):
        return item[name]
    return getattr(item, name)


def _with_range(suggestion: S, start: float, end: float) -> S:
    if isinstance(suggestion, Mapping):
        return {**suggestion, 'start': start, 'end': end}
    return suggestion.model_copy(update={'start': start, 'end': end})


def is_sentence_end(text: str) -> bool:
    """Check if a fragment closes a sentence"""
    return bool(_SENTENCE_END_RE.search(text.rstrip()))


def find_sentence_boundaries(fragments: Sequence[Any]) -> List[Sentence]:
    """
    Group transcript fragments into sentences

    Args:
        fragments: Ordered items with start, end and text

    Returns:
        Sentences spanning from their first fragment's start to their
        last fragment's end. The final group is closed even without
        terminal punctuation.
    """
    sentences: List[Sentence] = []
    sentence_start = None

    for i, fragment in enumerate(fragments):
        if sentence_start is None:
            sentence_start = _get(fragment, 'start')

        is_last = i == len(fragments) - 1
        if is_sentence_end(_get(fragment, 'text')) or is_last:
            sentences.append(Sentence(sentence_start, _get(fragment, 'end')))
            sentence_start = None

    return sentences


def snap_start(
    suggested_start: float,
    sentences: Sequence[Sentence],
    fragments: Sequence[Any],
    max_drift: float = MAX_DRIFT
) -> float:
    """Move a start time onto a sentence start"""
    for sentence in sentences:
        if not sentence.contains(suggested_start):
            continue

        # Mid-sentence: pull back to its beginning
        if suggested_start - sentence.start <= max_drift:
            return sentence.start

        # Too far in: push forward to the next sentence
        next_sentence = next((s for s in sentences if s.start > sentence.start), None)
        if next_sentence is not None and next_sentence.start - suggested_start <= max_drift:
            return next_sentence.start

        return sentence.start

    closest = min(fragments, key=lambda f: abs(_get(f, 'start') - suggested_start))
    return _get(closest, 'start')


def snap_end(
    suggested_end: float,
    sentences: Sequence[Sentence],
    fragments: Sequence[Any],
    max_drift: float = MAX_DRIFT
) -> float:
    """Move an end time onto a sentence end"""
    for i in range(len(sentences) - 1, -1, -1):
        sentence = sentences[i]
        if not sentence.contains(suggested_end):
            continue

        # Mid-sentence: push forward to its end
        if sentence.end - suggested_end <= max_drift:
            return sentence.end

        # Too early: pull back to the previous sentence
        if i > 0 and suggested_end - sentences[i - 1].end <= max_drift:
            return sentences[i - 1].end

        return sentence.end

    # Past the last sentence: latest sentence end within reach
    for sentence in reversed(sentences):
        if sentence.end <= suggested_end + max_drift:
            return sentence.end

    # Ties keep the last fragment
    closest = fragments[-1]
    for fragment in fragments:
        if abs(_get(fragment, 'end') - suggested_end) < abs(_get(closest, 'end') - suggested_end):
            closest = fragment
    return _get(closest, 'end')


def snap_clip_to_sentences(suggestion: S, fragments: Sequence[Any]) -> S:
    """
    Realign a clip suggestion on sentence boundaries

    Args:
        suggestion: ClipSuggestion model or dict with start/end
        fragments: Transcript fragments, ordered by start

    Returns:
        Same shape with corrected start/end rounded to 2 decimals, or the
        original suggestion when snapping is impossible or the snapped
        clip would be shorter than MIN_CLIP_DURATION
    """
    if not fragments:
        return suggestion

    sentences = find_sentence_boundaries(fragments)
    if not sentences:
        return suggestion

    start = _get(suggestion, 'start')
    end = _get(suggestion, 'end')

    snapped_start = snap_start(start, sentences, fragments)
    snapped_end = snap_end(end, sentences, fragments)

    final_start = max(0.0, snapped_start - START_BUFFER)
    final_end = snapped_end + END_BUFFER

    # TODO: surface a "could not snap" flag instead of silently keeping the raw range
    if final_end - final_start < MIN_CLIP_DURATION:
        logger.debug(
            f"Snap rejected for {start:.2f}-{end:.2f}s: "
            f"{final_end - final_start:.2f}s < {MIN_CLIP_DURATION}s"
        )
        return suggestion

    return _with_range(suggestion, round_seconds(final_start), round_seconds(final_end))


def snap_all_clips_to_sentences(suggestions: Sequence[S], fragments: Sequence[Any]) -> List[S]:
    """Snap each suggestion independently"""
    return [snap_clip_to_sentences(s, fragments) for s in suggestions]
