# Timeline Engine - Non-destructive, segment-based clip editing
# Segments form an edit decision list: which source intervals, in which
# order, cropped how. Rendering happens elsewhere, once, at commit time.

import logging
from dataclasses import dataclass, field, replace
from typing import List, Optional, Sequence, Tuple, Union

from clip_utils import IdFactory, clamp, format_time, new_segment_id

logger = logging.getLogger(__name__)

MIN_SEGMENT_DURATION = 1.0  # seconds
DEFAULT_CROP_X = 0.5
DEFAULT_PIXELS_PER_SECOND = 60.0

# Fields UPDATE_SEGMENT may merge; the id is the selection key and stays put
_MERGEABLE_FIELDS = frozenset({'source_start', 'source_end', 'crop_x'})
_ZOOM_FIELDS = frozenset({'pixels_per_second', 'scroll_left'})


@dataclass(frozen=True)
class TimelineSegment:
    """One contiguous slice of the source video included in the output"""
    id: str
    source_start: float
    source_end: float
    crop_x: float = DEFAULT_CROP_X

    @property
    def duration(self) -> float:
        return self.source_end - self.source_start

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'sourceStart': self.source_start,
            'sourceEnd': self.source_end,
            'cropX': self.crop_x,
        }


@dataclass(frozen=True)
class SegmentOffset:
    """Position of a segment on the virtual (concatenated) timeline"""
    id: str
    timeline_start: float
    timeline_end: float

    def contains(self, time: float) -> bool:
        return self.timeline_start <= time <= self.timeline_end

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'timelineStart': self.timeline_start,
            'timelineEnd': self.timeline_end,
        }


@dataclass(frozen=True)
class TimelineToSourceResult:
    segment_id: str
    source_time: float


@dataclass(frozen=True)
class TimelineZoom:
    """Display scale shared by the ruler, segments and playhead views"""
    pixels_per_second: float = DEFAULT_PIXELS_PER_SECOND
    scroll_left: float = 0.0

    def to_dict(self) -> dict:
        return {'pixelsPerSecond': self.pixels_per_second, 'scrollLeft': self.scroll_left}


@dataclass(frozen=True)
class EditorState:
    segments: Tuple[TimelineSegment, ...] = ()
    selected_segment_id: Optional[str] = None
    playhead_time: float = 0.0  # virtual timeline, not source time
    playing: bool = False
    zoom: TimelineZoom = field(default_factory=TimelineZoom)


# ============================================================================
# Actions
# ============================================================================

@dataclass(frozen=True)
class SetSegments:
    segments: Tuple[TimelineSegment, ...]


@dataclass(frozen=True)
class UpdateSegment:
    id: str
    updates: dict


@dataclass(frozen=True)
class SelectSegment:
    id: Optional[str]


@dataclass(frozen=True)
class SplitAtPlayhead:
    pass


@dataclass(frozen=True)
class DeleteSegment:
    id: str


@dataclass(frozen=True)
class SetPlayhead:
    time: float


@dataclass(frozen=True)
class SetPlaying:
    playing: bool


@dataclass(frozen=True)
class SetZoom:
    zoom: dict


@dataclass(frozen=True)
class TrimSegmentStart:
    id: str
    new_source_start: float


@dataclass(frozen=True)
class TrimSegmentEnd:
    id: str
    new_source_end: float


EditorAction = Union[
    SetSegments,
    UpdateSegment,
    SelectSegment,
    SplitAtPlayhead,
    DeleteSegment,
    SetPlayhead,
    SetPlaying,
    SetZoom,
    TrimSegmentStart,
    TrimSegmentEnd,
]


# ============================================================================
# Derived values
# ============================================================================

def compute_segment_offsets(segments: Sequence[TimelineSegment]) -> List[SegmentOffset]:
    """
    Place segments back-to-back on the virtual timeline

    Args:
        segments: Ordered segment list

    Returns:
        One offset per segment, running sum of prior durations
    """
    offsets: List[SegmentOffset] = []
    cursor = 0.0

    for seg in segments:
        duration = seg.source_end - seg.source_start
        offsets.append(SegmentOffset(seg.id, cursor, cursor + duration))
        cursor += duration

    return offsets


def total_duration(segments: Sequence[TimelineSegment]) -> float:
    """Duration of the concatenated output"""
    offsets = compute_segment_offsets(segments)
    return offsets[-1].timeline_end if offsets else 0.0


def timeline_to_source(
    time: float,
    segments: Sequence[TimelineSegment],
    offsets: Optional[Sequence[SegmentOffset]] = None
) -> Optional[TimelineToSourceResult]:
    """
    Map a virtual timeline position to a source video timestamp

    The first segment whose [timelineStart, timelineEnd] contains ``time``
    wins, so a shared boundary resolves to the earlier segment. Times past
    the end clamp to the end of the last segment.

    Returns:
        None only when there are no segments
    """
    if offsets is None:
        offsets = compute_segment_offsets(segments)

    for seg, off in zip(segments, offsets):
        if off.contains(time):
            return TimelineToSourceResult(seg.id, seg.source_start + (time - off.timeline_start))

    if segments:
        last = segments[-1]
        return TimelineToSourceResult(last.id, last.source_end)

    return None


def clamp_playhead(time: float, duration: float) -> float:
    return clamp(time, 0.0, max(duration, 0.0))


def _find_index(segments: Sequence[TimelineSegment], segment_id: Optional[str]) -> Optional[int]:
    for i, seg in enumerate(segments):
        if seg.id == segment_id:
            return i
    return None


def _split_point(state: EditorState) -> Optional[Tuple[int, float]]:
    """Segment index and source time a split would use, if the split is allowed"""
    result = timeline_to_source(state.playhead_time, state.segments)
    if result is None:
        return None

    index = _find_index(state.segments, result.segment_id)
    if index is None:
        return None

    seg = state.segments[index]
    split_time = result.source_time

    # Each half must keep the minimum duration
    if split_time - seg.source_start < MIN_SEGMENT_DURATION:
        return None
    if seg.source_end - split_time < MIN_SEGMENT_DURATION:
        return None

    return index, split_time


# ============================================================================
# Predicates surfaced to the editing surface
# ============================================================================

def can_split(state: EditorState) -> bool:
    """Whether SPLIT_AT_PLAYHEAD would change the segment list"""
    offsets = compute_segment_offsets(state.segments)
    for off in offsets:
        if off.timeline_start < state.playhead_time < off.timeline_end:
            return _split_point(state) is not None
    return False


def can_delete(state: EditorState) -> bool:
    """Whether the selected segment can be deleted"""
    return state.selected_segment_id is not None and len(state.segments) > 1


def segment_at_playhead(state: EditorState) -> Optional[TimelineSegment]:
    """Segment under the playhead, falling back to the first one"""
    offsets = compute_segment_offsets(state.segments)
    for seg, off in zip(state.segments, offsets):
        if off.contains(state.playhead_time):
            return seg
    return state.segments[0] if state.segments else None


# ============================================================================
# Reducer
# ============================================================================

def create_initial_state(
    segments: Sequence[TimelineSegment],
    zoom: Optional[TimelineZoom] = None
) -> EditorState:
    """Fresh editor state with the first segment selected"""
    segments = tuple(segments)
    return EditorState(
        segments=segments,
        selected_segment_id=segments[0].id if segments else None,
        playhead_time=0.0,
        playing=False,
        zoom=zoom or TimelineZoom(),
    )


def _update_segment(state: EditorState, action: UpdateSegment) -> EditorState:
    updates = {k: v for k, v in action.updates.items() if k in _MERGEABLE_FIELDS}
    index = _find_index(state.segments, action.id)
    if index is None:
        return state

    updated = replace(state.segments[index], **updates)
    if updated.duration < MIN_SEGMENT_DURATION:
        logger.debug(f"Update rejected for {action.id}: {updated.duration:.2f}s < {MIN_SEGMENT_DURATION}s")
        return state

    segments = state.segments[:index] + (updated,) + state.segments[index + 1:]
    return replace(state, segments=segments)


def _trim_start(seg: TimelineSegment, new_source_start: float) -> TimelineSegment:
    new_start = max(new_source_start, 0.0)
    if seg.source_end - new_start < MIN_SEGMENT_DURATION:
        logger.debug(f"Trim start rejected for {seg.id}: {new_start:.2f}s leaves < {MIN_SEGMENT_DURATION}s")
        return seg
    return replace(seg, source_start=new_start)


def _trim_end(seg: TimelineSegment, new_source_end: float) -> TimelineSegment:
    new_end = max(new_source_end, seg.source_start + MIN_SEGMENT_DURATION)
    return replace(seg, source_end=new_end)


def _split(state: EditorState, id_factory: IdFactory) -> EditorState:
    point = _split_point(state)
    if point is None:
        logger.debug(f"Split rejected at playhead {state.playhead_time:.2f}s")
        return state

    index, split_time = point
    seg = state.segments[index]

    first = replace(seg, source_end=split_time)
    second = TimelineSegment(
        id=id_factory(),
        source_start=split_time,
        source_end=seg.source_end,
        crop_x=seg.crop_x,
    )

    segments = state.segments[:index] + (first, second) + state.segments[index + 1:]
    return replace(state, segments=segments, selected_segment_id=second.id)


def _delete(state: EditorState, segment_id: str) -> EditorState:
    # At least one segment must always exist
    if len(state.segments) <= 1:
        logger.debug("Delete rejected: last remaining segment")
        return state

    segments = tuple(seg for seg in state.segments if seg.id != segment_id)
    if not segments or len(segments) == len(state.segments):
        return state

    selected = None if state.selected_segment_id == segment_id else state.selected_segment_id
    return replace(
        state,
        segments=segments,
        selected_segment_id=selected,
        playhead_time=min(state.playhead_time, total_duration(segments)),
    )


def editor_reducer(
    state: EditorState,
    action: EditorAction,
    id_factory: IdFactory = new_segment_id
) -> EditorState:
    """
    Apply one action and return the next state

    Pure: the input state is never mutated. Invalid edits (sub-minimum
    durations, deleting the last segment) return the state unchanged.

    Args:
        state: Current editor state
        action: One of the EditorAction dataclasses
        id_factory: Supplies the id of the second half of a split
    """
    if isinstance(action, SetSegments):
        return replace(state, segments=tuple(action.segments), selected_segment_id=None, playhead_time=0.0)

    if isinstance(action, UpdateSegment):
        return _update_segment(state, action)

    if isinstance(action, SelectSegment):
        return replace(state, selected_segment_id=action.id)

    if isinstance(action, SetPlayhead):
        return replace(state, playhead_time=action.time)

    if isinstance(action, SetPlaying):
        return replace(state, playing=action.playing)

    if isinstance(action, SetZoom):
        zoom = {k: v for k, v in action.zoom.items() if k in _ZOOM_FIELDS}
        return replace(state, zoom=replace(state.zoom, **zoom))

    if isinstance(action, TrimSegmentStart):
        segments = tuple(
            _trim_start(seg, action.new_source_start) if seg.id == action.id else seg
            for seg in state.segments
        )
        return replace(state, segments=segments)

    if isinstance(action, TrimSegmentEnd):
        segments = tuple(
            _trim_end(seg, action.new_source_end) if seg.id == action.id else seg
            for seg in state.segments
        )
        return replace(state, segments=segments)

    if isinstance(action, SplitAtPlayhead):
        return _split(state, id_factory)

    if isinstance(action, DeleteSegment):
        return _delete(state, action.id)

    return state


# ============================================================================
# Session
# ============================================================================

class EditorSession:
    """
    Editing session for one clip

    Owns a single EditorState and replaces it wholesale on every action.
    Not thread-safe: one writer per session.
    """

    def __init__(
        self,
        segments: Sequence[TimelineSegment],
        id_factory: IdFactory = new_segment_id,
        zoom: Optional[TimelineZoom] = None
    ):
        self.id_factory = id_factory
        self.state = create_initial_state(segments, zoom)

    def dispatch(self, action: EditorAction) -> EditorState:
        logger.debug(f"Dispatch {type(action).__name__}")
        self.state = editor_reducer(self.state, action, self.id_factory)
        return self.state

    @property
    def segments(self) -> Tuple[TimelineSegment, ...]:
        return self.state.segments

    @property
    def segment_offsets(self) -> List[SegmentOffset]:
        return compute_segment_offsets(self.state.segments)

    @property
    def total_duration(self) -> float:
        return total_duration(self.state.segments)

    @property
    def can_split(self) -> bool:
        return can_split(self.state)

    @property
    def can_delete(self) -> bool:
        return can_delete(self.state)

    @property
    def current_segment(self) -> Optional[TimelineSegment]:
        return segment_at_playhead(self.state)

    def timeline_to_source(self, time: float) -> Optional[TimelineToSourceResult]:
        return timeline_to_source(time, self.state.segments)

    def seek(self, time: float) -> EditorState:
        """Move the playhead, clamped to the timeline"""
        return self.dispatch(SetPlayhead(clamp_playhead(time, self.total_duration)))

    def nudge_playhead(self, delta: float) -> EditorState:
        """Step the playhead (arrow keys: 1s, 5s with shift)"""
        return self.seek(self.state.playhead_time + delta)

    def toggle_playing(self) -> EditorState:
        return self.dispatch(SetPlaying(not self.state.playing))

    def delete_selected(self) -> bool:
        """Delete the selected segment if allowed; returns whether it happened"""
        if not self.can_delete:
            return False
        self.dispatch(DeleteSegment(self.state.selected_segment_id))
        return True

    def set_crop(self, segment_id: str, crop_x: float) -> EditorState:
        return self.dispatch(UpdateSegment(segment_id, {'crop_x': clamp(crop_x, 0.0, 1.0)}))

    def to_dict(self) -> dict:
        """Session view for the editing surface"""
        count = len(self.state.segments)
        return {
            'segments': [seg.to_dict() for seg in self.state.segments],
            'selectedSegmentId': self.state.selected_segment_id,
            'playheadTime': self.state.playhead_time,
            'playing': self.state.playing,
            'zoom': self.state.zoom.to_dict(),
            'segmentOffsets': [off.to_dict() for off in self.segment_offsets],
            'totalDuration': self.total_duration,
            'canSplit': self.can_split,
            'canDelete': self.can_delete,
            'summary': f"{count} segment{'s' if count > 1 else ''} - {format_time(self.total_duration)}",
        }
