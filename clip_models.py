# Clip Models - Pydantic schemas exchanged with the editing surface,
# the transcription/suggestion services and the renderer

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator
from typing import Annotated, List, Dict, Optional, Literal, Any, Union

from clip_utils import IdFactory, new_segment_id
from timeline_engine import (
    DEFAULT_CROP_X,
    MIN_SEGMENT_DURATION,
    DeleteSegment,
    EditorAction,
    SelectSegment,
    SetPlayhead,
    SetPlaying,
    SetSegments,
    SetZoom,
    SplitAtPlayhead,
    TimelineSegment,
    TrimSegmentEnd,
    TrimSegmentStart,
    UpdateSegment,
)

# ============================================================================
# Transcript & Suggestion Models
# ============================================================================

class TranscriptFragment(BaseModel):
    """Timestamped piece of transcript text"""
    start: float = Field(ge=0)
    end: float = Field(ge=0)
    text: str


class ClipSuggestion(BaseModel):
    """AI-proposed clip candidate"""
    model_config = ConfigDict(extra='allow')

    start: float = Field(ge=0)
    end: float = Field(ge=0)
    title: str = ''
    description: str = ''
    hashtags: List[str] = Field(default_factory=list)
    score: float = 0

    @property
    def duration(self) -> float:
        return self.end - self.start

# ============================================================================
# Segment Models
# ============================================================================

class SegmentPayload(BaseModel):
    """Timeline segment as sent by the editing surface"""
    id: Optional[str] = None
    sourceStart: float = Field(ge=0)
    sourceEnd: float = Field(ge=0)
    cropX: float = Field(default=DEFAULT_CROP_X, ge=0.0, le=1.0)

    @model_validator(mode='after')
    def check_duration(self) -> 'SegmentPayload':
        if self.sourceEnd - self.sourceStart < MIN_SEGMENT_DURATION:
            raise ValueError(
                f"Segment must last at least {MIN_SEGMENT_DURATION}s "
                f"(got {self.sourceStart}-{self.sourceEnd})"
            )
        return self

    def to_segment(self, id_factory: IdFactory = new_segment_id) -> TimelineSegment:
        return TimelineSegment(
            id=self.id or id_factory(),
            source_start=self.sourceStart,
            source_end=self.sourceEnd,
            crop_x=self.cropX,
        )

    @classmethod
    def from_segment(cls, segment: TimelineSegment) -> 'SegmentPayload':
        return cls(
            id=segment.id,
            sourceStart=segment.source_start,
            sourceEnd=segment.source_end,
            cropX=segment.crop_x,
        )


class SegmentUpdates(BaseModel):
    """Partial segment fields for UPDATE_SEGMENT"""
    sourceStart: Optional[float] = Field(default=None, ge=0)
    sourceEnd: Optional[float] = Field(default=None, ge=0)
    cropX: Optional[float] = Field(default=None, ge=0.0, le=1.0)

    def to_fields(self) -> Dict[str, float]:
        names = {'sourceStart': 'source_start', 'sourceEnd': 'source_end', 'cropX': 'crop_x'}
        return {names[k]: v for k, v in self.model_dump(exclude_none=True).items()}


class TimelineZoomUpdates(BaseModel):
    pixelsPerSecond: Optional[float] = Field(default=None, gt=0)
    scrollLeft: Optional[float] = Field(default=None, ge=0)

    def to_fields(self) -> Dict[str, float]:
        names = {'pixelsPerSecond': 'pixels_per_second', 'scrollLeft': 'scroll_left'}
        return {names[k]: v for k, v in self.model_dump(exclude_none=True).items()}

# ============================================================================
# Editor Action Models
# ============================================================================

class ActionPayload(BaseModel):
    """Wire form of an editor action"""

    def to_action(self, id_factory: IdFactory = new_segment_id) -> EditorAction:
        raise NotImplementedError


class SetSegmentsPayload(ActionPayload):
    type: Literal['SET_SEGMENTS']
    segments: List[SegmentPayload]

    def to_action(self, id_factory: IdFactory = new_segment_id) -> EditorAction:
        return SetSegments(tuple(s.to_segment(id_factory) for s in self.segments))


class UpdateSegmentPayload(ActionPayload):
    type: Literal['UPDATE_SEGMENT']
    id: str
    updates: SegmentUpdates

    def to_action(self, id_factory: IdFactory = new_segment_id) -> EditorAction:
        return UpdateSegment(self.id, self.updates.to_fields())


class SelectSegmentPayload(ActionPayload):
    type: Literal['SELECT_SEGMENT']
    id: Optional[str] = None

    def to_action(self, id_factory: IdFactory = new_segment_id) -> EditorAction:
        return SelectSegment(self.id)


class SplitAtPlayheadPayload(ActionPayload):
    type: Literal['SPLIT_AT_PLAYHEAD']

    def to_action(self, id_factory: IdFactory = new_segment_id) -> EditorAction:
        return SplitAtPlayhead()


class DeleteSegmentPayload(ActionPayload):
    type: Literal['DELETE_SEGMENT']
    id: str

    def to_action(self, id_factory: IdFactory = new_segment_id) -> EditorAction:
        return DeleteSegment(self.id)


class SetPlayheadPayload(ActionPayload):
    type: Literal['SET_PLAYHEAD']
    time: float

    def to_action(self, id_factory: IdFactory = new_segment_id) -> EditorAction:
        return SetPlayhead(self.time)


class SetPlayingPayload(ActionPayload):
    type: Literal['SET_PLAYING']
    playing: bool

    def to_action(self, id_factory: IdFactory = new_segment_id) -> EditorAction:
        return SetPlaying(self.playing)


class SetZoomPayload(ActionPayload):
    type: Literal['SET_ZOOM']
    zoom: TimelineZoomUpdates

    def to_action(self, id_factory: IdFactory = new_segment_id) -> EditorAction:
        return SetZoom(self.zoom.to_fields())


class TrimSegmentStartPayload(ActionPayload):
    type: Literal['TRIM_SEGMENT_START']
    id: str
    newSourceStart: float

    def to_action(self, id_factory: IdFactory = new_segment_id) -> EditorAction:
        return TrimSegmentStart(self.id, self.newSourceStart)


class TrimSegmentEndPayload(ActionPayload):
    type: Literal['TRIM_SEGMENT_END']
    id: str
    newSourceEnd: float

    def to_action(self, id_factory: IdFactory = new_segment_id) -> EditorAction:
        return TrimSegmentEnd(self.id, self.newSourceEnd)


EditorActionPayload = Annotated[
    Union[
        SetSegmentsPayload,
        UpdateSegmentPayload,
        SelectSegmentPayload,
        SplitAtPlayheadPayload,
        DeleteSegmentPayload,
        SetPlayheadPayload,
        SetPlayingPayload,
        SetZoomPayload,
        TrimSegmentStartPayload,
        TrimSegmentEndPayload,
    ],
    Field(discriminator='type'),
]

_action_adapter = TypeAdapter(EditorActionPayload)


def parse_action(data: Any, id_factory: IdFactory = new_segment_id) -> EditorAction:
    """
    Convert a wire action dict into an engine action

    Raises:
        pydantic.ValidationError: Unknown ``type`` or malformed fields
    """
    return _action_adapter.validate_python(data).to_action(id_factory)

# ============================================================================
# Subtitle Models
# ============================================================================

class SubtitleStyle(BaseModel):
    """Subtitle styling chosen in the editor"""
    enabled: bool = True
    fontFamily: str = 'Arial'
    fontSize: Literal['small', 'medium', 'large'] = 'medium'
    textColor: str = '#FFFFFF'
    strokeColor: str = '#000000'
    strokeWidth: int = Field(default=4, ge=0, le=20)
    position: Literal['top', 'center', 'bottom'] = 'bottom'
    textTransform: Literal['none', 'uppercase'] = 'none'
    background: Literal['none', 'box'] = 'none'
    backgroundColor: str = 'rgba(0,0,0,0.6)'


# Pixel sizes on a 1080x1920 canvas
FONT_SIZE_MAP: Dict[str, int] = {
    'small': 36,
    'medium': 48,
    'large': 62,
}


class SubtitlePreset(BaseModel):
    """Named, reusable subtitle style"""
    id: str
    name: str
    style: SubtitleStyle = Field(default_factory=SubtitleStyle)

# ============================================================================
# Render Models
# ============================================================================

class RenderSegment(SegmentPayload):
    """Segment handed to the renderer; ids are always present"""
    id: str


class RenderRequest(BaseModel):
    """Input contract of the rendering service"""
    videoUrl: str
    segments: List[RenderSegment] = Field(min_length=1)
    srtContent: Optional[str] = None
    subtitleStyle: Optional[SubtitleStyle] = None

    @model_validator(mode='before')
    @classmethod
    def convert_single_range(cls, data: Any) -> Any:
        """Convert the single-range trim format to a segment list"""
        if isinstance(data, dict) and 'segments' not in data and 'startSeconds' in data:
            start = data.get('startSeconds', 0)
            end = data.get('endSeconds', start)
            crops = sorted(
                data.get('cropSegments') or [{'startTime': 0, 'cropX': DEFAULT_CROP_X}],
                key=lambda c: c.get('startTime', 0)
            )

            segments = []
            for i, crop in enumerate(crops):
                seg_start = start + crop.get('startTime', 0)
                seg_end = start + crops[i + 1].get('startTime', 0) if i + 1 < len(crops) else end
                seg_end = min(seg_end, end)
                if seg_end - seg_start < MIN_SEGMENT_DURATION:
                    continue
                segments.append({
                    'id': f"range-{i}",
                    'sourceStart': seg_start,
                    'sourceEnd': seg_end,
                    'cropX': crop.get('cropX', DEFAULT_CROP_X),
                })

            data = {k: v for k, v in data.items() if k not in ('startSeconds', 'endSeconds', 'cropSegments')}
            data['segments'] = segments

        return data

    @property
    def total_duration(self) -> float:
        return sum(seg.sourceEnd - seg.sourceStart for seg in self.segments)
