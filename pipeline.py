# Clip Editing Pipeline - suggestions in, render request out
# snap suggestions -> seed an editor session -> commit the edit decision list

import logging
from typing import List, Optional, Sequence

import settings
from boundary_snapper import snap_all_clips_to_sentences
from clip_models import ClipSuggestion, RenderRequest, RenderSegment, SubtitleStyle, TranscriptFragment
from clip_utils import IdFactory, new_segment_id
from subtitle_timing import generate_srt_for_segments
from timeline_engine import MIN_SEGMENT_DURATION, EditorSession, TimelineSegment, TimelineZoom

logger = logging.getLogger(__name__)


class ClipEditingPipeline:
    """Orchestrate snapping, editing and the hand-off to the renderer"""

    def __init__(self, fragments: Sequence[TranscriptFragment], id_factory: IdFactory = new_segment_id):
        self.fragments = list(fragments)
        self.id_factory = id_factory

    def ingest_suggestions(self, suggestions: Sequence[ClipSuggestion]) -> List[ClipSuggestion]:
        """Snap AI suggestions onto sentence boundaries"""
        snapped = snap_all_clips_to_sentences(list(suggestions), self.fragments)

        moved = sum(
            1 for before, after in zip(suggestions, snapped)
            if (before.start, before.end) != (after.start, after.end)
        )
        logger.info(f"Snapped {moved}/{len(snapped)} suggestions to sentence boundaries")

        for before, after in zip(suggestions, snapped):
            logger.debug(f"{before.start:.2f}-{before.end:.2f}s -> {after.start:.2f}-{after.end:.2f}s")

        return snapped

    def open_editor(self, suggestion: ClipSuggestion, crop_x: float = settings.DEFAULT_CROP_X) -> EditorSession:
        """Editor session seeded with one segment covering the suggestion"""
        if suggestion.duration < MIN_SEGMENT_DURATION:
            raise ValueError(
                f"Suggestion {suggestion.start:.2f}-{suggestion.end:.2f}s is shorter than {MIN_SEGMENT_DURATION}s"
            )

        segment = TimelineSegment(
            id=self.id_factory(),
            source_start=suggestion.start,
            source_end=suggestion.end,
            crop_x=crop_x,
        )
        session = EditorSession(
            [segment],
            id_factory=self.id_factory,
            zoom=TimelineZoom(pixels_per_second=settings.DEFAULT_PIXELS_PER_SECOND),
        )
        logger.info(f"Editor opened: {segment.source_start:.2f}-{segment.source_end:.2f}s")
        return session

    def build_subtitles(self, session: EditorSession) -> str:
        """SRT aligned on the edited timeline"""
        return generate_srt_for_segments(self.fragments, session.segments, session.segment_offsets)

    def commit(
        self,
        session: EditorSession,
        video_url: str,
        subtitle_style: Optional[SubtitleStyle] = None
    ) -> RenderRequest:
        """
        Freeze the session into the renderer's input contract

        Subtitles are attached only when the style is enabled and the
        rebased SRT is non-empty.
        """
        srt_content = None
        if (subtitle_style is None or subtitle_style.enabled) and self.fragments:
            srt = self.build_subtitles(session)
            if srt.strip():
                srt_content = srt

        request = RenderRequest(
            videoUrl=video_url,
            segments=[
                RenderSegment(
                    id=seg.id,
                    sourceStart=seg.source_start,
                    sourceEnd=seg.source_end,
                    cropX=seg.crop_x,
                )
                for seg in session.segments
            ],
            srtContent=srt_content,
            subtitleStyle=subtitle_style if subtitle_style is not None and subtitle_style.enabled else None,
        )

        logger.info(
            f"Committed {len(request.segments)} segments, "
            f"{session.total_duration:.2f}s, subtitles={'yes' if srt_content else 'no'}"
        )
        return request
