"""
Tests for the suggestion -> edit -> render request pipeline
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest
from clip_models import ClipSuggestion, SubtitleStyle, TranscriptFragment
from clip_utils import SequentialIdFactory
from pipeline import ClipEditingPipeline
from timeline_engine import DeleteSegment, SetPlayhead, SplitAtPlayhead

# Twenty 4-second sentences
FRAGMENTS = [
    TranscriptFragment(start=i * 4.0, end=i * 4.0 + 4.0, text=f"Sentence number {i}.")
    for i in range(20)
]


@pytest.fixture
def pipeline():
    return ClipEditingPipeline(FRAGMENTS, id_factory=SequentialIdFactory())


class TestIngest:
    """Test suggestion snapping"""

    def test_snaps(self, pipeline):
        suggestion = ClipSuggestion(start=5.5, end=45.2, title="Hook", score=87)
        [snapped] = pipeline.ingest_suggestions([suggestion])
        assert (snapped.start, snapped.end) == (3.85, 48.3)
        assert snapped.title == "Hook"

    def test_short_suggestion_untouched(self, pipeline):
        suggestion = ClipSuggestion(start=5.5, end=9.0)
        assert pipeline.ingest_suggestions([suggestion]) == [suggestion]


class TestEditAndCommit:
    """Test the editing session hand-off"""

    def test_open_editor(self, pipeline):
        session = pipeline.open_editor(ClipSuggestion(start=10.0, end=40.0), crop_x=0.3)
        assert [(s.id, s.source_start, s.source_end, s.crop_x) for s in session.segments] == [
            ("seg-1", 10.0, 40.0, 0.3)
        ]
        assert session.state.selected_segment_id == "seg-1"
        assert session.state.zoom.pixels_per_second == 60.0

    @pytest.mark.parametrize("start,end", [(40.0, 10.0), (12.0, 12.5)])
    def test_open_editor_rejects_short_or_inverted(self, pipeline, start, end):
        with pytest.raises(ValueError):
            pipeline.open_editor(ClipSuggestion(start=start, end=end))

    def test_commit_after_split_and_delete(self, pipeline):
        session = pipeline.open_editor(ClipSuggestion(start=10.0, end=40.0))
        session.dispatch(SetPlayhead(15.0))
        session.dispatch(SplitAtPlayhead())
        session.dispatch(DeleteSegment("seg-1"))

        request = pipeline.commit(session, "https://example.com/v.mp4")

        assert [(s.id, s.sourceStart, s.sourceEnd) for s in request.segments] == [("seg-2", 25.0, 40.0)]
        assert request.total_duration == 15.0
        # Sentence 6 (24-28s) is clipped to 25s and lands at timeline 0
        assert request.srtContent.startswith("1\n00:00:00,000 --> 00:00:03,000\nSentence number 6.\n\n")
        assert request.subtitleStyle is None

    def test_commit_with_style(self, pipeline):
        session = pipeline.open_editor(ClipSuggestion(start=0.0, end=8.0))
        style = SubtitleStyle(position='top')
        request = pipeline.commit(session, "v.mp4", style)
        assert request.subtitleStyle == style
        assert request.srtContent.count("-->") == 2

    def test_disabled_subtitles(self, pipeline):
        session = pipeline.open_editor(ClipSuggestion(start=0.0, end=8.0))
        request = pipeline.commit(session, "v.mp4", SubtitleStyle(enabled=False))
        assert request.srtContent is None
        assert request.subtitleStyle is None

    def test_no_transcript(self):
        pipeline = ClipEditingPipeline([])
        session = pipeline.open_editor(ClipSuggestion(start=0.0, end=8.0))
        assert pipeline.commit(session, "v.mp4").srtContent is None

    def test_build_subtitles_follows_edits(self, pipeline):
        session = pipeline.open_editor(ClipSuggestion(start=0.0, end=8.0))
        assert pipeline.build_subtitles(session).count("-->") == 2
        session.dispatch(SetPlayhead(4.0))
        session.dispatch(SplitAtPlayhead())
        session.dispatch(DeleteSegment("seg-2"))
        assert pipeline.build_subtitles(session) == "1\n00:00:00,000 --> 00:00:04,000\nSentence number 0.\n\n"


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
