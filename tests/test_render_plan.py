"""
Tests for render command planning

Commands are compiled, never executed.
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest
from clip_models import RenderRequest, SubtitleStyle
from render_plan import ClipRenderer, ass_color, build_ass, crop_x_expression

SOURCE = "https://cdn.example.com/source.mp4"
SRT = "1\n00:00:01,500 --> 00:00:03,000\nHello there\n\n"


def filter_graph(command):
    return command[command.index('-filter_complex') + 1]


class TestCropGeometry:
    """Test 9:16 crop expression"""

    def test_expression(self):
        assert crop_x_expression(0.5) == "0.5000*(iw-ih*9/16)"
        assert crop_x_expression(1.4) == "1.0000*(iw-ih*9/16)"


class TestAssStyle:
    """Test ASS color conversion and document building"""

    @pytest.mark.parametrize("value,expected", [
        ('#FFFFFF', '&H00FFFFFF'),
        ('#ff8000', '&H000080FF'),
        ('rgba(0,0,0,0.6)', '&H66000000'),
        ('rgb(255, 0, 0)', '&H000000FF'),
        ('transparent', '&HFF000000'),
        ('bogus', '&H00FFFFFF'),
    ])
    def test_ass_color(self, value, expected):
        assert ass_color(value) == expected

    def test_default_style(self):
        doc = build_ass([{'start': 1.5, 'end': 3.0, 'text': 'Hello'}], SubtitleStyle())
        assert "PlayResX: 1080\nPlayResY: 1920" in doc
        assert "Style: Default,Arial,48,&H00FFFFFF,&H000000FF,&H00000000,&H66000000," in doc
        # BorderStyle, Outline, Shadow, Alignment, margins
        assert ",1,4,0,2,10,10,300,1\n" in doc
        assert doc.endswith("Dialogue: 0,0:00:01.50,0:00:03.00,Default,,0,0,0,,Hello\n")

    def test_box_top_uppercase(self):
        style = SubtitleStyle(fontSize='large', position='top', background='box', textTransform='uppercase')
        doc = build_ass([{'start': 0.0, 'end': 1.0, 'text': 'two\nlines'}], style)
        assert "Style: Default,Arial,62," in doc
        assert ",3,4,0,8,10,10,150,1\n" in doc
        assert ",,TWO LINES\n" in doc


class TestClipRenderer:
    """Test ffmpeg command compilation"""

    def make_request(self, segments, **kwargs):
        return RenderRequest(videoUrl=SOURCE, segments=segments, **kwargs)

    def test_single_segment(self, tmp_path):
        request = self.make_request([{'id': 'a', 'sourceStart': 10.0, 'sourceEnd': 40.0, 'cropX': 0.25}])
        command = ClipRenderer(request, tmp_path).build_command(tmp_path / "out.mp4")

        assert command[0] == "ffmpeg"
        assert command[command.index('-ss') + 1] == "10.0"
        assert command[command.index('-t') + 1] == "30.0"
        assert SOURCE in command

        graph = filter_graph(command)
        assert "0.2500*(iw-ih*9/16)" in graph
        assert "scale=1080:1920" in graph
        assert "concat" not in graph
        assert "subtitles" not in graph

        assert "libx264" in command
        assert "-y" in command
        assert str(tmp_path / "out.mp4") in command

    def test_multi_segment_concat(self, tmp_path):
        request = self.make_request([
            {'id': 'a', 'sourceStart': 50.0, 'sourceEnd': 60.0, 'cropX': 0.1},
            {'id': 'b', 'sourceStart': 20.0, 'sourceEnd': 25.0, 'cropX': 0.9},
        ])
        command = ClipRenderer(request, tmp_path).build_command(tmp_path / "out.mp4")

        # Seek to the earliest source point, trims are relative to it
        assert command[command.index('-ss') + 1] == "20.0"
        assert '-t' not in command

        graph = filter_graph(command)
        assert "trim=end=40.0:start=30.0" in graph
        assert "trim=end=5.0:start=0.0" in graph
        assert "atrim=end=40.0:start=30.0" in graph
        assert "concat=a=1:n=2:v=1" in graph
        assert "0.1000*(iw-ih*9/16)" in graph
        assert "0.9000*(iw-ih*9/16)" in graph

    def test_subtitles_filter(self, tmp_path):
        request = self.make_request(
            [{'id': 'a', 'sourceStart': 0.0, 'sourceEnd': 10.0}],
            srtContent=SRT,
        )
        renderer = ClipRenderer(request, tmp_path)
        subtitle_path = renderer.write_subtitles()

        assert subtitle_path == tmp_path / "subtitles.ass"
        assert "Dialogue: 0,0:00:01.50,0:00:03.00,Default,,0,0,0,,Hello there" in subtitle_path.read_text(encoding='utf-8')

        graph = filter_graph(renderer.build_command(tmp_path / "out.mp4", subtitle_path))
        assert "subtitles=filename=" in graph

    def test_disabled_style_skips_subtitles(self, tmp_path):
        request = self.make_request(
            [{'id': 'a', 'sourceStart': 0.0, 'sourceEnd': 10.0}],
            srtContent=SRT,
            subtitleStyle=SubtitleStyle(enabled=False),
        )
        renderer = ClipRenderer(request, tmp_path)
        assert renderer.burns_subtitles is False
        assert renderer.write_subtitles() is None

    def test_blank_srt_skips_subtitles(self, tmp_path):
        request = self.make_request([{'id': 'a', 'sourceStart': 0.0, 'sourceEnd': 10.0}], srtContent="  \n")
        assert ClipRenderer(request, tmp_path).write_subtitles() is None

    def test_unparseable_srt_names_no_subtitle_file(self, tmp_path):
        """A payload with no usable blocks writes nothing and burns nothing"""
        request = self.make_request(
            [{'id': 'a', 'sourceStart': 0.0, 'sourceEnd': 10.0}],
            srtContent="1\nno timing here\nText\n",
        )
        renderer = ClipRenderer(request, tmp_path)
        assert renderer.burns_subtitles is True

        subtitle_path = renderer.write_subtitles()
        assert subtitle_path is None
        assert not (tmp_path / "subtitles.ass").exists()
        assert "subtitles" not in filter_graph(renderer.build_command(tmp_path / "out.mp4", subtitle_path))

    def test_custom_ffmpeg_path(self, tmp_path):
        request = self.make_request([{'id': 'a', 'sourceStart': 0.0, 'sourceEnd': 10.0}])
        command = ClipRenderer(request, tmp_path, ffmpeg_path="/opt/ffmpeg").build_command(tmp_path / "o.mp4")
        assert command[0] == "/opt/ffmpeg"


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
