# Render Plan - Turn a committed edit decision list into an ffmpeg command
# Per segment: trim -> 9:16 crop at cropX -> scale, then concat and burn subtitles

import ffmpeg
import logging
import re
from pathlib import Path
from typing import List, Optional, Sequence

import settings
from clip_models import FONT_SIZE_MAP, RenderRequest, SubtitleStyle
from clip_utils import clamp
from subtitle_timing import format_ass_time, parse_srt

logger = logging.getLogger(__name__)

CROP_WIDTH_EXPR = 'ih*9/16'

_HEX_COLOR_RE = re.compile(r'^#([0-9a-fA-F]{6})$')
_RGBA_COLOR_RE = re.compile(r'^rgba?\(\s*(\d+)\s*,\s*(\d+)\s*,\s*(\d+)\s*(?:,\s*([\d.]+)\s*)?\)$')


def crop_x_expression(crop_x: float) -> str:
    """FFmpeg x expression for a 9:16 window anchored at crop_x"""
    return f"{clamp(crop_x, 0.0, 1.0):.4f}*(iw-{CROP_WIDTH_EXPR})"


def ass_color(value: str) -> str:
    """Convert #RRGGBB / rgba() / 'transparent' to ASS &HAABBGGRR"""
    if value == 'transparent':
        return '&HFF000000'

    match = _HEX_COLOR_RE.match(value)
    if match:
        rgb = match.group(1)
        return f"&H00{rgb[4:6]}{rgb[2:4]}{rgb[0:2]}".upper()

    match = _RGBA_COLOR_RE.match(value.replace(' ', ''))
    if match:
        r, g, b = (int(match.group(i)) for i in (1, 2, 3))
        alpha = float(match.group(4)) if match.group(4) is not None else 1.0
        ass_alpha = int(round(255 * (1 - clamp(alpha, 0.0, 1.0))))
        return f"&H{ass_alpha:02X}{b:02X}{g:02X}{r:02X}"

    logger.warning(f"Unsupported subtitle color {value!r}, using white")
    return '&H00FFFFFF'


def build_ass(
    blocks: Sequence[dict],
    style: SubtitleStyle,
    width: int = settings.OUTPUT_WIDTH,
    height: int = settings.OUTPUT_HEIGHT
) -> str:
    """ASS subtitle document for the rendered (already cropped) frame"""
    font_size = FONT_SIZE_MAP[style.fontSize]

    alignment_map = {
        'top': 8,
        'center': 5,
        'bottom': 2
    }
    margin_map = {
        'top': 150,
        'center': 0,
        'bottom': 300
    }

    border_style = 3 if style.background == 'box' else 1

    # ASS header (Must not have indentation!)
    header = f"""[Script Info]
ScriptType: v4.00+
PlayResX: {width}
PlayResY: {height}
WrapStyle: 0
ScaledBorderAndShadow: yes

[V4+ Styles]
Format: Name, Fontname, Fontsize, PrimaryColour, SecondaryColour, OutlineColour, BackColour, Bold, Italic, Underline, StrikeOut, ScaleX, ScaleY, Spacing, Angle, BorderStyle, Outline, Shadow, Alignment, MarginL, MarginR, MarginV, Encoding
Style: Default,{style.fontFamily},{font_size},{ass_color(style.textColor)},&H000000FF,{ass_color(style.strokeColor)},{ass_color(style.backgroundColor)},-1,0,0,0,100,100,0,0,{border_style},{style.strokeWidth},0,{alignment_map[style.position]},10,10,{margin_map[style.position]},1

[Events]
Format: Layer, Start, End, Style, Name, MarginL, MarginR, MarginV, Effect, Text
"""

    events = []
    for block in blocks:
        text = block['text'].replace('\n', ' ').replace('\r', '')
        if style.textTransform == 'uppercase':
            text = text.upper()
        events.append(
            f"Dialogue: 0,{format_ass_time(block['start'])},{format_ass_time(block['end'])},Default,,0,0,0,,{text}\n"
        )

    return header + ''.join(events)


class ClipRenderer:
    """Build (and optionally run) the ffmpeg job for a render request"""

    def __init__(self, request: RenderRequest, temp_dir: Path, ffmpeg_path: str = settings.FFMPEG_PATH):
        self.request = request
        self.temp_dir = Path(temp_dir)
        self.ffmpeg_path = ffmpeg_path

    @property
    def burns_subtitles(self) -> bool:
        style = self.request.subtitleStyle
        return bool(self.request.srtContent and self.request.srtContent.strip()) and (style is None or style.enabled)

    def write_subtitles(self) -> Optional[Path]:
        """Write the ASS file the subtitles filter reads, if any"""
        if not self.burns_subtitles:
            return None

        blocks = parse_srt(self.request.srtContent)
        if not blocks:
            return None

        self.temp_dir.mkdir(parents=True, exist_ok=True)
        ass_path = self.temp_dir / "subtitles.ass"
        with open(ass_path, 'w', encoding='utf-8') as f:
            f.write(build_ass(blocks, self.request.subtitleStyle or SubtitleStyle()))

        logger.info(f"Subtitles written: {len(blocks)} blocks -> {ass_path}")
        return ass_path

    def _crop(self, stream, crop_x: float):
        return (
            stream
            .filter('crop', CROP_WIDTH_EXPR, 'ih', crop_x_expression(crop_x), 0)
            .filter('scale', settings.OUTPUT_WIDTH, settings.OUTPUT_HEIGHT)
        )

    def build(self, output_path: Path, subtitle_path: Optional[Path] = None):
        """ffmpeg-python output stream for the whole edit"""
        segments = self.request.segments

        if len(segments) == 1:
            seg = segments[0]
            source = ffmpeg.input(
                self.request.videoUrl,
                ss=seg.sourceStart,
                t=round(seg.sourceEnd - seg.sourceStart, 3)
            )
            video = self._crop(source.video, seg.cropX)
            audio = source.audio
        else:
            # Seek once to the earliest point; trims are relative to it
            earliest = min(seg.sourceStart for seg in segments)
            source = ffmpeg.input(self.request.videoUrl, ss=earliest)

            parts = []
            for seg in segments:
                start = round(seg.sourceStart - earliest, 3)
                end = round(seg.sourceEnd - earliest, 3)
                video_part = source.video.trim(start=start, end=end).setpts('PTS-STARTPTS')
                audio_part = (
                    source.audio
                    .filter('atrim', start=start, end=end)
                    .filter('asetpts', 'PTS-STARTPTS')
                )
                parts.extend([self._crop(video_part, seg.cropX), audio_part])

            joined = ffmpeg.concat(*parts, v=1, a=1).node
            video, audio = joined[0], joined[1]

        if subtitle_path is not None:
            video = video.filter('subtitles', filename=str(subtitle_path))

        return (
            ffmpeg
            .output(
                video,
                audio,
                str(output_path),
                vcodec='libx264',
                preset='ultrafast',
                crf=30,
                acodec='aac',
                audio_bitrate='128k',
                movflags='+faststart'
            )
            .overwrite_output()
        )

    def build_command(self, output_path: Path, subtitle_path: Optional[Path] = None) -> List[str]:
        """Compile the ffmpeg argv without running it"""
        return self.build(output_path, subtitle_path).compile(cmd=self.ffmpeg_path)

    def render(self, output_path: Path) -> Path:
        """Run the render; ffmpeg failures surface as RuntimeError"""
        subtitle_path = self.write_subtitles()
        stream = self.build(output_path, subtitle_path)

        logger.info(
            f"Rendering {len(self.request.segments)} segments "
            f"({self.request.total_duration:.2f}s) -> {output_path}"
        )

        try:
            stream.run(cmd=self.ffmpeg_path, capture_stdout=True, capture_stderr=True)
        except ffmpeg.Error as e:
            stderr = e.stderr.decode('utf-8', errors='replace') if e.stderr else str(e)
            logger.error(f"Render failed: {stderr}")
            raise RuntimeError(f"Render failed: {stderr}") from e

        logger.info(f"✅ Render complete: {output_path}")
        return Path(output_path)
