"""Slideshow video assembly with ffmpeg.

Builds the final MP4 from still images and the narration track:
- concat demuxer over the images, each shown for an equal share of the
  narration duration
- scale/pad to the style's frame format
- captions burned in with the subtitles filter when requested
- thumbnail grabbed at 10% of the running time (failure is non-fatal)

Command construction is kept in pure functions so it can be checked
without running ffmpeg.
"""

import asyncio
import logging
import subprocess
import tempfile
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from reelpipe.config import CaptionsConfig, VideoConfig
from reelpipe.errors import EncodingError
from reelpipe.schemas.job import VideoStyle
from reelpipe.schemas.media import AudioRef, ImageRef, VideoDescriptor
from reelpipe.services import media_probe
from reelpipe.services.base import VideoEncoder
from reelpipe.services.captions import build_cues, render_srt
from reelpipe.services.file_manager import FileManager

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VideoFormat:
    width: int
    height: int
    fps: int

    @property
    def resolution(self) -> str:
        return f"{self.width}x{self.height}"


STYLE_FORMATS = {
    VideoStyle.NEWS: VideoFormat(1920, 1080, 30),
    VideoStyle.SOCIAL: VideoFormat(1080, 1920, 30),
    VideoStyle.EDUCATIONAL: VideoFormat(1920, 1080, 30),
    VideoStyle.ENTERTAINMENT: VideoFormat(1920, 1080, 30),
    VideoStyle.DOCUMENTARY: VideoFormat(1920, 1080, 24),
}


def _quote_concat_path(path: Path) -> str:
    return "'" + str(path.resolve()).replace("'", "'\\''") + "'"


def build_concat_list(image_paths: list[Path], seconds_per_image: float) -> str:
    """Concat demuxer script showing each image for ``seconds_per_image``.

    The last file is listed twice; the demuxer ignores the final duration
    directive otherwise.
    """
    lines = []
    for path in image_paths:
        lines.append(f"file {_quote_concat_path(path)}")
        lines.append(f"duration {seconds_per_image:.3f}")
    if image_paths:
        lines.append(f"file {_quote_concat_path(image_paths[-1])}")
    return "\n".join(lines) + "\n"


def ass_colour(hex_colour: str) -> str:
    """Convert ``#RRGGBB`` to the ASS ``&H00BBGGRR`` form used by force_style.

    Examples:
        >>> ass_colour("#FF8000")
        '&H000080FF'
    """
    value = hex_colour.lstrip("#")
    if len(value) != 6:
        raise ValueError(f"Expected #RRGGBB colour, got {hex_colour!r}")
    red, green, blue = value[0:2], value[2:4], value[4:6]
    return f"&H00{blue}{green}{red}".upper()


def escape_filter_path(path: Path) -> str:
    """Escape a path for use inside a quoted filter option."""
    return str(path.resolve()).replace("\\", "/").replace(":", "\\:").replace("'", "\\'")


def build_filter_chain(
    fmt: VideoFormat,
    subtitles_path: Optional[Path] = None,
    captions: Optional[CaptionsConfig] = None,
) -> str:
    """Video filter: letterbox to the frame format, then burn in captions."""
    filters = [
        f"scale={fmt.width}:{fmt.height}:force_original_aspect_ratio=decrease",
        f"pad={fmt.width}:{fmt.height}:(ow-iw)/2:(oh-ih)/2",
        "setsar=1",
        f"fps={fmt.fps}",
    ]
    if subtitles_path is not None:
        captions = captions or CaptionsConfig()
        style = ",".join(
            [
                f"FontSize={captions.font_size}",
                f"PrimaryColour={ass_colour(captions.font_colour)}",
                f"OutlineColour={ass_colour(captions.outline_colour)}",
                f"Outline={captions.outline_width}",
                f"MarginV={captions.margin_v}",
            ]
        )
        filters.append(f"subtitles='{escape_filter_path(subtitles_path)}':force_style='{style}'")
    return ",".join(filters)


def build_encode_command(
    concat_list: Path,
    audio_path: Path,
    output_path: Path,
    video_filter: str,
    video: VideoConfig,
) -> list[str]:
    return [
        "ffmpeg",
        "-y",
        "-f",
        "concat",
        "-safe",
        "0",  # allow absolute paths in the list file
        "-i",
        str(concat_list),
        "-i",
        str(audio_path),
        "-map",
        "0:v",
        "-map",
        "1:a",
        "-vf",
        video_filter,
        "-c:v",
        "libx264",
        "-preset",
        video.preset,
        "-crf",
        str(video.crf),
        "-pix_fmt",
        "yuv420p",
        "-c:a",
        "aac",
        "-b:a",
        video.audio_bitrate,
        "-shortest",
        "-movflags",
        "+faststart",
        str(output_path),
    ]


def build_thumbnail_command(
    video_path: Path,
    thumbnail_path: Path,
    at_seconds: float,
    width: int,
    height: int,
) -> list[str]:
    return [
        "ffmpeg",
        "-y",
        "-ss",
        f"{at_seconds:.3f}",
        "-i",
        str(video_path),
        "-frames:v",
        "1",
        "-vf",
        f"scale={width}:{height}:force_original_aspect_ratio=decrease,pad={width}:{height}:(ow-iw)/2:(oh-ih)/2",
        str(thumbnail_path),
    ]


class FFmpegVideoEncoder(VideoEncoder):
    """VideoEncoder that renders an image slideshow with ffmpeg."""

    def __init__(
        self,
        video: VideoConfig,
        captions: CaptionsConfig,
        file_manager: FileManager,
        words_per_minute: int = 150,
    ):
        self.video = video
        self.captions = captions
        self.file_manager = file_manager
        self.words_per_minute = words_per_minute

    async def assemble(
        self,
        script: str,
        images: list[ImageRef],
        audio: AudioRef,
        *,
        captions: bool,
        job_id: str,
        style: VideoStyle,
    ) -> VideoDescriptor:
        if not images:
            raise EncodingError("No images to assemble")

        fmt = STYLE_FORMATS.get(style, STYLE_FORMATS[VideoStyle.NEWS])
        video_id = uuid.uuid4().hex
        output_path = self.file_manager.get_output_path(job_id, f"video_{video_id}.mp4")

        captions_path = None
        if captions:
            cues = build_cues(script, audio.duration_seconds, self.words_per_minute)
            if cues:
                captions_path = self.file_manager.get_captions_path(job_id)
                captions_path.write_text(render_srt(cues), encoding="utf-8")
                logger.info(f"Job {job_id}: wrote {len(cues)} caption cues")

        seconds_per_image = audio.duration_seconds / len(images)
        video_filter = build_filter_chain(fmt, captions_path, self.captions)
        logger.info(
            f"Job {job_id}: encoding {len(images)} images at {seconds_per_image:.2f}s each, "
            f"{fmt.resolution}@{fmt.fps}fps"
        )

        try:
            await asyncio.to_thread(
                self._encode,
                [Path(image.location) for image in images],
                seconds_per_image,
                Path(audio.location),
                output_path,
                video_filter,
            )
        except subprocess.CalledProcessError as e:
            stderr = e.stderr.decode(errors="replace") if e.stderr else "No error output"
            logger.error(f"Job {job_id}: ffmpeg error: {stderr}")
            output_path.unlink(missing_ok=True)
            raise EncodingError(f"Video encoding failed: {stderr[-500:]}") from e
        except OSError as e:
            output_path.unlink(missing_ok=True)
            raise EncodingError(f"Video encoding failed: {e}") from e

        try:
            info = await media_probe.probe(output_path)
        except (subprocess.CalledProcessError, ValueError) as e:
            raise EncodingError(f"Encoded video is unreadable: {e}") from e

        thumbnail_path = await self._thumbnail(output_path, info.duration_seconds)

        logger.info(f"Job {job_id}: video ready -> {output_path}")
        return VideoDescriptor(
            video_id=video_id,
            location=str(output_path),
            duration_seconds=info.duration_seconds,
            file_size_bytes=info.size_bytes,
            resolution=info.resolution or fmt.resolution,
            thumbnail_location=str(thumbnail_path) if thumbnail_path else None,
            captions_location=str(captions_path) if captions_path else None,
        )

    def _encode(
        self,
        image_paths: list[Path],
        seconds_per_image: float,
        audio_path: Path,
        output_path: Path,
        video_filter: str,
    ) -> None:
        with tempfile.TemporaryDirectory(prefix="reelpipe-") as scratch:
            list_file = Path(scratch) / "concat_list.txt"
            list_file.write_text(build_concat_list(image_paths, seconds_per_image))
            subprocess.run(
                build_encode_command(list_file, audio_path, output_path, video_filter, self.video),
                check=True,
                capture_output=True,
            )

    async def _thumbnail(self, video_path: Path, duration_seconds: float) -> Optional[Path]:
        thumbnail_path = video_path.with_name(video_path.stem + "_thumb.jpg")
        command = build_thumbnail_command(
            video_path,
            thumbnail_path,
            duration_seconds * 0.1,
            self.video.thumbnail_width,
            self.video.thumbnail_height,
        )
        try:
            await asyncio.to_thread(subprocess.run, command, check=True, capture_output=True)
        except (subprocess.CalledProcessError, OSError) as e:
            logger.warning(f"Thumbnail generation failed for {video_path}: {e}")
            return None
        return thumbnail_path
