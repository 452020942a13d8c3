"""ffprobe wrapper for reading media duration and stream metadata."""

import asyncio
import json
import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass
class MediaInfo:
    duration_seconds: float
    size_bytes: int
    width: Optional[int] = None
    height: Optional[int] = None
    has_audio: bool = False

    @property
    def resolution(self) -> Optional[str]:
        if self.width is None or self.height is None:
            return None
        return f"{self.width}x{self.height}"


def parse_probe_output(data: dict) -> MediaInfo:
    """Build MediaInfo from ``ffprobe -show_format -show_streams`` JSON.

    Raises:
        ValueError: If the format section carries no duration.
    """
    fmt = data.get("format", {})
    if "duration" not in fmt:
        raise ValueError("ffprobe output has no duration")
    streams = data.get("streams", [])
    video = next((s for s in streams if s.get("codec_type") == "video"), None)
    return MediaInfo(
        duration_seconds=float(fmt["duration"]),
        size_bytes=int(fmt.get("size", 0)),
        width=video.get("width") if video else None,
        height=video.get("height") if video else None,
        has_audio=any(s.get("codec_type") == "audio" for s in streams),
    )


def _probe_sync(path: Path) -> MediaInfo:
    result = subprocess.run(
        [
            "ffprobe",
            "-v",
            "error",
            "-print_format",
            "json",
            "-show_format",
            "-show_streams",
            str(path),
        ],
        check=True,
        capture_output=True,
    )
    return parse_probe_output(json.loads(result.stdout))


async def probe(path: Path) -> MediaInfo:
    """Read media metadata with ffprobe in a worker thread.

    Raises:
        subprocess.CalledProcessError: If ffprobe cannot read the file.
        ValueError: If the output carries no duration.
    """
    info = await asyncio.to_thread(_probe_sync, path)
    logger.debug(f"Probed {path}: {info.duration_seconds:.2f}s, {info.size_bytes} bytes")
    return info
