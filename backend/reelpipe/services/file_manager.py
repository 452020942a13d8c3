"""
File management service for reelpipe.

Handles per-job artifact storage with path traversal protection.
"""
from pathlib import Path

from reelpipe.config import settings

JOB_SUBDIRS = ("images", "audio", "captions", "output")


class FileManager:
    """
    Manage filesystem artifacts for generation jobs.

    Creates structured directories:
    - {base_dir}/{job_id}/images/ - Downloaded and placeholder slides
    - {base_dir}/{job_id}/audio/ - Narration track
    - {base_dir}/{job_id}/captions/ - SRT subtitles
    - {base_dir}/{job_id}/output/ - Final video and thumbnail

    Implements path traversal protection to prevent directory escape attacks.
    """

    def __init__(self, base_dir: str | Path | None = None):
        """
        Initialize FileManager with base directory.

        Args:
            base_dir: Root directory for all job artifacts.
                     If None, uses settings.storage.tmp_dir
        """
        if base_dir is None:
            base_dir = settings.storage.tmp_dir

        self.base_dir = Path(base_dir).resolve()
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def get_job_dir(self, job_id: str) -> Path:
        """
        Get or create the job directory with its subdirectories.

        Raises:
            ValueError: If job_id resolves outside base_dir (traversal attack)
        """
        job_dir = (self.base_dir / str(job_id)).resolve()

        if job_dir == self.base_dir or not job_dir.is_relative_to(self.base_dir):
            raise ValueError("Invalid job path")

        job_dir.mkdir(exist_ok=True)
        for name in JOB_SUBDIRS:
            (job_dir / name).mkdir(exist_ok=True)

        return job_dir

    def get_path(self, job_id: str, kind: str, filename: str) -> Path:
        """
        Path for an artifact of the given kind ("images", "audio", ...).

        Raises:
            ValueError: If kind is unknown or filename escapes the directory
        """
        if kind not in JOB_SUBDIRS:
            raise ValueError(f"Unknown artifact kind: {kind}")
        directory = self.get_job_dir(job_id) / kind
        path = (directory / filename).resolve()
        if path.parent != directory:
            raise ValueError("Invalid artifact filename")
        return path

    def get_audio_path(self, job_id: str, filename: str = "narration.mp3") -> Path:
        return self.get_path(job_id, "audio", filename)

    def get_captions_path(self, job_id: str, filename: str = "captions.srt") -> Path:
        return self.get_path(job_id, "captions", filename)

    def get_output_path(self, job_id: str, filename: str = "final.mp4") -> Path:
        return self.get_path(job_id, "output", filename)
