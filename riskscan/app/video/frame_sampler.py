"""
Video frame sampling.

Extracts a fixed number of evenly spaced still frames from a video using
the ffprobe/ffmpeg binaries. Frame ``i`` of ``n`` is taken at the centre
of the ``i``-th equal slice of the video:

    t_i = duration * (i + 0.5) / n

Frames are returned in timestamp order as JPEG bytes. No media is decoded
in-process.
"""

from __future__ import annotations

import asyncio
import json
import logging
import mimetypes
import subprocess
import tempfile
from pathlib import Path
from typing import List, Protocol, Sequence

from pydantic import BaseModel, ConfigDict, Field

from riskscan.app.errors import MediaProcessingFailure

logger = logging.getLogger(__name__)


class SampledFrame(BaseModel):
    frame_number: int = Field(..., ge=0)
    timestamp_ms: int = Field(..., ge=0)
    image_bytes: bytes
    mime_type: str = "image/jpeg"

    model_config = ConfigDict(frozen=True, extra="forbid")


class FrameSampler(Protocol):
    async def sample(
        self,
        video_bytes: bytes,
        mime_type: str,
        count: int,
    ) -> List[SampledFrame]:
        ...


def evenly_spaced_timestamps(duration_seconds: float, count: int) -> List[float]:
    if duration_seconds <= 0 or count <= 0:
        return []
    return [duration_seconds * (i + 0.5) / count for i in range(count)]


class FfmpegFrameSampler:
    """
    FrameSampler backed by the ffprobe and ffmpeg command line tools.

    Subprocesses run in a worker thread. Individual frames that fail to
    extract are skipped; a video that yields no frame at all is an error.
    """

    def __init__(
        self,
        *,
        ffmpeg_binary: str = "ffmpeg",
        ffprobe_binary: str = "ffprobe",
        frame_width: int = 640,
        timeout_seconds: int = 60,
    ) -> None:
        self._ffmpeg = ffmpeg_binary
        self._ffprobe = ffprobe_binary
        self._frame_width = frame_width
        self._timeout = timeout_seconds

    async def sample(
        self,
        video_bytes: bytes,
        mime_type: str,
        count: int,
    ) -> List[SampledFrame]:
        return await asyncio.to_thread(self._sample_sync, video_bytes, mime_type, count)

    # ------------------------------------------------------------------
    # Blocking implementation
    # ------------------------------------------------------------------

    def _sample_sync(
        self,
        video_bytes: bytes,
        mime_type: str,
        count: int,
    ) -> List[SampledFrame]:
        suffix = mimetypes.guess_extension(mime_type or "") or ".mp4"

        with tempfile.TemporaryDirectory(prefix="riskscan_frames_") as workdir:
            video_path = Path(workdir) / f"input{suffix}"
            video_path.write_bytes(video_bytes)

            duration = self.probe_duration(video_path)
            timestamps = evenly_spaced_timestamps(duration, count)
            if not timestamps:
                raise MediaProcessingFailure(
                    f"Video has no measurable duration ({duration!r}s)"
                )

            frames = self._extract(video_path, Path(workdir), timestamps)

        if not frames:
            raise MediaProcessingFailure(
                f"No frames could be extracted (requested {count})"
            )

        logger.info("Sampled %d/%d frames from video", len(frames), count)
        return frames

    def _run(self, cmd: Sequence[str]) -> subprocess.CompletedProcess:
        try:
            return subprocess.run(
                list(cmd),
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                timeout=self._timeout,
                check=False,
            )
        except FileNotFoundError as exc:
            raise MediaProcessingFailure(f"Executable not found: {cmd[0]}") from exc
        except subprocess.TimeoutExpired as exc:
            raise MediaProcessingFailure(
                f"{cmd[0]} timed out after {self._timeout}s"
            ) from exc

    def probe_duration(self, video_path: Path) -> float:
        proc = self._run(
            [
                self._ffprobe,
                "-v", "error",
                "-print_format", "json",
                "-show_format",
                str(video_path),
            ]
        )
        if proc.returncode != 0:
            raise MediaProcessingFailure(
                "ffprobe failed:\n"
                + proc.stderr.decode("utf-8", errors="replace")[-2000:]
            )

        try:
            info = json.loads(proc.stdout.decode("utf-8"))
            return float(info.get("format", {}).get("duration", 0))
        except (ValueError, TypeError) as exc:
            raise MediaProcessingFailure("ffprobe returned no usable duration") from exc

    def _extract(
        self,
        video_path: Path,
        workdir: Path,
        timestamps: Sequence[float],
    ) -> List[SampledFrame]:
        frames: List[SampledFrame] = []

        for index, seconds in enumerate(timestamps):
            output = workdir / f"frame_{index:03d}.jpg"
            proc = self._run(
                [
                    self._ffmpeg,
                    "-ss", f"{seconds:.3f}",
                    "-i", str(video_path),
                    "-frames:v", "1",
                    "-vf", f"scale={self._frame_width}:-2",
                    "-q:v", "2",
                    "-an",
                    "-y",
                    "-loglevel", "error",
                    str(output),
                ]
            )

            if proc.returncode != 0 or not output.exists():
                logger.warning(
                    "Frame %d at %.3fs could not be extracted: %s",
                    index,
                    seconds,
                    proc.stderr.decode("utf-8", errors="replace")[-500:],
                )
                continue

            frames.append(
                SampledFrame(
                    frame_number=index,
                    timestamp_ms=int(seconds * 1000),
                    image_bytes=output.read_bytes(),
                )
            )

        return frames
