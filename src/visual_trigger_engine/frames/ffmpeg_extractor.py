"""Pull single JPEG frames from an RTSP stream with ffmpeg."""

from __future__ import annotations

import logging
import subprocess

from visual_trigger_engine.config import EngineSettings
from visual_trigger_engine.errors import FrameExtractionError, FrameExtractionTimeout

logger = logging.getLogger(__name__)


def jpeg_qscale(quality: int) -> int:
    """Map a 1-100 JPEG quality to ffmpeg's -q:v scale (31 worst, 2 best)."""

    quality = min(100, max(1, quality))
    return round(31 - (quality / 100) * 29)


class FfmpegFrameExtractor:
    """Grab one frame per call by spawning ffmpeg against the stream."""

    def __init__(
        self,
        rtsp_url: str,
        *,
        max_width: int = 1024,
        quality: int = 85,
        timeout_seconds: float = 10.0,
        ffmpeg_binary: str = "ffmpeg",
    ) -> None:
        if not rtsp_url:
            raise ValueError("rtsp_url is required")
        self.rtsp_url = rtsp_url
        self.max_width = max_width
        self.quality = quality
        self.timeout_seconds = timeout_seconds
        self.ffmpeg_binary = ffmpeg_binary

    @classmethod
    def from_settings(cls, settings: EngineSettings) -> FfmpegFrameExtractor:
        return cls(
            settings.rtsp_url,
            max_width=settings.frame_max_width,
            quality=settings.frame_quality,
            timeout_seconds=settings.frame_extraction_timeout_seconds,
        )

    def build_command(self) -> list[str]:
        return [
            self.ffmpeg_binary,
            "-rtsp_transport",
            "tcp",
            "-i",
            self.rtsp_url,
            "-vframes",
            "1",
            "-vf",
            f"scale='min({self.max_width},iw)':-1",
            "-f",
            "image2pipe",
            "-vcodec",
            "mjpeg",
            "-q:v",
            str(jpeg_qscale(self.quality)),
            "pipe:1",
        ]

    def extract_frame(self) -> bytes:
        try:
            result = subprocess.run(
                self.build_command(),
                stdin=subprocess.DEVNULL,
                capture_output=True,
                timeout=self.timeout_seconds,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise FrameExtractionTimeout(
                f"Frame extraction timed out after {self.timeout_seconds}s"
            ) from e
        except OSError as e:
            raise FrameExtractionError(f"Failed to start ffmpeg: {e}") from e

        if result.returncode != 0 or not result.stdout:
            stderr = result.stderr.decode("utf-8", errors="replace")[-500:]
            logger.debug("ffmpeg failed", extra={"returncode": result.returncode, "stderr": stderr})
            raise FrameExtractionError(f"ffmpeg exited with code {result.returncode}")

        return result.stdout
