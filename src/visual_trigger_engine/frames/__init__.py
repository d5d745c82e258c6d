"""Frame sources for the periodic detection cycle."""

from visual_trigger_engine.frames.ffmpeg_extractor import FfmpegFrameExtractor
from visual_trigger_engine.frames.source import FrameSource

__all__ = ["FfmpegFrameExtractor", "FrameSource"]
