from __future__ import annotations

from typing import Protocol


class FrameSource(Protocol):
    """Produces one still image from the live stream on demand.

    Implementations raise `FrameExtractionError` (or `FrameExtractionTimeout`)
    when no frame can be produced.
    """

    def extract_frame(self) -> bytes: ...
