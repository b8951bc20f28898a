"""Video frame sampler.

Reads a local video file with OpenCV, picks evenly spaced frames and
re-encodes each one as a downscaled JPEG with Pillow. Frames are returned
as base64 strings ready to be wrapped in image data URLs.

Public class: `FrameSampler`

Example:
    sampler = FrameSampler(max_frames=8, max_size=(768, 768))
    frames_b64 = sampler.sample("/tmp/squat.mp4")
"""
from __future__ import annotations

import base64
import io
from typing import List, Tuple

import cv2
from PIL import Image


class FrameSampler:
    """Sample still frames from a video file.

    Args:
        max_frames: Number of frames to take across the whole clip.
        max_size: Maximum width and height of each encoded frame.
        quality: JPEG quality used when encoding.
    """

    def __init__(self, max_frames: int = 8, max_size: Tuple[int, int] = (768, 768), quality: int = 80):
        if max_frames < 1:
            raise ValueError("max_frames must be at least 1")
        self.max_frames = max_frames
        self.max_size = max_size
        self.quality = quality

    @staticmethod
    def frame_indices(total_frames: int, count: int) -> List[int]:
        """Return `count` evenly spaced frame indices covering the clip."""
        if total_frames <= 0:
            return []
        count = min(count, total_frames)
        step = total_frames / count
        return [min(total_frames - 1, int(step * i + step / 2)) for i in range(count)]

    def sample(self, video_path: str) -> List[str]:
        """Return base64 JPEG frames sampled from `video_path`.

        Raises:
            ValueError: If the file cannot be opened or yields no frames.
        """
        capture = cv2.VideoCapture(video_path)
        if not capture.isOpened():
            raise ValueError(f"Unable to open video file: {video_path}")
        try:
            total = int(capture.get(cv2.CAP_PROP_FRAME_COUNT) or 0)
            frames: List[str] = []
            for index in self.frame_indices(total, self.max_frames):
                capture.set(cv2.CAP_PROP_POS_FRAMES, index)
                ok, frame = capture.read()
                if not ok or frame is None:
                    continue
                frames.append(self._encode(frame))
        finally:
            capture.release()

        if not frames:
            raise ValueError("No frames could be read from the video.")
        return frames

    def _encode(self, frame) -> str:
        """Convert a BGR OpenCV frame to a base64 JPEG string."""
        image = Image.fromarray(cv2.cvtColor(frame, cv2.COLOR_BGR2RGB))
        image.thumbnail(self.max_size, Image.LANCZOS)
        out_io = io.BytesIO()
        image.save(out_io, format="JPEG", quality=self.quality, optimize=True)
        return base64.b64encode(out_io.getvalue()).decode("utf-8")
