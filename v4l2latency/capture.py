"""Capture front end: reads frames from a V4L2 device."""

from __future__ import annotations

import select

from .access import V4l2Access, _open_device
from .videodev import V4L2_BUF_TYPE_VIDEO_CAPTURE, V4L2_CAP_VIDEO_CAPTURE, DeviceParameters


class V4l2Capture(V4l2Access):
    """Reads frames from a capture device."""

    @classmethod
    def create(cls, params: DeviceParameters) -> V4l2Capture:
        """Open and configure a capture device; raise :class:`V4l2Error` on failure."""
        device = _open_device(params, V4L2_BUF_TYPE_VIDEO_CAPTURE, V4L2_CAP_VIDEO_CAPTURE)
        return cls(device)

    def read(self, size: int) -> bytes:
        """Read at most ``size`` bytes of one frame."""
        return self.device.read_internal(size)

    def is_readable(self, timeout: float | None) -> bool:
        """Wait up to ``timeout`` seconds (forever if None) for a frame to be ready."""
        readable, _, _ = select.select([self.fileno()], [], [], timeout)
        return bool(readable)