"""Output front end: writes frames to a V4L2 device or a plain file."""

from __future__ import annotations

import select

from .access import V4l2Access, _open_device
from .videodev import V4L2_BUF_TYPE_VIDEO_OUTPUT, V4L2_CAP_VIDEO_OUTPUT, DeviceParameters


class V4l2Output(V4l2Access):
    """Writes frames to an output device."""

    @classmethod
    def create(cls, params: DeviceParameters) -> V4l2Output:
        """Open and configure an output device; raise :class:`V4l2Error` on failure."""
        device = _open_device(params, V4L2_BUF_TYPE_VIDEO_OUTPUT, V4L2_CAP_VIDEO_OUTPUT)
        return cls(device)

    def write(self, data: bytes) -> int:
        """Write one frame; return how many bytes were taken."""
        return self.device.write_internal(data)

    def is_writable(self, timeout: float | None) -> bool:
        """Wait up to ``timeout`` seconds (forever if None) for the device to accept a frame."""
        _, writable, _ = select.select([], [self.fileno()], [], timeout)
        return bool(writable)

    def start_partial_write(self) -> bool:
        """Begin a frame written in pieces."""
        return self.device.start_partial_write()

    def write_partial(self, data: bytes) -> int:
        """Append ``data`` to the frame being written."""
        return self.device.write_partial_internal(data)

    def end_partial_write(self) -> bool:
        """Finish the frame written in pieces."""
        return self.device.end_partial_write()