"""V4L2 device that moves frames with plain read and write calls."""

from __future__ import annotations

import os

from .device import V4l2Device


class ReadWriteDevice(V4l2Device):
    """Device using the read/write I/O method."""

    def read_internal(self, size: int) -> bytes:
        """Read up to ``size`` bytes of one frame."""
        return os.read(self.fileno(), size)

    def write_internal(self, data: bytes) -> int:
        """Write ``data`` and return how many bytes were taken."""
        return os.write(self.fileno(), data)