"""Common front end over a capture or output device."""

from __future__ import annotations

from .device import V4l2Device, V4l2Error
from .mmapdevice import MmapDevice
from .readwrite import ReadWriteDevice
from .videodev import (
    V4L2_CAP_READWRITE,
    V4L2_CAP_STREAMING,
    DeviceParameters,
    IoType,
)


def _open_device(params: DeviceParameters, buffer_type: int, capability: int) -> V4l2Device:
    """Create the device kind chosen by ``params.io_type`` and initialise it."""
    if params.io_type is IoType.MMAP:
        device: V4l2Device = MmapDevice(params, buffer_type)
        capability |= V4L2_CAP_STREAMING
    else:
        device = ReadWriteDevice(params, buffer_type)
        capability |= V4L2_CAP_READWRITE
    try:
        device.init(capability)
    except V4l2Error:
        device.close()
        raise
    return device


class V4l2Access:
    """Owns a :class:`V4l2Device` and exposes its common operations."""

    def __init__(self, device: V4l2Device) -> None:
        self.device = device

    def __enter__(self) -> V4l2Access:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        """Release the device."""
        self.device.close()

    def fileno(self) -> int:
        """Return the device's descriptor."""
        return self.device.fileno()

    @property
    def buffer_size(self) -> int:
        return self.device.buffer_size

    @property
    def format(self) -> int:
        return self.device.format

    @property
    def width(self) -> int:
        return self.device.width

    @property
    def height(self) -> int:
        return self.device.height

    def query_format(self) -> None:
        """Refresh the format held by the device."""
        self.device.query_format()

    def set_format(self, format: int, width: int, height: int) -> None:
        """Change pixel format and size."""
        self.device.set_format(format, width, height)

    def set_fps(self, fps: int) -> None:
        """Change the frame rate."""
        self.device.set_fps(fps)

    def is_ready(self) -> bool:
        """Whether the device can move frames."""
        return self.device.is_ready()

    def start(self) -> bool:
        """Start streaming."""
        return self.device.start()

    def stop(self) -> bool:
        """Stop streaming."""
        return self.device.stop()