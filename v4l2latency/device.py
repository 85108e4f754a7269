"""Base V4L2 device: opening, capability checks and format negotiation."""

from __future__ import annotations

import errno
import fcntl
import os
import stat
import struct
from dataclasses import replace

from .logger import Priority, log
from .videodev import (
    CAPABILITY_STRUCT,
    FORMAT_STRUCT,
    STREAMPARM_STRUCT,
    V4L2_CAP_READWRITE,
    V4L2_CAP_STREAMING,
    V4L2_CAP_TIMEPERFRAME,
    V4L2_CAP_VIDEO_CAPTURE,
    V4L2_CAP_VIDEO_OUTPUT,
    VIDIOC_G_FMT,
    VIDIOC_QUERYCAP,
    VIDIOC_S_FMT,
    VIDIOC_S_PARM,
    DeviceParameters,
    fourcc_to_str,
)


class V4l2Error(OSError):
    """Raised when a V4L2 device cannot be opened, configured or used."""


# Positions inside FORMAT_STRUCT values.
_WIDTH, _HEIGHT, _PIXELFORMAT, _SIZEIMAGE = 1, 2, 3, 6
# Positions inside STREAMPARM_STRUCT values.
_NUMERATOR, _DENOMINATOR, _READBUFFERS = 3, 4, 6
# Positions inside CAPABILITY_STRUCT values.
_DRIVER, _CAPABILITIES = 0, 4

_CAPABILITY_NOTES = (
    (V4L2_CAP_VIDEO_OUTPUT, "support output"),
    (V4L2_CAP_VIDEO_CAPTURE, "support capture"),
    (V4L2_CAP_READWRITE, "support read/write"),
    (V4L2_CAP_STREAMING, "support streaming"),
    (V4L2_CAP_TIMEPERFRAME, "support timeperframe"),
)


def _empty(layout: struct.Struct) -> list:
    return list(layout.unpack(bytes(layout.size)))


class V4l2Device:
    """A V4L2 node (or plain file) opened according to :class:`DeviceParameters`."""

    def __init__(self, params: DeviceParameters, device_type: int) -> None:
        self.params = replace(params, formats=list(params.formats))
        self.device_type = device_type
        self.buffer_size = 0
        self.format = 0
        self.width = 0
        self.height = 0
        self._fd: int | None = None
        self._partial_write_in_progress = False

    def __enter__(self) -> V4l2Device:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        """Close the underlying descriptor if open."""
        if self._fd is not None:
            os.close(self._fd)
        self._fd = None

    def fileno(self) -> int:
        """Return the open descriptor."""
        if self._fd is None:
            raise ValueError("I/O operation on closed device")
        return self._fd

    def _request(self, request: int, layout: struct.Struct, values: list) -> list:
        if self._fd is None:
            raise OSError(errno.EBADF, os.strerror(errno.EBADF))
        buf = bytearray(layout.pack(*values))
        fcntl.ioctl(self._fd, request, buf, True)
        return list(layout.unpack(buf))

    def _get_format(self) -> list:
        values = _empty(FORMAT_STRUCT)
        values[0] = self.device_type
        return self._request(VIDIOC_G_FMT, FORMAT_STRUCT, values)

    def _store_format(self, values: list) -> None:
        self.format = values[_PIXELFORMAT]
        self.width = values[_WIDTH]
        self.height = values[_HEIGHT]
        self.buffer_size = values[_SIZEIMAGE]

    def _describe_format(self) -> str:
        return (
            f"{self.params.dev_name}:{fourcc_to_str(self.format)} "
            f"size:{self.width}x{self.height} bufferSize:{self.buffer_size}"
        )

    def query_format(self) -> None:
        """Refresh format, size and buffer size from the device; failures are ignored."""
        try:
            values = self._get_format()
        except OSError:
            return
        self._store_format(values)
        log(Priority.DEBUG, self._describe_format())

    def init(self, mandatory_capabilities: int) -> None:
        """Open a character device as V4L2, or any other path as a truncated output file."""
        path = self.params.dev_name
        try:
            is_char_device = stat.S_ISCHR(os.stat(path).st_mode)
        except OSError:
            is_char_device = False
        if is_char_device:
            try:
                self.init_device(path, mandatory_capabilities)
            except V4l2Error:
                log(Priority.ERROR, f"Cannot init device:{path}")
                raise
        else:
            try:
                self._fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o700)
            except OSError as exc:
                raise V4l2Error(exc.errno, f"Cannot open {path}: {exc.strerror}") from exc

    def init_device(self, dev_name: str, mandatory_capabilities: int) -> int:
        """Open ``dev_name`` and configure it; the device is closed again on failure."""
        try:
            self._fd = os.open(dev_name, self.params.open_flags)
        except OSError as exc:
            log(Priority.ERROR, f"Cannot open device:{self.params.dev_name} {exc.strerror}")
            self.close()
            raise V4l2Error(exc.errno, f"Cannot open device {dev_name}: {exc.strerror}") from exc
        try:
            self.check_capabilities(mandatory_capabilities)
            self.configure_default_format()
            self.configure_param(self.params.fps)
        except V4l2Error:
            self.close()
            raise
        return self._fd

    def check_capabilities(self, mandatory_capabilities: int) -> int:
        """Query capabilities and require ``mandatory_capabilities``; return them all."""
        name = self.params.dev_name
        try:
            values = self._request(VIDIOC_QUERYCAP, CAPABILITY_STRUCT, _empty(CAPABILITY_STRUCT))
        except OSError as exc:
            log(Priority.ERROR, f"Cannot get capabilities for device:{name} {exc.strerror}")
            raise V4l2Error(exc.errno, f"Cannot get capabilities for {name}: {exc.strerror}") from exc
        capabilities = values[_CAPABILITIES]
        driver = values[_DRIVER].split(b"\0", 1)[0].decode("latin-1")
        log(
            Priority.INFO,
            f"driver:{driver} capabilities:{capabilities:x} mandatory:{mandatory_capabilities:x}",
        )
        for flag, note in _CAPABILITY_NOTES:
            if capabilities & flag:
                log(Priority.DEBUG, f"{name} {note}")
        if capabilities & mandatory_capabilities != mandatory_capabilities:
            log(Priority.ERROR, f"Mandatory capability not available for device:{name}")
            raise V4l2Error(f"Mandatory capability not available for device {name}")
        return capabilities

    def configure_default_format(self) -> None:
        """Apply the requested size with the first format from the parameters that works."""
        self.query_format()
        width = self.params.width or self.width
        height = self.params.height or self.height
        if not self.params.formats and self.format:
            self.params.formats.append(self.format)
        for pixel_format in self.params.formats:
            try:
                self.configure_format(pixel_format, width, height)
            except V4l2Error:
                continue
            # Reading back again: setting the format can report a wrong buffer size.
            self.query_format()
            return
        raise V4l2Error(f"No usable format for device {self.params.dev_name}")

    def configure_format(self, format: int, width: int, height: int) -> None:
        """Set pixel format and size; zero keeps the device's current value."""
        name = self.params.dev_name
        try:
            values = self._get_format()
        except OSError as exc:
            log(Priority.ERROR, f"{name}: Cannot get format {exc.strerror}")
            raise V4l2Error(exc.errno, f"{name}: Cannot get format: {exc.strerror}") from exc
        if width:
            values[_WIDTH] = width
        if height:
            values[_HEIGHT] = height
        if format:
            values[_PIXELFORMAT] = format
        try:
            values = self._request(VIDIOC_S_FMT, FORMAT_STRUCT, values)
        except OSError as exc:
            log(Priority.ERROR, f"{name}: Cannot set format:{fourcc_to_str(format)} {exc.strerror}")
            raise V4l2Error(exc.errno, f"{name}: Cannot set format: {exc.strerror}") from exc
        if values[_PIXELFORMAT] != format:
            message = (
                f"{name}: Cannot set pixelformat to:{fourcc_to_str(format)} "
                f"format is:{fourcc_to_str(values[_PIXELFORMAT])}"
            )
            log(Priority.ERROR, message)
            raise V4l2Error(message)
        if values[_WIDTH] != width or values[_HEIGHT] != height:
            log(
                Priority.WARN,
                f"{name}: Cannot set size to:{width}x{height} "
                f"size is:{values[_WIDTH]}x{values[_HEIGHT]}",
            )
        self._store_format(values)
        log(Priority.INFO, self._describe_format())

    def configure_param(self, fps: int) -> None:
        """Ask for ``fps`` frames per second; a refusal is only logged."""
        if not fps:
            return
        values = _empty(STREAMPARM_STRUCT)
        values[0] = self.device_type
        values[_NUMERATOR] = 1
        values[_DENOMINATOR] = fps
        try:
            values = self._request(VIDIOC_S_PARM, STREAMPARM_STRUCT, values)
        except OSError as exc:
            log(Priority.WARN, f"Cannot set param for device:{self.params.dev_name} {exc.strerror}")
        log(Priority.INFO, f"fps:{values[_NUMERATOR]}/{values[_DENOMINATOR]}")
        log(Priority.INFO, f"nbBuffer:{values[_READBUFFERS]}")

    def is_ready(self) -> bool:
        """Whether the device is open."""
        return self._fd is not None

    def start(self) -> bool:
        """Start streaming; nothing to do for a plain device."""
        return True

    def stop(self) -> bool:
        """Stop streaming; nothing to do for a plain device."""
        return True

    def set_format(self, format: int, width: int, height: int) -> None:
        """Change pixel format and size."""
        self.configure_format(format, width, height)

    def set_fps(self, fps: int) -> None:
        """Change the frame rate."""
        self.configure_param(fps)

    def read_internal(self, size: int) -> bytes:
        """Read a frame; this device kind cannot."""
        raise V4l2Error(errno.ENOTSUP, f"Device {self.params.dev_name} does not support reading")

    def write_internal(self, data: bytes) -> int:
        """Write a frame; this device kind cannot."""
        raise V4l2Error(errno.ENOTSUP, f"Device {self.params.dev_name} does not support writing")

    def start_partial_write(self) -> bool:
        """Begin a frame written in pieces; unsupported here."""
        return False

    def write_partial_internal(self, data: bytes) -> int:
        """Append to a frame written in pieces; unsupported here."""
        raise V4l2Error(
            errno.ENOTSUP, f"Device {self.params.dev_name} does not support partial writes"
        )

    def end_partial_write(self) -> bool:
        """Finish a frame written in pieces; unsupported here."""
        return False