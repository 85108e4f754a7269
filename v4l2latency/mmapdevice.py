"""V4L2 device that exchanges frames through memory-mapped driver buffers."""

from __future__ import annotations

import errno
import mmap

from .device import V4l2Device, V4l2Error
from .logger import Priority, log
from .videodev import (
    BUFFER_STRUCT,
    REQUESTBUFFERS_STRUCT,
    STREAM_TYPE_STRUCT,
    V4L2_MEMORY_MMAP,
    VIDIOC_DQBUF,
    VIDIOC_QBUF,
    VIDIOC_QUERYBUF,
    VIDIOC_REQBUFS,
    VIDIOC_STREAMOFF,
    VIDIOC_STREAMON,
    DeviceParameters,
)

BUFFER_COUNT = 10
"""Number of driver buffers requested when streaming starts."""

# Positions inside BUFFER_STRUCT values.
_INDEX, _TYPE, _BYTESUSED = 0, 1, 2
_MEMORY, _OFFSET, _LENGTH = 15, 16, 17
# Position inside REQUESTBUFFERS_STRUCT values.
_REQ_COUNT = 0


class MmapDevice(V4l2Device):
    """Device using the streaming I/O method with memory-mapped buffers."""

    def __init__(self, params: DeviceParameters, device_type: int) -> None:
        super().__init__(params, device_type)
        self._buffers: list[mmap.mmap | None] = []
        self._partial_buf: list | None = None

    def _buffer_values(self, index: int = 0) -> list:
        values = list(BUFFER_STRUCT.unpack(bytes(BUFFER_STRUCT.size)))
        values[_INDEX] = index
        values[_TYPE] = self.device_type
        values[_MEMORY] = V4L2_MEMORY_MMAP
        return values

    def _request_buffers(self, count: int) -> int:
        values = self._request(
            VIDIOC_REQBUFS,
            REQUESTBUFFERS_STRUCT,
            [count, self.device_type, V4L2_MEMORY_MMAP, 0],
        )
        return values[_REQ_COUNT]

    def _queue(self, values: list) -> None:
        self._request(VIDIOC_QBUF, BUFFER_STRUCT, values)

    def _dequeue(self) -> list:
        return self._request(VIDIOC_DQBUF, BUFFER_STRUCT, self._buffer_values())

    def close(self) -> None:
        """Stop streaming if buffers are held, then close the descriptor."""
        if self._buffers:
            self.stop()
        super().close()

    def init(self, mandatory_capabilities: int) -> None:
        """Open the device and start streaming; raise :class:`V4l2Error` if either fails."""
        super().init(mandatory_capabilities)
        if not self.start():
            self.close()
            raise V4l2Error(f"Cannot start streaming on device {self.params.dev_name}")

    def is_ready(self) -> bool:
        """Whether the device is open and holds mapped buffers."""
        return super().is_ready() and bool(self._buffers)

    def start(self) -> bool:
        """Request, map and queue the buffers, then turn the stream on."""
        name = self.params.dev_name
        log(Priority.INFO, f"Device {name}")
        try:
            granted = self._request_buffers(BUFFER_COUNT)
        except OSError as exc:
            if exc.errno == errno.EINVAL:
                log(Priority.ERROR, f"Device {name} does not support memory mapping")
            else:
                log(Priority.ERROR, f"VIDIOC_REQBUFS: {exc.strerror}")
            return False

        log(Priority.INFO, f"Device {name} nb buffer:{granted}")
        success = True
        self._buffers = []
        for index in range(min(granted, BUFFER_COUNT)):
            try:
                values = self._request(VIDIOC_QUERYBUF, BUFFER_STRUCT, self._buffer_values(index))
            except OSError as exc:
                log(Priority.ERROR, f"VIDIOC_QUERYBUF: {exc.strerror}")
                self._buffers.append(None)
                success = False
                continue
            length = values[_LENGTH] or values[_BYTESUSED]
            log(
                Priority.INFO,
                f"Device {name} buffer idx:{index} size:{values[_LENGTH]} offset:{values[_OFFSET]}",
            )
            try:
                mapped = mmap.mmap(
                    self.fileno(),
                    length,
                    flags=mmap.MAP_SHARED,
                    prot=mmap.PROT_READ | mmap.PROT_WRITE,
                    offset=values[_OFFSET],
                )
            except (OSError, ValueError) as exc:
                log(Priority.ERROR, f"mmap: {exc}")
                self._buffers.append(None)
                success = False
                continue
            self._buffers.append(mapped)

        for index in range(len(self._buffers)):
            try:
                self._queue(self._buffer_values(index))
            except OSError as exc:
                log(Priority.ERROR, f"VIDIOC_QBUF: {exc.strerror}")
                success = False

        try:
            self._request(VIDIOC_STREAMON, STREAM_TYPE_STRUCT, [self.device_type])
        except OSError as exc:
            log(Priority.ERROR, f"VIDIOC_STREAMON: {exc.strerror}")
            success = False
        return success

    def stop(self) -> bool:
        """Turn the stream off, unmap the buffers and hand them back to the driver."""
        log(Priority.INFO, f"Device {self.params.dev_name}")
        success = True
        try:
            self._request(VIDIOC_STREAMOFF, STREAM_TYPE_STRUCT, [self.device_type])
        except OSError as exc:
            log(Priority.ERROR, f"VIDIOC_STREAMOFF: {exc.strerror}")
            success = False

        for mapped in self._buffers:
            if mapped is not None:
                mapped.close()

        try:
            self._request_buffers(0)
        except OSError as exc:
            log(Priority.ERROR, f"VIDIOC_REQBUFS: {exc.strerror}")
            success = False

        self._buffers = []
        return success

    def read_internal(self, size: int) -> bytes:
        """Dequeue one frame, return at most ``size`` bytes of it and requeue the buffer.

        Returns ``b""`` when no frame is waiting or no buffers are mapped.
        """
        if not self._buffers:
            return b""
        name = self.params.dev_name
        try:
            values = self._dequeue()
        except OSError as exc:
            if exc.errno == errno.EAGAIN:
                return b""
            log(Priority.ERROR, f"VIDIOC_DQBUF: {exc.strerror}")
            raise V4l2Error(exc.errno, f"Cannot dequeue buffer from {name}: {exc.strerror}") from exc

        index = values[_INDEX]
        if index >= len(self._buffers):
            return b""
        available = values[_BYTESUSED]
        if available > size:
            log(
                Priority.WARN,
                f"Device {name} buffer truncated available:{size} needed:{available}",
            )
        mapped = self._buffers[index]
        data = bytes(mapped[: min(available, size)]) if mapped is not None else b""

        try:
            self._queue(values)
        except OSError as exc:
            log(Priority.ERROR, f"VIDIOC_QBUF: {exc.strerror}")
            raise V4l2Error(exc.errno, f"Cannot queue buffer on {name}: {exc.strerror}") from exc
        return data

    def write_internal(self, data: bytes) -> int:
        """Fill one dequeued buffer with ``data`` and queue it; return the bytes taken."""
        if not self._buffers:
            return 0
        name = self.params.dev_name
        try:
            values = self._dequeue()
        except OSError as exc:
            log(Priority.ERROR, f"VIDIOC_DQBUF: {exc.strerror}")
            raise V4l2Error(exc.errno, f"Cannot dequeue buffer from {name}: {exc.strerror}") from exc

        index = values[_INDEX]
        if index >= len(self._buffers):
            return 0
        size = len(data)
        capacity = values[_LENGTH]
        if size > capacity:
            log(
                Priority.WARN,
                f"Device {name} buffer truncated available:{capacity} needed:{size}",
            )
            size = capacity
        mapped = self._buffers[index]
        if mapped is not None:
            mapped[:size] = data[:size]
        values[_BYTESUSED] = size

        try:
            self._queue(values)
        except OSError as exc:
            log(Priority.ERROR, f"VIDIOC_QBUF: {exc.strerror}")
            raise V4l2Error(exc.errno, f"Cannot queue buffer on {name}: {exc.strerror}") from exc
        return size

    def start_partial_write(self) -> bool:
        """Dequeue a buffer to be filled piece by piece."""
        if not self._buffers or self._partial_write_in_progress:
            return False
        try:
            values = self._dequeue()
        except OSError as exc:
            log(Priority.ERROR, f"VIDIOC_DQBUF: {exc.strerror}")
            return False
        values[_BYTESUSED] = 0
        self._partial_buf = values
        self._partial_write_in_progress = True
        return True

    def write_partial_internal(self, data: bytes) -> int:
        """Append ``data`` to the buffer being filled; return the bytes taken."""
        values = self._partial_buf
        if not self._buffers or not self._partial_write_in_progress or values is None:
            return 0
        index = values[_INDEX]
        if index >= len(self._buffers):
            return 0
        used = values[_BYTESUSED]
        capacity = values[_LENGTH]
        new_size = used + len(data)
        if new_size > capacity:
            log(
                Priority.WARN,
                f"Device {self.params.dev_name} buffer truncated "
                f"available:{capacity} needed:{new_size}",
            )
            new_size = capacity
        size = new_size - used
        mapped = self._buffers[index]
        if mapped is not None:
            mapped[used:new_size] = data[:size]
        values[_BYTESUSED] = new_size
        return size

    def end_partial_write(self) -> bool:
        """Queue the buffer filled piece by piece; a queueing failure aborts it."""
        if not self._partial_write_in_progress:
            return False
        self._partial_write_in_progress = False
        values, self._partial_buf = self._partial_buf, None
        if not self._buffers or values is None:
            return True
        try:
            self._queue(values)
        except OSError as exc:
            log(Priority.ERROR, f"VIDIOC_QBUF: {exc.strerror}")
        return True