import errno
import fcntl
import mmap
import os
from collections import deque

import pytest

from v4l2latency.capture import V4l2Capture
from v4l2latency.device import V4l2Error
from v4l2latency.videodev import (
    BUFFER_STRUCT,
    REQUESTBUFFERS_STRUCT,
    V4L2_BUF_TYPE_VIDEO_CAPTURE,
    VIDIOC_DQBUF,
    VIDIOC_QBUF,
    VIDIOC_QUERYBUF,
    VIDIOC_REQBUFS,
    VIDIOC_STREAMOFF,
    VIDIOC_STREAMON,
    DeviceParameters,
    IoType,
)


class FakeMap(bytearray):
    closed = False

    def close(self):
        self.closed = True


class FakeCaptureDriver:
    def __init__(self, granted=3, buffer_length=32):
        self.granted = granted
        self.buffer_length = buffer_length
        self.maps = []
        self.queued = deque()
        self.frames = deque()
        self.buffer_types = []
        self.streaming = False

    def map(self, fileno, length, *args, **kwargs):
        mapped = FakeMap(length)
        self.maps.append(mapped)
        return mapped

    def ioctl(self, fd, request, buf, mutate=True):
        if request == VIDIOC_REQBUFS:
            values = list(REQUESTBUFFERS_STRUCT.unpack(buf))
            self.buffer_types.append(values[1])
            values[0] = min(values[0], self.granted)
            REQUESTBUFFERS_STRUCT.pack_into(buf, 0, *values)
        elif request == VIDIOC_QUERYBUF:
            values = list(BUFFER_STRUCT.unpack(buf))
            values[16] = values[0] * 4096
            values[17] = self.buffer_length
            BUFFER_STRUCT.pack_into(buf, 0, *values)
        elif request == VIDIOC_QBUF:
            self.queued.append(BUFFER_STRUCT.unpack(buf)[0])
        elif request == VIDIOC_DQBUF:
            if not self.queued or not self.frames:
                raise OSError(errno.EAGAIN, os.strerror(errno.EAGAIN))
            values = list(BUFFER_STRUCT.unpack(buf))
            index = self.queued.popleft()
            frame = self.frames.popleft()
            self.maps[index][: len(frame)] = frame
            values[0] = index
            values[2] = len(frame)
            values[17] = self.buffer_length
            BUFFER_STRUCT.pack_into(buf, 0, *values)
        elif request == VIDIOC_STREAMON:
            self.streaming = True
        elif request == VIDIOC_STREAMOFF:
            self.streaming = False
        else:
            raise OSError(errno.ENOTTY, os.strerror(errno.ENOTTY))
        return 0


@pytest.fixture
def driver(monkeypatch):
    fake = FakeCaptureDriver()
    monkeypatch.setattr(fcntl, "ioctl", fake.ioctl)
    monkeypatch.setattr(mmap, "mmap", fake.map)
    return fake


def test_readwrite_capture_on_plain_file(tmp_path):
    params = DeviceParameters(str(tmp_path / "cap.raw"), io_type=IoType.READWRITE)
    with V4l2Capture.create(params) as capture:
        assert capture.is_ready()
        assert capture.is_readable(0)


def test_read_on_write_only_file_fails(tmp_path):
    params = DeviceParameters(str(tmp_path / "cap.raw"), io_type=IoType.READWRITE)
    with V4l2Capture.create(params) as capture:
        with pytest.raises(OSError) as info:
            capture.read(16)
    assert info.value.errno == errno.EBADF


def test_mmap_capture_on_plain_file_fails(tmp_path):
    params = DeviceParameters(str(tmp_path / "cap.raw"), io_type=IoType.MMAP)
    with pytest.raises(V4l2Error):
        V4l2Capture.create(params)


def test_create_in_missing_directory_fails(tmp_path):
    params = DeviceParameters(str(tmp_path / "missing" / "cap.raw"), io_type=IoType.READWRITE)
    with pytest.raises(V4l2Error) as info:
        V4l2Capture.create(params)
    assert info.value.errno == errno.ENOENT


def test_mmap_capture_reads_frames(driver, tmp_path):
    capture = V4l2Capture.create(DeviceParameters(str(tmp_path / "cap.raw")))
    driver.frames.extend([b"first", b"second"])
    assert capture.read(32) == b"first"
    assert capture.read(32) == b"second"
    assert capture.read(32) == b""
    capture.close()


def test_mmap_capture_uses_capture_buffers(driver, tmp_path):
    capture = V4l2Capture.create(DeviceParameters(str(tmp_path / "cap.raw")))
    assert capture.is_ready()
    assert driver.streaming
    assert driver.buffer_types[0] == V4L2_BUF_TYPE_VIDEO_CAPTURE
    capture.close()


def test_close_stops_stream(driver, tmp_path):
    capture = V4l2Capture.create(DeviceParameters(str(tmp_path / "cap.raw")))
    capture.close()
    assert not driver.streaming
    assert not capture.is_ready()
    assert all(m.closed for m in driver.maps)