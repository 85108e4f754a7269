"""V4L2 capture and output access, frame-delay measurement and a frame-counting timer window."""

__version__ = "0.1.0"