"""On-screen frame counter and millisecond clock for filming with a camera."""

from __future__ import annotations

import sys
import time
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import tkinter as tk

MIN_FPS = 30
MAX_FPS = 240
FPS_STEP = 5
DEFAULT_FPS = 30

_MEDIUM_FONT = ("Times", 15)
_LARGE_FONT = ("Times", 30, "bold")


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


@dataclass
class FrameClock:
    """Counts frames from 1 to ``fps`` and wraps around."""

    fps: int = DEFAULT_FPS
    current_frame: int = 0

    def __post_init__(self) -> None:
        if self.fps <= 0:
            raise ValueError(f"frame rate must be positive, got {self.fps}")

    def interval(self) -> int:
        """Milliseconds between frames, rounded down."""
        return 1000 // self.fps

    def advance(self) -> int:
        """Move to the next frame and return its number."""
        self.current_frame = self.current_frame % self.fps + 1
        return self.current_frame

    def change_framerate(self, fps: int) -> None:
        """Use a new frame rate; the current frame number is kept."""
        if fps <= 0:
            raise ValueError(f"frame rate must be positive, got {fps}")
        self.fps = fps


class PreciseTimerWindow:
    """Window showing the frame number and the milliseconds since the epoch."""

    def __init__(self, master: tk.Misc | None = None, clock: FrameClock | None = None) -> None:
        import tkinter as tk

        self.clock = clock or FrameClock()
        self.root = tk.Tk() if master is None else tk.Toplevel(master)
        self.root.title("Precise Timer")
        self._after_id: str | None = None

        controls = tk.Frame(self.root)
        controls.pack(fill=tk.X)
        tk.Label(controls, text="Framerate:", font=_MEDIUM_FONT).pack(side=tk.LEFT)
        self._fps_text = tk.StringVar(value=str(self.clock.fps))
        tk.Spinbox(
            controls,
            from_=MIN_FPS,
            to=MAX_FPS,
            increment=FPS_STEP,
            textvariable=self._fps_text,
            width=5,
        ).pack(side=tk.LEFT)
        self._fps_text.trace_add("write", self._on_fps_text)
        for text, action in (
            ("Start Timer", self.start_frame_timer),
            ("Stop Timer", self.stop_frame_timer),
            ("Reset Timer", self.reset_frame_timer),
            ("Toggle Frame Label", self.toggle_frame_info),
        ):
            tk.Button(controls, text=text, command=action).pack(side=tk.LEFT)

        display = tk.Frame(self.root)
        display.pack(fill=tk.BOTH, expand=True)
        display.columnconfigure(1, weight=1)
        self._frame_text = tk.Label(display, text="Frame: ", font=_MEDIUM_FONT)
        self._frame_text.grid(row=0, column=0, sticky="w")
        tk.Label(
            display, text="Current Time: (Milliseconds Since Epoch)", font=_MEDIUM_FONT
        ).grid(row=0, column=1)
        self._frame_indicator = tk.Label(display, text="0", font=_LARGE_FONT)
        self._frame_indicator.grid(row=1, column=0, sticky="w")
        self._time_label = tk.Label(display, text=str(_now_ms()), font=_LARGE_FONT)
        self._time_label.grid(row=1, column=1)

        # Right half of a 1920x1080 screen.
        self.root.geometry("960x1080+960+0")

    @property
    def active(self) -> bool:
        """Whether the frame timer is running."""
        return self._after_id is not None

    def _schedule(self) -> None:
        self._after_id = self.root.after(self.clock.interval(), self._tick)

    def _tick(self) -> None:
        self._schedule()
        self.update_timer()

    def _on_fps_text(self, *_args: object) -> None:
        try:
            fps = int(self._fps_text.get())
        except ValueError:
            return
        if MIN_FPS <= fps <= MAX_FPS and fps != self.clock.fps:
            self.change_framerate(fps)

    def start_frame_timer(self) -> None:
        """Start the timer if it is not running."""
        if not self.active:
            self._schedule()

    def stop_frame_timer(self) -> None:
        """Stop the timer if it is running."""
        if self._after_id is not None:
            self.root.after_cancel(self._after_id)
            self._after_id = None

    def reset_frame_timer(self) -> None:
        """Restart the timer with the current interval."""
        self.stop_frame_timer()
        self._schedule()

    def toggle_frame_info(self) -> None:
        """Hide the frame number and its caption, or show them again."""
        widgets = (self._frame_indicator, self._frame_text)
        if all(widget.winfo_manager() for widget in widgets):
            for widget in widgets:
                widget.grid_remove()
        else:
            for widget in widgets:
                widget.grid()

    def change_framerate(self, fps: int) -> None:
        """Stop the timer and switch to ``fps`` frames per second."""
        self.stop_frame_timer()
        self.clock.change_framerate(fps)

    def update_timer(self) -> None:
        """Advance the frame number and refresh the clock display."""
        self._frame_indicator.configure(text=str(self.clock.advance()))
        self._time_label.configure(text=str(_now_ms()))


def main(argv: Sequence[str] | None = None) -> int:
    """Show the timer window until it is closed."""
    del argv
    window = PreciseTimerWindow()
    window.root.mainloop()
    return 0


if __name__ == "__main__":
    sys.exit(main())