from __future__ import annotations

import queue
import threading
from collections.abc import Callable
from enum import Enum
from pathlib import Path

from worldofbits.sim.grid import CellCoord, latlng_to_cell

STEP_DELTAS: dict[str, tuple[int, int]] = {
    "north": (1, 0),
    "south": (-1, 0),
    "east": (0, 1),
    "west": (0, -1),
}
DEFAULT_FEED_INTERVAL_SECONDS = 1.0
FEED_JOIN_TIMEOUT_SECONDS = 1.0

MoveCallback = Callable[[CellCoord], None]
PositionCallback = Callable[[float, float], None]
ErrorCallback = Callable[[str], None]


class LocationUnavailableError(RuntimeError):
    """Raised by a position feed that cannot deliver fixes (denied or unsupported)."""


class MovementMode(str, Enum):
    MANUAL = "manual"
    TRACKED = "tracked"

    @classmethod
    def from_value(cls, value: str) -> "MovementMode":
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"movement_mode must be one of: {', '.join(mode.value for mode in cls)}") from None


class PositionFeed:
    """Continuous source of raw ``(lat, lng)`` fixes.

    Feeds may produce fixes on any thread; they are only handed to the
    subscriber from :meth:`pump`, which the game loop calls on its own thread.
    """

    def subscribe(self, on_position: PositionCallback, on_error: ErrorCallback) -> None:
        raise NotImplementedError

    def unsubscribe(self) -> None:
        raise NotImplementedError

    def pump(self) -> int:
        return 0


class UnavailablePositionFeed(PositionFeed):
    def __init__(self, reason: str = "position tracking is not supported") -> None:
        self.reason = reason

    def subscribe(self, on_position: PositionCallback, on_error: ErrorCallback) -> None:
        raise LocationUnavailableError(self.reason)

    def unsubscribe(self) -> None:
        return None


class QueuePositionFeed(PositionFeed):
    """Thread-safe feed: producers ``push``/``fail``, the game loop ``pump``s."""

    def __init__(self) -> None:
        self._queue: queue.Queue[tuple[str, float, float] | tuple[str, str]] = queue.Queue()
        self._on_position: PositionCallback | None = None
        self._on_error: ErrorCallback | None = None

    @property
    def subscribed(self) -> bool:
        return self._on_position is not None

    def subscribe(self, on_position: PositionCallback, on_error: ErrorCallback) -> None:
        self._on_position = on_position
        self._on_error = on_error

    def unsubscribe(self) -> None:
        self._on_position = None
        self._on_error = None

    def push(self, lat: float, lng: float) -> None:
        self._queue.put(("position", float(lat), float(lng)))

    def fail(self, reason: str) -> None:
        self._queue.put(("error", reason))

    def pump(self) -> int:
        delivered = 0
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return delivered
            if item[0] == "error":
                if self._on_error is not None:
                    self._on_error(str(item[1]))
                continue
            if self._on_position is not None:
                self._on_position(item[1], item[2])
                delivered += 1


class FilePositionFeed(QueuePositionFeed):
    """Replays a recorded position log (one ``lat,lng`` pair per line) on a background thread."""

    def __init__(self, path: str | Path, *, interval_seconds: float = DEFAULT_FEED_INTERVAL_SECONDS) -> None:
        super().__init__()
        if interval_seconds < 0:
            raise ValueError("interval_seconds must be >= 0")
        self.path = Path(path)
        self.interval_seconds = interval_seconds
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    def subscribe(self, on_position: PositionCallback, on_error: ErrorCallback) -> None:
        if not self.path.is_file():
            raise LocationUnavailableError(f"position log not found: {self.path}")
        super().subscribe(on_position, on_error)
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="worldofbits-position-feed", daemon=True)
        self._thread.start()

    def unsubscribe(self) -> None:
        self._stop_event.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=FEED_JOIN_TIMEOUT_SECONDS)
        self._thread = None
        super().unsubscribe()

    def _run(self) -> None:
        try:
            lines = self.path.read_text(encoding="utf-8").splitlines()
        except OSError as exc:
            self.fail(f"position log unreadable: {exc}")
            return
        for line_number, raw in enumerate(lines, start=1):
            if self._stop_event.is_set():
                return
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            try:
                lat_text, lng_text = line.split(",", 1)
                self.push(float(lat_text), float(lng_text))
            except ValueError:
                self.fail(f"malformed position at {self.path}:{line_number}")
                return
            if self._stop_event.wait(self.interval_seconds):
                return


class MovementSource:
    """Drives the player's cell; every move is reported through ``on_move_to``."""

    mode: MovementMode

    def __init__(self, on_move_to: MoveCallback) -> None:
        self._on_move_to = on_move_to
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    def name(self) -> str:
        return self.mode.value

    def start(self) -> None:
        self._active = True

    def stop(self) -> None:
        self._active = False

    def pump(self) -> None:
        return None


class ManualMovementSource(MovementSource):
    mode = MovementMode.MANUAL

    def __init__(self, current: Callable[[], CellCoord], on_move_to: MoveCallback) -> None:
        super().__init__(on_move_to)
        self._current = current

    def step(self, di: int, dj: int) -> CellCoord | None:
        if not self._active:
            return None
        destination = self._current().offset(di, dj)
        self._on_move_to(destination)
        return destination

    def step_direction(self, direction: str) -> CellCoord | None:
        if direction not in STEP_DELTAS:
            raise ValueError(f"direction must be one of: {', '.join(sorted(STEP_DELTAS))}")
        di, dj = STEP_DELTAS[direction]
        return self.step(di, dj)

    def step_north(self) -> CellCoord | None:
        return self.step_direction("north")

    def step_south(self) -> CellCoord | None:
        return self.step_direction("south")

    def step_east(self) -> CellCoord | None:
        return self.step_direction("east")

    def step_west(self) -> CellCoord | None:
        return self.step_direction("west")


class TrackedMovementSource(MovementSource):
    """Follows a position feed, forwarding only fixes that land in a new cell."""

    mode = MovementMode.TRACKED

    def __init__(
        self,
        feed: PositionFeed,
        cell_size: float,
        on_move_to: MoveCallback,
        *,
        on_unavailable: ErrorCallback | None = None,
    ) -> None:
        super().__init__(on_move_to)
        self.feed = feed
        self.cell_size = cell_size
        self._on_unavailable = on_unavailable
        self._available = True
        self._last_coord: CellCoord | None = None
        self.unavailable_reason: str | None = None

    @property
    def available(self) -> bool:
        return self._available

    @property
    def last_coord(self) -> CellCoord | None:
        return self._last_coord

    def start(self) -> None:
        if self._active:
            return
        self._available = True
        self.unavailable_reason = None
        self._last_coord = None
        try:
            self.feed.subscribe(self._handle_position, self._handle_error)
        except LocationUnavailableError as exc:
            self._go_inert(str(exc))
            return
        self._active = True

    def stop(self) -> None:
        if self._active:
            self.feed.unsubscribe()
        self._active = False

    def pump(self) -> None:
        if self._active:
            self.feed.pump()

    def _handle_position(self, lat: float, lng: float) -> None:
        if not self._active:
            return
        coord = latlng_to_cell(lat, lng, self.cell_size)
        if coord == self._last_coord:
            return
        self._last_coord = coord
        self._on_move_to(coord)

    def _handle_error(self, reason: str) -> None:
        if not self._active:
            return
        self.feed.unsubscribe()
        self._active = False
        self._go_inert(reason)
        if self._on_unavailable is not None:
            self._on_unavailable(reason)

    def _go_inert(self, reason: str) -> None:
        self._available = False
        self.unavailable_reason = reason


def position_feed_factory(
    track_file: str | Path | None,
    *,
    interval_seconds: float = DEFAULT_FEED_INTERVAL_SECONDS,
) -> Callable[[], PositionFeed]:
    if track_file is None:
        return lambda: UnavailablePositionFeed("no position feed configured (use --track-file)")
    return lambda: FilePositionFeed(track_file, interval_seconds=interval_seconds)
