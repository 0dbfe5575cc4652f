#!/usr/bin/env python3
"""
  ～  R I P P L E S  ～
  A terminal board of numbers that ring when you poke them.

  Click any cell inside the frame and a ripple spreads from that point.
  Every cell shows the summed intensity of all live ripples at its centre,
  truncated to an integer; quiet cells rest at "0". Ripples ring, fade,
  and vanish after fifteen seconds. Overlapping ripples of different ages
  simply add up.

  Controls:
    q         quit               SPACE     pause / resume
    c         clear all ripples  +/-       speed
    s         toggle stats overlay
    mouse     drop a ripple

  Stats are always logged to ripple_stats.csv beside this script.
"""

from __future__ import annotations

import curses
import math
import time
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, ClassVar

import numpy as np
from numpy.typing import NDArray

# ── Board ───────────────────────────────────────────────────────────────
BOARD_WIDTH: int = 75
BOARD_HEIGHT: int = 20

# Plane coordinates are centred on the origin, y grows upward.
PLANE_WIDTH: float = 1280.0
PLANE_HEIGHT: float = 720.0

RIPPLE_LIFETIME: float = 15.0

# ── Glyphs ──────────────────────────────────────────────────────────────
RESTING_GLYPH = "0"
BORDER_LEFT = BORDER_RIGHT = "\u2551"   # ║
BORDER_TOP = BORDER_BOTTOM = "\u2550"   # ═
CORNER_TOP_LEFT = "\u2554"              # ╔
CORNER_TOP_RIGHT = "\u2557"             # ╗
CORNER_BOTTOM_LEFT = "\u255A"           # ╚
CORNER_BOTTOM_RIGHT = "\u255D"          # ╝

# ── Palette ─────────────────────────────────────────────────────────────
# Crests burn warm, troughs run cold; index grows with magnitude.
WARM_GRADIENT: list[int] = [223, 221, 215, 209, 203, 197]
COLD_GRADIENT: list[int] = [152, 117, 81, 45, 39, 27]

# |level| at which the gradient saturates
LEVEL_SATURATION: int = 100

# ── Sparkline characters ────────────────────────────────────────────────
SPARKS = "▁▂▃▄▅▆▇█"

LOG_PATH = Path(__file__).resolve().parent / "ripple_stats.csv"


# ═══════════════════════════════════════════════════════════════════════
#  Grid geometry
# ═══════════════════════════════════════════════════════════════════════

def cell_extent(
    plane_width: float,
    plane_height: float,
    width: int = BOARD_WIDTH,
    height: int = BOARD_HEIGHT,
) -> tuple[float, float]:
    """Uniform cell size on the plane."""
    return plane_width / width, plane_height / height


def cell_center(
    col: int,
    row: int,
    plane_width: float,
    plane_height: float,
    width: int = BOARD_WIDTH,
    height: int = BOARD_HEIGHT,
) -> tuple[float, float]:
    """Centre of cell (col, row); row 0 is the bottom edge of the board."""
    w, h = cell_extent(plane_width, plane_height, width, height)
    return (
        col * w - plane_width / 2.0 + w / 2.0,
        row * h - plane_height / 2.0 + h / 2.0,
    )


def cell_centers(
    plane_width: float,
    plane_height: float,
    width: int = BOARD_WIDTH,
    height: int = BOARD_HEIGHT,
) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Centres of every interior cell as (xs, ys), indexed [row - 1, col - 1].

    Same arithmetic as cell_center, so a cell's vectorised centre is
    bit-identical to its scalar one.
    """
    w, h = cell_extent(plane_width, plane_height, width, height)
    cols = np.arange(1, width - 1, dtype=np.float64)
    rows = np.arange(1, height - 1, dtype=np.float64)
    xs_1d = cols * w - plane_width / 2.0 + w / 2.0
    ys_1d = rows * h - plane_height / 2.0 + h / 2.0
    xs, ys = np.meshgrid(xs_1d, ys_1d)
    return xs, ys


def is_inside(
    px: float,
    py: float,
    center: tuple[float, float],
    extent: tuple[float, float],
) -> bool:
    """Strict point-in-rectangle test; points on an edge belong to no cell."""
    cx, cy = center
    w, h = extent
    return (
        cx - w / 2.0 < px < cx + w / 2.0
        and cy - h / 2.0 < py < cy + h / 2.0
    )


def border_glyphs(
    width: int = BOARD_WIDTH, height: int = BOARD_HEIGHT
) -> dict[tuple[int, int], str]:
    """Glyph for every cell of the decorative outer ring, keyed (col, row)."""
    top, right = height - 1, width - 1
    glyphs: dict[tuple[int, int], str] = {
        (0, top): CORNER_TOP_LEFT,
        (right, top): CORNER_TOP_RIGHT,
        (0, 0): CORNER_BOTTOM_LEFT,
        (right, 0): CORNER_BOTTOM_RIGHT,
    }
    for col in range(1, right):
        glyphs[(col, 0)] = BORDER_BOTTOM
        glyphs[(col, top)] = BORDER_TOP
    for row in range(1, top):
        glyphs[(0, row)] = BORDER_LEFT
        glyphs[(right, row)] = BORDER_RIGHT
    return glyphs


# ═══════════════════════════════════════════════════════════════════════
#  Field function
# ═══════════════════════════════════════════════════════════════════════

def value_at(
    origin: tuple[float, float], age: float, query: tuple[float, float]
) -> float:
    """Damped radial ringing of one ripple at a query point.

    Decays exponentially with age, oscillates through sin(4 * age) and
    falls off with distance. The +0.1 keeps the origin itself finite.
    """
    r2 = (origin[0] - query[0]) ** 2 + (origin[1] - query[1]) ** 2
    return 100.0 * math.exp(-0.5 * age) * math.sin(4.0 * age) / math.sqrt(r2 / 10.0 + 0.1)


def field_at(
    origin: tuple[float, float],
    age: float,
    xs: NDArray[np.float64],
    ys: NDArray[np.float64],
) -> NDArray[np.float64]:
    """value_at evaluated over arrays of query positions."""
    r2 = (origin[0] - xs) ** 2 + (origin[1] - ys) ** 2
    amplitude = 100.0 * math.exp(-0.5 * age) * math.sin(4.0 * age)
    return amplitude / np.sqrt(r2 / 10.0 + 0.1)


# ═══════════════════════════════════════════════════════════════════════
#  Display quantizer
# ═══════════════════════════════════════════════════════════════════════

def quantize(value: float) -> str:
    """Truncate toward zero; zero shows the resting glyph."""
    level = math.trunc(value)
    return RESTING_GLYPH if level == 0 else str(level)


def quantize_grid(
    acc: NDArray[np.float64],
) -> tuple[NDArray[np.int64], NDArray[np.str_]]:
    """Vectorised quantize: returns (levels, symbols) shaped like acc."""
    levels = np.trunc(acc).astype(np.int64)
    symbols = np.where(levels == 0, RESTING_GLYPH, levels.astype(np.str_))
    return levels, symbols


# ═══════════════════════════════════════════════════════════════════════
#  Ripple registry
# ═══════════════════════════════════════════════════════════════════════

RippleHandle = int


@dataclass
class Ripple:
    """One wave source. Ages on its own clock from the moment it spawns."""
    x: float
    y: float
    age: float = 0.0
    lifetime: float = RIPPLE_LIFETIME

    @property
    def expired(self) -> bool:
        return self.age >= self.lifetime


class RippleRegistry:
    """The live ripples, in spawn order.

    Ripples enter through spawn() and leave only by expiring in
    advance_all() (or a full clear()).
    """

    def __init__(self, lifetime: float = RIPPLE_LIFETIME) -> None:
        self.lifetime = lifetime
        self._ripples: dict[RippleHandle, Ripple] = {}
        self._next_handle: RippleHandle = 0

    def spawn(self, position: tuple[float, float]) -> RippleHandle:
        handle = self._next_handle
        self._next_handle += 1
        self._ripples[handle] = Ripple(
            x=float(position[0]), y=float(position[1]), lifetime=self.lifetime
        )
        return handle

    def advance_all(self, delta: float) -> int:
        """Age every ripple by delta, then drop the expired ones.

        Returns how many ripples expired.
        """
        for ripple in self._ripples.values():
            ripple.age += delta

        expired = [h for h, r in self._ripples.items() if r.expired]
        for handle in expired:
            del self._ripples[handle]
        return len(expired)

    def iterate_active(self) -> list[tuple[tuple[float, float], float]]:
        """Snapshot of (position, age) for every live ripple."""
        return [((r.x, r.y), r.age) for r in self._ripples.values()]

    def get(self, handle: RippleHandle) -> Ripple | None:
        return self._ripples.get(handle)

    def clear(self) -> None:
        self._ripples.clear()

    def __len__(self) -> int:
        return len(self._ripples)

    def __contains__(self, handle: object) -> bool:
        return handle in self._ripples


# ═══════════════════════════════════════════════════════════════════════
#  The board
# ═══════════════════════════════════════════════════════════════════════

class RippleBoard:
    """
    The simulation: a ripple registry, the interior cell centres and one
    accumulator per interior cell.

    step() is the only thing that touches the accumulator. Spawn requests
    made between frames wait in a queue and join at the start of the next
    step, so a pass always sees a fixed set of ripples.
    """

    def __init__(
        self,
        width: int = BOARD_WIDTH,
        height: int = BOARD_HEIGHT,
        plane_width: float = PLANE_WIDTH,
        plane_height: float = PLANE_HEIGHT,
        lifetime: float = RIPPLE_LIFETIME,
    ) -> None:
        self.width = width
        self.height = height
        self.plane_width = plane_width
        self.plane_height = plane_height

        self.registry = RippleRegistry(lifetime)
        self._pending: list[tuple[float, float]] = []

        self.xs, self.ys = cell_centers(plane_width, plane_height, width, height)
        self.extent: tuple[float, float] = cell_extent(
            plane_width, plane_height, width, height
        )
        self._acc: NDArray[np.float64] = np.zeros_like(self.xs)

        # Last frame's output, indexed [row - 1, col - 1]
        self.levels: NDArray[np.int64]
        self.symbols: NDArray[np.str_]
        self.levels, self.symbols = quantize_grid(self._acc)

        self.frame: int = 0
        self.paused: bool = False
        self.delay: float = 30.0

        # ── Telemetry (stats overlay + logger) ───────────────────────
        self.peak: int = 0
        self.peak_history: deque[int] = deque(maxlen=500)
        self.last_spawned: int = 0
        self.last_expired: int = 0
        self.total_spawned: int = 0

    # ── Input ───────────────────────────────────────────────────────

    def request_spawn(self, x: float, y: float) -> None:
        """Queue a ripple at plane position (x, y) for the next step."""
        self._pending.append((x, y))

    def cell_at(self, x: float, y: float) -> tuple[int, int] | None:
        """Interior cell (col, row) strictly containing (x, y), if any."""
        w, h = self.extent
        col = int(math.floor((x + self.plane_width / 2.0) / w))
        row = int(math.floor((y + self.plane_height / 2.0) / h))
        if not (1 <= col < self.width - 1 and 1 <= row < self.height - 1):
            return None
        center = (self.xs[row - 1, col - 1], self.ys[row - 1, col - 1])
        if not is_inside(x, y, center, self.extent):
            return None
        return col, row

    def click(self, x: float, y: float) -> bool:
        """Spawn a ripple where the user clicked, if it hit an interior cell."""
        if self.cell_at(x, y) is None:
            return False
        self.request_spawn(x, y)
        return True

    @property
    def pending(self) -> int:
        return len(self._pending)

    # ── Simulation ──────────────────────────────────────────────────

    def step(self, delta: float) -> NDArray[np.str_]:
        """Run one frame and return the symbol of every interior cell.

        Order: queued spawns join, ripples age and expire, live ripples
        accumulate into every cell, the sums are quantized, then the
        accumulator is zeroed for the next frame.
        """
        if delta < 0:
            raise ValueError(f"frame delta must be non-negative, got {delta}")

        spawned = len(self._pending)
        for position in self._pending:
            self.registry.spawn(position)
        self._pending.clear()

        expired = self.registry.advance_all(delta)

        acc = self._acc
        for origin, age in self.registry.iterate_active():
            acc += field_at(origin, age, self.xs, self.ys)

        self.levels, self.symbols = quantize_grid(acc)
        acc.fill(0.0)

        self.frame += 1
        self.peak = int(np.abs(self.levels).max()) if self.levels.size else 0
        self.peak_history.append(self.peak)
        self.last_spawned = spawned
        self.last_expired = expired
        self.total_spawned += spawned
        return self.symbols

    def symbol_at(self, col: int, row: int) -> str:
        """Last frame's symbol for interior cell (col, row)."""
        if not (1 <= col < self.width - 1 and 1 <= row < self.height - 1):
            raise IndexError(f"({col}, {row}) is not an interior cell")
        return str(self.symbols[row - 1, col - 1])

    def active(self) -> int:
        return len(self.registry)

    def clear(self) -> None:
        self.registry.clear()
        self._pending.clear()
        self.peak_history.clear()

    def sparkline(self, width: int = 24) -> str:
        ph_len = len(self.peak_history)
        if ph_len < 2:
            return ""
        start = max(0, ph_len - width)
        lo = min(self.peak_history[i] for i in range(start, ph_len))
        hi = max(self.peak_history[i] for i in range(start, ph_len))
        n_sparks = len(SPARKS) - 1
        mid_spark = SPARKS[len(SPARKS) // 2]
        out: list[str] = []
        for i in range(start, ph_len):
            v = self.peak_history[i]
            if hi == lo:
                out.append(mid_spark)
            else:
                out.append(SPARKS[int((v - lo) / (hi - lo) * n_sparks)])
        return "".join(out)


# ═══════════════════════════════════════════════════════════════════════
#  Stats logger
# ═══════════════════════════════════════════════════════════════════════

class StatsLogger:
    """Writes board telemetry to CSV for post-hoc tuning."""

    HEADER: ClassVar[str] = "frame,time_s,active,spawned,expired,peak,event\n"

    def __init__(self, path: Path) -> None:
        self._path = path
        self._fh: IO[str] | None = None
        self._t0: float = time.monotonic()

    def open(self) -> None:
        try:
            self._fh = open(self._path, "w")
            self._fh.write(self.HEADER)
            self._fh.flush()
        except OSError:
            self._fh = None

    def log(
        self,
        frame: int,
        active: int,
        spawned: int,
        expired: int,
        peak: int,
        event: str = "",
    ) -> None:
        if self._fh is None:
            return
        t = time.monotonic() - self._t0
        self._fh.write(f"{frame},{t:.1f},{active},{spawned},{expired},{peak},{event}\n")
        if event or frame % 50 == 0:
            try:
                self._fh.flush()
            except OSError:
                pass

    def close(self) -> None:
        if self._fh is not None:
            try:
                self._fh.close()
            except OSError:
                pass
            self._fh = None


def frame_event(board: RippleBoard) -> str:
    """Short label for what happened to the registry this frame."""
    parts: list[str] = []
    if board.last_spawned:
        parts.append(f"spawn:{board.last_spawned}")
    if board.last_expired:
        parts.append(f"expire:{board.last_expired}")
    return "|".join(parts)


# ═══════════════════════════════════════════════════════════════════════
#  Color management
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class ColorMap:
    """Curses color pairs for crest (warm) and trough (cold) levels."""

    n_gradient: int = 0
    _warm_pairs: dict[int, int] = field(default_factory=dict)
    _cold_pairs: dict[int, int] = field(default_factory=dict)

    def setup(self) -> None:
        curses.start_color()
        curses.use_default_colors()

        max_pairs = curses.COLOR_PAIRS - 1
        pair_id = 1
        for i, c in enumerate(WARM_GRADIENT):
            if pair_id > max_pairs:
                break
            curses.init_pair(pair_id, c, -1)
            self._warm_pairs[i] = pair_id
            pair_id += 1
        for i, c in enumerate(COLD_GRADIENT):
            if pair_id > max_pairs:
                break
            curses.init_pair(pair_id, c, -1)
            self._cold_pairs[i] = pair_id
            pair_id += 1

        self.n_gradient = min(len(WARM_GRADIENT), len(COLD_GRADIENT))

    def for_level(self, level: int) -> int:
        """Color pair for a quantized level (0 for resting cells)."""
        if level == 0 or self.n_gradient == 0:
            return 0
        idx = level_to_color_idx(level, self.n_gradient)
        pairs = self._warm_pairs if level > 0 else self._cold_pairs
        return pairs.get(idx, 0)


def level_to_color_idx(level: int, n: int) -> int:
    mag = min(abs(level), LEVEL_SATURATION)
    if mag == 0:
        return 0
    return min(int(math.log1p(mag) / math.log1p(LEVEL_SATURATION) * (n - 1)), n - 1)


# ═══════════════════════════════════════════════════════════════════════
#  Rendering
# ═══════════════════════════════════════════════════════════════════════

def slot_width(max_x: int, width: int = BOARD_WIDTH) -> int:
    """Terminal columns given to each board cell."""
    return max(1, max_x // width)


def fit_symbol(symbol: str, slot: int) -> str:
    """Centre a symbol in its slot, clipping anything that overflows."""
    if len(symbol) >= slot:
        return symbol[:slot]
    return symbol.center(slot)


def term_to_plane(
    term_y: int, term_x: int, board: RippleBoard, slot: int
) -> tuple[float, float]:
    """Plane point under the centre of a terminal character.

    Terminal row 0 is the top board row; the plane's y axis points up.
    """
    fx = (term_x + 0.5) / (slot * board.width)
    fy = (board.height - term_y - 0.5) / board.height
    return (
        fx * board.plane_width - board.plane_width / 2.0,
        fy * board.plane_height - board.plane_height / 2.0,
    )


def render(
    stdscr: curses.window,
    board: RippleBoard,
    cmap: ColorMap,
    borders: dict[tuple[int, int], str],
    show_stats: bool = False,
) -> None:
    """Draw the frame, every interior symbol and the status bar."""
    max_y, max_x = stdscr.getmaxyx()
    slot = slot_width(max_x, board.width)
    top = board.height - 1

    _addstr = stdscr.addstr
    _color_pair = curses.color_pair
    _BOLD = curses.A_BOLD
    _DIM = curses.A_DIM

    for (col, row), glyph in borders.items():
        try:
            _addstr(top - row, col * slot, glyph * slot, _DIM)
        except curses.error:
            pass

    # .tolist avoids numpy scalar conversion in the loop
    levels = board.levels.tolist()
    symbols = board.symbols.tolist()
    for r, (level_row, symbol_row) in enumerate(zip(levels, symbols)):
        y = top - (r + 1)
        if y >= max_y - 1:
            continue
        for c, (level, symbol) in enumerate(zip(level_row, symbol_row)):
            attr = _DIM if level == 0 else _color_pair(cmap.for_level(level)) | _BOLD
            try:
                _addstr(y, (c + 1) * slot, fit_symbol(symbol, slot), attr)
            except curses.error:
                pass

    if show_stats:
        _draw_stats_overlay(stdscr, board, max_y, max_x)

    state = "paused" if board.paused else "live"
    left = (
        f"  frame {board.frame:,}  ripples {board.active()}  "
        f"peak {board.peak}  {board.sparkline()}"
    )
    right = f"{state}  q spc c +/- s  "
    status = (left + " " * max(1, max_x - len(left) - len(right) - 1) + right)
    try:
        stdscr.addstr(max_y - 1, 0, status[: max_x - 1], _DIM)
    except curses.error:
        pass


def _draw_stats_overlay(
    stdscr: curses.window, board: RippleBoard, max_y: int, max_x: int
) -> None:
    """Draw the board telemetry panel in the bottom-right."""
    panel_w = 32
    x0 = max_x - panel_w - 2
    lines = [
        f"{'':─<{panel_w - 2}}",
        " ripple engine",
        f" active      : {board.active()}",
        f" spawned     : {board.total_spawned:,}",
        f" expired now : {board.last_expired}",
        f" peak        : {board.peak}",
        f" board       : {board.width}x{board.height}",
    ]
    y0 = max_y - len(lines) - 2
    if x0 < 0 or y0 < 0:
        return

    for i, line in enumerate(lines):
        padded = f" {line:<{panel_w - 1}}"[:panel_w]
        try:
            stdscr.addstr(y0 + i, x0, padded, curses.A_DIM)
        except curses.error:
            pass


# ═══════════════════════════════════════════════════════════════════════
#  Main loop
# ═══════════════════════════════════════════════════════════════════════

def main(stdscr: curses.window) -> None:
    curses.curs_set(0)
    stdscr.nodelay(True)
    stdscr.timeout(0)
    curses.mousemask(curses.ALL_MOUSE_EVENTS)

    cmap = ColorMap()
    cmap.setup()

    board = RippleBoard()
    borders = border_glyphs(board.width, board.height)

    logger = StatsLogger(LOG_PATH)
    logger.open()

    show_stats = False
    last_t = time.monotonic()

    try:
        while True:
            # ── Input ──────────────────────────────────────────────
            try:
                key = stdscr.getch()
            except curses.error:
                key = -1

            if key in (ord("q"), ord("Q")):
                break
            elif key == ord(" "):
                board.paused = not board.paused
            elif key in (ord("c"), ord("C")):
                board.clear()
            elif key in (ord("+"), ord("=")):
                board.delay = max(10, board.delay - 10)
            elif key in (ord("-"), ord("_")):
                board.delay = min(500, board.delay + 10)
            elif key in (ord("s"), ord("S")):
                show_stats = not show_stats
            elif key == curses.KEY_MOUSE:
                try:
                    _, mx, my, _, bstate = curses.getmouse()
                    if bstate & (curses.BUTTON1_PRESSED | curses.BUTTON1_CLICKED):
                        _, max_x = stdscr.getmaxyx()
                        slot = slot_width(max_x, board.width)
                        board.click(*term_to_plane(my, mx, board, slot))
                except curses.error:
                    pass

            # ── Simulate ───────────────────────────────────────────
            now = time.monotonic()
            delta = now - last_t
            last_t = now
            if not board.paused:
                board.step(delta)

                # ── Log ────────────────────────────────────────────
                event = frame_event(board)
                if event or board.frame % 10 == 0:
                    logger.log(
                        frame=board.frame,
                        active=board.active(),
                        spawned=board.last_spawned,
                        expired=board.last_expired,
                        peak=board.peak,
                        event=event,
                    )

            # ── Render ─────────────────────────────────────────────
            stdscr.erase()
            render(stdscr, board, cmap, borders, show_stats=show_stats)
            stdscr.refresh()

            time.sleep(board.delay / 1000.0)

    finally:
        logger.close()


def run() -> None:
    try:
        curses.wrapper(main)
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
