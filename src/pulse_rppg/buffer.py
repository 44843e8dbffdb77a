"""Time-ordered colour-signal buffers.

Two lifecycles share one class:

- batch: grows for the whole file (optionally capped to a rolling window)
- live: fixed-capacity ring buffer, oldest sample evicted first

The four histories (times, r, g, b) are ``deque`` objects that always share
the same ``maxlen``, so an append past capacity evicts from all of them
together. Readers only see :class:`SignalSnapshot` copies.
"""

from __future__ import annotations

import math
import threading
from collections import deque
from dataclasses import dataclass
from typing import Deque, Iterable, List, Optional

import numpy as np

from .frame import ColorSample

BATCH = "batch"
LIVE = "live"


def _frozen(values: Deque[float]) -> np.ndarray:
    arr = np.array(values, dtype=np.float64)
    arr.flags.writeable = False
    return arr


@dataclass(frozen=True, eq=False)
class SignalSnapshot:
    times: np.ndarray
    r: np.ndarray
    g: np.ndarray
    b: np.ndarray

    def __len__(self) -> int:
        return int(self.times.size)

    @property
    def duration(self) -> float:
        if self.times.size < 2:
            return 0.0
        return float(self.times[-1] - self.times[0])

    @property
    def sampling_rate(self) -> float:
        """Mean rate ``(n-1) / (t[n-1] - t[0])`` in Hz; 0 when undefined."""
        n = self.times.size
        span = self.duration
        if n < 2 or span <= 0:
            return 0.0
        return float((n - 1) / span)


class SignalBuffer:
    def __init__(self, mode: str = BATCH, capacity: Optional[int] = None) -> None:
        if mode not in (BATCH, LIVE):
            raise ValueError(f"mode must be {BATCH!r} or {LIVE!r}, got {mode!r}")
        if mode == LIVE and capacity is None:
            raise ValueError("live buffers need a capacity")
        if capacity is not None and capacity < 2:
            raise ValueError("capacity must be >= 2")
        self.mode = mode
        self.capacity = capacity
        self._lock = threading.Lock()
        self._t: Deque[float] = deque(maxlen=capacity)
        self._r: Deque[float] = deque(maxlen=capacity)
        self._g: Deque[float] = deque(maxlen=capacity)
        self._b: Deque[float] = deque(maxlen=capacity)

    def __len__(self) -> int:
        with self._lock:
            return len(self._t)

    @property
    def last_time(self) -> Optional[float]:
        with self._lock:
            return self._t[-1] if self._t else None

    def _check_order(self, time: float, last: Optional[float]) -> None:
        if not math.isfinite(time):
            raise ValueError(f"sample time must be finite, got {time}")
        if last is not None and time <= last:
            raise ValueError(f"sample time {time} is not after last time {last}")

    def _push(self, sample: ColorSample) -> None:
        self._t.append(float(sample.time))
        self._r.append(float(sample.r))
        self._g.append(float(sample.g))
        self._b.append(float(sample.b))

    def append(self, sample: ColorSample) -> None:
        """Append one sample; timestamps must be finite and strictly increase."""
        with self._lock:
            self._check_order(sample.time, self._t[-1] if self._t else None)
            self._push(sample)

    def extend(self, samples: Iterable[ColorSample]) -> int:
        """Append several samples, all or none.

        Every timestamp is checked before the first one is stored. Returns the
        number of samples appended.
        """
        batch: List[ColorSample] = list(samples)
        with self._lock:
            last = self._t[-1] if self._t else None
            for sample in batch:
                self._check_order(sample.time, last)
                last = sample.time
            for sample in batch:
                self._push(sample)
        return len(batch)

    def snapshot(self) -> SignalSnapshot:
        with self._lock:
            return SignalSnapshot(
                times=_frozen(self._t),
                r=_frozen(self._r),
                g=_frozen(self._g),
                b=_frozen(self._b),
            )

    def clear(self) -> None:
        with self._lock:
            self._t.clear()
            self._r.clear()
            self._g.clear()
            self._b.clear()
