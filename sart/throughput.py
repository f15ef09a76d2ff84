"""Per-second packet arrival counting and inter-arrival time estimation."""

from __future__ import annotations

import logging
import math
from collections import deque
from dataclasses import dataclass
from typing import Deque

_log = logging.getLogger(__name__)


@dataclass
class _Slot:
    secs: int
    packet_count: int


class ThroughputQueue:
    """A bounded history of packet counts, one slot per whole second."""

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._slots: Deque[_Slot] = deque(maxlen=capacity)

    def __len__(self) -> int:
        return len(self._slots)

    def record_packet_arrival(self, time: float) -> None:
        """Count one packet arriving at ``time`` seconds."""
        secs = math.floor(time)
        if not self._slots:
            self._slots.append(_Slot(secs, 1))
            return
        last = self._slots[-1]
        if last.secs == secs:
            last.packet_count += 1
        elif secs > last.secs:
            self._slots.append(_Slot(secs, 1))
        else:
            _log.warning("packet arrival at %s precedes the last recorded second", time)

    def mean_arrival_rate(self) -> float:
        """Mean packets per recorded second, excluding the newest slot; -1.0 if unknown."""
        if len(self._slots) <= 1:
            return -1.0
        complete = list(self._slots)[:-1]
        return sum(slot.packet_count for slot in complete) / len(complete)

    def estimate_longest_piat(self, confident_ratio: float, max_piat: float) -> float:
        """Estimate the longest packet inter-arrival time, capped at ``max_piat``."""
        rate = self.mean_arrival_rate()
        if rate < 0 or confident_ratio >= 1:
            return max_piat
        estimate = -math.log(1 - confident_ratio) / rate
        return max_piat if estimate > max_piat else estimate