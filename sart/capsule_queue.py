"""The send queue of capsules awaiting transmission or acknowledgement."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Set, TextIO


@dataclass
class CapsuleToSend:
    """A capsule waiting to be sent; ``hidden`` marks it as in flight."""

    cap_info: Any
    data: Any
    retries: int = 0
    reason: int = 0
    hidden: bool = False

    @property
    def data_id(self) -> int:
        return self.cap_info.data_id


class CapsuleQueue:
    """FIFO of capsules in which sent capsules stay, hidden, until acknowledged."""

    def __init__(
        self,
        node_id: int,
        log: Optional[TextIO] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.node_id = node_id
        self._log = log
        self._clock = clock or (lambda: 0.0)
        self._buffer: List[CapsuleToSend] = []
        self._data_ids: Set[int] = set()

    def __len__(self) -> int:
        return len(self._buffer)

    def __contains__(self, data_id: object) -> bool:
        return data_id in self._data_ids

    @property
    def hidden_count(self) -> int:
        return sum(1 for element in self._buffer if element.hidden)

    def push(self, element: CapsuleToSend) -> None:
        """Append ``element`` as a visible entry."""
        element.hidden = False
        self._buffer.append(element)
        self._data_ids.add(element.data_id)
        self._write_log()

    def remove(self, data_id: int) -> None:
        """Drop every entry carrying ``data_id``."""
        self._buffer = [e for e in self._buffer if e.data_id != data_id]
        self._data_ids.discard(data_id)
        self._write_log()

    def hide_front(self) -> None:
        """Mark the first visible entry as in flight."""
        element = self.front()
        if element is not None:
            element.hidden = True
            self._write_log()

    def front(self) -> Optional[CapsuleToSend]:
        """Return the first visible entry, or None."""
        return next((e for e in self._buffer if not e.hidden), None)

    def restore(self, data_id: int) -> Optional[CapsuleToSend]:
        """Make the first entry with ``data_id`` visible again and return it."""
        for element in self._buffer:
            if element.data_id == data_id:
                if element.hidden:
                    element.hidden = False
                    self._write_log()
                return element
        return None

    def count_visible(self) -> int:
        """Number of entries not in flight."""
        return len(self._buffer) - self.hidden_count

    def _write_log(self) -> None:
        if self._log is not None:
            self._log.write(
                f"{self.node_id},{self._clock()},{len(self._buffer)},{self.hidden_count}\n"
            )