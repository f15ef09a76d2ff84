"""Transport state per flow and its window-based congestion control."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Set, TextIO

from sart.capsule_queue import CapsuleQueue
from sart.nodeinfo import NodeInfo


@dataclass
class InterestBroadcastStates:
    """When an interest broadcast was received and the nonce it carried."""

    recv_time: float = 0.0
    nonce: int = 0


@dataclass
class SendCapState:
    """Progress of sending one capsule towards its downstream nodes."""

    send_event: Any = None
    send_times: int = 0
    downstream_node_ids: Set[int] = field(default_factory=set)


@dataclass
class TransportStates:
    """State of one (prefix, consumer) flow at this node."""

    prefix: str
    send_queue: CapsuleQueue
    consumer_id: int = 0
    received_interest_broadcasts: Optional[InterestBroadcastStates] = None
    sent_data_next_hops: Set[int] = field(default_factory=set)
    send_cap_states: Dict[int, Optional[SendCapState]] = field(default_factory=dict)
    window: int = 0
    slow_start_thres: int = 0


class CongestionControl:
    """Slow start and multiplicative decrease on a per-flow send window."""

    def __init__(
        self,
        node_info: NodeInfo,
        log: Optional[TextIO] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.node_info = node_info
        self._log = log
        self._clock = clock or (lambda: 0.0)

    def init(self, ts: TransportStates) -> None:
        ts.window = self.node_info.congestion_control_init_win
        ts.slow_start_thres = self.node_info.congestion_control_slow_start_thres
        self._write_log("Init", ts)

    def on_ack_received(self, ts: TransportStates) -> None:
        if 1 <= ts.window < ts.slow_start_thres:
            ts.window *= 2
        else:
            ts.window += 1
            ts.slow_start_thres += 1
        self._write_log("AckReceived", ts)

    def on_ack_timeout(self, ts: TransportStates, next_hop_id: int) -> None:
        if next_hop_id == -1:
            ts.window = 0
            self._write_log("NoRoute", ts)
            return
        if ts.window > 0:
            ts.window //= 2
        if ts.window == 0:
            ts.window = 1
        ts.slow_start_thres = int(ts.slow_start_thres / 2)
        if ts.slow_start_thres == 0:
            ts.slow_start_thres = 1
        self._write_log("AckTimeout", ts)

    def on_channel_waken(self, ts: TransportStates, from_node_id: int) -> None:
        if ts.window == 0:
            ts.window = self.node_info.congestion_control_init_win
            ts.slow_start_thres = self.node_info.congestion_control_slow_start_thres
        self._write_log("Waken", ts)

    def _write_log(self, reason: str, ts: TransportStates) -> None:
        if self._log is not None:
            self._log.write(
                f"{self.node_info.node_id},{self._clock()},{reason},{ts.window},"
                f"{ts.slow_start_thres},{ts.send_queue.count_visible()}\n"
            )