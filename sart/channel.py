"""Per-neighbour channel quality tracking and link-failure detection."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, MutableMapping, Optional

from sart.capsule_transport import CapsuleTransport
from sart.congestion import CongestionControl, TransportStates
from sart.nodeinfo import NodeInfo
from sart.routes import QUALITY_BROKEN, RouteTable
from sart.scheduler import Event, Scheduler
from sart.throughput import ThroughputQueue

_log = logging.getLogger(__name__)


@dataclass
class ChannelStates:
    """Smoothed quality and arrival history of the link from one neighbour."""

    from_node_id: int
    quality_smooth: float
    th_queue: ThroughputQueue
    wait_event: Optional[Event] = None


class ChannelMonitor:
    """Smooths link qualities, feeds them to the route table and detects silent links."""

    def __init__(
        self,
        node_info: NodeInfo,
        scheduler: Scheduler,
        routes: RouteTable,
        congestion: CongestionControl,
        transport: CapsuleTransport,
        transports: MutableMapping[str, TransportStates],
        log: Optional[logging.Logger] = None,
    ) -> None:
        self.node_info = node_info
        self.scheduler = scheduler
        self.routes = routes
        self.congestion = congestion
        self.transport = transport
        self.transports = transports
        self.log = log if log is not None else _log
        self.states: Dict[int, ChannelStates] = {}

    def update(self, from_node_id: int, quality: float) -> float:
        """Record a message heard from ``from_node_id``; return the smoothed quality."""
        now = self.scheduler.now()
        timeout = self.node_info.msg_timeout
        states = self.states.get(from_node_id)
        known = states is not None

        if states is None:
            states = ChannelStates(
                from_node_id, quality, ThroughputQueue(self.node_info.th_queue_size)
            )
            states.th_queue.record_packet_arrival(now)
            self.states[from_node_id] = states
        else:
            alpha = self.node_info.quality_alpha
            states.quality_smooth = (1 - alpha) * states.quality_smooth + alpha * quality
            states.th_queue.record_packet_arrival(now)
            timeout = states.th_queue.estimate_longest_piat(
                self.node_info.longest_piat_est_confident_ratio, self.node_info.msg_timeout
            )
            self.scheduler.cancel(states.wait_event)

        self.routes.update_quality(from_node_id, self.node_info.node_id, states.quality_smooth)
        states.wait_event = self.scheduler.schedule(
            timeout, self.mark_broken, from_node_id, "message timeout"
        )

        if known:
            for ts in list(self.transports.values()):
                if from_node_id in self.routes.neighbors(ts.consumer_id, ts.prefix):
                    self.congestion.on_channel_waken(ts, from_node_id)
                    self.transport.send_queued(ts)
        return states.quality_smooth

    def mark_broken(self, from_node_id: int, reason: str) -> int:
        """Mark the link from ``from_node_id`` broken; return how many routes changed state."""
        changes = self.routes.update_quality(
            from_node_id, self.node_info.node_id, QUALITY_BROKEN
        )
        self.log.debug(
            "[Node %s, %s s] link %s -> %s broken: %s",
            self.node_info.node_id,
            self.scheduler.now(),
            from_node_id,
            self.node_info.node_id,
            reason,
        )
        return changes