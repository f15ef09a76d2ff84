"""The reliable subpath-aware transport strategy of one node."""

from __future__ import annotations

import logging
import random
from typing import Callable, Dict, List, Optional, Sequence

from sart.capsule_queue import CapsuleQueue
from sart.capsule_transport import (
    ArrivalDirection,
    CapsuleTransport,
    SendReason,
    data_next_hop_key,
)
from sart.channel import ChannelMonitor
from sart.congestion import CongestionControl, InterestBroadcastStates, TransportStates
from sart.log import MessageLog
from sart.messages import (
    UNSPECIFIED_NODE_ID,
    Data,
    EchoInfo,
    Face,
    Interest,
    InterestBroadcastInfo,
    construct_capsule,
    construct_echo,
    construct_interest,
    construct_interest_broadcast,
    extract_capsule,
    extract_capsule_ack,
    extract_echo,
    extract_interest,
    extract_interest_broadcast,
    extract_phy_info,
)
from sart.nodeinfo import NodeInfo
from sart.routes import RouteTable
from sart.scheduler import Scheduler

_log = logging.getLogger(__name__)


def transport_key(prefix: str, consumer_id: int) -> str:
    """Key of the transport state of one (prefix, consumer) flow."""
    return f"{prefix}|{consumer_id}"


class RntpStrategy:
    """Route discovery by interest broadcast and hop-by-hop reliable capsule delivery."""

    STRATEGY_NAME = "/localhost/nfd/strategy/rntp/%FD%01"

    def __init__(
        self,
        node_info: NodeInfo,
        scheduler: Scheduler,
        netdev: Face,
        app: Optional[Face] = None,
        rng: Optional[random.Random] = None,
        log: Optional[MessageLog] = None,
    ) -> None:
        if node_info.echo_period <= 0:
            raise ValueError("echo period must be positive")
        self.node_info = node_info
        self.scheduler = scheduler
        self.netdev = netdev
        self.app = app
        self.rng = rng if rng is not None else random.Random()
        self.log = log if log is not None else MessageLog(node_info.node_id, scheduler.now)
        self.routes = RouteTable(node_info.node_id, scheduler.now)
        self.congestion = CongestionControl(node_info, clock=scheduler.now)
        self.transports: Dict[str, TransportStates] = {}
        self.transport = CapsuleTransport(
            node_info, self.routes, scheduler, self.congestion, self.transports, netdev, self.log
        )
        self.channels = ChannelMonitor(
            node_info, scheduler, self.routes, self.congestion, self.transport, self.transports
        )
        self._echo_seq = 0
        delay = self.rng.uniform(0.000001, node_info.echo_period)
        self._echo_event = scheduler.schedule(delay, self.send_echo)

    @property
    def node_id(self) -> int:
        return self.node_info.node_id

    def find_prefix(self, prefix: str) -> int:
        """Index of ``prefix`` among the prefixes this node produces, or -1."""
        try:
            return self.node_info.prefixes.index(prefix)
        except ValueError:
            return -1

    def _new_transport(self, prefix: str, consumer_id: int) -> TransportStates:
        ts = TransportStates(
            prefix=prefix,
            send_queue=CapsuleQueue(self.node_id, clock=self.scheduler.now),
            consumer_id=consumer_id,
            received_interest_broadcasts=InterestBroadcastStates(recv_time=self.scheduler.now()),
        )
        self.congestion.init(ts)
        self.transports[transport_key(prefix, consumer_id)] = ts
        return ts

    def after_receive_interest(self, interest: Interest, has_pending_out_records: bool) -> None:
        """Handle an interest: serve it locally or start route discovery for it."""
        info = extract_interest(interest)
        phy = extract_phy_info(interest)
        self.log.interest(True, info, phy)
        _log.debug(
            "[Node %s, %s s] interest %s consumer %s next hop %s",
            self.node_id, self.scheduler.now(), info.prefix,
            info.consumer_node_id, info.next_hop_node_id,
        )
        if has_pending_out_records:
            return

        if self.find_prefix(info.prefix) >= 0 and self.app is not None:
            self.app.send_interest(interest)
        elif info.consumer_node_id == UNSPECIFIED_NODE_ID:
            key = transport_key(info.prefix, self.node_id)
            if key in self.transports:
                return
            ts = self._new_transport(info.prefix, self.node_id)
            self.propagate_interests(
                ts.received_interest_broadcasts, info.prefix, [self.node_id], [],
                self.node_id, 0, False,
            )

    def _handlers(self) -> Dict[str, Callable[[Data], None]]:
        return {
            "InterestBroadcast": self.on_receive_interest_broadcast,
            "Capsule": self.on_receive_capsule,
            "CapsuleAck": self.on_receive_capsule_ack,
            "Echo": self.on_receive_echo,
        }

    def _dispatch(self, data: Data, index: int) -> bool:
        components = data.components
        if index >= len(components):
            raise ValueError(f"name {data.name!r} has no operation component {index}")
        handler = self._handlers().get(components[index])
        if handler is None:
            _log.warning("unknown operation %r in %s", components[index], data.name)
            return False
        handler(data)
        return True

    def after_receive_data(self, data: Data, pit_name_size: int) -> bool:
        """Dispatch data matching a pending interest; False for an unknown operation."""
        return self._dispatch(data, pit_name_size)

    def after_receive_non_pit_data(self, data: Data) -> bool:
        """Dispatch data without a pending interest; False for an unknown operation."""
        return self._dispatch(data, 2)

    def on_receive_interest_broadcast(self, data: Data) -> None:
        info = extract_interest_broadcast(data)
        phy = extract_phy_info(data)
        self.log.interest_broadcast(True, info, phy)
        quality = phy.snr
        self.channels.update(info.trans_hop_node_id, quality)

        if info.end:
            if self.node_id in info.visited_node_ids:
                return
            key = transport_key(info.producer_prefix, info.consumer_node_id)
            if key in self.transports:
                del self.transports[key]
                _log.info(
                    "[Node %s, %s s] terminate transport states with producerPrefix: %s, "
                    "consumerNodeID: %s",
                    self.node_id, self.scheduler.now(), info.producer_prefix,
                    info.consumer_node_id,
                )
                if info.visited_node_ids:
                    info.channel_qualities.append(quality)
                info.visited_node_ids.append(self.node_id)
                self.propagate_interests(
                    None, info.producer_prefix, info.visited_node_ids,
                    info.channel_qualities, info.consumer_node_id, 0, True,
                )
            return

        if info.consumer_node_id == self.node_id:
            return

        hop_count = info.hop_count + 1
        key = transport_key(info.producer_prefix, info.consumer_node_id)

        if self.find_prefix(info.producer_prefix) >= 0:
            info.visited_node_ids.append(self.node_id)
            info.channel_qualities.append(quality)
            self.routes.add(
                info.producer_prefix, info.consumer_node_id, hop_count,
                info.visited_node_ids, info.channel_qualities,
            )
            if key in self.transports:
                return
            self._new_transport(info.producer_prefix, info.consumer_node_id)
            if self.app is not None:
                interest = construct_interest(
                    info.producer_prefix, info.consumer_node_id, UNSPECIFIED_NODE_ID
                )
                self.app.send_interest(interest)
                self.log.interest_broadcast(False, info, None)
            return

        if self.node_id in info.visited_node_ids:
            return
        info.visited_node_ids.append(self.node_id)
        info.channel_qualities.append(quality)
        self.routes.add(
            info.producer_prefix, info.consumer_node_id, hop_count,
            info.visited_node_ids, info.channel_qualities,
        )
        if key not in self.transports:
            ts = self._new_transport(info.producer_prefix, info.consumer_node_id)
            self.propagate_interests(
                ts.received_interest_broadcasts, info.producer_prefix, info.visited_node_ids,
                info.channel_qualities, info.consumer_node_id, hop_count, False,
            )

    def on_receive_capsule(self, data: Data) -> None:
        cap = extract_capsule(data, self.node_id)
        phy = extract_phy_info(data)
        self.log.capsule(True, cap, phy)
        if cap.node_ids:
            self.channels.update(cap.trans_hop_node_id, phy.snr)

        ts = self.transports.get(transport_key(cap.prefix, cap.consumer_node_id))
        if ts is None or cap.consumer_node_id == UNSPECIFIED_NODE_ID:
            return

        direction = self.transport.arrival_direction(cap)
        if direction == ArrivalDirection.FROM_DOWNSTREAM and cap.consumer_node_id != self.node_id:
            self.transport.deal_with_ack(ts, cap.data_id, cap.trans_hop_node_id)
            return

        if cap.consumer_node_id == self.node_id:
            key = data_next_hop_key(cap.data_id, self.transport.next_hop(cap.node_ids))
            if key not in ts.sent_data_next_hops and self.app is not None:
                capsule = construct_capsule(cap, cap.node_ids, data, cap.n_hops + 1)
                self.app.send_data(capsule)
                ts.sent_data_next_hops.add(key)
                self.log.capsule(False, cap, None)
            upstream = self.transport.upstream_node_ids(cap.node_ids, cap.trans_hop_node_id)
            self.transport.send_ack(
                cap.prefix, [cap.data_id], self.node_id, upstream,
                cap.trans_hop_node_id, cap.consumer_node_id,
            )
        elif not cap.node_ids:
            self.transport.send_via_queue(ts, cap, data, SendReason.FROM_PRODUCER)
        elif direction == ArrivalDirection.FROM_UPSTREAM:
            self.transport.send_via_queue(ts, cap, data, SendReason.FROM_PREVIOUS_HOP)

    def on_receive_capsule_ack(self, data: Data) -> None:
        ack = extract_capsule_ack(data)
        phy = extract_phy_info(data)
        self.log.capsule_ack(True, ack, phy)
        self.channels.update(ack.downstream_node_id, phy.snr)

        if self.node_id not in ack.upstream_node_ids or not ack.data_ids_received:
            return
        ts = self.transports.get(transport_key(ack.prefix, ack.consumer_node_id))
        if ts is None:
            return
        self.transport.deal_with_ack(ts, ack.data_ids_received[0], ack.downstream_node_id)

    def on_receive_echo(self, data: Data) -> None:
        info = extract_echo(data)
        phy = extract_phy_info(data)
        self.log.echo(True, info, phy)
        self.channels.update(info.source_node_id, phy.snr)

    def propagate_interests(
        self,
        states: Optional[InterestBroadcastStates],
        producer_prefix: str,
        visited_node_ids: Sequence[int],
        channel_qualities: Sequence[float],
        consumer_node_id: int,
        initial_hop_count: int,
        end: bool,
    ) -> InterestBroadcastInfo:
        """Schedule repeated broadcasts of an interest after random contention delays."""
        info = InterestBroadcastInfo(
            hop_count=initial_hop_count,
            producer_prefix=producer_prefix,
            consumer_node_id=consumer_node_id,
            trans_hop_node_id=self.node_id,
            nonce=self.rng.randint(1, 0xFFFFFFFF),
            visited_node_ids=list(visited_node_ids),
            channel_qualities=list(channel_qualities),
            end=end,
        )
        if states is not None:
            states.nonce = info.nonce
        data = construct_interest_broadcast(info)
        wait = self.rng.uniform(0, self.node_info.interest_contention_time)
        self.scheduler.schedule(
            wait, self._broadcast, info, data, self.node_info.interest_send_times
        )
        return info

    def _broadcast(self, info: InterestBroadcastInfo, data: Data, times: int) -> None:
        data.transient = 1
        self.netdev.send_data(data)
        self.log.interest_broadcast(False, info, None)
        if times >= 2:
            wait = self.rng.uniform(0, self.node_info.interest_contention_time)
            self.scheduler.schedule(wait, self._broadcast, info, data, times - 1)

    def send_echo(self) -> Data:
        """Broadcast an echo and schedule the next one."""
        info = EchoInfo(self.node_id, self._echo_seq)
        self._echo_seq += 1
        data = construct_echo(self.node_info.ndn_namespace, info)
        self.netdev.send_data(data)
        self.log.echo(False, info, None)
        self._echo_event = self.scheduler.schedule(self.node_info.echo_period, self.send_echo)
        return data

    def close(self) -> None:
        """Stop periodic echoes and write the route table to the log."""
        self.scheduler.cancel(self._echo_event)
        self.log.routes(self.routes)

    def neighbors(self) -> List[int]:
        return sorted(self.routes.neighbors())