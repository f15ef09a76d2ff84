"""Hop-by-hop reliable delivery of capsules along learned routes."""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace
from typing import Iterable, List, MutableMapping, Optional, Sequence, Set

from sart.capsule_queue import CapsuleToSend
from sart.congestion import CongestionControl, SendCapState, TransportStates
from sart.log import MessageLog
from sart.messages import (
    CapsuleAckInfo,
    CapsuleInfo,
    Data,
    Face,
    construct_capsule,
    construct_capsule_ack,
)
from sart.nodeinfo import NodeInfo
from sart.routes import RouteTable
from sart.scheduler import Scheduler


class SendResult(enum.IntEnum):
    NORM = 0
    ALREADY_SENT = -1
    NO_ROUTE = -2
    EXCEED_MAX_RETRYING_TIME = -3
    CANCELED = -4
    DUPLICATED = -5


class SendReason(enum.IntEnum):
    FROM_PRODUCER = 0
    FROM_PREVIOUS_HOP = 1
    FOR_RETRYING = 2


class ArrivalDirection(enum.IntEnum):
    FROM_UPSTREAM = 0
    FROM_DOWNSTREAM = 1
    FROM_OTHERS = 2


def data_next_hop_key(data_id: int, next_hop_id: int) -> int:
    """Combine a data identifier and a next hop into one 64-bit key."""
    return ((next_hop_id & 0xFFFFFFFF) << 32) | (data_id & 0xFFFFFFFF)


def _transport_key(prefix: str, consumer_id: int) -> str:
    return f"{prefix}|{consumer_id}"


def _copy_info(info: CapsuleInfo) -> CapsuleInfo:
    return replace(info, node_ids=list(info.node_ids))


@dataclass(frozen=True)
class _SendParams:
    retries: int
    previous_trans_hop: int
    reason: int


class CapsuleTransport:
    """Sends queued capsules within the congestion window and handles their acks."""

    def __init__(
        self,
        node_info: NodeInfo,
        routes: RouteTable,
        scheduler: Scheduler,
        congestion: CongestionControl,
        transports: MutableMapping[str, TransportStates],
        netdev: Face,
        log: Optional[MessageLog] = None,
    ) -> None:
        self.node_info = node_info
        self.routes = routes
        self.scheduler = scheduler
        self.congestion = congestion
        self.transports = transports
        self.netdev = netdev
        self.log = log if log is not None else MessageLog(node_info.node_id, scheduler.now)

    @property
    def node_id(self) -> int:
        return self.node_info.node_id

    def next_hop(self, node_ids: Sequence[int]) -> int:
        """The node preceding this one in ``node_ids``, or -1 if there is none."""
        next_hop_id = -1
        for node_id in node_ids:
            if node_id == self.node_id:
                break
            next_hop_id = node_id
        return next_hop_id

    def upstream_node_ids(self, node_ids: Sequence[int], trans_hop_node_id: int) -> List[int]:
        """Nodes after this one in ``node_ids`` up to and including the transmitting hop."""
        node_ids = list(node_ids)
        if self.node_id not in node_ids:
            return []
        upstream: List[int] = []
        for node_id in node_ids[node_ids.index(self.node_id) + 1 :]:
            upstream.append(node_id)
            if node_id == trans_hop_node_id:
                return upstream
        return []

    def _indices(self, cap_info: CapsuleInfo) -> tuple:
        own = trans = -1
        for index, node_id in enumerate(cap_info.node_ids):
            if node_id == self.node_id and own == -1:
                own = index
            if node_id == cap_info.trans_hop_node_id and trans == -1:
                trans = index
            if own != -1 and trans != -1:
                break
        return own, trans

    def arrival_direction(self, cap_info: CapsuleInfo) -> ArrivalDirection:
        """Whether a capsule came from upstream, downstream or elsewhere."""
        own, trans = self._indices(cap_info)
        if own != -1 and trans != -1 and 0 < own < trans:
            return ArrivalDirection.FROM_UPSTREAM
        if own != -1 and trans != -1 and own > trans:
            return ArrivalDirection.FROM_DOWNSTREAM
        if own == -1 and trans != -1:
            pair = self.routes.find_pair(cap_info.consumer_node_id, cap_info.prefix)
            if pair is not None and any(
                cap_info.trans_hop_node_id in route.node_ids for route in pair.routes
            ):
                return ArrivalDirection.FROM_DOWNSTREAM
        return ArrivalDirection.FROM_OTHERS

    def arrived_in_downstream(self, cap_info: CapsuleInfo) -> bool:
        """True if this node lies strictly between the consumer and the transmitting hop."""
        own, trans = self._indices(cap_info)
        return not (own == -1 or own == 0 or trans == -1 or own >= trans)

    def send_via_queue(
        self, ts: TransportStates, cap_info: CapsuleInfo, data: Data, reason: int
    ) -> None:
        """Queue a capsule, send what the window allows, and ack upstream if held back."""
        if cap_info.data_id in ts.send_queue:
            upstream = self.upstream_node_ids(cap_info.node_ids, cap_info.trans_hop_node_id)
            self.send_ack(
                cap_info.prefix,
                [cap_info.data_id],
                self.node_id,
                upstream,
                cap_info.trans_hop_node_id,
                cap_info.consumer_node_id,
            )
            return

        ts.send_queue.push(CapsuleToSend(_copy_info(cap_info), data, retries=0, reason=reason))
        sent = self.send_queued(ts)
        if cap_info.data_id not in sent:
            upstream = self.upstream_node_ids(cap_info.node_ids, cap_info.trans_hop_node_id)
            if upstream:
                self.send_ack(
                    cap_info.prefix,
                    [cap_info.data_id],
                    self.node_id,
                    upstream,
                    cap_info.trans_hop_node_id,
                    cap_info.consumer_node_id,
                )

    def send_queued(self, ts: TransportStates) -> Set[int]:
        """Send visible queued capsules within the window; return the data ids sent."""
        sent: Set[int] = set()
        index = 0
        while index < ts.window:
            if ts.send_queue.count_visible() <= 0:
                break
            element = ts.send_queue.front()
            ts.send_queue.hide_front()
            previous = element.cap_info.trans_hop_node_id
            element.cap_info.trans_hop_node_id = self.node_id
            result = self.send(
                ts, element.cap_info, previous, element.data, element.retries, element.reason
            )
            if result == SendResult.NORM:
                sent.add(element.cap_info.data_id)
            index += 1
        return sent

    def send(
        self,
        ts: TransportStates,
        cap_info: CapsuleInfo,
        previous_trans_hop: int,
        data: Data,
        retries: int,
        reason: int,
    ) -> SendResult:
        """Start sending one capsule, with retransmission on timeout."""
        ts.send_cap_states[cap_info.data_id] = SendCapState()
        params = _SendParams(retries, previous_trans_hop, reason)
        return self._send_iterative(ts, cap_info, data, params)

    def _send_iterative(
        self, ts: TransportStates, cap_info: CapsuleInfo, data: Data, params: _SendParams
    ) -> SendResult:
        state = ts.send_cap_states.get(cap_info.data_id)
        if state is None:
            ts.send_queue.remove(cap_info.data_id)
            return SendResult.CANCELED

        serving = self.transports.get(_transport_key(cap_info.prefix, cap_info.consumer_node_id))
        if serving is None:
            ts.send_cap_states.pop(cap_info.data_id, None)
            ts.send_queue.remove(cap_info.data_id)
            return SendResult.DUPLICATED

        route = self.routes.match(cap_info.consumer_node_id, cap_info.prefix, cap_info.node_ids)
        if route is None:
            rank = params.retries + 1 if params.reason == SendReason.FOR_RETRYING else 0
            route = self.routes.lookup(
                cap_info.consumer_node_id, cap_info.prefix, cap_info.node_ids, rank
            )

        max_times = self.node_info.capsule_retrying_max_times
        if route is None or state.send_times == max_times:
            serving.send_cap_states.pop(cap_info.data_id, None)
            element = serving.send_queue.restore(cap_info.data_id)
            if element is not None:
                if element.reason == SendReason.FOR_RETRYING:
                    element.retries += 1
                else:
                    element.retries = 0
                element.reason = SendReason.FOR_RETRYING
            next_hop_id = -1 if route is None else self.next_hop(route.node_ids)
            self.congestion.on_ack_timeout(serving, next_hop_id)
            if route is None:
                return SendResult.NO_ROUTE
            return SendResult.EXCEED_MAX_RETRYING_TIME

        next_hop_id = self.next_hop(route.node_ids)
        if data_next_hop_key(cap_info.data_id, next_hop_id) in ts.sent_data_next_hops:
            upstream = self.upstream_node_ids(cap_info.node_ids, params.previous_trans_hop)
            if upstream:
                self.send_ack(
                    cap_info.prefix,
                    [cap_info.data_id],
                    self.node_id,
                    upstream,
                    cap_info.trans_hop_node_id,
                    cap_info.consumer_node_id,
                )
            ts.send_cap_states.pop(cap_info.data_id, None)
            ts.send_queue.remove(cap_info.data_id)
            return SendResult.ALREADY_SENT

        new_ids = list(route.node_ids)
        if new_ids and new_ids[-1] == self.node_id and self.node_id in cap_info.node_ids:
            last = len(cap_info.node_ids) - 1 - cap_info.node_ids[::-1].index(self.node_id)
            new_ids.extend(cap_info.node_ids[last + 1 :])

        cap_info.node_ids = new_ids
        capsule = construct_capsule(cap_info, new_ids, data, cap_info.n_hops + 1)
        self._add_downstream(state.downstream_node_ids, new_ids)

        self.netdev.send_data(capsule)
        state.send_times += 1
        self.log.capsule(False, cap_info, None)

        if state.send_times <= max_times:
            state.send_event = self.scheduler.schedule(
                self.node_info.capsule_per_hop_timeout,
                self._send_iterative,
                ts,
                _copy_info(cap_info),
                data,
                params,
            )
        return SendResult.NORM

    def _add_downstream(self, target: Set[int], node_ids: Iterable[int]) -> None:
        for node_id in node_ids:
            if node_id == self.node_id:
                break
            target.add(node_id)

    def deal_with_ack(self, ts: TransportStates, data_id: int, downstream_node_id: int) -> bool:
        """Settle a capsule acknowledged by a downstream node; False if not awaited."""
        state = ts.send_cap_states.get(data_id)
        if state is None or downstream_node_id not in state.downstream_node_ids:
            return False

        key = data_next_hop_key(data_id, downstream_node_id)
        if key not in ts.sent_data_next_hops:
            self.congestion.on_ack_received(ts)
        ts.sent_data_next_hops.add(key)

        self.scheduler.cancel(state.send_event)
        ts.send_cap_states.pop(data_id, None)
        ts.send_queue.remove(data_id)
        self.send_queued(ts)
        return True

    def send_ack(
        self,
        prefix: str,
        data_ids: Sequence[int],
        downstream_node_id: int,
        upstream_node_ids: Sequence[int],
        trans_hop_node_id: int,
        consumer_node_id: int,
    ) -> Data:
        """Send a capsule acknowledgement on the network face and return it."""
        info = CapsuleAckInfo(
            prefix=prefix,
            data_ids_received=list(data_ids),
            downstream_node_id=downstream_node_id,
            upstream_node_ids=list(upstream_node_ids),
            trans_hop_node_id=trans_hop_node_id,
            consumer_node_id=consumer_node_id,
        )
        data = construct_capsule_ack(info)
        self.netdev.send_data(data)
        self.log.capsule_ack(False, info, None)
        return data