"""Packets, faces and the encoding of the transport's control messages."""

from __future__ import annotations

import math
import struct
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple, Union

UNSPECIFIED_NODE_ID = 0xFFFFFFFF
"""Node identifier meaning "none", as carried in 32-bit fields."""

_COUNT = struct.Struct("<Q")
_NODE_ID = struct.Struct("<I")
_QUALITY = struct.Struct("<d")


@dataclass
class _Packet:
    name: str
    route_tag: Optional[int] = None
    snr_tag: Optional[Tuple[float, float]] = None
    transient: Optional[int] = None

    @property
    def components(self) -> List[str]:
        """Name components, the leading slash removed."""
        stripped = self.name[1:] if self.name.startswith("/") else self.name
        return stripped.split("/") if stripped else []


@dataclass
class Interest(_Packet):
    """A request for named data."""


@dataclass
class Data(_Packet):
    """A named data packet with an opaque payload."""

    content: bytes = b""
    freshness_period: float = 0.0


class Face:
    """An outgoing link that records what is sent and hands it to listeners."""

    def __init__(
        self,
        scheme: str = "",
        on_data: Optional[Callable[[Data], None]] = None,
        on_interest: Optional[Callable[[Interest], None]] = None,
    ) -> None:
        self.scheme = scheme
        self.sent_data: List[Data] = []
        self.sent_interests: List[Interest] = []
        self._on_data = on_data
        self._on_interest = on_interest

    def send_data(self, data: Data) -> None:
        self.sent_data.append(data)
        if self._on_data is not None:
            self._on_data(data)

    def send_interest(self, interest: Interest) -> None:
        self.sent_interests.append(interest)
        if self._on_interest is not None:
            self._on_interest(interest)


@dataclass
class PhyInfo:
    snr: float
    rssi: float


@dataclass
class RouteTag:
    """Consumer and next hop, carried together as one 64-bit tag value."""

    consumer_node_id: int
    next_hop_node_id: int

    @property
    def value(self) -> int:
        return ((self.consumer_node_id & 0xFFFFFFFF) << 32) | (
            self.next_hop_node_id & 0xFFFFFFFF
        )

    @classmethod
    def from_value(cls, value: int) -> "RouteTag":
        return cls((value >> 32) & 0xFFFFFFFF, value & 0xFFFFFFFF)


@dataclass
class InterestInfo:
    prefix: str
    consumer_node_id: int
    next_hop_node_id: int


@dataclass
class CapsuleInfo:
    prefix: str
    data_id: int
    consumer_node_id: int = 0
    trans_hop_node_id: int = UNSPECIFIED_NODE_ID
    node_ids: List[int] = field(default_factory=list)
    nonce: int = 0
    n_hops: int = 0


@dataclass
class CapsuleAckInfo:
    prefix: str
    data_ids_received: List[int]
    downstream_node_id: int
    upstream_node_ids: List[int]
    trans_hop_node_id: int
    consumer_node_id: int


@dataclass
class InterestBroadcastInfo:
    hop_count: int
    producer_prefix: str
    consumer_node_id: int
    trans_hop_node_id: int
    nonce: int = 0
    visited_node_ids: List[int] = field(default_factory=list)
    channel_qualities: List[float] = field(default_factory=list)
    end: bool = False


@dataclass
class EchoInfo:
    source_node_id: int
    seq_num: int


Packet = Union[Interest, Data]


def ratio_to_db(ratio: float) -> float:
    """Convert a power ratio to decibels."""
    if ratio > 0:
        return 10.0 * math.log10(ratio)
    if ratio == 0:
        return -math.inf
    return math.nan


def estimate_ber(snr: float) -> float:
    """Bit error rate estimate for a signal-to-noise ratio."""
    eb_n0 = snr * 22000000.0 / 1000000.0
    return 0.5 * math.exp(-eb_n0)


def read_route_tag(packet: Packet, default: RouteTag) -> RouteTag:
    """Return the packet's route tag, or ``default`` when it carries none."""
    if packet.route_tag is None:
        return default
    return RouteTag.from_value(packet.route_tag)


def write_route_tag(packet: Packet, tag: RouteTag) -> None:
    packet.route_tag = tag.value


def extract_phy_info(packet: Packet) -> PhyInfo:
    """Signal measurements of a received packet; -1 for both when unknown.

    The SNR of an interest is reported in decibels, that of data as a ratio.
    """
    if packet.snr_tag is None:
        return PhyInfo(-1, -1)
    snr, rssi = packet.snr_tag
    if isinstance(packet, Interest):
        snr = ratio_to_db(snr)
    return PhyInfo(snr, rssi)


def _component(packet: Packet, index: int) -> str:
    components = packet.components
    if index >= len(components):
        raise ValueError(f"name {packet.name!r} has no component {index}")
    return components[index]


def _int_component(packet: Packet, index: int) -> int:
    text = _component(packet, index)
    try:
        return int(text)
    except ValueError:
        raise ValueError(f"component {index} of {packet.name!r} is not a number") from None


def _node_list(text: str) -> List[int]:
    try:
        return [int(part) for part in text.split("-") if part]
    except ValueError:
        raise ValueError(f"malformed node list {text!r}") from None


def _two_component_prefix(packet: Packet) -> str:
    return f"/{_component(packet, 0)}/{_component(packet, 1)}"


def _pack_node_ids(node_ids: Sequence[int]) -> bytes:
    try:
        return _COUNT.pack(len(node_ids)) + b"".join(_NODE_ID.pack(n) for n in node_ids)
    except struct.error as exc:
        raise ValueError(f"node identifier out of range: {exc}") from None


def _unpack_node_ids(buf: bytes, offset: int) -> Tuple[List[int], int]:
    try:
        (count,) = _COUNT.unpack_from(buf, offset)
        offset += _COUNT.size
        ids = [_NODE_ID.unpack_from(buf, offset + i * _NODE_ID.size)[0] for i in range(count)]
    except struct.error:
        raise ValueError("truncated payload") from None
    return ids, offset + count * _NODE_ID.size


def construct_interest(prefix: str, consumer_node_id: int, next_hop_node_id: int) -> Interest:
    interest = Interest(prefix)
    write_route_tag(interest, RouteTag(consumer_node_id, next_hop_node_id))
    return interest


def construct_capsule(
    info: CapsuleInfo, node_ids: Sequence[int], original: Data, n_hops: int
) -> Data:
    """Wrap ``original``'s payload in a capsule routed along ``node_ids``."""
    name = f"{info.prefix}/Capsule/{info.data_id}"
    if node_ids:
        path = "-".join(str(n) for n in node_ids)
        name += f"/{info.nonce}/{info.trans_hop_node_id}/{path}/{n_hops}"
    data = Data(name, content=original.content, freshness_period=original.freshness_period)
    write_route_tag(data, RouteTag(info.consumer_node_id, 0))
    return data


def construct_capsule_ack(info: CapsuleAckInfo) -> Data:
    upstream = "-".join(str(n) for n in info.upstream_node_ids)
    name = (
        f"{info.prefix}/CapsuleAck/{info.downstream_node_id}/{upstream}"
        f"/{info.trans_hop_node_id}/{info.consumer_node_id}"
    )
    return Data(name, content=_pack_node_ids(info.data_ids_received), freshness_period=1.0)


def construct_interest_broadcast(info: InterestBroadcastInfo) -> Data:
    name = (
        f"{info.producer_prefix}/InterestBroadcast/{info.hop_count}/{info.consumer_node_id}"
        f"/{info.trans_hop_node_id}/{info.nonce}/{'true' if info.end else 'false'}"
    )
    content = _pack_node_ids(info.visited_node_ids)
    content += _COUNT.pack(len(info.channel_qualities))
    content += b"".join(_QUALITY.pack(q) for q in info.channel_qualities)
    return Data(name, content=content, freshness_period=1.0)


def construct_echo(namespace: str, info: EchoInfo) -> Data:
    name = f"{namespace}/ALL/Echo/{info.source_node_id}/{info.seq_num}"
    return Data(name, freshness_period=10.0)


def extract_echo(data: Data) -> EchoInfo:
    return EchoInfo(_int_component(data, 3), _int_component(data, 4))


def extract_interest(interest: Interest) -> InterestInfo:
    tag = read_route_tag(interest, RouteTag(UNSPECIFIED_NODE_ID, UNSPECIFIED_NODE_ID))
    return InterestInfo(interest.name, tag.consumer_node_id, tag.next_hop_node_id)


def extract_capsule(data: Data, own_node_id: int) -> CapsuleInfo:
    """Decode a capsule; untagged capsules are taken as addressed to ``own_node_id``."""
    info = CapsuleInfo(_two_component_prefix(data), _int_component(data, 3))
    if len(data.components) >= 7:
        info.nonce = _int_component(data, 4)
        info.trans_hop_node_id = _int_component(data, 5)
        info.node_ids = _node_list(_component(data, 6))
        info.n_hops = _int_component(data, 7)
    tag = read_route_tag(data, RouteTag(own_node_id, own_node_id))
    info.consumer_node_id = tag.consumer_node_id
    return info


def extract_interest_broadcast(data: Data) -> InterestBroadcastInfo:
    info = InterestBroadcastInfo(
        hop_count=_int_component(data, 3),
        producer_prefix=_two_component_prefix(data),
        consumer_node_id=_int_component(data, 4),
        trans_hop_node_id=_int_component(data, 5),
        nonce=_int_component(data, 6),
        end=_component(data, 7) == "true",
    )
    visited, offset = _unpack_node_ids(data.content, 0)
    try:
        (count,) = _COUNT.unpack_from(data.content, offset)
        offset += _COUNT.size
        qualities = [
            _QUALITY.unpack_from(data.content, offset + i * _QUALITY.size)[0]
            for i in range(count)
        ]
    except struct.error:
        raise ValueError("truncated payload") from None
    info.visited_node_ids = visited
    info.channel_qualities = qualities
    return info


def extract_capsule_ack(data: Data) -> CapsuleAckInfo:
    data_ids, _ = _unpack_node_ids(data.content, 0)
    return CapsuleAckInfo(
        prefix=_two_component_prefix(data),
        data_ids_received=data_ids,
        downstream_node_id=_int_component(data, 3),
        upstream_node_ids=_node_list(_component(data, 4)),
        trans_hop_node_id=_int_component(data, 5),
        consumer_node_id=_int_component(data, 6),
    )