"""CSV-style trace logs of the transport's messages and routes."""

from __future__ import annotations

import enum
from typing import Callable, Iterable, Mapping, Optional, TextIO

from sart.messages import (
    CapsuleAckInfo,
    CapsuleInfo,
    EchoInfo,
    InterestBroadcastInfo,
    InterestInfo,
    PhyInfo,
)
from sart.routes import RoutesPerPair


class LogChannel(enum.Enum):
    INTEREST = "interest"
    INTEREST_BROADCAST = "interest_broadcast"
    CAPSULE = "capsule"
    CAPSULE_ACK = "capsule_ack"
    ECHO = "echo"
    ROUTES = "routes"


def _num(value: float) -> str:
    if isinstance(value, int):
        return str(value)
    return f"{value:g}"


def _join(values: Iterable[float], sep: str) -> str:
    return sep.join(_num(v) for v in values)


class MessageLog:
    """Writes one line per message to the stream of its channel, if any."""

    def __init__(
        self,
        node_id: int,
        clock: Optional[Callable[[], float]] = None,
        streams: Optional[Mapping[LogChannel, TextIO]] = None,
    ) -> None:
        self.node_id = node_id
        self._clock = clock or (lambda: 0.0)
        self._streams = dict(streams or {})

    def _head(self, received: bool, phy: Optional[PhyInfo]) -> str:
        snr = _num(phy.snr) if phy is not None else "-1"
        return f"{self.node_id},{_num(self._clock())},{snr},{'r' if received else 's'},"

    def _write(self, channel: LogChannel, text: str) -> None:
        stream = self._streams.get(channel)
        if stream is not None:
            stream.write(text)

    def interest(self, received: bool, info: InterestInfo, phy: Optional[PhyInfo] = None) -> None:
        self._write(
            LogChannel.INTEREST,
            f"{self._head(received, phy)}{info.consumer_node_id},"
            f"{info.next_hop_node_id},{info.prefix}\n",
        )

    def interest_broadcast(
        self, received: bool, info: InterestBroadcastInfo, phy: Optional[PhyInfo] = None
    ) -> None:
        head = self._head(received, phy)
        if not received and info.end:
            head = head[:-2] + "t,"
        self._write(
            LogChannel.INTEREST_BROADCAST,
            f"{head}{info.consumer_node_id},{info.trans_hop_node_id},{info.producer_prefix},"
            f"{info.hop_count},{info.nonce},{_join(info.visited_node_ids, '|')},"
            f"{_join(info.channel_qualities, '|')}\n",
        )

    def capsule(self, received: bool, info: CapsuleInfo, phy: Optional[PhyInfo] = None) -> None:
        self._write(
            LogChannel.CAPSULE,
            f"{self._head(received, phy)}{info.trans_hop_node_id},{info.prefix},{info.data_id},"
            f"{_join(info.node_ids, '|')},{info.n_hops}\n",
        )

    def capsule_ack(
        self, received: bool, info: CapsuleAckInfo, phy: Optional[PhyInfo] = None
    ) -> None:
        self._write(
            LogChannel.CAPSULE_ACK,
            f"{self._head(received, phy)}{info.consumer_node_id},"
            f"{_join(info.upstream_node_ids, '-')},{info.downstream_node_id},{info.prefix},"
            f"{_join(info.data_ids_received, '|')}\n",
        )

    def echo(self, received: bool, info: EchoInfo, phy: Optional[PhyInfo] = None) -> None:
        self._write(
            LogChannel.ECHO,
            f"{self._head(received, phy)}{info.source_node_id},{info.seq_num}\n",
        )

    def routes(self, table: Iterable[RoutesPerPair]) -> None:
        """Write every route pair of ``table``, one line per pair."""
        parts = [f"{self.node_id},"]
        now = _num(self._clock())
        for pair in table:
            routes = "|".join(
                f"{r.id}#{r.n_hops}#{_num(r.update_time)}#{_num(r.metric)}#"
                f"{_join(r.node_ids, '-')}#{_join(r.channel_qualities, '-')}"
                for r in pair.routes
            )
            parts.append(
                f"{self.node_id},{now},{pair.consumer_node_id},{len(pair.routes)},{routes}\n"
            )
        self._write(LogChannel.ROUTES, "".join(parts))