"""Multipath route table kept per (producer prefix, consumer) pair."""

from __future__ import annotations

import logging
import math
import sys
from dataclasses import dataclass, field
from typing import Callable, Iterable, Iterator, List, Optional, Sequence, Set

_log = logging.getLogger(__name__)

QUALITY_BROKEN = -1000000000.0
"""Channel quality that marks a link as unusable."""


@dataclass
class Route:
    """One path from the producer side (last node) towards the consumer (first node)."""

    id: int
    n_hops: int
    node_ids: List[int]
    channel_qualities: List[float]
    update_time: float = 0.0
    metric: float = 0.0


@dataclass
class RoutesPerPair:
    """All known routes between one consumer and one producer prefix."""

    consumer_node_id: int
    producer_prefix: str
    routes: List[Route] = field(default_factory=list)
    last_hit_time: float = 0.0


def _divide(numerator: float, denominator: float) -> float:
    if denominator != 0:
        return numerator / denominator
    if numerator == 0 or math.isnan(numerator):
        return math.nan
    negative = (numerator < 0) != (math.copysign(1.0, denominator) < 0)
    return -math.inf if negative else math.inf


def worst_quality(qualities: Iterable[float]) -> float:
    """Lowest quality in ``qualities``; the largest float if there is none."""
    return min(qualities, default=sys.float_info.max)


def mean_quality(qualities: Iterable[float]) -> float:
    """Mean of ``qualities``, or QUALITY_BROKEN if any link is broken."""
    values = list(qualities)
    if any(q <= QUALITY_BROKEN for q in values):
        return QUALITY_BROKEN
    if not values:
        return math.nan
    return sum(values) / len(values)


class RouteTable:
    """Routes learned from interest broadcasts, as seen from one node."""

    def __init__(self, node_id: int, clock: Optional[Callable[[], float]] = None) -> None:
        self.node_id = node_id
        self._clock = clock or (lambda: 0.0)
        self._pairs: List[RoutesPerPair] = []
        self._next_route_id = 0

    def __iter__(self) -> Iterator[RoutesPerPair]:
        return iter(self._pairs)

    def find_pair(self, consumer_node_id: int, producer_prefix: str) -> Optional[RoutesPerPair]:
        """Return the route set of a consumer and prefix, or None."""
        return next(
            (
                pair
                for pair in self._pairs
                if pair.consumer_node_id == consumer_node_id
                and pair.producer_prefix == producer_prefix
            ),
            None,
        )

    def add(
        self,
        producer_prefix: str,
        consumer_node_id: int,
        n_hops: int,
        node_ids: Sequence[int],
        channel_qualities: Sequence[float],
    ) -> Optional[Route]:
        """Add a route; return it, or None if the same path is already known."""
        now = self._clock()
        pair = self.find_pair(consumer_node_id, producer_prefix)
        if pair is None:
            pair = RoutesPerPair(consumer_node_id, producer_prefix, last_hit_time=now)
            self._pairs.append(pair)
        elif any(route.node_ids == list(node_ids) for route in pair.routes):
            _log.info("duplicated route")
            return None

        route = Route(
            id=self._next_route_id,
            n_hops=n_hops,
            node_ids=list(node_ids),
            channel_qualities=list(channel_qualities),
            update_time=now,
        )
        self._next_route_id += 1
        pair.routes.append(route)
        return route

    def match(
        self, consumer_node_id: int, producer_prefix: str, node_ids: Sequence[int]
    ) -> Optional[Route]:
        """Find a route that is a prefix of ``node_ids``; None if none or it is broken."""
        node_ids = list(node_ids)
        for pair in self._pairs:
            if pair.consumer_node_id != consumer_node_id or pair.producer_prefix != producer_prefix:
                continue
            for route in pair.routes:
                if node_ids[: len(route.node_ids)] == route.node_ids:
                    if QUALITY_BROKEN in route.channel_qualities:
                        return None
                    return route
        return None

    def _previous_nodes(self, previous_node_ids: Optional[Sequence[int]]) -> Set[int]:
        nodes: Set[int] = set()
        for node_id in reversed(list(previous_node_ids or ())):
            if node_id == self.node_id:
                break
            nodes.add(node_id)
        return nodes

    def lookup(
        self,
        consumer_node_id: int,
        producer_prefix: str,
        previous_node_ids: Optional[Sequence[int]],
        rank: int,
    ) -> Optional[Route]:
        """Return the route of the given rank by metric, skipping loops through prior hops."""
        self.refresh_metric(consumer_node_id, producer_prefix)
        _log.debug("%s", self.dump(consumer_node_id, producer_prefix))

        excluded = self._previous_nodes(previous_node_ids)
        pair = self.find_pair(consumer_node_id, producer_prefix)
        if pair is None:
            return None
        candidates = [
            route for route in pair.routes if not excluded.intersection(route.node_ids)
        ]
        ranked = sorted(candidates, key=lambda route: -route.metric)
        if not ranked:
            return None
        return ranked[rank % len(ranked)]

    def refresh_metric(self, consumer_node_id: int, producer_prefix: str) -> None:
        """Recompute route metrics as the geometric root of the quality product."""
        pair = self.find_pair(consumer_node_id, producer_prefix)
        if pair is None:
            return

        highest = -10000000000000.0
        for route in pair.routes:
            for quality in route.channel_qualities:
                if quality <= QUALITY_BROKEN:
                    route.metric = -1.0
                    continue
                highest = max(highest, quality)
        if highest <= QUALITY_BROKEN:
            return

        for route in pair.routes:
            product = 1.0
            hops = 0
            for quality in route.channel_qualities:
                if quality <= QUALITY_BROKEN:
                    product = -1.0
                    break
                product *= quality
                hops += 1
            if product >= 0:
                route.metric = product ** (1.0 / (2 * hops)) if hops else 1.0
            else:
                route.metric = -1.0

    def update_quality(self, from_node_id: int, to_node_id: int, quality: float) -> int:
        """Set the quality of every link from->to; return how many routes changed state."""
        radical_changes = 0
        for pair in self._pairs:
            for route in pair.routes:
                if len(route.node_ids) <= 1:
                    continue
                radical = False
                qualities = route.channel_qualities
                links = zip(route.node_ids, route.node_ids[1:])
                for index, (prev_id, cur_id) in enumerate(links):
                    if index >= len(qualities):
                        break
                    if prev_id == from_node_id and cur_id == to_node_id:
                        old = qualities[index]
                        if (old == QUALITY_BROKEN and quality > QUALITY_BROKEN) or (
                            old > QUALITY_BROKEN and quality == QUALITY_BROKEN
                        ):
                            radical = True
                        qualities[index] = quality
                if radical:
                    radical_changes += 1
        return radical_changes

    def equivalent_quality_of_best_route(self, upstream_node_id: int) -> float:
        """Mean ratio of best-route quality to the route through ``upstream_node_id``."""
        equivalents: List[float] = []
        for pair in self._pairs:
            self.refresh_metric(pair.consumer_node_id, pair.producer_prefix)
            best: Optional[Route] = None
            related: Optional[Route] = None
            highest = -1.0
            for route in pair.routes:
                if len(route.node_ids) >= 2 and route.node_ids[-2] == upstream_node_id:
                    related = route
                if route.metric > highest:
                    highest = route.metric
                    best = route
            if best is None or best is related or best.metric == -1.0:
                equivalents.append(QUALITY_BROKEN)
                continue

            if related is None:
                common = len(best.node_ids)
            else:
                common = -1
                for a, b in zip(best.node_ids, related.node_ids):
                    if a != b:
                        break
                    common += 1
            start = max(common, 0)

            best_product = math.prod(best.channel_qualities[start:])
            related_product = 1.0
            if related is not None:
                end = len(related.channel_qualities) - 1
                related_product = math.prod(related.channel_qualities[start:end]) if end > start else 1.0
            equivalents.append(_divide(best_product, related_product))

        if any(q == QUALITY_BROKEN for q in equivalents):
            return QUALITY_BROKEN
        if not equivalents:
            return math.nan
        return sum(equivalents) / len(equivalents)

    def neighbors(
        self, consumer_id: Optional[int] = None, prefix: Optional[str] = None
    ) -> Set[int]:
        """Nodes adjacent to this one on known routes.

        With a consumer and prefix given, a pair is skipped only when it matches
        neither of them.
        """
        result: Set[int] = set()
        for pair in self._pairs:
            if (
                consumer_id is not None
                and prefix is not None
                and pair.consumer_node_id != consumer_id
                and pair.producer_prefix != prefix
            ):
                continue
            for route in pair.routes:
                if len(route.node_ids) > 1:
                    result.add(route.node_ids[-2])
        return result

    def dump(self, consumer_node_id: int, producer_prefix: str) -> str:
        """Human-readable listing of the routes of one pair."""
        lines = [
            f"---------------- DUMP ROUTE (curNodeID: {self.node_id}, "
            f"consumerNodeID: {consumer_node_id}, producerPrefix: {producer_prefix}) "
            "-----------------"
        ]
        pair = self.find_pair(consumer_node_id, producer_prefix)
        if pair is not None:
            for route in pair.routes:
                nodes = "".join(f"{n} " for n in route.node_ids)
                qualities = "".join(f"{q:g} " for q in route.channel_qualities)
                lines.append(
                    f"{route.id}, {route.metric:g}, {route.n_hops}, {route.update_time:g}, "
                    f"route: ({nodes}), qualities: ({qualities})"
                )
        lines.append("----------------------------------------------------------------")
        return "\n".join(lines) + "\n"