import math
import sys

import pytest

from sart.routes import (
    QUALITY_BROKEN,
    Route,
    RouteTable,
    mean_quality,
    worst_quality,
)


@pytest.fixture
def table():
    return RouteTable(node_id=5, clock=lambda: 2.5)


def test_add_creates_pair_and_assigns_increasing_ids(table):
    r1 = table.add("/p", 1, 2, [1, 3, 5], [10.0, 20.0])
    r2 = table.add("/p", 1, 2, [1, 4, 5], [10.0, 20.0])
    pair = table.find_pair(1, "/p")
    assert pair.routes == [r1, r2]
    assert r2.id == r1.id + 1
    assert r1.update_time == 2.5
    assert pair.last_hit_time == 2.5
    assert len(list(table)) == 1


def test_add_duplicate_path_is_rejected(table):
    table.add("/p", 1, 2, [1, 3, 5], [10.0, 20.0])
    assert table.add("/p", 1, 2, [1, 3, 5], [1.0, 1.0]) is None
    assert len(table.find_pair(1, "/p").routes) == 1


def test_find_pair_missing(table):
    table.add("/p", 1, 1, [1, 5], [1.0])
    assert table.find_pair(2, "/p") is None
    assert table.find_pair(1, "/q") is None


def test_match_prefix_route(table):
    route = table.add("/p", 1, 2, [1, 3], [10.0])
    assert table.match(1, "/p", [1, 3, 5]) is route
    assert table.match(1, "/p", [1, 4, 5]) is None


def test_match_broken_route_returns_none(table):
    table.add("/p", 1, 2, [1, 3], [QUALITY_BROKEN])
    assert table.match(1, "/p", [1, 3, 5]) is None


def test_refresh_metric_orders_by_quality(table):
    weak = table.add("/p", 1, 2, [1, 3, 5], [2.0, 2.0])
    strong = table.add("/p", 1, 2, [1, 4, 5], [9.0, 9.0])
    table.refresh_metric(1, "/p")
    assert strong.metric > weak.metric > 0


def test_refresh_metric_broken_route_gets_minus_one(table):
    broken = table.add("/p", 1, 2, [1, 3, 5], [QUALITY_BROKEN, 4.0])
    good = table.add("/p", 1, 2, [1, 4, 5], [4.0, 4.0])
    table.refresh_metric(1, "/p")
    assert broken.metric == -1.0
    assert good.metric > 0


def test_lookup_ranks_and_wraps(table):
    weak = table.add("/p", 1, 2, [1, 3, 5], [2.0, 2.0])
    strong = table.add("/p", 1, 2, [1, 4, 5], [9.0, 9.0])
    assert table.lookup(1, "/p", None, 0) is strong
    assert table.lookup(1, "/p", None, 1) is weak
    assert table.lookup(1, "/p", None, 2) is strong


def test_lookup_skips_routes_through_previous_hops(table):
    table.add("/p", 1, 2, [1, 3, 5], [9.0, 9.0])
    other = table.add("/p", 1, 2, [1, 4, 5], [2.0, 2.0])
    assert table.lookup(1, "/p", [1, 5, 3], 0) is other


def test_lookup_without_routes(table):
    assert table.lookup(1, "/p", None, 0) is None
    table.add("/p", 1, 2, [1, 3, 5], [9.0, 9.0])
    assert table.lookup(1, "/p", [5, 3, 1], 0) is None


def test_update_quality_counts_radical_changes(table):
    route = table.add("/p", 1, 2, [1, 3, 5], [7.0, 8.0])
    assert table.update_quality(3, 5, QUALITY_BROKEN) == 1
    assert route.channel_qualities == [7.0, QUALITY_BROKEN]
    assert table.update_quality(3, 5, 6.0) == 1
    assert route.channel_qualities == [7.0, 6.0]
    assert table.update_quality(3, 5, 6.5) == 0
    assert route.channel_qualities == [7.0, 6.5]


def test_update_quality_ignores_other_links(table):
    route = table.add("/p", 1, 2, [1, 3, 5], [7.0, 8.0])
    assert table.update_quality(5, 3, 1.0) == 0
    assert route.channel_qualities == [7.0, 8.0]


def test_neighbors(table):
    table.add("/p", 1, 2, [1, 3, 5], [1.0, 1.0])
    table.add("/p", 1, 2, [1, 4, 5], [1.0, 1.0])
    table.add("/q", 2, 1, [2, 6, 5], [1.0, 1.0])
    table.add("/q", 2, 0, [5], [])
    assert table.neighbors() == {3, 4, 6}
    assert table.neighbors(1, "/p") == {3, 4}


def test_equivalent_quality_broken_when_best_is_related(table):
    table.add("/p", 1, 2, [1, 3, 5], [9.0, 9.0])
    table.add("/p", 1, 2, [1, 4, 5], [2.0, 2.0])
    assert table.equivalent_quality_of_best_route(3) == QUALITY_BROKEN


def test_equivalent_quality_positive_for_alternative(table):
    table.add("/p", 1, 2, [1, 3, 5], [9.0, 9.0])
    table.add("/p", 1, 2, [1, 4, 5], [2.0, 2.0])
    assert table.equivalent_quality_of_best_route(4) > 0


def test_dump_lists_routes(table):
    table.add("/p", 1, 2, [1, 3, 5], [9.0, 9.0])
    text = table.dump(1, "/p")
    assert text.startswith("---------------- DUMP ROUTE (curNodeID: 5, consumerNodeID: 1")
    assert "route: (1 3 5 )" in text
    assert "qualities: (9 9 )" in text


def test_worst_quality():
    assert worst_quality([3.0, -2.0, 7.0]) == -2.0
    assert worst_quality([]) == sys.float_info.max


def test_mean_quality():
    assert mean_quality([2.0, 4.0]) == 3.0
    assert mean_quality([2.0, QUALITY_BROKEN]) == QUALITY_BROKEN
    assert math.isnan(mean_quality([]))


def test_route_defaults():
    route = Route(id=0, n_hops=1, node_ids=[1], channel_qualities=[])
    assert route.metric == 0.0
    assert route.update_time == 0.0