import pytest

from sart.throughput import ThroughputQueue


def test_zero_capacity_rejected():
    with pytest.raises(ValueError):
        ThroughputQueue(0)


def test_same_second_shares_one_slot():
    q = ThroughputQueue(4)
    q.record_packet_arrival(2.1)
    q.record_packet_arrival(2.9)
    assert len(q) == 1


def test_new_seconds_add_slots_up_to_capacity():
    q = ThroughputQueue(3)
    for t in (0.5, 1.5, 2.5, 3.5, 4.5):
        q.record_packet_arrival(t)
    assert len(q) == 3


def test_out_of_order_arrival_is_ignored():
    q = ThroughputQueue(4)
    q.record_packet_arrival(5.0)
    q.record_packet_arrival(3.0)
    assert len(q) == 1
    assert q.mean_arrival_rate() == -1.0


def test_mean_rate_unknown_with_fewer_than_two_slots():
    q = ThroughputQueue(4)
    assert q.mean_arrival_rate() == -1.0
    q.record_packet_arrival(0.0)
    assert q.mean_arrival_rate() == -1.0


def test_mean_rate_excludes_newest_slot():
    q = ThroughputQueue(8)
    for t in (0.1, 0.2, 1.5, 2.0):
        q.record_packet_arrival(t)
    assert q.mean_arrival_rate() == pytest.approx(1.5)


def test_estimate_without_history_is_max():
    q = ThroughputQueue(4)
    assert q.estimate_longest_piat(0.9, 7.0) == 7.0


def test_estimate_is_capped_and_grows_with_confidence():
    q = ThroughputQueue(8)
    for t in (0.1, 0.2, 0.3, 1.1, 1.2, 2.0):
        q.record_packet_arrival(t)
    low = q.estimate_longest_piat(0.5, 100.0)
    high = q.estimate_longest_piat(0.99, 100.0)
    assert 0 < low < high <= 100.0
    assert q.estimate_longest_piat(0.99, 0.01) == 0.01


def test_full_confidence_returns_max():
    q = ThroughputQueue(4)
    q.record_packet_arrival(0.0)
    q.record_packet_arrival(1.0)
    assert q.estimate_longest_piat(1.0, 3.0) == 3.0