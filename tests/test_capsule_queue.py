import io
from types import SimpleNamespace

from sart.capsule_queue import CapsuleQueue, CapsuleToSend


def _capsule(data_id):
    return CapsuleToSend(cap_info=SimpleNamespace(data_id=data_id), data=b"payload")


def test_push_makes_element_visible_and_known():
    q = CapsuleQueue(1)
    element = _capsule(10)
    element.hidden = True
    q.push(element)
    assert 10 in q
    assert q.front() is element
    assert q.count_visible() == len(q)


def test_hide_front_advances_front():
    q = CapsuleQueue(1)
    a, b = _capsule(1), _capsule(2)
    q.push(a)
    q.push(b)
    q.hide_front()
    assert a.hidden
    assert q.front() is b
    assert q.count_visible() == len(q) - 1


def test_hide_front_on_empty_queue_keeps_it_empty():
    q = CapsuleQueue(1)
    q.hide_front()
    assert q.front() is None
    assert q.count_visible() == 0


def test_restore_unhides_and_returns_element():
    q = CapsuleQueue(1)
    a = _capsule(4)
    q.push(a)
    q.hide_front()
    assert q.restore(4) is a
    assert not a.hidden
    assert q.front() is a


def test_restore_unknown_returns_none():
    q = CapsuleQueue(1)
    q.push(_capsule(4))
    assert q.restore(99) is None


def test_remove_drops_all_matching_entries():
    q = CapsuleQueue(1)
    q.push(_capsule(3))
    q.push(_capsule(3))
    q.push(_capsule(5))
    q.hide_front()
    q.remove(3)
    assert 3 not in q
    assert len(q) == 1
    assert q.count_visible() == 1
    assert q.front().data_id == 5


def test_log_records_sizes():
    stream = io.StringIO()
    q = CapsuleQueue(7, log=stream, clock=lambda: 1.5)
    q.push(_capsule(1))
    q.hide_front()
    lines = stream.getvalue().splitlines()
    assert lines == ["7,1.5,1,0", "7,1.5,1,1"]