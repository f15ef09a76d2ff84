import io

from sart.log import LogChannel, MessageLog
from sart.messages import (
    CapsuleAckInfo,
    CapsuleInfo,
    EchoInfo,
    InterestBroadcastInfo,
    InterestInfo,
    PhyInfo,
)
from sart.routes import RouteTable


def _log(channel):
    stream = io.StringIO()
    return MessageLog(3, lambda: 2, {channel: stream}), stream


def test_echo_line_without_phy():
    log, stream = _log(LogChannel.ECHO)
    log.echo(True, EchoInfo(7, 4))
    assert stream.getvalue() == "3,2,-1,r,7,4\n"


def test_interest_line_with_phy():
    log, stream = _log(LogChannel.INTEREST)
    log.interest(False, InterestInfo("/a/b", 1, 9), PhyInfo(5, 0))
    assert stream.getvalue() == "3,2,5,s,1,9,/a/b\n"


def test_broadcast_marks_termination():
    log, stream = _log(LogChannel.INTEREST_BROADCAST)
    info = InterestBroadcastInfo(1, "/a/b", 1, 3, 8, [1, 3], [0.5], True)
    log.interest_broadcast(False, info)
    log.interest_broadcast(True, info)
    lines = stream.getvalue().splitlines()
    assert lines[0].split(",")[3] == "t"
    assert lines[1].split(",")[3] == "r"
    assert lines[0].split(",")[-2:] == ["1|3", "0.5"]


def test_capsule_and_ack_fields():
    log = MessageLog(3, lambda: 2, {LogChannel.CAPSULE: io.StringIO(), LogChannel.CAPSULE_ACK: io.StringIO()})
    log.capsule(True, CapsuleInfo("/a/b", 6, 1, 4, [1, 3, 4], 0, 2))
    log.capsule_ack(False, CapsuleAckInfo("/a/b", [6], 3, [4, 5], 4, 1))
    cap = log._streams[LogChannel.CAPSULE].getvalue().strip().split(",")
    ack = log._streams[LogChannel.CAPSULE_ACK].getvalue().strip().split(",")
    assert cap[4:] == ["4", "/a/b", "6", "1|3|4", "2"]
    assert ack[4:] == ["1", "4-5", "3", "/a/b", "6"]


def test_missing_channel_writes_nothing():
    stream = io.StringIO()
    log = MessageLog(3, streams={LogChannel.ECHO: stream})
    log.interest(True, InterestInfo("/a/b", 1, 1))
    assert stream.getvalue() == ""


def test_routes_one_line_per_pair():
    table = RouteTable(3)
    table.add("/a/b", 1, 2, [1, 2, 3], [0.5, 0.25])
    table.add("/a/b", 1, 2, [1, 4, 3], [0.5, 0.5])
    table.add("/c/d", 2, 1, [2, 3], [1.0])
    log, stream = _log(LogChannel.ROUTES)
    log.routes(table)
    lines = stream.getvalue().splitlines()
    assert len(lines) == 2
    assert lines[0].startswith("3,3,2,1,2,")
    assert lines[0].split(",")[-1].count("|") == 1
    assert "1-2-3#0.5-0.25" in lines[0]


def test_routes_of_empty_table():
    log, stream = _log(LogChannel.ROUTES)
    log.routes(RouteTable(3))
    assert stream.getvalue() == "3,"