from sart.capsule_queue import CapsuleQueue
from sart.capsule_transport import CapsuleTransport
from sart.channel import ChannelMonitor
from sart.congestion import CongestionControl, TransportStates
from sart.messages import Face
from sart.nodeinfo import NodeInfo
from sart.routes import QUALITY_BROKEN, RouteTable
from sart.scheduler import Scheduler

PREFIX = "/prod/data"


def _build(alpha=0.5):
    info = NodeInfo(
        node_id=7,
        msg_timeout=1.0,
        th_queue_size=4,
        quality_alpha=alpha,
        longest_piat_est_confident_ratio=0.9,
        congestion_control_init_win=2,
        congestion_control_slow_start_thres=4,
    )
    scheduler = Scheduler()
    routes = RouteTable(7, scheduler.now)
    congestion = CongestionControl(info, clock=scheduler.now)
    transports = {}
    transport = CapsuleTransport(info, routes, scheduler, congestion, transports, Face("netdev"))
    monitor = ChannelMonitor(info, scheduler, routes, congestion, transport, transports)
    return info, scheduler, routes, transports, monitor


def test_first_update_takes_quality_as_is():
    _, _, _, _, monitor = _build()
    assert monitor.update(5, 10.0) == 10.0
    assert monitor.states[5].quality_smooth == 10.0
    assert len(monitor.states[5].th_queue) == 1


def test_second_update_is_smoothed():
    _, _, _, _, monitor = _build(alpha=0.5)
    monitor.update(5, 10.0)
    assert monitor.update(5, 20.0) == 15.0


def test_update_writes_link_quality_into_routes():
    _, _, routes, _, monitor = _build()
    route = routes.add(PREFIX, 1, 2, [1, 5, 7], [1.0, 2.0])
    monitor.update(5, 9.0)
    assert route.channel_qualities == [1.0, 9.0]


def test_silent_link_is_marked_broken_after_timeout():
    _, scheduler, routes, _, monitor = _build()
    route = routes.add(PREFIX, 1, 2, [1, 5, 7], [1.0, 2.0])
    monitor.update(5, 9.0)
    scheduler.run(until=0.9)
    assert route.channel_qualities[1] == 9.0
    scheduler.run(until=1.1)
    assert route.channel_qualities[1] == QUALITY_BROKEN


def test_new_message_postpones_timeout():
    _, scheduler, routes, _, monitor = _build()
    route = routes.add(PREFIX, 1, 2, [1, 5, 7], [1.0, 2.0])
    monitor.update(5, 9.0)
    scheduler.run(until=0.5)
    monitor.update(5, 9.0)
    scheduler.run(until=1.2)
    assert route.channel_qualities[1] == 9.0
    scheduler.run(until=2.0)
    assert route.channel_qualities[1] == QUALITY_BROKEN


def test_mark_broken_reports_changed_routes():
    _, _, routes, _, monitor = _build()
    route = routes.add(PREFIX, 1, 2, [1, 5, 7], [1.0, 2.0])
    assert monitor.mark_broken(5, "test") == 1
    assert route.channel_qualities[1] == QUALITY_BROKEN
    assert monitor.mark_broken(5, "test") == 0


def test_known_neighbour_wakes_stalled_transport():
    info, _, routes, transports, monitor = _build()
    routes.add(PREFIX, 1, 2, [1, 5, 7], [1.0, 2.0])
    ts = TransportStates(prefix=PREFIX, send_queue=CapsuleQueue(7), consumer_id=1, window=0)
    transports[f"{PREFIX}|1"] = ts
    monitor.update(5, 3.0)
    assert ts.window == 0
    monitor.update(5, 3.0)
    assert ts.window == info.congestion_control_init_win
    assert ts.slow_start_thres == info.congestion_control_slow_start_thres