# sart

`sart` is a forwarding strategy for named-data wireless multihop networks.
It gives reliable, subpath-aware transport. A consumer floods an Interest
broadcast toward a producer prefix, and every hop records the routes it
learns. Data then travels hop by hop as *capsules*. Each hop acknowledges
a capsule, retries it on timeout, and moves to another route when a link
is marked broken.

The package uses only the Python standard library. It runs on its own
small discrete-event scheduler, so time is simulated time in seconds.

## Components

- `sart.nodeinfo`
  - `NodeInfo` is a dataclass of per-node parameters: prefixes, name
    space, timeouts, retry limits, congestion-window settings and
    smoothing factors.
  - `NodeInfoManager` keeps node info by forwarder and by node id, with
    `bind`, `by_forwarder` and `by_node_id`.
- `sart.scheduler`
  - `Scheduler` provides `now`, `schedule(delay, callback, *args)`,
    `cancel` and `run(until)`. Events due at the same time run in the
    order they were scheduled.
  - `Event.cancel` stops a single event.
- `sart.routes`
  - `RouteTable` stores routes for each consumer/producer pair:
    `add`, `match`, `lookup` (ranked by metric, with loops skipped),
    `refresh_metric`, `update_quality`, `neighbors`,
    `equivalent_quality_of_best_route` and `dump`.
  - It also has the helpers `worst_quality` and `mean_quality`, and the
    constant `QUALITY_BROKEN`.
- `sart.throughput`: `ThroughputQueue` keeps a bounded history of
  packet counts per second. It estimates the longest packet
  inter-arrival time with `estimate_longest_piat`.
- `sart.capsule_queue`: `CapsuleQueue` is the send queue.
  - `hide_front` marks a capsule as in flight.
  - `restore` makes it visible again.
  - `remove` drops it.
- `sart.congestion`: `TransportStates` holds per-flow state.
  `CongestionControl` applies the window rules: slow start, halving on
  ack timeout, a zero window when there is no route, and a reset when a
  channel wakes.
- `sart.messages`
  - Packet types: `Interest`, `Data` and `Face`. A `Face` records what
    is sent and can pass it on to a callback.
  - The `construct_*` and `extract_*` functions build and parse
    Interests, capsules, capsule ACKs, Interest broadcasts and echoes.
- `sart.log`: `MessageLog` writes CSV-style lines for sent and received
  messages and for the route table. Each `LogChannel` writes to the text
  stream you supply for it.
- `sart.capsule_transport`: `CapsuleTransport` handles capsules:
  - sends them within the congestion window;
  - retries them after `capsule_per_hop_timeout`;
  - handles acks (`deal_with_ack`) and sends acks (`send_ack`).
- `sart.channel`: `ChannelMonitor` smooths link quality per neighbour.
  It marks a link broken when nothing is heard within the estimated
  timeout.
- `sart.strategy`: `RntpStrategy` connects all of the above for one
  node. It dispatches incoming Interests and Data, propagates Interest
  broadcasts and sends periodic echoes.

## Example

```python
import io

from sart.log import LogChannel, MessageLog
from sart.messages import Face
from sart.nodeinfo import NodeInfo
from sart.scheduler import Scheduler
from sart.strategy import RntpStrategy

scheduler = Scheduler()
info = NodeInfo(node_id=1, prefixes=["/ndn/producer"], ndn_namespace="/ndn", echo_period=1.0)
echo_log = io.StringIO()
log = MessageLog(1, scheduler.now, {LogChannel.ECHO: echo_log})
netdev, app = Face(), Face()
strategy = RntpStrategy(info, scheduler, netdev, app, log=log)

scheduler.run(until=5.0)          # periodic echoes go out on netdev
print([d.name for d in netdev.sent_data])
print(echo_log.getvalue())
strategy.close()                  # stops echoes and logs the route table
```

`RntpStrategy` raises `ValueError` unless `echo_period` is positive.

## What it does not do

- It is not a forwarder. There is no pending-interest table, content
  store or FIB. The caller passes packets to `after_receive_interest`,
  `after_receive_data` and `after_receive_non_pit_data`, and says
  whether out-records are pending.
- It does no real network I/O. A `Face` only records packets and hands
  them to a callback.
- It has no command-line program.

## Tests

```
pip install .[test]
pytest
```