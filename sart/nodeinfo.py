"""Per-node configuration and the registry that binds it to forwarders."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Hashable, List, Optional


@dataclass
class NodeInfo:
    """Configuration of one node; all durations are in seconds."""

    node_id: int
    prefixes: List[str] = field(default_factory=list)
    consumer_req_prefixes: List[str] = field(default_factory=list)
    ndn_namespace: str = ""
    capsule_per_hop_timeout: float = 0.0
    interest_contention_time: float = 0.0
    interest_send_times: int = 0
    capsule_retrying_max_times: int = 0
    congestion_control_slow_start_thres: int = 0
    congestion_control_init_win: int = 0
    test_times_to_identify_link_awaken: int = 0
    period_to_identify_link_awaken: float = 0.0
    echo_period: float = 0.0
    channel_quality_update_period: float = 0.0
    cq_update_delay_time: float = 0.0
    msg_timeout: float = 0.0
    quality_alpha: float = 0.0
    cache_max_size: int = 0
    max_times_for_revoking_to_send_capsule: int = 0
    th_queue_size: int = 0
    longest_piat_est_confident_ratio: float = 0.0
    eto: float = 0.0
    frp_src_node_id: int = 0
    frp_dst_node_id: int = 0
    frp_rssi_min: float = 0.0
    frp_preq_contention_time: float = 0.0
    frp_breq_contention_time: float = 0.0
    frp_brep_contention_time: float = 0.0
    frp_prep_delay_time: float = 0.0
    frp_prep_sending_delay: float = 0.0
    frp_breq_sending_delay: float = 0.0
    frp_data_sending_delay: float = 0.0
    frp_data_sending_stop_time: float = 0.0
    frp_data_sending_piat: float = 0.0
    frp_piat_max_time: float = 0.0


class NodeInfoManager:
    """Maps forwarders and node identifiers to their node configuration."""

    def __init__(self) -> None:
        self._by_forwarder: Dict[Hashable, NodeInfo] = {}
        self._by_node_id: Dict[int, NodeInfo] = {}

    def bind(self, forwarder: Any, node_id: int, info: NodeInfo) -> None:
        """Associate ``info`` with both ``forwarder`` and ``node_id``."""
        self._by_forwarder[forwarder] = info
        self._by_node_id[node_id] = info

    def by_forwarder(self, forwarder: Any) -> Optional[NodeInfo]:
        """Return the configuration bound to ``forwarder``, or None."""
        return self._by_forwarder.get(forwarder)

    def by_node_id(self, node_id: int) -> Optional[NodeInfo]:
        """Return the configuration bound to ``node_id``, or None."""
        return self._by_node_id.get(node_id)