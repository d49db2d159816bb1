import copy
import itertools
import logging
from typing import Any, Dict, List, Optional, Tuple

from network_config import get_config, normalize_config
from packets import Packet, REQUEST, RESPONSE, QUEUED, TRANSIT, DELIVERED
from performance_metrics import PerformanceMetrics
from routing_algorithm import PathResolver
from topology import NetworkTopology, Link, ORIGIN, USER


class NetworkEngine:
    """
    Tick-driven simulation of chunk requests over the CDN tree.

    The host calls ``advance_tick`` (or ``advance_frame``) at whatever cadence
    it likes; the engine has no timer of its own. Every tick moves all live
    packets once, in the order they were created.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self.metrics = PerformanceMetrics()
        self._apply_config(config)
        self._tick_budget: float = 0.0
        self.current_tick: int = 0

        self.topology = NetworkTopology(logger=self.logger)
        self.resolver = PathResolver(self.topology, logger=self.logger)
        self.packets: List[Packet] = []
        self._packet_ids = itertools.count(1)

        self.logger.info("Initializing NetworkEngine")
        self.build_topology()

    # --- Topology ---

    def build_topology(self, config: Optional[Dict[str, Any]] = None, width: Optional[float] = None) -> List[Dict[str, Any]]:
        """
        Regenerates the network and returns its nodes for drawing.

        In-flight packets reference nodes of the previous network, so they are
        dropped.
        """
        if config is not None:
            self._apply_config(config)
        if self.packets:
            self.logger.info("Topology regenerated, purging %d in-flight packets", len(self.packets))
            self.packets = []
        self.topology.generate_tree(self.config, width)
        return self.list_nodes()

    def _apply_config(self, config: Optional[Dict[str, Any]]) -> None:
        """Takes a normalized copy of ``config`` and derives the clock and packet size settings from it."""
        self.config = normalize_config(copy.deepcopy(config if config is not None else get_config()))
        sim = self.config["simulation"]
        self.frame_duration_ms: float = sim["frame_duration_ms"]
        self.size_factors: Dict[str, float] = {
            REQUEST: sim["request_size_factor"],
            RESPONSE: sim["response_size_factor"],
        }
        self.tick_rate: float = sim["tick_rate"]
        self.metrics.frame_duration_ms = self.frame_duration_ms

    def list_nodes(self) -> List[Dict[str, Any]]:
        return self.topology.snapshot()

    def find_node_near(self, x: float, y: float, radius: float = 10.0) -> Optional[str]:
        return self.topology.find_node_near(x, y, radius)

    def get_origin_node(self) -> Optional[str]:
        return self.topology.get_origin_node()

    # --- Packets ---

    def list_packets(self) -> List[Packet]:
        return list(self.packets)

    def packet_positions(self) -> List[Tuple[str, str, float, float]]:
        """(id, type, x, y) of every packet in transit, interpolated along its current link."""
        positions = []
        for packet in self.packets:
            if packet.status != TRANSIT or packet.next_node is None:
                continue
            start = self.topology.get_node(packet.current_node)
            end = self.topology.get_node(packet.next_node)
            x = start["x"] + (end["x"] - start["x"]) * packet.progress
            y = start["y"] + (end["y"] - start["y"]) * packet.progress
            positions.append((packet.id, packet.type, x, y))
        return positions

    def create_packet(self, packet: Packet) -> None:
        self.packets.append(packet)
        self.logger.debug("Packet added: %s", packet.id)

    def remove_packet(self, packet_id: str) -> bool:
        """Drops a live packet before the next tick. Returns False if it is unknown."""
        for i, packet in enumerate(self.packets):
            if packet.id == packet_id:
                del self.packets[i]
                self.logger.info("Packet removed: %s", packet_id)
                return True
        return False

    def create_request(self, user_node_id: str, video_id: str, chunk_index: int,
                       is_last_chunk: bool = False) -> Optional[str]:
        """
        Queues a request for one chunk from a user node.

        Returns:
            The new packet id, or None if the user or the Origin does not exist.
        """
        if self.topology.kind_of(user_node_id) != USER:
            self.logger.error("Cannot create request: %s is not a user node", user_node_id)
            return None

        origin_id = self.get_origin_node()
        if origin_id is None:
            self.logger.error("Cannot create request: Origin not found")
            return None

        packet_id = f"REQ_{next(self._packet_ids)}_{user_node_id}_{video_id}_{chunk_index}"
        packet = Packet(packet_id, REQUEST, user_node_id, origin_id, video_id, chunk_index,
                        is_last_chunk=is_last_chunk, request_tick=self.current_tick)
        self.create_packet(packet)
        self.logger.info("Request %s created from %s", packet_id, user_node_id)
        return packet_id

    # --- Clock ---

    def set_tick_rate(self, multiplier: float) -> None:
        """Sets how many ticks one frame advances. Fractional rates accumulate."""
        self.tick_rate = max(0.0, float(multiplier))
        self.logger.info("Tick rate set to %s", self.tick_rate)

    def advance_frame(self) -> int:
        """Runs the ticks owed for one frame and returns how many ran."""
        self._tick_budget += self.tick_rate
        ticks = 0
        while self._tick_budget >= 1:
            self.advance_tick()
            self._tick_budget -= 1
            ticks += 1
        return ticks

    def advance_tick(self) -> None:
        self.current_tick += 1
        self.update_packets()

    # --- Scheduler ---

    def calculate_progress_speed(self, link: Link, packet: Packet) -> float:
        """Converts link latency and packet size into progress per tick."""
        base_traversal_ticks = max(1.0, link.latency / self.frame_duration_ms)
        return 1.0 / (base_traversal_ticks * self.size_factors[packet.type])

    def update_packets(self) -> None:
        self.logger.debug("Updating packets (%d total)", len(self.packets))
        active_packets: List[Packet] = []
        spawned_packets: List[Packet] = []

        for packet in self.packets:
            if packet.status == QUEUED:
                self._start_transit(packet)

            if packet.status == TRANSIT:
                self._advance(packet)

            if packet.status == DELIVERED:
                response = self._on_delivered(packet)
                if response is not None:
                    spawned_packets.append(response)
                continue

            active_packets.append(packet)

        self.packets = active_packets + spawned_packets
        self.logger.debug("Active packets: %d, new: %d", len(active_packets), len(spawned_packets))

    def _start_transit(self, packet: Packet) -> None:
        path = self.resolver.build_path_for_packet(packet)
        self.logger.debug("Path found (%d nodes) for %s", len(path), packet.id)
        packet.path = path
        if len(path) < 2:
            packet.status = DELIVERED
            return

        first_link = self.topology.get_link_between_nodes(path[0], path[1])
        if first_link is None:
            self._fail(packet, f"no link {path[0]} -> {path[1]}")
            return

        packet.current_step_index = 0
        packet.progress = 0.0
        packet.speed = self.calculate_progress_speed(first_link, packet)
        packet.status = TRANSIT

    def _advance(self, packet: Packet) -> None:
        packet.progress += packet.speed
        self.logger.debug("Packet %s progress=%.2f", packet.id, packet.progress)
        if packet.progress < 1:
            return

        packet.current_step_index += 1
        packet.progress = 0.0
        node_id = packet.path[packet.current_step_index]
        self.logger.debug("Packet %s reached step %d (%s)", packet.id, packet.current_step_index, node_id)

        if self._visit(packet, node_id) or packet.current_step_index >= len(packet.path) - 1:
            packet.status = DELIVERED
            return

        next_id = packet.path[packet.current_step_index + 1]
        next_link = self.topology.get_link_between_nodes(node_id, next_id)
        if next_link is None:
            self._fail(packet, f"no link {node_id} -> {next_id}")
            return
        packet.speed = self.calculate_progress_speed(next_link, packet)

    def _visit(self, packet: Packet, node_id: str) -> bool:
        """
        Cache interaction when a packet reaches a node.

        Responses fill every cache they pass through. Requests are answered by
        the first cache holding the chunk, which truncates their path there.

        Returns:
            True if the request stops at this node.
        """
        cache = self.topology.cache_of(node_id)
        if cache is None:
            return False

        if packet.type == RESPONSE:
            cache.store(packet.video_id, packet.chunk_index, self.current_tick)
            return False

        if not cache.has(packet.video_id, packet.chunk_index):
            cache.record_miss()
            return False

        cache.on_hit(packet.video_id, packet.chunk_index, self.current_tick)
        packet.path = packet.path[:packet.current_step_index + 1]
        packet.target = node_id
        self.logger.info("Cache hit at %s for %s chunk %d", node_id, packet.video_id, packet.chunk_index)
        return True

    def _fail(self, packet: Packet, reason: str) -> None:
        packet.status = DELIVERED
        packet.failed = True
        packet.failure_reason = reason

    def _on_delivered(self, packet: Packet) -> Optional[Packet]:
        delivered_node = packet.path[-1] if packet.path else None
        if not packet.failed and delivered_node != packet.target:
            self._fail(packet, f"stopped at {delivered_node}" if delivered_node else "no path")

        if packet.failed:
            self.logger.warning("Routing failure for %s (%s -> %s): %s",
                                packet.id, packet.source, packet.target, packet.failure_reason)
            self.metrics.record_routing_failure(packet.id, packet.failure_reason, self.current_tick)
            return None

        self.logger.info("Packet delivered: %s at %s", packet.id, delivered_node)

        if packet.type == RESPONSE:
            from_cache = self.topology.kind_of(packet.served_by) != ORIGIN
            self.metrics.record_delivery(self.current_tick - packet.request_tick, from_cache)
            return None

        is_cache_hit = self.topology.kind_of(delivered_node) != ORIGIN
        self.metrics.record_request(packet.video_id, is_cache_hit, delivered_node)

        response = Packet(f"RESP_{packet.id}", RESPONSE, delivered_node, packet.source,
                          packet.video_id, packet.chunk_index,
                          is_last_chunk=packet.is_last_chunk, request_tick=packet.request_tick)
        response.served_by = delivered_node
        self.logger.info("Response generated: %s", response.id)
        return response
