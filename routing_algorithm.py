import logging
from typing import List, Optional

from packets import Packet, REQUEST
from topology import NetworkTopology, ORIGIN


class PathResolver:
    """
    Computes the node sequence a packet travels.

    Requests climb the parent chain up to the Origin. Responses are routed
    down the tree with a depth-first search from the node that serves them.
    """

    def __init__(self, topology: NetworkTopology, logger: Optional[logging.Logger] = None):
        self.topology = topology
        self.logger = logger or logging.getLogger(__name__)

    def build_path_for_packet(self, packet: Packet) -> List[str]:
        self.logger.debug("Building path for %s (%s)", packet.id, packet.type)
        if not self.topology.has_node(packet.source):
            self.logger.error("Unknown source node %s for %s", packet.source, packet.id)
            return []

        if packet.type == REQUEST:
            return self.find_path_to_origin(packet.source)

        if not self.topology.has_node(packet.target):
            self.logger.error("Unknown target node %s for %s", packet.target, packet.id)
            return []
        return self.find_path_from(packet.source, packet.target)

    def find_path_to_origin(self, start_id: str) -> List[str]:
        path: List[str] = []
        current: Optional[str] = start_id

        while current is not None:
            if current in path:
                self.logger.error("Parent cycle detected at %s while climbing from %s", current, start_id)
                break
            path.append(current)
            if self.topology.kind_of(current) == ORIGIN:
                break
            current = self.topology.get_parent_candidate(current)

        return path

    def find_path_from(self, start_id: str, target_id: str) -> List[str]:
        path: List[str] = []
        found = self._depth_first_find_path(start_id, target_id, path)
        return path if found else []

    def _depth_first_find_path(self, current_id: str, target_id: str, path: List[str]) -> bool:
        path.append(current_id)
        if current_id == target_id:
            return True

        for child_id in self.topology.get_children_of(current_id):
            if child_id in path:
                continue
            if self._depth_first_find_path(child_id, target_id, path):
                return True

        path.pop()
        return False
