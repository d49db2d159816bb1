import logging
from typing import Any, Dict, List, NamedTuple, Optional

import networkx as nx
import numpy as np

from caching_strategy import FIFOCache
from network_config import get_config


ORIGIN = "ORIGIN"
CDN = "CDN"
FOG = "FOG"
USER = "USER"


class Link(NamedTuple):
    target: str
    latency: float  # ms
    bandwidth: float  # Mbps


class NetworkTopology:
    """
    Fixed four-tier tree: Origin -> CDN -> Fog -> User.

    All nodes live in a directed graph keyed by node id. Each node carries a
    ``kind``, a display position, its ``parent`` id and an optional ``cache``
    (CDN and Fog nodes only). Edges point from child to parent and hold the
    link's ``latency`` and ``bandwidth``.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self.graph: nx.DiGraph = nx.DiGraph()

    @property
    def node_count(self) -> int:
        return self.graph.number_of_nodes()

    def add_node(self, node_id: str, kind: str, x: float = 0.0, y: float = 0.0,
                 cache_capacity: Optional[int] = None) -> Dict[str, Any]:
        cache = FIFOCache(cache_capacity, node_id) if cache_capacity is not None else None
        self.graph.add_node(node_id, kind=kind, x=x, y=y, parent=None, cache=cache)
        self.logger.debug("%s node created: %s", kind, node_id)
        return self.graph.nodes[node_id]

    def connect(self, child_id: str, parent_id: str, latency: float, bandwidth: float) -> None:
        """Links a child to its parent. A node gets exactly one parent."""
        if self.graph.nodes[child_id]["parent"] is not None:
            self.logger.error("Node %s already has parent %s, ignoring link to %s",
                              child_id, self.graph.nodes[child_id]["parent"], parent_id)
            return
        self.graph.add_edge(child_id, parent_id, latency=latency, bandwidth=bandwidth)
        self.graph.nodes[child_id]["parent"] = parent_id

    def generate_tree(self, config: Optional[Dict[str, Any]] = None, width: Optional[float] = None) -> nx.DiGraph:
        """
        Builds a fresh topology, discarding any previous one.

        Args:
            config (dict): Full configuration as returned by ``network_config.get_config``.
            width (float): Layout width used for display positions.
        """
        conf = config if config is not None else get_config()
        net = conf["network"]
        if width is None:
            width = conf["simulation"]["layout_width"]

        self.logger.info("Generating network topology")
        self.graph = nx.DiGraph()

        origin_id = net["origin"]["id"]
        self.add_node(origin_id, ORIGIN, x=width / 2, y=net["origin"]["position"]["y"])

        num_cdns = net["cdn"]["count_per_origin"]
        num_fogs = net["fog"]["count_per_cdn"]
        num_users = net["user"]["count_per_fog"]

        for i in range(num_cdns):
            cdn_id = f"CDN_{i + 1}"
            cdn_x = (width / (num_cdns + 1)) * (i + 1)
            self.add_node(cdn_id, CDN, x=cdn_x, y=net["cdn"]["position"]["y"],
                          cache_capacity=net["cdn"]["cache_capacity"])
            self.connect(cdn_id, origin_id, net["cdn"]["latency_to_origin"], net["cdn"]["bandwidth_to_origin"])

            for j in range(num_fogs):
                fog_id = f"FOG_{i + 1}_{j + 1}"
                fog_x = cdn_x + (j - (num_fogs - 1) / 2) * 150
                self.add_node(fog_id, FOG, x=fog_x, y=net["fog"]["position"]["y"],
                              cache_capacity=net["fog"]["cache_capacity"])
                self.connect(fog_id, cdn_id, net["fog"]["latency_to_cdn"], net["fog"]["bandwidth_to_cdn"])

                for k in range(num_users):
                    user_id = f"USER_{i + 1}_{j + 1}_{k + 1}"
                    user_x = fog_x + (k - (num_users - 1) / 2) * 20
                    self.add_node(user_id, USER, x=user_x, y=net["user"]["position"]["y"])
                    self.connect(user_id, fog_id, net["user"]["latency_to_fog"], net["user"]["bandwidth_to_fog"])

        self.logger.info("Network generated (%d nodes)", self.node_count)
        return self.graph

    def has_node(self, node_id: str) -> bool:
        return node_id in self.graph

    def get_node(self, node_id: str) -> Optional[Dict[str, Any]]:
        if node_id not in self.graph:
            return None
        return self.graph.nodes[node_id]

    def kind_of(self, node_id: str) -> Optional[str]:
        node = self.get_node(node_id)
        return node["kind"] if node is not None else None

    def cache_of(self, node_id: str) -> Optional[FIFOCache]:
        node = self.get_node(node_id)
        return node["cache"] if node is not None else None

    def node_ids(self) -> List[str]:
        return list(self.graph.nodes)

    def user_ids(self) -> List[str]:
        return [n for n, kind in self.graph.nodes(data="kind") if kind == USER]

    def links_of(self, node_id: str) -> List[Link]:
        return [Link(target, data["latency"], data["bandwidth"])
                for _, target, data in self.graph.out_edges(node_id, data=True)]

    def get_origin_node(self) -> Optional[str]:
        for node_id, kind in self.graph.nodes(data="kind"):
            if kind == ORIGIN:
                return node_id
        self.logger.error("Origin node not found")
        return None

    def get_parent_candidate(self, node_id: str) -> Optional[str]:
        """Parent id, or the target of the node's first link when no parent is set."""
        parent = self.graph.nodes[node_id]["parent"]
        if parent is not None:
            return parent
        links = self.links_of(node_id)
        return links[0].target if links else None

    def get_children_of(self, parent_id: str) -> List[str]:
        # Accept links recorded towards the parent even without a parent attribute
        return [n for n, parent in self.graph.nodes(data="parent")
                if parent == parent_id or self.graph.has_edge(n, parent_id)]

    def get_link_between_nodes(self, start_id: str, end_id: str) -> Optional[Link]:
        """Link between two nodes, looked up in either direction."""
        if self.graph.has_edge(start_id, end_id):
            data = self.graph.edges[start_id, end_id]
            return Link(end_id, data["latency"], data["bandwidth"])
        if self.graph.has_edge(end_id, start_id):
            data = self.graph.edges[end_id, start_id]
            return Link(start_id, data["latency"], data["bandwidth"])
        return None

    def find_node_near(self, x: float, y: float, radius: float = 10.0) -> Optional[str]:
        """Id of the node closest to (x, y) if it lies within ``radius``."""
        if self.node_count == 0:
            return None
        ids = self.node_ids()
        positions = np.array([(self.graph.nodes[n]["x"], self.graph.nodes[n]["y"]) for n in ids])
        distances = np.hypot(positions[:, 0] - x, positions[:, 1] - y)
        nearest = int(np.argmin(distances))
        if distances[nearest] > radius:
            return None
        return ids[nearest]

    def validate(self) -> bool:
        """True when the nodes form a single tree rooted at exactly one Origin."""
        if self.node_count == 0:
            return False
        origins = [n for n, kind in self.graph.nodes(data="kind") if kind == ORIGIN]
        if len(origins) != 1:
            return False
        # Edges point child -> parent, so the reversed graph must be an arborescence
        if not nx.is_arborescence(self.graph.reverse(copy=False)):
            return False
        return all(data["parent"] is not None
                   for _, data in self.graph.nodes(data=True) if data["kind"] != ORIGIN)

    def snapshot(self) -> List[Dict[str, Any]]:
        """Plain description of every node, for drawing."""
        nodes = []
        for node_id, data in self.graph.nodes(data=True):
            nodes.append({
                "id": node_id,
                "kind": data["kind"],
                "x": data["x"],
                "y": data["y"],
                "parent": data["parent"],
                "links": [link._asdict() for link in self.links_of(node_id)],
                "cache": data["cache"].get_cache_status() if data["cache"] is not None else None,
            })
        return nodes
