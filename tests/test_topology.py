import logging

import networkx as nx

from conftest import small_config
from network_config import get_config
from topology import NetworkTopology, ORIGIN, CDN, FOG, USER


def build(config=None):
    topology = NetworkTopology()
    topology.generate_tree(config if config is not None else get_config())
    return topology


def test_default_tree_shape():
    topology = build()
    kinds = [kind for _, kind in topology.graph.nodes(data="kind")]
    assert kinds.count(ORIGIN) == 1
    assert kinds.count(CDN) == 3
    assert kinds.count(FOG) == 6
    assert kinds.count(USER) == 30
    assert topology.node_count == 40


def test_deterministic_naming():
    topology = build()
    ids = topology.node_ids()
    assert ids[:4] == ["Netflix_HQ", "CDN_1", "FOG_1_1", "USER_1_1_1"]
    assert "FOG_3_2" in ids
    assert "USER_3_2_5" in ids
    assert topology.get_node("FOG_2_1")["parent"] == "CDN_2"
    assert topology.get_node("USER_2_1_4")["parent"] == "FOG_2_1"


def test_every_node_has_exactly_one_parent_and_reaches_origin():
    topology = build()
    assert topology.validate()
    for node_id in topology.node_ids():
        node = topology.get_node(node_id)
        if node["kind"] == ORIGIN:
            assert node["parent"] is None
            assert topology.graph.out_degree(node_id) == 0
            continue
        assert topology.graph.out_degree(node_id) == 1

        current, steps = node_id, 0
        while topology.kind_of(current) != ORIGIN:
            current = topology.get_node(current)["parent"]
            steps += 1
            assert steps <= 3
        assert current == "Netflix_HQ"


def test_links_carry_tier_parameters():
    topology = build()
    (user_link,) = topology.links_of("USER_1_1_1")
    assert user_link.target == "FOG_1_1"
    assert user_link.latency == 10
    assert user_link.bandwidth == 100
    (cdn_link,) = topology.links_of("CDN_1")
    assert (cdn_link.target, cdn_link.latency, cdn_link.bandwidth) == ("Netflix_HQ", 100, 10000)


def test_caches_only_on_cdn_and_fog():
    topology = build()
    assert topology.cache_of("CDN_1").capacity == 20
    assert topology.cache_of("FOG_1_1").capacity == 5
    assert topology.cache_of("Netflix_HQ") is None
    assert topology.cache_of("USER_1_1_1") is None


def test_regeneration_replaces_previous_topology():
    topology = build()
    topology.cache_of("FOG_1_1").store("video_1", 0, 0)

    topology.generate_tree(small_config())
    assert topology.node_count == 1 + 1 + 1 + 2
    assert not topology.has_node("CDN_2")
    assert len(topology.cache_of("FOG_1_1")) == 0
    assert topology.validate()


def test_zero_fan_out_leaves_only_origin():
    topology = build(small_config(cdns=0))
    assert topology.node_ids() == ["Netflix_HQ"]
    assert topology.validate()


def test_layout_positions():
    topology = build()
    origin = topology.get_node("Netflix_HQ")
    assert (origin["x"], origin["y"]) == (800, 50)
    assert topology.get_node("CDN_1")["x"] == 400
    assert topology.get_node("FOG_1_1")["x"] == 400 - 75
    assert topology.get_node("FOG_1_2")["x"] == 400 + 75


def test_second_parent_is_rejected(caplog):
    topology = build()
    with caplog.at_level(logging.ERROR):
        topology.connect("USER_1_1_1", "FOG_2_1", 10, 100)
    assert "already has parent" in caplog.text
    assert topology.get_node("USER_1_1_1")["parent"] == "FOG_1_1"
    assert not topology.graph.has_edge("USER_1_1_1", "FOG_2_1")


def test_link_lookup_in_both_directions():
    topology = build()
    up = topology.get_link_between_nodes("FOG_1_1", "CDN_1")
    down = topology.get_link_between_nodes("CDN_1", "FOG_1_1")
    assert up.latency == down.latency == 20
    assert topology.get_link_between_nodes("FOG_1_1", "FOG_1_2") is None


def test_children_include_nodes_linked_without_parent():
    topology = build(small_config())
    topology.graph.add_node("LEGACY", kind=USER, x=0, y=0, parent=None, cache=None)
    topology.graph.add_edge("LEGACY", "FOG_1_1", latency=10, bandwidth=100)

    assert topology.get_children_of("FOG_1_1") == ["USER_1_1_1", "USER_1_1_2", "LEGACY"]
    assert topology.get_parent_candidate("LEGACY") == "FOG_1_1"


def test_find_node_near():
    topology = build()
    assert topology.find_node_near(802, 48) == "Netflix_HQ"
    assert topology.find_node_near(400, 200) == "CDN_1"
    assert topology.find_node_near(5000, 5000) is None


def test_missing_origin_is_reported(caplog):
    topology = NetworkTopology()
    with caplog.at_level(logging.ERROR):
        assert topology.get_origin_node() is None
    assert "Origin node not found" in caplog.text
    assert not topology.validate()


def test_reversed_graph_is_arborescence():
    topology = build()
    assert nx.is_arborescence(topology.graph.reverse())
