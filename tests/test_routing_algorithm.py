import pytest

from packets import Packet, REQUEST, RESPONSE
from routing_algorithm import PathResolver
from topology import NetworkTopology, ORIGIN, CDN, FOG, USER


@pytest.fixture
def topology():
    topology = NetworkTopology()
    topology.generate_tree()
    return topology


@pytest.fixture
def resolver(topology):
    return PathResolver(topology)


def test_upward_path_from_every_user(topology, resolver):
    for user_id in topology.user_ids():
        path = resolver.find_path_to_origin(user_id)
        assert len(path) == 4
        assert [topology.kind_of(n) for n in path] == [USER, FOG, CDN, ORIGIN]
        assert path[0] == user_id
        assert path[-1] == "Netflix_HQ"


def test_downward_path_mirrors_upward(topology, resolver):
    for user_id in ("USER_1_1_1", "USER_2_1_3", "USER_3_2_5"):
        down = resolver.find_path_from("Netflix_HQ", user_id)
        assert down == list(reversed(resolver.find_path_to_origin(user_id)))


def test_downward_path_from_intermediate_node(resolver):
    assert resolver.find_path_from("FOG_2_2", "USER_2_2_1") == ["FOG_2_2", "USER_2_2_1"]
    assert resolver.find_path_from("CDN_1", "USER_1_2_2") == ["CDN_1", "FOG_1_2", "USER_1_2_2"]


def test_unreachable_target_gives_empty_path(resolver):
    assert resolver.find_path_from("FOG_1_1", "USER_2_1_1") == []
    assert resolver.find_path_from("Netflix_HQ", "NOWHERE") == []


def test_path_to_itself(resolver):
    assert resolver.find_path_to_origin("Netflix_HQ") == ["Netflix_HQ"]
    assert resolver.find_path_from("USER_1_1_1", "USER_1_1_1") == ["USER_1_1_1"]


def test_packet_type_selects_algorithm(resolver):
    request = Packet("REQ_1", REQUEST, "USER_1_1_2", "Netflix_HQ", "video_1", 0)
    response = Packet("RESP_REQ_1", RESPONSE, "Netflix_HQ", "USER_1_1_2", "video_1", 0)
    assert resolver.build_path_for_packet(request) == ["USER_1_1_2", "FOG_1_1", "CDN_1", "Netflix_HQ"]
    assert resolver.build_path_for_packet(response) == ["Netflix_HQ", "CDN_1", "FOG_1_1", "USER_1_1_2"]


def test_unknown_nodes_are_logged(resolver, caplog):
    packet = Packet("RESP_X", RESPONSE, "Netflix_HQ", "GHOST", "video_1", 0)
    assert resolver.build_path_for_packet(packet) == []
    assert "Unknown target node GHOST" in caplog.text


def test_climb_stops_without_origin(topology, resolver):
    topology.graph.remove_edge("CDN_1", "Netflix_HQ")
    topology.graph.nodes["CDN_1"]["parent"] = None
    assert resolver.find_path_to_origin("USER_1_1_1") == ["USER_1_1_1", "FOG_1_1", "CDN_1"]


def test_parent_cycle_is_broken(topology, resolver, caplog):
    topology.graph.nodes["CDN_1"]["parent"] = "FOG_1_1"
    path = resolver.find_path_to_origin("USER_1_1_1")
    assert path == ["USER_1_1_1", "FOG_1_1", "CDN_1"]
    assert "Parent cycle detected" in caplog.text
