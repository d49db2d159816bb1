import json

import pytest

from network_config import get_config, load_config, NETWORK_CONFIG


def test_defaults():
    conf = get_config()
    assert conf["network"]["cdn"]["count_per_origin"] == 3
    assert conf["network"]["fog"]["cache_capacity"] == 5
    assert conf["popularity"]["alpha"] == 4.0
    assert conf["simulation"]["frame_duration_ms"] == 16.67


def test_overrides_are_merged_without_touching_defaults():
    conf = get_config({"network": {"cdn": {"count_per_origin": 1}}})
    assert conf["network"]["cdn"]["count_per_origin"] == 1
    assert conf["network"]["cdn"]["latency_to_origin"] == 100
    assert NETWORK_CONFIG["cdn"]["count_per_origin"] == 3


def test_invalid_values_are_clamped(caplog):
    conf = get_config({
        "network": {
            "cdn": {"count_per_origin": -2, "cache_capacity": 0},
            "fog": {"latency_to_cdn": -5},
        },
        "popularity": {"alpha": 0, "num_videos": 0},
        "simulation": {"frame_duration_ms": 0},
    })
    assert conf["network"]["cdn"]["count_per_origin"] == 0
    assert conf["network"]["cdn"]["cache_capacity"] == 1
    assert conf["network"]["fog"]["latency_to_cdn"] == 0
    assert conf["popularity"]["alpha"] == pytest.approx(0.1)
    assert conf["popularity"]["num_videos"] == 1
    assert conf["simulation"]["frame_duration_ms"] > 0
    assert "clamped" in caplog.text


def test_load_config(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"popularity": {"num_videos": 10}}))
    conf = load_config(str(path))
    assert conf["popularity"]["num_videos"] == 10
    assert conf["popularity"]["alpha"] == 4.0


def test_load_config_rejects_malformed_file(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{not json")
    with pytest.raises(ValueError):
        load_config(str(path))

    path.write_text("[1, 2]")
    with pytest.raises(ValueError):
        load_config(str(path))
