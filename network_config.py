import copy
import json
import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

# Tree shape, per-tier link characteristics and cache sizes
NETWORK_CONFIG: Dict[str, Dict[str, Any]] = {
    "origin": {
        "id": "Netflix_HQ",
        "position": {"y": 50},
    },
    "cdn": {
        "count_per_origin": 3,
        "position": {"y": 200},
        "latency_to_origin": 100,  # ms
        "bandwidth_to_origin": 10000,  # Mbps
        "cache_capacity": 20,  # chunks
    },
    "fog": {
        "count_per_cdn": 2,
        "position": {"y": 350},
        "latency_to_cdn": 20,  # ms
        "bandwidth_to_cdn": 1000,  # Mbps
        "cache_capacity": 5,  # chunks
    },
    "user": {
        "count_per_fog": 5,
        "position": {"y": 500},
        "latency_to_fog": 10,  # ms
        "bandwidth_to_fog": 100,  # Mbps
    },
}

SIMULATION_CONFIG: Dict[str, Any] = {
    "frame_duration_ms": 16.67,  # 60 FPS
    "tick_rate": 1.0,
    "request_size_factor": 1,
    "response_size_factor": 10,
    "layout_width": 1600,
}

POPULARITY_CONFIG: Dict[str, Any] = {
    "num_videos": 50,
    "alpha": 4.0,
}

MIN_ALPHA = 0.1
MIN_FRAME_DURATION_MS = 0.001


def get_config(overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Returns the full simulation configuration.

    The result is a deep copy of the defaults with ``overrides`` merged in
    (nested dicts are merged key by key) and every numeric parameter clamped
    to its valid range.

    Args:
        overrides (dict): Partial configuration with the same layout as the
            returned dict, e.g. ``{"network": {"cdn": {"count_per_origin": 1}}}``.
    """
    conf = {
        "network": copy.deepcopy(NETWORK_CONFIG),
        "simulation": copy.deepcopy(SIMULATION_CONFIG),
        "popularity": copy.deepcopy(POPULARITY_CONFIG),
    }
    if overrides:
        _merge(conf, overrides)
    return normalize_config(conf)


def load_config(file_path: str) -> Dict[str, Any]:
    """Loads overrides from a JSON file and returns the merged configuration."""
    try:
        with open(file_path, "r") as f:
            overrides = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Error parsing config file {file_path}: {e}") from e

    if not isinstance(overrides, dict):
        raise ValueError(f"Config file {file_path} must contain a JSON object")
    logger.info("Loaded configuration overrides from %s", file_path)
    return get_config(overrides)


def _merge(base: Dict[str, Any], overrides: Dict[str, Any]) -> None:
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value


def _clamp(section: Dict[str, Any], key: str, minimum, cast=float) -> None:
    value = cast(section[key])
    if value < minimum:
        logger.warning("Config %s=%s is out of range, clamped to %s", key, section[key], minimum)
        value = cast(minimum)
    section[key] = value


def normalize_config(conf: Dict[str, Any]) -> Dict[str, Any]:
    """Clamps configuration values to safe minimums in place and returns ``conf``."""
    network = conf["network"]
    _clamp(network["cdn"], "count_per_origin", 0, int)
    _clamp(network["fog"], "count_per_cdn", 0, int)
    _clamp(network["user"], "count_per_fog", 0, int)

    _clamp(network["cdn"], "latency_to_origin", 0)
    _clamp(network["fog"], "latency_to_cdn", 0)
    _clamp(network["user"], "latency_to_fog", 0)
    _clamp(network["cdn"], "bandwidth_to_origin", 0)
    _clamp(network["fog"], "bandwidth_to_cdn", 0)
    _clamp(network["user"], "bandwidth_to_fog", 0)

    _clamp(network["cdn"], "cache_capacity", 1, int)
    _clamp(network["fog"], "cache_capacity", 1, int)

    simulation = conf["simulation"]
    _clamp(simulation, "frame_duration_ms", MIN_FRAME_DURATION_MS)
    _clamp(simulation, "tick_rate", 0)
    _clamp(simulation, "request_size_factor", 1)
    _clamp(simulation, "response_size_factor", 1)
    _clamp(simulation, "layout_width", 0)

    popularity = conf["popularity"]
    _clamp(popularity, "num_videos", 1, int)
    _clamp(popularity, "alpha", MIN_ALPHA)
    return conf
