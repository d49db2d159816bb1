import pytest

from network_config import get_config
from network_engine import NetworkEngine


def small_config(cdns=1, fogs=1, users=2, fog_capacity=5, cdn_capacity=20):
    return get_config({
        "network": {
            "cdn": {"count_per_origin": cdns, "cache_capacity": cdn_capacity},
            "fog": {"count_per_cdn": fogs, "cache_capacity": fog_capacity},
            "user": {"count_per_fog": users},
        }
    })


def run_until(engine, condition, max_ticks=5000):
    """Ticks the engine until ``condition()`` holds; returns the ticks used."""
    for ticks in range(1, max_ticks + 1):
        engine.advance_tick()
        if condition():
            return ticks
    raise AssertionError(f"condition not met after {max_ticks} ticks")


@pytest.fixture
def engine():
    return NetworkEngine()


@pytest.fixture
def small_engine():
    return NetworkEngine(small_config())
