import argparse
import logging
import random
from typing import Any, Dict, Optional

import simpy

from network_config import get_config, load_config
from network_engine import NetworkEngine
from performance_metrics import PerformanceMetrics
from request_generation import VideoRequestGenerator

logger = logging.getLogger(__name__)


def frame_driver(env: simpy.Environment, engine: NetworkEngine):
    """Advances the engine by one frame every ``frame_duration_ms`` of simulated time."""
    while True:
        yield env.timeout(engine.frame_duration_ms)
        engine.advance_frame()


def request_source(env: simpy.Environment, engine: NetworkEngine, generator: VideoRequestGenerator,
                   rng: random.Random, interval_ms: float, chunks_per_video: int):
    """
    Users start watching videos at exponentially distributed intervals.

    Each session requests every chunk of a Zipf-chosen video, one chunk per
    frame, the last one flagged as such.
    """
    while True:
        yield env.timeout(rng.expovariate(1.0 / interval_ms))
        user_ids = engine.topology.user_ids()
        if not user_ids:
            logger.error("No user nodes in the topology, request skipped")
            continue
        env.process(watch_video(env, engine, rng.choice(user_ids), generator.get_random_video_id(),
                                chunks_per_video))


def watch_video(env: simpy.Environment, engine: NetworkEngine, user_id: str, video_id: str, chunks: int):
    for chunk_index in range(chunks):
        engine.create_request(user_id, video_id, chunk_index, is_last_chunk=(chunk_index == chunks - 1))
        yield env.timeout(engine.frame_duration_ms)


def run_simulation(duration_ms: float = 60000, request_interval_ms: float = 250, chunks_per_video: int = 3,
                   seed: Optional[int] = None, config: Optional[Dict[str, Any]] = None) -> PerformanceMetrics:
    """
    Runs a headless simulation and returns its metrics.

    Args:
        duration_ms (float): Simulated wall-clock duration.
        request_interval_ms (float): Mean time between two viewing sessions.
        chunks_per_video (int): Chunks requested per session.
        seed (int): Seed for the workload, making runs reproducible.
        config (dict): Configuration as returned by ``network_config.get_config``.
    """
    conf = config if config is not None else get_config()
    rng = random.Random(seed)

    engine = NetworkEngine(conf)
    generator = VideoRequestGenerator(conf["popularity"]["num_videos"], conf["popularity"]["alpha"],
                                      random_fn=rng.random)

    env = simpy.Environment()
    env.process(frame_driver(env, engine))
    env.process(request_source(env, engine, generator, rng, max(1.0, request_interval_ms),
                               max(1, int(chunks_per_video))))

    logger.info("Starting simulation for %.0f ms", duration_ms)
    env.run(until=duration_ms)
    logger.info("Simulation finished after %d ticks, %d packets still in flight",
                engine.current_tick, len(engine.packets))
    return engine.metrics


def main(argv=None):
    parser = argparse.ArgumentParser(description="Tiered CDN video delivery simulation")
    parser.add_argument("--duration", type=float, default=60000, help="simulated duration in ms")
    parser.add_argument("--interval", type=float, default=250, help="mean ms between viewing sessions")
    parser.add_argument("--chunks", type=int, default=3, help="chunks requested per session")
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--config", default=None, help="JSON file with configuration overrides")
    parser.add_argument("--plot", action="store_true", help="plot final metrics")
    parser.add_argument("--debug", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.debug else logging.WARNING)

    conf = load_config(args.config) if args.config else get_config()
    metrics = run_simulation(args.duration, args.interval, args.chunks, args.seed, conf)
    metrics.display_final_metrics(plot=args.plot)


if __name__ == "__main__":
    main()
