from collections import defaultdict
from typing import Any, Dict, List

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd


class PerformanceMetrics:
    """
    Tracks cache efficiency and delivery latency of the simulation.
    """
    def __init__(self, frame_duration_ms: float = 16.67):
        """Initializes metric storage."""
        self.frame_duration_ms: float = frame_duration_ms
        self.cache_hits: int = 0
        self.cache_misses: int = 0
        self.routing_failures: int = 0
        self.delivery_ticks: List[int] = []
        self.cache_delivery_ticks: List[int] = []
        self.origin_delivery_ticks: List[int] = []
        self.requests_per_content: Dict[str, int] = defaultdict(int)
        self.hits_per_content: Dict[str, int] = defaultdict(int)
        self.hits_per_node: Dict[str, int] = defaultdict(int)
        self.failure_log: List[Dict[str, Any]] = []

    def record_request(self, video_id: str, is_cache_hit: bool, served_by: str):
        """Records a request that reached the node able to serve it."""
        self.requests_per_content[video_id] += 1
        if is_cache_hit:
            self.cache_hits += 1
            self.hits_per_content[video_id] += 1
            self.hits_per_node[served_by] += 1
        else:
            self.cache_misses += 1

    def record_delivery(self, ticks: int, from_cache: bool = False):
        """Records the number of ticks between a request and its response arriving."""
        self.delivery_ticks.append(ticks)
        if from_cache:
            self.cache_delivery_ticks.append(ticks)
        else:
            self.origin_delivery_ticks.append(ticks)

    def _average_ms(self, ticks: List[int]) -> float:
        if not ticks:
            return 0.0
        return float(np.mean(ticks)) * self.frame_duration_ms

    def record_routing_failure(self, packet_id: str, reason: str, tick: int):
        self.routing_failures += 1
        self.failure_log.append({"packet_id": packet_id, "reason": reason, "tick": tick})

    def get_cache_hit_rate(self) -> float:
        total_requests = self.cache_hits + self.cache_misses
        if total_requests == 0:
            return 0
        return self.cache_hits / total_requests

    def get_metrics_summary(self) -> Dict[str, Any]:
        """Calculates and returns a summary of current metrics."""
        total_requests = self.cache_hits + self.cache_misses
        if self.delivery_ticks:
            ticks = np.array(self.delivery_ticks)
            avg_ticks = float(np.mean(ticks))
            p95_ticks = float(np.percentile(ticks, 95))
        else:
            avg_ticks = 0.0
            p95_ticks = 0.0

        return {
            "total_requests": total_requests,
            "cache_hits": self.cache_hits,
            "cache_misses": self.cache_misses,
            "hit_rate": self.get_cache_hit_rate() * 100,
            "deliveries": len(self.delivery_ticks),
            "avg_delivery_ticks": avg_ticks,
            "avg_delivery_ms": avg_ticks * self.frame_duration_ms,
            "p95_delivery_ms": p95_ticks * self.frame_duration_ms,
            "avg_cache_delivery_ms": self._average_ms(self.cache_delivery_ticks),
            "avg_origin_delivery_ms": self._average_ms(self.origin_delivery_ticks),
            "routing_failures": self.routing_failures,
        }

    def content_summary(self) -> pd.DataFrame:
        """Per-video request counts and hit rates, most requested first."""
        data = []
        for video_id, total in self.requests_per_content.items():
            hits = self.hits_per_content.get(video_id, 0)
            data.append({
                "Video ID": video_id,
                "Total Requests": total,
                "Cache Hits": hits,
                "Hit Rate (%)": hits / total * 100 if total else 0.0,
            })
        df = pd.DataFrame(data, columns=["Video ID", "Total Requests", "Cache Hits", "Hit Rate (%)"])
        return df.sort_values(by="Total Requests", ascending=False).reset_index(drop=True)

    def display_final_metrics(self, plot: bool = False):
        """Prints final metrics and optionally plots latency and hit distribution."""
        summary = self.get_metrics_summary()
        print("\n--- Simulation Final Metrics ---")
        print(f"Total Requests Served: {summary['total_requests']}")
        print(f"Cache Hits: {summary['cache_hits']}")
        print(f"Cache Misses: {summary['cache_misses']}")
        print(f"Cache Hit Percentage: {summary['hit_rate']:.2f}%")
        print(f"Responses Delivered: {summary['deliveries']}")
        print(f"Average Delivery Time: {summary['avg_delivery_ms']:.1f} ms")
        print(f"95th Percentile Delivery Time: {summary['p95_delivery_ms']:.1f} ms")
        print(f"Average Delivery Time from Cache: {summary['avg_cache_delivery_ms']:.1f} ms")
        print(f"Average Delivery Time from Origin: {summary['avg_origin_delivery_ms']:.1f} ms")
        print(f"Routing Failures: {summary['routing_failures']}")

        df = self.content_summary()
        print("\n--- Content Information Summary ---")
        if not df.empty:
            print(df.to_string(index=False))
        else:
            print("No content data to display.")

        if not plot or not self.delivery_ticks:
            return

        plt.figure(figsize=(12, 5))
        plt.suptitle("CDN Simulation - Final Performance Summary", fontsize=16)

        plt.subplot(1, 2, 1)
        delivery_ms = pd.Series(self.delivery_ticks) * self.frame_duration_ms
        plt.plot(delivery_ms, label="Delivery Time", alpha=0.7)
        if len(delivery_ms) >= 50:
            plt.plot(delivery_ms.rolling(window=50).mean(), label="50-resp Moving Avg", color="red", linewidth=2)
        plt.title("Chunk Delivery Times")
        plt.xlabel("Response Number")
        plt.ylabel("Delivery Time (ms)")
        plt.legend()
        plt.grid(True)

        plt.subplot(1, 2, 2)
        if self.hits_per_node:
            nodes = sorted(self.hits_per_node)
            plt.bar(range(len(nodes)), [self.hits_per_node[n] for n in nodes], tick_label=nodes)
            plt.xticks(rotation=90, fontsize=8)
        else:
            plt.text(0.5, 0.5, "No cache hits", ha="center", va="center")
        plt.title("Cache Hits per Node")
        plt.ylabel("Hits")

        plt.tight_layout(rect=[0, 0.03, 1, 0.95])
        plt.show()
