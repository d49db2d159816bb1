import logging
import random
from typing import Callable, Optional

import numpy as np

from network_config import MIN_ALPHA


class VideoRequestGenerator:
    """
    Draws video ids following a Zipf law over the catalogue.

    Rank 1 is the most popular video, rank 2 slightly less and so on: the
    probability of rank r is proportional to 1 / r**alpha. A small alpha
    (~0.8) gives a flat popularity, a large one (~1.2 and above) lets a few
    videos dominate.
    """

    def __init__(self, num_videos: int, alpha: float = 4.0,
                 random_fn: Callable[[], float] = random.random,
                 logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self.random_fn = random_fn
        self.num_videos: int = max(1, int(num_videos))
        self.alpha: float = max(MIN_ALPHA, float(alpha))
        self._probabilities = np.empty(0)
        self._cumulative = np.empty(0)
        self._build_distribution()

    def update_parameters(self, num_videos: int, alpha: float = 1.0) -> None:
        """Changes the catalogue size and/or alpha, then rebuilds the distribution."""
        self.num_videos = max(1, int(num_videos))
        self.alpha = max(MIN_ALPHA, float(alpha))
        self._build_distribution()

    @property
    def probabilities(self) -> np.ndarray:
        """P(rank = i + 1) for every rank."""
        return self._probabilities.copy()

    @property
    def cumulative_probabilities(self) -> np.ndarray:
        """CDF[i] = P(rank <= i + 1)."""
        return self._cumulative.copy()

    def _build_distribution(self) -> None:
        ranks = np.arange(1, self.num_videos + 1, dtype=float)
        weights = ranks ** -self.alpha
        self._probabilities = weights / weights.sum()
        self._cumulative = np.cumsum(self._probabilities)
        self.logger.debug("Zipf distribution built: %d videos, alpha=%s", self.num_videos, self.alpha)

    def sample(self) -> int:
        """Draws a rank: the first rank whose cumulative probability reaches U."""
        u = self.random_fn()
        index = int(np.searchsorted(self._cumulative, u, side="left"))
        # U above the last cumulative value (rounding) falls back to the last rank
        return min(index, self.num_videos - 1) + 1

    def get_random_video_id(self) -> str:
        return f"video_{self.sample()}"
