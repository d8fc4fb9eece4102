from __future__ import annotations

from typing import Optional

import numpy as np

from .agent import EpsilonGreedyBandit, require


class BanditTask:
    """One stationary Gaussian testbed instance.

    ``true_values`` ~ N(0, 1) are drawn once; a play of action ``j`` pays
    N(true_values[j], 1).
    """

    def __init__(self, arm_count: int, rng: Optional[np.random.Generator] = None):
        require(int(arm_count) > 0, f"arm_count must be positive, got {arm_count}")
        self.arm_count = int(arm_count)
        self.rng = rng if rng is not None else np.random.default_rng()
        self.true_values = np.asarray(self.rng.standard_normal(self.arm_count), dtype=float)

    @property
    def optimal_action(self) -> int:
        return int(np.argmax(self.true_values))

    def run(self, bandit: EpsilonGreedyBandit, num_plays: int) -> np.ndarray:
        require(
            bandit.arm_count == self.arm_count,
            f"bandit has {bandit.arm_count} arms, task has {self.arm_count}",
        )
        require(int(num_plays) >= 0, f"num_plays must be non-negative, got {num_plays}")

        rewards = np.zeros(int(num_plays), dtype=float)
        for t in range(int(num_plays)):
            # all arms are sampled every play, not just the chosen one
            candidates = np.asarray(self.rng.normal(self.true_values, 1.0), dtype=float)
            a = bandit.choose_action()
            r = float(candidates[a])
            bandit.record_reward(r, a)
            rewards[t] = r
        return rewards
