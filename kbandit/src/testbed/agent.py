"""Sample-average epsilon-greedy bandit."""
from __future__ import annotations

from typing import List, Optional

import numpy as np


class PreconditionError(ValueError):
    """Raised when a caller violates a precondition of the testbed."""


def require(condition: bool, message: str) -> None:
    if not condition:
        raise PreconditionError(message)


class EpsilonGreedyBandit:
    """Epsilon-greedy agent over ``arm_count`` actions.

    Each action keeps the full list of rewards received for it; its value
    estimate is the sample mean of that list (``0.0`` while empty).

    With probability ``1 - epsilon`` the agent picks uniformly among the actions
    tied for the highest estimate. Otherwise it explores uniformly among the
    strictly non-maximal actions, falling back to the tied set when every
    action shares the maximum. ``epsilon`` is not range-checked: a negative
    value never explores and a value ``>= 1`` always does.
    """

    def __init__(self, arm_count: int, epsilon: float, rng: Optional[np.random.Generator] = None):
        require(int(arm_count) > 0, f"arm_count must be positive, got {arm_count}")
        self.arm_count = int(arm_count)
        self.epsilon = float(epsilon)
        self.rng = rng if rng is not None else np.random.default_rng()
        self.reward_history: List[List[float]] = [[] for _ in range(self.arm_count)]

    def _check_action(self, action: int) -> int:
        require(
            isinstance(action, (int, np.integer)) and not isinstance(action, (bool, np.bool_)),
            f"action must be an integer index, got {action!r}",
        )
        require(
            0 <= action < self.arm_count,
            f"action {action} out of range [0, {self.arm_count})",
        )
        return int(action)

    def estimate_value(self, action: int) -> float:
        rewards = self.reward_history[self._check_action(action)]
        if not rewards:
            return 0.0
        return sum(rewards) / len(rewards)

    def estimates(self) -> np.ndarray:
        return np.array([self.estimate_value(a) for a in range(self.arm_count)], dtype=float)

    def choose_action(self) -> int:
        values = self.estimates()
        x = self.rng.random()

        max_value = values.max()
        greedy = np.flatnonzero(values == max_value)
        non_greedy = np.flatnonzero(values != max_value)

        if x > self.epsilon or non_greedy.size == 0:
            pool = greedy
        else:
            pool = non_greedy
        return int(pool[self.rng.integers(pool.size)])

    def record_reward(self, reward: float, action: int) -> None:
        self.reward_history[self._check_action(action)].append(float(reward))

    def counts(self) -> np.ndarray:
        """Number of times each action has been played."""
        return np.array([len(h) for h in self.reward_history], dtype=int)
