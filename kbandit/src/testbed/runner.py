from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, Optional, Tuple

import numpy as np
import pandas as pd
from pydantic import BaseModel, Field

from .agent import EpsilonGreedyBandit, require
from .plots import plot_learning_curve
from .sink import dump_sequence, ensure_dir, sink_errors
from .task import BanditTask
from .utils_seed import spawn_generators

logger = logging.getLogger(__name__)


class TestbedConfig(BaseModel):
    """Parameters of one testbed experiment."""

    arm_count: int = Field(10, gt=0, description="Number of actions per task")
    num_tasks: int = Field(2000, gt=0, description="Independent tasks to average over")
    num_plays: int = Field(1000, ge=0, description="Plays per task")
    epsilon: float = Field(0.2, description="Exploration probability")
    seed: int = Field(2025, description="Root seed; each task gets a spawned child")
    output: str = Field("eps_0_2.dat", description="File name of the dumped curve")
    outdir: str = Field("outputs/testbed")
    save_csv: bool = Field(True)
    make_plots: bool = Field(True)


@dataclass
class LearningCurve:
    """Per-play reward sums over a set of tasks.

    Only sums are stored, so merging partial curves is order-independent and
    the mean is taken once at the end.
    """

    sums: np.ndarray
    sq_sums: np.ndarray
    num_tasks: int
    optimal_hits: float = 0.0

    @classmethod
    def empty(cls, num_plays: int) -> "LearningCurve":
        return cls(np.zeros(num_plays, dtype=float), np.zeros(num_plays, dtype=float), 0)

    @classmethod
    def from_rewards(cls, rewards: np.ndarray, optimal_fraction: float = 0.0) -> "LearningCurve":
        r = np.asarray(rewards, dtype=float)
        return cls(r.copy(), r * r, 1, float(optimal_fraction))

    def merge(self, other: "LearningCurve") -> "LearningCurve":
        require(
            self.sums.shape == other.sums.shape,
            f"cannot merge curves of {self.sums.size} and {other.sums.size} plays",
        )
        return LearningCurve(
            self.sums + other.sums,
            self.sq_sums + other.sq_sums,
            self.num_tasks + other.num_tasks,
            self.optimal_hits + other.optimal_hits,
        )

    def mean(self) -> np.ndarray:
        require(self.num_tasks > 0, "learning curve has no tasks")
        return self.sums / self.num_tasks

    def optimal_rate(self) -> float:
        """Mean fraction of plays that picked the task's best arm."""
        require(self.num_tasks > 0, "learning curve has no tasks")
        return self.optimal_hits / self.num_tasks

    def band(self, z: float = 1.96) -> Tuple[np.ndarray, np.ndarray]:
        mean = self.mean()
        n = self.num_tasks
        if n > 1:
            var = np.maximum(self.sq_sums - n * mean * mean, 0.0) / (n - 1)
            half_width = z * np.sqrt(var) / np.sqrt(n)
        else:
            half_width = np.zeros_like(mean)
        return mean - half_width, mean + half_width


def play_task(
    arm_count: int, num_plays: int, epsilon: float, rng: np.random.Generator
) -> Tuple[np.ndarray, float]:
    """Run a fresh (task, bandit) pair sharing ``rng``.

    Returns the per-play rewards and the fraction of plays that chose the
    task's optimal action.
    """
    task = BanditTask(arm_count, rng=rng)
    bandit = EpsilonGreedyBandit(arm_count, epsilon, rng=rng)
    rewards = task.run(bandit, num_plays)
    hits = int(bandit.counts()[task.optimal_action])
    return rewards, (hits / num_plays if num_plays else 0.0)


def run_task(arm_count: int, num_plays: int, epsilon: float, rng: np.random.Generator) -> np.ndarray:
    return play_task(arm_count, num_plays, epsilon, rng)[0]


def merge_curves(curves: Iterable[LearningCurve], num_plays: int) -> LearningCurve:
    total = LearningCurve.empty(num_plays)
    for curve in curves:
        total = total.merge(curve)
    return total


def reduce_rewards(reward_seqs: Iterable[np.ndarray], num_plays: int) -> LearningCurve:
    return merge_curves((LearningCurve.from_rewards(r) for r in reward_seqs), num_plays)


def simulate(
    arm_count: int,
    num_tasks: int,
    num_plays: int,
    epsilon: float,
    seed: int = 2025,
) -> LearningCurve:
    require(int(num_tasks) > 0, f"num_tasks must be positive, got {num_tasks}")
    num_tasks = int(num_tasks)
    report_every = max(1, num_tasks // 10)

    def _curves():
        for i, rng in enumerate(spawn_generators(seed, num_tasks)):
            logger.debug("Task #%d", i)
            rewards, optimal_fraction = play_task(arm_count, num_plays, epsilon, rng)
            yield LearningCurve.from_rewards(rewards, optimal_fraction)
            if (i + 1) % report_every == 0:
                logger.info("Finished %d/%d tasks", i + 1, num_tasks)

    return merge_curves(_curves(), int(num_plays))


def _timestamp_dir(root: str) -> str:
    ts = datetime.utcnow().strftime("%Y%m%d-%H%M%S")
    return ensure_dir(os.path.join(root, ts))


def _tail_mean(mean: np.ndarray, frac: float = 0.1) -> float:
    if mean.size == 0:
        return float("nan")
    k = max(1, int(frac * mean.size))
    return float(mean[-k:].mean())


def run(
    cfg: TestbedConfig,
    outdir: str,
    make_plots: Optional[bool] = None,
    save_csv: Optional[bool] = None,
) -> Dict:
    """Simulate ``cfg`` and write its artifacts under ``outdir``.

    Any failure to create or write an artifact raises ``OutputSinkError``.
    """
    make_plots = cfg.make_plots if make_plots is None else make_plots
    save_csv = cfg.save_csv if save_csv is None else save_csv
    ensure_dir(outdir)

    logger.info(
        "Running %d tasks x %d plays (k=%d, epsilon=%.3f, seed=%d)",
        cfg.num_tasks, cfg.num_plays, cfg.arm_count, cfg.epsilon, cfg.seed,
    )
    curve = simulate(cfg.arm_count, cfg.num_tasks, cfg.num_plays, cfg.epsilon, seed=cfg.seed)
    mean = curve.mean()

    dat_path = dump_sequence(mean, os.path.join(outdir, cfg.output))

    if save_csv:
        lo, hi = curve.band()
        csv_path = os.path.join(outdir, "testbed_curve.csv")
        with sink_errors(csv_path, "curve table"):
            pd.DataFrame(
                {"t": np.arange(1, mean.size + 1), "mean": mean, "lo": lo, "hi": hi}
            ).to_csv(csv_path, index=False)
        logger.info("Saved curve table to %s", csv_path)

    if make_plots:
        png_path = os.path.join(outdir, "testbed_curve.png")
        with sink_errors(png_path, "curve figure"):
            plot_learning_curve(curve, png_path, label=f"ε = {cfg.epsilon:g}")
        logger.info("Saved curve figure to %s", png_path)

    summary = {
        "final_reward": float(mean[-1]) if mean.size else float("nan"),
        "tail_reward": _tail_mean(mean),
        "optimal_action_rate": curve.optimal_rate(),
        "num_tasks": curve.num_tasks,
        "curve_path": dat_path,
    }
    summary_path = os.path.join(outdir, "summary.json")
    with sink_errors(summary_path, "summary"):
        with open(summary_path, "w", encoding="utf-8") as f:
            json.dump({"summary": summary, "config": cfg.model_dump()}, f, indent=2)

    return summary


def run_with_timestamp(cfg: TestbedConfig, base_outdir: str, make_plots: Optional[bool] = None,
                       save_csv: Optional[bool] = None) -> Dict:
    outdir = _timestamp_dir(base_outdir)
    return run(cfg, outdir=outdir, make_plots=make_plots, save_csv=save_csv)
