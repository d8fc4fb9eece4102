from __future__ import annotations

import matplotlib.pyplot as plt
import numpy as np


def plot_learning_curve(
    curve,
    out_png: str,
    *,
    label: str = "ε-Greedy",
    show_band: bool = True,
) -> None:
    mean = curve.mean()
    T = np.arange(1, mean.size + 1)

    plt.figure(figsize=(8, 5))
    plt.plot(T, mean, label=label)
    if show_band:
        lo, hi = curve.band()
        plt.fill_between(T, lo, hi, alpha=0.2)

    plt.xlabel("Plays")
    plt.ylabel("Average reward")
    caption = f"Mean over {curve.num_tasks} tasks; rewards ~ N(q*(a), 1), q*(a) ~ N(0, 1)"
    plt.title("k-armed testbed")
    plt.legend()
    plt.tight_layout()
    plt.figtext(0.5, -0.02, caption, ha="center", fontsize=8)
    plt.savefig(out_png, bbox_inches="tight", dpi=200)
    plt.close()
