from typing import List

from numpy.random import SeedSequence, default_rng
import numpy as np

def spawn_generators(seed: int, n: int) -> List[np.random.Generator]:
    """Independent generators, one per task, all derived from ``seed``."""
    return [default_rng(child) for child in SeedSequence(seed).spawn(int(n))]
