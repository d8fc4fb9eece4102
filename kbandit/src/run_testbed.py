"""Average the epsilon-greedy learning curve over many random k-armed tasks."""
from __future__ import annotations

import argparse
import json
import logging
import os
import sys

import yaml

# ensure local imports when run as script
sys.path.append(os.path.dirname(__file__))

DEFAULT_CONFIG = os.path.join(
    os.path.dirname(os.path.abspath(__file__)), os.pardir, os.pardir, "configs", "testbed.yaml"
)

from testbed.runner import TestbedConfig, run, run_with_timestamp  # noqa: E402
from testbed.sink import OutputSinkError  # noqa: E402

logger = logging.getLogger(__name__)


def load_config(path: str | None, overrides: dict) -> TestbedConfig:
    data = {}
    if path:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    data.update({k: v for k, v in overrides.items() if v is not None})
    return TestbedConfig(**data)


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(description=__doc__)
    ap.add_argument("--config", default=DEFAULT_CONFIG, help="YAML file with TestbedConfig fields")
    ap.add_argument("--arms", type=int, dest="arm_count", default=None)
    ap.add_argument("--tasks", type=int, dest="num_tasks", default=None)
    ap.add_argument("--plays", type=int, dest="num_plays", default=None)
    ap.add_argument("--epsilon", type=float, default=None)
    ap.add_argument("--seed", type=int, default=None)
    ap.add_argument("--output", default=None, help="File name of the dumped curve")
    ap.add_argument("--outdir", default=None, help="Base output directory")
    ap.add_argument("--timestamp", action="store_true", help="Write into a timestamped subdirectory")
    ap.add_argument("--no-plots", action="store_true", help="Disable plotting")
    ap.add_argument("-v", "--verbose", action="store_true", help="Log every task")
    args = ap.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="[%(asctime)s][%(levelname)s] %(name)s: %(message)s",
    )

    overrides = {
        "arm_count": args.arm_count,
        "num_tasks": args.num_tasks,
        "num_plays": args.num_plays,
        "epsilon": args.epsilon,
        "seed": args.seed,
        "output": args.output,
        "outdir": args.outdir,
    }
    if args.no_plots:
        overrides["make_plots"] = False
    cfg = load_config(args.config, overrides)

    try:
        if args.timestamp:
            result = run_with_timestamp(cfg, cfg.outdir)
        else:
            result = run(cfg, outdir=cfg.outdir)
    except OutputSinkError as exc:
        logger.error("Could not save results: %s", exc)
        return 1
    print(json.dumps(result, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
