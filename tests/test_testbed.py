import json
import sys, pathlib
sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))

import numpy as np
import pandas as pd
import pytest

from kbandit.src.testbed.agent import PreconditionError
from kbandit.src.testbed.runner import (
    LearningCurve,
    TestbedConfig as Config,
    play_task,
    reduce_rewards,
    run,
    run_task,
    simulate,
)
from kbandit.src.testbed.sink import OutputSinkError, dump_sequence
from kbandit.src.testbed.utils_seed import spawn_generators


def test_run_task_length():
    rewards = run_task(10, 300, 0.1, np.random.default_rng(0))
    assert rewards.shape == (300,)
    assert np.all(np.isfinite(rewards))


def test_same_seed_same_rewards():
    a = run_task(5, 100, 0.2, np.random.default_rng(42))
    b = run_task(5, 100, 0.2, np.random.default_rng(42))
    np.testing.assert_array_equal(a, b)


def test_mean_of_identical_runs_is_idempotent():
    a = run_task(4, 200, 0.1, np.random.default_rng(7))
    b = run_task(4, 200, 0.1, np.random.default_rng(7))
    curve = reduce_rewards([a, b], 200)
    assert curve.num_tasks == 2
    np.testing.assert_array_equal(curve.mean(), a)


def test_reduction_order_independent():
    seqs = [run_task(10, 150, 0.1, rng) for rng in spawn_generators(3, 6)]
    reference = reduce_rewards(seqs, 150).mean()
    for perm in ([5, 4, 3, 2, 1, 0], [2, 0, 4, 1, 5, 3]):
        curve = reduce_rewards([seqs[i] for i in perm], 150)
        np.testing.assert_allclose(curve.mean(), reference, rtol=0, atol=1e-12)

    left = reduce_rewards(seqs[:2], 150)
    right = reduce_rewards(seqs[2:], 150)
    np.testing.assert_allclose(right.merge(left).mean(), reference, rtol=0, atol=1e-12)


def test_mean_is_over_tasks():
    curve = reduce_rewards([np.array([1.0, 2.0, 3.0]), np.array([3.0, 2.0, 0.0])], 3)
    np.testing.assert_array_equal(curve.mean(), [2.0, 2.0, 1.5])
    lo, hi = curve.band()
    assert np.all(lo <= curve.mean()) and np.all(curve.mean() <= hi)
    assert lo[1] == hi[1] == 2.0


def test_curve_preconditions():
    with pytest.raises(PreconditionError):
        LearningCurve.empty(3).mean()
    with pytest.raises(PreconditionError):
        LearningCurve.empty(3).merge(LearningCurve.empty(4))
    with pytest.raises(PreconditionError):
        simulate(10, 0, 10, 0.1)


def test_simulate_reproducible():
    a = simulate(10, 20, 100, 0.1, seed=11)
    b = simulate(10, 20, 100, 0.1, seed=11)
    c = simulate(10, 20, 100, 0.1, seed=12)
    assert a.num_tasks == 20
    np.testing.assert_array_equal(a.mean(), b.mean())
    assert not np.array_equal(a.mean(), c.mean())


def test_simulate_learns():
    curve = simulate(10, 200, 300, 0.1, seed=2025)
    mean = curve.mean()
    # the first play is a uniform guess, averaging ~0
    assert abs(mean[0]) < 0.4
    assert mean[-50:].mean() > 0.6


def test_dump_sequence(tmp_path):
    path = dump_sequence([0.5, -1.25, 3.0], str(tmp_path / "out" / "curve.dat"))
    assert pathlib.Path(path).read_text(encoding="utf-8") == "0.5\n-1.25\n3.0\n"


def test_dump_sequence_failure(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("x", encoding="utf-8")
    values = [1.0, 2.0]
    with pytest.raises(OutputSinkError):
        dump_sequence(values, str(blocker / "curve.dat"))
    assert values == [1.0, 2.0]
    assert isinstance(OutputSinkError("x"), OSError)


def test_run_smoke(tmp_path):
    cfg = Config(arm_count=5, num_tasks=8, num_plays=60, epsilon=0.1, seed=1, output="eps.dat")
    res = run(cfg, outdir=str(tmp_path), make_plots=False)
    assert res["num_tasks"] == 8
    assert res["final_reward"] == res["final_reward"]

    lines = (tmp_path / "eps.dat").read_text(encoding="utf-8").splitlines()
    assert len(lines) == 60
    expected = simulate(5, 8, 60, 0.1, seed=1).mean()
    np.testing.assert_array_equal([float(x) for x in lines], expected)

    df = pd.read_csv(tmp_path / "testbed_curve.csv")
    assert list(df.columns) == ["t", "mean", "lo", "hi"]
    assert len(df) == 60

    with open(tmp_path / "summary.json", encoding="utf-8") as f:
        summary = json.load(f)
    assert summary["config"]["arm_count"] == 5
    assert 0.0 <= summary["summary"]["optimal_action_rate"] <= 1.0


def test_config_validation():
    with pytest.raises(ValueError):
        Config(arm_count=0)
    assert Config().epsilon == 0.2


def test_cli_writes_artifacts(tmp_path):
    from kbandit.src import run_testbed

    cfg_path = tmp_path / "testbed.yaml"
    cfg_path.write_text("arm_count: 3\nnum_tasks: 4\nnum_plays: 25\nepsilon: 0.2\n", encoding="utf-8")
    outdir = tmp_path / "out"
    code = run_testbed.main(
        ["--config", str(cfg_path), "--plays", "30", "--outdir", str(outdir), "--output", "curve.dat"]
    )
    assert code == 0
    assert len((outdir / "curve.dat").read_text(encoding="utf-8").splitlines()) == 30
    assert (outdir / "testbed_curve.png").exists()
    assert (outdir / "summary.json").exists()


def test_cli_reports_sink_failure(tmp_path):
    from kbandit.src import run_testbed

    blocker = tmp_path / "blocker"
    blocker.write_text("x", encoding="utf-8")
    code = run_testbed.main(
        ["--tasks", "2", "--plays", "5", "--outdir", str(tmp_path), "--output", "blocker/curve.dat", "--no-plots"]
    )
    assert code == 1


def test_cli_reports_unusable_outdir(tmp_path):
    from kbandit.src import run_testbed

    blocker = tmp_path / "blocker"
    blocker.write_text("x", encoding="utf-8")
    code = run_testbed.main(["--tasks", "2", "--plays", "5", "--outdir", str(blocker / "sub"), "--no-plots"])
    assert code == 1


def test_run_wraps_artifact_failures(tmp_path):
    cfg = Config(arm_count=3, num_tasks=2, num_plays=5, seed=4)
    (tmp_path / "file.txt").write_text("x", encoding="utf-8")
    with pytest.raises(OutputSinkError):
        run(cfg, outdir=str(tmp_path / "file.txt" / "sub"), make_plots=False)

    (tmp_path / "testbed_curve.csv").mkdir()
    with pytest.raises(OutputSinkError):
        run(cfg, outdir=str(tmp_path), make_plots=False)
    # the curve itself was written before the table failed
    assert len((tmp_path / cfg.output).read_text(encoding="utf-8").splitlines()) == 5


def test_cli_reads_default_config(tmp_path):
    from kbandit.src import run_testbed

    cfg = run_testbed.load_config(run_testbed.DEFAULT_CONFIG, {"num_tasks": 3})
    assert cfg.arm_count == 10
    assert cfg.num_plays == 1000
    assert cfg.epsilon == 0.2
    assert cfg.num_tasks == 3


def test_optimal_action_rate():
    rewards, frac = play_task(1, 20, 0.5, np.random.default_rng(0))
    assert rewards.shape == (20,)
    assert frac == 1.0

    curve = simulate(10, 100, 300, 0.1, seed=5)
    assert 0.0 <= curve.optimal_rate() <= 1.0
    assert curve.optimal_rate() > 0.25

    merged = reduce_rewards([np.zeros(3)], 3).merge(
        LearningCurve.from_rewards(np.ones(3), optimal_fraction=0.5)
    )
    assert merged.optimal_rate() == 0.25
