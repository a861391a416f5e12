#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
from pathlib import Path
from datetime import datetime
from typing import Dict, Optional, Tuple

import pandas as pd

from pomcp.config import Config
from pomcp.pomdp.config import load_experiment
from pomcp.pomdp.problems import initial_belief, make_problem
from pomcp.pomdp.simulate import run_episodes


def summarize(df: pd.DataFrame) -> Dict[str, float]:
    """Aggregate per-episode results into summary metrics."""
    return {
        "episodes": int(len(df)),
        "mean_reward": float(df["total_reward"].mean()),
        "std_reward": float(df["total_reward"].std(ddof=0)),
        "mean_discounted_reward": float(df["discounted_reward"].mean()),
        "mean_steps": float(df["steps"].mean()),
        "depleted_episodes": int(df["depleted"].sum()),
    }


def resolve_config_path(config: str) -> Path:
    """An existing path as given, otherwise a bundled experiment name under Config.CONFIGS_DIR."""
    path = Path(config)
    if path.exists():
        return path
    bundled = Config.CONFIGS_DIR / f"{path.stem}.yaml"
    if bundled.exists():
        return bundled
    raise FileNotFoundError(f"No experiment file {config} (also looked in {Config.CONFIGS_DIR})")


def run_experiment(config_path: str, out_dir: Optional[str] = None) -> Tuple[pd.DataFrame, Dict[str, float], Path]:
    """
    Run every episode of an experiment file and write its outputs.

    Returns:
        (per-episode DataFrame, summary metrics, output directory)
    """
    cfg = load_experiment(str(resolve_config_path(config_path)))
    model = make_problem(cfg.problem)
    df = run_episodes(model, initial_belief(model), cfg.planner, cfg.episodes, cfg.steps, cfg.seed)
    metrics = summarize(df)

    if out_dir:
        out_path = Path(out_dir)
    else:
        ts = datetime.now().strftime("%Y%m%d_%H%M%S")
        base = Path(cfg.outputs.out_dir) if cfg.outputs.out_dir else Config.ensure_runs_dir()
        out_path = base / cfg.name / ts
    out_path.mkdir(parents=True, exist_ok=True)

    if cfg.outputs.save_csv:
        df.to_csv(out_path / "episodes.csv", index=False)
    with open(out_path / "metrics.json", "w", encoding="utf-8") as f:
        json.dump(metrics, f, indent=2, sort_keys=True)

    return df, metrics, out_path


def main() -> int:
    parser = argparse.ArgumentParser(description="Run POMCP episodes for an experiment file.")
    parser.add_argument("--config", required=True, help="Path to experiment YAML, or the name of a bundled experiment (e.g. tiger).")
    parser.add_argument("--out-dir", dest="out_dir", type=str, default=None,
                        help="Output directory (if not provided, uses <out_dir or RUNS_DIR>/<name>/<timestamp>/)")
    args = parser.parse_args()

    df, metrics, out_path = run_experiment(args.config, args.out_dir)

    print(f"Experiment: {Path(args.config).stem}")
    for k, v in metrics.items():
        print(f"{k}: {v:.6f}" if isinstance(v, float) else f"{k}: {v}")
    print(f"Outputs: {out_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
