import argparse
import sys
import time
from pathlib import Path

import numpy as np

# Allow running as: python experiments/quick_forest_eval.py
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from model_artifact import train_model
from tuner import HyperparameterGrid, results_frame

FEATURE_NAMES = [
    "recent_assists_avg",
    "season_assists_avg",
    "minutes_avg",
    "usage_rate",
    "opponent_pace",
    "home_game",
    "rest_days",
    "teammate_injuries",
]


def make_assists_dataset(n_samples: int, random_state: int):
    """Synthetic game rows: assists driven by form, minutes and usage, plus noise features."""
    rng = np.random.default_rng(random_state)
    recent = rng.gamma(shape=2.0, scale=2.0, size=n_samples)
    season = recent + rng.normal(scale=0.8, size=n_samples)
    minutes = rng.uniform(10.0, 38.0, size=n_samples)
    usage = rng.uniform(0.12, 0.35, size=n_samples)
    pace = rng.normal(loc=98.0, scale=3.0, size=n_samples)
    home = rng.integers(0, 2, size=n_samples).astype(np.float64)
    rest = rng.integers(0, 4, size=n_samples).astype(np.float64)
    injuries = rng.choice([0.0, 0.5, 1.0], size=n_samples, p=[0.8, 0.15, 0.05])

    expected = 0.45 * recent + 0.35 * season + 0.08 * minutes + 6.0 * usage + 0.5 * injuries
    y = rng.poisson(np.clip(expected - 2.0, 0.1, None)).astype(np.float64)
    X = np.column_stack([recent, season, minutes, usage, pace, home, rest, injuries])
    return X, y


def _int_list(text: str) -> list[int]:
    return [int(v) for v in text.split(",") if v.strip()]


def _max_features_list(text: str) -> list:
    values = []
    for v in (s.strip() for s in text.split(",")):
        if not v:
            continue
        values.append(v if v in {"sqrt", "log2"} else float(v))
    return values


def main():
    parser = argparse.ArgumentParser(description="Quick random-forest grid search on synthetic assists data")
    parser.add_argument("--n-samples", type=int, default=1200)
    parser.add_argument("--n-estimators", type=str, default="25,50")
    parser.add_argument("--max-depth", type=str, default="4,8")
    parser.add_argument("--min-samples-split", type=str, default="5")
    parser.add_argument("--min-samples-leaf", type=str, default="2")
    parser.add_argument("--max-features", type=str, default="sqrt")
    parser.add_argument("--random-state", type=int, default=42)
    parser.add_argument("--test-fraction", type=float, default=0.2)
    parser.add_argument("--n-jobs", type=int, default=1)
    parser.add_argument("--top-features", type=int, default=10)
    parser.add_argument("--output", type=str, default=None, help="Optional path to save the trained model")
    args = parser.parse_args()

    X, y = make_assists_dataset(args.n_samples, args.random_state)
    grid = HyperparameterGrid(
        n_estimators=_int_list(args.n_estimators),
        max_depth=_int_list(args.max_depth),
        min_samples_split=_int_list(args.min_samples_split),
        min_samples_leaf=_int_list(args.min_samples_leaf),
        max_features=_max_features_list(args.max_features),
        random_seed=[args.random_state],
    )
    print(f"Dataset n={X.shape[0]} d={X.shape[1]} grid_size={len(grid)}")

    t0 = time.perf_counter()
    artifact = train_model(
        X,
        y,
        FEATURE_NAMES,
        grid=grid,
        test_fraction=args.test_fraction,
        n_jobs=args.n_jobs,
    )
    fit_time = time.perf_counter() - t0

    print(f"\nTuning finished in {fit_time:.2f}s")
    print(results_frame(artifact.tuning_results).to_string(index=False))

    train_m = artifact.train_metrics
    test_m = artifact.test_metrics
    print(
        "\nBest model"
        f" train_r2={train_m.r2:.3f}"
        f" test_r2={test_m.r2:.3f}"
        f" test_rmse={test_m.rmse:.3f}"
        f" test_mae={test_m.mae:.3f}"
    )

    print(f"\nTop {args.top_features} features:")
    for i, (name, score) in enumerate(artifact.top_features(args.top_features), start=1):
        print(f"  {i}. {name}: {score * 100:.2f}%")

    if args.output:
        path = artifact.save(args.output)
        print(f"\nSaved model to: {path}")


if __name__ == "__main__":
    main()
