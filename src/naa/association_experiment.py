"""Associate random populations of area X with random populations of area Y.

Every pattern pair is trained for a fixed number of repetitions. After each
compute cycle the segment activity of Y is recorded, so the convergence of
the association can be inspected or plotted.
"""
from __future__ import annotations

import argparse
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from tqdm import tqdm

from naa.algorithm import NeuralAssociationAlgorithm
from naa.building_blocks import CorticalArea
from naa.parameters import AssociationParameters
from naa.sdr import create_random_sdr


@dataclass(frozen=True)
class AssociationExperimentConfig:
    source_cells: int = 1024
    source_sparsity: float = 0.02
    target_cells: int = 100
    target_sparsity: float = 0.05
    num_patterns: int = 10
    repetitions: int = 10
    max_new_synapse_count: int = 5
    seed: int = 42
    plot: bool = False
    plot_path: str = "plots/synaptic_energy.png"


def _resolve_config(
    config: dict[str, Any] | AssociationExperimentConfig | None,
) -> AssociationExperimentConfig:
    if config is None:
        return AssociationExperimentConfig()
    if isinstance(config, AssociationExperimentConfig):
        return config
    return AssociationExperimentConfig(**config)


def _make_patterns(
    config: AssociationExperimentConfig,
) -> list[tuple[np.ndarray, np.ndarray]]:
    rng = np.random.default_rng(config.seed)
    return [
        (
            create_random_sdr(config.source_cells, config.source_sparsity, rng),
            create_random_sdr(config.target_cells, config.target_sparsity, rng),
        )
        for _ in range(config.num_patterns)
    ]


def run_association_experiment(
    config: dict[str, Any] | AssociationExperimentConfig | None = None,
) -> pd.DataFrame:
    """Train every pattern pair and return one row of segment activity per cycle."""
    config_obj = _resolve_config(config)
    area_x = CorticalArea(1, "X", config_obj.source_cells)
    area_y = CorticalArea(2, "Y", config_obj.target_cells)
    parameters = AssociationParameters(
        max_new_synapse_count=config_obj.max_new_synapse_count,
        seed=config_obj.seed,
    )
    naa = NeuralAssociationAlgorithm(parameters, area_y)

    records = []
    patterns = _make_patterns(config_obj)
    for pattern, (sdr_x, sdr_y) in enumerate(tqdm(patterns, desc="Associating")):
        area_x.active_cell_indices = sdr_x
        area_y.active_cell_indices = sdr_y
        for repetition in range(config_obj.repetitions):
            cycle = naa.compute(area_x, learn=True)
            for activity in cycle.activities:
                records.append({"pattern": pattern, "repetition": repetition, **asdict(activity)})

    return pd.DataFrame(records)


def _plot_energy(history: pd.DataFrame, plot_path: str) -> None:
    plt.figure(figsize=(14, 6))
    plt.plot(history["iteration"], history["synaptic_energy"], label="Synaptic energy")
    plt.plot(history["iteration"], history["active_segments"], label="Active segments", alpha=0.8)
    plt.xlabel("Iteration")
    plt.ylabel("Value")
    plt.title("Association of X populations with Y populations")
    plt.legend()
    plt.tight_layout()
    Path(plot_path).parent.mkdir(parents=True, exist_ok=True)
    plt.savefig(plot_path, dpi=150)
    plt.close()


def summarize(history: pd.DataFrame, config: AssociationExperimentConfig) -> dict[str, Any]:
    """Return convergence metrics from the last repetition of every pattern."""
    last = history[history["repetition"] == config.repetitions - 1]
    expected_active = int(config.target_cells * config.target_sparsity)
    return {
        "patterns": int(config.num_patterns),
        "converged_patterns": int(
            (
                (last["inactive_segments"] == 0)
                & (last["cells_without_segments"] == 0)
                & (last["matching_segments"] == 0)
                & (last["active_segments"] == expected_active)
            ).sum()
        ),
        "final_synaptic_energy": float(history["synaptic_energy"].iloc[-1]) if len(history) else 0.0,
    }


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Associate random populations of two cortical areas."
    )
    defaults = AssociationExperimentConfig()
    parser.add_argument("--source-cells", type=int, default=defaults.source_cells)
    parser.add_argument("--source-sparsity", type=float, default=defaults.source_sparsity)
    parser.add_argument("--target-cells", type=int, default=defaults.target_cells)
    parser.add_argument("--target-sparsity", type=float, default=defaults.target_sparsity)
    parser.add_argument("--num-patterns", type=int, default=defaults.num_patterns)
    parser.add_argument("--repetitions", type=int, default=defaults.repetitions)
    parser.add_argument("--max-new-synapse-count", type=int, default=defaults.max_new_synapse_count)
    parser.add_argument("--seed", type=int, default=defaults.seed)
    parser.add_argument("--plot", action="store_true")
    parser.add_argument("--plot-path", default=defaults.plot_path)
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    config = AssociationExperimentConfig(**vars(parse_args(argv)))
    history = run_association_experiment(config)
    metrics = summarize(history, config)
    print("Converged patterns:", metrics["converged_patterns"], "of", metrics["patterns"])
    print("Final synaptic energy:", metrics["final_synaptic_energy"])
    if config.plot:
        _plot_energy(history, config.plot_path)


if __name__ == "__main__":
    main()
