"""
Batch Runner for Channel Sweep Simulations

This module implements the batch runner that executes the protocol over a
grid of channel conditions (loss probability × corruption probability),
several seeded runs per condition.
"""

import os
import time
from typing import Optional, Callable, List, Dict
from dataclasses import dataclass, field
from concurrent.futures import ProcessPoolExecutor, as_completed
import multiprocessing

import pandas as pd
from tqdm import tqdm

from config import (
    LOSS_PROBS, CORRUPT_PROBS, RUNS_PER_CONFIGURATION,
    RNG_SEED_BASE, OUTPUT_DIR, RESULTS_CSV
)
from simulation.simulator import Simulator, SimulatorConfig
from srarq.utils.logger import LogLevel


@dataclass
class RunConfig:
    """Configuration for a single simulation run."""
    loss_prob: float
    corrupt_prob: float
    run_id: int
    seed: int
    overrides: Dict = field(default_factory=dict)


def run_single_simulation(run_config: RunConfig) -> Dict:
    """
    Run a single simulation with given configuration.

    This function is designed to be called in a separate process.

    Args:
        run_config: Configuration for this run

    Returns:
        Flat dictionary with results
    """
    row = {
        'loss_prob': run_config.loss_prob,
        'corrupt_prob': run_config.corrupt_prob,
        'run_id': run_config.run_id,
        'seed': run_config.seed,
    }

    sim = None
    try:
        params = {'log_level': LogLevel.CRITICAL}  # Quiet for batch runs
        params.update(run_config.overrides)
        config = SimulatorConfig(
            loss_prob=run_config.loss_prob,
            corrupt_prob=run_config.corrupt_prob,
            seed=run_config.seed,
            **params
        )

        sim = Simulator(config)
        results = sim.run()

        row.update(sim.metrics.to_csv_row())
        row.update({
            'window_size': config.window_size,
            'timer_mode': config.timer_mode,
            'simulation_time': results['simulation_time'],
            'data_valid': results['verification']['valid'],
            'complete': results['complete'],
            'error': None
        })

    except ValueError as e:
        row.update({'data_valid': False, 'complete': False, 'error': str(e)})

    finally:
        if sim is not None:
            sim.logger.close()

    return row


class BatchRunner:
    """
    Batch Runner for channel sweep simulations.

    Executes all (loss, corruption) combinations with multiple runs each.

    Attributes:
        loss_probs: Loss probabilities to test
        corrupt_probs: Corruption probabilities to test
        runs_per_config: Number of runs per configuration
        overrides: Extra SimulatorConfig fields applied to every run
    """

    def __init__(
        self,
        loss_probs: List[float] = None,
        corrupt_probs: List[float] = None,
        runs_per_config: int = RUNS_PER_CONFIGURATION,
        overrides: Optional[Dict] = None,
        output_file: str = RESULTS_CSV,
        on_progress: Optional[Callable[[int, int, dict], None]] = None
    ):
        """
        Initialize batch runner.

        Args:
            loss_probs: Loss probabilities (default from config)
            corrupt_probs: Corruption probabilities (default from config)
            runs_per_config: Number of runs per (loss, corrupt) pair
            overrides: SimulatorConfig fields shared by all runs
            output_file: Path to output CSV file
            on_progress: Callback for progress updates
        """
        self.loss_probs = loss_probs if loss_probs is not None else LOSS_PROBS
        self.corrupt_probs = corrupt_probs if corrupt_probs is not None else CORRUPT_PROBS
        self.runs_per_config = runs_per_config
        self.overrides = overrides or {}
        self.output_file = output_file
        self.on_progress = on_progress

        self.results: List[Dict] = []

        self.total_runs = (len(self.loss_probs) *
                           len(self.corrupt_probs) *
                           self.runs_per_config)
        self.completed_runs = 0
        self.start_time = 0.0

    def _generate_run_configs(self) -> List[RunConfig]:
        """Generate all run configurations."""
        configs = []

        for i, loss_prob in enumerate(self.loss_probs):
            for j, corrupt_prob in enumerate(self.corrupt_probs):
                for run_id in range(self.runs_per_config):
                    # Unique seed for each run
                    seed = (RNG_SEED_BASE +
                            i * 1000 +
                            j * 100 +
                            run_id * 10000)

                    configs.append(RunConfig(
                        loss_prob=loss_prob,
                        corrupt_prob=corrupt_prob,
                        run_id=run_id,
                        seed=seed,
                        overrides=dict(self.overrides)
                    ))

        return configs

    def _record(self, result: Dict):
        self.results.append(result)
        self.completed_runs += 1
        if self.on_progress:
            self.on_progress(self.completed_runs, self.total_runs, result)

    def run_sequential(self, show_progress: bool = True) -> List[Dict]:
        """
        Run all simulations sequentially.

        Returns:
            List of result dictionaries
        """
        configs = self._generate_run_configs()
        self.results = []
        self.completed_runs = 0
        self.start_time = time.time()

        for config in tqdm(configs, desc="Simulations", disable=not show_progress):
            self._record(run_single_simulation(config))

        if show_progress:
            print(f"Completed {self.total_runs} simulations in {time.time() - self.start_time:.1f}s")

        return self.results

    def run_parallel(self, max_workers: Optional[int] = None, show_progress: bool = True) -> List[Dict]:
        """
        Run simulations in parallel using multiprocessing.

        Args:
            max_workers: Number of parallel workers (default: CPU count)

        Returns:
            List of result dictionaries
        """
        if max_workers is None:
            max_workers = multiprocessing.cpu_count()

        configs = self._generate_run_configs()
        self.results = []
        self.completed_runs = 0
        self.start_time = time.time()

        with ProcessPoolExecutor(max_workers=max_workers) as executor:
            futures = [executor.submit(run_single_simulation, config) for config in configs]

            for future in tqdm(as_completed(futures), total=len(futures),
                               desc="Simulations", disable=not show_progress):
                self._record(future.result())

        # Completion order is arbitrary; keep the grid order stable
        self.results.sort(key=lambda r: (r['loss_prob'], r['corrupt_prob'], r['run_id']))

        if show_progress:
            print(f"Completed {self.total_runs} simulations with {max_workers} workers "
                  f"in {time.time() - self.start_time:.1f}s")

        return self.results

    def to_dataframe(self) -> pd.DataFrame:
        """Results as a DataFrame, one row per run."""
        return pd.DataFrame(self.results)

    def save_results(self, filepath: Optional[str] = None) -> Optional[str]:
        """
        Save results to CSV file.

        Args:
            filepath: Output file path (default: self.output_file)

        Returns:
            Path written, or None if there was nothing to save
        """
        filepath = filepath or self.output_file

        if not self.results:
            print("No results to save!")
            return None

        directory = os.path.dirname(filepath)
        if directory:
            os.makedirs(directory, exist_ok=True)

        self.to_dataframe().to_csv(filepath, index=False)
        print(f"Results saved to: {filepath}")
        return filepath

    def get_aggregated_results(self) -> pd.DataFrame:
        """
        Get aggregated results by (loss, corrupt) pair.

        Returns:
            DataFrame indexed by (loss_prob, corrupt_prob)
        """
        df = self.to_dataframe()
        if df.empty:
            return df

        if 'error' in df.columns:
            df = df[df['error'].isna()]

        grouped = df.groupby(['loss_prob', 'corrupt_prob'])
        aggregated = grouped.agg(
            throughput_mean=('throughput', 'mean'),
            throughput_std=('throughput', 'std'),
            retransmissions_mean=('retransmissions', 'mean'),
            efficiency_mean=('efficiency', 'mean'),
            latency_mean=('latency_mean', 'mean'),
            delivered_mean=('messages_delivered', 'mean'),
            runs=('run_id', 'count'),
            all_valid=('data_valid', 'all'),
            all_complete=('complete', 'all')
        )
        aggregated['throughput_std'] = aggregated['throughput_std'].fillna(0.0)
        return aggregated

    def get_robust_configuration(self) -> Dict:
        """
        Find the harshest channel on which every run delivered correctly.

        Returns:
            Dictionary with the condition and its mean metrics
        """
        aggregated = self.get_aggregated_results()

        if aggregated.empty:
            return {'error': 'No results available'}

        survivors = aggregated[aggregated['all_valid'] & aggregated['all_complete']]
        invalid_runs = int((~self.to_dataframe()['data_valid'].astype(bool)).sum())

        if survivors.empty:
            return {'error': 'No configuration completed every run', 'invalid_runs': invalid_runs}

        harshness = [loss + corrupt for loss, corrupt in survivors.index]
        loss_prob, corrupt_prob = survivors.index[harshness.index(max(harshness))]
        best = survivors.loc[(loss_prob, corrupt_prob)]

        return {
            'loss_prob': loss_prob,
            'corrupt_prob': corrupt_prob,
            'mean_throughput': float(best['throughput_mean']),
            'throughput_std': float(best['throughput_std']),
            'mean_efficiency': float(best['efficiency_mean']),
            'mean_retransmissions': float(best['retransmissions_mean']),
            'invalid_runs': invalid_runs
        }


if __name__ == "__main__":
    print("=" * 60)
    print("BATCH RUNNER TEST")
    print("=" * 60)

    runner = BatchRunner(
        loss_probs=[0.0, 0.2],
        corrupt_probs=[0.0, 0.2],
        runs_per_config=2,
        overrides={'num_messages': 20},
        output_file=os.path.join(OUTPUT_DIR, "test_results.csv")
    )

    print(f"\nTest configuration:")
    print(f"  Loss probabilities: {runner.loss_probs}")
    print(f"  Corruption probabilities: {runner.corrupt_probs}")
    print(f"  Runs per config: {runner.runs_per_config}")
    print(f"  Total runs: {runner.total_runs}")

    runner.run_sequential()
    runner.save_results()

    print("\nAggregated results:")
    print(runner.get_aggregated_results()[['throughput_mean', 'retransmissions_mean', 'all_valid']])

    robust = runner.get_robust_configuration()
    print(f"\nHarshest fully-delivered channel: loss={robust.get('loss_prob')}, "
          f"corrupt={robust.get('corrupt_prob')}")
