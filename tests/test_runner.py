"""
Tests for the batch runner and heatmap generation.
"""

import pytest
import sys
import os

import pandas as pd

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from simulation.runner import BatchRunner, RunConfig, run_single_simulation
from simulation.simulator import Simulator
from visualization.heatmap import MetricHeatmap


@pytest.fixture(scope="module")
def sweep(tmp_path_factory):
    output = tmp_path_factory.mktemp("sweep") / "results.csv"
    runner = BatchRunner(
        loss_probs=[0.0, 0.2],
        corrupt_probs=[0.0, 0.1],
        runs_per_config=2,
        overrides={'num_messages': 10},
        output_file=str(output)
    )
    runner.run_sequential(show_progress=False)
    return runner


class TestRunSingleSimulation:
    """Tests for one sweep point."""

    def test_result_row(self):
        row = run_single_simulation(RunConfig(loss_prob=0.1, corrupt_prob=0.0, run_id=0, seed=5,
                                              overrides={'num_messages': 8}))

        assert row['error'] is None
        assert row['data_valid']
        assert row['complete']
        assert row['loss_prob'] == 0.1
        assert row['messages_delivered'] == row['messages_accepted']

    def test_invalid_configuration_reported(self):
        row = run_single_simulation(RunConfig(loss_prob=0.0, corrupt_prob=0.0, run_id=0, seed=5,
                                              overrides={'window_size': 40}))

        assert row['error'] is not None
        assert not row['data_valid']

    def test_log_file_closed(self, tmp_path, monkeypatch):
        """The run's log file is closed before the row is returned."""
        simulators = []
        original_run = Simulator.run

        def run(sim):
            simulators.append(sim)
            return original_run(sim)

        monkeypatch.setattr(Simulator, 'run', run)
        path = tmp_path / "run.log"
        row = run_single_simulation(RunConfig(loss_prob=0.0, corrupt_prob=0.0, run_id=0, seed=5,
                                              overrides={'num_messages': 3,
                                                         'log_file': str(path)}))

        assert row['error'] is None
        assert len(simulators) == 1
        assert simulators[0].logger.file is None
        assert path.exists()


class TestBatchRunner:
    """Tests for the channel sweep."""

    def test_run_count(self, sweep):
        assert sweep.total_runs == 8
        assert len(sweep.results) == 8
        assert sweep.completed_runs == 8

    def test_unique_seeds(self, sweep):
        seeds = [r['seed'] for r in sweep.results]
        assert len(set(seeds)) == len(seeds)

    def test_all_runs_valid(self, sweep):
        assert all(r['error'] is None for r in sweep.results)
        assert all(r['data_valid'] and r['complete'] for r in sweep.results)

    def test_save_results(self, sweep):
        path = sweep.save_results()

        df = pd.read_csv(path)
        assert len(df) == 8
        assert {'loss_prob', 'corrupt_prob', 'throughput', 'retransmissions'} <= set(df.columns)

    def test_aggregation(self, sweep):
        aggregated = sweep.get_aggregated_results()

        assert len(aggregated) == 4
        assert (aggregated['runs'] == 2).all()
        assert aggregated['all_valid'].all()

    def test_robust_configuration(self, sweep):
        robust = sweep.get_robust_configuration()

        assert robust['loss_prob'] == 0.2
        assert robust['corrupt_prob'] == 0.1
        assert robust['invalid_runs'] == 0

    def test_progress_callback(self):
        calls = []
        runner = BatchRunner(loss_probs=[0.0], corrupt_probs=[0.0], runs_per_config=2,
                             overrides={'num_messages': 3},
                             on_progress=lambda done, total, result: calls.append((done, total)))
        runner.run_sequential(show_progress=False)

        assert calls == [(1, 2), (2, 2)]

    def test_empty_results(self, tmp_path):
        runner = BatchRunner(loss_probs=[], corrupt_probs=[], output_file=str(tmp_path / "x.csv"))

        assert runner.save_results() is None
        assert 'error' in runner.get_robust_configuration()


class TestMetricHeatmap:
    """Tests for heatmap output."""

    def test_matrix_layout(self, sweep):
        heatmap = MetricHeatmap(results=sweep.results)
        matrix = heatmap._create_matrix('throughput')

        assert list(matrix.columns) == [0.0, 0.2]
        assert list(matrix.index) == [0.1, 0.0]

    def test_plot_written(self, sweep, tmp_path):
        heatmap = MetricHeatmap(results=sweep.results)
        path = heatmap.plot(metric='retransmissions', output_file=str(tmp_path / "retx.png"))

        assert os.path.getsize(path) > 0

    def test_plot_from_csv(self, sweep, tmp_path):
        csv_path = sweep.save_results(str(tmp_path / "results.csv"))
        paths = MetricHeatmap(csv_file=csv_path).plot_all(output_dir=str(tmp_path / "plots"))

        assert len(paths) >= 3
        assert all(os.path.exists(p) for p in paths)

    def test_unknown_metric(self, sweep):
        with pytest.raises(ValueError):
            MetricHeatmap(results=sweep.results).plot(metric='goodput')

    def test_no_results(self):
        with pytest.raises(ValueError):
            MetricHeatmap().plot()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
