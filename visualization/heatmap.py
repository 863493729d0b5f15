"""
Channel Sweep Heatmap Visualization

This module generates 2D heatmaps showing a protocol metric as a function
of the channel's loss and corruption probabilities.
"""

import os
from typing import Dict, List, Optional, Tuple

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns

from config import PLOTS_DIR


# Metric column -> colour bar label
METRIC_LABELS = {
    'throughput': 'Throughput (messages / time unit)',
    'retransmissions': 'Retransmissions',
    'latency_mean': 'Mean delivery latency',
    'efficiency': 'Efficiency (delivered / transmitted)',
    'window_util_mean': 'Mean window utilization',
}


class MetricHeatmap:
    """
    Generates 2D heatmaps of metric(loss, corruption).

    Cells hold the mean of the metric over all runs of a condition.
    """

    def __init__(
        self,
        results: Optional[List[Dict]] = None,
        csv_file: Optional[str] = None
    ):
        """
        Initialize heatmap generator.

        Args:
            results: List of result dictionaries
            csv_file: Path to CSV file with results
        """
        if results:
            self.df = pd.DataFrame(results)
        elif csv_file:
            self.df = pd.read_csv(csv_file)
        else:
            self.df = pd.DataFrame()

    def _create_matrix(self, metric: str) -> pd.DataFrame:
        """
        Pivot the runs into a corruption × loss matrix of mean values.

        Higher corruption probabilities end up at the top of the plot.
        """
        if metric not in self.df.columns:
            raise ValueError(f"Unknown metric: {metric}")

        df = self.df
        if 'error' in df.columns:
            df = df[df['error'].isna()]

        matrix = pd.pivot_table(
            df,
            values=metric,
            index='corrupt_prob',
            columns='loss_prob',
            aggfunc='mean'
        )
        return matrix.sort_index(ascending=False)

    def plot(
        self,
        metric: str = 'throughput',
        output_file: Optional[str] = None,
        title: Optional[str] = None,
        figsize: Tuple[int, int] = (10, 7),
        cmap: str = "viridis",
        show_values: bool = True
    ) -> str:
        """
        Generate and save heatmap.

        Args:
            metric: Result column to plot
            output_file: Output file path (auto-generated if None)
            title: Plot title
            figsize: Figure size (width, height)
            cmap: Colormap name
            show_values: Show values in cells

        Returns:
            Path to saved figure
        """
        if self.df.empty:
            raise ValueError("No results to plot")

        matrix = self._create_matrix(metric)

        fig, ax = plt.subplots(figsize=figsize)
        sns.heatmap(
            matrix,
            annot=show_values,
            fmt='.3f',
            cmap=cmap,
            ax=ax,
            cbar_kws={'label': METRIC_LABELS.get(metric, metric)}
        )

        ax.set_xlabel('Loss probability', fontsize=12)
        ax.set_ylabel('Corruption probability', fontsize=12)
        ax.set_title(title or f"{METRIC_LABELS.get(metric, metric)} vs channel conditions",
                     fontsize=14, fontweight='bold')

        plt.tight_layout()

        if output_file is None:
            os.makedirs(PLOTS_DIR, exist_ok=True)
            output_file = os.path.join(PLOTS_DIR, f'{metric}_heatmap.png')
        else:
            directory = os.path.dirname(output_file)
            if directory:
                os.makedirs(directory, exist_ok=True)

        fig.savefig(output_file, dpi=150, bbox_inches='tight')
        plt.close(fig)

        print(f"Heatmap saved to: {output_file}")
        return output_file

    def plot_all(self, output_dir: str = PLOTS_DIR) -> List[str]:
        """Plot every known metric present in the results."""
        paths = []
        for metric in METRIC_LABELS:
            if metric in self.df.columns:
                paths.append(self.plot(
                    metric=metric,
                    output_file=os.path.join(output_dir, f'{metric}_heatmap.png')
                ))
        return paths


if __name__ == "__main__":
    import random

    print("=" * 60)
    print("HEATMAP GENERATOR TEST")
    print("=" * 60)

    test_results = []
    for loss in [0.0, 0.1, 0.2, 0.3]:
        for corrupt in [0.0, 0.1, 0.2, 0.3]:
            for run in range(3):
                p_ok = (1 - loss) * (1 - corrupt)
                test_results.append({
                    'loss_prob': loss,
                    'corrupt_prob': corrupt,
                    'run_id': run,
                    'throughput': max(0.0, 0.1 * p_ok ** 2 + random.gauss(0, 0.005))
                })

    heatmap = MetricHeatmap(results=test_results)
    print(f"Test complete: {heatmap.plot(title='Test Throughput Heatmap')}")
