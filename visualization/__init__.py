"""
Visualization package - Plotting and visualization tools.

Contains:
- Heatmaps of sweep metrics over channel conditions
"""

from .heatmap import MetricHeatmap, METRIC_LABELS

__all__ = [
    'MetricHeatmap',
    'METRIC_LABELS'
]
