"""
Utilities package - Helper functions and classes.

Contains implementations for:
- Metrics calculation (throughput, efficiency, latency)
- Logging utilities
"""

from .metrics import MetricsCollector
from .logger import SimulationLogger, LogLevel

__all__ = [
    'MetricsCollector',
    'SimulationLogger',
    'LogLevel'
]
