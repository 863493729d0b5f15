"""
Simulation package - Emulated environment and runners.

Contains:
- Application source and delivery verifier
- Event-driven simulator
- Batch runner for channel sweeps
"""

from .application import MessageSource, DeliveryVerifier
from .simulator import Simulator, SimulatorConfig
from .runner import BatchRunner, RunConfig, run_single_simulation

__all__ = [
    'MessageSource',
    'DeliveryVerifier',
    'Simulator',
    'SimulatorConfig',
    'BatchRunner',
    'RunConfig',
    'run_single_simulation'
]
