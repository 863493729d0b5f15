"""
Selective Repeat ARQ transport protocol and its emulated environment.

Subpackages:
- arq: packet codec, sequence arithmetic, sender, receiver, timers
- channel: unreliable channel model
- utils: logging and metrics
"""

__version__ = "1.0.0"
