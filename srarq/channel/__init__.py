"""
Channel package - Emulated network channel models.

Contains implementations for:
- Lossy, corrupting, order-preserving channel
"""

from .unreliable import UnreliableChannel, TransmissionOutcome, CorruptionKind

__all__ = [
    'UnreliableChannel',
    'TransmissionOutcome',
    'CorruptionKind'
]
