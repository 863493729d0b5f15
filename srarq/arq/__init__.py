"""
ARQ package - Selective Repeat ARQ protocol components.

Contains implementations for:
- Packet structure and checksum
- Sequence-space arithmetic
- Sender with window management and selective retransmission
- Receiver with out-of-order buffering
- Timer management
"""

from .packet import Packet, Message, compute_checksum, is_corrupted
from .events import EventKind, Peer, ProtocolEvent
from .interfaces import NetworkLayer
from .seqspace import in_window
from .sender import SRSender, SlotStatus, TimerMode
from .receiver import SRReceiver
from .timer import TimerManager, Timer

__all__ = [
    'Packet',
    'Message',
    'compute_checksum',
    'is_corrupted',
    'EventKind',
    'Peer',
    'ProtocolEvent',
    'NetworkLayer',
    'in_window',
    'SRSender',
    'SlotStatus',
    'TimerMode',
    'SRReceiver',
    'TimerManager',
    'Timer'
]
