"""
Protocol events emitted by the sender and receiver.

The state machines never format or print anything themselves; they report
each transition as a ProtocolEvent to an optional callback, and the logger
and metrics collector decide what to do with it.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional


class Peer(Enum):
    """Peer identifiers."""
    A = 0  # sender
    B = 1  # receiver

    @property
    def other(self) -> 'Peer':
        return Peer.B if self is Peer.A else Peer.A


class EventKind(Enum):
    """Kinds of protocol events."""
    PEER_INITIALIZED = "init"

    # Sender
    PACKET_SENT = "packet_sent"
    PACKET_RESENT = "packet_resent"
    WINDOW_FULL = "window_full"
    ACK_CORRUPTED = "ack_corrupted"
    ACK_ACCEPTED = "ack_accepted"
    ACK_DUPLICATE = "ack_duplicate"
    ACK_OUT_OF_WINDOW = "ack_out_of_window"
    WINDOW_SLID = "window_slid"
    TIMEOUT = "timeout"
    TIMEOUT_STALE = "timeout_stale"

    # Receiver
    PACKET_CORRUPTED = "packet_corrupted"
    PACKET_CACHED = "packet_cached"
    PACKET_DUPLICATE = "packet_duplicate"
    ACK_SENT = "ack_sent"
    PACKET_DELIVERED = "packet_delivered"
    PACKET_REACKED = "packet_reacked"
    PACKET_OUT_OF_WINDOW = "packet_out_of_window"


@dataclass(frozen=True)
class ProtocolEvent:
    """
    A single protocol state transition.

    Attributes:
        kind: What happened
        peer: Which peer it happened at
        seqnum: Sequence (or ACK) number involved, if any
        detail: Short free-form context, e.g. "base 3 -> 4"
    """
    kind: EventKind
    peer: Peer
    seqnum: Optional[int] = None
    detail: str = ""


EventHandler = Callable[[ProtocolEvent], None]
