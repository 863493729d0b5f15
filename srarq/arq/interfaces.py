"""
Primitives the protocol core consumes from its environment.

The sender and receiver only ever reach the outside world through these
four calls; all of them return immediately.
"""

from typing import Optional, Protocol

from .events import Peer
from .packet import Packet


class NetworkLayer(Protocol):
    """Channel, timer and application hooks provided by the driver."""

    def send_to_channel(self, peer: Peer, packet: Packet) -> None:
        """Hand a packet to the unreliable channel."""
        ...

    def deliver_to_application(self, peer: Peer, payload: bytes) -> None:
        """Hand an in-order payload to the application layer."""
        ...

    def start_timer(self, peer: Peer, duration: float, seqnum: Optional[int] = None) -> None:
        """
        Schedule an on_timer_expire(seqnum) callback after `duration`.

        seqnum=None addresses the single shared timer. Starting a running
        timer reschedules it.
        """
        ...

    def stop_timer(self, peer: Peer, seqnum: Optional[int] = None) -> None:
        """Cancel a timer; a no-op if it is not running."""
        ...
