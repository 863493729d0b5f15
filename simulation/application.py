"""
Application Layer Implementation

This module implements both ends of the application: the source that
produces fixed-size messages for the sender, and the verifier that checks
what the receiver delivers.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from config import PAYLOAD_SIZE
from srarq.arq.packet import Message


class MessageSource:
    """
    Generates application messages.

    Message i is PAYLOAD_SIZE copies of the letter chr(97 + i % 26), so
    consecutive messages read "aaaa...", "bbbb...", and so on.
    """

    def __init__(self, payload_size: int = PAYLOAD_SIZE):
        self.payload_size = payload_size
        self.generated = 0

    @staticmethod
    def make_message(index: int, payload_size: int = PAYLOAD_SIZE) -> Message:
        """Build the message with the given index."""
        return Message(bytes([97 + index % 26]) * payload_size)

    def next_message(self) -> Message:
        """Produce the next message."""
        message = self.make_message(self.generated, self.payload_size)
        self.generated += 1
        return message

    def reset(self):
        self.generated = 0


@dataclass
class DeliveryVerifier:
    """
    Checks what the receiving application got against what was sent.

    Every message the sender accepted is recorded in order together with the
    time it was accepted; every delivery is recorded as it happens. Because
    the stream must arrive in order and exactly once, the delivered sequence
    must always equal a prefix of the accepted one.
    """

    accepted: List[bytes] = field(default_factory=list)
    accept_times: List[float] = field(default_factory=list)
    delivered: List[bytes] = field(default_factory=list)
    mismatches: int = 0

    def record_accepted(self, payload: bytes, time: float = 0.0):
        self.accepted.append(payload)
        self.accept_times.append(time)

    def record_delivery(self, payload: bytes, time: float = 0.0) -> Optional[float]:
        """
        Record a delivered payload.

        Returns:
            Delivery latency, or None if the payload is not the one expected next
        """
        index = len(self.delivered)
        self.delivered.append(payload)

        if index >= len(self.accepted) or self.accepted[index] != payload:
            self.mismatches += 1
            return None
        return time - self.accept_times[index]

    @property
    def pending(self) -> int:
        """Accepted messages not yet delivered."""
        return max(0, len(self.accepted) - len(self.delivered))

    def is_complete(self) -> bool:
        return len(self.delivered) == len(self.accepted)

    def verify(self) -> Tuple[bool, dict]:
        """
        Verify order preservation and exactly-once delivery.

        Returns:
            Tuple of (valid, details)
        """
        in_order = (self.mismatches == 0 and
                    self.delivered == self.accepted[:len(self.delivered)])
        no_extra = len(self.delivered) <= len(self.accepted)

        return in_order and no_extra, {
            'accepted': len(self.accepted),
            'delivered': len(self.delivered),
            'pending': self.pending,
            'in_order': in_order,
            'no_duplicates': no_extra and in_order,
            'complete': self.is_complete()
        }

    def reset(self):
        self.accepted.clear()
        self.accept_times.clear()
        self.delivered.clear()
        self.mismatches = 0
