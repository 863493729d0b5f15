"""
Packet Structure for Selective Repeat ARQ Protocol

This module defines the packet and message structures exchanged by the
sender and receiver, together with the additive checksum used by both
peers to detect corruption.
"""

from dataclasses import dataclass, replace

from config import PAYLOAD_SIZE, NOT_IN_USE


@dataclass(frozen=True)
class Message:
    """
    Application-layer message.

    Carries no sequencing information; the sender assigns a sequence
    number when it embeds the data in a packet.

    Attributes:
        data: Fixed-length payload bytes
    """

    data: bytes

    def __len__(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class Packet:
    """
    Transport packet.

    Packets are immutable values. A channel that corrupts a packet produces
    a modified copy, so the copy kept in the sender's buffer for
    retransmission is never affected.

    Attributes:
        seqnum: Sequence number (NOT_IN_USE for pure ACKs)
        acknum: Acknowledged sequence number (NOT_IN_USE for data)
        payload: Fixed-length payload (zero-filled for ACKs)
        checksum: seqnum + acknum + sum of payload bytes
    """

    seqnum: int
    acknum: int
    payload: bytes = b''
    checksum: int = 0

    @property
    def is_ack(self) -> bool:
        """Check if this is a pure ACK packet."""
        return self.seqnum == NOT_IN_USE

    @property
    def payload_size(self) -> int:
        """Get payload size."""
        return len(self.payload)

    def with_checksum(self) -> 'Packet':
        """Return a copy carrying the checksum of its current fields."""
        return replace(self, checksum=compute_checksum(self))

    @classmethod
    def make_data(cls, seqnum: int, payload: bytes) -> 'Packet':
        """
        Create a DATA packet.

        Args:
            seqnum: Sequence number
            payload: Packet payload

        Returns:
            DATA packet with a valid checksum
        """
        return cls(seqnum=seqnum, acknum=NOT_IN_USE, payload=bytes(payload)).with_checksum()

    @classmethod
    def make_ack(cls, acknum: int, payload_size: int = PAYLOAD_SIZE) -> 'Packet':
        """
        Create an ACK packet.

        Args:
            acknum: Acknowledged sequence number
            payload_size: Length of the zero-filled payload

        Returns:
            ACK packet with a valid checksum
        """
        return cls(seqnum=NOT_IN_USE, acknum=acknum, payload=bytes(payload_size)).with_checksum()

    def __repr__(self) -> str:
        kind = "ACK" if self.is_ack else "DATA"
        return (f"Packet(type={kind}, seq={self.seqnum}, ack={self.acknum}, "
                f"payload_len={len(self.payload)}, checksum={self.checksum})")


def compute_checksum(packet: Packet) -> int:
    """
    Compute the additive checksum of a packet.

    The channel may overwrite header fields or payload bytes but never the
    stored checksum, so any single-field change shows up as a mismatch.
    Collisions from multi-byte changes are accepted.
    """
    return packet.seqnum + packet.acknum + sum(packet.payload)


def is_corrupted(packet: Packet) -> bool:
    """Check whether the stored checksum disagrees with the packet's fields."""
    return packet.checksum != compute_checksum(packet)
