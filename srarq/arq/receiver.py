"""
Selective Repeat ARQ Receiver

This module implements the receiver side of the Selective Repeat ARQ protocol,
including sliding window management, out-of-order buffering, and ACK generation.
"""

from typing import Optional, List

from config import WINDOW_SIZE, SEQ_SPACE, PAYLOAD_SIZE
from .events import EventKind, EventHandler, Peer, ProtocolEvent
from .interfaces import NetworkLayer
from .packet import Packet, is_corrupted
from .seqspace import in_window, is_valid_seq, next_seq, previous_window_base, validate_window


class SRReceiver:
    """
    Selective Repeat ARQ Receiver.

    Implements the receiver side of SR-ARQ with:
    - Sliding window management
    - Out-of-order packet buffering
    - Individual (selective) ACK generation
    - In-order, exactly-once delivery to the application

    Attributes:
        window_size: Size of the receive window
        seq_space: Size of the sequence space
        base: Next sequence number to deliver
        received: Per-slot flag, indexed by sequence number
        buffer: Per-slot cached packet, indexed by sequence number
        reack_duplicates: Re-ACK packets from the previous window
    """

    peer = Peer.B

    def __init__(
        self,
        network: NetworkLayer,
        window_size: int = WINDOW_SIZE,
        seq_space: int = SEQ_SPACE,
        payload_size: int = PAYLOAD_SIZE,
        reack_duplicates: bool = True,
        on_event: Optional[EventHandler] = None
    ):
        """
        Initialize SR receiver.

        Args:
            network: Channel/application primitives
            window_size: Receive window size (same as the sender's)
            seq_space: Sequence space size (>= 2 * window_size)
            payload_size: Length of the zero-filled ACK payload
            reack_duplicates: ACK already-delivered packets again so a
                sender whose ACK was lost can slide its window
            on_event: Callback receiving every ProtocolEvent
        """
        validate_window(window_size, seq_space)

        self.network = network
        self.window_size = window_size
        self.seq_space = seq_space
        self.payload_size = payload_size
        self.reack_duplicates = reack_duplicates
        self.on_event = on_event

        self.init()

    def init(self):
        """Reset receiver to its initial state."""
        self.base = 0
        self.received: List[bool] = [False] * self.seq_space
        self.buffer: List[Optional[Packet]] = [None] * self.seq_space

        # Statistics
        self.packets_received = 0
        self.packets_delivered = 0
        self.duplicate_packets = 0
        self.out_of_order_packets = 0
        self.corrupted_packets = 0
        self.out_of_window_packets = 0
        self.acks_sent = 0
        self.reacks_sent = 0

        self._emit(EventKind.PEER_INITIALIZED)

    def on_packet(self, packet: Packet) -> Optional[Packet]:
        """
        Process a packet arriving from the channel.

        Args:
            packet: Received data packet

        Returns:
            ACK packet sent in response, or None
        """
        # A corrupted packet's sequence number cannot be trusted, so no ACK
        if is_corrupted(packet):
            self.corrupted_packets += 1
            self._emit(EventKind.PACKET_CORRUPTED, packet.seqnum)
            return None

        self.packets_received += 1
        seq_num = packet.seqnum

        if not is_valid_seq(seq_num, self.seq_space):
            return self._reject(seq_num)

        if not in_window(seq_num, self.base, self.window_size, self.seq_space):
            previous = previous_window_base(self.base, self.window_size, self.seq_space)
            if in_window(seq_num, previous, self.window_size, self.seq_space):
                self.duplicate_packets += 1
                if self.reack_duplicates:
                    self.reacks_sent += 1
                    self._emit(EventKind.PACKET_REACKED, seq_num)
                    return self._send_ack(seq_num)
                self._emit(EventKind.PACKET_DUPLICATE, seq_num, "already delivered")
                return None
            return self._reject(seq_num)

        if self.received[seq_num]:
            self.duplicate_packets += 1
            self._emit(EventKind.PACKET_DUPLICATE, seq_num)
        else:
            self.buffer[seq_num] = packet
            self.received[seq_num] = True
            if seq_num != self.base:
                self.out_of_order_packets += 1
            self._emit(EventKind.PACKET_CACHED, seq_num)

        ack = self._send_ack(seq_num)
        self._deliver_in_order()
        return ack

    on_channel_packet = on_packet

    def _reject(self, seq_num: int) -> None:
        """Packet that belongs to neither the current nor the previous window."""
        self.out_of_window_packets += 1
        self._emit(EventKind.PACKET_OUT_OF_WINDOW, seq_num,
                   f"base={self.base}, window={self.window_size}")
        return None

    def _send_ack(self, seq_num: int) -> Packet:
        """Send an ACK for one sequence number."""
        ack = Packet.make_ack(seq_num, self.payload_size)
        self.acks_sent += 1
        self.network.send_to_channel(self.peer, ack)
        self._emit(EventKind.ACK_SENT, seq_num)
        return ack

    def _deliver_in_order(self):
        """Deliver buffered packets that are now in order."""
        while self.received[self.base]:
            packet = self.buffer[self.base]
            self.network.deliver_to_application(self.peer, packet.payload)
            self.packets_delivered += 1
            self._emit(EventKind.PACKET_DELIVERED, self.base)

            self.received[self.base] = False
            self.buffer[self.base] = None
            self.base = next_seq(self.base, self.seq_space)

    def _emit(self, kind: EventKind, seq_num: Optional[int] = None, detail: str = ""):
        if self.on_event:
            self.on_event(ProtocolEvent(kind, self.peer, seq_num, detail))

    def get_window_state(self) -> dict:
        """Get current window state."""
        return {
            'base': self.base,
            'size': self.window_size,
            'buffered': [seq for seq in range(self.seq_space) if self.received[seq]]
        }

    def get_statistics(self) -> dict:
        """Get receiver statistics."""
        return {
            'packets_received': self.packets_received,
            'packets_delivered': self.packets_delivered,
            'duplicate_packets': self.duplicate_packets,
            'out_of_order_packets': self.out_of_order_packets,
            'corrupted_packets': self.corrupted_packets,
            'out_of_window_packets': self.out_of_window_packets,
            'acks_sent': self.acks_sent,
            'reacks_sent': self.reacks_sent
        }
