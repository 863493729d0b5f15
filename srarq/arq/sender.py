"""
Selective Repeat ARQ Sender

This module implements the sender side of the Selective Repeat ARQ protocol,
including sliding window management, packet buffering, and timer-driven
selective retransmission.
"""

from typing import Optional, List
from enum import Enum

from config import (
    WINDOW_SIZE, SEQ_SPACE, RTT, PAYLOAD_SIZE,
    TIMER_MODE_PER_PACKET, TIMER_MODE_SHARED
)
from .events import EventKind, EventHandler, Peer, ProtocolEvent
from .interfaces import NetworkLayer
from .packet import Message, Packet, is_corrupted
from .seqspace import in_window, is_valid_seq, next_seq, seq_distance, validate_window


class SlotStatus(Enum):
    """Sender slot state."""
    NOT_SENT = 0
    SENT_UNACKED = 1
    ACKED = 2


class TimerMode(Enum):
    """Retransmission timer model."""
    PER_PACKET = TIMER_MODE_PER_PACKET
    SHARED = TIMER_MODE_SHARED


class SRSender:
    """
    Selective Repeat ARQ Sender.

    Implements the sender side of SR-ARQ with:
    - Sliding window over a wrapping sequence space
    - Per-packet timers (or one shared timer in SHARED mode)
    - Selective retransmission
    - Packet buffering for retransmission

    Attributes:
        window_size: Size of the send window
        seq_space: Size of the sequence space
        timeout: Retransmission timeout
        base: Oldest sequence number not yet acknowledged
        next_seq: Next sequence number to assign
        status: Per-slot state, indexed by sequence number
        buffer: Per-slot outbound packet, indexed by sequence number
    """

    peer = Peer.A

    def __init__(
        self,
        network: NetworkLayer,
        window_size: int = WINDOW_SIZE,
        seq_space: int = SEQ_SPACE,
        timeout: float = RTT,
        payload_size: int = PAYLOAD_SIZE,
        timer_mode: TimerMode = TimerMode.PER_PACKET,
        on_event: Optional[EventHandler] = None
    ):
        """
        Initialize SR sender.

        Args:
            network: Channel/timer primitives
            window_size: Send window size
            seq_space: Sequence space size (>= 2 * window_size)
            timeout: Retransmission timeout
            payload_size: Required message length in bytes
            timer_mode: Per-packet timers or one shared timer
            on_event: Callback receiving every ProtocolEvent
        """
        validate_window(window_size, seq_space)
        if timeout <= 0:
            raise ValueError("Timeout must be positive")

        self.network = network
        self.window_size = window_size
        self.seq_space = seq_space
        self.timeout = timeout
        self.payload_size = payload_size
        self.timer_mode = TimerMode(timer_mode)
        self.on_event = on_event

        self.base = 0
        self.next_seq = 0
        self.status: List[SlotStatus] = []
        self.buffer: List[Optional[Packet]] = []

        self.init()

    def init(self):
        """Reset sender to its initial state, stopping any running timer."""
        if self.status:
            self._stop_all_timers()

        self.base = 0
        self.next_seq = 0
        self.status = [SlotStatus.NOT_SENT] * self.seq_space
        self.buffer = [None] * self.seq_space

        # Statistics
        self.packets_sent = 0
        self.retransmissions = 0
        self.acks_received = 0
        self.duplicate_acks = 0
        self.corrupted_acks = 0
        self.out_of_window_acks = 0
        self.window_full_count = 0
        self.timeouts = 0

        self._emit(EventKind.PEER_INITIALIZED)

    # ------------------------------------------------------------------
    # Window state
    # ------------------------------------------------------------------

    @property
    def outstanding(self) -> int:
        """Sequence numbers in use between base and next_seq."""
        return seq_distance(self.base, self.next_seq, self.seq_space)

    @property
    def unacked_count(self) -> int:
        """Number of slots currently SENT_UNACKED."""
        return sum(1 for seq in self._window_seqs()
                   if self.status[seq] is SlotStatus.SENT_UNACKED)

    @property
    def is_window_full(self) -> bool:
        """Check if window is full."""
        return self.outstanding >= self.window_size

    def slot_status(self, seq_num: int) -> SlotStatus:
        """Get the state of one slot."""
        return self.status[seq_num % self.seq_space]

    def _window_seqs(self) -> List[int]:
        """Sequence numbers from base up to (not including) next_seq."""
        return [(self.base + i) % self.seq_space for i in range(self.outstanding)]

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def send(self, message: Message) -> Optional[Packet]:
        """
        Send an application message if the window allows it.

        Args:
            message: Fixed-length application message

        Returns:
            The transmitted packet, or None if the window was full. A
            rejected message is not queued; retrying is up to the caller.
        """
        if len(message.data) != self.payload_size:
            raise ValueError(
                f"Message must be {self.payload_size} bytes, got {len(message.data)}"
            )

        if self.is_window_full:
            self.window_full_count += 1
            self._emit(EventKind.WINDOW_FULL, self.next_seq,
                       f"{self.outstanding} outstanding")
            return None

        seq_num = self.next_seq
        packet = Packet.make_data(seq_num, message.data)

        # Shared timer covers the oldest outstanding packet
        start_shared = (self.timer_mode is TimerMode.SHARED and self.outstanding == 0)

        self.buffer[seq_num] = packet
        self.status[seq_num] = SlotStatus.SENT_UNACKED
        self.packets_sent += 1
        self.network.send_to_channel(self.peer, packet)
        self._emit(EventKind.PACKET_SENT, seq_num)

        if self.timer_mode is TimerMode.PER_PACKET:
            self.network.start_timer(self.peer, self.timeout, seq_num)
        elif start_shared:
            self.network.start_timer(self.peer, self.timeout)

        self.next_seq = next_seq(seq_num, self.seq_space)
        return packet

    def on_ack(self, packet: Packet) -> bool:
        """
        Process a packet arriving from the channel (always an ACK).

        Args:
            packet: Received ACK packet

        Returns:
            True if the ACK acknowledged a previously unacknowledged packet
        """
        if is_corrupted(packet):
            self.corrupted_acks += 1
            self._emit(EventKind.ACK_CORRUPTED, packet.acknum)
            return False

        ack_num = packet.acknum
        if not (is_valid_seq(ack_num, self.seq_space) and
                in_window(ack_num, self.base, self.outstanding, self.seq_space)):
            self.out_of_window_acks += 1
            self._emit(EventKind.ACK_OUT_OF_WINDOW, ack_num,
                       f"base={self.base}, next={self.next_seq}")
            return False

        if self.status[ack_num] is not SlotStatus.SENT_UNACKED:
            self.duplicate_acks += 1
            self._emit(EventKind.ACK_DUPLICATE, ack_num)
            return False

        self.status[ack_num] = SlotStatus.ACKED
        self.acks_received += 1
        if self.timer_mode is TimerMode.PER_PACKET:
            self.network.stop_timer(self.peer, ack_num)
        self._emit(EventKind.ACK_ACCEPTED, ack_num)

        self._slide_window()

        if self.timer_mode is TimerMode.SHARED and self.unacked_count == 0:
            self.network.stop_timer(self.peer)

        return True

    def on_timer_expire(self, seq_num: Optional[int] = None) -> List[Packet]:
        """
        Handle a timer expiry.

        Args:
            seq_num: Slot whose timer fired, or None for the shared timer

        Returns:
            Packets retransmitted
        """
        if self.timer_mode is TimerMode.SHARED:
            return self._expire_shared()

        if seq_num is None or self.slot_status(seq_num) is not SlotStatus.SENT_UNACKED:
            self._emit(EventKind.TIMEOUT_STALE, seq_num)
            return []

        self.timeouts += 1
        self._emit(EventKind.TIMEOUT, seq_num)
        packet = self._retransmit(seq_num % self.seq_space)
        self.network.start_timer(self.peer, self.timeout, packet.seqnum)
        return [packet]

    # Names used by the event driver
    on_application_message = send
    on_channel_packet = on_ack

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _expire_shared(self) -> List[Packet]:
        """Resend every unacknowledged packet in the window, restart once."""
        self.timeouts += 1
        self._emit(EventKind.TIMEOUT, self.base, "shared timer")

        resent = [self._retransmit(seq) for seq in self._window_seqs()
                  if self.status[seq] is SlotStatus.SENT_UNACKED]
        if resent:
            self.network.start_timer(self.peer, self.timeout)
        return resent

    def _retransmit(self, seq_num: int) -> Packet:
        """Send the buffered copy of a packet again."""
        packet = self.buffer[seq_num]
        self.retransmissions += 1
        self.network.send_to_channel(self.peer, packet)
        self._emit(EventKind.PACKET_RESENT, seq_num)
        return packet

    def _slide_window(self):
        """Slide the window forward past consecutive acknowledged slots."""
        while self.status[self.base] is SlotStatus.ACKED:
            old_base = self.base
            self.status[old_base] = SlotStatus.NOT_SENT
            self.buffer[old_base] = None
            self.base = next_seq(old_base, self.seq_space)
            self._emit(EventKind.WINDOW_SLID, old_base, f"base {old_base} -> {self.base}")

    def _stop_all_timers(self):
        if self.timer_mode is TimerMode.SHARED:
            self.network.stop_timer(self.peer)
            return
        for seq_num, state in enumerate(self.status):
            if state is SlotStatus.SENT_UNACKED:
                self.network.stop_timer(self.peer, seq_num)

    def _emit(self, kind: EventKind, seq_num: Optional[int] = None, detail: str = ""):
        if self.on_event:
            self.on_event(ProtocolEvent(kind, self.peer, seq_num, detail))

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def is_idle(self) -> bool:
        """Check if every sent packet has been acknowledged."""
        return self.outstanding == 0

    def get_window_state(self) -> dict:
        """Get current window state."""
        return {
            'base': self.base,
            'next_seq': self.next_seq,
            'size': self.window_size,
            'outstanding': self.outstanding,
            'unacked': [seq for seq in self._window_seqs()
                        if self.status[seq] is SlotStatus.SENT_UNACKED]
        }

    def get_statistics(self) -> dict:
        """Get sender statistics."""
        return {
            'packets_sent': self.packets_sent,
            'retransmissions': self.retransmissions,
            'acks_received': self.acks_received,
            'duplicate_acks': self.duplicate_acks,
            'corrupted_acks': self.corrupted_acks,
            'out_of_window_acks': self.out_of_window_acks,
            'window_full': self.window_full_count,
            'timeouts': self.timeouts
        }
