"""
Unreliable Channel Model

This module implements the emulated network between the two peers. Each
packet handed to the channel is independently lost or corrupted with fixed
probabilities and delayed by a random amount. Packets travelling in the same
direction are never reordered: a packet cannot arrive before one sent
earlier in that direction.
"""

import numpy as np
from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, Hashable, Optional, Union

from config import (
    DEFAULT_LOSS_PROB, DEFAULT_CORRUPT_PROB,
    MIN_CHANNEL_DELAY, MAX_CHANNEL_DELAY, CORRUPTED_FIELD_VALUE
)
from ..arq.packet import Packet


class CorruptionKind(Enum):
    """Which part of a packet the channel damaged."""
    PAYLOAD = 0
    SEQNUM = 1
    ACKNUM = 2


@dataclass(frozen=True)
class TransmissionOutcome:
    """
    Result of handing one packet to the channel.

    Attributes:
        packet: Packet as it will arrive (possibly corrupted), None if lost
        arrival_time: Absolute arrival time, None if lost
        corruption: What was damaged, None if intact
    """
    packet: Optional[Packet]
    arrival_time: Optional[float]
    corruption: Optional[CorruptionKind] = None

    @property
    def lost(self) -> bool:
        return self.packet is None

    @property
    def corrupted(self) -> bool:
        return self.corruption is not None


class UnreliableChannel:
    """
    Lossy, corrupting, order-preserving channel.

    Corruption follows the classic emulator split: three times in four a
    payload byte changes, otherwise the sequence or acknowledgment number is
    overwritten. The stored checksum is never touched.

    Attributes:
        loss_prob: Probability a packet is dropped
        corrupt_prob: Probability a surviving packet is corrupted
        min_delay: Minimum one-way delay
        max_delay: Maximum one-way delay
        rng: Random number generator
    """

    def __init__(
        self,
        loss_prob: float = DEFAULT_LOSS_PROB,
        corrupt_prob: float = DEFAULT_CORRUPT_PROB,
        min_delay: float = MIN_CHANNEL_DELAY,
        max_delay: float = MAX_CHANNEL_DELAY,
        seed: Union[int, np.random.SeedSequence, None] = None
    ):
        """
        Initialize the channel.

        Args:
            loss_prob: Probability a packet is dropped
            corrupt_prob: Probability a surviving packet is corrupted
            min_delay: Minimum one-way delay
            max_delay: Maximum one-way delay
            seed: Random seed or SeedSequence for reproducibility
        """
        for name, prob in (("loss", loss_prob), ("corruption", corrupt_prob)):
            if not 0.0 <= prob <= 1.0:
                raise ValueError(f"{name} probability must be in [0, 1], got {prob}")
        if min_delay <= 0 or max_delay < min_delay:
            raise ValueError("Channel delays must satisfy 0 < min_delay <= max_delay")

        self.loss_prob = loss_prob
        self.corrupt_prob = corrupt_prob
        self.min_delay = min_delay
        self.max_delay = max_delay

        self.rng = np.random.default_rng(seed)

        # Latest scheduled arrival per direction
        self.last_arrival: Dict[Hashable, float] = {}

        self.reset_statistics()

    def transmit(self, packet: Packet, direction: Hashable, current_time: float) -> TransmissionOutcome:
        """
        Send one packet through the channel.

        Args:
            packet: Packet to transmit
            direction: Identifies the sending side; order is kept per direction
            current_time: Current simulation time

        Returns:
            TransmissionOutcome describing what the far side will see
        """
        self.packets_transmitted += 1

        if self.rng.random() < self.loss_prob:
            self.packets_lost += 1
            return TransmissionOutcome(packet=None, arrival_time=None)

        corruption = None
        if self.rng.random() < self.corrupt_prob:
            packet, corruption = self._corrupt(packet)
            self.packets_corrupted += 1

        # Never overtake a packet already in flight in the same direction
        start = max(current_time, self.last_arrival.get(direction, current_time))
        arrival_time = start + self.rng.uniform(self.min_delay, self.max_delay)
        self.last_arrival[direction] = arrival_time

        self.packets_delivered += 1
        return TransmissionOutcome(packet=packet, arrival_time=arrival_time, corruption=corruption)

    def _corrupt(self, packet: Packet):
        """Return a damaged copy of the packet and what was damaged."""
        x = self.rng.random()

        if x < 0.75 and packet.payload:
            index = int(self.rng.integers(len(packet.payload)))
            payload = bytearray(packet.payload)
            payload[index] = (payload[index] + int(self.rng.integers(1, 256))) % 256
            return replace(packet, payload=bytes(payload)), CorruptionKind.PAYLOAD

        if x < 0.875:
            return replace(packet, seqnum=CORRUPTED_FIELD_VALUE), CorruptionKind.SEQNUM

        return replace(packet, acknum=CORRUPTED_FIELD_VALUE), CorruptionKind.ACKNUM

    def get_statistics(self) -> dict:
        """
        Get channel statistics.

        Returns:
            Dictionary with transmission statistics
        """
        total = self.packets_transmitted
        return {
            'packets_transmitted': total,
            'packets_lost': self.packets_lost,
            'packets_corrupted': self.packets_corrupted,
            'packets_delivered': self.packets_delivered,
            'observed_loss_rate': self.packets_lost / total if total > 0 else 0,
            'observed_corruption_rate': (self.packets_corrupted / self.packets_delivered
                                         if self.packets_delivered > 0 else 0)
        }

    def reset_statistics(self):
        """Reset all statistics counters."""
        self.packets_transmitted = 0
        self.packets_lost = 0
        self.packets_corrupted = 0
        self.packets_delivered = 0

    def reset(self, seed: Union[int, np.random.SeedSequence, None] = None):
        """
        Reset the channel to initial state.

        Args:
            seed: New random seed (optional)
        """
        if seed is not None:
            self.rng = np.random.default_rng(seed)
        self.last_arrival.clear()
        self.reset_statistics()
