"""
Metrics Collection and Calculation

This module provides utilities for calculating and tracking
performance metrics including throughput, efficiency, retransmissions
and delivery latency.
"""

from dataclasses import dataclass, asdict, fields
from typing import List, Optional, Dict
import statistics

import pandas as pd

from ..arq.events import EventKind, ProtocolEvent


@dataclass
class MetricsSample:
    """Single sample of metrics at a point in time."""
    timestamp: float
    messages_delivered: int = 0
    data_packets_sent: int = 0
    retransmissions: int = 0
    outstanding: int = 0


# Counter incremented for each protocol event kind
EVENT_COUNTERS = {
    EventKind.PACKET_SENT: 'data_packets_sent',
    EventKind.PACKET_RESENT: 'retransmissions',
    EventKind.WINDOW_FULL: 'window_full_events',
    EventKind.ACK_CORRUPTED: 'corrupted_acks',
    EventKind.ACK_ACCEPTED: 'acks_accepted',
    EventKind.ACK_DUPLICATE: 'duplicate_acks',
    EventKind.ACK_OUT_OF_WINDOW: 'out_of_window_acks',
    EventKind.TIMEOUT: 'timeouts',
    EventKind.PACKET_CORRUPTED: 'corrupted_packets',
    EventKind.PACKET_DUPLICATE: 'duplicate_packets',
    EventKind.ACK_SENT: 'acks_sent',
    EventKind.PACKET_REACKED: 'reacks_sent',
    EventKind.PACKET_OUT_OF_WINDOW: 'out_of_window_packets',
}


class MetricsCollector:
    """
    Collects and calculates performance metrics for the simulation.

    Primary metric: Throughput = Delivered Messages / Total Simulated Time

    Attributes:
        start_time: Simulation start time
        end_time: Simulation end time
    """

    def __init__(self, sample_interval: float = 100.0):
        """
        Initialize metrics collector.

        Args:
            sample_interval: Simulated time between periodic samples
        """
        self.sample_interval = sample_interval
        self.samples: List[MetricsSample] = []
        self.latency_samples: List[float] = []
        self.window_utilization_samples: List[float] = []
        self.reset()

    def start(self, time: float):
        """Mark simulation start."""
        self.start_time = time
        self.last_sample_time = time

    def finish(self, time: float):
        """Mark simulation end."""
        self.end_time = time
        self._take_sample(time)

    def record_event(self, event: ProtocolEvent):
        """
        Count a protocol event.

        Args:
            event: Event emitted by the sender or receiver
        """
        counter = EVENT_COUNTERS.get(event.kind)
        if counter:
            setattr(self, counter, getattr(self, counter) + 1)

    def record_message_offered(self, accepted: bool):
        """Record an application message handed to the sender."""
        self.messages_offered += 1
        if accepted:
            self.messages_accepted += 1

    def record_delivery(self, latency: float):
        """
        Record a message delivered to the receiving application.

        Args:
            latency: Time from acceptance by the sender to delivery
        """
        self.messages_delivered += 1
        self.latency_samples.append(latency)

    def record_packet_lost(self):
        """Record packet dropped by the channel."""
        self.packets_lost += 1

    def record_packet_corrupted(self):
        """Record packet corrupted by the channel."""
        self.packets_corrupted += 1

    def record_window_utilization(self, outstanding: int, window_size: int):
        """
        Record window utilization.

        Args:
            outstanding: Number of unacknowledged packets
            window_size: Total window size
        """
        self.max_outstanding = max(self.max_outstanding, outstanding)
        self.last_outstanding = outstanding
        if window_size > 0:
            self.window_utilization_samples.append(outstanding / window_size)

    def _take_sample(self, time: float):
        """Take a periodic sample of metrics."""
        self.samples.append(MetricsSample(
            timestamp=time,
            messages_delivered=self.messages_delivered,
            data_packets_sent=self.data_packets_sent,
            retransmissions=self.retransmissions,
            outstanding=self.last_outstanding
        ))

    def update(self, current_time: float):
        """
        Update metrics with current time.

        Args:
            current_time: Current simulation time
        """
        if current_time - self.last_sample_time >= self.sample_interval:
            self._take_sample(current_time)
            self.last_sample_time = current_time

    def get_time_series(self) -> pd.DataFrame:
        """
        Periodic samples as a DataFrame, one row per sample.

        Counters are cumulative, so each column is non-decreasing except
        `outstanding`. The last row is taken when the run finishes.

        Returns:
            DataFrame with one column per MetricsSample field
        """
        columns = [f.name for f in fields(MetricsSample)]
        return pd.DataFrame([asdict(s) for s in self.samples], columns=columns)

    @property
    def total_time(self) -> float:
        if self.start_time is None or self.end_time is None:
            return 0.0
        return self.end_time - self.start_time

    def calculate_throughput(self) -> float:
        """
        Calculate throughput.

        Throughput = Delivered Messages / Total Simulated Time

        Returns:
            Messages per time unit
        """
        if self.total_time <= 0:
            return 0.0
        return self.messages_delivered / self.total_time

    def calculate_efficiency(self) -> float:
        """
        Calculate transmission efficiency.

        Efficiency = Messages Delivered / Data Packets Transmitted
        (original transmissions plus retransmissions)

        Returns:
            Efficiency ratio (0-1)
        """
        transmitted = self.data_packets_sent + self.retransmissions
        if transmitted <= 0:
            return 0.0
        return self.messages_delivered / transmitted

    def calculate_retransmission_rate(self) -> float:
        """
        Calculate retransmission rate.

        Returns:
            Retransmissions / Original Packets Sent
        """
        if self.data_packets_sent <= 0:
            return 0.0
        return self.retransmissions / self.data_packets_sent

    def calculate_acceptance_rate(self) -> float:
        """Fraction of offered messages the sender's window accepted."""
        if self.messages_offered <= 0:
            return 0.0
        return self.messages_accepted / self.messages_offered

    def get_latency_statistics(self) -> Dict[str, float]:
        """
        Get delivery latency statistics.

        Returns:
            Dictionary with min, max, mean, median, stdev latency
        """
        if not self.latency_samples:
            return {
                'min': 0, 'max': 0, 'mean': 0,
                'median': 0, 'stdev': 0, 'samples': 0
            }

        return {
            'min': min(self.latency_samples),
            'max': max(self.latency_samples),
            'mean': statistics.mean(self.latency_samples),
            'median': statistics.median(self.latency_samples),
            'stdev': statistics.stdev(self.latency_samples) if len(self.latency_samples) > 1 else 0,
            'samples': len(self.latency_samples)
        }

    def get_window_utilization_stats(self) -> Dict[str, float]:
        """
        Get window utilization statistics.

        Returns:
            Dictionary with utilization stats and peak outstanding packets
        """
        if not self.window_utilization_samples:
            return {'mean': 0, 'max': 0, 'min': 0, 'peak_outstanding': self.max_outstanding}

        return {
            'mean': statistics.mean(self.window_utilization_samples),
            'max': max(self.window_utilization_samples),
            'min': min(self.window_utilization_samples),
            'peak_outstanding': self.max_outstanding
        }

    def get_summary(self) -> Dict:
        """
        Get comprehensive metrics summary.

        Returns:
            Dictionary with all metrics
        """
        return {
            # Time
            'total_time': self.total_time,
            'start_time': self.start_time,
            'end_time': self.end_time,

            # Primary metric
            'throughput': self.calculate_throughput(),

            # Secondary metrics
            'efficiency': self.calculate_efficiency(),
            'retransmission_rate': self.calculate_retransmission_rate(),
            'acceptance_rate': self.calculate_acceptance_rate(),

            # Application
            'messages_offered': self.messages_offered,
            'messages_accepted': self.messages_accepted,
            'messages_delivered': self.messages_delivered,
            'window_full_events': self.window_full_events,

            # Sender
            'data_packets_sent': self.data_packets_sent,
            'retransmissions': self.retransmissions,
            'timeouts': self.timeouts,
            'acks_accepted': self.acks_accepted,
            'duplicate_acks': self.duplicate_acks,
            'corrupted_acks': self.corrupted_acks,
            'out_of_window_acks': self.out_of_window_acks,

            # Receiver
            'acks_sent': self.acks_sent,
            'reacks_sent': self.reacks_sent,
            'corrupted_packets': self.corrupted_packets,
            'duplicate_packets': self.duplicate_packets,
            'out_of_window_packets': self.out_of_window_packets,

            # Channel
            'packets_lost': self.packets_lost,
            'packets_corrupted': self.packets_corrupted,

            # Latency
            'latency': self.get_latency_statistics(),

            # Window utilization
            'window_utilization': self.get_window_utilization_stats()
        }

    def to_csv_row(self) -> Dict:
        """
        Get metrics as a flat dictionary suitable for CSV export.

        Returns:
            Dictionary with flattened metrics
        """
        summary = self.get_summary()
        latency = summary.pop('latency')
        window_util = summary.pop('window_utilization')

        flat = {**summary}
        for key, value in latency.items():
            flat[f'latency_{key}'] = value
        for key, value in window_util.items():
            flat[f'window_util_{key}'] = value

        return flat

    def reset(self):
        """Reset all metrics."""
        self.start_time: Optional[float] = None
        self.end_time: Optional[float] = None
        self.last_sample_time = 0.0

        self.messages_offered = 0
        self.messages_accepted = 0
        self.messages_delivered = 0

        for counter in EVENT_COUNTERS.values():
            setattr(self, counter, 0)

        self.packets_lost = 0
        self.packets_corrupted = 0

        self.max_outstanding = 0
        self.last_outstanding = 0

        self.samples.clear()
        self.latency_samples.clear()
        self.window_utilization_samples.clear()
