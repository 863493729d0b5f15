"""
Main Simulator - Event-Driven Network Emulation

This module implements the discrete-event engine that drives the two
protocol peers. It provides the channel, timer and application primitives
the sender and receiver consume, and feeds them one event at a time in
simulated-time order.
"""

from typing import Optional, Dict, List
from dataclasses import dataclass, field, asdict
from enum import Enum
import heapq
import time

import numpy as np

from config import (
    WINDOW_SIZE, SEQ_SPACE, RTT, PAYLOAD_SIZE, DEFAULT_TIMER_MODE,
    DEFAULT_NUM_MESSAGES, DEFAULT_MESSAGE_INTERVAL,
    DEFAULT_LOSS_PROB, DEFAULT_CORRUPT_PROB, MIN_CHANNEL_DELAY, MAX_CHANNEL_DELAY,
    RNG_SEED_BASE, MAX_SIMULATION_TIME
)
from srarq.arq.events import EventHandler, Peer, ProtocolEvent
from srarq.arq.packet import Packet
from srarq.arq.receiver import SRReceiver
from srarq.arq.sender import SRSender, TimerMode
from srarq.arq.seqspace import validate_window
from srarq.arq.timer import TimerManager
from srarq.channel.unreliable import UnreliableChannel
from srarq.utils.logger import SimulationLogger, LogLevel
from srarq.utils.metrics import MetricsCollector
from .application import MessageSource, DeliveryVerifier


class EventType(Enum):
    """Types of simulation events."""
    MESSAGE_ARRIVAL = 0   # Application hands a message to the sender
    PACKET_ARRIVAL = 1    # Packet reaches a peer from the channel


@dataclass(order=True)
class SimEvent:
    """Simulation event."""
    time: float
    order: int
    event_type: EventType = field(compare=False)
    peer: Peer = field(compare=False)
    data: dict = field(compare=False, default_factory=dict)


@dataclass
class SimulatorConfig:
    """Configuration for the simulator."""
    # Protocol parameters
    window_size: int = WINDOW_SIZE
    seq_space: int = SEQ_SPACE
    timeout: float = RTT
    payload_size: int = PAYLOAD_SIZE
    timer_mode: str = DEFAULT_TIMER_MODE
    reack_duplicates: bool = True

    # Application parameters
    num_messages: int = DEFAULT_NUM_MESSAGES
    message_interval: float = DEFAULT_MESSAGE_INTERVAL
    retry_rejected: bool = False

    # Channel parameters
    loss_prob: float = DEFAULT_LOSS_PROB
    corrupt_prob: float = DEFAULT_CORRUPT_PROB
    min_delay: float = MIN_CHANNEL_DELAY
    max_delay: float = MAX_CHANNEL_DELAY

    # Simulation parameters
    seed: int = RNG_SEED_BASE
    max_time: float = MAX_SIMULATION_TIME
    log_level: int = LogLevel.WARNING
    log_file: Optional[str] = None

    def __post_init__(self):
        validate_window(self.window_size, self.seq_space)
        TimerMode(self.timer_mode)
        if self.num_messages < 0:
            raise ValueError("Number of messages must be non-negative")
        if self.message_interval <= 0:
            raise ValueError("Message interval must be positive")
        if self.timeout <= 0:
            raise ValueError("Timeout must be positive")


class Simulator:
    """
    Main Event-Driven Simulator.

    Owns the channel, the timers and both application ends, and implements
    the NetworkLayer primitives for the sender (peer A) and receiver (peer B).
    """

    def __init__(self, config: SimulatorConfig):
        """Initialize simulator."""
        self.config = config

        self.logger = SimulationLogger(
            name="Sim",
            level=config.log_level,
            log_file=config.log_file
        )

        arrival_seed, channel_seed = self._seed_streams()
        self.channel = UnreliableChannel(
            loss_prob=config.loss_prob,
            corrupt_prob=config.corrupt_prob,
            min_delay=config.min_delay,
            max_delay=config.max_delay,
            seed=channel_seed
        )
        self.rng = np.random.default_rng(arrival_seed)
        self.timers = TimerManager()

        self.metrics = MetricsCollector()
        self.source = MessageSource(config.payload_size)
        self.verifier = DeliveryVerifier()
        self.event_listeners: List[EventHandler] = []

        # Simulation state
        self.current_time = 0.0
        self.event_queue: List[SimEvent] = []
        self._order = 0
        self._pending_messages = 0

        self.sender = SRSender(
            self,
            window_size=config.window_size,
            seq_space=config.seq_space,
            timeout=config.timeout,
            payload_size=config.payload_size,
            timer_mode=TimerMode(config.timer_mode),
            on_event=self._on_protocol_event
        )
        self.receiver = SRReceiver(
            self,
            window_size=config.window_size,
            seq_space=config.seq_space,
            payload_size=config.payload_size,
            reack_duplicates=config.reack_duplicates,
            on_event=self._on_protocol_event
        )

    # ------------------------------------------------------------------
    # NetworkLayer primitives
    # ------------------------------------------------------------------

    def send_to_channel(self, peer: Peer, packet: Packet) -> None:
        """Push a packet into the channel towards the other peer."""
        outcome = self.channel.transmit(packet, peer, self.current_time)
        label = packet.acknum if packet.is_ack else packet.seqnum

        if outcome.lost:
            self.metrics.record_packet_lost()
            self.logger.packet_lost(peer.name, label)
            return

        if outcome.corrupted:
            self.metrics.record_packet_corrupted()
            self.logger.packet_corrupted(peer.name, label, outcome.corruption.name)

        self._schedule_event(
            outcome.arrival_time,
            EventType.PACKET_ARRIVAL,
            peer.other,
            {'packet': outcome.packet}
        )

    def deliver_to_application(self, peer: Peer, payload: bytes) -> None:
        """Hand a payload to the receiving application."""
        latency = self.verifier.record_delivery(payload, self.current_time)
        if latency is None:
            self.logger.error(f"{peer.name}: unexpected payload delivered: {payload!r}", "DELIVER")
            return
        self.metrics.record_delivery(latency)

    def start_timer(self, peer: Peer, duration: float, seqnum: Optional[int] = None) -> None:
        self.timers.start_timer((peer, seqnum), self.current_time, duration)

    def stop_timer(self, peer: Peer, seqnum: Optional[int] = None) -> None:
        self.timers.stop_timer((peer, seqnum))

    # ------------------------------------------------------------------
    # Event handling
    # ------------------------------------------------------------------

    def add_event_listener(self, listener: EventHandler):
        """Register an extra observer of protocol events."""
        self.event_listeners.append(listener)

    def _on_protocol_event(self, event: ProtocolEvent):
        self.logger.protocol_event(event)
        self.metrics.record_event(event)
        for listener in self.event_listeners:
            listener(event)

    def _schedule_event(self, time: float, event_type: EventType, peer: Peer, data: dict = None):
        """Schedule an event."""
        self._order += 1
        if event_type == EventType.MESSAGE_ARRIVAL:
            self._pending_messages += 1
        heapq.heappush(self.event_queue, SimEvent(
            time=time,
            order=self._order,
            event_type=event_type,
            peer=peer,
            data=data or {}
        ))

    def _next_message_gap(self) -> float:
        """Time until the application produces its next message."""
        return float(self.rng.uniform(0.0, 2.0 * self.config.message_interval))

    def _handle_message_arrival(self, event_data: dict):
        """Application offers a message to the sender."""
        self._pending_messages -= 1
        message = event_data.get('message')

        if message is None:
            message = self.source.next_message()
            if self.source.generated < self.config.num_messages:
                self._schedule_event(
                    self.current_time + self._next_message_gap(),
                    EventType.MESSAGE_ARRIVAL,
                    Peer.A
                )

        packet = self.sender.on_application_message(message)
        self.metrics.record_message_offered(packet is not None)

        if packet is not None:
            self.verifier.record_accepted(message.data, self.current_time)
        elif self.config.retry_rejected:
            self._schedule_event(
                self.current_time + self.config.message_interval,
                EventType.MESSAGE_ARRIVAL,
                Peer.A,
                {'message': message}
            )

        self._record_window()

    def _handle_packet_arrival(self, peer: Peer, event_data: dict):
        """Packet reaches a peer."""
        packet = event_data['packet']
        if peer is Peer.B:
            self.receiver.on_channel_packet(packet)
        else:
            self.sender.on_channel_packet(packet)
            self._record_window()

    def _handle_timeouts(self):
        """Handle timer expirations."""
        for peer, seqnum in self.timers.check_timeouts(self.current_time):
            if peer is Peer.A:
                self.sender.on_timer_expire(seqnum)

    def _record_window(self):
        self.metrics.record_window_utilization(self.sender.unacked_count, self.config.window_size)

    def _is_complete(self) -> bool:
        """Check if every message has been generated, delivered and acknowledged."""
        return (self.source.generated >= self.config.num_messages and
                self._pending_messages == 0 and
                self.verifier.is_complete() and
                self.sender.is_idle())

    def _seed_streams(self):
        """Independent child seeds for message arrivals and the channel."""
        return np.random.SeedSequence(self.config.seed).spawn(2)

    def _reset_state(self):
        self.event_queue.clear()
        self.current_time = 0.0
        self._order = 0
        self._pending_messages = 0

        arrival_seed, channel_seed = self._seed_streams()
        self.rng = np.random.default_rng(arrival_seed)
        self.channel.reset(channel_seed)
        self.timers.clear_all()
        self.source.reset()
        self.verifier.reset()
        self.metrics.reset()
        self.logger.set_sim_time(0.0)

        self.sender.init()
        self.receiver.init()

    def run(self) -> Dict:
        """Run the simulation."""
        self._reset_state()

        self.metrics.start(0.0)
        self.logger.simulation_start({
            'messages': self.config.num_messages,
            'window': self.config.window_size,
            'seqspace': self.config.seq_space,
            'loss': self.config.loss_prob,
            'corrupt': self.config.corrupt_prob,
            'timer': self.config.timer_mode
        })
        sim_start_real = time.time()

        if self.config.num_messages > 0:
            self._schedule_event(self._next_message_gap(), EventType.MESSAGE_ARRIVAL, Peer.A)

        while not self._is_complete():
            next_event = self.event_queue[0].time if self.event_queue else None
            next_timer = self.timers.get_next_expiry()

            if next_event is None and next_timer is None:
                break

            timer_first = next_timer is not None and (next_event is None or next_timer < next_event)
            next_time = next_timer if timer_first else next_event

            if next_time > self.config.max_time:
                self.current_time = self.config.max_time
                self.logger.warning("Simulation time limit reached", "SIM")
                break

            self.current_time = next_time
            self.logger.set_sim_time(next_time)

            if timer_first:
                self._handle_timeouts()
            else:
                event = heapq.heappop(self.event_queue)
                if event.event_type == EventType.MESSAGE_ARRIVAL:
                    self._handle_message_arrival(event.data)
                else:
                    self._handle_packet_arrival(event.peer, event.data)

            self.metrics.update(self.current_time)

        self.metrics.finish(self.current_time)
        sim_end_real = time.time()

        valid, verify_details = self.verifier.verify()
        metrics_summary = self.metrics.get_summary()
        self.logger.simulation_end(metrics_summary)

        return {
            'config': asdict(self.config),
            'metrics': metrics_summary,
            'verification': {'valid': valid, **verify_details},
            'sender': self.sender.get_statistics(),
            'receiver': self.receiver.get_statistics(),
            'channel': self.channel.get_statistics(),
            'timers': self.timers.get_statistics(),
            'real_time': sim_end_real - sim_start_real,
            'simulation_time': self.current_time,
            'complete': self._is_complete()
        }
