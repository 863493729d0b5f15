"""
Timer Management for Selective Repeat ARQ

This module provides the timer subsystem used by the simulator to serve the
protocol's start_timer/stop_timer primitives: any number of independent
timers, keyed by (peer, seqnum), expiring in simulated time.
"""

from dataclasses import dataclass, field
from typing import Optional, List, Dict, Hashable
from enum import Enum
import heapq


class TimerState(Enum):
    """Timer state enumeration."""
    STOPPED = 0
    RUNNING = 1
    EXPIRED = 2


@dataclass(order=True)
class TimerEvent:
    """Timer event for priority queue management."""
    expiry_time: float
    order: int
    key: Hashable = field(compare=False)
    generation: int = field(compare=False)  # To invalidate restarted timers


@dataclass
class Timer:
    """
    Single timer.

    Attributes:
        key: Timer identifier
        timeout: Timeout duration
        start_time: Time when timer was last started
        state: Current timer state
        generation: Incremented on each (re)start
    """
    key: Hashable
    timeout: float
    start_time: float = 0.0
    state: TimerState = TimerState.STOPPED
    generation: int = 0

    def start(self, current_time: float, timeout: float):
        """
        Start or reschedule the timer.

        Args:
            current_time: Current simulation time
            timeout: Timeout duration
        """
        self.timeout = timeout
        self.start_time = current_time
        self.state = TimerState.RUNNING
        self.generation += 1

    def stop(self):
        """Stop the timer."""
        self.state = TimerState.STOPPED

    @property
    def is_running(self) -> bool:
        return self.state == TimerState.RUNNING

    def get_expiry_time(self) -> float:
        """Get the absolute expiry time."""
        return self.start_time + self.timeout


class TimerManager:
    """
    Manages multiple independent timers.

    Uses a priority queue (min-heap) for efficient timeout detection. Each
    (re)start pushes a new heap entry tagged with the timer's generation;
    entries whose generation no longer matches are discarded when popped,
    so a restarted timer can never fire twice.

    Attributes:
        timers: Timers by key
        timer_queue: Priority queue of timer events
    """

    def __init__(self):
        self.timers: Dict[Hashable, Timer] = {}
        self.timer_queue: List[TimerEvent] = []
        self._order = 0

        # Statistics
        self.total_timeouts = 0
        self.total_timers_started = 0
        self.total_restarts = 0
        self.idle_stops = 0

    def start_timer(self, key: Hashable, current_time: float, timeout: float):
        """
        Start a timer, rescheduling it if it is already running.

        Args:
            key: Timer identifier
            current_time: Current simulation time
            timeout: Timeout duration
        """
        if timeout <= 0:
            raise ValueError("Timeout must be positive")

        timer = self.timers.get(key)
        if timer is None:
            timer = Timer(key=key, timeout=timeout)
            self.timers[key] = timer
        elif timer.is_running:
            self.total_restarts += 1

        timer.start(current_time, timeout)
        self.total_timers_started += 1

        self._order += 1
        heapq.heappush(self.timer_queue, TimerEvent(
            expiry_time=timer.get_expiry_time(),
            order=self._order,
            key=key,
            generation=timer.generation
        ))

    def stop_timer(self, key: Hashable) -> bool:
        """
        Stop a timer.

        Args:
            key: Timer identifier

        Returns:
            True if the timer was running
        """
        timer = self.timers.get(key)
        if timer is None or not timer.is_running:
            self.idle_stops += 1
            return False
        timer.stop()
        return True

    def is_running(self, key: Hashable) -> bool:
        timer = self.timers.get(key)
        return timer is not None and timer.is_running

    def check_timeouts(self, current_time: float) -> List[Hashable]:
        """
        Expire every running timer due at or before current_time.

        Args:
            current_time: Current simulation time

        Returns:
            Keys of expired timers, in expiry order
        """
        expired = []

        while self.timer_queue and self.timer_queue[0].expiry_time <= current_time:
            event = heapq.heappop(self.timer_queue)
            timer = self.timers.get(event.key)

            # Timer was restarted or stopped since this entry was pushed
            if timer is None or timer.generation != event.generation or not timer.is_running:
                continue

            timer.state = TimerState.EXPIRED
            self.total_timeouts += 1
            expired.append(event.key)

        return expired

    def get_next_expiry(self) -> Optional[float]:
        """
        Get the time of the next timer expiry.

        Returns:
            Next expiry time or None if no active timers
        """
        # Clean up stale events
        while self.timer_queue:
            event = self.timer_queue[0]
            timer = self.timers.get(event.key)
            if timer is not None and timer.generation == event.generation and timer.is_running:
                return event.expiry_time
            heapq.heappop(self.timer_queue)

        return None

    def get_active_count(self) -> int:
        """Get number of running timers."""
        return sum(1 for t in self.timers.values() if t.is_running)

    def clear_all(self):
        """Clear all timers."""
        self.timers.clear()
        self.timer_queue.clear()

    def get_statistics(self) -> dict:
        """Get timer statistics."""
        return {
            'total_timers_started': self.total_timers_started,
            'total_restarts': self.total_restarts,
            'total_timeouts': self.total_timeouts,
            'idle_stops': self.idle_stops,
            'active_timers': self.get_active_count()
        }
