"""
Simulation Logger

This module provides logging utilities for the simulation,
with configurable verbosity levels and structured output. It is the only
place where protocol events are turned into text.
"""

from typing import Optional, TextIO
from datetime import datetime
from enum import IntEnum
import os

from ..arq.events import EventKind, ProtocolEvent


class LogLevel(IntEnum):
    """Log level enumeration."""
    DEBUG = 0
    INFO = 1
    WARNING = 2
    ERROR = 3
    CRITICAL = 4


# Level and category used for each protocol event
EVENT_FORMATS = {
    EventKind.PEER_INITIALIZED: (LogLevel.DEBUG, "INIT", "Peer initialized"),
    EventKind.PACKET_SENT: (LogLevel.DEBUG, "TX", "Packet {seq} sent"),
    EventKind.PACKET_RESENT: (LogLevel.INFO, "RETX", "Retransmitting packet {seq}"),
    EventKind.WINDOW_FULL: (LogLevel.INFO, "WINDOW", "Send window full, message dropped"),
    EventKind.ACK_CORRUPTED: (LogLevel.INFO, "ACK", "Corrupted ACK ignored"),
    EventKind.ACK_ACCEPTED: (LogLevel.DEBUG, "ACK", "ACK {seq} accepted"),
    EventKind.ACK_DUPLICATE: (LogLevel.DEBUG, "ACK", "Duplicate ACK {seq} ignored"),
    EventKind.ACK_OUT_OF_WINDOW: (LogLevel.DEBUG, "ACK", "ACK {seq} outside window, ignored"),
    EventKind.WINDOW_SLID: (LogLevel.DEBUG, "WINDOW", "Window slid"),
    EventKind.TIMEOUT: (LogLevel.WARNING, "TIMEOUT", "Timer expired for packet {seq}"),
    EventKind.TIMEOUT_STALE: (LogLevel.DEBUG, "TIMEOUT", "Stale timer for packet {seq} ignored"),
    EventKind.PACKET_CORRUPTED: (LogLevel.INFO, "RX", "Corrupted packet ignored"),
    EventKind.PACKET_CACHED: (LogLevel.DEBUG, "RX", "Packet {seq} cached"),
    EventKind.PACKET_DUPLICATE: (LogLevel.DEBUG, "RX", "Duplicate packet {seq}"),
    EventKind.ACK_SENT: (LogLevel.DEBUG, "ACK", "ACK {seq} sent"),
    EventKind.PACKET_DELIVERED: (LogLevel.DEBUG, "DELIVER", "Packet {seq} delivered to application"),
    EventKind.PACKET_REACKED: (LogLevel.INFO, "ACK", "Re-ACKing already delivered packet {seq}"),
    EventKind.PACKET_OUT_OF_WINDOW: (LogLevel.ERROR, "RX", "Packet {seq} outside receive window, ignored"),
}


class SimulationLogger:
    """
    Logger for simulation events.

    Provides structured logging with timestamps and categories.

    Attributes:
        name: Logger name
        level: Minimum log level
        file: Optional file for logging
    """

    # Color codes for terminal output
    COLORS = {
        LogLevel.DEBUG: '\033[36m',     # Cyan
        LogLevel.INFO: '\033[32m',      # Green
        LogLevel.WARNING: '\033[33m',   # Yellow
        LogLevel.ERROR: '\033[31m',     # Red
        LogLevel.CRITICAL: '\033[35m',  # Magenta
    }
    RESET = '\033[0m'

    def __init__(
        self,
        name: str = "Simulator",
        level: int = LogLevel.INFO,
        log_file: Optional[str] = None,
        use_colors: bool = True,
        include_timestamp: bool = True
    ):
        """
        Initialize logger.

        Args:
            name: Logger name
            level: Minimum log level
            log_file: Optional file path for logging
            use_colors: Use ANSI colors in output
            include_timestamp: Include timestamps in log messages
        """
        self.name = name
        self.level = level
        self.use_colors = use_colors
        self.include_timestamp = include_timestamp

        self.file: Optional[TextIO] = None
        if log_file:
            directory = os.path.dirname(log_file)
            if directory:
                os.makedirs(directory, exist_ok=True)
            self.file = open(log_file, 'w')

        # Simulation time tracking
        self.sim_time: Optional[float] = None

        # Message counts
        self.message_counts = {level: 0 for level in LogLevel}

    def set_sim_time(self, time: float):
        """Set current simulation time for log messages."""
        self.sim_time = time

    def _format_message(
        self,
        level: LogLevel,
        message: str,
        category: Optional[str] = None
    ) -> str:
        """Format a log message."""
        parts = []

        if self.include_timestamp:
            if self.sim_time is not None:
                parts.append(f"[{self.sim_time:10.4f}]")
            else:
                parts.append(f"[{datetime.now().strftime('%H:%M:%S.%f')[:-3]}]")

        level_str = level.name.ljust(8)
        if self.use_colors:
            level_str = f"{self.COLORS[level]}{level_str}{self.RESET}"
        parts.append(level_str)

        parts.append(f"[{self.name}]")

        if category:
            parts.append(f"[{category}]")

        parts.append(message)

        return " ".join(parts)

    def _log(
        self,
        level: LogLevel,
        message: str,
        category: Optional[str] = None
    ):
        """Log a message."""
        if level < self.level:
            return

        self.message_counts[level] += 1
        formatted = self._format_message(level, message, category)

        print(formatted)

        if self.file:
            # Strip color codes for file
            clean = formatted
            for color in self.COLORS.values():
                clean = clean.replace(color, '')
            clean = clean.replace(self.RESET, '')
            self.file.write(clean + '\n')
            self.file.flush()

    def debug(self, message: str, category: Optional[str] = None):
        """Log debug message."""
        self._log(LogLevel.DEBUG, message, category)

    def info(self, message: str, category: Optional[str] = None):
        """Log info message."""
        self._log(LogLevel.INFO, message, category)

    def warning(self, message: str, category: Optional[str] = None):
        """Log warning message."""
        self._log(LogLevel.WARNING, message, category)

    def error(self, message: str, category: Optional[str] = None):
        """Log error message."""
        self._log(LogLevel.ERROR, message, category)

    def protocol_event(self, event: ProtocolEvent):
        """Log a protocol state transition."""
        level, category, template = EVENT_FORMATS[event.kind]
        message = f"{event.peer.name}: " + template.format(seq=event.seqnum)
        if event.detail:
            message += f" ({event.detail})"
        self._log(level, message, category)

    # Convenience methods for simulator events
    def packet_lost(self, peer_name: str, seq_num: int):
        """Log channel loss."""
        self.debug(f"{peer_name}: packet {seq_num} lost in channel", "CHANNEL")

    def packet_corrupted(self, peer_name: str, seq_num: int, kind: str):
        """Log channel corruption."""
        self.debug(f"{peer_name}: packet {seq_num} corrupted in channel ({kind})", "CHANNEL")

    def simulation_start(self, params: dict):
        """Log simulation start."""
        param_str = ", ".join(f"{k}={v}" for k, v in params.items())
        self.info(f"Simulation started: {param_str}", "SIM")

    def simulation_end(self, metrics: dict):
        """Log simulation end."""
        self.info(
            f"Simulation ended: delivered={metrics.get('messages_delivered', 0)}, "
            f"retransmissions={metrics.get('retransmissions', 0)}",
            "SIM"
        )

    def get_summary(self) -> dict:
        """Get logging summary."""
        return {
            'message_counts': {level.name: count for level, count in self.message_counts.items()},
            'total_messages': sum(self.message_counts.values())
        }

    def close(self):
        """Close log file if open."""
        if self.file:
            self.file.close()
            self.file = None

    def __del__(self):
        """Cleanup on deletion."""
        self.close()
