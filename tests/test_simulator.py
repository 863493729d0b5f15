"""
Tests for the emulated environment: application ends, metrics, logging and
the event-driven simulator.
"""

import math
import pytest
import sys
import os

import numpy as np
import pandas as pd

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import (
    TIMER_MODE_PER_PACKET, TIMER_MODE_SHARED,
    calculate_delivery_probability, calculate_expected_transmissions
)
from main import main
from simulation.application import MessageSource, DeliveryVerifier
from simulation.simulator import Simulator, SimulatorConfig
from srarq.arq.events import EventKind, Peer, ProtocolEvent
from srarq.utils.logger import SimulationLogger, LogLevel
from srarq.utils.metrics import MetricsCollector


def run(**kwargs):
    return Simulator(SimulatorConfig(**kwargs)).run()


class TestMessageSource:
    """Tests for the sending application."""

    def test_message_pattern(self):
        source = MessageSource()

        assert source.next_message().data == b"a" * 20
        assert source.next_message().data == b"b" * 20
        assert source.generated == 2

    def test_alphabet_wraps(self):
        assert MessageSource.make_message(26).data == b"a" * 20
        assert MessageSource.make_message(25, payload_size=4).data == b"zzzz"


class TestDeliveryVerifier:
    """Tests for the receiving application check."""

    def test_in_order_delivery(self):
        verifier = DeliveryVerifier()
        verifier.record_accepted(b"a", 1.0)
        verifier.record_accepted(b"b", 2.0)

        assert verifier.record_delivery(b"a", 5.0) == 4.0
        assert verifier.pending == 1
        assert not verifier.is_complete()

        verifier.record_delivery(b"b", 6.0)
        valid, details = verifier.verify()

        assert valid
        assert details['complete']
        assert details['delivered'] == 2

    def test_out_of_order_detected(self):
        verifier = DeliveryVerifier()
        verifier.record_accepted(b"a")
        verifier.record_accepted(b"b")

        assert verifier.record_delivery(b"b") is None
        valid, details = verifier.verify()

        assert not valid
        assert not details['in_order']

    def test_duplicate_detected(self):
        verifier = DeliveryVerifier()
        verifier.record_accepted(b"a")
        verifier.record_delivery(b"a")
        verifier.record_delivery(b"a")

        valid, details = verifier.verify()
        assert not valid
        assert not details['no_duplicates']


class TestMetricsCollector:
    """Tests for metrics calculation."""

    def test_event_counting(self):
        metrics = MetricsCollector()
        for kind in (EventKind.PACKET_SENT, EventKind.PACKET_SENT, EventKind.PACKET_RESENT,
                     EventKind.ACK_SENT, EventKind.WINDOW_SLID):
            metrics.record_event(ProtocolEvent(kind, Peer.A, 0))

        assert metrics.data_packets_sent == 2
        assert metrics.retransmissions == 1
        assert metrics.acks_sent == 1

    def test_derived_metrics(self):
        metrics = MetricsCollector()
        metrics.start(0.0)
        for _ in range(4):
            metrics.record_event(ProtocolEvent(EventKind.PACKET_SENT, Peer.A, 0))
            metrics.record_delivery(10.0)
        metrics.record_event(ProtocolEvent(EventKind.PACKET_RESENT, Peer.A, 0))
        metrics.finish(100.0)

        assert metrics.calculate_throughput() == pytest.approx(0.04)
        assert metrics.calculate_efficiency() == pytest.approx(0.8)
        assert metrics.calculate_retransmission_rate() == pytest.approx(0.25)
        assert metrics.get_latency_statistics()['mean'] == 10.0

    def test_window_utilization(self):
        metrics = MetricsCollector()
        metrics.record_window_utilization(3, 6)
        metrics.record_window_utilization(6, 6)

        stats = metrics.get_window_utilization_stats()
        assert stats['max'] == 1.0
        assert stats['peak_outstanding'] == 6

    def test_csv_row_is_flat(self):
        metrics = MetricsCollector()
        metrics.start(0.0)
        metrics.finish(1.0)

        row = metrics.to_csv_row()
        assert 'latency_mean' in row
        assert 'window_util_peak_outstanding' in row
        assert not any(isinstance(v, dict) for v in row.values())

    def test_time_series_sampling(self):
        metrics = MetricsCollector(sample_interval=10.0)
        metrics.start(0.0)
        metrics.record_delivery(1.0)
        metrics.update(5.0)
        metrics.update(10.0)
        metrics.record_delivery(1.0)
        metrics.finish(12.0)

        series = metrics.get_time_series()
        assert list(series.columns) == ['timestamp', 'messages_delivered', 'data_packets_sent',
                                        'retransmissions', 'outstanding']
        assert list(series['timestamp']) == [10.0, 12.0]
        assert list(series['messages_delivered']) == [1, 2]

    def test_empty_time_series(self):
        series = MetricsCollector().get_time_series()

        assert series.empty
        assert 'outstanding' in series.columns


class TestSimulationLogger:
    """Tests for event formatting."""

    def test_default_level(self):
        assert SimulationLogger().level == LogLevel.INFO

    def test_level_filtering(self, capsys):
        logger = SimulationLogger(level=LogLevel.WARNING, use_colors=False)
        logger.set_sim_time(12.5)

        logger.protocol_event(ProtocolEvent(EventKind.PACKET_SENT, Peer.A, 1))
        logger.protocol_event(ProtocolEvent(EventKind.TIMEOUT, Peer.A, 3))

        out = capsys.readouterr().out
        assert "Packet 1 sent" not in out
        assert "A: Timer expired for packet 3" in out
        assert "[TIMEOUT]" in out
        assert "12.5000" in out

    def test_every_event_kind_formats(self, capsys):
        logger = SimulationLogger(level=LogLevel.DEBUG, use_colors=False)
        for kind in EventKind:
            logger.protocol_event(ProtocolEvent(kind, Peer.B, 0, "detail"))

        assert logger.get_summary()['total_messages'] == len(EventKind)

    def test_log_file_mirror(self, tmp_path):
        path = tmp_path / "logs" / "sim.log"
        logger = SimulationLogger(level=LogLevel.INFO, log_file=str(path))
        logger.warning("window stalled", "WINDOW")
        logger.close()

        text = path.read_text()
        assert "window stalled" in text
        assert "\033[" not in text


class TestConfigHelpers:
    """Tests for derived configuration values."""

    def test_delivery_probability(self):
        assert calculate_delivery_probability(0.2, 0.5) == pytest.approx(0.4)

    def test_expected_transmissions(self):
        assert calculate_expected_transmissions(0.0, 0.0) == 1.0
        assert calculate_expected_transmissions(0.5, 0.0) == pytest.approx(4.0)
        assert math.isinf(calculate_expected_transmissions(1.0, 0.0))


class TestSimulatorConfig:
    """Tests for configuration validation."""

    @pytest.mark.parametrize("kwargs", [
        {'window_size': 40, 'seq_space': 64},
        {'window_size': 0},
        {'timer_mode': 'bogus'},
        {'message_interval': 0.0},
        {'num_messages': -1},
        {'timeout': 0.0},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            SimulatorConfig(**kwargs)

    def test_invalid_channel(self):
        with pytest.raises(ValueError):
            Simulator(SimulatorConfig(loss_prob=1.5))


class TestSimulator:
    """End-to-end simulator runs."""

    def test_perfect_channel(self):
        """Generous timeout on a clean channel: nothing is ever resent."""
        results = run(num_messages=30, timeout=200.0, seed=3)

        assert results['complete']
        assert results['verification']['valid']
        assert results['verification']['delivered'] == results['verification']['accepted']
        assert results['metrics']['retransmissions'] == 0
        assert results['metrics']['packets_lost'] == 0

    @pytest.mark.parametrize("timer_mode", [TIMER_MODE_PER_PACKET, TIMER_MODE_SHARED])
    @pytest.mark.parametrize("loss,corrupt", [(0.0, 0.0), (0.2, 0.0), (0.0, 0.2), (0.3, 0.3)])
    @pytest.mark.parametrize("seed", [1, 2, 3])
    def test_exactly_once_in_order(self, timer_mode, loss, corrupt, seed):
        """Every accepted message is delivered once, in order, whatever the channel."""
        results = run(num_messages=30, loss_prob=loss, corrupt_prob=corrupt,
                      timer_mode=timer_mode, seed=seed)
        metrics = results['metrics']

        assert results['complete']
        assert results['verification']['valid']
        assert metrics['messages_delivered'] == metrics['messages_accepted']
        assert metrics['window_utilization']['peak_outstanding'] <= 6
        assert metrics['out_of_window_packets'] == 0

    def test_small_sequence_space(self):
        """Minimal sequence space (twice the window) wraps many times safely."""
        results = run(num_messages=60, window_size=4, seq_space=8,
                      loss_prob=0.2, corrupt_prob=0.2, message_interval=3.0, seed=9)

        assert results['complete']
        assert results['verification']['valid']
        assert results['receiver']['out_of_window_packets'] == 0

    def test_loss_causes_retransmissions(self):
        results = run(num_messages=30, loss_prob=0.3, seed=5)

        assert results['metrics']['retransmissions'] > 0
        assert results['metrics']['timeouts'] > 0

    def test_window_full_drops(self):
        """Offered = accepted + refused when refused messages are not retried."""
        results = run(num_messages=40, message_interval=1.0, window_size=3,
                      seq_space=6, seed=4)
        metrics = results['metrics']

        assert metrics['window_full_events'] > 0
        assert metrics['messages_offered'] == 40
        assert metrics['messages_offered'] == (metrics['messages_accepted'] +
                                               metrics['window_full_events'])
        assert results['verification']['valid']

    def test_retry_rejected(self):
        """Refused messages are offered again until accepted."""
        results = run(num_messages=40, message_interval=1.0, window_size=3,
                      seq_space=6, retry_rejected=True, seed=4)

        assert results['complete']
        assert results['metrics']['window_full_events'] > 0
        assert results['verification']['accepted'] == 40
        assert results['verification']['delivered'] == 40

    def test_time_limit(self):
        results = run(num_messages=3, loss_prob=1.0, max_time=500.0)

        assert not results['complete']
        assert results['simulation_time'] == 500.0
        assert results['metrics']['messages_delivered'] == 0
        assert results['metrics']['retransmissions'] > 0

    def test_no_messages(self):
        results = run(num_messages=0)

        assert results['complete']
        assert results['simulation_time'] == 0.0

    def test_reproducible(self):
        """Same seed gives the same run."""
        first = run(num_messages=25, loss_prob=0.2, corrupt_prob=0.2, seed=8)
        second = run(num_messages=25, loss_prob=0.2, corrupt_prob=0.2, seed=8)

        assert first['metrics'] == second['metrics']
        assert first['simulation_time'] == second['simulation_time']

    def test_rerun_resets_state(self):
        sim = Simulator(SimulatorConfig(num_messages=15, loss_prob=0.1, seed=6))
        first = sim.run()
        second = sim.run()

        assert first['metrics'] == second['metrics']
        assert second['sender']['packets_sent'] == first['sender']['packets_sent']

    def test_random_streams_independent(self):
        """Nearby seeds never share a random stream between arrivals and the channel."""
        sim = Simulator(SimulatorConfig(seed=42))
        neighbour = Simulator(SimulatorConfig(seed=1042))

        channel_draws = sim.channel.rng.random(5)
        assert not np.array_equal(channel_draws, neighbour.rng.random(5))
        assert not np.array_equal(channel_draws, sim.rng.random(5))

    def test_time_series(self):
        sim = Simulator(SimulatorConfig(num_messages=40, loss_prob=0.2, seed=7))
        results = sim.run()

        series = sim.metrics.get_time_series()
        assert len(series) >= 1
        assert series['timestamp'].is_monotonic_increasing
        assert series['data_packets_sent'].is_monotonic_increasing
        assert series['timestamp'].iloc[-1] == results['simulation_time']
        assert series['messages_delivered'].iloc[-1] == results['metrics']['messages_delivered']

    def test_event_listener(self):
        sim = Simulator(SimulatorConfig(num_messages=10, seed=2))
        events = []
        sim.add_event_listener(events.append)

        results = sim.run()

        delivered = [e for e in events if e.kind is EventKind.PACKET_DELIVERED]
        assert len(delivered) == results['metrics']['messages_delivered']
        assert all(e.peer is Peer.B for e in delivered)

    def test_trace_log(self, tmp_path, capsys):
        path = tmp_path / "trace.log"
        run(num_messages=3, seed=1, log_level=LogLevel.DEBUG, log_file=str(path))

        text = path.read_text()
        assert "[TX]" in text
        assert "[DELIVER]" in text


class TestCommandLine:
    """Tests for the CLI entry point."""

    def test_mode_required(self):
        with pytest.raises(SystemExit):
            main([])

    def test_single_run(self, capsys):
        results = main(['--single', '--messages', '5', '--loss', '0.1', '--timer', 'shared'])

        assert results['complete']
        assert results['config']['timer_mode'] == TIMER_MODE_SHARED
        assert "RESULTS" in capsys.readouterr().out

    def test_single_run_time_series(self, tmp_path, capsys):
        path = tmp_path / "out" / "series.csv"
        results = main(['--single', '--messages', '5', '--timeseries', str(path)])

        series = pd.read_csv(path)
        assert series['messages_delivered'].iloc[-1] == results['metrics']['messages_delivered']
        assert "Time series saved" in capsys.readouterr().out

    def test_show_config(self, capsys):
        main(['--config'])
        assert "Sequence Space" in capsys.readouterr().out


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
