"""
Unit tests for the unreliable channel model.
"""

import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import CORRUPTED_FIELD_VALUE
from srarq.arq.events import Peer
from srarq.arq.packet import Packet, is_corrupted
from srarq.channel.unreliable import UnreliableChannel, CorruptionKind


def data_packet(seq=0):
    return Packet.make_data(seq, b"q" * 20)


class TestUnreliableChannel:
    """Tests for the lossy, corrupting channel."""

    def test_perfect_channel(self):
        """Without loss or corruption every packet arrives intact."""
        channel = UnreliableChannel(seed=42)
        packet = data_packet()

        outcome = channel.transmit(packet, Peer.A, current_time=5.0)

        assert not outcome.lost
        assert not outcome.corrupted
        assert outcome.packet == packet
        assert 6.0 <= outcome.arrival_time <= 15.0

    def test_total_loss(self):
        channel = UnreliableChannel(loss_prob=1.0, seed=42)

        outcomes = [channel.transmit(data_packet(i), Peer.A, 0.0) for i in range(20)]

        assert all(o.lost for o in outcomes)
        assert all(o.arrival_time is None for o in outcomes)
        assert channel.get_statistics()['packets_lost'] == 20

    def test_total_corruption_detected(self):
        """Every corrupted packet fails its checksum; the original is untouched."""
        channel = UnreliableChannel(corrupt_prob=1.0, seed=7)
        original = data_packet(3)

        for _ in range(200):
            outcome = channel.transmit(original, Peer.A, 0.0)
            assert outcome.corrupted
            assert is_corrupted(outcome.packet)

        assert not is_corrupted(original)
        assert original.payload == b"q" * 20

    def test_corruption_split(self):
        """Roughly three in four corruptions hit the payload."""
        channel = UnreliableChannel(corrupt_prob=1.0, seed=11)
        kinds = [channel.transmit(data_packet(), Peer.A, 0.0).corruption for _ in range(4000)]

        payload_share = kinds.count(CorruptionKind.PAYLOAD) / len(kinds)
        seq_share = kinds.count(CorruptionKind.SEQNUM) / len(kinds)

        assert abs(payload_share - 0.75) < 0.04
        assert abs(seq_share - 0.125) < 0.03

    def test_header_corruption_value(self):
        channel = UnreliableChannel(corrupt_prob=1.0, seed=3)
        for _ in range(200):
            outcome = channel.transmit(data_packet(), Peer.A, 0.0)
            if outcome.corruption is CorruptionKind.SEQNUM:
                assert outcome.packet.seqnum == CORRUPTED_FIELD_VALUE
                return
        pytest.fail("no sequence number corruption in 200 packets")

    def test_order_preserved_per_direction(self):
        """Packets sent back to back never overtake each other."""
        channel = UnreliableChannel(seed=42)

        times = [channel.transmit(data_packet(i), Peer.A, 0.0).arrival_time for i in range(100)]

        assert times == sorted(times)
        assert len(set(times)) == len(times)

    def test_directions_independent(self):
        channel = UnreliableChannel(seed=42)
        for i in range(50):
            channel.transmit(data_packet(i), Peer.A, 0.0)

        ack = channel.transmit(Packet.make_ack(0), Peer.B, 0.0)

        assert ack.arrival_time <= 10.0

    def test_observed_loss_rate(self):
        channel = UnreliableChannel(loss_prob=0.3, seed=42)
        for i in range(5000):
            channel.transmit(data_packet(i % 64), Peer.A, float(i))

        stats = channel.get_statistics()
        assert abs(stats['observed_loss_rate'] - 0.3) < 0.03
        assert stats['packets_transmitted'] == 5000

    @pytest.mark.parametrize("kwargs", [
        {'loss_prob': -0.1},
        {'loss_prob': 1.5},
        {'corrupt_prob': 2.0},
        {'min_delay': 0.0},
        {'min_delay': 5.0, 'max_delay': 2.0},
    ])
    def test_invalid_parameters(self, kwargs):
        with pytest.raises(ValueError):
            UnreliableChannel(**kwargs)

    def test_reset(self):
        """Test channel reset."""
        channel = UnreliableChannel(loss_prob=0.5, seed=42)
        for i in range(100):
            channel.transmit(data_packet(), Peer.A, float(i))

        channel.reset(seed=123)

        stats = channel.get_statistics()
        assert stats['packets_transmitted'] == 0
        assert channel.last_arrival == {}

    def test_reproducibility(self):
        """Test that same seed produces same results."""
        channel1 = UnreliableChannel(loss_prob=0.2, corrupt_prob=0.2, seed=42)
        channel2 = UnreliableChannel(loss_prob=0.2, corrupt_prob=0.2, seed=42)

        results1 = [channel1.transmit(data_packet(i), Peer.A, float(i)) for i in range(50)]
        results2 = [channel2.transmit(data_packet(i), Peer.A, float(i)) for i in range(50)]

        assert results1 == results2


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
