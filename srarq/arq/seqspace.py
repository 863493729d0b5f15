"""
Sequence-space arithmetic.

Every window-membership test in the sender and receiver goes through
in_window(), which measures the modular distance from the window base and
therefore handles wraparound for any window/sequence-space ratio.
"""


def seq_distance(base: int, seq_num: int, seq_space: int) -> int:
    """Number of steps from base forward to seq_num, modulo seq_space."""
    return (seq_num - base + seq_space) % seq_space


def in_window(seq_num: int, base: int, size: int, seq_space: int) -> bool:
    """
    Check if seq_num is one of the `size` sequence numbers starting at base.

    Args:
        seq_num: Sequence number to test
        base: First sequence number of the window
        size: Number of sequence numbers in the window
        seq_space: Size of the sequence space

    Returns:
        True if seq_num lies in [base, base + size) modulo seq_space
    """
    return seq_distance(base, seq_num, seq_space) < size


def next_seq(seq_num: int, seq_space: int) -> int:
    """Successor of seq_num in the sequence space."""
    return (seq_num + 1) % seq_space


def previous_window_base(base: int, size: int, seq_space: int) -> int:
    """Base of the window of `size` numbers that ends just before base."""
    return (base - size + seq_space) % seq_space


def is_valid_seq(seq_num: int, seq_space: int) -> bool:
    """Check that seq_num is a real sequence number, not a sentinel."""
    return 0 <= seq_num < seq_space


def validate_window(window_size: int, seq_space: int):
    """
    Validate window sizing for Selective Repeat.

    The receiver can only tell a new packet from a retransmission of the
    previous cycle when the two windows never overlap.

    Raises:
        ValueError: If the sizes are not usable
    """
    if window_size < 1:
        raise ValueError("Window size must be at least 1")
    if seq_space < 2 * window_size:
        raise ValueError(
            f"Sequence space ({seq_space}) must be at least twice the "
            f"window size ({window_size})"
        )
