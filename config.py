"""
Configuration file for the Selective Repeat ARQ Protocol Simulator.
Contains all fixed baseline parameters for the protocol, the emulated
channel and the batch experiments.
"""

# =============================================================================
# PROTOCOL PARAMETERS
# =============================================================================

# Retransmission timeout (simulated time units)
RTT = 16.0

# Maximum number of buffered unacknowledged packets
WINDOW_SIZE = 6

# Sequence space; Selective Repeat needs SEQ_SPACE >= 2 * WINDOW_SIZE
SEQ_SPACE = 64

# Fixed application message / packet payload length (bytes)
PAYLOAD_SIZE = 20

# Fills header fields that are not being used
NOT_IN_USE = -1

# Timer models
TIMER_MODE_PER_PACKET = "per-packet"
TIMER_MODE_SHARED = "shared"
DEFAULT_TIMER_MODE = TIMER_MODE_PER_PACKET

# =============================================================================
# CHANNEL PARAMETERS
# =============================================================================

# Per-packet loss and corruption probabilities
DEFAULT_LOSS_PROB = 0.0
DEFAULT_CORRUPT_PROB = 0.0

# One-way delay is drawn uniformly from [MIN, MAX] time units
MIN_CHANNEL_DELAY = 1.0
MAX_CHANNEL_DELAY = 10.0

# Value written over a corrupted header field
CORRUPTED_FIELD_VALUE = 999999

# =============================================================================
# APPLICATION LAYER PARAMETERS
# =============================================================================

# Messages generated by the sending application per run
DEFAULT_NUM_MESSAGES = 100

# Average time between messages from the sending application
DEFAULT_MESSAGE_INTERVAL = 10.0

# =============================================================================
# PARAMETER SWEEP CONFIGURATION
# =============================================================================

LOSS_PROBS = [0.0, 0.1, 0.2, 0.3, 0.4]
CORRUPT_PROBS = [0.0, 0.1, 0.2, 0.3, 0.4]

# Number of simulation runs per (loss, corruption) pair
RUNS_PER_CONFIGURATION = 5

# =============================================================================
# SIMULATION SETTINGS
# =============================================================================

# Default RNG seed base (actual seed = base + run_id)
RNG_SEED_BASE = 42

# Simulation time limit - failsafe
MAX_SIMULATION_TIME = 1_000_000.0

# =============================================================================
# OUTPUT PATHS
# =============================================================================

import os

BASE_DIR = os.path.dirname(os.path.abspath(__file__))
DATA_DIR = os.path.join(BASE_DIR, "data")
OUTPUT_DIR = os.path.join(DATA_DIR, "output")
PLOTS_DIR = os.path.join(OUTPUT_DIR, "plots")

# Results CSV filename
RESULTS_CSV = os.path.join(OUTPUT_DIR, "results.csv")

# =============================================================================
# DERIVED PARAMETERS (calculated from fixed parameters)
# =============================================================================

def calculate_delivery_probability(loss_prob, corrupt_prob):
    """Probability that one packet crosses the channel intact."""
    return (1 - loss_prob) * (1 - corrupt_prob)

def calculate_expected_transmissions(loss_prob, corrupt_prob):
    """
    Expected transmissions per message under Selective Repeat.
    A message is done once both the data packet and its ACK arrive intact:
    E[tx] = 1 / p_ok^2
    """
    p_ok = calculate_delivery_probability(loss_prob, corrupt_prob)
    if p_ok <= 0:
        return float("inf")
    return 1 / (p_ok * p_ok)

def calculate_mean_channel_delay():
    """Mean one-way channel delay."""
    return (MIN_CHANNEL_DELAY + MAX_CHANNEL_DELAY) / 2


# Print configuration summary
if __name__ == "__main__":
    print("=" * 60)
    print("SELECTIVE REPEAT ARQ SIMULATOR - CONFIGURATION")
    print("=" * 60)
    print(f"\nProtocol:")
    print(f"  Window Size: {WINDOW_SIZE}")
    print(f"  Sequence Space: {SEQ_SPACE}")
    print(f"  Timeout (RTT): {RTT}")
    print(f"  Payload Size: {PAYLOAD_SIZE} bytes")
    print(f"  Timer Mode: {DEFAULT_TIMER_MODE}")

    print(f"\nChannel:")
    print(f"  Delay: [{MIN_CHANNEL_DELAY}, {MAX_CHANNEL_DELAY}]")
    print(f"  Mean Delay: {calculate_mean_channel_delay()}")

    print(f"\nParameter Sweep:")
    print(f"  Loss Probabilities: {LOSS_PROBS}")
    print(f"  Corruption Probabilities: {CORRUPT_PROBS}")
    print(f"  Runs per config: {RUNS_PER_CONFIGURATION}")
    print(f"  Total simulations: {len(LOSS_PROBS) * len(CORRUPT_PROBS) * RUNS_PER_CONFIGURATION}")

    print(f"\nExpected transmissions per message:")
    for loss in LOSS_PROBS:
        tx = calculate_expected_transmissions(loss, 0.0)
        print(f"  loss={loss:.1f}: {tx:.2f}")
