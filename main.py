#!/usr/bin/env python3
"""
Selective Repeat ARQ Protocol Simulator - Main Entry Point

This is the main CLI interface for the ARQ protocol simulator.
It provides options for:
- Single simulation runs
- Channel sweeps (loss × corruption probabilities)
- Visualization generation

Usage:
    python main.py --single --loss 0.2 --corrupt 0.2 --messages 50 -v
    python main.py --sweep --runs 5
    python main.py --visualize --csv results.csv
"""

import argparse
import os
import time

from config import (
    WINDOW_SIZE, SEQ_SPACE, RTT, DEFAULT_TIMER_MODE, TIMER_MODE_PER_PACKET,
    TIMER_MODE_SHARED, DEFAULT_NUM_MESSAGES, DEFAULT_MESSAGE_INTERVAL,
    RUNS_PER_CONFIGURATION, RNG_SEED_BASE, RESULTS_CSV, PLOTS_DIR
)
from srarq.utils.logger import LogLevel


def _log_level(args) -> int:
    if args.verbose >= 2:
        return LogLevel.DEBUG
    if args.verbose == 1:
        return LogLevel.INFO
    return LogLevel.WARNING


def _protocol_overrides(args) -> dict:
    """SimulatorConfig fields shared by single runs and sweeps."""
    return {
        'window_size': args.window,
        'seq_space': args.seqspace,
        'timeout': args.rtt,
        'timer_mode': args.timer,
        'num_messages': args.messages,
        'message_interval': args.interval,
        'retry_rejected': args.retry,
    }


def run_single_simulation(args):
    """Run a single simulation with specified parameters."""
    from simulation.simulator import Simulator, SimulatorConfig

    config = SimulatorConfig(
        loss_prob=args.loss,
        corrupt_prob=args.corrupt,
        seed=args.seed,
        log_level=_log_level(args),
        log_file=args.log_file,
        **_protocol_overrides(args)
    )

    print("=" * 60)
    print("SELECTIVE REPEAT ARQ SIMULATOR")
    print("=" * 60)
    print(f"\nConfiguration:")
    print(f"  Window size: {config.window_size}")
    print(f"  Sequence space: {config.seq_space}")
    print(f"  Timeout: {config.timeout}")
    print(f"  Timer mode: {config.timer_mode}")
    print(f"  Messages: {config.num_messages} (mean interval {config.message_interval})")
    print(f"  Loss / corruption: {config.loss_prob} / {config.corrupt_prob}")
    print(f"  Seed: {config.seed}")

    print("\nRunning simulation...")

    sim = Simulator(config)
    start_time = time.time()
    results = sim.run()
    elapsed = time.time() - start_time
    sim.logger.close()

    print("\n" + "=" * 60)
    print("RESULTS")
    print("=" * 60)

    verification = results['verification']
    print(f"\nTransfer Status:")
    print(f"  Complete: {results['complete']}")
    print(f"  Delivered in order, exactly once: {verification['valid']}")
    print(f"  Accepted / delivered: {verification['accepted']} / {verification['delivered']}")
    print(f"  Simulation Time: {results['simulation_time']:.4f}")
    print(f"  Real Time: {elapsed:.2f} s")

    metrics = results['metrics']
    print(f"\nPerformance Metrics:")
    print(f"  Throughput: {metrics['throughput']:.4f} messages / time unit")
    print(f"  Efficiency: {metrics['efficiency'] * 100:.2f}%")
    print(f"  Acceptance rate: {metrics['acceptance_rate'] * 100:.2f}%")

    print(f"\nPacket Statistics:")
    print(f"  Packets Sent: {metrics['data_packets_sent']}")
    print(f"  Retransmissions: {metrics['retransmissions']}")
    print(f"  Window Full Drops: {metrics['window_full_events']}")
    print(f"  ACKs Sent / Accepted: {metrics['acks_sent']} / {metrics['acks_accepted']}")
    print(f"  Lost / Corrupted: {metrics['packets_lost']} / {metrics['packets_corrupted']}")
    print(f"  Peak Outstanding: {metrics['window_utilization']['peak_outstanding']}")

    if metrics['latency']['samples'] > 0:
        print(f"\nDelivery Latency:")
        print(f"  Mean: {metrics['latency']['mean']:.2f}")
        print(f"  Min: {metrics['latency']['min']:.2f}")
        print(f"  Max: {metrics['latency']['max']:.2f}")

    if args.timeseries:
        directory = os.path.dirname(args.timeseries)
        if directory:
            os.makedirs(directory, exist_ok=True)
        sim.metrics.get_time_series().to_csv(args.timeseries, index=False)
        print(f"\nTime series saved to: {args.timeseries}")

    return results


def run_channel_sweep(args):
    """Run loss × corruption sweep."""
    from simulation.runner import BatchRunner

    print("=" * 60)
    print("CHANNEL SWEEP")
    print("=" * 60)

    overrides = _protocol_overrides(args)
    if args.quick:
        loss_probs = [0.0, 0.2, 0.4]
        corrupt_probs = [0.0, 0.2, 0.4]
        runs = 2
        overrides['num_messages'] = min(args.messages, 30)
    else:
        loss_probs = None
        corrupt_probs = None
        runs = args.runs

    output_file = args.output or RESULTS_CSV
    runner = BatchRunner(
        loss_probs=loss_probs,
        corrupt_probs=corrupt_probs,
        runs_per_config=runs,
        overrides=overrides,
        output_file=output_file
    )

    print(f"\nConfiguration:")
    print(f"  Loss probabilities: {runner.loss_probs}")
    print(f"  Corruption probabilities: {runner.corrupt_probs}")
    print(f"  Runs per config: {runs}")
    print(f"  Total simulations: {runner.total_runs}")
    print(f"  Output: {output_file}")

    if args.parallel:
        results = runner.run_parallel(max_workers=args.workers)
    else:
        results = runner.run_sequential()

    runner.save_results()

    robust = runner.get_robust_configuration()

    print("\n" + "=" * 60)
    print("HARSHEST FULLY DELIVERED CHANNEL")
    print("=" * 60)
    if 'error' in robust:
        print(f"  {robust['error']}")
    else:
        print(f"  Loss: {robust['loss_prob']}  Corruption: {robust['corrupt_prob']}")
        print(f"  Mean Throughput: {robust['mean_throughput']:.4f}")
        print(f"  Mean Retransmissions: {robust['mean_retransmissions']:.1f}")
    print(f"  Invalid runs: {robust.get('invalid_runs', 0)}")

    return results


def generate_visualizations(args):
    """Generate visualization plots."""
    from visualization.heatmap import MetricHeatmap

    print("=" * 60)
    print("GENERATING VISUALIZATIONS")
    print("=" * 60)

    csv_file = args.csv or RESULTS_CSV

    if not os.path.exists(csv_file):
        print(f"Error: Results file not found: {csv_file}")
        print("Run a channel sweep first: python main.py --sweep")
        return None

    heatmap = MetricHeatmap(csv_file=csv_file)
    print(f"Loaded {len(heatmap.df)} results from {csv_file}")

    output_dir = args.output or PLOTS_DIR
    if args.metric == 'all':
        files = heatmap.plot_all(output_dir=output_dir)
    else:
        files = [heatmap.plot(
            metric=args.metric,
            output_file=os.path.join(output_dir, f'{args.metric}_heatmap.png')
        )]

    print("\n" + "=" * 60)
    print("VISUALIZATIONS GENERATED")
    print("=" * 60)
    for path in files:
        print(f"  {path}")
    return files


def show_config(args):
    """Display current configuration."""
    import config as cfg

    print("=" * 60)
    print("SIMULATOR CONFIGURATION")
    print("=" * 60)

    print(f"\nProtocol Parameters:")
    print(f"  Window Size: {cfg.WINDOW_SIZE}")
    print(f"  Sequence Space: {cfg.SEQ_SPACE}")
    print(f"  Timeout (RTT): {cfg.RTT}")
    print(f"  Payload Size: {cfg.PAYLOAD_SIZE} bytes")
    print(f"  Timer Mode: {cfg.DEFAULT_TIMER_MODE}")

    print(f"\nChannel:")
    print(f"  Delay: uniform [{cfg.MIN_CHANNEL_DELAY}, {cfg.MAX_CHANNEL_DELAY}]")
    print(f"  Default loss / corruption: {cfg.DEFAULT_LOSS_PROB} / {cfg.DEFAULT_CORRUPT_PROB}")

    print(f"\nApplication:")
    print(f"  Messages per run: {cfg.DEFAULT_NUM_MESSAGES}")
    print(f"  Mean interval: {cfg.DEFAULT_MESSAGE_INTERVAL}")

    print(f"\nChannel Sweep:")
    print(f"  Loss Probabilities: {cfg.LOSS_PROBS}")
    print(f"  Corruption Probabilities: {cfg.CORRUPT_PROBS}")
    print(f"  Runs per config: {cfg.RUNS_PER_CONFIGURATION}")

    print(f"\nExpected transmissions per message:")
    for loss in cfg.LOSS_PROBS:
        for corrupt in cfg.CORRUPT_PROBS:
            tx = cfg.calculate_expected_transmissions(loss, corrupt)
            print(f"  loss={loss:.1f}, corrupt={corrupt:.1f}: {tx:.2f}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Selective Repeat ARQ Protocol Simulator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Single simulation with trace:
    python main.py --single --loss 0.2 --corrupt 0.1 -vv

  Quick channel sweep (for testing):
    python main.py --sweep --quick

  Parallel channel sweep:
    python main.py --sweep --parallel --workers 4

  Generate visualizations:
    python main.py --visualize --metric all

  Show configuration:
    python main.py --config
        """
    )

    # Mode selection
    mode = parser.add_mutually_exclusive_group(required=True)
    mode.add_argument('--single', action='store_true',
                      help='Run single simulation')
    mode.add_argument('--sweep', action='store_true',
                      help='Run loss × corruption sweep')
    mode.add_argument('--visualize', action='store_true',
                      help='Generate heatmaps from sweep results')
    mode.add_argument('--config', action='store_true',
                      help='Show configuration')

    # Protocol options
    parser.add_argument('--window', '-w', type=int, default=WINDOW_SIZE,
                        help=f'Window size (default: {WINDOW_SIZE})')
    parser.add_argument('--seqspace', type=int, default=SEQ_SPACE,
                        help=f'Sequence space (default: {SEQ_SPACE})')
    parser.add_argument('--rtt', type=float, default=RTT,
                        help=f'Retransmission timeout (default: {RTT})')
    parser.add_argument('--timer', choices=[TIMER_MODE_PER_PACKET, TIMER_MODE_SHARED],
                        default=DEFAULT_TIMER_MODE,
                        help=f'Timer model (default: {DEFAULT_TIMER_MODE})')

    # Workload and channel options
    parser.add_argument('--messages', '-n', type=int, default=DEFAULT_NUM_MESSAGES,
                        help=f'Messages to send (default: {DEFAULT_NUM_MESSAGES})')
    parser.add_argument('--interval', type=float, default=DEFAULT_MESSAGE_INTERVAL,
                        help=f'Mean time between messages (default: {DEFAULT_MESSAGE_INTERVAL})')
    parser.add_argument('--loss', type=float, default=0.0,
                        help='Packet loss probability (default: 0.0)')
    parser.add_argument('--corrupt', type=float, default=0.0,
                        help='Packet corruption probability (default: 0.0)')
    parser.add_argument('--retry', action='store_true',
                        help='Re-offer messages refused by a full window')
    parser.add_argument('--seed', '-s', type=int, default=RNG_SEED_BASE,
                        help=f'Random seed (default: {RNG_SEED_BASE})')

    # Sweep options
    parser.add_argument('--runs', '-r', type=int,
                        default=RUNS_PER_CONFIGURATION,
                        help=f'Runs per configuration (default: {RUNS_PER_CONFIGURATION})')
    parser.add_argument('--parallel', action='store_true',
                        help='Run simulations in parallel')
    parser.add_argument('--workers', type=int, default=None,
                        help='Number of parallel workers')
    parser.add_argument('--quick', action='store_true',
                        help='Quick sweep with reduced parameters')

    # Output options
    parser.add_argument('--output', '-o', type=str,
                        help='Output CSV (sweep) or plot directory (visualize)')
    parser.add_argument('--csv', type=str,
                        help='CSV file for visualization')
    parser.add_argument('--metric', type=str, default='throughput',
                        help="Metric to plot, or 'all' (default: throughput)")
    parser.add_argument('--timeseries', type=str, default=None,
                        help='Write periodic metric samples of a single run to CSV')
    parser.add_argument('--log-file', type=str, default=None,
                        help='Mirror the simulation log to a file')
    parser.add_argument('--verbose', '-v', action='count', default=0,
                        help='Verbose output (-v protocol events, -vv full trace)')

    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    # Execute selected mode
    if args.single:
        return run_single_simulation(args)
    elif args.sweep:
        return run_channel_sweep(args)
    elif args.visualize:
        return generate_visualizations(args)
    elif args.config:
        return show_config(args)


if __name__ == "__main__":
    main()
