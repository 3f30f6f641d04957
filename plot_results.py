#!/usr/bin/env python3
"""
Generate plots from benchmark results.
"""

import json
import sys
from collections import defaultdict
from pathlib import Path

import matplotlib
matplotlib.use('Agg')  # Non-interactive backend
import matplotlib.pyplot as plt
import numpy as np

# Configuration
PLOTS_DIR = Path("benchmark_results/plots")


def load_results(json_file):
    """Load benchmark results from JSON file."""
    with open(json_file, 'r') as f:
        return json.load(f)


def aggregate_runs(results):
    """
    Aggregate multiple runs of the same benchmark.
    Returns dict: benchmark_name -> {avg_runtime, std_runtime, config, ...}
    """
    by_benchmark = defaultdict(list)

    for r in results:
        if r['success']:  # Only include successful runs
            by_benchmark[r['benchmark_name']].append(r)

    aggregated = {}
    for name, runs in by_benchmark.items():
        runtimes = [r['total_runtime_seconds'] for r in runs]
        throughputs = [r['throughput_mbps'] for r in runs]

        # Use first run for configuration data
        first = runs[0]

        aggregated[name] = {
            'benchmark_name': name,
            'description': first['description'],
            'num_map_workers': first['num_map_workers'],
            'num_reduce_workers': first['num_reduce_workers'],
            'use_combiner': first['use_combiner'],
            'input_size_mb': first['input_size_mb'],
            'avg_runtime': float(np.mean(runtimes)),
            'std_runtime': float(np.std(runtimes)),
            'avg_map_phase': float(np.mean([r['map_phase_seconds'] for r in runs])),
            'avg_shuffle_phase': float(np.mean([r['shuffle_phase_seconds'] for r in runs])),
            'avg_reduce_phase': float(np.mean([r['reduce_phase_seconds'] for r in runs])),
            'avg_throughput': float(np.mean(throughputs)),
            'map_output_records': first['map_output_records'],
            'combine_output_records': first['combine_output_records'],
            'num_runs': len(runs)
        }

    return aggregated


def _save(output_file):
    plt.tight_layout()
    plt.savefig(output_file, dpi=300, bbox_inches='tight')
    print(f"✓ Saved: {output_file}")
    plt.close()


def plot_scaling(aggregated, prefix, x_field, xlabel, title, output_file, marker='o', color=None):
    """Plot average runtime (with std error bars) against one configuration field."""
    data = sorted((v[x_field], v['avg_runtime'], v['std_runtime'])
                  for k, v in aggregated.items() if k.startswith(prefix))

    if not data:
        print(f"⚠️  No {prefix.rstrip('_')} data found")
        return

    xs, runtimes, stds = zip(*data)

    plt.figure(figsize=(10, 6))
    plt.errorbar(xs, runtimes, yerr=stds, marker=marker, capsize=5,
                 linewidth=2, markersize=8, color=color)
    plt.xlabel(xlabel, fontsize=12)
    plt.ylabel('Runtime (seconds)', fontsize=12)
    plt.title(title, fontsize=14, fontweight='bold')
    if x_field != 'input_size_mb':
        plt.xticks(xs)
    plt.grid(True, alpha=0.3)
    _save(output_file)


def plot_speedup(aggregated, output_file):
    """Plot speedup for map worker scaling."""
    data = sorted((v['num_map_workers'], v['avg_runtime'])
                  for k, v in aggregated.items() if k.startswith('map_scaling_'))

    if len(data) < 2:
        print("⚠️  Insufficient data for speedup plot")
        return

    workers, runtimes = zip(*data)

    # Speedup relative to the smallest pool
    baseline = runtimes[0]
    speedups = [baseline / rt for rt in runtimes]
    ideal_speedup = [w / workers[0] for w in workers]

    plt.figure(figsize=(10, 6))
    plt.plot(workers, speedups, marker='o', linewidth=2, markersize=8,
             label='Actual Speedup', color='blue')
    plt.plot(workers, ideal_speedup, linestyle='--', linewidth=2,
             label='Ideal (Linear) Speedup', color='gray', alpha=0.7)
    plt.xlabel('Number of Map Workers', fontsize=12)
    plt.ylabel('Speedup', fontsize=12)
    plt.title('MapReduce Speedup vs Ideal Linear Speedup', fontsize=14, fontweight='bold')
    plt.xticks(workers)
    plt.legend(fontsize=11)
    plt.grid(True, alpha=0.3)
    _save(output_file)


def plot_phase_breakdown(aggregated, output_file):
    """Stacked bars of map, shuffle and reduce time per benchmark."""
    names = sorted(aggregated.keys())
    if not names:
        print("⚠️  No data for phase breakdown")
        return

    map_times = np.array([aggregated[n]['avg_map_phase'] for n in names])
    shuffle_times = np.array([aggregated[n]['avg_shuffle_phase'] for n in names])
    reduce_times = np.array([aggregated[n]['avg_reduce_phase'] for n in names])
    positions = np.arange(len(names))

    plt.figure(figsize=(12, 6))
    plt.bar(positions, map_times, label='Map', color='steelblue')
    plt.bar(positions, shuffle_times, bottom=map_times, label='Shuffle', color='orange')
    plt.bar(positions, reduce_times, bottom=map_times + shuffle_times, label='Reduce', color='green')
    plt.xticks(positions, names, rotation=45, ha='right')
    plt.ylabel('Time (seconds)', fontsize=12)
    plt.title('Time per Phase', fontsize=14, fontweight='bold')
    plt.legend(fontsize=11)
    plt.grid(True, axis='y', alpha=0.3)
    _save(output_file)


def plot_combiner_effect(aggregated, output_file):
    """Compare runtime and shuffled pair volume with the combiner on and off."""
    off = aggregated.get('combiner_off')
    on = aggregated.get('combiner_on')
    if off is None or on is None:
        print("⚠️  No combiner comparison data found")
        return

    fig, (ax_time, ax_pairs) = plt.subplots(1, 2, figsize=(12, 5))
    labels = ['Off', 'On']

    ax_time.bar(labels, [off['avg_runtime'], on['avg_runtime']],
                yerr=[off['std_runtime'], on['std_runtime']], capsize=5, color=['gray', 'seagreen'])
    ax_time.set_ylabel('Runtime (seconds)', fontsize=12)
    ax_time.set_title('Runtime', fontsize=13)

    pairs = [off['map_output_records'], on['combine_output_records']]
    ax_pairs.bar(labels, pairs, color=['gray', 'seagreen'])
    ax_pairs.set_ylabel('Pairs shuffled', fontsize=12)
    ax_pairs.set_title('Shuffle volume', fontsize=13)

    fig.suptitle('Effect of the Combiner', fontsize=14, fontweight='bold')
    _save(output_file)


def generate_summary_table(aggregated, output_file):
    """Generate a markdown table summarizing all results."""
    lines = [
        "# Benchmark Results Summary\n",
        "| Benchmark | Maps | Reduces | Combiner | Input (MB) | Avg Runtime (s) | Std Dev | Throughput (MB/s) |",
        "|-----------|------|---------|----------|------------|-----------------|---------|-------------------|"
    ]

    for name in sorted(aggregated.keys()):
        v = aggregated[name]
        lines.append(
            f"| {v['benchmark_name']:<21} | {v['num_map_workers']:>4} | "
            f"{v['num_reduce_workers']:>7} | {'on' if v['use_combiner'] else 'off':>8} | "
            f"{v['input_size_mb']:>10.2f} | {v['avg_runtime']:>15.2f} | {v['std_runtime']:>7.3f} | "
            f"{v['avg_throughput']:>17.3f} |"
        )

    with open(output_file, 'w') as f:
        f.write('\n'.join(lines))

    print(f"✓ Saved: {output_file}")


def main():
    """Generate all plots from benchmark results."""
    if len(sys.argv) < 2:
        print("Usage: python plot_results.py <results.json>")
        print("\nExample:")
        print("  python plot_results.py benchmark_results/benchmark_results_20250113_120000.json")
        return 1

    json_file = sys.argv[1]

    if not Path(json_file).exists():
        print(f"❌ File not found: {json_file}")
        return 1

    print(f"Loading results from: {json_file}")
    results = load_results(json_file)
    print(f"✓ Loaded {len(results)} benchmark results")

    aggregated = aggregate_runs(results)
    print(f"✓ Aggregated into {len(aggregated)} unique benchmarks")

    PLOTS_DIR.mkdir(parents=True, exist_ok=True)

    print("\nGenerating plots...")
    plot_scaling(aggregated, 'input_size_', 'input_size_mb', 'Input Size (MB)',
                 'Word Count: Input Size Scaling\n(4 map workers, 2 reduce workers)',
                 PLOTS_DIR / "1_input_size_scaling.png")
    plot_scaling(aggregated, 'map_scaling_', 'num_map_workers', 'Number of Map Workers',
                 'Word Count: Map Worker Parallelism', PLOTS_DIR / "2_map_worker_scaling.png",
                 marker='s', color='orangered')
    plot_scaling(aggregated, 'reduce_scaling_', 'num_reduce_workers', 'Number of Reduce Workers',
                 'Word Count: Reduce Worker Parallelism', PLOTS_DIR / "3_reduce_worker_scaling.png",
                 marker='^', color='green')
    plot_speedup(aggregated, PLOTS_DIR / "4_speedup_analysis.png")
    plot_phase_breakdown(aggregated, PLOTS_DIR / "5_phase_breakdown.png")
    plot_combiner_effect(aggregated, PLOTS_DIR / "6_combiner_effect.png")

    generate_summary_table(aggregated, PLOTS_DIR / "results_table.md")

    print(f"\n{'='*70}")
    print(f"All plots saved to: {PLOTS_DIR}/")
    print(f"{'='*70}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
