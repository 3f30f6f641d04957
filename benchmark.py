#!/usr/bin/env python3
"""
Automated benchmarking script for the MapReduce engine.
Runs word count under multiple job configurations in this process and
collects performance metrics.
"""

import argparse
import csv
import json
import logging
import shutil
import sys
import tempfile
from datetime import datetime
from pathlib import Path

import numpy as np

from mrengine.coordinator.job_manager import JobManager
from mrengine.coordinator.metrics import MetricsCollector
from mrengine.worker.function_loader import FunctionLoader

# Configuration
RESULTS_DIR = Path("benchmark_results")
INPUT_DIR = Path("benchmark_inputs")

# Benchmark configurations
BENCHMARKS = [
    # Experiment 1: Input Size Scaling (fixed parallelism)
    {"name": "input_size_small", "input": "corpus_small.txt", "maps": 4, "reduces": 2,
     "combiner": False, "description": "Small input (~64KB), baseline"},
    {"name": "input_size_medium", "input": "corpus_medium.txt", "maps": 4, "reduces": 2,
     "combiner": False, "description": "Medium input (~1MB)"},
    {"name": "input_size_large", "input": "corpus_large.txt", "maps": 4, "reduces": 2,
     "combiner": False, "description": "Large input (~10MB)"},

    # Experiment 2: Map Worker Scaling (fixed input)
    {"name": "map_scaling_1", "input": "corpus_large.txt", "maps": 1, "reduces": 2,
     "combiner": False, "description": "1 map worker"},
    {"name": "map_scaling_2", "input": "corpus_large.txt", "maps": 2, "reduces": 2,
     "combiner": False, "description": "2 map workers"},
    {"name": "map_scaling_4", "input": "corpus_large.txt", "maps": 4, "reduces": 2,
     "combiner": False, "description": "4 map workers"},
    {"name": "map_scaling_8", "input": "corpus_large.txt", "maps": 8, "reduces": 2,
     "combiner": False, "description": "8 map workers"},

    # Experiment 3: Reduce Worker Scaling (fixed input)
    {"name": "reduce_scaling_1", "input": "corpus_large.txt", "maps": 4, "reduces": 1,
     "combiner": False, "description": "1 reduce worker"},
    {"name": "reduce_scaling_4", "input": "corpus_large.txt", "maps": 4, "reduces": 4,
     "combiner": False, "description": "4 reduce workers"},

    # Experiment 4: Combiner
    {"name": "combiner_off", "input": "corpus_large.txt", "maps": 4, "reduces": 2,
     "combiner": False, "description": "Combiner disabled"},
    {"name": "combiner_on", "input": "corpus_large.txt", "maps": 4, "reduces": 2,
     "combiner": True, "description": "Combiner enabled"},
]


def run_benchmark(config, input_dir: Path, split_size: int, collector: MetricsCollector, run_number=1):
    """Run a single benchmark configuration."""
    print(f"\n{'='*70}")
    print(f"Benchmark: {config['name']} (Run {run_number})")
    print(f"Description: {config['description']}")
    print(f"Config: {config['maps']} map workers, {config['reduces']} reduce workers, "
          f"combiner {'on' if config['combiner'] else 'off'}")
    print(f"{'='*70}")

    input_path = input_dir / config['input']
    if not input_path.exists():
        print(f"❌ Input file not found: {input_path}")
        print("   Skipping this benchmark...")
        return None

    output_dir = Path(tempfile.mkdtemp(prefix=f"bench-{config['name']}-"))
    output_path = output_dir / "out"
    try:
        job_config = FunctionLoader().build_job_config(
            use_combiner=config['combiner'],
            job_name=config['name'],
            input_paths=[str(input_path)],
            output_path=str(output_path),
            num_map_workers=config['maps'],
            num_reduce_workers=config['reduces'],
            split_size=split_size,
        )
        report = JobManager(job_config, metrics_collector=collector).run()
    finally:
        shutil.rmtree(output_dir, ignore_errors=True)

    metrics = report.metrics
    duration = metrics.total_time_seconds
    input_mb = metrics.input_size_bytes / 1024 / 1024
    if report.succeeded:
        print(f"  ✓ Job completed in {duration:.2f}s")
    else:
        print(f"  ❌ Job failed during {report.failed_stage}: {report.error}")

    return {
        "benchmark_name": config["name"],
        "description": config["description"],
        "run_number": run_number,
        "timestamp": datetime.now().isoformat(),
        "job_id": report.job_id,
        "input_file": str(input_path),
        "input_size_bytes": metrics.input_size_bytes,
        "input_size_mb": round(input_mb, 2),
        "num_map_workers": config["maps"],
        "num_reduce_workers": config["reduces"],
        "num_map_tasks": metrics.num_map_tasks,
        "use_combiner": config["combiner"],
        "success": report.succeeded,
        "total_runtime_seconds": round(duration, 3),
        "map_phase_seconds": round(metrics.map_phase_time_seconds, 3),
        "shuffle_phase_seconds": round(metrics.shuffle_phase_time_seconds, 3),
        "reduce_phase_seconds": round(metrics.reduce_phase_time_seconds, 3),
        "throughput_mbps": round(input_mb / duration, 3) if duration > 0 else 0,
        "map_output_records": metrics.map_output_records,
        "combine_output_records": metrics.combine_output_records,
        "distinct_keys": metrics.reduce_output_records,
        "peak_rss_mb": round(metrics.peak_rss_bytes / 1024 / 1024, 1),
        "status": report.status.value,
    }


def save_results(results, timestamp):
    """Save results to JSON and CSV files."""
    RESULTS_DIR.mkdir(exist_ok=True)

    json_file = RESULTS_DIR / f"benchmark_results_{timestamp}.json"
    with open(json_file, 'w') as f:
        json.dump(results, f, indent=2)
    print(f"\n✓ Results saved to: {json_file}")

    csv_file = RESULTS_DIR / f"benchmark_results_{timestamp}.csv"
    if results:
        fieldnames = list(results[0].keys())
        with open(csv_file, 'w', newline='') as f:
            writer = csv.DictWriter(f, fieldnames=fieldnames)
            writer.writeheader()
            writer.writerows(results)
        print(f"✓ Results saved to: {csv_file}")

    return json_file, csv_file


def print_summary(results):
    """Print a summary table of results, averaged over runs."""
    print(f"\n{'='*70}")
    print("BENCHMARK SUMMARY")
    print(f"{'='*70}")
    print(f"{'Benchmark':<22} {'Maps':>5} {'Reduces':>7} {'Mean':>9} {'Std':>8} {'Status':>7}")
    print(f"{'-'*70}")

    names = list(dict.fromkeys(r['benchmark_name'] for r in results))
    for name in names:
        runs = [r for r in results if r['benchmark_name'] == name]
        runtimes = np.array([r['total_runtime_seconds'] for r in runs])
        ok = all(r['success'] for r in runs)
        first = runs[0]
        print(f"{name:<22} {first['num_map_workers']:>5} {first['num_reduce_workers']:>7} "
              f"{runtimes.mean():>8.2f}s {runtimes.std():>7.3f} {'✓' if ok else '✗':>7}")

    print(f"{'='*70}")

    successful = sum(1 for r in results if r['success'])
    print(f"Total: {len(results)} runs, {successful} successful, "
          f"{len(results) - successful} failed")


def main(argv=None):
    """Main benchmarking workflow."""
    parser = argparse.ArgumentParser(description='Benchmark the MapReduce engine')
    parser.add_argument('--input-dir', default=str(INPUT_DIR),
                        help=f'Directory with generated inputs (default: {INPUT_DIR})')
    parser.add_argument('--runs', type=int, default=1, help='Runs per benchmark (default: 1)')
    parser.add_argument('--split-size', type=int, default=1024 * 1024,
                        help='Input split size in bytes (default: 1MB)')
    parser.add_argument('--only', help='Run only benchmarks whose name starts with this prefix')
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.WARNING,
                        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    print("=" * 70)
    print("MapReduce Performance Benchmark Suite")
    print("=" * 70)

    input_dir = Path(args.input_dir)
    if not input_dir.is_dir():
        print(f"❌ Input directory not found: {input_dir}")
        print("   Run scripts/generate_benchmark_inputs.py first")
        return 1

    benchmarks = [b for b in BENCHMARKS if not args.only or b['name'].startswith(args.only)]
    runs_per_benchmark = max(1, args.runs)
    print(f"\nRunning {len(benchmarks)} benchmarks × {runs_per_benchmark} runs = "
          f"{len(benchmarks) * runs_per_benchmark} total jobs")

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    collector = MetricsCollector()
    all_results = []

    for config in benchmarks:
        for run in range(1, runs_per_benchmark + 1):
            result = run_benchmark(config, input_dir, args.split_size, collector, run_number=run)
            if result:
                all_results.append(result)

    if not all_results:
        print("\n❌ No results collected")
        return 1

    json_file, _ = save_results(all_results, timestamp)
    print_summary(all_results)
    print(f"\nGenerate plots: python plot_results.py {json_file}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
