#!/usr/bin/env python3
"""
MapReduce Client CLI
Provides commands for running a job locally and reading back its results
"""

import argparse
import logging
import os
import sys

from mrengine.common import config as defaults
from mrengine.common.errors import MapReduceError
from mrengine.common.output_sink import OUTPUT_FILE_NAME, SUCCESS_MARKER
from mrengine.client.monitoring import ProgressReporter, print_job_report
from mrengine.coordinator.job_manager import JobManager
from mrengine.worker.function_loader import DEFAULT_JOB_FILE, FunctionLoader

logger = logging.getLogger(__name__)


def setup_logging(level: str):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def run_job(args):
    """Run a MapReduce job in this process"""
    if not os.path.exists(args.job_file):
        print(f"Error: Job file {args.job_file} not found")
        return 1

    try:
        loader = FunctionLoader(args.job_file)
        config = loader.build_job_config(
            use_combiner=args.use_combiner,
            job_name=args.job_name,
            input_paths=args.inputs,
            output_path=args.output,
            num_map_workers=args.map_workers,
            num_reduce_workers=args.reduce_workers,
            num_reduce_tasks=args.reduce_tasks,
            sort_partitions=args.sort_partitions,
            split_size=args.split_size,
            task_timeout=args.task_timeout if args.task_timeout and args.task_timeout > 0 else None,
            max_retries=args.max_retries,
            fail_fast=not args.no_fail_fast,
            spill_threshold=args.spill_threshold,
            spill_dir=args.spill_dir,
        )
    except (AttributeError, ImportError, ValueError) as e:
        print(f"Error: Invalid job configuration: {e}")
        return 1

    manager = JobManager(config)
    reporter = None
    if args.progress_interval > 0:
        reporter = ProgressReporter(manager.get_job_status, args.progress_interval)
        reporter.start()

    try:
        report = manager.run()
    except KeyboardInterrupt:
        manager.cancel()
        print("\nJob interrupted")
        return 1
    finally:
        if reporter is not None:
            reporter.stop()

    print_job_report(report)

    if args.metrics_file and report.metrics is not None:
        report.metrics.save_to_file(args.metrics_file)
        print(f"✓ Metrics written to {args.metrics_file}")

    lingering = manager.lingering_tasks()
    if lingering:
        # Abandoned attempts run on pool threads that the interpreter joins at exit
        logger.warning(f"Exiting with abandoned attempts still running: {', '.join(lingering)}")
        sys.stdout.flush()
        sys.stderr.flush()
        logging.shutdown()
        os._exit(report.exit_code)

    return report.exit_code


def get_results(args):
    """Print the committed output of a finished job"""
    output_file = os.path.join(args.output, OUTPUT_FILE_NAME)
    if not os.path.exists(os.path.join(args.output, SUCCESS_MARKER)):
        print(f"Error: No completed output in {args.output}")
        return 1

    try:
        with open(output_file, 'r', encoding='utf-8') as f:
            for count, line in enumerate(f):
                if args.limit is not None and count >= args.limit:
                    break
                sys.stdout.write(line)
    except OSError as e:
        print(f"Error reading results: {e}")
        return 1
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='mrengine',
        description='MapReduce Client CLI',
        epilog='Example: %(prog)s run-job input.txt --output out/ --no-combiner'
    )
    parser.add_argument('--log-level', default=defaults.DEFAULT_LOG_LEVEL,
                        help=f'Logging level (default: {defaults.DEFAULT_LOG_LEVEL})')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # run-job command
    run_parser = subparsers.add_parser(
        'run-job',
        help='Run MapReduce job',
        description='Run a MapReduce job over local input files and write the sorted result'
    )
    run_parser.add_argument('inputs', nargs='+', help='Input files, directories or glob patterns')
    run_parser.add_argument('--output', required=True, help='Output directory (must not contain data)')
    run_parser.add_argument('--job-file', default=DEFAULT_JOB_FILE,
                            help='Python file with map/reduce functions (default: word count)')
    run_parser.add_argument('--job-name', default='word count', help='Job name used in logs')
    run_parser.add_argument('--map-workers', type=int, default=defaults.DEFAULT_MAP_WORKERS,
                            help=f'Map worker threads (default: {defaults.DEFAULT_MAP_WORKERS})')
    run_parser.add_argument('--reduce-workers', type=int, default=defaults.DEFAULT_REDUCE_WORKERS,
                            help=f'Reduce worker threads (default: {defaults.DEFAULT_REDUCE_WORKERS})')
    run_parser.add_argument('--reduce-tasks', type=int, default=None,
                            help='Number of reduce key ranges (default: one per reduce worker)')
    run_parser.add_argument('--sort-partitions', type=int, default=1,
                            help='Parallel sort partitions during shuffle (default: 1)')
    combiner_group = run_parser.add_mutually_exclusive_group()
    combiner_group.add_argument('--use-combiner', dest='use_combiner', action='store_true', default=True,
                                help='Enable combiner optimization (default)')
    combiner_group.add_argument('--no-combiner', dest='use_combiner', action='store_false',
                                help='Send raw map output to the shuffle')
    run_parser.add_argument('--task-timeout', type=float, default=defaults.DEFAULT_TASK_TIMEOUT,
                            help='Per-task timeout in seconds (default: none)')
    run_parser.add_argument('--max-retries', type=int, default=defaults.DEFAULT_MAX_RETRIES,
                            help=f'Retries per failed task (default: {defaults.DEFAULT_MAX_RETRIES})')
    run_parser.add_argument('--no-fail-fast', action='store_true',
                            help='Drop keys whose reduce fails instead of failing the job')
    run_parser.add_argument('--split-size', type=int, default=defaults.DEFAULT_SPLIT_SIZE,
                            help='Input split size in bytes')
    run_parser.add_argument('--spill-threshold', type=int, default=defaults.DEFAULT_SPILL_THRESHOLD,
                            help='Intermediate pairs held in memory per map task before spilling')
    run_parser.add_argument('--spill-dir', default=defaults.DEFAULT_SPILL_DIR,
                            help='Directory for spill files (default: system temp dir)')
    run_parser.add_argument('--metrics-file', help='Write job metrics as JSON to this file')
    run_parser.add_argument('--progress-interval', type=float, default=2.0,
                            help='Seconds between progress log lines, 0 to disable (default: 2)')
    run_parser.set_defaults(func=run_job)

    # get-results command
    results_parser = subparsers.add_parser(
        'get-results',
        help='Get job results',
        description='Print the committed output of a completed job'
    )
    results_parser.add_argument('output', help='Output directory of the job')
    results_parser.add_argument('--limit', type=int, default=None, help='Print at most this many lines')
    results_parser.set_defaults(func=get_results)

    return parser


def main(argv=None):
    """Main CLI entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    # If no command specified, print help
    if not hasattr(args, 'func'):
        parser.print_help()
        return 1

    setup_logging(args.log_level)

    try:
        return args.func(args)
    except MapReduceError as e:
        logger.error(f"{args.command} failed: {e}")
        return 1


if __name__ == '__main__':
    sys.exit(main())
