#!/usr/bin/env python3
"""
Generate benchmark input files.

Replicates a source text to each target size, or synthesizes text with a
Zipf-distributed vocabulary when no source file is given.
"""

import argparse
import sys
from pathlib import Path

import numpy as np

# Configuration
INPUT_DIR = Path("benchmark_inputs")

# Target sizes (approximate)
TARGETS = [
    ("corpus_small.txt", 64 * 1024),            # ~64KB
    ("corpus_medium.txt", 1 * 1024 * 1024),     # ~1MB
    ("corpus_large.txt", 10 * 1024 * 1024),     # ~10MB
    ("corpus_xlarge.txt", 50 * 1024 * 1024),    # ~50MB
]

VOCABULARY_SIZE = 20000
WORDS_PER_LINE = 12


def synthesize_text(target_size: int, seed: int = 42) -> bytes:
    """
    Build roughly target_size bytes of text with a Zipf word distribution.

    Args:
        target_size: Approximate number of bytes to produce
        seed: Random seed, so the same size always yields the same text
    """
    rng = np.random.default_rng(seed)
    vocabulary = [f"w{i:05d}" for i in range(VOCABULARY_SIZE)]

    # 6-character words plus a separator
    num_words = max(1, target_size // 7)
    ranks = rng.zipf(1.2, size=num_words)
    ranks = np.minimum(ranks, VOCABULARY_SIZE) - 1

    lines = []
    for start in range(0, num_words, WORDS_PER_LINE):
        lines.append(" ".join(vocabulary[r] for r in ranks[start:start + WORDS_PER_LINE]))
    return ("\n".join(lines) + "\n").encode('utf-8')


def generate_file(output_path: Path, target_size: int, source_content: bytes):
    """
    Generate a file by replicating source content until target size is reached.

    Args:
        output_path: Path where the output file should be written
        target_size: Target file size in bytes
        source_content: The content to replicate
    """
    print(f"Generating {output_path.name} (target: {target_size / (1024*1024):.1f} MB)...")

    source_size = len(source_content)
    if source_size == 0:
        raise ValueError("Source content is empty!")

    replications = int(target_size / source_size)

    with open(output_path, 'wb') as f:
        for _ in range(replications):
            f.write(source_content)

        # Partial replication stops at a line boundary so no word is cut in half
        remaining = int(target_size - (replications * source_size))
        if remaining > 0:
            tail = source_content[:remaining]
            cut = tail.rfind(b'\n')
            if cut >= 0:
                f.write(tail[:cut + 1])

    actual_size = output_path.stat().st_size
    print(f"  ✓ Created: {output_path.name} ({actual_size / (1024*1024):.2f} MB, {replications} replications)")
    return actual_size


def main(argv=None):
    """Generate all benchmark input files."""
    parser = argparse.ArgumentParser(description='Generate benchmark input files')
    parser.add_argument('--source', help='Text file to replicate (default: synthesized text)')
    parser.add_argument('--output-dir', default=str(INPUT_DIR), help=f'Output directory (default: {INPUT_DIR})')
    parser.add_argument('--force', action='store_true', help='Regenerate files that already exist')
    args = parser.parse_args(argv)

    print("=" * 70)
    print("Generating Benchmark Input Files")
    print("=" * 70)

    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    if args.source:
        source_file = Path(args.source)
        if not source_file.exists():
            print(f"❌ Source file not found: {source_file}")
            return 1
        source_content = source_file.read_bytes()
        print(f"\nSource file: {source_file} ({len(source_content)} bytes)")
    else:
        source_content = synthesize_text(TARGETS[0][1])
        print(f"\nSynthesized source text ({len(source_content)} bytes, "
              f"{VOCABULARY_SIZE} word vocabulary)")

    total_size = 0
    for filename, target_size in TARGETS:
        output_path = output_dir / filename

        if output_path.exists() and not args.force:
            existing_size = output_path.stat().st_size
            if abs(existing_size - target_size) < target_size * 0.1:  # Within 10%
                print(f"  Skipping {filename} (already exists, size: {existing_size / (1024*1024):.2f} MB)")
                total_size += existing_size
                continue

        try:
            total_size += generate_file(output_path, target_size, source_content)
        except (OSError, ValueError) as e:
            print(f"  ❌ Error generating {filename}: {e}")
            return 1

    print("\n" + "=" * 70)
    print("✓ Generation complete!")
    print(f"  Total size: {total_size / (1024*1024):.2f} MB")
    print(f"  Files created in: {output_dir}")
    print("=" * 70)
    return 0


if __name__ == "__main__":
    sys.exit(main())
