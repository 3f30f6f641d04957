"""
Intermediate buffer owned by one map task attempt.

Pairs are appended without locking since only the owning task writes to the
buffer. Once spill_threshold pairs are held in memory they are pickled to a
spill file; iteration replays spill files first, then the in-memory tail, so
arrival order is preserved.
"""

import logging
import os
import pickle
import tempfile
from collections import defaultdict
from typing import Any, Callable, Iterator, List, Optional, Tuple

from mrengine.common.config import DEFAULT_SPILL_THRESHOLD

logger = logging.getLogger(__name__)


class IntermediateBuffer:
    """Append-only (key, value) store with spill-to-disk"""

    def __init__(self, owner: str, spill_threshold: int = DEFAULT_SPILL_THRESHOLD,
                 spill_dir: Optional[str] = None):
        if spill_threshold < 1:
            raise ValueError("spill_threshold must be at least 1")
        self.owner = owner
        self.spill_threshold = spill_threshold
        self.spill_dir = spill_dir
        self.pair_count = 0
        self._pairs: List[Tuple[Any, Any]] = []
        self._spill_files: List[str] = []

    def __len__(self) -> int:
        return self.pair_count

    @property
    def spill_count(self) -> int:
        return len(self._spill_files)

    def append(self, key, value):
        self._pairs.append((key, value))
        self.pair_count += 1
        if len(self._pairs) >= self.spill_threshold:
            self._spill()

    # map functions emit through this callback
    emit = append

    def _spill(self):
        if self.spill_dir:
            os.makedirs(self.spill_dir, exist_ok=True)
        fd, path = tempfile.mkstemp(prefix=f"{self.owner}-spill-", suffix=".pickle", dir=self.spill_dir)
        with os.fdopen(fd, 'wb') as f:
            pickle.dump(self._pairs, f, pickle.HIGHEST_PROTOCOL)
        self._spill_files.append(path)
        logger.debug(f"{self.owner}: spilled {len(self._pairs)} pairs to {path}")
        self._pairs = []

    def _chunks(self) -> Iterator[List[Tuple[Any, Any]]]:
        """Spill files one at a time, then the in-memory tail"""
        for path in self._spill_files:
            with open(path, 'rb') as f:
                yield pickle.load(f)
        if self._pairs:
            yield self._pairs

    def __iter__(self) -> Iterator[Tuple[Any, Any]]:
        for chunk in self._chunks():
            yield from chunk

    def combine(self, combiner_function: Callable) -> 'IntermediateBuffer':
        """
        Pre-merge pairs sharing a key

        Chunks are combined one at a time into running partial values, so at
        most spill_threshold input pairs and spill_threshold partial values are
        held in memory. Partials are moved to the output buffer when a new key
        would exceed the threshold; a key seen again after that gets a second
        partial pair, which is safe because the combiner is associative.

        Args:
            combiner_function: combiner_function(key, values) -> combined value

        Returns:
            A new buffer in first-seen key order, with one pair per distinct key
            whenever the distinct keys fit within spill_threshold
        """
        combined = IntermediateBuffer(f"{self.owner}-combined", self.spill_threshold, self.spill_dir)
        partials = {}

        for chunk in self._chunks():
            key_groups = defaultdict(list)
            for key, value in chunk:
                key_groups[key].append(value)

            for key, values in key_groups.items():
                if key in partials:
                    values = [partials[key]] + values
                elif len(partials) >= self.spill_threshold:
                    self._drain_partials(partials, combined)
                partials[key] = combiner_function(key, values)
            del chunk, key_groups

        self._drain_partials(partials, combined)
        return combined

    @staticmethod
    def _drain_partials(partials: dict, combined: 'IntermediateBuffer'):
        for key, value in partials.items():
            combined.append(key, value)
        partials.clear()

    def discard(self):
        """Release memory and delete spill files"""
        for path in self._spill_files:
            try:
                os.remove(path)
            except FileNotFoundError:
                pass
        self._spill_files = []
        self._pairs = []
