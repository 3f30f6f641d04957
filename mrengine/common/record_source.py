"""
Record sources: hand out disjoint input splits and read records from them.

Text files are cut into byte-range splits. A split owns every line whose first
byte lies in [start_offset, end_offset), so each line is read by exactly one
split no matter where the boundaries fall.
"""

import glob
import logging
import os
import threading
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Union

from mrengine.common.config import DEFAULT_SPLIT_SIZE
from mrengine.common.errors import SourceUnavailableError
from mrengine.common.types import Record

logger = logging.getLogger(__name__)

GLOB_CHARS = '*?['


@dataclass(frozen=True)
class FileSplit:
    """Byte range of one input file"""
    split_id: int
    path: str
    start_offset: int
    end_offset: int

    @property
    def label(self) -> str:
        return f"{self.path}:{self.start_offset}+{self.end_offset - self.start_offset}"

    def records(self) -> Iterator[Record]:
        """
        Read the lines owned by this split

        Yields:
            Record(byte_offset, line_bytes) with the line terminator removed

        Raises:
            SourceUnavailableError: If the file cannot be opened or read
        """
        try:
            with open(self.path, 'rb') as f:
                if self.start_offset > 0:
                    # The line containing byte start-1 belongs to the previous split
                    f.seek(self.start_offset - 1)
                    f.readline()
                position = f.tell()

                while position < self.end_offset:
                    line = f.readline()
                    if not line:
                        break
                    yield Record(position, line.rstrip(b'\r\n'))
                    position += len(line)
        except OSError as e:
            raise SourceUnavailableError(f"Cannot read input split {self.label}: {e}") from e


@dataclass(frozen=True)
class MemorySplit:
    """A split backed by an in-memory string or bytes object"""
    split_id: int
    text: Union[str, bytes]

    @property
    def label(self) -> str:
        return f"memory:{self.split_id}"

    def records(self) -> Iterator[Record]:
        terminator = b'\r\n' if isinstance(self.text, bytes) else '\r\n'
        offset = 0
        for line in self.text.splitlines(keepends=True):
            yield Record(offset, line.rstrip(terminator))
            offset += len(line)


class _SplitQueue:
    """Thread-safe hand-out of planned splits; each split is returned once"""

    def __init__(self):
        self._lock = threading.Lock()
        self._splits = None
        self._position = 0

    def _create_splits(self) -> list:
        raise NotImplementedError

    def plan_splits(self) -> list:
        with self._lock:
            if self._splits is None:
                self._splits = self._create_splits()
            return list(self._splits)

    def next_split(self):
        """Return the next unclaimed split, or None at end of input"""
        with self._lock:
            if self._splits is None:
                self._splits = self._create_splits()
            if self._position >= len(self._splits):
                return None
            split = self._splits[self._position]
            self._position += 1
            return split

    def reset(self):
        with self._lock:
            self._position = 0

    @property
    def num_splits(self) -> int:
        return len(self.plan_splits())


class TextFileSource(_SplitQueue):
    """Line-oriented text files (plain paths, directories or glob patterns)"""

    def __init__(self, input_paths: Iterable[str], split_size: int = DEFAULT_SPLIT_SIZE):
        super().__init__()
        if isinstance(input_paths, (str, os.PathLike)):
            input_paths = [input_paths]
        self.input_paths = [str(p) for p in input_paths]
        if split_size < 1:
            raise ValueError("split_size must be at least 1")
        self.split_size = split_size

    def resolve_input_files(self) -> List[str]:
        """
        Expand input paths into a sorted list of files

        Directories contribute their regular files, skipping names that start
        with '_' or '.' (markers such as _SUCCESS and hidden files).

        Raises:
            SourceUnavailableError: If no input is given or a path matches nothing
        """
        if not self.input_paths:
            raise SourceUnavailableError("No input paths given")

        files = []
        for input_path in self.input_paths:
            if any(ch in input_path for ch in GLOB_CHARS):
                matches = sorted(glob.glob(input_path))
                if not matches:
                    raise SourceUnavailableError(f"Input pattern matched no files: {input_path}")
            else:
                matches = [input_path]

            for path in matches:
                if os.path.isdir(path):
                    for name in sorted(os.listdir(path)):
                        if name.startswith(('_', '.')):
                            continue
                        full_path = os.path.join(path, name)
                        if os.path.isfile(full_path):
                            files.append(full_path)
                elif os.path.isfile(path):
                    files.append(path)
                else:
                    raise SourceUnavailableError(f"Input path not found: {path}")
        return files

    def _create_splits(self) -> List[FileSplit]:
        splits = []
        for path in self.resolve_input_files():
            try:
                file_size = os.path.getsize(path)
            except OSError as e:
                raise SourceUnavailableError(f"Cannot stat input file {path}: {e}") from e

            start = 0
            while start < file_size:
                end = min(start + self.split_size, file_size)
                splits.append(FileSplit(len(splits), path, start, end))
                start = end

        logger.info(f"Planned {len(splits)} input split(s) from {len(self.input_paths)} input path(s)")
        return splits


class InMemorySource(_SplitQueue):
    """One split per string (or bytes) in texts"""

    def __init__(self, texts: Iterable[Union[str, bytes]]):
        super().__init__()
        self.texts = list(texts)

    def _create_splits(self) -> List[MemorySplit]:
        return [MemorySplit(i, text) for i, text in enumerate(self.texts)]

