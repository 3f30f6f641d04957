"""
Output sinks for reduce results.

Results must arrive in strictly ascending key order. TextFileSink writes into a
_temporary directory and only moves the part file into place on flush(), so a
failed job never leaves output that looks complete.
"""

import logging
import os
import shutil
from typing import List, Optional

from mrengine.common.errors import DestinationExistsError, SinkUnavailableError
from mrengine.common.types import ReduceResult

logger = logging.getLogger(__name__)

OUTPUT_FILE_NAME = "part-r-00000"
SUCCESS_MARKER = "_SUCCESS"
TEMP_DIR_NAME = "_temporary"

_NO_KEY = object()


def _check_order(last_key, key):
    if last_key is not _NO_KEY and not last_key < key:
        raise ValueError(f"Output keys out of order: {key!r} written after {last_key!r}")


class TextFileSink:
    """Writes key<TAB>value lines to <output_path>/part-r-00000"""

    def __init__(self, output_path: str, separator: str = '\t'):
        if not output_path:
            raise ValueError("output_path is required")
        self.output_path = str(output_path)
        self.separator = separator
        self.records_written = 0
        self.flushed = False
        self._file = None
        self._last_key = _NO_KEY
        self._created_output_dir = False

    @property
    def temp_dir(self) -> str:
        return os.path.join(self.output_path, TEMP_DIR_NAME)

    @property
    def output_file(self) -> str:
        return os.path.join(self.output_path, OUTPUT_FILE_NAME)

    def check_destination(self):
        """
        Refuse to write over existing output

        Raises:
            DestinationExistsError: If the path is a file or a non-empty directory
        """
        if os.path.isdir(self.output_path):
            if os.listdir(self.output_path):
                raise DestinationExistsError(self.output_path)
        elif os.path.exists(self.output_path):
            raise DestinationExistsError(self.output_path)

    def open(self):
        self.check_destination()
        try:
            if not os.path.isdir(self.output_path):
                os.makedirs(self.output_path)
                self._created_output_dir = True
            os.makedirs(self.temp_dir, exist_ok=True)
            self._file = open(os.path.join(self.temp_dir, OUTPUT_FILE_NAME), 'w', encoding='utf-8')
        except OSError as e:
            raise SinkUnavailableError(f"Cannot open output {self.output_path}: {e}") from e
        logger.info(f"Writing output to {self.output_path}")

    def write(self, result: ReduceResult):
        if self._file is None:
            raise SinkUnavailableError("Sink is not open")
        _check_order(self._last_key, result.key)
        try:
            self._file.write(f"{result.key}{self.separator}{result.value}\n")
        except OSError as e:
            raise SinkUnavailableError(f"Cannot write to {self.output_path}: {e}") from e
        self._last_key = result.key
        self.records_written += 1

    def flush(self):
        """Commit the part file and write the _SUCCESS marker"""
        if self._file is None:
            raise SinkUnavailableError("Sink is not open")
        try:
            self._file.close()
            self._file = None
            os.replace(os.path.join(self.temp_dir, OUTPUT_FILE_NAME), self.output_file)
            shutil.rmtree(self.temp_dir)
            with open(os.path.join(self.output_path, SUCCESS_MARKER), 'w'):
                pass
        except OSError as e:
            raise SinkUnavailableError(f"Cannot commit output {self.output_path}: {e}") from e
        self.flushed = True
        logger.info(f"Committed {self.records_written} record(s) to {self.output_file}")

    def abort(self):
        """Discard uncommitted output; never raises"""
        if self._file is not None:
            self._file.close()
            self._file = None
        shutil.rmtree(self.temp_dir, ignore_errors=True)
        if self._created_output_dir:
            try:
                os.rmdir(self.output_path)
            except OSError as e:
                logger.warning(f"Could not remove output directory {self.output_path}: {e}")
        logger.info(f"Discarded uncommitted output in {self.output_path}")


class InMemorySink:
    """Collects results in a list; used for embedding and tests"""

    def __init__(self, existing: Optional[List[ReduceResult]] = None):
        self.results: List[ReduceResult] = list(existing or [])
        self.flush_count = 0
        self.aborted = False
        self._has_existing = bool(existing)
        self._last_key = _NO_KEY

    @property
    def flushed(self) -> bool:
        return self.flush_count > 0

    def check_destination(self):
        if self._has_existing:
            raise DestinationExistsError("<memory>")

    def open(self):
        self.check_destination()

    def write(self, result: ReduceResult):
        _check_order(self._last_key, result.key)
        self.results.append(result)
        self._last_key = result.key

    def flush(self):
        self.flush_count += 1

    def abort(self):
        self.aborted = True

    def as_dict(self) -> dict:
        return {key: value for key, value in self.results}
