"""
Pytest configuration and shared fixtures
"""

import pytest
import os
import tempfile
import shutil

from mrengine.worker.function_loader import DEFAULT_JOB_FILE


@pytest.fixture
def temp_dir():
    """Create temporary directory for test files"""
    dirpath = tempfile.mkdtemp()
    yield dirpath
    shutil.rmtree(dirpath)


@pytest.fixture
def sample_text():
    """Sample text for testing"""
    return """The quick brown fox jumps over the lazy dog.
The dog was really lazy.
The fox was very quick and brown.
Quick brown foxes are amazing animals.
Lazy dogs sleep all day."""


@pytest.fixture
def sample_input_file(temp_dir, sample_text):
    """Create a sample input file for testing"""
    filepath = os.path.join(temp_dir, 'input.txt')
    with open(filepath, 'w') as f:
        f.write(sample_text)
    return filepath


@pytest.fixture
def wordcount_job_file():
    """Path to the bundled word count job file"""
    return DEFAULT_JOB_FILE


@pytest.fixture
def output_dir(temp_dir):
    """Output path that does not exist yet"""
    return os.path.join(temp_dir, 'output')


@pytest.fixture
def read_output():
    """Reader for a committed part file, returning (key, count) tuples"""
    def _read(output_path):
        with open(os.path.join(output_path, 'part-r-00000'), encoding='utf-8') as f:
            return [(key, int(value)) for key, value in
                    (line.rstrip('\n').split('\t') for line in f)]
    return _read
