"""
Unit tests for FunctionLoader
"""

import os

import pytest

from mrengine.common.config import JobConfig
from mrengine.worker.function_loader import DEFAULT_JOB_FILE, FunctionLoader


def _write_job(temp_dir, name, source):
    path = os.path.join(temp_dir, name)
    with open(path, 'w') as f:
        f.write(source)
    return path


class TestFunctionLoaderBasics:
    """Tests for basic loading functionality"""

    def test_default_job_is_word_count(self):
        """Test that the bundled word count job is the default"""
        loader = FunctionLoader()

        assert loader.map_reduce_file == DEFAULT_JOB_FILE
        map_func = loader.get_map_function()
        assert list(map_func(0, "a b a")) == [("a", 1), ("b", 1), ("a", 1)]

    def test_raises_error_for_nonexistent_file(self):
        """Test that loading non-existent file raises FileNotFoundError"""
        loader = FunctionLoader('/nonexistent/file.py')

        with pytest.raises(FileNotFoundError):
            loader.load_module()

    def test_module_name_derived_from_file(self, wordcount_job_file):
        """Test the generated module name"""
        assert FunctionLoader(wordcount_job_file).module_name == "user_mapreduce_wordcount"

    def test_module_loaded_only_once(self, wordcount_job_file):
        """Test that module is loaded only once and cached"""
        loader = FunctionLoader(wordcount_job_file)

        module1 = loader.load_module()
        module2 = loader.load_module()

        assert module1 is module2
        assert loader.module is module1


class TestFunctionLoaderFunctions:
    """Tests for map, reduce and combiner lookup"""

    def test_reduce_function_returns_single_value(self, wordcount_job_file):
        """Test that the loaded reducer sums counts"""
        reduce_func = FunctionLoader(wordcount_job_file).get_reduce_function()

        assert reduce_func('hello', [1, 1, 1]) == 3

    def test_raises_error_when_map_function_missing(self, temp_dir):
        """Test error when module doesn't define map_function"""
        job_file = _write_job(temp_dir, 'no_map.py', "def some_other_function():\n    pass\n")

        with pytest.raises(AttributeError, match="map_function"):
            FunctionLoader(job_file).get_map_function()

    def test_raises_error_when_reduce_function_missing(self, temp_dir):
        """Test error when module doesn't define reduce_function"""
        job_file = _write_job(temp_dir, 'no_reduce.py', "def map_function(k, v):\n    yield (k, v)\n")

        with pytest.raises(AttributeError, match="reduce_function"):
            FunctionLoader(job_file).get_reduce_function()

    def test_returns_combiner_function_when_defined(self, wordcount_job_file):
        """Test that combiner function is returned when explicitly defined"""
        loader = FunctionLoader(wordcount_job_file)

        assert loader.get_combiner_function() is loader.module.combiner_function
        assert loader.get_combiner_function()('word', [2, 2]) == 4

    def test_returns_reduce_function_as_default_combiner(self, temp_dir):
        """Test that reduce function is used as combiner when combiner not defined"""
        job_file = _write_job(temp_dir, 'no_combiner.py', """
def map_function(key, value):
    yield (value, 1)

def reduce_function(key, values):
    return sum(values)
""")
        loader = FunctionLoader(job_file)

        assert loader.get_combiner_function() is loader.get_reduce_function()

    def test_returns_none_when_no_combiner_or_reduce(self, temp_dir):
        """Test that None is returned when neither combiner nor reduce exists"""
        job_file = _write_job(temp_dir, 'map_only.py', "def map_function(key, value):\n    yield (key, value)\n")

        assert FunctionLoader(job_file).get_combiner_function() is None


class TestFunctionLoaderJobConfig:
    """Tests for building job configurations"""

    def test_build_job_config_without_combiner(self, wordcount_job_file):
        """Test config built from the job file"""
        loader = FunctionLoader(wordcount_job_file)
        config = loader.build_job_config(input_paths=['in.txt'], output_path='out')

        assert isinstance(config, JobConfig)
        assert config.map_function is loader.get_map_function()
        assert config.reduce_function is loader.get_reduce_function()
        assert config.combiner_function is None
        assert config.use_combiner is False
        assert config.input_paths == ('in.txt',)

    def test_build_job_config_with_combiner(self, wordcount_job_file):
        """Test that use_combiner wires in the combiner"""
        loader = FunctionLoader(wordcount_job_file)
        config = loader.build_job_config(use_combiner=True, output_path='out')

        assert config.combiner_function is loader.get_combiner_function()
        assert config.use_combiner is True

    def test_build_job_config_validates_options(self, wordcount_job_file):
        """Test invalid options are rejected"""
        with pytest.raises(ValueError):
            FunctionLoader(wordcount_job_file).build_job_config(num_map_workers=0)
