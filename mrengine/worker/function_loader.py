#!/usr/bin/env python3
"""
Dynamic Function Loader for MapReduce User Functions
Loads user-provided Python modules containing map, reduce, and combiner functions
"""

import importlib.util
import os
import sys

from mrengine.common.config import JobConfig

DEFAULT_JOB_FILE = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))),
                                'jobs', 'wordcount.py')


class FunctionLoader:
    """Dynamically loads user-provided map/reduce functions from Python files"""

    def __init__(self, map_reduce_file: str = DEFAULT_JOB_FILE):
        """
        Initialize the function loader

        Args:
            map_reduce_file: Path to user's Python file containing map/reduce functions
        """
        self.map_reduce_file = map_reduce_file
        self.module = None

    @property
    def module_name(self) -> str:
        stem = os.path.splitext(os.path.basename(self.map_reduce_file))[0]
        return f"user_mapreduce_{stem}"

    def load_module(self):
        """
        Dynamically load user-provided module (once per loader)

        Returns:
            The loaded module object

        Raises:
            FileNotFoundError: If the map/reduce file doesn't exist
        """
        if self.module is not None:
            return self.module

        if not os.path.exists(self.map_reduce_file):
            raise FileNotFoundError(f"Map/Reduce file not found: {self.map_reduce_file}")

        spec = importlib.util.spec_from_file_location(self.module_name, self.map_reduce_file)
        if spec is None or spec.loader is None:
            raise ImportError(f"Cannot load job file: {self.map_reduce_file}")
        module = importlib.util.module_from_spec(spec)
        sys.modules[self.module_name] = module
        spec.loader.exec_module(module)
        self.module = module
        return module

    def get_map_function(self):
        """
        Get map function from loaded module

        Raises:
            AttributeError: If module doesn't define 'map_function'
        """
        module = self.load_module()
        if not hasattr(module, 'map_function'):
            raise AttributeError("Module must define 'map_function'")
        return module.map_function

    def get_reduce_function(self):
        """
        Get reduce function from loaded module

        Raises:
            AttributeError: If module doesn't define 'reduce_function'
        """
        module = self.load_module()
        if not hasattr(module, 'reduce_function'):
            raise AttributeError("Module must define 'reduce_function'")
        return module.reduce_function

    def get_combiner_function(self):
        """
        Get combiner function from loaded module

        Returns:
            The combiner_function callable, or reduce_function as default, or None
        """
        module = self.load_module()
        if hasattr(module, 'combiner_function'):
            return module.combiner_function
        # Default combiner is reduce function
        elif hasattr(module, 'reduce_function'):
            return module.reduce_function
        return None

    def build_job_config(self, use_combiner: bool = False, **options) -> JobConfig:
        """Create a JobConfig from the loaded functions plus keyword options"""
        return JobConfig(
            map_function=self.get_map_function(),
            reduce_function=self.get_reduce_function(),
            combiner_function=self.get_combiner_function() if use_combiner else None,
            **options
        )
