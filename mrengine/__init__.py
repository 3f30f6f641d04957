"""
mrengine - single-process map-reduce engine for word frequency jobs.
"""

__version__ = "0.1.0"
