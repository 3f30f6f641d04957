"""
Records flowing between the engine's phases.
"""

from typing import Any, List, NamedTuple


class Record(NamedTuple):
    """One input record: line offset and line content"""
    key: Any
    value: Any


class KeyGroup(NamedTuple):
    """All intermediate values for one key, in arrival order"""
    key: Any
    values: List[Any]


class ReduceResult(NamedTuple):
    """Final (key, value) produced by one reduce invocation"""
    key: Any
    value: Any
