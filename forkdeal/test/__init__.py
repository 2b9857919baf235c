"""
Test helpers: an in-memory chain node and a pytest plugin which forks a
development node once per test session.
"""

from .memory_node import (  # NOQA: F401
    ConstantToken,
    MappingToken,
    MemoryNode,
    RebasingToken,
    SkimmingToken,
)
