"""
Core tooling components.
"""

from flowtooling.core.tooling import FlowTooling

__all__ = ["FlowTooling"]
