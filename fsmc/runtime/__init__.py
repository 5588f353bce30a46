"""
Runtime package: the base class of every compiled machine.
"""

from .machine import ActiveState, StateMachine

__all__ = ["ActiveState", "StateMachine"]
