"""Scheduler Module

Evaluates routine triggers and runs their actions.
"""

from .scheduler import RoutineScheduler

__all__ = ["RoutineScheduler"]
