"""Dependency scheduling."""

from stackplan.scheduling.scheduler import DependencyScheduler, OrderingViolation, find_cycle

__all__ = ["DependencyScheduler", "OrderingViolation", "find_cycle"]
