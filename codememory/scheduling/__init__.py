"""
Scheduling Engine - FSRS memory model and state machine.

Components:
- models: Rating, CardState, MemoryState
- parameters: Versioned FSRS parameter set
- fsrs: Pure memory-model formulas
- scheduler: Scheduler.schedule / Scheduler.preview
"""

from codememory.scheduling.models import CardState, MemoryState, Rating
from codememory.scheduling.parameters import PARAMETER_VERSION, SchedulerParameters
from codememory.scheduling.scheduler import TRANSITIONS, Scheduler

__all__ = [
    "CardState",
    "MemoryState",
    "Rating",
    "PARAMETER_VERSION",
    "SchedulerParameters",
    "Scheduler",
    "TRANSITIONS",
]
