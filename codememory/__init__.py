"""
CodeMemory - spaced-repetition progress engine.

Schedules learning items with an FSRS memory model and keeps a learner's
progress in either a durable account store or a device-local store with
identical scheduling outcomes.
"""

__version__ = "1.0.0"
