"""Cash-out tracking package."""

from piggybank.deductions.tracker import DeductionTracker

__all__ = ["DeductionTracker"]
