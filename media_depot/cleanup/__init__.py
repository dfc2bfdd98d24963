"""Periodic eviction of expired downloads."""

from media_depot.cleanup.sweeper import EvictionSweeper, SweepReport

__all__ = ["EvictionSweeper", "SweepReport"]
