"""Streak freeze package."""

from piggybank.freezes.inventory import FreezeInventory

__all__ = ["FreezeInventory"]
