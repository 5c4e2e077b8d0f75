"""User preferences package."""

from piggybank.preferences.service import PreferencesService

__all__ = ["PreferencesService"]
