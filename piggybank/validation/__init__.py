"""Validation package."""

from piggybank.validation.validator import InputValidator

__all__ = ["InputValidator"]
