"""Validation package."""

from biztrack.validation.validator import LedgerValidator, issues_from_error

__all__ = ["LedgerValidator", "issues_from_error"]
