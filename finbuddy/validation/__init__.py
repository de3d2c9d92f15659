"""Advisor response validation package."""

from finbuddy.validation.validator import ResponseValidator

__all__ = ["ResponseValidator"]
