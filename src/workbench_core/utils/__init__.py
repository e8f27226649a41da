"""Utility modules."""

from workbench_core.utils.validation import join_path, validate_name, validate_path

__all__ = ["join_path", "validate_name", "validate_path"]
