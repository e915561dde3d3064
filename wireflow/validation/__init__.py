# wireflow/validation/__init__.py
from .output_validator import OutputValidator, ValidationReport, has_nested_key

__all__ = ["OutputValidator", "ValidationReport", "has_nested_key"]
