"""
Projekt L Validation Package

Canonical import surface for input validation used by the services.
"""

from projektl.core.validation.input_validator import InputValidator

__all__ = [
    "InputValidator",
]
