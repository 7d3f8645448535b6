"""
Shared domain foundations: input validation and domain exceptions.
"""

from capture_stats.modules.shared.exceptions import CaptureStatsDomainException, ValidationError
from capture_stats.modules.shared.validators import InputValidator

__all__ = ["CaptureStatsDomainException", "InputValidator", "ValidationError"]
