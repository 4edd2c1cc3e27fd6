"""
Utility modules for core functionality.

Modules:
- decorators: Utility context managers (timer)
- params_processor: Request parameter validation
"""

from .decorators import timer
from .params_processor import prepare_params

__all__ = [
    "timer",
    "prepare_params",
]
