"""Battery dispatch controllers.

Available strategies:

* **manual** -- month x hour schedule of charge/discharge permissions.
"""

from .manual import (
    DispatchMode,
    DispatchProfile,
    DispatchResult,
    ManualDispatch,
    decide_dispatch,
    validate_schedule,
)

__all__ = [
    "DispatchMode",
    "DispatchProfile",
    "DispatchResult",
    "ManualDispatch",
    "decide_dispatch",
    "validate_schedule",
]
