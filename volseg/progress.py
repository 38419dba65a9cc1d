"""
Progress callbacks.

A callback takes the completed fraction in [0, 1] and returns ``False`` to ask
the running operation to stop. ``None`` means "run to completion".
"""

from typing import Callable, Optional

from .errors import OperationCanceledError

ProgressCallback = Callable[[float], bool]


def report(callback: Optional[ProgressCallback], value: float) -> None:
    """Forward ``value`` to ``callback``, raising if the caller cancelled."""
    if callback is None:
        return
    if callback(min(max(float(value), 0.0), 1.0)) is False:
        raise OperationCanceledError("Operation was canceled")


def subprogress(callback: Optional[ProgressCallback], start: float, stop: float) -> Optional[ProgressCallback]:
    """Map the [0, 1] range of a nested stage onto [start, stop] of ``callback``."""
    if callback is None:
        return None

    def _sub(value: float) -> bool:
        return callback(start + (stop - start) * value)

    return _sub
