"""Example objective functions.

Module-level functions so they can be pickled for the process executor.
Wrap them with functools.partial to fix keyword arguments.
"""

import time

from .algorithms import ParameterVector


def ratio_objective(params: ParameterVector, delay_ms: float = 50.0) -> float:
    """
    c * (a / b) + d, after sleeping `delay_ms` to stand in for an expensive call.

    Raises ZeroDivisionError when b == 0; the executor turns that into the
    worst score.
    """
    if delay_ms:
        time.sleep(delay_ms / 1000.0)
    return params["c"] * (params["a"] / params["b"]) + params["d"]


def sphere(params: ParameterVector, delay_ms: float = 0.0) -> float:
    """Sum of squares; global minimum 0 at the origin."""
    if delay_ms:
        time.sleep(delay_ms / 1000.0)
    return float(sum(v * v for v in params))


OBJECTIVES = {
    'ratio': ratio_objective,
    'sphere': sphere,
}
