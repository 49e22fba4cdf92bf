"""Best-observation tracking."""

import math
from dataclasses import dataclass, field

from .algorithms import ParameterVector


@dataclass
class BestRecord:
    """Best (vector, score) pair seen so far, in minimization terms."""
    vector: ParameterVector = field(default_factory=ParameterVector.empty)
    score: float = math.inf

    @property
    def is_set(self) -> bool:
        return len(self.vector) > 0


class BestTracker:
    """
    Keeps the single best observation.

    Only strict improvements replace the record, so ties keep the earlier
    observation. Not thread-safe.
    """

    def __init__(self):
        self.best = BestRecord()
        self.updates = 0

    def update(self, vector: ParameterVector, score: float) -> bool:
        """Replace the best record iff `score` is strictly lower; return whether it did."""
        if score < self.best.score:
            self.best = BestRecord(vector=vector, score=score)
            self.updates += 1
            return True
        return False
