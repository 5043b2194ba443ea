from __future__ import annotations
from typing import Sequence
import numpy as np
from ..errors import UndefinedAnchor

class StepFunction:
    """
    Piecewise-linear map over sorted anchors.

    Anchor k holds (position, value, rate). A query x at or past the first anchor
    uses the latest anchor with position <= x: value + (x - position) * rate, so an
    exact hit returns the anchor's value unchanged. Before the first anchor the
    line through (0, origin_value) with the first anchor's rate is used.
    """

    def __init__(self, positions: Sequence[float], values: Sequence[float],
                 rates: Sequence[float], origin_value: float = 0.0, name: str = "anchor"):
        if len(positions) == 0:
            raise UndefinedAnchor(f"no {name} defined")
        if not (len(positions) == len(values) == len(rates)):
            raise ValueError("positions, values and rates must have the same length")
        self.name = name
        self.positions = np.asarray(positions, dtype=float)
        self.values = np.asarray(values, dtype=float)
        self.rates = np.asarray(rates, dtype=float)
        self.origin_value = float(origin_value)
        if np.any(np.diff(self.positions) <= 0):
            raise ValueError(f"{name} positions must be strictly increasing")

    @classmethod
    def accumulate(cls, positions: Sequence[float], rates: Sequence[float],
                   origin_value: float = 0.0, name: str = "anchor") -> "StepFunction":
        """
        Build anchors from positions and rates only: each anchor's value is carried
        forward from the previous anchor (the origin for the first one) at the
        previous rate.
        """
        if len(positions) == 0:
            raise UndefinedAnchor(f"no {name} defined")
        values = []
        cur_pos, cur_val, cur_rate = 0.0, float(origin_value), float(rates[0])
        for pos, rate in zip(positions, rates):
            pos = float(pos)
            cur_val = cur_val + (pos - cur_pos) * cur_rate
            values.append(cur_val)
            cur_pos, cur_rate = pos, float(rate)
        return cls(positions, values, rates, origin_value, name)

    def __len__(self) -> int:
        return len(self.positions)

    def __call__(self, x: float) -> float:
        x = float(x)
        if x < self.positions[0]:
            return self.origin_value + x * float(self.rates[0])
        i = int(np.searchsorted(self.positions, x, side="right")) - 1
        return float(self.values[i] + (x - self.positions[i]) * self.rates[i])

def beat_to_ticks(beat: float, tpb: int) -> int:
    return int(round(float(beat) * tpb))
