"""Triangle waveform used to drive the simulated environment sensors.

One cycle walks a metric through its whole envelope:

    position  0.00 -> 0.25   min     -> optimal
              0.25 -> 0.50   optimal -> max
              0.50 -> 0.75   max     -> optimal
              0.75 -> 1.00   optimal -> min

Each segment is closed on the left and open on the right, and every
segment ends exactly where the next one begins, so the output has no
jumps. An optimal equal to min or max just flattens two segments.
"""


def cycle_position(elapsed: float, period: float, phase_offset: float = 0.0) -> float:
    """Fractional position in the cycle, always in [0, 1)."""
    return ((elapsed / period) + phase_offset) % 1.0


def triangle_value(min_value: float, optimal: float, max_value: float, position: float) -> float:
    """Value of the four-segment triangle at ``position`` in [0, 1)."""
    if position < 0.25:
        t = position / 0.25
        return min_value + (optimal - min_value) * t
    if position < 0.5:
        t = (position - 0.25) / 0.25
        return optimal + (max_value - optimal) * t
    if position < 0.75:
        t = (position - 0.5) / 0.25
        return max_value - (max_value - optimal) * t
    t = (position - 0.75) / 0.25
    return optimal - (optimal - min_value) * t


class WaveformGenerator:
    """Pure, time-phased triangle wave for one (min, optimal, max) envelope."""

    def __init__(self, period: float, phase_offset: float = 0.0):
        if period <= 0:
            raise ValueError(f"waveform period must be positive, got {period}")
        self.period = float(period)
        self.phase_offset = phase_offset % 1.0

    def value(self, min_value: float, optimal: float, max_value: float, elapsed: float) -> float:
        position = cycle_position(elapsed, self.period, self.phase_offset)
        return triangle_value(min_value, optimal, max_value, position)

    def __repr__(self) -> str:
        return f"<WaveformGenerator period={self.period:g}s phase={self.phase_offset:g}>"
