"""Period cursors used to drive components through time.

A :class:`Timestep` is parameterized by the first period, the step duration,
and the final period of the range it walks. It holds a 1-based step counter
``t``; the calendar period of the current step is
``first + (t - 1) * duration``.

A :class:`Clock` owns a single Timestep and is shared by every component
whose resolved period range is identical.

"""
from typing import Union

from .errors import OutOfRangeError


class Timestep:
    """Cursor over the periods ``first, first + duration, ..., final``.

    :param int first: First period of the range.
    :param int duration: Number of periods per step; must be positive.
    :param int final: Final period of the range.
    :param int t: 1-based step counter.

    """

    __slots__ = ('first', 'duration', 'final', 'num_steps', 't')

    def __init__(self, first: int, duration: int, final: int, t: int = 1) -> None:
        if duration <= 0:
            raise ValueError(f'step duration must be positive, got {duration}')
        if final < first:
            raise ValueError(f'final period {final} precedes first period {first}')
        if (final - first) % duration:
            raise ValueError(
                f'period range {first}-{final} is not a multiple of {duration}'
            )
        self.first = first
        self.duration = duration
        self.final = final
        self.num_steps = (final - first) // duration + 1
        if not 1 <= t <= self.num_steps:
            raise OutOfRangeError(
                f'step {t} outside 1-{self.num_steps} for {first}-{final}'
            )
        self.t = t

    def __repr__(self) -> str:
        return (
            f'Timestep(first={self.first}, duration={self.duration}, '
            f'final={self.final}, t={self.t})'
        )

    @property
    def current_period(self) -> int:
        return self.first + (self.t - 1) * self.duration

    @property
    def is_first_step(self) -> bool:
        return self.t == 1

    @property
    def is_final_step(self) -> bool:
        return self.t == self.num_steps

    @property
    def steps_remaining(self) -> int:
        return self.num_steps - self.t

    def advance(self) -> None:
        """Move to the next step.

        :raises OutOfRangeError: if already at the final step.

        """
        if self.t == self.num_steps:
            raise OutOfRangeError(
                f'cannot advance past final period {self.final}'
            )
        self.t += 1

    def __add__(self, n: int) -> 'Timestep':
        return Timestep(self.first, self.duration, self.final, self.t + n)

    def __sub__(self, n: int) -> 'Timestep':
        return Timestep(self.first, self.duration, self.final, self.t - n)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Timestep):
            return NotImplemented
        return (self.first, self.duration, self.final, self.t) == (
            other.first,
            other.duration,
            other.final,
            other.t,
        )

    def __hash__(self) -> int:
        return hash((self.first, self.duration, self.final, self.t))


class Clock:
    """Model-level owner of a :class:`Timestep`."""

    def __init__(self, first: int, duration: int, final: int) -> None:
        #: The clock's :class:`Timestep`.
        self.ts = Timestep(first, duration, final)

    def __repr__(self) -> str:
        return f'Clock({self.ts!r})'

    @property
    def first(self) -> int:
        return self.ts.first

    @property
    def final(self) -> int:
        return self.ts.final

    @property
    def current_period(self) -> int:
        return self.ts.current_period

    @property
    def is_final_step(self) -> bool:
        return self.ts.is_final_step

    @property
    def steps_remaining(self) -> int:
        return self.ts.steps_remaining

    def advance(self) -> None:
        self.ts.advance()


TimeKey = Union[int, Timestep, Clock]
