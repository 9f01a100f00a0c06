"""Arrays whose first axis is addressed by calendar period.

A time-indexed container wraps a :mod:`numpy` array together with the period
of its first slot and the step duration. All period to slot translation goes
through ``slot = (period - first) // duration`` so that components covering
only part of the model's time axis can be indexed by calendar period like any
other.

Both :class:`TimestepVector` and :class:`TimestepMatrix` accept a period
(``int``), a :class:`~tsmod.timestep.Timestep`, or a
:class:`~tsmod.timestep.Clock` as the time key. Item access is checked:
periods outside the covered range or not aligned to the step duration raise
:class:`~tsmod.errors.OutOfRangeError`. The ``get_unchecked()`` and
``set_unchecked()`` methods skip that validation for callers that have
already established the key is valid.

"""
from numbers import Integral
from typing import Any, Optional, Tuple, Union

import numpy as np

from .errors import OutOfRangeError
from .timestep import Clock, TimeKey, Timestep


class TimestepArray:
    """Common behavior of the time-indexed containers.

    :param data: Backing array; its first axis is the time axis.
    :param int first: Period of the first slot.
    :param int duration: Number of periods between adjacent slots.

    """

    ndim = 0

    __slots__ = ('data', 'first', 'duration')

    def __init__(self, data: Any, first: int, duration: int = 1) -> None:
        data = np.asarray(data)
        if self.ndim and data.ndim != self.ndim:
            raise ValueError(
                f'{type(self).__name__} requires {self.ndim}-d data, '
                f'got shape {data.shape}'
            )
        if duration <= 0:
            raise ValueError(f'step duration must be positive, got {duration}')
        self.data = data
        self.first = first
        self.duration = duration

    @classmethod
    def empty(
        cls, shape: Union[int, Tuple[int, ...]], first: int, duration: int = 1,
        dtype: Any = float,
    ) -> 'TimestepArray':
        """Allocate a zero-initialized container."""
        return cls(np.zeros(shape, dtype=dtype), first, duration)

    def __len__(self) -> int:
        return self.data.shape[0]

    def __repr__(self) -> str:
        return (
            f'{type(self).__name__}(first={self.first}, '
            f'duration={self.duration}, data={self.data!r})'
        )

    def __array__(self, dtype: Optional[Any] = None, copy: Optional[bool] = None):
        if copy:
            return np.array(self.data, dtype=dtype, copy=True)
        return np.asarray(self.data, dtype=dtype)

    @property
    def last(self) -> int:
        return self.first + (len(self) - 1) * self.duration

    @property
    def periods(self) -> range:
        return range(self.first, self.first + len(self) * self.duration, self.duration)

    def has_period(self, period: int) -> bool:
        offset = period - self.first
        return (
            offset >= 0
            and offset % self.duration == 0
            and offset // self.duration < len(self)
        )

    def slot_of(self, period: int) -> int:
        if not self.has_period(period):
            raise OutOfRangeError(
                f'period {period} not covered by {self.first}-{self.last} '
                f'in steps of {self.duration}'
            )
        return (period - self.first) // self.duration

    def period_of(self, slot: int) -> int:
        if not 0 <= slot < len(self):
            raise OutOfRangeError(f'slot {slot} outside 0-{len(self) - 1}')
        return self.first + slot * self.duration

    def readonly(self) -> 'TimestepArray':
        """Return a container over a non-writable view of the same buffer."""
        view = self.data.view()
        view.flags.writeable = False
        return type(self)(view, self.first, self.duration)

    def _time_slot(self, key: TimeKey) -> int:
        if isinstance(key, Clock):
            key = key.ts
        if isinstance(key, Timestep):
            if key.first == self.first and key.duration == self.duration:
                if key.t <= len(self):
                    return key.t - 1
                raise OutOfRangeError(
                    f'period {key.current_period} beyond last period {self.last}'
                )
            key = key.current_period
        if isinstance(key, Integral):
            return self.slot_of(key)
        raise TypeError(f'invalid time key {key!r}')

    def _time_slot_unchecked(self, key: TimeKey) -> int:
        if isinstance(key, Clock):
            key = key.ts
        if isinstance(key, Timestep):
            key = key.current_period
        return (key - self.first) // self.duration


class TimestepVector(TimestepArray):
    """One-dimensional time series indexed by period."""

    ndim = 1

    __slots__ = ()

    def __getitem__(self, key: TimeKey) -> Any:
        return self.data[self._time_slot(key)]

    def __setitem__(self, key: TimeKey, value: Any) -> None:
        self.data[self._time_slot(key)] = value

    def get_unchecked(self, key: TimeKey) -> Any:
        return self.data[self._time_slot_unchecked(key)]

    def set_unchecked(self, key: TimeKey, value: Any) -> None:
        self.data[self._time_slot_unchecked(key)] = value


class TimestepMatrix(TimestepArray):
    """Two-dimensional array; rows are indexed by period, columns by position.

    Items are addressed as ``m[time_key, j]``. ``m[time_key]`` returns the
    whole row for that period.

    """

    ndim = 2

    __slots__ = ()

    def _index(self, key: Any) -> Any:
        if not isinstance(key, tuple):
            return self._time_slot(key)
        time_key, j = key
        if isinstance(j, Integral) and not 0 <= j < self.data.shape[1]:
            raise OutOfRangeError(
                f'index {j} outside 0-{self.data.shape[1] - 1}'
            )
        return self._time_slot(time_key), j

    def __getitem__(self, key: Any) -> Any:
        return self.data[self._index(key)]

    def __setitem__(self, key: Any, value: Any) -> None:
        self.data[self._index(key)] = value

    def get_unchecked(self, key: Any) -> Any:
        time_key, j = key
        return self.data[self._time_slot_unchecked(time_key), j]

    def set_unchecked(self, key: Any, value: Any) -> None:
        time_key, j = key
        self.data[self._time_slot_unchecked(time_key), j] = value
