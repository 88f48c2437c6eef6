############################################################################################################################################
# Series Store
#
# SeriesBuffer, one growable float64 sequence:
#   - push(value)      append one sample, auto-expands buffer if necessary
#   - trim(n)          drop the oldest n samples
#   - clear            reset counters
#   - last(n)          newest n samples
# properties:
#   - data             -> ndarray valid samples ordered from oldest to newest (view)
#   - capacity         -> total allocated samples
#   - counter          -> (oldest, latest) sample number (auto-incrementing, survives trimming)
#
# SeriesStore, one SeriesBuffer per variable name:
#   - append(name, value), create(name), remove(name), clear()
#   - current_byte_size()       sum of all series lengths times the sample width
#   - enforce_limit(max_bytes)  trim the oldest samples of every series until the store fits
#   - snapshot()                read only copies of all series
#   - padded_snapshot(names)    copies padded at the front with NaN to equal length
#   - statistics(name, window)  (min, max, current) of the newest samples
#
# Gaps are NaN. The store never pads on its own, series of variables that do not
#   appear in every line are shorter than the others.
#
# Urs Utzinger 2025
############################################################################################################################################
# Performance
#
# Push is amortized O(1), the buffer grows by half its size when full.
# Trimming only moves the start index, memory is reclaimed when more than half of the
#   allocation is in front of the start index and the buffer needs to grow.
# current_byte_size and enforce_limit are O(number of series), never O(samples).
############################################################################################################################################
#
from math import ceil, isnan
from typing import Dict, Iterable, List, Optional, Tuple
#
import numpy as np
#
from config import INITIAL_SERIES_CAPACITY, MAX_SERIES_BYTES, SAMPLE_WIDTH

############################################################################################################################################
# SeriesBuffer class
############################################################################################################################################
class SeriesBuffer:
    '''
    Append only buffer for one data trace.

    - Samples are stored in a contiguous float64 array.
    - Oldest samples can be dropped from the front.
    - Tracks sample numbers for continuous measurements.
    '''

    def __init__(self, initial_capacity: int = INITIAL_SERIES_CAPACITY, dtype=np.float64):
        ''' Initialize the buffer '''
        if initial_capacity <= 0:
            raise ValueError("initial_capacity must be > 0")
        if not np.issubdtype(np.dtype(dtype), np.floating):
            raise TypeError("dtype must be a floating type to support NaN gaps")
        self._dtype    = dtype
        self._data     = np.full(initial_capacity, np.nan, dtype=self._dtype)
        self._start    = 0                                                     # oldest valid sample
        self._end      = 0                                                     # next insert position
        self._latest   = 0                                                     # number of samples ever pushed

    def __len__(self):
        return self._end - self._start

    def _make_room(self):
        ''' Compact or expand so that one more sample fits '''
        capacity = self._data.shape[0]
        nEntries = self._end - self._start
        if self._start and self._start >= capacity // 2:
            # more than half of the allocation was trimmed, move data to the front
            self._data[:nEntries] = self._data[self._start:self._end]
            self._data[nEntries:] = np.nan
        else:
            new_capacity = capacity + max(capacity // 2, 1)
            new_data = np.empty(new_capacity, dtype=self._dtype)
            new_data[:nEntries] = self._data[self._start:self._end]
            new_data[nEntries:] = np.nan
            self._data = new_data
        self._start = 0
        self._end   = nEntries

    def push(self, value: float) -> None:
        ''' Add one sample '''
        if self._end >= self._data.shape[0]:
            self._make_room()
        self._data[self._end] = value
        self._end += 1
        self._latest += 1

    def trim(self, n: int) -> int:
        ''' Drop the oldest n samples, returns how many were dropped '''
        n = max(0, min(n, self._end - self._start))
        if n:
            self._start += n
            if self._start == self._end:
                self._start = self._end = 0
        return n

    def clear(self):
        ''' Clear the buffer (set all values to NaN) '''
        self._data.fill(np.nan)
        self._start  = 0
        self._end    = 0
        self._latest = 0

    def last(self, n: int = 1) -> np.ndarray:
        ''' Newest n samples ordered from oldest to newest '''
        if n <= 0:
            return np.empty(0, dtype=self._dtype)
        start = max(self._start, self._end - n)
        return self._data[start:self._end]

    @property
    def data(self) -> np.ndarray:
        ''' Valid samples ordered from oldest to newest, a view into the buffer '''
        return self._data[self._start:self._end]

    @property
    def capacity(self) -> int:
        return self._data.shape[0]

    @property
    def counter(self) -> Tuple[int, int]:
        ''' (oldest, latest) sample number, 1 based, (0, 0) when empty '''
        if self._end == self._start:
            return (0, 0)
        return (self._latest - (self._end - self._start) + 1, self._latest)

    @property
    def dtype(self):
        return self._dtype

############################################################################################################################################
# SeriesStore class
############################################################################################################################################
class SeriesStore:
    '''
    Series of all variables with a global memory ceiling.

    When the estimated size exceeds max_bytes the oldest samples are removed
    from every series, ceil(excess / sample_width / number_of_series) each.
    Series shorter than that share are emptied and the remaining excess is
    spread over the others. samples_exceeded stays True until clear().
    '''

    def __init__(self, max_bytes: int = MAX_SERIES_BYTES, sample_width: int = SAMPLE_WIDTH,
                 initial_capacity: int = INITIAL_SERIES_CAPACITY):
        if max_bytes <= 0:
            raise ValueError("max_bytes must be > 0")
        if sample_width <= 0:
            raise ValueError("sample_width must be > 0")
        self.max_bytes        = max_bytes
        self.sample_width     = sample_width
        self.initial_capacity = initial_capacity
        self.samples_exceeded = False
        self._series: Dict[str, SeriesBuffer] = {}

    def __contains__(self, name):
        return name in self._series

    def __len__(self):
        return len(self._series)

    @property
    def names(self) -> List[str]:
        return list(self._series)

    def create(self, name: str) -> SeriesBuffer:
        ''' Empty series for name, existing series is kept '''
        series = self._series.get(name)
        if series is None:
            series = self._series[name] = SeriesBuffer(self.initial_capacity)
        return series

    def append(self, name: str, value: float) -> None:
        series = self._series.get(name)
        if series is None:
            series = self.create(name)
        series.push(value)

    def remove(self, name: str) -> bool:
        return self._series.pop(name, None) is not None

    def clear(self) -> None:
        self._series.clear()
        self.samples_exceeded = False

    def length(self, name: str) -> int:
        series = self._series.get(name)
        return len(series) if series is not None else 0

    def current_byte_size(self) -> int:
        return sum(len(s) for s in self._series.values()) * self.sample_width

    def enforce_limit(self, max_bytes: Optional[int] = None) -> int:
        '''
        Trim the oldest samples until the store fits into max_bytes.

        Returns the number of samples removed, 0 if nothing had to be done.
        '''
        limit = self.max_bytes if max_bytes is None else max_bytes
        removed = 0
        excess = self.current_byte_size() - limit
        while excess > 0:
            active = [s for s in self._series.values() if len(s)]
            if not active:
                break
            per_series = ceil(excess / self.sample_width / len(active))
            for series in active:
                removed += series.trim(per_series)
            excess = self.current_byte_size() - limit
        if removed:
            self.samples_exceeded = True
        return removed

    def series(self, name: str) -> Optional[np.ndarray]:
        ''' Read only view of one series '''
        series = self._series.get(name)
        if series is None:
            return None
        view = series.data.view()
        view.flags.writeable = False
        return view

    def snapshot(self, names: Optional[Iterable[str]] = None) -> Dict[str, np.ndarray]:
        ''' Copies of the selected (default all) series, not writeable '''
        if names is None:
            names = list(self._series)
        out = {}
        for name in names:
            series = self._series.get(name)
            if series is None:
                continue
            copy = series.data.copy()
            copy.flags.writeable = False
            out[name] = copy
        return out

    def padded_snapshot(self, names: Optional[Iterable[str]] = None) -> Dict[str, np.ndarray]:
        '''
        Copies of the selected series padded at the front with NaN so that all
        have the length of the longest one. Used when a viewer attaches mid stream.
        '''
        snap = self.snapshot(names)
        longest = max((len(a) for a in snap.values()), default=0)
        out = {}
        for name, data in snap.items():
            padded = np.full(longest, np.nan, dtype=np.float64)
            if len(data):
                padded[longest - len(data):] = data
            padded.flags.writeable = False
            out[name] = padded
        return out

    def statistics(self, name: str, window: int) -> Tuple[Optional[float], Optional[float], Optional[float]]:
        '''
        (min, max, current) of the newest window samples, gaps ignored.
        Entries are None when there is no finite sample.
        '''
        series = self._series.get(name)
        if series is None or window <= 0:
            return (None, None, None)
        recent = series.last(window)
        finite = recent[np.isfinite(recent)]
        if finite.size == 0:
            return (None, None, None)
        current = float(recent[-1])
        return (float(finite.min()), float(finite.max()), None if isnan(current) else current)
