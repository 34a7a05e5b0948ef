"""
Timestamp Resolver

Chooses the time of each record, in order of preference:
    1. the designated timestamp field, if the log has one
    2. the block clock of framed logs
    3. record_index * sample_interval
"""

import logging
from typing import List, Optional, Sequence

from .errors import ConversionWarning, WarningKind
from .fields import FieldDescriptor
from .header import CLOCK_RESOLUTION_S
from .records import WarningCallback

logger = logging.getLogger(__name__)

DEFAULT_TIMESTAMP_FIELD = 'Time'


class TimestampResolver:
    """Resolve record timestamps in seconds from the start of the log"""

    def __init__(self, fields: List[FieldDescriptor], sample_interval: float,
                 timestamp_field: Optional[str] = DEFAULT_TIMESTAMP_FIELD,
                 clock_resolution: float = CLOCK_RESOLUTION_S,
                 on_warning: Optional[WarningCallback] = None):
        self.sample_interval = sample_interval
        self.clock_resolution = clock_resolution
        self.on_warning = on_warning
        self.field_index: Optional[int] = None
        self.non_monotonic_count = 0
        self._last: Optional[float] = None

        if timestamp_field:
            for i, f in enumerate(fields):
                if f.name == timestamp_field:
                    self.field_index = i
                    break

    @property
    def uses_field(self) -> bool:
        return self.field_index is not None

    def resolve(self, record_index: int, values: Sequence[float],
                clock: Optional[int] = None) -> float:
        if self.field_index is not None:
            timestamp = float(values[self.field_index])
        elif clock is not None:
            timestamp = clock * self.clock_resolution
        else:
            timestamp = record_index * self.sample_interval

        if self._last is not None and timestamp < self._last:
            self.non_monotonic_count += 1
            warning = ConversionWarning(
                WarningKind.NON_MONOTONIC_TIMESTAMP,
                f"timestamp {timestamp!r} is earlier than previous {self._last!r}",
                record_index)
            logger.debug("%s", warning)
            if self.on_warning is not None:
                self.on_warning(warning)
        self._last = timestamp
        return timestamp

    def resolve_marker(self, next_record_index: int, clock: Optional[int] = None) -> float:
        """
        Time of a marker on the same base as the samples around it.

        A marker carries no field values, so with a timestamp field it
        takes the time of the sample before it (0.0 before the first).
        Markers never trigger ordering warnings and do not move the
        reference used for them.
        """
        if self.field_index is not None:
            return self._last if self._last is not None else 0.0
        if clock is not None:
            return clock * self.clock_resolution
        return next_record_index * self.sample_interval
