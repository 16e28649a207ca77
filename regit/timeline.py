"""Spreading new commit timestamps over a time window.

Two policies exist, one per rewrite mode, and they are not interchangeable:

* ``anchored`` pins the first timestamp to ``start`` and the last to ``end``,
  spacing the rest evenly, so ``increment = (end - start) / (count - 1)``.
* ``streaming`` uses ``increment = (end - start) / count`` and emits
  ``start + increment`` first, one slot after another.

Both use an increment of zero when ``count <= 1``.
"""
import datetime
from typing import Iterator


def as_utc(instant: datetime.datetime) -> datetime.datetime:
    if instant.tzinfo is None:
        return instant.replace(tzinfo=datetime.timezone.utc)
    return instant.astimezone(datetime.timezone.utc)


def anchored(start: datetime.datetime, end: datetime.datetime, count: int) -> list[datetime.datetime]:
    start, end = as_utc(start), as_utc(end)
    if count <= 1:
        return [start] * count
    span = end - start
    return [start + span * i / (count - 1) for i in range(count)]


def streaming(start: datetime.datetime, end: datetime.datetime, count: int) -> Iterator[datetime.datetime]:
    start, end = as_utc(start), as_utc(end)
    if count <= 1:
        yield from [start] * count
        return
    span = end - start
    for i in range(count):
        yield start + span * (i + 1) / count


def to_epoch(instant: datetime.datetime) -> int:
    return int(as_utc(instant).timestamp())
