import math
import operator
import threading
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from numbers import Real
from typing import Any, Optional

from .exceptions import Error, ErrorKind

_LOCK = threading.RLock()
_local = threading.local()

F32_MAX = 3.4028234663852886e38

# formats of one-byte unsigned buffers that can be viewed without copying
_BYTE_FORMATS = frozenset({'B', 'c'})


class HostScope:
    """Exclusive access to host values for one outermost conversion call.

    Buffer views borrowed through the scope stay valid until the scope exits.
    """

    def __init__(self) -> None:
        self._views: list[memoryview] = []

    def borrow_buffer(self, value: Any) -> Optional[memoryview]:
        try:
            view = memoryview(value)
        except TypeError:
            return None
        if view.format not in _BYTE_FORMATS or view.itemsize != 1 or not view.c_contiguous:
            view.release()
            return None
        if view.ndim != 1 or view.format != 'B':
            flat = view.cast('B')
            view.release()
            view = flat
        self._views.append(view)
        return view

    @property
    def borrowed(self) -> int:
        return len(self._views)

    def close(self) -> None:
        views, self._views = self._views, []
        for view in views:
            view.release()


def active_scope() -> Optional[HostScope]:
    return getattr(_local, 'scope', None)


@contextmanager
def host_scope() -> Iterator[HostScope]:
    scope = active_scope()
    if scope is not None:
        yield scope
        return

    with _LOCK:
        scope = HostScope()
        _local.scope = scope
        try:
            yield scope
        finally:
            _local.scope = None
            scope.close()


def is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, str)


def is_mapping(value: Any) -> bool:
    return isinstance(value, Mapping)


def extract_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    raise Error(ErrorKind.EXPECTED_BOOLEAN)


def extract_int(value: Any, bits: int, signed: bool) -> int:
    if isinstance(value, bool):
        raise Error(ErrorKind.EXPECTED_INTEGER)
    try:
        number = operator.index(value)
    except TypeError:
        raise Error(ErrorKind.EXPECTED_INTEGER) from None
    if not int_fits(number, bits, signed):
        raise Error(ErrorKind.EXPECTED_INTEGER)
    return number


def int_fits(number: int, bits: int, signed: bool) -> bool:
    if signed:
        return -(1 << (bits - 1)) <= number < (1 << (bits - 1))
    return 0 <= number < (1 << bits)


def extract_float(value: Any, bits: int = 64) -> float:
    if isinstance(value, bool) or not isinstance(value, Real):
        raise Error(ErrorKind.EXPECTED_FLOAT)
    try:
        number = float(value)
    except (OverflowError, TypeError, ValueError):
        raise Error(ErrorKind.EXPECTED_FLOAT) from None
    if bits == 32 and math.isfinite(number) and abs(number) > F32_MAX:
        raise Error(ErrorKind.EXPECTED_FLOAT)
    return number


def extract_str(value: Any) -> str:
    if isinstance(value, str):
        return value
    raise Error(ErrorKind.EXPECTED_STRING)


def extract_char(value: Any) -> str:
    if isinstance(value, str) and len(value) == 1:
        return value
    raise Error(ErrorKind.EXPECTED_CHAR)


def collect_bytes(value: Any) -> bytes:
    """Owned bytes built by iterating ``value`` as a sequence of small integers."""
    if not is_sequence(value):
        raise Error(ErrorKind.EXPECTED_BYTES)
    octets = bytearray()
    for item in value:
        if isinstance(item, bool):
            raise Error(ErrorKind.EXPECTED_BYTES)
        try:
            octet = operator.index(item)
        except TypeError:
            raise Error(ErrorKind.EXPECTED_BYTES) from None
        if not 0 <= octet <= 0xFF:
            raise Error(ErrorKind.EXPECTED_BYTES)
        octets.append(octet)
    return bytes(octets)
