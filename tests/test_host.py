import threading
from typing import Annotated

import pytest
from serdyn import Serializer
from serdyn._host import (
    active_scope,
    collect_bytes,
    extract_char,
    extract_float,
    extract_int,
    host_scope,
    int_fits,
)
from serdyn.exceptions import Error, ErrorKind
from serdyn.metadata import deserialize_with


def test_scope_is_reentrant():
    assert active_scope() is None
    with host_scope() as outer:
        assert active_scope() is outer
        with host_scope() as inner:
            assert inner is outer
        assert active_scope() is outer
    assert active_scope() is None


def test_scope_released_on_error():
    with pytest.raises(RuntimeError):
        with host_scope():
            raise RuntimeError('boom')
    assert active_scope() is None


def test_nested_conversion_reuses_scope():
    inner = Serializer(int)
    scopes = []

    def load_inner(value):
        scopes.append(active_scope())
        return inner.load(value)

    serializer = Serializer(Annotated[int, deserialize_with(load_inner)])
    assert serializer.load(5) == 5
    assert scopes[0] is not None


def test_other_thread_waits_for_scope():
    results = []
    worker = threading.Thread(target=lambda: results.append(Serializer(int).load(1)))

    with host_scope():
        worker.start()
        worker.join(timeout=0.2)
        assert worker.is_alive()
        assert results == []

    worker.join(timeout=5)
    assert results == [1]


@pytest.mark.parametrize(
    ('number', 'bits', 'signed', 'expected'),
    [
        (127, 8, True, True),
        (128, 8, True, False),
        (-128, 8, True, True),
        (255, 8, False, True),
        (-1, 8, False, False),
        (2**63 - 1, 64, True, True),
        (2**64, 64, False, False),
    ],
)
def test_int_fits(number, bits, signed, expected):
    assert int_fits(number, bits, signed) is expected


def test_extract_int_rejects_bool():
    with pytest.raises(Error) as exc_info:
        extract_int(True, 64, True)
    assert exc_info.value.kind is ErrorKind.EXPECTED_INTEGER


def test_extract_float():
    assert extract_float(2) == 2.0
    assert extract_float(float('-inf'), 32) == float('-inf')
    with pytest.raises(Error):
        extract_float(3.5e38, 32)
    with pytest.raises(Error):
        extract_float(False)


def test_extract_char():
    assert extract_char('x') == 'x'
    with pytest.raises(Error) as exc_info:
        extract_char('')
    assert exc_info.value.kind is ErrorKind.EXPECTED_CHAR


def test_collect_bytes():
    assert collect_bytes([0, 255]) == b'\x00\xff'
    assert collect_bytes(b'ab') == b'ab'
    for value in ('ab', [True], [-1], [1.0], 5):
        with pytest.raises(Error) as exc_info:
            collect_bytes(value)
        assert exc_info.value.kind is ErrorKind.EXPECTED_BYTES
