from dataclasses import dataclass
from datetime import datetime
from typing import Annotated

import pytest
from serdyn import Serializer
from serdyn.metadata import CustomEncoder, deserialize_with, serialize_with


@dataclass
class Foo:
    val: Annotated[str, CustomEncoder[str, str](serialize=str.upper, deserialize=str.lower)]


def test_custom_encoder():
    serializer = Serializer(Foo)
    val = Foo(val='foo')
    raw = {'val': 'FOO'}
    assert serializer.dump(val) == raw
    assert serializer.load(raw) == val


def test_serialize_with():
    serializer = Serializer(Annotated[datetime, serialize_with(lambda x: x)])
    val = datetime.now()
    assert serializer.dump(val) is val


def test_deserialize_with():
    serializer = Serializer(Annotated[datetime, deserialize_with(lambda x: x)])
    val = datetime.now()
    assert serializer.load(val) is val


def test_serialize_with_only__load_uses_type():
    serializer = Serializer(Annotated[int, serialize_with(str)])
    assert serializer.dump(5) == '5'
    assert serializer.load(5) == 5
    with pytest.raises(TypeError, match='expected: integer'):
        serializer.load('5')


def test_custom_encoder_error_passes_through():
    def fail(value):
        raise ValueError('bad value')

    serializer = Serializer(Annotated[int, deserialize_with(fail)])
    with pytest.raises(ValueError, match='bad value'):
        serializer.load(1)
