from typing import Any

import pytest
from serdyn._impl import AnyType, ArrayType, DictionaryType, IntegerType, StringType
from serdyn._ser import Serializer, to_py
from serdyn.exceptions import Error, ErrorKind


ANY = AnyType(custom_encoder=None)
I32 = IntegerType(bits=32, signed=True, custom_encoder=None)
STR = StringType(borrow=False, custom_encoder=None)


@pytest.mark.parametrize(
    ('method', 'value', 'expected'),
    [
        ('serialize_i8', -5, -5),
        ('serialize_i16', -300, -300),
        ('serialize_i32', 70000, 70000),
        ('serialize_u8', 255, 255),
        ('serialize_u16', 65535, 65535),
        ('serialize_u32', 4294967295, 4294967295),
        ('serialize_u64', 2**64 - 1, 2**64 - 1),
    ],
)
def test_narrow_integers_are_widened(method, value, expected):
    result = getattr(Serializer(), method)(value)
    assert result == expected
    assert type(result) is int


def test_f32_is_widened_to_float():
    result = Serializer().serialize_f32(1.5)
    assert result == 1.5
    assert type(result) is float


def test_bytes_become_list_of_ints():
    assert Serializer().serialize_bytes(b'\x00\x7f\xff') == [0, 127, 255]


def test_unit_values():
    serializer = Serializer()
    assert serializer.serialize_none() is None
    assert serializer.serialize_unit() is None
    assert serializer.serialize_unit_struct('Empty') is None


def test_variants():
    serializer = Serializer()
    assert serializer.serialize_unit_variant('Command', 0, 'Quit') == 'Quit'
    assert serializer.serialize_newtype_variant('Command', 1, 'Write', 7, I32) == {'Write': 7}

    builder = serializer.serialize_tuple_variant('Command', 2, 'Move', 2)
    builder.serialize_field(1, I32)
    builder.serialize_field(-2, I32)
    assert builder.end() == {'Move': (1, -2)}

    builder = serializer.serialize_struct_variant('Command', 3, 'ChangeColor', 1)
    builder.serialize_field('r', 1, I32)
    assert builder.end() == {'ChangeColor': {'r': 1}}


def test_empty_seq_is_empty_list():
    assert Serializer().serialize_seq(0).end() == []


def test_tuple_builder_produces_tuple():
    builder = Serializer().serialize_tuple(2)
    builder.serialize_element(1, I32)
    builder.serialize_element('a', STR)
    assert builder.end() == (1, 'a')


def test_map_builder_keeps_insertion_order():
    builder = Serializer().serialize_map(None)
    builder.serialize_key('b', STR)
    builder.serialize_value(1, I32)
    builder.serialize_key('a', STR)
    builder.serialize_value(2, I32)
    assert list(builder.end().items()) == [('b', 1), ('a', 2)]


def test_map_builder_value_without_key():
    builder = Serializer().serialize_map(None)
    with pytest.raises(Error) as exc_info:
        builder.serialize_value(1, I32)
    assert exc_info.value.kind is ErrorKind.MESSAGE


def test_unhashable_key_is_host_error():
    type_info = DictionaryType(
        key_type=ArrayType(item_type=ANY, custom_encoder=None),
        value_type=STR,
        omit_none=False,
        custom_encoder=None,
    )
    with pytest.raises(Error) as exc_info:
        to_py(type_info, {(1, 2): 'a'})
    assert exc_info.value.kind is ErrorKind.HOST_ERROR
    assert isinstance(exc_info.value.host_error, TypeError)


def test_any_rejects_unknown_runtime_type():
    with pytest.raises(Error) as exc_info:
        to_py(ANY, {1, 2})
    assert exc_info.value.kind is ErrorKind.UNSUPPORTED
    assert str(exc_info.value) == 'unsupported input value'


@pytest.mark.parametrize(
    ('value', 'expected'),
    [
        (None, None),
        (True, True),
        (-3, -3),
        (2**63, 2**63),
        (1.25, 1.25),
        ('x', 'x'),
        (b'ab', [97, 98]),
        ([1, [2]], [1, [2]]),
        ((1, 'a'), (1, 'a')),
        ({'a': {'b': None}}, {'a': {'b': None}}),
    ],
)
def test_any_dumps_by_runtime_type(value: Any, expected: Any):
    assert to_py(ANY, value) == expected
