from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated, Any, NamedTuple, NewType, Optional, Union

import attr
import pytest
from serdyn import SerializationError, Serializer
from serdyn.metadata import Alias, Borrowed
from serdyn.types import F32, I8, I32, U8, U32, U64, Char, NewtypeVariant, StructVariant, TupleVariant, UnitVariant
from typing_extensions import NotRequired, TypedDict


def test_dump_simple_fields_types():
    @dataclass
    class A:
        int_f: int
        float_f: float
        bool_f: bool
        str_f: str

    serializer = Serializer(A)

    obj = A(
        int_f=123,
        float_f=3.14,
        bool_f=True,
        str_f='Test',
    )
    expected = {'bool_f': True, 'float_f': 3.14, 'int_f': 123, 'str_f': 'Test'}
    assert serializer.dump(obj) == expected
    assert serializer.load(expected) == obj


def test_simple_nested_dataclasses():
    @dataclass
    class C:
        value: int

    @dataclass
    class B:
        value: str
        nested: C

    @dataclass
    class A:
        int_f: int
        nested: B

    serializer = Serializer(A)

    obj = A(
        int_f=123,
        nested=B(value='test', nested=C(value=1)),
    )

    expected = {'int_f': 123, 'nested': {'nested': {'value': 1}, 'value': 'test'}}

    assert serializer.dump(obj) == expected
    assert serializer.load(expected) == obj


def test_iterables():
    @dataclass
    class A:
        list_f: list[int]
        seq_f: Sequence[str]
        dict_f: dict[str, int]
        mapping_f: Mapping[int, str]

    serializer = Serializer(A)
    obj = A(list_f=[1, 2], seq_f=['a'], dict_f={'a': 1}, mapping_f={1: 'b'})
    expected = {'list_f': [1, 2], 'seq_f': ['a'], 'dict_f': {'a': 1}, 'mapping_f': {1: 'b'}}
    assert serializer.dump(obj) == expected
    assert serializer.load(expected) == obj
    assert serializer.load({**expected, 'list_f': (1, 2)}) == obj


@pytest.mark.parametrize(
    ('t', 'value'),
    [
        (I8, -128),
        (U8, 255),
        (I32, -(2**31)),
        (U64, 2**64 - 1),
        (int, -(2**63)),
        (F32, 1.5),
        (Char, 'x'),
        (bool, False),
        (Annotated[str, Borrowed], 'borrowed'),
    ],
)
def test_scalar_round_trip(t, value):
    serializer = Serializer(t)
    assert serializer.load(serializer.dump(value)) == value


def test_integer_out_of_range():
    serializer = Serializer(U8)
    with pytest.raises(SerializationError, match='invalid value: integer `256`, expected u8'):
        serializer.dump(256)
    with pytest.raises(TypeError, match='expected: integer'):
        serializer.load(256)


@pytest.mark.parametrize(
    ('t', 'value', 'message'),
    [
        (F32, 1e39, 'invalid value: floating point `1e+39`, expected f32'),
        (F32, -1e39, 'invalid value: floating point `-1e+39`, expected f32'),
        (float, 10**400, 'invalid value: integer out of range, expected f64'),
        (F32, 10**400, 'invalid value: integer out of range, expected f32'),
    ],
)
def test_float_out_of_range(t, value, message):
    with pytest.raises(SerializationError) as exc_info:
        Serializer(t).dump(value)
    assert exc_info.value.message == message


@pytest.mark.parametrize('value', [3.4e38, float('inf'), float('-inf'), 7])
def test_f32_in_range_round_trip(value):
    serializer = Serializer(F32)
    assert serializer.load(serializer.dump(value)) == value


def test_load_mismatch_raises_type_error():
    serializer = Serializer(str)
    with pytest.raises(TypeError) as exc_info:
        serializer.load(1)
    assert str(exc_info.value) == 'expected: string'


def test_bytes():
    serializer = Serializer(bytes)
    assert serializer.dump(b'ab') == [97, 98]
    assert serializer.load([97, 98]) == b'ab'
    assert serializer.load(b'ab') == b'ab'
    assert serializer.load(bytearray(b'ab')) == b'ab'


def test_tuple():
    serializer = Serializer(tuple[int, str])
    assert serializer.dump((1, 'a')) == (1, 'a')
    assert serializer.load([1, 'a']) == (1, 'a')


def test_tuple_wrong_length():
    serializer = Serializer(tuple[int, str])
    with pytest.raises(SerializationError, match='Invalid number of items for tuple'):
        serializer.dump((1,))
    with pytest.raises(SerializationError, match='invalid length 1, expected a tuple of size 2'):
        serializer.load([1])
    with pytest.raises(SerializationError, match='invalid length 3, expected a tuple of size 2'):
        serializer.load([1, 'a', None])


def test_optional():
    @dataclass
    class A:
        a: Optional[int]
        b: Optional[str] = 'default'

    serializer = Serializer(A)
    assert serializer.dump(A(a=None, b=None)) == {'a': None, 'b': None}
    assert serializer.load({'a': 1}) == A(a=1)
    assert serializer.load({}) == A(a=None)


def test_defaults():
    @dataclass
    class A:
        a: int = 1
        b: list[int] = field(default_factory=list)

    serializer = Serializer(A)
    assert serializer.load({}) == A()
    assert serializer.load({'b': [2]}) == A(b=[2])


def test_missing_required_field():
    @dataclass
    class A:
        a: int

    with pytest.raises(SerializationError, match='missing field `a`'):
        Serializer(A).load({})


def test_unknown_fields_ignored():
    @dataclass
    class A:
        a: int

    assert Serializer(A).load({'a': 1, 'b': {'nested': [1, 2]}}) == A(a=1)


def test_duplicate_field():
    @dataclass
    class A:
        a: int

    class Twice(Mapping):
        def __getitem__(self, key):
            return 1

        def __iter__(self):
            return iter(['a', 'a'])

        def __len__(self):
            return 2

    with pytest.raises(SerializationError, match='duplicate field `a`'):
        Serializer(A).load(Twice())


def test_alias_and_camelcase():
    @dataclass
    class A:
        some_field: int
        other_field: Annotated[str, Alias('other')]

    serializer = Serializer(A, camelcase_fields=True)
    obj = A(some_field=1, other_field='x')
    assert serializer.dump(obj) == {'someField': 1, 'other': 'x'}
    assert serializer.load({'someField': 1, 'other': 'x'}) == obj


def test_omit_none():
    @dataclass
    class B:
        value: Optional[int]

    @dataclass
    class A:
        a: Optional[int]
        nested: B
        values: dict[str, Optional[int]]

    serializer = Serializer(A, omit_none=True)
    obj = A(a=None, nested=B(value=None), values={'x': None, 'y': 1})
    assert serializer.dump(obj) == {'nested': {}, 'values': {'y': 1}}
    assert serializer.load({'nested': {}, 'values': {'y': 1}}) == A(a=None, nested=B(value=None), values={'y': 1})


def test_typed_dict():
    class A(TypedDict):
        a: int
        b: NotRequired[str]

    serializer = Serializer(A)
    assert serializer.dump({'a': 1}) == {'a': 1}
    assert serializer.dump({'a': 1, 'b': 'x'}) == {'a': 1, 'b': 'x'}
    assert serializer.load({'a': 1}) == {'a': 1}
    with pytest.raises(SerializationError, match='missing field `a`'):
        serializer.load({'b': 'x'})


def test_attrs():
    @attr.define
    class A:
        a: int
        b: list[int] = attr.field(factory=list)

    serializer = Serializer(A)
    assert serializer.dump(A(a=1)) == {'a': 1, 'b': []}
    assert serializer.load({'a': 1}) == A(a=1)


def test_named_tuple():
    class Point(NamedTuple):
        x: int
        y: int

    serializer = Serializer(Point)
    assert serializer.dump(Point(1, 2)) == (1, 2)
    assert serializer.load([1, 2]) == Point(1, 2)


def test_new_type():
    UserId = NewType('UserId', int)

    serializer = Serializer(UserId)
    assert serializer.dump(UserId(5)) == 5
    assert serializer.load(5) == 5


def test_unit_struct():
    @dataclass
    class Empty:
        pass

    serializer = Serializer(Empty)
    assert serializer.dump(Empty()) is None
    assert serializer.load(None) == Empty()
    with pytest.raises(TypeError, match='expected: none'):
        serializer.load({})


def test_std_enum():
    class Color(Enum):
        RED = 'r'
        GREEN = 'g'

    serializer = Serializer(Color)
    assert serializer.dump(Color.GREEN) == 'GREEN'
    assert serializer.load('RED') is Color.RED
    with pytest.raises(SerializationError, match='unknown variant `BLUE`'):
        serializer.load('BLUE')


@dataclass
class Quit(UnitVariant):
    pass


@dataclass
class Move(TupleVariant):
    x: I32
    y: I32


@dataclass
class Write(NewtypeVariant):
    text: str


@dataclass
class ChangeColor(StructVariant):
    r: U8
    g: U8
    b: U8


Command = Union[Quit, Move, Write, ChangeColor]


@pytest.mark.parametrize(
    ('value', 'dumped'),
    [
        (Quit(), 'Quit'),
        (Move(1, -2), {'Move': (1, -2)}),
        (Write('hi'), {'Write': 'hi'}),
        (ChangeColor(1, 2, 3), {'ChangeColor': {'r': 1, 'g': 2, 'b': 3}}),
    ],
)
def test_enum_variants(value, dumped):
    serializer = Serializer(Command)
    assert serializer.dump(value) == dumped
    assert serializer.load(dumped) == value


def test_enum_tuple_variant_from_list():
    assert Serializer(Command).load({'Move': [3, 4]}) == Move(3, 4)


def test_enum_variant_payload_mismatch():
    serializer = Serializer(Command)
    with pytest.raises(TypeError, match='expected: integer'):
        serializer.load({'ChangeColor': {'r': 256, 'g': 0, 'b': 0}})
    with pytest.raises(SerializationError, match='invalid length 1'):
        serializer.load({'Move': [1]})


def test_single_variant_class():
    serializer = Serializer(Write)
    assert serializer.dump(Write('x')) == {'Write': 'x'}
    assert serializer.load({'Write': 'x'}) == Write('x')


def test_any():
    serializer = Serializer(Any)
    data = {'a': [1, -2, 1.5, None, 'x'], 'b': True}
    assert serializer.dump(data) == data
    assert serializer.load(data) == data
    with pytest.raises(TypeError, match='unsupported input value'):
        serializer.dump({1, 2})
    with pytest.raises(TypeError, match='syntax error: unrecognized input value'):
        serializer.load({1, 2})


def test_any_load_negative_int_as_float():
    loaded = Serializer(Any).load(-1)
    assert loaded == -1.0
    assert type(loaded) is float
    assert type(Serializer(Any).load(1)) is int


@pytest.mark.parametrize('value', [b'ab', bytearray(b'ab')])
def test_any_load_buffer_unrecognized(value):
    with pytest.raises(TypeError, match='syntax error: unrecognized input value'):
        Serializer(Any).load(value)


def test_host_error_passes_through():
    serializer = Serializer(dict[list[int], str])
    with pytest.raises(TypeError, match='unhashable'):
        serializer.dump({(1, 2): 'a'})


def test_dump_wrong_type():
    @dataclass
    class A:
        a: int

    with pytest.raises(SerializationError, match='invalid value'):
        Serializer(A).dump({'a': 1})


def test_serialization_error_chained():
    with pytest.raises(SerializationError) as exc_info:
        Serializer(tuple[int]).load([1, 2])
    assert exc_info.value.message == 'invalid length 2, expected a tuple of size 1'
    assert exc_info.value.__cause__ is not None


@dataclass
class Record:
    int: U32
    seq: list[str]


@pytest.mark.parametrize(
    'data',
    [
        {'int': 1, 'seq': ['a', 'b']},
        {'seq': ['a', 'b'], 'int': 1},
    ],
)
def test_struct_with_list(data):
    serializer = Serializer(Record)
    assert serializer.dump(Record(int=1, seq=['a', 'b'])) == {'int': 1, 'seq': ['a', 'b']}
    assert serializer.load(data) == Record(int=1, seq=['a', 'b'])


@pytest.mark.parametrize(
    'data',
    [
        {'one': 1, 'two': 2},
        {'two': 2, 'one': 1},
    ],
)
def test_string_keyed_map(data):
    serializer = Serializer(dict[str, int])
    assert serializer.load(data) == {'one': 1, 'two': 2}
    assert serializer.dump(serializer.load(data)) == data


@pytest.mark.parametrize('data', [[], ()])
def test_empty_sequence(data):
    serializer = Serializer(list[int])
    assert serializer.dump([]) == []
    assert serializer.load(data) == []
