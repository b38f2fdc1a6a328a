import dataclasses
import math
from collections.abc import Callable, Mapping, Sequence
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

from ._host import F32_MAX, int_fits
from ._meta import Meta, MetaStateKey
from ._visitor import EXHAUSTED, IDENTIFIER, IGNORED_ANY, EnumAccess, MapAccess, SeqAccess, Visitor
from .exceptions import Error, ErrorKind
from .metadata import CustomEncoder, FloatFormat, IntFormat

_T = TypeVar('_T')


class DefaultValue(Generic[_T]):
    __slots__ = ('_is_set', '_value')

    def __init__(self, is_set: bool, value: Any) -> None:
        self._is_set = is_set
        self._value = value

    @staticmethod
    def none() -> 'DefaultValue[None]':
        return DefaultValue(False, None)

    @staticmethod
    def some(value: _T) -> 'DefaultValue[_T]':
        return DefaultValue(True, value)

    def is_none(self) -> bool:
        return not self._is_set

    @property
    def value(self) -> _T:
        return self._value

    def __eq__(self, other: object) -> bool:
        if isinstance(other, DefaultValue):
            return (self._is_set, self._value) == (other._is_set, other._value)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._is_set)

    def __repr__(self) -> str:
        return f'DefaultValue.some({self._value!r})' if self._is_set else 'DefaultValue.none()'


NOT_SET = DefaultValue.none()


def _invalid_value(value: Any, expected: str) -> Error:
    return Error.custom(f'invalid value: {value!r}, expected {expected}')


@dataclasses.dataclass
class BaseType:
    """Type descriptor. Drives a serializer on dump and requests a shape from a deserializer on load."""

    custom_encoder: Optional[CustomEncoder[Any, Any]]

    def serialize(self, value: Any, serializer: Any) -> Any:
        if self.custom_encoder is not None and self.custom_encoder.serialize is not None:
            return self.custom_encoder.serialize(value)
        return self._serialize(value, serializer)

    def deserialize(self, deserializer: Any) -> Any:
        if self.custom_encoder is not None and self.custom_encoder.deserialize is not None:
            return self.custom_encoder.deserialize(deserializer.input)
        return self._deserialize(deserializer)

    def _serialize(self, value: Any, serializer: Any) -> Any:
        raise NotImplementedError

    def _deserialize(self, deserializer: Any) -> Any:
        raise NotImplementedError


@dataclasses.dataclass
class AnyType(BaseType):
    def _serialize(self, value: Any, serializer: Any) -> Any:
        if value is None:
            return serializer.serialize_unit()
        if isinstance(value, bool):
            return serializer.serialize_bool(value)
        if isinstance(value, int):
            return serializer.serialize_u64(value) if value >= 0 else serializer.serialize_i64(value)
        if isinstance(value, float):
            return serializer.serialize_f64(value)
        if isinstance(value, str):
            return serializer.serialize_str(value)
        if isinstance(value, (bytes, bytearray, memoryview)):
            return serializer.serialize_bytes(value)
        if isinstance(value, Mapping):
            builder = serializer.serialize_map(len(value))
            for key, item in value.items():
                builder.serialize_key(key, self)
                builder.serialize_value(item, self)
            return builder.end()
        if isinstance(value, tuple):
            builder = serializer.serialize_tuple(len(value))
            for item in value:
                builder.serialize_element(item, self)
            return builder.end()
        if isinstance(value, list):
            builder = serializer.serialize_seq(len(value))
            for item in value:
                builder.serialize_element(item, self)
            return builder.end()
        raise Error(ErrorKind.UNSUPPORTED)

    def _deserialize(self, deserializer: Any) -> Any:
        return deserializer.deserialize_any(_DynamicVisitor())


class _DynamicVisitor(Visitor[Any]):
    """Materializes whatever the deserializer finds as plain Python values."""

    def expecting(self) -> str:
        return 'any value'

    def visit_bool(self, v: bool) -> Any:
        return v

    def visit_i64(self, v: int) -> Any:
        return v

    def visit_u64(self, v: int) -> Any:
        return v

    def visit_f64(self, v: float) -> Any:
        return v

    def visit_str(self, v: str) -> Any:
        return v

    def visit_bytes(self, v: bytes) -> Any:
        return bytes(v)

    def visit_none(self) -> Any:
        return None

    def visit_some(self, deserializer: Any) -> Any:
        return deserializer.deserialize_any(self)

    def visit_unit(self) -> Any:
        return None

    def visit_newtype_struct(self, deserializer: Any) -> Any:
        return deserializer.deserialize_any(self)

    def visit_seq(self, seq: SeqAccess) -> Any:
        items = []
        while (item := seq.next_element_seed(_ANY)) is not EXHAUSTED:
            items.append(item)
        return items

    def visit_map(self, map: MapAccess) -> Any:
        result: dict[Any, Any] = {}
        while (key := map.next_key_seed(_ANY)) is not EXHAUSTED:
            value = map.next_value_seed(_ANY)
            try:
                result[key] = value
            except TypeError as exc:
                raise Error.host(exc) from exc
        return result


_ANY = AnyType(custom_encoder=None)


@dataclasses.dataclass
class BooleanType(BaseType):
    def _serialize(self, value: Any, serializer: Any) -> Any:
        if not isinstance(value, bool):
            raise _invalid_value(value, 'a boolean')
        return serializer.serialize_bool(value)

    def _deserialize(self, deserializer: Any) -> Any:
        return deserializer.deserialize_bool(_BoolVisitor())


class _BoolVisitor(Visitor[bool]):
    def expecting(self) -> str:
        return 'a boolean'

    def visit_bool(self, v: bool) -> bool:
        return v


@dataclasses.dataclass
class IntegerType(BaseType):
    bits: int
    signed: bool

    @property
    def name(self) -> str:
        return IntFormat(self.bits, self.signed).name

    def _serialize(self, value: Any, serializer: Any) -> Any:
        if isinstance(value, bool) or not isinstance(value, int):
            raise _invalid_value(value, self.name)
        if not int_fits(value, self.bits, self.signed):
            raise Error.custom(f'invalid value: integer `{value}`, expected {self.name}')
        return getattr(serializer, f'serialize_{self.name}')(value)

    def _deserialize(self, deserializer: Any) -> Any:
        return getattr(deserializer, f'deserialize_{self.name}')(_IntVisitor(self))


class _IntVisitor(Visitor[int]):
    def __init__(self, type_info: IntegerType) -> None:
        self._type_info = type_info

    def expecting(self) -> str:
        return self._type_info.name

    def visit_i64(self, v: int) -> int:
        if not int_fits(v, self._type_info.bits, self._type_info.signed):
            raise Error.custom(f'invalid value: integer `{v}`, expected {self.expecting()}')
        return v

    visit_u64 = visit_i64


@dataclasses.dataclass
class FloatType(BaseType):
    bits: int

    @property
    def name(self) -> str:
        return FloatFormat(self.bits).name

    def _serialize(self, value: Any, serializer: Any) -> Any:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise _invalid_value(value, self.name)
        try:
            number = float(value)
        except OverflowError:
            raise Error.custom(f'invalid value: integer out of range, expected {self.name}') from None
        if self.bits == 32 and math.isfinite(number) and abs(number) > F32_MAX:
            raise Error.custom(f'invalid value: floating point `{number}`, expected {self.name}')
        return getattr(serializer, f'serialize_{self.name}')(number)

    def _deserialize(self, deserializer: Any) -> Any:
        return getattr(deserializer, f'deserialize_{self.name}')(_FloatVisitor())


class _FloatVisitor(Visitor[float]):
    def expecting(self) -> str:
        return 'a float'

    def visit_f64(self, v: float) -> float:
        return v

    def visit_i64(self, v: int) -> float:
        return float(v)

    visit_u64 = visit_i64


@dataclasses.dataclass
class CharType(BaseType):
    def _serialize(self, value: Any, serializer: Any) -> Any:
        if not isinstance(value, str) or len(value) != 1:
            raise _invalid_value(value, 'a character')
        return serializer.serialize_char(value)

    def _deserialize(self, deserializer: Any) -> Any:
        return deserializer.deserialize_char(_CharVisitor())


class _CharVisitor(Visitor[str]):
    def expecting(self) -> str:
        return 'a character'

    def visit_str(self, v: str) -> str:
        if len(v) != 1:
            raise Error.custom(f'invalid value: string {v!r}, expected {self.expecting()}')
        return v


@dataclasses.dataclass
class StringType(BaseType):
    borrow: bool

    def _serialize(self, value: Any, serializer: Any) -> Any:
        if not isinstance(value, str):
            raise _invalid_value(value, 'a string')
        return serializer.serialize_str(value)

    def _deserialize(self, deserializer: Any) -> Any:
        if self.borrow:
            return deserializer.deserialize_str(_StrVisitor())
        return deserializer.deserialize_string(_StrVisitor())


class _StrVisitor(Visitor[str]):
    def expecting(self) -> str:
        return 'a string'

    def visit_str(self, v: str) -> str:
        return v


@dataclasses.dataclass
class BytesType(BaseType):
    borrow: bool

    def _serialize(self, value: Any, serializer: Any) -> Any:
        if not isinstance(value, (bytes, bytearray, memoryview)):
            raise _invalid_value(value, 'bytes')
        return serializer.serialize_bytes(value)

    def _deserialize(self, deserializer: Any) -> Any:
        if self.borrow:
            return deserializer.deserialize_bytes(_BytesVisitor())
        return deserializer.deserialize_byte_buf(_BytesVisitor())


class _BytesVisitor(Visitor[bytes]):
    def expecting(self) -> str:
        return 'a byte array'

    def visit_bytes(self, v: bytes) -> bytes:
        return bytes(v)

    def visit_seq(self, seq: SeqAccess) -> bytes:
        octets = bytearray()
        while (octet := seq.next_element_seed(_U8)) is not EXHAUSTED:
            octets.append(octet)
        return bytes(octets)


_U8 = IntegerType(bits=8, signed=False, custom_encoder=None)


@dataclasses.dataclass
class OptionalType(BaseType):
    inner: BaseType

    def _serialize(self, value: Any, serializer: Any) -> Any:
        if value is None:
            return serializer.serialize_none()
        return serializer.serialize_some(value, self.inner)

    def _deserialize(self, deserializer: Any) -> Any:
        return deserializer.deserialize_option(_OptionVisitor(self.inner))


class _OptionVisitor(Visitor[Any]):
    def __init__(self, inner: BaseType) -> None:
        self._inner = inner

    def expecting(self) -> str:
        return 'option'

    def visit_none(self) -> Any:
        return None

    def visit_unit(self) -> Any:
        return None

    def visit_some(self, deserializer: Any) -> Any:
        return self._inner.deserialize(deserializer)


class _UnitVisitor(Visitor[Any]):
    def __init__(self, make: Callable[[], Any], expected: str = 'unit') -> None:
        self._make = make
        self._expected = expected

    def expecting(self) -> str:
        return self._expected

    def visit_unit(self) -> Any:
        return self._make()


@dataclasses.dataclass
class UnitType(BaseType):
    def _serialize(self, value: Any, serializer: Any) -> Any:
        if value is not None:
            raise _invalid_value(value, 'unit')
        return serializer.serialize_unit()

    def _deserialize(self, deserializer: Any) -> Any:
        return deserializer.deserialize_unit(_UnitVisitor(lambda: None))


@dataclasses.dataclass
class UnitStructType(BaseType):
    cls: type[Any]
    name: str

    def _serialize(self, value: Any, serializer: Any) -> Any:
        if not isinstance(value, self.cls):
            raise _invalid_value(value, f'unit struct {self.name}')
        return serializer.serialize_unit_struct(self.name)

    def _deserialize(self, deserializer: Any) -> Any:
        return deserializer.deserialize_unit_struct(self.name, _UnitVisitor(self.cls, f'unit struct {self.name}'))


@dataclasses.dataclass
class NewtypeStructType(BaseType):
    name: str
    inner: BaseType

    def _serialize(self, value: Any, serializer: Any) -> Any:
        return serializer.serialize_newtype_struct(self.name, value, self.inner)

    def _deserialize(self, deserializer: Any) -> Any:
        return deserializer.deserialize_newtype_struct(self.name, _NewtypeVisitor(self))


class _NewtypeVisitor(Visitor[Any]):
    def __init__(self, type_info: NewtypeStructType) -> None:
        self._type_info = type_info

    def expecting(self) -> str:
        return f'newtype struct {self._type_info.name}'

    def visit_newtype_struct(self, deserializer: Any) -> Any:
        return self._type_info.inner.deserialize(deserializer)


def _is_array_like(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray))


@dataclasses.dataclass
class ArrayType(BaseType):
    item_type: BaseType

    def _serialize(self, value: Any, serializer: Any) -> Any:
        if not _is_array_like(value):
            raise _invalid_value(value, 'a sequence')
        builder = serializer.serialize_seq(len(value))
        for item in value:
            builder.serialize_element(item, self.item_type)
        return builder.end()

    def _deserialize(self, deserializer: Any) -> Any:
        return deserializer.deserialize_seq(_ArrayVisitor(self.item_type))


class _ArrayVisitor(Visitor[list[Any]]):
    def __init__(self, item_type: BaseType) -> None:
        self._item_type = item_type

    def expecting(self) -> str:
        return 'a sequence'

    def visit_seq(self, seq: SeqAccess) -> list[Any]:
        items = []
        while (item := seq.next_element_seed(self._item_type)) is not EXHAUSTED:
            items.append(item)
        return items


class _TupleVisitor(Visitor[Any]):
    def __init__(self, item_types: Sequence[BaseType], build: Callable[[list[Any]], Any], expected: str) -> None:
        self._item_types = item_types
        self._build = build
        self._expected = expected

    def expecting(self) -> str:
        return self._expected

    def visit_seq(self, seq: SeqAccess) -> Any:
        items = []
        for index, item_type in enumerate(self._item_types):
            item = seq.next_element_seed(item_type)
            if item is EXHAUSTED:
                raise Error.custom(f'invalid length {index}, expected {self._expected}')
            items.append(item)
        extra = 0
        while seq.next_element_seed(IGNORED_ANY) is not EXHAUSTED:
            extra += 1
        if extra:
            raise Error.custom(f'invalid length {len(items) + extra}, expected {self._expected}')
        return self._build(items)


@dataclasses.dataclass
class TupleType(BaseType):
    item_types: list[BaseType]

    def _serialize(self, value: Any, serializer: Any) -> Any:
        if not _is_array_like(value):
            raise _invalid_value(value, 'a tuple')
        if len(value) != len(self.item_types):
            raise Error.custom('Invalid number of items for tuple')
        builder = serializer.serialize_tuple(len(self.item_types))
        for item, item_type in zip(value, self.item_types):
            builder.serialize_element(item, item_type)
        return builder.end()

    def _deserialize(self, deserializer: Any) -> Any:
        visitor = _TupleVisitor(self.item_types, tuple, f'a tuple of size {len(self.item_types)}')
        return deserializer.deserialize_tuple(len(self.item_types), visitor)


@dataclasses.dataclass
class TupleStructType(BaseType):
    cls: type[Any]
    name: str
    item_types: list[BaseType]

    def _serialize(self, value: Any, serializer: Any) -> Any:
        if not isinstance(value, self.cls):
            raise _invalid_value(value, f'tuple struct {self.name}')
        builder = serializer.serialize_tuple_struct(self.name, len(self.item_types))
        for item, item_type in zip(value, self.item_types):
            builder.serialize_field(item, item_type)
        return builder.end()

    def _deserialize(self, deserializer: Any) -> Any:
        visitor = _TupleVisitor(
            self.item_types,
            lambda items: self.cls(*items),
            f'tuple struct {self.name} with {len(self.item_types)} elements',
        )
        return deserializer.deserialize_tuple_struct(self.name, len(self.item_types), visitor)


@dataclasses.dataclass
class DictionaryType(BaseType):
    key_type: BaseType
    value_type: BaseType
    omit_none: bool

    def _serialize(self, value: Any, serializer: Any) -> Any:
        if not isinstance(value, Mapping):
            raise _invalid_value(value, 'a mapping')
        builder = serializer.serialize_map(len(value))
        for key, item in value.items():
            if self.omit_none and item is None:
                continue
            builder.serialize_key(key, self.key_type)
            builder.serialize_value(item, self.value_type)
        return builder.end()

    def _deserialize(self, deserializer: Any) -> Any:
        return deserializer.deserialize_map(_DictVisitor(self))


class _DictVisitor(Visitor[dict[Any, Any]]):
    def __init__(self, type_info: DictionaryType) -> None:
        self._type_info = type_info

    def expecting(self) -> str:
        return 'a map'

    def visit_map(self, map: MapAccess) -> dict[Any, Any]:
        result = {}
        while (key := map.next_key_seed(self._type_info.key_type)) is not EXHAUSTED:
            result[key] = map.next_value_seed(self._type_info.value_type)
        return result


@dataclasses.dataclass
class EntityField:
    name: str
    dict_key: str
    field_type: BaseType
    required: bool = True
    default: DefaultValue[Any] = NOT_SET
    default_factory: DefaultValue[Callable[[], Any]] = NOT_SET


class _StructVisitor(Visitor[Any]):
    """Collects named fields from a map; fills defaults for the absent ones."""

    def __init__(
        self,
        fields: Sequence[EntityField],
        build: Callable[[dict[str, Any]], Any],
        expected: str,
        keep_missing_optional: bool = True,
    ) -> None:
        self._fields = fields
        self._by_key = {f.dict_key: f for f in fields}
        self._build = build
        self._expected = expected
        self._keep_missing_optional = keep_missing_optional

    def expecting(self) -> str:
        return self._expected

    def visit_map(self, map: MapAccess) -> Any:
        values: dict[str, Any] = {}
        while (key := map.next_key_seed(IDENTIFIER)) is not EXHAUSTED:
            field = self._by_key.get(key)
            if field is None:
                map.next_value_seed(IGNORED_ANY)
                continue
            if field.name in values:
                raise Error.custom(f'duplicate field `{key}`')
            values[field.name] = map.next_value_seed(field.field_type)

        for field in self._fields:
            if field.name in values:
                continue
            if not field.default.is_none():
                values[field.name] = field.default.value
            elif not field.default_factory.is_none():
                values[field.name] = field.default_factory.value()
            elif not field.required:
                continue
            elif self._keep_missing_optional and isinstance(field.field_type, OptionalType):
                values[field.name] = None
            else:
                raise Error.custom(f'missing field `{field.dict_key}`')
        return self._build(values)


def _serialize_fields(builder: Any, fields: Sequence[EntityField], values: Mapping[str, Any]) -> Any:
    for field in fields:
        builder.serialize_field(field.dict_key, values[field.name], field.field_type)
    return builder.end()


@dataclasses.dataclass
class EntityType(BaseType):
    cls: type[Any]
    name: str
    fields: Sequence[EntityField]
    omit_none: bool = False

    def _serialize(self, value: Any, serializer: Any) -> Any:
        if not isinstance(value, self.cls):
            raise _invalid_value(value, f'struct {self.name}')
        values = {f.name: getattr(value, f.name) for f in self.fields}
        written = [f for f in self.fields if not (self.omit_none and values[f.name] is None)]
        return _serialize_fields(serializer.serialize_struct(self.name, len(written)), written, values)

    def _deserialize(self, deserializer: Any) -> Any:
        visitor = _StructVisitor(self.fields, lambda values: self.cls(**values), f'struct {self.name}')
        return deserializer.deserialize_struct(self.name, tuple(f.dict_key for f in self.fields), visitor)


@dataclasses.dataclass
class TypedDictType(BaseType):
    name: str
    fields: Sequence[EntityField]
    omit_none: bool = False

    def _serialize(self, value: Any, serializer: Any) -> Any:
        if not isinstance(value, Mapping):
            raise _invalid_value(value, f'struct {self.name}')
        for field in self.fields:
            if field.required and field.name not in value:
                raise Error.custom(f'missing field `{field.name}`')
        written = [
            f for f in self.fields if f.name in value and not (self.omit_none and value[f.name] is None)
        ]
        return _serialize_fields(serializer.serialize_struct(self.name, len(written)), written, value)

    def _deserialize(self, deserializer: Any) -> Any:
        visitor = _StructVisitor(self.fields, dict, f'struct {self.name}', keep_missing_optional=False)
        return deserializer.deserialize_struct(self.name, tuple(f.dict_key for f in self.fields), visitor)


class VariantShape(Enum):
    unit = 'unit'
    newtype = 'newtype'
    tuple = 'tuple'
    struct = 'struct'


@dataclasses.dataclass
class EnumVariant:
    name: str
    shape: VariantShape
    cls: Any
    fields: Sequence[EntityField] = ()
    member: Optional[Enum] = None

    def matches(self, value: Any) -> bool:
        if self.member is not None:
            return value is self.member
        return type(value) is self.cls

    def make_unit(self) -> Any:
        return self.member if self.member is not None else self.cls()

    def make(self, values: Mapping[str, Any]) -> Any:
        return self.cls(**values)


@dataclasses.dataclass
class EnumType(BaseType):
    name: str
    variants: Sequence[EnumVariant]

    def _find(self, value: Any) -> tuple[int, EnumVariant]:
        for index, variant in enumerate(self.variants):
            if variant.matches(value):
                return index, variant
        raise _invalid_value(value, f'a variant of enum {self.name}')

    def _serialize(self, value: Any, serializer: Any) -> Any:
        index, variant = self._find(value)
        if variant.shape is VariantShape.unit:
            return serializer.serialize_unit_variant(self.name, index, variant.name)

        if variant.shape is VariantShape.newtype:
            field = variant.fields[0]
            return serializer.serialize_newtype_variant(
                self.name, index, variant.name, getattr(value, field.name), field.field_type
            )

        if variant.shape is VariantShape.tuple:
            builder = serializer.serialize_tuple_variant(self.name, index, variant.name, len(variant.fields))
            for field in variant.fields:
                builder.serialize_field(getattr(value, field.name), field.field_type)
            return builder.end()

        builder = serializer.serialize_struct_variant(self.name, index, variant.name, len(variant.fields))
        values = {f.name: getattr(value, f.name) for f in variant.fields}
        return _serialize_fields(builder, variant.fields, values)

    def _deserialize(self, deserializer: Any) -> Any:
        names = tuple(v.name for v in self.variants)
        return deserializer.deserialize_enum(self.name, names, _EnumVisitor(self))


class _VariantSeed:
    def __init__(self, type_info: EnumType) -> None:
        self._by_name = {v.name: v for v in type_info.variants}

    def deserialize(self, deserializer: Any) -> EnumVariant:
        name = IDENTIFIER.deserialize(deserializer)
        variant = self._by_name.get(name)
        if variant is None:
            expected = ', '.join(f'`{n}`' for n in self._by_name)
            raise Error.custom(f'unknown variant `{name}`, expected one of {expected}')
        return variant


class _EnumVisitor(Visitor[Any]):
    def __init__(self, type_info: EnumType) -> None:
        self._type_info = type_info

    def expecting(self) -> str:
        return f'enum {self._type_info.name}'

    def visit_enum(self, data: EnumAccess) -> Any:
        variant, access = data.variant_seed(_VariantSeed(self._type_info))
        expected = f'{variant.shape.value} variant {self._type_info.name}::{variant.name}'

        if variant.shape is VariantShape.unit:
            access.unit_variant()
            return variant.make_unit()

        if variant.shape is VariantShape.newtype:
            field = variant.fields[0]
            return variant.make({field.name: access.newtype_variant_seed(field.field_type)})

        if variant.shape is VariantShape.tuple:
            names = [f.name for f in variant.fields]
            visitor = _TupleVisitor(
                [f.field_type for f in variant.fields],
                lambda items: variant.make(dict(zip(names, items))),
                expected,
            )
            return access.tuple_variant(len(variant.fields), visitor)

        visitor = _StructVisitor(variant.fields, variant.make, expected)
        return access.struct_variant(tuple(f.dict_key for f in variant.fields), visitor)


@dataclasses.dataclass
class RecursionHolder(BaseType):
    name: str
    state_key: MetaStateKey
    meta: Meta = dataclasses.field(compare=False, repr=False)

    def get_type(self) -> BaseType:
        if type_ := self.meta.get_from_state(self.state_key):
            return type_
        raise RuntimeError('Recursive type not resolved')

    def serialize(self, value: Any, serializer: Any) -> Any:
        return self.get_type().serialize(value, serializer)

    def deserialize(self, deserializer: Any) -> Any:
        return self.get_type().deserialize(deserializer)
