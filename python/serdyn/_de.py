from collections.abc import Iterator
from typing import Any, Callable, NoReturn, Optional, TypeVar

from ._host import (
    HostScope,
    collect_bytes,
    extract_bool,
    extract_char,
    extract_float,
    extract_int,
    extract_str,
    host_scope,
    is_mapping,
    is_sequence,
)
from ._visitor import EXHAUSTED, DeserializeSeed, EnumAccess, MapAccess, SeqAccess, VariantAccess, Visitor
from .exceptions import Error, ErrorKind

__all__ = ['Deserializer', 'DictIter', 'NamedUnit', 'NamedWithPayload', 'SeqIter', 'from_py']

_T = TypeVar('_T')

_NO_MATCH: Any = object()


def from_py(type_info: DeserializeSeed[_T], data: Any) -> _T:
    """Convert a dynamic value into a typed one, driven by ``type_info``."""
    with host_scope() as scope:
        return type_info.deserialize(Deserializer(scope, data))


class Deserializer:
    """Reads one dynamic value. Compound values are handed out through accessors."""

    def __init__(self, scope: HostScope, input: Any) -> None:
        self.scope = scope
        self.input = input

    def is_none(self) -> bool:
        return self.input is None

    def deserialize_any(self, visitor: Visitor[_T]) -> _T:
        for probe in (
            self._any_none,
            self._any_str,
            self._any_bool,
            self._any_u64,
            self._any_f64,
            self._any_seq,
            self._any_map,
        ):
            result = probe(visitor)
            if result is not _NO_MATCH:
                return result
        raise Error(ErrorKind.SYNTAX)

    def _any_none(self, visitor: Visitor[_T]) -> _T:
        if self.is_none():
            return visitor.visit_unit()
        return _NO_MATCH

    def _any_str(self, visitor: Visitor[_T]) -> _T:
        return self._try(extract_str, visitor.visit_string)

    def _any_bool(self, visitor: Visitor[_T]) -> _T:
        return self._try(extract_bool, visitor.visit_bool)

    def _any_u64(self, visitor: Visitor[_T]) -> _T:
        return self._try(lambda value: extract_int(value, 64, False), visitor.visit_u64)

    def _any_f64(self, visitor: Visitor[_T]) -> _T:
        return self._try(extract_float, visitor.visit_f64)

    def _any_seq(self, visitor: Visitor[_T]) -> _T:
        if isinstance(self.input, (list, tuple)):
            return self.deserialize_seq(visitor)
        return _NO_MATCH

    def _any_map(self, visitor: Visitor[_T]) -> _T:
        if is_mapping(self.input):
            return self.deserialize_map(visitor)
        return _NO_MATCH

    def _try(self, extract: Callable[[Any], Any], visit: Callable[[Any], _T]) -> _T:
        try:
            value = extract(self.input)
        except Error:
            return _NO_MATCH
        return visit(value)

    def deserialize_bool(self, visitor: Visitor[_T]) -> _T:
        return visitor.visit_bool(extract_bool(self.input))

    def deserialize_i8(self, visitor: Visitor[_T]) -> _T:
        return visitor.visit_i8(extract_int(self.input, 8, True))

    def deserialize_i16(self, visitor: Visitor[_T]) -> _T:
        return visitor.visit_i16(extract_int(self.input, 16, True))

    def deserialize_i32(self, visitor: Visitor[_T]) -> _T:
        return visitor.visit_i32(extract_int(self.input, 32, True))

    def deserialize_i64(self, visitor: Visitor[_T]) -> _T:
        return visitor.visit_i64(extract_int(self.input, 64, True))

    def deserialize_u8(self, visitor: Visitor[_T]) -> _T:
        return visitor.visit_u8(extract_int(self.input, 8, False))

    def deserialize_u16(self, visitor: Visitor[_T]) -> _T:
        return visitor.visit_u16(extract_int(self.input, 16, False))

    def deserialize_u32(self, visitor: Visitor[_T]) -> _T:
        return visitor.visit_u32(extract_int(self.input, 32, False))

    def deserialize_u64(self, visitor: Visitor[_T]) -> _T:
        return visitor.visit_u64(extract_int(self.input, 64, False))

    def deserialize_f32(self, visitor: Visitor[_T]) -> _T:
        return visitor.visit_f32(extract_float(self.input, 32))

    def deserialize_f64(self, visitor: Visitor[_T]) -> _T:
        return visitor.visit_f64(extract_float(self.input, 64))

    def deserialize_char(self, visitor: Visitor[_T]) -> _T:
        return visitor.visit_char(extract_char(self.input))

    def deserialize_str(self, visitor: Visitor[_T]) -> _T:
        # str is immutable, handing out the object itself is the zero-copy view
        return visitor.visit_borrowed_str(extract_str(self.input))

    def deserialize_string(self, visitor: Visitor[_T]) -> _T:
        return visitor.visit_string(extract_str(self.input))

    def deserialize_bytes(self, visitor: Visitor[_T]) -> _T:
        view = self.scope.borrow_buffer(self.input)
        if view is not None:
            return visitor.visit_borrowed_bytes(view)
        return visitor.visit_byte_buf(collect_bytes(self.input))

    def deserialize_byte_buf(self, visitor: Visitor[_T]) -> _T:
        view = self.scope.borrow_buffer(self.input)
        if view is not None:
            return visitor.visit_byte_buf(view.tobytes())
        return visitor.visit_byte_buf(collect_bytes(self.input))

    def deserialize_option(self, visitor: Visitor[_T]) -> _T:
        if self.is_none():
            return visitor.visit_none()
        return visitor.visit_some(self)

    def deserialize_unit(self, visitor: Visitor[_T]) -> _T:
        if self.is_none():
            return visitor.visit_unit()
        raise Error(ErrorKind.EXPECTED_NONE)

    def deserialize_unit_struct(self, name: str, visitor: Visitor[_T]) -> _T:
        return self.deserialize_unit(visitor)

    def deserialize_newtype_struct(self, name: str, visitor: Visitor[_T]) -> _T:
        return visitor.visit_newtype_struct(self)

    def deserialize_seq(self, visitor: Visitor[_T]) -> _T:
        if not is_sequence(self.input):
            raise Error(ErrorKind.EXPECTED_LIST)
        try:
            iterator = iter(self.input)
        except Exception:
            raise Error(ErrorKind.EXPECTED_LIST) from None
        return visitor.visit_seq(SeqIter(self.scope, iterator, _len_or_none(self.input)))

    def deserialize_tuple(self, length: int, visitor: Visitor[_T]) -> _T:
        return self.deserialize_seq(visitor)

    def deserialize_tuple_struct(self, name: str, length: int, visitor: Visitor[_T]) -> _T:
        return self.deserialize_seq(visitor)

    def deserialize_map(self, visitor: Visitor[_T]) -> _T:
        if not is_mapping(self.input):
            raise Error(ErrorKind.EXPECTED_DICT)
        return visitor.visit_map(DictIter(self.scope, self.input))

    def deserialize_struct(self, name: str, fields: tuple[str, ...], visitor: Visitor[_T]) -> _T:
        return self.deserialize_map(visitor)

    def deserialize_enum(self, name: str, variants: tuple[str, ...], visitor: Visitor[_T]) -> _T:
        if isinstance(self.input, str):
            return visitor.visit_enum(NamedUnit(self.scope, self.input))
        if not is_mapping(self.input):
            raise Error(ErrorKind.EXPECTED_DICT)
        keys = list(self.input.keys())
        if not keys:
            raise Error(ErrorKind.EXPECTED_ENUM_KEY)
        if len(keys) > 1:
            raise Error.custom(f'invalid length {len(keys)}, expected map with a single key')
        try:
            payload = self.input[keys[0]]
        except KeyError:
            raise Error(ErrorKind.EXPECTED_ENUM_VALUE) from None
        return visitor.visit_enum(NamedWithPayload(self.scope, keys[0], payload))

    def deserialize_identifier(self, visitor: Visitor[_T]) -> _T:
        return self.deserialize_str(visitor)

    def deserialize_ignored_any(self, visitor: Visitor[_T]) -> _T:
        return self.deserialize_any(visitor)


def _len_or_none(value: Any) -> Optional[int]:
    try:
        return len(value)
    except TypeError:
        return None


class SeqIter(SeqAccess):
    """Forward-only, single pass view over a dynamic sequence."""

    def __init__(self, scope: HostScope, iterator: Iterator[Any], size: Optional[int]) -> None:
        self._scope = scope
        self._iterator = iterator
        self._size = size

    def next_element_seed(self, seed: DeserializeSeed[_T]) -> _T:
        try:
            item = next(self._iterator)
        except StopIteration:
            return EXHAUSTED
        except Exception as exc:
            raise Error(ErrorKind.EXPECTED_LIST_ELEMENT) from exc
        return seed.deserialize(Deserializer(self._scope, item))

    def size_hint(self) -> Optional[int]:
        return self._size


class DictIter(MapAccess):
    """Mapping view over a key list captured when the accessor is opened."""

    def __init__(self, scope: HostScope, input: Any) -> None:
        self._scope = scope
        self._input = input
        self._keys = list(input.keys())
        self._index = 0

    def next_key_seed(self, seed: DeserializeSeed[_T]) -> _T:
        if self._index >= len(self._keys):
            return EXHAUSTED
        return seed.deserialize(Deserializer(self._scope, self._keys[self._index]))

    def next_value_seed(self, seed: DeserializeSeed[_T]) -> _T:
        if self._index >= len(self._keys):
            raise Error(ErrorKind.EXPECTED_DICT_VALUE)
        key = self._keys[self._index]
        self._index += 1
        try:
            value = self._input[key]
        except KeyError:
            raise Error(ErrorKind.EXPECTED_DICT_VALUE) from None
        return seed.deserialize(Deserializer(self._scope, value))

    def size_hint(self) -> Optional[int]:
        return len(self._keys) - self._index


class NamedUnit(EnumAccess, VariantAccess):
    """Unit variant written as a bare string."""

    def __init__(self, scope: HostScope, name: str) -> None:
        self._scope = scope
        self.name = name

    def variant_seed(self, seed: DeserializeSeed[_T]) -> tuple[_T, VariantAccess]:
        return seed.deserialize(Deserializer(self._scope, self.name)), self

    def unit_variant(self) -> None:
        return None

    def newtype_variant_seed(self, seed: DeserializeSeed[_T]) -> _T:
        self._payload_expected('newtype variant')

    def tuple_variant(self, length: int, visitor: Visitor[_T]) -> _T:
        self._payload_expected('tuple variant')

    def struct_variant(self, fields: tuple[str, ...], visitor: Visitor[_T]) -> _T:
        self._payload_expected('struct variant')

    def _payload_expected(self, expected: str) -> NoReturn:
        raise Error.custom(f'invalid type: unit variant, expected {expected}')


class NamedWithPayload(EnumAccess, VariantAccess):
    """Variant written as a single-entry mapping ``{name: payload}``."""

    def __init__(self, scope: HostScope, name: Any, payload: Any) -> None:
        self._scope = scope
        self.name = name
        self.payload = payload

    def variant_seed(self, seed: DeserializeSeed[_T]) -> tuple[_T, VariantAccess]:
        return seed.deserialize(Deserializer(self._scope, self.name)), self

    def unit_variant(self) -> None:
        # Unit variants are always resolved by NamedUnit, a mapping entry never carries one.
        raise Error.custom('invalid type: newtype variant, expected unit variant')

    def newtype_variant_seed(self, seed: DeserializeSeed[_T]) -> _T:
        return seed.deserialize(Deserializer(self._scope, self.payload))

    def tuple_variant(self, length: int, visitor: Visitor[_T]) -> _T:
        return Deserializer(self._scope, self.payload).deserialize_seq(visitor)

    def struct_variant(self, fields: tuple[str, ...], visitor: Visitor[_T]) -> _T:
        return Deserializer(self._scope, self.payload).deserialize_map(visitor)
