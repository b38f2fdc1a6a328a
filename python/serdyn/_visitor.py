"""Visitor and accessor contracts shared by type descriptors and the (de)serializer.

A type descriptor asks a deserializer for a shape (``deserialize_u32``,
``deserialize_seq`` ...) and hands it a ``Visitor``. The deserializer inspects
the dynamic value and calls back exactly one ``visit_*`` method. Compound values
are exposed through pull-based accessors (``SeqAccess``, ``MapAccess``,
``EnumAccess``); each pulled member is read with a *seed*, any object with a
``deserialize(deserializer)`` method, which re-enters the deserializer.
"""

import abc
from typing import Any, Generic, Optional, Protocol, TypeVar

from .exceptions import Error

__all__ = [
    'EXHAUSTED',
    'DeserializeSeed',
    'EnumAccess',
    'IGNORED_ANY',
    'IDENTIFIER',
    'IgnoredAny',
    'MapAccess',
    'SeqAccess',
    'VariantAccess',
    'Visitor',
    'invalid_type',
]

_T = TypeVar('_T')
_T_co = TypeVar('_T_co', covariant=True)


class _Exhausted:
    def __repr__(self) -> str:
        return 'EXHAUSTED'


EXHAUSTED: Any = _Exhausted()


class DeserializeSeed(Protocol[_T_co]):
    def deserialize(self, deserializer: Any) -> _T_co: ...


def invalid_type(unexpected: str, visitor: 'Visitor[Any]') -> Error:
    return Error.custom(f'invalid type: {unexpected}, expected {visitor.expecting()}')


class Visitor(Generic[_T]):
    """Builds a typed value from whatever shape the deserializer found.

    Every ``visit_*`` method rejects its input unless overridden. Narrow integer
    and float callbacks fall through to the 64-bit ones, borrowed and owned
    string/bytes callbacks fall through to ``visit_str``/``visit_bytes``.
    """

    def expecting(self) -> str:
        return 'a value'

    def visit_bool(self, v: bool) -> _T:
        raise invalid_type(f'boolean `{v}`', self)

    def visit_i8(self, v: int) -> _T:
        return self.visit_i64(v)

    def visit_i16(self, v: int) -> _T:
        return self.visit_i64(v)

    def visit_i32(self, v: int) -> _T:
        return self.visit_i64(v)

    def visit_i64(self, v: int) -> _T:
        raise invalid_type(f'integer `{v}`', self)

    def visit_u8(self, v: int) -> _T:
        return self.visit_u64(v)

    def visit_u16(self, v: int) -> _T:
        return self.visit_u64(v)

    def visit_u32(self, v: int) -> _T:
        return self.visit_u64(v)

    def visit_u64(self, v: int) -> _T:
        raise invalid_type(f'integer `{v}`', self)

    def visit_f32(self, v: float) -> _T:
        return self.visit_f64(v)

    def visit_f64(self, v: float) -> _T:
        raise invalid_type(f'floating point `{v}`', self)

    def visit_char(self, v: str) -> _T:
        return self.visit_str(v)

    def visit_str(self, v: str) -> _T:
        raise invalid_type(f'string {v!r}', self)

    def visit_borrowed_str(self, v: str) -> _T:
        return self.visit_str(v)

    def visit_string(self, v: str) -> _T:
        return self.visit_str(v)

    def visit_bytes(self, v: bytes) -> _T:
        raise invalid_type('byte array', self)

    def visit_borrowed_bytes(self, v: memoryview) -> _T:
        return self.visit_bytes(bytes(v))

    def visit_byte_buf(self, v: bytes) -> _T:
        return self.visit_bytes(v)

    def visit_none(self) -> _T:
        raise invalid_type('Option value', self)

    def visit_some(self, deserializer: Any) -> _T:
        raise invalid_type('Option value', self)

    def visit_unit(self) -> _T:
        raise invalid_type('unit value', self)

    def visit_newtype_struct(self, deserializer: Any) -> _T:
        raise invalid_type('newtype struct', self)

    def visit_seq(self, seq: 'SeqAccess') -> _T:
        raise invalid_type('sequence', self)

    def visit_map(self, map: 'MapAccess') -> _T:
        raise invalid_type('map', self)

    def visit_enum(self, data: 'EnumAccess') -> _T:
        raise invalid_type('enum', self)


class SeqAccess(abc.ABC):
    @abc.abstractmethod
    def next_element_seed(self, seed: DeserializeSeed[_T]) -> _T:
        """Next element read with ``seed``, or ``EXHAUSTED`` when the sequence is over."""

    def size_hint(self) -> Optional[int]:
        return None


class MapAccess(abc.ABC):
    @abc.abstractmethod
    def next_key_seed(self, seed: DeserializeSeed[_T]) -> _T:
        """Next key read with ``seed``, or ``EXHAUSTED`` when the mapping is over."""

    @abc.abstractmethod
    def next_value_seed(self, seed: DeserializeSeed[_T]) -> _T:
        """Value belonging to the key returned by the last ``next_key_seed`` call."""

    def size_hint(self) -> Optional[int]:
        return None


class VariantAccess(abc.ABC):
    @abc.abstractmethod
    def unit_variant(self) -> None: ...

    @abc.abstractmethod
    def newtype_variant_seed(self, seed: DeserializeSeed[_T]) -> _T: ...

    @abc.abstractmethod
    def tuple_variant(self, length: int, visitor: Visitor[_T]) -> _T: ...

    @abc.abstractmethod
    def struct_variant(self, fields: tuple[str, ...], visitor: Visitor[_T]) -> _T: ...


class EnumAccess(abc.ABC):
    @abc.abstractmethod
    def variant_seed(self, seed: DeserializeSeed[_T]) -> tuple[_T, VariantAccess]: ...


class _IgnoredAnyVisitor(Visitor[None]):
    def expecting(self) -> str:
        return 'anything at all'

    def visit_bool(self, v: bool) -> None:
        return None

    def visit_i64(self, v: int) -> None:
        return None

    def visit_u64(self, v: int) -> None:
        return None

    def visit_f64(self, v: float) -> None:
        return None

    def visit_str(self, v: str) -> None:
        return None

    def visit_bytes(self, v: bytes) -> None:
        return None

    def visit_borrowed_bytes(self, v: memoryview) -> None:
        return None

    def visit_none(self) -> None:
        return None

    def visit_some(self, deserializer: Any) -> None:
        return IGNORED_ANY.deserialize(deserializer)

    def visit_unit(self) -> None:
        return None

    def visit_newtype_struct(self, deserializer: Any) -> None:
        return IGNORED_ANY.deserialize(deserializer)

    def visit_seq(self, seq: SeqAccess) -> None:
        while seq.next_element_seed(IGNORED_ANY) is not EXHAUSTED:
            pass

    def visit_map(self, map: MapAccess) -> None:
        while map.next_key_seed(IGNORED_ANY) is not EXHAUSTED:
            map.next_value_seed(IGNORED_ANY)


class IgnoredAny:
    """Seed that reads and discards one value of any shape."""

    def deserialize(self, deserializer: Any) -> None:
        return deserializer.deserialize_ignored_any(_IgnoredAnyVisitor())


class _IdentifierVisitor(Visitor[str]):
    def expecting(self) -> str:
        return 'an identifier'

    def visit_str(self, v: str) -> str:
        return v


class Identifier:
    """Seed for field and variant names."""

    def deserialize(self, deserializer: Any) -> str:
        return deserializer.deserialize_identifier(_IdentifierVisitor())


IGNORED_ANY = IgnoredAny()
IDENTIFIER = Identifier()
