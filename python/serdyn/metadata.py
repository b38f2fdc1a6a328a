from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar


@dataclass(frozen=True)
class Alias:
    value: str


class Format(Enum):
    no_format = 'no_format'
    camel_case = 'camel_case'


@dataclass(frozen=True)
class FieldFormat:
    format: Format


CamelCase: FieldFormat = FieldFormat(Format.camel_case)
NoFormat: FieldFormat = FieldFormat(Format.no_format)


@dataclass(frozen=True)
class NoneFormat:
    omit: bool


KeepNone: NoneFormat = NoneFormat(False)
OmitNone: NoneFormat = NoneFormat(True)


@dataclass(frozen=True)
class BorrowFormat:
    """Read strings and bytes through the zero-copy path instead of an owned copy."""

    borrow: bool


Borrowed: BorrowFormat = BorrowFormat(True)
Owned: BorrowFormat = BorrowFormat(False)


@dataclass(frozen=True)
class IntFormat:
    bits: int
    signed: bool

    def __post_init__(self) -> None:
        if self.bits not in (8, 16, 32, 64):
            raise ValueError(f'Unsupported integer width: {self.bits}')

    @property
    def name(self) -> str:
        return f'{"i" if self.signed else "u"}{self.bits}'


@dataclass(frozen=True)
class FloatFormat:
    bits: int

    def __post_init__(self) -> None:
        if self.bits not in (32, 64):
            raise ValueError(f'Unsupported float width: {self.bits}')

    @property
    def name(self) -> str:
        return f'f{self.bits}'


@dataclass(frozen=True)
class CharFormat:
    pass


_I = TypeVar('_I')
_O = TypeVar('_O')


@dataclass(frozen=True)
class CustomEncoder(Generic[_I, _O]):
    serialize: Optional[Callable[[_I], _O]] = None
    deserialize: Optional[Callable[[_O], _I]] = None


def serialize_with(func: Callable[[_I], _O]) -> CustomEncoder[_I, _O]:
    return CustomEncoder[_I, _O](serialize=func)


def deserialize_with(func: Callable[[_O], _I]) -> CustomEncoder[_I, _O]:
    return CustomEncoder[_I, _O](deserialize=func)
