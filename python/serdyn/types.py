"""Typed markers: fixed-width numbers, chars and enum variant shapes.

Variants are dataclasses deriving from one of the shape bases; an enum is a
``Union`` of them::

    @dataclass
    class Quit(UnitVariant):
        pass

    @dataclass
    class Move(TupleVariant):
        x: I32
        y: I32

    Command = Union[Quit, Move]
"""

from typing import Annotated

from .metadata import CharFormat, FloatFormat, IntFormat

__all__ = [
    'I8',
    'I16',
    'I32',
    'I64',
    'U8',
    'U16',
    'U32',
    'U64',
    'F32',
    'F64',
    'Char',
    'NewtypeVariant',
    'StructVariant',
    'TupleVariant',
    'UnitVariant',
    'Variant',
]

I8 = Annotated[int, IntFormat(8, signed=True)]
I16 = Annotated[int, IntFormat(16, signed=True)]
I32 = Annotated[int, IntFormat(32, signed=True)]
I64 = Annotated[int, IntFormat(64, signed=True)]
U8 = Annotated[int, IntFormat(8, signed=False)]
U16 = Annotated[int, IntFormat(16, signed=False)]
U32 = Annotated[int, IntFormat(32, signed=False)]
U64 = Annotated[int, IntFormat(64, signed=False)]
F32 = Annotated[float, FloatFormat(32)]
F64 = Annotated[float, FloatFormat(64)]
Char = Annotated[str, CharFormat()]


class Variant:
    """Base of every enum variant class."""


class UnitVariant(Variant):
    """No payload. Written as the bare variant name."""


class NewtypeVariant(Variant):
    """Exactly one field, written as ``{name: value}``."""


class TupleVariant(Variant):
    """Fields are the ordered payload, written as ``{name: (v1, v2, ...)}``."""


class StructVariant(Variant):
    """Fields are the named payload, written as ``{name: {field: value}}``."""
