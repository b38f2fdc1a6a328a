from typing import Any, Optional, Protocol

from ._host import host_scope
from .exceptions import Error

__all__ = [
    'DictBuilder',
    'SeqBuilder',
    'Serializer',
    'StructVariantBuilder',
    'TupleBuilder',
    'TupleVariantBuilder',
    'to_py',
]


class Serialize(Protocol):
    def serialize(self, value: Any, serializer: 'Serializer') -> Any: ...


def to_py(type_info: Serialize, value: Any) -> Any:
    """Convert a typed value into a dynamic one, driven by ``type_info``."""
    with host_scope():
        return type_info.serialize(value, Serializer())


def _set_item(target: dict[Any, Any], key: Any, value: Any) -> None:
    try:
        target[key] = value
    except Exception as exc:
        raise Error.host(exc) from exc


class Serializer:
    """Builds dynamic values. Every narrower numeric width is widened before it crosses over."""

    def serialize_bool(self, v: bool) -> Any:
        return bool(v)

    def serialize_i8(self, v: int) -> Any:
        return self.serialize_i64(v)

    def serialize_i16(self, v: int) -> Any:
        return self.serialize_i64(v)

    def serialize_i32(self, v: int) -> Any:
        return self.serialize_i64(v)

    def serialize_i64(self, v: int) -> Any:
        return int(v)

    def serialize_u8(self, v: int) -> Any:
        return self.serialize_u64(v)

    def serialize_u16(self, v: int) -> Any:
        return self.serialize_u64(v)

    def serialize_u32(self, v: int) -> Any:
        return self.serialize_u64(v)

    def serialize_u64(self, v: int) -> Any:
        return int(v)

    def serialize_f32(self, v: float) -> Any:
        return self.serialize_f64(v)

    def serialize_f64(self, v: float) -> Any:
        return float(v)

    def serialize_char(self, v: str) -> Any:
        return str(v)

    def serialize_str(self, v: str) -> Any:
        return str(v)

    def serialize_bytes(self, v: bytes) -> Any:
        return list(v)

    def serialize_none(self) -> Any:
        return None

    def serialize_some(self, value: Any, schema: Serialize) -> Any:
        return schema.serialize(value, self)

    def serialize_unit(self) -> Any:
        return None

    def serialize_unit_struct(self, name: str) -> Any:
        return self.serialize_unit()

    def serialize_unit_variant(self, name: str, variant_index: int, variant: str) -> Any:
        return self.serialize_str(variant)

    def serialize_newtype_struct(self, name: str, value: Any, schema: Serialize) -> Any:
        return schema.serialize(value, self)

    def serialize_newtype_variant(
        self, name: str, variant_index: int, variant: str, value: Any, schema: Serialize
    ) -> Any:
        result: dict[Any, Any] = {}
        _set_item(result, self.serialize_str(variant), schema.serialize(value, self))
        return result

    def serialize_seq(self, length: Optional[int]) -> 'SeqBuilder':
        return SeqBuilder(self)

    def serialize_tuple(self, length: int) -> 'TupleBuilder':
        return TupleBuilder(self)

    def serialize_tuple_struct(self, name: str, length: int) -> 'TupleBuilder':
        return TupleBuilder(self)

    def serialize_tuple_variant(
        self, name: str, variant_index: int, variant: str, length: int
    ) -> 'TupleVariantBuilder':
        return TupleVariantBuilder(self, self.serialize_str(variant))

    def serialize_map(self, length: Optional[int]) -> 'DictBuilder':
        return DictBuilder(self)

    def serialize_struct(self, name: str, length: int) -> 'DictBuilder':
        return self.serialize_map(length)

    def serialize_struct_variant(
        self, name: str, variant_index: int, variant: str, length: int
    ) -> 'StructVariantBuilder':
        return StructVariantBuilder(self, self.serialize_str(variant))


class SeqBuilder:
    def __init__(self, root: Serializer) -> None:
        self._root = root
        self._items: list[Any] = []

    def serialize_element(self, value: Any, schema: Serialize) -> None:
        self._items.append(schema.serialize(value, self._root))

    def end(self) -> Any:
        return self._items


class TupleBuilder:
    """Collects elements and finalizes them into a tuple."""

    def __init__(self, root: Serializer) -> None:
        self._root = root
        self._stack: list[Any] = []

    def serialize_element(self, value: Any, schema: Serialize) -> None:
        self._stack.append(schema.serialize(value, self._root))

    serialize_field = serialize_element

    def end(self) -> Any:
        return tuple(self._stack)


class TupleVariantBuilder(TupleBuilder):
    def __init__(self, root: Serializer, variant: Any) -> None:
        super().__init__(root)
        self._variant = variant

    def end(self) -> Any:
        result: dict[Any, Any] = {}
        _set_item(result, self._variant, super().end())
        return result


class DictBuilder:
    """Map and struct builder.

    Maps alternate ``serialize_key``/``serialize_value``; structs send one
    ``serialize_field`` per field in declaration order.
    """

    def __init__(self, root: Serializer) -> None:
        self._root = root
        self._dict: dict[Any, Any] = {}
        self._key: Any = None
        self._has_key = False

    def serialize_key(self, key: Any, schema: Serialize) -> None:
        self._key = schema.serialize(key, self._root)
        self._has_key = True

    def serialize_value(self, value: Any, schema: Serialize) -> None:
        if not self._has_key:
            raise Error.custom('serialize_value called before serialize_key')
        key, self._key, self._has_key = self._key, None, False
        _set_item(self._dict, key, schema.serialize(value, self._root))

    def serialize_field(self, name: str, value: Any, schema: Serialize) -> None:
        _set_item(self._dict, self._root.serialize_str(name), schema.serialize(value, self._root))

    def end(self) -> Any:
        return self._dict


class StructVariantBuilder(DictBuilder):
    def __init__(self, root: Serializer, variant: Any) -> None:
        super().__init__(root)
        self._variant = variant

    def end(self) -> Any:
        result: dict[Any, Any] = {}
        _set_item(result, self._variant, super().end())
        return result
