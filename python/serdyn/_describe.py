import dataclasses
import logging
import sys
from collections.abc import Callable, Iterable, Mapping, Sequence
from enum import Enum
from typing import (
    Annotated,
    Any,
    ForwardRef,
    Generic,
    Optional,
    TypeVar,
    Union,
    get_origin,
    get_type_hints,
    overload,
)

from typing_extensions import NotRequired, Required, assert_never, is_typeddict

from ._impl import (
    NOT_SET,
    AnyType,
    ArrayType,
    BaseType,
    BooleanType,
    BytesType,
    CharType,
    DefaultValue,
    DictionaryType,
    EntityField,
    EntityType,
    EnumType,
    EnumVariant,
    FloatType,
    IntegerType,
    NewtypeStructType,
    OptionalType,
    RecursionHolder,
    StringType,
    TupleStructType,
    TupleType,
    TypedDictType,
    UnitStructType,
    UnitType,
    VariantShape,
)
from ._meta import Meta, MetaStateKey
from ._utils import to_camelcase
from .metadata import (
    Alias,
    BorrowFormat,
    CharFormat,
    CustomEncoder,
    FieldFormat,
    FloatFormat,
    Format,
    IntFormat,
    KeepNone,
    NoFormat,
    NoneFormat,
    Owned,
)
from .types import NewtypeVariant, StructVariant, TupleVariant, UnitVariant, Variant

if sys.version_info >= (3, 10):  # pragma: no cover
    from types import UnionType as StdUnionType
else:  # pragma: no cover
    StdUnionType = None

if sys.version_info >= (3, 14):  # pragma: no cover
    from typing import evaluate_forward_ref

try:
    import attr
except ImportError:  # pragma: no cover
    attr = None  # type: ignore

logger = logging.getLogger(__name__)

_NoneType = type(None)

_T = TypeVar('_T')

_DEFAULT_INT = IntFormat(64, signed=True)
_DEFAULT_FLOAT = FloatFormat(64)

_VARIANT_SHAPES: Mapping[type, VariantShape] = {
    UnitVariant: VariantShape.unit,
    NewtypeVariant: VariantShape.newtype,
    TupleVariant: VariantShape.tuple,
    StructVariant: VariantShape.struct,
}


def describe_type(t: Any, meta: Optional[Meta] = None) -> BaseType:
    if meta is None:
        logger.debug('Describing type %r', t)

    args: tuple[Any, ...] = ()
    metadata = _get_annotated_metadata(t)
    if get_origin(t) == Annotated:  # unwrap annotated
        t = t.__origin__
    if isinstance(t, str):
        t = ForwardRef(t)
    original_t = t
    if get_origin(t) in {Required, NotRequired}:  # unwrap TypedDict special forms
        t = t.__args__[0]
    if hasattr(t, '__origin__'):
        args = t.__args__
        t = t.__origin__
    # StdUnionType has no __origin__
    elif StdUnionType and isinstance(t, StdUnionType):  # type: ignore[truthy-function]
        args = t.__args__
        t = Union

    if not meta:
        meta = Meta(globals=_get_globals(t), state={})

    t = _evaluate_forwardref(t, meta)
    if original_t is not t and isinstance(original_t, ForwardRef):
        return describe_type(Annotated[(t, *metadata)] if metadata else t, meta)

    field_format = _find_metadata(metadata, FieldFormat, NoFormat)
    none_format = _find_metadata(metadata, NoneFormat, KeepNone)
    custom_encoder = _find_metadata(metadata, CustomEncoder)
    annotation_wrapper = _wrap_annotated([field_format, none_format])

    meta_key = MetaStateKey(cls=original_t, field_format=field_format, none_format=none_format)

    if meta.has_in_state(meta_key):
        return RecursionHolder(
            name=_generate_name(original_t),
            state_key=meta_key,
            meta=meta,
            custom_encoder=None,
        )

    if t is Any:
        return AnyType(custom_encoder=custom_encoder)

    if t is None or t is _NoneType:
        return UnitType(custom_encoder=custom_encoder)

    if _is_new_type(t):
        return NewtypeStructType(
            name=t.__name__,
            inner=describe_type(annotation_wrapper(t.__supertype__), meta),
            custom_encoder=custom_encoder,
        )

    if isinstance(t, type):
        if t is bool:
            return BooleanType(custom_encoder=custom_encoder)

        if t is int:
            int_format = _find_metadata(metadata, IntFormat, _DEFAULT_INT)
            return IntegerType(bits=int_format.bits, signed=int_format.signed, custom_encoder=custom_encoder)

        if t is float:
            float_format = _find_metadata(metadata, FloatFormat, _DEFAULT_FLOAT)
            return FloatType(bits=float_format.bits, custom_encoder=custom_encoder)

        if t is str:
            if _find_metadata(metadata, CharFormat):
                return CharType(custom_encoder=custom_encoder)
            borrow = _find_metadata(metadata, BorrowFormat, Owned).borrow
            return StringType(borrow=borrow, custom_encoder=custom_encoder)

        if t in {bytes, bytearray}:
            borrow = _find_metadata(metadata, BorrowFormat, Owned).borrow
            return BytesType(borrow=borrow, custom_encoder=custom_encoder)

        if t in {Sequence, list}:
            return ArrayType(
                item_type=(describe_type(annotation_wrapper(args[0]), meta) if args else AnyType(custom_encoder=None)),
                custom_encoder=custom_encoder,
            )

        if t in {Mapping, dict}:
            return DictionaryType(
                key_type=(describe_type(annotation_wrapper(args[0]), meta) if args else AnyType(custom_encoder=None)),
                value_type=(
                    describe_type(annotation_wrapper(args[1]), meta) if args else AnyType(custom_encoder=None)
                ),
                omit_none=none_format.omit,
                custom_encoder=custom_encoder,
            )

        if t is tuple:
            if not args or Ellipsis in args:
                raise RuntimeError('Variable length tuples are not supported')
            if args == ((),):  # tuple[()]
                args = ()
            return TupleType(
                item_types=[describe_type(annotation_wrapper(arg), meta) for arg in args],
                custom_encoder=custom_encoder,
            )

        if issubclass(t, Enum):
            return EnumType(
                name=t.__name__,
                variants=[EnumVariant(name=m.name, shape=VariantShape.unit, cls=t, member=m) for m in t],
                custom_encoder=custom_encoder,
            )

        if _is_variant(t):
            return _describe_enum((t,), field_format, none_format, custom_encoder, meta, meta_key)

        if _is_named_tuple(t):
            meta.add_to_state(meta_key, None)
            hints = _get_type_hints(t)
            tuple_struct = TupleStructType(
                cls=t,
                name=_generate_name(t),
                item_types=[describe_type(annotation_wrapper(hints.get(name, Any)), meta) for name in t._fields],
                custom_encoder=custom_encoder,
            )
            meta.add_to_state(meta_key, tuple_struct)
            return tuple_struct

        if dataclasses.is_dataclass(t) or _is_attrs(t) or is_typeddict(t):
            meta.add_to_state(meta_key, None)
            entity_type = _describe_entity(
                t=t,
                cls_field_format=field_format,
                cls_none_format=none_format,
                custom_encoder=custom_encoder,
                meta=meta,
            )
            meta.add_to_state(meta_key, entity_type)
            return entity_type

    if t is Union:
        if _NoneType in args:
            new_args = tuple(arg for arg in args if arg is not _NoneType)
            new_t = Union[new_args] if len(new_args) > 1 else new_args[0]  # type: ignore[unused-ignore]
            return OptionalType(
                inner=describe_type(annotation_wrapper(new_t), meta),
                custom_encoder=custom_encoder,
            )

        variants = tuple(_evaluate_forwardref(arg, meta) for arg in args)
        if not all(_is_variant(arg) for arg in variants):
            raise RuntimeError(
                f'Unions supported only for variant classes. Provided: {t}[{",".join(map(str, args))}]'
            )
        return _describe_enum(variants, field_format, none_format, custom_encoder, meta, meta_key)

    if isinstance(t, TypeVar):
        raise RuntimeError(f'Unfilled TypeVar: {t}')

    if custom_encoder is not None:
        return AnyType(custom_encoder=custom_encoder)

    raise RuntimeError(f'Unknown type {t!r}')


@dataclasses.dataclass
class _Field(Generic[_T]):
    name: str
    type: type[_T]
    default: Union[DefaultValue[_T], DefaultValue[None]] = NOT_SET
    default_factory: Union[DefaultValue[Callable[[], _T]], DefaultValue[None]] = NOT_SET
    required: bool = True


def _describe_entity(
    t: Any,
    cls_field_format: FieldFormat,
    cls_none_format: NoneFormat,
    custom_encoder: Optional[CustomEncoder[Any, Any]],
    meta: Meta,
) -> Union[EntityType, TypedDictType, UnitStructType]:
    fields = _describe_fields(t, cls_field_format, cls_none_format, meta)

    if is_typeddict(t):
        return TypedDictType(
            name=_generate_name(t),
            fields=fields,
            omit_none=cls_none_format.omit,
            custom_encoder=custom_encoder,
        )

    if not fields:
        return UnitStructType(cls=t, name=_generate_name(t), custom_encoder=custom_encoder)

    return EntityType(
        cls=t,
        name=_generate_name(t),
        fields=fields,
        omit_none=cls_none_format.omit,
        custom_encoder=custom_encoder,
    )


def _describe_fields(
    t: Any,
    cls_field_format: FieldFormat,
    cls_none_format: NoneFormat,
    meta: Meta,
) -> list[EntityField]:
    types = _get_type_hints(t)
    meta = dataclasses.replace(meta, globals=_get_globals(t))

    fields = []
    for field in _get_entity_fields(t):
        type_ = types.get(field.name, field.type)
        type_ = Annotated[type_, cls_field_format, cls_none_format]

        metadata = _get_annotated_metadata(type_)
        field_type = describe_type(type_, meta)
        alias = _find_metadata(metadata, Alias)

        fields.append(
            EntityField(
                name=field.name,
                dict_key=alias.value if alias else _apply_format(cls_field_format, field.name),
                field_type=field_type,
                default=field.default,
                default_factory=field.default_factory,
                required=field.required and field.default == NOT_SET and field.default_factory == NOT_SET,
            )
        )
    return fields


def _describe_enum(
    variant_classes: Sequence[Any],
    field_format: FieldFormat,
    none_format: NoneFormat,
    custom_encoder: Optional[CustomEncoder[Any, Any]],
    meta: Meta,
    meta_key: MetaStateKey,
) -> EnumType:
    meta.add_to_state(meta_key, None)
    variants = []
    for cls in variant_classes:
        shape = _get_variant_shape(cls)
        fields = _describe_fields(cls, field_format, none_format, meta)
        if shape is VariantShape.unit and fields:
            raise RuntimeError(f'Unit variant {cls.__name__} must not have fields')
        if shape is VariantShape.newtype and len(fields) != 1:
            raise RuntimeError(f'Newtype variant {cls.__name__} must have exactly one field')
        variants.append(EnumVariant(name=cls.__name__, shape=shape, cls=cls, fields=fields))

    enum_type = EnumType(
        name=' | '.join(v.name for v in variants),
        variants=variants,
        custom_encoder=custom_encoder,
    )
    meta.add_to_state(meta_key, enum_type)
    return enum_type


def _get_entity_fields(t: Any) -> Sequence[_Field[Any]]:
    if dataclasses.is_dataclass(t):
        return [
            _Field(
                name=f.name,
                type=f.type,
                default=(DefaultValue.some(f.default) if f.default is not dataclasses.MISSING else NOT_SET),
                default_factory=(
                    DefaultValue.some(f.default_factory) if f.default_factory is not dataclasses.MISSING else NOT_SET
                ),
            )
            for f in dataclasses.fields(t)
            if f.init
        ]
    if is_typeddict(t):
        return [
            _Field(
                name=field_name,
                type=field_type,
                default=NOT_SET,
                default_factory=NOT_SET,
                # absent non-required keys stay absent in the loaded dict
                required=_is_required_in_typeddict(t, field_name),
            )
            for field_name, field_type in t.__annotations__.items()
        ]
    if _is_attrs(t):
        assert attr
        return [
            _Field(
                name=f.name,
                type=f.type,
                default=(
                    DefaultValue.some(f.default)
                    if (f.default is not attr.NOTHING and not isinstance(f.default, attr.Factory))  # type: ignore
                    else NOT_SET
                ),
                default_factory=(
                    DefaultValue.some(f.default.factory)  # pyright: ignore
                    if isinstance(f.default, attr.Factory)  # type: ignore[arg-type]
                    else NOT_SET
                ),
            )
            for f in attr.fields(t)
            if f.init
        ]

    raise RuntimeError(f"Unsupported type '{t}'")


@overload
def _find_metadata(annotations: Iterable[Any], type_: type[_T], default: _T) -> _T: ...


@overload
def _find_metadata(annotations: Iterable[Any], type_: type[_T], default: None = None) -> Optional[_T]: ...


def _find_metadata(annotations: Iterable[Any], type_: type[_T], default: Optional[_T] = None) -> Optional[_T]:
    return next((ann for ann in annotations if isinstance(ann, type_)), default)


def _wrap_annotated(annotations: Iterable[Any]) -> Callable[[_T], _T]:
    def inner(type_: _T) -> _T:
        for ann in annotations:
            type_ = Annotated[type_, ann]  # type: ignore
        return type_

    return inner


def _get_annotated_metadata(t: Any) -> tuple[Any, ...]:
    if get_origin(t) == Annotated:
        return getattr(t, '__metadata__', ())
    return ()


def _apply_format(f: Optional[FieldFormat], value: str) -> str:
    if not f or f.format is Format.no_format:
        return value
    if f.format is Format.camel_case:
        return to_camelcase(value)
    assert_never(f.format)


def _generate_name(cls: Any) -> str:
    return getattr(cls, '__qualname__', None) or repr(cls).removeprefix('typing.')


def _get_globals(t: Any) -> dict[str, Any]:
    module = getattr(t, '__module__', None)
    if module in sys.modules:
        return sys.modules[module].__dict__.copy()
    return {}


def _get_type_hints(t: Any) -> dict[str, Any]:
    try:
        return get_type_hints(t, include_extras=True)
    except Exception:  # pylint: disable=broad-except
        return {}


def _evaluate_forwardref(t: Any, meta: Meta) -> Any:
    if isinstance(t, str):
        t = ForwardRef(t)
    if not isinstance(t, ForwardRef):
        return t
    try:
        if sys.version_info >= (3, 14):  # pragma: no cover
            return evaluate_forward_ref(t, globals=meta.globals, locals={})
        if sys.version_info >= (3, 12, 4):  # pragma: no cover
            return t._evaluate(meta.globals, {}, type_params=(), recursive_guard=frozenset())
        return t._evaluate(meta.globals, {}, frozenset())  # pragma: no cover
    except NameError as exc:
        raise RuntimeError(f'Unresolved forward reference: {t.__forward_arg__!r}') from exc


def _get_variant_shape(t: Any) -> VariantShape:
    for base in t.__mro__:
        if shape := _VARIANT_SHAPES.get(base):
            return shape
    raise RuntimeError(f'{t!r} must derive from UnitVariant, NewtypeVariant, TupleVariant or StructVariant')


def _is_variant(t: Any) -> bool:
    return (
        isinstance(t, type)
        and issubclass(t, Variant)
        and t not in _VARIANT_SHAPES
        and (dataclasses.is_dataclass(t) or _is_attrs(t))
    )


def _is_named_tuple(t: Any) -> bool:
    return issubclass(t, tuple) and hasattr(t, '_fields')


def _is_attrs(t: Any) -> bool:
    return attr is not None and attr.has(t)


def _is_required_in_typeddict(t: Any, key: str) -> bool:
    if is_typeddict(t):
        if t.__total__:
            return key not in t.__optional_keys__
        return key in t.__required_keys__
    raise RuntimeError(f'Expected TypedDict, got "{t!r}"')


def _is_new_type(t: Any) -> bool:
    return hasattr(t, '__supertype__')
