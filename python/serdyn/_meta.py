from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional

from .metadata import FieldFormat, NoneFormat

if TYPE_CHECKING:
    from ._impl import BaseType


@dataclass(frozen=True)
class MetaStateKey:
    cls: Any
    field_format: FieldFormat
    none_format: NoneFormat


@dataclass
class Meta:
    """State shared while describing one root type."""

    globals: dict[str, Any]
    state: dict[MetaStateKey, Optional['BaseType']]

    def add_to_state(self, key: MetaStateKey, value: Optional['BaseType']) -> None:
        self.state[key] = value

    def has_in_state(self, key: MetaStateKey) -> bool:
        return key in self.state

    def get_from_state(self, key: MetaStateKey) -> Optional['BaseType']:
        return self.state.get(key)
