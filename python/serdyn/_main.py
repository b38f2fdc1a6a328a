import logging
from typing import Annotated, Any, Generic, NoReturn, TypeVar, cast

from ._de import from_py
from ._describe import describe_type
from ._impl import BaseType
from ._ser import to_py
from .exceptions import Error, into_host_exception
from .metadata import CamelCase, OmitNone

_T = TypeVar('_T', bound=Any)

logger = logging.getLogger(__name__)


class Serializer(Generic[_T]):
    def __init__(
        self,
        t: type[_T],
        *,
        camelcase_fields: bool = False,
        omit_none: bool = False,
    ) -> None:
        if camelcase_fields:
            t = cast(type[_T], Annotated[t, CamelCase])
        if omit_none:
            t = cast(type[_T], Annotated[t, OmitNone])
        self._type_info: BaseType = describe_type(t)

    @property
    def type_info(self) -> BaseType:
        return self._type_info

    def dump(self, value: _T) -> Any:
        try:
            return to_py(self._type_info, value)
        except Error as err:
            _reraise(err)

    def load(self, data: Any) -> _T:
        try:
            return cast(_T, from_py(self._type_info, data))
        except Error as err:
            _reraise(err)


def _reraise(err: Error) -> NoReturn:
    logger.debug('Conversion failed: %r', err)
    exc = into_host_exception(err)
    if exc is err.host_error:
        raise exc
    raise exc from err
