from enum import Enum
from typing import Optional

__all__ = ['Error', 'ErrorKind', 'SerializationError', 'into_host_exception']


class ErrorKind(Enum):
    MESSAGE = 'message'
    HOST_ERROR = 'host error'
    EXPECTED_BOOLEAN = 'expected: boolean'
    EXPECTED_BYTES = 'expected: bytes'
    EXPECTED_CHAR = 'expected: single character'
    EXPECTED_DICT = 'expected: dict'
    EXPECTED_DICT_VALUE = 'expected: dict value'
    EXPECTED_ENUM_KEY = 'expected: non-empty dict'
    EXPECTED_ENUM_VALUE = 'expected: non-empty dict value'
    EXPECTED_FLOAT = 'expected: float'
    EXPECTED_INTEGER = 'expected: integer'
    EXPECTED_LIST = 'expected: list'
    EXPECTED_LIST_ELEMENT = 'expected: list element'
    EXPECTED_NONE = 'expected: none'
    EXPECTED_STRING = 'expected: string'
    UNSUPPORTED = 'unsupported input value'
    SYNTAX = 'syntax error: unrecognized input value'


class Error(Exception):
    """Conversion failure.

    Raised by the serializer, the deserializer and the type descriptors driving them.
    It stays in this form until the outermost call, so callers can match on ``kind``.
    """

    kind: ErrorKind
    message: str
    host_error: Optional[BaseException]

    def __init__(self, kind: ErrorKind, message: Optional[str] = None, host_error: Optional[BaseException] = None):
        self.kind = kind
        self.host_error = host_error
        if message is None:
            message = str(host_error) if host_error is not None else kind.value
        self.message = message
        super().__init__(message)

    @classmethod
    def custom(cls, message: str) -> 'Error':
        return cls(ErrorKind.MESSAGE, message)

    @classmethod
    def host(cls, exc: BaseException) -> 'Error':
        return cls(ErrorKind.HOST_ERROR, host_error=exc)

    @property
    def is_mismatch(self) -> bool:
        return self.kind not in {ErrorKind.MESSAGE, ErrorKind.HOST_ERROR}

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({self.kind.name}, {self.message!r})'


class SerializationError(Exception):
    """Free-form conversion error surfaced to callers of ``Serializer``."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


def into_host_exception(err: Error) -> BaseException:
    if err.kind is ErrorKind.HOST_ERROR and err.host_error is not None:
        return err.host_error
    if err.kind is ErrorKind.MESSAGE:
        return SerializationError(err.message)
    return TypeError(err.message)
