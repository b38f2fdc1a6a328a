from ._de import from_py
from ._describe import describe_type
from ._main import Serializer
from ._ser import to_py
from .exceptions import Error, ErrorKind, SerializationError

__all__ = ['Serializer', 'Error', 'ErrorKind', 'SerializationError', 'describe_type', 'from_py', 'to_py']
