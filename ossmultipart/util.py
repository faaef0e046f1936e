"""Miscellanea
"""
import base64
import hashlib
import importlib
from typing import Any, Callable, Optional

_TRUE_STRINGS = {"1", "true", "yes", "on"}


def get_callable(callable_str: str, base_package: Optional[str] = None) -> Callable:
    """Get a callable function / class constructor from a string of the form
    `package.subpackage.module:callable`

    >>> type(get_callable('os.path:basename')).__name__
    'function'

    >>> type(get_callable('basename', 'os.path')).__name__
    'function'
    """
    if ':' in callable_str:
        module_name, callable_name = callable_str.split(':', 1)
        module = importlib.import_module(module_name, base_package)
    elif base_package:
        module = importlib.import_module(base_package)
        callable_name = callable_str
    else:
        raise ValueError("Expecting base_package to be set if only class name is provided")

    return getattr(module, callable_name)  # type: ignore


def content_md5(data: bytes) -> str:
    """Get the base64 encoded MD5 digest of some content, in the format used
    by the HTTP ``Content-MD5`` header

    >>> content_md5(b'hello world')
    'XrY7u+Ae7tCTyyK7j1rNww=='
    """
    return base64.b64encode(hashlib.md5(data).digest()).decode('ascii')


def to_bool(val: Any) -> bool:
    """Interpret a configuration value as a boolean; strings coming from
    environment variables are parsed

    >>> to_bool('False'), to_bool('yes'), to_bool(0), to_bool(True)
    (False, True, False, True)
    """
    if isinstance(val, str):
        return val.strip().lower() in _TRUE_STRINGS
    return bool(val)
