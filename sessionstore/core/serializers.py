"""
Serializers turning session payloads into storable blobs and back.

A serializer is anything with ``serialize(value)`` and ``deserialize(blob)``.
Stores accept a registered codec name, a config mapping such as
``{"name": "json", "sort_keys": True}``, or a ready-made serializer object.
"""
from __future__ import annotations

import json
import logging
import pickle
from collections.abc import Mapping
from typing import Any, Callable, Dict, Optional, Protocol, Union, runtime_checkable

from sessionstore.core.config import DEFAULT_KDF_ITERATIONS
from sessionstore.core.encryption import create_cipher
from sessionstore.core.exceptions import SerializerConfigError

logger = logging.getLogger(__name__)

Blob = Union[str, bytes]

DEFAULT_SERIALIZER = "json"


@runtime_checkable
class Serializer(Protocol):
    """Capability required from a session data codec."""

    def serialize(self, value: Any) -> Blob: ...

    def deserialize(self, blob: Blob) -> Any: ...


def _as_bytes(blob: Any) -> bytes:
    # Binary columns come back as memoryview on some drivers (psycopg)
    if isinstance(blob, str):
        return blob.encode("utf-8")
    return bytes(blob)


class JSONSerializer:
    """Text codec using the standard library json module."""

    binary = False

    def __init__(self, **dumps_options: Any):
        self.dumps_options = dumps_options

    def serialize(self, value: Any) -> str:
        return json.dumps(value, **self.dumps_options)

    def deserialize(self, blob: Blob) -> Any:
        if not isinstance(blob, str):
            blob = _as_bytes(blob)
        return json.loads(blob)


class PickleSerializer:
    """Binary codec using pickle. Only use it with a trusted database."""

    binary = True

    def __init__(self, protocol: int = pickle.HIGHEST_PROTOCOL):
        self.protocol = protocol

    def serialize(self, value: Any) -> bytes:
        return pickle.dumps(value, protocol=self.protocol)

    def deserialize(self, blob: Blob) -> Any:
        return pickle.loads(_as_bytes(blob))


class FernetSerializer:
    """
    Encrypting codec wrapping another registered codec.

    The inner codec's output is encrypted with Fernet and stored as the
    URL-safe token text. Tampered or foreign blobs raise
    ``cryptography.fernet.InvalidToken`` on deserialize.

    Args:
        key: Fernet key; takes precedence over ``secret``/``salt``
        secret: Secret to derive the key from
        salt: Salt for key derivation
        iterations: PBKDF2 iterations for key derivation
        inner: Name of the codec producing the plaintext
    """

    binary = False

    def __init__(
        self,
        key: Optional[Blob] = None,
        secret: Optional[Blob] = None,
        salt: Optional[Blob] = None,
        iterations: int = DEFAULT_KDF_ITERATIONS,
        inner: str = DEFAULT_SERIALIZER,
    ):
        if inner.lower() == "fernet":
            raise SerializerConfigError("Encrypted serializer cannot wrap itself")
        self.cipher = create_cipher(key=key, secret=secret, salt=salt, iterations=iterations)
        self.inner = build_serializer(inner)

    def serialize(self, value: Any) -> str:
        plaintext = _as_bytes(self.inner.serialize(value))
        return self.cipher.encrypt(plaintext).decode("ascii")

    def deserialize(self, blob: Blob) -> Any:
        plaintext = self.cipher.decrypt(_as_bytes(blob))
        if getattr(self.inner, "binary", False):
            return self.inner.deserialize(plaintext)
        return self.inner.deserialize(plaintext.decode("utf-8"))


SerializerFactory = Callable[..., Serializer]

_REGISTRY: Dict[str, SerializerFactory] = {
    "json": JSONSerializer,
    "pickle": PickleSerializer,
    "fernet": FernetSerializer,
}


def register_serializer(name: str, factory: SerializerFactory) -> None:
    """Make a codec available by name to :func:`build_serializer`"""
    if not name:
        raise SerializerConfigError("Serializer name must not be empty")
    _REGISTRY[name.lower()] = factory


def available_serializers() -> list[str]:
    return sorted(_REGISTRY)


def _from_name(name: str, options: Dict[str, Any]) -> Serializer:
    factory = _REGISTRY.get(name.lower())
    if factory is None:
        raise SerializerConfigError(
            f"Unknown serializer {name!r}; available: {', '.join(available_serializers())}"
        )
    try:
        serializer = factory(**options)
    except SerializerConfigError:
        raise
    except (TypeError, ValueError) as e:
        raise SerializerConfigError(f"Cannot build serializer {name!r}: {e}") from e

    logger.debug(f"Built {name.lower()} serializer")
    return serializer


def build_serializer(arg: Any = DEFAULT_SERIALIZER) -> Serializer:
    """
    Resolve a serializer argument into a serializer object.

    Args:
        arg: Codec name, mapping with a ``name`` entry plus constructor
            options, or an object implementing :class:`Serializer`

    Returns:
        Serializer instance

    Raises:
        SerializerConfigError: If the argument cannot be resolved
    """
    if isinstance(arg, str):
        if not arg:
            raise SerializerConfigError("Serializer name must not be empty")
        return _from_name(arg, {})

    if isinstance(arg, Mapping):
        options = dict(arg)
        name = options.pop("name", None)
        if not isinstance(name, str) or not name:
            raise SerializerConfigError("Serializer config mapping requires a non-empty 'name'")
        return _from_name(name, options)

    if isinstance(arg, Serializer):
        return arg

    raise SerializerConfigError(
        f"Serializer must be a name, a config mapping or an object with serialize/deserialize, "
        f"got {type(arg).__name__}"
    )
