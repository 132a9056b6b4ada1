from collections.abc import Mapping, Sequence
from typing import Any, Dict, Union

from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Engine, make_url

from sessionstore.core.exceptions import ConfigurationError

EngineArg = Union[Engine, str, URL, Sequence, Mapping]


def get_connect_args(url: Union[str, URL]) -> Dict[str, Any]:
    """Get database-specific connection arguments"""
    if make_url(url).get_backend_name() == "sqlite":
        # The engine is shared between the host application's threads
        return {"check_same_thread": False}
    return {}


def _create(url: Union[str, URL], options: Mapping) -> Engine:
    kwargs = dict(options)
    connect_args = {**get_connect_args(url), **kwargs.pop("connect_args", {})}
    return create_engine(url, connect_args=connect_args, **kwargs)


def build_engine(arg: EngineArg) -> Engine:
    """
    Turn a database argument into a SQLAlchemy engine.

    Accepts a pre-built :class:`Engine` (returned unchanged), a URL string or
    :class:`URL`, a ``(url, options)`` sequence, or a mapping holding ``url``
    plus :func:`create_engine` keyword arguments.
    """
    if isinstance(arg, Engine):
        return arg

    if isinstance(arg, (str, URL)):
        return _create(arg, {})

    if isinstance(arg, Mapping):
        options = dict(arg)
        url = options.pop("url", None)
        if not url:
            raise ConfigurationError("Database config mapping requires a 'url'")
        return _create(url, options)

    if isinstance(arg, Sequence) and 1 <= len(arg) <= 2:
        url = arg[0]
        options = arg[1] if len(arg) == 2 else {}
        if not isinstance(url, (str, URL)) or not isinstance(options, Mapping):
            raise ConfigurationError("Database sequence must be (url, {create_engine options})")
        return _create(url, options)

    raise ConfigurationError(
        f"Database must be an Engine, URL, (url, options) sequence or mapping, got {type(arg).__name__}"
    )
