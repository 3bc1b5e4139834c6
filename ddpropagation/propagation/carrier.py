"""
Carriers are the textual representation a span context is written to and read
from, typically the HTTP headers of a request.

Propagators only rely on two capabilities:

  - ``TextMapWriter.set(key, value)``
  - ``TextMapReader.for_each_key(handler)`` which calls ``handler(key, value)``
    once per value; an exception raised by ``handler`` stops the iteration and
    is propagated to the caller.

Plain mappings are accepted as well, e.g.::

    headers = {}
    propagator.inject(span.context, headers)
"""
from collections.abc import Mapping
from collections.abc import MutableMapping
from typing import Any
from typing import Callable
from typing import Dict
from typing import List
from typing import Protocol
from typing import runtime_checkable
from typing import Tuple

from ..errors import InvalidCarrier


@runtime_checkable
class TextMapWriter(Protocol):
    def set(self, key, value):
        # type: (str, str) -> None
        ...


@runtime_checkable
class TextMapReader(Protocol):
    def for_each_key(self, handler):
        # type: (Callable[[str, str], None]) -> None
        ...


class TextMapCarrier(Dict[str, str]):
    """A ``dict`` of single valued string keys usable as both reader and writer."""

    def set(self, key, value):
        # type: (str, str) -> None
        self[key] = value

    def for_each_key(self, handler):
        # type: (Callable[[str, str], None]) -> None
        for key, value in list(self.items()):
            handler(key, value)


class HTTPHeadersCarrier(Dict[str, List[str]]):
    """A ``dict`` of multi valued header names, e.g. ``{"X-B3-Sampled": ["1"]}``.

    Header names are case insensitive: ``set`` replaces every value stored under
    any casing of ``key``, keeping the position of the first one.
    """

    def set(self, key, value):
        # type: (str, str) -> None
        lowered = key.lower()
        if not any(k.lower() == lowered for k in self):
            self[key] = [value]
            return
        items = []  # type: List[Tuple[str, List[str]]]
        for existing, values in self.items():
            if existing.lower() != lowered:
                items.append((existing, values))
            elif not any(k == key for k, _ in items):
                items.append((key, [value]))
        self.clear()
        self.update(items)

    def for_each_key(self, handler):
        # type: (Callable[[str, str], None]) -> None
        for key, values in list(self.items()):
            for value in values:
                handler(key, value)


class _MappingWriter(object):
    __slots__ = ["_mapping"]

    def __init__(self, mapping):
        # type: (MutableMapping[str, Any]) -> None
        self._mapping = mapping

    def set(self, key, value):
        # type: (str, str) -> None
        self._mapping[key] = value


class _MappingReader(object):
    __slots__ = ["_mapping"]

    def __init__(self, mapping):
        # type: (Mapping[str, Any]) -> None
        self._mapping = mapping

    def for_each_key(self, handler):
        # type: (Callable[[str, str], None]) -> None
        for key, value in list(self._mapping.items()):
            if isinstance(value, (list, tuple)):
                for v in value:
                    handler(key, v)
            else:
                handler(key, value)


def as_writer(carrier):
    # type: (Any) -> TextMapWriter
    """Return ``carrier`` as a ``TextMapWriter``, raising ``InvalidCarrier`` if it cannot be written to."""
    if isinstance(carrier, TextMapWriter):
        return carrier
    if isinstance(carrier, MutableMapping):
        return _MappingWriter(carrier)
    raise InvalidCarrier(carrier)


def as_reader(carrier):
    # type: (Any) -> TextMapReader
    """Return ``carrier`` as a ``TextMapReader``, raising ``InvalidCarrier`` if it cannot be read from."""
    if isinstance(carrier, TextMapReader):
        return carrier
    if isinstance(carrier, Mapping):
        return _MappingReader(carrier)
    raise InvalidCarrier(carrier)
