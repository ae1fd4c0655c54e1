"""Header multimap and cookie list owned by client and request configs."""

from __future__ import annotations

from http.cookiejar import Cookie
from typing import Iterator

from requests.cookies import create_cookie


class Header:
    """Ordered, case-insensitive multimap of header values.

    Keys written at least once with :meth:`set` replace lower layers when
    merged; keys only ever written with :meth:`add` accumulate.
    :meth:`merged_onto` uses that to layer request headers over client
    headers.
    """

    def __init__(self) -> None:
        self._entries: dict[str, tuple[str, list[str]]] = {}
        self._replace: set[str] = set()

    def add(self, key: str, value: str) -> None:
        lower = key.lower()
        if lower in self._entries:
            self._entries[lower][1].append(value)
        else:
            self._entries[lower] = (key, [value])

    def set(self, key: str, value: str) -> None:
        lower = key.lower()
        self._entries[lower] = (key, [value])
        self._replace.add(lower)

    def get(self, key: str) -> str:
        """Return the first value for ``key`` or an empty string."""
        entry = self._entries.get(key.lower())
        return entry[1][0] if entry else ""

    def get_all(self, key: str) -> list[str]:
        entry = self._entries.get(key.lower())
        return list(entry[1]) if entry else []

    def delete(self, key: str) -> None:
        self._entries.pop(key.lower(), None)
        self._replace.discard(key.lower())

    def keys(self) -> list[str]:
        return [name for name, _ in self._entries.values()]

    def items(self) -> Iterator[tuple[str, list[str]]]:
        for name, values in self._entries.values():
            yield name, list(values)

    def copy(self) -> Header:
        clone = Header()
        for lower, (name, values) in self._entries.items():
            clone._entries[lower] = (name, list(values))
        clone._replace = set(self._replace)
        return clone

    def merged_onto(self, base: Header) -> Header:
        """Return ``base`` overlaid with this header's entries.

        Keys written with ``set`` replace the base values; keys written
        with ``add`` are appended after them.
        """
        merged = base.copy()
        for lower, (name, values) in self._entries.items():
            if lower in self._replace or lower not in merged._entries:
                merged._entries[lower] = (name, list(values))
            else:
                merged._entries[lower][1].extend(values)
        return merged

    def to_wire(self) -> dict[str, str]:
        """Fold multiple values into one comma-separated value per key."""
        return {
            name: ", ".join(values) for name, values in self._entries.values()
        }

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.lower() in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"Header({dict(self.items())!r})"


class Cookies:
    """Ordered list of cookies sent with a request."""

    def __init__(self) -> None:
        self._cookies: list[Cookie] = []

    def add(self, cookie: Cookie) -> None:
        self._cookies.append(cookie)

    def add_value(self, name: str, value: str, **kwargs: object) -> None:
        self._cookies.append(create_cookie(name, value, **kwargs))

    def get(self, index: int) -> Cookie | None:
        if index < 0 or index >= len(self._cookies):
            return None
        return self._cookies[index]

    def remove(self, index: int) -> None:
        if 0 <= index < len(self._cookies):
            del self._cookies[index]

    def count(self) -> int:
        return len(self._cookies)

    def unwrap(self) -> list[Cookie]:
        return list(self._cookies)

    def __iter__(self) -> Iterator[Cookie]:
        return iter(list(self._cookies))

    def __len__(self) -> int:
        return len(self._cookies)


def cookie_header(*cookie_lists: Cookies, existing: str = "") -> str:
    """Render cookies, in order, as a single ``Cookie`` header value."""
    pairs = [
        f"{cookie.name}={cookie.value if cookie.value is not None else ''}"
        for cookies in cookie_lists
        for cookie in cookies
    ]
    if existing:
        pairs.insert(0, existing)
    return "; ".join(pairs)
