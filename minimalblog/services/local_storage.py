"""Browser-style local key-value storage.

Two backings share the ``get_item``/``set_item`` interface: a JSON file on
disk (the local fallback store lives here) and a cookie jar (the per-browser
upvote record lives here).
"""

import json
import logging
import os
import tempfile
from collections.abc import Mapping
from pathlib import Path
from typing import Protocol
from urllib.parse import quote, unquote

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...


class LocalKeyValueStore:
    """String key-value pairs persisted as one JSON object in a file.

    Writes go through a temp file and ``os.replace`` so a crash never leaves
    a half-written file behind.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, str]:
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable local storage %s: %s", self._path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(
            dir=self._path.parent, prefix=".tmp-", suffix=".json"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, indent=2)
            os.replace(tmp, self._path)
        except OSError:
            Path(tmp).unlink(missing_ok=True)
            raise

    def get_item(self, key: str) -> str | None:
        value = self._load().get(key)
        return value if isinstance(value, str) else None

    def set_item(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._save(data)


class CookieKeyValueStore:
    """Key-value view over request cookies that records pending writes.

    Values are percent-encoded so JSON survives the cookie header intact.
    The caller copies ``pending`` onto the outgoing response.
    """

    def __init__(self, cookies: Mapping[str, str]) -> None:
        self._cookies = dict(cookies)
        self.pending: dict[str, str] = {}

    def get_item(self, key: str) -> str | None:
        raw = self._cookies.get(key)
        return unquote(raw) if raw is not None else None

    def set_item(self, key: str, value: str) -> None:
        encoded = quote(value, safe="")
        self._cookies[key] = encoded
        self.pending[key] = encoded
