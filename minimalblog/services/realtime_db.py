"""Firebase Realtime Database client over the REST and streaming API."""

import asyncio
import contextlib
import json
import logging
import re
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from minimalblog.errors import BackendUnavailable, PersistenceFailure

logger = logging.getLogger(__name__)

OnChange = Callable[[dict[str, Any]], Awaitable[None]]
OnError = Callable[[BackendUnavailable], Awaitable[None]]

# Realtime Database keys may not contain . $ # [ ] or /
_SAFE_KEY_RE = re.compile(r"^[^.$#\[\]/\x00-\x1f\x7f]+$")


def validate_key(segment: str) -> str:
    """Validate a user-supplied database key.

    Returns the segment unchanged if valid; raises ValueError otherwise.
    """
    if not segment or not _SAFE_KEY_RE.match(segment):
        raise ValueError(f"Invalid database key: {segment!r}")
    return segment


def apply_event(snapshot: dict[str, Any], path: str, data: Any) -> dict[str, Any]:
    """Apply a streamed ``put`` at *path* to *snapshot* and return the result.

    ``None`` data deletes the node. A put at the root replaces everything.
    """
    parts = [p for p in path.split("/") if p]
    if not parts:
        return dict(data) if isinstance(data, dict) else {}
    node = snapshot
    for part in parts[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            child = {}
            node[part] = child
        node = child
    if data is None:
        node.pop(parts[-1], None)
    else:
        node[parts[-1]] = data
    return snapshot


class Subscription:
    """Handle for a live change stream. Dead once its task finishes."""

    def __init__(self, task: asyncio.Task[None]) -> None:
        self._task = task

    @property
    def active(self) -> bool:
        return not self._task.done()

    async def close(self) -> None:
        """Stop the stream. Does not fire the error callback."""
        if self._task.done():
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task


class RealtimeDatabase:
    """Thin async wrapper around a Realtime Database REST endpoint.

    Usage::

        db = RealtimeDatabase("https://demo-default-rtdb.firebaseio.com")
        posts = await db.read_all("blogs")
        sub = db.subscribe("blogs", on_change, on_error)
    """

    def __init__(
        self,
        database_url: str,
        *,
        auth_token: str = "",
        timeout: float | None = 15.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not database_url.startswith(("http://", "https://")):
            raise ValueError(f"Invalid database URL: {database_url!r}")
        self._base_url = database_url.rstrip("/")
        self._auth_token = auth_token
        self._client = client or httpx.AsyncClient(timeout=timeout)

    def _url(self, *segments: str) -> str:
        path = "/".join(segments)
        return f"{self._base_url}/{path}.json"

    def _params(self) -> dict[str, str]:
        return {"auth": self._auth_token} if self._auth_token else {}

    async def _request(
        self,
        method: str,
        *segments: str,
        error: type[Exception] = BackendUnavailable,
        **kwargs: Any,
    ) -> Any:
        url = self._url(*segments)
        try:
            resp = await self._client.request(
                method, url, params=self._params(), **kwargs
            )
        except httpx.HTTPError as e:
            raise error(f"{method} {'/'.join(segments)} failed: {e}") from e
        if resp.status_code >= 400:
            raise error(
                f"{method} {'/'.join(segments)} returned {resp.status_code}"
            )
        try:
            return resp.json()
        except ValueError as e:
            raise error(f"{method} {'/'.join(segments)} returned invalid JSON") from e

    async def read_all(self, collection: str) -> dict[str, Any]:
        """Read every child under *collection*. A missing node reads as empty."""
        data = await self._request("GET", collection)
        return data if isinstance(data, dict) else {}

    async def read_one(self, collection: str, key: str) -> Any | None:
        validate_key(key)
        return await self._request("GET", collection, key)

    async def write_one(self, collection: str, key: str, record: dict[str, Any]) -> None:
        validate_key(key)
        await self._request("PUT", collection, key, json=record, error=PersistenceFailure)

    async def update_field(
        self, collection: str, key: str, field: str, value: Any
    ) -> None:
        validate_key(key)
        await self._request(
            "PUT", collection, key, field, json=value, error=PersistenceFailure
        )

    async def increment_field(
        self, collection: str, key: str, field: str, delta: int = 1
    ) -> int | None:
        """Atomically add *delta* on the server.

        Returns the resolved value when the server echoes it, else None.
        """
        validate_key(key)
        result = await self._request(
            "PUT",
            collection,
            key,
            field,
            json={".sv": {"increment": delta}},
            error=PersistenceFailure,
        )
        return result if isinstance(result, int) else None

    def subscribe(
        self, collection: str, on_change: OnChange, on_error: OnError
    ) -> Subscription:
        """Stream changes under *collection*.

        ``on_change`` receives the full current mapping after every event.
        ``on_error`` fires at most once; the subscription never reconnects.
        """
        task = asyncio.create_task(
            self._stream(collection, on_change, on_error),
            name=f"realtime-db-stream:{collection}",
        )
        return Subscription(task)

    async def _stream(
        self, collection: str, on_change: OnChange, on_error: OnError
    ) -> None:
        snapshot: dict[str, Any] = {}
        try:
            async with self._client.stream(
                "GET",
                self._url(collection),
                params=self._params(),
                headers={"Accept": "text/event-stream"},
                timeout=httpx.Timeout(None),
            ) as resp:
                if resp.status_code != 200:
                    raise BackendUnavailable(
                        f"Stream for {collection} returned {resp.status_code}"
                    )
                event: str | None = None
                data_lines: list[str] = []
                async for line in resp.aiter_lines():
                    if line.startswith("event:"):
                        event = line[len("event:"):].strip()
                    elif line.startswith("data:"):
                        data_lines.append(line[len("data:"):].strip())
                    elif not line.strip() and event is not None:
                        snapshot = await self._dispatch(
                            event, "\n".join(data_lines), snapshot, on_change
                        )
                        event, data_lines = None, []
            raise BackendUnavailable(f"Stream for {collection} closed by server")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            err = e if isinstance(e, BackendUnavailable) else BackendUnavailable(str(e))
            logger.warning("Subscription to %s ended: %s", collection, err)
            await on_error(err)

    async def _dispatch(
        self,
        event: str,
        data: str,
        snapshot: dict[str, Any],
        on_change: OnChange,
    ) -> dict[str, Any]:
        if event == "keep-alive":
            return snapshot
        if event in ("cancel", "auth_revoked"):
            raise BackendUnavailable(f"Stream {event}: {data}")
        if event not in ("put", "patch"):
            logger.debug("Ignoring stream event %s", event)
            return snapshot

        payload = json.loads(data)
        path = payload.get("path", "/")
        if event == "put":
            snapshot = apply_event(snapshot, path, payload.get("data"))
        else:
            for key, value in (payload.get("data") or {}).items():
                snapshot = apply_event(snapshot, f"{path.rstrip('/')}/{key}", value)

        await on_change(dict(snapshot))
        return snapshot

    async def aclose(self) -> None:
        await self._client.aclose()
