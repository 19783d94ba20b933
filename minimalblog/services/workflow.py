"""Publishing and upvoting on behalf of one browser."""

import json
import logging
import secrets
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum

from minimalblog.errors import AdminLocked
from minimalblog.models.blog import BlogPost, BlogPostCreate
from minimalblog.services.local_storage import KeyValueStore
from minimalblog.services.repository import BlogRepository

logger = logging.getLogger(__name__)

UPVOTED_KEY = "upvotedBlogs"
INVALID_CODE_MESSAGE = "Invalid secret code. Please try again."


class AdminState(str, Enum):
    LOCKED = "locked"
    UNLOCKED = "unlocked"


class AdminSession:
    """Admin access for one browser session.

    Locked -> unlock(correct code) -> Unlocked -> publish(valid post) -> Locked.
    A wrong code leaves the session locked; there is no lockout.
    """

    def __init__(self, secret_code: str) -> None:
        self._secret_code = secret_code
        self.state = AdminState.LOCKED
        self.error: str | None = None

    @property
    def unlocked(self) -> bool:
        return self.state is AdminState.UNLOCKED

    def unlock(self, code: str) -> bool:
        code = code.strip()
        # An unset code disables publishing entirely
        if self._secret_code and secrets.compare_digest(
            code.encode(), self._secret_code.encode()
        ):
            self.state = AdminState.UNLOCKED
            self.error = None
            return True
        self.state = AdminState.LOCKED
        self.error = INVALID_CODE_MESSAGE
        return False

    def lock(self) -> None:
        self.state = AdminState.LOCKED
        self.error = None

    async def publish(self, repository: BlogRepository, data: BlogPostCreate) -> BlogPost:
        """Create the post and relock.

        ValidationError and PersistenceFailure leave the session unlocked so
        the form can be corrected and resubmitted.
        """
        if not self.unlocked:
            raise AdminLocked("Unlock the admin panel before publishing")
        post = await repository.create(data)
        self.lock()
        return post


class AdminSessions:
    """In-memory registry of admin sessions keyed by session cookie.

    Oldest sessions are evicted beyond ``max_size``; nothing is persisted.
    """

    def __init__(self, secret_code: str, max_size: int = 1000) -> None:
        self._secret_code = secret_code
        self._max_size = max_size
        self._sessions: OrderedDict[str, AdminSession] = OrderedDict()

    def get(self, session_id: str | None) -> tuple[str, AdminSession]:
        """Return ``(session_id, session)``, starting a new session if needed."""
        if session_id and session_id in self._sessions:
            self._sessions.move_to_end(session_id)
            return session_id, self._sessions[session_id]
        session_id = secrets.token_urlsafe(16)
        self._sessions[session_id] = AdminSession(self._secret_code)
        while len(self._sessions) > self._max_size:
            self._sessions.popitem(last=False)
        return session_id, self._sessions[session_id]

    def __len__(self) -> int:
        return len(self._sessions)


class UpvotedSet:
    """Post ids this browser has upvoted, kept as a JSON array."""

    def __init__(self, storage: KeyValueStore, key: str = UPVOTED_KEY) -> None:
        self._storage = storage
        self._key = key
        self._ids = self._load()

    def _load(self) -> list[str]:
        raw = self._storage.get_item(self._key)
        if not raw:
            return []
        try:
            data = json.loads(raw)
        except ValueError:
            logger.debug("Discarding malformed upvote record")
            return []
        if not isinstance(data, list):
            return []
        ids: list[str] = []
        for item in data:
            if isinstance(item, str) and item not in ids:
                ids.append(item)
        return ids

    def __contains__(self, post_id: object) -> bool:
        return post_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def __iter__(self):
        return iter(self._ids)

    def add(self, post_id: str) -> bool:
        """Record *post_id*. Returns False if it was already present."""
        if post_id in self._ids:
            return False
        self._ids.append(post_id)
        self._storage.set_item(self._key, json.dumps(self._ids))
        return True


@dataclass
class UpvoteResult:
    notice: str  # "upvoted" or "already_upvoted"
    upvotes: int
    counted: bool


async def upvote(
    repository: BlogRepository, upvoted: UpvotedSet, post_id: str
) -> UpvoteResult:
    """Cast this browser's single upvote for *post_id*.

    A repeat is a no-op reported as ``already_upvoted``. NotFound and
    PersistenceFailure propagate, and a failed write is not recorded.
    """
    if post_id in upvoted:
        post = await repository.get_by_id(post_id)
        return UpvoteResult(notice="already_upvoted", upvotes=post.upvotes, counted=False)

    count = await repository.increment_upvote(post_id)
    upvoted.add(post_id)
    logger.info("Upvoted %s (now %d)", post_id, count)
    return UpvoteResult(notice="upvoted", upvotes=count, counted=True)
