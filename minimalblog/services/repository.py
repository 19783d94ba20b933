"""Blog repository: one view of the posts, whichever backend holds them.

The repository is the only place raw stored records are turned into
``BlogPost`` objects. It binds to the remote store when it can be reached at
startup and otherwise (or after the change stream dies) to the local
fallback store, then uses that backend for every read and write.
"""

import logging
import secrets
import string
import time
from datetime import datetime, timezone
from typing import Any

import pydantic

from minimalblog.errors import BackendUnavailable, NotFound, ValidationError
from minimalblog.models.blog import Author, BlogPost, BlogPostCreate, make_preview
from minimalblog.services.realtime_db import Subscription
from minimalblog.services.storage import BlogStorage

logger = logging.getLogger(__name__)

SAMPLE_POST_ID = "blog_sample_welcome"
SAMPLE_POST_CONTENT = (
    "This is a sample blog post to demonstrate the functionality of our "
    "minimal blog application.\n\n"
    "Features:\n"
    "• Clean, responsive design\n"
    "• Realtime database integration with local storage fallback\n"
    "• Upvote functionality with duplicate prevention\n"
    "• Admin panel for adding blogs\n\n"
    'Feel free to explore all the features and add your own blog posts using '
    'the "Add Blog" link in the navigation bar.'
)

_ID_ALPHABET = string.ascii_lowercase + string.digits
_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def normalize_record(key: str, raw: Any) -> BlogPost:
    """Map a stored record of any shape onto the canonical post.

    A record without its own id takes the key it was stored under.
    Non-object records are wrapped as ``{id: key, value: raw}``, as is any
    record that still fails validation after its fields are cleaned.
    Older clients stored ``author`` as a plain string.
    """
    if not isinstance(raw, dict):
        return BlogPost(id=key, value=raw)

    record = dict(raw)
    own_id = record.get("id")
    record["id"] = own_id if isinstance(own_id, str) and own_id else key
    author = record.get("author")
    if isinstance(author, str):
        author = {"name": author}
    elif isinstance(author, dict):
        author = dict(author)
        if not isinstance(author.get("name"), str):
            author["name"] = ""
        if not isinstance(author.get("linkedin"), str):
            author["linkedin"] = None
    else:
        author = {}
    record["author"] = author
    for field in ("title", "content", "preview", "status", "type", "source"):
        if not isinstance(record.get(field), str):
            record.pop(field, None)
    try:
        return BlogPost.model_validate(record)
    except pydantic.ValidationError as e:
        logger.warning("Stored record %s is malformed, keeping raw value: %s", key, e)
        return BlogPost(id=key, value=raw)


def sample_post() -> BlogPost:
    """The demonstration post seeded into an empty local store."""
    return BlogPost(
        id=SAMPLE_POST_ID,
        title="Welcome to Minimal Blog",
        content=SAMPLE_POST_CONTENT,
        preview=make_preview(SAMPLE_POST_CONTENT),
        author=Author(name="Demo Author"),
        created_at=datetime.now(timezone.utc),
        upvotes=5,
    )


def _sort_key(post: BlogPost) -> datetime:
    return post.created_at or _OLDEST


class BlogRepository:
    """Posts from the active backend, normalized and held in memory.

    Constructed once per process; handlers receive it through the app state.
    """

    def __init__(
        self,
        local: BlogStorage,
        remote: BlogStorage | None = None,
        *,
        atomic_upvotes: bool = True,
    ) -> None:
        self._local = local
        self._remote = remote
        self._atomic_upvotes = atomic_upvotes
        self._storage: BlogStorage = local
        self._subscription: Subscription | None = None
        # post id -> post, in backend enumeration order
        self._posts: dict[str, BlogPost] = {}
        # post id -> key the record is stored under (differs for legacy records)
        self._keys: dict[str, str] = {}

    @property
    def backend(self) -> str:
        return self._storage.name

    async def initialize(self) -> None:
        """Bind to the remote store if reachable, else to local storage."""
        if self._remote is None:
            logger.info("No remote store configured, using local storage")
            await self._use_local()
            return
        try:
            records = await self._remote.read_all()
        except BackendUnavailable as e:
            logger.warning("Remote store unavailable, falling back to local: %s", e)
            await self._use_local()
            return
        self._replace(records)
        self._storage = self._remote
        self._subscription = self._remote.subscribe(
            self._on_snapshot, self._on_stream_error
        )
        logger.info("Using remote store (%d posts)", len(self._posts))

    async def close(self) -> None:
        if self._subscription is not None:
            await self._subscription.close()
            self._subscription = None
        if self._remote is not None:
            await self._remote.close()

    async def _use_local(self) -> None:
        self._storage = self._local
        records = await self._local.read_all()
        if not records:
            sample = sample_post()
            records = {sample.id: sample.to_wire()}
            try:
                await self._local.write_one(sample.id, records[sample.id])
                logger.info("Seeded local storage with sample post")
            except Exception as e:
                logger.warning("Could not persist sample post: %s", e)
        self._replace(records)

    def _replace(self, records: dict[str, Any]) -> None:
        posts: dict[str, BlogPost] = {}
        keys: dict[str, str] = {}
        for key, raw in records.items():
            post = normalize_record(key, raw)
            posts[post.id] = post
            keys[post.id] = key
        self._posts = posts
        self._keys = keys

    async def _on_snapshot(self, records: dict[str, Any]) -> None:
        self._replace(records)
        logger.debug("Snapshot applied (%d posts)", len(self._posts))

    async def _on_stream_error(self, error: BackendUnavailable) -> None:
        # The stream task is finishing on its own; just drop the handle.
        self._subscription = None
        logger.warning("Remote subscription failed, switching to local: %s", error)
        await self._use_local()

    def list_all(self) -> list[BlogPost]:
        """Every post, newest first. Equal timestamps keep backend order."""
        return sorted(self._posts.values(), key=_sort_key, reverse=True)

    async def get_by_id(self, post_id: str) -> BlogPost:
        """Return the post or raise NotFound.

        Falls through to the backend for ids not yet in memory, such as a
        post written by another client before its snapshot arrived.
        """
        post = self._posts.get(post_id)
        if post is not None:
            return post
        try:
            raw = await self._storage.read_one(post_id)
        except ValueError:
            raw = None
        if raw is None:
            raise NotFound(post_id)
        post = normalize_record(post_id, raw)
        self._posts[post.id] = post
        self._keys[post.id] = post_id
        return post

    def filter_by_author(self, name_query: str) -> list[BlogPost]:
        """Case-insensitive exact or substring match on the author name.

        An empty query matches every post.
        """
        query = name_query.lower().strip()
        matches = []
        for post in self.list_all():
            name = post.author.name.lower().strip()
            if name == query or query in name:
                matches.append(post)
        return matches

    def _new_id(self) -> str:
        while True:
            suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
            post_id = f"blog_{int(time.time() * 1000)}_{suffix}"
            if post_id not in self._posts:
                return post_id

    async def create(self, data: BlogPostCreate) -> BlogPost:
        """Validate, persist and return a new published post.

        Raises ValidationError naming every blank required field, or
        PersistenceFailure if the backend write fails.
        """
        title = data.title.strip()
        content = data.content.strip()
        author_name = data.author_name.strip()
        missing = [
            field
            for field, value in (
                ("title", title),
                ("content", content),
                ("author.name", author_name),
            )
            if not value
        ]
        if missing:
            raise ValidationError(missing)

        preview = (data.preview or "").strip() or make_preview(content)
        linkedin = (data.author_linkedin or "").strip() or None
        post = BlogPost(
            id=self._new_id(),
            title=title,
            content=content,
            preview=preview,
            author=Author(name=author_name, linkedin=linkedin),
            created_at=datetime.now(timezone.utc),
            upvotes=0,
            type=data.type,
        )
        await self._storage.write_one(post.id, post.to_wire())
        self._posts[post.id] = post
        self._keys[post.id] = post.id
        logger.info("Published blog %s to %s storage", post.id, self.backend)
        return post

    async def increment_upvote(self, post_id: str) -> int:
        """Add one upvote and return the new count.

        Uses the backend's atomic increment when available; otherwise the
        read-increment-write is racy across browsers.
        """
        post = await self.get_by_id(post_id)
        key = self._keys.get(post.id, post.id)
        if self._atomic_upvotes and self._storage.supports_atomic_increment:
            new_count = await self._storage.increment_field(key, "upvotes", 1)
            if new_count is None:
                new_count = post.upvotes + 1
        else:
            new_count = post.upvotes + 1
            await self._storage.update_field(key, "upvotes", new_count)
        post.upvotes = new_count
        return new_count
