"""Blog post data models."""

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

PREVIEW_LENGTH = 300
PREVIEW_SUFFIX = "..."


def make_preview(content: str) -> str:
    """First PREVIEW_LENGTH characters of content, with a suffix if truncated."""
    if len(content) <= PREVIEW_LENGTH:
        return content
    return content[:PREVIEW_LENGTH] + PREVIEW_SUFFIX


class Author(BaseModel):
    """Author sub-object. Not a separate entity."""

    model_config = ConfigDict(extra="allow")

    name: str = ""
    linkedin: str | None = None


class BlogPost(BaseModel):
    """A published blog post in its canonical shape.

    Stored records may come from older clients, so every field except ``id``
    has a default and unknown fields are kept as extras.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str
    title: str = ""
    content: str = ""
    preview: str = ""
    author: Author = Field(default_factory=Author)
    created_at: datetime | None = Field(default=None, alias="createdAt")
    upvotes: int = 0
    status: str = "published"
    type: str = "text"
    source: str = "manual"

    @field_validator("created_at", mode="before")
    @classmethod
    def lenient_created_at(cls, value: Any) -> Any:
        """Unparseable timestamps become None instead of failing the record."""
        if isinstance(value, str):
            try:
                return datetime.fromisoformat(value.replace("Z", "+00:00"))
            except ValueError:
                return None
        if value is None or isinstance(value, (datetime, int, float)):
            return value
        return None

    @field_validator("upvotes", mode="before")
    @classmethod
    def lenient_upvotes(cls, value: Any) -> int:
        try:
            count = int(value)
        except (TypeError, ValueError):
            return 0
        return max(count, 0)

    @model_validator(mode="after")
    def ensure_timezone(self) -> "BlogPost":
        """Treat naive timestamps as UTC so posts always compare."""
        if self.created_at is not None and self.created_at.tzinfo is None:
            self.created_at = self.created_at.replace(tzinfo=timezone.utc)
        return self

    @property
    def display_preview(self) -> str:
        return self.preview or make_preview(self.content)

    @property
    def is_markdown(self) -> bool:
        return self.type == "markdown"

    def to_wire(self) -> dict[str, Any]:
        """JSON-ready dict using the stored (camelCase) field names."""
        return self.model_dump(mode="json", by_alias=True)


class BlogPostCreate(BaseModel):
    """Input for publishing a new post.

    Required fields are checked by the repository so that every missing one
    can be reported at once.
    """

    title: str = ""
    content: str = ""
    author_name: str = ""
    author_linkedin: str | None = None
    preview: str | None = None
    type: Literal["text", "markdown"] = "text"
