"""Error taxonomy shared by the repository, workflow and HTTP layers."""


class BlogError(Exception):
    """Base class for blog domain errors."""


class ValidationError(BlogError):
    """Required input is missing. Reported inline, never fatal."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = list(missing)
        super().__init__(f"Missing required fields: {', '.join(self.missing)}")


class NotFound(BlogError):
    """No post exists under the requested id."""

    def __init__(self, post_id: str) -> None:
        self.post_id = post_id
        super().__init__(f"Blog not found: {post_id}")


class BackendUnavailable(BlogError):
    """The remote store is unreachable or rejected a read.

    Triggers a silent switch to the local fallback store.
    """


class PersistenceFailure(BlogError):
    """A validated write could not be persisted. Not retried automatically."""


class AdminLocked(BlogError):
    """Publishing was attempted without unlocking the admin session."""
