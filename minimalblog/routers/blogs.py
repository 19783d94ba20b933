"""Blog post JSON endpoints."""

import logging

from fastapi import APIRouter, Depends, Path
from fastapi.responses import JSONResponse

from minimalblog.dependencies import get_repository
from minimalblog.errors import NotFound
from minimalblog.models.blog import BlogPost
from minimalblog.services.repository import BlogRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/blogs", tags=["blogs"])

# Content changes rarely; let shared caches serve slightly stale copies.
CACHE_CONTROL = "public, max-age=60, stale-while-revalidate=120"


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _posts_response(posts: list[BlogPost]) -> JSONResponse:
    return JSONResponse(
        content=[post.to_wire() for post in posts],
        headers={"Cache-Control": CACHE_CONTROL},
    )


@router.get("")
async def list_blogs(repository: BlogRepository = Depends(get_repository)):
    """Every post, newest first."""
    try:
        posts = repository.list_all()
    except Exception:
        logger.exception("Error listing blogs")
        return error_response(500, "Failed to fetch blogs.")
    return _posts_response(posts)


@router.get("/author/{name}")
async def list_blogs_by_author(
    name: str = Path(..., max_length=200),
    repository: BlogRepository = Depends(get_repository),
):
    """Posts whose author name equals or contains *name*, case-insensitively."""
    try:
        posts = repository.filter_by_author(name)
    except Exception:
        logger.exception("Error filtering blogs by author %r", name)
        return error_response(500, "Failed to fetch blogs by author.")
    return _posts_response(posts)


@router.get("/{post_id}")
async def get_blog(
    post_id: str = Path(..., max_length=200),
    repository: BlogRepository = Depends(get_repository),
):
    """Get a single blog post by ID."""
    try:
        post = await repository.get_by_id(post_id)
    except NotFound:
        return error_response(404, "Blog not found.")
    except Exception:
        logger.exception("Error fetching blog %s", post_id)
        return error_response(500, "Failed to fetch blog.")
    return JSONResponse(content=post.to_wire(), headers={"Cache-Control": CACHE_CONTROL})
