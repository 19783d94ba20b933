"""HTML pages and the form actions behind them."""

import logging
from urllib.parse import urlencode, urlsplit

from fastapi import APIRouter, Depends, Form, Query, Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response

from minimalblog.dependencies import get_admin_sessions, get_repository
from minimalblog.errors import NotFound, PersistenceFailure, ValidationError
from minimalblog.models.blog import BlogPostCreate
from minimalblog.services.local_storage import CookieKeyValueStore
from minimalblog.services.rendering import (
    NOTICES,
    render_admin_page,
    render_detail_page,
    render_error_page,
    render_list_page,
)
from minimalblog.services.repository import BlogRepository
from minimalblog.services.workflow import AdminSessions, UpvotedSet, upvote

logger = logging.getLogger(__name__)

router = APIRouter(tags=["pages"])

ADMIN_SESSION_COOKIE = "admin_session"
UPVOTED_COOKIE_MAX_AGE = 10 * 365 * 24 * 3600  # effectively never expires


def _notice(notice: str | None) -> str | None:
    return notice if notice in NOTICES else None


def _safe_next(url: str | None) -> str:
    """Only same-site relative redirect targets are allowed."""
    if not url or not url.startswith("/") or "\\" in url:
        return "/"
    parts = urlsplit(url)
    if parts.scheme or parts.netloc or url.startswith("//"):
        return "/"
    return url


def _redirect(url: str, notice: str | None = None) -> RedirectResponse:
    if notice:
        sep = "&" if "?" in url else "?"
        url = f"{url}{sep}{urlencode({'notice': notice})}"
    return RedirectResponse(url, status_code=303)


def _save_cookies(response: Response, cookies: CookieKeyValueStore) -> None:
    for key, value in cookies.pending.items():
        response.set_cookie(
            key, value, max_age=UPVOTED_COOKIE_MAX_AGE, httponly=True, samesite="lax"
        )


def _with_admin_cookie(response: Response, session_id: str) -> Response:
    # No max-age: the session ends with the browser session
    response.set_cookie(ADMIN_SESSION_COOKIE, session_id, httponly=True, samesite="lax")
    return response


@router.get("/", response_class=HTMLResponse)
async def list_page(
    request: Request,
    notice: str | None = Query(None),
    repository: BlogRepository = Depends(get_repository),
):
    """All posts as cards, newest first."""
    try:
        upvoted = UpvotedSet(CookieKeyValueStore(request.cookies))
        return HTMLResponse(
            render_list_page(repository.list_all(), upvoted, _notice(notice))
        )
    except Exception:
        logger.exception("Error rendering blog list")
        return HTMLResponse(
            render_error_page("Failed to load blogs. Please try again."),
            status_code=500,
        )


@router.get("/blog", response_class=HTMLResponse)
async def detail_page(
    request: Request,
    post_id: str | None = Query(None, alias="id"),
    notice: str | None = Query(None),
    repository: BlogRepository = Depends(get_repository),
):
    """Single post resolved from the ``id`` query parameter."""
    if not post_id:
        return HTMLResponse(
            render_error_page("No blog ID provided in URL."), status_code=400
        )
    try:
        post = await repository.get_by_id(post_id)
        upvoted = UpvotedSet(CookieKeyValueStore(request.cookies))
        return HTMLResponse(render_detail_page(post, post.id in upvoted, _notice(notice)))
    except NotFound:
        return HTMLResponse(render_error_page("Blog not found."), status_code=404)
    except Exception:
        logger.exception("Error rendering blog %s", post_id)
        return HTMLResponse(
            render_error_page("Failed to load blog. Please try again."),
            status_code=500,
        )


@router.post("/blogs/{post_id}/upvote")
async def upvote_action(
    request: Request,
    post_id: str,
    next_url: str = Form("/", alias="next"),
    repository: BlogRepository = Depends(get_repository),
):
    """Cast this browser's one upvote, then return to the page it came from."""
    cookies = CookieKeyValueStore(request.cookies)
    target = _safe_next(next_url)
    try:
        result = await upvote(repository, UpvotedSet(cookies), post_id)
        notice = result.notice
    except NotFound:
        target, notice = "/", "not_found"
    except PersistenceFailure as e:
        logger.warning("Could not record upvote for %s: %s", post_id, e)
        notice = "upvote_failed"
    except Exception:
        logger.exception("Error upvoting %s", post_id)
        notice = "error"
    response = _redirect(target, notice)
    _save_cookies(response, cookies)
    return response


@router.get("/admin", response_class=HTMLResponse)
async def admin_page(
    request: Request,
    notice: str | None = Query(None),
    sessions: AdminSessions = Depends(get_admin_sessions),
):
    """Secret code prompt, or the publish form once unlocked."""
    session_id, session = sessions.get(request.cookies.get(ADMIN_SESSION_COOKIE))
    response = HTMLResponse(render_admin_page(session, _notice(notice)))
    # An error is shown once
    session.error = None
    return _with_admin_cookie(response, session_id)


@router.post("/admin/unlock")
async def unlock_action(
    request: Request,
    secret_code: str = Form(""),
    sessions: AdminSessions = Depends(get_admin_sessions),
):
    session_id, session = sessions.get(request.cookies.get(ADMIN_SESSION_COOKIE))
    if not session.unlock(secret_code):
        logger.info("Rejected admin secret code")
    return _with_admin_cookie(_redirect("/admin"), session_id)


@router.post("/admin/posts")
async def publish_action(
    request: Request,
    title: str = Form(""),
    content: str = Form(""),
    author_name: str = Form(""),
    author_linkedin: str = Form(""),
    content_type: str = Form("text", alias="type"),
    repository: BlogRepository = Depends(get_repository),
    sessions: AdminSessions = Depends(get_admin_sessions),
):
    """Publish a post from the admin form and relock the session."""
    session_id, session = sessions.get(request.cookies.get(ADMIN_SESSION_COOKIE))
    if not session.unlocked:
        return _with_admin_cookie(_redirect("/admin"), session_id)

    draft = BlogPostCreate(
        title=title,
        content=content,
        author_name=author_name,
        author_linkedin=author_linkedin or None,
        type=content_type if content_type in ("text", "markdown") else "text",
    )
    try:
        await session.publish(repository, draft)
    except ValidationError as e:
        page = render_admin_page(session, "missing_fields", draft, e.missing)
        return _with_admin_cookie(HTMLResponse(page, status_code=422), session_id)
    except PersistenceFailure as e:
        logger.warning("Could not save blog: %s", e)
        page = render_admin_page(session, "publish_failed", draft)
        return _with_admin_cookie(HTMLResponse(page, status_code=503), session_id)
    except Exception:
        logger.exception("Error publishing blog")
        page = render_admin_page(session, "error", draft)
        return _with_admin_cookie(HTMLResponse(page, status_code=500), session_id)
    return _with_admin_cookie(_redirect("/", "published"), session_id)
