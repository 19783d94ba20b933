"""Server-side HTML for the list, detail and admin pages.

Every stored or user-supplied string goes through ``html.escape`` except
post content flagged as markdown, which is rendered by ``markdown``.
"""

import html
from collections.abc import Container, Iterable
from datetime import datetime
from urllib.parse import quote

import markdown

from minimalblog.models.blog import BlogPost, BlogPostCreate
from minimalblog.services.workflow import AdminSession

SITE_NAME = "Minimal Blog"

# key -> (message, level)
NOTICES: dict[str, tuple[str, str]] = {
    "upvoted": ("Thank you for your like!", "success"),
    "already_upvoted": ("You have already liked this blog!", "warning"),
    "upvote_failed": ("Failed to update like. Please try again.", "danger"),
    "published": ("Blog published successfully!", "success"),
    "publish_failed": ("Failed to save blog. Please try again.", "danger"),
    "missing_fields": ("Please fill in all required fields.", "danger"),
    "not_found": ("Blog not found.", "danger"),
    "error": ("Something went wrong. Please try again.", "danger"),
}

_FIELD_LABELS = {"title": "Title", "content": "Content", "author.name": "Author name"}


def escape(text: str | None) -> str:
    return html.escape(text or "", quote=True)


def format_date(value: datetime | None) -> str:
    """``Feb 20, 2026`` style date, or an empty string if unknown."""
    if value is None:
        return ""
    return f"{value:%b} {value.day}, {value.year}"


def detail_url(post_id: str) -> str:
    return f"/blog?id={quote(post_id, safe='')}"


def render_content(post: BlogPost) -> str:
    if post.is_markdown:
        body = markdown.markdown(post.content, extensions=["extra"])
        return f'<div class="blog-content markdown">{body}</div>'
    return (
        '<div class="blog-content" style="white-space: pre-wrap">'
        f"{escape(post.content)}</div>"
    )


def render_notice(key: str | None) -> str:
    if not key or key not in NOTICES:
        return ""
    message, level = NOTICES[key]
    return f'<div class="alert alert-{level}" role="alert">{escape(message)}</div>'


def page(title: str, body: str, notice: str | None = None) -> str:
    """Wrap *body* in the site layout."""
    full_title = f"{escape(title)} | {SITE_NAME}" if title != SITE_NAME else SITE_NAME
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8" />
<meta name="viewport" content="width=device-width, initial-scale=1" />
<title>{full_title}</title>
<script src="/env.js"></script>
</head>
<body>
<nav class="navbar">
<a class="navbar-brand" href="/">{SITE_NAME}</a>
<a class="nav-link" href="/admin">Add Blog</a>
</nav>
<main class="container">
{render_notice(notice)}
{body}
</main>
</body>
</html>"""


def _author_html(post: BlogPost, label: str = "") -> str:
    name = f'<span class="author-name">{escape(post.author.name)}</span>'
    linkedin = post.author.linkedin or ""
    if linkedin.lower().startswith(("http://", "https://")):
        name += (
            f' <a href="{escape(linkedin)}" target="_blank" '
            f'rel="noopener" class="author-linkedin">{label or "in"}</a>'
        )
    return name


def _upvote_form(post: BlogPost, upvoted: bool, next_url: str) -> str:
    state = "upvoted" if upvoted else ""
    hint = "You already liked this" if upvoted else "Like this post"
    disabled = " disabled" if upvoted else ""
    return (
        f'<form method="post" action="/blogs/{quote(post.id, safe="")}/upvote" '
        'class="upvote-form">'
        f'<input type="hidden" name="next" value="{escape(next_url)}" />'
        f'<button type="submit" class="upvote-btn {state}" title="{hint}" '
        f'aria-pressed="{"true" if upvoted else "false"}"{disabled} '
        f'data-blog-id="{escape(post.id)}">&#9650; <span>{post.upvotes}</span>'
        "</button></form>"
    )


def render_card(post: BlogPost, upvoted: bool) -> str:
    url = detail_url(post.id)
    return f"""<div class="blog-card" data-blog-id="{escape(post.id)}">
<h3 class="blog-card-title"><a href="{escape(url)}">{escape(post.title)}</a></h3>
<p class="blog-card-preview">{escape(post.display_preview)}</p>
<div class="blog-card-meta">
<div class="author-info">{_author_html(post)} <span class="blog-date">{format_date(post.created_at)}</span></div>
{_upvote_form(post, upvoted, "/")}
<a class="read-more-btn" href="{escape(url)}">Read More</a>
</div>
</div>"""


def render_list_page(
    posts: Iterable[BlogPost], upvoted: Container[str], notice: str | None = None
) -> str:
    """Every post as a card, rebuilt from scratch on each render."""
    cards = [render_card(post, post.id in upvoted) for post in posts]
    if not cards:
        body = (
            '<div class="empty-state"><h2>No blogs yet</h2>'
            "<p>Be the first to publish one.</p></div>"
        )
    else:
        body = '<div id="blogContainer">\n' + "\n".join(cards) + "\n</div>"
    return page(SITE_NAME, body, notice)


def render_detail_page(
    post: BlogPost, upvoted: bool, notice: str | None = None
) -> str:
    url = detail_url(post.id)
    body = f"""<article class="blog-detail">
<h1 id="blogTitle">{escape(post.title)}</h1>
<p id="blogMeta">By {_author_html(post, "LinkedIn")} &bull; {format_date(post.created_at)}</p>
{_upvote_form(post, upvoted, url)}
{render_content(post)}
</article>"""
    return page(post.title or "Untitled", body, notice)


def render_error_page(message: str) -> str:
    body = (
        '<div class="blog-detail"><h1 id="blogTitle">Error</h1>'
        f'<p class="text-danger">{escape(message)}</p>'
        '<p><a href="/">Back to all blogs</a></p></div>'
    )
    return page("Error", body)


def render_admin_page(
    session: AdminSession,
    notice: str | None = None,
    draft: BlogPostCreate | None = None,
    missing: list[str] | None = None,
) -> str:
    """Secret code prompt while locked, the publish form once unlocked."""
    if not session.unlocked:
        error = ""
        if session.error:
            error = f'<div id="authError" class="text-danger">{escape(session.error)}</div>'
        body = f"""<section id="authStep">
<h2>Admin access</h2>
<form method="post" action="/admin/unlock">
<label for="secretCodeInput">Secret code</label>
<input type="password" id="secretCodeInput" name="secret_code" autofocus />
<button type="submit">Unlock</button>
</form>
{error}
</section>"""
        return page("Admin", body, notice)

    draft = draft or BlogPostCreate()
    missing_html = ""
    if missing:
        labels = ", ".join(escape(_FIELD_LABELS.get(m, m)) for m in missing)
        missing_html = f'<div class="text-danger">Missing: {labels}</div>'
    markdown_selected = " selected" if draft.type == "markdown" else ""
    body = f"""<section id="manualBlogForm">
<h2>Publish a blog</h2>
{missing_html}
<form id="blogForm" method="post" action="/admin/posts">
<label for="blogTitleInput">Title</label>
<input id="blogTitleInput" name="title" value="{escape(draft.title)}" />
<label for="authorName">Author name</label>
<input id="authorName" name="author_name" value="{escape(draft.author_name)}" />
<label for="authorLinkedin">LinkedIn (optional)</label>
<input id="authorLinkedin" name="author_linkedin" value="{escape(draft.author_linkedin)}" />
<label for="contentType">Format</label>
<select id="contentType" name="type">
<option value="text">Plain text</option>
<option value="markdown"{markdown_selected}>Markdown</option>
</select>
<label for="blogContentInput">Content</label>
<textarea id="blogContentInput" name="content" rows="12">{escape(draft.content)}</textarea>
<button type="submit">Publish</button>
</form>
</section>"""
    return page("Admin", body, notice)
