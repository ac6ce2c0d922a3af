"""Render a post body as HTML, Markdown or plain text."""
import html

import html2text
from markdownify import markdownify

from substack_dl.parse.models import Post

FORMATS = ("html", "md", "txt")


def to_html(post: Post, with_title: bool = True) -> str:
    if with_title:
        return f"<h1>{html.escape(post.title, quote=False)}</h1>\n\n{post.body_html}"
    return post.body_html


def to_markdown(post: Post, with_title: bool = True) -> str:
    body = markdownify(post.body_html, heading_style="ATX").strip()
    if with_title:
        return f"# {post.title}\n\n{body}"
    return body


def to_text(post: Post, with_title: bool = True) -> str:
    converter = html2text.HTML2Text()
    converter.ignore_links = True
    converter.ignore_images = True
    converter.ignore_emphasis = True
    converter.body_width = 0
    body = converter.handle(post.body_html).strip()
    if with_title:
        return f"{post.title}\n\n{body}"
    return body


def content_for_format(post: Post, fmt: str, with_title: bool = True) -> str:
    """Return the post rendered in one of FORMATS."""
    if fmt == "html":
        return to_html(post, with_title)
    if fmt == "md":
        return to_markdown(post, with_title)
    if fmt == "txt":
        return to_text(post, with_title)
    raise ValueError(f"unknown format: {fmt}")


def source_footer(post: Post, fmt: str) -> str:
    """Line pointing back at the original post, or "" when the URL is unknown."""
    if not post.canonical_url:
        return ""
    if fmt == "html":
        url = html.escape(post.canonical_url)
        return (
            '<p style="margin-top: 2em; font-size: small; color: grey;">'
            f'original content: <a href="{url}">{url}</a></p>'
        )
    return f"\n\noriginal content: {post.canonical_url}"
