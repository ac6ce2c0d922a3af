"""Shared fixtures: sample posts, mock Substack pages and a mock-transport FetchClient."""
import json
from typing import Callable, Optional

import httpx
import pytest

from substack_dl.fetch.client import FetchClient
from substack_dl.fetch.rate_limit import RateLimiter
from substack_dl.jobs.run_control import RunControl
from substack_dl.parse.models import Post

BASE_URL = "https://example.substack.com"


def make_post(**overrides) -> Post:
    data = {
        "id": 123,
        "publication_id": 456,
        "type": "post",
        "slug": "test-post",
        "post_date": "2023-01-01T10:30:00.000Z",
        "canonical_url": f"{BASE_URL}/p/test-post",
        "previous_post_slug": "previous-post",
        "next_post_slug": "next-post",
        "cover_image": "https://example.com/image.jpg",
        "description": "Test description",
        "subtitle": "Test subtitle",
        "wordcount": 100,
        "title": "Test Post",
        "body_html": '<p>This is a <strong>test</strong> post with a <a href="https://example.com">link</a>.</p>',
    }
    data.update(overrides)
    return Post(**data)


def embed_payload(post: Post) -> str:
    """Escape the {"post": ...} document the way it appears inside JSON.parse("...")."""
    raw = json.dumps({"post": post.model_dump()})
    return json.dumps(raw)[1:-1]


def make_post_html(post: Post, head: str = "", body: str = "") -> str:
    return f"""<!DOCTYPE html>
<html>
<head>
  <title>{post.title}</title>
  {head}
</head>
<body>
  <div class="post">Some content</div>
  {body}
  <script>
    window._preloads = JSON.parse("{embed_payload(post)}")
  </script>
</body>
</html>
"""


def make_sitemap(entries: list[tuple[str, str]]) -> str:
    urls = "".join(
        f"  <url>\n    <loc>{loc}</loc>\n    <lastmod>{lastmod}</lastmod>\n  </url>\n"
        for loc, lastmod in entries
    )
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">\n'
        f"{urls}</urlset>"
    )


class MockSubstack:
    """Serves a sitemap and post pages from memory."""

    def __init__(self, count: int = 5):
        self.posts: dict[str, Post] = {}
        self.pages: dict[str, str] = {}
        self.requests: list[str] = []
        dates = [f"2023-01-0{i}" for i in range(1, count + 1)]
        entries = [(f"{BASE_URL}/about", "2023-01-01")]
        for i in range(1, count + 1):
            post = make_post(
                id=i,
                title=f"Test Post {i}",
                slug=f"test-post-{i}",
                post_date=f"{dates[i - 1]}T10:00:00Z",
                canonical_url=f"{BASE_URL}/p/test-post-{i}",
            )
            path = f"/p/test-post-{i}"
            self.posts[path] = post
            self.pages[path] = make_post_html(post)
            entries.append((f"{BASE_URL}{path}", dates[i - 1]))
        self.sitemap = make_sitemap(entries)

    def url(self, path: str) -> str:
        return f"{BASE_URL}{path}"

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request.url.path)
        path = request.url.path
        if path == "/sitemap.xml":
            return httpx.Response(200, text=self.sitemap, headers={"Content-Type": "application/xml"})
        if path in self.pages:
            return httpx.Response(200, text=self.pages[path], headers={"Content-Type": "text/html"})
        return httpx.Response(404, text="not found")


def make_client(
    handler: Callable,
    control: Optional[RunControl] = None,
    **kwargs,
) -> FetchClient:
    kwargs.setdefault("max_retries", 0)
    kwargs.setdefault("backoff_initial", 0)
    kwargs.setdefault("backoff_max", 0)
    kwargs.setdefault("max_elapsed", 30)
    kwargs.setdefault("rate_limiter", RateLimiter(0))
    return FetchClient(
        control=control or RunControl(),
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


@pytest.fixture
def sample_post() -> Post:
    return make_post()


@pytest.fixture
def post_factory():
    return make_post


@pytest.fixture
def page_factory():
    return make_post_html


@pytest.fixture
def sitemap_factory():
    return make_sitemap


@pytest.fixture
def substack() -> MockSubstack:
    return MockSubstack()


@pytest.fixture
def client_factory():
    return make_client
