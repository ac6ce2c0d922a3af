"""Archive index of the posts written during a run."""
import html
import logging
import os
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import cmp_to_key
from pathlib import Path
from typing import Iterable, Optional

from substack_dl.parse.models import Post

logger = logging.getLogger(__name__)

ARCHIVE_TITLE = "Substack Archive"
INDEX_EXTENSIONS = {"html": "html", "md": "md", "txt": "txt"}

HTML_HEADER = f"""<!DOCTYPE html>
<html lang="en">
<head>
\t<meta charset="UTF-8">
\t<meta name="viewport" content="width=device-width, initial-scale=1.0">
\t<title>{ARCHIVE_TITLE}</title>
\t<style>
\t\tbody {{ font-family: Arial, sans-serif; max-width: 800px; margin: 0 auto; padding: 20px; }}
\t\th1 {{ color: #333; }}
\t\t.post {{ margin-bottom: 30px; padding: 20px; border: 1px solid #eee; border-radius: 8px; overflow: hidden; }}
\t\t.post h2 {{ margin-top: 0; }}
\t\t.post h2 a {{ text-decoration: none; color: #ff6719; }}
\t\t.post h2 a:hover {{ text-decoration: underline; }}
\t\t.meta {{ color: #666; font-size: 14px; margin-bottom: 10px; }}
\t\t.subtitle {{ color: #777; font-style: italic; margin-bottom: 10px; }}
\t\t.cover-image {{ max-width: 200px; float: right; margin-left: 15px; }}
\t</style>
</head>
<body>
\t<h1>{ARCHIVE_TITLE}</h1>
"""

HTML_FOOTER = """</body>
</html>
"""


def parse_post_date(value: str) -> Optional[datetime]:
    """Parse an ISO-8601 / RFC 3339 post date. Naive values are taken as UTC."""
    if not value:
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_post_date(value: str) -> str:
    """`January 2, 2006`, or the raw value when it does not parse."""
    parsed = parse_post_date(value)
    if parsed is None:
        return value
    return f"{parsed:%B} {parsed.day}, {parsed:%Y}"


def format_download_time(value: datetime) -> str:
    """`January 2, 2006 15:04`."""
    return f"{value:%B} {value.day}, {value:%Y %H:%M}"


_LINK_TEXT_SPECIALS = re.compile(r"([\\\[\]])")


def escape_link_text(text: str) -> str:
    """Backslash-escape characters that would end a Markdown link label."""
    return _LINK_TEXT_SPECIALS.sub(r"\\\1", text)


@dataclass(frozen=True)
class ArchiveEntry:
    """A written post: the record, where it was written and when it was downloaded."""

    post: Post
    file_path: Path
    download_time: datetime


def compare_entries(a: ArchiveEntry, b: ArchiveEntry) -> int:
    """Newest post first, then by title, slug and id; by title alone when either date does not parse.

    The title fallback only applies to the pair being compared, so a mix of
    parseable and unparseable dates has no single consistent order.
    """
    date_a = parse_post_date(a.post.post_date)
    date_b = parse_post_date(b.post.post_date)
    if date_a is None or date_b is None:
        return (a.post.title > b.post.title) - (a.post.title < b.post.title)
    if date_a != date_b:
        return (date_b > date_a) - (date_b < date_a)
    key_a = (a.post.title, a.post.slug, a.post.id)
    key_b = (b.post.title, b.post.slug, b.post.id)
    return (key_a > key_b) - (key_a < key_b)


class Archive:
    """Entries sorted by publish date, newest first, re-sorted on every insert.

    Not safe for concurrent add_entry calls; the run loop is the single writer.
    """

    def __init__(self):
        self._entries: list[ArchiveEntry] = []

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> tuple[ArchiveEntry, ...]:
        return tuple(self._entries)

    def add_entry(self, post: Post, file_path: Path | str, download_time: datetime) -> ArchiveEntry:
        entry = ArchiveEntry(post=post, file_path=Path(file_path), download_time=download_time)
        self._entries.append(entry)
        self._entries.sort(key=cmp_to_key(compare_entries))
        return entry

    def _relative_path(self, entry: ArchiveEntry, output_dir: Path) -> str:
        return Path(os.path.relpath(entry.file_path, output_dir)).as_posix()

    def render_html(self, output_dir: Path) -> str:
        parts = [HTML_HEADER]
        for entry in self._entries:
            post = entry.post
            rel_path = html.escape(self._relative_path(entry, output_dir))
            parts.append('\t<div class="post">\n')
            if post.cover_image:
                parts.append(f'\t\t<img src="{html.escape(post.cover_image)}" alt="Cover" class="cover-image">\n')
            parts.append(f'\t\t<h2><a href="{rel_path}">{html.escape(post.title, quote=False)}</a></h2>\n')
            parts.append(
                f'\t\t<div class="meta">Published: {html.escape(format_post_date(post.post_date), quote=False)}'
                f" | Downloaded: {format_download_time(entry.download_time)}</div>\n"
            )
            if post.summary:
                parts.append(f'\t\t<div class="subtitle">{html.escape(post.summary, quote=False)}</div>\n')
            parts.append("\t</div>\n")
        parts.append(HTML_FOOTER)
        return "".join(parts)

    def render_markdown(self, output_dir: Path) -> str:
        parts = [f"# {ARCHIVE_TITLE}\n\n"]
        for entry in self._entries:
            post = entry.post
            parts.append(f"## [{escape_link_text(post.title)}]({self._relative_path(entry, output_dir)})\n\n")
            parts.append(
                f"**Published:** {format_post_date(post.post_date)} | "
                f"**Downloaded:** {format_download_time(entry.download_time)}\n\n"
            )
            if post.cover_image:
                parts.append(f"![Cover Image]({post.cover_image})\n\n")
            if post.summary:
                parts.append(f"*{post.summary}*\n\n")
            parts.append("---\n\n")
        return "".join(parts)

    def render_text(self, output_dir: Path) -> str:
        banner = ARCHIVE_TITLE.upper()
        parts = [f"{banner}\n{'=' * len(banner)}\n\n"]
        for entry in self._entries:
            post = entry.post
            parts.append(f"Title: {post.title}\n")
            parts.append(f"File: {self._relative_path(entry, output_dir)}\n")
            parts.append(f"Published: {format_post_date(post.post_date)}\n")
            parts.append(f"Downloaded: {format_download_time(entry.download_time)}\n")
            if post.summary:
                parts.append(f"Description: {post.summary}\n")
            if post.cover_image:
                parts.append(f"Cover: {post.cover_image}\n")
            parts.append("\n" + "-" * 50 + "\n\n")
        return "".join(parts)

    def render(self, output_dir: Path | str, fmt: str) -> Path:
        """Write `index.<ext>` for one format into output_dir and return its path."""
        output_dir = Path(output_dir)
        if fmt == "html":
            content = self.render_html(output_dir)
        elif fmt == "md":
            content = self.render_markdown(output_dir)
        elif fmt == "txt":
            content = self.render_text(output_dir)
        else:
            raise ValueError(f"unknown archive format: {fmt}")

        output_dir.mkdir(parents=True, exist_ok=True)
        index_path = output_dir / f"index.{INDEX_EXTENSIONS[fmt]}"
        index_path.write_text(content, encoding="utf-8")
        logger.info(f"Wrote archive index with {len(self._entries)} posts to {index_path}")
        return index_path

    def write_html(self, output_dir: Path | str) -> Path:
        return self.render(output_dir, "html")

    def write_markdown(self, output_dir: Path | str) -> Path:
        return self.render(output_dir, "md")

    def write_text(self, output_dir: Path | str) -> Path:
        return self.render(output_dir, "txt")

    def render_all(self, output_dir: Path | str, formats: Iterable[str]) -> dict[str, Optional[Exception]]:
        """Render each format independently; one failure does not stop the others."""
        errors: dict[str, Optional[Exception]] = {}
        for fmt in formats:
            try:
                self.render(output_dir, fmt)
                errors[fmt] = None
            except (OSError, ValueError) as e:
                logger.error(f"Failed to write {fmt} archive index: {e}")
                errors[fmt] = e
        return errors
