"""Write extracted posts to disk."""
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Optional

import aiofiles

from substack_dl.parse.convert import content_for_format, source_footer
from substack_dl.parse.models import Post
from substack_dl.store.archive import parse_post_date

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^\w\-]+")


def post_filename(post: Post, fmt: str) -> str:
    """`<YYYYMMDD_HHMMSS>_<slug>.<fmt>`, or `<slug>.<fmt>` when the post date does not parse."""
    slug = _UNSAFE_CHARS.sub("-", post.slug).strip("-") or f"post-{post.id}"
    published: Optional[datetime] = parse_post_date(post.post_date)
    if published is None:
        return f"{slug}.{fmt}"
    return f"{published:%Y%m%d_%H%M%S}_{slug}.{fmt}"


def post_path(output_dir: Path, post: Post, fmt: str) -> Path:
    return Path(output_dir) / post_filename(post, fmt)


async def write_post(path: Path, post: Post, fmt: str, add_source_url: bool = False) -> Path:
    """Render a post in `fmt` and write it to `path`, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    content = content_for_format(post, fmt, with_title=True)
    if add_source_url:
        content += source_footer(post, fmt)

    async with aiofiles.open(path, "w", encoding="utf-8") as f:
        await f.write(content)
    logger.debug(f"Wrote {path}")
    return path
