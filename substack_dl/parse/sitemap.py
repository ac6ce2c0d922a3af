"""Parse a publication sitemap into post URLs."""
import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Callable, Iterator, Optional
from urllib.parse import urlsplit, urlunsplit

from substack_dl.fetch.errors import SitemapError

logger = logging.getLogger(__name__)

POST_PATH_MARKER = "/p/"

DateFilter = Callable[[str], bool]


@dataclass(frozen=True)
class SitemapEntry:
    """One <url> element of a sitemap."""

    loc: str
    lastmod: str


def sitemap_url(publication_url: str) -> str:
    """Join sitemap.xml onto the publication URL path, dropping query and fragment."""
    parts = urlsplit(publication_url)
    path = parts.path.rstrip("/") + "/sitemap.xml"
    return urlunsplit((parts.scheme, parts.netloc, path, "", ""))


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _child_text(element: ET.Element, name: str) -> str:
    for child in element:
        if _local_name(child.tag) == name:
            return (child.text or "").strip()
    return ""


def iter_sitemap_entries(content: bytes) -> Iterator[SitemapEntry]:
    """Yield every <url> entry in document order, ignoring XML namespaces."""
    try:
        root = ET.fromstring(content)
    except ET.ParseError as e:
        raise SitemapError(f"failed to parse sitemap: {e}") from e

    for element in root.iter():
        if _local_name(element.tag) != "url":
            continue
        yield SitemapEntry(loc=_child_text(element, "loc"), lastmod=_child_text(element, "lastmod"))


def date_range_filter(after: Optional[str] = None, before: Optional[str] = None) -> Optional[DateFilter]:
    """Build a lastmod predicate keeping dates strictly after `after` and strictly before `before`.

    Dates are compared as YYYY-MM-DD strings, so only the date prefix of a
    lastmod timestamp is considered. Returns None when no bound is given.
    """
    if not after and not before:
        return None

    def accept(lastmod: str) -> bool:
        day = lastmod[:10]
        if after and not day > after:
            return False
        if before and not day < before:
            return False
        return True

    return accept
