"""Readers for the artifacts a site build leaves behind: sitemap.xml,
RSS/Atom feeds and rendered HTML pages."""

import logging
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional
from urllib.parse import urlparse

from bs4 import BeautifulSoup
from markdownify import markdownify

log = logging.getLogger("mkdocs.plugins.llms_builder")

# Containers holding the rendered page body, most specific first
CONTENT_SELECTORS = (".markdown", "article", "main", "body")
BLANK_LINES_RE = re.compile(r"\n{3,}")


@dataclass
class FeedItem:
    title: str
    description: str
    content: str
    link: str


@dataclass
class HtmlPage:
    title: str
    description: str
    content: str


# ----- HTML -> Markdown -----


def html_to_markdown(html: str) -> str:
    """Convert an HTML fragment or page into Markdown text.

    Only the main content container is converted when one is present.
    """
    if not html:
        return ""
    soup = BeautifulSoup(html, "html.parser")
    node = None
    for selector in CONTENT_SELECTORS:
        node = soup.select_one(selector)
        if node is not None:
            break
    root = node if node is not None else soup
    for tag in root.find_all(["script", "style", "nav"]):
        tag.decompose()
    markdown = markdownify(str(root), heading_style="ATX")
    return BLANK_LINES_RE.sub("\n\n", markdown).strip()


def parse_html_page(path: Path, logger: Optional[logging.Logger] = None) -> Optional[HtmlPage]:
    """Title, meta description and Markdown body of a rendered page."""
    logger = logger or log
    try:
        html = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning(f"[llms_builder] failed to read rendered page {path}: {exc}")
        return None

    soup = BeautifulSoup(html, "html.parser")
    title = ""
    if soup.title and soup.title.string:
        title = soup.title.string.strip()
    if not title:
        h1 = soup.find("h1")
        title = h1.get_text(strip=True) if h1 else ""

    meta = soup.find("meta", attrs={"name": "description"})
    description = (meta.get("content") or "").strip() if meta else ""

    return HtmlPage(title=title, description=description, content=html_to_markdown(html))


# ----- XML helpers -----


def _local(tag) -> str:
    """Tag name without its ``{namespace}`` prefix."""
    return tag.rsplit("}", 1)[-1] if isinstance(tag, str) else ""


def _children(element: ET.Element, name: str) -> List[ET.Element]:
    return [child for child in element if _local(child.tag) == name]


def _child_text(element: ET.Element, *names: str) -> str:
    """Text of the first non-empty child among ``names``, in that order."""
    for name in names:
        for child in _children(element, name):
            text = (child.text or "").strip()
            if text:
                return text
    return ""


def _plain_text(html: str) -> str:
    if not html:
        return ""
    return BeautifulSoup(html, "html.parser").get_text(" ", strip=True)


def _load_xml(path: Path, logger: logging.Logger) -> Optional[ET.Element]:
    try:
        return ET.parse(str(path)).getroot()
    except FileNotFoundError:
        logger.warning(f"[llms_builder] file not found: {path}")
    except (ET.ParseError, OSError) as exc:
        logger.warning(f"[llms_builder] unable to parse XML file {path}: {exc}")
    return None


# ----- Sitemap -----


def parse_sitemap(path: Path, logger: Optional[logging.Logger] = None) -> Optional[List[str]]:
    """All ``<url><loc>`` values of a sitemap, sorted by URL path.

    Returns None when the file is unreadable or holds no ``<url>`` entries.
    """
    logger = logger or log
    root = _load_xml(Path(path), logger)
    if root is None or _local(root.tag) != "urlset":
        return None

    locs = []
    for url in _children(root, "url"):
        loc = _child_text(url, "loc")
        if loc:
            locs.append(loc)
    if not locs:
        return None
    return sorted(locs, key=lambda loc: urlparse(loc).path)


# ----- RSS / Atom -----


def _entry_link(entry: ET.Element) -> str:
    for link in _children(entry, "link"):
        # Atom carries the URL in href, RSS in the element text
        href = link.get("href")
        if href and link.get("rel", "alternate") == "alternate":
            return href.strip()
        if (link.text or "").strip():
            return link.text.strip()
    return _child_text(entry, "id", "guid")


def parse_feed(path: Path, logger: Optional[logging.Logger] = None) -> List[FeedItem]:
    """Entries of an RSS 2.0 or Atom feed with HTML content turned into Markdown."""
    logger = logger or log
    root = _load_xml(Path(path), logger)
    if root is None:
        return []

    kind = _local(root.tag)
    if kind == "rss":
        channels = _children(root, "channel")
        entries = _children(channels[0], "item") if channels else []
    elif kind == "feed":
        entries = _children(root, "entry")
    else:
        entries = []

    if not entries:
        logger.warning(f"[llms_builder] could not find feed items in {path}")
        return []

    items: List[FeedItem] = []
    for entry in entries:
        content = _child_text(entry, "encoded", "content", "summary", "description")
        items.append(
            FeedItem(
                title=_child_text(entry, "title"),
                description=_plain_text(_child_text(entry, "description", "summary")),
                content=html_to_markdown(content) if content else "",
                link=_entry_link(entry),
            )
        )
    return items
