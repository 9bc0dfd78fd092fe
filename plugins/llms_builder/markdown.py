import difflib
import logging
import posixpath
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional, Sequence
from urllib.parse import urljoin

import yaml

from plugins.llms_builder.discovery import relative_posix
from plugins.llms_builder.feeds import parse_html_page
from plugins.llms_builder.models import DocumentRecord, SessionType

log = logging.getLogger("mkdocs.plugins.llms_builder")

# Module scope regex variables

FM_PATTERN = re.compile(r"^---\s*\n(.*?\n)?---\s*(?:\n|\Z)", re.DOTALL)
CONTENT_TITLE_RE = re.compile(r"^#\s+(.+?)\s*#*\s*$")
HEADING_SCAN_RE = re.compile(r"^#\s+(.*)", re.MULTILINE)
FENCE_RE = re.compile(r"^(\s*)(`{3,}|~{3,})")
MD_EXTENSION_RE = re.compile(r"\.mdx?$")
BLOG_DATE_RE = re.compile(r"(\d{4})-(\d{2})-(\d{2})")
BLOG_DATE_PREFIX_RE = re.compile(r"(\d{4})-(\d{2})-(\d{2})-")
NUMBER_PREFIX_RE = re.compile(r"^\d{1,2}-")

FUZZY_THRESHOLD = 0.6
TOC_DESCRIPTION_MAX = 150


class FrontMatterError(ValueError):
    """Raised when a front-matter block is not valid YAML."""


@dataclass
class ParsedMarkdown:
    front_matter: dict
    content: str
    excerpt: str = ""
    content_title: str = ""


@dataclass
class ExtractionContext:
    """Per-session inputs shared by every file the extractor handles."""

    session_type: SessionType
    base_dir: Path
    site_url: str
    out_dir: Path
    build_paths: Sequence[str] = ()
    path_prefix: str = ""
    now: datetime = field(default_factory=datetime.now)
    logger: logging.Logger = log


# ----- Front matter and body -----


def split_front_matter(source_text: str):
    """
    Return (front_matter_dict, body_text). If no FM, dict={} and body=source_text.
    """
    m = FM_PATTERN.match(source_text)
    if not m:
        return {}, source_text
    try:
        fm = yaml.safe_load(m.group(1) or "")
    except yaml.YAMLError as exc:
        raise FrontMatterError(f"invalid front matter: {exc}") from exc
    if not isinstance(fm, dict):
        fm = {}
    return fm, source_text[m.end() :]


def extract_content_title(body: str, remove: bool = False):
    """Top-level heading that opens the body, optionally cut from it."""
    lines = body.split("\n")
    for idx, line in enumerate(lines):
        if not line.strip():
            continue
        m = CONTENT_TITLE_RE.match(line)
        if not m:
            return "", body
        if remove:
            body = "\n".join(lines[:idx] + lines[idx + 1 :]).lstrip("\n")
        return m.group(1).strip(), body
    return "", body


def strip_inline_markdown(text: str) -> str:
    text = re.sub(r"!\[([^\]]*)\]\([^)]*\)", r"\1", text)
    text = re.sub(r"\[([^\]]+)\]\([^)]*\)", r"\1", text)
    text = re.sub(r"<[^>]+>", "", text)
    text = re.sub(r"(\*\*|__|\*|_|`)(.+?)\1", r"\2", text)
    return text


def create_excerpt(body: str) -> str:
    """First prose paragraph of a Markdown body, as plain text."""
    in_code = False
    para: list[str] = []

    def bad_start(s: str) -> bool:
        s = s.lstrip()
        return (
            not s
            or s.startswith("#")
            or s.startswith(">")
            or s.startswith("- ")
            or s.startswith("* ")
            or s.startswith("import ")
            or s.startswith("export ")
            or s.startswith("<!--")
            or s.startswith(":::")
            or re.match(r"^\d+\.\s", s) is not None
        )

    body = re.sub(r"<!--.*?-->", "", body, flags=re.DOTALL)
    for line in body.splitlines():
        if FENCE_RE.match(line):
            in_code = not in_code
            if para:
                break
            continue
        if in_code:
            continue
        if line.strip() == "":
            if para:
                break
            continue
        if not para and bad_start(line):
            continue
        para.append(line)

    text = " ".join(" ".join(para).split())
    return strip_inline_markdown(text).strip()


def parse_markdown_file(path: Path, remove_content_title: bool = False) -> ParsedMarkdown:
    text = Path(path).read_text(encoding="utf-8")
    front_matter, body = split_front_matter(text)
    content_title, content = extract_content_title(body, remove=remove_content_title)
    return ParsedMarkdown(
        front_matter=front_matter,
        content=content,
        excerpt=create_excerpt(content),
        content_title=content_title,
    )


# ----- Titles and descriptions -----


def title_from_filename(path: Path) -> str:
    stem = re.sub(r"[-_]+", " ", Path(path).stem).strip()
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), stem)


def resolve_title(path: Path, parsed: ParsedMarkdown) -> str:
    """contentTitle, then front matter, then the first heading, then the filename."""
    if parsed.content_title:
        return parsed.content_title
    fm_title = parsed.front_matter.get("title")
    if isinstance(fm_title, str) and fm_title.strip():
        return fm_title.strip()
    heading = HEADING_SCAN_RE.search(parsed.content)
    if heading and heading.group(1).strip():
        return heading.group(1).strip()
    return title_from_filename(path)


def resolve_description(parsed: ParsedMarkdown) -> str:
    fm_description = parsed.front_matter.get("description")
    if isinstance(fm_description, str) and fm_description.strip():
        return fm_description.strip()
    return parsed.excerpt


def clean_description_for_toc(description: str) -> str:
    """Single-line description suitable for a link list entry."""
    if not description:
        return ""
    first_line = description.split("\n")[0]
    cleaned = re.sub(r"^#+\s+", "", first_line).strip()
    if len(cleaned) > TOC_DESCRIPTION_MAX:
        return cleaned[: TOC_DESCRIPTION_MAX - 3] + "..."
    return cleaned


# ----- Link computation -----


def collapse_index_path(rel_path: str) -> str:
    """Drop the extension, a trailing index and a file named like its folder."""
    link_path = MD_EXTENSION_RE.sub("", rel_path)
    parts = link_path.split("/")
    if parts[-1] == "index":
        return "/".join(parts[:-1])
    if len(parts) > 1 and parts[-1] == parts[-2]:
        return "/".join(parts[:-1])
    return link_path


def one_year_before(now: datetime) -> datetime:
    try:
        return now.replace(year=now.year - 1)
    except ValueError:
        # Feb 29
        return now - timedelta(days=365)


def rewrite_blog_date(link_path: str, now: datetime) -> str:
    """Posts older than a year lose their date; newer ones get YYYY/MM/DD/."""
    m = BLOG_DATE_RE.search(link_path)
    if not m:
        return link_path
    try:
        post_date = datetime(int(m.group(1)), int(m.group(2)), int(m.group(3)))
    except ValueError:
        return link_path
    if post_date.date() < one_year_before(now).date():
        return BLOG_DATE_PREFIX_RE.sub("", link_path, count=1)
    return BLOG_DATE_PREFIX_RE.sub(r"\1/\2/\3/", link_path, count=1)


def compute_link_path(
    rel_path: str, session_type: SessionType, front_matter: dict, now: datetime
) -> str:
    """Site-relative path for a source file, before build reconciliation."""
    link_path = collapse_index_path(rel_path)

    slug = front_matter.get("slug")
    if isinstance(slug, str) and slug.strip():
        return slug.strip().lstrip("/")

    if session_type == "blog":
        return rewrite_blog_date(link_path, now)
    return NUMBER_PREFIX_RE.sub("", link_path)


def find_best_match(
    needle: str, haystack: Sequence[str], threshold: float = FUZZY_THRESHOLD
) -> str:
    """Closest built path to ``needle``.

    Scores are ``1 - SequenceMatcher.ratio()`` (lower is better). Candidates
    scoring above ``threshold`` are ignored and, on equal scores, the
    candidate appearing later in ``haystack`` wins. Returns ``needle`` when
    nothing qualifies.
    """
    if needle in haystack:
        return needle

    best, best_score = None, None
    for candidate in haystack:
        score = 1 - difflib.SequenceMatcher(None, needle, candidate).ratio()
        if score > threshold:
            continue
        if best_score is None or score <= best_score:
            best, best_score = candidate, score
    return best if best is not None else needle


def reconcile_build_path(link_path: str, build_paths: Sequence[str], path_prefix: str = "") -> str:
    """Map a computed path onto what the site build actually emitted."""
    prefix = path_prefix.strip("/")
    if not link_path or link_path == "/":
        return prefix if prefix and prefix in build_paths else ""
    if link_path in build_paths:
        return link_path
    needle = posixpath.join(prefix, link_path) if prefix else link_path
    return find_best_match(needle, build_paths)


def build_link(site_url: str, link_path: str) -> str:
    base = site_url if site_url.endswith("/") else f"{site_url}/"
    return urljoin(base, link_path.lstrip("/"))


def rendered_html_path(out_dir: Path, link_path: str) -> Path:
    if link_path.endswith(".html"):
        return Path(out_dir) / link_path
    return Path(out_dir) / link_path / "index.html"


# ----- Extractor -----


def markdown_metadata_parser(file_path: Path, context: ExtractionContext) -> DocumentRecord:
    """Build the DocumentRecord of one Markdown/MDX source file."""
    file_path = Path(file_path)
    parsed = parse_markdown_file(file_path, remove_content_title=True)

    rel_path = relative_posix(file_path, context.base_dir)
    link_path = compute_link_path(
        rel_path, context.session_type, parsed.front_matter, context.now
    )
    link_path = reconcile_build_path(link_path, context.build_paths, context.path_prefix)

    title = resolve_title(file_path, parsed)
    description = resolve_description(parsed)
    content = parsed.content

    # MDX components only exist in the rendered page
    if file_path.suffix == ".mdx":
        page = parse_html_page(rendered_html_path(context.out_dir, link_path), context.logger)
        if page:
            content = page.content
            if not description:
                description = page.description
        else:
            context.logger.debug(f"[llms_builder] no rendered page for {file_path}")

    return DocumentRecord(
        title=title,
        link=build_link(context.site_url, link_path),
        content=content.strip(),
        description=description,
        summary=parsed.excerpt,
    )
