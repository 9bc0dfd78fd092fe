import logging
import os
import re
from pathlib import Path
from typing import List, Optional, Sequence

from plugins.llms_builder.models import SessionDescriptor
from plugins.llms_builder.patterns import matches_any

log = logging.getLogger("mkdocs.plugins.llms_builder")

MARKDOWN_EXTENSIONS = (".md", ".mdx")
DATE_RE = re.compile(r"(\d{4}-\d{2}-\d{2})")


def relative_posix(path, base) -> str:
    """Path relative to ``base`` with ``/`` separators."""
    return Path(os.path.relpath(path, base)).as_posix()


def should_ignore(base_dir: Path, path: Path, ignore_patterns: Sequence[str]) -> bool:
    if not ignore_patterns:
        return False
    return matches_any(relative_posix(path, base_dir), ignore_patterns)


def collect_markdown_files(
    base_dir: Path, directory: Path, ignore_patterns: Sequence[str] = ()
) -> List[Path]:
    """Recursively collect *.md|*.mdx under ``directory``.

    Ignore patterns are matched against paths relative to ``base_dir``;
    an ignored directory is not descended into.
    """
    files: List[Path] = []
    with os.scandir(directory) as entries:
        for entry in entries:
            full_path = Path(entry.path)
            if should_ignore(base_dir, full_path, ignore_patterns):
                continue
            if entry.is_dir():
                files.extend(collect_markdown_files(base_dir, full_path, ignore_patterns))
            elif entry.name.endswith(MARKDOWN_EXTENSIONS):
                files.append(full_path)
    return files


def collect_session_files(
    site_dir: Path, session: SessionDescriptor, logger: Optional[logging.Logger] = None
) -> List[Path]:
    """Markdown files of one session; a missing directory yields nothing."""
    logger = logger or log
    docs_dir = (Path(site_dir) / session.docs_dir).resolve()
    if not docs_dir.is_dir():
        logger.warning(f"[llms_builder] docs directory not found: {docs_dir}")
        return []
    try:
        files = collect_markdown_files(Path(site_dir).resolve(), docs_dir, session.ignore_patterns)
    except OSError as exc:
        logger.warning(f"[llms_builder] unable to read docs directory {docs_dir}: {exc}")
        return []
    if session.type == "blog":
        files = sort_blog_files(files)
    logger.debug(f"[llms_builder] {session.name}: found {len(files)} markdown files")
    return files


def sort_blog_files(files: Sequence[Path]) -> List[Path]:
    """Newest first by the YYYY-MM-DD date found in the path."""

    def post_date(path: Path) -> str:
        m = DATE_RE.search(path.as_posix())
        return m.group(1) if m else ""

    return sorted(files, key=post_date, reverse=True)


def collect_build_paths(out_dir: Path, logger: Optional[logging.Logger] = None) -> List[str]:
    """Canonical paths of every HTML page the site build produced.

    ``index.html`` maps to ``/``, ``a/b/index.html`` to ``a/b`` and any other
    page keeps its file name. Sorted so fuzzy matching sees a stable order.
    """
    logger = logger or log
    out_dir = Path(out_dir)
    if not out_dir.is_dir():
        logger.warning(f"[llms_builder] output directory not found: {out_dir}")
        return []
    paths = set()
    try:
        for html_file in out_dir.rglob("*.html"):
            if not html_file.is_file():
                continue
            rel = html_file.relative_to(out_dir).as_posix()
            if rel == "index.html":
                paths.add("/")
            elif rel.endswith("/index.html"):
                paths.add(rel[: -len("/index.html")])
            else:
                paths.add(rel)
    except OSError as exc:
        logger.warning(f"[llms_builder] error reading output directory {out_dir}: {exc}")
    return sorted(paths)
