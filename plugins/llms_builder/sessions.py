"""Session processing: turns configured sessions into the llms.txt and
llms-full.txt aggregates.

Every session is handled by one of three processors, picked by its
``source`` discriminant:

- ``sitemap``: docs located through the build's sitemap.xml, read from the
  rendered HTML.
- ``rss``: blog posts read from the build's RSS/Atom feed.
- ``normal``: Markdown/MDX sources discovered on disk.

Processors return a ``SessionOutcome`` and never touch the aggregates;
``accumulate`` applies outcomes in configured order, deduplicating the
full-content documents by link.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence
from urllib.parse import unquote, urljoin, urlparse

from plugins.llms_builder.discovery import collect_session_files, relative_posix
from plugins.llms_builder.feeds import parse_feed, parse_html_page, parse_sitemap
from plugins.llms_builder.hooks import BuildContext, HookRegistry
from plugins.llms_builder.markdown import (
    ExtractionContext,
    clean_description_for_toc,
    markdown_metadata_parser,
    rendered_html_path,
)
from plugins.llms_builder.models import (
    ContentConfiguration,
    DiscoveredFileSet,
    DocumentRecord,
    FullContent,
    FullContentEntry,
    LinkIndex,
    LinkItem,
    SessionDescriptor,
    SessionOutcome,
    SessionSummary,
    SiteContext,
    SourceKind,
)
from plugins.llms_builder.patterns import filter_and_order

PREPARE_HOOK = "generate:prepare"

SessionProcessor = Callable[
    [SessionDescriptor, SiteContext, Sequence[str], datetime], SessionOutcome
]


def _empty_outcome(session: SessionDescriptor) -> SessionOutcome:
    return SessionOutcome(summary=SessionSummary(session.name, session.source))


def _site_base(site: SiteContext) -> str:
    return site.site_url if site.site_url.endswith("/") else f"{site.site_url}/"


# ----- Generic path -----


def extract_documents(
    files: Sequence[str], context: ExtractionContext, max_workers: int = 1
) -> List[DocumentRecord]:
    """Run the metadata extractor over ``files``, keeping their order.

    A file that fails is logged and left out.
    """

    def extract(path: str) -> Optional[DocumentRecord]:
        try:
            return markdown_metadata_parser(Path(path), context)
        except Exception as e:
            context.logger.warning(f"[llms_builder] error processing {path}: {e}")
            return None

    if max_workers > 1 and len(files) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            results = list(pool.map(extract, files))
    else:
        results = [extract(path) for path in files]
    return [doc for doc in results if doc is not None]


def process_normal_session(
    session: SessionDescriptor,
    site: SiteContext,
    build_paths: Sequence[str],
    now: datetime,
) -> SessionOutcome:
    site_dir = Path(site.site_dir).resolve()
    files = collect_session_files(site_dir, session, site.logger)
    discovered = DiscoveredFileSet(session, tuple(str(f) for f in files))
    discovered = discovered.with_files(
        filter_and_order(
            discovered.files,
            session.patterns,
            key=lambda f: relative_posix(f, site_dir),
        )
    )

    context = ExtractionContext(
        session_type=session.type,
        base_dir=site_dir / session.docs_dir,
        site_url=site.site_url,
        out_dir=site.out_dir,
        build_paths=build_paths,
        path_prefix=session.docs_dir,
        now=now,
        logger=site.logger,
    )
    docs = extract_documents(discovered.files, context, site.max_workers)

    outcome = _empty_outcome(session)
    for doc in docs:
        outcome.summary.items.append(
            LinkItem(doc.title, doc.link, clean_description_for_toc(doc.description))
        )
        outcome.documents.append(FullContentEntry(doc.title, doc.link, doc.content))
    return outcome


# ----- Sitemap path -----


def url_to_html_path(url: str, site: SiteContext) -> Path:
    """Rendered HTML file behind a sitemap URL."""
    url_path = unquote(urlparse(url).path)
    base_path = urlparse(_site_base(site)).path
    if url_path.startswith(base_path):
        url_path = url_path[len(base_path) :]
    rel = url_path.strip("/")
    if not rel:
        return Path(site.out_dir) / "index.html"
    candidate = rendered_html_path(site.out_dir, rel)
    if not candidate.exists() and not rel.endswith(".html"):
        flat = Path(site.out_dir) / f"{rel}.html"
        if flat.exists():
            return flat
    return candidate


def process_sitemap_session(
    session: SessionDescriptor,
    site: SiteContext,
    build_paths: Sequence[str],
    now: datetime,
) -> SessionOutcome:
    outcome = _empty_outcome(session)
    sitemap_path = Path(site.out_dir) / session.sitemap
    urls = parse_sitemap(sitemap_path, site.logger)
    if not urls:
        site.logger.warning(f"[llms_builder] no URLs found in sitemap {sitemap_path}")
        return outcome

    discovered = DiscoveredFileSet(session, tuple(urls))
    discovered = discovered.with_files(filter_and_order(discovered.files, session.patterns))

    for url in discovered.files:
        page = parse_html_page(url_to_html_path(url, site), site.logger)
        if page is None:
            continue
        title = page.title or url
        outcome.summary.items.append(
            LinkItem(title, url, clean_description_for_toc(page.description))
        )
        outcome.documents.append(FullContentEntry(title, url, page.content))
    return outcome


# ----- Feed path -----


def process_rss_session(
    session: SessionDescriptor,
    site: SiteContext,
    build_paths: Sequence[str],
    now: datetime,
) -> SessionOutcome:
    outcome = _empty_outcome(session)
    feed_path = Path(site.out_dir) / session.rss
    items = parse_feed(feed_path, site.logger)
    if not items:
        return outcome

    base = _site_base(site)
    items = [item for item in items if item.link]
    for item in filter_and_order(items, session.patterns, key=lambda i: i.link):
        link = urljoin(base, item.link)
        title = item.title or link
        outcome.summary.items.append(
            LinkItem(title, link, clean_description_for_toc(item.description))
        )
        outcome.documents.append(
            FullContentEntry(title, link, item.content or item.description)
        )
    return outcome


SESSION_PROCESSORS: Dict[SourceKind, SessionProcessor] = {
    "sitemap": process_sitemap_session,
    "rss": process_rss_session,
    "normal": process_normal_session,
}


# ----- Aggregation -----


def _link_key(link: str) -> str:
    """Identity of a page link; ``/guide`` and ``/guide/`` are the same page."""
    return link.rstrip("/")


def accumulate(
    index: LinkIndex,
    full: FullContent,
    outcome: SessionOutcome,
    dedupe: bool = True,
    logger: Optional[logging.Logger] = None,
) -> None:
    """Append one session's outcome to the aggregates.

    Every item reaches the index; a document whose link is already in
    ``full.processed_links`` is skipped when ``dedupe`` is set. Links are
    compared the way ``reconcile_sitemap_sessions`` compares them.
    """
    index.sessions.append(outcome.summary)
    for doc in outcome.documents:
        key = _link_key(doc.link)
        if dedupe and key in full.processed_links:
            if logger:
                logger.debug(f"[llms_builder] skipping duplicate content for {doc.link}")
            continue
        full.processed_links.add(key)
        full.sessions.append(doc)


def reconcile_sitemap_sessions(index: LinkIndex) -> None:
    """Drop sitemap items that another session also lists.

    Sessions are visited in order, so of two overlapping sitemap sessions
    the later one keeps the shared link. Sitemap sessions left empty are
    removed.
    """
    for session in index.sessions:
        if session.source_kind != "sitemap":
            continue
        other_links = {
            _link_key(item.link)
            for other in index.sessions
            if other is not session
            for item in other.items
        }
        session.items = [item for item in session.items if _link_key(item.link) not in other_links]
    index.sessions = [s for s in index.sessions if s.items]


def process_content_configuration(
    config: ContentConfiguration,
    site: SiteContext,
    build_paths: Sequence[str],
    hooks: HookRegistry,
    now: Optional[datetime] = None,
) -> Optional[BuildContext]:
    """Run every session of ``config`` and the prepare hook.

    Returns None when no session produced anything.
    """
    logger = site.logger
    now = now or datetime.now()
    title = config.title or site.site_name or "Documentation"
    description = config.description or site.site_description or ""
    summary = config.summary or ""

    index = LinkIndex(title=title, description=description, summary=summary)
    full = FullContent(title=title, description=description, summary=summary)

    for session in config.sessions:
        processor = SESSION_PROCESSORS[session.source]
        try:
            outcome = processor(session, site, build_paths, now)
        except Exception as e:
            logger.warning(
                f"[llms_builder] session {session.name} failed: {e}", exc_info=True
            )
            continue
        if not outcome.summary.items:
            logger.warning(f"[llms_builder] no content found for session {session.name}")
            continue
        logger.info(
            f"[llms_builder] session {session.name} ({session.source}): "
            f"{len(outcome.summary.items)} items"
        )
        accumulate(index, full, outcome, config.dedupe_full_content, logger)

    if not index.sessions:
        logger.warning(
            f"[llms_builder] no docs files found for {config.llms_txt_filename}; skipping"
        )
        return None

    reconcile_sitemap_sessions(index)

    context = BuildContext(llms_txt=index, llms_full_txt=full, site=site, hooks=hooks)
    hooks.call_hook(PREPARE_HOOK, context)
    return context
