import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Callable, Dict, List, Literal, Optional, Sequence, Set, Tuple, Union

SessionType = Literal["docs", "blog"]
SourceKind = Literal["sitemap", "rss", "normal"]

SESSION_TYPES: Tuple[str, ...] = ("docs", "blog")


# ------------------------------------------------------------------
# Configuration records
# ------------------------------------------------------------------


@dataclass(frozen=True)
class PatternConfiguration:
    include_patterns: Tuple[str, ...] = ()
    ignore_patterns: Tuple[str, ...] = ()
    # Either a tuple of globs or a cmp-style callable
    order_patterns: Union[Tuple[str, ...], Callable[[str, str], int], None] = None
    include_unmatched: bool = False


@dataclass(frozen=True)
class SessionDescriptor:
    """One configured content source (docs tree or blog)."""

    type: SessionType
    docs_dir: str
    session_name: Optional[str] = None
    patterns: Optional[PatternConfiguration] = None
    sitemap: Optional[str] = None
    rss: Optional[str] = None

    @property
    def name(self) -> str:
        return self.session_name or self.docs_dir

    @property
    def source(self) -> SourceKind:
        if self.type == "docs" and self.sitemap:
            return "sitemap"
        if self.type == "blog" and self.rss:
            return "rss"
        return "normal"

    @property
    def ignore_patterns(self) -> Tuple[str, ...]:
        return self.patterns.ignore_patterns if self.patterns else ()


@dataclass(frozen=True)
class LinkItem:
    title: str
    link: str
    description: str = ""


@dataclass(frozen=True)
class ExtraSession:
    session_name: str
    extra_links: Tuple[LinkItem, ...] = ()


@dataclass(frozen=True)
class ContentConfiguration:
    sessions: Tuple[SessionDescriptor, ...]
    title: Optional[str] = None
    description: Optional[str] = None
    summary: Optional[str] = None
    infix_name: Optional[str] = None
    generate_llms_txt: bool = True
    generate_llms_full_txt: bool = True
    dedupe_full_content: bool = True
    extra_session: Optional[ExtraSession] = None
    # event name -> handlers
    hooks: Dict[str, Tuple[Callable, ...]] = field(default_factory=dict)

    @property
    def llms_txt_filename(self) -> str:
        return f"llms-{self.infix_name}.txt" if self.infix_name else "llms.txt"

    @property
    def llms_full_txt_filename(self) -> str:
        return f"llms-{self.infix_name}-full.txt" if self.infix_name else "llms-full.txt"


@dataclass(frozen=True)
class SiteContext:
    """What the host build hands to the pipeline."""

    site_url: str
    out_dir: Path
    site_dir: Path
    version: str = ""
    site_name: str = ""
    site_description: str = ""
    max_workers: int = 4
    logger: logging.Logger = field(
        default_factory=lambda: logging.getLogger("mkdocs.plugins.llms_builder"),
        compare=False,
    )


# ------------------------------------------------------------------
# Pipeline records
# ------------------------------------------------------------------


@dataclass(frozen=True)
class DiscoveredFileSet:
    session: SessionDescriptor
    files: Tuple[str, ...] = ()

    def with_files(self, files: Sequence[str]) -> "DiscoveredFileSet":
        return replace(self, files=tuple(files))


@dataclass
class DocumentRecord:
    title: str
    link: str
    content: str = ""
    description: str = ""
    summary: str = ""


@dataclass
class SessionSummary:
    session_name: str
    source_kind: SourceKind
    items: List[LinkItem] = field(default_factory=list)


@dataclass
class FullContentEntry:
    title: str
    link: str
    content: str


@dataclass
class LinkIndex:
    """Aggregate rendered into llms.txt."""

    title: str
    description: str = ""
    summary: str = ""
    sessions: List[SessionSummary] = field(default_factory=list)


@dataclass
class FullContent:
    """Aggregate rendered into llms-full.txt."""

    title: str
    description: str = ""
    summary: str = ""
    processed_links: Set[str] = field(default_factory=set)
    sessions: List[FullContentEntry] = field(default_factory=list)


@dataclass
class SessionOutcome:
    """Items and documents one session contributes, before dedup."""

    summary: SessionSummary
    documents: List[FullContentEntry] = field(default_factory=list)
