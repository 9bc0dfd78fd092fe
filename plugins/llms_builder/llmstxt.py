from pathlib import Path
from typing import Iterable, List, Optional

from plugins.llms_builder.models import ExtraSession, FullContent, LinkIndex, LinkItem


def render_header(title: str, description: str = "", summary: str = "") -> str:
    """``# title``, ``> description`` and the summary, skipping empty parts."""
    blocks = [
        f"# {title}" if title else "",
        f"> {description}" if description else "",
        summary or "",
    ]
    return "\n\n".join(block for block in blocks if block)


def render_link_item(item: LinkItem) -> str:
    line = f"- [{item.title}]({item.link})"
    return f"{line}: {item.description}" if item.description else line


def render_session(session_name: str, items: Iterable[LinkItem]) -> str:
    lines = [f"## {session_name}", ""]
    lines.extend(render_link_item(item) for item in items)
    return "\n".join(lines)


def render_index(index: LinkIndex, extra_session: Optional[ExtraSession] = None) -> str:
    """Text of llms.txt."""
    blocks: List[str] = [render_header(index.title, index.description, index.summary)]
    for session in index.sessions:
        blocks.append(render_session(session.session_name, session.items))
    if extra_session and extra_session.extra_links:
        blocks.append(render_session(extra_session.session_name, extra_session.extra_links))
    return "\n\n".join(block for block in blocks if block) + "\n"


def render_full(full: FullContent) -> str:
    """Text of llms-full.txt: one rule-delimited block per document."""
    blocks: List[str] = [render_header(full.title, full.description, full.summary)]
    for entry in full.sessions:
        parts = [f"---\nurl: {entry.link}\n---", f"# {entry.title}"]
        if entry.content.strip():
            parts.append(entry.content.strip())
        parts.append("---")
        blocks.append("\n\n".join(parts))
    return "\n\n".join(block for block in blocks if block) + "\n"


def write_llms_txt(out_dir: Path, filename: str, content: str) -> Path:
    """Write one generated file into the site output directory."""
    out_path = Path(out_dir) / filename
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(content, encoding="utf-8")
    return out_path
