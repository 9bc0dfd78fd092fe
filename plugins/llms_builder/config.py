import importlib
import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import yaml

from plugins.llms_builder.models import (
    SESSION_TYPES,
    ContentConfiguration,
    ExtraSession,
    LinkItem,
    PatternConfiguration,
    SessionDescriptor,
)

log = logging.getLogger("mkdocs.plugins.llms_builder")

# Hook names a content configuration may register handlers for
HOOK_NAMES = ("generate:prepare",)


class LLMsConfigError(ValueError):
    """Raised for an llms_config file that does not describe valid content."""


def _get(data: dict, key: str, alias: Optional[str] = None, default: Any = None) -> Any:
    """Read ``key`` or its camelCase ``alias``."""
    if key in data:
        return data[key]
    if alias and alias in data:
        return data[alias]
    return default


def resolve_reference(ref: Any, what: str) -> Callable:
    """Turn ``"package.module:attr"`` into the object it names."""
    if callable(ref):
        return ref
    if not isinstance(ref, str) or ":" not in ref:
        raise LLMsConfigError(f"{what} must be a 'module:function' reference, got {ref!r}")
    module_name, _, attr = ref.partition(":")
    try:
        target = getattr(importlib.import_module(module_name), attr)
    except (ImportError, AttributeError) as exc:
        raise LLMsConfigError(f"unable to resolve {what} {ref!r}: {exc}") from exc
    if not callable(target):
        raise LLMsConfigError(f"{what} {ref!r} is not callable")
    return target


def _string_list(value: Any, what: str) -> Tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise LLMsConfigError(f"{what} must be a list of glob strings")
    return tuple(value)


def parse_patterns(raw: Optional[dict]) -> Optional[PatternConfiguration]:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise LLMsConfigError("patterns must be a mapping")

    order = _get(raw, "order_patterns", "orderPatterns")
    if order is None or isinstance(order, list):
        order_patterns = _string_list(order, "order_patterns") or None
    else:
        order_patterns = resolve_reference(order, "order_patterns comparator")

    return PatternConfiguration(
        include_patterns=_string_list(_get(raw, "include_patterns", "includePatterns"), "include_patterns"),
        ignore_patterns=_string_list(_get(raw, "ignore_patterns", "ignorePatterns"), "ignore_patterns"),
        order_patterns=order_patterns,
        include_unmatched=bool(_get(raw, "include_unmatched", "includeUnmatched", False)),
    )


def parse_session(raw: dict) -> SessionDescriptor:
    if not isinstance(raw, dict):
        raise LLMsConfigError("each session must be a mapping")
    session_type = raw.get("type")
    if session_type not in SESSION_TYPES:
        raise LLMsConfigError(f"session type must be one of {SESSION_TYPES}, got {session_type!r}")
    docs_dir = _get(raw, "docs_dir", "docsDir")
    if not isinstance(docs_dir, str) or not docs_dir.strip():
        raise LLMsConfigError("session docs_dir is required")
    if session_type == "blog" and raw.get("sitemap"):
        raise LLMsConfigError("sitemap is only supported for docs sessions")
    if session_type == "docs" and raw.get("rss"):
        raise LLMsConfigError("rss is only supported for blog sessions")

    return SessionDescriptor(
        type=session_type,
        docs_dir=docs_dir.strip("/"),
        session_name=_get(raw, "session_name", "sessionName"),
        patterns=parse_patterns(raw.get("patterns")),
        sitemap=raw.get("sitemap"),
        rss=raw.get("rss"),
    )


def parse_extra_session(raw: Optional[dict]) -> Optional[ExtraSession]:
    if not raw:
        return None
    links = []
    for item in _get(raw, "extra_links", "extraLinks", []) or []:
        if not isinstance(item, dict):
            raise LLMsConfigError("each extra link must be a mapping")
        if not item.get("title") or not item.get("link"):
            raise LLMsConfigError("extra links need both title and link")
        links.append(
            LinkItem(title=item["title"], link=item["link"], description=item.get("description") or "")
        )
    name = _get(raw, "session_name", "sessionName")
    if not name:
        raise LLMsConfigError("extra_session needs a session_name")
    return ExtraSession(session_name=name, extra_links=tuple(links))


def parse_hooks(raw: Optional[dict]) -> Dict[str, Tuple[Callable, ...]]:
    hooks: Dict[str, Tuple[Callable, ...]] = {}
    for name, refs in (raw or {}).items():
        if name not in HOOK_NAMES:
            raise LLMsConfigError(f"unknown hook {name!r}; expected one of {HOOK_NAMES}")
        if not isinstance(refs, list):
            refs = [refs]
        hooks[name] = tuple(resolve_reference(ref, f"hook {name}") for ref in refs)
    return hooks


def parse_content_configuration(raw: dict) -> ContentConfiguration:
    if not isinstance(raw, dict):
        raise LLMsConfigError("each llm config must be a mapping")
    sessions = raw.get("sessions")
    if not isinstance(sessions, list) or not sessions:
        raise LLMsConfigError("an llm config needs at least one session")

    return ContentConfiguration(
        sessions=tuple(parse_session(s) for s in sessions),
        title=raw.get("title"),
        description=raw.get("description"),
        summary=raw.get("summary"),
        infix_name=_get(raw, "infix_name", "infixName"),
        generate_llms_txt=bool(_get(raw, "generate_llms_txt", "generateLLMsTxt", True)),
        generate_llms_full_txt=bool(_get(raw, "generate_llms_full_txt", "generateLLMsFullTxt", True)),
        dedupe_full_content=bool(_get(raw, "dedupe_full_content", "dedupeFullContent", True)),
        extra_session=parse_extra_session(_get(raw, "extra_session", "extraSession")),
        hooks=parse_hooks(raw.get("hooks")),
    )


def parse_llm_configs(data: dict) -> List[ContentConfiguration]:
    configs = _get(data, "llm_configs", "llmConfigs")
    if not isinstance(configs, list) or not configs:
        raise LLMsConfigError("llm_configs must be a non-empty list")
    return [parse_content_configuration(c) for c in configs]


def load_llms_config(path: Path) -> dict:
    """Load the JSON or YAML file behind the plugin's ``llms_config`` option."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"llms_config not found at {path}")

    with path.open("r", encoding="utf-8") as f:
        if path.suffix in (".yml", ".yaml"):
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as exc:
                raise LLMsConfigError(f"unable to parse {path}: {exc}") from exc
        else:
            try:
                data = json.load(f)
            except json.JSONDecodeError as exc:
                raise LLMsConfigError(f"unable to parse {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise LLMsConfigError(f"{path} must contain a mapping")
    log.debug(f"[llms_builder] llms_config keys: {list(data.keys())}")
    return data
