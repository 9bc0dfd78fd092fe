from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence

from mkdocs.config.config_options import Type
from mkdocs.plugins import BasePlugin

from plugins.llms_builder.config import load_llms_config, parse_llm_configs
from plugins.llms_builder.discovery import collect_build_paths
from plugins.llms_builder.hooks import HookRegistry, create_llms_hooks
from plugins.llms_builder.llmstxt import render_full, render_index, write_llms_txt
from plugins.llms_builder.models import ContentConfiguration, SiteContext
from plugins.llms_builder.sessions import process_content_configuration


def generate(
    site: SiteContext,
    llm_configs: Sequence[ContentConfiguration],
    hooks: Optional[HookRegistry] = None,
    now: Optional[datetime] = None,
) -> List[Path]:
    """Write the llms.txt / llms-full.txt pair of every content configuration.

    ``hooks`` holds handlers shared by all configurations; each
    configuration adds its own on top. Returns the files written.
    """
    logger = site.logger
    shared_hooks = hooks.as_mapping() if hooks else {}
    build_paths = collect_build_paths(site.out_dir, logger)
    logger.info(f"[llms_builder] found {len(build_paths)} built pages in {site.out_dir}")

    written: List[Path] = []
    for llm_config in llm_configs:
        registry = create_llms_hooks(shared_hooks, llm_config.hooks)
        try:
            context = process_content_configuration(
                llm_config, site, build_paths, registry, now=now
            )
        except Exception as e:
            logger.error(
                f"[llms_builder] failed to generate {llm_config.llms_txt_filename}: {e}",
                exc_info=True,
            )
            continue
        if context is None:
            continue

        if llm_config.generate_llms_txt:
            content = render_index(context.llms_txt, llm_config.extra_session)
            written.append(write_llms_txt(site.out_dir, llm_config.llms_txt_filename, content))
        if llm_config.generate_llms_full_txt:
            content = render_full(context.llms_full_txt)
            written.append(
                write_llms_txt(site.out_dir, llm_config.llms_full_txt_filename, content)
            )

    for path in written:
        logger.info(f"[llms_builder] wrote {path}")
    return written


# Define plugin class
class LLMsBuilderPlugin(BasePlugin):
    # `llms_config` points at a JSON or YAML file next to mkdocs.yml
    config_scheme = (
        ("llms_config", Type(str, required=True)),
        ("max_workers", Type(int, default=4)),
    )

    def __init__(self):
        super().__init__()
        # Handlers registered here run for every content configuration
        self.hooks = HookRegistry()

    # Process will start after site build is complete
    def on_post_build(self, config):
        config_file_path = Path(config["config_file_path"]).resolve()
        project_root = config_file_path.parent
        llms_config = load_llms_config((project_root / self.config["llms_config"]).resolve())
        llm_configs = parse_llm_configs(llms_config)

        site = self.build_site_context(config, project_root, llms_config)
        if not site.site_url:
            site.logger.warning(
                "[llms_builder] no site_url configured; links will be site-relative"
            )
        generate(site, llm_configs, hooks=self.hooks)

    def build_site_context(self, config, project_root: Path, llms_config: dict) -> SiteContext:
        """Collect what the pipeline needs from the MkDocs config."""
        site_url = llms_config.get("site_url") or config.get("site_url") or ""
        max_workers = llms_config.get("max_workers", self.config["max_workers"])
        return SiteContext(
            site_url=site_url,
            out_dir=Path(config["site_dir"]).resolve(),
            site_dir=project_root,
            version=str(llms_config.get("version") or ""),
            site_name=config.get("site_name") or "",
            site_description=config.get("site_description") or "",
            max_workers=int(max_workers),
        )
