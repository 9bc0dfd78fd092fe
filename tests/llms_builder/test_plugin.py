import json
import logging
from datetime import datetime
from pathlib import Path

import pytest

from plugins.llms_builder.hooks import HookRegistry
from plugins.llms_builder.models import ContentConfiguration, SessionDescriptor, SiteContext
from plugins.llms_builder.plugin import LLMsBuilderPlugin, generate

NOW = datetime(2025, 6, 1)


def write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


@pytest.fixture
def project(tmp_path):
    """A project with three docs pages and an (empty) built site."""
    write(tmp_path / "docs" / "index.md", "# Home\n\nWelcome.\n")
    write(tmp_path / "docs" / "install.md", "---\ndescription: Get going\n---\n# Install\n\nSteps.\n")
    write(tmp_path / "docs" / "usage.md", "# Usage\n\nHow to use it.\n")
    (tmp_path / "site").mkdir()
    return tmp_path


def site_for(project: Path) -> SiteContext:
    return SiteContext(
        site_url="https://example.com/",
        out_dir=project / "site",
        site_dir=project,
        site_name="Example",
        max_workers=2,
    )


def docs_config(**kwargs) -> ContentConfiguration:
    return ContentConfiguration(sessions=(SessionDescriptor(type="docs", docs_dir="docs"),), **kwargs)


class TestGenerate:
    def test_index_only(self, project):
        """Three docs files produce one `## docs` section with three links."""
        written = generate(site_for(project), [docs_config(generate_llms_full_txt=False)], now=NOW)

        assert written == [project / "site" / "llms.txt"]
        assert not (project / "site" / "llms-full.txt").exists()
        text = (project / "site" / "llms.txt").read_text(encoding="utf-8")
        assert text.startswith("# Example\n\n## docs\n\n")
        bullets = [line for line in text.splitlines() if line.startswith("- [")]
        assert len(bullets) == 3
        assert "- [Install](https://example.com/docs/install): Get going" in bullets

    def test_full_content(self, project):
        generate(site_for(project), [docs_config(title="Docs")], now=NOW)
        text = (project / "site" / "llms-full.txt").read_text(encoding="utf-8")
        assert text.startswith("# Docs\n\n---\nurl: ")
        assert "url: https://example.com/docs/usage\n---\n\n# Usage\n\nHow to use it.\n\n---" in text

    def test_idempotent(self, project):
        site = site_for(project)
        generate(site, [docs_config()], now=NOW)
        first = [(project / "site" / name).read_bytes() for name in ("llms.txt", "llms-full.txt")]
        generate(site, [docs_config()], now=NOW)
        second = [(project / "site" / name).read_bytes() for name in ("llms.txt", "llms-full.txt")]
        assert first == second

    def test_infix_names(self, project):
        written = generate(site_for(project), [docs_config(), docs_config(infix_name="api")], now=NOW)
        assert [p.name for p in written] == ["llms.txt", "llms-full.txt", "llms-api.txt", "llms-api-full.txt"]

    def test_failed_configuration_does_not_stop_others(self, project, caplog):
        caplog.set_level(logging.ERROR)

        def broken(context):
            raise RuntimeError("hook failed")

        configs = [
            docs_config(infix_name="broken", hooks={"generate:prepare": (broken,)}),
            docs_config(),
        ]
        written = generate(site_for(project), configs, now=NOW)
        assert [p.name for p in written] == ["llms.txt", "llms-full.txt"]
        assert "failed to generate llms-broken.txt" in caplog.text

    def test_shared_hooks_run_per_configuration(self, project):
        calls = []
        hooks = HookRegistry()
        hooks.hook("generate:prepare", lambda context: calls.append(context.llms_txt.title))
        generate(site_for(project), [docs_config(title="One"), docs_config(title="Two", infix_name="two")], hooks=hooks, now=NOW)
        assert calls == ["One", "Two"]


class TestPlugin:
    def make_plugin(self, options=None):
        plugin = LLMsBuilderPlugin()
        errors, warnings = plugin.load_config(options or {"llms_config": "llms_config.json"})
        assert errors == []
        return plugin

    def mkdocs_config(self, project: Path, site_url="https://example.com/"):
        return {
            "config_file_path": str(project / "mkdocs.yml"),
            "site_dir": str(project / "site"),
            "site_url": site_url,
            "site_name": "Example",
            "site_description": "Example docs",
        }

    def write_llms_config(self, project: Path, data=None):
        data = data or {"llm_configs": [{"sessions": [{"type": "docs", "docs_dir": "docs"}]}]}
        write(project / "llms_config.json", json.dumps(data))

    def test_post_build_writes_files(self, project):
        self.write_llms_config(project)
        self.make_plugin().on_post_build(self.mkdocs_config(project))

        text = (project / "site" / "llms.txt").read_text(encoding="utf-8")
        assert text.startswith("# Example\n\n> Example docs\n\n## docs\n\n")
        assert (project / "site" / "llms-full.txt").exists()

    def test_programmatic_hook(self, project):
        self.write_llms_config(project)
        plugin = self.make_plugin()

        def rename(context):
            context.llms_txt.title = "Renamed"

        plugin.hooks.hook("generate:prepare", rename)
        plugin.on_post_build(self.mkdocs_config(project))
        text = (project / "site" / "llms.txt").read_text(encoding="utf-8")
        assert text.startswith("# Renamed\n")

    def test_site_url_override(self, project):
        self.write_llms_config(
            project,
            {
                "site_url": "https://docs.example.org/v2/",
                "llm_configs": [{"sessions": [{"type": "docs", "docs_dir": "docs"}]}],
            },
        )
        self.make_plugin().on_post_build(self.mkdocs_config(project))
        text = (project / "site" / "llms.txt").read_text(encoding="utf-8")
        assert "https://docs.example.org/v2/docs/usage" in text

    def test_missing_site_url(self, project, caplog):
        caplog.set_level(logging.WARNING)
        self.write_llms_config(project)
        self.make_plugin().on_post_build(self.mkdocs_config(project, site_url=None))
        assert "no site_url configured" in caplog.text
        text = (project / "site" / "llms.txt").read_text(encoding="utf-8")
        assert "(/docs/usage)" in text

    def test_missing_llms_config(self, project):
        with pytest.raises(FileNotFoundError):
            self.make_plugin().on_post_build(self.mkdocs_config(project))

    def test_max_workers_option(self, project):
        plugin = self.make_plugin({"llms_config": "llms_config.json", "max_workers": 8})
        site = plugin.build_site_context(self.mkdocs_config(project), project, {})
        assert site.max_workers == 8
        assert site.out_dir == (project / "site").resolve()
        assert site.site_url == "https://example.com/"
