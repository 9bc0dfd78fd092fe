from plugins.llms_builder.llmstxt import render_full, render_header, render_index, write_llms_txt
from plugins.llms_builder.models import (
    ExtraSession,
    FullContent,
    FullContentEntry,
    LinkIndex,
    LinkItem,
    SessionSummary,
)


class TestRenderIndex:
    def test_header_skips_empty_parts(self):
        assert render_header("Docs") == "# Docs"
        assert render_header("Docs", "", "Summary") == "# Docs\n\nSummary"

    def test_layout(self):
        index = LinkIndex(
            title="Docs",
            description="Desc",
            summary="Sum",
            sessions=[
                SessionSummary(
                    "docs",
                    "normal",
                    [LinkItem("A", "https://e.com/a", "first"), LinkItem("B", "https://e.com/b")],
                )
            ],
        )
        extra = ExtraSession("Links", (LinkItem("GitHub", "https://github.com"),))
        assert render_index(index, extra) == (
            "# Docs\n\n> Desc\n\nSum\n\n"
            "## docs\n\n- [A](https://e.com/a): first\n- [B](https://e.com/b)\n\n"
            "## Links\n\n- [GitHub](https://github.com)\n"
        )

    def test_empty_extra_session_omitted(self):
        index = LinkIndex(title="Docs", sessions=[SessionSummary("s", "normal", [LinkItem("A", "/a")])])
        assert render_index(index, ExtraSession("Links")) == "# Docs\n\n## s\n\n- [A](/a)\n"


class TestRenderFull:
    def test_layout(self):
        full = FullContent(
            title="Docs",
            description="Desc",
            sessions=[
                FullContentEntry("A", "https://e.com/a", "Body A\n"),
                FullContentEntry("B", "https://e.com/b", ""),
            ],
        )
        assert render_full(full) == (
            "# Docs\n\n> Desc\n\n"
            "---\nurl: https://e.com/a\n---\n\n# A\n\nBody A\n\n---\n\n"
            "---\nurl: https://e.com/b\n---\n\n# B\n\n---\n"
        )


class TestWrite:
    def test_writes_utf8(self, tmp_path):
        out = write_llms_txt(tmp_path / "site", "llms.txt", "# Café\n")
        assert out == tmp_path / "site" / "llms.txt"
        assert out.read_text(encoding="utf-8") == "# Café\n"
