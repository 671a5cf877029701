import unittest

from switchyard.interchange import tables
from switchyard.interchange.tables import LineKind

PROVIDER_TABLE = """\
┌───┬──────────┬────────────┬──────────────────────────┐
│   ┆ ID       ┆ Name       ┆ API URL                  │
╞═══╪══════════╪════════════╪══════════════════════════╡
│ ✓ ┆ claude-a ┆ Claude A   ┆ https://a.example.com    │
├╌╌╌┼╌╌╌╌╌╌╌╌╌╌┼╌╌╌╌╌╌╌╌╌╌╌╌┼╌╌╌╌╌╌╌╌╌╌╌╌╌╌╌╌╌╌╌╌╌╌╌╌╌╌┤
│   ┆ nvidia   ┆ NVIDIA NIM ┆ https://nim.example.com  │
└───┴──────────┴────────────┴──────────────────────────┘

ℹ Application: claude
→ Current: claude-a
"""


class ClassifyLineTests(unittest.TestCase):
    def test_classifiers_in_precedence_order(self):
        self.assertIs(tables.classify_line(""), LineKind.BLANK)
        self.assertIs(tables.classify_line("# comment"), LineKind.COMMENT)
        self.assertIs(tables.classify_line("=== Providers ==="), LineKind.COMMENT)
        self.assertIs(tables.classify_line("└───┴───┘"), LineKind.BORDER)
        self.assertIs(tables.classify_line("→ Current: x"), LineKind.FOOTER)
        self.assertIs(tables.classify_line("│ a ┆ b │"), LineKind.TABLE)
        self.assertIs(tables.classify_line("my-provider My Provider"), LineKind.LIST)

    def test_cell_separator_makes_a_table_line(self):
        self.assertIs(tables.classify_line("─┆─┆─"), LineKind.TABLE)
        self.assertIs(tables.classify_line("─ ─ ─"), LineKind.BORDER)


class ProviderTableTests(unittest.TestCase):
    def test_scenario_row_under_header_and_border(self):
        output = "┆ID┆Name┆URL\n────────────\n✓┆gpt-main┆GPT Main┆https://api.example.com\n"
        rows = tables.parse_providers(output)
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0].id, "gpt-main")
        self.assertEqual(rows[0].name, "GPT Main")
        self.assertTrue(rows[0].is_active)

    def test_boxed_table_with_footer(self):
        rows = tables.parse_providers(PROVIDER_TABLE)
        self.assertEqual([row.id for row in rows], ["claude-a", "nvidia"])
        self.assertEqual(rows[0].api_url, "https://a.example.com")
        self.assertTrue(rows[0].is_active)
        self.assertFalse(rows[1].is_active)
        self.assertEqual(tables.extract_current_id(PROVIDER_TABLE), "claude-a")

    def test_rows_keep_source_line_numbers(self):
        rows = tables.parse_providers(PROVIDER_TABLE)
        self.assertEqual([row.row.line_no for row in rows], [4, 6])

    def test_identifier_made_of_border_glyph_is_rejected(self):
        output = "  ┆ ╭ ┆ Label ┆ https://x\n  ┆ ok-id ┆ OK ┆ https://y\n"
        rows = tables.parse_providers(output)
        self.assertEqual([row.id for row in rows], ["ok-id"])

    def test_missing_name_is_rejected(self):
        self.assertEqual(tables.parse_providers("  ┆ lonely ┆  ┆ https://x"), [])

    def test_list_grammar_with_markers(self):
        output = "alpha Alpha Provider [active]\nbeta\ngamma Gamma [*]\n"
        rows = tables.parse_providers(output)
        self.assertEqual([(row.id, row.name, row.is_active) for row in rows], [
            ("alpha", "Alpha Provider", True),
            ("beta", "beta", False),
            ("gamma", "Gamma", True),
        ])

    def test_malformed_input_never_raises(self):
        for output in ("", "┆", "┆┆┆", "→", "╞═╡\n│", "\x00\x01"):
            self.assertIsInstance(tables.parse_providers(output), list)

    def test_no_footer_means_no_current_id(self):
        self.assertIsNone(tables.extract_current_id("a ┆ b ┆ c"))


class OtherRecordKindTests(unittest.TestCase):
    def test_mcp_servers(self):
        output = (
            "│   ┆ ID     ┆ Name   ┆ Command │\n"
            "╞═══╪════════╪════════╪═════════╡\n"
            "│ ✓ ┆ fetch  ┆ Fetch  ┆ uvx     │\n"
        )
        servers = tables.parse_mcp_servers(output)
        self.assertEqual(len(servers), 1)
        self.assertEqual((servers[0].id, servers[0].name, servers[0].command), ("fetch", "Fetch", "uvx"))

    def test_mcp_empty_notice(self):
        self.assertEqual(tables.parse_mcp_servers("No MCP servers found\n"), [])

    def test_prompts_track_active_marker(self):
        output = (
            "│   ┆ ID     ┆ Name    ┆ Description ┆ Updated    │\n"
            "│ ✓ ┆ review ┆ Review  ┆ Code review ┆ 2024-01-01 │\n"
            "│   ┆ docs   ┆ Docs    ┆             ┆ 2024-02-01 │\n"
        )
        prompts = tables.parse_prompts(output)
        self.assertEqual([prompt.id for prompt in prompts], ["review", "docs"])
        self.assertTrue(prompts[0].is_active)
        self.assertEqual(prompts[1].updated, "2024-02-01")

    def test_skills_need_two_cells(self):
        output = "│ ID ┆ Name │\n│ pdf ┆ PDF tools ┆ Read PDFs │\n│ solo │\n"
        skills = tables.parse_skills(output)
        self.assertEqual([skill.id for skill in skills], ["pdf"])
        self.assertEqual(skills[0].description, "Read PDFs")

    def test_env_vars_need_four_cells(self):
        output = (
            "│ Variable ┆ Value ┆ Source ┆ Location │\n"
            "│ ANTHROPIC_BASE_URL ┆ https://x ┆ shell ┆ ~/.zshrc │\n"
            "│ BROKEN ┆ only-two │\n"
        )
        variables = tables.parse_env_vars(output)
        self.assertEqual(len(variables), 1)
        self.assertEqual(variables[0].source_location, "~/.zshrc")


class SupplementaryParserTests(unittest.TestCase):
    def test_skill_repos(self):
        output = "│ Repo ┆ Branch ┆ Enabled │\n│ acme/skills ┆ main ┆ ✓ │\n│ bad ┆ main ┆ │\n"
        repos = tables.parse_skill_repos(output)
        self.assertEqual(len(repos), 1)
        self.assertEqual((repos[0].owner, repos[0].name, repos[0].branch), ("acme", "skills", "main"))
        self.assertTrue(repos[0].enabled)

    def test_key_values(self):
        values = tables.parse_key_values("Database: /tmp/x.db\nmode = fast\nnoise\n")
        self.assertEqual(values, {"Database": "/tmp/x.db", "mode": "fast"})

    def test_skill_info_requires_name(self):
        self.assertIsNone(tables.parse_skill_info("Description: nothing"))
        info = tables.parse_skill_info("Name: pdf\nEnabled: yes\nVersion: 1.2")
        self.assertEqual(info, {"name": "pdf", "enabled": True, "version": "1.2"})

    def test_footer_extractors(self):
        self.assertEqual(tables.extract_latency_ms("Latency: 123ms"), 123)
        self.assertIsNone(tables.extract_latency_ms("timeout"))
        self.assertEqual(tables.extract_db_path("Config dir: ~\nDB file: /home/u/.cc-switch/cc-switch.db\n"),
                         "/home/u/.cc-switch/cc-switch.db")
        self.assertEqual(tables.extract_current_provider_line("Current Provider: demo\n"), "demo")
        self.assertEqual(tables.extract_imported_skills("Imported: a, b ,c"), ["a", "b", "c"])


if __name__ == "__main__":
    unittest.main()
