import unittest

from switchyard.ccswitch import DEFAULT_DB_PATH, CCSwitchCLI
from switchyard.errors import CommandFailedError
from switchyard.interchange.models import AppType
from switchyard.runner import CommandResult


class FakeRunner:
    def __init__(self, responses=None):
        self.responses = responses or {}
        self.calls = []

    def run(self, args, cwd=None, timeout=None):
        self.calls.append((list(args), timeout))
        key = " ".join(args[1:])
        response = self.responses.get(key, ("", "unknown command", 2))
        if isinstance(response, Exception):
            raise response
        return CommandResult(*response)


class CCSwitchCLITests(unittest.TestCase):
    def make(self, responses):
        self.runner = FakeRunner(responses)
        return CCSwitchCLI(self.runner, "cc-switch")

    def test_app_flag_only_for_core_apps(self):
        self.assertEqual(CCSwitchCLI.app_args(AppType.CODEX), ["--app", "codex"])
        self.assertEqual(CCSwitchCLI.app_args(AppType.KILOCODE_CLI), [])
        self.assertEqual(CCSwitchCLI.app_args(None), [])

    def test_list_providers_returns_rows_and_footer(self):
        output = "┆ ID ┆ Name ┆ API URL\n┆ a ┆ A ┆ https://a\n┆ b ┆ B ┆ https://b\n→ Current: b\n"
        cli = self.make({"--app gemini provider list": (output, "", 0)})
        rows, current = cli.list_providers(AppType.GEMINI)
        self.assertEqual([row.id for row in rows], ["a", "b"])
        self.assertEqual(current, "b")

    def test_list_providers_raises_with_stderr(self):
        cli = self.make({"--app claude provider list": ("", "database locked", 1)})
        with self.assertRaises(CommandFailedError) as ctx:
            cli.list_providers(AppType.CLAUDE)
        self.assertEqual(ctx.exception.stderr, "database locked")
        self.assertIn("database locked", str(ctx.exception))

    def test_is_available_uses_short_timeout(self):
        cli = self.make({"--help": ("usage", "", 0)})
        self.assertTrue(cli.is_available())
        self.assertEqual(self.runner.calls[0][1], 5)

    def test_is_available_false_when_spawn_fails(self):
        cli = self.make({"--help": CommandFailedError("Failed to execute cc-switch")})
        self.assertFalse(cli.is_available())

    def test_db_path_from_config_path(self):
        cli = self.make({"config path": ("Config dir: /x\nDB file: /x/cc.db\n", "", 0)})
        self.assertEqual(cli.db_path(), "/x/cc.db")

    def test_db_path_default(self):
        self.assertEqual(self.make({}).db_path(), str(DEFAULT_DB_PATH))

    def test_switch_provider_reports_failure(self):
        cli = self.make({"--app claude provider switch nope": ("", "not found", 1)})
        result = cli.switch_provider(AppType.CLAUDE, "nope")
        self.assertFalse(result.success)
        self.assertEqual(result.message, "Failed to switch provider: not found")

    def test_speedtest_latency(self):
        cli = self.make({"--app claude provider speedtest a": ("Latency: 87ms", "", 0)})
        self.assertEqual(cli.speedtest(AppType.CLAUDE, "a").data["latency"], 87)

    def test_skill_action_messages(self):
        cli = self.make({"skills install pdf": ("ok", "", 0), "skills enable pdf": ("ok", "", 0)})
        self.assertEqual(cli.skill_action("install", "pdf").message, "Successfully installed skill: pdf")
        self.assertEqual(cli.skill_action("enable", "pdf").message, "Successfully enabled skill: pdf")
        self.assertFalse(cli.skill_action("explode", "pdf").success)

    def test_sync_method(self):
        self.assertEqual(self.make({"skills sync-method": ("Sync method: symlink", "", 0)}).sync_method(), "symlink")
        self.assertEqual(self.make({}).sync_method(), "auto")
        self.assertFalse(self.make({}).set_sync_method("teleport").success)

    def test_backup_path_extracted(self):
        cli = self.make({"config backup": ("Backup created at: /tmp/b.json\n", "", 0)})
        result = cli.backup_config()
        self.assertTrue(result.success)
        self.assertEqual(result.data["backupPath"], "/tmp/b.json")

    def test_current_provider_and_config_show(self):
        cli = self.make({
            "--app claude provider current": ("Current Provider: main\nName: Main", "", 0),
            "config show": ("App: claude\nLanguage = en\n", "", 0),
        })
        self.assertEqual(cli.current_provider(AppType.CLAUDE), "main")
        raw, values = cli.config_show()
        self.assertEqual(values, {"App": "claude", "Language": "en"})
        self.assertIn("Language", raw)

    def test_env_list_with_app_flag(self):
        output = "│ Variable ┆ Value ┆ Source ┆ Location │\n│ A ┆ 1 ┆ shell ┆ ~/.bashrc │\n"
        cli = self.make({"--app codex env list": (output, "", 0)})
        self.assertEqual([var.variable for var in cli.list_env_vars(AppType.CODEX)], ["A"])


if __name__ == "__main__":
    unittest.main()
