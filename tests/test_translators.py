import json
import unittest

from switchyard.interchange import translators
from switchyard.interchange.models import AppType, Provider, ProviderEdit
from switchyard.interchange.translators import ClaudeCodec, CodexCodec, DocumentCodec


def representable_view(provider: Provider, app: AppType) -> dict:
    fields = translators.get_translator(app).representable
    return {name: getattr(provider, name) for name in sorted(fields)}


def sample_provider(app: AppType) -> Provider:
    provider = Provider(
        id="demo-1",
        name="Demo One",
        app=app,
        base_url="https://api.example.com/v1",
        api_key="sk-demo",
        model="demo-model",
        metadata={"website_url": "https://example.com", "notes": "n", "sort_index": 3},
    )
    if app is AppType.CLAUDE:
        provider.model_overrides = {"haiku": "fast-model", "opus": "big-model"}
        provider.is_active = True
    if app.is_document_family:
        provider.models = {"demo-model": {"name": "demo-model", "usePromptCache": True}, "other": {"name": "other"}}
        provider.use_prompt_cache = True
        provider.provider_type = "@ai-sdk/openai-compatible"
        provider.metadata = {}
    return provider


class RoundTripTests(unittest.TestCase):
    def test_round_trip_on_representable_fields(self):
        for app in AppType:
            with self.subTest(app=app.value):
                provider = sample_provider(app)
                raw = translators.from_canonical(app, provider)
                decoded = translators.to_canonical(app, raw, provider.id)
                self.assertEqual(representable_view(decoded, app), representable_view(provider, app))

    def test_round_trip_with_default_metadata(self):
        for app in (AppType.CLAUDE, AppType.CODEX, AppType.GEMINI):
            with self.subTest(app=app.value):
                provider = Provider(id="p1", name="P", app=app, base_url="https://p", api_key="k", model="m")
                decoded = translators.to_canonical(app, translators.from_canonical(app, provider))
                self.assertEqual(decoded.metadata, {})
                self.assertEqual(representable_view(decoded, app), representable_view(provider, app))

    def test_id_survives_every_codec(self):
        for app in AppType:
            provider = sample_provider(app)
            raw = translators.from_canonical(app, provider)
            self.assertEqual(translators.to_canonical(app, raw, provider.id).id, "demo-1")

    def test_row_settings_may_arrive_as_json_text(self):
        row = translators.from_canonical(AppType.GEMINI, sample_provider(AppType.GEMINI))
        row["settings_config"] = json.dumps(row["settings_config"])
        decoded = translators.to_canonical(AppType.GEMINI, row)
        self.assertEqual(decoded.api_key, "sk-demo")


class ClaudeCodecTests(unittest.TestCase):
    def setUp(self):
        self.codec = ClaudeCodec(AppType.CLAUDE)
        self.row = self.codec.from_canonical(sample_provider(AppType.CLAUDE))

    def test_tier_keys_written_only_when_set(self):
        env = self.row["settings_config"]["env"]
        self.assertEqual(env["ANTHROPIC_DEFAULT_HAIKU_MODEL"], "fast-model")
        self.assertNotIn("ANTHROPIC_DEFAULT_SONNET_MODEL", env)

    def test_empty_tier_in_edit_removes_key(self):
        edited = self.codec.apply_edit(self.row, ProviderEdit(model_overrides={"haiku": ""}))
        self.assertNotIn("ANTHROPIC_DEFAULT_HAIKU_MODEL", edited["settings_config"]["env"])
        self.assertEqual(edited["settings_config"]["env"]["ANTHROPIC_DEFAULT_OPUS_MODEL"], "big-model")

    def test_omitted_tier_in_edit_is_untouched(self):
        edited = self.codec.apply_edit(self.row, ProviderEdit(model="new-model"))
        env = edited["settings_config"]["env"]
        self.assertEqual(env["ANTHROPIC_DEFAULT_HAIKU_MODEL"], "fast-model")
        self.assertEqual(env["ANTHROPIC_MODEL"], "new-model")
        self.assertEqual(env["ANTHROPIC_AUTH_TOKEN"], "sk-demo")

    def test_metadata_only_edit_leaves_settings_alone(self):
        edited = self.codec.apply_edit(self.row, ProviderEdit(notes="changed"))
        self.assertEqual(edited["notes"], "changed")
        self.assertIs(edited["settings_config"], self.row["settings_config"])


class CodexCodecTests(unittest.TestCase):
    def setUp(self):
        self.codec = CodexCodec(AppType.CODEX)

    def test_fragment_is_generated_from_template(self):
        row = self.codec.from_canonical(sample_provider(AppType.CODEX))
        fragment = row["settings_config"]["config"]
        self.assertIn('model = "demo-model"', fragment)
        self.assertIn('base_url = "https://api.example.com/v1"', fragment)
        self.assertIn("[model_providers.openai-chat-completions]", fragment)
        self.assertEqual(row["settings_config"]["auth"]["OPENAI_API_KEY"], "sk-demo")

    def test_hand_edited_fragment_falls_back_to_toml(self):
        fragment = "model = 'single-quoted'\n[model_providers.x]\nbase_url = 'https://x.example.com'\n"
        self.assertEqual(CodexCodec.extract_field(fragment, "model"), "single-quoted")
        self.assertEqual(CodexCodec.extract_field(fragment, "base_url"), "https://x.example.com")

    def test_unreadable_fragment_yields_empty_string(self):
        with self.assertLogs("switchyard.interchange.translators", level="WARNING"):
            self.assertEqual(CodexCodec.extract_field("just some words", "model"), "")

    def test_edit_keeps_other_fragment_lines(self):
        row = self.codec.from_canonical(sample_provider(AppType.CODEX))
        row["settings_config"]["config"] += 'approval_policy = "never"\n'
        edited = self.codec.apply_edit(row, ProviderEdit(model="gpt-5"))
        fragment = edited["settings_config"]["config"]
        self.assertIn('model = "gpt-5"', fragment)
        self.assertIn('approval_policy = "never"', fragment)
        self.assertIn('base_url = "https://api.example.com/v1"', fragment)


class GeminiCodecTests(unittest.TestCase):
    def test_credential_written_under_both_keys(self):
        row = translators.from_canonical(AppType.GEMINI, sample_provider(AppType.GEMINI))
        env = row["settings_config"]["env"]
        self.assertEqual(env["GEMINI_API_KEY"], "sk-demo")
        self.assertEqual(env["GOOGLE_API_KEY"], "sk-demo")

    def test_google_key_alone_is_read(self):
        row = {"id": "g", "settings_config": {"env": {"GOOGLE_API_KEY": "legacy"}}}
        self.assertEqual(translators.to_canonical(AppType.GEMINI, row).api_key, "legacy")


class DocumentCodecTests(unittest.TestCase):
    def setUp(self):
        self.codec = DocumentCodec(AppType.KILOCODE_CLI)

    def test_legacy_flat_keys_are_read_in_priority_order(self):
        entry = {
            "openaiApiKey": "openai-key",
            "litellmApiKey": "litellm-key",
            "openaiBaseUrl": "https://openai.example.com",
            "litellmBaseUrl": "https://litellm.example.com",
            "kilocodeModel": "kilo-model",
            "litellmModelId": "litellm-model",
            "litellmUsePromptCache": True,
        }
        provider = self.codec.to_canonical(entry, "legacy")
        self.assertEqual(provider.api_key, "openai-key")
        self.assertEqual(provider.base_url, "https://openai.example.com")
        self.assertEqual(provider.model, "kilo-model")
        self.assertTrue(provider.use_prompt_cache)
        self.assertEqual(provider.name, "legacy")

    def test_nested_layout_wins_over_flat_aliases(self):
        entry = {
            "apiKey": "flat",
            "options": {"apiKey": "nested", "baseURL": "https://nested.example.com"},
            "api": "https://api-field.example.com",
            "models": {"first": {"name": "first"}, "second": {}},
            "model": "flat-model",
        }
        provider = self.codec.to_canonical(entry, "p")
        self.assertEqual(provider.api_key, "nested")
        self.assertEqual(provider.base_url, "https://nested.example.com")
        self.assertEqual(provider.model, "first")

    def test_edit_adds_model_and_keeps_options(self):
        entry = {"name": "P", "options": {"baseURL": "https://a", "apiKey": "k", "timeout": 5}, "models": {}}
        edited = self.codec.apply_edit(entry, ProviderEdit(model="m1", use_prompt_cache=True))
        self.assertEqual(edited["models"]["m1"], {"name": "m1", "usePromptCache": True})
        self.assertEqual(edited["options"]["timeout"], 5)
        self.assertEqual(entry["models"], {})

    def test_edited_model_becomes_the_default(self):
        entry = {"name": "P", "models": {"old": {"name": "old"}, "m2": {"name": "m2", "limit": 8}}}
        edited = self.codec.apply_edit(entry, ProviderEdit(model="m2"))
        self.assertEqual(list(edited["models"]), ["m2", "old"])
        self.assertEqual(edited["models"]["m2"]["limit"], 8)
        self.assertEqual(self.codec.to_canonical(edited, "p").model, "m2")


class TranslateAcrossTests(unittest.TestCase):
    def test_claude_to_codex_keeps_endpoint_and_model(self):
        claude_row = translators.from_canonical(AppType.CLAUDE, sample_provider(AppType.CLAUDE))
        codex_row = translators.translate_across(claude_row, AppType.CLAUDE, AppType.CODEX)
        fragment = codex_row["settings_config"]["config"]
        self.assertEqual(CodexCodec.extract_field(fragment, "base_url"), "https://api.example.com/v1")
        self.assertEqual(CodexCodec.extract_field(fragment, "model"), "demo-model")
        self.assertEqual(codex_row["settings_config"]["auth"]["OPENAI_API_KEY"], "sk-demo")
        self.assertEqual(codex_row["notes"], "n")

    def test_codex_to_claude_drops_what_claude_cannot_hold(self):
        codex_row = translators.from_canonical(AppType.CODEX, sample_provider(AppType.CODEX))
        claude_row = translators.translate_across(codex_row, "codex", "claude")
        env = claude_row["settings_config"]["env"]
        self.assertEqual(env["ANTHROPIC_MODEL"], "demo-model")
        self.assertNotIn("auth", claude_row["settings_config"])

    def test_empty_model_gets_destination_default(self):
        source = Provider(id="x", name="X", app=AppType.KILOCODE_CLI, base_url="https://x")
        row = translators.translate_across(source, AppType.KILOCODE_CLI, AppType.GEMINI)
        self.assertEqual(row["settings_config"]["env"]["GEMINI_MODEL"], "gemini-2.0-flash")

    def test_row_to_document_entry(self):
        claude_row = translators.from_canonical(AppType.CLAUDE, sample_provider(AppType.CLAUDE))
        entry = translators.translate_across(claude_row, AppType.CLAUDE, AppType.OPENCODE)
        self.assertEqual(entry["options"], {"baseURL": "https://api.example.com/v1", "apiKey": "sk-demo"})
        self.assertEqual(list(entry["models"]), ["demo-model"])


class RegistryLookupTests(unittest.TestCase):
    def test_every_app_has_a_translator(self):
        for app in AppType:
            self.assertIsInstance(translators.get_translator(app.value), translators.ProviderCodec)

    def test_unknown_app_is_rejected(self):
        with self.assertRaises(ValueError):
            translators.get_translator("emacs")


if __name__ == "__main__":
    unittest.main()
