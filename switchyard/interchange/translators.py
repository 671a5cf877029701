"""Codecs between the canonical Provider and each app's stored representation.

Core apps (claude, codex, gemini) are stored by cc-switch as rows of its
``providers`` table. Here a row is a dict::

    {"id", "name", "settings_config", "website_url", "notes",
     "sort_index", "is_current", "meta"}

with ``settings_config`` already decoded. Document-family apps (kilocode-cli,
opencode, amp) are stored as entries of the ``provider`` map of a JSONC file.

Every codec lists the Provider fields it can hold in ``representable``.
Anything else is dropped on write and comes back empty on read; that is the
expected outcome of a translation, never an error.
"""

import copy
import json
import logging
import re
from typing import Any, Dict, FrozenSet, Optional, Tuple, Type, Union

import toml

from .models import MODEL_TIERS, AppType, Provider, ProviderEdit

logger = logging.getLogger(__name__)

DEFAULT_MODELS = {
    AppType.CLAUDE: "claude-3-5-sonnet-20241022",
    AppType.CODEX: "gpt-4o",
    AppType.GEMINI: "gemini-2.0-flash",
}
DEFAULT_NPM_PACKAGE = "@ai-sdk/openai-compatible"
ROW_METADATA_KEYS = ("website_url", "notes", "sort_index")

RawRecord = Dict[str, Any]


def _load_settings(value: Any) -> Dict[str, Any]:
    """settings_config arrives as JSON text from sqlite or as a dict already."""
    if isinstance(value, dict):
        return copy.deepcopy(value)
    if isinstance(value, str) and value.strip():
        try:
            decoded = json.loads(value)
        except json.JSONDecodeError:
            logger.warning("Ignoring unparsable settings_config")
            return {}
        return decoded if isinstance(decoded, dict) else {}
    return {}


def _first(*values: Any) -> str:
    for value in values:
        if isinstance(value, str) and value:
            return value
    return ""


class ProviderCodec:
    """Translate one app's stored representation to and from a Provider."""

    representable: FrozenSet[str] = frozenset({"id", "name", "app"})

    def __init__(self, app: AppType):
        self.app = app

    def to_canonical(self, raw: RawRecord) -> Provider:
        raise NotImplementedError

    def from_canonical(self, provider: Provider, existing: Optional[RawRecord] = None) -> RawRecord:
        raise NotImplementedError

    def apply_edit(self, existing: RawRecord, edit: ProviderEdit) -> RawRecord:
        raise NotImplementedError

    def extract_triple(self, raw: RawRecord) -> Tuple[str, str, str]:
        """(credential, endpoint, model) as this app stores them."""
        provider = self.to_canonical(raw)
        return provider.api_key, provider.base_url, provider.model


class RowCodec(ProviderCodec):
    """Shared handling of the provider row columns around settings_config."""

    representable = frozenset({"id", "name", "app", "is_active", "metadata", "api_key", "base_url", "model"})

    def to_canonical(self, raw: RawRecord) -> Provider:
        settings = _load_settings(raw.get("settings_config"))
        meta = _load_settings(raw.get("meta"))
        metadata: Dict[str, Any] = {key: value for key, value in meta.items() if key not in ROW_METADATA_KEYS}
        # Unset columns stay out of metadata; from_canonical writes them back as defaults.
        if raw.get("website_url"):
            metadata["website_url"] = raw["website_url"]
        if raw.get("notes"):
            metadata["notes"] = raw["notes"]
        if raw.get("sort_index"):
            metadata["sort_index"] = int(raw["sort_index"])
        provider = Provider(
            id=str(raw.get("id", "")),
            name=raw.get("name") or "",
            app=self.app,
            is_active=raw.get("is_current") in (1, True, "1"),
            metadata=metadata,
            raw={**raw, "settings_config": settings},
        )
        self.read_settings(settings, provider)
        return provider

    def from_canonical(self, provider: Provider, existing: Optional[RawRecord] = None) -> RawRecord:
        row = dict(existing or {})
        settings = _load_settings(row.get("settings_config"))
        extra_meta = {key: value for key, value in provider.metadata.items() if key not in ROW_METADATA_KEYS}
        row.update(
            {
                "id": provider.id,
                "name": provider.name,
                "settings_config": self.write_settings(provider, settings),
                "website_url": provider.metadata.get("website_url", ""),
                "notes": provider.metadata.get("notes", ""),
                "sort_index": int(provider.metadata.get("sort_index", 0) or 0),
                "is_current": 1 if provider.is_active else 0,
                "meta": extra_meta,
            }
        )
        return row

    def apply_edit(self, existing: RawRecord, edit: ProviderEdit) -> RawRecord:
        row = dict(existing)
        if edit.name:
            row["name"] = edit.name
        if edit.website_url is not None:
            row["website_url"] = edit.website_url
        if edit.notes is not None:
            row["notes"] = edit.notes
        if edit.sort_index is not None:
            row["sort_index"] = edit.sort_index
        if edit.touches_settings():
            row["settings_config"] = self.edit_settings(_load_settings(existing.get("settings_config")), edit)
        return row

    def read_settings(self, settings: Dict[str, Any], provider: Provider) -> None:
        raise NotImplementedError

    def write_settings(self, provider: Provider, settings: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    def edit_settings(self, settings: Dict[str, Any], edit: ProviderEdit) -> Dict[str, Any]:
        raise NotImplementedError


class ClaudeCodec(RowCodec):
    """``env`` map with ANTHROPIC_* keys; tier models only when set."""

    representable = RowCodec.representable | {"model_overrides"}

    TOKEN = "ANTHROPIC_AUTH_TOKEN"
    BASE_URL = "ANTHROPIC_BASE_URL"
    MODEL = "ANTHROPIC_MODEL"
    TIER_KEYS = {tier: f"ANTHROPIC_DEFAULT_{tier.upper()}_MODEL" for tier in MODEL_TIERS}

    def read_settings(self, settings: Dict[str, Any], provider: Provider) -> None:
        env = settings.get("env") or {}
        provider.api_key = _first(env.get(self.TOKEN))
        provider.base_url = _first(env.get(self.BASE_URL))
        provider.model = _first(env.get(self.MODEL))
        provider.model_overrides = {tier: env[key] for tier, key in self.TIER_KEYS.items() if env.get(key)}

    def write_settings(self, provider: Provider, settings: Dict[str, Any]) -> Dict[str, Any]:
        env = dict(settings.get("env") or {})
        env[self.TOKEN] = provider.api_key
        env[self.BASE_URL] = provider.base_url
        env[self.MODEL] = provider.model
        for tier, key in self.TIER_KEYS.items():
            value = provider.model_overrides.get(tier)
            if value:
                env[key] = value
            else:
                env.pop(key, None)
        return {**settings, "env": env}

    def edit_settings(self, settings: Dict[str, Any], edit: ProviderEdit) -> Dict[str, Any]:
        env = dict(settings.get("env") or {})
        if edit.api_key:
            env[self.TOKEN] = edit.api_key
        if edit.base_url:
            env[self.BASE_URL] = edit.base_url
        if edit.model:
            env[self.MODEL] = edit.model
        for tier, key in self.TIER_KEYS.items():
            value = edit.model_overrides.get(tier)
            if value is None:
                continue
            if value:
                env[key] = value
            else:
                env.pop(key, None)
        return {**settings, "env": env}


class CodexCodec(RowCodec):
    """``auth`` map plus a TOML fragment holding model and base_url.

    The fragment is generated from a template and read back by regex. When the
    regex misses (hand-edited quoting or spacing) the fragment is parsed as
    TOML instead; when that fails too the field reads as an empty string.
    """

    API_KEY = "OPENAI_API_KEY"
    PROVIDER_KEY = "openai-chat-completions"
    TEMPLATE = (
        'model = "{model}"\n'
        'model_provider = "{provider_key}"\n'
        'preferred_auth_method = "apikey"\n'
        "\n"
        "[model_providers.{provider_key}]\n"
        'name = "OpenAI"\n'
        'base_url = "{base_url}"\n'
        'wire_api = "responses"\n'
    )
    FIELD_PATTERNS = {
        "model": re.compile(r'^\s*model\s*=\s*"([^"]*)"', re.MULTILINE),
        "base_url": re.compile(r'^\s*base_url\s*=\s*"([^"]*)"', re.MULTILINE),
    }

    @classmethod
    def render_fragment(cls, model: str, base_url: str) -> str:
        return cls.TEMPLATE.format(model=model, base_url=base_url, provider_key=cls.PROVIDER_KEY)

    @classmethod
    def extract_field(cls, fragment: str, key: str) -> str:
        match = cls.FIELD_PATTERNS[key].search(fragment or "")
        if match:
            return match.group(1)
        if not fragment:
            return ""
        value = cls._extract_structured(fragment, key)
        if not value:
            logger.warning("codex config fragment has no readable %s", key)
        return value

    @classmethod
    def _extract_structured(cls, fragment: str, key: str) -> str:
        try:
            data = toml.loads(fragment)
        except toml.TomlDecodeError:
            return ""
        if key == "model":
            return _first(data.get("model"))
        providers = data.get("model_providers") or {}
        selected = providers.get(data.get("model_provider")) or {}
        if selected.get("base_url"):
            return _first(selected.get("base_url"))
        for entry in providers.values():
            if isinstance(entry, dict) and entry.get("base_url"):
                return _first(entry.get("base_url"))
        return ""

    @classmethod
    def _replace_field(cls, fragment: str, key: str, value: str) -> str:
        pattern = cls.FIELD_PATTERNS[key]
        match = pattern.search(fragment)
        start, end = match.span(1)
        return fragment[:start] + value + fragment[end:]

    def read_settings(self, settings: Dict[str, Any], provider: Provider) -> None:
        auth = settings.get("auth") or {}
        fragment = settings.get("config") or ""
        provider.api_key = _first(auth.get(self.API_KEY))
        provider.model = self.extract_field(fragment, "model")
        provider.base_url = self.extract_field(fragment, "base_url")

    def _merge_fragment(self, fragment: str, model: str, base_url: str) -> str:
        if fragment and all(pattern.search(fragment) for pattern in self.FIELD_PATTERNS.values()):
            fragment = self._replace_field(fragment, "model", model)
            return self._replace_field(fragment, "base_url", base_url)
        return self.render_fragment(model, base_url)

    def write_settings(self, provider: Provider, settings: Dict[str, Any]) -> Dict[str, Any]:
        auth = dict(settings.get("auth") or {})
        auth[self.API_KEY] = provider.api_key
        fragment = self._merge_fragment(settings.get("config") or "", provider.model, provider.base_url)
        return {**settings, "auth": auth, "config": fragment}

    def edit_settings(self, settings: Dict[str, Any], edit: ProviderEdit) -> Dict[str, Any]:
        auth = dict(settings.get("auth") or {})
        if edit.api_key:
            auth[self.API_KEY] = edit.api_key
        fragment = settings.get("config") or ""
        model = edit.model or self.extract_field(fragment, "model")
        base_url = edit.base_url or self.extract_field(fragment, "base_url")
        return {**settings, "auth": auth, "config": self._merge_fragment(fragment, model, base_url)}


class GeminiCodec(RowCodec):
    """``env`` map; the credential is mirrored into two key names."""

    API_KEYS = ("GEMINI_API_KEY", "GOOGLE_API_KEY")
    BASE_URL = "GEMINI_BASE_URL"
    MODEL = "GEMINI_MODEL"

    def read_settings(self, settings: Dict[str, Any], provider: Provider) -> None:
        env = settings.get("env") or {}
        provider.api_key = _first(*(env.get(key) for key in self.API_KEYS))
        provider.base_url = _first(env.get(self.BASE_URL))
        provider.model = _first(env.get(self.MODEL))

    def write_settings(self, provider: Provider, settings: Dict[str, Any]) -> Dict[str, Any]:
        env = dict(settings.get("env") or {})
        for key in self.API_KEYS:
            env[key] = provider.api_key
        env[self.BASE_URL] = provider.base_url
        env[self.MODEL] = provider.model
        return {**settings, "env": env}

    def edit_settings(self, settings: Dict[str, Any], edit: ProviderEdit) -> Dict[str, Any]:
        env = dict(settings.get("env") or {})
        if edit.api_key:
            for key in self.API_KEYS:
                env[key] = edit.api_key
        if edit.base_url:
            env[self.BASE_URL] = edit.base_url
        if edit.model:
            env[self.MODEL] = edit.model
        return {**settings, "env": env}


class DocumentCodec(ProviderCodec):
    """Entries of the ``provider`` map in Kilocode/OpenCode config files.

    Older entries keep their credential, endpoint and model in flat keys named
    after the upstream SDK; those are consulted, in order, when the nested
    ``options``/``models`` layout is missing. Active state and row metadata
    are not stored in these files.
    """

    representable = frozenset(
        {"id", "name", "app", "api_key", "base_url", "model", "models", "use_prompt_cache", "provider_type"}
    )

    CREDENTIAL_ALIASES = ("apiKey", "openaiApiKey", "kilocodeToken", "litellmApiKey")
    ENDPOINT_ALIASES = ("baseUrl", "api", "openaiBaseUrl", "litellmBaseUrl")
    MODEL_ALIASES = ("openaiModel", "model", "kilocodeModel", "litellmModelId")

    def to_canonical(self, raw: RawRecord, provider_id: str = "") -> Provider:
        options = raw.get("options") or {}
        models = raw.get("models") if isinstance(raw.get("models"), dict) else {}
        api_key = _first(options.get("apiKey"), *(raw.get(key) for key in self.CREDENTIAL_ALIASES))
        base_url = _first(
            options.get("baseURL"), options.get("baseUrl"), *(raw.get(key) for key in self.ENDPOINT_ALIASES)
        )
        model = next(iter(models), "") or _first(*(raw.get(key) for key in self.MODEL_ALIASES))
        if model and isinstance(models.get(model), dict):
            use_prompt_cache = bool(models[model].get("usePromptCache"))
        else:
            use_prompt_cache = bool(raw.get("litellmUsePromptCache"))
        metadata = {key: raw[source] for key, source in (("website_url", "websiteUrl"), ("notes", "notes")) if raw.get(source)}
        return Provider(
            id=provider_id or str(raw.get("id", "")),
            name=raw.get("name") or provider_id,
            app=self.app,
            base_url=base_url,
            api_key=api_key,
            model=model,
            models=copy.deepcopy(models),
            use_prompt_cache=use_prompt_cache,
            provider_type=_first(raw.get("npm")),
            metadata=metadata,
            raw=copy.deepcopy(raw),
        )

    def _build_models(self, provider: Provider) -> Dict[str, Dict[str, Any]]:
        models = copy.deepcopy(provider.models)
        if not provider.model:
            return models
        selected = dict(models.pop(provider.model, None) or {"name": provider.model})
        if provider.use_prompt_cache:
            selected["usePromptCache"] = True
        else:
            selected.pop("usePromptCache", None)
        # The selected model goes first; readers take the first key as the default.
        return {provider.model: selected, **models}

    def from_canonical(self, provider: Provider, existing: Optional[RawRecord] = None) -> RawRecord:
        entry = copy.deepcopy(existing or {})
        entry["name"] = provider.name or provider.id
        if provider.provider_type:
            entry["npm"] = provider.provider_type
        entry["api"] = provider.base_url
        options = dict(entry.get("options") or {})
        options["baseURL"] = provider.base_url
        if provider.api_key:
            options["apiKey"] = provider.api_key
        else:
            options.pop("apiKey", None)
        entry["options"] = options
        entry["models"] = self._build_models(provider)
        return entry

    def apply_edit(self, existing: RawRecord, edit: ProviderEdit) -> RawRecord:
        """Edited fields overwrite the entry; an edited model moves to the front of ``models``."""
        entry = copy.deepcopy(existing)
        if edit.name:
            entry["name"] = edit.name
        options = entry.setdefault("options", {})
        if edit.base_url:
            options["baseURL"] = edit.base_url
            entry["api"] = edit.base_url
        if edit.api_key:
            options["apiKey"] = edit.api_key
        if edit.models is not None:
            entry["models"] = copy.deepcopy(edit.models)
        elif edit.model:
            models = entry.get("models") if isinstance(entry.get("models"), dict) else {}
            selected = dict(models.pop(edit.model, None) or {"name": edit.model})
            if edit.use_prompt_cache is not None:
                selected["usePromptCache"] = edit.use_prompt_cache
            entry["models"] = {edit.model: selected, **models}
        return entry


TRANSLATORS: Dict[AppType, Type[ProviderCodec]] = {
    AppType.CLAUDE: ClaudeCodec,
    AppType.CODEX: CodexCodec,
    AppType.GEMINI: GeminiCodec,
    AppType.KILOCODE_CLI: DocumentCodec,
    AppType.OPENCODE: DocumentCodec,
    AppType.AMP: DocumentCodec,
}


def get_translator(app: Union[AppType, str, None]) -> ProviderCodec:
    app_type = AppType.parse(app)
    return TRANSLATORS[app_type](app_type)


def to_canonical(app: Union[AppType, str, None], raw: RawRecord, provider_id: str = "") -> Provider:
    codec = get_translator(app)
    if isinstance(codec, DocumentCodec):
        return codec.to_canonical(raw, provider_id)
    return codec.to_canonical(raw)


def from_canonical(app: Union[AppType, str, None], provider: Provider, existing: Optional[RawRecord] = None) -> RawRecord:
    return get_translator(app).from_canonical(provider, existing)


def apply_edit(app: Union[AppType, str, None], existing: RawRecord, edit: ProviderEdit) -> RawRecord:
    return get_translator(app).apply_edit(existing, edit)


def translate_across(
    source: Union[Provider, RawRecord],
    source_app: Union[AppType, str, None],
    dest_app: Union[AppType, str, None],
) -> RawRecord:
    """Re-encode a provider for another app through its credential/endpoint/model.

    Only those three values, plus identity and row metadata, cross over. An
    empty model is replaced by the destination app's default model.
    """
    source_type = AppType.parse(source_app)
    dest_type = AppType.parse(dest_app)
    canonical = source if isinstance(source, Provider) else to_canonical(source_type, source)
    codec = get_translator(dest_type)
    target = Provider(
        id=canonical.id,
        name=canonical.name,
        app=dest_type,
        api_key=canonical.api_key,
        base_url=canonical.base_url,
        model=canonical.model or DEFAULT_MODELS.get(dest_type, ""),
        metadata=dict(canonical.metadata),
    )
    return codec.from_canonical(target)
