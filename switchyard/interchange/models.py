import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ..errors import InvalidIdentifierError

IDENTIFIER_PATTERN = re.compile(r"[a-zA-Z0-9_-]+")

MODEL_TIERS = ("haiku", "sonnet", "opus")


class AppType(Enum):
    """Consumer programs whose provider configuration switchyard manages."""

    CLAUDE = "claude"
    CODEX = "codex"
    GEMINI = "gemini"
    KILOCODE_CLI = "kilocode-cli"
    OPENCODE = "opencode"
    AMP = "amp"

    @classmethod
    def parse(cls, value: Any) -> "AppType":
        """Accept an AppType, its wire value, or None (defaults to claude)."""
        if isinstance(value, cls):
            return value
        if value is None or value == "":
            return cls.CLAUDE
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            valid = ", ".join(app.value for app in cls)
            raise ValueError(f"Unknown app '{value}'. Valid apps: {valid}") from None

    @property
    def is_core(self) -> bool:
        """Core apps are the ones the cc-switch CLI itself understands."""
        return self in (AppType.CLAUDE, AppType.CODEX, AppType.GEMINI)

    @property
    def is_document_family(self) -> bool:
        return not self.is_core


@dataclass
class Provider:
    """Format-neutral view of one configured provider."""

    id: str
    name: str = ""
    app: AppType = AppType.CLAUDE
    base_url: str = ""
    api_key: str = ""
    model: str = ""
    model_overrides: Dict[str, str] = field(default_factory=dict)
    is_active: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict)
    models: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    use_prompt_cache: bool = False
    provider_type: str = ""
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def kind(self) -> str:
        """Loose provider family guessed from the identifier."""
        lowered = self.id.lower()
        if "claude" in lowered or "anthropic" in lowered:
            return "claude"
        if "gemini" in lowered or "google" in lowered:
            return "gemini"
        if "codex" in lowered or "openai" in lowered:
            return "codex"
        return "custom"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "app": self.app.value,
            "type": self.kind,
            "isActive": self.is_active,
            "baseUrl": self.base_url,
            "apiKey": self.api_key,
            "model": self.model,
            "modelOverrides": dict(self.model_overrides),
            "models": dict(self.models),
            "usePromptCache": self.use_prompt_cache,
            "providerType": self.provider_type,
            "metadata": dict(self.metadata),
        }


@dataclass
class ProviderEdit:
    """Partial update. ``None`` leaves a field alone; ``""`` on a tier removes it."""

    name: Optional[str] = None
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    model: Optional[str] = None
    model_overrides: Dict[str, Optional[str]] = field(default_factory=dict)
    website_url: Optional[str] = None
    notes: Optional[str] = None
    sort_index: Optional[int] = None
    models: Optional[Dict[str, Dict[str, Any]]] = None
    use_prompt_cache: Optional[bool] = None

    def touches_settings(self) -> bool:
        """True when the stored settings blob (not just row columns) must change."""
        return bool(
            self.base_url
            or self.api_key
            or self.model
            or any(value is not None for value in self.model_overrides.values())
            or self.models is not None
            or self.use_prompt_cache is not None
        )

    def is_empty(self) -> bool:
        return not self.touches_settings() and not (
            self.name or self.website_url is not None or self.notes is not None or self.sort_index is not None
        )


@dataclass
class ProviderListing:
    providers: List[Provider]
    current_provider_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "providers": [provider.to_dict() for provider in self.providers],
            "currentProviderId": self.current_provider_id,
        }


@dataclass
class OperationResult:
    """Outcome handed back across the component boundary instead of an exception."""

    success: bool
    message: str
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, message: str, **data: Any) -> "OperationResult":
        return cls(True, message, data)

    @classmethod
    def fail(cls, message: str, **data: Any) -> "OperationResult":
        return cls(False, message, data)

    def to_dict(self) -> dict:
        return {"success": self.success, "message": self.message, **self.data}


def validate_identifier(value: str, label: str = "Provider ID") -> str:
    if not value or not IDENTIFIER_PATTERN.fullmatch(value):
        raise InvalidIdentifierError(
            f"{label} must contain only alphanumeric characters, hyphens, and underscores."
        )
    return value
