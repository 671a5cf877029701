"""Provider storage for the Kilocode/OpenCode family of JSONC config files.

Several files can hold providers. They are listed in ``candidates`` from
highest to lowest priority; when two files define the same provider id the
higher-priority file wins. Every id remembers the file it came from so an
edit is written back where the provider lives.
"""

import dataclasses
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .errors import DocumentError, ProviderNotFoundError
from .interchange import jsonc
from .interchange.models import AppType, Provider, ProviderEdit
from .interchange.translators import DEFAULT_NPM_PACKAGE, DocumentCodec

logger = logging.getLogger(__name__)

ProviderIndex = Dict[str, Path]


def default_candidates(home: Optional[Path] = None) -> List[Path]:
    base = (home or Path.home()) / ".config"
    return [
        base / "kilo" / "opencode.json",
        base / "kilo" / "opencode.jsonc",
        base / "kilocode" / "kilocode.json",
        base / "kilocode" / "kilocode.jsonc",
    ]


class DocumentStore:
    def __init__(self, app: AppType = AppType.KILOCODE_CLI, candidates: Optional[Sequence[Path]] = None):
        self.app = app
        self.candidates = [Path(path) for path in (candidates or default_candidates())]
        self.codec = DocumentCodec(app)

    def existing_paths(self) -> List[Path]:
        return [path for path in self.candidates if path.exists()]

    def primary_path(self) -> Path:
        """File that receives new providers."""
        existing = self.existing_paths()
        return existing[0] if existing else self.candidates[0]

    def _load_file(self, path: Path) -> Dict[str, Any]:
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise DocumentError(f"Failed to read {path}: {exc}") from exc
        return jsonc.loads(text)

    def read(self) -> Tuple[Dict[str, Any], ProviderIndex]:
        """Merge all existing files; return the document and the id-to-file index.

        A file that fails to parse is skipped with a warning, and so are
        provider entries that are not objects.
        """
        merged: Dict[str, Any] = {}
        providers: Dict[str, Any] = {}
        index: ProviderIndex = {}
        # Lowest priority first, so later updates overwrite.
        for path in reversed(self.existing_paths()):
            try:
                document = self._load_file(path)
            except DocumentError as exc:
                logger.warning("Skipping config file %s: %s", path, exc)
                continue
            section = document.get("provider") or {}
            if not isinstance(section, dict):
                logger.warning("Ignoring non-object 'provider' section in %s", path)
                section = {}
            for provider_id, entry in section.items():
                if not isinstance(entry, dict):
                    logger.warning("Ignoring malformed provider '%s' in %s", provider_id, path)
                    continue
                providers[provider_id] = entry
                index[provider_id] = path
            merged.update({key: value for key, value in document.items() if key != "provider"})
        merged["provider"] = providers
        return merged, index

    def _write_file(self, path: Path, document: Dict[str, Any]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(jsonc.dumps(document), encoding="utf-8")

    def _update_file(self, path: Path, provider_id: str, entry: Optional[Dict[str, Any]]) -> None:
        """Rewrite one provider entry in ``path``; ``None`` removes it."""
        document = self._load_file(path) if path.exists() else {}
        providers = document.setdefault("provider", {})
        if not isinstance(providers, dict):
            raise DocumentError(f"'provider' in {path} is not an object")
        if entry is None:
            providers.pop(provider_id, None)
        else:
            providers[provider_id] = entry
        self._write_file(path, document)

    # -- providers -----------------------------------------------------------

    def list(self) -> List[Provider]:
        document, _ = self.read()
        return [self.codec.to_canonical(entry, provider_id) for provider_id, entry in document["provider"].items()]

    def get(self, provider_id: str) -> Optional[Provider]:
        document, _ = self.read()
        entry = document["provider"].get(provider_id)
        return self.codec.to_canonical(entry, provider_id) if entry is not None else None

    def get_entry(self, provider_id: str) -> Optional[Dict[str, Any]]:
        document, _ = self.read()
        return document["provider"].get(provider_id)

    def add(self, provider: Provider) -> Path:
        """Store a new provider in the primary file. The id must be unused."""
        _, index = self.read()
        if provider.id in index:
            raise DocumentError(f"Provider '{provider.id}' already exists")
        if not provider.provider_type:
            provider = dataclasses.replace(provider, provider_type=DEFAULT_NPM_PACKAGE)
        path = self.primary_path()
        self._update_file(path, provider.id, self.codec.from_canonical(provider))
        return path

    def put_entry(self, provider_id: str, entry: Dict[str, Any]) -> Path:
        """Write an already encoded entry to the file that owns the id."""
        _, index = self.read()
        path = index.get(provider_id, self.primary_path())
        self._update_file(path, provider_id, entry)
        return path

    def edit(self, provider_id: str, edit: ProviderEdit) -> Path:
        document, index = self.read()
        if provider_id not in index:
            raise ProviderNotFoundError(f"Provider '{provider_id}' not found")
        entry = self.codec.apply_edit(document["provider"][provider_id], edit)
        self._update_file(index[provider_id], provider_id, entry)
        return index[provider_id]

    def delete(self, provider_id: str) -> Path:
        _, index = self.read()
        if provider_id not in index:
            raise ProviderNotFoundError(f"Provider '{provider_id}' not found")
        self._update_file(index[provider_id], provider_id, None)
        return index[provider_id]

    # -- raw config ----------------------------------------------------------

    def get_raw_config(self) -> Tuple[str, Path]:
        path = self.primary_path()
        if not path.exists():
            return "{}", path
        return path.read_text(encoding="utf-8"), path

    def save_raw_config(self, text: str) -> Path:
        """Replace the primary file verbatim after checking that it parses."""
        jsonc.loads(text)
        path = self.primary_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return path
