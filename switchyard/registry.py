"""One provider interface over both backing stores.

Core apps (claude, codex, gemini) are served by :class:`CCSwitchSource`: the
``cc-switch provider list`` table is parsed and each row is joined with its
full record from the cc-switch database. Document-family apps are served by
:class:`DocumentSource` straight from their JSONC files.

The registry methods that change state return an :class:`OperationResult`;
errors raised below this layer stop here.
"""

import copy
import dataclasses
import logging
from typing import Any, Dict, Optional

from .ccswitch import CCSwitchCLI
from .documents import DocumentStore
from .errors import CommandFailedError, ProviderNotFoundError, SwitchyardError
from .interchange.models import AppType, OperationResult, Provider, ProviderEdit, ProviderListing, validate_identifier
from .interchange.translators import DEFAULT_MODELS, DEFAULT_NPM_PACKAGE, RawRecord, get_translator, translate_across
from .sqlite_cli import McpServerTable, ProviderTable
from .storage import AppStateStore

logger = logging.getLogger(__name__)

# Row columns that a copy between core apps carries over untouched.
CARRIED_COLUMNS = (
    "category",
    "cost_multiplier",
    "provider_type",
    "icon",
    "icon_color",
    "limit_daily_usd",
    "limit_monthly_usd",
)
EDITABLE_COLUMNS = ("name", "settings_config", "website_url", "notes", "sort_index")


def resolve_active_id(listing_marker: Optional[str], footer_id: Optional[str], last_selected: Optional[str]) -> Optional[str]:
    """Row marker first, then the footer announcement, then the remembered id."""
    return listing_marker or footer_id or last_selected


class ProviderSource:
    """Backing store for the providers of one app."""

    def __init__(self, app: AppType, state: AppStateStore):
        self.app = app
        self.state = state
        self.codec = get_translator(app)

    def list(self) -> ProviderListing:
        raise NotImplementedError

    def get(self, provider_id: str) -> Optional[Provider]:
        raw = self.get_raw(provider_id)
        if raw is None:
            return None
        return self.decode(raw, provider_id)

    def decode(self, raw: RawRecord, provider_id: str) -> Provider:
        raise NotImplementedError

    def get_raw(self, provider_id: str) -> Optional[RawRecord]:
        raise NotImplementedError

    def exists(self, provider_id: str) -> bool:
        return self.get_raw(provider_id) is not None

    def add(self, provider: Provider) -> None:
        raise NotImplementedError

    def insert_raw(self, provider_id: str, raw: RawRecord) -> None:
        raise NotImplementedError

    def edit(self, provider_id: str, edit: ProviderEdit) -> None:
        raise NotImplementedError

    def delete(self, provider_id: str) -> None:
        raise NotImplementedError

    def switch(self, provider_id: str) -> None:
        raise NotImplementedError


class CCSwitchSource(ProviderSource):
    def __init__(self, app: AppType, state: AppStateStore, cli: CCSwitchCLI, table: ProviderTable):
        super().__init__(app, state)
        self.cli = cli
        self.table = table

    def _stored_rows(self) -> Dict[str, Dict[str, Any]]:
        try:
            return {str(row.get("id")): row for row in self.table.select_all(self.app)}
        except CommandFailedError as exc:
            # The table text alone still lists the providers.
            logger.warning("Could not load provider rows for %s: %s", self.app.value, exc)
            return {}

    def list(self) -> ProviderListing:
        rows, footer_id = self.cli.list_providers(self.app)
        stored = self._stored_rows()
        marked = next((row.id for row in rows if row.is_active), None)
        current_id = resolve_active_id(marked, footer_id, self.state.last_provider_id())
        providers = []
        for row in rows:
            provider = self.codec.to_canonical(stored.get(row.id) or {"id": row.id, "name": row.name})
            provider.name = row.name or provider.name
            provider.is_active = row.id == current_id
            providers.append(provider)
        return ProviderListing(providers, current_id)

    def decode(self, raw: RawRecord, provider_id: str) -> Provider:
        return self.codec.to_canonical(raw)

    def get_raw(self, provider_id: str) -> Optional[RawRecord]:
        return self.table.select_one(self.app, provider_id)

    def exists(self, provider_id: str) -> bool:
        return self.table.exists(self.app, provider_id)

    def add(self, provider: Provider) -> None:
        if self.exists(provider.id):
            raise SwitchyardError(f"Provider with ID '{provider.id}' already exists in app '{self.app.value}'")
        if not provider.model:
            provider = dataclasses.replace(provider, model=DEFAULT_MODELS[self.app])
        self.table.insert(self.app, self.codec.from_canonical(provider))

    def insert_raw(self, provider_id: str, raw: RawRecord) -> None:
        self.table.insert(self.app, {**raw, "id": provider_id})

    def edit(self, provider_id: str, edit: ProviderEdit) -> None:
        existing = self.get_raw(provider_id)
        if existing is None:
            raise ProviderNotFoundError(f"Provider '{provider_id}' not found in app '{self.app.value}'")
        updated = self.codec.apply_edit(existing, edit)
        changes = {
            column: updated[column]
            for column in EDITABLE_COLUMNS
            if column in updated and updated[column] != existing.get(column)
        }
        if changes:
            self.table.update(self.app, provider_id, changes)

    def delete(self, provider_id: str) -> None:
        if not self.exists(provider_id):
            raise ProviderNotFoundError(f"Provider '{provider_id}' not found in app '{self.app.value}'")
        if self.table.is_current(self.app, provider_id):
            raise SwitchyardError(
                "Cannot delete the current active provider. Please switch to another provider first."
            )
        self.table.delete(self.app, provider_id)

    def switch(self, provider_id: str) -> None:
        result = self.cli.switch_provider(self.app, provider_id)
        if not result.success:
            raise CommandFailedError(result.message)


class DocumentSource(ProviderSource):
    def __init__(self, app: AppType, state: AppStateStore, store: DocumentStore):
        super().__init__(app, state)
        self.store = store

    def list(self) -> ProviderListing:
        providers = self.store.list()
        last_selected = self.state.last_provider_id()
        known = {provider.id for provider in providers}
        current_id = resolve_active_id(None, None, last_selected if last_selected in known else None)
        for provider in providers:
            provider.is_active = provider.id == current_id
        return ProviderListing(providers, current_id)

    def decode(self, raw: RawRecord, provider_id: str) -> Provider:
        return self.codec.to_canonical(raw, provider_id)

    def get_raw(self, provider_id: str) -> Optional[RawRecord]:
        return self.store.get_entry(provider_id)

    def add(self, provider: Provider) -> None:
        self.store.add(provider)

    def insert_raw(self, provider_id: str, raw: RawRecord) -> None:
        entry = copy.deepcopy(raw)
        entry.setdefault("npm", DEFAULT_NPM_PACKAGE)
        self.store.put_entry(provider_id, entry)

    def edit(self, provider_id: str, edit: ProviderEdit) -> None:
        self.store.edit(provider_id, edit)

    def delete(self, provider_id: str) -> None:
        self.store.delete(provider_id)

    def switch(self, provider_id: str) -> None:
        # These tools read the file directly; only the selection is remembered.
        if not self.exists(provider_id):
            raise ProviderNotFoundError(f"Provider '{provider_id}' not found")


class ProviderSourceRegistry:
    def __init__(
        self,
        cli: CCSwitchCLI,
        table: ProviderTable,
        state: AppStateStore,
        document_stores: Optional[Dict[AppType, DocumentStore]] = None,
        mcp: Optional[McpServerTable] = None,
    ):
        self.cli = cli
        self.table = table
        self.state = state
        self.document_stores = dict(document_stores or {})
        self.mcp = mcp

    def document_store(self, app: Any) -> DocumentStore:
        app_type = AppType.parse(app)
        store = self.document_stores.get(app_type)
        if store is None:
            store = self.document_stores[app_type] = DocumentStore(app_type)
        return store

    def source_for(self, app: Any) -> ProviderSource:
        app_type = AppType.parse(app)
        if app_type.is_core:
            return CCSwitchSource(app_type, self.state, self.cli, self.table)
        return DocumentSource(app_type, self.state, self.document_store(app_type))

    def _audit(self, level: str, operation: str, message: str, **details: Any) -> None:
        try:
            self.state.add_log(level, operation, message, details)
        except OSError as exc:
            logger.warning("Could not write operation log: %s", exc)

    # -- queries -------------------------------------------------------------

    def list(self, app: Any = None) -> ProviderListing:
        """Providers of ``app`` with the active one resolved.

        Raises CommandFailedError when ``cc-switch provider list`` fails.
        """
        return self.source_for(app).list()

    def get_by_id(self, app: Any, provider_id: str) -> Optional[Provider]:
        return self.source_for(app).get(provider_id)

    # -- mutations -----------------------------------------------------------

    def add(self, app: Any, provider: Provider) -> OperationResult:
        try:
            validate_identifier(provider.id)
            source = self.source_for(app)
            source.add(dataclasses.replace(provider, app=source.app, is_active=False))
        except (SwitchyardError, ValueError) as exc:
            return OperationResult.fail(str(exc))
        self._audit("info", "add_provider", f"Added provider: {provider.id}", providerId=provider.id, appType=source.app.value)
        return OperationResult.ok(f"Successfully added provider '{provider.id}'")

    def edit(self, app: Any, provider_id: str, edit: ProviderEdit) -> OperationResult:
        if edit.is_empty():
            return OperationResult.fail("No changes provided")
        try:
            source = self.source_for(app)
            source.edit(provider_id, edit)
        except (SwitchyardError, ValueError) as exc:
            return OperationResult.fail(str(exc))
        return OperationResult.ok(f"Successfully updated provider '{provider_id}'")

    def delete(self, app: Any, provider_id: str) -> OperationResult:
        try:
            source = self.source_for(app)
            source.delete(provider_id)
        except (SwitchyardError, ValueError) as exc:
            return OperationResult.fail(str(exc))
        self._audit("info", "delete_provider", f"Deleted provider: {provider_id}", providerId=provider_id, appType=source.app.value)
        return OperationResult.ok(f"Deleted provider: {provider_id}")

    def duplicate(self, app: Any, provider_id: str, new_id: str, target_app: Any = None) -> OperationResult:
        """Copy a provider under ``new_id``, optionally into another app.

        Within one app the stored record is copied as is. Across apps only
        credential, endpoint and model (plus row metadata between core apps)
        survive the translation.
        """
        try:
            validate_identifier(new_id, "New provider ID")
            source = self.source_for(app)
            destination = self.source_for(target_app) if target_app else source
            raw = source.get_raw(provider_id)
            if raw is None:
                return OperationResult.fail(f"Provider '{provider_id}' not found in app '{source.app.value}'")
            if destination.exists(new_id):
                return OperationResult.fail(
                    f"Provider with ID '{new_id}' already exists in app '{destination.app.value}'"
                )
            original = source.decode(raw, provider_id)
            copy_name = f"{original.name or provider_id} (Copy)"
            if destination.app is source.app:
                record = copy.deepcopy(raw)
                record["name"] = copy_name
            else:
                renamed = dataclasses.replace(original, id=new_id, name=copy_name)
                record = translate_across(renamed, source.app, destination.app)
                if source.app.is_core and destination.app.is_core:
                    record.update({column: raw[column] for column in CARRIED_COLUMNS if raw.get(column) is not None})
            destination.insert_raw(new_id, record)
        except (SwitchyardError, ValueError) as exc:
            return OperationResult.fail(str(exc))

        if destination.app is source.app:
            message = f"Successfully duplicated provider '{provider_id}' to '{new_id}'"
        else:
            message = (
                f"Successfully copied provider '{provider_id}' from {source.app.value} "
                f"to {destination.app.value} as '{new_id}'"
            )
        self._audit("info", "duplicate_provider", message, providerId=provider_id, newId=new_id)
        return OperationResult.ok(message)

    def switch(self, app: Any, provider_id: str) -> OperationResult:
        previous_id = self.state.last_provider_id()
        try:
            source = self.source_for(app)
            source.switch(provider_id)
        except (SwitchyardError, ValueError) as exc:
            self._audit("error", "switch_provider", f"Failed to switch provider: {exc}", providerId=provider_id)
            return OperationResult.fail(str(exc))

        self.state.update_settings(lastProviderId=provider_id)
        self._audit(
            "info",
            "switch_provider",
            f"Switched to provider: {provider_id}",
            previousProviderId=previous_id,
            currentProviderId=provider_id,
        )
        return OperationResult.ok(
            f"Successfully switched to provider: {provider_id}",
            previousProviderId=previous_id,
            currentProviderId=provider_id,
        )
