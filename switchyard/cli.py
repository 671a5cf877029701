import argparse
import logging
from typing import Any, Callable, Dict, List, Optional

from .bootstrap import (
    build_arg_parser,
    build_registry,
    ensure_required_config,
    maybe_save_config,
    merge_runtime_config,
    needs_ccswitch,
)
from .ccswitch import SKILL_VERBS
from .config import ConfigManager
from .errors import ConfigError, SwitchyardError
from .interchange.models import MODEL_TIERS, AppType, OperationResult, Provider, ProviderEdit
from .log import init_logging
from .registry import ProviderSourceRegistry
from .ui import ConsoleUI

logger = logging.getLogger(__name__)


def _prompt_cache(args: argparse.Namespace) -> Optional[bool]:
    return None if args.prompt_cache is None else args.prompt_cache == "on"


def _overrides(args: argparse.Namespace) -> Dict[str, Optional[str]]:
    return {tier: getattr(args, f"{tier}_model") for tier in MODEL_TIERS}


def provider_from_args(args: argparse.Namespace, app: AppType) -> Provider:
    columns = {"website_url": args.website_url, "notes": args.notes, "sort_index": args.sort_index}
    metadata = {key: value for key, value in columns.items() if value}
    return Provider(
        id=args.id,
        name=args.name or args.id,
        app=app,
        base_url=args.base_url or "",
        api_key=args.api_key or "",
        model=args.model or "",
        model_overrides={tier: value for tier, value in _overrides(args).items() if value},
        metadata=metadata,
        use_prompt_cache=bool(_prompt_cache(args)),
        provider_type=args.provider_type or "",
    )


def edit_from_args(args: argparse.Namespace) -> ProviderEdit:
    return ProviderEdit(
        name=args.name,
        base_url=args.base_url,
        api_key=args.api_key,
        model=args.model,
        model_overrides={tier: value for tier, value in _overrides(args).items() if value is not None},
        website_url=args.website_url,
        notes=args.notes,
        sort_index=args.sort_index,
        use_prompt_cache=_prompt_cache(args),
    )


class CommandDispatcher:
    """Runs one parsed command against the registry."""

    def __init__(self, registry: ProviderSourceRegistry, ui: ConsoleUI, as_json: bool = False):
        self.registry = registry
        self.ui = ui
        self.as_json = as_json
        self.handlers: Dict[str, Callable[[argparse.Namespace, AppType], int]] = {
            "providers": self.handle_providers,
            "mcp": self.handle_mcp,
            "prompts": self.handle_prompts,
            "skills": self.handle_skills,
            "env": self.handle_env,
            "config": self.handle_config,
            "status": self.handle_status,
            "logs": self.handle_logs,
        }

    def dispatch(self, args: argparse.Namespace) -> int:
        app = AppType.parse(args.app)
        handler = self.handlers.get(args.command or "providers")
        try:
            return handler(args, app)
        except SwitchyardError as exc:
            logger.debug("command failed", exc_info=True)
            self.ui.display_error(str(exc))
            return 1

    def _report(self, result: OperationResult) -> int:
        if self.as_json:
            self.ui.display_json(result.to_dict())
        else:
            self.ui.display_result(result)
        return 0 if result.success else 1

    def handle_providers(self, args: argparse.Namespace, app: AppType) -> int:
        action = getattr(args, "action", None) or "list"
        if action == "list":
            listing = self.registry.list(app)
            if self.as_json:
                self.ui.display_json(listing.to_dict())
            else:
                self.ui.display_providers(listing, app.value)
            return 0
        if action == "show":
            provider = self.registry.get_by_id(app, args.id)
            if provider is None:
                self.ui.display_error(f"Provider '{args.id}' not found in app '{app.value}'")
                return 1
            if self.as_json:
                self.ui.display_json(provider.to_dict())
            else:
                self.ui.display_provider(provider)
            return 0
        if action == "add":
            return self._report(self.registry.add(app, provider_from_args(args, app)))
        if action == "edit":
            return self._report(self.registry.edit(app, args.id, edit_from_args(args)))
        if action == "delete":
            return self._report(self.registry.delete(app, args.id))
        if action == "duplicate":
            return self._report(self.registry.duplicate(app, args.id, args.new_id, args.target_app))
        if action == "speedtest":
            return self._speedtest(args, app)
        return self._report(self.registry.switch(app, args.id))

    def _list(self, rows: List, render: Callable[[List], None]) -> int:
        if self.as_json:
            self.ui.display_json([{k: v for k, v in vars(row).items() if k != "row"} for row in rows])
        else:
            render(rows)
        return 0

    def _details(self, title: str, values: Dict[str, Any]) -> int:
        if self.as_json:
            self.ui.display_json(values)
        else:
            self.ui.display_details(title, values)
        return 0

    def _speedtest(self, args: argparse.Namespace, app: AppType) -> int:
        if not app.is_core:
            self.ui.display_error(f"Speed tests run through cc-switch; '{app.value}' is not a cc-switch app")
            return 1
        return self._report(self.registry.cli.speedtest(app, args.id))

    def handle_mcp(self, args: argparse.Namespace, app: AppType) -> int:
        action = args.action or "list"
        cli, table = self.registry.cli, self.registry.mcp
        if action == "list":
            return self._list(cli.list_mcp_servers(app), self.ui.display_mcp_servers)
        if action == "sync":
            return self._report(cli.sync_mcp_servers(app))
        env = dict(args.server_env) if getattr(args, "server_env", None) is not None else None
        if action == "add":
            server_id = table.add(args.name, args.server_command, args.server_args or (), env, app)
            return self._report(OperationResult.ok(f"Successfully added MCP server: {server_id}", id=server_id))
        if action == "edit":
            if not table.edit(args.id, args.name, args.server_command, args.server_args, env):
                return self._report(OperationResult.fail(f"MCP server '{args.id}' not found"))
            return self._report(OperationResult.ok(f"Successfully updated MCP server: {args.id}"))
        if action == "toggle":
            enabled = args.state == "on"
            table.toggle(args.id, enabled, app)
            state = "enabled" if enabled else "disabled"
            return self._report(OperationResult.ok(f"MCP server {args.id} {state} for {app.value}"))
        table.delete(args.id)
        return self._report(OperationResult.ok(f"Successfully deleted MCP server: {args.id}"))

    def handle_prompts(self, args: argparse.Namespace, app: AppType) -> int:
        action = args.action or "list"
        if action == "activate":
            return self._report(self.registry.cli.activate_prompt(args.id, app))
        if action == "deactivate":
            return self._report(self.registry.cli.deactivate_prompt(app))
        return self._list(self.registry.cli.list_prompts(app), self.ui.display_prompts)

    def handle_skills(self, args: argparse.Namespace, app: AppType) -> int:
        action = args.action or "list"
        cli = self.registry.cli
        if action in SKILL_VERBS:
            return self._report(cli.skill_action(action, args.name, app))
        if action == "discover":
            return self._list(cli.discover_skills(app), self.ui.display_discovered_skills)
        if action == "scan-unmanaged":
            return self._list(cli.scan_unmanaged_skills(app), self.ui.display_unmanaged_skills)
        if action == "info":
            info = cli.skill_info(args.name, app)
            if info is None:
                self.ui.display_error(f"Skill '{args.name}' not found")
                return 1
            return self._details(args.name, info)
        if action == "sync":
            return self._report(cli.sync_skills(app))
        if action == "import":
            return self._report(cli.import_skills_from_apps(app))
        if action == "sync-method":
            if args.method:
                return self._report(cli.set_sync_method(args.method))
            return self._details("Skills", {"Sync method": cli.sync_method()})
        if action == "repos":
            return self._repos(args)
        return self._list(cli.list_skills(app), self.ui.display_skills)

    def _repos(self, args: argparse.Namespace) -> int:
        repo_action = args.repo_action or "list"
        if repo_action == "add":
            return self._report(self.registry.cli.add_skill_repo(args.repo))
        if repo_action == "remove":
            return self._report(self.registry.cli.remove_skill_repo(args.repo))
        return self._list(self.registry.cli.list_skill_repos(), self.ui.display_skill_repos)

    def handle_env(self, args: argparse.Namespace, app: AppType) -> int:
        return self._list(self.registry.cli.list_env_vars(app), self.ui.display_env_vars)

    def handle_config(self, args: argparse.Namespace, app: AppType) -> int:
        action = args.action or "show"
        cli = self.registry.cli
        if action == "raw":
            return self._raw_config(args, app)
        if action == "path":
            path = cli.config_path(app)
            if path is None:
                self.ui.display_error("cc-switch did not report a config path")
                return 1
            return self._details("Config", {"Path": path})
        if action == "export":
            return self._report(cli.export_config(args.file, app))
        if action == "import":
            return self._report(cli.import_config(args.file, app))
        if action == "backup":
            return self._report(cli.backup_config(app))
        _, values = cli.config_show()
        return self._details("cc-switch config", values)

    def _raw_config(self, args: argparse.Namespace, app: AppType) -> int:
        if app.is_core:
            self.ui.display_error(f"'{app.value}' keeps its providers in cc-switch; use --app kilocode-cli, opencode or amp")
            return 1
        store = self.registry.document_store(app)
        if args.file:
            try:
                with open(args.file, "r", encoding="utf-8") as file_obj:
                    text = file_obj.read()
            except OSError as exc:
                self.ui.display_error(f"Cannot read {args.file}: {exc}")
                return 1
            path = store.save_raw_config(text)
            return self._report(OperationResult.ok(f"Successfully saved config to: {path}", path=str(path)))
        text, path = store.get_raw_config()
        if self.as_json:
            self.ui.display_json({"path": str(path), "content": text})
        else:
            self.ui.display_raw_config(text, str(path))
        return 0

    def handle_status(self, args: argparse.Namespace, app: AppType) -> int:
        cli = self.registry.cli
        available = cli.is_available()
        app_config = self.registry.state.get_app_config()
        status = {
            "cc-switch": cli.version() if available else "not available",
            "App": app.value,
            "Current provider": cli.current_provider(app) if available and app.is_core else None,
            "Last selected": app_config["settings"].get("lastProviderId"),
            "Last switch": app_config.get("lastUpdated"),
        }
        if self.as_json:
            self.ui.display_json(status)
        else:
            self.ui.display_status(status)
        return 0 if available else 1

    def handle_logs(self, args: argparse.Namespace, app: AppType) -> int:
        if args.clear:
            self.registry.state.clear_logs()
            self.ui.display_message("Operation log cleared.", style="green")
            return 0
        entries = self.registry.state.get_logs(args.limit)
        if self.as_json:
            self.ui.display_json(entries)
        else:
            self.ui.display_logs(entries)
        return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    ui = ConsoleUI()
    config_manager = ConfigManager()
    try:
        config, config_dict = merge_runtime_config(args, config_manager)
        init_logging(config.debug)
        maybe_save_config(args, config_dict, config_manager)
        if needs_ccswitch(args):
            config = ensure_required_config(config, config_manager)
    except ConfigError as exc:
        ui.display_error(str(exc))
        return 1
    registry = build_registry(config)
    return CommandDispatcher(registry, ui, as_json=args.json).dispatch(args)


if __name__ == "__main__":
    raise SystemExit(main())
