import argparse
import shutil
from typing import Callable, Optional, Tuple

from rich.console import Console
from rich.prompt import Prompt

from .ccswitch import SKILL_VERBS, SYNC_METHODS, CCSwitchCLI
from .config import Config, ConfigManager
from .interchange.models import MODEL_TIERS, AppType
from .registry import ProviderSourceRegistry
from .runner import CommandRunner
from .sqlite_cli import McpServerTable, ProviderTable, SqliteCLI
from .storage import AppStateStore

APP_CHOICES = [app.value for app in AppType]


def _add_provider_fields(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--name", help="Display name")
    parser.add_argument("--base-url", help="API endpoint")
    parser.add_argument("--api-key", help="API key or token")
    parser.add_argument("--model", help="Default model")
    for tier in MODEL_TIERS:
        parser.add_argument(f"--{tier}-model", help=f"{tier.capitalize()} tier model (claude only; empty removes it)")
    parser.add_argument("--website-url", help="Provider website")
    parser.add_argument("--notes", help="Free-form notes")
    parser.add_argument("--sort-index", type=int, help="Ordering index")
    parser.add_argument(
        "--prompt-cache",
        choices=["on", "off"],
        default=None,
        help="Enable prompt caching on the selected model (document-family apps)",
    )


def _key_value(text: str) -> Tuple[str, str]:
    key, sep, value = text.partition("=")
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"expected KEY=VALUE, got '{text}'")
    return key, value


def _add_server_fields(parser: argparse.ArgumentParser, required: bool) -> None:
    parser.add_argument("--command", dest="server_command", required=required, help="Executable to start")
    parser.add_argument("--arg", dest="server_args", action="append", help="Argument, repeatable")
    parser.add_argument("--env", dest="server_env", action="append", type=_key_value, help="KEY=VALUE, repeatable")


def _add_mcp_commands(commands) -> None:
    mcp = commands.add_parser("mcp", help="MCP servers").add_subparsers(dest="action")
    mcp.add_parser("list", help="List MCP servers")
    mcp.add_parser("sync", help="Sync MCP servers to the app's config files")
    add = mcp.add_parser("add", help="Add an MCP server, enabled for --app")
    add.add_argument("name")
    _add_server_fields(add, required=True)
    edit = mcp.add_parser("edit", help="Edit an MCP server")
    edit.add_argument("id")
    edit.add_argument("--name", help="New display name")
    _add_server_fields(edit, required=False)
    toggle = mcp.add_parser("toggle", help="Enable or disable a server for --app")
    toggle.add_argument("id")
    toggle.add_argument("state", choices=["on", "off"])
    mcp.add_parser("delete", help="Delete an MCP server").add_argument("id")


def _add_prompt_commands(commands) -> None:
    prompts = commands.add_parser("prompts", help="System prompts").add_subparsers(dest="action")
    prompts.add_parser("list", help="List prompts")
    prompts.add_parser("activate", help="Activate a prompt").add_argument("id")
    prompts.add_parser("deactivate", help="Deactivate the active prompt")


def _add_skill_commands(commands) -> None:
    skills = commands.add_parser("skills", help="Skills and skill repositories").add_subparsers(dest="action")
    skills.add_parser("list", help="List installed skills")
    skills.add_parser("discover", help="List skills offered by the configured repos")
    skills.add_parser("scan-unmanaged", help="Find skill folders cc-switch does not manage")
    skills.add_parser("info", help="Show one skill").add_argument("name")
    for verb in SKILL_VERBS:
        skills.add_parser(verb, help=f"{verb.capitalize()} a skill").add_argument("name")
    skills.add_parser("sync", help="Sync skills to the app's skill folder")
    skills.add_parser("import", help="Import skills found in the apps' folders")
    method = skills.add_parser("sync-method", help="Show or set how skills are synced")
    method.add_argument("method", nargs="?", choices=SYNC_METHODS)
    repos = skills.add_parser("repos", help="Skill repositories").add_subparsers(dest="repo_action")
    repos.add_parser("list", help="List repositories")
    repos.add_parser("add", help="Add a repository (owner/name)").add_argument("repo")
    repos.add_parser("remove", help="Remove a repository").add_argument("repo")


def _add_config_commands(commands) -> None:
    config = commands.add_parser("config", help="cc-switch and Kilocode configuration").add_subparsers(dest="action")
    config.add_parser("show", help="Show the cc-switch configuration")
    config.add_parser("path", help="Show the configuration path")
    config.add_parser("export", help="Export the configuration").add_argument("file")
    config.add_parser("import", help="Import a configuration").add_argument("file")
    config.add_parser("backup", help="Back up the configuration")
    raw = config.add_parser("raw", help="Print or replace the JSONC config of a document-family app")
    raw.add_argument("--set", dest="file", help="Replace the config with the contents of this file")


def build_arg_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser."""
    parser = argparse.ArgumentParser(description="Switchyard: manage cc-switch and Kilocode providers")
    parser.add_argument("--app", choices=APP_CHOICES, help="Application whose providers to manage (default: claude)")
    parser.add_argument("--ccswitch-path", help="Path to the cc-switch binary")
    parser.add_argument("--sqlite-path", help="Path to the sqlite3 shell")
    parser.add_argument("--db-path", help="cc-switch database file (default: ask cc-switch)")
    parser.add_argument("--data-dir", help="Directory for switchyard state and logs")
    parser.add_argument("--timeout", type=float, help="Timeout in seconds for external commands")
    parser.add_argument("--debug", action="store_true", default=None, help="Enable debug logging")
    parser.add_argument("--json", action="store_true", help="Print results as JSON")
    parser.add_argument(
        "--save-config",
        action="store_true",
        help="Save the current settings as default configuration",
    )

    commands = parser.add_subparsers(dest="command")

    providers = commands.add_parser("providers", help="List and manage providers")
    actions = providers.add_subparsers(dest="action")
    actions.add_parser("list", help="List providers")
    show = actions.add_parser("show", help="Show one provider")
    show.add_argument("id")
    add = actions.add_parser("add", help="Add a provider")
    add.add_argument("id")
    _add_provider_fields(add)
    add.add_argument("--provider-type", help="npm package for document-family apps")
    edit = actions.add_parser("edit", help="Edit a provider")
    edit.add_argument("id")
    _add_provider_fields(edit)
    delete = actions.add_parser("delete", help="Delete a provider")
    delete.add_argument("id")
    duplicate = actions.add_parser("duplicate", help="Copy a provider, optionally into another app")
    duplicate.add_argument("id")
    duplicate.add_argument("new_id")
    duplicate.add_argument("--to", dest="target_app", choices=APP_CHOICES, help="Destination application")
    switch = actions.add_parser("switch", help="Make a provider current")
    switch.add_argument("id")

    speedtest = actions.add_parser("speedtest", help="Measure a provider's latency")
    speedtest.add_argument("id")

    _add_mcp_commands(commands)
    _add_prompt_commands(commands)
    _add_skill_commands(commands)
    env = commands.add_parser("env", help="Environment variables").add_subparsers(dest="action")
    env.add_parser("list", help="List environment variables the app sees")
    _add_config_commands(commands)

    commands.add_parser("status", help="Show cc-switch availability and the current provider")
    logs = commands.add_parser("logs", help="Show the operation log")
    logs.add_argument("--limit", type=int, default=20, help="Number of entries to show")
    logs.add_argument("--clear", action="store_true", help="Remove all entries")
    return parser


def merge_runtime_config(args: argparse.Namespace, config_manager: ConfigManager) -> tuple[Config, dict]:
    """Merge CLI args into persisted config and return both config object and dict."""
    config = config_manager.load_config()
    config_dict = config.to_dict()

    for key, value in vars(args).items():
        if value is not None and key in config_dict:
            config_dict[key] = value

    return Config.from_dict(config_dict), config_dict


def maybe_save_config(args: argparse.Namespace, config_dict: dict, config_manager: ConfigManager) -> None:
    """Persist merged config when --save-config is set."""
    if args.save_config:
        config_manager.save_config(**config_dict)
        print("Configuration saved successfully!")


def needs_ccswitch(args: argparse.Namespace) -> bool:
    """Whether the command may spawn cc-switch, directly or to locate its database."""
    if args.command == "logs":
        return False
    if args.command == "config" and args.action == "raw":
        return False
    if args.command in (None, "providers") and AppType.parse(args.app).is_document_family:
        target = getattr(args, "target_app", None)
        return bool(target) and AppType.parse(target).is_core
    return True


def ensure_required_config(
    config: Config,
    config_manager: ConfigManager,
    which: Callable[[str], Optional[str]] = shutil.which,
) -> Config:
    """Ask for the cc-switch binary when the configured one cannot be found."""
    if which(config.ccswitch_path):
        return config

    console = Console()
    try:
        path = Prompt.ask(f"cc-switch not found at '{config.ccswitch_path}'. Please enter its path")
    except (KeyboardInterrupt, EOFError):
        console.print("\nConfiguration cancelled.", style="yellow")
        raise SystemExit(130) from None

    if path:
        config_manager.save_config(ccswitch_path=path)
        config.ccswitch_path = path
        console.print("cc-switch path saved successfully!", style="green")
    return config


def build_registry(config: Config, runner: Optional[CommandRunner] = None) -> ProviderSourceRegistry:
    """Wire the collaborators described by ``config`` into a registry."""
    runner = runner or CommandRunner(timeout=config.timeout)
    ccswitch = CCSwitchCLI(runner, config.ccswitch_path)
    resolved = {}

    def db_path() -> str:
        # Asking cc-switch costs a process spawn; do it once.
        if "path" not in resolved:
            resolved["path"] = config.db_path or ccswitch.db_path()
        return resolved["path"]

    db = SqliteCLI(runner, db_path, config.sqlite_path)
    return ProviderSourceRegistry(ccswitch, ProviderTable(db), AppStateStore(config.data_dir), mcp=McpServerTable(db))
