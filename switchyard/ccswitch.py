"""Thin wrapper around the ``cc-switch`` command line tool."""

import logging
import re
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .errors import CommandFailedError
from .interchange import tables
from .interchange.models import AppType, OperationResult
from .runner import CommandResult, CommandRunner

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = Path.home() / ".cc-switch" / "cc-switch.db"
SYNC_METHODS = ("auto", "symlink", "copy")
SKILL_VERBS = {"install": "installed", "uninstall": "uninstalled", "enable": "enabled", "disable": "disabled"}
_SYNC_METHOD = re.compile(r"(?:method|sync.method):\s*(\w+)", re.IGNORECASE)
_BACKUP_PATH = re.compile(r"(?:saved to|created at|backed up to):\s*(.+)", re.IGNORECASE)


class CCSwitchCLI:
    def __init__(self, runner: CommandRunner, binary_path: str):
        self.runner = runner
        self.binary_path = binary_path

    @staticmethod
    def app_args(app: Optional[AppType]) -> List[str]:
        """``--app`` is only understood for the apps cc-switch manages itself."""
        if app is None or not app.is_core:
            return []
        return ["--app", app.value]

    def _run(self, *args: str, app: Optional[AppType] = None, timeout: Optional[float] = None) -> CommandResult:
        return self.runner.run([self.binary_path, *self.app_args(app), *args], timeout=timeout)

    def _check(self, what: str, *args: str, app: Optional[AppType] = None) -> CommandResult:
        result = self._run(*args, app=app)
        if not result.ok:
            raise CommandFailedError(f"Failed to {what}: {result.stderr}", result.stderr, result.exit_code)
        return result

    def _action(self, what: str, success_message: str, *args: str, app: Optional[AppType] = None) -> OperationResult:
        try:
            result = self._run(*args, app=app)
        except CommandFailedError as exc:
            return OperationResult.fail(str(exc))
        if not result.ok:
            return OperationResult.fail(f"Failed to {what}: {result.error_text()}")
        return OperationResult.ok(success_message, output=result.stdout)

    # -- general -------------------------------------------------------------

    def is_available(self) -> bool:
        try:
            return self._run("--help", timeout=5).ok
        except CommandFailedError:
            return False

    def version(self) -> str:
        try:
            result = self._run("--version")
        except CommandFailedError:
            return "unknown"
        return result.stdout if result.ok else "unknown"

    def db_path(self) -> str:
        try:
            result = self._run("config", "path")
        except CommandFailedError:
            result = None
        path = tables.extract_db_path(result.stdout) if result and result.ok else None
        return path or str(DEFAULT_DB_PATH)

    def config_path(self, app: Optional[AppType] = None) -> Optional[str]:
        try:
            result = self._run("config", "path", app=app)
        except CommandFailedError:
            return None
        return result.stdout if result.ok else None

    def config_show(self) -> Tuple[str, Dict[str, str]]:
        result = self._check("show config", "config", "show")
        return result.stdout, tables.parse_key_values(result.stdout)

    def export_config(self, output_path: str, app: Optional[AppType] = None) -> OperationResult:
        return self._action("export config", f"Successfully exported config to: {output_path}",
                            "config", "export", output_path, app=app)

    def import_config(self, input_path: str, app: Optional[AppType] = None) -> OperationResult:
        return self._action("import config", f"Successfully imported config from: {input_path}",
                            "config", "import", input_path, app=app)

    def backup_config(self, app: Optional[AppType] = None) -> OperationResult:
        result = self._action("backup config", "Successfully created config backup", "config", "backup", app=app)
        if result.success:
            match = _BACKUP_PATH.search(result.data.get("output", ""))
            result.data["backupPath"] = match.group(1).strip() if match else None
        return result

    # -- providers -----------------------------------------------------------

    def list_providers(self, app: AppType) -> Tuple[List[tables.ProviderRow], Optional[str]]:
        """Rows of ``provider list`` plus the footer's current id, if printed."""
        result = self._check("list providers", "provider", "list", app=app)
        return tables.parse_providers(result.stdout), tables.extract_current_id(result.stdout)

    def current_provider(self, app: AppType) -> Optional[str]:
        try:
            result = self._run("provider", "current", app=app)
        except CommandFailedError:
            return None
        return tables.extract_current_provider_line(result.stdout) if result.ok else None

    def switch_provider(self, app: AppType, provider_id: str) -> OperationResult:
        return self._action("switch provider", f"Successfully switched to provider: {provider_id}",
                            "provider", "switch", provider_id, app=app)

    def speedtest(self, app: AppType, provider_id: str) -> OperationResult:
        try:
            result = self._run("provider", "speedtest", provider_id, app=app)
        except CommandFailedError as exc:
            return OperationResult.fail(str(exc))
        if not result.ok:
            return OperationResult.fail(result.error_text())
        return OperationResult.ok(result.stdout, latency=tables.extract_latency_ms(result.stdout))

    # -- mcp servers ---------------------------------------------------------

    def list_mcp_servers(self, app: Optional[AppType] = None) -> List[tables.McpServerRow]:
        return tables.parse_mcp_servers(self._check("list MCP servers", "mcp", "list", app=app).stdout)

    def sync_mcp_servers(self, app: Optional[AppType] = None) -> OperationResult:
        return self._action("sync MCP servers", "Successfully synced MCP servers", "mcp", "sync", app=app)

    # -- prompts -------------------------------------------------------------

    def list_prompts(self, app: Optional[AppType] = None) -> List[tables.PromptRow]:
        return tables.parse_prompts(self._check("list prompts", "prompts", "list", app=app).stdout)

    def activate_prompt(self, prompt_id: str, app: Optional[AppType] = None) -> OperationResult:
        return self._action("activate prompt", f"Successfully activated prompt: {prompt_id}",
                            "prompts", "activate", prompt_id, app=app)

    def deactivate_prompt(self, app: Optional[AppType] = None) -> OperationResult:
        return self._action("deactivate prompt", "Successfully deactivated prompt", "prompts", "deactivate", app=app)

    # -- skills --------------------------------------------------------------

    def list_skills(self, app: Optional[AppType] = None) -> List[tables.SkillRow]:
        return tables.parse_skills(self._check("list skills", "skills", "list", app=app).stdout)

    def discover_skills(self, app: Optional[AppType] = None) -> List[tables.DiscoveredSkill]:
        result = self._run("skills", "discover", app=app)
        return tables.parse_discovered_skills(result.stdout) if result.ok else []

    def scan_unmanaged_skills(self, app: Optional[AppType] = None) -> List[tables.UnmanagedSkill]:
        result = self._run("skills", "scan-unmanaged", app=app)
        return tables.parse_unmanaged_skills(result.stdout) if result.ok else []

    def skill_info(self, name: str, app: Optional[AppType] = None) -> Optional[Dict[str, object]]:
        result = self._run("skills", "info", name, app=app)
        return tables.parse_skill_info(result.stdout) if result.ok else None

    def list_skill_repos(self) -> List[tables.SkillRepo]:
        result = self._run("skills", "repos", "list")
        return tables.parse_skill_repos(result.stdout) if result.ok else []

    def skill_action(self, verb: str, name: str, app: Optional[AppType] = None) -> OperationResult:
        """Run one of the per-skill verbs (install, uninstall, enable, disable)."""
        if verb not in SKILL_VERBS:
            return OperationResult.fail(f"Unknown skill action: {verb}")
        return self._action(f"{verb} skill", f"Successfully {SKILL_VERBS[verb]} skill: {name}",
                            "skills", verb, name, app=app)

    def add_skill_repo(self, repo: str) -> OperationResult:
        return self._action("add skill repo", f"Successfully added repo: {repo}", "skills", "repos", "add", repo)

    def remove_skill_repo(self, repo: str) -> OperationResult:
        return self._action("remove skill repo", f"Successfully removed repo: {repo}",
                            "skills", "repos", "remove", repo)

    def sync_skills(self, app: Optional[AppType] = None) -> OperationResult:
        return self._action("sync skills", "Successfully synced skills", "skills", "sync", app=app)

    def import_skills_from_apps(self, app: Optional[AppType] = None) -> OperationResult:
        result = self._action("import skills", "Successfully imported skills", "skills", "import-from-apps", app=app)
        if result.success:
            result.data["imported"] = tables.extract_imported_skills(result.data.get("output", ""))
        return result

    def sync_method(self) -> str:
        result = self._run("skills", "sync-method")
        match = _SYNC_METHOD.search(result.stdout) if result.ok else None
        return match.group(1).lower() if match else "auto"

    def set_sync_method(self, method: str) -> OperationResult:
        if method not in SYNC_METHODS:
            return OperationResult.fail(f"Invalid sync method: {method}")
        return self._action("set sync method", f"Successfully set sync method to: {method}",
                            "skills", "sync-method", method)

    # -- environment ---------------------------------------------------------

    def list_env_vars(self, app: Optional[AppType] = None) -> List[tables.EnvVarRow]:
        return tables.parse_env_vars(self._check("list environment variables", "env", "list", app=app).stdout)
