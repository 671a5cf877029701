"""Access to cc-switch's SQLite database through the ``sqlite3`` shell.

Statements are built as text, so every literal goes through :func:`quote`.
Identifiers and app names are validated before they get here.
"""

import json
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

from .errors import CommandFailedError
from .interchange.models import AppType
from .runner import CommandRunner

logger = logging.getLogger(__name__)

PROVIDER_COLUMNS = (
    "id",
    "app_type",
    "name",
    "settings_config",
    "website_url",
    "category",
    "meta",
    "is_current",
    "in_failover_queue",
    "cost_multiplier",
    "provider_type",
    "notes",
    "sort_index",
    "icon",
    "icon_color",
    "limit_daily_usd",
    "limit_monthly_usd",
)
PROVIDER_DEFAULTS = {
    "category": "custom",
    "meta": {},
    "is_current": 0,
    "in_failover_queue": 0,
    "cost_multiplier": "1.0",
    "provider_type": "custom",
}
MCP_APP_COLUMNS = {
    AppType.CLAUDE: "enabled_claude",
    AppType.CODEX: "enabled_codex",
    AppType.GEMINI: "enabled_gemini",
    AppType.OPENCODE: "enabled_opencode",
    AppType.KILOCODE_CLI: "enabled_kilocode_cli",
    AppType.AMP: "enabled_amp",
}


def quote(value: Any) -> str:
    """Render a Python value as an SQL literal."""
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (dict, list)):
        value = json.dumps(value, ensure_ascii=False)
    return "'" + str(value).replace("'", "''") + "'"


def assignments(changes: Dict[str, Any]) -> str:
    return ", ".join(f"{column} = {quote(value)}" for column, value in changes.items())


class SqliteCLI:
    """Run statements against one database file with the sqlite3 shell."""

    def __init__(self, runner: CommandRunner, db_path: Callable[[], str], sqlite_path: str = "sqlite3"):
        self.runner = runner
        self._db_path = db_path
        self.sqlite_path = sqlite_path

    def execute(self, sql: str) -> None:
        result = self.runner.run([self.sqlite_path, self._db_path(), sql])
        if not result.ok:
            raise CommandFailedError(f"SQLite operation failed: {result.stderr}", result.stderr, result.exit_code)

    def query_text(self, sql: str) -> str:
        """Raw ``|`` delimited output; empty on failure."""
        result = self.runner.run([self.sqlite_path, self._db_path(), sql])
        return result.stdout if result.ok else ""

    def query_json(self, sql: str) -> List[Dict[str, Any]]:
        result = self.runner.run([self.sqlite_path, "-json", self._db_path(), sql])
        if not result.ok:
            raise CommandFailedError(f"SQLite query failed: {result.stderr}", result.stderr, result.exit_code)
        if not result.stdout:
            return []
        try:
            rows = json.loads(result.stdout)
        except json.JSONDecodeError:
            logger.error("Failed to parse sqlite JSON output")
            return []
        if isinstance(rows, dict):
            return [rows]
        return [row for row in rows if isinstance(row, dict)]

    def query_one(self, sql: str) -> Optional[Dict[str, Any]]:
        rows = self.query_json(sql)
        return rows[0] if rows else None


class ProviderTable:
    """The ``providers`` table, one app_type at a time."""

    def __init__(self, db: SqliteCLI):
        self.db = db

    @staticmethod
    def _where(app: AppType, provider_id: Optional[str] = None) -> str:
        clause = f"app_type = {quote(app.value)}"
        if provider_id is not None:
            clause = f"id = {quote(provider_id)} AND {clause}"
        return clause

    def select_all(self, app: AppType) -> List[Dict[str, Any]]:
        return self.db.query_json(f"SELECT * FROM providers WHERE {self._where(app)};")

    def select_one(self, app: AppType, provider_id: str) -> Optional[Dict[str, Any]]:
        return self.db.query_one(f"SELECT * FROM providers WHERE {self._where(app, provider_id)};")

    def exists(self, app: AppType, provider_id: str) -> bool:
        return bool(self.db.query_text(f"SELECT id FROM providers WHERE {self._where(app, provider_id)};").strip())

    def is_current(self, app: AppType, provider_id: str) -> bool:
        output = self.db.query_text(f"SELECT is_current FROM providers WHERE {self._where(app, provider_id)};")
        return "1" in output

    def insert(self, app: AppType, row: Dict[str, Any]) -> None:
        values = {**PROVIDER_DEFAULTS, **{key: value for key, value in row.items() if key in PROVIDER_COLUMNS}}
        values["app_type"] = app.value
        values["is_current"] = 0
        values["in_failover_queue"] = 0
        columns = [column for column in PROVIDER_COLUMNS if column in values]
        rendered = ", ".join(quote(values[column]) for column in columns)
        self.db.execute(
            f"INSERT INTO providers ({', '.join(columns)}, created_at) "
            f"VALUES ({rendered}, strftime('%s', 'now'));"
        )

    def update(self, app: AppType, provider_id: str, changes: Dict[str, Any]) -> None:
        self.db.execute(f"UPDATE providers SET {assignments(changes)} WHERE {self._where(app, provider_id)};")

    def delete(self, app: AppType, provider_id: str) -> None:
        self.db.execute(f"DELETE FROM providers WHERE {self._where(app, provider_id)};")


class McpServerTable:
    """The ``mcp_servers`` table; enablement is one column per app."""

    def __init__(self, db: SqliteCLI):
        self.db = db

    def add(self, name: str, command: str, args: Iterable[str] = (), env: Optional[Dict[str, str]] = None,
            app: Optional[AppType] = None) -> str:
        server_id = "".join(ch if ch.isalnum() or ch == "-" else "-" for ch in name.lower())
        server_config = {
            "command": command,
            "args": list(args),
            "env": env or {},
            "disabled": False,
            "autoUpdate": False,
        }
        enabled_app = app or AppType.CLAUDE
        flags = ", ".join(str(int(column_app is enabled_app)) for column_app in MCP_APP_COLUMNS)
        self.db.execute(
            "INSERT OR REPLACE INTO mcp_servers (id, name, server_config, description, "
            f"{', '.join(MCP_APP_COLUMNS.values())}) VALUES "
            f"({quote(server_id)}, {quote(name)}, {quote(server_config)}, '', {flags});"
        )
        return server_id

    def edit(self, server_id: str, name: Optional[str] = None, command: Optional[str] = None,
             args: Optional[List[str]] = None, env: Optional[Dict[str, str]] = None) -> bool:
        changes: Dict[str, Any] = {}
        if name:
            changes["name"] = name
        if command or args is not None or env is not None:
            row = self.db.query_one(f"SELECT server_config FROM mcp_servers WHERE id = {quote(server_id)};")
            if row is None:
                return False
            config = json.loads(row.get("server_config") or "{}")
            if command:
                config["command"] = command
            if args is not None:
                config["args"] = args
            if env is not None:
                config["env"] = env
            changes["server_config"] = config
        if changes:
            self.db.execute(f"UPDATE mcp_servers SET {assignments(changes)} WHERE id = {quote(server_id)};")
        return True

    def toggle(self, server_id: str, enabled: bool, app: AppType) -> None:
        column = MCP_APP_COLUMNS[app]
        self.db.execute(f"UPDATE mcp_servers SET {column} = {int(enabled)} WHERE id = {quote(server_id)};")

    def delete(self, server_id: str) -> None:
        self.db.execute(f"DELETE FROM mcp_servers WHERE id = {quote(server_id)};")
