import json
import logging
import os
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

MAX_LOG_ENTRIES = 1000
LOG_LEVELS = ("info", "warn", "error", "success")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def default_app_config() -> Dict[str, Any]:
    return {
        "version": "1.0.0",
        "lastUpdated": _now(),
        "settings": {
            "lastProviderId": None,
            "lastProfileId": None,
            "autoSwitch": False,
            "theme": "dark",
            "notifications": True,
        },
    }


class AppStateStore:
    """Small JSON files kept in the switchyard data directory."""

    def __init__(self, data_dir: str):
        self.data_dir = Path(os.path.expanduser(data_dir))
        self.config_path = self.data_dir / "config.json"
        self.logs_path = self.data_dir / "logs.json"

    def _ensure_dir(self) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def _read_json(self, path: Path) -> Optional[Dict[str, Any]]:
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as file_obj:
                data = json.load(file_obj)
        except (OSError, json.JSONDecodeError) as exc:
            logger.error("Error reading %s: %s", path, exc)
            return None
        return data if isinstance(data, dict) else None

    def _write_json(self, path: Path, data: Dict[str, Any]) -> None:
        self._ensure_dir()
        with open(path, "w", encoding="utf-8") as file_obj:
            json.dump(data, file_obj, ensure_ascii=False, indent=2)

    # -- app config ----------------------------------------------------------

    def get_app_config(self) -> Dict[str, Any]:
        config = self._read_json(self.config_path)
        if config is None:
            return default_app_config()
        defaults = default_app_config()
        config["settings"] = {**defaults["settings"], **(config.get("settings") or {})}
        return config

    def save_app_config(self, config: Dict[str, Any]) -> None:
        config["lastUpdated"] = _now()
        self._write_json(self.config_path, config)

    def get_setting(self, key: str) -> Any:
        return self.get_app_config()["settings"].get(key)

    def update_settings(self, **settings: Any) -> Dict[str, Any]:
        config = self.get_app_config()
        config["settings"].update(settings)
        self.save_app_config(config)
        return config

    def last_provider_id(self) -> Optional[str]:
        return self.get_setting("lastProviderId")

    # -- operation log -------------------------------------------------------

    def get_logs(self, limit: int = 100) -> List[Dict[str, Any]]:
        data = self._read_json(self.logs_path) or {}
        logs = data.get("logs") or []
        return logs[-limit:] if limit > 0 else []

    def _save_logs(self, logs: List[Dict[str, Any]]) -> None:
        self._write_json(self.logs_path, {"logs": logs, "maxEntries": MAX_LOG_ENTRIES})

    def add_log(self, level: str, operation: str, message: str, details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        if level not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {level}")
        entry: Dict[str, Any] = {
            "id": f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}",
            "timestamp": _now(),
            "level": level,
            "operation": operation,
            "message": message,
        }
        if details:
            entry["details"] = details
        logs = self.get_logs(MAX_LOG_ENTRIES)
        logs.append(entry)
        self._save_logs(logs[-MAX_LOG_ENTRIES:])
        return entry

    def clear_logs(self) -> None:
        self._save_logs([])
