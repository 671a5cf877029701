import logging
import subprocess
from dataclasses import dataclass
from typing import List, Optional

from .errors import CommandFailedError

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    stdout: str
    stderr: str
    exit_code: int

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    def error_text(self) -> str:
        return self.stderr or self.stdout


class CommandRunner:
    """Synchronous process invoker with a bounded timeout."""

    def __init__(self, timeout: float = 30.0):
        self.timeout = timeout

    def run(self, args: List[str], cwd: Optional[str] = None, timeout: Optional[float] = None) -> CommandResult:
        """Run ``args`` and capture trimmed output.

        A non-zero exit is returned, not raised; failing to spawn or running
        past the timeout raises CommandFailedError.
        """
        timeout = timeout or self.timeout
        logger.debug("exec %s", " ".join(args))
        try:
            completed = subprocess.run(
                args,
                cwd=cwd,
                capture_output=True,
                text=True,
                timeout=timeout,
                stdin=subprocess.DEVNULL,
            )
        except subprocess.TimeoutExpired as exc:
            raise CommandFailedError(f"Command timed out after {timeout}s: {args[0]}") from exc
        except OSError as exc:
            raise CommandFailedError(f"Failed to execute {args[0]}: {exc}", stderr=str(exc)) from exc
        return CommandResult(
            stdout=(completed.stdout or "").strip(),
            stderr=(completed.stderr or "").strip(),
            exit_code=completed.returncode,
        )

    def check(self, args: List[str], what: str, **kwargs) -> CommandResult:
        """Run and raise CommandFailedError on a non-zero exit."""
        result = self.run(args, **kwargs)
        if not result.ok:
            raise CommandFailedError(f"Failed to {what}: {result.error_text()}", result.stderr, result.exit_code)
        return result
