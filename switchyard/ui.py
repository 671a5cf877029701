import json
from typing import Any, Dict, Iterable, List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from .interchange.models import OperationResult, Provider, ProviderListing
from .interchange.tables import (
    DiscoveredSkill,
    EnvVarRow,
    McpServerRow,
    PromptRow,
    SkillRepo,
    SkillRow,
    UnmanagedSkill,
)


def mask_secret(value: str) -> str:
    """Keep the first and last four characters of long secrets."""
    if not value:
        return ""
    if len(value) <= 8:
        return "*" * len(value)
    return f"{value[:4]}...{value[-4:]}"


class ConsoleUI:
    """Rich rendering of registry results."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def display_message(self, content: Any, style: str = None) -> None:
        self.console.print(content, style=style)

    def display_error(self, message: str) -> None:
        self.console.print(f"Error: {message}", style="red")

    def display_result(self, result: OperationResult) -> None:
        self.console.print(result.message, style="green" if result.success else "red")

    def display_json(self, data: Any) -> None:
        self.console.print_json(json.dumps(data, ensure_ascii=False))

    def display_providers(self, listing: ProviderListing, app: str) -> None:
        if not listing.providers:
            self.console.print(f"No providers configured for {app}.", style="yellow")
            return

        table = Table(title=f"Providers ({app})", title_style="bold cyan")
        table.add_column("", width=1)
        table.add_column("ID", style="green")
        table.add_column("Name")
        table.add_column("Base URL", style="blue")
        table.add_column("Model", style="yellow")

        for provider in listing.providers:
            table.add_row(
                "✓" if provider.is_active else "",
                provider.id,
                provider.name,
                provider.base_url,
                provider.model,
            )
        self.console.print(table)
        if listing.current_provider_id:
            self.console.print(f"Current: {listing.current_provider_id}", style="dim")

    def display_provider(self, provider: Provider) -> None:
        lines = [
            f"[bold]Name:[/bold] {provider.name}",
            f"[bold]App:[/bold] {provider.app.value}",
            f"[bold]Active:[/bold] {'yes' if provider.is_active else 'no'}",
            f"[bold]Base URL:[/bold] {provider.base_url}",
            f"[bold]API key:[/bold] {mask_secret(provider.api_key)}",
            f"[bold]Model:[/bold] {provider.model}",
        ]
        for tier, model in provider.model_overrides.items():
            lines.append(f"[bold]{tier.capitalize()} model:[/bold] {model}")
        if provider.provider_type:
            lines.append(f"[bold]Package:[/bold] {provider.provider_type}")
        if provider.use_prompt_cache:
            lines.append("[bold]Prompt cache:[/bold] on")
        for key, value in provider.metadata.items():
            if value not in ("", None):
                lines.append(f"[bold]{key}:[/bold] {value}")
        self.console.print(
            Panel.fit(
                "\n".join(lines),
                title=f"[bold cyan]{provider.id}[/bold cyan]",
                border_style="blue",
                padding=(1, 2),
                title_align="left",
            )
        )

    def _simple_table(self, title: str, columns: Iterable[str], rows: List[List[str]], empty: str) -> None:
        if not rows:
            self.console.print(empty, style="yellow")
            return
        table = Table(title=title, title_style="bold cyan")
        for column in columns:
            table.add_column(column)
        for row in rows:
            table.add_row(*row)
        self.console.print(table)

    def display_mcp_servers(self, servers: List[McpServerRow]) -> None:
        self._simple_table(
            "MCP Servers",
            ("ID", "Name", "Command"),
            [[server.id, server.name, server.command] for server in servers],
            "No MCP servers found.",
        )

    def display_prompts(self, prompts: List[PromptRow]) -> None:
        self._simple_table(
            "Prompts",
            ("", "ID", "Name", "Description", "Updated"),
            [["✓" if p.is_active else "", p.id, p.name, p.description, p.updated] for p in prompts],
            "No prompts found.",
        )

    def display_skills(self, skills: List[SkillRow]) -> None:
        self._simple_table(
            "Skills",
            ("ID", "Name", "Description"),
            [[skill.id, skill.name, skill.description] for skill in skills],
            "No installed skills found.",
        )

    def display_env_vars(self, variables: List[EnvVarRow]) -> None:
        self._simple_table(
            "Environment",
            ("Variable", "Value", "Source", "Location"),
            [[var.variable, mask_secret(var.value), var.source_type, var.source_location] for var in variables],
            "No environment variables found.",
        )

    def display_logs(self, entries: List[Dict[str, Any]]) -> None:
        styles = {"error": "red", "warn": "yellow", "success": "green"}
        rows = []
        for entry in entries:
            level = entry.get("level", "")
            rows.append(
                [
                    entry.get("timestamp", ""),
                    f"[{styles.get(level, 'white')}]{level}[/]",
                    entry.get("operation", ""),
                    entry.get("message", ""),
                ]
            )
        self._simple_table("Operation log", ("Time", "Level", "Operation", "Message"), rows, "No log entries.")

    def display_details(self, title: str, values: Dict[str, Any]) -> None:
        lines = [f"[bold]{key}:[/bold] {value}" for key, value in values.items()]
        self.console.print(
            Panel.fit("\n".join(lines) or "(empty)", title=f"[bold red]{title}[/bold red]", border_style="blue",
                      padding=(1, 2))
        )

    def display_status(self, status: Dict[str, Any]) -> None:
        self.display_details("Status", status)

    def display_discovered_skills(self, skills: List[DiscoveredSkill]) -> None:
        self._simple_table(
            "Available skills",
            ("", "Name", "Description"),
            [["✓" if skill.installed else "", skill.name, skill.description] for skill in skills],
            "No skills found in the configured repositories.",
        )

    def display_unmanaged_skills(self, skills: List[UnmanagedSkill]) -> None:
        self._simple_table(
            "Unmanaged skills",
            ("Name", "App", "Path"),
            [[skill.name, skill.app, skill.path] for skill in skills],
            "No unmanaged skills found.",
        )

    def display_skill_repos(self, repos: List[SkillRepo]) -> None:
        self._simple_table(
            "Skill repositories",
            ("Repository", "Branch", "Enabled"),
            [[f"{repo.owner}/{repo.name}", repo.branch, "yes" if repo.enabled else "no"] for repo in repos],
            "No skill repositories configured.",
        )

    def display_raw_config(self, text: str, path: str) -> None:
        self.console.print(f"# {path}", style="dim")
        self.console.print(Syntax(text, "json", theme="monokai", word_wrap=True))
