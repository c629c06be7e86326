"""Reports over the result of a go-offline run."""

import json

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .models import BatchResult, OfflineResult


def _batch_json(batch: BatchResult) -> dict:
    return {
        "resolved": [
            {
                "coordinate": artifact.coordinate.to_coord_str(),
                "file": artifact.file_name,
                "repository": artifact.repository,
                "url": artifact.url,
            }
            for artifact in sorted(batch.artifacts, key=lambda a: str(a.coordinate))
        ],
        "failed": [
            {"coordinate": str(outcome.coordinate), "reason": outcome.error}
            for outcome in batch.failures
        ],
    }


def format_json_report(result: OfflineResult) -> str:
    """Format the result as JSON, dependencies and plugins kept apart."""
    return json.dumps(
        {
            "dependencies": _batch_json(result.dependencies),
            "plugins": _batch_json(result.plugins),
        },
        indent=2,
    )


def _batch_table(title: str, batch: BatchResult) -> Table:
    table = Table(title=title)
    table.add_column("Artifact")
    table.add_column("File")
    table.add_column("Repository")
    table.add_column("Status")

    for artifact in sorted(batch.artifacts, key=lambda a: str(a.coordinate)):
        table.add_row(
            escape(str(artifact.coordinate)), artifact.file_name, artifact.repository, "[green]resolved[/green]"
        )
    for outcome in batch.failures:
        table.add_row(escape(str(outcome.coordinate)), "", "", f"[red]failed[/red]: {escape(outcome.error or '')}")
    return table


def render_report(result: OfflineResult, console: Console | None = None) -> None:
    """Print the resolved plugins and dependencies as tables."""
    console = console or Console()
    console.print(_batch_table("Plugins", result.plugins))
    console.print(_batch_table("Dependencies", result.dependencies))
    if result.has_failures:
        failed = len(result.plugins.failures) + len(result.dependencies.failures)
        console.print(f"{failed} artifact(s) could not be resolved", style="yellow")
