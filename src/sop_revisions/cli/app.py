"""
Main CLI application for SOP revisions.

Provides a Typer-based command-line interface for turning feedback into
change requests and for managing the version history of SOP documents.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, NoReturn, Optional

import typer
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from ..config import get_config_manager, load_config
from ..core.document_model import DocumentSnapshot
from ..errors import RevisionError, RollbackError
from ..feedback.models import ChangeRequest, FeedbackRequest
from ..feedback.processor import FeedbackProcessor
from ..version.models import VersionMetadata
from ..version.repository import JsonFileRestorePointRepository, JsonFileVersionRepository
from ..version.rollback import RollbackCoordinator
from ..version.version_control import VersionController

# Initialize Typer app
app = typer.Typer(
    name="sop-revisions",
    help="Revision control for SOP documents",
    add_completion=False,
    rich_markup_mode="rich"
)

# Global console for rich output
console = Console()

# Global state
version_controller: Optional[VersionController] = None
storage_override: Optional[Path] = None


def get_version_controller() -> VersionController:
    """Get or create a version controller backed by the JSON file store."""
    global version_controller
    if version_controller is None:
        config = load_config()
        storage_path = storage_override or config.storage_path
        version_controller = VersionController(
            config=config,
            versions=JsonFileVersionRepository(storage_path),
            restore_points=JsonFileRestorePointRepository(storage_path),
        )
    return version_controller


def _read_data(path: Path) -> Any:
    if not path.exists():
        console.print(f"[red]Error: File not found: {path}[/red]")
        raise typer.Exit(1)
    with open(path, "r", encoding="utf-8") as f:
        if path.suffix.lower() in (".yaml", ".yml"):
            return yaml.safe_load(f)
        return json.load(f)


def _fail(error: RevisionError) -> NoReturn:
    console.print(f"[red]Error: {error.message}[/red]")
    raise typer.Exit(1)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show detailed log output"),
    storage: Optional[Path] = typer.Option(None, "--storage", "-s", help="Version storage directory"),
) -> None:
    """
    Track SOP document versions, diffs, restore points and rollbacks.
    """
    global version_controller, storage_override

    version_controller = None
    storage_override = storage

    if verbose:
        logging.basicConfig(
            level=logging.INFO,
            format="%(message)s",
            handlers=[RichHandler(console=console, show_path=False)],
        )


@app.command()
def extract(
    feedback_file: Path = typer.Argument(..., help="Feedback record (JSON or YAML)"),
    document_file: Path = typer.Argument(..., help="Document snapshot the feedback refers to"),
    output_file: Optional[Path] = typer.Option(None, "--output", "-o", help="Save change requests to file"),
) -> None:
    """
    Extract change requests from a feedback record.
    """
    feedback = FeedbackRequest.from_dict(_read_data(feedback_file))
    document = DocumentSnapshot.from_dict(_read_data(document_file))

    processor = FeedbackProcessor(load_config())
    try:
        result = processor.process(feedback, document)
    except RevisionError as e:
        _fail(e)

    changes_table = Table(title=f"Change Requests ({feedback.id})")
    changes_table.add_column("ID", style="cyan")
    changes_table.add_column("Type", style="white")
    changes_table.add_column("Target", style="green")
    changes_table.add_column("Severity", style="yellow")
    changes_table.add_column("Status", style="blue")

    for change in result.changes:
        changes_table.add_row(
            change.id,
            change.type.value,
            change.target.path,
            change.severity.value,
            change.validation_status.value,
        )
    console.print(changes_table)

    for warning in result.validation.warnings if result.validation else []:
        console.print(f"[yellow]Warning: {warning.message}[/yellow]")

    for conflict in result.conflicts:
        style = "red" if conflict.blocking else "yellow"
        console.print(f"[{style}]Conflict: {conflict.description} ({conflict.resolution.strategy.value})[/{style}]")

    for recommendation in result.recommendations:
        console.print(f"[blue]Recommendation: {recommendation.title}[/blue] - {recommendation.action}")

    if output_file:
        output_file.write_text(json.dumps([c.to_dict() for c in result.changes], indent=2))
        console.print(f"[green]Change requests saved to {output_file}[/green]")


@app.command()
def commit(
    document_file: Path = typer.Argument(..., help="Document snapshot to commit (JSON or YAML)"),
    changes_file: Optional[Path] = typer.Option(None, "--changes", "-c", help="Change requests applied by this snapshot"),
    author: str = typer.Option("sop-revisions", "--author", "-a", help="Author of the changes"),
    reason: str = typer.Option("Document update", "--reason", "-r", help="Reason for the change"),
    version: Optional[str] = typer.Option(None, "--version", help="Explicit version number"),
) -> None:
    """
    Commit a document snapshot as a new version.
    """
    snapshot = DocumentSnapshot.from_dict(_read_data(document_file))
    changes: List[ChangeRequest] = []
    if changes_file:
        changes = [ChangeRequest.from_dict(c) for c in _read_data(changes_file)]

    vc = get_version_controller()
    try:
        entry = vc.create_version(
            snapshot,
            changes,
            metadata=VersionMetadata(change_reason=reason),
            author=author,
            version=version,
        )
    except RevisionError as e:
        _fail(e)

    tags = f" [magenta]({', '.join(entry.tags)})[/magenta]" if entry.tags else ""
    console.print(f"[green]Committed {snapshot.id} version {entry.version}[/green]{tags}")


@app.command()
def history(
    document_id: str = typer.Argument(..., help="Document ID"),
    max_count: int = typer.Option(10, "--count", "-n", help="Maximum number of versions to show"),
) -> None:
    """
    Show document version history.
    """
    vc = get_version_controller()
    doc_history = vc.get_version_history(document_id)

    if not doc_history.versions:
        console.print("[yellow]No version history available[/yellow]")
        return

    history_table = Table(title=f"Document History ({document_id})")
    history_table.add_column("Version", style="cyan")
    history_table.add_column("Reason", style="white")
    history_table.add_column("Author", style="green")
    history_table.add_column("Date", style="blue")
    history_table.add_column("Changes", style="yellow")
    history_table.add_column("Tags", style="magenta")

    current = doc_history.latest()
    for entry in list(reversed(doc_history.versions))[:max_count]:
        marker = "* " if current and entry.version == current.version else "  "
        change_count = len(entry.changes)

        history_table.add_row(
            f"{marker}{entry.version}",
            entry.metadata.change_reason,
            entry.created_by,
            entry.created_at.strftime("%Y-%m-%d %H:%M:%S"),
            str(change_count) if change_count else "-",
            ", ".join(entry.tags),
        )

    console.print(history_table)

    stats = doc_history.statistics
    console.print(
        f"Versions: {stats.total_versions}, Changes: {stats.total_changes}, "
        f"Stability: {stats.stability_score:.2f}"
    )


@app.command()
def diff(
    document_id: str = typer.Argument(..., help="Document ID"),
    version1: str = typer.Argument(..., help="First version"),
    version2: str = typer.Argument(..., help="Second version"),
    output_format: str = typer.Option("text", "--format", "-f", help="Output format: text, json"),
    output_file: Optional[Path] = typer.Option(None, "--output", "-o", help="Save diff to file"),
) -> None:
    """
    Show differences between two document versions.
    """
    vc = get_version_controller()

    try:
        comparison = vc.compare_versions(document_id, version1, version2)
    except RevisionError as e:
        _fail(e)

    diff_engine = vc.diff_engine

    if output_format == "text":
        diff_text = diff_engine.generate_text_diff(
            vc.get_version(document_id, version1).snapshot,
            vc.get_version(document_id, version2).snapshot,
            source_label=f"{document_id}@{version1}",
            target_label=f"{document_id}@{version2}",
        )

        if output_file:
            output_file.write_text(diff_text)
            console.print(f"[green]Diff saved to {output_file}[/green]")
        else:
            if diff_text.strip():
                console.print(Panel(
                    Syntax(diff_text, "diff", theme="monokai"),
                    title=f"Diff: {version1} → {version2}",
                    border_style="blue"
                ))
            else:
                console.print("[yellow]No differences found[/yellow]")

    elif output_format == "json":
        json_diff = json.dumps(comparison.to_dict(), indent=2)

        if output_file:
            output_file.write_text(json_diff)
            console.print(f"[green]JSON diff saved to {output_file}[/green]")
        else:
            console.print_json(json_diff)
        return

    else:
        console.print(f"[red]Error: Unknown format: {output_format}[/red]")
        raise typer.Exit(1)

    summary = diff_engine.summarize_changes(comparison)

    summary_panel = Panel.fit(
        f"""[bold]{summary['overview']}[/bold]
Compatibility: {summary['compatibility']}

[bold cyan]Content Changes:[/bold cyan]
{chr(10).join(f"• {change}" for change in summary['content_changes']) or "None"}

[bold yellow]Significant Changes:[/bold yellow]
{chr(10).join(f"• {change}" for change in summary['significant_changes']) or "None"}""",
        title="Change Summary",
        border_style="green"
    )

    console.print("\n")
    console.print(summary_panel)


@app.command()
def rollback(
    document_id: str = typer.Argument(..., help="Document ID"),
    target_version: str = typer.Argument(..., help="Version to roll back to"),
    reason: str = typer.Option("Rollback requested", "--reason", "-r", help="Reason for the rollback"),
    author: str = typer.Option("sop-revisions", "--author", "-a", help="Who performs the rollback"),
) -> None:
    """
    Roll a document back to an earlier version.
    """
    coordinator = RollbackCoordinator(get_version_controller())

    try:
        operation = coordinator.rollback(document_id, target_version, reason, author)
    except RollbackError as e:
        if e.operation is not None:
            for check in e.operation.validation.failed_checks:
                console.print(f"[red]✗ {check.name}: {check.error}[/red]")
        _fail(e)
    except RevisionError as e:
        _fail(e)

    console.print(
        f"[green]Rolled back {document_id} from {operation.from_version} to "
        f"{operation.to_version} as version {operation.resulting_version}[/green]"
    )
    for check in operation.validation.pre_checks + operation.validation.post_checks:
        console.print(f"  ✓ {check.name}")

    if operation.impact.data_loss:
        console.print("[yellow]Content present in the rolled back version was removed[/yellow]")
    if operation.requires_approval:
        console.print("[yellow]This rollback crosses a major version and requires approval[/yellow]")


@app.command("restore-points")
def restore_points(
    document_id: str = typer.Argument(..., help="Document ID"),
) -> None:
    """
    List restore points for a document.
    """
    vc = get_version_controller()
    points = vc.get_restore_points(document_id)

    if not points:
        console.print("[yellow]No restore points available[/yellow]")
        return

    table = Table(title=f"Restore Points ({document_id})")
    table.add_column("ID", style="cyan")
    table.add_column("Version", style="white")
    table.add_column("Reason", style="green")
    table.add_column("Created", style="blue")
    table.add_column("Automatic", style="yellow")

    for point in reversed(points):
        table.add_row(
            point.id,
            point.version,
            point.reason,
            point.created_at.strftime("%Y-%m-%d %H:%M:%S"),
            "yes" if point.automatic else "no",
        )

    console.print(table)


@app.command()
def restore(
    restore_point_id: str = typer.Argument(..., help="Restore point ID"),
    author: str = typer.Option("sop-revisions", "--author", "-a", help="Who performs the restore"),
) -> None:
    """
    Commit a restore point's content as a new version.
    """
    vc = get_version_controller()

    try:
        entry = vc.restore_from_point(restore_point_id, author)
    except RevisionError as e:
        _fail(e)

    console.print(f"[green]Restored {entry.document_id} as version {entry.version}[/green]")


@app.command()
def config(
    show: bool = typer.Option(False, "--show", help="Show current configuration"),
    create_default: bool = typer.Option(False, "--create-default", help="Create default config file"),
) -> None:
    """
    Manage SOP revisions configuration.
    """
    config_manager = get_config_manager()

    if create_default:
        path = config_manager.create_default_config()
        console.print(f"[green]Created default configuration at {path}[/green]")
        return

    if show:
        try:
            config_info: Dict[str, Any] = config_manager.get_config_info()
            current_config = load_config()
        except RevisionError as e:
            _fail(e)

        config_display = f"""[bold]SOP Revisions Configuration[/bold]

[bold cyan]Versioning:[/bold cyan]
• Max Restore Points: {current_config.max_restore_points}
• Major Revision Threshold: {current_config.major_revision_threshold}
• Stability Change Budget: {current_config.stability_change_budget}
• Stability Reference Hours: {current_config.stability_reference_hours}
• Significance Thresholds: {', '.join(str(t) for t in current_config.significance_thresholds)}

[bold yellow]Feedback:[/bold yellow]
• Low Confidence Threshold: {current_config.low_confidence_threshold}
• Max Clauses: {current_config.max_clauses}
• Min Clause Length: {current_config.min_clause_length}

[bold magenta]Files:[/bold magenta]
• Config File: {config_info['config_file']}
• Exists: {'Yes' if config_info['config_exists'] else 'No'}
• Storage Path: {config_info['storage_path']}"""

        console.print(Panel(config_display, border_style="green"))
        return

    # Default: show basic info
    console.print("Use [cyan]sop-revisions config --show[/cyan] to see full configuration")
    console.print("Use [cyan]sop-revisions config --create-default[/cyan] to create a default config file")


if __name__ == "__main__":
    app()
