"""Rich-based rendering for scan progress, host results, and errors."""

import logging

from rich.console import Console
from rich.logging import RichHandler
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn, TimeElapsedColumn
from rich.text import Text
from rich.tree import Tree

from llamaprobe.models import BenchStatus, HostRecord

console = Console()

_STATUS_STYLES = {
    BenchStatus.SUCCESS: "green",
    BenchStatus.AVAILABLE: "green",
    BenchStatus.SKIPPED: "dim",
}


def setup_logging(verbose: bool = False) -> None:
    """Route library logging through the shared console so it doesn't tear the progress bar."""
    handler = RichHandler(console=console, show_path=False, rich_tracebacks=True)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[handler],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def host_tree(record: HostRecord, benchmark: bool = True) -> Tree:
    """One host as a tree: address and overall status at the root, a branch per model."""
    status = record.status
    tree = Tree(Text.assemble(
        ("IP address: ", "bold"),
        (record.address, "bold cyan"),
        "  ",
        (status.value, _STATUS_STYLES.get(status, "yellow")),
    ))
    for model, sample in record.results:
        branch = tree.add(Text(model.name, style="bold"))
        style = _STATUS_STYLES.get(sample.status, "yellow")
        branch.add(Text.assemble("Status: ", (sample.label, style)))
        if benchmark:
            branch.add(f"First token delay: {sample.first_token_ms:.0f}ms")
            branch.add(f"Tokens per second: {sample.tokens_per_second:.1f}")
    return tree


def render_error(msg: str) -> None:
    """Render an error message in red."""
    console.print(f"[bold red]Error:[/bold red] {msg}")


class ScanRenderer:
    """Progress bar plus per-host output for a running scan."""

    def __init__(self, benchmark: bool = True, quiet: bool = False) -> None:
        self._benchmark = benchmark
        self._quiet = quiet
        self._progress = Progress(
            TextColumn("[bold]Probing"),
            BarColumn(),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            console=console,
            transient=True,
            disable=quiet,
        )
        self._task_id = None

    def start(self, total: int) -> None:
        self._task_id = self._progress.add_task("probe", total=total)
        self._progress.start()

    def advance(self, done: int, total: int) -> None:
        """Progress update contract: done of total candidates finished."""
        if self._task_id is not None:
            self._progress.update(self._task_id, completed=done, total=total)

    def host(self, record: HostRecord) -> None:
        if self._quiet:
            return
        console.print(host_tree(record, self._benchmark))

    def stage(self, msg: str) -> None:
        if self._quiet:
            return
        console.print(f"\n[bold]{msg}[/bold]")

    def stop(self) -> None:
        self._progress.stop()

    def summary(self, hosts: int, rows: int, path, interrupted: bool = False) -> None:
        if interrupted:
            console.print("\n[yellow]Scan interrupted.[/yellow] Partial results kept.")
        console.print(f"\n[green]Results saved to {path}[/green] [dim]({hosts} hosts, {rows} rows)[/dim]")
