"""
Rich Terminal UI Components
Visual components for the CardSwap REPL.
"""

from typing import Optional

from rich.box import ROUNDED, SIMPLE
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from cardswap.session import Phase, SessionState

PHASE_STYLES = {
    Phase.NO_CREDENTIAL: "yellow",
    Phase.IDLE: "green",
    Phase.GENERATING: "cyan",
    Phase.REFINING: "magenta",
}


class SessionUI:
    """Rich terminal UI for a card-swap session."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()
        self._progress: Optional[Progress] = None

    def print(self, message: str, style: str = ""):
        self.console.print(message, style=style or None)

    def print_success(self, message: str):
        self.console.print(f"[green]{message}[/green]")

    def print_error(self, message: str):
        self.console.print(f"[red]{message}[/red]")

    def print_warning(self, message: str):
        self.console.print(f"[yellow]{message}[/yellow]")

    def print_info(self, message: str):
        self.console.print(f"[blue]{message}[/blue]")

    def print_banner(self, variant: str, cost: Optional[str] = None):
        banner = (
            "Trading-card character swap\n"
            "Type 'help' for commands, 'quit' to exit"
        )
        if cost:
            banner += f"\n[dim]{cost}[/dim]"
        self.console.print(Panel(
            banner,
            title=f"CardSwap ({variant})",
            border_style="blue",
            box=ROUNDED,
        ))

    def prompt(self, state: SessionState) -> str:
        style = PHASE_STYLES.get(state.phase, "cyan")
        try:
            return self.console.input(f"[bold {style}]cardswap:{state.phase.value}>[/bold {style}] ")
        except EOFError:
            return "quit"

    def print_state(self, state: SessionState):
        """Print a session dashboard."""
        table = Table(show_header=False, box=SIMPLE, padding=(0, 1))
        table.add_column("Key", style="bold")
        table.add_column("Value")

        style = PHASE_STYLES.get(state.phase, "white")
        table.add_row("Phase", f"[{style}]{state.phase.value}[/{style}]")
        table.add_row("Credential", f"{state.credential_mode} ({'set' if state.credential_present else 'missing'})")
        table.add_row("", "")
        for label, asset in (("Reference", state.reference), ("Character", state.character)):
            if asset:
                table.add_row(label, f"{asset.filename or '-'}  {asset.width}x{asset.height}  {asset.mime_type}")
            else:
                table.add_row(label, "[dim]not set[/dim]")
        table.add_row("Aspect ratio", state.aspect_ratio.value)
        table.add_row("Name", state.character_name or "[dim]-[/dim]")
        table.add_row("Pose/effect", state.user_instructions or "[dim]-[/dim]")
        table.add_row("Generated", "[green]yes[/green]" if state.generated_image else "[dim]no[/dim]")
        if state.error:
            table.add_row("Error", f"[red]{state.error.message}[/red]")

        self.console.print(Panel(
            table,
            title="[bold]Session[/bold]",
            border_style="cyan",
            box=ROUNDED,
        ))

    def start_spinner(self, message: str):
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            console=self.console,
            transient=True,
        )
        self._progress.start()
        self._progress.add_task(message)

    def stop_spinner(self):
        if self._progress is not None:
            self._progress.stop()
            self._progress = None

    def print_help(self):
        self.console.print(Panel(
            HELP_TEXT,
            title="[bold]CardSwap REPL Help[/bold]",
            border_style="blue",
            box=ROUNDED,
        ))


HELP_TEXT = """
[bold]CREDENTIAL[/bold]
  key <API key>           Enter and store a Gemini API key
  select-key              Re-select the host-provided key
  clear-key               Forget the stored key

[bold]INPUTS[/bold]
  reference <path>        Load the reference card (file picker)
  character <path>        Load the character image (file picker)
  drop <slot> <path>      Load as a drag-and-drop (image/* only)
  remove <slot>           Remove reference|character
  name [text]             Character name for the card (empty clears)
  pose [text]             Pose/effect instruction (empty clears)

[bold]GENERATION[/bold]
  generate                Generate the swapped card
  refine <instruction>    Edit the current card
  download [dir]          Save as swapped-card-<ms>.png

[bold]OTHER[/bold]
  status                  Show session state
  cost                    Show estimated cost per image
  help                    Show this help
  quit/exit               Exit REPL
"""


def create_ui() -> SessionUI:
    """Create a SessionUI instance."""
    return SessionUI()
