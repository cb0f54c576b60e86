"""
Result Renderer - terminal output for extraction results

Provides rich output for the bundle-repair CLI:
- Summary table of recovered files
- Warning list
- Syntax-highlighted file previews
"""

from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from bundle_repair.schemas.bundle import ExtractionResult, ExtractionStrategy


# Language detection based on file extension
LANGUAGE_MAP = {
    '.html': 'html',
    '.htm': 'html',
    '.css': 'css',
    '.js': 'javascript',
}

STRATEGY_STYLES = {
    ExtractionStrategy.STRUCTURAL: "green",
    ExtractionStrategy.MANUAL: "yellow",
    ExtractionStrategy.FALLBACK: "red",
}


class ResultRenderer:
    """Renders extraction results in the terminal with rich formatting"""

    def __init__(self, console: Console, syntax_theme: str = "monokai"):
        self.console = console
        self.syntax_theme = syntax_theme

    def _get_language(self, path: str) -> str:
        """Detect language from file path"""
        return LANGUAGE_MAP.get(Path(path).suffix.lower(), 'text')

    def render_summary(self, result: ExtractionResult):
        """Render strategy, metadata and file sizes"""
        style = STRATEGY_STYLES.get(result.strategy, "white")

        table = Table(title="Extracted Bundle", show_header=True, header_style="bold cyan")
        table.add_column("File", style="white")
        table.add_column("Characters", justify="right")
        table.add_column("Lines", justify="right", style="dim")

        for name, content in result.files.items():
            table.add_row(escape(name), f"{len(content):,}", str(content.count("\n") + 1))

        self.console.print(f"Strategy: [bold {style}]{result.strategy.value}[/bold {style}]")
        self.console.print(f"Model: {escape(result.used_model)}")
        self.console.print(f"[dim]{escape(result.description)}[/dim]")
        self.console.print(table)

    def render_warnings(self, result: ExtractionResult):
        """Render warnings, if any"""
        if not result.warnings:
            self.render_success("No warnings")
            return

        self.console.print(f"\n[bold yellow]{len(result.warnings)} warning(s):[/bold yellow]")
        for warning in result.warnings:
            self.console.print(f"  [yellow]-[/yellow] {escape(warning)}")

    def render_file(self, path: str, content: str, show_line_numbers: bool = True):
        """Render a file with syntax highlighting"""
        syntax = Syntax(
            content,
            self._get_language(path),
            theme=self.syntax_theme,
            line_numbers=show_line_numbers,
            word_wrap=True
        )

        panel = Panel(
            syntax,
            title=f"[bold]{escape(path)}[/bold]",
            border_style="green",
            padding=(0, 1)
        )

        self.console.print(panel)

    def render_files_written(self, directory: Path, names: list):
        """Render list of written files"""
        if not names:
            return

        self.console.print(f"\n[bold green]Files written to {escape(str(directory))}:[/bold green]")
        for name in names:
            self.console.print(f"  [green]✓[/green] {escape(name)}")

    def render_error(self, message: str, details: Optional[str] = None):
        """Render an error message"""
        error_panel = Panel(
            f"[bold red]{message}[/bold red]" +
            (f"\n\n[dim]{escape(details)}[/dim]" if details else ""),
            title="[red]Error[/red]",
            border_style="red"
        )
        self.console.print(error_panel)

    def render_success(self, message: str):
        """Render a success message"""
        self.console.print(f"[green]✓ {message}[/green]")
