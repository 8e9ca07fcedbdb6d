"""
Console output helpers built on rich, plus logging routed through the same console.
"""
import logging
from typing import List, Optional

from rich.console import Console as RichConsole
from rich.logging import RichHandler
from rich.syntax import Syntax
from rich.table import Table
from rich.theme import Theme

CUSTOM_THEME = Theme({
    "info": "cyan bold",
    "success": "green bold",
    "warning": "yellow bold",
    "error": "red bold",
    "heading": "bold underline",
    "path": "magenta",
    "code": "bold white on black",
    "task": "blue",
    "prompt": "green",
    "journal": "dim",
})

# shared console instance
console = RichConsole(theme=CUSTOM_THEME, soft_wrap=True)


# --- logging ---

def setup_logging(verbose: bool = False) -> None:
    """Send buildfs/buildflow/buildcoder log records to the rich console."""
    handler = RichHandler(console=console, show_path=verbose, rich_tracebacks=True, markup=False)
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    level = logging.DEBUG if verbose else logging.WARNING
    for name in ("buildfs", "buildflow", "buildcoder"):
        logger = logging.getLogger(name)
        logger.handlers = [handler]
        logger.setLevel(level)
        logger.propagate = False


# --- message helpers ---

def info(message: str):
    console.print(f"💡 [info]INFO[/info]: {message}")


def success(message: str):
    console.print(f"✅ [success]SUCCESS[/success]: {message}")


def warning(message: str):
    console.print(f"⚠️  [warning]WARNING[/warning]: {message}")


def error(message: str):
    console.print(f"❌ [error]ERROR[/error]: {message}")


def heading(title: str):
    console.print(f"\n🎯 [heading]{title}[/heading]\n")


def journal(message: str):
    """Dim one-liner for agent actions."""
    console.print(f"  · [journal]{message}[/journal]")


def code_block(code: str, language: str = "text", title: Optional[str] = None):
    if title:
        console.print(f"\n[bold]{title}[/bold]")
    console.print(Syntax(code, language, word_wrap=True))


# --- interactive input ---

def prompt_input(prompt: str, default: str = None) -> str:
    default_str = f" ({default})" if default else ""
    value = console.input(f"📝 [prompt]{prompt}{default_str}:[/prompt] ")
    return value if value else default


def confirm(prompt: str, default: bool = True) -> bool:
    yes_no = "[Y/n]" if default else "[y/N]"
    response = console.input(f"❓ {prompt} {yes_no}: ").strip().lower()
    if not response:
        return default
    return response in ("y", "yes")


# --- tables ---

def print_table(data: list, headers: List[str] = None, title: str = "📋 Results"):
    table = Table(title=title, show_header=True, header_style="bold magenta")

    if headers:
        for h in headers:
            table.add_column(h)
    else:
        table.add_column("Field")
        table.add_column("Value")

    for row in data:
        table.add_row(*[str(cell) for cell in row])

    console.print(table)


def show_welcome():
    console.print("\n" + "═" * 50, style="bold blue")
    console.print("🚀 [bold green]BuildCoder CLI[/bold green] - autonomous build agent", end="")
    console.print(" 🤖", emoji=True)
    console.print("═" * 50 + "\n", style="bold blue")
