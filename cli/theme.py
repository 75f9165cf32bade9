"""Unified Rich theme and reusable UI helper functions for the CLI."""

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.theme import Theme

from models.glossary import Declensions, Glossary
from models.pipeline import PipelineResult, TextChunk

TRANSLATOR_THEME = Theme({
    "app.title": "bold",
    "success": "green",
    "warning": "yellow",
    "error": "red",
    "info": "blue",
    "muted": "dim",
    "accent": "cyan",
    "stat.label": "dim",
    "stat.value": "bold",
    "chapter.num": "blue",
    "character.name": "bold cyan",
})

CASE_LABELS = [
    ("nominative", "Именительный"),
    ("genitive", "Родительный"),
    ("dative", "Дательный"),
    ("accusative", "Винительный"),
    ("instrumental", "Творительный"),
    ("prepositional", "Предложный"),
]


def get_console() -> Console:
    """Return a Console instance with the translator theme applied."""
    return Console(theme=TRANSLATOR_THEME)


def app_header(title: str = "novel-translator") -> Rule:
    """Return a Rule element for the application header banner."""
    return Rule(title=f"[bold]{title}[/]", style="dim")


def command_panel(title: str, fields: dict[str, str]) -> Panel:
    """Return a Panel displaying command parameters.

    Args:
        title: Panel title (e.g. "Translate chapters").
        fields: Ordered dict of label -> value pairs.
    """
    lines = []
    for label, value in fields.items():
        lines.append(f"  [stat.label]{label}:[/] [stat.value]{value}[/]")
    body = "\n".join(lines)
    return Panel(body, title=f"[bold]{title}[/]", box=box.ROUNDED, border_style="dim", padding=(0, 2))


def success_panel(title: str, body: str) -> Panel:
    """Return a green-bordered Panel for success results."""
    return Panel(body, title=f"[success]{title}[/]", box=box.ROUNDED, border_style="green", padding=(0, 2))


def declension_table(name: str, declensions: Declensions, gender: str = "") -> Table:
    """Six-case table for one name."""
    title = f"[character.name]{name}[/]" + (f" [muted]({gender})[/]" if gender else "")
    table = Table(title=title, box=box.ROUNDED, border_style="dim", padding=(0, 1))
    table.add_column("Case", style="muted")
    table.add_column("Form", style="stat.value")
    forms = declensions.to_dict()
    for key, label in CASE_LABELS:
        table.add_row(label, forms[key])
    return table


def glossary_tables(glossary: Glossary) -> list[Table]:
    """Characters, locations and terms as Rich tables; empty sections are omitted."""
    tables = []

    if glossary.characters:
        table = Table(title="Characters", box=box.ROUNDED, border_style="dim", padding=(0, 1))
        table.add_column("Original", style="character.name")
        table.add_column("Translation")
        table.add_column("Gender", style="muted")
        table.add_column("Genitive", style="muted")
        table.add_column("Dative", style="muted")
        table.add_column("Aliases", style="muted")
        for c in glossary.characters:
            table.add_row(
                c.original_name,
                c.translated_name,
                c.gender.value,
                c.declensions.genitive,
                c.declensions.dative,
                ", ".join(c.aliases),
            )
        tables.append(table)

    if glossary.locations:
        table = Table(title="Locations", box=box.ROUNDED, border_style="dim", padding=(0, 1))
        table.add_column("Original", style="accent")
        table.add_column("Translation")
        table.add_column("Type", style="muted")
        for loc in glossary.locations:
            table.add_row(loc.original_name, loc.translated_name, loc.type.value)
        tables.append(table)

    if glossary.terms:
        table = Table(title="Terms", box=box.ROUNDED, border_style="dim", padding=(0, 1))
        table.add_column("Original", style="accent")
        table.add_column("Translation")
        table.add_column("Category", style="muted")
        for t in glossary.terms:
            table.add_row(t.original_term, t.translated_term, t.category.value)
        tables.append(table)

    return tables


def chunk_table(chunks: list[TextChunk], preview_chars: int = 60) -> Table:
    """Chunk ids, token estimates and a first-line preview."""
    table = Table(box=box.ROUNDED, border_style="dim", show_header=True, padding=(0, 1))
    table.add_column("Chunk", style="chapter.num")
    table.add_column("Tokens", justify="right", style="stat.value")
    table.add_column("Preview")
    for chunk in chunks:
        preview = chunk.content.replace("\n", " ")
        if len(preview) > preview_chars:
            preview = preview[:preview_chars] + "..."
        table.add_row(chunk.id, str(chunk.token_count), preview)
    return table


def results_table(results: list[PipelineResult]) -> Table:
    """One row per chapter with the outcome of each stage."""
    table = Table(box=box.ROUNDED, border_style="dim", show_header=True, padding=(0, 1))
    table.add_column("Chapter", style="chapter.num")
    table.add_column("Status")
    table.add_column("Analyze")
    table.add_column("Translate")
    table.add_column("Edit")
    table.add_column("Tokens", justify="right")

    def _mark(stage) -> str:
        if stage is None:
            return "[muted]-[/]"
        if stage.skipped:
            return "[warning]skipped[/]"
        return "[success]ok[/]" if stage.success else "[error]failed[/]"

    for r in results:
        status = f"[success]{r.status.value}[/]" if r.success else f"[error]{r.status.value}[/]"
        table.add_row(
            str(r.chapter_number),
            status,
            _mark(r.stage1),
            _mark(r.stage2),
            _mark(r.stage3),
            f"{r.total_tokens_used:,}",
        )
    return table
