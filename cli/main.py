"""CLI entry point — novel-translator.

Usage:
  novel-translator init -s novel.json -t "Title"      create an agent state file
  novel-translator translate -s novel.json ch1.txt    translate chapters
  novel-translator glossary -s novel.json             show or edit the glossary
  novel-translator decline "Liam" -g male             six case forms of a name
  novel-translator chunk ch1.txt                      preview chunking
  novel-translator --help                             list all commands
"""

import asyncio
import logging
import os
import sys
from pathlib import Path

# Ensure UTF-8 output on Windows so Cyrillic renders with Rich
if sys.platform == "win32":
    os.environ.setdefault("PYTHONIOENCODING", "utf-8")

import click

from cli.theme import (
    get_console,
    app_header,
    command_panel,
    success_panel,
    declension_table,
    glossary_tables,
    chunk_table,
    results_table,
)
from config.exceptions import ConfigurationError, ValidationError
from config.logging_config import setup_logging
from config.settings import Settings
from memory.novel_agent import NovelAgent
from models.enums import Gender, Language
from models.pipeline import PipelineOptions
from tools.chunker import chunk_text
from tools.transliteration import translate_and_decline
from workflow.callbacks import RichProgressCallback

console = get_console()

GENDER_CHOICES = [g.value for g in Gender]


def _init_logging(verbose: bool):
    """Configure logging based on verbosity."""
    level = logging.DEBUG if verbose else logging.INFO
    settings = Settings()
    setup_logging(level=level, log_dir=settings.log_dir, console_enabled=verbose)


def _load_agent(state_path: Path) -> NovelAgent:
    if not state_path.exists():
        console.print(f"[error]State file not found: {state_path}[/]")
        console.print("Create one with: [info]novel-translator init[/]")
        sys.exit(1)
    return NovelAgent.from_json(state_path.read_text(encoding="utf-8"))


def _save_agent(agent: NovelAgent, state_path: Path) -> None:
    state_path.parent.mkdir(parents=True, exist_ok=True)
    state_path.write_text(agent.to_json(), encoding="utf-8")


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose):
    """novel-translator — context-consistent chapter translation (EN → RU)

    \b
    Typical session:
      novel-translator init -s novel.json -t "My Novel"
      novel-translator translate -s novel.json chapters/001.txt chapters/002.txt
      novel-translator glossary -s novel.json
    """
    _init_logging(verbose)


@cli.command()
@click.option("--state", "-s", "state_path", required=True, type=click.Path(path_type=Path),
              help="Agent state JSON file to create")
@click.option("--title", "-t", required=True, help="Novel title")
@click.option("--novel-id", default=None, help="Novel id (defaults to the file stem)")
@click.option("--author", default=None, help="Author name")
@click.option("--source", "source_language", default="en", show_default=True,
              type=click.Choice([lang.value for lang in Language]), help="Source language code")
@click.option("--target", "target_language", default="ru", show_default=True,
              type=click.Choice([lang.value for lang in Language]), help="Target language code")
@click.option("--force", is_flag=True, help="Overwrite an existing state file")
def init(state_path, title, novel_id, author, source_language, target_language, force):
    """Create a new novel agent with an empty glossary."""
    if state_path.exists() and not force:
        console.print(f"[error]{state_path} already exists (use --force to overwrite)[/]")
        sys.exit(1)

    agent = NovelAgent.create(
        novel_id=novel_id or state_path.stem,
        title=title,
        source_language=source_language,
        target_language=target_language,
        author=author,
    )
    _save_agent(agent, state_path)

    console.print(success_panel("Novel created", (
        f"  Title: [stat.value]{title}[/]\n"
        f"  Languages: [stat.value]{source_language} → {target_language}[/]\n"
        f"  State: [stat.value]{state_path}[/]"
    )))
    console.print(f"\nNext: [info]novel-translator translate -s {state_path} <chapter files>[/]")


@cli.command()
@click.option("--state", "-s", "state_path", required=True, type=click.Path(path_type=Path),
              help="Agent state JSON file")
@click.argument("files", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--start", "start_chapter", default=None, type=int,
              help="Number of the first chapter (default: next after the last translated)")
@click.option("--output-dir", "-o", default=None, type=click.Path(file_okay=False, path_type=Path),
              help="Where to write translations (default: next to each input)")
@click.option("--skip-analysis", is_flag=True, help="Do not run the Analyze stage")
@click.option("--skip-editing", is_flag=True, help="Do not run the Edit stage")
@click.option("--chunk-size", default=None, type=int, help="Token budget per chunk")
@click.option("--retries", "retry_attempts", default=None, type=int, help="Retries for transport errors")
@click.option("--stop-on-failure", is_flag=True, help="Stop at the first failed chapter")
def translate(state_path, files, start_chapter, output_dir, skip_analysis, skip_editing,
              chunk_size, retry_attempts, stop_on_failure):
    """Translate chapter files in order, updating the novel's memory.

    Each file is one chapter: plain text, paragraphs separated by blank lines.

    \b
    Examples:
      novel-translator translate -s novel.json ch01.txt
      novel-translator translate -s novel.json ch*.txt -o out/ --start 5
    """
    from workflow.graph import TranslationPipeline

    agent = _load_agent(state_path)
    first = start_chapter if start_chapter is not None else agent.chapter_count + 1
    chapters = [(first + i, path.read_text(encoding="utf-8")) for i, path in enumerate(files)]
    options = PipelineOptions(
        skip_analysis=skip_analysis,
        skip_editing=skip_editing,
        chunk_size=chunk_size,
        retry_attempts=retry_attempts,
    )

    console.print(app_header())
    console.print()
    console.print(command_panel("Translate chapters", {
        "Novel": agent.title,
        "Chapters": f"{first}-{first + len(files) - 1}" if len(files) > 1 else str(first),
        "Glossary": f"{len(agent.glossary.characters)} characters, "
                    f"{len(agent.glossary.locations)} locations, {len(agent.glossary.terms)} terms",
    }))
    console.print()

    try:
        pipeline = TranslationPipeline(settings=Settings())
        cb = RichProgressCallback(console=console, total_chapters=len(chapters))
        cb.start()
        try:
            results = asyncio.run(pipeline.translate_chapters(
                agent, chapters, options=options, callback=cb, stop_on_failure=stop_on_failure,
            ))
        finally:
            cb.stop()
    except KeyboardInterrupt:
        console.print("\n[warning]Interrupted[/]")
        sys.exit(130)
    except ConfigurationError as e:
        console.print(f"\n[error]Configuration error: {e}[/]")
        sys.exit(2)
    except Exception as e:
        console.print(f"\n[error]Translation failed: {e}[/]")
        logging.getLogger(__name__).exception("Translate failed")
        sys.exit(1)

    _save_agent(agent, state_path)

    for result, path in zip(results, files):
        if not result.success:
            console.print(f"[error]Chapter {result.chapter_number}: {result.error}[/]")
            continue
        target_dir = output_dir or path.parent
        target_dir.mkdir(parents=True, exist_ok=True)
        out_path = target_dir / f"{path.stem}.{agent.config.target_language}{path.suffix or '.txt'}"
        out_path.write_text(result.final_translation, encoding="utf-8")
        console.print(f"[success]Chapter {result.chapter_number} → {out_path}[/]")

    console.print()
    console.print(results_table(results))
    total_tokens = sum(r.total_tokens_used for r in results)
    console.print(f"\n[muted]Tokens used: {total_tokens:,}[/]")

    if any(not r.success for r in results):
        sys.exit(1)


@cli.command()
@click.option("--state", "-s", "state_path", required=True, type=click.Path(path_type=Path),
              help="Agent state JSON file")
@click.option("--add-character", "character", default=None, help="Add a character by original name")
@click.option("--translation", default=None, help="Fixed translation for the new character")
@click.option("--gender", "-g", type=click.Choice(GENDER_CHOICES), default=Gender.UNKNOWN.value,
              show_default=True, help="Gender for the new character")
@click.option("--alias", "aliases", multiple=True, help="Alias of the new character (repeatable)")
def glossary(state_path, character, translation, gender, aliases):
    """Show the novel's glossary, or add a character to it."""
    agent = _load_agent(state_path)
    store = agent.glossary_store

    if character:
        try:
            added = store.add_character(
                character,
                translated_name=translation,
                gender=Gender(gender),
                aliases=list(aliases),
                first_appearance=max(agent.chapter_count, 1),
            )
        except ValidationError as e:
            console.print(f"[error]{e}[/]")
            sys.exit(1)
        _save_agent(agent, state_path)
        console.print(f"[success]{added.original_name} → {added.translated_name}[/]")
        console.print(declension_table(added.translated_name, added.declensions, added.gender.value))
        return

    console.print(app_header(f"{agent.title} · glossary v{store.version}"))
    tables = glossary_tables(agent.glossary)
    if not tables:
        console.print("[muted]Glossary is empty[/]")
        return
    for table in tables:
        console.print(table)
        console.print()


@cli.command()
@click.argument("name")
@click.option("--gender", "-g", type=click.Choice(GENDER_CHOICES), default=None,
              help="Gender (guessed from the name when omitted)")
def decline(name, gender):
    """Print the six Russian case forms of a name.

    Latin-script names are transliterated first; Cyrillic names are kept.

    \b
    Examples:
      novel-translator decline "Мария" -g female
      novel-translator decline "Liam Carter"
    """
    forms = translate_and_decline(name, gender)
    console.print(declension_table(forms.surface_form, forms.declensions, forms.gender.value))


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--max-tokens", "-m", default=None, type=int, help="Token budget per chunk")
@click.option("--sentences", is_flag=True, help="Pack sentences instead of whole paragraphs")
def chunk(file, max_tokens, sentences):
    """Show how a chapter would be split into chunks."""
    if max_tokens is None:
        max_tokens = Settings().max_tokens_per_chunk
    try:
        chunks = chunk_text(
            file.read_text(encoding="utf-8"),
            max_tokens=max_tokens,
            preserve_paragraphs=not sentences,
        )
    except ValueError as e:
        console.print(f"[error]{e}[/]")
        sys.exit(1)

    console.print(chunk_table(chunks))
    console.print(f"\n[muted]{len(chunks)} chunk(s), budget {max_tokens} tokens[/]")


def main():
    """Entry point."""
    cli()


if __name__ == "__main__":
    main()
