#!/usr/bin/env python3
"""
Read-Aloud System - Main CLI

Reads PDF or text documents aloud one sentence at a time while the
active sentence is highlighted.

Features:
- Fragment extraction with page coordinates (PDF via PyMuPDF, or TXT)
- Heuristic sentence segmentation that keeps fragment positions
- Alignment of an external sentence list back onto the fragments
- Sentence-by-sentence playback through pyttsx3 or a simulated engine
- Word timing estimates for previews
"""

import asyncio
import json
import sys
from pathlib import Path
from typing import List, Optional

import click
import fitz  # PyMuPDF
from rich.markup import escape

from readaloud import __version__
from readaloud.extract_text import extract_fragments
from readaloud.readalong.engines import Pyttsx3Engine, SimulatedEngine
from readaloud.readalong.fragments import Sentence, validate_sentences
from readaloud.readalong.language import detect_language, estimate_word_timings
from readaloud.readalong.segmenter import segment as segment_fragments
from readaloud.readalong.sentence_splitter import (
    align_all,
    split_sentences,
    validate_alignment,
)
from readaloud.readalong.speech_driver import SpeechDriver
from readaloud.readalong.synchronizer import SynchronizationState
from readaloud.utils import logger
from readaloud.utils.config import config
from readaloud.utils.errors import ReadAloudError, SpeechEngineError

ENGINES = ("simulated", "pyttsx3")


def _load_sentences(input_path: Path, quiet: bool = False) -> List[Sentence]:
    try:
        fragments = extract_fragments(input_path, quiet=quiet)
    except ReadAloudError as e:
        logger.error(str(e))
        sys.exit(1)
    return segment_fragments(fragments)


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", is_flag=True, help="Show debug output")
def cli(verbose: bool):
    """
    Read-Aloud System

    Read PDF or text documents aloud with sentence highlighting.
    """
    logger.set_verbose(verbose)


@cli.command()
@click.argument("input_file", type=click.Path(exists=True))
@click.option("--json", "as_json", is_flag=True, help="Print sentences as JSON")
@click.option("--validate", is_flag=True, help="Report sentence/fragment mismatches")
def segment(input_file: str, as_json: bool, validate: bool):
    """
    Split a document into sentences.

    Shows which page each sentence starts on and how many fragments
    it covers.
    """
    input_path = Path(input_file)
    sentences = _load_sentences(input_path, quiet=as_json)

    if as_json:
        click.echo(json.dumps([s.to_dict() for s in sentences], indent=2, ensure_ascii=False))
    else:
        logger.header(f"Sentences: {input_path.name}")
        table = logger.create_table(f"{len(sentences)} sentences", "#", "Page", "Fragments", "Text")
        for i, sentence in enumerate(sentences):
            table.add_row(str(i), str(sentence.page), str(len(sentence.fragments)), escape(sentence.text))
        logger.console.print(table)

    if validate:
        report = validate_sentences(sentences)
        if as_json:
            # Keep stdout parseable
            for issue in report.issues:
                click.echo(issue, err=True)
        elif report.is_valid:
            logger.success("All sentences match their fragments")
        else:
            for issue in report.issues:
                logger.warning(issue)


@cli.command()
@click.argument("input_file", type=click.Path(exists=True))
@click.argument("text_file", type=click.Path(exists=True))
def align(input_file: str, text_file: str):
    """
    Attach sentences from TEXT_FILE to the fragments of INPUT_FILE.

    Useful when a cleaned text export exists for the same document.
    """
    input_path = Path(input_file)
    logger.header(f"Aligning: {Path(text_file).name} -> {input_path.name}")

    try:
        fragments = extract_fragments(input_path)
    except ReadAloudError as e:
        logger.error(str(e))
        sys.exit(1)

    processed = split_sentences(Path(text_file).read_text(encoding="utf-8"))
    aligned = align_all(fragments, processed)
    logger.info(f"{len(processed)} sentences, {len(aligned)} aligned")

    table = logger.create_table("Alignment", "#", "Page", "Confidence", "Text")
    low = 0
    for i, sentence in enumerate(aligned):
        report = validate_alignment(sentence.text, sentence.fragments)
        style = "green" if report.is_valid else "red"
        if not report.is_valid:
            low += 1
        table.add_row(
            str(i),
            str(sentence.page),
            f"[{style}]{report.confidence:.2f}[/{style}]",
            escape(sentence.text),
        )
    logger.console.print(table)

    if low:
        logger.warning(f"{low} sentences aligned with low confidence")
    else:
        logger.success("All sentences aligned")


async def _read_aloud(
    sentences: List[Sentence],
    engine_name: str,
    start: int,
    rate: Optional[float],
    voice: Optional[str],
) -> Optional[SpeechEngineError]:
    loop = asyncio.get_running_loop()
    finished = asyncio.Event()
    errors: List[SpeechEngineError] = []

    if engine_name == "pyttsx3":
        engine = Pyttsx3Engine(loop=loop, voice=voice)
    else:
        engine = SimulatedEngine(loop=loop)

    def on_error(error: SpeechEngineError) -> None:
        errors.append(error)
        finished.set()

    driver = SpeechDriver(engine, sentences, rate=rate, loop=loop, on_error=on_error)
    shown = -1
    was_playing = False

    def on_state(state: SynchronizationState) -> None:
        nonlocal shown, was_playing
        index = state.current_sentence_index
        if 0 <= index < len(sentences) and index != shown:
            shown = index
            logger.sentence(sentences[index].text, index, len(sentences))
        if state.is_playing:
            was_playing = True
        elif was_playing:
            finished.set()

    driver.subscribe(on_state)

    try:
        driver.speak(start)
        if not driver.is_playing and not finished.is_set():
            # Voices may still be loading
            await asyncio.sleep(SpeechDriver.VOICE_FALLBACK_MS / 1000.0 + 0.1)
            if not driver.is_playing and not finished.is_set():
                logger.warning("Playback did not start")
                return None
        await finished.wait()
    finally:
        driver.close()
        if isinstance(engine, Pyttsx3Engine):
            engine.close()

    return errors[0] if errors else None


@cli.command()
@click.argument("input_file", type=click.Path(exists=True))
@click.option(
    "-e", "--engine",
    type=click.Choice(ENGINES),
    default=None,
    help=f"Speech engine (default: {config.speech_engine})",
)
@click.option("-s", "--start", default=0, help="Sentence index to start from")
@click.option("-r", "--rate", type=float, default=None, help="Speech rate multiplier")
@click.option("--voice", default=None, help="Voice name or id (pyttsx3 only)")
def read(
    input_file: str,
    engine: Optional[str],
    start: int,
    rate: Optional[float],
    voice: Optional[str],
):
    """
    Read a document aloud, printing each sentence as it is spoken.
    """
    input_path = Path(input_file)
    engine_name = engine or config.speech_engine
    if engine_name not in ENGINES:
        logger.error(f"Unknown speech engine '{engine_name}'")
        sys.exit(1)

    sentences = _load_sentences(input_path)
    if not sentences:
        logger.warning("No sentences found")
        return

    logger.header(f"Reading: {input_path.name} ({engine_name})")

    try:
        error = asyncio.run(_read_aloud(sentences, engine_name, start, rate, voice))
    except KeyboardInterrupt:
        logger.warning("Stopped")
        return
    except RuntimeError as e:
        logger.error(str(e))
        sys.exit(1)

    if error is not None:
        logger.error(f"Playback stopped: {error}")
        sys.exit(1)

    logger.success("Finished reading")


@cli.command()
@click.argument("text")
@click.option("-r", "--rate", type=float, default=None, help="Speech rate multiplier")
def timings(text: str, rate: Optional[float]):
    """
    Estimate when each word of TEXT is spoken.
    """
    rate = rate if rate is not None else config.speech_rate
    try:
        offsets = estimate_word_timings(text, rate)
    except ValueError as e:
        logger.error(str(e))
        sys.exit(1)

    logger.info(f"Language: {detect_language(text)}")
    table = logger.create_table(f"Word timings at rate {rate}", "Word", "Start (ms)")
    for word, offset in zip(text.split(), offsets):
        table.add_row(word, f"{offset:.0f}")
    logger.console.print(table)


@cli.command()
def info():
    """
    Show system information and configuration.
    """
    logger.header("Read-Aloud System")

    logger.console.print("[bold]Paths:[/bold]")
    logger.console.print(f"  Project root: {config.project_root}")
    logger.console.print(f"  Settings:     {config.config_path}")

    logger.console.print("\n[bold]Speech Settings:[/bold]")
    logger.console.print(f"  Engine:        {config.speech_engine}")
    logger.console.print(f"  Rate:          {config.speech_rate}")
    logger.console.print(f"  Pitch:         {config.speech_pitch}")
    logger.console.print(f"  Volume:        {config.speech_volume}")

    logger.console.print("\n[bold]Sync Settings:[/bold]")
    logger.console.print(f"  Highlight delay:  {config.highlight_delay_ms} ms")
    logger.console.print(f"  Transition delay: {config.transition_delay_ms} ms")

    logger.console.print("\n[bold]Dependencies:[/bold]")

    logger.console.print(f"  {'PyMuPDF':<12} [green]OK[/green] ({fitz.VersionBind})")

    # pyttsx3 is optional
    try:
        import pyttsx3  # noqa: F401
        logger.console.print(f"  {'pyttsx3':<12} [green]OK[/green]")
    except ImportError:
        logger.console.print(f"  {'pyttsx3':<12} [red]NOT FOUND[/red]")


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
