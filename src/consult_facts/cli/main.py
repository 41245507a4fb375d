"""CLI for consult-facts: check-config / extract / import-note / run / show-record commands."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

import typer
import yaml
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from consult_facts.core.config import AppSettings
from consult_facts.core.logging_config import setup_logging
from consult_facts.core.startup_checks import validate_settings
from consult_facts.core.types import SYNTHETIC_SOURCE
from consult_facts.exceptions import ConfigurationError, PersistenceError
from consult_facts.extraction.extractor import FactExtractor
from consult_facts.mapping.policy import DEFAULT_POLICY, ConfidencePolicy, load_policy
from consult_facts.mapping.registry import MappingRegistry, build_default_registry
from consult_facts.models import ConsultationRecord, ExtractedFact, PipelineResult
from consult_facts.persistence.record_store import DocumentConsultationSource, DocumentRecordStore
from consult_facts.services.pipeline import create_backend, create_pipeline, with_overrides
from consult_facts.validation.validator import FactValidator

app = typer.Typer(name="consult-facts", help="Turn consultation notes into questionnaire facts")
console = Console()


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level")) -> None:
    """Configure logging from CONSULT_FACTS_OBSERVABILITY_* before any command runs."""
    settings = _load_settings()
    if verbose:
        settings.observability.log_level = "DEBUG"
    setup_logging(settings.observability)


# ── Helpers ─────────────────────────────────────────────────────────


def _load_settings() -> AppSettings:
    try:
        return AppSettings()
    except ValidationError as exc:
        console.print(f"[red]Invalid settings:[/red] {exc}")
        raise typer.Exit(code=1) from exc


def _load_policy(settings: AppSettings) -> ConfidencePolicy:
    if settings.pipeline.policy_path is None:
        return DEFAULT_POLICY
    return load_policy(settings.pipeline.policy_path)


def _load_document(path: Path) -> Any:
    """Read a JSON or YAML document (chosen by file suffix)."""
    if not path.exists():
        raise typer.BadParameter(f"File not found: {path}")
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix in (".yaml", ".yml"):
            return yaml.safe_load(text)
        return json.loads(text)
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise typer.BadParameter(f"Could not parse {path}: {exc}") from exc


def _load_record(path: Path) -> ConsultationRecord:
    raw = _load_document(path)
    if not isinstance(raw, dict):
        raise typer.BadParameter(f"Expected a consultation object in {path}")
    try:
        return ConsultationRecord.model_validate(raw)
    except ValidationError as exc:
        raise typer.BadParameter(f"Invalid consultation record in {path}: {exc}") from exc


def _print_problems(exc: ConfigurationError) -> None:
    console.print(f"[red]{exc}[/red]")
    for problem in exc.problems:
        console.print(f"  - {problem}")


def _facts_table(title: str, facts: list[ExtractedFact]) -> Table:
    table = Table(title=title)
    table.add_column("Question", style="cyan")
    table.add_column("Value", justify="right")
    table.add_column("Confidence", justify="right")
    table.add_column("Source", style="green")
    for fact in facts:
        table.add_row(
            fact.question_id,
            str(fact.answer_value),
            f"{fact.confidence:.2f}",
            fact.source,
        )
    return table


def _print_result(result: PipelineResult) -> None:
    status = "[green]success[/green]" if result.success else "[red]failed[/red]"
    console.print(f"[bold]Status:[/bold] {status}")
    if result.record_id:
        console.print(f"[bold]Record:[/bold] {result.record_id}")
    console.print(
        f"[bold]Facts:[/bold] {result.fact_count} kept, {result.skipped_fact_count} skipped"
    )
    if result.metadata is not None:
        console.print(f"[bold]Average confidence:[/bold] {result.metadata.average_confidence:.2f}")
    if result.facts:
        console.print(_facts_table("Facts", result.facts))
    for error in result.errors or []:
        console.print(f"[yellow]{error}[/yellow]")


# ── Commands ────────────────────────────────────────────────────────


@app.command("check-config")
def check_config() -> None:
    """Validate settings, confidence policy and mapping registry."""
    settings = _load_settings()
    try:
        policy = _load_policy(settings)
        registry = build_default_registry(policy)
        validate_settings(settings, registry)
    except ConfigurationError as exc:
        _print_problems(exc)
        raise typer.Exit(code=1) from exc

    table = Table(title=f"Mapping rules (policy v{policy.version})")
    table.add_column("Question ID", style="cyan")
    table.add_column("Label")
    table.add_column("Source", style="green")
    table.add_column("Description", max_width=50)
    for rule in registry:
        table.add_row(rule.question_id, rule.question_label, rule.source, rule.description)
    console.print(table)
    console.print(
        f"[green]Configuration OK[/green]: {len(registry)} rule(s), "
        f"{settings.persistence.backend} backend, "
        f"default funnel '{settings.pipeline.default_funnel_slug}'"
    )


@app.command()
def extract(
    note_file: Path = typer.Argument(..., help="Consultation record (JSON or YAML)"),
    min_confidence: float = typer.Option(0.0, "--min-confidence", min=0.0, max=1.0),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
) -> None:
    """Extract and validate facts from a consultation file without persisting."""
    settings = _load_settings()
    try:
        registry: MappingRegistry = build_default_registry(_load_policy(settings))
    except ConfigurationError as exc:
        _print_problems(exc)
        raise typer.Exit(code=1) from exc

    record = _load_record(note_file)
    if not isinstance(record.content, dict):
        console.print("[red]INVALID_CONTENT_STRUCTURE: Invalid content structure[/red]")
        raise typer.Exit(code=1)

    result = FactExtractor(registry).extract(record, min_confidence=min_confidence)
    report = FactValidator().validate(result.extracted_facts)

    if as_json:
        payload = {
            "consultNoteId": result.consult_note_id,
            "patientId": result.patient_id,
            "extractorVersion": result.extractor_version,
            "extractedAt": result.extracted_at,
            "extractedFacts": [f.to_dict() for f in result.extracted_facts],
            "metadata": result.metadata.to_dict(),
            "validation": {"valid": report.valid, "errors": report.errors},
        }
        typer.echo(json.dumps(payload, indent=2))
        return

    console.print(_facts_table(f"Facts for {result.consult_note_id}", result.extracted_facts))
    console.print(
        f"{result.metadata.total_facts_extracted} fact(s), "
        f"average confidence {result.metadata.average_confidence:.2f}, "
        f"extractor {result.extractor_version}"
    )
    for error in report.errors:
        console.print(f"[yellow]{error}[/yellow]")


@app.command("import-note")
def import_note(
    note_file: Path = typer.Argument(..., help="Consultation record (JSON or YAML)"),
) -> None:
    """Store a consultation record in the configured backend."""
    settings = _load_settings()
    if settings.persistence.backend == "memory":
        console.print(
            "[yellow]Memory backend: the note is discarded when this command exits. "
            "Set CONSULT_FACTS_PERSISTENCE_BACKEND=file to keep it.[/yellow]"
        )
    record = _load_record(note_file)
    source = DocumentConsultationSource(create_backend(settings))
    try:
        source.save_consultation_record(record)
    except PersistenceError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc
    console.print(f"[green]Imported consultation {record.consult_note_id}[/green]")


@app.command()
def run(
    consult_note_id: str = typer.Argument(..., help="Consultation note id"),
    min_confidence: Optional[float] = typer.Option(
        None, "--min-confidence", min=0.0, max=1.0, help="Override the configured threshold"
    ),
    skip_low_confidence: Optional[bool] = typer.Option(
        None,
        "--skip-low-confidence/--keep-low-confidence",
        help="Drop low-confidence facts during extraction",
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Extract and validate only"),
    funnel: Optional[str] = typer.Option(None, "--funnel", help="Target funnel slug"),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
) -> None:
    """Run the full pipeline for one stored consultation."""
    settings = _load_settings()
    try:
        pipeline = create_pipeline(settings)
    except ConfigurationError as exc:
        _print_problems(exc)
        raise typer.Exit(code=1) from exc

    options = with_overrides(
        pipeline.default_options,
        min_confidence=min_confidence,
        skip_low_confidence=skip_low_confidence,
        dry_run=dry_run,
        funnel_slug=funnel,
    )
    result = pipeline.run(consult_note_id, options)

    if as_json:
        typer.echo(json.dumps(result.to_dict(), indent=2))
    else:
        _print_result(result)
    if not result.success:
        raise typer.Exit(code=1)


@app.command("show-record")
def show_record(
    consult_note_id: str = typer.Argument(..., help="Consultation note id"),
) -> None:
    """Print the synthetic record materialized for a consultation."""
    settings = _load_settings()
    store = DocumentRecordStore(create_backend(settings), settings.persistence.funnels)
    try:
        record = store.find_latest_record(consult_note_id, SYNTHETIC_SOURCE)
        facts = store.list_facts(record.id) if record is not None else []
    except PersistenceError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc

    if record is None:
        console.print(f"[red]No synthetic record for consultation {consult_note_id}[/red]")
        raise typer.Exit(code=1)

    console.print(f"[bold]Record:[/bold] {record.id}")
    console.print(f"[bold]Patient:[/bold] {record.patient_id}")
    console.print(f"[bold]Funnel:[/bold] {record.funnel} ({record.funnel_id})")
    console.print(f"[bold]Status:[/bold] {record.status}")
    console.print(
        f"[bold]Extractor:[/bold] {record.metadata.extractor_version}, "
        f"{record.metadata.fact_count} fact(s), "
        f"average confidence {record.metadata.average_confidence:.2f}"
    )

    table = Table(title="Persisted facts")
    table.add_column("Question", style="cyan")
    table.add_column("Value", justify="right")
    table.add_column("Confidence", justify="right")
    table.add_column("Source", style="green")
    for fact in sorted(facts, key=lambda f: f.question_id):
        table.add_row(
            fact.question_id,
            str(fact.answer_value),
            f"{fact.confidence:.2f}",
            fact.extraction_source,
        )
    console.print(table)


if __name__ == "__main__":
    app()
