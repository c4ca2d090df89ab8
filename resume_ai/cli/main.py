"""
CLI interface for resume-ai.

Provides command-line access to cost estimation, role matching and
generation.
"""

import json
import logging
import sqlite3
import sys
from pathlib import Path
from typing import Optional

import typer
import yaml
from rich.console import Console
from rich.table import Table

from resume_ai.config.loader import current_config
from resume_ai.config.log_setup import setup_logging
from resume_ai.core.analysis import analyze_resume
from resume_ai.core.budget import BudgetWarning, check_budget
from resume_ai.core.builder import SECTION_FIELDS, SKILLS_SECTION, fix_grammar, generate_resume
from resume_ai.core.errors import (
    AllModelsExhaustedError,
    GenerationError,
    MalformedAIResponseError,
    QuotaExhaustedError,
)
from resume_ai.core.orchestrator import ModelFallbackOrchestrator
from resume_ai.core.pricing import (
    PRICING_TABLE,
    Complexity,
    estimate_cost,
    format_cost,
    recommend_model,
)
from resume_ai.core.role_match import score_role_match
from resume_ai.core.usage import UsageTracker
from resume_ai.sdk.openai_client import GenerationClient
from resume_ai.storage.db import DEFAULT_DB_PATH
from resume_ai.storage.repository import GenerationRepository, initialize_schema

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1

# Bad input files, config or database; reported as a one-line error
SETUP_ERRORS = (OSError, ValueError, yaml.YAMLError, sqlite3.Error)

_WARNING_STYLES = {
    BudgetWarning.NONE: "green",
    BudgetWarning.LOW: "yellow",
    BudgetWarning.CRITICAL: "red",
}


def _read_text(path: Optional[Path], text: Optional[str]) -> str:
    if path is not None:
        return path.read_text(encoding="utf-8")
    return text or ""


def _build_orchestrator(db_path: str, check_quota: bool = True) -> ModelFallbackOrchestrator:
    """Wire an orchestrator to the ledger, refusing to start once today's quota is used."""
    config = current_config()
    initialize_schema(db_path)
    repository = GenerationRepository(db_path)

    if check_quota:
        quota = repository.check_quota_status(daily_limit=config.daily_request_cap)
        if not quota.can_proceed:
            raise QuotaExhaustedError(
                f"Daily request quota of {config.daily_request_cap} reached for the {config.tier} tier. "
                "Please try again tomorrow.",
                status=429
            )

    return ModelFallbackOrchestrator(
        client=GenerationClient(),
        config=config,
        tracker=UsageTracker(config.daily_request_cap),
        repository=repository
    )


def _fail(e: Exception) -> None:
    console.print(f"[red]Error:[/] {str(e)}")
    sys.exit(EXIT_CODE_FAIL)


def _report_generation_error(e: GenerationError) -> None:
    if isinstance(e, AllModelsExhaustedError):
        console.print(f"[red]Quota exhausted:[/] {e}")
        for model, reason in e.failures:
            console.print(f"  [dim]{model}: {reason}[/]")
    elif isinstance(e, MalformedAIResponseError):
        console.print(f"[red]Malformed AI response:[/] {e}")
        console.print(f"[dim]{e.raw_text}[/]")
    else:
        console.print(f"[red]Generation failed ({e.kind.name.lower()}):[/] {e}")


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging")
):
    """resume-ai CLI."""
    setup_logging(logging.DEBUG if verbose else logging.WARNING)
    if ctx.invoked_subcommand is None:
        console.print("resume-ai - Use --help to see available commands")


@app.command()
def init(db_path: str = typer.Option(DEFAULT_DB_PATH, "--db", help="Database file")):
    """Initialize the generation ledger database."""
    try:
        initialize_schema(db_path)
        console.print("[green]✓[/] Database initialized successfully")
        sys.exit(EXIT_CODE_PASS)
    except Exception as e:
        console.print(f"[red]Error initializing database:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def pricing():
    """Show the model pricing table."""
    table = Table(title="Model Pricing (per 1M tokens)")
    table.add_column("Model")
    table.add_column("Name")
    table.add_column("Input", justify="right")
    table.add_column("Output", justify="right")

    for model in PRICING_TABLE.models:
        entry = PRICING_TABLE.get_pricing(model)
        table.add_row(model, entry.name, f"${entry.input_cost_per_1m}", f"${entry.output_cost_per_1m}")

    console.print(table)


@app.command()
def estimate(
    model: str = typer.Argument(..., help="Model identifier"),
    input_text: Optional[str] = typer.Option(None, "--input", "-i", help="Prompt text"),
    output_text: Optional[str] = typer.Option(None, "--output", "-o", help="Response text"),
    input_file: Optional[Path] = typer.Option(None, "--input-file", help="Read prompt from file"),
    output_file: Optional[Path] = typer.Option(None, "--output-file", help="Read response from file")
):
    """Estimate the cost of a prompt/response pair."""
    try:
        PRICING_TABLE.get_pricing(model)
        cost = estimate_cost(
            model,
            _read_text(input_file, input_text),
            _read_text(output_file, output_text)
        )
    except (OSError, ValueError) as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    console.print(f"Estimated cost for [bold]{model}[/]: {format_cost(cost)}")


@app.command()
def recommend(
    input_text: str = typer.Argument(..., help="Prompt text"),
    complexity: Optional[Complexity] = typer.Option(
        None, "--complexity", "-c", help="Task complexity (defaults to the feature's configured complexity)"
    ),
    feature: Optional[str] = typer.Option(None, "--feature", "-f", help="Feature tag to take complexity from")
):
    """Recommend the most cost-effective model for a task."""
    if complexity is None:
        try:
            complexity = current_config().complexity_for(feature) if feature else Complexity.MEDIUM
        except SETUP_ERRORS as e:
            _fail(e)

    recommendation = recommend_model(input_text, complexity)
    console.print(
        f"Recommended: [bold]{recommendation.model}[/] "
        f"({format_cost(recommendation.estimated_cost)}, {complexity.value})"
    )
    console.print(f"[dim]{recommendation.reasoning}[/]")


@app.command()
def score(
    resume_file: Path = typer.Argument(..., help="Plain-text résumé"),
    title: str = typer.Option("", "--title", "-t", help="Target role title"),
    description: str = typer.Option("", "--description", "-d", help="Target job description")
):
    """Score a résumé against a role without calling the API."""
    if not f"{title} {description}".strip():
        console.print("[red]Error:[/] provide --title and/or --description")
        sys.exit(EXIT_CODE_FAIL)

    try:
        resume_text = resume_file.read_text(encoding="utf-8")
    except OSError as e:
        _fail(e)

    console.print(f"Role match score: [bold]{score_role_match(title, description, resume_text)}[/]/100")


@app.command()
def generate(
    prompt: str = typer.Argument(..., help="Prompt text"),
    feature: str = typer.Option("tips-generation", "--feature", "-f", help="Feature tag"),
    json_mode: bool = typer.Option(False, "--json", help="Require a JSON object response"),
    db_path: str = typer.Option(DEFAULT_DB_PATH, "--db", help="Database file")
):
    """Generate a response with retry and model fallback."""
    try:
        result = _build_orchestrator(db_path).generate(prompt, feature, json_mode=json_mode)
    except GenerationError as e:
        _report_generation_error(e)
        sys.exit(EXIT_CODE_FAIL)
    except SETUP_ERRORS as e:
        _fail(e)

    console.print(result.text)
    console.print(f"\n[dim]{result.model} · {format_cost(result.estimated_cost)}[/]")


@app.command()
def analyze(
    resume_file: Path = typer.Argument(..., help="Plain-text résumé"),
    title: str = typer.Option("", "--title", "-t", help="Target role title"),
    description: str = typer.Option("", "--description", "-d", help="Target job description"),
    db_path: str = typer.Option(DEFAULT_DB_PATH, "--db", help="Database file")
):
    """Request structured feedback on a résumé."""
    try:
        resume_text = resume_file.read_text(encoding="utf-8")
        result = analyze_resume(_build_orchestrator(db_path), resume_text, title, description)
    except GenerationError as e:
        _report_generation_error(e)
        sys.exit(EXIT_CODE_FAIL)
    except SETUP_ERRORS as e:
        _fail(e)

    console.print("\n[bold]Resume Analysis[/bold]")
    console.print("-" * 40)
    console.print(f"Overall score: [bold]{result.overall_score}[/]/100")
    for name, value in result.category_scores.items():
        console.print(f"  {name.capitalize()}: {value}")

    if result.role_match is not None:
        console.print(f"\nRole match: [bold]{result.role_match.score}[/]/100 ({result.role_match.source})")
        if result.role_match.missing_keywords:
            console.print(f"Missing keywords: {', '.join(result.role_match.missing_keywords)}")

    for heading, items in (("Strengths", result.strengths), ("Suggestions", result.suggestions)):
        if items:
            console.print(f"\n[bold]{heading}:[/bold]")
            for item in items:
                console.print(f"  - {item}")

    console.print(f"\n[dim]{result.model} · {format_cost(result.estimated_cost)}[/]")


@app.command()
def build(
    info_file: Path = typer.Argument(..., help="Résumé info as YAML or JSON"),
    role: str = typer.Option("", "--role", "-r", help="Target role to tailor towards"),
    db_path: str = typer.Option(DEFAULT_DB_PATH, "--db", help="Database file")
):
    """Generate a full résumé from structured info."""
    try:
        with open(info_file, "r", encoding="utf-8") as f:
            info = yaml.safe_load(f)
        result = generate_resume(_build_orchestrator(db_path), info, role)
    except GenerationError as e:
        _report_generation_error(e)
        sys.exit(EXIT_CODE_FAIL)
    except SETUP_ERRORS as e:
        _fail(e)

    console.print(result.text)
    console.print(f"\n[dim]{result.model} · {format_cost(result.estimated_cost)}[/]")


@app.command()
def fix(
    section: str = typer.Argument(..., help="Section: summary, experience, education, projects, certifications, skills, or any field name"),
    value: str = typer.Argument(..., help="Text, or JSON for structured sections and skills"),
    db_path: str = typer.Option(DEFAULT_DB_PATH, "--db", help="Database file")
):
    """Correct the grammar of one résumé section."""
    structured = section.strip().lower() in SECTION_FIELDS or section.strip().lower() == SKILLS_SECTION
    try:
        parsed = json.loads(value) if structured else value
        result = fix_grammar(_build_orchestrator(db_path), section, parsed)
    except GenerationError as e:
        _report_generation_error(e)
        sys.exit(EXIT_CODE_FAIL)
    except SETUP_ERRORS as e:
        _fail(e)

    if isinstance(result.value, str):
        console.print(result.value)
    else:
        console.print_json(json.dumps(result.value))
    console.print(f"\n[dim]{result.model} · {format_cost(result.estimated_cost)}[/]")


@app.command()
def status(db_path: str = typer.Option(DEFAULT_DB_PATH, "--db", help="Database file")):
    """Send a test prompt to each configured model and show whether it is available."""
    try:
        statuses = _build_orchestrator(db_path, check_quota=False).model_status()
    except SETUP_ERRORS as e:
        _fail(e)

    table = Table(title="Model Status")
    table.add_column("Model")
    table.add_column("Status")
    table.add_column("Last error")
    for entry in statuses:
        state = "[green]available[/]" if entry.available else "[red]unavailable[/]"
        table.add_row(entry.model, state, entry.last_error or "")
    console.print(table)

    if not any(entry.available for entry in statuses):
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def usage(db_path: str = typer.Option(DEFAULT_DB_PATH, "--db", help="Database file")):
    """Show today's recorded requests, spend, quota and budget status."""
    try:
        config = current_config()
        initialize_schema(db_path)
        repository = GenerationRepository(db_path)
        daily = repository.get_daily_usage()
        spend = repository.get_daily_spend()
        quota = repository.check_quota_status(daily_limit=config.daily_request_cap)
    except SETUP_ERRORS as e:
        console.print(f"[red]Error reading usage:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    percent = min(daily.request_count / config.daily_request_cap * 100, 100)
    console.print(f"\n[bold]AI Usage for {daily.date}[/bold] ({config.tier} tier)")
    console.print("-" * 40)
    console.print(f"Requests: {daily.request_count} ({percent:.1f}% of {config.daily_request_cap} daily requests)")
    for feature, count in daily.features.items():
        console.print(f"  {feature}: {count}")
    quota_style = "green" if quota.can_proceed else "red"
    console.print(f"Remaining today: [{quota_style}]{quota.remaining_quota}[/]")
    console.print(f"Spend today: {format_cost(spend)}")

    if config.daily_budget > 0:
        budget = check_budget(config.daily_budget, spend, 0.0, config.alert_thresholds)
        style = _WARNING_STYLES[budget.warning_level]
        console.print(
            f"Budget: [{style}]{budget.usage_percent:.1f}% of ${config.daily_budget:.2f}[/] "
            f"(remaining ${budget.remaining_budget:.2f})"
        )
    else:
        console.print("Budget: [dim]no spend budget on this tier[/]")


if __name__ == "__main__":
    app()
