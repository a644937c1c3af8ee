"""CLI for the Decision Clarity Scoring Engine.

Provides command-line interface for evaluating assessments and
inspecting the question registry and variants.
"""

import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from .app_logging import get_logger, setup_logging
from .config import find_config_file, get_config, load_config
from .engine import ScoringEngine, validate_assessment, validate_config_file
from .registry import get_default_registry
from .schema import (
    CaseInterpretation,
    EvaluationResult,
    Role,
    Severity,
    Variant,
    Verdict,
)

console = Console()
logger = get_logger("cli")

VERDICT_STYLES = {
    Verdict.GO: "bold green",
    Verdict.CLARIFY: "bold yellow",
    Verdict.NO_GO: "bold red",
}

SEVERITY_STYLES = {
    Severity.CRITICAL: "red",
    Severity.WARN: "yellow",
    Severity.INFO: "blue",
}


@click.group()
@click.version_option(version="1.0.0", prog_name="clarity-scorer")
@click.option(
    "--log-level",
    default="WARNING",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging level (logs go to stderr)"
)
@click.option(
    "--config", "config_path",
    type=click.Path(exists=True),
    help="Path to scorer configuration YAML (default: auto-discover)"
)
@click.pass_context
def main(ctx: click.Context, log_level: str, config_path: Optional[str]):
    """Decision Clarity Scoring Engine.

    Evaluates multi-stakeholder survey answers and returns a
    deterministic GO / CLARIFY / NO_GO recommendation with diagnostics.
    """
    setup_logging(level=log_level)
    path = Path(config_path) if config_path else find_config_file()
    ctx.obj = {"config_path": path, "explicit_config": bool(config_path)}
    if path:
        try:
            load_config(path)
        except Exception as e:
            console.print(f"[red]Error: {escape(str(e))}[/red]")
            sys.exit(1)


@main.command("evaluate")
@click.option(
    "--assessment", "-a",
    required=True,
    type=click.Path(exists=True),
    help="Path to assessment JSON or YAML file"
)
@click.option(
    "--variant", "-V",
    type=click.Choice([v.value for v in Variant], case_sensitive=False),
    help="Override the variant declared in the assessment"
)
@click.option(
    "--out", "-o",
    type=click.Path(),
    help="Output file for JSON results"
)
@click.option(
    "--json-output", "-j",
    is_flag=True,
    help="Output raw JSON instead of formatted text"
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    help="Show role scores, flag evidence and validation details"
)
@click.pass_context
def evaluate_cmd(
    ctx: click.Context,
    assessment: str,
    variant: Optional[str],
    out: Optional[str],
    json_output: bool,
    verbose: bool,
):
    """Evaluate an assessment and print the recommendation.

    Examples:
        clarity-scorer evaluate -a assessment.json
        clarity-scorer evaluate -a assessment.yaml -V FULL -v
        clarity-scorer evaluate -a assessment.json -j -o result.json
    """
    logger.info("Evaluating %s", assessment)
    try:
        _load_assessment_config(ctx, Path(assessment))
        engine = ScoringEngine(config=get_config())
        result = engine.evaluate_file(assessment, variant=variant)

        if json_output:
            output_json(result, out)
            return

        display_result(result, engine.interpret(result), verbose)
        if out:
            output_json(result, out)
            console.print(f"\n[green]Results saved to {out}[/green]")

    except Exception as e:
        logger.debug("Evaluation of %s failed", assessment, exc_info=True)
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        sys.exit(1)


@main.command("validate")
@click.option(
    "--assessment", "-a",
    type=click.Path(),
    help="Path to assessment file"
)
@click.option(
    "--config-file", "-c",
    type=click.Path(),
    help="Path to scorer configuration YAML"
)
def validate_cmd(assessment: Optional[str], config_file: Optional[str]):
    """Validate an assessment and/or configuration file.

    Examples:
        clarity-scorer validate -a assessment.json
        clarity-scorer validate -c clarity-config.yaml
    """
    if not assessment and not config_file:
        console.print("[yellow]Please specify --assessment and/or --config-file to validate[/yellow]")
        return

    all_valid = True

    if config_file:
        is_valid, issues = validate_config_file(config_file)
        if is_valid:
            console.print(f"[green]✓ Config valid: {config_file}[/green]")
        else:
            console.print(f"[red]✗ Config invalid: {config_file}[/red]")
            for issue in issues:
                console.print(f"  - {escape(issue)}")
            all_valid = False

    if assessment:
        is_valid, issues = validate_assessment(assessment)
        if is_valid:
            console.print(f"[green]✓ Assessment valid: {assessment}[/green]")
        else:
            console.print(f"[red]✗ Assessment invalid: {assessment}[/red]")
            for issue in issues:
                console.print(f"  - {escape(issue)}")
            all_valid = False

    sys.exit(0 if all_valid else 1)


@main.command("questions")
@click.option(
    "--role", "-r",
    type=click.Choice([r.value for r in Role], case_sensitive=False),
    help="Only show questions for this role"
)
@click.option(
    "--id", "question_id",
    help="Show details for a specific question"
)
def questions_cmd(role: Optional[str], question_id: Optional[str]):
    """Inspect the question registry."""
    registry = get_default_registry()

    if question_id:
        q = registry.get(question_id)
        if not q:
            console.print(f"[red]Question not found: {question_id}[/red]")
            sys.exit(1)
        console.print(Panel(q.text, title=f"[bold]{q.id}[/bold] ({q.role.value})"))
        console.print(f"Dimension: {q.dimension.value} ({q.dimension.display_name})")
        console.print(f"Answer type: {q.answer_type.value}")
        console.print(f"Reversed: {'yes' if q.is_reverse else 'no'}")
        for attr in (
            "reverse_of", "triad_group", "triad_role", "contradiction_group",
            "confidence_pair_id", "ownership_group", "trade_off_group",
            "time_pair_id", "time_position", "trigger_question_id",
        ):
            value = getattr(q, attr)
            if value:
                console.print(f"{attr}: {getattr(value, 'value', value)}")
        if q.options:
            console.print("Options:")
            for opt in q.options:
                console.print(f"  - {opt}")
        return

    questions = registry.for_role(Role(role.upper())) if role else list(registry)

    table = Table(show_header=True, header_style="bold")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Role")
    table.add_column("Dim")
    table.add_column("Type")
    table.add_column("Rev")
    table.add_column("Text")

    for q in questions:
        table.add_row(
            q.id,
            q.role.value,
            q.dimension.value,
            q.answer_type.value,
            "✓" if q.is_reverse else "",
            q.text[:70] + ("..." if len(q.text) > 70 else ""),
        )

    console.print(table)
    console.print(f"\n[dim]{len(questions)} question(s)[/dim]")


@main.command("variants")
def variants_cmd():
    """Show the configured assessment variants."""
    config = get_config()

    table = Table(show_header=True, header_style="bold")
    table.add_column("Variant", style="cyan")
    table.add_column("Role weights")
    table.add_column("Index")
    table.add_column("Process gate")
    table.add_column("Description")

    for name, variant in config.variants.items():
        weights = ", ".join(
            f"{r.value} {variant.role_weights.get(r, 0):.2f}" for r in variant.active_roles
        )
        table.add_row(
            name.value,
            weights,
            "✓" if variant.computes_index else "",
            "✓" if variant.process_is_gate else "",
            variant.description,
        )

    console.print(table)


@main.command("init-config")
@click.option(
    "--out", "-o",
    type=click.Path(),
    default="clarity-config.yaml",
    help="Output path for the configuration file"
)
@click.option(
    "--force", "-f",
    is_flag=True,
    help="Overwrite existing config file"
)
def init_config_cmd(out: str, force: bool):
    """Generate a default scorer configuration file.

    Example:
        clarity-scorer init-config --out my-config.yaml
    """
    from .config import save_default_config

    out_path = Path(out)
    if out_path.exists() and not force:
        console.print(f"[red]Error:[/red] Config file already exists: {out}")
        console.print("Use --force to overwrite")
        sys.exit(1)

    try:
        save_default_config(out_path)
        console.print(f"[green]✓[/green] Config file created: {out}")
        console.print("\nThis file configures:")
        console.print("  • index_weights - How much each dimension contributes to the clarity index")
        console.print("  • thresholds - Recommendation tiers, gate floors and detector levels")
        console.print("  • adoption_risk - Which role scores the adoption-risk gate compares")
        console.print("  • variants - Active roles and weights per assessment variant")
        console.print("\nThe scorer will look for config in this order:")
        console.print("  1. CLARITY_SCORER_CONFIG environment variable")
        console.print("  2. clarity-config.yaml beside the assessment (evaluate only)")
        console.print("  3. ./clarity-config.yaml (current directory)")
        console.print("  4. ~/.config/clarity-scorer/config.yaml")
    except Exception as e:
        console.print(f"[red]Error creating config:[/red] {escape(str(e))}")
        sys.exit(1)


def display_result(result: EvaluationResult, interpretation: CaseInterpretation, verbose: bool):
    """Display an evaluation result with rich formatting."""
    rec = result.recommendation
    verdict = rec.value.value if rec.value else "N/A"
    style = VERDICT_STYLES.get(rec.value, "bold")

    console.print(Panel(
        f"[{style}]{verdict}[/{style}]\n{rec.reason}",
        title=f"[bold]Recommendation[/bold] ({result.variant.value})",
        subtitle=rec.primary_factor.value,
    ))

    index = result.clarity_index
    if index.computed:
        value = f"{index.value:.1f}" if index.value is not None else "insufficient data"
        console.print(f"\n[bold]Clarity Index:[/bold] {value}")
        if index.label:
            console.print(f"  {index.label}")

        table = Table(show_header=True, header_style="bold")
        table.add_column("Dimension")
        table.add_column("Score", justify="right")
        table.add_column("Weight", justify="right")
        table.add_column("Contribution", justify="right")
        for item in index.breakdown:
            table.add_row(
                f"{item.dimension.value} {item.dimension.display_name}",
                f"{item.score:.1f}" if item.score is not None else "-",
                f"{item.weight:.2f}",
                f"{item.contribution:.2f}" if item.contribution is not None else "-",
            )
        console.print(table)

    if interpretation.process_readiness:
        console.print(f"\n[bold]Process readiness:[/bold] {interpretation.process_readiness}")

    if result.flags.flags:
        tree = Tree(
            f"[bold]Flags[/bold] ({result.flags.critical_count} critical, "
            f"{result.flags.warn_count} warning)"
        )
        for flag in result.flags.flags:
            color = SEVERITY_STYLES[flag.severity]
            branch = tree.add(f"[{color}]{flag.severity.value}[/{color}] {flag.flag_id.value}")
            if verbose and flag.evidence.description:
                branch.add(f"[dim]{flag.evidence.description}[/dim]")
                if flag.evidence.question_ids:
                    branch.add(f"[dim]Questions: {', '.join(flag.evidence.question_ids)}[/dim]")
        console.print()
        console.print(tree)

    if result.gates.gates:
        console.print("\n[bold]Gates:[/bold]")
        for gate in result.gates.gates:
            console.print(f"  [yellow]{gate.gate_id.value}[/yellow] {gate.flag_id}: {gate.reason}")

    if interpretation.blind_spots:
        console.print("\n[bold]Blind spots:[/bold]")
        for spot in interpretation.blind_spots:
            color = SEVERITY_STYLES[spot.severity]
            console.print(f"  {spot.rank}. [{color}]{spot.label}[/{color}]")
            if verbose:
                console.print(f"     [dim]{spot.explanation}[/dim]")

    if interpretation.checklist:
        console.print("\n[bold]Checklist:[/bold]")
        for item in interpretation.checklist:
            console.print(f"  [{item.priority}] {item.prompt} [dim]({item.responsible_role})[/dim]")

    if verbose:
        role_table = Table(title="Role scores", show_header=True, header_style="bold")
        role_table.add_column("Role")
        for dim in result.dimension_scores.case_scores:
            role_table.add_column(dim.value, justify="right")
        for role, scores in result.dimension_scores.role_scores.items():
            role_table.add_row(
                role.value,
                *[f"{s:.1f}" if s is not None else "-" for s in scores.values()],
            )
        console.print()
        console.print(role_table)

        if result.validation_details:
            console.print("\n[bold]Excluded answers:[/bold]")
            for detail in result.validation_details:
                console.print(f"  [yellow]{detail.code.value}[/yellow] {escape(detail.message)}")


def output_json(result: EvaluationResult, out: Optional[str]):
    """Output result as JSON to stdout or a file."""
    json_str = result.model_dump_json(indent=2)

    if out:
        with open(out, "w", encoding="utf-8") as f:
            f.write(json_str)
    else:
        print(json_str)


def _load_assessment_config(ctx: click.Context, assessment: Path):
    """Switch to a config file kept beside the assessment, unless --config was given."""
    obj = ctx.find_root().obj or {}
    if obj.get("explicit_config"):
        return
    path = find_config_file(assessment)
    current = obj.get("config_path")
    if path is None or (current is not None and path.resolve() == current.resolve()):
        return
    logger.info("Using configuration beside the assessment: %s", path)
    load_config(path)


if __name__ == "__main__":
    main()
