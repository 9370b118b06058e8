#!/usr/bin/env python3
"""
Sprout CLI

Command-line interface for growth percentiles, milestone lookups and
developmental assessment reports.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

console = Console()


def setup_paths():
    """Add the project root to sys.path for imports."""
    root = Path(__file__).parent
    if str(root) not in sys.path:
        sys.path.insert(0, str(root))


setup_paths()


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
    )


STATUS_COLORS = {
    "current": "green",
    "upcoming": "cyan",
    "achieved": "blue",
    "overdue": "yellow",
}


def _percentile_color(percentile: float) -> str:
    if percentile < 3 or percentile >= 97:
        return "red"
    if percentile < 15 or percentile >= 85:
        return "yellow"
    return "green"


@click.group()
@click.version_option(version="0.1.0", prog_name="sprout")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
def cli(verbose: bool):
    """
    Sprout - Developmental Assessment Engine

    Track a child's growth and developmental milestones against WHO and
    CDC reference data.
    """
    setup_logging(verbose)


@cli.command()
@click.option("--age-months", type=int, required=True, help="Child's age in months")
@click.option("--sex", type=click.Choice(["male", "female", "other"]), required=True, help="Child's sex")
@click.option("--weight", type=float, required=True, help="Weight in kg")
@click.option("--height", type=float, required=True, help="Height/length in cm")
@click.option("--head", type=float, help="Head circumference in cm")
def growth(age_months: int, sex: str, weight: float, height: float, head: Optional[float]):
    """
    Show growth percentiles for a child.

    Example:

        sprout growth --age-months 12 --sex male --weight 9.6 --height 75.7
    """
    from knowledge.growth import assess_growth

    try:
        results = assess_growth(age_months, sex, weight, height, head)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    table = Table(title=f"Growth at {age_months} months ({sex})")
    table.add_column("Measurement")
    table.add_column("Value", justify="right")
    table.add_column("Percentile", justify="right")
    table.add_column("Z", justify="right")
    table.add_column("Interpretation")

    for r in results:
        color = _percentile_color(r.percentile)
        unit = "kg" if r.metric == "weight" else "cm"
        table.add_row(
            r.metric.replace("_", " ").capitalize(),
            f"{r.value:g} {unit}",
            f"[{color}]{r.percentile:.1f}[/{color}]",
            f"{r.z_score:+.2f}",
            r.interpretation,
        )

    console.print(table)
    if head is not None and age_months >= 36:
        console.print("[dim]Head circumference is only charted under 36 months[/dim]")
    console.print("[dim]Percentiles are approximate and are not a clinical measurement.[/dim]")


@cli.command()
@click.argument("age_months", type=int)
@click.option("--domain", type=click.Choice(["motor", "language", "cognitive", "social", "sensory"]),
              help="Only show one domain")
@click.option("--achieved", type=str, default="", help="Comma-separated ids already achieved")
@click.option("--next", "next_count", type=int, default=0, help="Also list the next N milestones")
def milestones(age_months: int, domain: Optional[str], achieved: str, next_count: int):
    """
    List milestones for an age, grouped by status.

    Example:

        sprout milestones 10 --domain motor --achieved pincer-grasp
    """
    from knowledge.milestones import format_age_range
    from src.engines import current_progress, resolve_window, upcoming_milestones

    achieved_ids = {a.strip() for a in achieved.split(",") if a.strip()}
    try:
        window = resolve_window(age_months, achieved_ids)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    if domain:
        window = window.by_domain(domain)

    tree = Tree(f"[bold]Milestones at {age_months} months[/bold]")
    for status, color in STATUS_COLORS.items():
        group = getattr(window, status)
        if not group:
            continue
        branch = tree.add(f"[{color}]{status.title()}[/{color}] ({len(group)})")
        for m in group:
            branch.add(
                f"{m.title} [dim]{m.id} · {m.domain.value} · "
                f"{format_age_range(m.min_months, m.max_months)}[/dim]"
            )
    console.print(tree)

    progress = current_progress(age_months, achieved_ids)
    console.print(
        f"\n[bold]Progress:[/bold] {progress['achieved']}/{progress['total']} "
        f"current milestones ({progress['percent']}%)"
    )

    if next_count:
        table = Table(title="Coming up")
        table.add_column("Milestone")
        table.add_column("Domain")
        table.add_column("Window")
        for m in upcoming_milestones(age_months, count=next_count):
            table.add_row(m.title, m.domain.value, format_age_range(m.min_months, m.max_months))
        console.print(table)


@cli.command()
@click.option("--region", type=click.Choice(["afro", "amro", "searo", "euro", "emro", "wpro"]),
              help="WHO region")
def sources(region: Optional[str]):
    """
    List the references behind the milestone and growth data.
    """
    from knowledge.milestones import get_sources, get_sources_for_region

    citations = get_sources_for_region(region) if region else get_sources()

    table = Table(title=f"Sources ({region.upper()})" if region else "Sources")
    table.add_column("Title")
    table.add_column("Organization")
    table.add_column("Year", justify="right")
    table.add_column("URL", overflow="fold")
    for c in citations:
        table.add_row(c.title, c.organization, str(c.year), c.url)
    console.print(table)


@cli.command()
@click.argument("response_path", type=click.Path(exists=True))
@click.option("--age-months", type=int, required=True, help="Child's age in months")
@click.option("--sex", type=click.Choice(["male", "female", "other"]), required=True, help="Child's sex")
@click.option("--weight", type=float, required=True, help="Weight in kg")
@click.option("--height", type=float, required=True, help="Height/length in cm")
@click.option("--head", type=float, help="Head circumference in cm")
@click.option("--region", type=click.Choice(["afro", "amro", "searo", "euro", "emro", "wpro"]),
              help="WHO region for citations")
@click.option("--format", "fmt", type=click.Choice(["summary", "json", "markdown"]), default="summary",
              help="Output format")
@click.option("--output", "-o", type=click.Path(), help="Output file path")
def assess(
    response_path: str,
    age_months: int,
    sex: str,
    weight: float,
    height: float,
    head: Optional[float],
    region: Optional[str],
    fmt: str,
    output: Optional[str],
):
    """
    Build a development report from a saved provider response.

    RESPONSE_PATH is a file holding the assessment provider's response
    (JSON, or text containing a JSON object).

    Example:

        sprout assess response.json --age-months 10 --sex female --weight 8.2 --height 70
    """
    from pydantic import ValidationError

    from src.engines import AssessmentProviderError, build_report, parse_provider_response
    from src.exporters import export_json, export_markdown
    from src.models import GrowthProfile

    try:
        profile = GrowthProfile(
            age_months=age_months,
            sex=sex,
            weight_kg=weight,
            height_cm=height,
            head_circumference_cm=head,
        )
    except ValidationError as e:
        console.print(f"[red]Invalid profile: {e}[/red]")
        sys.exit(1)

    try:
        data = parse_provider_response(Path(response_path).read_text())
        report = build_report(data, profile, region=region)
    except AssessmentProviderError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    out_path = Path(output) if output else None
    if fmt == "json":
        text = export_json(report, out_path)
    elif fmt == "markdown":
        text = export_markdown(report, out_path)
    else:
        _print_report(report)
        return

    if out_path:
        console.print(f"[green]✓ Exported to {out_path}[/green]")
    else:
        click.echo(text)


def _print_report(report) -> None:
    status = getattr(report.overall_status, "value", report.overall_status)
    console.print(Panel(
        f"[bold]Overall:[/bold] {report.overall_score:.0f}/100 ({status})\n"
        f"Age at analysis: {report.child_age_at_analysis} months\n\n"
        f"{report.summary}",
        title="Development Report",
        border_style="blue",
    ))

    table = Table(title="Domains")
    table.add_column("Domain")
    table.add_column("Score", justify="right")
    table.add_column("Status")
    table.add_column("Observed")
    table.add_column("To look for")
    for name, a in report.domains.items():
        a_status = getattr(a.status, "value", a.status)
        table.add_row(
            name.title(),
            f"{a.score:.0f}",
            a_status,
            ", ".join(m.title for m in a.achieved_milestones) or "-",
            str(len(a.upcoming_milestones)),
        )
    console.print(table)

    if report.personalized_tips:
        console.print("\n[bold]Tips:[/bold]")
        for tip in report.personalized_tips:
            console.print(f"  • {tip}")


@cli.command()
@click.option("--host", default="0.0.0.0", help="Host to bind")
@click.option("--port", type=int, default=8000, help="Port to listen on")
def serve(host: str, port: int):
    """
    Run the HTTP API.
    """
    from server import run_server

    console.print(f"[bold]Sprout API[/bold] on http://{host}:{port} (docs at /docs)")
    run_server(host=host, port=port)


@cli.command()
def info():
    """
    Show information about Sprout.
    """
    from knowledge.milestones import get_catalog

    console.print(Panel(
        "[bold]Sprout[/bold]\n\n"
        "Developmental assessment for infants and toddlers:\n"
        "• Growth percentiles against WHO 2006 medians\n"
        "• Age-windowed developmental milestones\n"
        "• Per-domain assessment reports\n\n"
        "[dim]For informational purposes only. Not medical advice.[/dim]",
        title="About",
        border_style="blue",
    ))

    catalog = get_catalog()
    console.print("\n[bold]Milestone catalog:[/bold]")
    for domain in ["motor", "language", "cognitive", "social", "sensory"]:
        count = sum(1 for m in catalog if m.domain.value == domain)
        console.print(f"  • {domain}: {count}")

    console.print("\n[bold]Quick Start:[/bold]")
    console.print("  sprout growth --age-months 12 --sex male --weight 9.6 --height 75.7")
    console.print("  sprout milestones 10 --domain motor")
    console.print("  sprout serve --port 8000")


def main():
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
