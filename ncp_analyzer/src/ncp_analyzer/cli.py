"""
CLI entrypoint for the NCP Analyzer.

Provides command-line interface using Typer.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ncp_analyzer import __version__
from ncp_analyzer.analysis import run_analysis

# Initialize CLI app
app = typer.Typer(
    name="ncp-analyze",
    help="NCP Analyzer — netNCP scoring and sensitivity analysis",
    add_completion=False,
)

console = Console()


def setup_logging(verbose: bool = False) -> None:
    """Configure logging with Rich handler."""
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)]
    )


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold green]NCP Analyzer[/bold green] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None, "--version", "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit"
    ),
) -> None:
    """NCP Analyzer — net nature's contributions to people."""
    pass


@app.command("run")
def run_cmd(
    config_file: Optional[Path] = typer.Option(
        None, "--config", "-c",
        help="Scenario YAML (default: packaged tutorial scenario)",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
    output_dir: Path = typer.Option(
        "./outputs", "--outdir", "-o",
        help="Output directory for results",
    ),
    seed: Optional[int] = typer.Option(
        None, "--seed", "-s",
        help="Random seed (overrides the scenario seed)",
    ),
    workbook: Optional[Path] = typer.Option(
        None, "--tables", "-t",
        help="Excel workbook with ACCESS and/or PRIORITY sheets",
        exists=True,
        dir_okay=False,
    ),
    no_sensitivity: bool = typer.Option(
        False, "--no-sensitivity",
        help="Skip the sensitivity analysis",
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-V",
        help="Enable verbose logging",
    ),
) -> None:
    """
    Run the netNCP analysis.

    Generates:
    - Indicator, supply, benefit and weighted score tables
    - netNCP mean and sd per stakeholder group and forest type
    - Sensitivity of netNCP to ±10% supply and access changes
    - SB curve, netNCP and sensitivity figures
    - HTML report
    """
    setup_logging(verbose)
    logger = logging.getLogger(__name__)

    console.print(Panel.fit(
        "[bold green]🌲 NCP Analyzer[/bold green]\n"
        "[dim]netNCP Scoring Pipeline[/dim]",
        border_style="green"
    ))

    console.print(f"\n[bold]Scenario:[/bold] {config_file or 'default'}")
    console.print(f"[bold]Output:[/bold] {output_dir}")
    if workbook:
        console.print(f"[bold]Tables:[/bold] {workbook}")
    console.print()

    try:
        with console.status("[bold green]Running netNCP analysis..."):
            results = run_analysis(
                config_path=config_file,
                output_dir=output_dir,
                seed=seed,
                workbook=workbook,
                with_sensitivity=not no_sensitivity,
            )

        table = Table(title="netNCP Summary", show_header=True, header_style="bold green")
        table.add_column("Group", style="dim")
        table.add_column("Forest type")
        table.add_column("n", justify="right")
        table.add_column("Mean", justify="right")
        table.add_column("SD", justify="right")

        for row in results.pipeline.net_ncp_overall.itertuples(index=False):
            table.add_row(
                str(row.group),
                str(row.forest_type),
                str(row.n_replicates),
                f"{row.mean:.3f}",
                f"{row.sd:.3f}",
            )

        console.print()
        console.print(table)

        if results.warnings:
            console.print("\n[yellow]Warnings:[/yellow]")
            for warning in results.warnings:
                console.print(f"  ⚠️  {warning}")

        console.print("\n[bold green]✓ Analysis complete![/bold green]")
        console.print(f"\n[bold]Output files in:[/bold] {output_dir}")
        console.print("  📊 tables/ — CSV and Excel files")
        console.print("  📈 figures/ — PNG visualizations")
        console.print("  📄 reports/ — HTML report")

    except FileNotFoundError as e:
        console.print(f"[red]File not found:[/red] {e}")
        raise typer.Exit(1)
    except ValueError as e:
        console.print(f"[red]Validation error:[/red] {e}")
        raise typer.Exit(1)
    except Exception as e:
        logger.exception("Unexpected error")
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


@app.command("validate")
def validate_cmd(
    config_file: Optional[Path] = typer.Option(
        None, "--config", "-c",
        help="Scenario YAML to validate",
        exists=True,
    ),
    workbook: Optional[Path] = typer.Option(
        None, "--tables", "-t",
        help="Excel workbook with ACCESS and/or PRIORITY sheets",
        exists=True,
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-V",
        help="Enable verbose logging",
    ),
) -> None:
    """
    Validate a scenario without running the analysis.

    Checks replicate counts, aggregation rules, SB ranges and thresholds,
    and the access and priority tables.
    """
    setup_logging(verbose)

    from ncp_analyzer.config import load_config
    from ncp_analyzer.io import load_workbook
    from ncp_analyzer.validate import run_all_validations

    console.print(Panel.fit(
        "[bold green]🔍 NCP Analyzer — Validation[/bold green]",
        border_style="green"
    ))

    try:
        config = load_config(config_file)
        if workbook is not None:
            tables, _ = load_workbook(workbook)
            config = config.with_tables(access=tables.get("ACCESS"), priority=tables.get("PRIORITY"))

        console.print(f"\n[bold]Scenario:[/bold] {config.source}\n")

        report = run_all_validations(config)

        table = Table(title="Validation Results", show_header=True, header_style="bold cyan")
        table.add_column("Check", style="dim")
        table.add_column("Status")
        table.add_column("Message")

        for v in report.validations:
            status = "[green]✓ PASS[/green]" if v.passed else (
                "[red]✗ FAIL[/red]" if v.severity == "error" else "[yellow]⚠ WARN[/yellow]"
            )
            table.add_row(v.check_name, status, v.message)

        console.print()
        console.print(table)

        console.print(f"\n[bold]Summary:[/bold] {report.summary}")

    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    if report.passed:
        console.print("\n[bold green]✓ Validation passed![/bold green]")
    else:
        console.print(f"\n[bold red]✗ Validation failed with {report.error_count} errors[/bold red]")
        raise typer.Exit(1)


@app.command("curve")
def curve_cmd(
    ncp_name: str = typer.Argument(..., help="NCP to evaluate"),
    config_file: Optional[Path] = typer.Option(
        None, "--config", "-c",
        help="Scenario YAML (default: packaged tutorial scenario)",
        exists=True,
    ),
    points: int = typer.Option(
        11, "--points", "-n",
        help="Number of evenly spaced supply values",
    ),
) -> None:
    """Print the supply-benefit curve of one NCP."""
    from ncp_analyzer.config import load_config
    from ncp_analyzer.supply_benefit import sb_curve

    try:
        ncp = load_config(config_file).get_ncp(ncp_name)
        curve = sb_curve(ncp, n_points=points)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    table = Table(
        title=f"{ncp.name} ({ncp.shape.value})",
        show_header=True,
        header_style="bold cyan",
    )
    table.add_column("Supply", justify="right")
    table.add_column("Benefit", justify="right")

    for supply, benefit in zip(curve["supply"], curve["benefit"]):
        table.add_row(f"{supply:.4g}", f"{benefit:+.4f}")

    console.print(table)


if __name__ == "__main__":
    app()
