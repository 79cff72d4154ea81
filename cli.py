#!/usr/bin/env python3
"""
Contract Auditor - Main CLI Entry Point

Checklist-driven review of supply contracts from the terminal.
"""

import json
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich import box

import config
from auditor.errors import AnalysisError, ConfigurationError
from auditor.keys import KeyPool
from models import AnalysisReport
from repositories import contract_hash, get_repository

console = Console()

SEVERITY_STYLE = {"high": "red", "medium": "yellow", "low": "dim"}
CATEGORY_STYLE = {
    "checklist": "green",
    "partial": "yellow",
    "risk": "red",
    "ambiguous": "magenta",
    "deemed_acceptance": "red",
    "external_refs": "cyan",
}


def setup_logging(verbose: bool = False):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
    )
    # Transport chatter from the SDK is rarely useful
    for name in ("httpx", "openai"):
        logging.getLogger(name).setLevel(logging.WARNING)


def read_text(path: str) -> str:
    file = Path(path)
    if not file.exists():
        console.print(f"[red]File not found: {path}[/red]")
        sys.exit(2)
    return file.read_text(encoding="utf-8")


# -- rendering --------------------------------------------------------------

def show_report(report: AnalysisReport, key: str = ""):
    """Render a report as panels and tables."""
    summary = report.structural_analysis
    stats = report.stats()

    console.print(Panel(
        summary.overall_assessment,
        title=f"Итоговая оценка {key[:12]}" if key else "Итоговая оценка",
        border_style="cyan",
    ))

    table = Table(title="Статистика", box=box.ROUNDED)
    table.add_column("Показатель", style="cyan")
    table.add_column("Значение", justify="right")
    for name, value in stats.items():
        table.add_row(name, str(value))
    console.print(table)

    flagged = [p for p in report.contract_paragraphs if p.category and p.category != "checklist"]
    if flagged:
        table = Table(title="Замечания по пунктам", box=box.ROUNDED, show_lines=True)
        table.add_column("ID", style="dim")
        table.add_column("Категория")
        table.add_column("Текст", max_width=60)
        table.add_column("Комментарий", max_width=50)
        for p in flagged:
            style = CATEGORY_STYLE.get(p.category, "white")
            table.add_row(p.id, f"[{style}]{p.category}[/{style}]", p.text[:200], p.comment or "")
        console.print(table)

    if report.missing_requirements:
        console.print("\n[bold]Отсутствующие требования:[/bold]")
        for m in report.missing_requirements:
            console.print(f"  [red]•[/red] {m.text}")

    findings = [
        ("Противоречия", [(c.severity, c.description, c.recommendation) for c in report.contradictions]),
        ("Дисбаланс прав", [(f.severity, f.description, f.recommendation) for f in report.rights_imbalance]),
        ("Структурные дефекты", [(d.severity, d.description, d.recommendation) for d in report.structural_defects]),
    ]
    for title, rows in findings:
        if not rows:
            continue
        table = Table(title=title, box=box.ROUNDED, show_lines=True)
        table.add_column("Серьезность")
        table.add_column("Описание", max_width=70)
        table.add_column("Рекомендация", max_width=50)
        for severity, description, recommendation in rows:
            style = SEVERITY_STYLE.get(severity, "white")
            table.add_row(f"[{style}]{severity}[/{style}]", description, recommendation)
        console.print(table)

    if summary.recommendations:
        console.print(Panel("\n".join(f"• {r}" for r in summary.recommendations), title="Рекомендации"))


# -- commands ---------------------------------------------------------------

def cmd_analyze(args) -> int:
    contract = read_text(args.contract)
    checklist = read_text(args.checklist)
    risks = read_text(args.risks) if args.risks else ""

    try:
        analyzer = config.get_analyzer(use_cache=not args.no_cache)
    except ConfigurationError as e:
        console.print(f"[red]{e}[/red]")
        return 2

    with console.status("Запуск анализа...") as status:
        try:
            report = analyzer.run_analysis(
                contract, checklist, risks, args.perspective, progress=status.update
            )
        except AnalysisError as e:
            console.print(f"[red]{e}[/red]")
            return 1

    key = contract_hash(contract)
    if args.output:
        Path(args.output).write_text(
            json.dumps(report.to_json_dict(), ensure_ascii=False, indent=2), encoding="utf-8"
        )
        console.print(f"[green]Report written to {args.output}[/green]")
    show_report(report, key)
    return 0


def cmd_show(args) -> int:
    stored = get_repository().load_by_hash(args.hash)
    if not stored:
        console.print(f"[yellow]No stored analysis for {args.hash}[/yellow]")
        return 1
    show_report(stored.result, stored.contract_hash)
    return 0


def cmd_list(args) -> int:
    analyses = get_repository().list()
    if not analyses:
        console.print("[dim]No stored analyses yet. Run: cli.py analyze CONTRACT --checklist FILE[/dim]")
        return 0

    table = Table(title="Stored analyses", box=box.ROUNDED)
    table.add_column("Hash", style="cyan")
    table.add_column("Paragraphs", justify="right")
    table.add_column("Risks", justify="right", style="red")
    table.add_column("Missing", justify="right")
    table.add_column("Updated", style="dim")
    for a in analyses:
        stats = a.result.stats()
        table.add_row(
            a.contract_hash[:16],
            str(stats["paragraphs"]),
            str(stats["risks"]),
            str(stats["missing"]),
            a.updated_at.isoformat()[:16],
        )
    console.print(table)
    return 0


def cmd_keys(args) -> int:
    """Configured credentials, masked."""
    try:
        pool = KeyPool.from_string(config.load_api_keys())
    except ConfigurationError as e:
        console.print(f"[red]{e}[/red]")
        return 2

    table = Table(title=f"API keys ({pool.key_count})", box=box.ROUNDED)
    table.add_column("Key", style="cyan")
    table.add_column("Status")
    for entry in pool.snapshot():
        status = "[red]exhausted[/red]" if entry["exhausted"] else "[green]available[/green]"
        table.add_row(entry["key"], status)
    console.print(table)
    console.print(f"[dim]Endpoint {config.BASE_URL}, model {config.MODEL}[/dim]")
    return 0


def cmd_serve(args) -> int:
    from app import create_app

    console.print(f"[dim]Starting API at http://localhost:{args.port}...[/dim]")
    create_app().run(port=args.port)
    return 0


def cli():
    """Main CLI entry point"""
    import argparse

    parser = argparse.ArgumentParser(
        description="Checklist-driven supply contract review",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  cli.py analyze contract.txt --checklist checklist.txt
  cli.py analyze contract.txt --checklist checklist.txt --perspective supplier -o report.json
  cli.py show 3f2a...                # Stored analysis by contract hash
  cli.py list                        # Stored analyses
  cli.py keys                        # Configured API keys (masked)
  cli.py serve --port 5001           # HTTP API
        """
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    analyze = sub.add_parser("analyze", help="Analyze a contract")
    analyze.add_argument("contract", help="Contract text file")
    analyze.add_argument("--checklist", "-c", required=True, help="Checklist file, one requirement per line")
    analyze.add_argument("--risks", "-r", help="Typical risks file")
    analyze.add_argument("--perspective", "-p", choices=["buyer", "supplier"], default="buyer")
    analyze.add_argument("--output", "-o", help="Write the JSON report here")
    analyze.add_argument("--no-cache", action="store_true", help="Ignore stored analyses")
    analyze.set_defaults(func=cmd_analyze)

    show = sub.add_parser("show", help="Show a stored analysis")
    show.add_argument("hash", help="Contract hash")
    show.set_defaults(func=cmd_show)

    sub.add_parser("list", help="List stored analyses").set_defaults(func=cmd_list)
    sub.add_parser("keys", help="Show configured API keys").set_defaults(func=cmd_keys)

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--port", type=int, default=5001)
    serve.set_defaults(func=cmd_serve)

    args = parser.parse_args()
    setup_logging(args.verbose)
    sys.exit(args.func(args))


if __name__ == "__main__":
    cli()
