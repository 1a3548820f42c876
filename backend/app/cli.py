"""
Surat engine maintenance CLI

Usage:
    surat-engine repair TEMPLATE.docx [-o OUTPUT.docx]   # Fix split/typo'd placeholders
    surat-engine inspect TEMPLATE.docx                   # List placeholders and tag problems
    surat-engine render TEMPLATE.docx DATA.json -o OUT   # Render with JSON data
    surat-engine sync-templates                          # Load templates.yml into the database
    surat-engine cleanup-temp [--max-age SECONDS]        # Sweep scratch files
    surat-engine doctor                                  # Check storage, templates and LibreOffice
    surat-engine serve                                   # Run the API server
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.table import Table

from app.core.config import settings
from app.core.exceptions import TemplateError


console = Console()


def print_template_error(error: TemplateError) -> None:
    console.print(f"[red]{error.message}[/red]")
    for item in error.errors:
        console.print(f"  [red]✗ {item.get('part')}: {item.get('tag')} ({item.get('reason')})[/red]")


def cmd_repair(args: argparse.Namespace) -> int:
    from app.services.template import repair_docx

    source = Path(args.template)
    try:
        result = repair_docx(source.read_bytes())
    except TemplateError as e:
        print_template_error(e)
        return 1

    table = Table(show_header=True, header_style="bold cyan", title=f"Repair: {source.name}")
    table.add_column("Part", style="bold")
    table.add_column("Before", justify="right")
    table.add_column("After", justify="right")
    table.add_column("Status")
    for part in result.parts:
        status = "[green]fixed[/green]" if part.changed else "[dim]unchanged[/dim]"
        table.add_row(part.part, str(part.placeholders_before), str(part.placeholders_after), status)
    console.print(table)

    if not result.changed:
        console.print("[green]No changes needed[/green]")
        return 0

    output = Path(args.output) if args.output else source.with_name(f"{source.stem}-fixed{source.suffix}")
    output.write_bytes(result.content)
    console.print(f"[green]✓ Fixed template saved to:[/green] {output}")
    return 0


def cmd_inspect(args: argparse.Namespace) -> int:
    from app.services.template.renderer import inspect_template

    try:
        report = inspect_template(Path(args.template).read_bytes())
    except TemplateError as e:
        print_template_error(e)
        return 1

    problems = 0
    for part, entry in report.items():
        console.print(f"\n[bold]{part}[/bold]")
        if entry["fields"]:
            console.print(f"  fields: {', '.join(sorted(set(entry['fields'])))}")
        if entry["images"]:
            console.print(f"  images: {', '.join(sorted(set(entry['images'])))}")
        for error in entry["errors"]:
            problems += 1
            console.print(f"  [red]✗ {error['tag']}: {error['reason']}[/red]")

    if problems:
        console.print(f"\n[red]{problems} problem(s) found[/red]")
        return 1
    console.print("\n[green]✓ Template is renderable[/green]")
    return 0


def cmd_render(args: argparse.Namespace) -> int:
    from app.services.template import build_template_data, render_template

    values = json.loads(Path(args.data).read_text(encoding="utf-8"))
    data = build_template_data(values, letter_number=args.letter_number)
    try:
        output = render_template(Path(args.template).read_bytes(), data)
    except TemplateError as e:
        print_template_error(e)
        return 1

    Path(args.output).write_bytes(output)
    console.print(f"[green]✓ Rendered to:[/green] {args.output}")
    return 0


async def _sync_templates() -> int:
    from app.config.template_registry import TemplateRegistry
    from app.core.database import close_db, init_db, session_scope

    await init_db()
    try:
        async with session_scope() as session:
            return await TemplateRegistry().sync(session)
    finally:
        await close_db()


def cmd_sync_templates(args: argparse.Namespace) -> int:
    synced = asyncio.run(_sync_templates())
    console.print(f"[green]✓ Synced {synced} template(s)[/green]")
    return 0


def cmd_cleanup_temp(args: argparse.Namespace) -> int:
    from app.services.document_cleanup_service import document_cleanup_service

    removed = document_cleanup_service.cleanup_temp_files(args.max_age)
    console.print(f"Removed {removed} temp file(s) from {settings.TEMP_DIR}")
    return 0


def cmd_doctor(args: argparse.Namespace) -> int:
    from app.services.pdf_conversion_service import pdf_conversion_service

    table = Table(show_header=True, header_style="bold cyan", title="Diagnostic Results")
    table.add_column("Check", style="bold")
    table.add_column("Status", width=8)
    table.add_column("Message")

    failed = 0
    for name, directory in (
        ("Generated dir", settings.GENERATED_DIR),
        ("Temp dir", settings.TEMP_DIR),
        ("Templates dir", settings.TEMPLATES_DIR),
    ):
        path = Path(directory)
        if path.is_dir():
            table.add_row(name, "[green]✓ Pass[/green]", str(path))
        else:
            table.add_row(name, "[yellow]⚠ Warn[/yellow]", f"{path} does not exist (created at startup)")

    templates = list(Path(settings.TEMPLATES_DIR).rglob("*.docx")) if Path(settings.TEMPLATES_DIR).exists() else []
    if templates:
        table.add_row("Templates", "[green]✓ Pass[/green]", f"{len(templates)} DOCX file(s)")
    else:
        failed += 1
        table.add_row("Templates", "[red]✗ Fail[/red]", "No DOCX templates found")

    if pdf_conversion_service.is_available():
        table.add_row("LibreOffice", "[green]✓ Pass[/green]", pdf_conversion_service.soffice_path)
    else:
        table.add_row("LibreOffice", "[yellow]⚠ Warn[/yellow]", "Not found - PDF output unavailable")

    console.print(table)
    return 1 if failed else 0


def cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=args.host or settings.SERVER_HOST,
        port=args.port or settings.SERVER_PORT,
        reload=args.reload,
    )
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser for CLI"""
    parser = argparse.ArgumentParser(
        prog="surat-engine",
        description="Maintenance commands for the recommendation letter engine",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    repair = subparsers.add_parser("repair", help="Fix placeholders split across runs")
    repair.add_argument("template")
    repair.add_argument("-o", "--output")
    repair.set_defaults(func=cmd_repair)

    inspect = subparsers.add_parser("inspect", help="List placeholders and tag problems")
    inspect.add_argument("template")
    inspect.set_defaults(func=cmd_inspect)

    render = subparsers.add_parser("render", help="Render a template with JSON form values")
    render.add_argument("template")
    render.add_argument("data", help="JSON file with form values")
    render.add_argument("-o", "--output", required=True)
    render.add_argument("--letter-number")
    render.set_defaults(func=cmd_render)

    sync = subparsers.add_parser("sync-templates", help="Load templates.yml into the database")
    sync.set_defaults(func=cmd_sync_templates)

    cleanup = subparsers.add_parser("cleanup-temp", help="Delete old scratch files")
    cleanup.add_argument("--max-age", type=int, default=None, help="Seconds (default from settings)")
    cleanup.set_defaults(func=cmd_cleanup_temp)

    doctor = subparsers.add_parser("doctor", help="Check storage, templates and LibreOffice")
    doctor.set_defaults(func=cmd_doctor)

    serve = subparsers.add_parser("serve", help="Run the API server")
    serve.add_argument("--host")
    serve.add_argument("--port", type=int)
    serve.add_argument("--reload", action="store_true")
    serve.set_defaults(func=cmd_serve)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
