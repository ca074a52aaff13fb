from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import typer
import uvicorn
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from adapters.drawio.repository import FileSystemDrawioRepository
from adapters.filesystem.json_utils import dump_json_bytes, load_json, write_json_atomic
from adapters.filesystem.workload_repository import FileSystemWorkloadRepository
from app.config import AppSettings, load_settings
from app.diagram_wiring import build_generator, resolve_preset
from domain.errors import ContainmentValidationError, DiagramError
from domain.models import LandingZonePreset, WorkloadRecord
from domain.services.build_containment_model import ContainmentModelBuilder
from domain.services.validate_model import find_violations

app = typer.Typer(no_args_is_help=True)
console = Console()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def _load_records(input_path: Path) -> list[WorkloadRecord]:
    repo = FileSystemWorkloadRepository()
    if input_path.is_dir():
        return repo.load_all(input_path)
    return repo.load(input_path)


def _resolve_preset(
    settings: AppSettings,
    preset_path: Path | None,
    flags: dict[str, Any],
) -> LandingZonePreset:
    overrides: dict[str, Any] = {}
    if preset_path is not None:
        overrides.update(load_json(preset_path))
    overrides.update({key: value for key, value in flags.items() if value is not None})
    return resolve_preset(settings, overrides or None)


def _feature_flags(
    topology: str | None,
    non_prod: bool | None,
    app_gateway: bool | None,
    firewall: bool | None,
    bastion: bool | None,
    key_vault: bool | None,
    observability: bool | None,
) -> dict[str, Any]:
    return {
        "topology": topology,
        "include_non_prod_environment": non_prod,
        "include_app_gateway": app_gateway,
        "include_firewall": firewall,
        "include_bastion": bastion,
        "include_key_vault": key_vault,
        "include_observability": observability,
    }


def _report_error(exc: Exception) -> None:
    console.print(f"[red]Diagram generation failed:[/] {getattr(exc, 'message', exc)}")
    if isinstance(exc, ContainmentValidationError):
        for violation in exc.violations:
            console.print(f"  [yellow]{violation.kind}[/] {violation.message}")


def _prepare(
    input_path: Path,
    config: Path | None,
    preset_path: Path | None,
    flags: dict[str, Any],
) -> tuple[AppSettings, list[WorkloadRecord], LandingZonePreset]:
    if not input_path.exists():
        console.print(f"[red]File not found:[/] {input_path}")
        raise typer.Exit(code=1)
    try:
        settings = load_settings(config)
        records = _load_records(input_path)
        preset = _resolve_preset(settings, preset_path, flags)
    except (DiagramError, ValueError, FileNotFoundError) as exc:
        _report_error(exc)
        raise typer.Exit(code=1) from exc
    return settings, records, preset


@app.command("generate")
def generate(
    input_path: Path = typer.Argument(..., help="Workload records JSON file or directory."),
    output: Path | None = typer.Option(
        None, "--output", "-o", help="Target .drawio file (defaults to the output dir)."
    ),
    config: Path | None = typer.Option(None, help="YAML settings file."),
    preset_path: Path | None = typer.Option(None, "--preset", help="Preset JSON file."),
    non_prod: bool | None = typer.Option(None, "--non-prod/--prod-only"),
    app_gateway: bool | None = typer.Option(None, "--app-gateway/--no-app-gateway"),
    firewall: bool | None = typer.Option(None, "--firewall/--no-firewall"),
    bastion: bool | None = typer.Option(None, "--bastion/--no-bastion"),
    key_vault: bool | None = typer.Option(None, "--key-vault/--no-key-vault"),
    observability: bool | None = typer.Option(None, "--observability/--no-observability"),
    topology: str | None = typer.Option(None, help="Topology template name."),
    legend: bool | None = typer.Option(None, "--legend/--no-legend"),
) -> None:
    flags = _feature_flags(
        topology, non_prod, app_gateway, firewall, bastion, key_vault, observability
    )
    settings, records, preset = _prepare(input_path, config, preset_path, flags)
    generator = build_generator(settings, show_legend=legend)
    try:
        result = generator.generate(records, preset)
    except DiagramError as exc:
        _report_error(exc)
        raise typer.Exit(code=1) from exc

    target = output or settings.diagram.output_dir / f"{input_path.stem}.drawio"
    FileSystemDrawioRepository().save(result.document, target)
    for environment, mismatch in result.mismatches.items():
        console.print(f"[yellow]Classification mismatch ({environment}):[/] {mismatch.describe()}")
    if result.excluded_records:
        console.print(
            f"[yellow]Left out {result.excluded_records} non-prod record(s)[/]"
        )
    console.print(
        f"[green]Wrote[/] {target} "
        f"({result.document.shape_count} shapes, {result.document.connector_count} connectors)"
    )


@app.command("graph")
def graph(
    input_path: Path = typer.Argument(..., help="Workload records JSON file or directory."),
    output: Path | None = typer.Option(None, "--output", "-o", help="Target JSON file."),
    config: Path | None = typer.Option(None, help="YAML settings file."),
    preset_path: Path | None = typer.Option(None, "--preset", help="Preset JSON file."),
    non_prod: bool | None = typer.Option(None, "--non-prod/--prod-only"),
    app_gateway: bool | None = typer.Option(None, "--app-gateway/--no-app-gateway"),
    firewall: bool | None = typer.Option(None, "--firewall/--no-firewall"),
    bastion: bool | None = typer.Option(None, "--bastion/--no-bastion"),
    key_vault: bool | None = typer.Option(None, "--key-vault/--no-key-vault"),
    observability: bool | None = typer.Option(None, "--observability/--no-observability"),
    topology: str | None = typer.Option(None, help="Topology template name."),
) -> None:
    flags = _feature_flags(
        topology, non_prod, app_gateway, firewall, bastion, key_vault, observability
    )
    settings, records, preset = _prepare(input_path, config, preset_path, flags)
    try:
        payload = build_generator(settings).graph(records, preset)
    except DiagramError as exc:
        _report_error(exc)
        raise typer.Exit(code=1) from exc
    if output is None:
        typer.echo(dump_json_bytes(payload).decode("utf-8"))
        return
    write_json_atomic(output, payload)
    console.print(f"[green]Wrote[/] {output}")


@app.command("validate")
def validate(
    input_path: Path = typer.Argument(..., help="Workload records JSON file or directory."),
    config: Path | None = typer.Option(None, help="YAML settings file."),
    preset_path: Path | None = typer.Option(None, "--preset", help="Preset JSON file."),
    non_prod: bool | None = typer.Option(None, "--non-prod/--prod-only"),
    app_gateway: bool | None = typer.Option(None, "--app-gateway/--no-app-gateway"),
    firewall: bool | None = typer.Option(None, "--firewall/--no-firewall"),
    bastion: bool | None = typer.Option(None, "--bastion/--no-bastion"),
    key_vault: bool | None = typer.Option(None, "--key-vault/--no-key-vault"),
    observability: bool | None = typer.Option(None, "--observability/--no-observability"),
    topology: str | None = typer.Option(None, help="Topology template name."),
) -> None:
    flags = _feature_flags(
        topology, non_prod, app_gateway, firewall, bastion, key_vault, observability
    )
    _, records, preset = _prepare(input_path, config, preset_path, flags)
    try:
        built = ContainmentModelBuilder(preset).build(records)
    except DiagramError as exc:
        _report_error(exc)
        raise typer.Exit(code=1) from exc

    violations = find_violations(built.model)
    if violations:
        table = Table(title="Containment violations")
        table.add_column("Kind")
        table.add_column("Nodes")
        table.add_column("Message")
        for violation in violations:
            table.add_row(violation.kind, ", ".join(violation.node_ids), violation.message)
        console.print(table)
        raise typer.Exit(code=1)

    model = built.model
    console.print(
        f"[green]Valid containment model:[/] {len(model.nodes)} nodes, "
        f"{model.entity_count('subscription')} subscriptions, "
        f"{model.entity_count('vnet')} vnets, {model.entity_count('subnet')} subnets"
    )
    for environment, mismatch in built.mismatches.items():
        console.print(f"[yellow]Classification mismatch ({environment}):[/] {mismatch.describe()}")


@app.command("serve")
def serve(
    host: str = typer.Option("127.0.0.1", help="Bind address."),
    port: int = typer.Option(8000, help="Bind port."),
    reload: bool = typer.Option(False, "--reload", help="Restart on code changes."),
) -> None:
    uvicorn.run("app.web_main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
