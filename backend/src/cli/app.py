"""Typer application entrypoint."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import typer
from rich import print as rprint
from rich.table import Table

from connectors.criteria import SearchCriteria
from connectors.registry import ConnectorRegistry, load_connectors_file
from connectors.resolver import SearchCriteriaResolver, merged_results
from errors import ConfigurationError, NoCompatibleVersion, SearchTimeout, ValidationError
from logging_config import configure_logging
from versions.resolver import VersionCompatibilityResolver, load_mapping_file


configure_logging()


app = typer.Typer(help="Viewer hub backend CLI")
connectors_app = typer.Typer(help="Validate and query archive connectors")
versions_app = typer.Typer(help="Client version compatibility")

app.add_typer(connectors_app, name="connectors")
app.add_typer(versions_app, name="versions")


def _load_registry(config: Path) -> ConnectorRegistry:
    try:
        return ConnectorRegistry(load_connectors_file(config))
    except ConfigurationError as exc:
        rprint(f"[red]Invalid connector configuration:[/red] {exc}")
        raise typer.Exit(code=1)


@connectors_app.command("validate")
def connectors_validate(config: Path = typer.Argument(..., exists=True, dir_okay=False)) -> None:
    """Load a connector YAML file and list the connectors it defines."""
    registry = _load_registry(config)
    table = Table(title=f"Connectors in {config.name}")
    table.add_column("ID")
    table.add_column("Type")
    table.add_column("Deactivated levels")
    for connector_id, connector in registry.snapshot().items():
        deactivated = ", ".join(sorted(level.value for level in connector.search_criteria.deactivated))
        table.add_row(connector_id, connector.type.value, deactivated or "-")
    rprint(table)


@connectors_app.command("search")
def connectors_search(
    config: Path = typer.Option(..., "--config", exists=True, dir_okay=False, help="Connector YAML file"),
    archive: Optional[List[str]] = typer.Option(None, "--archive", "-a", help="Archive id; repeat for several"),
    patient_id: Optional[str] = typer.Option(None, "--patient-id"),
    study_uid: Optional[str] = typer.Option(None, "--study-uid"),
    accession_number: Optional[str] = typer.Option(None, "--accession-number"),
    series_uid: Optional[str] = typer.Option(None, "--series-uid"),
    sop_uid: Optional[str] = typer.Option(None, "--sop-uid"),
    limit: int = typer.Option(100, min=1, max=1000),
    offset: int = typer.Option(0, min=0),
    timeout: Optional[float] = typer.Option(None, help="Request timeout in seconds"),
) -> None:
    """Query the configured archives and print the merged results."""
    registry = _load_registry(config)
    criteria = SearchCriteria(
        archive=archive or [],
        patient_id=patient_id,
        study_instance_uid=study_uid,
        accession_number=accession_number,
        series_instance_uid=series_uid,
        sop_instance_uid=sop_uid,
        limit=limit,
        offset=offset,
    )
    resolver = SearchCriteriaResolver(registry=registry)
    try:
        outcomes = resolver.resolve(criteria, timeout=timeout)
    except ValidationError as exc:
        rprint(f"[red]Invalid search:[/red] {exc}")
        raise typer.Exit(code=2)
    except SearchTimeout as exc:
        rprint(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)
    finally:
        resolver.close()

    for outcome in outcomes.values():
        if outcome.status == "error":
            retry = " (retryable)" if outcome.error.retryable else ""
            rprint(f"[yellow]{outcome.archive}[/yellow]: {outcome.error.code} {outcome.error.message}{retry}")
        else:
            more = f", next offset {outcome.continuation}" if outcome.continuation is not None else ""
            rprint(f"[green]{outcome.archive}[/green]: {len(outcome.results)} results{more}")

    table = Table(title="Results")
    table.add_column("Archive")
    table.add_column("Level")
    table.add_column("Patient ID")
    table.add_column("Patient name")
    table.add_column("Study UID")
    table.add_column("Date")
    table.add_column("Series UID")
    table.add_column("SOP UID")
    for row in merged_results(outcomes.values()):
        table.add_row(
            row.archive,
            row.level.value,
            row.patient_id,
            row.patient_name,
            row.study_instance_uid,
            row.study_date,
            row.series_instance_uid,
            row.sop_instance_uid,
        )
    rprint(table)


@versions_app.command("resolve")
def versions_resolve(
    mapping: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON release mapping"),
    version: str = typer.Argument(..., help="Client version, e.g. 4.2.0-MGR"),
) -> None:
    """Print the release entry a client version must use."""
    try:
        resolver = VersionCompatibilityResolver(load_mapping_file(mapping))
        resolution = resolver.resolve_minimal_version(version)
    except ConfigurationError as exc:
        rprint(f"[red]Invalid version mapping:[/red] {exc}")
        raise typer.Exit(code=1)
    except ValidationError as exc:
        rprint(f"[red]{exc}[/red]")
        raise typer.Exit(code=2)
    except NoCompatibleVersion as exc:
        rprint(f"[red]{exc}[/red]")
        raise typer.Exit(code=3)

    table = Table(title=f"Client {version}")
    table.add_column("Field")
    table.add_column("Value")
    table.add_row("Release version", resolution.entry.release_version)
    table.add_row("Minimal version", resolution.entry.minimal_version)
    table.add_row("I18n version", resolution.entry.i18n_version or "-")
    table.add_row("Qualifier", resolution.qualifier or "-")
    table.add_row("Upgrade required", "yes" if resolution.upgrade_required else "no")
    rprint(table)


if __name__ == "__main__":
    app()
