"""
Tool chain command line interface.

Validate, analyze and plan chain definitions stored as YAML files.
"""

import json
import sys

import click
import yaml

from config import env, ValidationOptions

from .analysis import ChainAnalyzer
from .capabilities import CapabilityCatalog, ToolInfo
from .errors import UnschedulableGraphError
from .workflows import BatchScheduler, ChainDefinition, GraphValidator


def _load_chain(path: str) -> ChainDefinition:
    try:
        return ChainDefinition.from_file(path)
    except (FileNotFoundError, ValueError) as e:
        raise click.ClickException(str(e))


def _load_catalog(path: str) -> CapabilityCatalog:
    """Catalog from a YAML list of "server/tool" strings or tool mappings."""
    with open(path, "r") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise click.ClickException(f"Invalid catalog YAML: {e}")

    if isinstance(data, dict):
        data = data.get("tools", [])
    if not isinstance(data, list):
        raise click.ClickException("Catalog must be a list of tools")

    catalog = CapabilityCatalog()
    for entry in data:
        if isinstance(entry, dict):
            named_server = "serverName" in entry or "server_name" in entry
            catalog.add(ToolInfo.from_dict(entry))
        else:
            named_server = "/" in str(entry)
            catalog.add(str(entry))
        # Entries without a server match the tool on any server
        if not named_server:
            catalog.match_tool_name_only = True
    return catalog


@click.group()
def chain():
    """Work with tool chain definitions."""
    env.load()


@chain.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--catalog", "catalog_path", type=click.Path(exists=True, dir_okay=False),
              help="YAML list of available tools; availability is not checked without it")
@click.option("--strict", is_flag=True, help="Report unresolved references as errors")
def validate(file, catalog_path, strict):
    """Validate a chain definition."""
    definition = _load_chain(file)
    catalog = _load_catalog(catalog_path) if catalog_path else None
    options = ValidationOptions.from_settings({"strict": True} if strict else None)

    report = GraphValidator(catalog=catalog, options=options).validate(definition)

    for error in report.errors:
        click.echo(f"ERROR: {error}")
    for warning in report.warnings:
        click.echo(f"WARNING: {warning}")

    if not report.valid:
        click.echo(f"{file}: invalid ({len(report.errors)} errors)")
        sys.exit(1)
    click.echo(f"{file}: valid ({len(report.warnings)} warnings)")


@chain.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--catalog", "catalog_path", type=click.Path(exists=True, dir_okay=False),
              help="YAML list of tools with duration and complexity estimates")
def analyze(file, catalog_path):
    """Print performance metrics, complexity and suggestions as JSON."""
    definition = _load_chain(file)
    catalog = _load_catalog(catalog_path) if catalog_path else None
    analysis = ChainAnalyzer(catalog=catalog).analyze(definition)
    click.echo(json.dumps(analysis.to_dict(), indent=2))


@chain.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
def plan(file):
    """Print the batches a chain would run in."""
    definition = _load_chain(file)
    try:
        batches = BatchScheduler().plan_ids(definition)
    except UnschedulableGraphError as e:
        raise click.ClickException(str(e))

    for index, batch in enumerate(batches):
        click.echo(f"Batch {index}: {', '.join(batch)}")


if __name__ == "__main__":
    chain()
