"""
awsync CLI

Main entry point for the command-line interface.
"""

import json
import sys
from typing import Optional, Tuple

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .core.aws_client import AWSClient
from .core.config import SyncConfig
from .core.exceptions import AWSClientError, AwsyncError
from .core.logging import setup_logging
from .core.sync_manager import SyncManager
from .services import RESOURCE_TYPES, SERVICE_NAMES, SERVICE_PER_RESOURCE_TYPE, SERVICES


console = Console()


def _build_config(
    config_path: Optional[str],
    cache_dir: Optional[str],
    disable: Tuple[str, ...],
) -> SyncConfig:
    if config_path:
        config = SyncConfig.load(config_path)
    else:
        config = SyncConfig()
    if cache_dir:
        config = config.with_cache_dir(cache_dir)
    if disable:
        config = config.disable(*(f"aws.{key}.sync" for key in disable))
    return config


def _print_counts(title: str, counts, errors) -> None:
    table = Table(title=title)
    table.add_column("Resource type")
    table.add_column("Count", justify="right")
    for res_type, count in sorted(counts.items()):
        table.add_row(res_type, str(count))
    console.print(table)

    for name, err in errors:
        console.print(f"[red bold]{escape(name)}:[/red bold] {escape(str(err))}")


@click.group()
@click.version_option(version="0.1.0", prog_name="awsync")
@click.option("--region", "-r", default="us-east-1", help="AWS region (default: us-east-1)")
@click.option("--profile", "-p", default=None, help="AWS profile name")
@click.option(
    "--cache-dir",
    envvar="AWSYNC_CACHE",
    default=None,
    help="Credential cache root; caching is off when unset [env: AWSYNC_CACHE]",
)
@click.option("--config", "config_path", default=None, help="YAML sync config file")
@click.option(
    "--disable",
    multiple=True,
    help="Disable a service or type, e.g. 'iam' or 'ec2.volume' (repeatable)",
)
@click.option("--log-level", default="WARNING", help="Log level (default: WARNING)")
@click.option("--log-file", default=None, help="Also write logs to this file")
@click.pass_context
def cli(ctx, region, profile, cache_dir, config_path, disable, log_level, log_file):
    """
    awsync: synchronize an AWS account into a resource graph.
    """
    setup_logging(level=log_level, log_file=log_file)
    try:
        config = _build_config(config_path, cache_dir, disable)
    except (OSError, ValueError) as e:
        raise click.BadParameter(str(e), param_hint="--config")
    ctx.obj = {
        "config": config,
        "client": AWSClient(region=region, profile=profile, cache_dir=config.cache_dir),
    }


@cli.command("sync")
@click.option(
    "--service",
    "-s",
    "services",
    multiple=True,
    type=click.Choice(SERVICE_NAMES),
    help="Service to synchronize (repeatable, default: all)",
)
@click.option("--output", "-o", default=None, help="Write the graph as JSON to this file")
@click.pass_context
def sync(ctx, services, output):
    """
    Synchronize services and print resource counts.

    Exits with status 1 when any service recorded errors; the graph is
    still written in that case.
    """
    client = ctx.obj["client"]
    manager = SyncManager(client, ctx.obj["config"])

    try:
        result = manager.sync(list(services) or None)
    except AWSClientError as e:
        console.print(f"\n[red bold]Authentication Error:[/red bold] {escape(str(e))}")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Sync cancelled by user.[/yellow]")
        sys.exit(130)

    _print_counts(
        f"Resources in {result.region}",
        result.resource_counts(),
        sorted(result.errors.items()),
    )

    if output:
        with open(output, "w", encoding="utf-8") as f:
            json.dump(result.to_dict(), f, indent=2, default=str)
        console.print(f"Graph written to {output}")

    sys.exit(1 if result.has_errors else 0)


@cli.command("fetch")
@click.argument("resource_type", type=click.Choice(RESOURCE_TYPES))
@click.option("--output", "-o", default=None, help="Write the graph as JSON to this file")
@click.pass_context
def fetch(ctx, resource_type, output):
    """Fetch a single resource type without relationships."""
    service_name = SERVICE_PER_RESOURCE_TYPE[resource_type]
    service = SERVICES[service_name](ctx.obj["client"], ctx.obj["config"])

    try:
        result = service.fetch_by_type(resource_type)
    except AwsyncError as e:
        console.print(f"\n[red bold]Error:[/red bold] {escape(str(e))}")
        sys.exit(1)

    errors = [(f"{service_name}[{resource_type}]", result.error)] if result.error else []
    _print_counts(f"{service_name} {resource_type}", result.resource_counts(), errors)

    if output:
        with open(output, "w", encoding="utf-8") as f:
            json.dump(result.to_dict(), f, indent=2, default=str)

    sys.exit(1 if result.has_errors else 0)


def main():
    cli()


if __name__ == "__main__":
    main()
