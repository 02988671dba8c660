#!/usr/bin/env python3
"""
CLI tool for stack status conditions
Provides a kubectl-like interface for inspecting and setting stack conditions
"""

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, List

import asyncpg
import click
import yaml
from tabulate import tabulate

from conditions import Condition, active_conditions
from config import LoggingConfig, get_config
from db import DatabaseManager
from errors import StatusError
from resources import NamespacedName
from status import ConditionReconciler


@asynccontextmanager
async def open_client() -> AsyncIterator[DatabaseManager]:
    """Connect to the configured database for the duration of a command."""
    db_config = get_config().database
    db = DatabaseManager(
        host=db_config.host,
        port=db_config.port,
        database=db_config.database,
        user=db_config.user,
        password=db_config.password,
        min_pool_size=db_config.min_pool_size,
        max_pool_size=db_config.max_pool_size,
    )
    await db.connect()
    try:
        yield db
    finally:
        await db.close()


def format_conditions(conditions: List[Condition], output: str) -> str:
    """Render a condition ledger as a table, JSON or YAML."""
    data = [c.to_dict() for c in conditions]
    if output == "json":
        return json.dumps(data, indent=2)
    if output == "yaml":
        return yaml.dump(data, default_flow_style=False, sort_keys=False)

    rows = [
        [
            c["type"],
            c["status"],
            c["reason"],
            c["message"],
            c["lastTransitionTime"] or "",
        ]
        for c in data
    ]
    return tabulate(
        rows, headers=["TYPE", "STATUS", "REASON", "MESSAGE", "LAST TRANSITION"]
    )


def _run(coro):
    try:
        return asyncio.run(coro)
    except (StatusError, asyncpg.PostgresError, ValueError, OSError) as e:
        raise click.ClickException(str(e))


async def _set_condition(ref: NamespacedName, condition_type: str, **kwargs) -> None:
    async with open_client() as client:
        reconciler = ConditionReconciler(
            client, backoff=get_config().retry.to_backoff()
        )
        if condition_type == "Ready":
            await reconciler.set_ready(ref)
        elif condition_type == "Failed":
            await reconciler.set_failed(ref)
        elif condition_type == "Pending":
            await reconciler.set_pending(ref)
        else:
            await reconciler.set_degraded(ref, kwargs["message"], kwargs["reason"])


@click.group()
def cli():
    """Stack status CLI - inspect and set stack conditions"""
    logging.basicConfig(
        level=LoggingConfig.from_env().log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@cli.command("init-db")
def init_db():
    """Create the stacks table"""

    async def _init():
        async with open_client() as client:
            await client.initialize_schema()

    _run(_init())
    click.echo("Database schema initialized")


@cli.command()
@click.argument("namespace")
@click.argument("name")
def create(namespace, name):
    """Create a stack with an empty status"""

    async def _create():
        async with open_client() as client:
            return await client.create_stack(NamespacedName(namespace, name))

    stack = _run(_create())
    click.echo(f"Stack {stack.ref} created (version {stack.resource_version})")


@cli.command()
@click.argument("namespace")
@click.argument("name")
def delete(namespace, name):
    """Delete a stack"""

    async def _delete():
        async with open_client() as client:
            return await client.delete_stack(NamespacedName(namespace, name))

    if _run(_delete()):
        click.echo(f"Stack {namespace}/{name} deleted")
    else:
        click.echo(f"Stack {namespace}/{name} not found", err=True)


@cli.command("list")
@click.option("--namespace", "-n", default=None, help="Only list this namespace")
def list_stacks(namespace):
    """List stacks and their active condition"""

    async def _list():
        async with open_client() as client:
            return await client.list_stacks(namespace=namespace)

    stacks = _run(_list())
    rows = []
    for stack in stacks:
        active = [c.type for c in active_conditions(stack.conditions)]
        rows.append(
            [stack.namespace, stack.name, ",".join(active), stack.resource_version]
        )
    click.echo(tabulate(rows, headers=["NAMESPACE", "NAME", "CONDITION", "VERSION"]))


@cli.command()
@click.argument("namespace")
@click.argument("name")
@click.option(
    "--output", "-o", type=click.Choice(["table", "json", "yaml"]), default="table"
)
def conditions(namespace, name, output):
    """Show the condition ledger of a stack"""
    ref = NamespacedName(namespace, name)

    async def _get():
        async with open_client() as client:
            return await client.get_stack(ref)

    stack = _run(_get())
    if stack is None:
        raise click.ClickException(f"Stack {ref} not found")
    click.echo(format_conditions(stack.conditions, output))


@cli.command("set-ready")
@click.argument("namespace")
@click.argument("name")
def set_ready(namespace, name):
    """Mark a stack Ready"""
    _run(_set_condition(NamespacedName(namespace, name), "Ready"))
    click.echo(f"Stack {namespace}/{name} marked Ready")


@cli.command("set-failed")
@click.argument("namespace")
@click.argument("name")
def set_failed(namespace, name):
    """Mark a stack Failed"""
    _run(_set_condition(NamespacedName(namespace, name), "Failed"))
    click.echo(f"Stack {namespace}/{name} marked Failed")


@cli.command("set-pending")
@click.argument("namespace")
@click.argument("name")
def set_pending(namespace, name):
    """Mark a stack Pending"""
    _run(_set_condition(NamespacedName(namespace, name), "Pending"))
    click.echo(f"Stack {namespace}/{name} marked Pending")


@cli.command("set-degraded")
@click.argument("namespace")
@click.argument("name")
@click.option("--message", "-m", required=True, help="Why the stack is degraded")
@click.option("--reason", "-r", required=True, help="Machine-readable reason")
def set_degraded(namespace, name, message, reason):
    """Mark a stack Degraded"""
    _run(
        _set_condition(
            NamespacedName(namespace, name), "Degraded", message=message, reason=reason
        )
    )
    click.echo(f"Stack {namespace}/{name} marked Degraded")


if __name__ == "__main__":
    cli()
