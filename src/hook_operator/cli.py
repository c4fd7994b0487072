"""Lifecycle hook operator CLI (hookctl).

Usage:
    hookctl apply hook.yaml --state hook.state.yaml    # Create or update
    hookctl refresh --state hook.state.yaml            # Read back, detect drift
    hookctl destroy --state hook.state.yaml            # Delete and wait
    hookctl import lh-123 --state hook.state.yaml      # Adopt an existing hook
    hookctl show --state hook.state.yaml               # Print the state record

The state file is written after every operation, including failed ones, so
that an identity assigned before a failure is never lost.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import click
import yaml

from .config import Config, ConfigurationError
from .controller import LifecycleController, ReconcileResult
from .gateway import RemoteGateway
from .main import build_controller, build_gateway, setup_logging
from .security import SecretlessViolationError
from .state_store import SpecLoadError, StateStore, StateStoreError, load_spec

DEFAULT_STATE_FILE = "lifecycle-hook.state.yaml"

GatewayFactory = Callable[[Config], RemoteGateway]

state_option = click.option(
    "--state",
    "state_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=DEFAULT_STATE_FILE,
    show_default=True,
    help="Persisted state record.",
)


def _load_config() -> Config:
    try:
        return Config.from_env()
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e


@contextmanager
def _controller(ctx: click.Context, store: StateStore) -> Iterator[LifecycleController]:
    """Wire a controller for the stored record and close its gateway afterwards."""
    config = _load_config()
    factory: GatewayFactory = ctx.obj.get("gateway_factory", build_gateway)
    try:
        record = store.load()
        gateway = factory(config)
    except (StateStoreError, ConfigurationError, SecretlessViolationError) as e:
        raise click.ClickException(str(e)) from e

    try:
        yield build_controller(config, record, gateway)
    finally:
        gateway.close()


def _finish(controller: LifecycleController, store: StateStore, result: ReconcileResult) -> None:
    try:
        store.save(controller.record)
    except StateStoreError as e:
        raise click.ClickException(str(e)) from e

    summary = f"{result.action.value}: status={result.status.value}"
    if result.identity:
        summary += f" identity={result.identity}"
    if result.changed_fields:
        summary += f" changed={','.join(result.changed_fields)}"
    click.echo(summary)

    if result.ignored_immutable_fields:
        click.echo(
            "warning: immutable fields differ and were not applied: "
            + ", ".join(result.ignored_immutable_fields),
            err=True,
        )
    if result.error is not None:
        raise click.ClickException(str(result.error))


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
)
@click.pass_context
def cli(ctx: click.Context, log_level: str) -> None:
    """Reconcile a single auto-scaling lifecycle hook against the control plane."""
    ctx.ensure_object(dict)
    setup_logging(getattr(logging, log_level.upper()))


@cli.command()
@click.argument("spec_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@state_option
@click.pass_context
def apply(ctx: click.Context, spec_path: Path, state_path: Path) -> None:
    """Create the hook if absent, otherwise update changed fields."""
    try:
        desired = load_spec(spec_path)
    except SpecLoadError as e:
        raise click.ClickException(str(e)) from e

    store = StateStore(state_path)
    with _controller(ctx, store) as controller:
        _finish(controller, store, controller.apply(desired))


@cli.command()
@state_option
@click.pass_context
def refresh(ctx: click.Context, state_path: Path) -> None:
    """Read the hook back from the control plane."""
    store = StateStore(state_path)
    with _controller(ctx, store) as controller:
        _finish(controller, store, controller.refresh())


@cli.command()
@state_option
@click.pass_context
def destroy(ctx: click.Context, state_path: Path) -> None:
    """Delete the hook and wait until the deletion is confirmed."""
    store = StateStore(state_path)
    with _controller(ctx, store) as controller:
        _finish(controller, store, controller.destroy())


@cli.command("import")
@click.argument("identity")
@state_option
@click.pass_context
def import_hook(ctx: click.Context, identity: str, state_path: Path) -> None:
    """Adopt an existing hook by IDENTITY into an empty state record."""
    store = StateStore(state_path)
    with _controller(ctx, store) as controller:
        _finish(controller, store, controller.import_hook(identity))


@cli.command()
@state_option
def show(state_path: Path) -> None:
    """Print the persisted state record."""
    try:
        record = StateStore(state_path).load()
    except StateStoreError as e:
        raise click.ClickException(str(e)) from e
    data: dict[str, Any] = record.model_dump(mode="json", by_alias=True)
    click.echo(yaml.safe_dump(data, sort_keys=False), nl=False)


def main() -> None:
    """Console script entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
