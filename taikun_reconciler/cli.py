"""Taikun reconciler CLI: Typer app with all subcommands."""

from __future__ import annotations

import traceback
from typing import List, Optional

import typer
from rich.console import Console

from taikun_reconciler import __version__
from taikun_reconciler.errors import ReconcileError

console = Console(stderr=True)

app = typer.Typer(
    name="taikun-reconcile",
    help=(
        "Converge Taikun platform entities to a desired state.\n\n"
        "Exit codes: 0=ok, 1=invalid input, 2=platform error, 3=auth failure, 4=timeout, 130=interrupted."
    ),
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
    epilog=(
        "Common commands:\n"
        "  taikun-reconcile apply --file intents.yaml --parallel 4\n"
        "  taikun-reconcile get project 1234\n"
        "  taikun-reconcile list access_profile --organization-id 3\n"
        "  taikun-reconcile delete access_profile 42\n"
        "  taikun-reconcile flavors --cloud-credential-id 7 --cloud-type openstack\n"
        "  taikun-reconcile doctor\n"
    ),
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"taikun-reconcile {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False, "--version", "-V", help="Show version and exit.",
        callback=_version_callback, is_eager=True,
    ),
) -> None:
    """Converge Taikun platform entities to a desired state."""
    pass


# ── apply ────────────────────────────────────────────────────────

@app.command()
def apply(
    file: str = typer.Option(..., "--file", "-f", help="YAML or JSON file holding an 'intents' list."),
    parallel: int = typer.Option(1, "--parallel", "-p", min=1, help="Intents to run at once."),
    out: Optional[str] = typer.Option(None, "--out", "-o", help="Write outcomes to this JSON file."),
    verbose: bool = typer.Option(False, "--verbose", help="Log every reconciler step."),
) -> None:
    """Execute every intent in FILE and report the outcomes.

    Example:
      taikun-reconcile apply --file intents.yaml
      taikun-reconcile apply -f intents.json --parallel 4 --out observed.json
    """
    _run_safe(lambda: _apply_impl(file, parallel, out, verbose), verbose=verbose)


def _apply_impl(file: str, parallel: int, out: Optional[str], verbose: bool) -> None:
    from taikun_reconciler.commands.apply import run
    code = run(file=file, parallel=parallel, out=out, verbose=verbose)
    if code != 0:
        raise SystemExit(code)


# ── get / delete ─────────────────────────────────────────────────

@app.command()
def get(
    kind: str = typer.Argument(..., help="Entity kind, see 'kinds'."),
    id: str = typer.Argument(..., help="Entity id."),
    verbose: bool = typer.Option(False, "--verbose", help="Log every reconciler step."),
) -> None:
    """Print the observed state of one entity as JSON.

    Example:
      taikun-reconcile get project 1234
    """
    def impl() -> None:
        from taikun_reconciler.commands.get import run
        run(kind=kind, id=id, verbose=verbose)

    _run_safe(impl, verbose=verbose)


@app.command("list")
def list_(
    kind: str = typer.Argument(..., help="Entity kind, see 'kinds'."),
    organization_id: Optional[str] = typer.Option(
        None, "--organization-id", help="Only entities of this organization."
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Log every reconciler step."),
) -> None:
    """Print the observed state of every entity of a kind as a JSON array.

    Example:
      taikun-reconcile list access_profile --organization-id 3
    """
    def impl() -> None:
        from taikun_reconciler.commands.list import run
        run(kind=kind, organization_id=organization_id, verbose=verbose)

    _run_safe(impl, verbose=verbose)


@app.command()
def delete(
    kind: str = typer.Argument(..., help="Entity kind, see 'kinds'."),
    id: str = typer.Argument(..., help="Entity id."),
    verbose: bool = typer.Option(False, "--verbose", help="Log every reconciler step."),
) -> None:
    """Delete one entity; an entity that is already gone counts as deleted.

    Example:
      taikun-reconcile delete kubeconfig 55
    """
    def impl() -> None:
        from taikun_reconciler.commands.delete import run
        run(kind=kind, id=id, verbose=verbose)

    _run_safe(impl, verbose=verbose)


# ── catalog ──────────────────────────────────────────────────────

@app.command()
def flavors(
    cloud_credential_id: str = typer.Option(..., "--cloud-credential-id", help="Cloud credential id."),
    cloud_type: str = typer.Option(..., "--cloud-type", help="aws, azure, gcp, openstack, proxmox or vsphere."),
    min_cpu: int = typer.Option(2, "--min-cpu"),
    max_cpu: int = typer.Option(36, "--max-cpu"),
    min_ram: int = typer.Option(2, "--min-ram", help="GiB"),
    max_ram: int = typer.Option(500, "--max-ram", help="GiB"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a table."),
) -> None:
    """List the flavors a cloud credential offers.

    Example:
      taikun-reconcile flavors --cloud-credential-id 7 --cloud-type aws --min-cpu 4
    """
    def impl() -> None:
        from taikun_reconciler.commands.catalog import run_flavors
        run_flavors(
            cloud_credential_id=cloud_credential_id,
            cloud_type=cloud_type,
            min_cpu=min_cpu,
            max_cpu=max_cpu,
            min_ram=min_ram,
            max_ram=max_ram,
            as_json=as_json,
        )

    _run_safe(impl)


@app.command()
def images(
    cloud_credential_id: str = typer.Option(..., "--cloud-credential-id", help="Cloud credential id."),
    cloud_type: str = typer.Option(..., "--cloud-type", help="aws, azure, gcp, openstack, proxmox or vsphere."),
    owner: Optional[List[str]] = typer.Option(None, "--owner", help="AWS image owner, repeatable."),
    latest: Optional[bool] = typer.Option(None, "--latest/--all", help="AWS, Azure and GCP: latest only."),
    limit: Optional[int] = typer.Option(None, "--limit", help="AWS: maximum images."),
    publisher: Optional[str] = typer.Option(None, "--publisher", help="Azure publisher."),
    offer: Optional[str] = typer.Option(None, "--offer", help="Azure offer."),
    sku: Optional[str] = typer.Option(None, "--sku", help="Azure SKU."),
    image_type: Optional[str] = typer.Option(None, "--type", help="GCP image type."),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a table."),
) -> None:
    """List the images a cloud credential can use.

    Example:
      taikun-reconcile images --cloud-credential-id 7 --cloud-type azure \\
          --publisher Canonical --offer UbuntuServer --sku 18.04-LTS
    """
    def impl() -> None:
        from taikun_reconciler.commands.catalog import run_images
        run_images(
            cloud_credential_id=cloud_credential_id,
            cloud_type=cloud_type,
            as_json=as_json,
            owners=owner or None,
            latest=latest,
            limit=limit,
            publisher=publisher,
            offer=offer,
            sku=sku,
            type=image_type,
        )

    _run_safe(impl)


# ── kinds / doctor ───────────────────────────────────────────────

@app.command()
def kinds() -> None:
    """List the entity kinds this tool can reconcile."""
    from taikun_reconciler.commands.kinds import run
    run()


@app.command()
def doctor(
    login: bool = typer.Option(False, "--login", help="Also try to log in to the platform."),
    verbose: bool = typer.Option(False, "--verbose", help="Show detailed output."),
) -> None:
    """Check configuration, credentials and installed packages.

    Exit codes: 0=healthy, 10=warnings only, 1=fatal issues.
    """
    def impl() -> None:
        from taikun_reconciler.commands.doctor import run
        code = run(login=login, verbose=verbose)
        if code != 0:
            raise SystemExit(code)

    _run_safe(impl, verbose=verbose)


# ── Helpers ──────────────────────────────────────────────────────

def _run_safe(fn, verbose: bool = False) -> None:
    """Run a function with clean error handling."""
    try:
        fn()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted.[/yellow]")
        raise SystemExit(130)
    except ReconcileError as e:
        console.print(f"\n[red bold]Error ({e.kind}):[/red bold] {e}")
        if verbose:
            console.print(traceback.format_exc())
        raise SystemExit(e.exit_code)
    except Exception as e:
        if verbose:
            console.print(f"\n[red bold]Error:[/red bold] {e}")
            console.print(traceback.format_exc())
        else:
            console.print(f"\n[red bold]Error:[/red bold] {e}")
            console.print("[dim]Run with --verbose for full traceback.[/dim]")
        raise SystemExit(1)


if __name__ == "__main__":
    app()
