"""bundlehub CLI — the main entry point."""

from __future__ import annotations

import functools
import logging

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from bundlehub import __version__
from bundlehub.errors import BundleHubError
from bundlehub.home import Home

console = Console()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def handle_errors(func):
    """Report bundlehub errors in red and exit non-zero."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except BundleHubError as e:
            console.print(f"[red]Error:[/] {escape(str(e))}")
            raise click.exceptions.Exit(1)

    return wrapper


pass_home = click.make_pass_decorator(Home)


@click.group()
@click.version_option(version=__version__)
@click.option("--home", "home_path", envvar="BUNDLEHUB_HOME", default=None, help="bundlehub home directory")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx: click.Context, home_path: str | None, verbose: bool):
    """bundlehub — install and manage CNAB bundles.

    Resolve bundles from repositories, keep signed copies in a local
    content-addressed store, and install them through pluggable drivers.
    """
    _configure_logging(verbose)
    ctx.obj = Home.from_env(home_path)


# ── Install ──────────────────────────────────────────────────────────


@main.command()
@click.argument("args", nargs=-1)
@click.option("--file", "-f", "bundle_file", default="", help="Bundle file to install")
@click.option("--credentials", "-c", default="", help="Credential set to use inside the bundle")
@click.option("--parameters", "-p", default="", help="Parameter file (.toml or .json)")
@click.option("--driver", "-d", "driver_name", default="docker", help="Driver name")
@click.option("--insecure", is_flag=True, help="Do not verify signed bundle files")
@pass_home
@handle_errors
def install(
    home: Home,
    args: tuple,
    bundle_file: str,
    credentials: str,
    parameters: str,
    driver_name: str,
    insecure: bool,
):
    """Install a CNAB bundle as NAME.

    \b
    Examples:
        bundlehub install my_release bundles.example.org/app:0.1.0
        bundlehub install dev_bundle -f path/to/bundle.json -d debug

    Built-in drivers: docker (runs the invocation image with the docker
    client; VERBOSE=true shows its output) and debug (prints what would
    have been sent).
    """
    from bundlehub.claim import FilesystemClaimStore
    from bundlehub.install import bundle_source_from_args
    from bundlehub.install import install as run_install
    from bundlehub.repo.resolver import Resolver
    from bundlehub.signature import load_keyring

    name, source = bundle_source_from_args(args, bundle_file)
    home.ensure()

    keyring = None
    if not insecure and home.public_keyring().exists():
        keyring = load_keyring(home.public_keyring())

    console.print(f"\n[bold blue]bundlehub[/] — Installing: {name}\n")
    with Resolver.from_home(home) as resolver:
        claim = run_install(
            name,
            source,
            claim_store=FilesystemClaimStore(home.claims()),
            resolver=resolver,
            credentials_file=credentials,
            parameters_file=parameters,
            driver_name=driver_name,
            keyring=keyring,
            insecure=insecure,
        )
    console.print(f"  [green]v[/] Installed {claim.name} ({claim.bundle})")


# ── Claims ───────────────────────────────────────────────────────────


@main.command()
@click.argument("name")
@pass_home
@handle_errors
def status(home: Home, name: str):
    """Show the stored claim for installation NAME."""
    from bundlehub.claim import STATUS_SUCCESS, FilesystemClaimStore

    claim = FilesystemClaimStore(home.claims()).read(name)
    colour = "green" if claim.result.status == STATUS_SUCCESS else "red"
    console.print(f"  [cyan]{claim.name}[/]")
    console.print(f"    Bundle:   {claim.bundle} ({claim.image_type})")
    console.print(f"    Action:   {claim.result.action}")
    console.print(f"    Status:   [{colour}]{claim.result.status}[/]")
    console.print(f"    Modified: {claim.modified}")
    if claim.result.message:
        console.print(f"    Message:  {claim.result.message}")


@main.command(name="list")
@pass_home
@handle_errors
def list_claims(home: Home):
    """List installations."""
    from bundlehub.claim import FilesystemClaimStore

    store = FilesystemClaimStore(home.claims())
    names = store.list()
    if not names:
        console.print("[yellow]No installations found.[/]")
        return

    table = Table(title=f"Installations ({len(names)})")
    table.add_column("Name", style="cyan")
    table.add_column("Bundle")
    table.add_column("Status")
    table.add_column("Modified", style="dim")
    for name in names:
        claim = store.read(name)
        table.add_row(claim.name, claim.bundle, claim.result.status, claim.modified)
    console.print(table)


# ── Repositories ─────────────────────────────────────────────────────


@main.group()
def repo():
    """Manage bundle repositories."""


@repo.command()
@click.argument("directory", type=click.Path(exists=True, file_okay=False))
@click.option("--url", default="", help="Base URL the repository will be served from")
@handle_errors
def generate(directory: str, url: str):
    """Generate index.json and tag files for DIRECTORY."""
    from bundlehub.repo.generate import generate_from_directory

    console.print(f"\n[bold blue]bundlehub[/] — Generating repository: {directory}\n")
    index = generate_from_directory(directory, url)
    for name in index.names():
        for entry in index.entries[name]:
            console.print(f"  [green]+[/] {entry.name} {entry.version}")


@repo.command()
@click.argument("source", type=click.Path(exists=True, dir_okay=False))
@click.option("--into", "dest", default=None, help="Index to merge into (default: the home's index)")
@pass_home
@handle_errors
def merge(home: Home, source: str, dest: str | None):
    """Merge the index file SOURCE into an existing index.

    Entries already present are kept as they are.
    """
    from pathlib import Path

    from bundlehub.repo.index import IndexFile, load_index_file

    dest_path = Path(dest) if dest else home.repository_index()
    index = load_index_file(dest_path) if dest_path.exists() else IndexFile()
    before = sum(len(v) for v in index.entries.values())
    index.merge(load_index_file(source))
    index.sort_entries()
    index.write_file(dest_path)
    added = sum(len(v) for v in index.entries.values()) - before
    console.print(f"  Merged {added} new entr{'y' if added == 1 else 'ies'} into {dest_path}")


@main.command()
@click.argument("query", default="")
@click.option("--version", "constraint", default="", help="Version constraint, e.g. '^1.2'")
@pass_home
@handle_errors
def search(home: Home, query: str, constraint: str):
    """Search the home's merged repository index."""
    from bundlehub.repo.index import load_index_file
    from bundlehub.repo.semver import Constraint

    if constraint:
        Constraint.parse(constraint)

    path = home.repository_index()
    if not path.exists():
        console.print("[yellow]No repository index found. Use 'bundlehub repo merge' first.[/]")
        return

    index = load_index_file(path)
    entries = index.search(query)
    if constraint:
        entries = [index.get(e.name, constraint) for e in entries if index.has(e.name, constraint)]
    if not entries:
        console.print("[yellow]No matching bundles found.[/]")
        return

    table = Table(title=f"Bundles ({len(entries)})")
    table.add_column("Name", style="cyan")
    table.add_column("Version")
    table.add_column("Description")
    for entry in entries:
        table.add_row(entry.name, entry.version, entry.description[:60])
    console.print(table)


# ── Content store ────────────────────────────────────────────────────


@main.group()
def bundle():
    """Manage the local bundle store."""


@bundle.command()
@click.argument("bundle_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--insecure", is_flag=True, help="Store without signing")
@click.option("--signer", default="", help="Key id, user id, name or email of the signing key")
@pass_home
@handle_errors
def store(home: Home, bundle_file: str, insecure: bool, signer: str):
    """Sign BUNDLE_FILE and add it to the local store."""
    from bundlehub.bundle.loader import load_bundle
    from bundlehub.store.local import LocalStore

    b = load_bundle(bundle_file, insecure=True)
    content_digest = LocalStore(home.ensure()).store_bundle(b, insecure=insecure, signer=signer)
    console.print(f"  Stored {b.name} {b.version} as [cyan]{content_digest}[/]")


@bundle.command()
@click.argument("content_digest")
@pass_home
@handle_errors
def verify(home: Home, content_digest: str):
    """Check a stored bundle's digest and signature."""
    from bundlehub.signature import Verifier, is_clearsigned, load_keyring
    from bundlehub.store.local import LocalStore

    data = LocalStore(home).load(content_digest)
    console.print("  [green]v[/] Digest matches")
    if not is_clearsigned(data):
        console.print("  [yellow]![/] Bundle is not signed")
        return
    _, key = Verifier(load_keyring(home.public_keyring())).verify(data)
    console.print(f"  [green]v[/] Signed by {key.user_id} ({key.key_id})")


# ── Keys ─────────────────────────────────────────────────────────────


@main.group()
def key():
    """Manage signing keys."""


@key.command()
@click.argument("user_id")
@pass_home
@handle_errors
def create(home: Home, user_id: str):
    """Create a signing key for USER_ID, e.g. 'Jane Doe <jane@example.com>'."""
    from bundlehub.signature import KeyRing, create_key, load_keyring

    home.ensure()
    secret_path, public_path = home.secret_keyring(), home.public_keyring()
    secret = load_keyring(secret_path) if secret_path.exists() else KeyRing()
    public = load_keyring(public_path) if public_path.exists() else KeyRing()

    new_key = create_key(user_id)
    secret.add(new_key)
    public.add(new_key.public_only())
    secret.save(secret_path)
    public.save(public_path, include_private=False)
    console.print(f"  Created [cyan]{new_key.key_id}[/] for {user_id}")


@key.command(name="list")
@pass_home
@handle_errors
def list_keys(home: Home):
    """List keys in the secret and public keyrings."""
    from bundlehub.signature import load_keyring

    table = Table(title="Keys")
    table.add_column("Key ID", style="cyan")
    table.add_column("User ID")
    table.add_column("Secret", justify="center")
    seen: set[str] = set()
    for path in (home.secret_keyring(), home.public_keyring()):
        if not path.exists():
            continue
        for k in load_keyring(path):
            if k.key_id in seen:
                continue
            seen.add(k.key_id)
            table.add_row(k.key_id, k.user_id, "[green]Y[/]" if k.can_sign else "")
    if not seen:
        console.print("[yellow]No keys found. Use 'bundlehub key create' first.[/]")
        return
    console.print(table)


if __name__ == "__main__":
    main()
