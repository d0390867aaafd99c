import logging
import sys
import time
from datetime import datetime

import click
import yaml

from lfslocks.errors import NotARepositoryError
from lfslocks.git.repo import (
    current_branch, find_repo_root, git_version, is_git_outdated, setup_credential_helper,
)
from lfslocks.locks.manager import LockManager, RequestResult
from lfslocks.locks.notify import LogNotifier
from lfslocks.utils.config import (
    HOST, PORT, REQUEST_TIMEOUT, TICK_INTERVAL, USER_CONFIG_FILE,
    Settings, load_settings, reset_to_defaults, save_settings,
)


class ClickNotifier:
    """Terminal notifier: warnings on stderr, questions as y/N prompts."""

    def warn(self, title: str, message: str) -> None:
        click.echo(click.style(title, fg="yellow", bold=True), err=True)
        click.echo(message, err=True)

    def confirm(self, title: str, message: str, ok: str = "OK", cancel: str = "Cancel") -> bool:
        click.echo(click.style(title, fg="yellow", bold=True), err=True)
        click.echo(message, err=True)
        return click.confirm(f"{ok}? (no: {cancel})", default=False, err=True)


def _configure_logging(debug: bool):
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _build_manager(ctx, notifier=None) -> LockManager:
    settings: Settings = ctx.obj["settings"]
    try:
        root = find_repo_root(ctx.obj["repo"])
    except NotARepositoryError as e:
        click.echo(str(e), err=True)
        sys.exit(1)
    return LockManager(root, settings, notifier=notifier or ClickNotifier())


def _require_enabled(manager: LockManager):
    if not manager.settings.enabled:
        click.echo("lfslocks is disabled (lfslocks config set enabled true).", err=True)
        sys.exit(1)


def _refresh_and_wait(manager: LockManager, timeout: float = REQUEST_TIMEOUT * 2) -> bool:
    """Run one refresh cycle to completion.  Returns False on timeout."""
    manager.refresh()
    deadline = time.monotonic() + timeout
    while manager.refreshing or manager.runner.busy:
        if time.monotonic() > deadline:
            return False
        time.sleep(0.1)
        manager.tick()
    manager.tick()
    return True


def _fmt_time(ts) -> str:
    return ts.strftime("%Y-%m-%d %H:%M") if isinstance(ts, datetime) else "never"


def _report(result: RequestResult):
    if result.aborted:
        click.echo(f"Cancelled: {result.message}", err=True)
        sys.exit(1)
    if result.errors:
        sys.exit(1)
    verb = "Locked" if result.action == "lock" else "Unlocked"
    click.echo(f"{verb} {len(result.paths)} file(s) in {result.batches} request(s).")


@click.group()
@click.option("--repo", default=".", type=click.Path(exists=True, file_okay=False),
              help="Path inside the git repository")
@click.option("-v", "--verbose", is_flag=True, help="Log every git command")
@click.pass_context
def cli(ctx, repo, verbose):
    """lfslocks - Advisory Git LFS file locks for unmergeable assets."""
    settings = load_settings()
    _configure_logging(verbose or settings.debug_mode)
    ctx.obj = {"repo": repo, "settings": settings}


@cli.command()
@click.option("--all", "show_all", is_flag=True, help="List all of my locks")
@click.pass_context
def status(ctx, show_all):
    """Refresh and list current locks."""
    manager = _build_manager(ctx)
    _require_enabled(manager)
    if not _refresh_and_wait(manager):
        click.echo("Timed out waiting for git lfs locks.", err=True)
        sys.exit(1)
    if not manager.has_snapshot:
        click.echo("No lock data received.", err=True)
        sys.exit(1)

    snapshot = manager.snapshot
    mine = snapshot.own_locks()
    limit = len(mine) if show_all else manager.settings.displayed_own_locks_count
    click.echo(click.style(f"My locks ({len(mine)})", bold=True))
    for r in mine[:limit]:
        click.echo(f"  {r.path}  {_fmt_time(r.locked_at)}")
    if len(mine) > limit:
        click.echo(f"  ... and {len(mine) - limit} more (--all)")

    others = snapshot.other_locks()
    click.echo(click.style(f"Other locks ({len(others)})", bold=True))
    for r in others:
        line = f"  {r.path}  [{r.owner_name}]  {_fmt_time(r.locked_at)}"
        if manager.is_conflicting(r):
            line = click.style(line + "  (uncommitted changes!)", fg="red")
        click.echo(line)

    if not manager.settings.host_username:
        click.echo("Hint: set host_username to tell your locks apart "
                   "(lfslocks config set host_username <name>).", err=True)


@cli.command()
@click.pass_context
def refresh(ctx):
    """Refresh the lock listing once and print a summary."""
    manager = _build_manager(ctx)
    _require_enabled(manager)
    if not _refresh_and_wait(manager):
        click.echo("Timed out waiting for git lfs locks.", err=True)
        sys.exit(1)
    snapshot = manager.snapshot
    click.echo(f"{len(snapshot.own_locks())} mine, {len(snapshot.other_locks())} others.")


@cli.command()
@click.argument("paths", nargs=-1, required=True)
@click.pass_context
def lock(ctx, paths):
    """Lock one or more files."""
    manager = _build_manager(ctx)
    _require_enabled(manager)
    _report(manager.lock_files(list(paths)))


@cli.command()
@click.argument("paths", nargs=-1, required=True)
@click.option("--force", is_flag=True, help="Release locks held by someone else")
@click.pass_context
def unlock(ctx, paths, force):
    """Unlock one or more files."""
    manager = _build_manager(ctx)
    _require_enabled(manager)
    if force and not click.confirm(
        "Are you sure you want to force the unlock? It may mess with a teammate's work!",
        default=False,
    ):
        sys.exit(1)
    _report(manager.unlock_files(list(paths), force=force))


@cli.command("unlock-mine")
@click.pass_context
def unlock_mine(ctx):
    """Release every lock I own."""
    manager = _build_manager(ctx)
    _require_enabled(manager)
    _refresh_and_wait(manager)
    if not manager.snapshot.own_locks():
        click.echo("You don't own any locks.")
        return
    _report(manager.unlock_all_mine())


@cli.command("save-hook")
@click.argument("paths", nargs=-1, required=True)
@click.pass_context
def save_hook(ctx, paths):
    """Warn about files being saved that someone else has locked."""
    manager = _build_manager(ctx)
    if not manager.settings.enabled:
        return
    _refresh_and_wait(manager)
    manager.on_will_save(list(paths))


@cli.command()
@click.pass_context
def watch(ctx):
    """Keep the lock listing fresh and report conflicts until Ctrl-C."""
    manager = _build_manager(ctx)
    _require_enabled(manager)
    click.echo(f"Watching locks in {manager.repo_root} (Ctrl-C to quit)")
    while True:
        try:
            manager.tick()
            time.sleep(TICK_INTERVAL)
        except KeyboardInterrupt:
            click.echo()
            if manager.wants_to_quit():
                break
    manager.runner.close()


@cli.command()
@click.option("--setup-credentials", is_flag=True,
              help="Configure git's credential manager (HTTPS remotes)")
@click.pass_context
def doctor(ctx, setup_credentials):
    """Check the git setup used for locking."""
    manager = _build_manager(ctx)
    banner = git_version(manager.runner)
    click.echo(f"Repository: {manager.repo_root}")
    click.echo(f"Branch:     {current_branch(manager.runner) or '?'}")
    click.echo(f"Git:        {banner or 'not found'}")
    if is_git_outdated(banner):
        click.echo(click.style(
            "Your git version seems outdated (2.30.0 minimum); update it and set up "
            "the credentials manager for authentication to work.", fg="yellow"))
    if not manager.settings.host_username:
        click.echo("host_username is not set; lock ownership can't be evaluated.")
    if setup_credentials:
        error = setup_credential_helper(manager.runner, helper="manager", scope="--local")
        if error:
            click.echo(error, err=True)
            sys.exit(1)
        click.echo("Credential helper configured.")


@cli.group()
def config():
    """Show or change settings (~/.lfslocks/config.yaml)."""


@config.command("show")
@click.pass_context
def config_show(ctx):
    click.echo(f"# {USER_CONFIG_FILE}")
    click.echo(yaml.dump(ctx.obj["settings"].to_dict(), default_flow_style=False,
                         sort_keys=False).rstrip())


@config.command("set")
@click.argument("key")
@click.argument("value")
@click.pass_context
def config_set(ctx, key, value):
    """Set KEY to VALUE (parsed as YAML, so true/false/15 keep their types)."""
    parsed = yaml.safe_load(value)
    if parsed is None:
        parsed = ""
    if key == "extra_branches_to_check" or key == "host_username":
        parsed = str(value)
    try:
        settings = ctx.obj["settings"].updated(**{key: parsed})
    except ValueError as e:
        click.echo(str(e), err=True)
        sys.exit(1)
    if getattr(settings, key) != parsed:
        click.echo(f"Invalid value for {key}: {value}", err=True)
        sys.exit(1)
    save_settings(settings)
    click.echo(f"{key} = {getattr(settings, key)}")


@config.command("reset")
def config_reset():
    reset_to_defaults()
    click.echo("Settings reset to defaults.")


@cli.command()
@click.option("--host", default=HOST, help="Host to bind to")
@click.option("--port", default=PORT, type=int, help="Port to bind to")
@click.pass_context
def serve(ctx, host, port):
    """Serve the lock state over HTTP and keep it refreshed."""
    from lfslocks.server.app import run_server

    manager = _build_manager(ctx, notifier=LogNotifier())
    click.echo(f"lfslocks server on {host}:{port} for {manager.repo_root}")
    run_server(manager, host=host, port=port)
