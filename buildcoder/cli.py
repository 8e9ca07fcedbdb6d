# buildcoder/cli.py
"""
BuildCoder CLI entry point.
"""
import asyncio
from pathlib import Path
from typing import Optional

import click

from buildfs import FileSnapshot, diff_snapshots, materialize, read_directory, unified_file_diff
from buildflow.core.exceptions import BuildflowError
from buildflow.core.events import Action
from buildflow.core.models import Notice, NoticeLevel, OutcomeStatus, TurnOutcome
from buildflow.core.state import NoticeChannel
from buildflow.storage import FileProjectStore
from buildflow.utils.id_generator import format_timestamp

from buildcoder import __version__
from buildcoder.core.config import (
    CONFIG_FILE, PROVIDER_TOKEN_ENVS, AppConfig, ConfigError, validate_config_content,
)
from buildcoder.core.init import DEFAULT_ENDPOINT, DEFAULT_TOKEN_ENV, init_project, render_config
from buildcoder.core.session import AgentSession
from buildcoder.utils.console import (
    code_block, confirm, console, error, heading, info, journal, print_table, prompt_input,
    setup_logging, show_welcome, success, warning,
)

# ------------------------------
# CLI entry
# ------------------------------

@click.group(invoke_without_command=True)
@click.version_option(__version__, message="BuildCoder CLI v%(version)s")
@click.option("--verbose", "-v", is_flag=True, help="Show library log output")
@click.pass_context
def cli(ctx, verbose: bool):
    """🤖 BuildCoder - describe a change, let the agent build it"""
    setup_logging(verbose)
    show_welcome()
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# ------------------------------
# helpers
# ------------------------------

def _load_config() -> AppConfig:
    try:
        return AppConfig.load(CONFIG_FILE)
    except ConfigError as e:
        error(str(e))
        raise click.Abort()


def _load_store(config: AppConfig) -> FileProjectStore:
    return FileProjectStore(config.storage.dir)


def _render_notice(notice: Notice) -> None:
    """Console side of the session's notice channel."""
    if notice.kind == "view":
        event = notice.data.get("event")
        if isinstance(event, Action) and not event.kind.is_task_transition:
            journal(f"{event.kind.value} {event.target or ''}".rstrip())
        return
    if notice.kind in ("files_written", "files_deleted"):
        verb = "wrote" if notice.kind == "files_written" else "deleted"
        journal(f"{verb} {', '.join(notice.data.get('paths', []))}")
        return
    if not notice.message:
        return
    if notice.level is NoticeLevel.ERROR:
        error(notice.message)
    elif notice.level is NoticeLevel.WARNING:
        warning(notice.message)
    elif notice.level is NoticeLevel.SUCCESS:
        success(notice.message)
    else:
        info(notice.message)


def _show_outcome(session: AgentSession, outcome: TurnOutcome) -> None:
    if outcome.summary:
        console.print(f"\n🤖 {outcome.summary}\n")
    if session.view.tasks:
        print_table(
            [(t.id, t.description, t.status.value) for t in session.view.tasks],
            headers=["ID", "Task", "Status"],
            title="📋 Tasks",
        )
    if outcome.status is OutcomeStatus.FAILED:
        error(outcome.error or "The turn failed.")
    elif outcome.status is OutcomeStatus.INCOMPLETE:
        warning("Unfinished tasks: " + ", ".join(t.id for t in outcome.incomplete_tasks))
    elif outcome.committed:
        success(f"Published {len(outcome.edited_paths)} changed path(s).")
    elif outcome.edited_paths:
        info(f"{len(outcome.edited_paths)} path(s) changed in the draft (not yet published).")


async def _resolve_plans(session: AgentSession, outcome: TurnOutcome, auto_approve: bool) -> TurnOutcome:
    """Ask about every plan the agent proposes until the turn stops asking."""
    while outcome.status is OutcomeStatus.AWAITING_PLAN_APPROVAL:
        heading("Proposed plan")
        for number, step in enumerate(outcome.plan_steps, 1):
            console.print(f"  {number}. {step}")
        if auto_approve or confirm("Approve this plan?", default=True):
            outcome = await session.approve_plan()
        else:
            outcome = session.reject_plan()
    return outcome


def _open_session(config: AppConfig, import_dir: Optional[str]) -> AgentSession:
    notices = NoticeChannel()
    notices.subscribe(_render_notice)
    initial = read_directory(import_dir) if import_dir else None
    if config.model_token() is None:
        warning(f"Environment variable {config.model.resolve().token_env} is not set; model requests will fail.")
    return AgentSession.from_config(config, notices=notices, initial_files=initial)


# ------------------------------
# command: init
# ------------------------------

@cli.command()
@click.option("--name", help="Project name (defaults to the directory name)")
@click.option("--endpoint", help="Model proxy endpoint")
@click.option("--provider", type=click.Choice(sorted(PROVIDER_TOKEN_ENVS)),
              help="Model provider to use instead of the default proxy route")
@click.option("--no-validate", is_flag=True, help="Disable the post-turn code review")
def init(name: Optional[str], endpoint: Optional[str], provider: Optional[str], no_validate: bool):
    """🔧 Initialize project configuration"""
    heading("Project Initialization")
    if CONFIG_FILE.exists():
        if not confirm("Configuration already exists. Re-initializing will overwrite. Continue?", default=False):
            info("Cancelled.")
            return
    name = name or prompt_input("Project name", default=Path(".").resolve().name)
    endpoint = endpoint or prompt_input("Model endpoint", default=DEFAULT_ENDPOINT)
    try:
        content = render_config(name, endpoint=endpoint, token_env=DEFAULT_TOKEN_ENV,
                                provider=provider, auto_validate=not no_validate)
        config_file = init_project(content)
    except (ConfigError, OSError) as e:
        error(f"Initialization failed: {e}")
        raise click.Abort()
    success(f"Generated: {config_file}")
    token_env = PROVIDER_TOKEN_ENVS[provider] if provider else DEFAULT_TOKEN_ENV
    info(f"Export your model token as {token_env} before running `buildcoder chat`.")


# ------------------------------
# command: config
# ------------------------------

@cli.command(name="config")
@click.option("--validate", "validate_only", is_flag=True, help="Only check the configuration")
def show_config(validate_only: bool):
    """📚 Show or validate .buildcoder/config.yaml"""
    if not CONFIG_FILE.exists():
        error("Configuration missing. Please run `buildcoder init` first.")
        raise click.Abort()
    content = CONFIG_FILE.read_text(encoding="utf-8")
    try:
        config = validate_config_content(content)
    except ConfigError as e:
        error(f"Invalid configuration: {e}")
        raise click.Abort()
    if not validate_only:
        code_block(content, "yaml", title=str(CONFIG_FILE))
    route = config.model.resolve()
    token_state = "set" if config.model_token() else "missing"
    image_state = "set" if config.image_api_key() else "missing"
    print_table(
        [
            ("project", f"{config.project.name} ({config.project.id})"),
            ("model provider", config.model.provider or "default"),
            ("model endpoint", route.endpoint),
            (route.token_env, token_state),
            (config.images.api_key_env, image_state),
        ],
        title="🔍 Configuration",
    )
    success("Configuration is valid.")


# ------------------------------
# commands: chat / run
# ------------------------------

async def _chat_loop(session: AgentSession, auto_approve: bool) -> None:
    info("Type a request. Commands: /files, /open <path>, /diff, /exit")
    try:
        while True:
            text = console.input("[prompt]you>[/prompt] ").strip()
            if not text:
                continue
            if text in ("/exit", "/quit"):
                break
            if text == "/files":
                _print_files(session.fs.draft)
                continue
            if text.startswith("/open "):
                try:
                    entry = session.select_file(text[6:].strip())
                except FileNotFoundError as e:
                    warning(str(e))
                    continue
                code_block(entry.content if not entry.is_binary else f"<binary, {entry.size} bytes>",
                           title=session.active_file)
                continue
            if text == "/diff":
                _print_diff(session.fs.live, session.fs.draft)
                continue
            try:
                outcome = await session.submit_prompt(text)
                outcome = await _resolve_plans(session, outcome, auto_approve)
            except BuildflowError as e:
                error(str(e))
                continue
            _show_outcome(session, outcome)
    finally:
        await session.exit_session()


@cli.command()
@click.option("--import-dir", type=click.Path(exists=True, file_okay=False), help="Seed a new project from a directory")
@click.option("--yes", "-y", "auto_approve", is_flag=True, help="Approve every proposed plan")
def chat(import_dir: Optional[str], auto_approve: bool):
    """💬 Interactive session with the agent"""
    config = _load_config()
    heading(f"Project: {config.project.name}")
    session = _open_session(config, import_dir)
    try:
        asyncio.run(_chat_loop(session, auto_approve))
    except (EOFError, KeyboardInterrupt):
        info("Bye.")


async def _run_once(session: AgentSession, prompt: str, auto_approve: bool) -> TurnOutcome:
    try:
        outcome = await session.submit_prompt(prompt)
        return await _resolve_plans(session, outcome, auto_approve)
    finally:
        await session.exit_session()


@cli.command()
@click.argument("prompt")
@click.option("--import-dir", type=click.Path(exists=True, file_okay=False), help="Seed a new project from a directory")
@click.option("--yes", "-y", "auto_approve", is_flag=True, help="Approve every proposed plan")
def run(prompt: str, import_dir: Optional[str], auto_approve: bool):
    """🚀 Run a single request and exit"""
    config = _load_config()
    session = _open_session(config, import_dir)
    try:
        outcome = asyncio.run(_run_once(session, prompt, auto_approve))
    except BuildflowError as e:
        error(str(e))
        raise click.Abort()
    _show_outcome(session, outcome)
    if outcome.status is OutcomeStatus.FAILED:
        raise SystemExit(1)


# ------------------------------
# commands: files / diff / versions / export
# ------------------------------

def _print_files(snapshot: FileSnapshot) -> None:
    if not snapshot:
        info("The project is empty.")
        return
    rows = [(path, snapshot[path].kind.value, snapshot[path].size)
            for path in snapshot.paths(include_directories=True)]
    print_table(rows, headers=["Path", "Kind", "Size"], title="📁 Files")


def _print_diff(old: FileSnapshot, new: FileSnapshot) -> None:
    changes = diff_snapshots(old, new)
    if changes.is_empty:
        info("No differences.")
        return
    for path in changes.touched_paths():
        text = unified_file_diff(path, old.get(path), new.get(path))
        if text:
            code_block(text, "diff", title=path)


def _load_snapshot(store: FileProjectStore, project_id: str, version_id: Optional[str]) -> FileSnapshot:
    if version_id:
        snapshot = store.load_version(project_id, version_id)
        if snapshot is None:
            error(f"Version not found: {version_id}")
            raise click.Abort()
        return snapshot
    snapshot = store.load(project_id)
    if snapshot is None:
        error(f"Project '{project_id}' has not been saved yet.")
        raise click.Abort()
    return snapshot


@cli.command()
@click.option("--version", "version_id", help="Show files of a saved version")
def files(version_id: Optional[str]):
    """📁 List the project's saved files"""
    config = _load_config()
    _print_files(_load_snapshot(_load_store(config), config.project.id, version_id))


@cli.command()
@click.argument("old_version", required=False)
@click.argument("new_version", required=False)
def diff(old_version: Optional[str], new_version: Optional[str]):
    """🔀 Diff two saved versions (defaults: the last two)"""
    config = _load_config()
    store = _load_store(config)
    project_id = config.project.id
    if old_version is None:
        versions = store.list_versions(project_id)
        if len(versions) < 2:
            info("Need at least two saved versions to diff.")
            return
        old_version, new_version = versions[-2].version_id, versions[-1].version_id
    old = _load_snapshot(store, project_id, old_version)
    new = _load_snapshot(store, project_id, new_version)
    heading(f"{old_version} → {new_version or 'current'}")
    _print_diff(old, new)


@cli.command()
def versions():
    """🕘 List saved versions"""
    config = _load_config()
    store = _load_store(config)
    entries = store.list_versions(config.project.id)
    if not entries:
        info("No versions saved yet.")
        return
    print_table(
        [(v.version_id, format_timestamp(v.created_at), v.file_count, v.summary) for v in entries],
        headers=["Version", "Created", "Files", "Summary"],
        title="🕘 Versions",
    )


@cli.command()
@click.argument("destination", type=click.Path(file_okay=False))
@click.option("--version", "version_id", help="Export a saved version instead of the current files")
def export(destination: str, version_id: Optional[str]):
    """📦 Write the project's files to a directory"""
    config = _load_config()
    snapshot = _load_snapshot(_load_store(config), config.project.id, version_id)
    dest = Path(destination)
    if dest.exists() and any(dest.iterdir()):
        if not confirm(f"{dest} is not empty. Overwrite files there?", default=False):
            info("Cancelled.")
            return
    try:
        root = materialize(snapshot, dest)
    except (OSError, ValueError) as e:
        error(f"Export failed: {e}")
        raise click.Abort()
    success(f"Exported {len(snapshot)} entries to {root}")


if __name__ == '__main__':
    cli()
