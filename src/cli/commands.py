"""CLI command implementations — each command runs one controller session."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.text import Text

from src.agent.config import MailerConfig
from src.agent.controller import MailerController, build_controller
from src.auth.state import AuthState
from src.cli.display import LogView, draft_summary
from src.gmail.message import split_recipients

logger = logging.getLogger(__name__)
console = Console(width=200)


def _open_session(config: MailerConfig) -> MailerController:
    """Build a controller whose activity log streams to the terminal."""
    controller = build_controller(config)
    LogView(console).attach(controller.log)
    return controller


async def _ensure_signed_in(controller: MailerController) -> bool:
    await controller.start()
    if controller.auth_state in (AuthState.SIGNED_OUT, AuthState.AUTH_ERROR):
        await controller.sign_in()
    return controller.auth_state is AuthState.SIGNED_IN


# ── login / logout ──────────────────────────────────────────────────────────────


@click.command()
@click.pass_obj
def login(config: MailerConfig) -> None:
    """Sign in with Google (or confirm an existing sign-in)."""
    if not asyncio.run(_login_async(config)):
        raise SystemExit(1)


async def _login_async(config: MailerConfig) -> bool:
    controller = _open_session(config)
    if not await _ensure_signed_in(controller):
        console.print(f"[red]Not signed in (state: {controller.auth_state.value}).[/red]")
        return False
    identity = controller.identity
    assert identity is not None
    name = f"{identity.display_name} " if identity.display_name else ""
    console.print(f"[green]Signed in as {escape(name)}<{escape(identity.email)}>[/green]")
    return True


@click.command()
@click.pass_obj
def logout(config: MailerConfig) -> None:
    """Sign out and forget the cached Google session."""
    asyncio.run(_logout_async(config))


async def _logout_async(config: MailerConfig) -> None:
    controller = _open_session(config)
    await controller.start()
    if controller.auth_state is AuthState.SIGNED_IN:
        await controller.sign_out()
    else:
        console.print("[yellow]No Google session to sign out of.[/yellow]")


# ── generate ────────────────────────────────────────────────────────────────────


@click.command()
@click.option("--subject", required=True, help="Subject line the body should fit.")
@click.option("--prompt", default=None, help="Custom prompt instead of the built-in template.")
@click.pass_obj
def generate(config: MailerConfig, subject: str, prompt: str | None) -> None:
    """Draft an email body with Claude and print it."""
    if not asyncio.run(_generate_async(config, subject, prompt)):
        raise SystemExit(1)


async def _generate_async(config: MailerConfig, subject: str, prompt: str | None) -> bool:
    controller = _open_session(config)
    controller.initialize_ai()
    controller.draft.subject = subject
    if not await controller.generate_with_ai(prompt):
        return False
    console.print(
        Panel(Text(controller.draft.body_html), title=f"[bold]{escape(subject)}[/bold]", border_style="magenta")
    )
    return True


# ── send ────────────────────────────────────────────────────────────────────────


@click.command()
@click.option("--to", "to_text", default=None, help="Recipients separated by commas, semicolons or newlines.")
@click.option(
    "--to-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="File with one or more recipients per line.",
)
@click.option("--subject", required=True, help="Subject line shared by every message.")
@click.option("--body", default=None, help="HTML body; newlines become <br>.")
@click.option(
    "--body-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Read the HTML body from a file.",
)
@click.option("--ai", "use_ai", is_flag=True, help="Generate the body with Claude from the subject.")
@click.option("--prompt", default=None, help="Custom prompt for --ai.")
@click.option(
    "--attach",
    "attachments",
    multiple=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="File to attach to every message (repeatable).",
)
@click.option("--yes", "assume_yes", is_flag=True, help="Send without asking for confirmation.")
@click.pass_obj
def send(
    config: MailerConfig,
    to_text: str | None,
    to_file: Path | None,
    subject: str,
    body: str | None,
    body_file: Path | None,
    use_ai: bool,
    prompt: str | None,
    attachments: tuple[Path, ...],
    assume_yes: bool,
) -> None:
    """Send the same message to every recipient, one at a time, 60 s apart."""
    if not to_text and to_file is None:
        raise click.UsageError("Give recipients with --to or --to-file.")
    if sum([body is not None, body_file is not None, use_ai]) != 1:
        raise click.UsageError("Give exactly one of --body, --body-file or --ai.")

    recipients_raw = to_text or ""
    if to_file is not None:
        recipients_raw += "\n" + to_file.read_text(encoding="utf-8")
    body_html = body_file.read_text(encoding="utf-8") if body_file else (body or "")

    ok = asyncio.run(
        _send_async(
            config,
            recipients_raw=recipients_raw,
            subject=subject,
            body_html=body_html,
            use_ai=use_ai,
            prompt=prompt,
            attachments=attachments,
            assume_yes=assume_yes,
        )
    )
    if not ok:
        raise SystemExit(1)


async def _send_async(
    config: MailerConfig,
    *,
    recipients_raw: str,
    subject: str,
    body_html: str,
    use_ai: bool,
    prompt: str | None,
    attachments: tuple[Path, ...],
    assume_yes: bool,
) -> bool:
    controller = _open_session(config)
    draft = controller.draft
    draft.recipients_raw = recipients_raw
    draft.subject = subject
    draft.body_html = body_html
    controller.add_attachments(attachments)

    if not await _ensure_signed_in(controller):
        console.print(f"[red]Cannot send: not signed in (state: {controller.auth_state.value}).[/red]")
        return False

    if use_ai and not await controller.generate_with_ai(prompt):
        return False

    count = len(split_recipients(recipients_raw))
    console.print(draft_summary(draft, count))
    if not assume_yes and not click.confirm(f"Send to {count} recipient(s)?", default=False):
        console.print("[yellow]Aborted.[/yellow]")
        return False

    return await controller.send_emails()
