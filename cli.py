import asyncio
import logging
from pathlib import Path

import click

from auth.session_gateway import SessionGateway, parse_callback_params
from controllers import AppFlow, AuthStatus, ProfileStatus
from db import init_supabase, load_config, setup_logging
from services.asset_transfer import AssetTransfer
from services.errors import FlowError, InvalidCallbackError
from services.profile_store import ProfileStore

# --- Setup logging once for CLI ---
setup_logging()
logger = logging.getLogger("ps_cli")


def build_app_flow() -> AppFlow:
    config = load_config()
    client = init_supabase(config)
    if client is None:
        raise click.ClickException(
            "Supabase is not configured (set SUPABASE_URL and SUPABASE_ANON_KEY)"
        )
    return AppFlow(
        gateway=SessionGateway(client, config.callback_url),
        store=ProfileStore(client, config.profiles_table),
        transfer=AssetTransfer(client, config.avatar_bucket),
    )


def _echo_profile(state):
    buf = state.buffer
    click.echo(f"Username:  {buf.username or '-'}")
    click.echo(f"Full name: {buf.full_name or '-'}")
    click.echo(f"Website:   {buf.website or '-'}")
    if state.avatar is not None:
        width, height = state.avatar.size
        click.echo(f"Avatar:    {state.avatar.content_type} {width}x{height}")
    elif state.avatar_error is not None:
        click.echo(f"Avatar:    unavailable ({state.avatar_error})")
    else:
        click.echo("Avatar:    none")


@click.group()
def cli():
    """Magic-link sign-in and profile sync CLI."""


@cli.command("check-callback")
@click.argument("url")
def check_callback(url):
    """Validate a callback URL without contacting Supabase."""
    config = load_config()
    try:
        params = parse_callback_params(url, config.callback_url)
    except InvalidCallbackError as e:
        raise click.ClickException(str(e))
    click.echo(f"Callback OK, parameters: {', '.join(sorted(params)) or 'none'}")


@cli.command()
@click.argument("email")
@click.option("--username", default=None, help="New username")
@click.option("--full-name", default=None, help="New full name")
@click.option("--website", default=None, help="New website")
@click.option(
    "--avatar",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Image file to use as avatar",
)
def login(email, username, full_name, website, avatar):
    """Sign in with a magic link, show the profile and optionally update it."""
    app = build_app_flow()

    async def _run():
        state = await app.auth.request_sign_in(email)
        if state.status != AuthStatus.LINK_SENT:
            raise click.ClickException(f"Sign-in failed: {state.error}")
        click.echo("Check your inbox for the sign-in link")

        url = click.prompt("Paste the link the email redirected to")
        state = await app.open_url(url)
        if state is None or not state.is_authenticated:
            reason = state.error if state is not None else "foreign URL scheme"
            raise click.ClickException(f"Could not sign in: {reason}")
        click.echo(f"Signed in as {state.session.email}")

        flow = app.open_profile()
        state = await flow.enter()
        if state.status == ProfileStatus.LOAD_ERROR:
            raise click.ClickException(f"Failed to load profile: {state.error}")
        _echo_profile(state)

        edits = {
            k: v
            for k, v in (
                ("username", username),
                ("full_name", full_name),
                ("website", website),
            )
            if v is not None
        }
        if not edits and avatar is None:
            return

        flow.edit(**edits)
        if avatar is not None:
            state = flow.select_avatar(avatar.read_bytes())
            if state.avatar_error is not None:
                raise click.ClickException(f"Failed to load image: {state.avatar_error}")

        try:
            state = await flow.save()
        except FlowError as e:
            raise click.ClickException(str(e))
        if state.status != ProfileStatus.SAVED:
            raise click.ClickException(f"Failed to save profile: {state.error}")
        click.echo("✅ Profile updated")
        _echo_profile(state)

    try:
        asyncio.run(_run())
    finally:
        asyncio.run(app.sign_out())


if __name__ == "__main__":
    cli()
