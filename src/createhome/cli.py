"""CLI for creating home directories."""

import os
import pwd
from pathlib import Path

import click
from safir.asyncio import run_with_asyncio
from safir.click import display_help
from safir.slack.webhook import SlackWebhookClient
from structlog.stdlib import get_logger

from .config import Config
from .constants import CONFIG_FILE, CONFIG_FILE_ENV_VAR, ROOT_LOGGER
from .exceptions import ProvisionFailedError
from .services.provisioner import Provisioner
from .storage.privileges import EffectiveIdPrivileges

__all__ = ["main"]


def _load_config(config_file: Path, *, debug: bool) -> Config:
    """Load configuration, overriding it from CLI options."""
    # Prefer config file from env var
    if env_config_path := os.getenv(CONFIG_FILE_ENV_VAR):
        config_file = Path(env_config_path)
    config = Config.from_file(config_file)
    if debug:
        config.debug = debug
        config.configure_logging()
    return config


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(message="%(version)s")
def main() -> None:
    """createhome command-line interface."""


@main.command()
@click.argument("topic", default=None, required=False, nargs=1)
@click.argument("subtopic", default=None, required=False, nargs=1)
@click.pass_context
def help(ctx: click.Context, topic: str | None, subtopic: str | None) -> None:
    """Show help for any command."""
    display_help(main, ctx, topic, subtopic)


@main.command()
@click.argument("home", type=click.Path(path_type=Path))
@click.argument("user")
@click.option(
    "--uid",
    type=int,
    default=None,
    help="Owner of the home directory [default: from password database]",
)
@click.option(
    "--gid",
    type=int,
    default=None,
    help="Group of the home directory [default: from password database]",
)
@click.option(
    "--config-file",
    "-c",
    help="Application configuration file",
    type=Path,
    default=CONFIG_FILE,
)
@click.option(
    "--debug",
    "-d",
    is_flag=True,
    help="Enable debug logging",
)
def provision(
    *,
    home: Path,
    user: str,
    uid: int | None,
    gid: int | None,
    config_file: Path,
    debug: bool,
) -> None:
    """Create the home directory HOME for USER if it does not exist."""
    config = _load_config(config_file, debug=debug)
    if uid is None or gid is None:
        try:
            pw = pwd.getpwnam(user)
        except KeyError as exc:
            raise click.UsageError(f"Unknown user {user}") from exc
        uid = pw.pw_uid if uid is None else uid
        gid = pw.pw_gid if gid is None else gid
    if config.enabled:
        try:
            config.home_spec(home, uid, gid)
        except ValueError as exc:
            raise click.BadParameter(str(exc)) from exc
    _provision(config=config, home=home, user=user, uid=uid, gid=gid)


def _make_slack_client(config: Config) -> SlackWebhookClient | None:
    if not config.alert_hook:
        return None
    return SlackWebhookClient(
        config.alert_hook.get_secret_value(),
        "createhome",
        logger=get_logger(ROOT_LOGGER),
    )


@run_with_asyncio
async def _provision(
    *, config: Config, home: Path, user: str, uid: int, gid: int
) -> None:
    """Provision a home directory, reporting failures to Slack."""
    slack_client = _make_slack_client(config)
    provisioner = Provisioner(config, privileges=EffectiveIdPrivileges())
    try:
        ok = provisioner.provision_home(home, user, uid, gid)
    except Exception as exc:
        if slack_client:
            await slack_client.post_uncaught_exception(exc)
        raise
    if not ok:
        error = ProvisionFailedError(
            f"Could not create home directory {home!s}", user
        )
        if slack_client:
            await slack_client.post_exception(error)
        raise click.ClickException(str(error))
