"""Command line app for checking a form payload against a form factory"""

import json
import logging
import os

import click

from multiform import __version__
from multiform.adapters import Providers
from multiform.config import Config
from multiform.coordinator import AggregateForm, Outcome
from multiform.exceptions import (
    ConfigurationError,
    IncorrectUsageError,
    InvalidDataError,
    ObjectNotFoundError,
)
from multiform.payload import parse_form
from multiform.report import dump_report
from multiform.utils import import_from_full_path
from multiform.utils.logging import configure_logging

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_INVALID = 1
EXIT_NOT_SAVED = 2


@click.group()
@click.version_option(version=__version__, prog_name="Multiform")
def main():
    """
    Multiform CLI
    """


def _load_config(config_path):
    if config_path:
        return Config.load_from_path(config_path)
    return Config.load_from_dict()


@main.command()
@click.argument("factory")
@click.argument("payload", type=click.File("r"))
@click.option(
    "--query",
    is_flag=True,
    help="Read PAYLOAD as flat form data with bracketed keys, instead of JSON",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True),
    default=None,
    help="File or directory to start looking for configuration from",
)
@click.option("--dry-run", is_flag=True, help="Validate, but do not save")
@click.option(
    "--all", "include_empty", is_flag=True, help="Report entities without errors too"
)
@click.option("--log-level", default=None, help="Logging level, like DEBUG or WARNING")
@click.pass_context
def check(ctx, factory, payload, query, config_path, dry_run, include_empty, log_level):
    """Load PAYLOAD into the form built by FACTORY, validate it and save it.

    FACTORY is a `module:callable` that receives the default provider and
    returns an aggregate form. The error report is printed as JSON.

    Exits with 0 when saved (or valid, with --dry-run), 1 when invalid and
    2 when the form could not be saved.
    """
    try:
        config = _load_config(config_path)
    except ConfigurationError as exc:
        raise click.ClickException(f"Error loading configuration: {exc}")

    configure_logging(
        log_level or os.environ.get("MULTIFORM_LOG_LEVEL") or config["logging"]["level"],
        config["logging"]["format"],
    )

    try:
        form_factory = import_from_full_path(factory)
        form = form_factory(Providers(config)["default"])
    except (ConfigurationError, ObjectNotFoundError) as exc:
        raise click.ClickException(f"Error building form: {exc}")

    if not isinstance(form, AggregateForm):
        raise click.ClickException(f"`{factory}` did not return an aggregate form")
    form.placeholder_key = config["placeholder_key"]
    form.pending_key_prefix = config["pending_key_prefix"]

    raw = payload.read()
    try:
        if query:
            data = parse_form(raw.strip(), placeholder_key=config["placeholder_key"])
        else:
            data = json.loads(raw)
        form.load(data)
    except json.JSONDecodeError as exc:
        raise click.ClickException(f"PAYLOAD is not valid JSON: {exc}")
    except (InvalidDataError, IncorrectUsageError) as exc:
        raise click.ClickException(f"PAYLOAD does not fit the form: {exc}")

    if dry_run:
        exit_code = EXIT_OK if form.validate() else EXIT_INVALID
    else:
        outcome = form.validate_and_save()
        exit_code = {
            Outcome.SAVED: EXIT_OK,
            Outcome.INVALID: EXIT_INVALID,
            Outcome.NOT_SAVED: EXIT_NOT_SAVED,
        }[outcome]
        logger.info(f"{form.parent_role} form outcome: {outcome.value}")

    click.echo(json.dumps(dump_report(form.error_report(include_empty)), indent=2))
    ctx.exit(exit_code)
