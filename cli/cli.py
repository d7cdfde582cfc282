import asyncio
import json
import logging
from typing import List

import typer
from typing_extensions import Annotated

from clients.errors import AuthError, ErrorKind
from clients.token_client import Client
from utils.auth import check_gcloud_auth
from utils.config import Settings, normalize_scopes

app = typer.Typer(help="Fetch Google Cloud OAuth2 access tokens.")

# Exit codes per failure kind
EXIT_CODES = {
    ErrorKind.SERVICE_ACCOUNT_ERROR: 2,
    ErrorKind.ENVIRONMENT_ERROR: 3,
    ErrorKind.TOKEN_ERROR: 4,
}

HINTS = {
    ErrorKind.SERVICE_ACCOUNT_ERROR: "Check that the key file exists and is a valid service account JSON key.",
    ErrorKind.ENVIRONMENT_ERROR: "Could not find valid Google Cloud credentials. Please run `gcloud auth application-default login`.",
    ErrorKind.TOKEN_ERROR: "Reauthentication may be needed. Please run `gcloud auth application-default login`.",
}


def configure_logging(log_level: str):
    numeric_level = getattr(logging, log_level.upper(), None)
    if not isinstance(numeric_level, int):
        raise typer.BadParameter(f"Invalid log level: {log_level}")

    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    )
    logging.getLogger("google.auth").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def build_client(key_file: str | None, scopes: List[str]) -> Client:
    """Builds a Client from the CLI options, falling back to the environment settings."""
    settings = Settings.from_env()
    scopes = normalize_scopes(scopes) or list(settings.scopes)
    key_file = key_file or settings.key_file
    if key_file:
        return Client.from_file(key_file, scopes)
    return Client.from_environment(scopes)


@app.command()
def token(
    key_file: Annotated[str, typer.Option(help="Path to a service account JSON key. Uses Application Default Credentials when omitted.")] = None,
    scope: Annotated[List[str], typer.Option(help="OAuth scope to request. May be repeated.")] = None,
    header: Annotated[bool, typer.Option(help="Print an Authorization header instead of the bare token.")] = False,
    as_json: Annotated[bool, typer.Option("--json", help="Print the token, expiry, scopes and project as JSON.")] = False,
    log_level: Annotated[str, typer.Option(help="Set the logging level.")] = "WARNING",
):
    """Prints an access token."""
    configure_logging(log_level)
    client = build_client(key_file, scope or [])

    try:
        access_token = asyncio.run(client.get_token())
    except AuthError as e:
        logging.error(f"{e}. {HINTS[e.kind]}")
        raise typer.Exit(code=EXIT_CODES[e.kind])

    if as_json:
        typer.echo(json.dumps({
            "access_token": access_token.as_str(),
            "expiry": access_token.expiry.isoformat() if access_token.expiry else None,
            "scopes": access_token.scopes,
            "expired": access_token.has_expired(),
            "project_id": client.project_id,
        }, indent=2))
    elif header:
        typer.echo(f"Authorization: {access_token.authorization_header()['Authorization']}")
    else:
        typer.echo(access_token.as_str())


@app.command()
def check(
    scope: Annotated[List[str], typer.Option(help="OAuth scope to request. May be repeated.")] = None,
    log_level: Annotated[str, typer.Option(help="Set the logging level.")] = "INFO",
):
    """Checks that Application Default Credentials are usable."""
    configure_logging(log_level)
    scopes = normalize_scopes(scope or []) or list(Settings.from_env().scopes)
    if not check_gcloud_auth(scopes):
        raise typer.Exit(code=EXIT_CODES[ErrorKind.ENVIRONMENT_ERROR])
    typer.echo("Google Cloud credentials are valid.")


if __name__ == "__main__":
    app()
