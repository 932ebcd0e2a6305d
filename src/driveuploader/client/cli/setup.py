"""Connection setup command for driveuploader CLI.

Commands:
- config: Configure the Google Drive connection
"""

from __future__ import annotations

import click

from driveuploader.client.api import APIError, DriveClient
from driveuploader.client.auth import (
    DEFAULT_REDIRECT_URI,
    TokenError,
    build_authorize_url,
    create_flow,
    exchange_code,
    refresh_credentials,
)
from driveuploader.client.cli.config import (
    load_connection_config,
    save_connection_config,
)
from driveuploader.core.config import ConnectionConfig, OAuthCredentials


def _ask_client_info(config: ConnectionConfig) -> ConnectionConfig:
    click.echo(
        "* Go to Google Developer portal (https://console.developers.google.com)\n"
        "* Create new project\n"
        "* Enable Google Drive API for it\n"
        "* Create OAuth2 credentials (Desktop app)\n"
        "* Enter the client id and secret below\n"
    )
    config.client_id = click.prompt("Client ID", default=config.client_id or None)
    config.client_secret = click.prompt(
        "Client Secret", default=config.client_secret or None
    )
    return config


def _ask_auth_code(config: ConnectionConfig, redirect_uri: str) -> ConnectionConfig:
    flow = create_flow(config.client_id or "", config.client_secret or "", redirect_uri)
    url = build_authorize_url(flow)
    click.echo(f"\n* Go to the following url and grant access to your drive:\n\n{url}\n")
    click.echo(
        "After granting access, copy the 'code' parameter from the address "
        "your browser was redirected to.\n"
    )

    if config.credentials:
        code = click.prompt(
            "Auth Code (leave empty to use current tokens)",
            default="",
            show_default=False,
        )
    else:
        code = click.prompt("Auth Code")

    credentials: OAuthCredentials | None = None
    if code:
        try:
            credentials = exchange_code(flow, code.strip())
        except TokenError as e:
            click.echo(f"Failed to get the access token ({e}).", err=True)
    elif config.credentials:
        try:
            credentials = refresh_credentials(
                config.client_id or "",
                config.client_secret or "",
                config.credentials,
            )
        except TokenError as e:
            click.echo(f"Failed to refresh the access token ({e}).", err=True)
    else:
        click.echo(
            "Refresh token is missing and the authentication code was not given. "
            "Unable to continue.",
            err=True,
        )

    if credentials:
        config.credentials = credentials
    return config


def _ask_folder(config: ConnectionConfig) -> ConnectionConfig:
    if not (config.credentials and config.credentials.access_token):
        click.echo("Unable to get the folder list. The access token is missing", err=True)
        return config

    def _update_tokens(credentials: OAuthCredentials) -> None:
        config.credentials = credentials

    with DriveClient(config, on_credentials_refreshed=_update_tokens) as client:
        try:
            folders = client.list_folders()
        except APIError as e:
            click.echo(f"Unable to get the folder list: {e}", err=True)
            return config

        click.echo("\n* Select the target folder:")
        for index, folder in enumerate(folders, start=1):
            click.echo(f"{index} = {folder.name}")

        while True:
            selected = click.prompt("Select the folder or give name for a new folder").strip()
            if selected.isdigit():
                index = int(selected)
                if index <= 0 or index > len(folders):
                    click.echo("Incorrect folder index")
                    continue
                folder = folders[index - 1]
                click.echo(f"Selected folder: {folder.name}")
            else:
                try:
                    folder = client.create_folder(selected)
                except APIError as e:
                    click.echo(f"Unable to create the folder: {e}", err=True)
                    continue
                click.echo(f"Created folder: {folder.name}")

            config.folder_id = folder.id
            config.folder_name = folder.name
            return config


@click.command(name="config")
@click.option(
    "--redirect-uri",
    default=DEFAULT_REDIRECT_URI,
    show_default=True,
    help="Redirect URI registered for the OAuth client.",
)
def configure(redirect_uri: str) -> None:
    """Configure the Google Drive connection. This must be run first.

    Asks for the OAuth client, authorizes access to Drive and selects
    (or creates) the target folder.
    """
    config = load_connection_config()
    config = _ask_client_info(config)
    config = _ask_auth_code(config, redirect_uri)

    path = save_connection_config(config)
    click.echo(f'Wrote "{path}"')

    config = _ask_folder(config)

    path = save_connection_config(config)
    click.echo(f'Wrote "{path}"')
