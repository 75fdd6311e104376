"""Gmail OAuth authentication helpers."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow

from gmail_export.config.settings import GmailSettings

logger = logging.getLogger(__name__)


def load_credentials(*, settings: GmailSettings) -> Credentials:
    """Return usable credentials from the token cache, a refresh, or the browser flow.

    Args:
        settings: Gmail settings containing credentials/token paths and scopes.

    Returns:
        Valid OAuth credentials carrying every configured scope.

    Raises:
        ValueError: If the token path is invalid or the client JSON is unusable.
    """
    scopes = list(settings.scopes)
    token_file = _resolve_token_file(settings.token_file)
    _check_client_json(settings.credentials_file)

    creds = _load_cached_token(token_file, scopes)
    if creds is not None and creds.valid:
        logger.debug("Using cached Gmail token (token_file=%s)", token_file)
        return creds

    if creds is not None and creds.expired and creds.refresh_token:
        logger.info("Refreshing expired Gmail token")
        creds.refresh(Request())  # type: ignore[no-untyped-call]
        _write_token_file(token_file, creds)
        return creds

    logger.info("Starting Gmail OAuth browser flow (scopes=%s)", ",".join(scopes))
    flow = InstalledAppFlow.from_client_secrets_file(str(settings.credentials_file), scopes)
    creds = flow.run_local_server(port=0)
    _write_token_file(token_file, creds)
    return creds


def _resolve_token_file(path: Path) -> Path:
    token_file = path.expanduser().resolve()
    if token_file.exists() and not token_file.is_file():
        raise ValueError(
            f"token_file is not a file: {token_file}. "
            "Set GMX_GMAIL__TOKEN_FILE to a file path, e.g. /absolute/path/to/gmail-token.json",
        )
    token_file.parent.mkdir(parents=True, exist_ok=True)
    return token_file


def _check_client_json(path: Path) -> None:
    """Reject client secrets that the installed-app flow cannot use.

    Raises:
        ValueError: If the file is not JSON or describes a web-application client.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"credentials_file is not valid JSON: {path} ({exc})") from exc
    if isinstance(data, dict) and "installed" not in data and "web" in data:
        raise ValueError(
            "OAuth client JSON looks like a 'Web application' client. "
            "Create a 'Desktop app' (Installed app) OAuth client in Google Cloud Console, "
            "download its JSON, and point GMX_GMAIL__CREDENTIALS_FILE to that file.",
        )


def _load_cached_token(token_file: Path, scopes: list[str]) -> Credentials | None:
    """Load the cached token, or None when it is missing, empty, broken or under-scoped."""
    if not token_file.exists():
        return None
    if token_file.stat().st_size == 0:
        logger.warning("Token file is empty; will re-auth (token_file=%s)", token_file)
        return None
    try:
        creds = Credentials.from_authorized_user_file(  # type: ignore[no-untyped-call]
            str(token_file),
            scopes=scopes,
        )
    except (OSError, ValueError) as exc:
        logger.warning(
            "Failed to load token file; will re-auth (token_file=%s, error=%r)",
            token_file,
            exc,
        )
        return None
    if creds.granted_scopes and not set(scopes) <= set(creds.granted_scopes):
        logger.warning("Cached token lacks requested scopes; will re-auth")
        return None
    return creds


def _write_token_file(path: Path, creds: Credentials) -> None:
    path.write_text(creds.to_json(), encoding="utf-8")  # type: ignore[no-untyped-call]
