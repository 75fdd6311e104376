"""Gmail API client creation."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import httplib2
from google.oauth2.credentials import Credentials
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build

from gmail_export.config.settings import GmailSettings
from gmail_export.gmail.auth import load_credentials


@dataclass(frozen=True)
class GmailClient:
    """Gmail API service object plus a per-request transport factory."""

    service: Any
    http_factory: Callable[[], Any]

    @classmethod
    def from_settings(cls, settings: GmailSettings) -> GmailClient:
        """Create a Gmail client using configured OAuth settings.

        Args:
            settings: Gmail settings with credential paths.

        Returns:
            GmailClient instance.
        """
        creds: Credentials = load_credentials(settings=settings)
        service = build("gmail", "v1", credentials=creds, cache_discovery=False)

        def _new_http() -> AuthorizedHttp:
            """Build a fresh transport; httplib2.Http is not thread-safe."""
            return AuthorizedHttp(creds, http=httplib2.Http())

        return cls(service=service, http_factory=_new_http)
