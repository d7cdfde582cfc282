"""Google Cloud authentication backed by google-auth.

AuthenticationManager wraps a google-auth Credentials object and hands out
access tokens for a list of scopes. It does no caching of its own beyond
keeping one scoped copy of the credentials per scope list; token caching and
refresh are google-auth's.
"""
import asyncio
import datetime
import logging
import os
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple, Union

import google.auth
import google.auth.transport.requests
from google.auth.credentials import Credentials, with_scopes_if_required
from google.auth.exceptions import DefaultCredentialsError, RefreshError
from google.oauth2 import service_account

logger = logging.getLogger(__name__)

CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"

# Tokens this close to expiry are reported as expired.
_EXPIRY_MARGIN = datetime.timedelta(seconds=20)


@dataclass
class Token:
    """An OAuth2 access token."""
    access_token: str
    expiry: datetime.datetime | None = None
    scopes: List[str] = field(default_factory=list)

    def as_str(self) -> str:
        return self.access_token

    def has_expired(self) -> bool:
        if self.expiry is None:
            return False
        now = datetime.datetime.now(datetime.timezone.utc)
        return now + _EXPIRY_MARGIN >= self.expiry

    def authorization_header(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.access_token}"}

    def __repr__(self) -> str:
        # keep the secret out of logs
        return f"Token(access_token='****', expiry={self.expiry!r}, scopes={self.scopes!r})"


def _as_utc(expiry: datetime.datetime | None) -> datetime.datetime | None:
    """google-auth reports expiry as a naive UTC datetime."""
    if expiry is None or expiry.tzinfo is not None:
        return expiry
    return expiry.replace(tzinfo=datetime.timezone.utc)


class AuthenticationManager:
    """Issues access tokens from a single set of Google credentials."""

    def __init__(self, credentials: Credentials, project_id: Optional[str] = None):
        """Initializes the AuthenticationManager.

        Args:
            credentials: Unscoped google-auth credentials.
            project_id: The project the credentials belong to, if known.
        """
        self.credentials = credentials
        self.project_id = project_id
        self._scoped: Dict[Tuple[str, ...], Credentials] = {}
        self._request = google.auth.transport.requests.Request()
        # held in a worker thread around check-and-refresh; bound to no event loop
        self._refresh_lock = threading.Lock()

    @classmethod
    async def from_service_account_file(
        cls, path: Union[str, os.PathLike]
    ) -> "AuthenticationManager":
        """Loads service account credentials from a JSON key file."""
        credentials = await asyncio.to_thread(
            service_account.Credentials.from_service_account_file, os.fspath(path)
        )
        logger.info(f"Loaded service account credentials for {credentials.service_account_email}")
        return cls(credentials, project_id=credentials.project_id)

    @classmethod
    async def from_environment(cls) -> "AuthenticationManager":
        """Discovers Application Default Credentials.

        This may probe the GCE metadata server, so it runs off the event loop.
        """
        credentials, project_id = await asyncio.to_thread(google.auth.default)
        logger.info(
            f"Discovered {type(credentials).__module__}.{type(credentials).__name__} "
            f"credentials (project: {project_id})"
        )
        return cls(credentials, project_id=project_id)

    def _credentials_for(self, scopes: Tuple[str, ...]) -> Credentials:
        credentials = self._scoped.get(scopes)
        if credentials is None:
            credentials = with_scopes_if_required(self.credentials, list(scopes))
            self._scoped[scopes] = credentials
        return credentials

    def _refresh_if_needed(self, credentials: Credentials, scopes: Tuple[str, ...]) -> None:
        with self._refresh_lock:
            # another caller may have refreshed while we waited
            if not credentials.valid:
                logger.debug(f"Refreshing access token for scopes {list(scopes)}")
                credentials.refresh(self._request)

    async def get_token(self, scopes: Sequence[str]) -> Token:
        """Returns a valid access token for ``scopes``, refreshing if needed."""
        scopes = tuple(scopes)
        credentials = self._credentials_for(scopes)

        if not credentials.valid:
            await asyncio.to_thread(self._refresh_if_needed, credentials, scopes)

        if not credentials.token:
            raise RefreshError("The credentials did not produce an access token.")

        return Token(
            access_token=credentials.token,
            expiry=_as_utc(credentials.expiry),
            scopes=list(scopes),
        )


def check_gcloud_auth(scopes: Sequence[str] = (CLOUD_PLATFORM_SCOPE,)) -> bool:
    """Checks Application Default Credentials and logs how to fix them if they are invalid."""
    try:
        credentials, _ = google.auth.default(scopes=list(scopes))
        if hasattr(credentials, "refresh") and not credentials.valid:
            logger.info("Attempting to refresh Google Cloud credentials...")
            credentials.refresh(google.auth.transport.requests.Request())
    except RefreshError:
        logger.error(
            "Reauthentication is needed. Please run `gcloud auth application-default login`."
        )
        return False
    except DefaultCredentialsError:
        logger.error(
            "Could not find valid Google Cloud credentials. Please run `gcloud auth application-default login`."
        )
        return False
    return True
