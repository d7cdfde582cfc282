"""A client for fetching Google Cloud OAuth2 access tokens."""
import logging
import os
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, Union

from clients.errors import ErrorKind, translate_errors
from utils.auth import AuthenticationManager, Token
from utils.once_cell import OnceCell

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FromFile:
    """Load credentials from a service account key file."""
    path: Union[str, os.PathLike]


@dataclass(frozen=True)
class FromEnvironment:
    """Use Application Default Credentials."""


InitializationMethod = Union[FromFile, FromEnvironment]


class Client:
    """Hands out access tokens for a fixed list of scopes.

    The AuthenticationManager is built on the first call to ``get_token``
    (or ``initialize``) and kept for the life of the client. Concurrent first
    calls share a single build. A failed build is not remembered, so a later
    call tries again.
    """

    def __init__(self, method: InitializationMethod, scopes: Sequence[str]):
        """Initializes the Client.

        Args:
            method: Where credentials come from, FromFile or FromEnvironment.
            scopes: OAuth scopes requested for every token, in order.
        """
        if not isinstance(method, (FromFile, FromEnvironment)):
            raise TypeError(f"Unsupported initialization method: {method!r}")
        if isinstance(scopes, str):
            raise TypeError("scopes must be a sequence of strings, not a string")
        self._method = method
        self._scopes: Tuple[str, ...] = tuple(scopes)
        self._manager: OnceCell[AuthenticationManager] = OnceCell()

    @classmethod
    def from_file(cls, path: Union[str, os.PathLike], scopes: Sequence[str]) -> "Client":
        """Creates a client that will load the service account key at ``path``.

        Nothing is read until the first token request.
        """
        return cls(FromFile(path), scopes)

    @classmethod
    def from_environment(cls, scopes: Sequence[str]) -> "Client":
        """Creates a client that will use Application Default Credentials."""
        return cls(FromEnvironment(), scopes)

    @classmethod
    async def load_from_file(cls, path: Union[str, os.PathLike], scopes: Sequence[str]) -> "Client":
        """Like ``from_file``, but loads the key now.

        Raises:
            ServiceAccountError: The key file could not be loaded.
        """
        return await cls.from_file(path, scopes).initialize()

    @classmethod
    async def load_from_environment(cls, scopes: Sequence[str]) -> "Client":
        """Like ``from_environment``, but discovers credentials now.

        Raises:
            EnvironmentCredentialsError: No credentials were found.
        """
        return await cls.from_environment(scopes).initialize()

    @property
    def method(self) -> InitializationMethod:
        return self._method

    @property
    def scopes(self) -> Tuple[str, ...]:
        return self._scopes

    @property
    def initialized(self) -> bool:
        return self._manager.initialized

    @property
    def project_id(self) -> Optional[str]:
        """The project of the loaded credentials, or None before initialization."""
        manager = self._manager.get()
        return manager.project_id if manager is not None else None

    async def _build_manager(self) -> AuthenticationManager:
        method = self._method
        if isinstance(method, FromFile):
            logger.info(f"Loading service account key from {os.fspath(method.path)}")
            with translate_errors(ErrorKind.SERVICE_ACCOUNT_ERROR):
                return await AuthenticationManager.from_service_account_file(method.path)
        logger.info("Discovering credentials from the environment")
        with translate_errors(ErrorKind.ENVIRONMENT_ERROR):
            return await AuthenticationManager.from_environment()

    async def _get_manager(self) -> AuthenticationManager:
        return await self._manager.get_or_init(self._build_manager)

    async def initialize(self) -> "Client":
        """Builds the AuthenticationManager now if it has not been built yet.

        Raises:
            ServiceAccountError: The key file could not be loaded.
            EnvironmentCredentialsError: No credentials were found.
        """
        await self._get_manager()
        return self

    async def get_token(self) -> Token:
        """Returns an access token for the client's scopes.

        Raises:
            ServiceAccountError: The key file could not be loaded.
            EnvironmentCredentialsError: No credentials were found.
            TokenError: Credentials were loaded but no token could be issued.
        """
        manager = await self._get_manager()
        with translate_errors(ErrorKind.TOKEN_ERROR):
            return await manager.get_token(list(self._scopes))

    def __repr__(self) -> str:
        return f"Client(method={self._method!r}, scopes={list(self._scopes)!r}, initialized={self.initialized})"
