import logging
from typing import Callable, List, Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class CredentialProvider(Protocol):
    """Source of the bearer token used for authenticated requests.

    Storage lives outside this package (keychain, keyring, session...).
    The transport only reads the token and reports when the server
    rejected it.
    """

    def get_token(self) -> Optional[str]:
        ...

    def on_token_expired(self) -> None:
        ...


class InMemoryCredentialProvider:
    """Holds a token in process memory.

    Expiry listeners are called once per expiry notification, after the
    token has been dropped.
    """

    def __init__(self, token: Optional[str] = None):
        self._token = token
        self._listeners: List[Callable[[], None]] = []

    def get_token(self) -> Optional[str]:
        return self._token

    def set_token(self, token: str) -> None:
        self._token = token

    def clear(self) -> None:
        self._token = None

    def add_expiry_listener(self, listener: Callable[[], None]) -> None:
        self._listeners.append(listener)

    def on_token_expired(self) -> None:
        logger.info("Credential expired, clearing stored token")
        self._token = None
        for listener in self._listeners:
            listener()
