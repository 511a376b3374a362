"""Identity providers: resolve the acting user for a request."""

import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

from . import config
from .errors import AuthenticationError, NotFound
from .models import User
from .storage import Store
from .utils import read_token_lines


class IdentityProvider(ABC):
    def __init__(self, store: Store) -> None:
        self.store = store

    @abstractmethod
    def current_user(self, credential: Optional[str] = None) -> User:
        ...

    def _load_user(self, user_id: str) -> User:
        try:
            return self.store.get_user(user_id)
        except NotFound as exc:
            raise AuthenticationError(f"Unknown user {user_id}") from exc


class StaticIdentityProvider(IdentityProvider):
    """Always acts as one configured user (CLI ``--as`` / ETHICSGATE_USER)."""

    def __init__(self, store: Store, user_id: Optional[str] = None) -> None:
        super().__init__(store)
        self.user_id = user_id or os.environ.get(config.ACTOR_ENV)

    def current_user(self, credential: Optional[str] = None) -> User:
        if not self.user_id:
            raise AuthenticationError(f"No acting user; pass --as or set {config.ACTOR_ENV}")
        return self._load_user(self.user_id)


class TokenIdentityProvider(IdentityProvider):
    """Maps API tokens to user ids.

    Tokens come from ``<token> <user_id>`` lines in the token file, plus an
    optional ``ETHICSGATE_API_TOKEN`` env var of the same form.
    """

    def __init__(
        self,
        store: Store,
        token_file: Optional[Path] = None,
        tokens: Optional[Dict[str, str]] = None,
    ) -> None:
        super().__init__(store)
        self.token_file = token_file or config.API_TOKEN_FILE
        self._static = dict(tokens or {})

    def load_tokens(self) -> Dict[str, str]:
        tokens = read_token_lines(self.token_file)
        env_entry = os.environ.get(config.API_TOKEN_ENV, "").split()
        if len(env_entry) == 2:
            tokens[env_entry[0]] = env_entry[1]
        tokens.update(self._static)
        return tokens

    def current_user(self, credential: Optional[str] = None) -> User:
        if not credential:
            raise AuthenticationError("Missing API token")
        user_id = self.load_tokens().get(credential.strip())
        if not user_id:
            raise AuthenticationError("Invalid API token")
        return self._load_user(user_id)
