"""Credential and settings storage backed by a dotenv-style file."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Dict, Mapping, Optional

logger = logging.getLogger(__name__)

DEFAULT_ENV_FILE = Path(".env")

ACCESS_TOKEN_ACCOUNT = "access-token"
REFRESH_TOKEN_ACCOUNT = "refresh-token"
APP_ID_ACCOUNT = "app-id"
APP_SECRET_ACCOUNT = "app-secret"
DEFAULT_MAILBOX_ACCOUNT = "default-mailbox"

# Accounts that may also come from the process environment.
ENV_FALLBACKS = {
    APP_ID_ACCOUNT: "HELPSCOUT_APP_ID",
    APP_SECRET_ACCOUNT: "HELPSCOUT_APP_SECRET",
    DEFAULT_MAILBOX_ACCOUNT: "HELPSCOUT_MAILBOX_ID",
}


def account_key(account: str) -> str:
    return "HELPSCOUT_STORED_" + account.upper().replace("-", "_")


def load_env_file(path: Path) -> Dict[str, str]:
    env: Dict[str, str] = {}
    if not path.exists():
        return env
    for line in path.read_text().splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if "=" not in stripped:
            continue
        key, value = stripped.split("=", 1)
        env[key.strip()] = value.strip()
    return env


class CredentialStore:
    """Account -> secret map persisted as ``KEY=value`` lines.

    Keys the store does not own (other settings in the same file) are kept
    on every write; comments are not.
    """

    def __init__(self, env_path: Path = DEFAULT_ENV_FILE, environ: Optional[Mapping[str, str]] = None):
        self.env_path = env_path
        self.environ = os.environ if environ is None else environ
        self._data = load_env_file(env_path)

    def get(self, account: str) -> Optional[str]:
        return self._data.get(account_key(account)) or None

    def set(self, account: str, value: str) -> None:
        self._data[account_key(account)] = value
        self._write()

    def delete(self, account: str) -> bool:
        removed = self._data.pop(account_key(account), None) is not None
        if removed:
            self._write()
        return removed

    def resolve(self, account: str) -> Optional[str]:
        """Stored value first, then the matching environment variable.

        The variable may be exported or written by hand into the same file.
        """
        stored = self.get(account)
        if stored:
            return stored
        env_name = ENV_FALLBACKS.get(account)
        if env_name:
            return self.environ.get(env_name) or self._data.get(env_name) or None
        return None

    def _write(self) -> None:
        lines = [f"{k}={v}" for k, v in sorted(self._data.items())]
        self.env_path.parent.mkdir(parents=True, exist_ok=True)
        self.env_path.write_text("\n".join(lines) + "\n" if lines else "")
        try:
            os.chmod(self.env_path, 0o600)
        except OSError as exc:
            logger.debug("Could not restrict permissions on %s: %s", self.env_path, exc)


class Settings:
    """Persisted CLI preferences."""

    def __init__(self, store: CredentialStore):
        self.store = store

    def get_default_mailbox(self) -> Optional[str]:
        return self.store.resolve(DEFAULT_MAILBOX_ACCOUNT)

    def set_default_mailbox(self, mailbox_id: str) -> None:
        self.store.set(DEFAULT_MAILBOX_ACCOUNT, mailbox_id)

    def clear_default_mailbox(self) -> None:
        self.store.delete(DEFAULT_MAILBOX_ACCOUNT)
