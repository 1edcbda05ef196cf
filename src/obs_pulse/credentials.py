"""Last-used connection credentials, persisted between runs."""

from dataclasses import dataclass
from pathlib import Path

import structlog
import tomlkit

log = structlog.get_logger()


@dataclass(frozen=True)
class Credentials:
    """Address and password for the OBS control socket."""

    address: str
    password: str = ""


class CredentialStore:
    """TOML file holding the last address/password that connected successfully."""

    def __init__(self, path: Path):
        self.path = path

    def load(self) -> Credentials | None:
        """Return stored credentials, or None if nothing usable is stored."""
        if not self.path.exists():
            return None
        try:
            data = tomlkit.parse(self.path.read_text())
        except tomlkit.exceptions.TOMLKitError as e:
            log.warning("credentials_unreadable", path=str(self.path), error=str(e))
            return None

        address = data.get("address")
        if not address:
            return None
        return Credentials(address=str(address), password=str(data.get("password", "")))

    def save(self, credentials: Credentials) -> None:
        """Write credentials, readable only by the current user."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        doc = tomlkit.document()
        doc.add("address", credentials.address)
        doc.add("password", credentials.password)
        self.path.touch(mode=0o600, exist_ok=True)
        self.path.chmod(0o600)
        self.path.write_text(tomlkit.dumps(doc))
        log.info("credentials_saved", address=credentials.address)

    def forget(self) -> None:
        """Remove stored credentials."""
        self.path.unlink(missing_ok=True)
        log.info("credentials_forgotten")


def resolve_credentials(
    store: CredentialStore | None,
    address: str | None,
    password: str | None,
    default_address: str,
) -> Credentials:
    """Pick startup credentials: explicit values win over stored ones, then defaults."""
    stored = store.load() if store is not None else None
    if address is None:
        address = stored.address if stored else default_address
    if password is None:
        password = stored.password if stored else ""
    return Credentials(address=address, password=password)
