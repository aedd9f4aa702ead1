"""
Verschlüsselter Cookie-Store via Fernet (AES-128-CBC + HMAC-SHA256).

Hält die Session-Cookies pro Service für den HTTP-Transport
(z.B. chatgpt: __Secure-next-auth.session-token, gemini: __Secure-1PSID).
Der Key liegt außerhalb des Projekt-Verzeichnisses.
"""
import json
import logging
from pathlib import Path
from typing import Union

from cryptography.fernet import Fernet, InvalidToken

log = logging.getLogger(__name__)

_COOKIE_NAME_FORBIDDEN = set(" \t\r\n;,=")


def _valid_service(service) -> bool:
    return isinstance(service, str) and bool(service) and all(c.isalnum() or c == "_" for c in service)


def _valid_cookie_name(name) -> bool:
    return isinstance(name, str) and bool(name) and not (set(name) & _COOKIE_NAME_FORBIDDEN)


class CookieStore:
    def __init__(self, key_file: Union[str, Path], cookie_file: Union[str, Path]):
        self.key_file = Path(key_file).expanduser()
        self.cookie_file = Path(cookie_file).expanduser()

    @classmethod
    def from_config(cls, cfg: dict) -> "CookieStore":
        creds = cfg.get("credentials", {})
        return cls(creds["key_file"], creds["cookie_file"])

    def _get_or_create_key(self) -> bytes:
        """Lädt oder erstellt den Verschlüsselungs-Key."""
        if self.key_file.exists():
            return self.key_file.read_bytes().strip()
        self.key_file.parent.mkdir(parents=True, exist_ok=True)
        self.key_file.parent.chmod(0o700)
        key = Fernet.generate_key()
        self.key_file.write_bytes(key)
        self.key_file.chmod(0o600)  # nur Owner
        log.info("Neuer Verschlüsselungs-Key erstellt: %s", self.key_file)
        return key

    def _fernet(self) -> Fernet:
        return Fernet(self._get_or_create_key())

    def save(self, cookies: dict):
        """
        Speichert alle Cookies verschlüsselt.
        cookies = {"chatgpt": {"__Secure-next-auth.session-token": "..."}, ...}
        """
        for service, jar in cookies.items():
            if not _valid_service(service):
                raise ValueError(f"Invalid service name: {service!r}")
            for name, value in jar.items():
                if not _valid_cookie_name(name) or not isinstance(value, str):
                    raise ValueError(f"Cookies must be string pairs: {name!r}={value!r}")

        encrypted = self._fernet().encrypt(json.dumps(cookies).encode())
        self.cookie_file.parent.mkdir(parents=True, exist_ok=True)
        self.cookie_file.write_bytes(encrypted)
        self.cookie_file.chmod(0o600)
        log.info("Cookies verschlüsselt gespeichert: %s", self.cookie_file)

    def load(self, service: str = None) -> dict:
        """Lädt und entschlüsselt. Optional nur die Cookies eines Service."""
        if not self.cookie_file.exists():
            return {}
        try:
            cookies = json.loads(self._fernet().decrypt(self.cookie_file.read_bytes()))
        except InvalidToken:
            log.error("Cookie-Datei konnte nicht entschlüsselt werden. Falscher Key?")
            return {}
        except json.JSONDecodeError:
            log.error("Cookie-Datei ist kein gültiges JSON")
            return {}

        if service:
            return cookies.get(service, {})
        return cookies

    def set(self, service: str, name: str, value: str):
        """Einzelnes Cookie setzen/überschreiben."""
        cookies = self.load()
        cookies.setdefault(service, {})[name] = value
        self.save(cookies)
        log.info("Cookie gesetzt: %s/%s", service, name)
