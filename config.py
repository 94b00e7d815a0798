"""Settings file handling and process-level defaults for LiftLog."""
import os
import tempfile

import keyring
import yaml

APP_VERSION = "1.0.0"

KEYRING_SERVICE = "liftlog"
SENSITIVE_KEYS = frozenset({"auth_proxy_secret"})

ENV_DB_PATH = "TRACKER_DB_PATH"
ENV_SETTINGS_PATH = "TRACKER_SETTINGS_PATH"
ENV_ENCRYPT = "ENCRYPT_SETTINGS"


def encryption_enabled() -> bool:
    return os.environ.get(ENV_ENCRYPT) == "1"


class YamlConfig:
    """YAML settings file whose secrets may live in the OS keyring.

    With encryption on, each sensitive key is written to the file as
    ``true`` and its value is stored in the keyring under ``service``.
    A placeholder without a keyring entry is dropped on load.
    """

    def __init__(
        self,
        path: str = "settings.yaml",
        service: str = KEYRING_SERVICE,
        encrypt: bool | None = None,
    ) -> None:
        self.path = path
        self.service = service
        self.encrypt = encryption_enabled() if encrypt is None else encrypt

    def _read(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} must contain a mapping of settings")
        return data

    def _reveal(self, data: dict) -> dict:
        for key in SENSITIVE_KEYS & data.keys():
            secret = keyring.get_password(self.service, key)
            if secret is None:
                data.pop(key)
            else:
                data[key] = secret
        return data

    def _conceal(self, data: dict) -> dict:
        out = dict(data)
        for key in SENSITIVE_KEYS & out.keys():
            keyring.set_password(self.service, key, str(out[key]))
            out[key] = True
        return out

    def load(self) -> dict:
        data = self._read()
        return self._reveal(data) if self.encrypt else data

    def save(self, data: dict) -> None:
        """Write ``data`` by replacing the file, never leaving it half written."""
        out = self._conceal(data) if self.encrypt else dict(data)
        directory = os.path.dirname(os.path.abspath(self.path))
        fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".yaml.tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                yaml.safe_dump(out, f, sort_keys=True)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise


def default_db_path() -> str:
    return os.environ.get(ENV_DB_PATH, "liftlog.db")


def default_settings_path() -> str:
    return os.environ.get(ENV_SETTINGS_PATH, "settings.yaml")
