import logging
import os
import yaml
import keyring

APP_VERSION = "1.0.0"

logger = logging.getLogger(__name__)


class YamlConfig:
    """Read and write ``settings.yaml``.

    With ``ENCRYPT_SETTINGS=1`` the values of ``SENSITIVE_KEYS`` live in the
    OS keyring and the file only stores ``true`` in their place.
    """

    SENSITIVE_KEYS = {
        "coach_api_key",
    }

    def __init__(self, path: str = "settings.yaml") -> None:
        self.path = path
        self.encrypt = os.environ.get("ENCRYPT_SETTINGS") == "1"
        self.service = "liftlog"

    def _restore_secrets(self, data: dict) -> None:
        for key in self.SENSITIVE_KEYS & set(data):
            secret = keyring.get_password(self.service, key)
            if secret is None:
                logger.warning("no keyring entry for %s", key)
                del data[key]
            else:
                data[key] = secret

    def _stash_secrets(self, data: dict) -> None:
        for key in self.SENSITIVE_KEYS & set(data):
            if data[key] is None:
                continue
            keyring.set_password(self.service, key, str(data[key]))
            data[key] = True

    def load(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} must contain a mapping")
        if self.encrypt:
            self._restore_secrets(data)
        return data

    def save(self, data: dict) -> None:
        out = dict(data)
        if self.encrypt:
            self._stash_secrets(out)
        with open(self.path, "w", encoding="utf-8") as f:
            yaml.safe_dump(out, f)
