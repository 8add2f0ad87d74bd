import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class SessionStore:
    """
    File-backed client session: the access token and the cached user.

    The client side counterpart of browser local storage. The file holds a
    single JSON object with "token" and "user" keys.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable session file %s: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def save(self, token: str, user: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as fh:
            json.dump({"token": token, "user": user}, fh)

    def get_token(self) -> Optional[str]:
        return self._read().get("token")

    def get_user(self) -> Optional[Dict[str, Any]]:
        return self._read().get("user")

    def is_authenticated(self) -> bool:
        return bool(self.get_token())

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()
