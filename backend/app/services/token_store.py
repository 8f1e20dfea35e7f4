"""
Energo Token Store
==================

Keeps the Energo bearer token in a small JSON file so it survives restarts.

FILE FORMAT:
-----------
    {
      "token": "eyJhbGciOi..."
    }

The token is pasted in by an admin (POST /api/admin/energo-token) after
logging into the Energo console. We never know when it expires; Energo
just starts answering 401 once it does.

A missing or corrupted file means "no token". It never stops the server.

Author: CUUB Battery Team
"""

import json
import logging
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)


class TokenStore:
    """
    File-backed single value.

    Writes go to a temp file first and are then renamed over the real file,
    so a reader never sees half a token. Last writer wins.
    """

    DEFAULT_FILE = Path(__file__).parent.parent.parent / "energo_token.json"

    def __init__(self, token_file: Union[str, Path, None] = None):
        self.token_file = Path(token_file) if token_file else self.DEFAULT_FILE

    def get(self) -> str:
        """Return the current token, or "" if unset or unreadable."""
        if not self.token_file.exists():
            return ""

        try:
            with open(self.token_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            logger.error(f"Energo token file is not valid JSON: {e}")
            return ""
        except OSError as e:
            logger.error(f"Error reading Energo token: {e}")
            return ""

        if not isinstance(data, dict):
            return ""
        token = data.get("token")
        return token if isinstance(token, str) else ""

    def set(self, token: str) -> bool:
        """Persist a new token. Returns True on success."""
        data = {"token": token.strip()}

        try:
            self.token_file.parent.mkdir(parents=True, exist_ok=True)

            # Atomic write: write to temp file first, then rename
            temp_file = self.token_file.with_suffix('.json.tmp')
            with open(temp_file, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2)
            temp_file.replace(self.token_file)

            logger.info("Energo token updated successfully")
            return True
        except PermissionError as e:
            logger.error(f"Permission denied saving Energo token: {e}")
        except OSError as e:
            logger.error(f"OS error saving Energo token: {e}")
        return False
