"""
Relay Secrets and Settings

Environment-backed access to the relay's credentials and settings
(SMTP login, recipient address, access key), with optional ``.env`` /
``.env.local`` loading and masking of sensitive values before they are
logged.
"""

import os
import re
import logging
from typing import Optional, List, Dict
from pathlib import Path

from dotenv import load_dotenv


logger = logging.getLogger(__name__)

# Both must be present once the relay delivers over SMTP
SMTP_CREDENTIALS = ["EMAIL_USER", "EMAIL_PASS"]


class SecretManager:
    """
    Process-wide view of the relay's environment.

    Usage:
        from core.secrets import require_secrets, describe_setting

        credentials = require_secrets(SMTP_CREDENTIALS)
        logger.info(f"EMAIL_PASS={describe_setting('EMAIL_PASS', credentials['EMAIL_PASS'])}")
    """

    _instance: Optional["SecretManager"] = None
    _initialized: bool = False

    # Setting names whose values never appear in logs unmasked
    SECRET_PATTERNS = [
        r".*pass(word)?$",
        r".*secret.*",
        r".*_key$",
        r".*token.*",
    ]

    def __new__(cls) -> "SecretManager":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if SecretManager._initialized:
            return

        self._cache: Dict[str, str] = {}
        self.env_file: Optional[Path] = self._load_env_file()

        SecretManager._initialized = True

    def _load_env_file(self) -> Optional[Path]:
        """Load the first of .env.local / .env found in the project root."""
        project_root = Path(__file__).parent.parent
        for path in (project_root / ".env.local", project_root / ".env"):
            if path.exists():
                load_dotenv(path, override=False)
                logger.info(f"Loaded relay settings from {path}")
                return path
        return None

    def get(
        self,
        name: str,
        default: Optional[str] = None,
        required: bool = False
    ) -> Optional[str]:
        """
        Read a setting, caching values that are present.

        Raises:
            ValueError: If required=True and the setting is missing
        """
        if name in self._cache:
            return self._cache[name]

        value = os.environ.get(name)
        if value is None:
            if required:
                raise ValueError(
                    f"Required secret '{name}' is not set. "
                    f"Set it via environment variable or .env file."
                )
            return default

        self._cache[name] = value
        return value

    def require(self, names: List[str]) -> Dict[str, str]:
        """
        Read several settings that must all be present and non-empty.

        Raises:
            ValueError: Naming every missing setting
        """
        found = {name: self.get(name) for name in names}
        missing = [name for name, value in found.items() if not value]

        if missing:
            raise ValueError(
                f"Missing required secrets: {', '.join(missing)}. "
                f"Set them via environment variables or .env file."
            )

        return found

    def is_secret_name(self, name: str) -> bool:
        """Whether a setting name looks sensitive."""
        name_lower = name.lower()
        return any(re.match(pattern, name_lower) for pattern in self.SECRET_PATTERNS)

    def mask(self, value: str, visible_chars: int = 4) -> str:
        """Replace all but the last ``visible_chars`` characters with '*'."""
        if not value:
            return ""
        if len(value) <= visible_chars:
            return "*" * len(value)
        return "*" * (len(value) - visible_chars) + value[-visible_chars:]

    def describe(self, name: str, value: Optional[str]) -> str:
        """Render a setting for a log line, masking it if the name is sensitive."""
        if value is None:
            return "<not set>"
        if self.is_secret_name(name):
            return self.mask(value)
        return value

    def clear_cache(self) -> None:
        """Forget cached values so the next read sees the current environment."""
        self._cache.clear()


secrets_manager = SecretManager()


def get_secret(
    name: str,
    default: Optional[str] = None,
    required: bool = False
) -> Optional[str]:
    """
    Read a relay setting from the environment.

    Example:
        host = get_secret("SMTP_HOST", default="smtp.gmail.com")
    """
    return secrets_manager.get(name, default, required)


def require_secrets(names: List[str]) -> Dict[str, str]:
    """Read settings that must all be present; raises ValueError otherwise."""
    return secrets_manager.require(names)


def describe_setting(name: str, value: Optional[str]) -> str:
    """Log-safe rendering of a named setting."""
    return secrets_manager.describe(name, value)
