"""Server configuration.

Everything the server needs at runtime lives in one ``ServerConfig`` built
once at startup and handed to the authorizer, the tasks client and the
MCP server factory:

    .env              - optional overrides (loaded before the environment is read)
    credentials.json  - Google OAuth client credentials
    token.json        - persisted refresh token

Environment variables:
    MAX_TASK_RESULTS              - page size for list calls (10-2000, default 100)
    GTASKS_MCP_TOKEN_PATH         - token file location
    GTASKS_MCP_CREDENTIALS_PATH   - OAuth client credentials location
    GTASKS_MCP_CONSENT_PORT       - loopback port for the consent redirect (0 = any)
    GTASKS_MCP_CONSENT_TIMEOUT    - seconds to wait for consent (unset = forever)
    GTASKS_MCP_OPEN_BROWSER       - open a browser for consent (default true)
    GTASKS_MCP_LOG_LEVEL          - logging level (default INFO)
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

# __file__ is src/gtasks_mcp/config.py, so 3 levels up
REPO_ROOT = Path(__file__).parent.parent.parent

ENV_FILE = REPO_ROOT / ".env"
DEFAULT_CREDENTIALS_PATH = REPO_ROOT / "credentials.json"
DEFAULT_TOKEN_PATH = REPO_ROOT / "token.json"

DEFAULT_MAX_RESULTS = 100
MIN_MAX_RESULTS = 10
MAX_MAX_RESULTS = 2000

# If modifying these scopes, delete token.json.
TASKS_SCOPES = ("https://www.googleapis.com/auth/tasks",)

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


def _parse_env_line(line: str) -> tuple[str, str] | None:
    """Split one ``KEY=value`` line. Blank, comment and malformed lines give None."""
    line = line.strip()
    if line.startswith("export "):
        line = line[len("export ") :].lstrip()

    key, sep, value = line.partition("=")
    key = key.strip()
    if not sep or not key or key.startswith("#"):
        return None

    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        value = value[1:-1]
    return key, value


def load_env_file(
    env_path: Path,
    environ: MutableMapping[str, str] | None = None,
) -> dict[str, str]:
    """Load ``KEY=value`` pairs from a ``.env`` file.

    Variables already present in ``environ`` (``os.environ`` by default) are
    left alone.

    Returns:
        The variables that were set.
    """
    if environ is None:
        environ = os.environ
    if not env_path.exists():
        return {}

    loaded: dict[str, str] = {}
    for line in env_path.read_text(encoding="utf-8").splitlines():
        pair = _parse_env_line(line)
        if pair is None or pair[0] in environ:
            continue
        key, value = pair
        environ[key] = value
        loaded[key] = value
    return loaded


def clamp_max_results(raw: str | None) -> int:
    """Parse the MAX_TASK_RESULTS setting and clamp it to [10, 2000].

    Unset or non-integer values fall back to 100.
    """
    if raw is None or not raw.strip():
        return DEFAULT_MAX_RESULTS

    try:
        value = int(raw.strip())
    except ValueError:
        logger.warning(f"Ignoring non-integer MAX_TASK_RESULTS={raw!r}")
        return DEFAULT_MAX_RESULTS

    return max(MIN_MAX_RESULTS, min(MAX_MAX_RESULTS, value))


def _parse_bool(raw: str | None, default: bool) -> bool:
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    logger.warning(f"Ignoring unrecognised boolean value {raw!r}")
    return default


def _parse_optional_float(raw: str | None, name: str) -> float | None:
    if raw is None or not raw.strip():
        return None
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring non-numeric {name}={raw!r}")
        return None


def _parse_port(raw: str | None) -> int:
    if raw is None or not raw.strip():
        return 0
    try:
        port = int(raw)
    except ValueError:
        logger.warning(f"Ignoring non-integer GTASKS_MCP_CONSENT_PORT={raw!r}")
        return 0
    if not 0 <= port <= 65535:
        logger.warning(f"Ignoring out-of-range GTASKS_MCP_CONSENT_PORT={port}")
        return 0
    return port


@dataclass
class ServerConfig:
    """Runtime configuration shared by the authorizer, tasks client and server."""

    token_path: Path = DEFAULT_TOKEN_PATH
    credentials_path: Path = DEFAULT_CREDENTIALS_PATH
    max_results: int = DEFAULT_MAX_RESULTS
    scopes: tuple[str, ...] = TASKS_SCOPES
    consent_host: str = "localhost"
    consent_port: int = 0
    consent_timeout: float | None = None
    open_browser: bool = True
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        self.token_path = Path(self.token_path)
        self.credentials_path = Path(self.credentials_path)
        self.max_results = max(MIN_MAX_RESULTS, min(MAX_MAX_RESULTS, self.max_results))

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        env_file: Path | None = ENV_FILE,
    ) -> ServerConfig:
        """Build configuration from environment variables.

        Args:
            environ: Mapping to read instead of ``os.environ``.
            env_file: ``.env`` file loaded into ``os.environ`` first. Only used
                when reading from ``os.environ``; pass None to skip it.

        Returns:
            A new ServerConfig.
        """
        if environ is None:
            if env_file is not None:
                load_env_file(env_file)
            environ = os.environ

        token_path = environ.get("GTASKS_MCP_TOKEN_PATH")
        credentials_path = environ.get("GTASKS_MCP_CREDENTIALS_PATH")

        return cls(
            token_path=Path(token_path).expanduser() if token_path else DEFAULT_TOKEN_PATH,
            credentials_path=(
                Path(credentials_path).expanduser()
                if credentials_path
                else DEFAULT_CREDENTIALS_PATH
            ),
            max_results=clamp_max_results(environ.get("MAX_TASK_RESULTS")),
            consent_port=_parse_port(environ.get("GTASKS_MCP_CONSENT_PORT")),
            consent_timeout=_parse_optional_float(
                environ.get("GTASKS_MCP_CONSENT_TIMEOUT"), "GTASKS_MCP_CONSENT_TIMEOUT"
            ),
            open_browser=_parse_bool(environ.get("GTASKS_MCP_OPEN_BROWSER"), True),
            log_level=environ.get("GTASKS_MCP_LOG_LEVEL", "INFO").upper(),
        )

    def get_status(self) -> dict:
        """Get status of the configured credential files.

        Returns:
            Dictionary with paths and whether each file exists.
        """
        return {
            "repo_root": str(REPO_ROOT),
            "env_file": ENV_FILE.exists(),
            "credentials_path": str(self.credentials_path),
            "credentials": self.credentials_path.exists(),
            "token_path": str(self.token_path),
            "token": self.token_path.exists(),
            "max_results": self.max_results,
        }


def configure_logging(level: str = "INFO") -> None:
    """Send log records to stderr; stdout carries the MCP stdio stream."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )
