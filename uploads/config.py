"""Configuration settings for the uploads server."""
import argparse
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from uploads.errors import ConfigError

# Storage limits
MAX_LENGTH = 10 * 1024 * 1024  # 10MB

# Identity constraints
MAX_NAME_ATTEMPTS = 100

# Access gate
API_KEY_HEADER = "X-API-Key"

# Defaults for keys missing from the config document
DEFAULT_CONFIG_PATH = "configs/config.json"
DATA_DIR = "data"
TEMP_DIR = "temp"
DB_PATH = "uploads.db"
LOG_DIR = "logs"
ASSETS_DIR = "assets"
HOST = "0.0.0.0"
PORT = 8080


@dataclass
class Settings:
    api_key: str = ""
    ui_username: str = ""
    ui_password_hash: str = ""
    data_dir: Path = field(default_factory=lambda: Path(DATA_DIR))
    temp_dir: Path = field(default_factory=lambda: Path(TEMP_DIR))
    db_path: Path = field(default_factory=lambda: Path(DB_PATH))
    log_dir: Path = field(default_factory=lambda: Path(LOG_DIR))
    assets_dir: Path = field(default_factory=lambda: Path(ASSETS_DIR))
    host: str = HOST
    port: int = PORT

    @property
    def server_addr(self) -> str:
        return f"{self.host}:{self.port}"

    @classmethod
    def from_dict(cls, data: dict) -> 'Settings':
        """Build settings from a parsed config document, filling in defaults."""
        if not isinstance(data, dict):
            raise ConfigError("Config document must be a JSON object")

        try:
            port = int(data.get("port") or PORT)
        except (TypeError, ValueError):
            raise ConfigError(f"Invalid port: {data.get('port')!r}")

        return cls(
            api_key=data.get("api_key") or "",
            ui_username=data.get("ui_username") or "",
            ui_password_hash=data.get("ui_password_hash") or "",
            data_dir=Path(data.get("data_dir") or DATA_DIR),
            temp_dir=Path(data.get("temp_dir") or TEMP_DIR),
            db_path=Path(data.get("db_path") or DB_PATH),
            log_dir=Path(data.get("log_dir") or LOG_DIR),
            assets_dir=Path(data.get("assets_dir") or ASSETS_DIR),
            host=data.get("host") or HOST,
            port=port,
        )

    @classmethod
    def load(cls, path: Path) -> 'Settings':
        """Read and parse the JSON config file at ``path``."""
        try:
            raw = Path(path).read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"Failed to read config file: {e}")

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Failed to parse config file: {e}")

        return cls.from_dict(data)


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    """Parse command line arguments for the server entry point."""
    parser = argparse.ArgumentParser(description='Authenticated file upload server')
    parser.add_argument('--config', default=DEFAULT_CONFIG_PATH,
                        help='Path to the JSON config file')
    parser.add_argument('--port', type=int, default=None,
                        help='Override the listen port from the config file')
    parser.add_argument('--sweep', action='store_true',
                        help='Remove records whose stored bytes are missing, then exit')
    return parser.parse_args(argv)
