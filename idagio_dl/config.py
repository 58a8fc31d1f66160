"""Configuration management for idagio-dl."""

import os
import shutil
import sys
from pathlib import Path
from typing import Any, Optional

import yaml

DOWNLOADS_FOLDER = "IDAGIO downloads"


def default_config_path() -> Path:
    """Per-user config, falling back to config.yaml next to the package."""
    user_path = Path.home() / ".config" / "idagio-dl" / "config.yaml"
    if user_path.exists():
        return user_path
    return Path(__file__).parent.parent / "config.yaml"


class Config:
    """idagio-dl configuration."""

    _instance = None

    def __new__(cls, config_path: Optional[Path] = None):
        """Singleton pattern for config."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    @classmethod
    def reset(cls):
        """Reset singleton for testing."""
        cls._instance = None

    def __init__(self, config_path: Optional[Path] = None):
        """Load configuration from YAML file."""
        if self._initialized:
            return

        self.config_path = Path(config_path) if config_path else default_config_path()
        self.config = self._load_config()
        self._initialized = True

    def _load_config(self) -> dict:
        """Load and parse config file."""
        if not self.config_path.exists():
            print(f"Error: Configuration file not found: {self.config_path}", file=sys.stderr)
            print("Run 'idagio-dl init' or copy config.example.yaml to config.yaml", file=sys.stderr)
            sys.exit(1)

        with open(self.config_path) as f:
            config = yaml.safe_load(f) or {}

        # Expand home directory in paths
        self._expand_paths(config)
        return config

    def _expand_paths(self, config: dict):
        """Expand ~ in path values."""
        for key, value in config.items():
            if isinstance(value, str) and value.startswith("~"):
                config[key] = os.path.expanduser(value)
            elif isinstance(value, dict):
                self._expand_paths(value)

    def get(self, key: str, default: Any = None) -> Any:
        """Get config value by dot-separated key."""
        keys = key.split(".")
        value = self.config

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    @property
    def email(self) -> Optional[str]:
        return self.get("email")

    @property
    def password(self) -> Optional[str]:
        return self.get("password")

    @property
    def format(self) -> int:
        """Requested quality tier (1-3), validated later by resolve_format."""
        return self.get("format", 2)

    @property
    def output_root(self) -> Path:
        """Configured output directory, as written in the file."""
        return Path(self.get("output_dir", "."))

    @property
    def output_dir(self) -> Path:
        """Directory downloads are written to."""
        return self.output_root / DOWNLOADS_FOLDER

    @property
    def keep_covers(self) -> bool:
        return bool(self.get("keep_covers", False))

    @property
    def write_covers(self) -> bool:
        return bool(self.get("write_covers", False))

    @property
    def ffmpeg_path(self) -> str:
        """ffmpeg executable used for muxing concerts."""
        if self.get("ffmpeg.use_path", False):
            return "ffmpeg"

        path = self.get("ffmpeg.path", "")
        if path:
            return str(path)

        bundled = Path(sys.executable).parent / "ffmpeg"
        if bundled.exists():
            return str(bundled)
        return shutil.which("ffmpeg") or "ffmpeg"

    @property
    def failed_log(self) -> Path:
        """Get failed downloads log path."""
        path = self.get("failed_log")
        if path:
            return Path(path)
        return self.config_path.parent / "failed-downloads.txt"
