# Quest board — configuration
# Override via config.yaml, the PORT environment variable, or CLI args.

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

CONFIG_PATH = Path("config.yaml")
ROOT_DIR = Path(__file__).resolve().parent.parent.parent


class ConfigError(Exception):
    """Raised when configuration is invalid or incomplete."""
    pass


@dataclass
class Config:
    """Runtime configuration for the quest board server."""

    # Network
    host: str = "127.0.0.1"
    port: int = 3000
    cors_allowed_origins: str = "*"

    # Storage
    data_file: str = str(ROOT_DIR / "data.json")
    static_dir: str = str(ROOT_DIR / "public")

    # Persistence timing
    save_interval_secs: float = 10.0   # heartbeat rewrite
    save_delay_secs: float = 1.0       # debounce after a mutation

    log_level: str = "INFO"

    def apply_env(self, environ=None):
        """PORT from the environment wins over the file."""
        env = os.environ if environ is None else environ
        if env.get("PORT"):
            self.port = env["PORT"]
        return self

    def validate(self):
        try:
            self.port = int(self.port)
        except (TypeError, ValueError):
            raise ConfigError(f"port must be an integer, got {self.port!r}")
        try:
            self.save_interval_secs = float(self.save_interval_secs)
            self.save_delay_secs = float(self.save_delay_secs)
        except (TypeError, ValueError):
            raise ConfigError(
                f"save_interval_secs and save_delay_secs must be numbers, got "
                f"{self.save_interval_secs!r} and {self.save_delay_secs!r}"
            )
        if self.save_interval_secs <= 0 or self.save_delay_secs < 0:
            raise ConfigError("save_interval_secs must be > 0 and save_delay_secs >= 0")
        # Relative data files live next to the server, not in the launch directory
        data_file = Path(self.data_file).expanduser()
        if not data_file.is_absolute():
            data_file = ROOT_DIR / data_file
        self.data_file = str(data_file)
        return self

    @classmethod
    def load(cls, path: Optional[str] = None, environ=None) -> "Config":
        """Load config from YAML file, falling back to defaults."""
        cfg_path = Path(path) if path else CONFIG_PATH
        if cfg_path.exists():
            try:
                with open(cfg_path, "r") as f:
                    data = yaml.safe_load(f) or {}
                cfg = cls(**{k: v for k, v in data.items() if hasattr(cls, k)})
            except Exception:
                cfg = cls()
        else:
            cfg = cls()
        return cfg.apply_env(environ).validate()
