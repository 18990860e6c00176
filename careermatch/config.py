"""
Configuration management for CareerMatch.

Settings are resolved in order:
- Built-in defaults
- careermatch.config.json in the config directory
- .env file and CAREERMATCH_* environment variables
"""

import copy
import os
import json
from pathlib import Path
from typing import Dict, Any, Optional, List
from dotenv import load_dotenv, set_key
from rich.console import Console
from rich.table import Table


class ConfigManager:
    """Manages CareerMatch configuration settings and .env files."""

    DEFAULT_CONFIG = {
        "database": {
            "path": "data/careermatch.db"
        },

        "ollama": {
            "host": "localhost",
            "port": 11434,
            "model": "nomic-embed-text",
            "dimensions": 0,
            "timeout": 30,
            "max_retries": 3,
            "backoff_base": 1.0,
            "backoff_max": 30.0
        },

        "matching": {
            "batch_timeout": 120.0,
            "embedding_workers": 4,
            "scoring_workers": 4,
            "min_profile_chars": 50,
            "max_text_chars": 30000,
            "jobs_list_limit": 100,
            "fallback_jobs_limit": 50
        },

        "auth": {
            "jwt_secret": "",
            "jwt_algorithm": "HS256",
            "audience": ""
        },

        "server": {
            "host": "127.0.0.1",
            "port": 5000
        },

        "logging": {
            "level": "INFO"
        }
    }

    ENV_MAPPINGS = {
        "CAREERMATCH_DB_PATH": ("database", "path"),

        "CAREERMATCH_OLLAMA_HOST": ("ollama", "host"),
        "CAREERMATCH_OLLAMA_PORT": ("ollama", "port"),
        "CAREERMATCH_OLLAMA_MODEL": ("ollama", "model"),
        "CAREERMATCH_OLLAMA_DIMENSIONS": ("ollama", "dimensions"),
        "CAREERMATCH_OLLAMA_TIMEOUT": ("ollama", "timeout"),
        "CAREERMATCH_OLLAMA_MAX_RETRIES": ("ollama", "max_retries"),
        "CAREERMATCH_OLLAMA_BACKOFF_BASE": ("ollama", "backoff_base"),
        "CAREERMATCH_OLLAMA_BACKOFF_MAX": ("ollama", "backoff_max"),

        "CAREERMATCH_BATCH_TIMEOUT": ("matching", "batch_timeout"),
        "CAREERMATCH_EMBEDDING_WORKERS": ("matching", "embedding_workers"),
        "CAREERMATCH_SCORING_WORKERS": ("matching", "scoring_workers"),
        "CAREERMATCH_MIN_PROFILE_CHARS": ("matching", "min_profile_chars"),
        "CAREERMATCH_MAX_TEXT_CHARS": ("matching", "max_text_chars"),
        "CAREERMATCH_JOBS_LIST_LIMIT": ("matching", "jobs_list_limit"),
        "CAREERMATCH_FALLBACK_JOBS_LIMIT": ("matching", "fallback_jobs_limit"),

        "CAREERMATCH_JWT_SECRET": ("auth", "jwt_secret"),
        "CAREERMATCH_JWT_ALGORITHM": ("auth", "jwt_algorithm"),
        "CAREERMATCH_JWT_AUDIENCE": ("auth", "audience"),

        "CAREERMATCH_SERVER_HOST": ("server", "host"),
        "CAREERMATCH_SERVER_PORT": ("server", "port"),

        "CAREERMATCH_LOG_LEVEL": ("logging", "level")
    }

    # (section, key, minimum) for numeric settings that must be positive
    POSITIVE_SETTINGS = [
        ("ollama", "timeout", 0),
        ("matching", "batch_timeout", 0),
        ("matching", "embedding_workers", 1),
        ("matching", "scoring_workers", 1),
        ("matching", "jobs_list_limit", 1),
        ("matching", "fallback_jobs_limit", 1),
    ]

    def __init__(self, config_dir: str = "."):
        self.config_dir = Path(config_dir)
        self.env_file = self.config_dir / ".env"
        self.config_file = self.config_dir / "careermatch.config.json"
        self.console = Console()

        self.config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        config = copy.deepcopy(self.DEFAULT_CONFIG)

        if self.env_file.exists():
            load_dotenv(str(self.env_file))

        if self.config_file.exists():
            try:
                overrides = json.loads(self.config_file.read_text())
            except (OSError, json.JSONDecodeError) as e:
                self.console.print(f"[yellow]Warning: Ignoring {self.config_file.name}: {e}[/yellow]")
            else:
                _merge_into(config, overrides)

        for env_var, (section, key) in self.ENV_MAPPINGS.items():
            raw = os.getenv(env_var)
            if raw is None:
                continue
            try:
                config[section][key] = self.coerce(config[section][key], raw)
            except ValueError:
                self.console.print(f"[yellow]Warning: {env_var}={raw!r} is not valid, keeping default[/yellow]")

        return config

    @staticmethod
    def coerce(default_value: Any, value: str) -> Any:
        """Convert a string to the type of the existing value."""
        if isinstance(default_value, bool):
            return value.lower() in ('true', '1', 'yes', 'on')
        if isinstance(default_value, int):
            return int(value)
        if isinstance(default_value, float):
            return float(value)
        return value

    def get(self, section: str, key: Optional[str] = None) -> Any:
        """Get a whole section, or one key of it."""
        values = self.config.get(section, {})
        return values if key is None else values.get(key)

    def set(self, section: str, key: str, value: Any) -> bool:
        """Set a value and persist the JSON config file."""
        known = self.DEFAULT_CONFIG.get(section)
        if known is not None and key not in known:
            self.console.print(f"[yellow]Warning: '{section}.{key}' is not a known setting[/yellow]")

        self.config.setdefault(section, {})[key] = value
        return self.save_config()

    def save_config(self) -> bool:
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            self.config_file.write_text(json.dumps(self.config, indent=2))
        except OSError as e:
            self.console.print(f"[red]Could not write {self.config_file}: {e}[/red]")
            return False
        return True

    def set_env_var(self, key: str, value: str) -> bool:
        """Write KEY=value to the .env file and reload settings."""
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            set_key(str(self.env_file), key, value)
        except OSError as e:
            self.console.print(f"[red]Could not update {self.env_file}: {e}[/red]")
            return False

        os.environ[key] = value
        self.config = self._load_config()
        return True

    def validate_config(self) -> List[str]:
        """Return a list of human-readable problems; empty when valid."""
        issues = []

        port = self.get("ollama", "port")
        if not isinstance(port, int) or not 0 < port < 65536:
            issues.append(f"Invalid Ollama port: {port}")

        retries = self.get("ollama", "max_retries")
        if not isinstance(retries, int) or retries < 0:
            issues.append(f"Invalid Ollama max retries: {retries}")

        dimensions = self.get("ollama", "dimensions")
        if not isinstance(dimensions, int) or dimensions < 0:
            issues.append(f"Invalid embedding dimensions: {dimensions} (0 disables the check)")

        for section, key, minimum in self.POSITIVE_SETTINGS:
            value = self.get(section, key)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0 or value < minimum:
                issues.append(f"Invalid {key.replace('_', ' ')}: {value}")

        if not self.get("auth", "jwt_secret"):
            issues.append("auth.jwt_secret is not set; authenticated endpoints will reject every request")

        return issues

    def display_config(self) -> None:
        """Print every section as a rich table, masking secrets."""
        self.console.print("[bold cyan]CareerMatch Configuration[/bold cyan]\n")

        for section, values in self.config.items():
            table = Table(title=f"{section.title()} Settings")
            table.add_column("Setting", style="cyan")
            table.add_column("Value", style="green")
            table.add_column("Type", style="dim")

            for key, value in values.items():
                if key == "jwt_secret" and value:
                    shown = "********"
                elif isinstance(value, bool):
                    shown = "✓" if value else "✗"
                else:
                    shown = str(value)
                    if len(shown) > 50:
                        shown = shown[:47] + "..."
                table.add_row(key, shown, type(value).__name__)

            self.console.print(table)
            self.console.print()


def _merge_into(base: Dict[str, Any], override: Dict[str, Any]) -> None:
    for key, value in override.items():
        if isinstance(base.get(key), dict) and isinstance(value, dict):
            _merge_into(base[key], value)
        else:
            base[key] = value
