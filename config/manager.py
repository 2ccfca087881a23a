from pathlib import Path
from typing import Dict, Any, List
import logging
import os


class EnvironmentManager:
    """
    Environment manager holding the capture library settings.

    Settings start from DEFAULT_SETTINGS, are overridden by the first .env
    file found and finally by PAGE_CAPTURE_* variables from the OS environment.
    """

    _instance = None

    ENV_PREFIX = "PAGE_CAPTURE_"

    # List of all settings that are paths
    PATH_SETTINGS = [
        "browser_executable_path",
        "ad_block_hosts_file",
    ]

    # Default settings with their types
    DEFAULT_SETTINGS = {
        # Browser launch settings
        "browser_headless": (True, bool),
        "browser_channel": (None, str),
        "browser_executable_path": (None, str),
        "debug_slow_mo": (100, int),
        "browser_close_timeout": (10.0, float),
        # Network idle detection
        "network_idle_time": (0.5, float),
        "network_idle_max_inflight": (2, int),
        # Full page / lazy content scrolling
        "scroll_settle_delay": (0.1, float),
        "lazy_scroll_max_steps": (0, int),
        # Ad blocking
        "ad_block_hosts_file": (None, str),
    }

    # Create mapping dynamically - each setting can be set via its prefixed uppercase env var
    ENV_MAPPING = {
        "PAGE_CAPTURE_" + setting.upper(): setting for setting in DEFAULT_SETTINGS.keys()
    }

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialize()
        return cls._instance

    def _initialize(self):
        """Initialize environment with default values"""
        self.env_variables: Dict[str, str] = {}
        self.settings: Dict[str, Any] = {}
        self.logger = logging.getLogger(__name__)

        # Initialize settings with default values
        for key, (default_value, _) in self.DEFAULT_SETTINGS.items():
            self.settings[key] = default_value

        self.load()

    def _convert_value(self, value: str, target_type: type) -> Any:
        """Convert string value to target type"""
        if target_type == bool:
            return value.lower() in ("true", "1", "yes", "on")
        return target_type(value)

    def _apply_variable(self, key: str, value: str) -> None:
        """Store a variable and update the mapped setting, if any"""
        self.env_variables[key] = value

        setting_name = self.ENV_MAPPING.get(key)
        if setting_name is None:
            return

        _, target_type = self.DEFAULT_SETTINGS[setting_name]
        try:
            converted = self._convert_value(value, target_type)
        except ValueError:
            self.logger.warning(
                "Ignoring %s=%r: expected a value of type %s",
                key,
                value,
                target_type.__name__,
            )
            return

        if setting_name in self.PATH_SETTINGS and converted:
            converted = str(Path(converted).expanduser().resolve())
        self.settings[setting_name] = converted

    def _env_file_candidates(self) -> List[Path]:
        """Return the .env locations searched, in priority order"""
        env_file_paths = [Path.cwd() / ".env"]

        # Try additional common locations - safely handle home directory
        try:
            env_file_paths.append(Path.home() / ".env")
        except (RuntimeError, OSError):
            # Skip home directory if it can't be determined
            pass

        return env_file_paths

    def _load_from_env_file(self):
        """Find and load variables from a .env file"""
        env_file_paths = self._env_file_candidates()

        # Load from the first .env file found
        for env_path in env_file_paths:
            if env_path.exists() and env_path.is_file():
                self.logger.debug("Loading environment from: %s", env_path)
                self._parse_env_file(env_path)
                return

        self.logger.debug(
            "No .env file found, tried: %s", ", ".join(str(p) for p in env_file_paths)
        )

    def _parse_env_file(self, env_file_path: Path):
        """Parse a .env file and load variables into environment"""
        try:
            with open(env_file_path, "r") as f:
                for line in f:
                    line = line.strip()
                    if line and not line.startswith("#") and "=" in line:
                        key, value = line.split("=", 1)
                        key = key.strip()
                        value = value.strip()

                        # Remove quotes if present
                        if (value.startswith('"') and value.endswith('"')) or (
                            value.startswith("'") and value.endswith("'")
                        ):
                            value = value[1:-1]

                        self._apply_variable(key, value)

        except OSError as e:
            self.logger.warning("Error parsing .env file %s: %s", env_file_path, e)

    def load(self):
        """Load settings from the .env file and the OS environment"""
        self._load_from_env_file()

        # OS environment wins over the .env file
        for key, value in os.environ.items():
            if key.startswith(self.ENV_PREFIX):
                self._apply_variable(key, value)

        return self

    def get_setting(self, name: str, default: Any = None) -> Any:
        """Get a setting value by name"""
        value = self.settings.get(name)
        return default if value is None else value

    def set_setting(self, name: str, value: Any) -> None:
        """Override a setting at runtime"""
        if name not in self.DEFAULT_SETTINGS:
            raise KeyError(f"Unknown setting: {name}")
        self.settings[name] = value

    def reset_setting(self, name: str) -> None:
        """Reset a specific setting to its default value"""
        if name not in self.DEFAULT_SETTINGS:
            raise KeyError(f"Unknown setting: {name}")
        default_value, _ = self.DEFAULT_SETTINGS[name]
        self.settings[name] = default_value

    def get_launch_defaults(self) -> Dict[str, Any]:
        """Return the browser launch options derived from settings"""
        launch_options: Dict[str, Any] = {
            "headless": self.get_setting("browser_headless", True)
        }
        if channel := self.get_setting("browser_channel"):
            launch_options["channel"] = channel
        if executable_path := self.get_setting("browser_executable_path"):
            launch_options["executable_path"] = executable_path
        return launch_options

    def get_all_configuration(self) -> Dict[str, Any]:
        """Get all configuration settings with their defaults"""
        default_settings_serializable = {}
        for key, (default_value, type_class) in self.DEFAULT_SETTINGS.items():
            default_settings_serializable[key] = {
                "default_value": default_value,
                "type": type_class.__name__,
            }

        return {
            "settings": dict(self.settings),
            "default_settings": default_settings_serializable,
            "path_settings": list(self.PATH_SETTINGS),
            "env_mapping": dict(self.ENV_MAPPING),
        }


# Create a global instance
env_manager = EnvironmentManager()
