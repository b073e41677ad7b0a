import yaml
import os
import platform
import logging
from dataclasses import dataclass, fields
from typing import Any, Dict, Optional

def load_config():
    # Assuming this file is at 'repo/utils/config.py', we go up one level.
    repo_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))

    # Platform-specific config mapping
    config_map = {
        'Darwin': 'config.mac.yaml',
        'Windows': 'config.windows.yaml'
    }

    system = platform.system()
    platform_config = config_map.get(system)

    # Use platform-specific config if it exists, otherwise fall back to config.yaml
    candidate_files = [platform_config, 'config.yaml'] if platform_config else ['config.yaml']

    for filename in candidate_files:
        config_path = os.path.join(repo_root, filename)
        if os.path.exists(config_path):
            with open(config_path, 'r') as file:
                try:
                    return yaml.safe_load(file) or {}
                except yaml.YAMLError as e:
                    raise Exception(f"Error parsing '{filename}': {e}")

    raise FileNotFoundError("No valid configuration file found (checked platform-specific and default).")


# -----------------------------------------------
# JTL analysis settings
# -----------------------------------------------
@dataclass(frozen=True)
class AnalysisSettings:
    """Engine knobs read from the 'jtl_analysis' section of config.yaml."""
    # "last" reproduces the dashboard (last sample in the bucket wins),
    # "mean" keeps a running mean per bucket instead.
    bucket_elapsed_mode: str = "last"
    time_zone: str = "UTC"
    time_format: str = "%H:%M:%S"
    datetime_format: str = "%d/%m/%Y, %H:%M:%S"
    unspecified_error_message: str = "Unspecified error"
    large_file_warning_mb: float = 50
    file_encoding: str = "utf-8-sig"

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]] = None) -> "AnalysisSettings":
        """Merge defaults with the overrides found in config.yaml > jtl_analysis."""
        section = (config or {}).get('jtl_analysis') or {}
        known = {f.name for f in fields(cls)}
        overrides = {k: v for k, v in section.items() if k in known and v is not None}
        settings = cls(**overrides)
        if settings.bucket_elapsed_mode not in ("last", "mean"):
            raise ValueError(
                f"Invalid bucket_elapsed_mode '{settings.bucket_elapsed_mode}'. Expected 'last' or 'mean'."
            )
        return settings


# -----------------------------------------------
# Logging setup
# -----------------------------------------------
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_FILENAME = "jtlanalysis.log"

def setup_logging(config: Optional[Dict[str, Any]] = None) -> None:
    """
    Configure the root logger from the 'logging' section of config.yaml.

    Keys:
        log_level: DEBUG/INFO/WARNING/ERROR/CRITICAL (default INFO)
        verbose_mode: forces DEBUG when true
        log_path: optional directory; when set, a jtlanalysis.log file handler is added
    """
    log_cfg = (config or {}).get('logging') or {}
    level_name = "DEBUG" if log_cfg.get('verbose_mode') else str(log_cfg.get('log_level', 'INFO')).upper()
    level = getattr(logging, level_name, logging.INFO)

    handlers = [logging.StreamHandler()]
    log_path = log_cfg.get('log_path')
    if log_path:
        os.makedirs(log_path, exist_ok=True)
        handlers.append(logging.FileHandler(os.path.join(log_path, LOG_FILENAME), encoding='utf-8'))

    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)


if __name__ == '__main__':
    # For testing purposes, print the configuration.
    config = load_config()
    print("Loaded general configuration:")
    print(config)
    print(AnalysisSettings.from_config(config))
