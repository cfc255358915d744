"""YAML configuration loader with validation."""
import os
from dataclasses import dataclass, field, fields
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional, Any

import yaml

from labreaper.core.errors import ConfigError

DEFAULT_REGION = 'us-east-1'
DEFAULT_PROJECT_TAG = 'aws-resource-creation'


def default_region() -> str:
    return os.environ.get('AWS_DEFAULT_REGION') or DEFAULT_REGION


@dataclass
class Config:
    """labreaper configuration."""
    project_tag: str = DEFAULT_PROJECT_TAG
    tag_key: str = 'Project'
    region: str = field(default_factory=default_region)
    dry_run: bool = False
    key_prefix: str = 'automation-lab-key-'
    bucket_prefix: str = 'automation-lab-bucket-'
    output_dir: str = 'outputs'
    instance_wait_delay: int = 15
    instance_wait_attempts: int = 40
    json_logs: bool = False
    verbosity: int = 0

    @property
    def log_dir(self) -> Path:
        return Path(self.output_dir) / 'logs'

    @property
    def key_dir(self) -> Path:
        return Path(self.output_dir) / 'keys'

    @property
    def info_dir(self) -> Path:
        return Path(self.output_dir) / 'info'

    @property
    def sample_dir(self) -> Path:
        return Path(self.output_dir) / 'samples'

    def log_file(self, now: Optional[datetime] = None) -> Path:
        """Path of the audit log for a run started at ``now``."""
        stamp = (now or datetime.now()).strftime('%Y%m%d_%H%M%S')
        return self.log_dir / f"cleanup_{stamp}.log"

    def validate(self) -> None:
        if not self.project_tag:
            raise ConfigError("project_tag must not be empty")
        if not self.tag_key:
            raise ConfigError("tag_key must not be empty")
        if not self.region:
            raise ConfigError("region must not be empty")
        if self.instance_wait_delay <= 0 or self.instance_wait_attempts <= 0:
            raise ConfigError("instance_wait_delay and instance_wait_attempts must be positive")


def load_config(path: Optional[str] = None) -> Config:
    """Load config from YAML file or return defaults.

    Args:
        path: Path to YAML config file. If None, returns default config.

    Returns:
        Config instance

    Raises:
        ConfigError: If the file is missing, is not valid YAML, or sets
            unknown or badly typed options
    """
    if path is None:
        return Config()

    config_path = Path(path)
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return _parse_config(data)


def _parse_config(data: Dict[str, Any]) -> Config:
    """Parse config dict into Config dataclass."""
    known = {f.name: f for f in fields(Config)}
    unknown = sorted(set(data) - set(known))
    if unknown:
        raise ConfigError(f"Unknown config option(s): {', '.join(unknown)}")

    defaults = Config()
    values = {}
    for name, value in data.items():
        expected = type(getattr(defaults, name))
        if expected is int and isinstance(value, bool) or not isinstance(value, expected):
            raise ConfigError(f"Config option '{name}' must be of type {expected.__name__}")
        values[name] = value

    config = Config(**values)
    config.validate()
    return config
