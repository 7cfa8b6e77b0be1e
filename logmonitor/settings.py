from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Optional

import orjson
from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from .hashing import canonical_json
from .monitor import MonitorConfig


# Looked up under the working directory, like .env
_DEFAULT_CONFIG_PATH = Path("config") / "config.json"

# Environment variable -> (section, key) in the config file
_ENV_OVERRIDES = {
    "LOG_MONITOR_WARNING_THRESHOLD_MINUTES": ("thresholds", "warning_minutes"),
    "LOG_MONITOR_FAULT_THRESHOLD_MINUTES": ("thresholds", "fault_minutes"),
    "LOG_MONITOR_CSV_DELIMITER": ("parser", "delimiter"),
    "LOG_MONITOR_TIME_FORMAT": ("parser", "time_format"),
    "LOG_MONITOR_AUDIT_DIR": ("audit", "base_dir"),
    "LOG_MONITOR_LOG_LEVEL": ("logging", "level"),
}


class _ThresholdsCfg(BaseModel):
    warning_minutes: int = 5
    fault_minutes: int = 10

    @field_validator("warning_minutes", "fault_minutes")
    @classmethod
    def non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("threshold minutes must not be negative")
        return v


class _ParserCfg(BaseModel):
    delimiter: str = Field(",", min_length=1)
    time_format: str = "%H:%M:%S"


class _AuditCfg(BaseModel):
    base_dir: Optional[str] = None


class _LoggingCfg(BaseModel):
    level: str = "INFO"


class _RawConfig(BaseModel):
    thresholds: _ThresholdsCfg = Field(default_factory=_ThresholdsCfg)
    parser: _ParserCfg = Field(default_factory=_ParserCfg)
    audit: _AuditCfg = Field(default_factory=_AuditCfg)
    logging: _LoggingCfg = Field(default_factory=_LoggingCfg)


def _config_path() -> Path:
    override = os.getenv("LOG_MONITOR_CONFIG")
    return Path(override) if override else Path.cwd() / _DEFAULT_CONFIG_PATH


def _read_config_file(path: Path) -> Dict[str, Any]:
    # The config file is optional; defaults cover every key
    try:
        raw_bytes = path.read_bytes()
    except FileNotFoundError:
        return {}
    try:
        raw_obj = orjson.loads(raw_bytes)
    except orjson.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in config file: {path}") from e
    if not isinstance(raw_obj, dict):
        raise ValueError(f"Config file must hold a JSON object: {path}")
    return raw_obj


def _apply_env_overrides(raw_obj: Dict[str, Any]) -> Dict[str, Any]:
    merged = {k: dict(v) if isinstance(v, dict) else v for k, v in raw_obj.items()}
    for env_name, (section, key) in _ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value is None or value == "":
            continue
        merged.setdefault(section, {})
        if not isinstance(merged[section], dict):
            raise ValueError(f"Config section '{section}' must be an object")
        merged[section][key] = value
    return merged


class Settings(BaseModel):
    warning_threshold_minutes: int = 5
    fault_threshold_minutes: int = 10
    csv_delimiter: str = ","
    time_format: str = "%H:%M:%S"
    audit_base_dir: Optional[str] = Field(None, description="Directory for run audit trails; None disables auditing")
    log_level: str = "INFO"

    @classmethod
    def load(cls) -> "Settings":
        # Values from .env never override the real environment
        env_path = find_dotenv(usecwd=True)
        if env_path:
            load_dotenv(env_path, override=False)

        raw_obj = _apply_env_overrides(_read_config_file(_config_path()))
        try:
            validated = _RawConfig.model_validate(raw_obj)
        except ValidationError as e:
            raise ValueError(f"Invalid configuration: {e}") from e

        return cls(
            warning_threshold_minutes=validated.thresholds.warning_minutes,
            fault_threshold_minutes=validated.thresholds.fault_minutes,
            csv_delimiter=validated.parser.delimiter,
            time_format=validated.parser.time_format,
            audit_base_dir=validated.audit.base_dir,
            log_level=validated.logging.level.upper(),
        )

    def monitor_config(self) -> MonitorConfig:
        try:
            return MonitorConfig.from_minutes(self.warning_threshold_minutes, self.fault_threshold_minutes)
        except ValidationError as e:
            raise ValueError(f"Invalid thresholds: {e}") from e

    @property
    def cfg_hash(self) -> str:
        from hashlib import sha256

        # Hash the effective settings, so env overrides show up too
        return sha256(canonical_json(self.model_dump())).hexdigest()

    def audit_dir_for(self, run_id: str) -> Optional[Path]:
        if not self.audit_base_dir:
            return None
        base = Path(self.audit_base_dir)
        # Relative paths are taken from the working directory
        if not base.is_absolute():
            base = Path.cwd() / base
        run_dir = base / run_id
        run_dir.mkdir(parents=True, exist_ok=True)
        return run_dir

