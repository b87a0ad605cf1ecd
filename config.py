"""
config.py

Typed configuration loading and validation for Beatline.

Design goals
- Load at most one UTF-8 JSON config file
- Validate with pydantic (defaults included)
- Support environment variable overrides
- Reject invariant violations (tier ordering, autoplay weights) before any run starts

Config file location
- If BEATLINE_CONFIG_PATH is set, that file is used (it must exist).
- Otherwise Beatline searches these paths in order and uses the first one that exists:
  1) ./beatline_config.json (current working directory)
  2) <user config dir>/Beatline/Beatline/beatline_config.json
  3) <user config dir>/Beatline/Beatline/config.json
- If none exists, built-in defaults are used.

Example config file (beatline_config.json)
{
  "judgement": {
    "tiers": [
      {"name": "perfect", "threshold_ms": 5, "score": 300, "color": "#00ff80"},
      {"name": "great", "threshold_ms": 10, "score": 200, "color": "#2ecc71"},
      {"name": "good", "threshold_ms": 20, "score": 120, "color": "#f6d860"},
      {"name": "okay", "threshold_ms": 30, "score": 50, "color": "#ff8c42"}
    ],
    "late_miss_ms": 50
  },
  "transport": {
    "pre_roll_ms": 3000,
    "drop_ms": 2000,
    "loop": false
  },
  "autoplay": {
    "enabled": true,
    "mode": "realistic",
    "seed": 1234
  },
  "control_server": {
    "host": "127.0.0.1",
    "port": 5178
  }
}
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from platformdirs import user_config_dir
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator


AUTOPLAY_MODES = ("realistic", "perfect")


class ConfigurationInvariantViolation(ValueError):
    """Raised when configuration values break an engine invariant (for example tier ordering)."""


class TierConfig(BaseModel):
    name: str = Field(description="Tier label shown in feedback, for example perfect.")
    threshold_ms: float = Field(gt=0.0, description="Largest absolute delta (ms) that still earns this tier.")
    score: int = Field(ge=0, description="Score added for a judgement in this tier.")
    color: str = Field(default="#ffffff", description="Feedback colour tag for the renderer.")

    @field_validator("name")
    @classmethod
    def normalize_name(cls, value: str) -> str:
        normalized = (value or "").strip().lower()
        if not normalized:
            raise ValueError("tier name must not be empty")
        if normalized == "miss":
            raise ValueError("tier name 'miss' is reserved for late misses")
        return normalized


def _default_tiers() -> List[TierConfig]:
    return [
        TierConfig(name="perfect", threshold_ms=5.0, score=300, color="#00ff80"),
        TierConfig(name="great", threshold_ms=10.0, score=200, color="#2ecc71"),
        TierConfig(name="good", threshold_ms=20.0, score=120, color="#f6d860"),
        TierConfig(name="okay", threshold_ms=30.0, score=50, color="#ff8c42"),
    ]


class JudgementConfig(BaseModel):
    tiers: List[TierConfig] = Field(default_factory=_default_tiers, description="Ordered tightest to loosest.")
    late_miss_ms: float = Field(default=50.0, gt=0.0, description="Unjudged notes older than this become misses.")
    miss_color: str = Field(default="#ff4d4f", description="Feedback colour tag for misses.")

    @field_validator("tiers")
    @classmethod
    def validate_tier_order(cls, value: List[TierConfig]) -> List[TierConfig]:
        if not value:
            raise ValueError("at least one judgement tier is required")
        names = [tier.name for tier in value]
        if len(set(names)) != len(names):
            raise ValueError("tier names must be unique")
        thresholds = [float(tier.threshold_ms) for tier in value]
        for previous, current in zip(thresholds, thresholds[1:]):
            if current <= previous:
                raise ValueError("tier thresholds must be strictly increasing from tightest to loosest")
        return value


class TransportConfig(BaseModel):
    pre_roll_ms: float = Field(default=3000.0, ge=0.0, description="Countdown before logical time reaches zero.")
    drop_ms: float = Field(default=2000.0, gt=0.0, description="Travel time from spawn to hit line (render hint).")
    completion_margin_ms: float = Field(default=50.0, ge=0.0, description="Pinned time past the last note.")
    feedback_ttl_ms: float = Field(default=750.0, gt=0.0, description="How long feedback events stay in snapshots.")
    loop: bool = Field(default=False, description="Restart the chart automatically on completion.")


class ChartConfig(BaseModel):
    lanes: int = Field(default=12, ge=1, le=14, description="Number of input lanes.")


class AutoplayConfig(BaseModel):
    enabled: bool = Field(default=False, description="Inject simulated activations.")
    mode: str = Field(default="realistic", description="realistic or perfect")
    miss_rate: float = Field(default=0.12, ge=0.0, le=1.0, description="Probability of a planned miss.")
    hit_window_ms: float = Field(default=18.0, ge=0.0, description="Fire an activation this early before target.")
    lookahead_ms: float = Field(default=200.0, ge=0.0, description="Plan notes this long before their time.")
    tier_weights: Optional[List[float]] = Field(default=None, description="Per-tier sampling weights.")
    seed: Optional[int] = Field(default=None, description="Seed for deterministic autoplay.")

    @field_validator("mode")
    @classmethod
    def validate_mode(cls, value: str) -> str:
        normalized = (value or "").strip().lower()
        if normalized not in AUTOPLAY_MODES:
            raise ValueError("autoplay mode must be one of: " + ", ".join(AUTOPLAY_MODES))
        return normalized

    @field_validator("tier_weights")
    @classmethod
    def validate_weights(cls, value: Optional[List[float]]) -> Optional[List[float]]:
        if value is None:
            return None
        if any(weight < 0.0 for weight in value):
            raise ValueError("tier weights must be non-negative")
        if sum(value) <= 0.0:
            raise ValueError("tier weights must not all be zero")
        return value


class ControlServerConfig(BaseModel):
    enabled: bool = Field(default=True, description="Start the local control server.")
    host: str = Field(default="127.0.0.1", description="Bind address for the control server.")
    port: int = Field(default=5178, ge=1, le=65535, description="Port for the control server.")


class AppConfig(BaseModel):
    judgement: JudgementConfig = Field(default_factory=JudgementConfig)
    transport: TransportConfig = Field(default_factory=TransportConfig)
    chart: ChartConfig = Field(default_factory=ChartConfig)
    autoplay: AutoplayConfig = Field(default_factory=AutoplayConfig)
    control_server: ControlServerConfig = Field(default_factory=ControlServerConfig)

    @model_validator(mode="after")
    def validate_autoplay_weights(self) -> "AppConfig":
        weights = self.autoplay.tier_weights
        if weights is not None and len(weights) != len(self.judgement.tiers):
            raise ValueError("autoplay.tier_weights must have one entry per judgement tier")
        return self


def _default_config_candidates() -> List[Path]:
    config_directory = Path(user_config_dir("Beatline", "Beatline"))
    return [
        Path.cwd() / "beatline_config.json",
        config_directory / "beatline_config.json",
        config_directory / "config.json",
    ]


def _resolve_config_path() -> Optional[Path]:
    explicit_path_text = os.environ.get("BEATLINE_CONFIG_PATH", "").strip()
    if explicit_path_text:
        return Path(explicit_path_text)

    for candidate_path in _default_config_candidates():
        if candidate_path.exists():
            return candidate_path
    return None


def _read_json_file_utf8(config_path: Path) -> Dict[str, Any]:
    try:
        raw_text = config_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise
    except OSError as exception:
        raise OSError(f"Failed to read config file: {config_path}. Error: {exception}") from exception

    try:
        parsed = json.loads(raw_text)
    except json.JSONDecodeError as exception:
        raise ValueError(f"Config file is not valid JSON: {config_path}. Error: {exception}") from exception

    if not isinstance(parsed, dict):
        raise ValueError(f"Config file root must be a JSON object: {config_path}")

    return parsed


def _apply_environment_overrides(config_dict: Dict[str, Any]) -> Dict[str, Any]:
    """
    Environment overrides are optional. The config file is the primary source of truth.

    Override variables:
    - BEATLINE_PRE_ROLL_MS
    - BEATLINE_DROP_MS
    - BEATLINE_LOOP
    - BEATLINE_LATE_MISS_MS
    - BEATLINE_AUTOPLAY
    - BEATLINE_AUTOPLAY_MODE
    - BEATLINE_AUTOPLAY_SEED
    - BEATLINE_CONTROL_HOST
    - BEATLINE_CONTROL_PORT
    """
    def ensure_nested(config_root: Dict[str, Any], section_name: str) -> Dict[str, Any]:
        section = config_root.get(section_name)
        if isinstance(section, dict):
            return section
        section = {}
        config_root[section_name] = section
        return section

    updated_config = dict(config_dict)

    judgement_section = ensure_nested(updated_config, "judgement")
    transport_section = ensure_nested(updated_config, "transport")
    autoplay_section = ensure_nested(updated_config, "autoplay")
    control_section = ensure_nested(updated_config, "control_server")

    def override_string(env_name: str, target_dict: Dict[str, Any], key_name: str) -> None:
        value_text = os.environ.get(env_name, "")
        if value_text.strip():
            target_dict[key_name] = value_text.strip()

    def override_number(env_name: str, target_dict: Dict[str, Any], key_name: str, cast) -> None:
        value_text = os.environ.get(env_name, "").strip()
        if not value_text:
            return
        try:
            target_dict[key_name] = cast(value_text)
        except ValueError:
            return

    def override_bool(env_name: str, target_dict: Dict[str, Any], key_name: str) -> None:
        value_text = os.environ.get(env_name, "").strip().lower()
        if not value_text:
            return
        truthy = {"1", "true", "yes", "on"}
        falsy = {"0", "false", "no", "off"}
        if value_text in truthy:
            target_dict[key_name] = True
        elif value_text in falsy:
            target_dict[key_name] = False

    override_number("BEATLINE_PRE_ROLL_MS", transport_section, "pre_roll_ms", float)
    override_number("BEATLINE_DROP_MS", transport_section, "drop_ms", float)
    override_bool("BEATLINE_LOOP", transport_section, "loop")

    override_number("BEATLINE_LATE_MISS_MS", judgement_section, "late_miss_ms", float)

    override_bool("BEATLINE_AUTOPLAY", autoplay_section, "enabled")
    override_string("BEATLINE_AUTOPLAY_MODE", autoplay_section, "mode")
    override_number("BEATLINE_AUTOPLAY_SEED", autoplay_section, "seed", int)

    override_string("BEATLINE_CONTROL_HOST", control_section, "host")
    override_number("BEATLINE_CONTROL_PORT", control_section, "port", int)

    return updated_config


def validate_config(config_dict: Dict[str, Any], *, source: str = "<memory>") -> AppConfig:
    try:
        return AppConfig.model_validate(config_dict)
    except ValidationError as exception:
        raise ConfigurationInvariantViolation(f"Config validation failed for {source}:\n{exception}") from exception


def load_config(config_path: Optional[Path] = None) -> Tuple[AppConfig, Optional[Path]]:
    resolved_path = config_path if config_path is not None else _resolve_config_path()
    json_dict: Dict[str, Any] = {}
    if resolved_path is not None:
        json_dict = _read_json_file_utf8(resolved_path)
    json_dict = _apply_environment_overrides(json_dict)

    config = validate_config(json_dict, source=str(resolved_path) if resolved_path is not None else "<defaults>")
    return config, resolved_path


def main() -> int:
    try:
        config, resolved_path = load_config()
    except Exception as exception:
        error_payload = {"ok": False, "error": str(exception)}
        print(json.dumps(error_payload, ensure_ascii=False, indent=2))
        return 2

    output_payload = {
        "ok": True,
        "config_path": str(resolved_path) if resolved_path is not None else None,
        "config": config.model_dump(),
    }
    print(json.dumps(output_payload, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
