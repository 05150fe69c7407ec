"""
YAML-based engine settings.

Settings tune how the engine composes (index base for unnamed rows, priority
gaps, parallelism); they are not the topology input itself.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

import yaml

PACKAGED_CONFIG = Path(__file__).resolve().parents[1] / "engine_config.yaml"


@dataclass
class NamingSettings:
    """Naming behaviour for unnamed rows and globally unique kinds."""
    index_base: int = 1
    unique_suffix_length: int = 8


@dataclass
class PolicySettings:
    """Rule set ordering defaults."""
    gap: int = 10
    terminal_priority: int = 4000
    security_rules_terminal_deny: bool = True
    admin_rules_terminal_deny: bool = False


@dataclass
class MaterializerSettings:
    """Collection expansion settings."""
    max_workers: int = 1


@dataclass
class EngineSettings:
    """
    Hierarchical engine settings loaded from YAML.

    Structure:
        settings -> naming | policy | materializer, default_location
    """
    naming: NamingSettings = field(default_factory=NamingSettings)
    policy: PolicySettings = field(default_factory=PolicySettings)
    materializer: MaterializerSettings = field(default_factory=MaterializerSettings)
    default_location: str = "eastus"

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> EngineSettings:
        """Load settings from a YAML file."""
        path = Path(yaml_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {yaml_path}")

        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: Dict) -> EngineSettings:
        settings = data.get("settings", data) or {}

        naming_data = settings.get("naming", {}) or {}
        naming = NamingSettings(
            index_base=int(naming_data.get("index_base", 1)),
            unique_suffix_length=int(naming_data.get("unique_suffix_length", 8)),
        )

        policy_data = settings.get("policy", {}) or {}
        policy = PolicySettings(
            gap=int(policy_data.get("gap", 10)),
            terminal_priority=int(policy_data.get("terminal_priority", 4000)),
            security_rules_terminal_deny=bool(policy_data.get("security_rules_terminal_deny", True)),
            admin_rules_terminal_deny=bool(policy_data.get("admin_rules_terminal_deny", False)),
        )

        materializer_data = settings.get("materializer", {}) or {}
        materializer = MaterializerSettings(
            max_workers=max(1, int(materializer_data.get("max_workers", 1))),
        )

        return cls(
            naming=naming,
            policy=policy,
            materializer=materializer,
            default_location=settings.get("default_location", "eastus"),
        )


# Global settings instance
_engine_settings: Optional[EngineSettings] = None


def get_engine_settings(config_path: Optional[str | Path] = None) -> EngineSettings:
    """
    Get the global engine settings.

    Args:
        config_path: Path to a YAML file. If None, uses the first of:
                    1. TIERCOMPOSE_CONFIG environment variable
                    2. ./tiercompose.yaml (current directory)
                    3. the packaged tiercompose/engine_config.yaml
                    Falls back to built-in defaults when none exists.
    """
    global _engine_settings

    if _engine_settings is not None and config_path is None:
        return _engine_settings

    if config_path is None:
        env_path = os.getenv("TIERCOMPOSE_CONFIG")
        if env_path:
            config_path = Path(env_path)
        else:
            for candidate in (Path.cwd() / "tiercompose.yaml", PACKAGED_CONFIG):
                if candidate.exists():
                    config_path = candidate
                    break

    if config_path is None:
        _engine_settings = EngineSettings()
    else:
        _engine_settings = EngineSettings.from_yaml(config_path)
    return _engine_settings


def reset_engine_settings() -> None:
    """Reset the global settings cache."""
    global _engine_settings
    _engine_settings = None


def set_engine_settings(settings: EngineSettings) -> None:
    """Set custom engine settings."""
    global _engine_settings
    _engine_settings = settings
