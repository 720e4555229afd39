"""
cortexviz Configuration

Central configuration for the compressors, the SDR clustering engine and the
journal session. Supports YAML files, environment variables, and runtime
overrides.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml


@dataclass
class CompressorConfig:
    """Time-series compression configuration."""
    max_bucket_count: int = 200


@dataclass
class ClusteringConfig:
    """SDR clustering configuration."""
    default_threshold: float = 7.0  # segment learning threshold of a typical layer
    layer_thresholds: Dict[str, float] = field(default_factory=dict)  # "region/layer" -> threshold
    check_invariants: bool = True
    tolerance: float = 1e-6

    def threshold_for(self, region: str, layer: str) -> float:
        return self.layer_thresholds.get(f"{region}/{layer}", self.default_threshold)


@dataclass
class DisplayConfig:
    """Snapshot filtering for display."""
    hide_below_count: float = 1


@dataclass
class JournalConfig:
    """Journal request configuration."""
    fetch_timeout_sec: Optional[float] = 10.0


@dataclass
class CortexVizConfig:
    """Top-level configuration."""
    compressor: CompressorConfig = field(default_factory=CompressorConfig)
    clustering: ClusteringConfig = field(default_factory=ClusteringConfig)
    display: DisplayConfig = field(default_factory=DisplayConfig)
    journal: JournalConfig = field(default_factory=JournalConfig)

    # Runtime
    debug: bool = False  # forces invariant checks and DEBUG logging
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CortexVizConfig":
        """Build from a nested dict; unknown keys raise ValueError."""
        config = cls()
        for f in fields(cls):
            if f.name not in data:
                continue
            value = data[f.name]
            current = getattr(config, f.name)
            if is_dataclass(current):
                known = {sf.name for sf in fields(current)}
                unknown = set(value or {}) - known
                if unknown:
                    raise ValueError(f"Unknown {f.name} config keys: {sorted(unknown)}")
                for k, v in (value or {}).items():
                    setattr(current, k, v)
            else:
                setattr(config, f.name, value)

        unknown = set(data) - {f.name for f in fields(cls)}
        if unknown:
            raise ValueError(f"Unknown config keys: {sorted(unknown)}")
        return config

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "CortexVizConfig":
        """Load configuration from YAML file. A missing file gives defaults."""
        path = Path(path)
        if not path.exists():
            return cls()

        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        return cls.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        def dataclass_to_dict(obj):
            if is_dataclass(obj):
                return {f.name: dataclass_to_dict(getattr(obj, f.name)) for f in fields(obj)}
            elif isinstance(obj, (list, tuple)):
                return [dataclass_to_dict(item) for item in obj]
            elif isinstance(obj, dict):
                return {k: dataclass_to_dict(v) for k, v in obj.items()}
            else:
                return obj

        return dataclass_to_dict(self)

    def to_yaml(self, path: Union[str, Path]) -> None:
        """Save configuration to YAML file."""
        with open(path, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)

    @classmethod
    def from_env(cls, base: Optional["CortexVizConfig"] = None) -> "CortexVizConfig":
        """Apply environment variable overrides on top of ``base`` (or defaults)."""
        config = base or cls()

        if cap := os.getenv("CORTEXVIZ_MAX_BUCKETS"):
            config.compressor.max_bucket_count = int(cap)

        if threshold := os.getenv("CORTEXVIZ_THRESHOLD"):
            config.clustering.default_threshold = float(threshold)

        if hide := os.getenv("CORTEXVIZ_HIDE_BELOW"):
            config.display.hide_below_count = float(hide)

        if timeout := os.getenv("CORTEXVIZ_FETCH_TIMEOUT"):
            config.journal.fetch_timeout_sec = float(timeout) if float(timeout) > 0 else None

        if debug := os.getenv("CORTEXVIZ_DEBUG"):
            config.debug = debug.lower() in ("1", "true", "yes")

        if level := os.getenv("CORTEXVIZ_LOG_LEVEL"):
            config.log_level = level.upper()

        return config

    def validate(self) -> List[str]:
        """
        Check configuration values.

        Returns:
            List of problems (empty if the configuration is usable).
        """
        problems = []

        if self.compressor.max_bucket_count < 1:
            problems.append(f"compressor.max_bucket_count {self.compressor.max_bucket_count} < 1")

        if self.clustering.tolerance <= 0:
            problems.append(f"clustering.tolerance {self.clustering.tolerance} <= 0")

        for key in self.clustering.layer_thresholds:
            if key.count("/") != 1:
                problems.append(f"clustering.layer_thresholds key {key!r} is not 'region/layer'")

        timeout = self.journal.fetch_timeout_sec
        if timeout is not None and timeout <= 0:
            problems.append(f"journal.fetch_timeout_sec {timeout} <= 0")

        if self.log_level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            problems.append(f"log_level {self.log_level!r} is not a logging level")

        return problems
