import logging
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Optional, Tuple

import yaml

logger = logging.getLogger(__name__)


@dataclass
class SegmenterConfig:
    """Normalization rules used when grouping captured exchanges into commands."""
    separator: str = "_"
    login_marker: str = "login"
    login_synonyms: Tuple[str, ...] = ("log_in", "log-in")
    login_test_case_name: str = "LogIn"
    # page extensions handed to the session comparer
    extensions: Tuple[str, ...] = ("html", "htm", "asp", "jsp", "php")

    @property
    def login_tags(self) -> Tuple[str, ...]:
        return (self.login_marker,) + tuple(self.login_synonyms)

    def normalize(self, comment: Optional[str]) -> str:
        return (comment or "").strip().replace(" ", self.separator).lower()


@dataclass
class GeneratorSettings:
    """Fixed values written into every generated JMeter test plan."""
    version: str = "1.2"
    properties: str = "5.0"
    jmeter: str = "5.6.3"
    default_port: str = "80"
    debug_variable: str = "debug"
    think_times: Dict[str, str] = field(default_factory=lambda: {
        "ThinkTimeShort": "1000",
        "ThinkTimeMedium": "3000",
        "ThinkTimeLong": "6000",
    })
    threads: str = "1"
    iterations: str = "1"
    ramp_up: str = "1"


def _build(cls, section: Optional[Dict[str, Any]]):
    section = section or {}
    known = {f.name for f in fields(cls)}
    unknown = set(section) - known
    if unknown:
        raise ValueError(f"Unknown {cls.__name__} keys: {', '.join(sorted(unknown))}")
    values = {}
    for key, value in section.items():
        values[key] = tuple(value) if isinstance(value, list) else value
    return cls(**values)


def load_config(path: str) -> Tuple[SegmenterConfig, GeneratorSettings]:
    """Read a YAML file with optional ``segmenter`` and ``generator`` sections."""
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping")
    segmenter_config = _build(SegmenterConfig, data.get("segmenter"))
    settings = _build(GeneratorSettings, data.get("generator"))
    logger.info(f"Loaded configuration from {path}")
    return segmenter_config, settings
