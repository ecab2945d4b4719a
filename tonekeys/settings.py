"""Persistent user settings stored with ``QSettings``.

``QSettings`` hands values back as strings on several platforms, so every
field is normalised on load and falls back to its default when the stored
value is unusable.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from PySide6.QtCore import QSettings

from .constants import SAMPLE_RATE
from .engine import DetectionMode
from .scales import ScaleSelection
from .voices import WaveShape

logger = logging.getLogger(__name__)

ORGANISATION = "tonekeys"
APPLICATION = "tonekeys"


@dataclass
class EngineSettings:
    detection_mode: DetectionMode = DetectionMode.STANDARD
    wave_shape: WaveShape = WaveShape.SINE
    scale: ScaleSelection = field(default_factory=ScaleSelection)
    allow_out_of_scale: bool = False
    device_in: Optional[int] = None
    sample_rate: int = SAMPLE_RATE


def default_qsettings() -> QSettings:
    return QSettings(ORGANISATION, APPLICATION)


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.lower() in ("true", "1", "yes", "y")
    return bool(value)


def _to_optional_int(value: Any) -> Optional[int]:
    if value in (None, "", "none"):
        return None
    return int(value)


def load_settings(qsettings: Optional[QSettings] = None) -> EngineSettings:
    """Read settings, substituting defaults for missing or invalid values."""
    qs = qsettings or default_qsettings()
    defaults = EngineSettings()
    loaded = EngineSettings()

    readers = {
        "detection_mode": lambda v: DetectionMode(str(v)),
        "wave_shape": lambda v: WaveShape(str(v)),
        "scale": lambda v: ScaleSelection.parse(str(v)),
        "allow_out_of_scale": _to_bool,
        "device_in": _to_optional_int,
        "sample_rate": int,
    }
    for name, reader in readers.items():
        raw = qs.value(name, None)
        if raw is None:
            continue
        try:
            setattr(loaded, name, reader(raw))
        except (TypeError, ValueError):
            logger.warning("Ignoring invalid setting %s=%r", name, raw)
            setattr(loaded, name, getattr(defaults, name))
    return loaded


def save_settings(settings: EngineSettings, qsettings: Optional[QSettings] = None) -> None:
    qs = qsettings or default_qsettings()
    qs.setValue("detection_mode", settings.detection_mode.value)
    qs.setValue("wave_shape", settings.wave_shape.value)
    qs.setValue("scale", settings.scale.label)
    qs.setValue("allow_out_of_scale", settings.allow_out_of_scale)
    qs.setValue("device_in", "" if settings.device_in is None else settings.device_in)
    qs.setValue("sample_rate", settings.sample_rate)
    qs.sync()


__all__ = ["EngineSettings", "load_settings", "save_settings", "default_qsettings"]
