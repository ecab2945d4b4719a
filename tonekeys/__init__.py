"""Tonekeys package."""

from .chords import ChordQuality, identify_chord
from .engine import AnalysisEngine, DetectionMode, NoteEvent
from .key_detector import KeyDetector, KeyEstimate, KeyMode
from .scales import ScaleMode, ScaleSelection, is_in_scale
from .voices import VoiceManager, WaveShape
from .yin import yin_pitch

try:  # PySide6 may be missing in headless environments
    from .audio_worker import AnalysisWorker
except ImportError:  # pragma: no cover - optional dependency
    AnalysisWorker = None  # type: ignore

__all__ = [
    "AnalysisEngine",
    "AnalysisWorker",
    "ChordQuality",
    "DetectionMode",
    "KeyDetector",
    "KeyEstimate",
    "KeyMode",
    "NoteEvent",
    "ScaleMode",
    "ScaleSelection",
    "VoiceManager",
    "WaveShape",
    "identify_chord",
    "is_in_scale",
    "yin_pitch",
]
