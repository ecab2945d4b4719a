#!/usr/bin/env python3
"""Command line front end.

    tonekeys listen [--device N] [--seconds S]
    tonekeys play C4 E4 G4 [--wave square] [--seconds S]
    tonekeys chord C4 E4 G4
    tonekeys key C D E F G A B
    tonekeys scale C major
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from typing import Optional, Sequence

from .capture import CaptureError, open_capture_stream, to_mono
from .chords import identify_chord
from .constants import NOTE_NAMES, PITCH_UPDATE_RATE, SAMPLE_RATE
from .engine import AnalysisEngine
from .key_detector import KeyDetector
from .notes import note_name_to_number, pitch_class, to_pitch_class
from .scales import ScaleSelection, scale_pitch_classes
from .session import KeyboardSession
from .synth_context import SynthContext
from .voices import VoiceManager, WaveShape

logger = logging.getLogger(__name__)


def _listen(args: argparse.Namespace) -> int:
    engine = AnalysisEngine(args.sample_rate)

    def callback(indata, frames, _time, status):
        if status:
            logger.warning("Input stream status: %s", status)
        engine.feed(to_mono(indata))

    engine.start()
    try:
        stream = open_capture_stream(
            callback, device=args.device, sample_rate=args.sample_rate
        )
    except CaptureError as exc:
        engine.stop()
        print(f"{exc.message} ({exc.code.value}): {exc.details}", file=sys.stderr)
        return 1

    last_line = ""
    deadline = time.monotonic() + args.seconds if args.seconds else None
    try:
        while deadline is None or time.monotonic() < deadline:
            time.sleep(1.0 / PITCH_UPDATE_RATE)
            freq = engine.tick_pitch()
            if freq is None or engine.key_estimate is None:
                continue
            note = NOTE_NAMES[pitch_class(engine.latest_pitch_midi)]
            key = engine.key_estimate
            line = f"{note:<3} {freq:7.1f} Hz   key: {key.name} ({key.confidence:.2f})"
            if line != last_line:
                print(line, flush=True)
                last_line = line
    except KeyboardInterrupt:
        pass
    finally:
        stream.stop()
        stream.close()
        engine.stop()
    return 0


def _play(args: argparse.Namespace) -> int:
    with SynthContext(args.sample_rate) as ctx:
        session = KeyboardSession(
            VoiceManager(ctx, wave_shape=WaveShape(args.wave)),
            scale=ScaleSelection.parse(args.scale),
        )
        for note in args.notes:
            if not session.press(note):
                print(f"{note} is outside {session.scale.label}", file=sys.stderr)
        if session.chord_name:
            print(session.chord_name)
        time.sleep(args.seconds)
        session.voices.stop_all()
        time.sleep(session.voices.release_time * 2)
    return 0


def _chord(args: argparse.Namespace) -> int:
    print(identify_chord(args.notes) or "-")
    return 0


def _key(args: argparse.Namespace) -> int:
    detector = KeyDetector(decay_factor=1.0)
    detector.add_notes(to_pitch_class(note) for note in args.notes)
    estimate = detector.get_current_key()
    print(f"{estimate.name} ({estimate.confidence:.2f})")
    return 0


def _scale(args: argparse.Namespace) -> int:
    selection = ScaleSelection.parse(f"{args.root} {args.mode}")
    if args.notes:
        for note in args.notes:
            verdict = "in" if selection.contains(note_name_to_number(note)) else "out"
            print(f"{note}: {verdict}")
    else:
        pcs = scale_pitch_classes(selection.root, selection.mode)
        print(" ".join(NOTE_NAMES[pc] for pc in pcs))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tonekeys", description=__doc__.splitlines()[0])
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    listen = sub.add_parser("listen", help="estimate pitch and key from the microphone")
    listen.add_argument("--device", type=int, default=None)
    listen.add_argument("--sample-rate", type=int, default=SAMPLE_RATE)
    listen.add_argument("--seconds", type=float, default=0.0, help="0 runs until Ctrl-C")
    listen.set_defaults(func=_listen)

    play = sub.add_parser("play", help="sound notes such as C4 E4 G4")
    play.add_argument("notes", nargs="+")
    play.add_argument("--wave", default="sine", choices=["sine", "square", "sawtooth", "triangle"])
    play.add_argument("--scale", default="none", help='e.g. "C major"')
    play.add_argument("--seconds", type=float, default=1.0)
    play.add_argument("--sample-rate", type=int, default=SAMPLE_RATE)
    play.set_defaults(func=_play)

    chord = sub.add_parser("chord", help="name the triad formed by notes")
    chord.add_argument("notes", nargs="+")
    chord.set_defaults(func=_chord)

    key = sub.add_parser("key", help="estimate the key of a set of notes")
    key.add_argument("notes", nargs="+")
    key.set_defaults(func=_key)

    scale = sub.add_parser("scale", help="list a scale or test notes against it")
    scale.add_argument("root", choices=NOTE_NAMES)
    scale.add_argument("mode", choices=["major", "minor"])
    scale.add_argument("notes", nargs="*")
    scale.set_defaults(func=_scale)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
