from tonekeys.chords import CHORD_PATTERNS, ChordQuality, identify_chord


def test_pattern_table_covers_every_quality_and_root():
    assert len(CHORD_PATTERNS) == 60
    assert [p.quality for p in CHORD_PATTERNS[::12]] == list(ChordQuality)
    assert all(len(p.pitch_classes) == 3 for p in CHORD_PATTERNS)


def test_major_triad():
    assert identify_chord({"C4", "E4", "G4"}) == "C Major"


def test_octaves_are_ignored():
    assert identify_chord({"A3", "C5", "E4"}) == "A Minor"


def test_other_qualities():
    assert identify_chord(["B3", "D4", "F4"]) == "B Diminished"
    assert identify_chord(["D4", "G4", "A4"]) == "D Suspended 4th"
    assert identify_chord(["F#4", "A4", "C#5"]) == "F# Minor"


def test_augmented_resolves_to_first_root_in_table():
    # C, E and G# are a rotation of E and G# augmented too.
    assert identify_chord(["E4", "G#4", "C5"]) == "C Augmented"


def test_single_note_has_no_chord():
    assert identify_chord({"C4"}) == ""
    assert identify_chord(set()) == ""


def test_two_pitch_classes_are_unknown():
    assert identify_chord({"C4", "D4"}) == "Unknown"
    assert identify_chord({"C4", "C5"}) == "Unknown"


def test_extra_tones_do_not_match():
    assert identify_chord({"C4", "E4", "G4", "B4"}) == "Unknown"


def test_midi_numbers_are_accepted():
    assert identify_chord([60, 64, 67]) == "C Major"
