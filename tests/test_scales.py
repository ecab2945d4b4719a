import pytest

from tonekeys.scales import ScaleMode, ScaleSelection, is_in_scale, scale_pitch_classes


def test_filter_disabled_without_root_or_mode():
    assert is_in_scale(1, None, ScaleMode.MAJOR)
    assert is_in_scale(1, 0, None)
    assert ScaleSelection.none().contains(61)


def test_c_major_membership():
    assert not is_in_scale(1, 0, ScaleMode.MAJOR)
    assert is_in_scale(4, 0, ScaleMode.MAJOR)
    assert is_in_scale(64, 0, ScaleMode.MAJOR)


def test_minor_offsets_relative_to_root():
    # A minor: A B C D E F G
    a_minor = [pc for pc in range(12) if is_in_scale(pc, 9, ScaleMode.MINOR)]
    assert a_minor == [0, 2, 4, 5, 7, 9, 11]
    assert scale_pitch_classes(9, ScaleMode.MINOR) == [9, 11, 0, 2, 4, 5, 7]


def test_selection_parse_and_label():
    sel = ScaleSelection.parse("D# minor")
    assert sel.root == 3 and sel.mode is ScaleMode.MINOR
    assert sel.label == "D# minor"
    assert ScaleSelection.parse("none") == ScaleSelection()
    with pytest.raises(ValueError):
        ScaleSelection.parse("H major")
    with pytest.raises(ValueError):
        ScaleSelection.parse("C lydian")


def test_allows_respects_out_of_scale_override():
    sel = ScaleSelection.parse("C major")
    assert not sel.allows(49)
    assert sel.allows(49, allow_out_of_scale=True)
