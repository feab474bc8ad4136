import argparse

import pytest

pytest.importorskip("pyaudio")

from alarm_clock import _parse_clock, _parse_snooze_minutes, build_parser  # noqa: E402


def test_parse_clock():
    assert _parse_clock("07:30") == (7, 30)
    with pytest.raises(argparse.ArgumentTypeError):
        _parse_clock("seven")


def test_add_command_arguments():
    args = build_parser().parse_args(["add", "6:45", "--days", "weekdays", "--label", "Work"])
    assert args.command == "add"
    assert args.time == (6, 45)
    assert args.days == "weekdays"
    assert args.label == "Work"
    assert args.disabled is False


def test_edit_command_leaves_unset_fields_none():
    args = build_parser().parse_args(["edit", "al_1", "--label", "Later"])
    assert args.id == "al_1"
    assert args.time is None
    assert args.days is None


def test_parse_snooze_minutes():
    assert _parse_snooze_minutes([]) is None
    assert _parse_snooze_minutes(["10"]) == 10
    for bad in ("abc", "0", "-3"):
        with pytest.raises(ValueError, match="Snooze minutes"):
            _parse_snooze_minutes([bad])
