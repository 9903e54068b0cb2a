"""Tests for tracker extraction from raw LLM output."""

import logging

from chat_tracker.models import IncludeFields
from chat_tracker.pipeline.extractors import parse_tracker_output, strip_tracker_blocks


def _errors(caplog) -> list[logging.LogRecord]:
    return [r for r in caplog.records if r.levelno >= logging.ERROR]


# ── parse_tracker_output ───────────────────────────────────


def test_parses_yaml_block():
    text = "blah <tracker>\nmood: happy\nlocation: kitchen\n</tracker> blah"
    assert parse_tracker_output(text) == {"mood": "happy", "location": "kitchen"}


def test_parses_json_block():
    text = 'Sure!\n<tracker>\n{"mood": "happy", "topics": ["ale"]}\n</tracker>'
    assert parse_tracker_output(text) == {"mood": "happy", "topics": ["ale"]}


def test_first_block_wins():
    text = "<tracker>mood: first</tracker> and <tracker>mood: second</tracker>"
    assert parse_tracker_output(text) == {"mood": "first"}


def test_no_block_returns_none(caplog):
    with caplog.at_level(logging.ERROR):
        assert parse_tracker_output("The model forgot the tags. mood: happy") is None
    assert len(_errors(caplog)) == 1


def test_empty_output_returns_none():
    assert parse_tracker_output("") is None


def test_malformed_payload_logs_one_error(caplog):
    with caplog.at_level(logging.DEBUG):
        result = parse_tracker_output("<tracker>not: valid: yaml: at: all:::</tracker>")
    assert result is None
    errors = _errors(caplog)
    assert len(errors) == 1
    assert "not: valid" in errors[0].getMessage()


def test_non_mapping_payload_returns_none(caplog):
    with caplog.at_level(logging.ERROR):
        assert parse_tracker_output("<tracker>\n- just\n- a list\n</tracker>") is None
    assert len(_errors(caplog)) == 1


def test_empty_block_returns_none():
    assert parse_tracker_output("<tracker>\n</tracker>") is None


def test_unclosed_block_returns_none():
    assert parse_tracker_output("<tracker>\nmood: happy\n") is None


def test_prunes_to_definition(tracker_def):
    text = "<tracker>\nmood: happy\ntopics: [ale]\nbogus: 1\nweather:\n  sky: grey\n</tracker>"
    result = parse_tracker_output(text, tracker_def, IncludeFields.DYNAMIC)
    assert result == {"mood": "happy", "weather": {"sky": "grey"}}


def test_object_field_given_text_returns_none(tracker_def, caplog):
    text = "<tracker>\nmood: happy\nweather: sunny\n</tracker>"
    with caplog.at_level(logging.ERROR):
        assert parse_tracker_output(text, tracker_def, IncludeFields.DYNAMIC) is None
    errors = _errors(caplog)
    assert len(errors) == 1
    assert "weather" in errors[0].getMessage()


def test_text_field_given_list_returns_none(tracker_def, caplog):
    text = '<tracker>\n{"mood": ["happy", "tired"]}\n</tracker>'
    with caplog.at_level(logging.ERROR):
        assert parse_tracker_output(text, tracker_def) is None
    assert len(_errors(caplog)) == 1


def test_scalars_kept_as_written():
    text = "<tracker>\ntime: 12:30\nmood: no\nday: 2023-12-04\n</tracker>"
    assert parse_tracker_output(text) == {"time": "12:30", "mood": "no", "day": "2023-12-04"}


def test_tab_indented_json_block():
    text = '<tracker>\n{\n\t"mood": "happy",\n\t"location": "cellar"\n}\n</tracker>'
    assert parse_tracker_output(text) == {"mood": "happy", "location": "cellar"}


def test_nothing_tracked_returns_none(tracker_def, caplog):
    with caplog.at_level(logging.DEBUG):
        assert parse_tracker_output("<tracker>\nbogus: 1\n</tracker>", tracker_def) is None
    errors = _errors(caplog)
    assert len(errors) == 1
    assert "bogus" in errors[0].getMessage()


def test_empty_mapping_returns_none(caplog):
    with caplog.at_level(logging.ERROR):
        assert parse_tracker_output("<tracker>{}</tracker>") is None
    assert len(_errors(caplog)) == 1


# ── strip_tracker_blocks ───────────────────────────────────


def test_strip_removes_every_block():
    text = "Hello<tracker>a: 1</tracker> there<tracker>\nb: 2\n</tracker>!"
    assert strip_tracker_blocks(text) == "Hello there!"


def test_strip_leaves_plain_text():
    assert strip_tracker_blocks("Nothing to see.") == "Nothing to see."
