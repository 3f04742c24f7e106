import pytest
import yaml

from core import config
from core.errors import PatternConfigError
from core.patterns import keyword_regex, load_pattern_tables, parse_pattern_tables
from extraction.report import default_options


def _payload():
    with open(config.DEFAULT_PATTERN_FILE, "r", encoding="utf-8") as handle:
        return yaml.safe_load(handle)


def test_default_tables_load():
    tables = load_pattern_tables()
    assert tables.version >= 1
    assert [family.name for family in tables.keyword_families] == [
        "validation",
        "process",
        "user_interaction",
    ]
    assert tables.fallback.min_length == 20
    assert tables.flowchart.default_role == "process"


def test_keyword_matching_is_word_bounded():
    assert keyword_regex("user").search("users must log in")
    assert not keyword_regex("test").search("the latest release")
    assert not keyword_regex("can").search("cancel the order")
    assert keyword_regex("can").search("customers can cancel")
    assert keyword_regex(".").search("ends with a period.")


def test_tables_can_be_overridden_in_memory():
    payload = _payload()
    payload["classifier"]["fallback"]["min_length"] = 40
    tables = parse_pattern_tables(payload)
    assert tables.fallback.min_length == 40


def test_missing_section_raises_config_error():
    payload = _payload()
    del payload["workflow"]
    with pytest.raises(PatternConfigError):
        parse_pattern_tables(payload)


def test_bad_regex_raises_config_error():
    payload = _payload()
    payload["classifier"]["rejection"].append({"regex": "([unclosed"})
    with pytest.raises(PatternConfigError):
        parse_pattern_tables(payload)


def test_unknown_bpmn_group_member_raises_config_error():
    payload = _payload()
    payload["bpmn"]["activities"].append("manual_tasks")
    with pytest.raises(PatternConfigError):
        parse_pattern_tables(payload)


def test_non_mapping_payload_raises_config_error():
    with pytest.raises(PatternConfigError):
        parse_pattern_tables(["not", "a", "mapping"])


def test_missing_file_raises_config_error(tmp_path):
    with pytest.raises(PatternConfigError):
        load_pattern_tables(str(tmp_path / "missing.yaml"))


def test_pattern_file_setting_is_honoured(tmp_path, monkeypatch):
    payload = _payload()
    payload["version"] = 99
    custom = tmp_path / "patterns.yaml"
    custom.write_text(yaml.safe_dump(payload), encoding="utf-8")
    monkeypatch.setattr(config.settings, "pattern_file", str(custom))
    assert load_pattern_tables().version == 99


def test_default_options_follow_settings(monkeypatch):
    monkeypatch.setattr(config.settings, "include_low_priority", False)
    monkeypatch.setattr(config.settings, "min_line_length", 30)
    options = default_options()
    assert options.include_low_priority is False
    assert options.min_line_length == 30
