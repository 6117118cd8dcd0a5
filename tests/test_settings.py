"""Tests for processing settings normalization."""

import json

import pytest

from pantransfer.exceptions import RuleSettingsError
from pantransfer.models import EvaluationMode
from pantransfer.rules import (
    CategoryCondition,
    DirectoryCondition,
    ExtensionCondition,
    FilterAction,
    NameCondition,
    RegexCondition,
    RuleLogic,
    SizeCondition,
)
from pantransfer.settings import (
    load_policy,
    normalize_condition,
    normalize_filter_rules,
    normalize_mode,
    normalize_rename_rules,
    parse_size_input,
    policy_from_dict,
)


class TestParseSizeInput:
    """Tests for parse_size_input."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            (10, 10),
            (2.6, 3),
            ("512", 512),
            ("10k", 10240),
            ("1.5 MB", 1572864),
            ("2 GiB", 2 * 1024**3),
            ("-3", None),
            (-3, None),
            ("5 TB", None),
            ("abc", None),
            (True, None),
            (None, None),
            (float("inf"), None),
            (float("nan"), None),
            ("9" * 400, None),
            (10**400, 10**400),
        ],
    )
    def test_parse(self, value, expected):
        """Test numbers and strings with units."""
        assert parse_size_input(value) == expected


class TestNormalizeCondition:
    """Tests for normalize_condition."""

    def test_size(self):
        """Test size conditions accept unit strings."""
        condition = normalize_condition(
            {"type": "size", "operator": "LTE", "value": "1 KB"}
        )
        assert condition == SizeCondition(op="lte", value=1024)

    def test_name(self):
        """Test name conditions normalize mode case and trim the value."""
        condition = normalize_condition(
            {"type": "name", "value": "  sample ", "mode": "STARTSWITH"}
        )
        assert condition == NameCondition(mode="startsWith", value="sample")

    def test_name_case_sensitive_and_negate(self):
        """Test case sensitivity and string negation flags."""
        condition = normalize_condition(
            {"type": "name", "value": "a", "caseSensitive": "true", "not": "yes"}
        )
        assert condition.case_sensitive
        assert condition.negate

    def test_regex_flags_are_sanitized(self):
        """Test unknown regex flags are dropped."""
        condition = normalize_condition(
            {"type": "regex", "pattern": "x", "flags": "iq"}
        )
        assert condition == RegexCondition(pattern="x", flags="i")

    def test_extension_strips_dots(self):
        """Test extensions are lower-cased and lose their leading dot."""
        condition = normalize_condition({"type": "ext", "values": [".MKV", "mp4"]})
        assert condition == ExtensionCondition(op="in", values=("mkv", "mp4"))

    def test_category_drops_unknown_values(self):
        """Test unknown categories are ignored."""
        condition = normalize_condition(
            {"type": "category", "op": "not-in", "values": ["Video", "bogus"]}
        )
        assert condition == CategoryCondition(op="not-in", values=("video",))

    def test_directory(self):
        """Test directory conditions accept boolean strings."""
        condition = normalize_condition({"type": "isDir", "value": "true"})
        assert condition == DirectoryCondition(value=True)

    @pytest.mark.parametrize(
        "raw",
        [
            "junk",
            {},
            {"type": "unknown"},
            {"type": "size", "value": "huge"},
            {"type": "size", "op": "between", "value": 1},
            {"type": "name", "value": "   "},
            {"type": "name", "value": "a", "mode": "contains"},
            {"type": "regex"},
            {"type": "ext", "values": []},
            {"type": "category", "values": ["bogus"]},
            {"type": "isDir", "value": "maybe"},
        ],
    )
    def test_unusable_conditions(self, raw):
        """Test unusable conditions normalize to None."""
        assert normalize_condition(raw) is None


class TestNormalizeFilterRules:
    """Tests for normalize_filter_rules."""

    def test_rules_are_normalized(self):
        """Test actions, logic, names and the enabled flag."""
        rules = normalize_filter_rules(
            [
                {
                    "action": "include",
                    "logic": "or",
                    "name": " movies ",
                    "conditions": [{"type": "ext", "values": ["mkv"]}],
                },
                {
                    "action": "exclude",
                    "enabled": False,
                    "conditions": [{"type": "size", "value": 0}],
                },
            ]
        )
        assert len(rules) == 2
        assert rules[0].action == FilterAction.KEEP
        assert rules[0].logic == RuleLogic.ANY
        assert rules[0].name == "movies"
        assert rules[1].action == FilterAction.DROP
        assert rules[1].logic == RuleLogic.ALL
        assert not rules[1].enabled

    def test_legacy_rules_key(self):
        """Test conditions stored under the legacy rules key."""
        rules = normalize_filter_rules([{"rules": [{"type": "size", "value": 0}]}])
        assert rules[0].conditions == (SizeCondition(op="eq", value=0),)

    def test_rules_without_conditions_are_dropped(self):
        """Test rules with no usable condition disappear."""
        rules = normalize_filter_rules(
            ["junk", {"conditions": [{"type": "bogus"}]}, {"action": "drop"}]
        )
        assert rules == []

    def test_non_list_input(self):
        """Test anything but a list gives no rules."""
        assert normalize_filter_rules({"action": "drop"}) == []


class TestNormalizeRenameRules:
    """Tests for normalize_rename_rules."""

    def test_aliases_and_defaults(self):
        """Test field aliases and default flags."""
        rules = normalize_rename_rules(
            [
                {"pattern": "a", "replace": "b", "flags": "", "label": "L"},
                {"replacement": "x"},
            ]
        )
        assert len(rules) == 1
        assert rules[0].replacement == "b"
        assert rules[0].flags == "g"
        assert rules[0].name == "L"


class TestPolicy:
    """Tests for policy construction and loading."""

    def test_normalize_mode(self):
        """Test mode aliases and the fallback for unknown modes."""
        assert normalize_mode("allow_first") == EvaluationMode.ALLOW_FIRST
        assert normalize_mode("ORDERED") == EvaluationMode.ORDERED
        assert normalize_mode("bogus") == EvaluationMode.DENY_FIRST
        assert normalize_mode(None) == EvaluationMode.DENY_FIRST

    def test_policy_from_dict(self):
        """Test a full settings dictionary."""
        policy = policy_from_dict(
            {
                "fileFilterMode": "ordered",
                "fileFilters": [{"conditions": [{"type": "size", "value": 0}]}],
                "fileRenameRules": [{"pattern": "x"}],
                "max_attempts": "5",
            }
        )
        assert policy.mode == EvaluationMode.ORDERED
        assert len(policy.filter_rules) == 1
        assert len(policy.rename_rules) == 1
        assert policy.max_attempts == 5

    def test_explicit_max_attempts_wins(self):
        """Test the max_attempts argument overrides the settings value."""
        policy = policy_from_dict({"max_attempts": 5}, max_attempts=2)
        assert policy.max_attempts == 2

    def test_load_missing_file(self, tmp_path):
        """Test a missing settings file gives the default policy."""
        policy = load_policy(tmp_path / "missing.json")
        assert policy.filter_rules == []
        assert policy.mode == EvaluationMode.DENY_FIRST
        assert policy.max_attempts == 3

    def test_load_file(self, tmp_path):
        """Test loading rules from a JSON file."""
        path = tmp_path / "settings.json"
        path.write_text(
            json.dumps({"mode": "allow-first", "rename_rules": [{"pattern": "x"}]})
        )
        policy = load_policy(path)
        assert policy.mode == EvaluationMode.ALLOW_FIRST
        assert policy.rename_rules[0].pattern == "x"

    def test_load_invalid_json(self, tmp_path):
        """Test unreadable settings raise RuleSettingsError."""
        path = tmp_path / "settings.json"
        path.write_text("{not json")
        with pytest.raises(RuleSettingsError, match="Failed to read settings"):
            load_policy(path)

    def test_load_non_object(self, tmp_path):
        """Test a settings file must contain an object."""
        path = tmp_path / "settings.json"
        path.write_text("[]")
        with pytest.raises(RuleSettingsError, match="must contain a JSON object"):
            load_policy(path)

    def test_load_non_finite_size_drops_condition(self, tmp_path):
        """Test an Infinity size value drops the condition instead of crashing."""
        path = tmp_path / "settings.json"
        path.write_text(
            '{"fileFilters": [{"action": "drop", "conditions": ['
            '{"type": "size", "operator": "gt", "value": Infinity},'
            '{"type": "ext", "values": ["mkv"]}]}]}'
        )
        policy = load_policy(path)
        assert len(policy.filter_rules) == 1
        assert policy.filter_rules[0].conditions == (
            ExtensionCondition(op="in", values=("mkv",)),
        )
