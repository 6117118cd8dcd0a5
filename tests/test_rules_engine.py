"""Tests for filter rule evaluation."""

import pytest

from pantransfer.models import EvaluationMode, FileDescriptor
from pantransfer.rules import (
    CategoryCondition,
    DirectoryCondition,
    ExtensionCondition,
    FileContext,
    FilterAction,
    FilterRule,
    NameCondition,
    RegexCondition,
    RuleLogic,
    SizeCondition,
    apply_file_filters,
    evaluate_action,
)


def descriptor(name, size=0, is_dir=False, file_id=1):
    return FileDescriptor(id=file_id, name=name, size=size, is_dir=is_dir)


class TestEvaluationModes:
    """Conflict resolution between matching keep and drop rules."""

    @pytest.fixture
    def drop_rule(self):
        return FilterRule(
            action=FilterAction.DROP,
            conditions=(ExtensionCondition(op="in", values=("mkv",)),),
            logic=RuleLogic.ALL,
            name="drop mkv",
        )

    @pytest.fixture
    def keep_rule(self):
        return FilterRule(
            action=FilterAction.KEEP,
            conditions=(
                NameCondition(mode="includes", value="movie"),
                SizeCondition(op="gt", value=10**12),
            ),
            logic=RuleLogic.ANY,
            name="keep movies",
        )

    def test_deny_first_prefers_drop(self, drop_rule, keep_rule):
        """Test deny-first returns drop when both rules match."""
        decision = evaluate_action(
            descriptor("Movie.mkv"), [keep_rule, drop_rule], EvaluationMode.DENY_FIRST
        )
        assert decision.action == FilterAction.DROP
        assert decision.rule is drop_rule
        assert decision.rule_index == 1

    def test_allow_first_prefers_keep(self, drop_rule, keep_rule):
        """Test allow-first returns keep when both rules match."""
        decision = evaluate_action(
            descriptor("Movie.mkv"), [drop_rule, keep_rule], EvaluationMode.ALLOW_FIRST
        )
        assert decision.action == FilterAction.KEEP
        assert decision.rule is keep_rule

    def test_ordered_uses_first_listed(self, drop_rule, keep_rule):
        """Test ordered mode picks whichever matching rule comes first."""
        file = descriptor("Movie.mkv")
        first_drop = evaluate_action(file, [drop_rule, keep_rule], "ordered")
        first_keep = evaluate_action(file, [keep_rule, drop_rule], "ordered")
        assert first_drop.action == FilterAction.DROP
        assert first_keep.action == FilterAction.KEEP

    def test_deny_first_falls_back_to_first_keep(self, keep_rule):
        """Test deny-first returns the first matching keep rule without drops."""
        second_keep = FilterRule(
            action=FilterAction.KEEP,
            conditions=(ExtensionCondition(op="in", values=("mkv",)),),
        )
        decision = evaluate_action(
            descriptor("Movie.mkv"), [keep_rule, second_keep], "deny-first"
        )
        assert decision.rule is keep_rule

    def test_allow_first_falls_back_to_first_drop(self, drop_rule):
        """Test allow-first returns the first matching drop rule without keeps."""
        decision = evaluate_action(descriptor("Movie.mkv"), [drop_rule], "allow-first")
        assert decision.action == FilterAction.DROP

    def test_no_match_is_none_and_keeps(self, drop_rule):
        """Test a file matching no rule has no action and is kept."""
        decision = evaluate_action(descriptor("notes.txt"), [drop_rule], "deny-first")
        assert decision.action is None
        assert decision.keeps

    def test_disabled_rules_are_ignored(self, drop_rule):
        """Test disabled rules never decide."""
        disabled = FilterRule(
            action=drop_rule.action, conditions=drop_rule.conditions, enabled=False
        )
        decision = evaluate_action(descriptor("Movie.mkv"), [disabled], "ordered")
        assert decision.action is None

    def test_rule_without_conditions_never_matches(self):
        """Test a rule with no conditions never matches."""
        rule = FilterRule(action=FilterAction.DROP, conditions=())
        assert evaluate_action(descriptor("a.mkv"), [rule], "ordered").action is None

    def test_nameless_descriptor_is_not_evaluated(self, drop_rule):
        """Test a descriptor without a name yields no action."""
        assert evaluate_action(descriptor(""), [drop_rule], "deny-first").action is None

    def test_invalid_mode_raises(self, drop_rule):
        """Test an unknown mode string is rejected."""
        with pytest.raises(ValueError, match="Invalid evaluation mode"):
            evaluate_action(descriptor("Movie.mkv"), [drop_rule], "random")

    def test_repeated_calls_are_deterministic(self, drop_rule, keep_rule):
        """Test identical inputs always give the identical decision."""
        file = descriptor("Movie.mkv", size=123)
        for mode in EvaluationMode:
            results = {
                evaluate_action(file, [keep_rule, drop_rule], mode) for _ in range(5)
            }
            assert len(results) == 1


class TestConditions:
    """Tests for the individual condition types."""

    def context(self, name, size=0, is_dir=False):
        return FileContext.build(name, size, is_dir)

    @pytest.mark.parametrize(
        "op,value,size,expected",
        [
            ("eq", 0, 0, True),
            ("lt", 100, 99, True),
            ("lt", 100, 100, False),
            ("lte", 100, 100, True),
            ("gt", 100, 100, False),
            ("gte", 100, 100, True),
        ],
    )
    def test_size_operators(self, op, value, size, expected):
        """Test size comparisons."""
        condition = SizeCondition(op=op, value=value)
        assert condition.matches(self.context("a.bin", size)) is expected

    def test_name_keywords_are_or_combined(self):
        """Test whitespace-separated keywords match when any keyword matches."""
        condition = NameCondition(mode="includes", value="sample trailer")
        assert condition.matches(self.context("Movie.Trailer.mkv"))
        assert condition.matches(self.context("sample.mkv"))
        assert not condition.matches(self.context("Movie.mkv"))

    def test_name_case_sensitive(self):
        """Test case-sensitive name matching."""
        condition = NameCondition(mode="includes", value="Trailer", case_sensitive=True)
        assert condition.matches(self.context("Movie.Trailer.mkv"))
        assert not condition.matches(self.context("movie.trailer.mkv"))

    def test_name_starts_and_ends_with(self):
        """Test startsWith and endsWith modes."""
        starts = NameCondition(mode="startsWith", value="[HD] [4K]")
        ends = NameCondition(mode="endsWith", value=".part .tmp")
        assert starts.matches(self.context("[4k] Movie.mkv"))
        assert not starts.matches(self.context("Movie [HD].mkv"))
        assert ends.matches(self.context("download.TMP"))

    def test_negate_inverts_match(self):
        """Test negate inverts the condition result."""
        condition = NameCondition(mode="includes", value="sample", negate=True)
        assert condition.matches(self.context("Movie.mkv"))
        assert not condition.matches(self.context("sample.mkv"))

    def test_regex_with_flags(self):
        """Test regex conditions honour the i flag."""
        assert RegexCondition(pattern="sample", flags="i").matches(
            self.context("Sample.ZERO.mkv")
        )
        assert not RegexCondition(pattern="sample").matches(
            self.context("Sample.ZERO.mkv")
        )

    def test_malformed_regex_never_matches(self):
        """Test a malformed pattern never matches, even when negated."""
        assert not RegexCondition(pattern="([").matches(self.context("a.mkv"))
        assert not RegexCondition(pattern="([", negate=True).matches(
            self.context("a.mkv")
        )

    def test_extension_in_and_not_in(self):
        """Test extension membership with compound extensions."""
        context = self.context("backup.TAR.GZ")
        assert ExtensionCondition(op="in", values=("tar.gz",)).matches(context)
        assert not ExtensionCondition(op="not-in", values=("tar.gz",)).matches(context)

    def test_category_membership(self):
        """Test audio files are also media and unknown files are other."""
        media = CategoryCondition(op="in", values=("media",))
        other = CategoryCondition(op="in", values=("other",))
        assert media.matches(self.context("song.mp3"))
        assert media.matches(self.context("clip.mkv"))
        assert not media.matches(self.context("notes.pdf"))
        assert other.matches(self.context("data.xyz"))
        assert CategoryCondition(op="not-in", values=("video",)).matches(
            self.context("song.mp3")
        )

    def test_directory_condition(self):
        """Test the is-directory condition."""
        condition = DirectoryCondition(value=True)
        assert condition.matches(self.context("Season 1", is_dir=True))
        assert not condition.matches(self.context("episode.mkv"))

    def test_all_versus_any_logic(self):
        """Test rule logic combines conditions with AND or OR."""
        conditions = (
            SizeCondition(op="eq", value=0),
            ExtensionCondition(op="in", values=("mkv",)),
        )
        all_rule = FilterRule(FilterAction.DROP, conditions, RuleLogic.ALL)
        any_rule = FilterRule(FilterAction.DROP, conditions, RuleLogic.ANY)
        context = self.context("Movie.mkv", size=10)
        assert not all_rule.matches(context)
        assert any_rule.matches(context)


class TestRuleLabels:
    """Tests for readable rule labels."""

    def test_label_prefers_name_then_description(self):
        """Test labels use name, then description, then position."""
        named = FilterRule(FilterAction.DROP, name=" Samples ", description="d")
        described = FilterRule(FilterAction.DROP, description="Drop samples")
        anonymous = FilterRule(FilterAction.DROP)
        assert named.label(0) == "Samples"
        assert described.label(0) == "Drop samples"
        assert anonymous.label(1) == "Rule #2"


class TestApplyFileFilters:
    """Tests for splitting entries into kept and dropped."""

    def test_sample_scenario(self):
        """Test zero-sized sample files are dropped under deny-first."""
        rule = FilterRule(
            action=FilterAction.DROP,
            conditions=(
                SizeCondition(op="eq", value=0),
                RegexCondition(pattern="sample", flags="i"),
            ),
            logic=RuleLogic.ALL,
        )
        entries = [
            descriptor("Sample.ZERO.mkv", size=0, file_id=1),
            descriptor("Movie.1080p.mkv", size=4_500_000_000, file_id=2),
        ]

        result = apply_file_filters(entries, [rule], EvaluationMode.DENY_FIRST)

        assert [e.name for e in result.entries] == ["Movie.1080p.mkv"]
        assert result.skipped_names == ["Sample.ZERO.mkv"]
        assert result.skipped[0].rule_name == "Rule #1"
        assert result.skipped[0].action == FilterAction.DROP

    def test_no_rules_keeps_everything(self):
        """Test entries pass through unchanged without rules."""
        entries = [descriptor("a.mkv"), descriptor("b.mkv", file_id=2)]
        result = apply_file_filters(entries, [], "deny-first")
        assert result.entries == entries
        assert result.skipped == []
