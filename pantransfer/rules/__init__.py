"""Rule evaluation engine: declarative keep/drop filters and rename rules."""

from .conditions import (
    CategoryCondition,
    Condition,
    DirectoryCondition,
    ExtensionCondition,
    FileContext,
    FilterAction,
    FilterRule,
    NameCondition,
    RegexCondition,
    RenameRule,
    RuleLogic,
    SizeCondition,
)
from .engine import (
    Decision,
    FilterResult,
    FilterSkipInfo,
    RenamePlanEntry,
    apply_file_filters,
    build_rename_plan,
    evaluate_action,
)
from .naming import CATEGORIES, categorize_extension, split_name
from .patterns import compile_pattern

__all__ = [
    "CATEGORIES",
    "CategoryCondition",
    "Condition",
    "Decision",
    "DirectoryCondition",
    "ExtensionCondition",
    "FileContext",
    "FilterAction",
    "FilterResult",
    "FilterRule",
    "FilterSkipInfo",
    "NameCondition",
    "RegexCondition",
    "RenamePlanEntry",
    "RenameRule",
    "RuleLogic",
    "SizeCondition",
    "apply_file_filters",
    "build_rename_plan",
    "categorize_extension",
    "compile_pattern",
    "evaluate_action",
    "split_name",
]
