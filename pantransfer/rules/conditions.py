"""Filter conditions, filter rules and rename rules."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from .naming import categorize_extension, split_name
from .patterns import compile_pattern

SIZE_OPERATORS = ("eq", "lt", "lte", "gt", "gte")
NAME_MODES = ("includes", "startsWith", "endsWith")
SET_OPERATORS = ("in", "not-in")


class FilterAction(str, Enum):
    """What a matching filter rule does with a file."""

    KEEP = "keep"
    DROP = "drop"


class RuleLogic(str, Enum):
    """How the conditions of a rule are combined."""

    ALL = "all"
    ANY = "any"


@dataclass(frozen=True)
class FileContext:
    """Derived attributes of a file, computed once per evaluation."""

    name: str
    base_name: str
    extension: str
    size: int
    is_dir: bool
    categories: frozenset[str]

    @classmethod
    def build(cls, name: str, size: int = 0, is_dir: bool = False) -> "FileContext":
        parts = split_name(name)
        return cls(
            name=name,
            base_name=parts.base,
            extension=parts.extension,
            size=max(0, size),
            is_dir=is_dir,
            categories=categorize_extension(parts.extension),
        )


class _ConditionBase:
    """Shared negation handling for all condition types."""

    negate: bool

    def _test(self, context: FileContext) -> bool:
        raise NotImplementedError

    def matches(self, context: FileContext) -> bool:
        match = self._test(context)
        return not match if self.negate else match


@dataclass(frozen=True)
class SizeCondition(_ConditionBase):
    op: str
    value: int
    negate: bool = False

    def _test(self, context: FileContext) -> bool:
        size = context.size
        if self.op == "eq":
            return size == self.value
        if self.op == "lt":
            return size < self.value
        if self.op == "lte":
            return size <= self.value
        if self.op == "gt":
            return size > self.value
        if self.op == "gte":
            return size >= self.value
        return False


@dataclass(frozen=True)
class NameCondition(_ConditionBase):
    """Substring test on the file name.

    ``value`` may hold several whitespace-separated keywords; the condition
    matches when any keyword satisfies ``mode``.
    """

    mode: str
    value: str
    case_sensitive: bool = False
    negate: bool = False

    def keywords(self) -> list[str]:
        value = self.value if self.case_sensitive else self.value.lower()
        return value.split()

    def _test(self, context: FileContext) -> bool:
        source = context.name if self.case_sensitive else context.name.lower()
        keywords = self.keywords()
        if self.mode == "includes":
            return any(keyword in source for keyword in keywords)
        if self.mode == "startsWith":
            return any(source.startswith(keyword) for keyword in keywords)
        if self.mode == "endsWith":
            return any(source.endswith(keyword) for keyword in keywords)
        return False


@dataclass(frozen=True)
class RegexCondition(_ConditionBase):
    pattern: str
    flags: str = ""
    negate: bool = False

    def _test(self, context: FileContext) -> bool:
        compiled = compile_pattern(self.pattern, self.flags)
        if compiled is None:
            return False
        return compiled.search(context.name)

    def matches(self, context: FileContext) -> bool:
        # A malformed pattern never matches, negated or not
        if compile_pattern(self.pattern, self.flags) is None:
            return False
        return super().matches(context)


@dataclass(frozen=True)
class ExtensionCondition(_ConditionBase):
    """Extension membership test; values are lower-case without the dot."""

    op: str
    values: tuple[str, ...]
    negate: bool = False

    def _test(self, context: FileContext) -> bool:
        in_set = context.extension.lower() in self.values
        return not in_set if self.op == "not-in" else in_set


@dataclass(frozen=True)
class CategoryCondition(_ConditionBase):
    op: str
    values: tuple[str, ...]
    negate: bool = False

    def _test(self, context: FileContext) -> bool:
        has_category = any(value in context.categories for value in self.values)
        return not has_category if self.op == "not-in" else has_category


@dataclass(frozen=True)
class DirectoryCondition(_ConditionBase):
    value: bool
    negate: bool = False

    def _test(self, context: FileContext) -> bool:
        return context.is_dir == self.value


Condition = Union[
    SizeCondition,
    NameCondition,
    RegexCondition,
    ExtensionCondition,
    CategoryCondition,
    DirectoryCondition,
]


@dataclass(frozen=True)
class FilterRule:
    """A keep/drop rule made of conditions."""

    action: FilterAction
    conditions: tuple[Condition, ...] = field(default_factory=tuple)
    logic: RuleLogic = RuleLogic.ALL
    enabled: bool = True
    name: Optional[str] = None
    description: Optional[str] = None

    def matches(self, context: FileContext) -> bool:
        """Check the rule against a file; rules without conditions never match."""
        if not self.enabled or not self.conditions:
            return False
        if self.logic == RuleLogic.ANY:
            return any(c.matches(context) for c in self.conditions)
        return all(c.matches(context) for c in self.conditions)

    def label(self, index: Optional[int] = None) -> Optional[str]:
        """Human-readable label: name, else description, else position."""
        if self.name and self.name.strip():
            return self.name.strip()
        if self.description and self.description.strip():
            return self.description.strip()
        if index is not None:
            return f"Rule #{index + 1}"
        return None


@dataclass(frozen=True)
class RenameRule:
    """A regex replacement applied to the base name of a file."""

    pattern: str
    replacement: str = ""
    flags: str = "g"
    enabled: bool = True
    name: Optional[str] = None
    description: Optional[str] = None

    def label(self, index: int) -> str:
        if self.name and self.name.strip():
            return self.name.strip()
        if self.description and self.description.strip():
            return self.description.strip()
        return f"Rule #{index + 1}"
