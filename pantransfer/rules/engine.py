"""Rule evaluation engine: keep/drop decisions and rename plans.

Everything in this module is a pure function of its arguments. No I/O is
performed and no state is kept apart from the compiled-pattern cache.
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Optional, Union

from ..models import EvaluationMode, FileDescriptor
from .conditions import FileContext, FilterAction, FilterRule, RenameRule
from .naming import split_name
from .patterns import compile_pattern

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Decision:
    """Result of evaluating a rule set against one file."""

    action: Optional[FilterAction]
    """KEEP, DROP, or None when no rule matched (treated as keep)"""

    rule: Optional[FilterRule] = None
    """Rule that decided the action"""

    rule_index: Optional[int] = None
    """Position of the deciding rule in the rule list"""

    @property
    def keeps(self) -> bool:
        return self.action != FilterAction.DROP


@dataclass
class FilterSkipInfo:
    """A file removed by a filter rule."""

    id: int
    name: str
    action: FilterAction
    rule_name: Optional[str] = None


@dataclass
class FilterResult:
    """Files kept and dropped by a rule set."""

    entries: list[FileDescriptor]
    skipped: list[FilterSkipInfo] = field(default_factory=list)

    @property
    def skipped_names(self) -> list[str]:
        return [skip.name for skip in self.skipped]


@dataclass
class RenamePlanEntry:
    """Planned name for one file."""

    id: int
    original_name: str
    final_name: str
    is_dir: bool
    changed: bool
    applied_rules: list[str] = field(default_factory=list)
    preferred_name: str = ""
    """Name produced by the rules before collision resolution"""

    conflicted_with_existing: bool = False
    """Whether the preferred name clashed with a name already in the target"""


def _context_for(descriptor: FileDescriptor) -> FileContext:
    return FileContext.build(descriptor.name, descriptor.size, descriptor.is_dir)


def _decide(
    context: FileContext,
    rules: Sequence[FilterRule],
    mode: EvaluationMode,
) -> Decision:
    if mode == EvaluationMode.ORDERED:
        for index, rule in enumerate(rules):
            if rule.enabled and rule.matches(context):
                return Decision(rule.action, rule, index)
        return Decision(None)

    # deny-first short-circuits on DROP, allow-first on KEEP; the first
    # match of the other action is remembered as the fallback.
    winning = (
        FilterAction.DROP if mode == EvaluationMode.DENY_FIRST else FilterAction.KEEP
    )
    fallback: Optional[Decision] = None
    for index, rule in enumerate(rules):
        if not rule.enabled or not rule.matches(context):
            continue
        if rule.action == winning:
            return Decision(rule.action, rule, index)
        if fallback is None:
            fallback = Decision(rule.action, rule, index)
    return fallback or Decision(None)


def evaluate_action(
    descriptor: FileDescriptor,
    rules: Sequence[FilterRule],
    mode: Union[EvaluationMode, str] = EvaluationMode.DENY_FIRST,
) -> Decision:
    """Decide whether a file is kept or dropped by a rule set.

    Only enabled rules take part. In ``ordered`` mode the first matching rule
    wins. In ``deny-first`` mode any matching drop rule wins, otherwise the
    first matching keep rule. ``allow-first`` is the mirror image.

    Args:
        descriptor: File to evaluate
        rules: Filter rules in declared order
        mode: Conflict-resolution mode

    Returns:
        Decision; ``action`` is None when no rule matched
    """
    if not descriptor.name or not rules:
        return Decision(None)
    if not isinstance(mode, EvaluationMode):
        mode = EvaluationMode.from_string(mode)
    return _decide(_context_for(descriptor), rules, mode)


def apply_file_filters(
    entries: Iterable[FileDescriptor],
    rules: Sequence[FilterRule],
    mode: Union[EvaluationMode, str] = EvaluationMode.DENY_FIRST,
) -> FilterResult:
    """Split files into kept entries and entries dropped by filter rules.

    Args:
        entries: Files to filter
        rules: Filter rules in declared order
        mode: Conflict-resolution mode

    Returns:
        FilterResult with kept entries (original order) and skip records
    """
    entries = list(entries)
    if not entries or not rules:
        return FilterResult(entries=entries)

    kept: list[FileDescriptor] = []
    skipped: list[FilterSkipInfo] = []
    for entry in entries:
        decision = evaluate_action(entry, rules, mode)
        if decision.keeps:
            kept.append(entry)
            continue
        label = decision.rule.label(decision.rule_index) if decision.rule else None
        skipped.append(
            FilterSkipInfo(
                id=entry.id,
                name=entry.name,
                action=FilterAction.DROP,
                rule_name=label,
            )
        )
    logger.debug(f"Filter rules kept {len(kept)} and dropped {len(skipped)} file(s)")
    return FilterResult(entries=kept, skipped=skipped)


def _apply_rename_rules(
    base: str, rename_rules: Sequence[RenameRule]
) -> tuple[str, list[str]]:
    applied: list[str] = []
    for index, rule in enumerate(rename_rules):
        if not rule.enabled or not rule.pattern:
            continue
        compiled = compile_pattern(rule.pattern, rule.flags or "g")
        if compiled is None:
            continue
        replaced = compiled.replace(base, rule.replacement or "")
        if replaced != base:
            base = replaced
            applied.append(rule.label(index))
    return base, applied


def build_rename_plan(
    descriptors: Iterable[FileDescriptor],
    rename_rules: Sequence[RenameRule],
    existing_names: Optional[Iterable[str]] = None,
) -> list[RenamePlanEntry]:
    """Compute collision-free target names for a batch of files.

    Enabled rename rules are applied in order to each base name; the
    extension is kept. A base left empty falls back to the original base.
    Collisions with ``existing_names`` or with names assigned earlier in the
    batch (compared case-insensitively) get a ``" (n)"`` suffix before the
    extension.

    Args:
        descriptors: Files to rename
        rename_rules: Rename rules in declared order
        existing_names: Names already present in the destination

    Returns:
        One RenamePlanEntry per descriptor, in input order
    """
    descriptors = list(descriptors)
    if not descriptors:
        return []

    if not any(rule.enabled for rule in rename_rules):
        return [
            RenamePlanEntry(
                id=d.id,
                original_name=d.name,
                final_name=d.name,
                is_dir=d.is_dir,
                changed=False,
                preferred_name=d.name,
            )
            for d in descriptors
        ]

    existing_lookup = {name.lower() for name in existing_names or () if name}
    used_names = set(existing_lookup)
    name_counters: dict[str, int] = {}

    plan: list[RenamePlanEntry] = []
    for descriptor in descriptors:
        parts = split_name(descriptor.name)
        new_base, applied = _apply_rename_rules(parts.base, rename_rules)
        sanitized = new_base.strip() or parts.base

        preferred = f"{sanitized}{parts.suffix}"
        counter_key = sanitized.lower()
        counter = name_counters.get(counter_key, 0)
        final_name = preferred
        while final_name.lower() in used_names:
            counter += 1
            final_name = f"{sanitized} ({counter}){parts.suffix}"
        name_counters[counter_key] = counter
        used_names.add(final_name.lower())

        plan.append(
            RenamePlanEntry(
                id=descriptor.id,
                original_name=descriptor.name,
                final_name=final_name,
                is_dir=descriptor.is_dir,
                changed=final_name != descriptor.name,
                applied_rules=applied,
                preferred_name=preferred,
                conflicted_with_existing=preferred.lower() in existing_lookup,
            )
        )
    return plan
