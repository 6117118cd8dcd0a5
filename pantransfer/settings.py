"""Processing settings: normalization of raw rule definitions.

Rule sets arrive as loosely-typed JSON (hand written, exported from other
tools, or produced by older versions). Everything is normalized here into
the typed rules used by the engine; invalid conditions and rules are
dropped rather than rejected.
"""

import json
import logging
import math
import re
from pathlib import Path
from typing import Any, Optional

from .exceptions import RuleSettingsError
from .models import DEFAULT_EVALUATION_MODE, EvaluationMode, TransferPolicy
from .rules.conditions import (
    NAME_MODES,
    SET_OPERATORS,
    SIZE_OPERATORS,
    CategoryCondition,
    Condition,
    DirectoryCondition,
    ExtensionCondition,
    FilterAction,
    FilterRule,
    NameCondition,
    RegexCondition,
    RenameRule,
    RuleLogic,
    SizeCondition,
)
from .rules.naming import CATEGORIES
from .rules.patterns import sanitize_flags
from .utils import DEFAULT_MAX_TRANSFER_ATTEMPTS

logger = logging.getLogger(__name__)

SIZE_UNITS: dict[str, int] = {
    "b": 1,
    "k": 1024,
    "kb": 1024,
    "kib": 1024,
    "m": 1024**2,
    "mb": 1024**2,
    "mib": 1024**2,
    "g": 1024**3,
    "gb": 1024**3,
    "gib": 1024**3,
}

_SIZE_REGEX = re.compile(r"^(-?\d+(?:\.\d+)?)([a-z]{0,4})$")

_TRUTHY = {"true", "1", "yes", "y"}


def parse_size_input(value: Any) -> Optional[int]:
    """Parse a size given as a number or a string with an optional unit.

    Examples:
        >>> parse_size_input("1.5 MB")
        1572864
        >>> parse_size_input(10)
        10
        >>> parse_size_input("-3") is None
        True
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return None
        return round(value) if value >= 0 else None
    if not isinstance(value, str):
        return None
    compact = re.sub(r"\s+", "", value).lower()
    match = _SIZE_REGEX.match(compact)
    if not match:
        return None
    number = float(match.group(1))
    if number < 0:
        return None
    multiplier = SIZE_UNITS.get(match.group(2)) if match.group(2) else 1
    if multiplier is None or not math.isfinite(number * multiplier):
        return None
    return round(number * multiplier)


def _parse_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
    return None


def _parse_negate(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY
    return False


def _first_str(record: dict[str, Any], *keys: str) -> Optional[str]:
    for key in keys:
        value = record.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def _first_present(record: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if record.get(key) is not None:
            return record[key]
    return None


def _string_values(raw: Any) -> list[str]:
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, (list, tuple)):
        return []
    values: list[str] = []
    for item in raw:
        if isinstance(item, str) and item.strip():
            value = item.strip().lower()
            if value not in values:
                values.append(value)
    return values


def normalize_condition(raw: Any) -> Optional[Condition]:
    """Normalize one raw condition; returns None when it is unusable."""
    if not isinstance(raw, dict):
        return None
    kind = _first_str(raw, "type", "kind")
    if not kind:
        return None
    kind = kind.strip().lower()
    negate = any(_parse_negate(raw.get(key)) for key in ("negate", "not", "invert"))

    if kind == "size":
        op = (_first_str(raw, "operator", "op") or "eq").strip().lower()
        if op not in SIZE_OPERATORS:
            return None
        size = parse_size_input(_first_present(raw, "value", "size", "bytes"))
        if size is None:
            return None
        return SizeCondition(op=op, value=size, negate=negate)

    if kind == "name":
        value = _first_str(raw, "value", "contains")
        if not value or not value.strip():
            return None
        mode_raw = (_first_str(raw, "mode", "match") or "includes").strip()
        mode = next((m for m in NAME_MODES if m.lower() == mode_raw.lower()), None)
        if mode is None:
            return None
        case_sensitive = _parse_bool(
            _first_present(raw, "caseSensitive", "case_sensitive")
        )
        return NameCondition(
            mode=mode,
            value=value.strip(),
            case_sensitive=bool(case_sensitive),
            negate=negate,
        )

    if kind in ("regex", "regexp", "pattern"):
        pattern = _first_str(raw, "pattern", "regex")
        if not pattern:
            return None
        return RegexCondition(
            pattern=pattern, flags=sanitize_flags(raw.get("flags"), "g"), negate=negate
        )

    if kind in ("extension", "ext"):
        values = [
            v[1:] if v.startswith(".") else v
            for v in _string_values(_first_present(raw, "values", "ext", "extensions"))
        ]
        op = (_first_str(raw, "operator", "op") or "in").strip().lower()
        if not values or op not in SET_OPERATORS:
            return None
        return ExtensionCondition(op=op, values=tuple(values), negate=negate)

    if kind in ("category", "type"):
        values = [
            v
            for v in _string_values(
                _first_present(raw, "values", "categories", "category")
            )
            if v in CATEGORIES
        ]
        op = (_first_str(raw, "operator", "op") or "in").strip().lower()
        if not values or op not in SET_OPERATORS:
            return None
        return CategoryCondition(op=op, values=tuple(values), negate=negate)

    if kind in ("isdir", "directory", "folder"):
        value = _parse_bool(_first_present(raw, "value", "isDir", "directory"))
        if value is None:
            return None
        return DirectoryCondition(value=value, negate=negate)

    return None


def _normalize_action(raw: Any) -> FilterAction:
    if isinstance(raw, str) and raw.strip().lower() in ("keep", "include", "allow"):
        return FilterAction.KEEP
    return FilterAction.DROP


def normalize_filter_rules(raw_rules: Any) -> list[FilterRule]:
    """Normalize raw filter rules; rules without usable conditions are dropped."""
    if not isinstance(raw_rules, list):
        return []
    rules: list[FilterRule] = []
    for raw in raw_rules:
        if not isinstance(raw, dict):
            continue
        logic_raw = (_first_str(raw, "logic", "operator") or "all").strip().lower()
        conditions_raw = raw.get("conditions")
        if not isinstance(conditions_raw, list):
            rules_raw = raw.get("rules")
            conditions_raw = rules_raw if isinstance(rules_raw, list) else []
        conditions = [
            c for c in (normalize_condition(item) for item in conditions_raw) if c
        ]
        if not conditions:
            logger.debug(f"Dropping filter rule without usable conditions: {raw!r}")
            continue
        name = raw.get("name")
        description = raw.get("description")
        rules.append(
            FilterRule(
                action=_normalize_action(raw.get("action")),
                conditions=tuple(conditions),
                logic=RuleLogic.ANY if logic_raw in ("any", "or") else RuleLogic.ALL,
                enabled=raw.get("enabled") is not False,
                name=name.strip() if isinstance(name, str) and name.strip() else None,
                description=(
                    description.strip()
                    if isinstance(description, str) and description.strip()
                    else None
                ),
            )
        )
    return rules


def normalize_rename_rules(raw_rules: Any) -> list[RenameRule]:
    """Normalize raw rename rules; rules without a pattern are dropped."""
    if not isinstance(raw_rules, list):
        return []
    rules: list[RenameRule] = []
    for raw in raw_rules:
        if not isinstance(raw, dict):
            continue
        pattern = _first_str(raw, "pattern", "regex")
        if not pattern:
            continue
        name = _first_str(raw, "name", "label")
        description = raw.get("description")
        rules.append(
            RenameRule(
                pattern=pattern,
                replacement=_first_str(raw, "replacement", "replace") or "",
                flags=sanitize_flags(raw.get("flags"), "g"),
                enabled=raw.get("enabled") is not False,
                name=name.strip() if name and name.strip() else None,
                description=(
                    description.strip()
                    if isinstance(description, str) and description.strip()
                    else None
                ),
            )
        )
    return rules


def normalize_mode(value: Any) -> EvaluationMode:
    """Normalize an evaluation mode, falling back to the default."""
    if isinstance(value, EvaluationMode):
        return value
    if isinstance(value, str):
        try:
            return EvaluationMode.from_string(value)
        except ValueError:
            logger.warning(
                f"Unknown filter mode {value!r}, using {DEFAULT_EVALUATION_MODE.value}"
            )
    return DEFAULT_EVALUATION_MODE


def policy_from_dict(
    data: dict[str, Any], max_attempts: Optional[int] = None
) -> TransferPolicy:
    """Build a TransferPolicy from a settings dictionary.

    Accepted keys: ``fileFilterMode``/``mode``, ``fileFilters``/``filter_rules``,
    ``fileRenameRules``/``rename_rules`` and ``max_attempts``.
    """
    attempts = max_attempts or data.get("max_attempts") or DEFAULT_MAX_TRANSFER_ATTEMPTS
    try:
        attempts = max(1, int(attempts))
    except (TypeError, ValueError):
        attempts = DEFAULT_MAX_TRANSFER_ATTEMPTS
    return TransferPolicy(
        mode=normalize_mode(_first_present(data, "fileFilterMode", "mode")),
        filter_rules=normalize_filter_rules(
            _first_present(data, "fileFilters", "filter_rules")
        ),
        rename_rules=normalize_rename_rules(
            _first_present(data, "fileRenameRules", "rename_rules")
        ),
        max_attempts=attempts,
    )


def load_policy(path: Path, max_attempts: Optional[int] = None) -> TransferPolicy:
    """Load a processing policy from a JSON settings file.

    A missing file yields the default policy (no rules).

    Raises:
        RuleSettingsError: If the file exists but cannot be parsed
    """
    if not path.exists():
        logger.debug(f"No settings file at {path}, using default policy")
        return policy_from_dict({}, max_attempts)
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise RuleSettingsError(f"Failed to read settings file {path}: {e}") from e
    if not isinstance(data, dict):
        raise RuleSettingsError(f"Settings file {path} must contain a JSON object")
    return policy_from_dict(data, max_attempts)
