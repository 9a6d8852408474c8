"""Step payload validation against field schemas.

Every field error is collected; the caller receives one ValidationError
whose details list carries {path, reason, meta} per problem.

ASCII-only.
"""

from __future__ import annotations

import re
from datetime import date
from typing import Any

from applyportal.apply.catalog import CROSS_RULES
from applyportal.apply.errors import detail
from applyportal.apply.types import FieldSpec
from applyportal.core.errors import ValidationError
from applyportal.services.lookup import LookupService

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_PHONE_STRIP_RE = re.compile(r"[\s().+-]")
_POSTAL_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9 -]{1,9}$")
_SIN_STRIP_RE = re.compile(r"[\s-]")

_TRUE_STRINGS = {"true", "yes", "on", "1"}
_FALSE_STRINGS = {"false", "no", "off", "0"}


def is_valid_sin(value: str) -> bool:
    """Return True for a 9-digit number passing the Luhn check."""
    digits = _SIN_STRIP_RE.sub("", value)
    if len(digits) != 9 or not digits.isdigit() or digits == "000000000":
        return False
    total = 0
    for i, ch in enumerate(digits):
        n = int(ch)
        if i % 2 == 1:
            n *= 2
            if n > 9:
                n -= 9
        total += n
    return total % 10 == 0


def _as_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        s = value.strip().lower()
        if s in _TRUE_STRINGS:
            return True
        if s in _FALSE_STRINGS:
            return False
    return None


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _validate_value(
    spec: FieldSpec,
    value: Any,
    path: str,
    lookups: LookupService,
    errs: list[dict[str, Any]],
    today: date,
) -> Any:
    """Return the normalized value, appending to errs on failure."""
    ftype = spec.type

    if ftype in ("bool", "confirm"):
        b = _as_bool(value)
        if b is None:
            errs.append(detail(path, "invalid_type", {"expected": "bool"}))
            return None
        if ftype == "confirm" and b is not True:
            errs.append(detail(path, "must_be_true"))
        return b

    if ftype == "list":
        return _validate_list(spec, value, path, lookups, errs, today)

    if not isinstance(value, str):
        errs.append(detail(path, "invalid_type", {"expected": "string"}))
        return None
    s = value.strip()

    if spec.max_length is not None and len(s) > spec.max_length:
        errs.append(detail(path, "too_long", {"max_length": spec.max_length}))
        return None
    if spec.pattern is not None and not re.fullmatch(spec.pattern, s):
        errs.append(detail(path, "invalid_format", {"pattern": spec.pattern}))
        return None

    if ftype == "text":
        return s

    if ftype == "select":
        allowed = set(spec.options) if spec.options is not None else lookups.ids(spec.lookup or "")
        if s not in allowed:
            errs.append(detail(path, "invalid_option", {"lookup": spec.lookup} if spec.lookup else {}))
            return None
        return s

    if ftype == "date":
        try:
            d = date.fromisoformat(s)
        except ValueError:
            errs.append(detail(path, "invalid_format", {"expected": "YYYY-MM-DD"}))
            return None
        if d > today:
            errs.append(detail(path, "future_date"))
            return None
        return d.isoformat()

    if ftype == "sin":
        if not is_valid_sin(s):
            errs.append(detail(path, "invalid_sin"))
            return None
        return _SIN_STRIP_RE.sub("", s)

    if ftype == "email":
        if not _EMAIL_RE.match(s):
            errs.append(detail(path, "invalid_format", {"expected": "email"}))
            return None
        return s.lower()

    if ftype == "phone":
        digits = _PHONE_STRIP_RE.sub("", s)
        if not digits.isdigit() or not 10 <= len(digits) <= 15:
            errs.append(detail(path, "invalid_format", {"expected": "phone"}))
            return None
        return s

    if ftype == "postal_code":
        if not _POSTAL_RE.match(s):
            errs.append(detail(path, "invalid_format", {"expected": "postal_code"}))
            return None
        return s.upper()

    errs.append(detail(path, "unsupported_type", {"type": ftype}))
    return None


def _validate_list(
    spec: FieldSpec,
    value: Any,
    path: str,
    lookups: LookupService,
    errs: list[dict[str, Any]],
    today: date,
) -> list[dict[str, Any]] | None:
    if not isinstance(value, list):
        errs.append(detail(path, "invalid_type", {"expected": "list"}))
        return None
    if spec.min_items is not None and len(value) < spec.min_items:
        errs.append(detail(path, "too_few_items", {"min_items": spec.min_items}))
    if spec.max_items is not None and len(value) > spec.max_items:
        errs.append(detail(path, "too_many_items", {"max_items": spec.max_items}))
        return None

    out: list[dict[str, Any]] = []
    for idx, item in enumerate(value):
        ipath = f"{path}[{idx}]"
        if not isinstance(item, dict):
            errs.append(detail(ipath, "invalid_type", {"expected": "object"}))
            continue
        out.append(_validate_object(spec.item_fields, item, ipath, lookups, errs, today))
    return out


def _validate_object(
    specs: tuple[FieldSpec, ...],
    payload: dict[str, Any],
    prefix: str,
    lookups: LookupService,
    errs: list[dict[str, Any]],
    today: date,
) -> dict[str, Any]:
    known = {s.name for s in specs}
    for key in sorted(payload):
        if key not in known:
            errs.append(detail(f"{prefix}.{key}", "unknown_field"))

    out: dict[str, Any] = {}
    for spec in specs:
        path = f"{prefix}.{spec.name}"
        value = payload.get(spec.name)
        if _is_empty(value):
            if spec.required:
                errs.append(detail(path, "missing_required"))
            out[spec.name] = None
            continue
        out[spec.name] = _validate_value(spec, value, path, lookups, errs, today)
    return out


def validate_group_payload(
    *,
    group: str,
    specs: tuple[FieldSpec, ...],
    payload: Any,
    lookups: LookupService,
    today: date | None = None,
) -> dict[str, Any]:
    """Validate and normalize one field group payload.

    Raises:
        ValidationError: With one detail per failing field.
    """
    if not isinstance(payload, dict):
        raise ValidationError(
            "payload must be an object",
            details=[detail("$", "invalid_type", {"group": group})],
        )

    errs: list[dict[str, Any]] = []
    out = _validate_object(specs, payload, "$", lookups, errs, today or date.today())

    rule = CROSS_RULES.get(group)
    if not errs and rule is not None:
        errs.extend(rule(out, lookups))

    if errs:
        raise ValidationError(
            f"Invalid values for {group}",
            details=errs,
            suggestion="Correct the highlighted fields and submit again",
        )
    return out
