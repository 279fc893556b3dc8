from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from expense_scanner.modules.receipts.inference import DEFAULT_CATEGORY, infer_category
from expense_scanner.modules.receipts.types import ParsedReceipt

MERCHANT_SCAN_LINES = 5


def _always(_value: Any) -> bool:
    return True


def _positive(value: float) -> bool:
    return value > 0


def _plausible_merchant(value: str) -> bool:
    return len(value) > 3 and not any(ch.isdigit() for ch in value)


def _to_text(raw: str) -> str | None:
    value = raw.strip()
    return value or None


def _to_amount(raw: str) -> float | None:
    try:
        return float(raw)
    except ValueError:
        return None


def _strptime_any(raw: str, formats: Iterable[str]) -> date | None:
    for fmt in formats:
        try:
            return datetime.strptime(raw, fmt).date()
        except ValueError:
            continue
    return None


def _slash_date(raw: str) -> str | None:
    d = _strptime_any(raw, ("%m/%d/%Y", "%m/%d/%y"))
    return d.isoformat() if d else None


def _dash_date(raw: str) -> str | None:
    d = _strptime_any(raw, ("%m-%d-%Y", "%m-%d-%y"))
    return d.isoformat() if d else None


def _iso_date(raw: str) -> str | None:
    d = _strptime_any(raw, ("%Y-%m-%d",))
    return d.isoformat() if d else None


def _month_name_date(raw: str) -> str | None:
    m = re.match(r"([A-Za-z]+)\.?\s+(\d{1,2}),?\s+(\d{4})$", raw.strip())
    if not m:
        return None
    month, day, year = m.groups()
    d = _strptime_any(f"{month[:3].title()} {day} {year}", ("%b %d %Y",))
    return d.isoformat() if d else None


@dataclass(frozen=True)
class Rule:
    """One way of reading ``field`` off a single OCR line.

    ``pattern`` must capture the value in group 1; ``convert`` turns it into the
    field value (``None`` rejects the match) and ``accept`` filters converted
    values. Rules for the same field share a combinator:

    - ``first``: lines are scanned in order and, per line, rules in order; the
      first accepted value wins and scanning stops.
    - ``max``: every rule is tried on every line and the largest accepted value
      is kept.
    """

    field: str
    pattern: re.Pattern[str]
    convert: Callable[[str], Any]
    combinator: str = "first"
    accept: Callable[[Any], bool] = _always
    max_lines: int | None = None


RULES: tuple[Rule, ...] = (
    # Merchant: all-caps header, then a capitalised mixed-case header.
    Rule(
        field="merchant_name",
        pattern=re.compile(r"^([A-Z][A-Z\s&-]{3,30})$"),
        convert=_to_text,
        accept=_plausible_merchant,
        max_lines=MERCHANT_SCAN_LINES,
    ),
    Rule(
        field="merchant_name",
        pattern=re.compile(r"^([A-Z][a-zA-Z\s&-]{3,30})$"),
        convert=_to_text,
        accept=_plausible_merchant,
        max_lines=MERCHANT_SCAN_LINES,
    ),
    # Total: receipts repeat smaller subtotals before the final total.
    Rule(
        field="total_amount",
        pattern=re.compile(
            r"(?:total|amount due|balance due|grand total)[:\s]*\$?(\d+\.?\d{0,2})", re.I
        ),
        convert=_to_amount,
        combinator="max",
        accept=_positive,
    ),
    Rule(
        field="total_amount",
        pattern=re.compile(r"\$(\d+\.\d{2})\s*(?:total|due|balance)", re.I),
        convert=_to_amount,
        combinator="max",
        accept=_positive,
    ),
    Rule(
        field="total_amount",
        pattern=re.compile(r"(?:^|\s)\$(\d+\.\d{2})(?:\s*total|\s*$)", re.I),
        convert=_to_amount,
        combinator="max",
        accept=_positive,
    ),
    # Date: US slash, US dash, ISO, then month-name forms.
    Rule(
        field="date",
        pattern=re.compile(r"(?<![\d/])(\d{1,2}/\d{1,2}/\d{2,4})"),
        convert=_slash_date,
    ),
    Rule(
        field="date",
        pattern=re.compile(r"(?<![\d-])(\d{1,2}-\d{1,2}-\d{2,4})"),
        convert=_dash_date,
    ),
    Rule(
        field="date",
        pattern=re.compile(r"(\d{4}-\d{1,2}-\d{1,2})"),
        convert=_iso_date,
    ),
    Rule(
        field="date",
        pattern=re.compile(
            r"((?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)[a-z]*\.?\s+\d{1,2},?\s+\d{4})",
            re.I,
        ),
        convert=_month_name_date,
    ),
    # Tax: labelled (optionally with a rate such as "(8.25%)"), or trailing label.
    Rule(
        field="tax_amount",
        pattern=re.compile(
            r"(?:tax|hst|gst|pst)(?:\s*\(?\d+(?:\.\d+)?\s*%\)?)?[:\s]*\$?(\d+\.?\d{0,2})", re.I
        ),
        convert=_to_amount,
    ),
    Rule(
        field="tax_amount",
        pattern=re.compile(r"\$(\d+\.\d{2})\s*(?:tax|hst|gst|pst)", re.I),
        convert=_to_amount,
    ),
)


def _match(rule: Rule, line: str) -> Any | None:
    m = rule.pattern.search(line)
    if not m:
        return None
    value = rule.convert(m.group(1))
    if value is None or not rule.accept(value):
        return None
    return value


def _combine_first(rules: Sequence[Rule], lines: Sequence[str]) -> Any | None:
    limit = rules[0].max_lines
    for line in lines[:limit] if limit is not None else lines:
        for rule in rules:
            value = _match(rule, line)
            if value is not None:
                return value
    return None


def _combine_max(rules: Sequence[Rule], lines: Sequence[str]) -> Any | None:
    best = None
    limit = rules[0].max_lines
    for line in lines[:limit] if limit is not None else lines:
        for rule in rules:
            value = _match(rule, line)
            if value is not None and (best is None or value > best):
                best = value
    return best


COMBINATORS: dict[str, Callable[[Sequence[Rule], Sequence[str]], Any | None]] = {
    "first": _combine_first,
    "max": _combine_max,
}


def _normalize_lines(lines: Sequence[str] | str | None) -> list[str]:
    if lines is None:
        return []
    if isinstance(lines, str):
        lines = lines.splitlines()
    out: list[str] = []
    for raw in lines:
        if raw is None:
            continue
        line = str(raw).strip()
        if line:
            out.append(line)
    return out


def extract_fields(
    lines: Sequence[str] | str | None, rules: Sequence[Rule] = RULES
) -> dict[str, Any]:
    normalized = _normalize_lines(lines)
    grouped: dict[str, list[Rule]] = {}
    for rule in rules:
        grouped.setdefault(rule.field, []).append(rule)

    found: dict[str, Any] = {}
    for field_name, field_rules in grouped.items():
        combine = COMBINATORS[field_rules[0].combinator]
        value = combine(field_rules, normalized)
        if value is not None:
            found[field_name] = value
    return found


def parse_date_text(raw: str) -> str | None:
    """Parse a free-form date with the date rules, returning an ISO date."""
    date_rules = [r for r in RULES if r.field == "date"]
    return _combine_first(date_rules, _normalize_lines([raw]))


def parse_receipt(
    lines: Sequence[str] | str | None,
    available_categories: Sequence[str] = (),
) -> ParsedReceipt:
    fields = extract_fields(lines)
    parsed = ParsedReceipt(**fields)
    if parsed.date:
        parsed.payment_date = parsed.date
    if parsed.merchant_name:
        parsed.category = infer_category(parsed.merchant_name, available_categories)
    else:
        parsed.category = DEFAULT_CATEGORY
    return parsed
