# file: src/natgas/validation.py
"""Declarative validation rules for observation tables."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Union

import pandas as pd

logger = logging.getLogger(__name__)

CheckResult = Union[bool, pd.Series]


@dataclass(frozen=True)
class Rule:
    name: str
    column: str
    check: Callable[[pd.Series], CheckResult]
    description: str = ""


@dataclass(frozen=True)
class ValidationReport:
    ok: bool
    message: str
    details: dict


def is_datetime(column: str) -> Rule:
    return Rule(
        name=f"{column}_is_datetime",
        column=column,
        check=lambda s: pd.api.types.is_datetime64_any_dtype(s),
        description=f"{column} is date-typed",
    )


def not_null(column: str) -> Rule:
    return Rule(
        name=f"{column}_not_null",
        column=column,
        check=lambda s: s.notna(),
        description=f"{column} has no nulls",
    )


def greater_than(column: str, bound: float = 0) -> Rule:
    # Nulls are reported by not_null; here they count as passing.
    return Rule(
        name=f"{column}_gt_{bound:g}",
        column=column,
        check=lambda s: s.isna() | (pd.to_numeric(s, errors="coerce") > bound),
        description=f"{column} > {bound:g}",
    )


RAW_RULES: tuple[Rule, ...] = (
    is_datetime("period"),
    not_null("value"),
    greater_than("value", 0),
)

CANONICAL_RULES: tuple[Rule, ...] = RAW_RULES + (
    not_null("region_name"),
    not_null("region_code"),
)


def apply_rule(df: pd.DataFrame, rule: Rule) -> ValidationReport:
    """Evaluate one rule; a missing column is a failed report, not an exception."""
    if rule.column not in df.columns:
        return ValidationReport(
            False,
            rule.name,
            {"description": rule.description, "column": rule.column, "error": "missing column"},
        )

    result = rule.check(df[rule.column])
    if isinstance(result, pd.Series):
        failed = ~result.astype(bool)
        n_failed = int(failed.sum())
        details = {
            "description": rule.description,
            "column": rule.column,
            "n_rows": int(len(df)),
            "n_failed": n_failed,
        }
        if n_failed:
            details["sample_index"] = df.index[failed][:5].tolist()
        return ValidationReport(n_failed == 0, rule.name, details)

    return ValidationReport(
        bool(result),
        rule.name,
        {"description": rule.description, "column": rule.column, "dtype": str(df[rule.column].dtype)},
    )


def run_rules(df: pd.DataFrame, rules: Iterable[Rule]) -> list[ValidationReport]:
    return [apply_rule(df, rule) for rule in rules]


def all_passed(reports: Iterable[ValidationReport]) -> bool:
    return all(r.ok for r in reports)


def log_validation_reports(reports: list[ValidationReport], *, stage: str) -> None:
    """Log each rule result; failures are WARNING so they are never swallowed."""
    n_failed = sum(not r.ok for r in reports)
    status = "PASS" if n_failed == 0 else "FAIL"
    logger.info("[validation][%s] %s (%d/%d rules passed)", stage, status, len(reports) - n_failed, len(reports))
    for r in reports:
        if r.ok:
            logger.info("[validation][%s] PASS %s", stage, r.message)
        else:
            logger.warning("[validation][%s] FAIL %s details=%s", stage, r.message, r.details)


def reports_to_frame(reports: list[ValidationReport]) -> pd.DataFrame:
    return pd.DataFrame(
        {
            "rule": [r.message for r in reports],
            "ok": [r.ok for r in reports],
            "n_failed": [r.details.get("n_failed", 0 if r.ok else None) for r in reports],
            "description": [r.details.get("description", "") for r in reports],
        }
    )
