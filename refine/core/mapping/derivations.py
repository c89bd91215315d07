"""
Derivation functions for computed output columns.

A derivation computes one canonical column from other columns of the record
being built. Dataset mappings reference derivations by name with a params
dict; every function receives a DerivationContext and returns the new value
(None for absent) or raises RecordSkipped when the record is structurally
unusable.

Register new derivations with @register_derivation; list the params that
name columns so mappings can be checked at load time.
"""

import json
import math
import string
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Sequence

from refine.core.errors import RecordSkipped
from refine.core.terms import ABSENT, ISO_DAY_FORMAT, ISO_MONTH_FORMAT, occurrence_status as status_for

ROW_PLACEHOLDER = "{row}"


@dataclass
class DerivationContext:
    """
    What a derivation can see.

    Attributes:
        column: Name of the column being derived
        record: Canonical record built so far (read-only for derivations)
        index: Column name to position lookup
        row_number: 1-based number of the raw row in the source file
        params: Derivation parameters from the mapping
    """

    column: str
    record: Sequence[str | None]
    index: dict[str, int]
    row_number: int
    params: dict[str, Any]

    def value(self, name: str) -> str | None:
        """Trimmed value of a column, None when empty."""
        value = self.record[self.index[name]]
        if value is None:
            return None
        value = value.strip()
        return value or None

    def field(self) -> str:
        """Column named by the 'field' param, defaulting to the derived column."""
        return self.params.get("field", self.column)

    def skip(self, message: str) -> RecordSkipped:
        return RecordSkipped(rule_name=self.column, column=self.column, message=message)


DerivationFn = Callable[[DerivationContext], str | None]


@dataclass(frozen=True)
class Derivation:
    name: str
    fn: DerivationFn
    column_params: tuple[str, ...] = ()


DERIVATION_REGISTRY: dict[str, Derivation] = {}


def register_derivation(name: str, column_params: Sequence[str] = ()):
    """Decorator adding a derivation function to the registry."""

    def decorator(fn: DerivationFn) -> DerivationFn:
        DERIVATION_REGISTRY[name] = Derivation(name, fn, tuple(column_params))
        return fn

    return decorator


def referenced_columns(name: str, params: dict[str, Any]) -> list[str]:
    """
    Column names referenced by a derivation's params.

    Raises:
        KeyError: If the derivation is not registered
    """
    derivation = DERIVATION_REGISTRY[name]
    columns: list[str] = []
    for key in derivation.column_params:
        value = params.get(key)
        if value is None:
            continue
        if isinstance(value, str):
            values = [value]
        elif isinstance(value, dict):
            values = list(value.values())
        else:
            values = list(value)
        columns.extend(str(v) for v in values if v != ROW_PLACEHOLDER)
    if name == "template":
        columns.extend(_template_fields(params.get("template", "")))
    return columns


def _template_fields(template: str) -> list[str]:
    return [field for _, field, _, _ in string.Formatter().parse(template) if field]


def _parse_date(ctx: DerivationContext, value: str, fmt: str) -> datetime:
    month_names = ctx.params.get("month_names") or {}
    for local, english in month_names.items():
        if local.lower() in value.lower():
            start = value.lower().index(local.lower())
            value = value[:start] + english + value[start + len(local):]
            break
    try:
        return datetime.strptime(value, fmt)
    except ValueError:
        raise ctx.skip(f"unparsable date {value!r} (expected {fmt})")


def _output_format(ctx: DerivationContext) -> str:
    precision = ctx.params.get("precision", "day")
    if precision == "month":
        return ISO_MONTH_FORMAT
    return ISO_DAY_FORMAT


@register_derivation("copy", column_params=("field",))
def copy_value(ctx: DerivationContext) -> str | None:
    return ctx.value(ctx.params["field"])


@register_derivation("upper", column_params=("field",))
def upper(ctx: DerivationContext) -> str | None:
    value = ctx.value(ctx.field())
    return value.upper() if value else None


@register_derivation("lower", column_params=("field",))
def lower(ctx: DerivationContext) -> str | None:
    value = ctx.value(ctx.field())
    return value.lower() if value else None


@register_derivation("unit_suffix", column_params=("field",))
def unit_suffix(ctx: DerivationContext) -> str | None:
    """Append a unit to a measurement, e.g. depth '4' -> '4 m'."""
    value = ctx.value(ctx.field())
    if value is None:
        return None
    separator = ctx.params.get("separator", " ")
    return f"{value}{separator}{ctx.params['unit']}"


@register_derivation("template")
def template(ctx: DerivationContext) -> str | None:
    """
    Fill a str.format template with column values, e.g. 'Observed in block #{Block}'.

    Absent when any referenced column is empty.
    """
    fields = _template_fields(ctx.params["template"])
    values = {field: ctx.value(field) for field in fields}
    if any(value is None for value in values.values()):
        return None
    return ctx.params["template"].format_map(values)


@register_derivation("concat", column_params=("fields",))
def concat(ctx: DerivationContext) -> str | None:
    """Join columns with a separator, e.g. higher geography 'Country | Realm | Ecoregion'."""
    separator = ctx.params.get("separator", " | ")
    values = [ctx.value(field) for field in ctx.params["fields"]]
    if ctx.params.get("skip_empty", False):
        values = [value for value in values if value is not None]
    if not any(values):
        return None
    return separator.join(value or "" for value in values)


@register_derivation("lookup", column_params=("field",))
def lookup(ctx: DerivationContext) -> str | None:
    """Map a column value through a fixed table (case-insensitive keys)."""
    value = ctx.value(ctx.params["field"])
    table = {str(key).lower(): item for key, item in ctx.params["table"].items()}
    if value is not None and value.lower() in table:
        result = table[value.lower()]
        return None if result is None else str(result)
    default = ctx.params.get("default")
    return None if default is None else str(default)


@register_derivation("occurrence_status", column_params=("field",))
def occurrence_status(ctx: DerivationContext) -> str | None:
    """present when the abundance column is > 0, absent otherwise."""
    value = ctx.value(ctx.params["field"])
    if value is None:
        return ctx.params.get("empty_as", ABSENT)
    try:
        count = float(value)
    except ValueError:
        raise ctx.skip(f"malformed abundance {value!r}")
    if not math.isfinite(count):
        raise ctx.skip(f"malformed abundance {value!r}")
    return status_for(count)


@register_derivation("iso_date", column_params=("field", "fields", "verify_against"))
def iso_date(ctx: DerivationContext) -> str | None:
    """
    Normalise a source date to ISO year-month or year-month-day.

    Params:
        field | fields: Column, or columns joined with 'join', holding the date
        format: strptime format of the source value
        precision: 'day' (default) or 'month'
        month_names: Localised month name -> English abbreviation
        verify_against: Column holding a verbatim date that must agree
        verify_format: strptime format of the verbatim date
    """
    if "fields" in ctx.params:
        parts = [ctx.value(field) for field in ctx.params["fields"]]
        if any(part is None for part in parts):
            raise ctx.skip(f"incomplete date parts {parts}")
        raw = ctx.params.get("join", "-").join(parts)
    else:
        raw = ctx.value(ctx.field())
        if raw is None:
            if ctx.params.get("required", True):
                raise ctx.skip("missing date")
            return None

    output = _output_format(ctx)
    normalised = _parse_date(ctx, raw, ctx.params["format"]).strftime(output)

    verify_column = ctx.params.get("verify_against")
    if verify_column:
        verbatim = ctx.value(verify_column)
        if verbatim is not None:
            fmt = ctx.params.get("verify_format", ctx.params["format"])
            verified = _parse_date(ctx, verbatim, fmt).strftime(output)
            if verified != normalised:
                raise ctx.skip(f"derived date {normalised} does not match {verify_column} {verified}")
    return normalised


@register_derivation("date_range", column_params=("start", "end"))
def date_range(ctx: DerivationContext) -> str | None:
    """Combine two ISO dates into an ISO interval 'start/end'."""
    start = ctx.value(ctx.params["start"])
    end = ctx.value(ctx.params["end"])
    if start is None or end is None:
        return start or end
    return f"{start}/{end}"


@register_derivation("day_span", column_params=("start", "end"))
def day_span(ctx: DerivationContext) -> str | None:
    """Whole days between two ISO dates, with an optional suffix (sampling effort)."""
    start = ctx.value(ctx.params["start"])
    end = ctx.value(ctx.params["end"])
    if start is None or end is None:
        return None
    fmt = ctx.params.get("format", ISO_DAY_FORMAT)
    days = (_parse_date(ctx, end, fmt) - _parse_date(ctx, start, fmt)).days
    if days < 0:
        raise ctx.skip(f"end date {end} before start date {start}")
    return f"{days}{ctx.params.get('suffix', '')}"


@register_derivation("identifier", column_params=("parts",))
def identifier(ctx: DerivationContext) -> str | None:
    """
    Deterministic identifier: prefix + parts joined by a separator.

    '{row}' as a part inserts the source row number. on_missing decides what
    an empty part does: 'omit' (default) drops it, 'skip' rejects the record.
    """
    separator = ctx.params.get("separator", ":")
    on_missing = ctx.params.get("on_missing", "omit")
    values = []
    for part in ctx.params["parts"]:
        if part == ROW_PLACEHOLDER:
            values.append(str(ctx.row_number))
            continue
        value = ctx.value(part)
        if value is None:
            if on_missing == "skip":
                raise ctx.skip(f"identifier part {part} is empty")
            continue
        values.append(value)
    if not values:
        return None
    prefix = ctx.params.get("prefix")
    if prefix:
        values.insert(0, prefix)
    return separator.join(values)


@register_derivation("json_object", column_params=("properties",))
def json_object(ctx: DerivationContext) -> str | None:
    """
    JSON object of non-empty columns, e.g. dynamic properties.

    Values listed in 'ignore' (default ['-']) count as empty.
    """
    ignore = set(ctx.params.get("ignore", ["-"]))
    properties = {}
    for key, column in ctx.params["properties"].items():
        value = ctx.value(column)
        if value is not None and value not in ignore:
            properties[key] = value
    if not properties:
        return None
    return json.dumps(properties, ensure_ascii=False)
