"""Conversion of Postgres text values and logical decoding output."""

from __future__ import annotations

import csv
import io
import json
import logging
import re
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from ..message import Msg, Op

log = logging.getLogger(__name__)

_ARRAY_SUFFIX = re.compile(r"\[\]$")
_CHANGE = re.compile(r"table ([^.]+)\.([^:]+): (INSERT|DELETE|UPDATE): (.+)", re.DOTALL)
_ACTIONS = {"INSERT": Op.INSERT, "DELETE": Op.DELETE, "UPDATE": Op.UPDATE}
_ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)


def _parse_timestamp(value: str) -> datetime:
    main, _, frac = value.partition(".")
    parsed = datetime.strptime(main, "%Y-%m-%d %H:%M:%S")
    if frac:
        if not frac.isdigit() or len(frac) > 9:
            raise ValueError(f"bad fractional seconds {frac!r}")
        parsed = parsed.replace(microsecond=int(frac[:6].ljust(6, "0")))
    return parsed


def _parse_time(value: str, layout: Callable[[str], datetime]) -> datetime:
    try:
        parsed = layout(value)
    except ValueError as exc:
        log.warning("time (%s) parse error: %s", value, exc)
        return _ZERO_TIME
    return parsed.replace(tzinfo=timezone.utc)


def _parse_date(value: str) -> datetime:
    return datetime.strptime(value, "%Y-%m-%d")


def casify_value(value: str, value_type: str) -> Any:
    """Convert a textual Postgres value into a Python value according to its type."""
    if value == "null":
        return None
    if value_type in ("integer", "smallint", "bigint"):
        try:
            return int(value)
        except ValueError:
            return 0
    if value_type in ("double precision", "numeric", "money"):
        if value_type == "money":
            value = value[1:]
        try:
            return float(value)
        except ValueError:
            return 0.0
    if value_type == "boolean":
        return value == "true"
    if value_type in ("jsonb[]", "json"):
        try:
            decoded = json.loads(value)
        except ValueError:
            return None
        return decoded if isinstance(decoded, dict) else None
    if _ARRAY_SUFFIX.search(value_type):
        element_type = _ARRAY_SUFFIX.sub("", value_type)
        try:
            rows = list(csv.reader(io.StringIO(value[1:-1], newline=""), strict=True))
        except csv.Error:
            return value
        if not rows:
            return []
        return [casify_value(item, element_type) for item in rows[0]]
    if value_type == "timestamp without time zone":
        return _parse_time(value, _parse_timestamp)
    if value_type == "date":
        return _parse_time(value, _parse_date)
    return value


def parse_logical_decoding_data(d: str) -> dict[str, Any]:
    """Parse the column list of a test_decoding change, e.g. ``id[integer]:1 name[text]:'x'``."""
    data: dict[str, Any] = {}
    label = value_type = value = value_end = ""
    label_finished = value_type_finished = open_bracket = False
    skipped_colon = deferred_quote = value_finished = False

    for ch in d:
        if not label_finished:
            if ch == "[":
                label_finished = True
            else:
                label += ch
            continue
        if not value_type_finished:
            if open_bracket and ch == "]":
                open_bracket = False
            elif ch == "]":
                value_type_finished = True
                continue
            elif ch == "[":
                open_bracket = True
            value_type += ch
            continue
        if not skipped_colon and ch == ":":
            skipped_colon = True
            continue
        if not value_end:
            if ch == "'":
                value_end = "'"
                continue
            value_end = " "

        if deferred_quote and ch == " ":
            value_finished = True
        elif deferred_quote and ch == "'":
            deferred_quote = False
        elif ch == "'" and not deferred_quote:
            deferred_quote = True
            continue

        if value_end == " " and ch == " ":
            value_finished = True

        if not value_finished:
            value += ch
            continue

        data[label] = casify_value(value, value_type)
        label = value_type = value = value_end = ""
        label_finished = value_type_finished = False
        skipped_colon = deferred_quote = value_finished = False

    if label:
        data[label] = casify_value(value, value_type)
    return data


def parse_change(d: str, filter_fn: Callable[[str], bool]) -> Optional[Msg]:
    """Turn one row of logical decoding output into a message.

    Returns ``None`` for rows that are not data changes, that belong to a
    namespace rejected by ``filter_fn`` or that carry no tuple data.
    """
    match = _CHANGE.fullmatch(d)
    if match is None:
        return None
    schema, table, action, rest = match.groups()
    namespace = f"{schema}.{table}"
    if not filter_fn(namespace):
        return None
    if rest == "(no-tuple-data)":
        log.info("no tuple data for %s on %s", action, namespace)
        return None
    op = _ACTIONS[action]
    log.debug("received %s on %s", op, namespace)
    return Msg(op, namespace, parse_logical_decoding_data(rest))