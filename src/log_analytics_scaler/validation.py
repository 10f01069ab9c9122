"""
Log Analytics query result decoding and validation.

The query API returns untyped tables:

    {"tables": [{"name": "PrimaryResult",
                 "columns": [{"name": "value", "type": "long"}, ...],
                 "rows": [[12, 100]]}]}

The response envelope is decoded with pydantic; every cell is then decoded
into a tagged Cell (number / null / other) and checked against its declared
column type. Neither the declared type nor the JSON value is trusted alone.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, Field

from core import metrics
from core.errors.exceptions import ValidationError, truncate_body
from core.logging.utilities import LoggedClass

SUPPORTED_COLUMN_TYPES = frozenset({"real", "int", "long"})

# Threshold sentinel: the query did not return a threshold column
NO_THRESHOLD = -1


class QueryColumn(BaseModel):
    name: str = ""
    type: str = ""


class QueryTable(BaseModel):
    name: str = ""
    columns: List[QueryColumn] = Field(default_factory=list)
    rows: List[List[Any]] = Field(default_factory=list)


class QueryResponse(BaseModel):
    """Body of a successful Log Analytics query response."""

    tables: List[QueryTable] = Field(default_factory=list)


class CellKind(Enum):
    NUMBER = "number"
    NULL = "null"
    OTHER = "other"


@dataclass(frozen=True)
class Cell:
    """A decoded table cell."""

    kind: CellKind
    number: Optional[float] = None
    raw: Any = None

    @classmethod
    def decode(cls, raw: Any) -> "Cell":
        if raw is None:
            return cls(CellKind.NULL)
        # bool is an int subclass; JSON true/false is not a metric
        if isinstance(raw, bool) or not isinstance(raw, (int, float)):
            return cls(CellKind.OTHER, raw=raw)
        try:
            number = float(raw)
        except OverflowError:
            # JSON integer beyond float range
            return cls(CellKind.OTHER, raw=raw)
        if not math.isfinite(number):
            return cls(CellKind.OTHER, raw=raw)
        return cls(CellKind.NUMBER, number=number, raw=raw)


@dataclass(frozen=True)
class MetricSample:
    """
    Scalar read from a query result.

    Attributes:
        value: Non-negative metric value (truncated toward zero)
        threshold: Target value from the query, or NO_THRESHOLD
    """

    value: int
    threshold: int = NO_THRESHOLD

    @property
    def has_threshold(self) -> bool:
        return self.threshold != NO_THRESHOLD


def _describe(raw: Any) -> str:
    if isinstance(raw, int) and not isinstance(raw, bool):
        # repr of a huge int can exceed the int-to-str digit limit
        return "out-of-range integer"
    return truncate_body(repr(raw).encode("utf-8"), 100)


def _column_type(table: QueryTable, index: int) -> str:
    if index < len(table.columns):
        return table.columns[index].type
    return ""


class ResultValidator(LoggedClass):
    """
    Extracts a MetricSample from a query response.

    Rules, checked in order:
    - exactly one table
    - at least one column and exactly one row
    - cell 0 (value): null -> 0; otherwise a non-negative number in a
      real/int/long column
    - cell 1 (threshold), if present: same rules, but null is an error;
      absent -> NO_THRESHOLD
    """

    log_component = "validation"

    def validate(self, response: QueryResponse) -> MetricSample:
        """
        Validate a decoded response.

        Raises:
            ValidationError: With a reason code naming the violated rule
        """
        try:
            sample = self._validate(response)
        except ValidationError as e:
            metrics.validation_failures_total.labels(reason=e.reason).inc()
            self._log(logging.DEBUG, "Query result rejected", reason=e.reason)
            raise
        return sample

    def _validate(self, response: QueryResponse) -> MetricSample:
        if not response.tables:
            raise ValidationError(
                "no_tables",
                "Error validating Log Analytics request. Details: there is no table in query result",
            )
        if len(response.tables) > 1:
            raise ValidationError(
                "too_many_tables",
                f"Error validating Log Analytics request. Details: too many tables in query result: "
                f"{len(response.tables)}, expected: 1",
            )

        table = response.tables[0]
        if not table.columns:
            raise ValidationError(
                "no_columns",
                "Error validating Log Analytics request. Details: there are no columns in query result",
            )
        if not table.rows:
            raise ValidationError(
                "no_rows",
                "Error validating Log Analytics request. Details: there is no results after running your query",
            )
        if len(table.rows) > 1:
            raise ValidationError(
                "too_many_rows",
                f"Error validating Log Analytics request. Details: too many rows in query result: "
                f"{len(table.rows)}, expected: 1",
            )

        row = table.rows[0]

        value = 0
        if row:
            cell = Cell.decode(row[0])
            if cell.kind != CellKind.NULL:
                value = self._to_int(cell, _column_type(table, 0), "value")

        threshold = NO_THRESHOLD
        if len(row) > 1:
            cell = Cell.decode(row[1])
            if cell.kind == CellKind.NULL:
                raise ValidationError(
                    "empty_threshold",
                    "Error validating Log Analytics request. Details: threshold value is empty, check your query",
                )
            threshold = self._to_int(cell, _column_type(table, 1), "threshold")

        return MetricSample(value=value, threshold=threshold)

    @staticmethod
    def _to_int(cell: Cell, column_type: str, label: str) -> int:
        """Check a non-null cell and truncate it toward zero."""
        if column_type not in SUPPORTED_COLUMN_TYPES:
            raise ValidationError(
                f"unsupported_{label}_type",
                f"Error validating Log Analytics request. Details: {label} data type should be "
                f"real, int or long, but received {column_type!r}",
            )
        if cell.kind != CellKind.NUMBER:
            raise ValidationError(
                f"{label}_not_numeric",
                f"Error validating Log Analytics request. Details: can not convert {label} "
                f"{_describe(cell.raw)} to a number",
            )
        if cell.number < 0:
            raise ValidationError(
                f"negative_{label}",
                f"Error validating Log Analytics request. Details: {label} should be >=0, "
                f"but received {cell.number:f}",
            )
        return math.trunc(cell.number)
