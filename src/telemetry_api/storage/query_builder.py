"""
Query Builder

Builds parameterised predicates over alarm documents stored as JSONB.
"""

from datetime import datetime
from typing import Any
from typing import List
from typing import Literal
from typing import Optional
from typing import Sequence

from pydantic import BaseModel
from pydantic import Field

# Maximum number of device ids accepted in one query
DEVICE_LIMIT = 200

SORTABLE_FIELDS = {
    "created": "(body ->> 'created')::BIGINT",
    "modified": "(body ->> 'modified')::BIGINT",
}


class FilterOptions(BaseModel):
    """Ordering applied to a document query."""

    order_by: Literal["created", "modified"] = "created"
    order: Literal["asc", "desc"] = "asc"

    def render(self) -> str:
        """Render the ORDER BY clause, tie-broken on id for stable paging."""
        return f"{SORTABLE_FIELDS[self.order_by]} {self.order.upper()}, id {self.order.upper()}"


class QueryExpression(BaseModel):
    """
    Conjunction of SQL conditions over the document body.

    Each condition holds at most one "{}" placeholder, filled in order from args
    when the expression is rendered.
    """

    conditions: List[str] = Field(default_factory=list)
    args: List[Any] = Field(default_factory=list)

    def add(self, condition: str, *args: Any) -> "QueryExpression":
        self.conditions.append(condition)
        self.args.extend(args)
        return self

    def render(self, first_index: int) -> str:
        """Render the WHERE predicate with positional parameters starting at $first_index."""
        parts = []
        index = first_index
        for condition in self.conditions:
            if "{}" in condition:
                parts.append(condition.format(f"${index}"))
                index += 1
            else:
                parts.append(condition)
        return " AND ".join(f"({part})" for part in parts) if parts else "TRUE"


def to_epoch_millis(value: datetime) -> int:
    """Convert a datetime to epoch milliseconds, the unit alarm timestamps are stored in."""
    return int(value.timestamp() * 1000)


def build_filter_options(order: Optional[str], order_by: str = "created") -> FilterOptions:
    """
    Build ordering options from a query-string order value.

    Raises:
        ValueError: if order is not asc or desc
    """
    normalized = (order or "asc").strip().lower()
    if normalized not in ("asc", "desc"):
        raise ValueError(f"Invalid order '{order}', expected 'asc' or 'desc'")
    return FilterOptions(order_by=order_by, order=normalized)


def build_alarms_query(
    rule_id: Optional[str] = None,
    from_date: Optional[datetime] = None,
    to_date: Optional[datetime] = None,
    device_ids: Optional[Sequence[str]] = None,
) -> QueryExpression:
    """
    Build the predicate selecting alarms by rule, creation time range and device.

    Args:
        rule_id: Only alarms raised by this rule
        from_date: Inclusive lower bound on alarm creation time
        to_date: Inclusive upper bound on alarm creation time
        device_ids: Allow-list of device ids; empty or None means all devices

    Raises:
        ValueError: if more than DEVICE_LIMIT device ids are given
    """
    expression = QueryExpression()

    if rule_id is not None:
        expression.add("body ->> 'rule_id' = {}", rule_id)

    if from_date is not None:
        expression.add("(body ->> 'created')::BIGINT >= {}", to_epoch_millis(from_date))

    if to_date is not None:
        expression.add("(body ->> 'created')::BIGINT <= {}", to_epoch_millis(to_date))

    if device_ids:
        if len(device_ids) > DEVICE_LIMIT:
            raise ValueError(f"The number of devices cannot exceed {DEVICE_LIMIT}")
        expression.add("body ->> 'device_id' = ANY({}::TEXT[])", list(device_ids))

    return expression


def build_id_query(document_id: str) -> QueryExpression:
    """Build the predicate selecting a single document by id."""
    return QueryExpression().add("id = {}", document_id)
