"""OData filter composition for table storage queries.

Supports the subset of the table query grammar used for metrics checks:
equality and greater-or-equal comparisons on named properties, combined
with boolean operators.

Example:
    >>> combine(condition("Host", EQUAL, "vm1"), AND, condition("Timestamp", GREATER_OR_EQUAL, ts))
    "(Host eq 'vm1') and (Timestamp ge datetime'2024-01-01T00:00:00.000000Z')"
"""

from datetime import datetime, timezone

EQUAL = "eq"
GREATER_OR_EQUAL = "ge"
AND = "and"

_COMPARISONS = frozenset({EQUAL, GREATER_OR_EQUAL})
_OPERATORS = frozenset({AND})


def _format_value(value: str | datetime) -> str:
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return f"datetime'{value.strftime('%Y-%m-%dT%H:%M:%S.%f')}Z'"
    # Single quotes are escaped by doubling them
    escaped = str(value).replace("'", "''")
    return f"'{escaped}'"


def condition(property_name: str, comparison: str, value: str | datetime) -> str:
    """Build a single comparison (e.g. "Host eq 'vm1'").

    Raises:
        ValueError: If the comparison operator is not supported
    """
    if comparison not in _COMPARISONS:
        raise ValueError(f"Unsupported comparison: {comparison}")
    return f"{property_name} {comparison} {_format_value(value)}"


def combine(left: str, operator: str, right: str) -> str:
    """Combine two filters with a boolean operator."""
    if operator not in _OPERATORS:
        raise ValueError(f"Unsupported operator: {operator}")
    return f"({left}) {operator} ({right})"


def diagnostics_filter(deployment_id: str, host: str, since: datetime) -> str:
    """Filter for rows of one VM written since a point in time."""
    return combine(
        condition("DeploymentId", EQUAL, deployment_id),
        AND,
        combine(
            condition("Host", EQUAL, host),
            AND,
            condition("Timestamp", GREATER_OR_EQUAL, since),
        ),
    )


__all__ = ["AND", "EQUAL", "GREATER_OR_EQUAL", "combine", "condition", "diagnostics_filter"]
