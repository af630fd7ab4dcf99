"""Chained MagicMock stand-in for the supabase query builder."""

from unittest.mock import MagicMock


def mock_supabase(execute_results=None):
    """Supabase mock with chained query builder.

    Args:
        execute_results: Optional list of return values for successive
            .execute() calls (uses side_effect). When not provided, every
            .execute() returns ``MagicMock(data=[], count=0)``.
    """
    sb = MagicMock()
    chain = MagicMock()
    if execute_results is not None:
        chain.execute.side_effect = execute_results
    else:
        chain.execute.return_value = MagicMock(data=[], count=0)
    for method in (
        "select",
        "insert",
        "update",
        "upsert",
        "eq",
        "neq",
        "ilike",
        "or_",
        "in_",
        "order",
        "limit",
    ):
        getattr(chain, method).return_value = chain
    sb.table.return_value = chain
    sb.rpc.return_value = chain
    return sb


def rows(*data):
    """Execute() result carrying ``data``."""
    return MagicMock(data=list(data), count=len(data))
