"""
PostgreSQL performance diagnostics through Metabase native queries.

This module builds the diagnostics report served by the `get_postgres_performance_diagnostics` tool. The
report is composed from up to three native SQL queries executed through Metabase's dataset endpoint:

    1. the slowest statements from `pg_stat_statements`,
    2. index usage for one table (`pg_stat_user_indexes` joined with `pg_indexes`),
    3. sequential vs. index scan statistics for one table (`pg_stat_user_tables`).

The queries run strictly one after another. Each contributes independently: a failed query leaves an error
string in its own `*_error` field while the other fields keep their data. `fetch_postgres_diagnostics`
never raises.

**Notes:**
- The table name is interpolated into the SQL after doubling embedded single quotes. No other sanitizing is
  applied; the value is compared as a string literal against catalog columns, never used as an identifier.
- Metabase reports SQL-level failures inside a 2xx body (`status: "failed"`, `error`), so those are
  classified from the response rather than from an exception.
"""

import logging
import textwrap
from typing import Any

from metabase_mcp._exceptions import McpError, UpstreamApiError
from metabase_mcp.client import MetabaseClient

_LOGGER = logging.getLogger(__name__)

DEFAULT_NUM_SLOW_QUERIES = 10
"""int: Number of slow statements reported when the caller does not ask for a valid count."""


def quote_literal(value: str) -> str:
    """Escape a value for use inside a single-quoted SQL string literal by doubling single quotes."""
    return value.replace("'", "''")


def build_slow_queries_sql(num_slow_queries: int) -> str:
    return textwrap.dedent(
        f"""\
        SELECT queryid, calls, total_exec_time, mean_exec_time, rows, query
        FROM pg_stat_statements
        ORDER BY total_exec_time DESC
        LIMIT {int(num_slow_queries)};
        """
    )


def build_index_usage_sql(table_name: str) -> str:
    return textwrap.dedent(
        f"""\
        SELECT sui.schemaname, sui.relname AS table_name, sui.indexrelname AS index_name,
               sui.idx_scan AS index_scans,
               pg_size_pretty(pg_relation_size(sui.indexrelid)) AS index_size
        FROM pg_stat_user_indexes sui
        JOIN pg_indexes pi
          ON pi.schemaname = sui.schemaname AND pi.indexname = sui.indexrelname
        WHERE sui.relname = '{quote_literal(table_name)}';
        """
    )


def build_table_scan_sql(table_name: str) -> str:
    return textwrap.dedent(
        f"""\
        SELECT schemaname, relname AS table_name, seq_scan AS sequential_scans,
               idx_scan AS total_index_scans, n_live_tup AS live_rows, n_dead_tup AS dead_rows
        FROM pg_stat_user_tables
        WHERE relname = '{quote_literal(table_name)}';
        """
    )


def _one_line(sql: str) -> str:
    return " ".join(line.strip() for line in sql.splitlines() if line.strip())


def _extract_rows(response: Any) -> tuple[list[Any] | None, str | None, bool]:
    """
    Classify a dataset response.

    Returns:
        tuple: `(rows, error, failed)`. `rows` is set on success. Otherwise `error` carries Metabase's error
            text when the body reports one, and `failed` is True when the body marks the execution as
            failed. Both unset means the response had an unexpected shape.
    """
    if isinstance(response, dict):
        data = response.get("data")
        if isinstance(data, dict) and data.get("rows") is not None:
            return list(data["rows"]), None, False
        if response.get("status") == "failed":
            return None, str(response.get("error") or "Unknown error"), True
        if response.get("error"):
            return None, str(response["error"]), False
    return None, None, False


def _describe_error(error: str, failed: bool) -> str:
    prefix = "Query execution failed" if failed else "Query returned an error"
    return f"{prefix}: {error}"


def _upstream_detail(exc: Exception) -> str:
    """Combine an exception's message with the upstream body's message, if any."""
    message = str(exc) or "Unknown error"
    if isinstance(exc, UpstreamApiError) and isinstance(exc.body, dict):
        body_message = exc.body.get("message")
        if body_message and body_message != message:
            return f"{message}. {body_message}"
    return message


async def _fetch_slow_queries(
    client: MetabaseClient,
    report: dict[str, Any],
    database_id: int,
    num_slow_queries: int,
    request_id: str | None,
) -> None:
    sql = build_slow_queries_sql(num_slow_queries)
    log_data = {"request_id": request_id, "database_id": database_id}
    _LOGGER.debug(
        "[diagnostics] Executing slow query diagnostics",
        extra={"data": {**log_data, "query": _one_line(sql)}},
    )
    try:
        response = await client.run_native_query(database_id, sql)
    except Exception as e:
        _LOGGER.warning(
            f"[diagnostics] Failed to fetch slow queries from pg_stat_statements: {e}",
            extra={"data": log_data},
        )
        report["slow_queries_error"] = (
            f"Failed to fetch from pg_stat_statements: {_upstream_detail(e)}. "
            "Ensure the extension is enabled and the Metabase user has permissions."
        )
        return

    rows, error, failed = _extract_rows(response)
    if rows is not None:
        report["slow_queries"] = rows
    elif error is not None:
        _LOGGER.warning(
            "[diagnostics] Slow query diagnostics failed to execute or returned an error",
            extra={"data": {**log_data, "error": error}},
        )
        if failed:
            report["slow_queries_error"] = (
                f"{_describe_error(error, failed)}. "
                "Ensure pg_stat_statements is enabled and permissions are correct."
            )
        else:
            report["slow_queries_error"] = f"{_describe_error(error, failed)}."
    else:
        _LOGGER.warning(
            "[diagnostics] Unexpected response structure for slow queries",
            extra={"data": {**log_data, "response": response}},
        )
        report["slow_queries_error"] = (
            "Unexpected response structure from Metabase for slow queries."
        )


async def _fetch_table_rows(
    client: MetabaseClient,
    table_analysis: dict[str, Any],
    field: str,
    label: str,
    sql: str,
    database_id: int,
    request_id: str | None,
) -> None:
    """Run one table-scoped query, storing rows in `field` or an error message in `<field>_error`."""
    log_data = {
        "request_id": request_id,
        "database_id": database_id,
        "table": table_analysis["table_name"],
    }
    _LOGGER.debug(
        f"[diagnostics] Executing {label} diagnostics",
        extra={"data": {**log_data, "query": _one_line(sql)}},
    )
    try:
        response = await client.run_native_query(database_id, sql)
    except McpError as e:
        _LOGGER.warning(
            f"[diagnostics] {label.capitalize()} query failed: {e}",
            extra={"data": log_data},
        )
        table_analysis[f"{field}_error"] = f"Failed to fetch {label}: {_upstream_detail(e)}"
        return

    rows, error, failed = _extract_rows(response)
    if rows is not None:
        table_analysis[field] = rows
    elif error is not None:
        _LOGGER.warning(
            f"[diagnostics] {label.capitalize()} query failed or returned an error",
            extra={"data": {**log_data, "error": error}},
        )
        table_analysis[f"{field}_error"] = _describe_error(error, failed)
    else:
        _LOGGER.warning(
            f"[diagnostics] Unexpected response structure for {label}",
            extra={"data": {**log_data, "response": response}},
        )
        table_analysis[f"{field}_error"] = (
            f"Unexpected response structure from Metabase for {label}."
        )


async def fetch_postgres_diagnostics(
    client: MetabaseClient,
    database_id: int,
    num_slow_queries: int = DEFAULT_NUM_SLOW_QUERIES,
    target_table_name: str | None = None,
    request_id: str | None = None,
) -> dict[str, Any]:
    """
    Build the PostgreSQL performance diagnostics report for one Metabase database.

    Args:
        client (MetabaseClient): Upstream client used for every native query.
        database_id (int): Metabase id of the PostgreSQL database.
        num_slow_queries (int): Number of slowest statements to report. Callers normalize this beforehand.
        target_table_name (str | None): Table to analyze for index usage and scan statistics. When None, the
            `table_analysis` section is omitted.
        request_id (str | None): Correlation id attached to log records.

    Returns:
        dict[str, Any]: The diagnostics report with keys:
            - 'database_id' (int)
            - 'parameters_used' (dict): 'num_slow_queries' and 'target_table_name' (None when absent)
            - 'slow_queries' (list): Rows from pg_stat_statements, empty when the query failed
            - 'slow_queries_error' (str, optional)
            - 'table_analysis' (dict, optional): 'table_name', 'index_usage', 'scan_stats' and the optional
              'index_usage_error' / 'scan_stats_error'
            - 'table_analysis_error' (str, optional): Set when the table block failed unexpectedly
    """
    report: dict[str, Any] = {
        "database_id": database_id,
        "parameters_used": {
            "num_slow_queries": num_slow_queries,
            "target_table_name": target_table_name,
        },
        "slow_queries": [],
    }

    await _fetch_slow_queries(client, report, database_id, num_slow_queries, request_id)

    if target_table_name:
        table_analysis: dict[str, Any] = {
            "table_name": target_table_name,
            "index_usage": [],
            "scan_stats": [],
        }
        report["table_analysis"] = table_analysis
        try:
            await _fetch_table_rows(
                client,
                table_analysis,
                "index_usage",
                "index usage",
                build_index_usage_sql(target_table_name),
                database_id,
                request_id,
            )
            await _fetch_table_rows(
                client,
                table_analysis,
                "scan_stats",
                "table scans",
                build_table_scan_sql(target_table_name),
                database_id,
                request_id,
            )
        except Exception as e:
            _LOGGER.warning(
                f"[diagnostics] Failed to fetch table diagnostics: {e!r}",
                extra={
                    "data": {
                        "request_id": request_id,
                        "database_id": database_id,
                        "table": target_table_name,
                    }
                },
            )
            report["table_analysis_error"] = (
                f"Failed to fetch diagnostics for table {target_table_name}: "
                f"{_upstream_detail(e)}"
            )

    return report
