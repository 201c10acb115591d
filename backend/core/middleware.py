"""
Per-request SQL accounting for development.

Ledger requests recompute balances and walk category rules, so query counts
are the first thing to drift. With ``DEBUG`` on, ``QueryCountMiddleware``
logs how many statements a request ran, graded against ``QUERY_BUDGET``,
plus the tables it touched and any slow statements.
"""

import logging
import re

from django.conf import settings
from django.db import connection

logger = logging.getLogger(__name__)

# (minimum query count, log level, severity) from worst to best
QUERY_BUDGET = (
    (50, logging.WARNING, "high"),
    (25, logging.INFO, "medium"),
    (10, logging.DEBUG, "low"),
)
SLOW_QUERY_SECONDS = 0.1

TABLE_PATTERN = re.compile(r'\bfrom\s+["`]?([\w.]+)', re.IGNORECASE)


def grade_query_count(count):
    """Return ``(level, severity)`` for ``count`` or ``None`` when under budget."""
    for minimum, level, severity in QUERY_BUDGET:
        if count >= minimum:
            return level, severity
    return None


def summarize_queries(queries):
    """Tables read, slow statements and total time for a list of query dicts."""
    tables = set()
    slow = []
    total_time = 0.0
    for query in queries:
        elapsed = float(query.get("time") or 0)
        total_time += elapsed
        tables.update(TABLE_PATTERN.findall(query["sql"]))
        if elapsed > SLOW_QUERY_SECONDS:
            slow.append({"time": elapsed, "sql": query["sql"][:100]})
    return {
        "tables": sorted(tables),
        "slow_queries": slow[:3],
        "slow_query_count": len(slow),
        "total_time": round(total_time, 4),
    }


class QueryCountMiddleware:
    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        if not settings.DEBUG:
            return self.get_response(request)

        start = len(connection.queries)
        response = self.get_response(request)
        executed = connection.queries[start:]

        if executed:
            self._report(request, executed)
        return response

    def _report(self, request, executed):
        user = getattr(request, "user", None)
        context = {
            "request_path": request.path,
            "request_method": request.method,
            "user_id": user.pk if user is not None and user.is_authenticated else None,
            "query_count": len(executed),
            "action": "request_query_count",
            "component": "QueryCountMiddleware",
        }

        grade = grade_query_count(len(executed))
        if grade is not None:
            level, severity = grade
            logger.log(level, "Request query count", extra={**context, "severity": severity})

        logger.debug(
            "Request query breakdown",
            extra={
                **context,
                **summarize_queries(executed),
                "action": "request_query_breakdown",
                "severity": "low",
            },
        )
