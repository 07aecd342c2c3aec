"""Logging filters for enriching log records with request context.

This module provides a logging filter that injects the current request id
into log records using the ContextVar set by the request-id middleware.
Adding the filter to the logging configuration lets the JSON formatter
emit ``request_id`` on every line, including lines logged by the domain
service and the HTTP adapters.
"""

from logging import Filter, LogRecord

from .middleware import REQUEST_ID_CTX


class RequestIdFilter(Filter):
    """Attach a ``request_id`` attribute to log records.

    If no request is in flight, a hyphen ("-") is used as a placeholder so
    formatters can reliably reference ``%(request_id)s``.
    """

    def filter(self, record: LogRecord) -> bool:
        """Populate ``record.request_id`` and allow the record to be logged.

        Args:
            record: The log record to enrich.

        Returns:
            bool: Always True to indicate the record should be processed.
        """
        if not getattr(record, "request_id", None):
            record.request_id = REQUEST_ID_CTX.get()
        return True
