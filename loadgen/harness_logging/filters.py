"""Log filters for default context fields."""

import logging

CONTEXT_FIELDS = ("scenario", "vu_id")


class DefaultContextFilter(logging.Filter):
    """Adds placeholder scenario/vu_id fields when no VU context is active.

    Keeps the dev format string valid for records emitted outside VU threads.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        for name in CONTEXT_FIELDS:
            if not hasattr(record, name):
                setattr(record, name, "-")
        return True
