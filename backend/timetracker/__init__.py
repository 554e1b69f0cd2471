"""Job time tracker: data access, caching and aggregation service."""

import logging

__version__ = "1.0.0"

# Custom TRACE level, shared by every module in the package
TRACE = 5
if not hasattr(logging, "TRACE"):
    logging.TRACE = TRACE
    logging.addLevelName(TRACE, "TRACE")

if not hasattr(logging.Logger, "trace"):
    def _trace(self, msg, *args, **kwargs):
        if self.isEnabledFor(TRACE):
            self._log(TRACE, msg, args, **kwargs)

    logging.Logger.trace = _trace
