"""Single-job tools: one module per tool (toc, search, read) plus the config subapp."""

from standing_orders.tools.config import config_app

__all__ = ["config_app"]
