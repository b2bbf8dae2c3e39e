"""Core - settings and logging."""

from ledger.core.config import LedgerSettings, get_settings
from ledger.core.logging import setup_logging
