"""
Session Logging Module

Provides per-test-session logging for the workflow test harness.
"""
from agentdesk.logging.session_logger import (
    SessionLogEntry,
    SessionLogger,
    get_session_logger,
    remove_session_logger,
)

__all__ = ['SessionLogEntry', 'SessionLogger', 'get_session_logger', 'remove_session_logger']
