"""
Portal Utility Library.

Modules:
--------
logging_setup
    Logging configuration utilities.
"""

from portal.utils.logging_setup import setup_logging
