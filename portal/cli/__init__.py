"""
CLI management commands for the portal.

Usage:
    portal serve
    python -m portal.cli.commands init-config
"""
