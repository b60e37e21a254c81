"""
Portal Core Package

This package contains core configuration and key material handling
for the portal application.

Modules:
- settings: pydantic-settings configuration (server, security, URLs, routes, DB)
- keys: secret generation and decoding for signed cookies

Environment Variables:
    PORTAL_DEV_MODE: select the dev or prod URLs and database
    PORTAL_SECURITY__SESSION__TOKEN__SECRET: hex secret for session cookies
    PORTAL_SECURITY__CSRF__TOKEN__SECRET: hex secret for CSRF cookies
"""
