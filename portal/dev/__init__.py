"""
Development helpers.

Modules:
--------
cas_mock
    Stand-in CAS server for local runs and tests.
"""
