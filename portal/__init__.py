"""Photos portal: CAS-authenticated session portal."""

__version__ = "0.1.0"
