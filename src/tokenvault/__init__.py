"""TokenVault — bearer credentials for user accounts.

Issues, verifies, rotates and revokes long-lived JWT bearer tokens,
and gives resource modules a small ownership gate to check who owns what.
"""

__version__ = "0.1.0"
