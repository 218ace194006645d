"""Engine side of the SQL command bridge.

Single source of truth for the package version so that code, tests, and
scripts can import it without duplicating literals.
"""

PACKAGE_VERSION = "0.1.0"  # Keep in sync with pyproject version.

__all__ = ["PACKAGE_VERSION"]
