"""Test utilities for perch applications.

Provides an async test client that drives any ASGI application in
process::

    from perch.testing import TestClient
"""

from perch.testing.client import TestClient

__all__ = ["TestClient"]
