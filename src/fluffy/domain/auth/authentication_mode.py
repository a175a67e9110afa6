"""How a user account proves its identity."""

from __future__ import annotations

from enum import StrEnum


class AuthenticationMode(StrEnum):
    """Stored authentication mode; registration always records `INTEGRATED`."""

    INTEGRATED = "integrated"
    EXTERNAL = "external"
