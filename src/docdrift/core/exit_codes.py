"""Process exit codes for the docdrift CLI."""

from __future__ import annotations

OK = 0
ERR_USER = 2
ERR_DRIFT = 3
ERR_CONFIG = 4
ERR_VALIDATION = 5
ERR_INTERNAL = 10
