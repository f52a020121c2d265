from __future__ import annotations

CONFIG = "docdrift.config.v1"
VERIFICATION_RESULT = "docdrift.verification-result.v1"
