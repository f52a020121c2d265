"""Docdrift core package."""
from .clock import utc_now, utc_now_iso
from .config import Settings, load_settings
from .context import RunContext
from .errors import DriftError
from .logging import log_event
from .result import Err, Ok, Result
from .serialize import dumps_json

__all__ = [
    "DriftError",
    "Err",
    "Ok",
    "Result",
    "RunContext",
    "Settings",
    "dumps_json",
    "load_settings",
    "log_event",
    "utc_now",
    "utc_now_iso",
]
