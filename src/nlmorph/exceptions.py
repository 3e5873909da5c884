# src/nlmorph/exceptions.py
from __future__ import annotations

class NlmorphError(Exception):
    """Base for all domain errors."""

class ConfigError(NlmorphError):
    """Invalid or missing configuration."""

class DataNotFound(NlmorphError):
    """Required file(s) or directory not found."""

class FormatError(NlmorphError):
    """Malformed attribute, color string, numeric field or document syntax."""

class StructuralError(NlmorphError):
    """Records or elements cannot be assembled into a coherent tree."""
