"""
Shared constants for tokenmeter.

This module provides a single source of truth for default values
that are used across multiple modules.
"""

# Model/encoding defaults
DEFAULT_MODEL = "gpt-4"
"""Model used when a caller does not name one, or names an unrecognised family."""

DEFAULT_ENCODING_NAME = "cl100k_base"
"""Encoding used by general-purpose OpenAI-family models and the approximation."""

# Fallback estimation
DEFAULT_CHARS_PER_TOKEN = 4
"""Characters per token assumed by the length-based fallback estimate."""

MIN_ESTIMATED_TOKENS = 1
"""Smallest token count the fallback estimate ever reports."""

# Chat message accounting
CHAT_BASE_OVERHEAD = 3
"""Tokens added once per conversation (reply priming)."""

CHAT_MESSAGE_OVERHEAD = 4
"""Tokens added per message for role/separator framing."""

# Timing
ELAPSED_MS_PRECISION = 2
"""Decimal places kept in reported elapsed times."""
