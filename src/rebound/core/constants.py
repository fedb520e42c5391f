"""Global constants for rebound.

Centralizes the timing defaults used by the retry engine and the
network monitor so they stay consistent between config and code.
"""

# =============================================================================
# Retry Defaults
# =============================================================================

DEFAULT_MAX_ATTEMPTS = 3
"""Attempts per retry sequence, including the first try."""

DEFAULT_BASE_DELAY_SECONDS = 1.0
"""Delay before the first retry, before the per-kind multiplier and jitter."""

BACKOFF_CEILING_SECONDS = 30.0
"""Upper bound on any computed backoff delay (pre-jitter)."""

DEFAULT_JITTER_FACTOR = 1.0
"""Fraction of the delay used as the jitter range (1.0 = full jitter)."""

# =============================================================================
# Network Probe Defaults
# =============================================================================

DEFAULT_HEALTH_PATH = "/api/health"
"""Path probed by HttpNetworkProbe when no explicit URL is configured."""

DEFAULT_PROBE_TIMEOUT_SECONDS = 5.0
"""Timeout for a single active connectivity probe."""

# =============================================================================
# Context Defaults
# =============================================================================

DEFAULT_CONTEXT_URL = "app://local"
"""Location recorded on an ErrorContext when the call site supplies none."""

TRUNCATE_ORIGINAL_MESSAGE_CHARS = 500
"""Maximum characters of a raw failure message kept on an AppError."""
