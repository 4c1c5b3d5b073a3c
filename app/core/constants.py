"""Application-wide constants.

This module centralizes magic numbers used by the bundle engine and its
HTTP surface. For environment-specific configuration, see config.py.
"""

# =============================================================================
# Pagination Defaults
# =============================================================================

# Default page size for list endpoints
DEFAULT_PAGE_SIZE: int = 20

# Maximum page size to prevent abuse
MAX_PAGE_SIZE: int = 100

# =============================================================================
# Discount Rules
# =============================================================================

# percent_off is expressed in whole percent points
PERCENT_OFF_MIN: float = 0.0
PERCENT_OFF_MAX: float = 100.0

# Cumulative discount ceilings are fractions (0.5 = 50%)
CUMULATIVE_DISCOUNT_MIN: float = 0.0
CUMULATIVE_DISCOUNT_MAX: float = 1.0

# Guard arithmetic works on fractions; compare with this tolerance
DISCOUNT_PCT_EPSILON: float = 1e-9

# =============================================================================
# Content Limits
# =============================================================================

# Items a single bundle may hold
MAX_ITEMS_PER_BUNDLE: int = 50

# Quantity of one component inside a bundle
MAX_ITEM_QUANTITY: int = 1000

# broken_reason / archived_reason are truncated to this length
REASON_MAX_LENGTH: int = 500

# Variant ids listed inside a broken_reason before eliding the rest
BROKEN_REASON_MAX_VARIANTS: int = 10

# =============================================================================
# Reservation
# =============================================================================

# Largest single reserve/release request
MAX_RESERVATION_QUANTITY: int = 1000

# =============================================================================
# Sweeps (Celery beat)
# =============================================================================

# Minutes between availability recompute sweeps
RECOMPUTE_SWEEP_INTERVAL_MINUTES: int = 15

# Minutes between auto-expire sweeps
EXPIRE_SWEEP_INTERVAL_MINUTES: int = 5
