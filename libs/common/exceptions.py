"""
Exception hierarchy for the event-study platform.

This module defines the base exceptions shared by every library in the
repository. Domain packages (e.g. ``libs.political_backtest``) extend these
with their own coded errors so callers can catch at whichever level of
precision they need.
"""


class EventStudyPlatformError(Exception):
    """
    Base exception for all platform errors.

    All custom exceptions in the platform inherit from this class,
    allowing for catch-all error handling when needed.

    Example:
        >>> try:
        ...     # event study code
        ...     pass
        ... except EventStudyPlatformError as e:
        ...     logger.error(f"Platform error: {e}")
    """

    pass


class DataQualityError(EventStudyPlatformError):
    """
    Raised when input data fails quality checks.

    This includes malformed disclosure rows, invalid dates, broken price
    series, or any other data integrity issue that makes a run unsound.

    Example:
        >>> if close <= 0:
        ...     raise DataQualityError(f"Non-positive close {close} for {symbol}")
    """

    pass


class ConfigurationError(EventStudyPlatformError):
    """
    Raised when required configuration is missing or inconsistent.

    Example:
        >>> if not reports_root.exists():
        ...     raise ConfigurationError(f"Reports root {reports_root} does not exist")
    """

    pass
