"""Error hierarchy for booking runs.

Transient failures (page did not load, network hiccup) may be retried by
tenacity decorators; permanent failures will not succeed on retry.

Parse misses and booking-action misses are handled locally by the extractor
and booking loop. Anything else that escapes a run propagates to the caller.

Example usage with tenacity:
    @retry(retry=retry_if_exception_type(TransientError), stop=stop_after_attempt(2))
    async def authenticate(page, ...):
        ...
"""


class BookerError(Exception):
    """Base exception for all booker errors."""

    pass


class TransientError(BookerError):
    """Temporary failure that may succeed on retry.

    Examples: navigation timeouts, the listing page not rendering in time.
    """

    pass


class PageUnavailableError(TransientError):
    """The planning page could not be loaded or reloaded."""

    pass


class PermanentError(BookerError):
    """Failure that won't succeed on retry."""

    pass


class AuthenticationError(PermanentError):
    """Login failed or no credentials are configured."""

    pass


class ConfigurationError(PermanentError):
    """The booking plan file is missing or invalid."""

    pass


class ParseError(PermanentError):
    """A field could not be derived from card text."""

    pass


class AmbiguousDateError(ParseError):
    """A date/time fragment could not be resolved to an absolute instant.

    Attributes:
        date_fragment: The date text that was being resolved.
        time_fragment: The time text that was being resolved.
    """

    def __init__(self, message: str, date_fragment: str = "", time_fragment: str = ""):
        super().__init__(message)
        self.date_fragment = date_fragment
        self.time_fragment = time_fragment


class StaleCardError(PermanentError):
    """A card reference from an earlier listing generation was used.

    Card handles are only valid for the page state they were extracted from;
    any navigation or reload invalidates them.
    """

    pass
