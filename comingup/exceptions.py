"""Custom exception hierarchy for the comingup feed engine.

Content-level problems in a feed (bad dates, unknown zones, malformed
recurrence rules) never escape the engine: the components that raise these
exceptions are always wrapped by a caller that turns them into an "absent"
result. Only contract violations of the public API propagate to callers.
"""


class ComingUpError(Exception):
    """Base exception for all comingup errors.

    Catch this to handle any engine error in one place.
    """


class InvalidDateError(ComingUpError, ValueError):
    """A date or date-time value could not be interpreted.

    Raised when:
    - The value matches none of the supported forms (date, UTC, floating)
    - The digits describe an impossible calendar date or time of day

    Only raised by the strict date parser; the resolver used while building
    records converts it into ``None``.
    """


class RRuleParseError(ComingUpError, ValueError):
    """A recurrence rule string could not be parsed.

    Raised when the rule is empty or carries no FREQ part. The weekly
    expander treats it as "nothing to expand".
    """


class FeedContractError(ComingUpError, TypeError):
    """The public API was called with arguments of the wrong type.

    Raised when the feed text is not a string or the reference time is not a
    datetime. This is a programming error, not a feed content problem.
    """
