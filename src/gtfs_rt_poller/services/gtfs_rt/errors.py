"""Exception hierarchy for the poll pipeline."""


class PollerError(Exception):
    """Base class for failures raised by a poll cycle."""

    #: Short machine-readable code surfaced by the HTTP layer.
    code = "poll_failed"
