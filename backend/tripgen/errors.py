"""Pipeline-level exceptions.

Only these errors escape the itinerary pipeline; every other failure is
absorbed by the stage that hit it.
"""


class PipelineError(Exception):
    """Base exception for fatal pipeline failures."""


class MissingCredentialsError(PipelineError):
    """Raised when the recommendation service has no usable credentials."""


class InvalidTripRequestError(PipelineError):
    """Raised when a trip request cannot be validated."""


class PipelineTimeoutError(PipelineError):
    """Raised when a run exceeds the hard latency ceiling."""
