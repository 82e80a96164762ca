"""Exception types raised by the review pipeline."""


class ReviewLensError(Exception):
    """Base class for all ReviewLens errors."""


class MissingCredentialError(ReviewLensError):
    """No API key could be resolved for the selected provider."""

    def __init__(self, provider: str):
        self.provider = provider
        super().__init__(
            f"{provider.capitalize()} API key not found. "
            "Run `reviewlens configure` or set it in your .env file."
        )


class MalformedResponseError(ReviewLensError):
    """The model output did not contain a parseable JSON object."""


class TransientInvocationError(ReviewLensError):
    """A provider call failed (network, rate limit, server error)."""


class DiscoveryError(ReviewLensError):
    """The review target could not be resolved to source files."""
