"""
Errors raised by the multi-provider client.
"""


class ProviderError(Exception):
    """A provider call failed (network, authentication or API error).

    The vendor exception is kept as `__cause__`.
    """

    def __init__(self, provider: str, message: str):
        super().__init__(f"{provider} request failed: {message}")
        self.provider = provider
        self.message = message


class ResponseParseError(ValueError):
    """A provider response did not have the expected shape."""

    def __init__(self, provider: str, message: str, raw_response: str = ""):
        super().__init__(f"Failed to parse {provider} response as JSON: {message}")
        self.provider = provider
        self.raw_response = raw_response
