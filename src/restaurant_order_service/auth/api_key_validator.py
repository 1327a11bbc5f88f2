"""API key validation for operator endpoints.

Public order placement and tracking are anonymous; only the operator order
lookup requires a key. Keys are compared in constant time.
"""

import hmac


def parse_api_keys(raw: str | None) -> list[str]:
    """Split a comma-separated key list from configuration, dropping blanks."""
    return [key.strip() for key in (raw or "").split(",") if key.strip()]


class APIKeyValidator:
    """Validates API keys against a configured set."""

    def __init__(self, api_keys: list[str]) -> None:
        """Initialize validator with list of valid API keys.

        Args:
            api_keys: List of valid API key strings

        Raises:
            ValueError: If api_keys list is empty
        """
        if not api_keys:
            raise ValueError("At least one API key must be provided")

        self.api_keys = tuple(dict.fromkeys(api_keys))

    def validate(self, api_key: str) -> bool:
        """Validate an API key.

        Args:
            api_key: The API key to validate

        Returns:
            bool: True if valid, False otherwise
        """
        candidate = api_key.encode()
        return any(hmac.compare_digest(candidate, key.encode()) for key in self.api_keys)
