"""Client for server-side bot-check token verification (Cloudflare Turnstile)."""

import logging

import httpx

from restaurant_order_service.errors import InternalError

logger = logging.getLogger(__name__)

SITEVERIFY_URL = "https://challenges.cloudflare.com/turnstile/v0/siteverify"

# Cloudflare's documented test secret that always passes verification
TURNSTILE_TEST_SECRET = "1x0000000000000000000000000000000AA"


class BotCheckVerifier:
    """Verifies bot-check tokens against the Turnstile siteverify API.

    Verification fails closed: a missing token, a transport error, a timeout,
    or any unexpected response is treated as a failed check.
    """

    def __init__(
        self,
        production_secret: str | None,
        development_secret: str | None = TURNSTILE_TEST_SECRET,
        production_domain: str | None = None,
        timeout_seconds: float = 5.0,
        verify_url: str = SITEVERIFY_URL,
    ) -> None:
        """Initialize the verifier.

        Args:
            production_secret: Secret key used for requests from the production origin
            development_secret: Secret key used for every other origin
            production_domain: Domain that identifies production requests by Origin/Referer
            timeout_seconds: Upper bound for the verification call
            verify_url: Siteverify endpoint
        """
        self.production_secret = production_secret
        self.development_secret = development_secret
        self.production_domain = production_domain
        self.timeout_seconds = timeout_seconds
        self.verify_url = verify_url

    def is_production_origin(self, origin: str | None) -> bool:
        """Return True when the request origin belongs to the production storefront."""
        if not self.production_domain or not origin:
            return False
        return self.production_domain in origin

    def resolve_secret(self, origin: str | None) -> str:
        """Select the secret key for the request's environment.

        Args:
            origin: Origin or Referer header of the request

        Returns:
            str: Secret key

        Raises:
            InternalError: If no secret is configured for that environment
        """
        is_production = self.is_production_origin(origin)
        secret = self.production_secret if is_production else self.development_secret

        if not secret:
            logger.error(
                "Missing bot-check secret key",
                extra={"is_production": is_production},
            )
            raise InternalError("Server configuration error")

        return secret

    async def verify(
        self, token: str | None, client_address: str | None, origin: str | None = None
    ) -> bool:
        """Verify a bot-check token.

        Args:
            token: Token produced by the storefront widget
            client_address: Client address derived from connection headers, if known
            origin: Origin or Referer header used to select the secret

        Returns:
            bool: True if the verification service accepted the token, False otherwise

        Raises:
            InternalError: If no secret is configured for the request's environment
        """
        if not token or not token.strip():
            logger.warning("Bot check rejected: missing token")
            return False

        secret = self.resolve_secret(origin)

        form = {"secret": secret, "response": token}
        if client_address:
            form["remoteip"] = client_address

        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.post(self.verify_url, data=form)
                response.raise_for_status()
                outcome = response.json()

        except (httpx.HTTPStatusError, httpx.RequestError) as e:
            logger.error(f"Bot-check verification call failed: {e}")
            return False
        except ValueError as e:
            logger.error(f"Bot-check verification returned invalid JSON: {e}")
            return False

        if not isinstance(outcome, dict) or outcome.get("success") is not True:
            error_codes = outcome.get("error-codes") if isinstance(outcome, dict) else None
            logger.warning(f"Bot check rejected by verification service: {error_codes}")
            return False

        return True
