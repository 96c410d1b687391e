"""
Input Validators

Destination URL policy applied when links are created or updated.
The redirect path never re-validates a stored destination.

Security Considerations:
- Only HTTPS destinations (no http:, javascript:, file:, data:, ...)
- Links may not point at localhost or private network ranges
"""

from urllib.parse import urlparse

from golinks.core.exceptions import InvalidDestinationURLError

PRIVATE_HOST_PREFIXES = ("192.168.", "10.", "172.16.", "169.254.")
LOOPBACK_HOSTS = {"localhost", "127.0.0.1", "::1", "[::1]"}


def validate_destination_url(url: str) -> str:
    """
    Validate a destination URL against the link policy.

    Args:
        url: The destination URL

    Returns:
        The URL unchanged when it is acceptable

    Raises:
        InvalidDestinationURLError: With an error code naming the violated rule
    """
    try:
        parsed = urlparse(url)
        # Accessing .port validates the netloc
        parsed.port
    except ValueError as e:
        raise InvalidDestinationURLError(
            url,
            reason=f"Invalid URL format: {e}",
            error_code="MALFORMED_URL",
            hint="Ensure the URL is properly formatted (e.g., https://example.com/page)",
        )

    if not parsed.scheme:
        raise InvalidDestinationURLError(
            url,
            reason="Invalid URL format: missing scheme",
            error_code="MALFORMED_URL",
            hint="Ensure the URL is properly formatted (e.g., https://example.com/page)",
        )

    if parsed.scheme.lower() != "https":
        raise InvalidDestinationURLError(
            url,
            reason=f"Security: Only HTTPS URLs are allowed. Got protocol: {parsed.scheme}:",
            error_code="INSECURE_PROTOCOL",
            hint=f"Change the URL to use HTTPS (https://) instead of {parsed.scheme}:",
        )

    hostname = (parsed.hostname or "").lower()
    if not hostname:
        raise InvalidDestinationURLError(
            url,
            reason="Invalid URL: Missing hostname",
            error_code="MISSING_HOSTNAME",
            hint="URL must include a domain name (e.g., https://example.com/path)",
        )

    if hostname in LOOPBACK_HOSTS or hostname.startswith(PRIVATE_HOST_PREFIXES):
        raise InvalidDestinationURLError(
            url,
            reason=f"Security: URLs pointing to localhost or private networks are not allowed ({hostname})",
            error_code="PRIVATE_NETWORK_BLOCKED",
            hint="Use a public HTTPS URL instead of localhost or private IP addresses.",
        )

    return url
