"""Postal code lookup used to auto-fill address forms."""

import logging
import os
from typing import Any, Protocol

import httpx

from .errors import PostalLookupError
from .models import DEFAULT_COUNTRY, PostalInfo
from .utils import validate_postal_code

logger = logging.getLogger(__name__)

DEFAULT_POSTAL_API_URL = "https://api.postalpincode.in/pincode"
POSTAL_API_URL = os.environ.get("STOREFRONT_POSTAL_API_URL", DEFAULT_POSTAL_API_URL)
DEFAULT_TIMEOUT_SECONDS = 5.0


class PostalLookup(Protocol):
    """Resolves a 6-digit postal code to city/state/country."""

    def lookup(self, postal_code: str) -> PostalInfo:
        """
        Raises:
            PostalLookupError: If the code cannot be resolved.
        """
        ...


class HttpPostalLookup:
    """HTTP client for the public India Post PIN code API."""

    def __init__(
        self,
        base_url: str = POSTAL_API_URL,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        client: httpx.Client | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.Client(timeout=httpx.Timeout(timeout_seconds))

    def close(self) -> None:
        """Closes the underlying HTTP client."""
        self._client.close()

    def lookup(self, postal_code: str) -> PostalInfo:
        url = f"{self._base_url}/{postal_code}"
        try:
            resp = self._client.get(url)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPStatusError as e:
            raise PostalLookupError(postal_code, f"HTTP {e.response.status_code}") from e
        except httpx.RequestError as e:
            raise PostalLookupError(postal_code, f"request error: {e}") from e
        except ValueError as e:
            raise PostalLookupError(postal_code, "non-JSON response") from e

        return _parse_response(postal_code, data)


def _parse_response(postal_code: str, data: Any) -> PostalInfo:
    # [{"Status": "Success", "PostOffice": [{"District": ..., "State": ..., "Country": ...}]}]
    if not isinstance(data, list) or not data or not isinstance(data[0], dict):
        raise PostalLookupError(postal_code, "unexpected response shape")
    entry = data[0]
    offices = entry.get("PostOffice") or []
    if entry.get("Status") != "Success" or not offices:
        raise PostalLookupError(postal_code, entry.get("Message") or "no post office found")
    office = offices[0]
    return PostalInfo(
        postal_code=postal_code,
        city=office.get("District") or office.get("Name", ""),
        state=office.get("State", ""),
        country=office.get("Country") or DEFAULT_COUNTRY,
    )


def autofill(lookup: PostalLookup, postal_code: str) -> PostalInfo | None:
    """
    Resolve a postal code for form auto-fill.

    Returns None instead of raising on any lookup failure, leaving the
    customer to type city and state by hand.

    Raises:
        ValidationError: If the postal code itself is malformed.
    """
    postal_code = validate_postal_code(postal_code)
    try:
        return lookup.lookup(postal_code)
    except PostalLookupError as e:
        logger.warning("Postal auto-fill unavailable: %s", e)
        return None
