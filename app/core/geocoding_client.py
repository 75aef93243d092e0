"""
Reverse geocoding client (Nominatim-compatible JSON API).

Responsibilities:
  - Call the reverse endpoint with latitude/longitude.
  - Turn the provider's `address` block into the fields of our address form.

Every address component is optional: providers return different keys per
region (city vs town vs village, ...), so the parser walks fallbacks.
"""

import logging
from dataclasses import dataclass

import httpx

from app.core.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()


class GeocodingError(Exception):
    """Reverse geocoding failed (HTTP error, bad payload, network)."""


@dataclass
class GeocodedAddress:
    address: str
    city: str
    state: str
    pincode: str
    country: str = "India"


def _first(addr: dict, *keys: str) -> str:
    for key in keys:
        value = addr.get(key)
        if value:
            return str(value).strip()
    return ""


def parse_address(data: dict) -> GeocodedAddress | None:
    """
    Map a Nominatim `reverse?format=json&addressdetails=1` response.

    Returns None when the response carries no address block.
    Country is always India: the store only ships domestically.
    """
    addr = data.get("address") if isinstance(data, dict) else None
    if not addr:
        return None

    house_number = _first(addr, "house_number", "building")
    road = _first(addr, "road", "street", "pedestrian", "path")
    suburb = _first(addr, "suburb", "neighbourhood", "quarter", "residential")
    city = _first(addr, "city", "town", "village", "municipality", "county")
    state = _first(addr, "state", "province", "region")
    pincode = _first(addr, "postcode").replace(" ", "")

    parts = [p for p in (house_number, road) if p]
    if suburb and suburb != city:
        parts.append(suburb)

    if parts:
        line = ", ".join(parts)
    else:
        display_name = data.get("display_name") or ""
        line = display_name.split(",")[0].strip() or "Current Location"

    return GeocodedAddress(address=line, city=city, state=state, pincode=pincode)


class ReverseGeocoder:
    """
    Thin async wrapper around the reverse geocoding HTTP endpoint.

    `transport` lets tests plug in httpx.MockTransport.
    """

    def __init__(
        self,
        url: str | None = None,
        user_agent: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = url or settings.GEOCODE_REVERSE_URL
        self.user_agent = user_agent or settings.GEOCODE_USER_AGENT
        self.timeout = timeout if timeout is not None else settings.GEOCODE_TIMEOUT_SECONDS
        self.transport = transport

    async def reverse(self, latitude: float, longitude: float) -> GeocodedAddress | None:
        """
        Raises:
            GeocodingError: on non-2xx responses, invalid JSON or network errors.
        """
        params = {
            "format": "json",
            "lat": latitude,
            "lon": longitude,
            "addressdetails": 1,
            "accept-language": "en",
        }
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                transport=self.transport,
                headers={"User-Agent": self.user_agent},
            ) as client:
                response = await client.get(self.url, params=params)
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise GeocodingError(str(e)) from e

        return parse_address(data)
