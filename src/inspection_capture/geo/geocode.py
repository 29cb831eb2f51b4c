"""HTTP client for the reverse-geocoding service."""

from __future__ import annotations

import logging
from threading import Lock
from typing import Any, Mapping

import requests
from requests import Session
from tenacity import (  # type: ignore[import-untyped]
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from ..io.models import AddressDetails

logger = logging.getLogger(__name__)

DEFAULT_GEOCODE_URL = "https://nominatim.openstreetmap.org/reverse"
DEFAULT_USER_AGENT = "InspectionCapture/1.0"
_DEFAULT_TIMEOUT = 3.0

# Each field takes the first non-empty key, in order.
_ADDRESS_FALLBACKS: dict[str, tuple[str, ...]] = {
    "road": ("road", "street", "footway"),
    "village": ("village", "hamlet", "neighbourhood"),
    "suburb": ("suburb", "subdistrict"),
    "district": ("city_district", "district"),
    "city": ("city", "town", "municipality", "county"),
    "postcode": ("postcode",),
}


class GeocodeHTTPStatusError(Exception):
    """Raised when the geocoding service answers with a non-2xx status."""

    def __init__(self, status_code: int) -> None:
        super().__init__(f"Geocoder returned status {status_code}")
        self.status_code = status_code


def parse_address(payload: Mapping[str, Any]) -> AddressDetails | None:
    """Build :class:`AddressDetails` from a Nominatim-style JSON payload."""
    if not isinstance(payload, Mapping):
        return None
    raw = payload.get("address")
    address: Mapping[str, Any] = raw if isinstance(raw, Mapping) else {}
    fields: dict[str, str | None] = {}
    for name, keys in _ADDRESS_FALLBACKS.items():
        fields[name] = _first_text(address, keys)
    display_name = payload.get("display_name")
    if not any(fields.values()) and not display_name:
        return None
    return AddressDetails(
        display_name=str(display_name) if display_name else None, **fields
    )


class GeocoderClosedError(Exception):
    """Raised when a closed geocoder is asked to open a new session."""


class ReverseGeocoder:
    """Resolve coordinates to an address with a strict per-request timeout."""

    def __init__(
        self,
        url: str = DEFAULT_GEOCODE_URL,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = _DEFAULT_TIMEOUT,
        session: Session | None = None,
    ) -> None:
        self.url = url
        self.user_agent = user_agent
        self.timeout = timeout
        self._session = session
        self._session_lock = Lock()
        self._closed = False
        self._retryer = Retrying(
            stop=stop_after_attempt(2),
            wait=wait_fixed(0.2),
            retry=retry_if_exception_type(requests.ConnectionError),
            before_sleep=before_sleep_log(logger, logging.DEBUG),
            reraise=True,
        )

    def _get_session(self) -> Session:
        with self._session_lock:
            if self._closed:
                raise GeocoderClosedError("Geocoder was closed")
            if self._session is None:
                session = requests.Session()
                session.headers.update(
                    {
                        "User-Agent": self.user_agent,
                        "Accept": "application/json",
                    }
                )
                self._session = session
            return self._session

    def _fetch_once(self, latitude: float, longitude: float) -> Mapping[str, Any]:
        response = self._get_session().get(
            self.url,
            params={
                "lat": f"{latitude:.7f}",
                "lon": f"{longitude:.7f}",
                "format": "json",
                "addressdetails": 1,
            },
            timeout=self.timeout,
        )
        if not 200 <= response.status_code < 300:
            raise GeocodeHTTPStatusError(response.status_code)
        return response.json()

    def reverse(self, latitude: float, longitude: float) -> AddressDetails | None:
        """Return the address at the given coordinates, or ``None`` on any failure."""
        try:
            payload = self._retryer(lambda: self._fetch_once(latitude, longitude))
        except GeocodeHTTPStatusError as exc:
            logger.warning("Geocoding failed: %s", exc)
        except requests.Timeout:
            logger.warning("Geocoding timed out after %.1fs", self.timeout)
        except requests.RequestException as exc:
            logger.warning("Geocoding request error: %s", exc)
        except ValueError:
            logger.warning("Geocoder returned invalid JSON")
        except GeocoderClosedError:
            logger.debug("Geocoding abandoned after close")
        else:
            return parse_address(payload)
        return None

    def close(self) -> None:
        with self._session_lock:
            self._closed = True
            if self._session is not None:
                self._session.close()
                self._session = None


def _first_text(source: Mapping[str, Any], keys: tuple[str, ...]) -> str | None:
    for key in keys:
        value = source.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None
