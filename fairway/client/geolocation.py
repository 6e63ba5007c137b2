"""
Fairway client: device geolocation

The device's positioning API is injected as a Geolocator. Failures are
reported as GeolocationError with the same three codes browsers use.
"""
import asyncio
from dataclasses import dataclass
from enum import IntEnum
from typing import Protocol

GEOLOCATION_TIMEOUT_SECONDS = 5.0


class GeolocationErrorCode(IntEnum):
    PERMISSION_DENIED = 1
    POSITION_UNAVAILABLE = 2
    TIMEOUT = 3


class GeolocationError(Exception):

    def __init__(self, code: GeolocationErrorCode, message: str):
        self.code = GeolocationErrorCode(code)
        self.message = message
        super().__init__(message)


@dataclass(frozen=True)
class Coordinates:
    latitude: float
    longitude: float


class Geolocator(Protocol):
    async def current_position(self) -> Coordinates:
        """Return the device position or raise GeolocationError."""
        ...


async def request_geolocation(
    geolocator: Geolocator | None,
    timeout: float = GEOLOCATION_TIMEOUT_SECONDS,
) -> Coordinates:
    if geolocator is None:
        raise GeolocationError(GeolocationErrorCode.POSITION_UNAVAILABLE, "Geolocation is not supported")
    try:
        return await asyncio.wait_for(geolocator.current_position(), timeout=timeout)
    except asyncio.TimeoutError:
        raise GeolocationError(GeolocationErrorCode.TIMEOUT, "Location request timed out")
