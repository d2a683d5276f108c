"""
Location Provider
Supplies the single initial position fix the movement engine starts from
"""

import json
import asyncio
import logging
from typing import Any, Dict, Optional

import aiohttp
import requests

from config import LOCATION_CONFIG
from movement import Position

logger = logging.getLogger(__name__)

PERMISSION_DENIED_MESSAGE = "Permission to access location was denied"
WAITING_MESSAGE = "Waiting for location..."


class LocationError(Exception):
    """Base class for failures to obtain a position fix"""


class LocationPermissionDenied(LocationError):
    """Access to the device location was refused"""

    def __init__(self, message: str = PERMISSION_DENIED_MESSAGE):
        super().__init__(message)


class LocationUnavailable(LocationError):
    """A fix could not be obtained for reasons other than permission"""


def _options(location_config: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    options = dict(LOCATION_CONFIG)
    if location_config:
        options.update(location_config)
    return options


def check_permission(location_config: Optional[Dict[str, Any]] = None):
    """Raise LocationPermissionDenied unless location access is allowed"""
    if not _options(location_config).get('allow', True):
        logger.warning(PERMISSION_DENIED_MESSAGE)
        raise LocationPermissionDenied()


def parse_fix(data: Dict[str, Any]) -> Position:
    """
    Extract a Position from a geolocation response

    Accepts both {'lat', 'lon'} (ip-api style) and {'latitude', 'longitude'}.
    """
    if not isinstance(data, dict):
        raise LocationUnavailable(f"Unexpected location response: {data!r}")

    if data.get('status') == 'fail':
        raise LocationUnavailable(f"Location lookup failed: {data.get('message', 'unknown error')}")

    lat = data.get('latitude', data.get('lat'))
    lon = data.get('longitude', data.get('lon'))
    if lat is None or lon is None:
        raise LocationUnavailable("Location response has no coordinates")

    try:
        return Position(float(lat), float(lon))
    except (TypeError, ValueError) as e:
        raise LocationUnavailable(f"Invalid coordinates in location response: {e}")


def fixed_fix(location_config: Optional[Dict[str, Any]] = None) -> Position:
    """Fix taken straight from configuration"""
    options = _options(location_config)
    return parse_fix({'latitude': options.get('latitude'), 'longitude': options.get('longitude')})


def locate(location_config: Optional[Dict[str, Any]] = None) -> Position:
    """
    Obtain one position fix (blocking)

    Raises:
        LocationPermissionDenied: location access is not allowed
        LocationUnavailable: the configured source could not produce a fix
    """
    options = _options(location_config)
    check_permission(options)

    source = options.get('source', 'fixed')
    if source == 'fixed':
        return fixed_fix(options)
    if source != 'ip':
        raise LocationUnavailable(f"Unknown location source: {source}")

    url = options['ip_url']
    try:
        response = requests.get(url, timeout=options.get('timeout', 10))
        response.raise_for_status()
        data = response.json()
    except requests.RequestException as e:
        logger.error(f"Failed to fetch location from {url}: {e}")
        raise LocationUnavailable(f"Failed to fetch location from {url}: {e}")
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse JSON from {url}: {e}")
        raise LocationUnavailable(f"Failed to parse location from {url}: {e}")

    fix = parse_fix(data)
    logger.info(f"Location fix from {url}: {fix.latitude:.5f},{fix.longitude:.5f}")
    return fix


async def locate_async(location_config: Optional[Dict[str, Any]] = None,
                       session: Optional[aiohttp.ClientSession] = None) -> Position:
    """
    Obtain one position fix without blocking the event loop

    Same contract as locate(); an existing aiohttp session may be passed in.
    """
    options = _options(location_config)
    check_permission(options)

    source = options.get('source', 'fixed')
    if source == 'fixed':
        return fixed_fix(options)
    if source != 'ip':
        raise LocationUnavailable(f"Unknown location source: {source}")

    url = options['ip_url']
    timeout = aiohttp.ClientTimeout(total=options.get('timeout', 10))
    own_session = session is None
    if own_session:
        session = aiohttp.ClientSession(timeout=timeout)

    try:
        async with session.get(url, timeout=timeout) as response:
            if response.status != 200:
                raise LocationUnavailable(f"Location service returned status {response.status}")
            data = await response.json(content_type=None)
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        logger.error(f"Failed to fetch location from {url}: {e!r}")
        raise LocationUnavailable(f"Failed to fetch location from {url}: {e!r}")
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse JSON from {url}: {e}")
        raise LocationUnavailable(f"Failed to parse location from {url}: {e}")
    finally:
        if own_session:
            await session.close()

    fix = parse_fix(data)
    logger.info(f"Location fix from {url}: {fix.latitude:.5f},{fix.longitude:.5f}")
    return fix
