"""
Find Cast devices on the local network.

mDNS browse for the Cast service type, then ask each device for its friendly
name through its description document:

    devices = discover(timeout=3)
    # [DiscoveredDevice(friendly_name='LivingRoomTV', address=IPv4Address('10.0.0.5'))]
"""

import ipaddress
import logging
import re
import threading
import time
import urllib.error
import urllib.request
from typing import NamedTuple

from zeroconf import Error as ZeroconfError
from zeroconf import ServiceBrowser, ServiceListener, Zeroconf

from .const import (
    DESCRIPTION_PATH,
    DESCRIPTION_PORT,
    DESCRIPTION_TIMEOUT,
    DISCOVERY_TIMEOUT,
    SERVICE_TYPE,
    UNKNOWN_NAME,
)
from .errors import DiscoveryError

log = logging.getLogger(__name__)

FRIENDLY_NAME_RE = re.compile(r"<friendlyName>(.*)</friendlyName>")


class DiscoveredDevice(NamedTuple):
    friendly_name: str
    address: ipaddress.IPv4Address | ipaddress.IPv6Address

    def to_dict(self) -> dict:
        return {"friendlyName": self.friendly_name, "address": str(self.address)}


class CastListener(ServiceListener):
    """Collects device addresses in first-seen order, without duplicates."""

    def __init__(self):
        self._lock = threading.Lock()
        self._addresses = []

    @property
    def addresses(self) -> list:
        with self._lock:
            return list(self._addresses)

    def add_address(self, address) -> bool:
        try:
            addr = ipaddress.ip_address(address)
        except ValueError:
            log.debug("[Discovery] Ignoring bad address %r", address)
            return False
        with self._lock:
            if addr in self._addresses:
                return False
            self._addresses.append(addr)
        log.debug("[Discovery] Found %s", addr)
        return True

    def add_service(self, zc: Zeroconf, type_: str, name: str) -> None:
        info = zc.get_service_info(type_, name)
        if info is None:
            log.debug("[Discovery] No service info for %s", name)
            return
        for address in info.parsed_addresses():
            self.add_address(address)

    def update_service(self, zc: Zeroconf, type_: str, name: str) -> None:
        self.add_service(zc, type_, name)

    def remove_service(self, zc: Zeroconf, type_: str, name: str) -> None:
        pass


def scan_addresses(timeout=DISCOVERY_TIMEOUT) -> list:
    """Browse for Cast services for ``timeout`` seconds and return unique addresses."""
    listener = CastListener()
    try:
        zc = Zeroconf()
    except (OSError, ZeroconfError) as e:
        raise DiscoveryError(f"Failed to open mDNS socket: {e}") from e

    try:
        browser = ServiceBrowser(zc, SERVICE_TYPE, listener)
        try:
            time.sleep(timeout)
        finally:
            browser.cancel()
    except (OSError, ZeroconfError) as e:
        raise DiscoveryError(f"mDNS browse failed: {e}") from e
    finally:
        zc.close()

    return listener.addresses


def description_url(address) -> str:
    addr = ipaddress.ip_address(address)
    host = f"[{addr}]" if addr.version == 6 else str(addr)
    return f"http://{host}:{DESCRIPTION_PORT}{DESCRIPTION_PATH}"


def resolve_friendly_name(address, timeout=DESCRIPTION_TIMEOUT) -> str:
    """Friendly name from the device description, or "Unknown" on any failure."""
    url = description_url(address)
    try:
        with urllib.request.urlopen(url, timeout=timeout) as resp:
            if not 200 <= resp.status < 300:
                log.debug("[Discovery] %s answered %s", url, resp.status)
                return UNKNOWN_NAME
            body = resp.read().decode("utf-8", errors="replace")
    except (urllib.error.URLError, OSError, ValueError) as e:
        log.debug("[Discovery] Name lookup for %s failed: %s", address, e)
        return UNKNOWN_NAME

    match = FRIENDLY_NAME_RE.search(body)
    if not match:
        return UNKNOWN_NAME
    return match.group(1)


def discover(timeout=DISCOVERY_TIMEOUT) -> list:
    """Discover Cast devices, returns DiscoveredDevice list in discovery order."""
    log.info("[Discovery] Scanning network (timeout: %ss)...", timeout)
    addresses = scan_addresses(timeout)

    # TODO resolve names concurrently, each lookup can take DESCRIPTION_TIMEOUT
    devices = []
    for address in addresses:
        name = resolve_friendly_name(address)
        devices.append(DiscoveredDevice(name, address))
        log.info("[Discovery] Found: %s | IP: %s", name, address)

    log.info("[Discovery] %d device(s) found", len(devices))
    return devices
