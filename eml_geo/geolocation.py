"""Resolve public IPs to coarse geolocation data using the ip-api.com JSON endpoint.

Lookups for a batch run concurrently and are awaited jointly. A failed lookup
(network error, bad response, non-success status) is logged and that IP is
simply left out of the result.
"""
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import asdict, dataclass
from typing import Callable, Iterable, List, Optional

import requests

log = logging.getLogger(__name__)

GEO_ENDPOINT = 'http://ip-api.com/json/'
GEO_FIELDS = 'status,message,country,countryCode,regionName,city,lat,lon,isp,query'
DEFAULT_TIMEOUT = 5.0
MAX_WORKERS = 8

FLAG_PLACEHOLDER = '\U0001F3F3'
_REGIONAL_INDICATOR_A = 0x1F1E6


def set_geo_endpoint(url: str):
    """Point lookups at a different ip-api compatible endpoint (trailing slash added if missing)."""
    global GEO_ENDPOINT
    GEO_ENDPOINT = url if url.endswith('/') else url + '/'


def set_default_timeout(seconds: float):
    """Override the per-request timeout used when callers don't pass one."""
    global DEFAULT_TIMEOUT
    if seconds <= 0:
        raise ValueError('timeout must be positive')
    DEFAULT_TIMEOUT = float(seconds)


def set_max_workers(n: int):
    """Cap the number of lookups that run at the same time."""
    global MAX_WORKERS
    if n < 1:
        raise ValueError('max workers must be at least 1')
    MAX_WORKERS = int(n)


@dataclass
class GeoRecord:
    """Geolocation for one public IP."""
    ip: str
    country_name: Optional[str] = None
    country_code: Optional[str] = None
    region_name: Optional[str] = None
    city: Optional[str] = None
    lat: Optional[float] = None
    lon: Optional[float] = None
    isp: Optional[str] = None

    @classmethod
    def from_ipapi(cls, ip: str, data: dict) -> 'GeoRecord':
        return cls(
            ip=data.get('query') or ip,
            country_name=data.get('country'),
            country_code=data.get('countryCode'),
            region_name=data.get('regionName'),
            city=data.get('city'),
            lat=data.get('lat'),
            lon=data.get('lon'),
            isp=data.get('isp'),
        )

    @property
    def flag(self) -> str:
        return country_flag(self.country_code)

    @property
    def place(self) -> str:
        """Human readable 'City, Region, Country' with missing parts skipped."""
        parts = [p for p in (self.city, self.region_name, self.country_name) if p]
        return ', '.join(parts) if parts else 'Unknown location'

    def to_dict(self) -> dict:
        return asdict(self)


def lookup_ip(ip: str, timeout: Optional[float] = None) -> Optional[GeoRecord]:
    """Look up a single IP. Returns None (and logs why) when the lookup fails."""
    url = f"{GEO_ENDPOINT}{ip}"
    try:
        r = requests.get(url, params={'fields': GEO_FIELDS}, timeout=timeout or DEFAULT_TIMEOUT)
        r.raise_for_status()
        data = r.json()
    except requests.RequestException as e:
        log.warning('Geolocation request for %s failed: %s', ip, e)
        return None
    except ValueError as e:
        log.warning('Geolocation response for %s was not valid JSON: %s', ip, e)
        return None

    if not isinstance(data, dict) or data.get('status') != 'success':
        message = data.get('message') if isinstance(data, dict) else None
        log.warning('Geolocation lookup for %s unsuccessful: %s', ip, message or 'no status')
        return None

    log.debug('Resolved %s -> %s/%s', ip, data.get('countryCode'), data.get('city'))
    return GeoRecord.from_ipapi(ip, data)


def resolve_all(ips: Iterable[str],
                lookup: Callable[[str], Optional[GeoRecord]] = lookup_ip,
                max_workers: Optional[int] = None) -> List[GeoRecord]:
    """Resolve every IP concurrently and wait for all of them to settle.

    Returns one record per successful lookup, in completion order.
    """
    ips = list(ips)
    if not ips:
        return []

    workers = min(len(ips), max_workers or MAX_WORKERS)
    records = []
    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = {pool.submit(lookup, ip): ip for ip in ips}
        for future in as_completed(futures):
            ip = futures[future]
            try:
                record = future.result()
            except Exception:
                log.exception('Unexpected error resolving %s', ip)
                continue
            if record is not None:
                records.append(record)
    log.info('Resolved %d of %d IPs', len(records), len(ips))
    return records


def country_flag(code: Optional[str]) -> str:
    """Return the flag emoji for a two-letter country code, or a placeholder."""
    if not code or len(code) != 2:
        return FLAG_PLACEHOLDER
    code = code.upper()
    if not all('A' <= c <= 'Z' for c in code):
        return FLAG_PLACEHOLDER
    return ''.join(chr(_REGIONAL_INDICATOR_A + ord(c) - ord('A')) for c in code)
