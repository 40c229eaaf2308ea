"""Parse raw EML text into ordered headers and a body, and pull public IPv4 addresses from them.
This intentionally keeps things simple (line-based parsing) but handles folded multi-line headers.
"""
import re
from dataclasses import dataclass, field
from typing import List

# Header line: one or more word/hyphen characters followed by a colon at line start
_HEADER_RE = re.compile(r'^[A-Za-z0-9_-]+:')

_OCTET = r'(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)'
_IPV4_RE = re.compile(r'\b(?:' + _OCTET + r'\.){3}' + _OCTET + r'\b', re.ASCII)


@dataclass
class Header:
    name: str
    value: str

    def to_dict(self) -> dict:
        return {'name': self.name, 'value': self.value}


@dataclass
class ParsedMessage:
    headers: List[Header] = field(default_factory=list)
    body: str = ''

    def to_dict(self) -> dict:
        return {'headers': [h.to_dict() for h in self.headers], 'body': self.body}


def parse_eml(raw_text: str) -> ParsedMessage:
    """Split raw message text into headers (in encounter order) and a body.

    The header block ends at the first blank line; nothing after it is ever
    treated as a header. Lines in the header block that are neither a header
    nor a continuation are ignored. Never raises.
    """
    headers = []
    body_lines = []
    in_headers = True
    name, value = '', ''

    for line in raw_text.split('\n'):
        if not in_headers:
            body_lines.append(line + '\n')
            continue

        if not line.strip():
            if name:
                headers.append(Header(name, value))
            name, value = '', ''
            in_headers = False
        elif _HEADER_RE.match(line):
            if name:
                headers.append(Header(name, value))
            left, rest = line.split(':', 1)
            name, value = left.strip(), rest.strip()
        elif line[:1] in (' ', '\t'):
            # continuation with nothing pending is dropped
            if name:
                value = f"{value} {line.strip()}"

    # no blank line: the whole message was headers
    if in_headers and name:
        headers.append(Header(name, value))

    return ParsedMessage(headers=headers, body=''.join(body_lines).rstrip())


def is_private_ip(ip: str) -> bool:
    """Return True for 10/8, 172.16/12, 192.168/16 and 127/8 addresses.

    Link-local (169.254/16) and shared (100.64/10) space are not treated as private.
    """
    octets = [int(p) for p in ip.split('.')]
    first, second = octets[0], octets[1]
    if first == 10 or first == 127:
        return True
    if first == 172 and 16 <= second <= 31:
        return True
    if first == 192 and second == 168:
        return True
    return False


def extract_public_ips(headers: List[Header]) -> List[str]:
    """Extract public IPv4 addresses from header values (unique, first-appearance order)."""
    ips = []
    seen = set()
    for header in headers:
        for ip in _IPV4_RE.findall(header.value):
            if ip in seen or is_private_ip(ip):
                continue
            seen.add(ip)
            ips.append(ip)
    return ips
