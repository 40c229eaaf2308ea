"""Orchestration: read an .eml file, parse it, extract public IPs and resolve them.

`analyze_text` is the pure pipeline. `AnalysisSession` owns the current result
and tags every run with a generation number, so a slow run that finishes after
a newer one can't overwrite the newer result.
"""
import logging
import os
import threading
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from .parser import Header, ParsedMessage, extract_public_ips, parse_eml
from .geolocation import GeoRecord, resolve_all

log = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = ('.eml',)

Resolver = Callable[[List[str]], List[GeoRecord]]


class EmlAnalyzerError(Exception):
    """Base class for errors shown to the user."""


class UnsupportedFileError(EmlAnalyzerError):
    """The selected file doesn't look like an .eml message."""


class FileReadError(EmlAnalyzerError):
    """The selected file could not be read."""


@dataclass
class AnalysisResult:
    message: ParsedMessage
    ips: List[str] = field(default_factory=list)
    geo: List[GeoRecord] = field(default_factory=list)
    generation: int = 0

    def summary(self) -> dict:
        return {
            'headers': len(self.message.headers),
            'header_names': len({h.name.lower() for h in self.message.headers}),
            'public_ips': len(self.ips),
            'locations': len(self.geo),
            'countries': len({g.country_code for g in self.geo if g.country_code}),
        }

    def to_dict(self) -> dict:
        return {
            'headers': [h.to_dict() for h in self.message.headers],
            'body': self.message.body,
            'public_ips': list(self.ips),
            'geolocation': [g.to_dict() for g in self.geo],
            'summary': self.summary(),
        }


def check_extension(path: str):
    """Raise UnsupportedFileError unless path ends in a supported extension."""
    ext = os.path.splitext(str(path))[1].lower()
    if ext not in SUPPORTED_EXTENSIONS:
        raise UnsupportedFileError(f"Unsupported file type '{ext or '(none)'}': please choose an .eml file")


def read_eml_file(path: str) -> str:
    """Read an .eml file as text. Undecodable bytes are replaced and line endings are kept as-is."""
    check_extension(path)
    try:
        with open(path, 'r', encoding='utf-8', errors='replace', newline='') as f:
            return f.read()
    except OSError as e:
        raise FileReadError(f"Could not read {path}: {e.strerror or e}") from e


def analyze_text(raw_text: str, resolver: Optional[Resolver] = resolve_all, generation: int = 0) -> AnalysisResult:
    """Parse raw text, extract public IPs and (optionally) geolocate them."""
    message = parse_eml(raw_text)
    ips = extract_public_ips(message.headers)
    log.debug('Parsed %d headers, %d public IPs', len(message.headers), len(ips))
    geo = resolver(ips) if resolver is not None and ips else []
    return AnalysisResult(message=message, ips=ips, geo=geo, generation=generation)


def filter_headers(headers: List[Header], query: str) -> List[Header]:
    """Case-insensitive substring search over header names and values."""
    q = (query or '').strip().lower()
    if not q:
        return list(headers)
    return [h for h in headers if q in h.name.lower() or q in h.value.lower()]


class AnalysisSession:
    """Holds the current result, loading flag and last error for one UI or CLI run."""

    def __init__(self, resolver: Optional[Resolver] = resolve_all):
        self.resolver = resolver
        self.current: Optional[AnalysisResult] = None
        self.generation = 0
        self.loading = False
        self.error: Optional[str] = None
        self._lock = threading.Lock()

    def begin(self) -> int:
        """Start a new run; any run still in flight becomes stale."""
        with self._lock:
            self.generation += 1
            self.loading = True
            return self.generation

    def is_current(self, generation: int) -> bool:
        with self._lock:
            return generation == self.generation

    def commit(self, generation: int, result: AnalysisResult) -> bool:
        """Replace the current result if `generation` is still the latest run."""
        with self._lock:
            if generation != self.generation:
                log.info('Discarding stale result from run %d (current run is %d)', generation, self.generation)
                return False
            result.generation = generation
            self.current = result
            self.loading = False
            self.error = None
            return True

    def fail(self, generation: int, message: str) -> bool:
        """Record an error for the latest run; the previous result stays in place."""
        with self._lock:
            if generation != self.generation:
                return False
            self.loading = False
            self.error = message
            return True

    def run(self, generation: int, raw_text: str) -> Optional[AnalysisResult]:
        """Run the pipeline for `generation` and commit it. Returns None if it went stale."""
        result = analyze_text(raw_text, self.resolver, generation)
        return result if self.commit(generation, result) else None

    def analyze_text(self, raw_text: str) -> Optional[AnalysisResult]:
        return self.run(self.begin(), raw_text)

    def analyze_file(self, path: str) -> Optional[AnalysisResult]:
        """Read, parse and resolve one file.

        Unsupported files are rejected before anything changes. Read errors
        are recorded on the session and re-raised.
        """
        check_extension(path)
        generation = self.begin()
        try:
            text = read_eml_file(path)
        except FileReadError as e:
            self.fail(generation, str(e))
            raise
        return self.run(generation, text)
