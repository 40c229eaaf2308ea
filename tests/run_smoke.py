import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from eml_geo.analyzer import AnalysisSession
from eml_geo.geolocation import GeoRecord


def main():
    sample = Path(__file__).resolve().parent.parent / 'sample_messages' / 'sample.eml'

    # Stub resolver keeps this offline
    session = AnalysisSession(resolver=lambda ips: [GeoRecord(ip=ip, country_code='NL') for ip in ips])
    result = session.analyze_file(str(sample))

    ok = True
    if result.ips != ['185.45.12.34', '198.51.100.7']:
        print('ERROR: unexpected public IPs', result.ips)
        ok = False

    if '203.0.113.99' in result.ips:
        print('ERROR: IP from message body was treated as a header')
        ok = False

    if len(result.geo) != 2:
        print('ERROR: expected two geolocation records')
        ok = False

    if session.current is not result or session.loading:
        print('ERROR: session did not commit the result')
        ok = False

    if ok:
        print('Smoke test passed')
        return 0
    else:
        print('Smoke test FAILED')
        return 2


if __name__ == '__main__':
    raise SystemExit(main())
