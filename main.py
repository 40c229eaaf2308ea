import argparse
import json
import logging
import sys

from rich import print
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from eml_geo.analyzer import AnalysisSession, EmlAnalyzerError, filter_headers
from eml_geo.geolocation import resolve_all, set_default_timeout, set_geo_endpoint, set_max_workers


def setup_logging(level: str = 'WARNING'):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format='%(message)s',
        datefmt='[%X]',
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def pretty_print_result(result, query=None):
    headers = filter_headers(result.message.headers, query) if query else result.message.headers

    title = 'Headers' if not query else f"Headers matching '{escape(query)}'"
    table = Table(title=title, show_lines=False, expand=True)
    table.add_column('#', justify='right', style='dim', no_wrap=True)
    table.add_column('Name', style='bold cyan', no_wrap=True)
    table.add_column('Value', overflow='fold')
    for i, h in enumerate(headers, 1):
        table.add_row(str(i), escape(h.name), escape(h.value))
    print(table)
    if query and not headers:
        print('[yellow]No headers match the filter.[/yellow]')

    print('\n[bold underline]Geolocation[/bold underline]')
    if result.geo:
        for g in result.geo:
            lines = [
                f"[bold]{escape(g.place)}[/bold]",
                f"ISP: {escape(g.isp or 'Unknown')}",
            ]
            if g.lat is not None and g.lon is not None:
                lines.append(f"Coordinates: {g.lat}, {g.lon}")
            print(Panel('\n'.join(lines), title=f"{g.flag} {g.ip}", expand=False))
    elif result.ips:
        print('[yellow]No geolocation data available for the public IPs found.[/yellow]')
    else:
        print('[green]No public IP addresses found in headers.[/green]')

    if result.ips:
        resolved = {g.ip for g in result.geo}
        missing = [ip for ip in result.ips if ip not in resolved]
        if missing:
            print(f"Unresolved: {', '.join(missing)}")

    s = result.summary()
    print('\n[bold underline]Summary[/bold underline]')
    print(f"Headers: {s['headers']} ({s['header_names']} distinct names)")
    print(f"Public IPs: {s['public_ips']}")
    print(f"Locations resolved: {s['locations']} across {s['countries']} countries")


def build_parser():
    parser = argparse.ArgumentParser(description='Parse an .eml file and geolocate the public IPs in its headers')
    parser.add_argument('eml_file', help='Path to a raw .eml message')
    parser.add_argument('--no-geo', help='Skip geolocation lookups (offline)', action='store_true')
    parser.add_argument('--timeout', help='Per-lookup timeout in seconds', type=float, default=None)
    parser.add_argument('--max-workers', help='Maximum number of lookups in flight at once', type=int, default=None)
    parser.add_argument('--geo-endpoint', help='ip-api compatible JSON endpoint to query', default=None)
    parser.add_argument('--filter', help='Only show headers whose name or value contains this text', default=None)
    parser.add_argument('--json', help='Print the result as JSON instead of tables', action='store_true')
    parser.add_argument('--log-level', default='WARNING', choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Logging level for diagnostics (written to stderr)')
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    try:
        if args.timeout is not None:
            set_default_timeout(args.timeout)
        if args.max_workers is not None:
            set_max_workers(args.max_workers)
    except ValueError as e:
        print(f"[red]Error:[/red] {escape(str(e))}")
        return 1
    if args.geo_endpoint:
        set_geo_endpoint(args.geo_endpoint)

    session = AnalysisSession(resolver=None if args.no_geo else resolve_all)
    try:
        result = session.analyze_file(args.eml_file)
    except EmlAnalyzerError as e:
        print(f"[red]Error:[/red] {escape(str(e))}")
        return 1

    if args.json:
        data = result.to_dict()
        if args.filter:
            data['headers'] = [h.to_dict() for h in filter_headers(result.message.headers, args.filter)]
        sys.stdout.write(json.dumps(data, indent=2, ensure_ascii=False) + '\n')
    else:
        pretty_print_result(result, args.filter)
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
