import json
import subprocess
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent


def run_cli(*args):
    return subprocess.run([sys.executable, 'main.py', *args], capture_output=True, cwd=str(ROOT))


def test_json_output_offline():
    res = run_cli('sample_messages/sample.eml', '--no-geo', '--json')
    assert res.returncode == 0
    data = json.loads(res.stdout.decode('utf-8'))
    assert data['public_ips'] == ['185.45.12.34', '198.51.100.7']
    assert data['geolocation'] == []
    assert data['summary']['headers'] == 13


def test_json_filter():
    res = run_cli('sample_messages/sample.eml', '--no-geo', '--json', '--filter', 'received')
    assert res.returncode == 0
    data = json.loads(res.stdout.decode('utf-8'))
    assert [h['name'] for h in data['headers']] == ['Received'] * 3


def test_table_output_offline():
    res = run_cli('sample_messages/sample.eml', '--no-geo')
    assert res.returncode == 0
    out = res.stdout.decode('utf-8')
    assert 'Summary' in out
    assert 'Public IPs: 2' in out


def test_unsupported_file(tmp_path):
    p = tmp_path / 'headers.txt'
    p.write_text('Subject: hi\n\n')
    res = run_cli(str(p), '--no-geo')
    assert res.returncode == 1
    assert 'Unsupported file type' in res.stdout.decode('utf-8')


def test_missing_file(tmp_path):
    res = run_cli(str(tmp_path / 'missing.eml'), '--no-geo')
    assert res.returncode == 1
    assert 'Could not read' in res.stdout.decode('utf-8')


def test_geo_endpoint_and_max_workers_flags():
    # nothing listens on the discard port, so every lookup fails and is dropped
    res = run_cli('sample_messages/sample.eml', '--json', '--geo-endpoint', 'http://127.0.0.1:9/json',
                  '--max-workers', '1', '--timeout', '2')
    assert res.returncode == 0
    data = json.loads(res.stdout.decode('utf-8'))
    assert data['public_ips'] == ['185.45.12.34', '198.51.100.7']
    assert data['geolocation'] == []
    assert 'Geolocation request for' in res.stderr.decode('utf-8')


def test_invalid_max_workers():
    res = run_cli('sample_messages/sample.eml', '--no-geo', '--max-workers', '0')
    assert res.returncode == 1
    assert 'max workers must be at least 1' in res.stdout.decode('utf-8')
