import base64
from utils.security import basic_auth_header, sanitize_headers

def test_basic_auth_header():
    header = basic_auth_header('123456', 'test_secret')
    assert header.startswith('Basic ')
    assert base64.b64decode(header[len('Basic '):]) == b'123456:test_secret'

def test_sanitize_headers_redacts_credentials():
    headers = {
        'Authorization': 'Basic c2VjcmV0',
        'Cookie': 'session=abc',
        'Content-Type': 'application/json',
        'X-Api-Key': 'key',
    }
    sanitized = sanitize_headers(headers)
    assert sanitized['Authorization'] == '[REDACTED]'
    assert sanitized['Cookie'] == '[REDACTED]'
    assert sanitized['X-Api-Key'] == '[REDACTED]'
    assert sanitized['Content-Type'] == 'application/json'
    assert headers['Authorization'] == 'Basic c2VjcmV0' # Input is not modified.

def test_sanitize_headers_accepts_pairs_and_none():
    assert sanitize_headers([('authorization', 'x'), ('Accept', '*/*')]) == {'authorization': '[REDACTED]', 'Accept': '*/*'}
    assert sanitize_headers(None) == {}
