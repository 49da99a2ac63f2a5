import base64

# Header names whose values must never be persisted or logged.
SENSITIVE_HEADERS = {'authorization', 'cookie', 'set-cookie', 'x-api-key', 'apikey', 'proxy-authorization'}


def basic_auth_header(username, password):
    """
    Builds an HTTP Basic Authorization header value.

    Args:
        username (str): The user part (for YooKassa, the shop ID).
        password (str): The password part (for YooKassa, the secret key).

    Returns:
        str: 'Basic <base64(username:password)>'.
    """
    credentials = f"{username}:{password}".encode('utf-8')
    return f"Basic {base64.b64encode(credentials).decode('ascii')}"


def sanitize_headers(headers):
    """
    Returns a plain dict copy of request headers with credential-bearing values redacted.

    Used before storing webhook requests in the webhook log, so that secrets sent by
    proxies or misconfigured clients never end up in the database.

    Args:
        headers (Mapping or iterable of pairs): e.g. `request.headers`.

    Returns:
        dict: Header name -> value, with sensitive values replaced by '[REDACTED]'.
    """
    if headers is None:
        return {}
    items = headers.items() if hasattr(headers, 'items') else headers
    return {
        name: '[REDACTED]' if name.lower() in SENSITIVE_HEADERS else value
        for name, value in items
    }
