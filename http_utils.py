# -*- coding: utf-8 -*-
"""
HTTP fetching: quote of the day used as the default message body.
"""

import json
import urllib.error
import urllib.request

import config_data

URLOpener = urllib.request.build_opener()
URLOpener.addheaders = [
    ("Accept", "application/json"),
    ("User-Agent", "termmail/0.1"),
]


def fetch_url(url, timeout=30, max_size=1024 * 1024):
    """
    Fetch URL with timeout and size limit.

    Args:
        url: URL to fetch
        timeout: Connection timeout in seconds
        max_size: Maximum download size in bytes

    Returns:
        (content, status) tuple

    Raises:
        urllib.error.URLError: On network errors
        ValueError: If content exceeds max_size
    """
    httpcon = URLOpener.open(url, timeout=timeout)
    try:
        content = httpcon.read(max_size)
        if httpcon.read(1):
            raise ValueError(f"Content exceeds max size of {max_size} bytes")
        status = httpcon.status
    finally:
        httpcon.close()

    return (content, status)


def fetch_quote(url=None, timeout=None):
    """
    Fetch a random quote to use as a message body.

    Args:
        url: Quote API endpoint, defaults to config_data.quote_api_url
        timeout: Seconds, defaults to config_data.default_fetch_timeout

    Returns:
        "quote - author", or "Exception: <reason>" when the quote cannot be fetched
    """
    url = url or config_data.quote_api_url
    timeout = timeout or config_data.default_fetch_timeout

    try:
        content, status = fetch_url(url, timeout=timeout)
        if status != 200:
            raise urllib.error.HTTPError(url, status, "unexpected status", None, None)

        data = json.loads(content.decode("utf-8"))
        if isinstance(data, list):
            data = data[0]
        return f"{data['content']} - {data['author']}"
    except (urllib.error.URLError, ValueError, KeyError, IndexError, TypeError, OSError) as e:
        return f"Exception: Failed to fetch quote from {url} ({e})"
