"""acmelite utilities."""
import datetime
import email.utils
import json
from typing import Any
from typing import Optional
from urllib import parse


def dump_json(obj: Any) -> bytes:
    """Serialize ``obj`` to canonical JSON.

    Keys are sorted and separators carry no whitespace, so equal input
    always yields equal bytes. Slashes are never escaped.

    """
    return json.dumps(obj, sort_keys=True, separators=(',', ':')).encode('utf-8')


def extract_id(url: str) -> str:
    """Return the last path segment of ``url``.

    >>> extract_id('https://ca.example/acme/order/123')
    '123'

    """
    path = parse.urlsplit(url).path or url
    return path.rstrip('/').rsplit('/', maxsplit=1)[-1]


def parse_retry_after(value: Optional[str],
                      now: Optional[datetime.datetime] = None) -> Optional[int]:
    """Parse a ``Retry-After`` header into seconds.

    Both the delay-seconds and the HTTP-date forms are accepted. Returns
    ``None`` if the header is absent or unparseable.

    """
    if not value:
        return None
    value = value.strip()
    if value.isdigit():
        return int(value)
    try:
        when = email.utils.parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=datetime.timezone.utc)
    if now is None:
        now = datetime.datetime.now(datetime.timezone.utc)
    return max(0, int((when - now).total_seconds()))
