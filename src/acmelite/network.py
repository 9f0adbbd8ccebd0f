"""HTTP transport for talking to an ACME server."""
import base64
import json
import logging
import re
from typing import Any
from typing import Dict
from typing import Optional
from typing import Type
from typing import TypeVar
from typing import Union

import josepy as jose
import requests
from requests.adapters import HTTPAdapter

from acmelite import constants
from acmelite import errors
from acmelite import messages
from acmelite import util

logger = logging.getLogger(__name__)

GenericAcmeError = TypeVar('GenericAcmeError', bound=errors.AcmeError)


class ClientNetwork:
    """Wrapper around requests that speaks ACME's content types.

    Adds user agent, handles Content-Type and logs traffic. Responses are
    returned verbatim, whatever their status code: turning them into
    errors is the business of the caller, which knows which codes mean
    success.

    :param bool verify_ssl: Whether to verify certificates on SSL connections.
    :param str user_agent: String to send as User-Agent header.
    :param int timeout: Timeout for requests.
    """
    JSON_CONTENT_TYPE = 'application/json'
    JOSE_CONTENT_TYPE = 'application/jose+json'
    JSON_ERROR_CONTENT_TYPE = 'application/problem+json'
    PEM_CHAIN_CONTENT_TYPE = 'application/pem-certificate-chain'
    REPLAY_NONCE_HEADER = 'Replay-Nonce'

    def __init__(self, verify_ssl: bool = True,
                 user_agent: str = constants.DEFAULT_USER_AGENT,
                 timeout: int = constants.DEFAULT_NETWORK_TIMEOUT) -> None:
        self.verify_ssl = verify_ssl
        self.user_agent = user_agent
        self.session = requests.Session()
        self._default_timeout = timeout
        adapter = HTTPAdapter()

        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    def __del__(self) -> None:
        # Try to close the session, but don't show exceptions to the
        # user if the call to close() fails.
        try:
            self.session.close()
        except Exception:  # pylint: disable=broad-except
            pass

    def _send_request(self, method: str, url: str, *args: Any, **kwargs: Any) -> requests.Response:
        """Send HTTP request.

        Makes sure that `verify_ssl` is respected and that redirects are
        only followed on request. Logs request and response (with headers).
        For allowed parameters please see `requests.request`.

        :param str method: method for the new `requests.Request` object
        :param str url: URL for the new `requests.Request` object

        :raises .ClientError: in case of any connection problem

        :returns: HTTP Response
        :rtype: `requests.Response`

        """
        if method == "POST":
            logger.debug('Sending POST request to %s:\n%s',
                         url, kwargs['data'])
        else:
            logger.debug('Sending %s request to %s.', method, url)
        kwargs['verify'] = self.verify_ssl
        kwargs.setdefault('headers', {})
        kwargs['headers'].setdefault('User-Agent', self.user_agent)
        kwargs.setdefault('timeout', self._default_timeout)
        kwargs.setdefault('allow_redirects', False)
        try:
            response = self.session.request(method, url, *args, **kwargs)
        except requests.exceptions.RequestException as e:
            # The requests library emits exceptions with a lot of extra text,
            # e.g. "HTTPSConnectionPool(host='ca.example', port=443): Max
            # retries exceeded with url: /directory (Caused by
            # NewConnectionError(...: [Errno 65] No route to host',))"
            err_regex = r".*host='(\S*)'.*Max retries exceeded with url\: (\/\w*).*(\[Errno \d+\])([A-Za-z ]*)"
            m = re.match(err_regex, str(e))
            if m is None:
                raise errors.ClientError(f'Requesting {url}: {e}') from e
            host, path, _err_no, err_msg = m.groups()
            raise errors.ClientError(f"Requesting {host}{path}:{err_msg}") from e

        # If an Accept header was sent in the request, the response may not be
        # UTF-8 encoded. In this case, we don't set response.encoding and log
        # the base64 response instead of raw bytes to keep binary data out of the logs.
        debug_content: Union[bytes, str]
        if "Accept" in kwargs["headers"]:
            debug_content = base64.b64encode(response.content)
        else:
            response.encoding = "utf-8"
            debug_content = response.text
        logger.debug('Received response:\nHTTP %d\n%s\n\n%s',
                     response.status_code,
                     "\n".join("{0}: {1}".format(k, v)
                               for k, v in response.headers.items()),
                     debug_content)
        return response

    def head(self, url: str, **kwargs: Any) -> requests.Response:
        """Send HEAD request."""
        return self._send_request('HEAD', url, **kwargs)

    def get(self, url: str, headers: Optional[Dict[str, str]] = None,
            params: Optional[Dict[str, Any]] = None,
            allow_redirects: bool = False) -> requests.Response:
        """Send GET request."""
        return self._send_request('GET', url, headers=dict(headers or {}), params=params,
                                  allow_redirects=allow_redirects)

    def post(self, url: str, payload: Dict[str, Any],
             headers: Optional[Dict[str, str]] = None,
             allow_redirects: bool = False) -> requests.Response:
        """Send POST request with a JSON (JWS) body.

        :param str url: Target URL.
        :param dict payload: Already signed request body.
        :param dict headers: Extra headers, e.g. ``Accept``.

        """
        request_headers = {'Content-Type': self.JOSE_CONTENT_TYPE}
        request_headers.update(headers or {})
        return self._send_request('POST', url, data=json.dumps(payload, indent=2),
                                  headers=request_headers, allow_redirects=allow_redirects)


def is_success(response: requests.Response) -> bool:
    return 200 <= response.status_code < 300


def problem_from_response(response: requests.Response) -> Optional[messages.Problem]:
    """Parse the RFC 7807 problem document carried by ``response``, if any.

    .. note::
       Checking is not strict: wrong server response ``Content-Type``
       HTTP header is ignored if the body is a JSON object.

    """
    try:
        jobj = response.json()
    except ValueError:
        return None
    if not isinstance(jobj, dict):
        return None
    response_ct = response.headers.get('Content-Type')
    if response_ct and response_ct.split(';')[0].strip() != ClientNetwork.JSON_ERROR_CONTENT_TYPE:
        logger.debug('Ignoring wrong Content-Type (%r) for JSON Error', response_ct)
    try:
        return messages.Problem.from_json(jobj)
    except jose.DeserializationError as error:
        logger.debug('Could not parse problem document: %s', error)
        return None


def error_from_response(response: requests.Response,
                        error_cls: Type[GenericAcmeError],
                        default_message: str) -> GenericAcmeError:
    """Build (but do not raise) an error describing a failed response.

    A 429 response always yields `.RateLimited`, with the server's
    ``Retry-After`` in seconds, whatever ``error_cls`` is.

    """
    problem = problem_from_response(response)
    error: errors.AcmeError
    if response.status_code == 429:
        error = errors.RateLimited.from_problem(problem, response.status_code, default_message)
        error.retry_after = util.parse_retry_after(response.headers.get('Retry-After'))
    else:
        error = error_cls.from_problem(problem, response.status_code, default_message)
    logger.error('%s: %s', default_message, problem if problem is not None else error)
    return error  # type: ignore[return-value]
