"""Signing context shared by the endpoint objects."""
import logging
import threading
from typing import Any
from typing import Dict
from typing import Optional

import requests

from acmelite import directory as directory_mod
from acmelite import errors
from acmelite import jws
from acmelite import keys
from acmelite import network

logger = logging.getLogger(__name__)


class Session:
    """Account key, transport, directory and nonce source in one place.

    Passed by reference to every endpoint object. A signed request is
    built and sent while holding a lock, so one session never interleaves
    nonce acquisition between two requests.

    :ivar network.ClientNetwork net:
    :ivar directory.Directory directory:
    :ivar directory.Nonce nonce:
    :ivar keys.AccountKey account_key: ``None`` until a key is set.
    :ivar str account_url: Account URL (``kid``) once the account is known.

    """

    def __init__(self, net: network.ClientNetwork, directory: directory_mod.Directory,
                 nonce: directory_mod.Nonce,
                 account_key: Optional[keys.AccountKey] = None,
                 account_url: Optional[str] = None) -> None:
        self.net = net
        self.directory = directory
        self.nonce = nonce
        self.account_key = account_key
        self.account_url = account_url
        self._lock = threading.Lock()

    def require_key(self) -> keys.AccountKey:
        """The account key.

        :raises .AccountError: if no key has been set.

        """
        if self.account_key is None:
            raise errors.AccountError('No account key set')
        return self.account_key

    def post(self, url: str, payload: Any = None, kid: Optional[str] = None,
             headers: Optional[Dict[str, str]] = None) -> requests.Response:
        """Sign ``payload`` with a fresh nonce and POST it to ``url``.

        :param str url: Target URL.
        :param payload: Request object; ``None`` for POST-as-GET.
        :param str kid: Account URL; when ``None`` the JWK is embedded.
        :param dict headers: Extra request headers.

        """
        key = self.require_key()
        with self._lock:
            nonce = self.nonce.get_new()
            body = jws.sign(key.private_key, url, nonce, payload, kid=kid)
            logger.debug('JWS payload:\n%s', jws.encode_payload(payload).decode())
            return self.net.post(url, body, headers=headers)

    def post_as_get(self, url: str, kid: Optional[str] = None,
                    headers: Optional[Dict[str, str]] = None) -> requests.Response:
        return self.post(url, None, kid=kid, headers=headers)
