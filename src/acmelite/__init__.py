"""ACME client library.

Lightweight implementation of the client side of the `ACME protocol`_,
including the `ACME Renewal Information`_ extension.

.. _`ACME protocol`: https://datatracker.ietf.org/doc/html/rfc8555
.. _`ACME Renewal Information`: https://datatracker.ietf.org/doc/html/rfc9773

"""
from acmelite.client import AcmeClient  # noqa: F401
from acmelite.keys import AccountKey  # noqa: F401
from acmelite.storage import AccountStorage  # noqa: F401
