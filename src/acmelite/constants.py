"""acmelite defaults."""

PRODUCTION_DIRECTORY_URL = 'https://acme-v02.api.letsencrypt.org/directory'
"""Let's Encrypt production directory."""

STAGING_DIRECTORY_URL = 'https://acme-staging-v02.api.letsencrypt.org/directory'
"""Let's Encrypt staging directory."""

DEFAULT_NETWORK_TIMEOUT = 45
"""Seconds before a request to the ACME server is abandoned."""

DEFAULT_USER_AGENT = 'acmelite-python'

DEFAULT_RENEWAL_DAYS = 30
"""Renew this many days before expiry when ARI gives no answer."""

DEFAULT_MAX_SLEEP_HOURS = 24
"""Horizon for :meth:`.RenewalManager.select_renewal_time`."""

RSA_KEY_SIZES = (2048, 3072, 4096)
EC_CURVES = ('P-256', 'P-384', 'P-521')

KEY_TYPE_RSA = 'RSA'
KEY_TYPE_EC = 'ECC'

DEFAULT_RSA_KEY_SIZE = 2048
DEFAULT_EC_CURVE = 'P-256'
ACCOUNT_EC_CURVE = 'P-384'
"""Curve used when an account key is generated without explicit choice."""

EAB_MIN_KEY_LENGTH = 16
"""Minimum length in bytes of a decoded External Account Binding HMAC key."""

REVOCATION_REASONS = {
    'unspecified': 0,
    'keycompromise': 1,
    'cacompromise': 2,
    'affiliationchanged': 3,
    'superseded': 4,
    'cessationofoperation': 5,
    'certificatehold': 6,
    'removefromcrl': 8,
    'privilegewithdrawn': 9,
    'aacompromise': 10,
}
"""RFC 5280 CRLReason codes accepted by revokeCert."""
