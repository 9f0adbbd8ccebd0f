"""Renewal scheduling.

Decides whether, and when, a certificate should be renewed. The ACME
server's renewal information (ARI) is preferred; when the server does not
offer it, or it cannot be fetched, the decision falls back to a fixed
number of days before expiry.

"""
import datetime
import logging
import random
from typing import Any
from typing import Dict
from typing import Optional
from typing import Union

from acmelite import ari
from acmelite import constants
from acmelite import crypto_util
from acmelite import errors
from acmelite import messages
from acmelite.directory import Directory

logger = logging.getLogger(__name__)

CertificateData = Union[bytes, str]


# Helper function that can be mocked in unit tests
def _now() -> datetime.datetime:
    return datetime.datetime.now(tz=datetime.timezone.utc)


class RenewalManager:
    """Combine ARI windows and expiry into renewal decisions.

    :ivar directory.Directory directory:
    :ivar ari.RenewalInfos renewal_infos:
    :ivar int default_renewal_days: Days before expiry at which to renew
        when ARI gives no answer.

    """

    def __init__(self, directory: Directory, renewal_infos: ari.RenewalInfos,
                 default_renewal_days: int = constants.DEFAULT_RENEWAL_DAYS) -> None:
        self.directory = directory
        self.renewal_infos = renewal_infos
        self.default_renewal_days = default_renewal_days

    def set_default_renewal_days(self, days: int) -> None:
        if days < 0:
            raise ValueError('Renewal days must not be negative')
        self.default_renewal_days = days

    def _fetch_renewal_info(self, certificate: CertificateData
                            ) -> Optional[messages.RenewalInfo]:
        """ARI for ``certificate``, ``None`` if unsupported or unavailable."""
        if not self.directory.supports_ari():
            return None
        try:
            return self.renewal_infos.get_from_certificate(certificate)
        except errors.Error as error:
            logger.warning('Failed to get ARI information, falling back to '
                           'time-based renewal: %s', error)
            return None

    def should_renew(self, certificate: CertificateData,
                     renewal_days: Optional[int] = None) -> bool:
        """Should ``certificate`` be renewed now?

        If the server supplies a suggested window, renew once it has
        opened (including after it closed) and never before it, whatever
        the expiry date. Otherwise see `should_renew_by_expiration`.

        """
        info = self._fetch_renewal_info(certificate)
        if info is not None:
            now = _now()
            if info.should_renew_now(now):
                logger.info('ARI suggests renewal now (window %s - %s)', info.start, info.end)
                return True
            logger.debug('ARI window opens in %d seconds', info.seconds_until_window_start(now))
            return False
        return self.should_renew_by_expiration(certificate, renewal_days)

    def should_renew_by_expiration(self, certificate: CertificateData,
                                   renewal_days: Optional[int] = None) -> bool:
        """Is ``certificate`` within ``renewal_days`` of expiry?"""
        if renewal_days is None:
            renewal_days = self.default_renewal_days
        expires = crypto_util.not_valid_after(certificate)
        return _now() >= expires - datetime.timedelta(days=renewal_days)

    def renewal_status(self, certificate: CertificateData,
                       renewal_days: Optional[int] = None) -> Dict[str, Any]:
        """Summary of the renewal decision for ``certificate``.

        :returns: ``type`` (``ari`` or ``time-based``), ``should_renew``,
            ``expires_at`` and ``renewal_time``, plus ``window_start``,
            ``window_end`` and ``explanation_url`` for ARI.

        """
        if renewal_days is None:
            renewal_days = self.default_renewal_days
        expires = crypto_util.not_valid_after(certificate)
        info = self._fetch_renewal_info(certificate)
        if info is not None:
            return {
                'type': 'ari',
                'should_renew': info.should_renew_now(_now()),
                'expires_at': expires,
                'renewal_time': info.start,
                'window_start': info.start,
                'window_end': info.end,
                'explanation_url': info.explanation_url,
            }
        renewal_time = expires - datetime.timedelta(days=renewal_days)
        return {
            'type': 'time-based',
            'should_renew': _now() >= renewal_time,
            'expires_at': expires,
            'renewal_time': renewal_time,
        }

    def select_renewal_time(self, certificate: CertificateData,
                            max_sleep_hours: float = constants.DEFAULT_MAX_SLEEP_HOURS
                            ) -> Optional[datetime.datetime]:
        """Pick the instant at which ``certificate`` should be renewed.

        :returns: A time in ``[now, window end]`` falling within
            ``max_sleep_hours`` from now, or ``None`` when there is no ARI
            window or the picked time is further out than that; the caller
            then decides again at its next wake-up.

        """
        info = self._fetch_renewal_info(certificate)
        if info is None:
            return None
        return self.select_time_in_window(info, max_sleep_hours)

    def select_time_in_window(self, info: messages.RenewalInfo,
                              max_sleep_hours: float = constants.DEFAULT_MAX_SLEEP_HOURS
                              ) -> Optional[datetime.datetime]:
        """`select_renewal_time` for an already fetched window."""
        now = _now()
        start, end = info.start, info.end
        if end < start:
            logger.warning('ARI window ends (%s) before it starts (%s)', end, start)
            start = end
        if now > end:
            return now
        chosen = start + datetime.timedelta(
            seconds=random.uniform(0, (end - start).total_seconds()))
        if chosen < now:
            chosen = now
        if chosen <= now + datetime.timedelta(hours=max_sleep_hours):
            return chosen
        return None
