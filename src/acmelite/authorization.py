"""Authorizations (domain validations) of an order."""
import datetime
import logging
import time
from typing import Any
from typing import Dict
from typing import Iterable
from typing import List
from typing import Optional
from typing import Tuple
from typing import Union

import josepy as jose
import requests

from acmelite import challenges
from acmelite import errors
from acmelite import messages
from acmelite import network
from acmelite import session as session_mod
from acmelite import util
from acmelite.order import OrderResource

logger = logging.getLogger(__name__)


class DomainValidation:
    """One authorization of an order.

    :ivar str url: Authorization URL.
    :ivar acmelite.messages.Authorization body:
    :ivar str account_url: ``kid`` for requests about this authorization.

    """

    def __init__(self, url: str, body: messages.Authorization,
                 account_url: Optional[str] = None) -> None:
        self.url = url
        self.body = body
        self.account_url = account_url

    @classmethod
    def from_response(cls, response: requests.Response, url: str,
                      account_url: Optional[str] = None) -> 'DomainValidation':
        try:
            body = messages.Authorization.from_json(response.json())
        except (ValueError, jose.DeserializationError) as error:
            raise errors.AcmeError(f'Invalid authorization response: {error}',
                                   status_code=response.status_code)
        return cls(url, body, account_url)

    @property
    def id(self) -> str:
        return util.extract_id(self.url)

    @property
    def status(self) -> Optional[messages.Status]:
        return self.body.status

    @property
    def expires(self) -> Optional[datetime.datetime]:
        return self.body.expires

    @property
    def identifier(self) -> Optional[messages.Identifier]:
        return self.body.identifier

    @property
    def domain(self) -> str:
        return self.identifier.value if self.identifier is not None else ''

    @property
    def offered_challenges(self) -> Tuple[messages.Challenge, ...]:
        return self.body.challenges or ()

    def challenge(self, challenge_type: Union[str, challenges.ChallengeType]
                  ) -> Optional[messages.Challenge]:
        """The challenge of ``challenge_type``, if offered."""
        wanted = challenges.ChallengeType(challenge_type).value
        for chall in self.offered_challenges:
            if chall.typ == wanted:
                return chall
        return None

    @property
    def http_challenge(self) -> Optional[messages.Challenge]:
        return self.challenge(challenges.ChallengeType.HTTP01)

    @property
    def dns_challenge(self) -> Optional[messages.Challenge]:
        return self.challenge(challenges.ChallengeType.DNS01)

    def is_pending(self) -> bool:
        return self.status == messages.STATUS_PENDING

    def is_valid(self) -> bool:
        return self.status == messages.STATUS_VALID

    def is_invalid(self) -> bool:
        return self.status == messages.STATUS_INVALID

    def has_errors(self) -> bool:
        return bool(self.challenge_errors())

    def challenge_errors(self) -> List[Dict[str, Any]]:
        """``[{"type": challenge type, "error": Problem}]`` for failed challenges."""
        return [{'type': chall.typ, 'error': chall.error}
                for chall in self.offered_challenges if chall.error is not None]

    def __repr__(self) -> str:
        return '{0}(url={1!r}, domain={2!r}, status={3!r})'.format(
            self.__class__.__name__, self.url, self.domain, self.status)


class DomainValidations:
    """Authorization and challenge resources.

    :ivar session.Session session:

    """

    def __init__(self, session: session_mod.Session) -> None:
        self.session = session

    def get(self, url: str, account_url: Optional[str]) -> DomainValidation:
        response = self.session.post_as_get(url, kid=account_url)
        if response.status_code >= 400:
            raise network.error_from_response(response, errors.AcmeError,
                                              'Getting authorization failed')
        return DomainValidation.from_response(response, url, account_url)

    def status(self, order: OrderResource) -> List[DomainValidation]:
        """Fetch every authorization of ``order``."""
        return [self.get(url, order.account_url) for url in order.authorization_urls]

    def validation_data(self, domain_validations: Iterable[DomainValidation],
                        challenge_type: Union[str, challenges.ChallengeType]
                        ) -> List[Dict[str, str]]:
        """What must be published to pass ``challenge_type``.

        Already valid authorizations are skipped. For http-01 each entry
        holds ``domain``, ``type``, ``filename``, ``path`` and ``content``
        (the key authorization); for dns-01 ``domain``, ``type``, ``name``
        and ``content`` (the TXT record value).

        """
        challenge_type = challenges.ChallengeType(challenge_type)
        account_key = self.session.require_key().public_jwk()
        data = []
        for validation in domain_validations:
            if validation.is_valid():
                continue
            chall = validation.challenge(challenge_type)
            if chall is None or not chall.token:
                logger.warning('No %s challenge offered for %s',
                               challenge_type.value, validation.domain)
                continue
            if challenge_type == challenges.ChallengeType.HTTP01:
                data.append({
                    'domain': validation.domain,
                    'type': challenge_type.value,
                    'filename': chall.token,
                    'path': challenges.http01_path(chall.token),
                    'content': challenges.key_authorization(chall.token, account_key),
                })
            else:
                data.append({
                    'domain': validation.domain,
                    'type': challenge_type.value,
                    'name': challenges.dns01_record_name(validation.domain),
                    'content': challenges.dns01_digest(chall.token, account_key),
                })
        return data

    def start(self, domain_validation: DomainValidation,
              challenge_type: Union[str, challenges.ChallengeType]) -> messages.Challenge:
        """Tell the server the ``challenge_type`` challenge is ready.

        :raises .AcmeError: if the challenge is not offered or the server
            rejects the answer.

        """
        chall = domain_validation.challenge(challenge_type)
        if chall is None or not chall.url:
            raise errors.AcmeError(
                f'No {challenges.ChallengeType(challenge_type).value} challenge '
                f'for {domain_validation.domain}')
        response = self.session.post(chall.url, {}, kid=domain_validation.account_url)
        if response.status_code >= 400:
            raise network.error_from_response(
                response, errors.AcmeError,
                f'Answering challenge for {domain_validation.domain} failed')
        try:
            return messages.Challenge.from_json(response.json())
        except (ValueError, jose.DeserializationError):
            return chall

    def all_valid(self, order: OrderResource) -> bool:
        return all(validation.is_valid() for validation in self.status(order))

    def poll(self, order: OrderResource, deadline: datetime.datetime,
             interval: float = 1) -> List[DomainValidation]:
        """Poll the authorizations of ``order`` until none is pending.

        :raises .ValidationError: listing the invalid authorizations.
        :raises .TimeoutError: if ``deadline`` passes first.

        """
        while True:
            validations = self.status(order)
            failed = [validation for validation in validations if validation.is_invalid()]
            if failed:
                raise errors.ValidationError(failed)
            if all(validation.is_valid() for validation in validations):
                return validations
            if datetime.datetime.now() >= deadline:
                raise errors.TimeoutError()
            time.sleep(interval)
