"""File storage of account keys."""
import errno
import logging
import os
from typing import Optional
from typing import Union

from acmelite import constants
from acmelite import errors
from acmelite import keys

logger = logging.getLogger(__name__)

PRIVATE_KEY_MODE = 0o600
PUBLIC_KEY_MODE = 0o644
DIRECTORY_MODE = 0o700


def make_or_verify_dir(directory: str, mode: int = DIRECTORY_MODE) -> None:
    """Make sure directory exists.

    :raises OSError: if ``directory`` cannot be created.

    """
    try:
        os.makedirs(directory, mode)
    except OSError as exception:
        if exception.errno != errno.EEXIST:
            raise


def safe_write(path: str, data: str, chmod: int) -> None:
    """Write ``data`` to ``path``, which ends up with mode ``chmod``."""
    fd = os.open(path, os.O_CREAT | os.O_TRUNC | os.O_WRONLY, chmod)
    with os.fdopen(fd, 'w') as f:
        f.write(data)
    # os.open only applies the mode to newly created files, modulo umask.
    os.chmod(path, chmod)


class AccountStorage:
    """Account key pair as two PEM files in ``directory``.

    ``<name>-private.pem`` (mode 0600) and ``<name>-public.pem`` (mode
    0644); the directory itself is created with mode 0700.

    :ivar str directory:
    :ivar str name:

    """

    def __init__(self, directory: str, name: str = 'account') -> None:
        self.directory = directory
        self.name = name

    @property
    def private_key_path(self) -> str:
        return os.path.join(self.directory, f'{self.name}-private.pem')

    @property
    def public_key_path(self) -> str:
        return os.path.join(self.directory, f'{self.name}-public.pem')

    def exists(self) -> bool:
        return os.path.isfile(self.private_key_path) and os.path.isfile(self.public_key_path)

    def save(self, account_key: keys.AccountKey) -> None:
        try:
            make_or_verify_dir(self.directory)
            safe_write(self.private_key_path, account_key.private_pem(), PRIVATE_KEY_MODE)
            safe_write(self.public_key_path, account_key.public_pem(), PUBLIC_KEY_MODE)
        except OSError as error:
            raise errors.AccountError(f'Could not save account keys: {error}')
        logger.debug('Saved account keys to %s', self.directory)

    def load(self) -> keys.AccountKey:
        """Load the stored key pair.

        :raises .AccountError: if either file is missing or unreadable.

        """
        if not self.exists():
            raise errors.AccountError(f'Account keys not found in {self.directory}')
        try:
            with open(self.private_key_path, 'rb') as f:
                private_pem = f.read()
            with open(self.public_key_path, 'rb') as f:
                public_pem = f.read()
        except OSError as error:
            raise errors.AccountError(f'Could not read account keys: {error}')
        return keys.AccountKey.from_pem(private_pem, public_pem)

    def create_and_save(self, key_type: str = constants.KEY_TYPE_EC,
                        key_size: Optional[Union[int, str]] = constants.ACCOUNT_EC_CURVE
                        ) -> keys.AccountKey:
        account_key = keys.AccountKey.generate(key_type, key_size)
        self.save(account_key)
        return account_key

    def load_or_create(self, key_type: str = constants.KEY_TYPE_EC,
                       key_size: Optional[Union[int, str]] = constants.ACCOUNT_EC_CURVE
                       ) -> keys.AccountKey:
        if self.exists():
            return self.load()
        logger.info('No account keys in %s, generating new ones', self.directory)
        return self.create_and_save(key_type, key_size)
