import pytest
from keyshare_core import Identity, KeyChain
from keyshare_core.storage import InMemoryStorage

OWNER_SEED = b"01234567890123456789012345678902"


class CountingStorage(InMemoryStorage):
    """InMemoryStorage that records how often objects were fetched."""

    def __init__(self):
        super().__init__()
        self.fetch_count = 0

    async def fetch(self, url):
        self.fetch_count += 1
        return await super().fetch(url)


@pytest.fixture
def storage():
    return CountingStorage()


@pytest.fixture
def owner():
    return Identity.generate("owner", seed=OWNER_SEED)


async def _stored_identity(name, storage):
    identity = Identity.generate(name)
    await identity.store(storage)
    return identity


@pytest.fixture
async def alice(storage):
    return await _stored_identity("alice", storage)


@pytest.fixture
async def bob(storage):
    return await _stored_identity("bob", storage)


@pytest.fixture
async def carol(storage):
    return await _stored_identity("carol", storage)


@pytest.fixture
def owner_keychain(owner):
    return KeyChain("owner", identities=[owner])
