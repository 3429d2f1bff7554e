import os
import sys

import pytest

# Add project root to path
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from signing import KmsSigner, LocalKeyService

from .vectors import G_X, G_Y, SPKI_PREFIX


@pytest.fixture
def key_one_spki() -> bytes:
    return bytes.fromhex(SPKI_PREFIX + "04" + G_X + G_Y)


@pytest.fixture
def local_keys():
    return LocalKeyService()


@pytest.fixture
def signer(local_keys):
    return KmsSigner(local_keys)
