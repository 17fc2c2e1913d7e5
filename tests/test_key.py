import coincurve
import pytest

from bip32 import BIP32, HARDENED_INDEX

from segwit_descriptors.key import DescriptorKey, DescriptorKeyError, KeyPathKind
from segwit_descriptors.utils.hashes import hash160

from .conftest import PK_A, PK_A_HASH, PK_A_UNCOMPRESSED, PK_B, TPUB, XPUB, XPUB_B


def test_raw_keys():
    key = DescriptorKey(PK_A)
    assert repr(key) == PK_A
    assert key.bytes() == bytes.fromhex(PK_A)
    assert key.is_concrete() and not key.is_wildcard()
    assert not key.is_uncompressed()
    assert key.to_pubkeyhash() == bytes.fromhex(PK_A_HASH)
    assert key.origin is None and key.path is None

    # From bytes, from a coincurve-parsed key
    assert DescriptorKey(bytes.fromhex(PK_A)) == key
    assert isinstance(key.key, coincurve.PublicKey)

    # Uncompressed keys are parsed, and keep their encoding
    key = DescriptorKey(PK_A_UNCOMPRESSED)
    assert key.is_uncompressed()
    assert repr(key) == PK_A_UNCOMPRESSED
    assert len(key.bytes()) == 65
    assert key != DescriptorKey(PK_A)

    # Both parities
    assert DescriptorKey("03" + PK_A[2:]).bytes()[0] == 3


def test_invalid_raw_keys():
    # Not on the curve
    with pytest.raises(DescriptorKeyError):
        DescriptorKey("02" + "ff" * 32)
    # Invalid prefix
    with pytest.raises(DescriptorKeyError):
        DescriptorKey("05" + PK_A[2:])
    with pytest.raises(DescriptorKeyError):
        DescriptorKey(bytes.fromhex(PK_A)[:32])
    # Not hex
    with pytest.raises(DescriptorKeyError):
        DescriptorKey("zz" + PK_A[2:])
    # A key path appended to a raw key
    with pytest.raises(DescriptorKeyError):
        DescriptorKey(f"{PK_A}/0/1")
    with pytest.raises(DescriptorKeyError):
        DescriptorKey(12)


def test_key_origin():
    key = DescriptorKey(f"[00aabbcc/0'/1]{PK_A}")
    assert key.origin.fingerprint == bytes.fromhex("00aabbcc")
    assert key.origin.path == [HARDENED_INDEX, 1]
    assert repr(key) == f"[00aabbcc/0'/1]{PK_A}"
    # The origin does not change the key itself
    assert key.bytes() == bytes.fromhex(PK_A)
    assert key != DescriptorKey(PK_A)

    key = DescriptorKey(f"[00aabbcc]{XPUB_B}")
    assert key.origin.path == []
    assert repr(key) == f"[00aabbcc]{XPUB_B}"

    # Hardened steps are always serialized with an apostrophe
    key = DescriptorKey(f"[00aabbcc/108765H/578h/9897'/23]{XPUB_B}")
    assert key.origin.path == [
        HARDENED_INDEX + 108765,
        HARDENED_INDEX + 578,
        HARDENED_INDEX + 9897,
        23,
    ]
    assert repr(key) == f"[00aabbcc/108765'/578'/9897'/23]{XPUB_B}"

    # Too long fingerprint
    with pytest.raises(DescriptorKeyError):
        DescriptorKey(f"[00aabbccd/0]{PK_A}")
    # Too short one
    with pytest.raises(DescriptorKeyError):
        DescriptorKey(f"[00aabb]{PK_A}")
    # Not hex
    with pytest.raises(DescriptorKeyError):
        DescriptorKey(f"[00aabbzz/0]{PK_A}")
    # Multiple origins
    with pytest.raises(DescriptorKeyError):
        DescriptorKey(f"[00aabbcc/0][00aabbcc/0]{PK_A}")


def test_xpubs():
    key = DescriptorKey(XPUB)
    assert isinstance(key.key, BIP32)
    assert repr(key) == XPUB
    assert key.is_concrete()
    assert key.bytes() == BIP32.from_xpub(XPUB).pubkey

    # A non-wildcard path designates a single child key
    key = DescriptorKey(f"{XPUB}/1001")
    assert key.path.path == [1001] and key.path.kind == KeyPathKind.FINAL
    assert key.bytes() == bytes.fromhex(
        "03c6844a957551c64e780783fc95b1aeeb040d160f84535b4810f932072db12f25"
    )
    assert repr(key) == f"{XPUB}/1001"
    key = DescriptorKey(f"{TPUB}/0")
    assert key.bytes() == bytes.fromhex(
        "02cc24adfed5a481b000192042b2399087437d8eb16095c3dda1d45a4fbf868017"
    )
    assert repr(key) == f"{TPUB}/0"
    assert key.to_pubkeyhash() == hash160(key.bytes())

    # Hardened derivation from an xpub is impossible
    with pytest.raises(DescriptorKeyError):
        DescriptorKey(f"{XPUB}/0'/1")
    # Insane paths
    with pytest.raises(DescriptorKeyError):
        DescriptorKey(f"{XPUB}/0//1")
    with pytest.raises(DescriptorKeyError):
        DescriptorKey(f"{XPUB}/{2 ** 32}")
    # Not an xpub
    with pytest.raises(DescriptorKeyError):
        DescriptorKey(XPUB[:-1] + "b")


def test_wildcard_keys():
    key = DescriptorKey(f"{XPUB}/*")
    assert key.path.path == [] and key.path.kind == KeyPathKind.WILDCARD_UNHARDENED
    assert key.is_wildcard() and not key.is_concrete()
    assert repr(key) == f"{XPUB}/*"

    key = DescriptorKey(f"[00aabbcc/48'/0'/0'/2']{XPUB}/0/2/3242/*h")
    assert key.path.path == [0, 2, 3242]
    assert key.path.kind == KeyPathKind.WILDCARD_HARDENED
    assert repr(key) == f"[00aabbcc/48'/0'/0'/2']{XPUB}/0/2/3242/*'"

    # Abstract keys can't be serialized
    with pytest.raises(DescriptorKeyError, match="wildcard"):
        key.bytes()
    # They stand for themselves where a key hash is expected
    assert key.to_pubkeyhash() is key


def test_key_equality():
    assert DescriptorKey(PK_A) == DescriptorKey(PK_A)
    assert DescriptorKey(PK_A) != DescriptorKey(PK_B)
    assert DescriptorKey(f"{XPUB}/*") == DescriptorKey(f"{XPUB}/*")
    assert DescriptorKey(f"{XPUB}/*") != DescriptorKey(f"{XPUB}/*'")
    assert len({DescriptorKey(PK_A), DescriptorKey(PK_A), DescriptorKey(PK_B)}) == 2
    assert DescriptorKey(PK_A) != PK_A
