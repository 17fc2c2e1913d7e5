import pytest

from segwit_descriptors import DescriptorKey, SatisfactionMaterial


# Multiples of the secp256k1 generator, their serialization is well known.
PK_A = "0279be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798"
PK_B = "02c6047f9441ed7d6d3045406e95c07cd85c778e4b8cef3ca7abac09b95c709ee5"
PK_C = "02f9308a019258c31049344f85f89d5229b531c845836f99b08601f113bce036f9"
PK_D = "02e493dbf1c10d80f3581e4904930b1404cc6c13900ee0758474fa94abe8c4cd13"
# The generator, serialized uncompressed.
PK_A_UNCOMPRESSED = (
    "0479be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798"
    "483ada7726a3c4655da4fbfc0e1108a8fd17b448a68554199c47d08ffb10d4b8"
)
PK_A_HASH = "751e76e8199196d454941c45d1b3a323f1433bd6"

XPUB = "xpub661MyMwAqRbcGC7awXn2f36qPMLE2x42cQM5qHrSRg3Q8X7qbDEG1aKS4XAA1PcWTZn7c4Y2WJKCvcivjpZBXTo8fpCRrxtmNKW4H1rpACa"
XPUB_B = "xpub6BsJ4SAX3CYhcZVV9bFVvmGJ7cyboy4LJqbRJJEziPvm9Pq7v7cWkBAa1LixG9vJybxHDuWcHTtq3K4tsaKG1jMJcpZmkiacFuc7LkzUCWu"
TPUB = "tpubD6NzVbkrYhZ4YgUwLbJjHAo4khrBPHJfZ1nzeeWxaTpYHzvM7SaEFLnuWjcRt8aM3LicBzeqVcN4fKsbTzHSkUJn388HSc5Xxpd1tPSmDYQ"

# Signatures are never validated, only their size matters.
SIG_A = b"\x30" + b"\xaa" * 70 + b"\x01"
SIG_B = b"\x30" + b"\xbb" * 70 + b"\x01"
SIG_C = b"\x30" + b"\xcc" * 70 + b"\x01"

DIGEST = bytes.fromhex("9267d3dbed802941483f1afa2a6bc68de5f653128aca9bf1461c5d0a3ad36ed2")
PREIMAGE = b"\x42" * 32


def material(*keys_sigs, **kwargs) -> SatisfactionMaterial:
    """Convenience function to build the satisfaction material from (hex key, sig) pairs."""
    signatures = {bytes.fromhex(key): sig for key, sig in keys_sigs}
    return SatisfactionMaterial(signatures=signatures, **kwargs)


@pytest.fixture
def key_a() -> DescriptorKey:
    return DescriptorKey(PK_A)


@pytest.fixture
def wildcard_key() -> DescriptorKey:
    return DescriptorKey(f"[00aabbcc/48'/0'/0'/2']{XPUB}/0/*")
