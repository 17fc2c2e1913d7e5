"""
Common Bitcoin hashes.
"""

import hashlib

from Cryptodome.Hash import RIPEMD160


def sha256(data):
    """{data} must be bytes, returns sha256(data)"""
    assert isinstance(data, bytes)
    return hashlib.sha256(data).digest()


def ripemd160(data):
    """{data} must be bytes, returns ripemd160(data)"""
    assert isinstance(data, bytes)
    if "ripemd160" in hashlib.algorithms_available:
        try:
            return hashlib.new("ripemd160", data).digest()
        except ValueError:
            # Listed, but disabled by the OpenSSL provider.
            pass
    return RIPEMD160.new(data).digest()


def hash160(data):
    """{data} must be bytes, returns ripemd160(sha256(data))"""
    return ripemd160(sha256(data))
