# Copyright (c) 2015-2020 The Bitcoin Core developers
# Distributed under the MIT software license, see the accompanying
# file LICENSE or http://www.opensource.org/licenses/mit-license.php.
"""Script number encoding.

Integers pushed by a Script are little-endian with a sign bit in the most
significant byte.
"""


def bn_bytes(v):
    """Number of bytes needed to hold the magnitude of {v}, plus a sign bit."""
    return (v.bit_length() + 8) // 8


def bn2vch(v):
    """Convert number to the Script encoding, as used in pushes."""
    if v == 0:
        return b""
    neg = v < 0
    magnitude = -v if neg else v
    encoded = bytearray(magnitude.to_bytes(bn_bytes(magnitude), "little"))
    if neg:
        encoded[-1] |= 0x80
    return bytes(encoded)
