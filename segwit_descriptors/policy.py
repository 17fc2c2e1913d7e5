"""
Abstract spending policies.

This is what a descriptor or a Miniscript "lifts" to: the semantic of the
spending conditions, stripped of any Script detail. Keys are identified by
their hash (or by the key itself when it can't be serialized).
"""


class Policy:
    """A node of an abstract spending policy."""

    def __eq__(self, other):
        return type(self) is type(other) and repr(self) == repr(other)

    def __hash__(self):
        return hash(repr(self))

    def keys(self):
        """All the key hashes this policy refers to."""
        return []


class Unsatisfiable(Policy):
    def __repr__(self):
        return "UNSATISFIABLE"


class Trivial(Policy):
    def __repr__(self):
        return "TRIVIAL"


class KeyHash(Policy):
    """A signature is required for the key whose hash is {pkh}."""

    def __init__(self, pkh):
        self.pkh = pkh

    def keys(self):
        return [self.pkh]

    def __repr__(self):
        if isinstance(self.pkh, bytes):
            return f"pkh({self.pkh.hex()})"
        return f"pkh({self.pkh})"


class After(Policy):
    def __init__(self, value):
        self.value = value

    def __repr__(self):
        return f"after({self.value})"


class Older(Policy):
    def __init__(self, value):
        self.value = value

    def __repr__(self):
        return f"older({self.value})"


class HashLock(Policy):
    name = None

    def __init__(self, digest):
        assert isinstance(digest, bytes)
        self.digest = digest

    def __repr__(self):
        return f"{self.name}({self.digest.hex()})"


class Sha256(HashLock):
    name = "sha256"


class Hash256(HashLock):
    name = "hash256"


class Ripemd160(HashLock):
    name = "ripemd160"


class Hash160(HashLock):
    name = "hash160"


class Threshold(Policy):
    """{k} of the {subs} policies need to be satisfied."""

    def __init__(self, k, subs):
        assert 0 < k <= len(subs)
        self.k = k
        self.subs = subs

    def keys(self):
        return [key for sub in self.subs for key in sub.keys()]

    def __repr__(self):
        subs = ",".join(map(repr, self.subs))
        if self.k == len(self.subs):
            return f"and({subs})"
        if self.k == 1:
            return f"or({subs})"
        return f"thresh({self.k},{subs})"


def conjunction(*subs):
    return Threshold(len(subs), list(subs))


def disjunction(*subs):
    return Threshold(1, list(subs))
