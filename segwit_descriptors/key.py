import coincurve

from bip32 import BIP32, HARDENED_INDEX
from bip32.utils import _deriv_path_str_to_list
from .utils.hashes import hash160
from enum import Enum, auto


def is_raw_key(obj):
    return isinstance(obj, coincurve.PublicKey)


class DescriptorKeyError(ValueError):
    def __init__(self, message):
        super().__init__(message)
        self.message = message


class DescriptorKeyOrigin:
    """The origin of a key in a descriptor.

    See https://github.com/bitcoin/bips/blob/master/bip-0380.mediawiki#key-expressions.
    """

    def __init__(self, fingerprint, path):
        assert isinstance(fingerprint, bytes) and isinstance(path, list)

        self.fingerprint = fingerprint
        self.path = path

    @staticmethod
    def from_str(origin_str):
        # Origin starts and ends with brackets
        if not origin_str.startswith("[") or not origin_str.endswith("]"):
            raise DescriptorKeyError(f"Insane origin: '{origin_str}'")
        # At least 8 hex characters + brackets
        if len(origin_str) < 10:
            raise DescriptorKeyError(f"Insane origin: '{origin_str}'")

        # For the fingerprint, just read the 4 bytes.
        try:
            fingerprint = bytes.fromhex(origin_str[1:9])
        except ValueError:
            raise DescriptorKeyError(f"Insane fingerprint in origin: '{origin_str}'")
        path = []
        if len(origin_str) > 10:
            if origin_str[9] != "/":
                raise DescriptorKeyError(f"Insane path in origin: '{origin_str}'")
            # The helper operates on "m/10h/11/12'/13", so give it a "m".
            try:
                path = _deriv_path_str_to_list("m" + origin_str[9:-1])
            except ValueError:
                raise DescriptorKeyError(f"Insane path in origin: '{origin_str}'")

        return DescriptorKeyOrigin(fingerprint, path)


class KeyPathKind(Enum):
    FINAL = auto()
    WILDCARD_UNHARDENED = auto()
    WILDCARD_HARDENED = auto()

    def is_wildcard(self):
        return self in [KeyPathKind.WILDCARD_HARDENED, KeyPathKind.WILDCARD_UNHARDENED]


def parse_index(index_str):
    """Parse a derivation index, as contained in a derivation path."""
    assert isinstance(index_str, str)

    try:
        if index_str[-1:] in ["'", "h", "H"]:
            index = int(index_str[:-1]) + HARDENED_INDEX
        else:
            index = int(index_str)
    except ValueError as e:
        raise DescriptorKeyError(f"Invalid derivation index {index_str}: '{e}'")
    if not 0 <= index < 2 ** 32:
        raise DescriptorKeyError(f"Derivation index out of range: '{index_str}'")
    return index


def ser_index(der_index):
    # If this a hardened step, deduce the threshold and mark it.
    if der_index < HARDENED_INDEX:
        return str(der_index)
    return f"{der_index - HARDENED_INDEX}'"


class DescriptorKeyPath:
    """The derivation path appended to an extended key in a descriptor.

    See https://github.com/bitcoin/bips/blob/master/bip-0380.mediawiki#key-expressions
    """

    def __init__(self, path, kind):
        assert isinstance(path, list) and isinstance(kind, KeyPathKind)

        self.path = path
        self.kind = kind

    @staticmethod
    def from_str(path_str):
        if len(path_str) < 2 or path_str[0] != "/":
            raise DescriptorKeyError(f"Insane key path: '{path_str}'")

        # Determine whether this key may be derived.
        kind = KeyPathKind.FINAL
        if len(path_str) > 2 and path_str[-3:] in ["/*'", "/*h", "/*H"]:
            kind = KeyPathKind.WILDCARD_HARDENED
            path_str = path_str[:-3]
        elif path_str[-2:] == "/*":
            kind = KeyPathKind.WILDCARD_UNHARDENED
            path_str = path_str[:-2]

        if len(path_str) == 0:
            return DescriptorKeyPath([], kind)

        path = [parse_index(index) for index in path_str[1:].split("/")]
        # We only ever hold public keys.
        if any(index >= HARDENED_INDEX for index in path):
            raise DescriptorKeyError(
                f"Hardened derivation step after an extended public key: '{path_str}'"
            )
        return DescriptorKeyPath(path, kind)

    def __repr__(self):
        path = "".join("/" + ser_index(i) for i in self.path)
        if self.kind == KeyPathKind.WILDCARD_UNHARDENED:
            path += "/*"
        elif self.kind == KeyPathKind.WILDCARD_HARDENED:
            path += "/*'"
        return path


class DescriptorKey:
    """A Bitcoin key to be used in Output Script Descriptors.

    May be a raw public key (compressed or not) or an extended public key. An
    extended key ending with a wildcard does not designate a single public key:
    it can be analyzed (printed, lifted, translated) but not serialized.
    Instances are never modified once created.
    """

    def __init__(self, key):
        # Information about the origin of this key.
        self.origin = None
        # If it is an xpub, a path toward a child key of that xpub.
        self.path = None
        # Whether a raw key was given in its 33-bytes serialization.
        self.compressed = True

        if isinstance(key, bytes):
            self.key = self._parse_raw(key)

        elif isinstance(key, BIP32):
            self.key = key

        elif isinstance(key, str):
            # Try parsing an optional origin prepended to the key
            splitted_key = key.split("]", maxsplit=1)
            if len(splitted_key) == 2:
                origin, key = splitted_key
                self.origin = DescriptorKeyOrigin.from_str(origin + "]")

            # Is it a raw key?
            if len(key) in (66, 130):
                try:
                    raw_key = bytes.fromhex(key)
                except ValueError as e:
                    raise DescriptorKeyError(f"Public key parsing error: '{str(e)}'")
                self.key = self._parse_raw(raw_key)
            # If not it must be an xpub.
            else:
                # There may be an optional path appended to the xpub.
                splitted_key = key.split("/", maxsplit=1)
                if len(splitted_key) == 2:
                    key, path = splitted_key
                    self.path = DescriptorKeyPath.from_str("/" + path)

                try:
                    self.key = BIP32.from_xpub(key)
                except ValueError as e:
                    raise DescriptorKeyError(f"Xpub parsing error: '{str(e)}'")

        else:
            raise DescriptorKeyError(
                "Invalid parameter type: expecting bytes, hex str or BIP32 instance."
            )

    def _parse_raw(self, raw):
        if len(raw) == 33 and raw[0] in (2, 3):
            self.compressed = True
        elif len(raw) == 65 and raw[0] == 4:
            self.compressed = False
        else:
            raise DescriptorKeyError(
                f"Invalid public key encoding: '{raw.hex()}'"
            )
        try:
            return coincurve.PublicKey(raw)
        except ValueError as e:
            raise DescriptorKeyError(f"Public key parsing error: '{str(e)}'")

    def __repr__(self):
        key = ""

        if self.origin is not None:
            key += f"[{self.origin.fingerprint.hex()}"
            key += "".join("/" + ser_index(i) for i in self.origin.path)
            key += "]"

        if isinstance(self.key, BIP32):
            key += self.key.get_xpub()
        else:
            key += self.key.format(compressed=self.compressed).hex()

        if self.path is not None:
            key += repr(self.path)

        return key

    def __eq__(self, other):
        return isinstance(other, DescriptorKey) and repr(self) == repr(other)

    def __hash__(self):
        return hash(repr(self))

    def is_uncompressed(self):
        """Whether this key serializes to the legacy 65-bytes encoding."""
        return is_raw_key(self.key) and not self.compressed

    def is_wildcard(self):
        return self.path is not None and self.path.kind.is_wildcard()

    def is_concrete(self):
        """Whether this key designates a single public key, ie can be serialized."""
        return not self.is_wildcard()

    def bytes(self):
        """Get this key as raw bytes.

        Will raise if this key is a wildcard extended key.
        """
        if is_raw_key(self.key):
            return self.key.format(compressed=self.compressed)

        assert isinstance(self.key, BIP32)
        if self.is_wildcard():
            raise DescriptorKeyError(
                f"Cannot serialize a key with a wildcard derivation path: '{self}'"
            )
        if self.path is None or len(self.path.path) == 0:
            return self.key.pubkey
        return self.key.get_pubkey_from_path(self.path.path)

    def to_pubkeyhash(self):
        """The hash160 of this key if it is concrete, the key itself otherwise."""
        if self.is_concrete():
            return hash160(self.bytes())
        return self
