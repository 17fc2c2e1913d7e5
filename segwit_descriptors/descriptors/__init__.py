import logging

from bech32 import encode as bech32_encode
from enum import Enum, auto

from ..common import Chain, varint_len
from ..key import DescriptorKey
from ..expression import terminal
from ..miniscript import Node
from ..miniscript.context import Segwitv0
from ..miniscript.errors import CompressedOnlyError, MissingSignature
from ..miniscript.satisfaction import SIG_ELEM_SIZE
from .. import policy
from ..utils.hashes import sha256, hash160
from ..utils.script import CScript, p2pkh_script, witness_v0_script

from .checksum import descsum_create
from .errors import DescriptorParsingError
from .parsing import descriptor_from_str
from .sortedmulti import SortedMulti


class Descriptor:
    """A Bitcoin Output Script Descriptor.

    Descriptors are never modified once created. Two descriptors are equal if
    their string representations (without checksum) are.
    """

    @classmethod
    def from_str(cls, desc_str):
        """Parse a Bitcoin Output Script Descriptor from its string representation.

        The checksum is optional but, if present, must be valid.
        """
        desc = descriptor_from_str(desc_str)
        if not isinstance(desc, cls):
            raise DescriptorParsingError(
                f"Expected a {cls.__name__}, got '{desc.to_string_no_checksum()}'"
            )
        return desc

    def to_string_no_checksum(self):
        # To be implemented by derived classes
        raise NotImplementedError

    def __repr__(self):
        return descsum_create(self.to_string_no_checksum())

    def __eq__(self, other):
        return (
            isinstance(other, Descriptor)
            and self.to_string_no_checksum() == other.to_string_no_checksum()
        )

    def __hash__(self):
        return hash(self.to_string_no_checksum())

    def copy(self):
        """Get an independent copy of this descriptor."""
        return Descriptor.from_str(str(self))

    @property
    def script_pubkey(self):
        """Get the ScriptPubKey (output 'locking' Script) for this descriptor."""
        # To be implemented by derived classes
        raise NotImplementedError

    def script_pubkey_for(self, chain):
        """The ScriptPubKey on the given network. Segwit v0 programs don't depend on it."""
        assert isinstance(chain, Chain)
        return self.script_pubkey

    def address(self, chain=Chain.MAIN):
        """Get the bech32 address for this descriptor on the given network."""
        assert isinstance(chain, Chain)
        witness_program = self.script_pubkey[2:]
        return bech32_encode(chain.bech32_hrp, 0, witness_program)

    @property
    def explicit_script(self):
        """The Script that is actually executed when spending from this descriptor."""
        # To be implemented by derived classes
        raise NotImplementedError

    @property
    def script_sighash(self):
        """Get the Script to be committed to by the signature hash of a spending transaction."""
        # To be implemented by derived classes
        raise NotImplementedError

    @property
    def unsigned_script_sig(self):
        """The scriptSig of a spending input. Always empty for native Segwit."""
        return CScript(b"")

    @property
    def keys(self):
        """Get the list of all keys from this descriptor, in order of apparition."""
        # To be implemented by derived classes
        raise NotImplementedError

    def for_each_key(self, pred):
        """Whether {pred} holds for all the keys of this descriptor."""
        return all(pred(key) for key in self.keys)

    def satisfy(self, sat_material):
        """Get the witness stack and the scriptSig to spend from this descriptor.

        :param sat_material: a miniscript.satisfaction.SatisfactionMaterial with data
                             available to fulfill the conditions set by the Script.
        """
        # To be implemented by derived classes
        raise NotImplementedError

    def satisfy_malleable(self, sat_material):
        """Same as satisfy() but may return a witness that a third party could malleate."""
        # To be implemented by derived classes
        raise NotImplementedError

    def max_satisfaction_weight(self):
        """An upper bound on the weight of the witness and scriptSig to spend from this
        descriptor."""
        # To be implemented by derived classes
        raise NotImplementedError

    def translate(self, fpk, fpkh=None):
        """Get a copy of this descriptor with keys mapped through {fpk}."""
        # To be implemented by derived classes
        raise NotImplementedError

    def lift(self):
        """Get the abstract policy of this descriptor."""
        # To be implemented by derived classes
        raise NotImplementedError

    def sanity_check(self):
        """Check that this descriptor is safe to use."""
        # To be implemented by derived classes
        raise NotImplementedError


class WshInner(Enum):
    """What the witness script of a P2WSH descriptor is made of."""

    SORTED_MULTI = auto()
    MS = auto()


class WshDescriptor(Descriptor):
    """A Segwit v0 P2WSH Output Script Descriptor."""

    def __init__(self, witness_script):
        """
        :param witness_script: either a Miniscript Node, which must be valid as a P2WSH
                               witness script, or a SortedMulti.
        """
        if isinstance(witness_script, SortedMulti):
            self.kind = WshInner.SORTED_MULTI
        else:
            assert isinstance(witness_script, Node)
            Segwitv0.top_level_checks(witness_script)
            self.kind = WshInner.MS
        self.inner = witness_script

    @staticmethod
    def new_sortedmulti(k, keys):
        """Create a wsh(sortedmulti()) descriptor."""
        return WshDescriptor(SortedMulti(k, keys))

    @staticmethod
    def from_tree(tree):
        if tree.name != "wsh" or len(tree.args) != 1:
            raise DescriptorParsingError(
                f"{tree.name}({len(tree.args)} args) while parsing wsh descriptor"
            )
        top = tree.args[0]
        if top.name == "sortedmulti":
            return WshDescriptor(SortedMulti.from_tree(top))
        return WshDescriptor(Node.from_tree(top))

    def to_string_no_checksum(self):
        return f"wsh({self.inner})"

    def inner_script(self):
        """The witness script."""
        if self.kind == WshInner.SORTED_MULTI:
            return self.inner.encode()
        if self.kind == WshInner.MS:
            return self.inner.script
        assert False, self.kind

    @property
    def script_pubkey(self):
        return witness_v0_script(sha256(self.inner_script()))

    @property
    def explicit_script(self):
        return self.inner_script()

    @property
    def script_sighash(self):
        # BIP143: the script code of a P2WSH input is the witness script itself.
        return self.inner_script()

    @property
    def keys(self):
        return self.inner.keys

    def for_each_key(self, pred):
        return self.inner.for_each_key(pred)

    def satisfy(self, sat_material):
        witness = self.inner.satisfy(sat_material)
        logging.debug("Satisfied '%s' with %s witness elements", self, len(witness) + 1)
        return witness + [self.inner_script()], self.unsigned_script_sig

    def satisfy_malleable(self, sat_material):
        if self.kind == WshInner.SORTED_MULTI:
            # There is a single way to satisfy a multisig.
            witness = self.inner.satisfy(sat_material)
        elif self.kind == WshInner.MS:
            witness = self.inner.satisfy_malleable(sat_material)
        else:
            assert False, self.kind
        return witness + [self.inner_script()], self.unsigned_script_sig

    def max_satisfaction_weight(self):
        script_size = self.inner.script_size()
        max_sat_elems = self.inner.max_satisfaction_witness_elements()
        max_sat_size = self.inner.max_satisfaction_size()
        return (
            4
            + varint_len(script_size)
            + script_size
            + varint_len(max_sat_elems)
            + max_sat_size
        )

    def translate(self, fpk, fpkh=None):
        # Either variant is rebuilt as itself, going through the context checks again.
        return WshDescriptor(self.inner.translate(fpk, fpkh))

    def lift(self):
        return self.inner.lift()

    def sanity_check(self):
        self.inner.sanity_check()


class WpkhDescriptor(Descriptor):
    """A Segwit v0 P2WPKH Output Script Descriptor."""

    def __init__(self, pubkey):
        assert isinstance(pubkey, DescriptorKey)
        if pubkey.is_uncompressed():
            raise CompressedOnlyError(pubkey)
        self.pubkey = pubkey

    @staticmethod
    def from_tree(tree):
        if tree.name != "wpkh" or len(tree.args) != 1:
            raise DescriptorParsingError(
                f"{tree.name}({len(tree.args)} args) while parsing wpkh descriptor"
            )
        return WpkhDescriptor(terminal(tree.args[0], DescriptorKey))

    def to_string_no_checksum(self):
        return f"wpkh({self.pubkey})"

    def _key_hash(self):
        return hash160(self.pubkey.bytes())

    @property
    def script_pubkey(self):
        return witness_v0_script(self._key_hash())

    @property
    def explicit_script(self):
        return self.script_pubkey

    @property
    def script_sighash(self):
        # BIP143: the script code of a P2WPKH input is the P2PKH Script, not the
        # witness program.
        return p2pkh_script(self._key_hash())

    @property
    def keys(self):
        return [self.pubkey]

    def for_each_key(self, pred):
        return pred(self.pubkey)

    def satisfy(self, sat_material):
        sig = sat_material.lookup_ecdsa_sig(self.pubkey)
        if sig is None:
            raise MissingSignature(self.pubkey)
        return [sig, self.pubkey.bytes()], self.unsigned_script_sig

    def satisfy_malleable(self, sat_material):
        return self.satisfy(sat_material)

    def max_satisfaction_weight(self):
        # scriptSig length, witness items count, the signature and the key.
        return 4 + 1 + SIG_ELEM_SIZE + Segwitv0.pk_len(self.pubkey)

    def translate(self, fpk, fpkh=None):
        return WpkhDescriptor(fpk(self.pubkey))

    def lift(self):
        return policy.KeyHash(self.pubkey.to_pubkeyhash())

    def sanity_check(self):
        if self.pubkey.is_uncompressed():
            raise CompressedOnlyError(self.pubkey)
