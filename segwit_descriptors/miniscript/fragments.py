"""
Miniscript AST elements.

Each element correspond to a Bitcoin Script fragment, and has various type properties.
See the Miniscript website for the specification of the type system: https://bitcoin.sipa.be/miniscript/.
"""

import logging

from . import parsing

from .. import policy
from ..key import DescriptorKey
from ..utils.hashes import hash160
from ..utils.script import (
    CScript,
    OP_1,
    OP_0,
    OP_ADD,
    OP_BOOLAND,
    OP_BOOLOR,
    OP_DUP,
    OP_ELSE,
    OP_ENDIF,
    OP_EQUAL,
    OP_EQUALVERIFY,
    OP_FROMALTSTACK,
    OP_IFDUP,
    OP_IF,
    OP_CHECKLOCKTIMEVERIFY,
    OP_CHECKMULTISIG,
    OP_CHECKMULTISIGVERIFY,
    OP_CHECKSEQUENCEVERIFY,
    OP_CHECKSIG,
    OP_CHECKSIGVERIFY,
    OP_HASH160,
    OP_HASH256,
    OP_NOTIF,
    OP_RIPEMD160,
    OP_SHA256,
    OP_SIZE,
    OP_SWAP,
    OP_TOALTSTACK,
    OP_VERIFY,
    OP_0NOTEQUAL,
)

from .context import MAX_OPS_PER_SCRIPT, MAX_PUBKEYS_PER_MULTISIG
from .errors import (
    CompressedOnlyError,
    CouldNotSatisfy,
    MiniscriptAnalysisError,
    MiniscriptNodeCreationError,
    MiniscriptTypeError,
    MissingSignature,
)
from .property import Property
from .satisfaction import (
    EMPTY_ELEM_SIZE,
    ONE_ELEM_SIZE,
    PREIMAGE_ELEM_SIZE,
    PUBKEY_ELEM_SIZE,
    SIG_ELEM_SIZE,
    ExecutionInfo,
    Satisfaction,
)


# Threshold for nLockTime: below this value it is interpreted as block number,
# otherwise as UNIX timestamp.
LOCKTIME_THRESHOLD = 500000000  # Tue Nov  5 00:53:20 1985 UTC

# If CTxIn::nSequence encodes a relative lock-time and this flag
# is set, the relative lock-time has units of 512 seconds,
# otherwise it specifies blocks with a granularity of 1.
SEQUENCE_LOCKTIME_TYPE_FLAG = 1 << 22

# Stands for keys that can't be serialized when only the size of the Script matters.
# This is the secp256k1 generator.
DUMMY_KEY = DescriptorKey(
    "0279be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798"
)


def check_type(condition, message):
    if not condition:
        raise MiniscriptTypeError(message)


class Node:
    """A Miniscript fragment."""

    # The fragment's type and properties
    p = None
    # List of all sub fragments
    subs = []
    # A list of Script elements, a CScript is created all at once in the script() method.
    _script = []
    # Whether any satisfaction for this fragment require a signature
    needs_sig = None
    # Whether any dissatisfaction for this fragment requires a signature
    is_forced = None
    # Whether this fragment has a unique unconditional satisfaction, and all conditional
    # ones require a signature.
    is_expressive = None
    # Whether for any possible way to satisfy this fragment (may be none), a
    # non-malleable satisfaction exists.
    is_nonmalleable = None
    # Whether this node or any of its subs contains an absolute heightlock
    abs_heightlocks = None
    # Whether this node or any of its subs contains a relative heightlock
    rel_heightlocks = None
    # Whether this node or any of its subs contains an absolute timelock
    abs_timelocks = None
    # Whether this node or any of its subs contains a relative timelock
    rel_timelocks = None
    # Whether this node does not contain a mix of timelock or heightlock of different types.
    # That is, not (abs_heightlocks and rel_heightlocks or abs_timelocks and abs_timelocks)
    no_timelock_mix = None
    # Information about this Miniscript execution (satisfaction cost, etc..)
    exec_info = None

    def __init__(self, *args, **kwargs):
        # Needs to be implemented by derived classes.
        raise NotImplementedError

    @staticmethod
    def from_str(ms_str):
        """Parse a Miniscript fragment from its string representation."""
        assert isinstance(ms_str, str)
        return parsing.miniscript_from_str(ms_str)

    @staticmethod
    def from_tree(tree):
        """Parse a Miniscript fragment from an expression Tree."""
        return parsing.miniscript_from_tree(tree)

    def __eq__(self, other):
        return isinstance(other, Node) and repr(self) == repr(other)

    def __hash__(self):
        return hash(repr(self))

    @property
    def script(self):
        """The Script for this fragment. All keys must be concrete."""
        return CScript(self._script)

    def script_size(self):
        """The size of the Script for this fragment.

        Unlike the Script itself, this can be computed for abstract keys too.
        """
        sized = self.translate(lambda key: key if key.is_concrete() else DUMMY_KEY)
        return len(sized.script)

    @property
    def keys(self):
        """Get the list of all keys from this Miniscript, in order of apparition."""
        # Overriden by fragments that actually have keys.
        return [key for sub in self.subs for key in sub.keys]

    def walk(self):
        """Iterate over this fragment and all its sub-fragments, depth first."""
        yield self
        for sub in self.subs:
            yield from sub.walk()

    def for_each_key(self, pred):
        """Whether {pred} holds for all the keys of this Miniscript."""
        return all(pred(key) for key in self.keys)

    def translate(self, fpk, fpkh=None):
        """Get a copy of this Miniscript with all keys mapped through {fpk}.

        :param fpk: a function from a DescriptorKey to a DescriptorKey.
        :param fpkh: a function to map key hashes. Fragments here always carry the
                     key itself, so it is never called.
        """
        return self._rebuild([sub.translate(fpk, fpkh) for sub in self.subs])

    def _rebuild(self, subs):
        """Create a fragment of the same type with the given sub-fragments."""
        return self.__class__(*subs)

    def lift(self):
        """Get the abstract policy for this fragment."""
        # Needs to be implemented by derived classes.
        raise NotImplementedError

    def satisfy(self, sat_material):
        """Get the witness of the smallest non-malleable satisfaction for this fragment.

        :param sat_material: a SatisfactionMaterial containing available data to satisfy
                             challenges.
        """
        sat = self.satisfaction(sat_material)
        if sat.is_unavailable() or not sat.has_sig:
            self._raise_unsatisfied(sat_material)
        logging.debug("Satisfied '%s' with a %s elements witness", self, len(sat.witness))
        return sat.witness

    def satisfy_malleable(self, sat_material):
        """Get the witness of the smallest satisfaction for this fragment, even if
        a third party could malleate it.

        :param sat_material: a SatisfactionMaterial containing available data to satisfy
                             challenges.
        """
        sat = self.satisfaction(sat_material.as_malleable())
        if sat.is_unavailable():
            self._raise_unsatisfied(sat_material)
        return sat.witness

    def _raise_unsatisfied(self, sat_material):
        keys = self.keys
        if keys and all(sat_material.lookup_ecdsa_sig(k) is None for k in keys):
            raise MissingSignature(keys[0])
        raise CouldNotSatisfy(f"Not enough material to satisfy '{self}'")

    def satisfaction(self, sat_material):
        """Get the satisfaction for this fragment.

        :param sat_material: a SatisfactionMaterial containing available data to satisfy
                             challenges.
        """
        # Needs to be implemented by derived classes.
        raise NotImplementedError

    def dissatisfaction(self):
        """Get the dissatisfaction for this fragment."""
        # Needs to be implemented by derived classes.
        raise NotImplementedError

    def max_satisfaction_witness_elements(self):
        """The maximum number of witness elements to spend a P2WSH with this
        Miniscript as witness script, the witness script included."""
        if self.exec_info.sat_elems is None:
            raise MiniscriptAnalysisError(f"'{self}' can never be satisfied")
        return self.exec_info.sat_elems + 1

    def max_satisfaction_size(self):
        """The maximum size of the witness elements to satisfy this Miniscript, their
        length prefix included."""
        if self.exec_info.sat_size is None:
            raise MiniscriptAnalysisError(f"'{self}' can never be satisfied")
        return self.exec_info.sat_size

    def sanity_check(self):
        """Check this Miniscript is safe to use.

        Raises a MiniscriptAnalysisError if any spending path doesn't require a
        signature, if it can't always be satisfied non-malleably, if it reuses keys,
        if it mixes timelocks of different units or if it exceeds resource limits.
        """
        for key in self.keys:
            if key.is_uncompressed():
                raise CompressedOnlyError(key)
        if not self.needs_sig:
            raise MiniscriptAnalysisError(
                f"'{self}' contains a spending path without signature"
            )
        if not self.is_nonmalleable:
            raise MiniscriptAnalysisError(f"'{self}' is malleable")
        keys = [repr(key) for key in self.keys]
        if len(set(keys)) != len(keys):
            raise MiniscriptAnalysisError(f"'{self}' contains repeated keys")
        if not self.no_timelock_mix:
            raise MiniscriptAnalysisError(
                f"'{self}' contains a mix of height and time based timelocks"
            )
        if self.exec_info.ops_count > MAX_OPS_PER_SCRIPT:
            raise MiniscriptAnalysisError(
                f"'{self}' may execute more than {MAX_OPS_PER_SCRIPT} operations"
            )


class Just0(Node):
    def __init__(self):

        self._script = [OP_0]

        self.p = Property("Bzud")
        self.needs_sig = True  # Vacuously, it can never be satisfied.
        self.is_forced = False
        self.is_expressive = True
        self.is_nonmalleable = True
        self.abs_heightlocks = False
        self.rel_heightlocks = False
        self.abs_timelocks = False
        self.rel_timelocks = False
        self.no_timelock_mix = True
        self.exec_info = ExecutionInfo(0, 0, None, 0)

    def translate(self, fpk, fpkh=None):
        return self

    def lift(self):
        return policy.Unsatisfiable()

    def satisfaction(self, sat_material):
        return Satisfaction.unavailable()

    def dissatisfaction(self):
        return Satisfaction(witness=[])

    def __repr__(self):
        return "0"


class Just1(Node):
    def __init__(self):

        self._script = [OP_1]

        self.p = Property("Bzu")
        self.needs_sig = False
        self.is_forced = True  # No dissat
        self.is_expressive = False  # No dissat
        self.is_nonmalleable = True
        self.abs_heightlocks = False
        self.rel_heightlocks = False
        self.abs_timelocks = False
        self.rel_timelocks = False
        self.no_timelock_mix = True
        self.exec_info = ExecutionInfo(0, 0, 0, None)

    def translate(self, fpk, fpkh=None):
        return self

    def lift(self):
        return policy.Trivial()

    def satisfaction(self, sat_material):
        return Satisfaction(witness=[])

    def dissatisfaction(self):
        return Satisfaction.unavailable()

    def __repr__(self):
        return "1"


class PkNode(Node):
    """A virtual class for nodes containing a single public key.

    Should not be instanced directly, use Pk() or Pkh().
    """

    def __init__(self, pubkey):

        if isinstance(pubkey, (bytes, str)):
            self.pubkey = DescriptorKey(pubkey)
        elif isinstance(pubkey, DescriptorKey):
            self.pubkey = pubkey
        else:
            raise MiniscriptNodeCreationError("Invalid public key")

        self.needs_sig = True
        self.is_forced = False
        self.is_expressive = True
        self.is_nonmalleable = True
        self.abs_heightlocks = False
        self.rel_heightlocks = False
        self.abs_timelocks = False
        self.rel_timelocks = False
        self.no_timelock_mix = True

    @property
    def keys(self):
        return [self.pubkey]

    def translate(self, fpk, fpkh=None):
        return self.__class__(fpk(self.pubkey))

    def lift(self):
        return policy.KeyHash(self.pubkey.to_pubkeyhash())


class Pk(PkNode):
    def __init__(self, pubkey):
        PkNode.__init__(self, pubkey)

        self.p = Property("Konud")
        self.exec_info = ExecutionInfo(0, 0, 0, 0)

    @property
    def _script(self):
        return [self.pubkey.bytes()]

    def satisfaction(self, sat_material):
        sig = sat_material.lookup_ecdsa_sig(self.pubkey)
        if sig is None:
            return Satisfaction.unavailable()
        return Satisfaction([sig], has_sig=True)

    def dissatisfaction(self):
        return Satisfaction(witness=[b""])

    def __repr__(self):
        return f"pk_k({self.pubkey})"


class Pkh(PkNode):
    def __init__(self, pubkey):
        PkNode.__init__(self, pubkey)

        self.p = Property("Knud")
        self.exec_info = ExecutionInfo(
            3, 0, 1, 1, sat_size=PUBKEY_ELEM_SIZE, dissat_size=PUBKEY_ELEM_SIZE
        )

    @property
    def _script(self):
        return [OP_DUP, OP_HASH160, self.pk_hash(), OP_EQUALVERIFY]

    def satisfaction(self, sat_material):
        sig = sat_material.lookup_ecdsa_sig(self.pubkey)
        if sig is None:
            return Satisfaction.unavailable()
        return Satisfaction(witness=[sig, self.pubkey.bytes()], has_sig=True)

    def dissatisfaction(self):
        return Satisfaction(witness=[b"", self.pubkey.bytes()])

    def __repr__(self):
        return f"pk_h({self.pubkey})"

    def pk_hash(self):
        return hash160(self.pubkey.bytes())


class TimelockNode(Node):
    """A virtual class for the timelock fragments."""

    def __init__(self, value, opcode):
        if not 0 < value < 2 ** 31:
            raise MiniscriptNodeCreationError(f"Invalid timelock value: {value}")

        self.value = value
        self._script = [self.value, opcode]

        self.p = Property("Bz")
        self.needs_sig = False
        self.is_forced = True
        self.is_expressive = False  # No dissat
        self.is_nonmalleable = True
        self.abs_heightlocks = False
        self.rel_heightlocks = False
        self.abs_timelocks = False
        self.rel_timelocks = False
        self.no_timelock_mix = True
        self.exec_info = ExecutionInfo(1, 0, 0, None)

    def translate(self, fpk, fpkh=None):
        return self

    def dissatisfaction(self):
        return Satisfaction.unavailable()


class Older(TimelockNode):
    def __init__(self, value):
        TimelockNode.__init__(self, value, OP_CHECKSEQUENCEVERIFY)

        self.rel_timelocks = bool(value & SEQUENCE_LOCKTIME_TYPE_FLAG)
        self.rel_heightlocks = not self.rel_timelocks

    def lift(self):
        return policy.Older(self.value)

    def satisfaction(self, sat_material):
        if sat_material.max_sequence < self.value:
            return Satisfaction.unavailable()
        return Satisfaction(witness=[])

    def __repr__(self):
        return f"older({self.value})"


class After(TimelockNode):
    def __init__(self, value):
        TimelockNode.__init__(self, value, OP_CHECKLOCKTIMEVERIFY)

        self.abs_heightlocks = value < LOCKTIME_THRESHOLD
        self.abs_timelocks = not self.abs_heightlocks

    def lift(self):
        return policy.After(self.value)

    def satisfaction(self, sat_material):
        if sat_material.max_lock_time < self.value:
            return Satisfaction.unavailable()
        return Satisfaction(witness=[])

    def __repr__(self):
        return f"after({self.value})"


class HashNode(Node):
    """A virtual class for fragments with hashlock semantics.

    Should not be instanced directly, use concrete fragments instead.
    """

    # The name of the fragment, and the size of its digest
    name = None
    digest_len = None
    # The abstract policy this lifts to
    policy_cls = None

    def __init__(self, digest, hash_op):
        if not isinstance(digest, bytes) or len(digest) != self.digest_len:
            raise MiniscriptNodeCreationError(
                f"{self.name}() needs a {self.digest_len} bytes digest"
            )

        self.digest = digest
        self._script = [OP_SIZE, 32, OP_EQUALVERIFY, hash_op, digest, OP_EQUAL]

        self.p = Property("Bonud")
        self.needs_sig = False
        self.is_forced = False
        self.is_expressive = False
        self.is_nonmalleable = True
        self.abs_heightlocks = False
        self.rel_heightlocks = False
        self.abs_timelocks = False
        self.rel_timelocks = False
        self.no_timelock_mix = True
        self.exec_info = ExecutionInfo(4, 0, 1, None, sat_size=PREIMAGE_ELEM_SIZE)

    def translate(self, fpk, fpkh=None):
        return self

    def lift(self):
        return self.policy_cls(self.digest)

    def satisfaction(self, sat_material):
        preimage = sat_material.lookup_preimage(self.digest)
        if preimage is None:
            return Satisfaction.unavailable()
        return Satisfaction(witness=[preimage])

    def dissatisfaction(self):
        # Dissatisfying with a 32 bytes non-preimage is malleable.
        return Satisfaction.unavailable()

    def __repr__(self):
        return f"{self.name}({self.digest.hex()})"


class Sha256(HashNode):
    name = "sha256"
    digest_len = 32
    policy_cls = policy.Sha256

    def __init__(self, digest):
        HashNode.__init__(self, digest, OP_SHA256)


class Hash256(HashNode):
    name = "hash256"
    digest_len = 32
    policy_cls = policy.Hash256

    def __init__(self, digest):
        HashNode.__init__(self, digest, OP_HASH256)


class Ripemd160(HashNode):
    name = "ripemd160"
    digest_len = 20
    policy_cls = policy.Ripemd160

    def __init__(self, digest):
        HashNode.__init__(self, digest, OP_RIPEMD160)


class Hash160(HashNode):
    name = "hash160"
    digest_len = 20
    policy_cls = policy.Hash160

    def __init__(self, digest):
        HashNode.__init__(self, digest, OP_HASH160)


class Multi(Node):
    def __init__(self, k, keys):
        if not all(isinstance(key, DescriptorKey) for key in keys):
            raise MiniscriptNodeCreationError("Invalid public key in multi()")
        if not 1 <= k <= len(keys) <= MAX_PUBKEYS_PER_MULTISIG:
            raise MiniscriptNodeCreationError(
                f"Invalid multi() threshold {k} for {len(keys)} keys"
            )

        self.k = k
        self.pubkeys = keys

        self.p = Property("Bndu")
        self.needs_sig = True
        self.is_forced = False
        self.is_expressive = True
        self.is_nonmalleable = True
        self.abs_heightlocks = False
        self.rel_heightlocks = False
        self.abs_timelocks = False
        self.rel_timelocks = False
        self.no_timelock_mix = True
        # The dummy element, then k signatures (or k empty vectors).
        self.exec_info = ExecutionInfo(
            1,
            len(keys),
            1 + k,
            1 + k,
            sat_size=EMPTY_ELEM_SIZE + k * SIG_ELEM_SIZE,
            dissat_size=(1 + k) * EMPTY_ELEM_SIZE,
        )

    @property
    def keys(self):
        return self.pubkeys

    def translate(self, fpk, fpkh=None):
        return Multi(self.k, [fpk(key) for key in self.pubkeys])

    def lift(self):
        return policy.Threshold(
            self.k, [policy.KeyHash(key.to_pubkeyhash()) for key in self.pubkeys]
        )

    @property
    def _script(self):
        return [
            self.k,
            *[k.bytes() for k in self.keys],
            len(self.keys),
            OP_CHECKMULTISIG,
        ]

    def satisfaction(self, sat_material):
        sigs = []
        for key in self.keys:
            sig = sat_material.lookup_ecdsa_sig(key)
            if sig is not None:
                sigs.append(sig)
            if len(sigs) == self.k:
                break
        if len(sigs) < self.k:
            return Satisfaction.unavailable()
        return Satisfaction(witness=[b""] + sigs, has_sig=True)

    def dissatisfaction(self):
        return Satisfaction(witness=[b""] * (self.k + 1))

    def __repr__(self):
        return f"multi({','.join([str(self.k)] + [str(k) for k in self.keys])})"


class AndV(Node):
    def __init__(self, sub_x, sub_y):
        check_type(sub_x.p.V, f"and_v: X must be 'V', got '{sub_x}'")
        check_type(sub_y.p.has_any("BKV"), f"and_v: Y must be 'B', 'K' or 'V', got '{sub_y}'")

        self.subs = [sub_x, sub_y]

        self.p = Property(
            sub_y.p.type()
            + ("z" if sub_x.p.z and sub_y.p.z else "")
            + ("o" if sub_x.p.z and sub_y.p.o or sub_x.p.o and sub_y.p.z else "")
            + ("n" if sub_x.p.n or sub_x.p.z and sub_y.p.n else "")
            + ("u" if sub_y.p.u else "")
        )
        self.needs_sig = any(sub.needs_sig for sub in self.subs)
        self.is_forced = sub_y.is_forced or sub_x.needs_sig
        self.is_expressive = False  # Not 'd'
        self.is_nonmalleable = all(sub.is_nonmalleable for sub in self.subs)
        self.abs_heightlocks = any(sub.abs_heightlocks for sub in self.subs)
        self.rel_heightlocks = any(sub.rel_heightlocks for sub in self.subs)
        self.abs_timelocks = any(sub.abs_timelocks for sub in self.subs)
        self.rel_timelocks = any(sub.rel_timelocks for sub in self.subs)
        self.no_timelock_mix = not (
            self.abs_heightlocks
            and self.abs_timelocks
            or self.rel_heightlocks
            and self.rel_timelocks
        )

    @property
    def _script(self):
        return sum((sub._script for sub in self.subs), start=[])

    @property
    def exec_info(self):
        exec_info = ExecutionInfo.from_concat(
            self.subs[0].exec_info, self.subs[1].exec_info
        )
        exec_info.set_undissatisfiable()  # it's V.
        return exec_info

    def lift(self):
        return policy.conjunction(*[sub.lift() for sub in self.subs])

    def satisfaction(self, sat_material):
        return Satisfaction.from_concat(sat_material, *self.subs)

    def dissatisfaction(self):
        return Satisfaction.unavailable()  # it's V.

    def __repr__(self):
        return f"and_v({','.join(map(str, self.subs))})"


class AndB(Node):
    def __init__(self, sub_x, sub_y):
        check_type(sub_x.p.B and sub_y.p.W, f"and_b: needs 'B' and 'W', got '{sub_x}' and '{sub_y}'")

        self.subs = [sub_x, sub_y]

        self.p = Property(
            "Bu"
            + ("z" if sub_x.p.z and sub_y.p.z else "")
            + ("o" if sub_x.p.z and sub_y.p.o or sub_x.p.o and sub_y.p.z else "")
            + ("n" if sub_x.p.n or sub_x.p.z and sub_y.p.n else "")
            + ("d" if sub_x.p.d and sub_y.p.d else "")
            + ("u" if sub_y.p.u else "")
        )
        self.needs_sig = any(sub.needs_sig for sub in self.subs)
        self.is_forced = (
            sub_x.is_forced
            and sub_y.is_forced
            or any(sub.is_forced and sub.needs_sig for sub in self.subs)
        )
        self.is_expressive = all(sub.is_expressive and sub.needs_sig for sub in self.subs)
        self.is_nonmalleable = all(sub.is_nonmalleable for sub in self.subs)
        self.abs_heightlocks = any(sub.abs_heightlocks for sub in self.subs)
        self.rel_heightlocks = any(sub.rel_heightlocks for sub in self.subs)
        self.abs_timelocks = any(sub.abs_timelocks for sub in self.subs)
        self.rel_timelocks = any(sub.rel_timelocks for sub in self.subs)
        self.no_timelock_mix = not (
            self.abs_heightlocks
            and self.abs_timelocks
            or self.rel_heightlocks
            and self.rel_timelocks
        )

    @property
    def _script(self):
        return sum((sub._script for sub in self.subs), start=[]) + [OP_BOOLAND]

    @property
    def exec_info(self):
        return ExecutionInfo.from_concat(
            self.subs[0].exec_info, self.subs[1].exec_info, ops_count=1
        )

    def lift(self):
        return policy.conjunction(*[sub.lift() for sub in self.subs])

    def satisfaction(self, sat_material):
        return Satisfaction.from_concat(sat_material, self.subs[0], self.subs[1])

    def dissatisfaction(self):
        return self.subs[1].dissatisfaction() + self.subs[0].dissatisfaction()

    def __repr__(self):
        return f"and_b({','.join(map(str, self.subs))})"


class OrB(Node):
    def __init__(self, sub_x, sub_z):
        check_type(sub_x.p.has_all("Bd"), f"or_b: X must be 'Bd', got '{sub_x}'")
        check_type(sub_z.p.has_all("Wd"), f"or_b: Z must be 'Wd', got '{sub_z}'")

        self.subs = [sub_x, sub_z]

        self.p = Property(
            "Bdu"
            + ("z" if sub_x.p.z and sub_z.p.z else "")
            + ("o" if sub_x.p.z and sub_z.p.o or sub_x.p.o and sub_z.p.z else "")
        )
        self.needs_sig = all(sub.needs_sig for sub in self.subs)
        self.is_forced = False  # Both subs are 'd'
        self.is_expressive = all(sub.is_expressive for sub in self.subs)
        self.is_nonmalleable = all(
            sub.is_nonmalleable and sub.is_expressive for sub in self.subs
        ) and any(sub.needs_sig for sub in self.subs)
        self.abs_heightlocks = any(sub.abs_heightlocks for sub in self.subs)
        self.rel_heightlocks = any(sub.rel_heightlocks for sub in self.subs)
        self.abs_timelocks = any(sub.abs_timelocks for sub in self.subs)
        self.rel_timelocks = any(sub.rel_timelocks for sub in self.subs)
        self.no_timelock_mix = all(sub.no_timelock_mix for sub in self.subs)

    @property
    def _script(self):
        return sum((sub._script for sub in self.subs), start=[]) + [OP_BOOLOR]

    @property
    def exec_info(self):
        return ExecutionInfo.from_concat(
            self.subs[0].exec_info,
            self.subs[1].exec_info,
            ops_count=1,
            disjunction=True,
        )

    def lift(self):
        return policy.disjunction(*[sub.lift() for sub in self.subs])

    def satisfaction(self, sat_material):
        return Satisfaction.from_concat(
            sat_material, self.subs[0], self.subs[1], disjunction=True
        )

    def dissatisfaction(self):
        return self.subs[1].dissatisfaction() + self.subs[0].dissatisfaction()

    def __repr__(self):
        return f"or_b({','.join(map(str, self.subs))})"


class OrC(Node):
    def __init__(self, sub_x, sub_z):
        check_type(sub_x.p.has_all("Bdu"), f"or_c: X must be 'Bdu', got '{sub_x}'")
        check_type(sub_z.p.V, f"or_c: Z must be 'V', got '{sub_z}'")

        self.subs = [sub_x, sub_z]

        self.p = Property(
            "V"
            + ("z" if sub_x.p.z and sub_z.p.z else "")
            + ("o" if sub_x.p.o and sub_z.p.z else "")
        )
        self.needs_sig = all(sub.needs_sig for sub in self.subs)
        self.is_forced = True  # Because sub_z is 'V'
        self.is_expressive = False  # V
        self.is_nonmalleable = (
            all(sub.is_nonmalleable for sub in self.subs)
            and any(sub.needs_sig for sub in self.subs)
            and sub_x.is_expressive
        )
        self.abs_heightlocks = any(sub.abs_heightlocks for sub in self.subs)
        self.rel_heightlocks = any(sub.rel_heightlocks for sub in self.subs)
        self.abs_timelocks = any(sub.abs_timelocks for sub in self.subs)
        self.rel_timelocks = any(sub.rel_timelocks for sub in self.subs)
        self.no_timelock_mix = all(sub.no_timelock_mix for sub in self.subs)

    @property
    def _script(self):
        return self.subs[0]._script + [OP_NOTIF] + self.subs[1]._script + [OP_ENDIF]

    @property
    def exec_info(self):
        exec_info = ExecutionInfo.from_or_uneven(
            self.subs[0].exec_info, self.subs[1].exec_info, ops_count=2
        )
        exec_info.set_undissatisfiable()  # it's V.
        return exec_info

    def lift(self):
        return policy.disjunction(*[sub.lift() for sub in self.subs])

    def satisfaction(self, sat_material):
        return Satisfaction.from_or_uneven(sat_material, self.subs[0], self.subs[1])

    def dissatisfaction(self):
        return Satisfaction.unavailable()  # it's V.

    def __repr__(self):
        return f"or_c({','.join(map(str, self.subs))})"


class OrD(Node):
    def __init__(self, sub_x, sub_z):
        check_type(sub_x.p.has_all("Bdu"), f"or_d: X must be 'Bdu', got '{sub_x}'")
        check_type(sub_z.p.B, f"or_d: Z must be 'B', got '{sub_z}'")

        self.subs = [sub_x, sub_z]

        self.p = Property(
            "B"
            + ("z" if sub_x.p.z and sub_z.p.z else "")
            + ("o" if sub_x.p.o and sub_z.p.z else "")
            + ("d" if sub_z.p.d else "")
            + ("u" if sub_z.p.u else "")
        )
        self.needs_sig = all(sub.needs_sig for sub in self.subs)
        self.is_forced = sub_z.is_forced
        self.is_expressive = all(sub.is_expressive for sub in self.subs)
        self.is_nonmalleable = (
            all(sub.is_nonmalleable for sub in self.subs)
            and any(sub.needs_sig for sub in self.subs)
            and sub_x.is_expressive
        )
        self.abs_heightlocks = any(sub.abs_heightlocks for sub in self.subs)
        self.rel_heightlocks = any(sub.rel_heightlocks for sub in self.subs)
        self.abs_timelocks = any(sub.abs_timelocks for sub in self.subs)
        self.rel_timelocks = any(sub.rel_timelocks for sub in self.subs)
        self.no_timelock_mix = all(sub.no_timelock_mix for sub in self.subs)

    @property
    def _script(self):
        return (
            self.subs[0]._script
            + [OP_IFDUP, OP_NOTIF]
            + self.subs[1]._script
            + [OP_ENDIF]
        )

    @property
    def exec_info(self):
        return ExecutionInfo.from_or_uneven(
            self.subs[0].exec_info, self.subs[1].exec_info, ops_count=3
        )

    def lift(self):
        return policy.disjunction(*[sub.lift() for sub in self.subs])

    def satisfaction(self, sat_material):
        return Satisfaction.from_or_uneven(sat_material, self.subs[0], self.subs[1])

    def dissatisfaction(self):
        return self.subs[1].dissatisfaction() + self.subs[0].dissatisfaction()

    def __repr__(self):
        return f"or_d({','.join(map(str, self.subs))})"


class OrI(Node):
    def __init__(self, sub_x, sub_z):
        check_type(
            sub_x.p.type() == sub_z.p.type() and sub_x.p.has_any("BKV"),
            f"or_i: X and Z must be both 'B', 'K' or 'V', got '{sub_x}' and '{sub_z}'",
        )

        self.subs = [sub_x, sub_z]

        self.p = Property(
            sub_x.p.type()
            + ("o" if sub_x.p.z and sub_z.p.z else "")
            + ("d" if sub_x.p.d or sub_z.p.d else "")
            + ("u" if sub_x.p.u and sub_z.p.u else "")
        )
        self.needs_sig = all(sub.needs_sig for sub in self.subs)
        self.is_forced = all(sub.is_forced for sub in self.subs)
        self.is_expressive = (
            sub_x.is_expressive
            and sub_z.is_forced
            or sub_x.is_forced
            and sub_z.is_expressive
        )
        self.is_nonmalleable = all(sub.is_nonmalleable for sub in self.subs) and any(
            sub.needs_sig for sub in self.subs
        )
        self.abs_heightlocks = any(sub.abs_heightlocks for sub in self.subs)
        self.rel_heightlocks = any(sub.rel_heightlocks for sub in self.subs)
        self.abs_timelocks = any(sub.abs_timelocks for sub in self.subs)
        self.rel_timelocks = any(sub.rel_timelocks for sub in self.subs)
        self.no_timelock_mix = all(sub.no_timelock_mix for sub in self.subs)

    @property
    def _script(self):
        return (
            [OP_IF]
            + self.subs[0]._script
            + [OP_ELSE]
            + self.subs[1]._script
            + [OP_ENDIF]
        )

    @property
    def exec_info(self):
        return ExecutionInfo.from_or_even(
            self.subs[0].exec_info, self.subs[1].exec_info, ops_count=3
        )

    def lift(self):
        return policy.disjunction(*[sub.lift() for sub in self.subs])

    def satisfaction(self, sat_material):
        return Satisfaction.choose(
            self.subs[0].satisfaction(sat_material) + Satisfaction([b"\x01"]),
            self.subs[1].satisfaction(sat_material) + Satisfaction([b""]),
            sat_material.malleable,
        )

    def dissatisfaction(self):
        return (self.subs[0].dissatisfaction() + Satisfaction(witness=[b"\x01"])) | (
            self.subs[1].dissatisfaction() + Satisfaction(witness=[b""])
        )

    def __repr__(self):
        return f"or_i({','.join(map(str, self.subs))})"


class AndOr(Node):
    def __init__(self, sub_x, sub_y, sub_z):
        check_type(sub_x.p.has_all("Bdu"), f"andor: X must be 'Bdu', got '{sub_x}'")
        check_type(
            sub_y.p.type() == sub_z.p.type() and sub_y.p.has_any("BKV"),
            f"andor: Y and Z must be both 'B', 'K' or 'V', got '{sub_y}' and '{sub_z}'",
        )

        self.subs = [sub_x, sub_y, sub_z]

        self.p = Property(
            sub_y.p.type()
            + ("z" if sub_x.p.z and sub_y.p.z and sub_z.p.z else "")
            + (
                "o"
                if sub_x.p.z
                and sub_y.p.o
                and sub_z.p.o
                or sub_x.p.o
                and sub_y.p.z
                and sub_z.p.z
                else ""
            )
            + ("d" if sub_z.p.d else "")
            + ("u" if sub_y.p.u and sub_z.p.u else "")
        )
        self.needs_sig = sub_z.needs_sig and (sub_x.needs_sig or sub_y.needs_sig)
        self.is_forced = sub_z.is_forced and (sub_x.needs_sig or sub_y.is_forced)
        self.is_expressive = (
            sub_x.is_expressive
            and sub_z.is_expressive
            and (sub_x.needs_sig or sub_y.is_forced)
        )
        self.is_nonmalleable = (
            all(sub.is_nonmalleable for sub in self.subs)
            and any(sub.needs_sig for sub in self.subs)
            and sub_x.is_expressive
        )
        self.abs_heightlocks = any(sub.abs_heightlocks for sub in self.subs)
        self.rel_heightlocks = any(sub.rel_heightlocks for sub in self.subs)
        self.abs_timelocks = any(sub.abs_timelocks for sub in self.subs)
        self.rel_timelocks = any(sub.rel_timelocks for sub in self.subs)
        # X and Y, or Z. So we have a mix if any contain a timelock mix, or
        # there is a mix between X and Y.
        self.no_timelock_mix = all(sub.no_timelock_mix for sub in self.subs) and not (
            any(sub.rel_timelocks for sub in [sub_x, sub_y])
            and any(sub.rel_heightlocks for sub in [sub_x, sub_y])
            or any(sub.abs_timelocks for sub in [sub_x, sub_y])
            and any(sub.abs_heightlocks for sub in [sub_x, sub_y])
        )

    @property
    def _script(self):
        return (
            self.subs[0]._script
            + [OP_NOTIF]
            + self.subs[2]._script
            + [OP_ELSE]
            + self.subs[1]._script
            + [OP_ENDIF]
        )

    @property
    def exec_info(self):
        return ExecutionInfo.from_andor_uneven(
            self.subs[0].exec_info,
            self.subs[1].exec_info,
            self.subs[2].exec_info,
            ops_count=3,
        )

    def lift(self):
        sub_x, sub_y, sub_z = [sub.lift() for sub in self.subs]
        return policy.disjunction(policy.conjunction(sub_x, sub_y), sub_z)

    def satisfaction(self, sat_material):
        # (A and B) or (!A and C)
        return Satisfaction.choose(
            self.subs[1].satisfaction(sat_material)
            + self.subs[0].satisfaction(sat_material),
            self.subs[2].satisfaction(sat_material) + self.subs[0].dissatisfaction(),
            sat_material.malleable,
        )

    def dissatisfaction(self):
        # Dissatisfy X and Z
        return self.subs[2].dissatisfaction() + self.subs[0].dissatisfaction()

    def __repr__(self):
        return f"andor({','.join(map(str, self.subs))})"


class AndN(AndOr):
    def __init__(self, sub_x, sub_y):
        AndOr.__init__(self, sub_x, sub_y, Just0())

    def _rebuild(self, subs):
        return AndN(subs[0], subs[1])

    def lift(self):
        return policy.conjunction(self.subs[0].lift(), self.subs[1].lift())

    def __repr__(self):
        return f"and_n({self.subs[0]},{self.subs[1]})"


class Thresh(Node):
    def __init__(self, k, subs):
        n = len(subs)
        if not 1 <= k <= n:
            raise MiniscriptNodeCreationError(f"Invalid thresh() threshold {k} for {n} subs")

        self.k = k
        self.subs = subs

        check_type(subs[0].p.has_all("Bdu"), f"thresh: first sub must be 'Bdu', got '{subs[0]}'")
        for sub in subs[1:]:
            check_type(sub.p.has_all("Wdu"), f"thresh: subs must be 'Wdu', got '{sub}'")

        # Number of stack elements consumed, 2 standing for "more than one".
        args = sum(0 if sub.p.z else 1 if sub.p.o else 2 for sub in subs)
        all_e = all(sub.is_expressive for sub in subs)
        all_m = all(sub.is_nonmalleable for sub in subs)
        s_count = sum(1 for sub in subs if sub.needs_sig)

        self.p = Property("Bdu" + ("z" if args == 0 else "") + ("o" if args == 1 else ""))
        self.needs_sig = s_count >= n - k + 1
        self.is_forced = False  # All subs need to be 'd'
        self.is_expressive = all_e and s_count == n
        self.is_nonmalleable = all_e and all_m and s_count >= n - k
        self.abs_heightlocks = any(sub.abs_heightlocks for sub in subs)
        self.rel_heightlocks = any(sub.rel_heightlocks for sub in subs)
        self.abs_timelocks = any(sub.abs_timelocks for sub in subs)
        self.rel_timelocks = any(sub.rel_timelocks for sub in subs)
        # With k == 1 a single sub is ever satisfied, so the subs may not conflict.
        self.no_timelock_mix = all(sub.no_timelock_mix for sub in subs) and (
            k == 1
            or not (
                self.abs_heightlocks
                and self.abs_timelocks
                or self.rel_heightlocks
                and self.rel_timelocks
            )
        )

    def _rebuild(self, subs):
        return Thresh(self.k, subs)

    @property
    def _script(self):
        return (
            self.subs[0]._script
            + sum(((sub._script + [OP_ADD]) for sub in self.subs[1:]), start=[])
            + [self.k, OP_EQUAL]
        )

    @property
    def exec_info(self):
        return ExecutionInfo.from_thresh(self.k, [sub.exec_info for sub in self.subs])

    def lift(self):
        return policy.Threshold(self.k, [sub.lift() for sub in self.subs])

    def satisfaction(self, sat_material):
        return Satisfaction.from_thresh(sat_material, self.k, self.subs)

    def dissatisfaction(self):
        return sum(
            [sub.dissatisfaction() for sub in self.subs], start=Satisfaction(witness=[])
        )

    def __repr__(self):
        return f"thresh({self.k},{','.join(map(str, self.subs))})"


def is_wrapper_form(node):
    """Whether this node is written as 'x:sub' (the pk() and pkh() aliases aren't)."""
    if isinstance(node, WrapC) and isinstance(node.subs[0], (Pk, Pkh)):
        return False
    return isinstance(node, WrapperNode)


class WrapperNode(Node):
    """A virtual base class for wrappers.

    Don't instanciate it directly, use concret wrapper fragments instead.
    """

    # The character prepended to the sub's string representation.
    letter = None

    def __init__(self, sub):
        self.subs = [sub]

        # Properties for most wrappers are directly inherited. When it's not, they
        # are overriden in the fragment's __init__.
        self.needs_sig = sub.needs_sig
        self.is_forced = sub.is_forced
        self.is_expressive = sub.is_expressive
        self.is_nonmalleable = sub.is_nonmalleable
        self.abs_heightlocks = sub.abs_heightlocks
        self.rel_heightlocks = sub.rel_heightlocks
        self.abs_timelocks = sub.abs_timelocks
        self.rel_timelocks = sub.rel_timelocks
        self.no_timelock_mix = not (
            self.abs_heightlocks
            and self.abs_timelocks
            or self.rel_heightlocks
            and self.rel_timelocks
        )

    @property
    def sub(self):
        # Wrapper have a single sub
        return self.subs[0]

    def _rebuild(self, subs):
        return self.__class__(subs[0])

    def lift(self):
        return self.sub.lift()

    def satisfaction(self, sat_material):
        # Most wrappers are satisfied this way, for special cases it's overriden.
        return self.subs[0].satisfaction(sat_material)

    def dissatisfaction(self):
        # Most wrappers are satisfied this way, for special cases it's overriden.
        return self.subs[0].dissatisfaction()

    def __repr__(self):
        # Don't duplicate colons
        if is_wrapper_form(self.sub):
            return f"{self.letter}{self.sub}"
        return f"{self.letter}:{self.sub}"


class WrapA(WrapperNode):
    letter = "a"

    def __init__(self, sub):
        check_type(sub.p.B, f"a: sub must be 'B', got '{sub}'")
        WrapperNode.__init__(self, sub)

        self.p = Property("W" + "".join(c for c in "ud" if getattr(sub.p, c)))

    @property
    def _script(self):
        return [OP_TOALTSTACK] + self.sub._script + [OP_FROMALTSTACK]

    @property
    def exec_info(self):
        return ExecutionInfo.from_wrap(self.sub.exec_info, ops_count=2)


class WrapS(WrapperNode):
    letter = "s"

    def __init__(self, sub):
        check_type(sub.p.has_all("Bo"), f"s: sub must be 'Bo', got '{sub}'")
        WrapperNode.__init__(self, sub)

        self.p = Property("W" + "".join(c for c in "ud" if getattr(sub.p, c)))

    @property
    def _script(self):
        return [OP_SWAP] + self.sub._script

    @property
    def exec_info(self):
        return ExecutionInfo.from_wrap(self.sub.exec_info, ops_count=1)


class WrapC(WrapperNode):
    letter = "c"

    def __init__(self, sub):
        check_type(sub.p.K, f"c: sub must be 'K', got '{sub}'")
        WrapperNode.__init__(self, sub)

        self.p = Property("Bu" + "".join(c for c in "dno" if getattr(sub.p, c)))
        self.needs_sig = True  # CHECKSIG

    @property
    def _script(self):
        return self.sub._script + [OP_CHECKSIG]

    @property
    def exec_info(self):
        # The signature, or the empty vector to dissatisfy.
        return ExecutionInfo.from_wrap(
            self.sub.exec_info,
            ops_count=1,
            sat=1,
            dissat=1,
            sat_size=SIG_ELEM_SIZE,
            dissat_size=EMPTY_ELEM_SIZE,
        )

    def __repr__(self):
        # Special case of aliases
        if isinstance(self.subs[0], Pk):
            return f"pk({self.subs[0].pubkey})"
        if isinstance(self.subs[0], Pkh):
            return f"pkh({self.subs[0].pubkey})"
        return WrapperNode.__repr__(self)


class WrapT(AndV, WrapperNode):
    letter = "t"

    def __init__(self, sub):
        AndV.__init__(self, sub, Just1())

    def _rebuild(self, subs):
        return WrapT(subs[0])

    def lift(self):
        return self.sub.lift()

    __repr__ = WrapperNode.__repr__


class WrapD(WrapperNode):
    letter = "d"

    def __init__(self, sub):
        check_type(sub.p.has_all("Vz"), f"d: sub must be 'Vz', got '{sub}'")
        WrapperNode.__init__(self, sub)

        self.p = Property("Bond")
        self.is_forced = False  # d
        self.is_expressive = True  # sub is V, and we add a single dissat

    @property
    def _script(self):
        return [OP_DUP, OP_IF] + self.sub._script + [OP_ENDIF]

    @property
    def exec_info(self):
        return ExecutionInfo.from_wrap_dissat(
            self.sub.exec_info,
            ops_count=3,
            sat=1,
            dissat=1,
            sat_size=ONE_ELEM_SIZE,
            dissat_size=EMPTY_ELEM_SIZE,
        )

    def satisfaction(self, sat_material):
        return Satisfaction(witness=[b"\x01"]) + self.subs[0].satisfaction(sat_material)

    def dissatisfaction(self):
        return Satisfaction(witness=[b""])


class WrapV(WrapperNode):
    letter = "v"

    def __init__(self, sub):
        check_type(sub.p.B, f"v: sub must be 'B', got '{sub}'")
        WrapperNode.__init__(self, sub)

        self.p = Property("V" + "".join(c for c in "zon" if getattr(sub.p, c)))
        self.is_forced = True  # V
        self.is_expressive = False  # V

    @property
    def _script(self):
        if self.sub._script[-1] == OP_CHECKSIG:
            return self.sub._script[:-1] + [OP_CHECKSIGVERIFY]
        elif self.sub._script[-1] == OP_CHECKMULTISIG:
            return self.sub._script[:-1] + [OP_CHECKMULTISIGVERIFY]
        elif self.sub._script[-1] == OP_EQUAL:
            return self.sub._script[:-1] + [OP_EQUALVERIFY]
        return self.sub._script + [OP_VERIFY]

    @property
    def exec_info(self):
        # Keys are never the last element, placeholders do for the abstract ones.
        sized = self.sub.translate(lambda key: key if key.is_concrete() else DUMMY_KEY)
        verify_cost = int(WrapV(sized)._script[-1] == OP_VERIFY)
        exec_info = ExecutionInfo.from_wrap(self.sub.exec_info, ops_count=verify_cost)
        exec_info.set_undissatisfiable()  # it's V.
        return exec_info

    def dissatisfaction(self):
        return Satisfaction.unavailable()  # It's V.


class WrapJ(WrapperNode):
    letter = "j"

    def __init__(self, sub):
        check_type(sub.p.has_all("Bn"), f"j: sub must be 'Bn', got '{sub}'")
        WrapperNode.__init__(self, sub)

        self.p = Property("Bnd" + "".join(c for c in "ou" if getattr(sub.p, c)))
        self.is_forced = False  # d
        self.is_expressive = sub.is_forced

    @property
    def _script(self):
        return [OP_SIZE, OP_0NOTEQUAL, OP_IF, *self.sub._script, OP_ENDIF]

    @property
    def exec_info(self):
        return ExecutionInfo.from_wrap_dissat(
            self.sub.exec_info, ops_count=4, dissat=1, dissat_size=EMPTY_ELEM_SIZE
        )

    def dissatisfaction(self):
        return Satisfaction(witness=[b""])


class WrapN(WrapperNode):
    letter = "n"

    def __init__(self, sub):
        check_type(sub.p.B, f"n: sub must be 'B', got '{sub}'")
        WrapperNode.__init__(self, sub)

        self.p = Property("Bu" + "".join(c for c in "zond" if getattr(sub.p, c)))

    @property
    def _script(self):
        return [*self.sub._script, OP_0NOTEQUAL]

    @property
    def exec_info(self):
        return ExecutionInfo.from_wrap(self.sub.exec_info, ops_count=1)


class WrapL(OrI, WrapperNode):
    letter = "l"

    def __init__(self, sub):
        OrI.__init__(self, Just0(), sub)

    @property
    def sub(self):
        return self.subs[1]

    def _rebuild(self, subs):
        return WrapL(subs[1])

    def lift(self):
        return self.sub.lift()

    __repr__ = WrapperNode.__repr__


class WrapU(OrI, WrapperNode):
    letter = "u"

    def __init__(self, sub):
        OrI.__init__(self, sub, Just0())

    def _rebuild(self, subs):
        return WrapU(subs[0])

    def lift(self):
        return self.sub.lift()

    __repr__ = WrapperNode.__repr__
