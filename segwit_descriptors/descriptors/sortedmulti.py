"""
A multisig whose keys are sorted in the Script, as in BIP67.
"""

from ..expression import parse_num, terminal
from ..key import DescriptorKey
from ..miniscript.context import Segwitv0
from ..miniscript.fragments import Multi
from ..miniscript.satisfaction import EMPTY_ELEM_SIZE, SIG_ELEM_SIZE
from .. import policy

from .errors import DescriptorParsingError


class SortedMulti:
    """A k-of-n CHECKMULTISIG whose keys are ordered by their serialization.

    The keys are kept in the order they were given, so the descriptor string
    round-trips. They only get sorted when creating the Script.
    """

    def __init__(self, k, keys):
        assert all(isinstance(key, DescriptorKey) for key in keys)
        Segwitv0.check_multi(k, keys)

        self.k = k
        self.pubkeys = list(keys)

    @staticmethod
    def from_tree(tree):
        if tree.name != "sortedmulti" or len(tree.args) < 2:
            raise DescriptorParsingError(
                f"{tree.name}({len(tree.args)} args) while parsing sortedmulti"
            )
        k = terminal(tree.args[0], parse_num)
        keys = [terminal(arg, DescriptorKey) for arg in tree.args[1:]]
        return SortedMulti(k, keys)

    def __repr__(self):
        return f"sortedmulti({','.join([str(self.k)] + [str(k) for k in self.pubkeys])})"

    def __eq__(self, other):
        return isinstance(other, SortedMulti) and repr(self) == repr(other)

    def __hash__(self):
        return hash(repr(self))

    @property
    def keys(self):
        return self.pubkeys

    def _multi(self):
        """The multi() fragment with the keys in the order of the Script."""
        return Multi(self.k, sorted(self.pubkeys, key=lambda key: key.bytes()))

    def encode(self):
        """The witness script. All keys must be concrete."""
        return self._multi().script

    def script_size(self):
        # The order of the keys doesn't change the size.
        return Multi(self.k, self.pubkeys).script_size()

    def max_satisfaction_witness_elements(self):
        """The dummy element, k signatures and the witness script."""
        return 2 + self.k

    def max_satisfaction_size(self):
        return EMPTY_ELEM_SIZE + SIG_ELEM_SIZE * self.k

    def satisfy(self, sat_material):
        return self._multi().satisfy(sat_material)

    def lift(self):
        return policy.Threshold(
            self.k, [policy.KeyHash(key.to_pubkeyhash()) for key in self.pubkeys]
        )

    def sanity_check(self):
        Multi(self.k, self.pubkeys).sanity_check()

    def for_each_key(self, pred):
        return all(pred(key) for key in self.pubkeys)

    def translate(self, fpk, fpkh=None):
        return SortedMulti(self.k, [fpk(key) for key in self.pubkeys])
