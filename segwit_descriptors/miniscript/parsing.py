"""
Utilities to parse Miniscript from its string representation.
"""

from . import fragments

from .. import expression
from ..descriptors.errors import DescriptorParsingError
from ..key import DescriptorKey, DescriptorKeyError
from .errors import MiniscriptMalformed


WRAPPERS = {
    "a": lambda sub: fragments.WrapA(sub),
    "s": lambda sub: fragments.WrapS(sub),
    "c": lambda sub: fragments.WrapC(sub),
    "t": lambda sub: fragments.WrapT(sub),
    "d": lambda sub: fragments.WrapD(sub),
    "v": lambda sub: fragments.WrapV(sub),
    "j": lambda sub: fragments.WrapJ(sub),
    "n": lambda sub: fragments.WrapN(sub),
    "l": lambda sub: fragments.WrapL(sub),
    "u": lambda sub: fragments.WrapU(sub),
}

HASH_FRAGMENTS = {
    "sha256": lambda digest: fragments.Sha256(digest),
    "hash256": lambda digest: fragments.Hash256(digest),
    "ripemd160": lambda digest: fragments.Ripemd160(digest),
    "hash160": lambda digest: fragments.Hash160(digest),
}

BINARY_FRAGMENTS = {
    "and_v": lambda x, y: fragments.AndV(x, y),
    "and_b": lambda x, y: fragments.AndB(x, y),
    "and_n": lambda x, y: fragments.AndN(x, y),
    "or_b": lambda x, z: fragments.OrB(x, z),
    "or_c": lambda x, z: fragments.OrC(x, z),
    "or_d": lambda x, z: fragments.OrD(x, z),
    "or_i": lambda x, z: fragments.OrI(x, z),
}


def malformed(tree):
    return MiniscriptMalformed(
        f"{tree.name}({len(tree.args)} args) while parsing Miniscript"
    )


def split_wrappers(name):
    """Split 'dv:older' (or 'd:v:older') into the wrappers 'dv' and the fragment
    name 'older'."""
    if ":" not in name:
        return "", name
    *prefixes, frag_name = name.split(":")
    if frag_name == "" or any(prefix == "" for prefix in prefixes):
        raise MiniscriptMalformed(f"Invalid wrappers in '{name}'")
    return "".join(prefixes), frag_name


def parse_key(tree):
    if len(tree.args) > 0:
        raise MiniscriptMalformed(f"Expected a key, got '{tree.name}' with arguments")
    try:
        return DescriptorKey(tree.name)
    except DescriptorKeyError as e:
        raise MiniscriptMalformed(f"Invalid key '{tree.name}': {e.message}")


def parse_int(tree):
    if len(tree.args) > 0:
        raise MiniscriptMalformed(f"Expected a number, got '{tree.name}' with arguments")
    try:
        return expression.parse_num(tree.name)
    except DescriptorParsingError as e:
        raise MiniscriptMalformed(e.message)


def parse_digest(tree):
    if len(tree.args) > 0:
        raise MiniscriptMalformed(f"Expected a digest, got '{tree.name}' with arguments")
    try:
        return bytes.fromhex(tree.name)
    except ValueError:
        raise MiniscriptMalformed(f"Invalid hex digest '{tree.name}'")


def parse_fragment(tree, name):
    """Create the fragment called {name}, reading its arguments from {tree}."""
    args = tree.args

    if name in ["0", "1"]:
        if len(args) != 0:
            raise malformed(tree)
        return fragments.Just0() if name == "0" else fragments.Just1()

    if name in ["pk", "pkh", "pk_k", "pk_h"]:
        if len(args) != 1:
            raise malformed(tree)
        key = parse_key(args[0])
        if name == "pk":
            return fragments.WrapC(fragments.Pk(key))
        if name == "pkh":
            return fragments.WrapC(fragments.Pkh(key))
        if name == "pk_k":
            return fragments.Pk(key)
        return fragments.Pkh(key)

    if name in ["older", "after"]:
        if len(args) != 1:
            raise malformed(tree)
        value = parse_int(args[0])
        if name == "older":
            return fragments.Older(value)
        return fragments.After(value)

    if name in HASH_FRAGMENTS:
        if len(args) != 1:
            raise malformed(tree)
        return HASH_FRAGMENTS[name](parse_digest(args[0]))

    if name == "multi":
        if len(args) < 2:
            raise malformed(tree)
        k = parse_int(args[0])
        keys = [parse_key(arg) for arg in args[1:]]
        return fragments.Multi(k, keys)

    if name in BINARY_FRAGMENTS:
        if len(args) != 2:
            raise malformed(tree)
        subs = [miniscript_from_tree(arg) for arg in args]
        return BINARY_FRAGMENTS[name](*subs)

    if name == "andor":
        if len(args) != 3:
            raise malformed(tree)
        subs = [miniscript_from_tree(arg) for arg in args]
        return fragments.AndOr(*subs)

    if name == "thresh":
        if len(args) < 2:
            raise malformed(tree)
        k = parse_int(args[0])
        subs = [miniscript_from_tree(arg) for arg in args[1:]]
        return fragments.Thresh(k, subs)

    raise MiniscriptMalformed(f"Unknown Miniscript fragment '{name}'")


def miniscript_from_tree(tree):
    """Construct a Miniscript node from an expression Tree."""
    wrappers, name = split_wrappers(tree.name)
    node = parse_fragment(tree, name)

    # The wrapper closest to the fragment name applies first.
    for letter in reversed(wrappers):
        if letter not in WRAPPERS:
            raise MiniscriptMalformed(f"Unknown wrapper '{letter}' in '{tree.name}'")
        node = WRAPPERS[letter](node)

    return node


def miniscript_from_str(ms_str):
    """Construct a Miniscript node from its string representation."""
    return miniscript_from_tree(expression.Tree.from_str(ms_str))
