import pytest

from segwit_descriptors import Descriptor, DescriptorKey, Node
from segwit_descriptors import policy
from segwit_descriptors.utils.hashes import hash160

from .conftest import DIGEST, PK_A, PK_A_HASH, PK_B, PK_C, XPUB


def pkh(key):
    return policy.KeyHash(hash160(bytes.fromhex(key)))


def test_policy_repr():
    assert repr(policy.Unsatisfiable()) == "UNSATISFIABLE"
    assert repr(policy.Trivial()) == "TRIVIAL"
    assert repr(pkh(PK_A)) == f"pkh({PK_A_HASH})"
    assert repr(policy.Older(144)) == "older(144)"
    assert repr(policy.After(500000)) == "after(500000)"
    assert repr(policy.Sha256(DIGEST)) == f"sha256({DIGEST.hex()})"
    assert repr(policy.Hash160(b"\x00" * 20)) == f"hash160({'00' * 20})"

    a, b, c = pkh(PK_A), pkh(PK_B), pkh(PK_C)
    assert repr(policy.conjunction(a, b)) == f"and({a},{b})"
    assert repr(policy.disjunction(a, b)) == f"or({a},{b})"
    assert repr(policy.Threshold(2, [a, b, c])) == f"thresh(2,{a},{b},{c})"

    with pytest.raises(AssertionError):
        policy.Threshold(0, [a])
    with pytest.raises(AssertionError):
        policy.Threshold(2, [a])


def test_policy_equality():
    assert pkh(PK_A) == pkh(PK_A)
    assert pkh(PK_A) != pkh(PK_B)
    assert policy.Older(144) != policy.After(144)
    assert policy.Sha256(DIGEST) != policy.Hash256(DIGEST)
    assert policy.conjunction(pkh(PK_A), pkh(PK_B)) == policy.Threshold(
        2, [pkh(PK_A), pkh(PK_B)]
    )
    assert len({policy.Older(1), policy.Older(1), policy.Older(2)}) == 2


def test_policy_keys():
    a, b, c = pkh(PK_A), pkh(PK_B), pkh(PK_C)
    pol = policy.disjunction(policy.conjunction(a, policy.Older(10)), policy.Threshold(1, [b, c]))
    assert pol.keys() == [a.pkh, b.pkh, c.pkh]
    assert policy.Older(10).keys() == []


def test_miniscript_lift():
    a, b, c = pkh(PK_A), pkh(PK_B), pkh(PK_C)
    vectors = [
        ("0", policy.Unsatisfiable()),
        ("1", policy.Trivial()),
        (f"pk({PK_A})", a),
        (f"pkh({PK_A})", a),
        ("older(144)", policy.Older(144)),
        (f"sha256({DIGEST.hex()})", policy.Sha256(DIGEST)),
        (f"and_v(v:pk({PK_A}),older(144))", policy.conjunction(a, policy.Older(144))),
        (f"or_d(pk({PK_A}),pk({PK_B}))", policy.disjunction(a, b)),
        (f"or_i(pk({PK_A}),pk({PK_B}))", policy.disjunction(a, b)),
        (f"or_b(pk({PK_A}),s:pk({PK_B}))", policy.disjunction(a, b)),
        (f"and_b(pk({PK_A}),s:pk({PK_B}))", policy.conjunction(a, b)),
        (f"and_n(pk({PK_A}),pk({PK_B}))", policy.conjunction(a, b)),
        (
            f"andor(pk({PK_A}),older(144),pk({PK_B}))",
            policy.disjunction(policy.conjunction(a, policy.Older(144)), b),
        ),
        (f"multi(2,{PK_A},{PK_B},{PK_C})", policy.Threshold(2, [a, b, c])),
        (
            f"thresh(2,pk({PK_A}),s:pk({PK_B}),s:pk({PK_C}))",
            policy.Threshold(2, [a, b, c]),
        ),
        # Wrappers are transparent
        (f"l:pk({PK_A})", a),
        (f"u:pk({PK_A})", a),
        (f"t:v:pk({PK_A})", a),
        ("dv:older(144)", policy.Older(144)),
    ]
    for ms_str, expected in vectors:
        assert Node.from_str(ms_str).lift() == expected, ms_str


def test_descriptor_lift(wildcard_key):
    assert Descriptor.from_str(f"wpkh({PK_A})").lift() == pkh(PK_A)
    assert Descriptor.from_str(
        f"wsh(sortedmulti(2,{PK_C},{PK_A},{PK_B}))"
    ).lift() == policy.Threshold(2, [pkh(PK_C), pkh(PK_A), pkh(PK_B)])

    # Abstract keys lift to themselves
    desc = Descriptor.from_str(f"wsh(or_d(pk({wildcard_key}),pkh({XPUB}/*)))")
    pol = desc.lift()
    assert pol == policy.disjunction(
        policy.KeyHash(wildcard_key), policy.KeyHash(DescriptorKey(f"{XPUB}/*"))
    )
    assert repr(pol) == f"or(pkh({wildcard_key}),pkh({XPUB}/*))"
    assert pol.keys() == desc.keys
