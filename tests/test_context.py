import pytest

from segwit_descriptors import Descriptor, DescriptorKey, Node
from segwit_descriptors.miniscript.context import (
    MAX_STANDARD_P2WSH_SCRIPT_SIZE,
    MAX_STANDARD_P2WSH_STACK_ITEMS,
    Segwitv0,
)
from segwit_descriptors.miniscript.errors import CompressedOnlyError, ScriptContextError

from .conftest import DIGEST, PK_A, PK_A_UNCOMPRESSED, PK_B, XPUB


def nested_and_v(sub, last, depth):
    ms_str = last
    for _ in range(depth):
        ms_str = f"and_v({sub},{ms_str})"
    return ms_str


def test_check_pk():
    Segwitv0.check_pk(DescriptorKey(PK_A))
    Segwitv0.check_pk(DescriptorKey(f"{XPUB}/*"))
    with pytest.raises(CompressedOnlyError) as e:
        Segwitv0.check_pk(DescriptorKey(PK_A_UNCOMPRESSED))
    assert e.value.key == DescriptorKey(PK_A_UNCOMPRESSED)
    assert Segwitv0.pk_len(DescriptorKey(PK_A)) == 34


def test_check_multi():
    keys = [DescriptorKey(PK_A), DescriptorKey(PK_B)]
    Segwitv0.check_multi(1, keys)
    Segwitv0.check_multi(2, keys)
    with pytest.raises(ScriptContextError, match="threshold"):
        Segwitv0.check_multi(0, keys)
    with pytest.raises(ScriptContextError, match="threshold"):
        Segwitv0.check_multi(3, keys)
    Segwitv0.check_multi(1, [DescriptorKey(PK_A)] * 20)
    with pytest.raises(ScriptContextError, match="Too many keys"):
        Segwitv0.check_multi(1, [DescriptorKey(PK_A)] * 21)


def test_top_level_type():
    Segwitv0.top_level_checks(Node.from_str(f"pk({PK_A})"))
    for ms_str in [f"v:pk({PK_A})", f"pk_k({PK_A})", f"s:pk({PK_A})"]:
        with pytest.raises(ScriptContextError, match="type 'B'"):
            Segwitv0.top_level_checks(Node.from_str(ms_str))
        with pytest.raises(ScriptContextError):
            Descriptor.from_str(f"wsh({ms_str})")


def test_script_size():
    digest = DIGEST.hex()
    subs = ",".join([f"sha256({digest})"] + [f"a:sha256({digest})"] * 94)
    ms = Node.from_str(f"thresh(1,{subs})")
    assert ms.script_size() > MAX_STANDARD_P2WSH_SCRIPT_SIZE
    with pytest.raises(ScriptContextError, match="too large"):
        Segwitv0.top_level_checks(ms)
    with pytest.raises(ScriptContextError, match="too large"):
        Descriptor.from_str(f"wsh({ms})")


def test_ops_count():
    ms_str = nested_and_v(f"v:sha256({DIGEST.hex()})", f"sha256({DIGEST.hex()})", 50)
    ms = Node.from_str(ms_str)
    assert ms.exec_info.ops_count == 51 * 4
    assert ms.script_size() < MAX_STANDARD_P2WSH_SCRIPT_SIZE
    with pytest.raises(ScriptContextError, match="operations"):
        Descriptor.from_str(f"wsh({ms_str})")

    # Right at the limit
    ms_str = nested_and_v(f"v:sha256({DIGEST.hex()})", f"pk({PK_A})", 50)
    assert Node.from_str(ms_str).exec_info.ops_count == 201
    Descriptor.from_str(f"wsh({ms_str})")


def test_stack_items():
    ms_str = nested_and_v(f"v:pk({PK_A})", f"pk({PK_A})", MAX_STANDARD_P2WSH_STACK_ITEMS)
    ms = Node.from_str(ms_str)
    assert ms.script_size() == 35 * 101
    assert ms.exec_info.sat_elems == 101
    with pytest.raises(ScriptContextError, match="witness elements"):
        Descriptor.from_str(f"wsh({ms_str})")

    ms_str = nested_and_v(f"v:pk({PK_A})", f"pk({PK_A})", MAX_STANDARD_P2WSH_STACK_ITEMS - 1)
    desc = Descriptor.from_str(f"wsh({ms_str})")
    # The witness script comes on top of the stack items
    assert desc.inner.max_satisfaction_witness_elements() == 101


def test_uncompressed_keys():
    with pytest.raises(CompressedOnlyError):
        Descriptor.from_str(f"wsh(pk({PK_A_UNCOMPRESSED}))")
    with pytest.raises(CompressedOnlyError):
        Descriptor.from_str(f"wsh(multi(1,{PK_A},{PK_A_UNCOMPRESSED}))")
    # Valid outside of a Segwit context
    Node.from_str(f"multi(1,{PK_A},{PK_A_UNCOMPRESSED})")
