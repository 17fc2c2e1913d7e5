"""
Script contexts.

A Miniscript is valid or not depending on where its Script ends up. This module
implements the rules for a Miniscript used as a P2WSH witness script.
"""

import logging

from .errors import CompressedOnlyError, ScriptContextError

# Maximum size of a P2WSH witness script for it to be standard.
MAX_STANDARD_P2WSH_SCRIPT_SIZE = 3600
# Maximum number of witness stack items (not counting the witness script) for a
# P2WSH spend to be standard.
MAX_STANDARD_P2WSH_STACK_ITEMS = 100
# Maximum number of non-push operations per Script.
MAX_OPS_PER_SCRIPT = 201
# Maximum number of public keys in a CHECKMULTISIG.
MAX_PUBKEYS_PER_MULTISIG = 20


class Segwitv0:
    """The Segwit v0 (P2WSH) Script context."""

    @staticmethod
    def check_pk(key):
        """Raise if {key} can't be used in a Segwit v0 Script."""
        if key.is_uncompressed():
            raise CompressedOnlyError(key)

    @staticmethod
    def pk_len(key):
        """The size of a push of {key} in a Segwit v0 Script or witness."""
        return 34

    @staticmethod
    def check_multi(k, keys):
        """Check the parameters of a CHECKMULTISIG."""
        if not 1 <= k <= len(keys):
            raise ScriptContextError(
                f"Invalid multisig threshold {k} for {len(keys)} keys"
            )
        if len(keys) > MAX_PUBKEYS_PER_MULTISIG:
            raise ScriptContextError(
                f"Too many keys in multisig: {len(keys)} (max {MAX_PUBKEYS_PER_MULTISIG})"
            )
        for key in keys:
            Segwitv0.check_pk(key)

    @staticmethod
    def top_level_checks(ms):
        """Check whether the Miniscript {ms} is valid as a P2WSH witness script.

        Raises a ScriptContextError if it isn't.
        """
        if not ms.p.B:
            raise ScriptContextError(
                f"Top level fragment must be of type 'B', got '{ms.p.type()}': {ms}"
            )

        for key in ms.keys:
            Segwitv0.check_pk(key)

        script_size = ms.script_size()
        if script_size > MAX_STANDARD_P2WSH_SCRIPT_SIZE:
            raise ScriptContextError(
                f"Witness script is too large: {script_size} bytes "
                f"(max {MAX_STANDARD_P2WSH_SCRIPT_SIZE})"
            )

        ops_count = ms.exec_info.ops_count
        if ops_count > MAX_OPS_PER_SCRIPT:
            raise ScriptContextError(
                f"Too many executed operations: {ops_count} (max {MAX_OPS_PER_SCRIPT})"
            )

        sat_elems = ms.exec_info.sat_elems
        if sat_elems is not None and sat_elems > MAX_STANDARD_P2WSH_STACK_ITEMS:
            raise ScriptContextError(
                f"Too many witness elements to satisfy: {sat_elems} "
                f"(max {MAX_STANDARD_P2WSH_STACK_ITEMS})"
            )

        logging.debug("Miniscript '%s' passes Segwit v0 checks", ms)
