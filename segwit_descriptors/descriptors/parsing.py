import logging

from .. import descriptors
from ..expression import Tree
from .checksum import CHECKSUM_LEN, descsum_check

from .errors import ChecksumMismatch, DescriptorParsingError


def verify_checksum(desc_str):
    """Check the checksum appended to a descriptor, if any.

    Returns the descriptor without its checksum. A missing checksum is not an
    error, a wrong one is.
    """
    desc_split = desc_str.split("#")
    if len(desc_split) == 1:
        return desc_str
    if len(desc_split) > 2:
        raise DescriptorParsingError(f"Multiple '#' in descriptor '{desc_str}'")

    descriptor, checksum = desc_split
    if len(checksum) != CHECKSUM_LEN:
        raise ChecksumMismatch(
            f"Checksum '{checksum}' has {len(checksum)} characters, expected {CHECKSUM_LEN}"
        )
    if not descsum_check(desc_str):
        raise ChecksumMismatch(f"Checksum '{checksum}' is invalid for '{descriptor}'")

    return descriptor


def descriptor_from_tree(tree):
    """Create a descriptor from the expression Tree of its string representation."""
    if tree.name == "wsh":
        return descriptors.WshDescriptor.from_tree(tree)

    if tree.name == "wpkh":
        return descriptors.WpkhDescriptor.from_tree(tree)

    raise DescriptorParsingError(f"Unknown descriptor fragment: '{tree.name}'")


def descriptor_from_str(desc_str):
    """Parse a Bitcoin Output Script Descriptor from its string representation.

    The checksum is verified before anything else is parsed.
    """
    desc_str = verify_checksum(desc_str)
    desc = descriptor_from_tree(Tree.from_str(desc_str))
    logging.debug("Parsed descriptor: %s", desc_str)
    return desc
