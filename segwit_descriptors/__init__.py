"""
Segwit v0 Output Script Descriptors
===================================

Parse, serialize, analyze and satisfy wsh() and wpkh() descriptors, the former
containing either a Miniscript or a sortedmulti().
"""

from .descriptors import Descriptor, WshDescriptor, WpkhDescriptor, WshInner
from .descriptors.sortedmulti import SortedMulti
from .common import Chain
from .key import DescriptorKey
from .miniscript import Node, SatisfactionMaterial

__version__ = "0.1.0"

__all__ = [
    "Descriptor",
    "WshDescriptor",
    "WpkhDescriptor",
    "WshInner",
    "SortedMulti",
    "Chain",
    "DescriptorKey",
    "Node",
    "SatisfactionMaterial",
]
