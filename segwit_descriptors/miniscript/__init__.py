"""
Miniscript
==========

Miniscript is a language for writing (a subset of) Bitcoin Scripts in a structured way, \
enabling analysis, composition, generic signing and more. Only its use as a Segwit v0 \
(P2WSH) witness script is supported here.

For more information about Miniscript, see https://bitcoin.sipa.be/miniscript.
"""

from .fragments import Node
from .satisfaction import SatisfactionMaterial
