"""
All the exceptions raised when dealing with Miniscript.
"""

from ..descriptors.errors import DescriptorParsingError


class MiniscriptError(ValueError):
    def __init__(self, message):
        super().__init__(message)
        self.message = message


class MiniscriptMalformed(MiniscriptError, DescriptorParsingError):
    """The string representation of a Miniscript is invalid.

    It is also a descriptor parsing error, as Miniscript is parsed as part of a
    wsh() descriptor.
    """


class MiniscriptNodeCreationError(MiniscriptError):
    pass


class MiniscriptPropertyError(MiniscriptError):
    pass


class MiniscriptTypeError(MiniscriptError):
    """A fragment was given a sub-fragment of an incompatible type."""


class MiniscriptAnalysisError(MiniscriptError):
    """The Miniscript is valid but unsafe to use (see Node.sanity_check())."""


class ScriptContextError(MiniscriptError):
    """The Miniscript is not valid under the Script context it is used in."""


class CompressedOnlyError(ScriptContextError):
    """An uncompressed key was used in a context that only allows compressed ones."""

    def __init__(self, key):
        super().__init__(f"Only compressed public keys are allowed, got '{key}'")
        self.key = key


class SatisfactionError(ValueError):
    def __init__(self, message):
        super().__init__(message)
        self.message = message


class MissingSignature(SatisfactionError):
    """No signature is available for a key that needs to sign."""

    def __init__(self, key):
        super().__init__(f"Missing signature for key '{key}'")
        self.key = key


class CouldNotSatisfy(SatisfactionError):
    pass
