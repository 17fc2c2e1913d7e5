# Copyright (c) 2020 The Bitcoin Core developers
# Copyright (c) 2021 Antoine Poinsot
# Distributed under the MIT software license, see the accompanying
# file LICENSE or http://www.opensource.org/licenses/mit-license.php.

from .errors import MiniscriptPropertyError

# The basic types, a fragment has exactly one.
TYPES = "BVKW"
# The type modifiers.
PROPS = "zondu"

# (type/property, must_be, must_not_be)
CONSISTENCY_RULES = [
    ("K", "u", ""),
    ("V", "", "du"),
    ("z", "", "o"),
    ("n", "", "z"),
]


class Property:
    """The type of a Miniscript fragment along with its modifiers.

    "B": Base, "V": Verify, "K": Key, "W": Wrapped.
    "z": consumes no stack element, "o": consumes exactly one, "n": its top input is
    never zero, "d": has a dissatisfaction, "u": leaves exactly 1 on the stack when
    satisfied.
    """

    def __init__(self, property_str=""):
        allowed = TYPES + PROPS
        invalid = set(property_str) - set(allowed)
        if invalid:
            raise MiniscriptPropertyError(
                f"Invalid type or property '{''.join(sorted(invalid))}', "
                f"expected any of '{allowed}'"
            )

        for literal in allowed:
            setattr(self, literal, literal in property_str)

        self.check_valid()

    def __repr__(self):
        return "".join(c for c in TYPES + PROPS if getattr(self, c))

    def __eq__(self, other):
        return isinstance(other, Property) and repr(self) == repr(other)

    def __hash__(self):
        return hash(repr(self))

    def has_all(self, properties):
        """Whether all the types and properties in the {properties} str are set."""
        return all(getattr(self, c) for c in properties)

    def has_any(self, properties):
        """Whether any of the types and properties in the {properties} str is set."""
        return any(getattr(self, c) for c in properties)

    def check_valid(self):
        if len(self.type()) != 1:
            raise MiniscriptPropertyError(
                f"A Miniscript fragment must have a single type, got '{self.type()}'"
            )

        conflicts = []
        for (attr, must_be, must_not_be) in CONSISTENCY_RULES:
            if not getattr(self, attr):
                continue
            if not self.has_all(must_be):
                conflicts.append(f"{attr} must be {must_be}")
            if self.has_any(must_not_be):
                conflicts.append(f"{attr} must not be {must_not_be}")
        if conflicts:
            raise MiniscriptPropertyError(
                f"Conflicting types and properties: {', '.join(conflicts)}"
            )

    def type(self):
        return "".join(c for c in TYPES if getattr(self, c))

    def properties(self):
        return "".join(c for c in PROPS if getattr(self, c))
