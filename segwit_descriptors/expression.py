"""
Utilities to parse the function-like syntax shared by descriptors and Miniscript.

A string such as "wsh(and_v(v:pk(A),older(12)))" is read into a tree of nodes,
each having a name and an ordered list of arguments.
"""

from .common import UINT32_MAX
from .descriptors.errors import DescriptorParsingError

# Deeper trees are rejected instead of exhausting the interpreter's stack.
MAX_RECURSION_DEPTH = 402


class Tree:
    """A node of an expression: a name followed by an optional list of arguments."""

    def __init__(self, name, args=None):
        assert isinstance(name, str)
        self.name = name
        self.args = args if args is not None else []

    @staticmethod
    def from_str(expr_str):
        """Parse an expression string into a Tree.

        Raises a DescriptorParsingError on unbalanced parentheses or trailing
        characters.
        """
        tree, remaining = Tree._parse_one(expr_str, 0)
        if remaining != "":
            raise DescriptorParsingError(
                f"Unexpected trailing characters '{remaining}' in '{expr_str}'"
            )
        return tree

    @staticmethod
    def _parse_one(expr_str, depth):
        if depth > MAX_RECURSION_DEPTH:
            raise DescriptorParsingError(
                f"Expression is nested more than {MAX_RECURSION_DEPTH} levels deep"
            )

        # The name spans until the next separator.
        i = 0
        while i < len(expr_str) and expr_str[i] not in "(),":
            i += 1
        name, remaining = expr_str[:i], expr_str[i:]
        if not remaining.startswith("("):
            return Tree(name), remaining

        args = []
        remaining = remaining[1:]
        while True:
            arg, remaining = Tree._parse_one(remaining, depth + 1)
            args.append(arg)
            if remaining.startswith(")"):
                return Tree(name, args), remaining[1:]
            if not remaining.startswith(","):
                raise DescriptorParsingError(
                    f"Unbalanced parentheses in the arguments of '{name}'"
                )
            remaining = remaining[1:]

    def __repr__(self):
        if len(self.args) == 0:
            return self.name
        return f"{self.name}({','.join(map(repr, self.args))})"


def terminal(tree, convert):
    """Read a leaf of the expression tree, converting its name using {convert}.

    :param convert: a function from str, which may raise a ValueError.
    """
    if len(tree.args) > 0:
        raise DescriptorParsingError(
            f"Expected a terminal, got '{tree.name}' with {len(tree.args)} arguments"
        )
    try:
        return convert(tree.name)
    except ValueError as e:
        raise DescriptorParsingError(f"Invalid terminal '{tree.name}': {e}")


def parse_num(num_str):
    """Parse a decimal number as found in descriptors and Miniscript.

    Only plain ASCII digits are accepted, without sign, separators or leading
    zeros, and the value must fit in 32 bits.
    """
    if num_str == "" or any(c not in "0123456789" for c in num_str):
        raise DescriptorParsingError(f"Invalid number '{num_str}'")
    if len(num_str) > 1 and num_str[0] == "0":
        raise DescriptorParsingError(
            f"Number must start with a digit 1-9, got '{num_str}'"
        )
    num = int(num_str)
    if num > UINT32_MAX:
        raise DescriptorParsingError(f"Number '{num_str}' does not fit in 32 bits")
    return num
