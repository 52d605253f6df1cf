"""
Conch command patterns: tokens, optional-group expansion, and the pattern tree.

Overview
- Tokens
  • LiteralToken("flow"): a word the user must type verbatim.
  • ArgumentToken("flow-id"): a placeholder written "<flow-id>" that binds one input word.
  • OptionalGroup("remotely now"): a sub-pattern written "[remotely now]" that may be omitted.

- Tokenization
  • split(pattern): whitespace split that keeps "<...>" and balanced "[...]" whole.
  • classify(raw): turn one raw element into its token.
  • tokenize(pattern): split + classify.
  • expand(tokens): every concrete alternative, optional groups included and skipped.

- Tree
  • TreeNode: a token label and its children, keyed by label.
  • PatternTree: one prefix tree over every expanded alternative of every pattern,
    so commands sharing leading tokens share nodes.

Quick example
    >>> tree = PatternTree.build(["start flow <flow-id>", "start stream", "stop [remotely]"])
    >>> sorted(" ".join(path) for path in tree.paths())
    ['start', 'start flow', 'start flow <flow-id>', 'start stream', 'stop', 'stop remotely']
"""
import functools
import logging

from .utils import *

logger = logging.getLogger(__name__)


class Token:
    """
    Base of the pattern token variants.

    Tokens are immutable values. Two tokens are equal when they are of the same
    variant and carry the same value; their label (the textual form found in the
    pattern) is what the pattern tree uses for node identity.
    """
    __slots__ = ("_value",)

    def __init__(self, value, /):
        if not isinstance(value, str):
            raise TypeError(f"{type(self).__name__}() argument must be a string")
        object.__setattr__(self, "_value", value)

    def __setattr__(self, name, value, /):
        raise AttributeError(f"{type(self).__name__!r} object is immutable")

    @property
    def label(self):
        raise NotImplementedError

    def __eq__(self, other, /):
        if not isinstance(other, Token):
            return NotImplemented
        return type(self) is type(other) and self._value == other._value

    def __hash__(self):
        return hash((type(self), self._value))

    def __repr__(self):
        return f"{type(self).__name__}({self._value!r})"

    def __str__(self):
        return self.label


class LiteralToken(Token):
    __slots__ = ()

    @property
    def text(self):
        return self._value

    @property
    def label(self):
        return self._value


class ArgumentToken(Token):
    __slots__ = ()

    @property
    def name(self):
        return self._value

    @property
    def label(self):
        return f"<{self._value}>"


class OptionalGroup(Token):
    """
    Optional sub-pattern. Its interior is itself a pattern and may hold further
    groups; tokens are computed lazily from the interior text.
    """
    __slots__ = ()

    @property
    def pattern(self):
        return self._value

    @property
    def tokens(self):
        return tokenize(self._value)

    @property
    def label(self):
        return f"[{self._value}]"


def split(pattern, /):
    """
    Split a pattern into raw elements on whitespace.

    "<...>" placeholders and "[...]" groups are kept whole even when they hold
    spaces. Groups may nest; an unterminated group runs to the end of the pattern.

    Examples
    - split("start flow <flow-id>")     -> ["start", "flow", "<flow-id>"]
    - split("stop [remotely now] -f")   -> ["stop", "[remotely now]", "-f"]
    - split("a [b [c d]]")              -> ["a", "[b [c d]]"]
    """
    if not isinstance(pattern, str):
        raise TypeError("split() argument must be a string")

    elements = []
    buffer = []
    depth = 0
    angled = False

    for char in pattern:
        if char.isspace() and not depth and not angled:
            if buffer:
                elements.append("".join(buffer))
                buffer.clear()
            continue
        if char == "[" and not angled:
            depth += 1
        elif char == "]" and depth:
            depth -= 1
        elif char == "<" and not depth and not buffer:
            angled = True
        elif char == ">" and angled:
            angled = False
        buffer.append(char)

    if buffer:
        elements.append("".join(buffer))
    return elements


def classify(raw, /):
    """
    Classify one raw pattern element.

    - "<name>"  → ArgumentToken(name)
    - "[inner]" → OptionalGroup(inner)
    - otherwise → LiteralToken(raw)
    """
    if not isinstance(raw, str):
        raise TypeError("classify() argument must be a string")
    if (name := enclosed(raw, "<", ">")) is not None:
        return ArgumentToken(name)
    if (inner := enclosed(raw, "[", "]")) is not None:
        return OptionalGroup(inner)
    return LiteralToken(raw)


@functools.cache
def tokenize(pattern, /):
    """
    Tokenize a pattern into a tuple of tokens (optional groups left unexpanded).
    """
    return tuple(map(classify, split(pattern)))


def expand(tokens, /):
    """
    Expand optional groups into every concrete alternative.

    An OptionalGroup opens an alternate continuation made of its own expanded
    interior followed by the tokens after the group; the other continuation skips
    the group. Nested groups are expanded recursively. The input is never
    mutated; duplicates are dropped keeping first-seen order.

    Returns
    - list[tuple[LiteralToken | ArgumentToken, ...]]

    Examples
    - expand(tokenize("stop [remotely]")) -> [(stop, remotely), (stop,)]
    - expand(())                          -> [()]
    """
    tokens = tuple(tokens)
    if not tokens:
        return [()]

    head, tail = tokens[0], tokens[1:]
    rests = expand(tail)

    if isinstance(head, OptionalGroup):
        alternatives = [inner + rest for inner in expand(head.tokens) for rest in rests]
        alternatives += rests
    else:
        alternatives = [(head, *rest) for rest in rests]

    return list(dict.fromkeys(alternatives))


class TreeNode:
    """
    One node of the pattern tree.

    The root carries no token. Children are keyed by label, so inserting the
    same token twice under a node reuses the existing child.
    """
    __slots__ = ("token", "children")

    def __init__(self, token=None, /):
        self.token = token
        self.children = {}

    @property
    def label(self):
        return None if self.token is None else self.token.label

    @property
    def leaf(self):
        return not self.children

    def find_or_create(self, token, /):
        if (child := self.children.get(token.label)) is None:
            child = self.children[token.label] = TreeNode(token)
        return child

    def __iter__(self):
        return iter(self.children.values())

    def __repr__(self):
        return f"TreeNode({self.label!r}, children={list(self.children)!r})"


class PatternTree:
    """
    Prefix tree over the tokenized, expanded command patterns.

    Contract
    - Walking from the root along any pattern alternative reaches one node.
    - Nodes are shared wherever leading token sequences are textually identical.
    - An empty pattern contributes nothing beyond the root.
    """

    def __init__(self):
        self.root = TreeNode()

    @classmethod
    def build(cls, patterns, /):
        tree = cls()
        for pattern in patterns:
            tree.insert(pattern)
        logger.debug("built pattern tree with %d node(s)", sum(1 for _ in tree.paths()))
        return tree

    def insert(self, pattern, /):
        """
        Insert every alternative of a pattern, walking from the root and creating
        the missing children along the way.
        """
        for alternative in expand(tokenize(pattern)):
            node = self.root
            for token in alternative:
                node = node.find_or_create(token)
        return self

    def paths(self):
        """
        Yield the label path of every node except the root, depth first.
        """
        def walk(node, path):
            for child in node:
                yield (current := (*path, child.label))
                yield from walk(child, current)

        yield from walk(self.root, ())

    def find(self, labels, /):
        """
        Return the node at the given label path, or None when there is none.
        """
        node = self.root
        for label in labels:
            if (node := node.children.get(label)) is None:
                return None
        return node

    def __repr__(self):
        return f"PatternTree(paths={[' '.join(path) for path in self.paths()]!r})"


__all__ = (
    "Token",
    "LiteralToken",
    "ArgumentToken",
    "OptionalGroup",
    "split",
    "classify",
    "tokenize",
    "expand",
    "TreeNode",
    "PatternTree",
)
