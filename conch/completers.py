"""
Conch completion: stock completers, the argument-keyed registry, and synthesis.

Completer contract
- Any object with a complete(text) method returning candidate strings.
- text is the line typed so far (or, inside a PrefixCompleter, what follows the prefix).
- Candidates are whole words; the line editor replaces the word being typed with one of them.

What this module provides
- StringsCompleter: fixed (or lazily computed) words filtered by what was typed.
- PrefixCompleter: activates its inner completer only when the line starts with a prefix.
- AggregateCompleter: asks every constituent in turn and concatenates the results.
- CompleterSet: registry of completers keyed by argument name ("flow-id" for "<flow-id>").
- synthesize(tree, completers): compile a PatternTree into one AggregateCompleter.
- PromptCompleter: prompt_toolkit adapter so the synthesized engine drives TAB completion.

How synthesis scopes candidates
- Every tree node with children contributes a StringsCompleter over its literal child
  labels, plus one completer per argument child whose name is registered.
- Each is wrapped in a PrefixCompleter scoped to the path leading to that node.
- Literal tokens in that path must be typed verbatim; argument positions accept any
  single word (a quoted word counts as one) except the literal siblings of that
  argument, which belong to their own branch.

Example
    >>> tree = PatternTree.build(["start flow <flow-id>", "start stream"])
    >>> engine = synthesize(tree, {"flow-id": ["f1", "f2"]})
    >>> engine.complete("start ")
    ['flow', 'stream']
    >>> engine.complete("start flow ")
    ['f1', 'f2']
"""
import logging
import re
from collections.abc import Iterable

from prompt_toolkit.completion import Completer, Completion

from .patterns import ArgumentToken, PatternTree, Token, classify, split
from .utils import *

logger = logging.getLogger(__name__)

# A single input word: quoted (spaces allowed inside) or a run of non-space characters.
_WORD = r"""(?:"[^"]*"|'[^']*'|\S+)"""


def _is_completer(object, /):
    return hasattr(object, "complete") and callable(object.complete)


def _slot(reserved):
    if not reserved:
        return _WORD
    return f"(?!(?:{'|'.join(map(re.escape, reserved))}) ){_WORD}"


def _word_before(text):
    # Quote-aware: a space inside an open quote does not end the word.
    start = 0
    quote = None
    for index, char in enumerate(text):
        if quote:
            if char == quote:
                quote = None
        elif char in "\"'":
            quote = char
        elif char.isspace():
            start = index + 1
    return text[start:]


class StringsCompleter:
    """
    Complete from a list of words.

    The source is either an iterable of strings (snapshotted at construction) or a
    zero-argument callable returning one, re-evaluated on every request so hosts can
    offer candidates that change over time. Leading whitespace of the typed text is
    ignored; candidates keep declaration order and appear once.
    """

    def __init__(self, strings=(), /):
        if callable(strings):
            self._source = strings
            return
        if isinstance(strings, str) or not isinstance(strings, Iterable):
            raise TypeError("StringsCompleter() argument must be an iterable of strings or a callable")
        snapshot = tuple(strings)
        if not all(isinstance(string, str) for string in snapshot):
            raise TypeError("StringsCompleter() argument must be an iterable of strings or a callable")
        self._source = rename(lambda: snapshot, "strings")

    @property
    def strings(self):
        return tuple(dict.fromkeys(self._source()))

    def complete(self, text, /):
        text = text.lstrip()
        return [string for string in self.strings if string.startswith(text)]

    def __repr__(self):
        return f"StringsCompleter({list(self.strings)!r})"


class FunctionCompleter:
    """
    Adapt a plain callable text -> Iterable[str] to the completer contract.

    The callable is the completer: its results are returned as-is, unfiltered.
    """

    def __init__(self, function, /):
        if not callable(function):
            raise TypeError("FunctionCompleter() argument must be callable")
        self.function = function

    def complete(self, text, /):
        return list(self.function(text))

    def __repr__(self):
        return f"FunctionCompleter({getattr(self.function, '__qualname__', self.function)!r})"


class PrefixCompleter:
    """
    Scope a completer to lines starting with a prefix.

    The prefix is a pattern path: either a string of literal words or an iterable
    of tokens. Literal words must appear verbatim (case and single-space separation
    exact); an ArgumentToken stands for any one input word. The line must continue
    with a space after the prefix; what follows, minus leading whitespace, is handed
    to the inner completer. Lines that do not qualify yield no candidates.

    reserved, when given, runs parallel to the prefix: the entry for an argument
    position lists words that slot must not take (the literals competing with it).

    Examples
    - PrefixCompleter("start flow", inner).complete("start flow f")  -> inner.complete("f")
    - PrefixCompleter("start flow", inner).complete("start f")       -> []
    - PrefixCompleter("start", inner).complete("started ")           -> []
    - PrefixCompleter("get <key>", inner, reserved=((), ("stats",))).complete("get stats ") -> []
    """

    def __init__(self, prefix, completer, /, *, reserved=()):
        if not _is_completer(completer):
            raise TypeError("PrefixCompleter() second argument must be a completer")
        if isinstance(prefix, str):
            prefix = tuple(map(classify, split(prefix)))
        elif isinstance(prefix, Iterable):
            prefix = tuple(prefix)
        else:
            raise TypeError("PrefixCompleter() first argument must be a string or an iterable of tokens")

        reserved = tuple(reserved)
        parts = []
        labels = []
        for index, segment in enumerate(prefix):
            if isinstance(segment, ArgumentToken):
                parts.append(_slot(reserved[index] if index < len(reserved) else ()))
            elif isinstance(segment, Token):
                parts.append(re.escape(segment.label))
            elif isinstance(segment, str):
                parts.append(re.escape(segment))
            else:
                raise TypeError("PrefixCompleter() first argument must be a string or an iterable of tokens")
            labels.append(str(segment))

        self.prefix = " ".join(labels)
        self.completer = completer
        self._pattern = re.compile(" ".join(parts) + " " if parts else "")

    def complete(self, text, /):
        if (match := self._pattern.match(text)) is None:
            return []
        return list(self.completer.complete(text[match.end():].lstrip()))

    def __repr__(self):
        return f"PrefixCompleter({self.prefix!r}, {self.completer!r})"


class AggregateCompleter:
    """
    Ask every constituent completer in turn and concatenate what they return.

    No ranking and no deduplication across constituents.
    """

    def __init__(self, completers=(), /):
        completers = tuple(completers)
        if not all(map(_is_completer, completers)):
            raise TypeError("AggregateCompleter() argument must be an iterable of completers")
        self.completers = completers

    def complete(self, text, /):
        candidates = []
        for completer in self.completers:
            candidates.extend(completer.complete(text))
        return candidates

    def __len__(self):
        return len(self.completers)

    def __repr__(self):
        return f"AggregateCompleter({len(self.completers)} completer(s))"


def as_completer(object, /):
    """
    Coerce a registry value into a completer.

    - object with complete()      → itself
    - callable text -> Iterable    → FunctionCompleter
    - iterable of strings          → StringsCompleter
    """
    if _is_completer(object):
        return object
    if callable(object):
        return FunctionCompleter(object)
    if isinstance(object, Iterable) and not isinstance(object, str):
        return StringsCompleter(object)
    raise TypeError(f"{type(object).__name__!r} object cannot be used as a completer")


class CompleterSet:
    """
    Registry of argument completers keyed by argument name.

    A missing name is a normal outcome: get_completer() returns None and the
    corresponding argument position simply offers no candidates.
    """

    def __init__(self, completers=None, /):
        self._completers = {}
        for name, completer in dict(completers or {}).items():
            self.register(name, completer)

    def register(self, name, completer, /):
        if not isinstance(name, str):
            raise TypeError("CompleterSet keys must be argument names (strings)")
        self._completers[name] = as_completer(completer)
        return self

    def get_completer(self, name, /):
        return self._completers.get(name)

    @property
    def names(self):
        return tuple(self._completers)

    def __contains__(self, name, /):
        return name in self._completers

    def __len__(self):
        return len(self._completers)

    def __repr__(self):
        return f"CompleterSet({list(self._completers)!r})"


def _scoped(prefix, reserved, completer):
    return PrefixCompleter(prefix, completer, reserved=reserved) if prefix else completer


def synthesize(tree, completers=None, /):
    """
    Compile a PatternTree into one prefix-scoped completion engine.

    Walk
    - At a node reached through path P, gather:
      • for each argument child registered in completers, that completer scoped to P;
      • one StringsCompleter over the literal child labels, scoped to P.
    - Recurse into every child with P extended by the child's token; an argument
      child's position refuses the literal labels of its siblings.
    - Leaves contribute nothing.

    Parameters
    - tree: PatternTree
    - completers: CompleterSet | Mapping[str, completer-like] | None

    Returns
    - AggregateCompleter
    """
    if not isinstance(tree, PatternTree):
        raise TypeError("synthesize() first argument must be a pattern tree")
    if not isinstance(completers, CompleterSet):
        completers = CompleterSet(completers)

    def generate(node, prefix, reserved):
        if node.leaf:
            return []

        gathered = []
        literals = []
        for child in node:
            if isinstance(child.token, ArgumentToken):
                if (completer := completers.get_completer(child.token.name)) is not None:
                    gathered.append(_scoped(prefix, reserved, completer))
            else:
                literals.append(child.label)

        if literals:
            gathered.append(_scoped(prefix, reserved, StringsCompleter(literals)))

        for child in node:
            taken = tuple(literals) if isinstance(child.token, ArgumentToken) else ()
            gathered.extend(generate(child, (*prefix, child.token), (*reserved, taken)))
        return gathered

    engine = AggregateCompleter(generate(tree.root, (), ()))
    logger.debug("synthesized completion engine with %d completer(s)", len(engine))
    return engine


class PromptCompleter(Completer):
    """
    prompt_toolkit adapter: drive a conch completer from the line editor.

    The completer is asked with the text before the cursor; every candidate replaces
    the word currently being typed (nothing, right after a space). A word opened
    with a quote runs to the cursor, spaces included, as it does for the prefix.
    """

    def __init__(self, completer, /):
        if not _is_completer(completer):
            raise TypeError("PromptCompleter() argument must be a completer")
        self.completer = completer

    def get_completions(self, document, complete_event):
        word = _word_before(document.text_before_cursor)
        for candidate in self.completer.complete(document.text_before_cursor):
            yield Completion(candidate, start_position=-len(word))


__all__ = (
    "StringsCompleter",
    "FunctionCompleter",
    "PrefixCompleter",
    "AggregateCompleter",
    "CompleterSet",
    "as_completer",
    "synthesize",
    "PromptCompleter",
)
