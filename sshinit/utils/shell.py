"""Shell command safety utilities."""

import re
import shlex

# Tokens that make a typed line a pipeline or compound command
SHELL_OPERATORS = frozenset(
    ["|", "||", "&", "&&", ";", ";;", "<", ">", ">>", "<<", "<&", ">&", "(", ")", "|&"]
)

# Unquoted characters that end a word
WORD_BREAKS = frozenset(" \t\n;&|()<>")

# Bracketed IPv6 destinations: [fe80::1], alice@[::1]:2222
BRACKETED_HOST = re.compile(r"^(?:[^@\[\]]+@)?\[[0-9A-Za-z.%_-]*:[0-9A-Za-z.%:_-]*\](?::\d+)?$")

# (character, quoting) where quoting is None, "'", '"' or "\\" for escaped
Word = list[tuple[str, str | None]]


def quote_arg(arg: str) -> str:
    """Safely quote a shell argument.

    Args:
        arg: Argument to quote

    Returns:
        Shell-safe quoted argument
    """
    return shlex.quote(arg)


def strip_comment(line: str) -> str:
    """Drop a trailing shell comment.

    A ``#`` starts a comment only at the beginning of an unquoted word, so
    ``echo a#b`` and ``echo '#x'`` are left alone.
    """
    quote: str | None = None
    escaped = False
    word_start = True
    for i, char in enumerate(line):
        if escaped:
            escaped = False
            word_start = False
        elif char == "\\" and quote != "'":
            escaped = True
            word_start = False
        elif quote is not None:
            if char == quote:
                quote = None
        elif char in "'\"":
            quote = char
            word_start = False
        elif char == "#" and word_start:
            return line[:i]
        else:
            word_start = char in WORD_BREAKS
    return line


def split_command(line: str) -> list[str]:
    """Split a typed command line into words using POSIX shell rules.

    Unquoted operators come back as separate tokens so callers can tell a
    simple command from a pipeline. A trailing comment is dropped.

    Raises:
        ValueError: If quotes are unbalanced
    """
    lexer = shlex.shlex(strip_comment(line), posix=True, punctuation_chars=True)
    lexer.whitespace_split = True
    lexer.commenters = ""
    return list(lexer)


def is_operator(token: str) -> bool:
    """Check if a token is an unquoted shell operator."""
    return token in SHELL_OPERATORS


def _words(line: str) -> list[Word]:
    """Split a line on unquoted whitespace, keeping each character's quoting."""
    words: list[Word] = []
    current: Word = []
    quote: str | None = None
    escaped = False
    for char in line:
        if escaped:
            current.append((char, "\\"))
            escaped = False
        elif quote == "'":
            if char == "'":
                quote = None
            else:
                current.append((char, quote))
        elif char == "\\":
            escaped = True
        elif char == '"':
            quote = None if quote == '"' else '"'
        elif char == "'" and quote is None:
            quote = "'"
        elif char in " \t\n" and quote is None:
            if current:
                words.append(current)
            current = []
        else:
            current.append((char, quote))
    if current:
        words.append(current)
    return words


def _has_brace_expansion(word: Word) -> bool:
    inner: list[str] | None = None
    for char, quote in word:
        if quote is not None:
            if inner is not None:
                inner.append("")
            continue
        if char == "{":
            inner = []
        elif char == "}" and inner is not None:
            body = "".join(inner)
            if "," in body or ".." in body:
                return True
            inner = None
        elif inner is not None:
            inner.append(char)
    return False


def _has_bracket_glob(word: Word) -> bool:
    opened = False
    for char, quote in word:
        if quote is not None:
            continue
        if char == "[":
            opened = True
        elif char == "]" and opened:
            return not BRACKETED_HOST.match("".join(c for c, _ in word))
    return False


def needs_local_expansion(line: str) -> bool:
    """Check if the local shell would expand part of the line.

    Parameter/command substitution is live outside single quotes. Globs,
    brace lists and a word-leading ``~`` only outside any quotes. A
    bracketed IPv6 destination is not treated as a glob.
    """
    for word in _words(strip_comment(line)):
        if word[0] == ("~", None):
            return True
        for char, quote in word:
            if char in "$`" and quote in (None, '"'):
                return True
            if char in "*?" and quote is None:
                return True
        if _has_brace_expansion(word) or _has_bracket_glob(word):
            return True
    return False
