#!/usr/bin/env python3
"""
tenline - Rulebook enforcement for C

High-level goals:
- Scan C text into position-tagged tokens without a full grammar
  (comments, string/char literals and preprocessor lines handled)
- Extract macros, file-scope declarations, functions and their statements
- Apply the rulebook: no global variables, a comment above every function,
  at most 10 meaningful lines per function, one identifier casing per file,
  SCREAMING_SNAKE_CASE macro names
- Emit `path:line:col message `snippet`` lines (or JSON) for CI / IDEs

Every file is analyzed on its own; nothing is shared between files.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Dict, Optional, Tuple, Literal, Any, Set, Iterator, Sequence
import argparse
import bisect
from concurrent.futures import ThreadPoolExecutor
import functools
import json
import logging
import os
import re
import sys

import yaml

TOOL_NAME = "tenline"
TOOL_VERSION = "0.1.0"
DEFAULT_CONFIG_NAME = ".tenline.yaml"

_LOGGER_NAME = "tenline"


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a logger under the tenline hierarchy."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def configure_logging(*, verbose: bool = False) -> logging.Logger:
    """Configure the tenline logger with a single stderr handler."""
    level = logging.DEBUG if verbose else logging.INFO
    root = logging.getLogger(_LOGGER_NAME)
    root.setLevel(level)
    root.propagate = False

    # Reset handlers to avoid duplicate output when main() runs more than once.
    for handler in list(root.handlers):
        root.removeHandler(handler)

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(level)
    stream_handler.setFormatter(logging.Formatter("[tenline] %(levelname)s %(message)s"))
    root.addHandler(stream_handler)
    return root


logger = get_logger("engine")


# ============================================================
# =============== SOURCE TEXT & LOCATIONS ====================
# ============================================================

@dataclass(frozen=True)
class SourceLocation:
    line: int
    column: int


class SourceText:
    """
    Normalized file text plus the line table used to turn character offsets
    into 1-based (line, column) positions.
    """

    def __init__(self, text: str) -> None:
        self.text = text.replace("\r\n", "\n")
        self.lines = self.text.split("\n")
        self._line_starts = [0]
        for match in re.finditer("\n", self.text):
            self._line_starts.append(match.end())

    def position(self, offset: int) -> Tuple[int, int]:
        """1-based line and UTF-8 byte column of a character offset."""
        index = bisect.bisect_right(self._line_starts, offset) - 1
        prefix = self.text[self._line_starts[index]:offset]
        if prefix.isascii():
            return index + 1, len(prefix) + 1
        return index + 1, len(prefix.encode("utf-8")) + 1

    def line_text(self, line: int) -> str:
        if 1 <= line <= len(self.lines):
            return self.lines[line - 1]
        return ""


# ============================================================
# ========================= ERRORS ===========================
# ============================================================

class AnalysisError(Exception):
    """
    Base class for failures that stop the analysis of one file.
    The path is filled in by analyze_file when the raiser did not know it.
    """

    def __init__(
        self,
        reason: str,
        path: Optional[str] = None,
        line: Optional[int] = None,
        column: Optional[int] = None,
    ) -> None:
        super().__init__(reason)
        self.reason = reason
        self.path = path
        self.line = line
        self.column = column

    def __str__(self) -> str:
        where = self.path or "<input>"
        if self.line is not None:
            where = f"{where}:{self.line}:{self.column if self.column is not None else 1}"
        return f"{where}: {self.reason}"


class StructuralParseError(AnalysisError):
    """Unbalanced braces, parentheses or conditional directives."""


class ScanError(StructuralParseError):
    """Unterminated comment, string or character literal."""


class InputError(AnalysisError):
    """Missing, unreadable or non-regular input path."""


class ConfigError(AnalysisError):
    """Unreadable or invalid configuration file."""


# ============================================================
# ========================= TOKENS ===========================
# ============================================================

class TokenKind(str, Enum):
    IDENTIFIER = "identifier"
    KEYWORD = "keyword"
    NUMBER = "number"
    STRING = "string"
    CHAR = "char"
    OPERATOR = "operator"
    PUNCTUATION = "punctuation"
    DIRECTIVE = "directive"


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    text: str
    line: int
    column: int
    offset: int
    end_line: int
    end_offset: int

    @property
    def location(self) -> SourceLocation:
        return SourceLocation(self.line, self.column)


@dataclass(frozen=True)
class CommentSpan:
    text: str
    line: int
    column: int
    end_line: int
    end_column: int


@dataclass
class ScanResult:
    source: SourceText
    tokens: List[Token] = field(default_factory=list)
    comments: List[CommentSpan] = field(default_factory=list)

    @property
    def directives(self) -> List[Token]:
        return [token for token in self.tokens if token.kind is TokenKind.DIRECTIVE]


_TYPE_KEYWORDS = frozenset({
    "void", "char", "short", "int", "long", "float", "double", "signed",
    "unsigned", "_Bool", "bool", "_Complex", "_Imaginary", "_BitInt",
    "struct", "union", "enum", "typeof", "typeof_unqual", "__typeof__",
})
_QUALIFIER_KEYWORDS = frozenset({
    "const", "volatile", "restrict", "_Atomic", "static", "extern", "register",
    "auto", "inline", "_Thread_local", "thread_local", "_Noreturn", "typedef",
    "constexpr", "_Alignas", "alignas",
})
_C_KEYWORDS = _TYPE_KEYWORDS | _QUALIFIER_KEYWORDS | frozenset({
    "break", "case", "continue", "default", "do", "else", "for", "goto", "if",
    "return", "sizeof", "switch", "while", "_Alignof", "alignof", "_Generic",
    "_Static_assert", "static_assert", "nullptr", "true", "false",
})
_TAG_KEYWORDS = frozenset({"struct", "union", "enum"})
# Words that introduce a parenthesized group which is never a declarator.
_ATTRIBUTE_WORDS = frozenset({
    "__attribute__", "__declspec", "__asm__", "__asm", "asm", "__extension__",
    "_Alignas", "alignas",
})

_OPERATORS = (
    "...", "<<=", ">>=",
    "->", "++", "--", "<<", ">>", "<=", ">=", "==", "!=", "&&", "||",
    "*=", "/=", "%=", "+=", "-=", "&=", "^=", "|=", "##",
    "+", "-", "*", "/", "%", "<", ">", "=", "!", "~", "&", "|", "^",
    "?", ":", ".", "#",
)
_PUNCTUATION = frozenset("{}()[];,")
_OPENERS = {"(": ")", "[": "]", "{": "}"}
_CLOSERS = frozenset(_OPENERS.values())

_IDENTIFIER_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_NUMBER_RE = re.compile(r"\.?[0-9](?:[eEpP][+-]|[A-Za-z0-9_.])*")
_STRING_PREFIXES = frozenset({"L", "u", "U", "u8"})


class Scanner:
    """
    Converts C source text into a token list plus comment spans.

    Comments never become tokens and every string/char literal is a single
    token, so braces inside either can never disturb brace matching.
    A '#' that starts a line swallows the whole logical line (backslash
    continuations included) as one DIRECTIVE token.
    """

    def __init__(self, source: SourceText) -> None:
        self.source = source

    def scan(self) -> ScanResult:
        result = ScanResult(source=self.source)
        text = self.source.text
        length = len(text)
        pos = 0
        at_line_start = True
        while pos < length:
            ch = text[pos]
            if ch == "\n":
                at_line_start = True
                pos += 1
            elif ch in " \t\f\v\r":
                pos += 1
            elif ch == "\\" and text.startswith("\n", pos + 1):
                pos += 2
            elif text.startswith("//", pos):
                pos = self._line_comment(pos, result.comments)
            elif text.startswith("/*", pos):
                pos = self._block_comment(pos, result.comments)
            elif ch == "#" and at_line_start:
                pos = self._directive(pos, result)
            else:
                at_line_start = False
                pos = self._code_token(pos, result.tokens)
        return result

    def _code_token(self, pos: int, tokens: List[Token]) -> int:
        text = self.source.text
        ch = text[pos]
        match = _IDENTIFIER_RE.match(text, pos)
        if match:
            word, end = match.group(), match.end()
            if word in _STRING_PREFIXES and end < len(text) and text[end] in "\"'":
                return self._literal(pos, end, tokens)
            kind = TokenKind.KEYWORD if word in _C_KEYWORDS else TokenKind.IDENTIFIER
            tokens.append(self._token(kind, pos, end))
            return end
        if ch in "\"'":
            return self._literal(pos, pos, tokens)
        match = _NUMBER_RE.match(text, pos)
        if match:
            tokens.append(self._token(TokenKind.NUMBER, pos, match.end()))
            return match.end()
        if ch in _PUNCTUATION:
            tokens.append(self._token(TokenKind.PUNCTUATION, pos, pos + 1))
            return pos + 1
        for operator_text in _OPERATORS:
            if text.startswith(operator_text, pos):
                end = pos + len(operator_text)
                tokens.append(self._token(TokenKind.OPERATOR, pos, end))
                return end
        # Stray characters ('@', '$', '`') survive as one-character operators.
        tokens.append(self._token(TokenKind.OPERATOR, pos, pos + 1))
        return pos + 1

    def _literal(self, start: int, quote_pos: int, tokens: List[Token]) -> int:
        text = self.source.text
        quote = text[quote_pos]
        pos = quote_pos + 1
        length = len(text)
        while True:
            if pos >= length or text[pos] == "\n":
                line, column = self.source.position(start)
                what = "string literal" if quote == '"' else "character literal"
                raise ScanError(f"unterminated {what}", line=line, column=column)
            ch = text[pos]
            if ch == "\\":
                pos += 2
                continue
            pos += 1
            if ch == quote:
                break
        kind = TokenKind.STRING if quote == '"' else TokenKind.CHAR
        tokens.append(self._token(kind, start, pos))
        return pos

    def _line_comment(self, start: int, comments: List[CommentSpan]) -> int:
        text = self.source.text
        end = start + 2
        while True:
            newline = text.find("\n", end)
            if newline == -1:
                end = len(text)
                break
            if text[newline - 1] == "\\":
                end = newline + 1
                continue
            end = newline
            break
        comments.append(self._comment(start, end))
        return end

    def _block_comment(self, start: int, comments: List[CommentSpan]) -> int:
        close = self.source.text.find("*/", start + 2)
        if close == -1:
            line, column = self.source.position(start)
            raise ScanError("unterminated block comment", line=line, column=column)
        end = close + 2
        comments.append(self._comment(start, end))
        return end

    def _directive(self, start: int, result: ScanResult) -> int:
        text = self.source.text
        length = len(text)
        pieces: List[str] = []
        piece_start = start
        pos = start + 1
        while pos < length:
            ch = text[pos]
            if ch == "\n":
                break
            if ch == "\\" and text.startswith("\n", pos + 1):
                pieces.append(text[piece_start:pos])
                pos += 2
                piece_start = pos
            elif text.startswith("//", pos):
                pieces.append(text[piece_start:pos])
                pos = self._line_comment(pos, result.comments)
                piece_start = pos
                break
            elif text.startswith("/*", pos):
                pieces.append(text[piece_start:pos] + " ")
                pos = self._block_comment(pos, result.comments)
                piece_start = pos
            elif ch in "\"'":
                pos = self._skip_directive_quote(pos)
            else:
                pos += 1
        pieces.append(text[piece_start:pos])
        line, column = self.source.position(start)
        end_line, _ = self.source.position(max(pos - 1, start))
        result.tokens.append(
            Token(TokenKind.DIRECTIVE, "".join(pieces).strip(), line, column, start, end_line, pos)
        )
        return pos

    def _skip_directive_quote(self, pos: int) -> int:
        # Lenient: `#error don't` is legal, so an unmatched quote ends at the line end.
        text = self.source.text
        quote = text[pos]
        pos += 1
        while pos < len(text) and text[pos] != "\n":
            if text[pos] == "\\":
                pos += 2
                continue
            if text[pos] == quote:
                return pos + 1
            pos += 1
        return pos

    def _comment(self, start: int, end: int) -> CommentSpan:
        line, column = self.source.position(start)
        end_line, end_column = self.source.position(end - 1)
        return CommentSpan(self.source.text[start:end], line, column, end_line, end_column)

    def _token(self, kind: TokenKind, start: int, end: int) -> Token:
        line, column = self.source.position(start)
        end_line, _ = self.source.position(end - 1)
        return Token(kind, self.source.text[start:end], line, column, start, end_line, end)


def scan_source(text: str) -> ScanResult:
    """Scan a whole file's text; raises ScanError on unterminated literals/comments."""
    return Scanner(SourceText(text)).scan()


# ============================================================
# ===================== PREPROCESSOR =========================
# ============================================================

_DIRECTIVE_RE = re.compile(r"#\s*([A-Za-z_]\w*)?(.*)", re.DOTALL)
_DEFINE_NAME_RE = re.compile(r"#[ \t]*define[ \t]+([A-Za-z_]\w*)")
_DEFINE_BODY_RE = re.compile(r"([A-Za-z_]\w*)(\([^)]*\))?(.*)", re.DOTALL)
_INCLUDE_RE = re.compile(r'\s*(?:"([^"]*)"|<([^>]*)>)')


@dataclass(frozen=True)
class ExcludedSpan:
    """Inclusive line range of a `#ifdef DEBUG` ... `#endif` region."""
    start_line: int
    end_line: int

    def contains(self, line: int) -> bool:
        return self.start_line <= line <= self.end_line


@dataclass
class MacroDefinition:
    name: str
    kind: Literal["object_like", "function_like"]
    location: SourceLocation
    params: List[str] = field(default_factory=list)
    replacement: str = ""
    in_excluded_span: bool = False


@dataclass
class IncludeDirective:
    target: str
    is_quoted: bool
    location: SourceLocation


@dataclass
class _ConditionalRegion:
    directive: str
    location: SourceLocation
    is_debug: bool


class PreprocessorTracker:
    """
    Follows directive tokens in source order.

    Records #define and #include lines and turns every outermost
    `#ifdef <debug guard>` ... `#endif` region into an ExcludedSpan.
    Other conditionals are tracked only so that #endif lines pair up.
    """

    def __init__(self, source: SourceText, debug_guard: str = "DEBUG") -> None:
        self.source = source
        self.debug_guard = debug_guard
        self.macros: List[MacroDefinition] = []
        self.includes: List[IncludeDirective] = []
        self.excluded_spans: List[ExcludedSpan] = []
        self._regions: List[_ConditionalRegion] = []

    @property
    def in_debug_region(self) -> bool:
        return any(region.is_debug for region in self._regions)

    def feed(self, token: Token) -> None:
        match = _DIRECTIVE_RE.match(token.text)
        if match is None or match.group(1) is None:
            return
        name, rest = match.group(1), match.group(2)
        if name in ("if", "ifdef", "ifndef"):
            is_debug = name == "ifdef" and rest.strip() == self.debug_guard
            self._regions.append(
                _ConditionalRegion(name, token.location, is_debug and not self.in_debug_region)
            )
        elif name in ("elif", "else", "elifdef", "elifndef"):
            if not self._regions:
                raise StructuralParseError(
                    f"#{name} without matching #if", line=token.line, column=token.column
                )
        elif name == "endif":
            if not self._regions:
                raise StructuralParseError(
                    "#endif without matching #if", line=token.line, column=token.column
                )
            region = self._regions.pop()
            if region.is_debug:
                self.excluded_spans.append(ExcludedSpan(region.location.line, token.end_line))
                logger.debug(
                    "excluded %s region at lines %d-%d",
                    self.debug_guard, region.location.line, token.end_line,
                )
        elif name == "define":
            self._record_macro(token, rest)
        elif name == "include":
            self._record_include(token, rest)

    def finish(self) -> None:
        if self._regions:
            region = self._regions[-1]
            raise StructuralParseError(
                f"#{region.directive} is never closed by #endif",
                line=region.location.line,
                column=region.location.column,
            )

    def _record_macro(self, token: Token, rest: str) -> None:
        body = _DEFINE_BODY_RE.match(rest.lstrip())
        if body is None:
            return
        name = body.group(1)
        location = token.location
        raw = _DEFINE_NAME_RE.match(self.source.text, token.offset)
        if raw is not None and raw.group(1) == name:
            location = SourceLocation(*self.source.position(raw.start(1)))
        params: List[str] = []
        if body.group(2) is not None:
            params = [p.strip() for p in body.group(2)[1:-1].split(",") if p.strip()]
        self.macros.append(MacroDefinition(
            name=name,
            kind="function_like" if body.group(2) is not None else "object_like",
            location=location,
            params=params,
            replacement=body.group(3).strip(),
            in_excluded_span=self.in_debug_region,
        ))

    def _record_include(self, token: Token, rest: str) -> None:
        match = _INCLUDE_RE.match(rest)
        if match is None:
            return
        quoted = match.group(1) is not None
        target = match.group(1) if quoted else match.group(2)
        self.includes.append(IncludeDirective(target=target, is_quoted=quoted, location=token.location))


# ============================================================
# ================== DECLARATIONS & FUNCTIONS ================
# ============================================================

@dataclass
class Variable:
    """A declared object: file-scope variable, parameter or local."""
    name: str
    location: SourceLocation
    scope: Literal["file", "param", "local"] = "file"
    decl_function: Optional[str] = None
    has_initializer: bool = False
    declaration: str = ""


@dataclass
class GlobalDeclaration:
    """One file-scope declaration statement; it may declare several variables."""
    location: SourceLocation
    text: str
    variables: List[Variable] = field(default_factory=list)


class StatementKind(str, Enum):
    DECLARATION = "declaration"
    DEFINITION = "definition"
    IF_CONDITION = "if condition"
    ELSE = "else"
    WHILE_CONDITION = "while condition"
    DO = "do"
    DO_WHILE_CONDITION = "do/while condition"
    FOR_CONDITION = "for condition"
    SWITCH_EXPRESSION = "switch expression"
    CASE_LABEL = "case label"
    LABEL = "label"
    BREAK = "break statement"
    CONTINUE = "continue statement"
    GOTO = "goto statement"
    RETURN = "return statement"
    EXPRESSION = "expression"
    BLOCK_BRACE = "block brace"
    EMPTY = "empty statement"


@dataclass
class Statement:
    kind: StatementKind
    start_line: int
    end_line: int
    anchor: SourceLocation
    snippet: str
    counted: bool = False
    excluded_lines: int = 0

    @property
    def line_span(self) -> int:
        return self.end_line - self.start_line + 1 - self.excluded_lines

    @property
    def counted_message(self) -> str:
        span = self.line_span
        return f"Counted {self.kind.value} for {span} line{'' if span == 1 else 's'}"


@dataclass
class Function:
    """
    A function definition (is_definition=True) or a prototype.
    Only definitions carry statements and locals.
    """
    name: str
    location: SourceLocation
    signature_line: int
    is_definition: bool = True
    parameters: List[Variable] = field(default_factory=list)
    local_vars: List[Variable] = field(default_factory=list)
    statements: List[Statement] = field(default_factory=list)
    has_leading_comment: bool = False
    open_brace: Optional[SourceLocation] = None
    close_brace: Optional[SourceLocation] = None

    @property
    def counted_statements(self) -> List[Statement]:
        return [statement for statement in self.statements if statement.counted]

    @property
    def meaningful_lines(self) -> int:
        return sum(statement.line_span for statement in self.counted_statements)


def _top_level(tokens: Sequence[Token]) -> Iterator[Tuple[int, Token]]:
    """Yield (index, token) for tokens outside any (), [] or {} group."""
    depth = 0
    for index, token in enumerate(tokens):
        if token.text in _CLOSERS:
            depth = max(depth - 1, 0)
            continue
        if depth == 0:
            yield index, token
        if token.text in _OPENERS:
            depth += 1


def _has_top_level(tokens: Sequence[Token], text: str) -> bool:
    return any(token.text == text for _, token in _top_level(tokens))


def _split_top_level(tokens: Sequence[Token], separator: str) -> List[List[Token]]:
    parts: List[List[Token]] = [[]]
    depth = 0
    for token in tokens:
        if depth == 0 and token.text == separator:
            parts.append([])
            continue
        if token.text in _OPENERS:
            depth += 1
        elif token.text in _CLOSERS:
            depth = max(depth - 1, 0)
        parts[-1].append(token)
    return parts


def _skip_group(tokens: Sequence[Token], index: int) -> int:
    """Return the index just past the group opened at tokens[index]."""
    depth = 0
    for position in range(index, len(tokens)):
        text = tokens[position].text
        if text in _OPENERS:
            depth += 1
        elif text in _CLOSERS:
            depth -= 1
            if depth == 0:
                return position + 1
    return len(tokens)


def _function_name_index(tokens: Sequence[Token]) -> Optional[int]:
    """
    Index of the name in a function declarator: the last identifier that
    directly precedes a top-level '('. None when a top-level '=' shows the
    tokens are an initialized declaration.
    """
    name_index: Optional[int] = None
    for index, token in _top_level(tokens):
        if token.text == "=":
            return None
        if token.text == "(" and index > 0:
            before = tokens[index - 1]
            if before.kind is TokenKind.IDENTIFIER and before.text not in _ATTRIBUTE_WORDS:
                name_index = index - 1
    return name_index


def _declarator_name(tokens: Sequence[Token], require_specifier: bool) -> Optional[Token]:
    """
    Best-effort name of the object a declarator declares.

    Array bounds, brace bodies, parameter lists and attribute groups are
    skipped; a parenthesized group is entered only when it starts with '*'
    (`int (*fp)(int)`). With require_specifier the name must follow a type
    word, so an unnamed `size_t` parameter yields None.
    """
    candidates: List[int] = []
    index = 0
    while index < len(tokens):
        token = tokens[index]
        if token.text in ("[", "{"):
            index = _skip_group(tokens, index)
            continue
        if token.text == "(":
            following = tokens[index + 1] if index + 1 < len(tokens) else None
            if following is None or following.text != "*":
                index = _skip_group(tokens, index)
                continue
        elif token.kind is TokenKind.IDENTIFIER and token.text not in _ATTRIBUTE_WORDS:
            previous = tokens[index - 1] if index > 0 else None
            if previous is None or previous.text not in _TAG_KEYWORDS:
                candidates.append(index)
        index += 1
    if not candidates:
        return None
    name_index = candidates[-1]
    if require_specifier and not any(
        token.text in _TYPE_KEYWORDS or token.kind is TokenKind.IDENTIFIER
        for token in tokens[:name_index]
    ):
        return None
    return tokens[name_index]


def _declared_variables(
    tokens: Sequence[Token],
    *,
    scope: Literal["file", "param", "local"],
    decl_function: Optional[str] = None,
) -> List[Variable]:
    variables: List[Variable] = []
    for position, segment in enumerate(_split_top_level(tokens, ",")):
        if not segment:
            continue
        declarator, has_initializer = segment, False
        for index, token in _top_level(segment):
            if token.text == "=":
                declarator, has_initializer = segment[:index], True
                break
        name = _declarator_name(declarator, require_specifier=(position == 0))
        if name is None:
            continue
        variables.append(Variable(
            name=name.text,
            location=name.location,
            scope=scope,
            decl_function=decl_function,
            has_initializer=has_initializer,
        ))
    return variables


def _parameters(tokens: Sequence[Token], open_index: int, function: str) -> List[Variable]:
    close_index = _skip_group(tokens, open_index) - 1
    params: List[Variable] = []
    for part in _split_top_level(tokens[open_index + 1:close_index], ","):
        name = _declarator_name(part, require_specifier=True)
        if name is not None:
            params.append(Variable(name.text, name.location, scope="param", decl_function=function))
    return params


def _signature_start(tokens: Sequence[Token], name_index: int) -> int:
    # Skip leftovers such as an unterminated `MACRO(x)` before the specifiers.
    start = 0
    for index, token in _top_level(tokens[:name_index]):
        if token.text == "(" and (index == 0 or tokens[index - 1].text not in _ATTRIBUTE_WORDS):
            start = _skip_group(tokens, index)
    return min(start, name_index)


def _is_linkage_specification(tokens: Sequence[Token]) -> bool:
    """`extern "C"` directly before a '{'."""
    return (
        len(tokens) == 2 and tokens[0].text == "extern" and tokens[1].kind is TokenKind.STRING
    )


def _is_static_assertion(tokens: Sequence[Token]) -> bool:
    return bool(tokens) and tokens[0].text in ("_Static_assert", "static_assert")


def _looks_like_declaration(tokens: Sequence[Token]) -> bool:
    """
    Block-scope heuristic: starts with a type/storage/qualifier keyword, or
    `T x`, or `T *x` followed by one of `= , [` or nothing.
    """
    first = tokens[0]
    if first.kind is TokenKind.KEYWORD:
        return first.text in _TYPE_KEYWORDS or first.text in _QUALIFIER_KEYWORDS
    if first.text in ("__attribute__", "__extension__"):
        return True
    if first.kind is not TokenKind.IDENTIFIER:
        return False
    index = 1
    while index < len(tokens) and (tokens[index].text == "*" or tokens[index].text in _QUALIFIER_KEYWORDS):
        index += 1
    if index >= len(tokens) or tokens[index].kind is not TokenKind.IDENTIFIER:
        return False
    if index == 1:
        return True
    following = tokens[index + 1] if index + 1 < len(tokens) else None
    return following is None or following.text in ("=", ",", "[")


class StructureExtractor:
    """
    Walks the file-scope token stream and splits it into declarations and
    function definitions.

    Brace matching is a plain depth counter: literals and comments never
    reach this point. Tokens inside excluded spans still count toward brace
    depth so a `#ifdef DEBUG` block cannot unbalance its function, but they
    never form declarations.
    """

    def __init__(
        self,
        scan: ScanResult,
        excluded_spans: Sequence[ExcludedSpan] = (),
        *,
        count_jump_statements: bool = True,
    ) -> None:
        self.source = scan.source
        self.tokens = scan.tokens
        self.excluded_spans = list(excluded_spans)
        self.count_jump_statements = count_jump_statements
        self._code_lines: Set[int] = set()
        for token in scan.tokens:
            self._code_lines.update(range(token.line, token.end_line + 1))
        self._comment_lines: Set[int] = set()
        for comment in scan.comments:
            self._comment_lines.update(range(comment.line, comment.end_line + 1))
        self.global_declarations: List[GlobalDeclaration] = []
        self.functions: List[Function] = []

    def extract(self) -> Tuple[List[GlobalDeclaration], List[Function]]:
        tokens = self.tokens
        chunk: List[Token] = []
        open_groups: List[Token] = []
        # Open `extern "C" {` blocks; their contents stay at file scope.
        linkage_blocks: List[Token] = []
        index = 0
        while index < len(tokens):
            token = tokens[index]
            if token.kind is TokenKind.DIRECTIVE or self._excluded(token.line):
                index += 1
                continue
            if token.kind is TokenKind.PUNCTUATION:
                text = token.text
                if text in ("(", "["):
                    open_groups.append(token)
                elif text in (")", "]"):
                    if not open_groups or _OPENERS[open_groups.pop().text] != text:
                        raise StructuralParseError(
                            f"unbalanced '{text}'", line=token.line, column=token.column
                        )
                elif text == "}":
                    if open_groups or not linkage_blocks:
                        raise StructuralParseError(
                            "unbalanced braces: unexpected '}'", line=token.line, column=token.column
                        )
                    linkage_blocks.pop()
                    self._drop_unterminated(chunk)
                    chunk = []
                    index += 1
                    continue
                elif text == "{" and not open_groups and _is_linkage_specification(chunk):
                    linkage_blocks.append(token)
                    chunk = []
                    index += 1
                    continue
                elif text == "{":
                    close_index = self._matching_brace(index)
                    if not open_groups and _function_name_index(chunk) is not None:
                        self.functions.append(self._function_definition(chunk, index, close_index))
                        chunk = []
                    else:
                        chunk.extend(
                            t for t in tokens[index:close_index + 1] if t.kind is not TokenKind.DIRECTIVE
                        )
                    index = close_index + 1
                    continue
                elif text == ";" and not open_groups:
                    self._declaration(chunk)
                    chunk = []
                    index += 1
                    continue
            chunk.append(token)
            index += 1
        if open_groups:
            opener = open_groups[-1]
            raise StructuralParseError(
                f"unbalanced '{opener.text}' is never closed", line=opener.line, column=opener.column
            )
        if linkage_blocks:
            opener = linkage_blocks[-1]
            raise StructuralParseError(
                "unbalanced braces: '{' is never closed", line=opener.line, column=opener.column
            )
        self._drop_unterminated(chunk)
        return self.global_declarations, self.functions

    def _drop_unterminated(self, chunk: List[Token]) -> None:
        if chunk:
            logger.debug("ignoring unterminated declaration at line %d", chunk[0].line)

    def _excluded(self, line: int) -> bool:
        return any(span.contains(line) for span in self.excluded_spans)

    def _comment_only(self, line: int) -> bool:
        return line in self._comment_lines and line not in self._code_lines

    def _matching_brace(self, index: int) -> int:
        depth = 0
        for position in range(index, len(self.tokens)):
            token = self.tokens[position]
            if token.kind is not TokenKind.PUNCTUATION:
                continue
            if token.text == "{":
                depth += 1
            elif token.text == "}":
                depth -= 1
                if depth == 0:
                    return position
        opener = self.tokens[index]
        raise StructuralParseError(
            "unbalanced braces: '{' is never closed", line=opener.line, column=opener.column
        )

    def _function_definition(self, chunk: List[Token], open_index: int, close_index: int) -> Function:
        name_index = _function_name_index(chunk)
        name = chunk[name_index]
        signature_line = chunk[_signature_start(chunk, name_index)].line
        analyzer = FunctionBodyAnalyzer(
            self.source,
            self.tokens[open_index + 1:close_index],
            self.excluded_spans,
            function_name=name.text,
            count_jump_statements=self.count_jump_statements,
        )
        statements, local_vars = analyzer.analyze()
        return Function(
            name=name.text,
            location=name.location,
            signature_line=signature_line,
            is_definition=True,
            parameters=_parameters(chunk, name_index + 1, name.text),
            local_vars=local_vars,
            statements=statements,
            has_leading_comment=self._comment_only(signature_line - 1),
            open_brace=self.tokens[open_index].location,
            close_brace=self.tokens[close_index].location,
        )

    def _declaration(self, chunk: List[Token]) -> None:
        if not chunk:
            return
        first = chunk[0]
        if _is_static_assertion(chunk) or _has_top_level(chunk, "typedef"):
            return
        name_index = _function_name_index(chunk)
        if name_index is not None:
            name = chunk[name_index]
            self.functions.append(Function(
                name=name.text,
                location=name.location,
                signature_line=chunk[_signature_start(chunk, name_index)].line,
                is_definition=False,
                parameters=_parameters(chunk, name_index + 1, name.text),
            ))
            return
        variables = _declared_variables(chunk, scope="file")
        if not variables:
            return
        text = self.source.text[first.offset:chunk[-1].end_offset]
        for variable in variables:
            variable.declaration = text
        self.global_declarations.append(GlobalDeclaration(location=first.location, text=text, variables=variables))


# ============================================================
# ===================== FUNCTION BODIES ======================
# ============================================================

class FunctionBodyAnalyzer:
    """
    Segments one function body into Statements and decides which of them
    count toward the meaningful-line budget.

    Counted: conditions of if/while/do-while/for/switch, expression
    statements, initialized declarations, returns, and break/continue
    (a break sitting directly in a case block is exempt). Everything else
    (plain declarations, braces, labels, goto, else, do) is recorded but
    uncounted. Directive tokens and tokens inside excluded spans are
    dropped before segmentation.
    """

    def __init__(
        self,
        source: SourceText,
        body_tokens: Sequence[Token],
        excluded_spans: Sequence[ExcludedSpan] = (),
        *,
        function_name: str = "",
        count_jump_statements: bool = True,
    ) -> None:
        self.source = source
        self.excluded_spans = list(excluded_spans)
        self.function_name = function_name
        self.count_jump_statements = count_jump_statements
        self._tokens = [
            token for token in body_tokens
            if token.kind is not TokenKind.DIRECTIVE and not self._excluded(token.line)
        ]
        self._pos = 0
        self.statements: List[Statement] = []
        self.local_vars: List[Variable] = []

    def analyze(self) -> Tuple[List[Statement], List[Variable]]:
        self._pos = 0
        self.statements = []
        self.local_vars = []
        while self._peek() is not None:
            self._statement(case_level=False)
        return self.statements, self.local_vars

    # ---- token cursor ----

    def _peek(self, ahead: int = 0) -> Optional[Token]:
        index = self._pos + ahead
        return self._tokens[index] if index < len(self._tokens) else None

    def _peek_text(self, ahead: int = 0) -> Optional[str]:
        token = self._peek(ahead)
        return token.text if token is not None else None

    def _advance(self) -> Token:
        token = self._tokens[self._pos]
        self._pos += 1
        return token

    def _error(self, reason: str, token: Optional[Token]) -> StructuralParseError:
        if token is None and self._tokens:
            token = self._tokens[-1]
        if token is None:
            return StructuralParseError(reason)
        return StructuralParseError(reason, line=token.line, column=token.column)

    def _excluded(self, line: int) -> bool:
        return any(span.contains(line) for span in self.excluded_spans)

    def _record(
        self,
        kind: StatementKind,
        anchor: SourceLocation,
        first: Token,
        last: Token,
        counted: bool = False,
    ) -> Statement:
        start_line, end_line = first.line, last.end_line
        statement = Statement(
            kind=kind,
            start_line=start_line,
            end_line=end_line,
            anchor=anchor,
            snippet=self.source.line_text(anchor.line),
            counted=counted,
            excluded_lines=sum(1 for line in range(start_line, end_line + 1) if self._excluded(line)),
        )
        self.statements.append(statement)
        return statement

    # ---- statements ----

    def _statement(self, case_level: bool) -> None:
        token = self._peek()
        if token is None:
            raise self._error("unexpected end of function body", None)
        text = token.text
        if text == "{":
            self._block(case_block=case_level)
            return
        if text == "}":
            raise self._error("unbalanced braces: unexpected '}'", token)
        if text == ";":
            self._advance()
            self._record(StatementKind.EMPTY, token.location, token, token)
            return
        if token.kind is TokenKind.KEYWORD:
            if text == "if":
                self._if_statement()
                return
            if text == "else":
                self._advance()
                self._record(StatementKind.ELSE, token.location, token, token)
                return
            if text == "while":
                self._while_statement()
                return
            if text == "do":
                self._do_statement()
                return
            if text == "for":
                self._for_statement()
                return
            if text == "switch":
                self._switch_statement()
                return
            if text in ("case", "default"):
                self._case_label()
                self._labelled_statement(case_level)
                return
            if text in ("break", "continue"):
                self._jump(case_level)
                return
            if text == "goto":
                self._advance()
                tail = self._until_semicolon()
                self._record(StatementKind.GOTO, token.location, token, tail[-1] if tail else token)
                return
            if text == "return":
                self._return()
                return
        if token.kind is TokenKind.IDENTIFIER and self._peek_text(1) == ":":
            self._advance()
            colon = self._advance()
            self._record(StatementKind.LABEL, token.location, token, colon)
            self._labelled_statement(case_level)
            return
        self._simple_statement()

    def _labelled_statement(self, case_level: bool) -> None:
        if self._peek_text() not in (None, "}"):
            self._statement(case_level)

    def _block(self, case_block: bool) -> None:
        open_token = self._advance()
        self._record(StatementKind.BLOCK_BRACE, open_token.location, open_token, open_token)
        while True:
            token = self._peek()
            if token is None:
                raise self._error("unbalanced braces: '{' is never closed", open_token)
            if token.text == "}":
                self._advance()
                self._record(StatementKind.BLOCK_BRACE, token.location, token, token)
                return
            self._statement(case_level=case_block)

    def _parenthesized(self, keyword: str) -> Tuple[Token, Token]:
        open_token = self._peek()
        if open_token is None or open_token.text != "(":
            raise self._error(f"expected '(' after '{keyword}'", open_token)
        depth = 0
        while True:
            token = self._peek()
            if token is None:
                raise self._error("unbalanced parentheses: '(' is never closed", open_token)
            self._advance()
            if token.text == "(":
                depth += 1
            elif token.text == ")":
                depth -= 1
                if depth == 0:
                    return open_token, token

    def _if_statement(self) -> None:
        self._advance()
        open_token, close_token = self._parenthesized("if")
        self._record(StatementKind.IF_CONDITION, open_token.location, open_token, close_token, counted=True)
        self._statement(case_level=False)
        token = self._peek()
        if token is not None and token.text == "else":
            self._advance()
            self._record(StatementKind.ELSE, token.location, token, token)
            self._statement(case_level=False)

    def _while_statement(self) -> None:
        self._advance()
        open_token, close_token = self._parenthesized("while")
        self._record(StatementKind.WHILE_CONDITION, open_token.location, open_token, close_token, counted=True)
        self._statement(case_level=False)

    def _do_statement(self) -> None:
        do_token = self._advance()
        self._record(StatementKind.DO, do_token.location, do_token, do_token)
        self._statement(case_level=False)
        token = self._peek()
        if token is None or token.text != "while":
            raise self._error("expected 'while' after 'do' body", token or do_token)
        self._advance()
        open_token, close_token = self._parenthesized("while")
        self._record(StatementKind.DO_WHILE_CONDITION, open_token.location, open_token, close_token, counted=True)
        if self._peek_text() == ";":
            self._advance()

    def _for_statement(self) -> None:
        for_token = self._advance()
        header_start = self._pos
        _, close_token = self._parenthesized("for")
        self._record(StatementKind.FOR_CONDITION, for_token.location, for_token, close_token, counted=True)
        init = _split_top_level(self._tokens[header_start + 1:self._pos - 1], ";")[0]
        if init and _looks_like_declaration(init):
            self.local_vars.extend(
                _declared_variables(init, scope="local", decl_function=self.function_name)
            )
        self._statement(case_level=False)

    def _switch_statement(self) -> None:
        self._advance()
        open_token, close_token = self._parenthesized("switch")
        self._record(StatementKind.SWITCH_EXPRESSION, open_token.location, open_token, close_token, counted=True)
        self._statement(case_level=True)

    def _case_label(self) -> None:
        keyword = self._advance()
        pending_ternaries = 0
        while True:
            token = self._peek()
            if token is None or token.text in ("{", "}", ";"):
                raise self._error(f"expected ':' after '{keyword.text}'", token or keyword)
            self._advance()
            if token.text == "?":
                pending_ternaries += 1
            elif token.text == ":":
                if pending_ternaries == 0:
                    self._record(StatementKind.CASE_LABEL, keyword.location, keyword, token)
                    return
                pending_ternaries -= 1

    def _jump(self, case_level: bool) -> None:
        keyword = self._advance()
        tail = self._until_semicolon()
        kind = StatementKind.BREAK if keyword.text == "break" else StatementKind.CONTINUE
        counted = self.count_jump_statements and not (kind is StatementKind.BREAK and case_level)
        self._record(kind, keyword.location, keyword, tail[-1] if tail else keyword, counted=counted)

    def _return(self) -> None:
        keyword = self._advance()
        value = self._until_semicolon()
        anchor = value[0] if value else keyword
        self._record(
            StatementKind.RETURN, anchor.location, keyword, value[-1] if value else keyword, counted=True
        )

    def _simple_statement(self) -> None:
        tokens = self._until_semicolon(allow_block_end=True)
        if not tokens:
            return
        if _is_static_assertion(tokens):
            self._record(StatementKind.DECLARATION, tokens[0].location, tokens[0], tokens[-1])
            return
        if not _looks_like_declaration(tokens):
            self._record(StatementKind.EXPRESSION, tokens[0].location, tokens[0], tokens[-1], counted=True)
            return
        if _has_top_level(tokens, "typedef"):
            self._record(StatementKind.DECLARATION, tokens[0].location, tokens[0], tokens[-1])
            return
        variables = _declared_variables(tokens, scope="local", decl_function=self.function_name)
        self.local_vars.extend(variables)
        initialized = [variable for variable in variables if variable.has_initializer]
        if initialized:
            self._record(StatementKind.DEFINITION, initialized[0].location, tokens[0], tokens[-1], counted=True)
        else:
            self._record(StatementKind.DECLARATION, tokens[0].location, tokens[0], tokens[-1])

    def _until_semicolon(self, allow_block_end: bool = False) -> List[Token]:
        """
        Consume tokens through the next top-level ';' (not returned).
        Stops before a top-level '}' (missing semicolon) and, with
        allow_block_end, before the '{' of a macro-style loop header such
        as `list_for_each(it) {`.
        """
        collected: List[Token] = []
        expected: List[str] = []
        while True:
            token = self._peek()
            if token is None:
                if expected:
                    raise self._error("unbalanced parentheses at end of statement", collected[0])
                return collected
            text = token.text
            if not expected:
                if text == ";":
                    self._advance()
                    return collected
                if text == "}":
                    return collected
                if (
                    text == "{" and allow_block_end and collected
                    and collected[-1].text == ")" and not _has_top_level(collected, "=")
                ):
                    return collected
            if text in _OPENERS:
                expected.append(_OPENERS[text])
            elif text in _CLOSERS:
                if not expected or expected.pop() != text:
                    raise self._error(f"unbalanced '{text}'", token)
            self._advance()
            collected.append(token)


# ============================================================
# ======================= IDENTIFIERS ========================
# ============================================================

class IdentifierCase(str, Enum):
    SNAKE = "snake"
    CAMEL = "camel"
    NEUTRAL = "neutral"


def classify_identifier_case(name: str) -> IdentifierCase:
    """
    Snake when the name contains '_'; camel when an uppercase letter follows
    the first character and the name has some lowercase letter; neutral
    otherwise. When both signals are present the earlier one wins.
    """
    underscore = name.find("_")
    hump = -1
    if any(ch.islower() for ch in name):
        hump = next((i for i, ch in enumerate(name) if i > 0 and ch.isupper()), -1)
    if hump == -1:
        return IdentifierCase.SNAKE if underscore != -1 else IdentifierCase.NEUTRAL
    if underscore == -1 or hump < underscore:
        return IdentifierCase.CAMEL
    return IdentifierCase.SNAKE


_MACRO_NAME_RE = re.compile(r"[A-Z0-9_]*[A-Z][A-Z0-9_]*")


def is_screaming_snake_case(name: str) -> bool:
    return _MACRO_NAME_RE.fullmatch(name) is not None


@dataclass
class Identifier:
    name: str
    location: SourceLocation
    owner: Literal["global", "function", "parameter", "local"]

    @property
    def case(self) -> IdentifierCase:
        return classify_identifier_case(self.name)


def collect_identifiers(
    global_declarations: Sequence[GlobalDeclaration], functions: Sequence[Function]
) -> List[Identifier]:
    """Every user-declared name in the file, in source order. Macros never vote."""
    identifiers: List[Identifier] = []
    for declaration in global_declarations:
        for variable in declaration.variables:
            identifiers.append(Identifier(variable.name, variable.location, "global"))
    for function in functions:
        identifiers.append(Identifier(function.name, function.location, "function"))
        for param in function.parameters:
            identifiers.append(Identifier(param.name, param.location, "parameter"))
        for local in function.local_vars:
            identifiers.append(Identifier(local.name, local.location, "local"))
    identifiers.sort(key=lambda ident: (ident.location.line, ident.location.column))
    return identifiers


# ============================================================
# =================== TRANSLATION UNIT =======================
# ============================================================

@dataclass
class TranslationUnit:
    path: str
    source: SourceText
    tokens: List[Token] = field(default_factory=list)
    comments: List[CommentSpan] = field(default_factory=list)
    excluded_spans: List[ExcludedSpan] = field(default_factory=list)
    macros: List[MacroDefinition] = field(default_factory=list)
    includes: List[IncludeDirective] = field(default_factory=list)
    global_declarations: List[GlobalDeclaration] = field(default_factory=list)
    functions: List[Function] = field(default_factory=list)
    identifiers: List[Identifier] = field(default_factory=list)

    @property
    def globals(self) -> List[Variable]:
        return [variable for decl in self.global_declarations for variable in decl.variables]

    @property
    def function_definitions(self) -> List[Function]:
        return [function for function in self.functions if function.is_definition]


# ============================================================
# ====================== CONFIGURATION =======================
# ============================================================

RULE_GLOBAL_VARIABLE = "global-variable"
RULE_FUNCTION_COMMENT = "function-comment"
RULE_FUNCTION_LENGTH = "function-length"
RULE_MACRO_CASE = "macro-case"
RULE_IDENTIFIER_CASE = "identifier-case"
RULE_IDS = (
    RULE_GLOBAL_VARIABLE,
    RULE_FUNCTION_COMMENT,
    RULE_FUNCTION_LENGTH,
    RULE_MACRO_CASE,
    RULE_IDENTIFIER_CASE,
)


@dataclass
class Config:
    max_function_lines: int = 10
    debug_guard: str = "DEBUG"
    count_jump_statements: bool = True
    enabled_rules: Dict[str, bool] = field(default_factory=lambda: {rule_id: True for rule_id in RULE_IDS})

    def rule_enabled(self, rule_id: str) -> bool:
        return self.enabled_rules.get(rule_id, True)


def config_from_mapping(document: Any, origin: str = "<config>") -> Config:
    """
    Build a Config from an already-parsed YAML document.
    Unknown keys and rule ids are warned about and ignored; wrong value
    types raise ConfigError.
    """
    if document is None:
        return Config()
    if not isinstance(document, dict):
        raise ConfigError("top-level YAML value must be a mapping", origin)

    def _invalid(key: str, expected: str) -> ConfigError:
        return ConfigError(f"'{key}' must be {expected}", origin)

    config = Config()
    for key, value in document.items():
        if key == "max_function_lines":
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise _invalid(key, "a positive integer")
            config.max_function_lines = value
        elif key == "debug_guard":
            if not isinstance(value, str) or not _IDENTIFIER_RE.fullmatch(value):
                raise _invalid(key, "an identifier")
            config.debug_guard = value
        elif key == "count_jump_statements":
            if not isinstance(value, bool):
                raise _invalid(key, "true or false")
            config.count_jump_statements = value
        elif key == "rules":
            if not isinstance(value, dict):
                raise _invalid(key, "a mapping of rule id to true/false")
            for rule_id, enabled in value.items():
                if rule_id not in RULE_IDS:
                    sys.stderr.write(f"[tenline] Unknown rule '{rule_id}' in {origin}; ignoring.\n")
                    continue
                if not isinstance(enabled, bool):
                    raise _invalid(f"rules.{rule_id}", "true or false")
                config.enabled_rules[rule_id] = enabled
        else:
            sys.stderr.write(f"[tenline] Unknown configuration key '{key}' in {origin}; ignoring.\n")
    return config


def load_config_from_yaml(path: str) -> Config:
    try:
        with open(path, "r", encoding="utf-8") as handle:
            document = yaml.safe_load(handle)
    except FileNotFoundError:
        raise ConfigError("config file not found", path)
    except OSError as exc:
        raise ConfigError(f"could not read config file: {exc.strerror or exc}", path)
    except yaml.YAMLError as exc:
        raise ConfigError(f"invalid YAML: {exc}", path)
    return config_from_mapping(document, origin=path)


def resolve_config(path: Optional[str] = None) -> Config:
    """Explicit --config file, else ./.tenline.yaml when present, else defaults."""
    if path:
        return load_config_from_yaml(path)
    if os.path.isfile(DEFAULT_CONFIG_NAME):
        logger.debug("using %s from the current directory", DEFAULT_CONFIG_NAME)
        return load_config_from_yaml(DEFAULT_CONFIG_NAME)
    return Config()


# ============================================================
# ======================= RULE MODELS ========================
# ============================================================

MESSAGE_MACRO_CASE = "Macro is not SCREAMING_SNAKE_CASE"
MESSAGE_GLOBAL_VARIABLE = "Global variable"
MESSAGE_CAMEL_CASE = "Camel case identifier contributes to case inconsistency"
MESSAGE_SNAKE_CASE = "Snake case identifier contributes to case inconsistency"
MESSAGE_MISSING_COMMENT = "Missing comment directly above function"


@dataclass
class Diagnostic:
    file: str
    rule_id: str
    severity: str
    message: str
    location: SourceLocation
    snippet: str
    children: List["Diagnostic"] = field(default_factory=list)

    def render(self) -> str:
        return f"{self.file}:{self.location.line}:{self.location.column} {self.message} `{self.snippet}`"


@dataclass
class FileReport:
    path: str
    diagnostics: List[Diagnostic] = field(default_factory=list)
    error: Optional[AnalysisError] = None
    includes: List[str] = field(default_factory=list)


# ============================================================
# ==================== RULE EVALUATION =======================
# ============================================================

class RuleEngine:
    """
    Runs every enabled rule over one TranslationUnit and returns the file's
    diagnostics sorted by position. Rules run in a fixed order and the sort
    is stable, so diagnostics sharing a position keep rule order.
    """

    severity = "error"

    def __init__(self, unit: TranslationUnit, config: Optional[Config] = None) -> None:
        self.unit = unit
        self.config = config or Config()

    def evaluate(self) -> List[Diagnostic]:
        checks = (
            (RULE_GLOBAL_VARIABLE, self._check_global_variables),
            (RULE_FUNCTION_COMMENT, self._check_function_comments),
            (RULE_FUNCTION_LENGTH, self._check_function_length),
            (RULE_MACRO_CASE, self._check_macro_case),
            (RULE_IDENTIFIER_CASE, self._check_identifier_case),
        )
        diagnostics: List[Diagnostic] = []
        for rule_id, check in checks:
            if self.config.rule_enabled(rule_id):
                diagnostics.extend(check())
        diagnostics.sort(key=lambda d: (d.location.line, d.location.column))
        return diagnostics

    def _diagnostic(
        self,
        rule_id: str,
        message: str,
        location: SourceLocation,
        snippet: Optional[str] = None,
        children: Optional[List[Diagnostic]] = None,
    ) -> Diagnostic:
        return Diagnostic(
            file=self.unit.path,
            rule_id=rule_id,
            severity=self.severity,
            message=message,
            location=location,
            snippet=self.unit.source.line_text(location.line) if snippet is None else snippet,
            children=children or [],
        )

    def _check_global_variables(self) -> List[Diagnostic]:
        return [
            self._diagnostic(RULE_GLOBAL_VARIABLE, MESSAGE_GLOBAL_VARIABLE, declaration.location)
            for declaration in self.unit.global_declarations
        ]

    def _check_function_comments(self) -> List[Diagnostic]:
        return [
            self._diagnostic(RULE_FUNCTION_COMMENT, MESSAGE_MISSING_COMMENT, function.location)
            for function in self.unit.function_definitions
            if not function.has_leading_comment
        ]

    def _check_function_length(self) -> List[Diagnostic]:
        limit = self.config.max_function_lines
        diagnostics: List[Diagnostic] = []
        for function in self.unit.function_definitions:
            total = function.meaningful_lines
            if total <= limit:
                continue
            children = [
                self._diagnostic(RULE_FUNCTION_LENGTH, statement.counted_message, statement.anchor, statement.snippet)
                for statement in sorted(function.counted_statements, key=lambda s: s.start_line)
            ]
            diagnostics.append(self._diagnostic(
                RULE_FUNCTION_LENGTH,
                f"Function has more than {limit} lines ({total})",
                function.location,
                children=children,
            ))
        return diagnostics

    def _check_macro_case(self) -> List[Diagnostic]:
        return [
            self._diagnostic(RULE_MACRO_CASE, MESSAGE_MACRO_CASE, macro.location)
            for macro in self.unit.macros
            if not macro.in_excluded_span and not is_screaming_snake_case(macro.name)
        ]

    def _check_identifier_case(self) -> List[Diagnostic]:
        voters = [ident for ident in self.unit.identifiers if ident.case is not IdentifierCase.NEUTRAL]
        if {ident.case for ident in voters} != {IdentifierCase.SNAKE, IdentifierCase.CAMEL}:
            return []
        return [
            self._diagnostic(
                RULE_IDENTIFIER_CASE,
                MESSAGE_SNAKE_CASE if ident.case is IdentifierCase.SNAKE else MESSAGE_CAMEL_CASE,
                ident.location,
                ident.name,
            )
            for ident in voters
        ]


# ============================================================
# ================= PROJECT BUILD PIPELINE ===================
# ============================================================

def read_source(path: str) -> str:
    try:
        with open(path, "rb") as handle:
            data = handle.read()
    except FileNotFoundError:
        raise InputError("file not found", path)
    except IsADirectoryError:
        raise InputError("is a directory, not a file", path)
    except OSError as exc:
        raise InputError(f"could not read file: {exc.strerror or exc}", path)
    return data.decode("utf-8", errors="replace")


def build_translation_unit(path: str, text: str, config: Optional[Config] = None) -> TranslationUnit:
    """
    Scan, track directives and extract structure for one file's text.
    Raises StructuralParseError (or ScanError) when the file is malformed.
    """
    config = config or Config()
    scan = Scanner(SourceText(text)).scan()
    tracker = PreprocessorTracker(scan.source, debug_guard=config.debug_guard)
    for token in scan.directives:
        tracker.feed(token)
    tracker.finish()

    extractor = StructureExtractor(
        scan, tracker.excluded_spans, count_jump_statements=config.count_jump_statements
    )
    global_declarations, functions = extractor.extract()
    logger.debug(
        "%s: %d tokens, %d comments, %d functions, %d global declarations",
        path, len(scan.tokens), len(scan.comments), len(functions), len(global_declarations),
    )
    return TranslationUnit(
        path=path,
        source=scan.source,
        tokens=scan.tokens,
        comments=scan.comments,
        excluded_spans=tracker.excluded_spans,
        macros=tracker.macros,
        includes=tracker.includes,
        global_declarations=global_declarations,
        functions=functions,
        identifiers=collect_identifiers(global_declarations, functions),
    )


def analyze_file(path: str, config: Optional[Config] = None) -> FileReport:
    """Analyze one file; any AnalysisError ends up on the report, never raised."""
    config = config or Config()
    try:
        unit = build_translation_unit(path, read_source(path), config)
    except AnalysisError as exc:
        if exc.path is None:
            exc.path = path
        logger.debug("analysis of %s failed: %s", path, exc.reason)
        return FileReport(path=path, error=exc)
    includes = [
        os.path.normpath(os.path.join(os.path.dirname(path), include.target))
        for include in unit.includes
        if include.is_quoted
    ]
    return FileReport(path=path, diagnostics=RuleEngine(unit, config).evaluate(), includes=includes)


def _analyze_batch(paths: List[str], config: Config, jobs: int) -> List[FileReport]:
    if jobs <= 1 or len(paths) <= 1:
        return [analyze_file(path, config) for path in paths]
    with ThreadPoolExecutor(max_workers=jobs) as executor:
        return list(executor.map(functools.partial(analyze_file, config=config), paths))


def analyze_paths(
    paths: Sequence[str],
    config: Optional[Config] = None,
    *,
    follow_includes: bool = False,
    jobs: int = 1,
) -> List[FileReport]:
    """
    Analyze every path (duplicates once) and return reports in input order.
    With follow_includes, files named by quoted #include directives are
    analyzed too, wave by wave, after the files that include them.
    """
    config = config or Config()
    reports: List[FileReport] = []
    seen: Set[str] = set()
    pending = list(paths)
    while pending:
        batch: List[str] = []
        for path in pending:
            key = os.path.normpath(path)
            if key in seen:
                continue
            seen.add(key)
            batch.append(path)
        pending = []
        for report in _analyze_batch(batch, config, jobs):
            reports.append(report)
            if follow_includes:
                for include in report.includes:
                    logger.debug("following include %s from %s", include, report.path)
                pending.extend(report.includes)
    return reports


def exit_status(reports: Sequence[FileReport]) -> int:
    if any(report.error is not None for report in reports):
        return 2
    if any(report.diagnostics for report in reports):
        return 1
    return 0


# ============================================================
# ==================== VIOLATION OUTPUT ======================
# ============================================================

def render_report_lines(report: FileReport) -> List[str]:
    lines: List[str] = []
    for diagnostic in report.diagnostics:
        lines.append(diagnostic.render())
        for number, child in enumerate(diagnostic.children, start=1):
            lines.append(f"  {number}) {child.render()}")
    return lines


def render_text(reports: Sequence[FileReport]) -> str:
    return "\n".join(line for report in reports for line in render_report_lines(report))


def emit_reports_text(reports: Sequence[FileReport], out: Optional[str] = None) -> None:
    text = render_text(reports)
    if out:
        with open(out, "w", encoding="utf-8") as f:
            f.write(text + "\n" if text else "")
    elif text:
        print(text)


def diagnostic_to_json_obj(d: Diagnostic) -> Dict[str, Any]:
    """
    Convert a Diagnostic into a JSON-friendly dict.
    Field order is explicit so output stays stable.
    """
    return {
        "rule_id": d.rule_id,
        "severity": d.severity,
        "message": d.message,
        "location": {"file": d.file, "line": d.location.line, "column": d.location.column},
        "snippet": d.snippet,
        "children": [diagnostic_to_json_obj(child) for child in d.children],
        "tool": TOOL_NAME,
        "version": TOOL_VERSION,
    }


def report_to_json_obj(report: FileReport) -> Dict[str, Any]:
    error: Optional[Dict[str, Any]] = None
    if report.error is not None:
        error = {
            "kind": type(report.error).__name__,
            "reason": report.error.reason,
            "line": report.error.line,
            "column": report.error.column,
        }
    return {
        "path": report.path,
        "diagnostics": [diagnostic_to_json_obj(d) for d in report.diagnostics],
        "error": error,
    }


def emit_reports_json(reports: Sequence[FileReport], out: Optional[str] = None) -> None:
    """
    Serialize all reports to JSON (list of per-file objects).
    """
    text = json.dumps([report_to_json_obj(r) for r in reports], indent=2, sort_keys=False)
    if out:
        with open(out, "w", encoding="utf-8") as f:
            f.write(text + "\n")
    else:
        print(text)


# ============================================================
# ============================ CLI ===========================
# ============================================================

def main(argv: Optional[List[str]] = None) -> int:
    """
    CLI entry point for tenline.
    Intended usage:
      tenline analyze [--config tenline.yaml] [--format json] src/a.c src/b.c ...

    Exit status: 0 clean, 1 diagnostics reported, 2 a file or the config
    could not be processed.
    """
    parser = argparse.ArgumentParser(
        prog="tenline",
        description="tenline: rulebook enforcement for C"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze_p = subparsers.add_parser(
        "analyze",
        help="Analyze one or more C files and report rulebook violations."
    )
    analyze_p.add_argument(
        "--config",
        metavar="CONFIG_YAML",
        help=f"YAML configuration file (default: ./{DEFAULT_CONFIG_NAME} when present).",
    )
    analyze_p.add_argument(
        "--format",
        choices=("text", "json"),
        default="text",
        help="Output format.",
    )
    analyze_p.add_argument(
        "--out",
        metavar="OUT_FILE",
        help="Write the report to this file instead of stdout.",
    )
    analyze_p.add_argument(
        "--max-lines",
        type=int,
        metavar="N",
        help="Meaningful-line budget per function (overrides the config file).",
    )
    analyze_p.add_argument(
        "--follow-includes",
        action="store_true",
        help='Also analyze files named by #include "..." directives.',
    )
    analyze_p.add_argument(
        "--jobs",
        type=int,
        default=1,
        metavar="N",
        help="Analyze up to N files concurrently.",
    )
    analyze_p.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging on stderr.",
    )
    analyze_p.add_argument(
        "files",
        nargs="+",
        help="C source files to analyze."
    )

    args = parser.parse_args(argv)

    if args.command == "analyze":
        configure_logging(verbose=args.verbose)
        if args.max_lines is not None and args.max_lines < 1:
            parser.error("--max-lines must be a positive integer")
        if args.jobs < 1:
            parser.error("--jobs must be a positive integer")

        # 1. Configuration
        try:
            config = resolve_config(args.config)
        except ConfigError as exc:
            sys.stderr.write(f"[tenline] {exc}\n")
            return 2
        if args.max_lines is not None:
            config.max_function_lines = args.max_lines

        # 2. Analyze every file independently
        reports = analyze_paths(
            args.files, config, follow_includes=args.follow_includes, jobs=args.jobs
        )
        for report in reports:
            if report.error is not None:
                sys.stderr.write(f"[tenline] Could not analyze {report.error}\n")

        # 3. Emit results
        if args.format == "json":
            emit_reports_json(reports, out=args.out)
        else:
            emit_reports_text(reports, out=args.out)
        return exit_status(reports)

    # unreachable if parser is correct
    return 1


if __name__ == "__main__":
    sys.exit(main())
