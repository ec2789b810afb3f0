"""Parser for TABLE/LIST/TASK queries.

A query is a kind keyword, an optional field list and up to four clauses in a
fixed order::

    TABLE status, due AS "Due date" FROM "Projects" OR #urgent
    WHERE priority > 2 AND !archived SORT due DESC LIMIT 10

Clause keywords are matched case-insensitively and only outside quotes and
parentheses. WHERE and FROM bodies are parsed with a small recursive-descent
expression parser; the raw text is kept on the AST next to the parsed tree.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Sequence

from .errors import ParseError
from .text import Messages

CLAUSE_ORDER = ("FROM", "WHERE", "SORT", "LIMIT")
COMPARISON_OPERATORS = ("=", "!=", ">", ">=", "<", "<=")
FUNCTIONS = {"contains": 2}
MAX_EXPRESSION_DEPTH = 100

_WORD_CHARS = re.compile(r"[\w.#\-]")
_IDENT_RE = re.compile(r"[^\W\d][\w\-]*(?:\.[^\W\d][\w\-]*)*")
_KIND_RE = re.compile(r"(\S+)\s*(.*)", re.DOTALL)
_NUMBER_RE = re.compile(r"-?(?:\d+(?:\.\d+)?|\.\d+)")
_LIMIT_RE = re.compile(r"\d+", re.ASCII)
_TAG_RE = re.compile(r"#[^\s,()\"']+")
_ALIAS_RE = re.compile(r"\s+AS\s+", re.IGNORECASE)


class QueryKind(str, Enum):
    TABLE = "TABLE"
    LIST = "LIST"
    TASK = "TASK"
    EMPTY = "EMPTY"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


# --- expression tree -------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Literal:
    value: Any


@dataclass(frozen=True, slots=True)
class FieldRef:
    name: str


@dataclass(frozen=True, slots=True)
class Not:
    operand: "Expression"


@dataclass(frozen=True, slots=True)
class And:
    operands: tuple["Expression", ...]


@dataclass(frozen=True, slots=True)
class Or:
    operands: tuple["Expression", ...]


@dataclass(frozen=True, slots=True)
class Compare:
    op: str
    left: "Expression"
    right: "Expression"


@dataclass(frozen=True, slots=True)
class Call:
    name: str
    args: tuple["Expression", ...]


Expression = Literal | FieldRef | Not | And | Or | Compare | Call


@dataclass(frozen=True, slots=True)
class FolderSource:
    path: str


@dataclass(frozen=True, slots=True)
class TagSource:
    tag: str


Source = FolderSource | TagSource


@dataclass(frozen=True, slots=True)
class SortSpec:
    field: str
    direction: SortDirection = SortDirection.ASC

    @property
    def descending(self) -> bool:
        return self.direction is SortDirection.DESC


@dataclass(frozen=True, slots=True)
class FieldSpec:
    """One entry of the field list: raw text, its parsed expression and header."""

    raw: str
    expression: Expression
    alias: str | None = None

    @property
    def header(self) -> str:
        return self.alias or self.raw


@dataclass(frozen=True, slots=True)
class QueryAST:
    kind: QueryKind
    fields: tuple[str, ...] = ()
    source: str = ""
    where: str | None = None
    sort: SortSpec | None = None
    limit: int | None = None
    field_specs: tuple[FieldSpec, ...] = field(default=(), compare=False)
    sources: tuple[Source, ...] = field(default=(), compare=False)
    condition: Expression | None = field(default=None, compare=False)

    @property
    def is_empty(self) -> bool:
        return self.kind is QueryKind.EMPTY


EMPTY_QUERY = QueryAST(kind=QueryKind.EMPTY)


# --- lexer -----------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Token:
    kind: str
    value: Any
    position: int


def tokenize(text: str, *, offset: int = 0) -> list[Token]:
    """Split an expression into tokens; positions are relative to the full query."""
    tokens: list[Token] = []
    index = 0
    length = len(text)
    while index < length:
        char = text[index]
        position = offset + index
        if char.isspace():
            index += 1
            continue
        if char in "\"'":
            value, index = _read_string(text, index, offset)
            tokens.append(Token("STRING", value, position))
            continue
        if char == "(":
            tokens.append(Token("LPAREN", char, position))
            index += 1
            continue
        if char == ")":
            tokens.append(Token("RPAREN", char, position))
            index += 1
            continue
        if char == ",":
            tokens.append(Token("COMMA", char, position))
            index += 1
            continue
        two = text[index : index + 2]
        if two in ("!=", ">=", "<=", "=="):
            tokens.append(Token("OP", "=" if two == "==" else two, position))
            index += 2
            continue
        if two in ("&&", "||"):
            tokens.append(Token("AND" if two == "&&" else "OR", two, position))
            index += 2
            continue
        if char in "=<>":
            tokens.append(Token("OP", char, position))
            index += 1
            continue
        if char == "!":
            tokens.append(Token("NOT", char, position))
            index += 1
            continue
        if char == "#":
            match = _TAG_RE.match(text, index)
            if match and len(match.group(0)) > 1:
                tokens.append(Token("TAG", match.group(0)[1:], position))
                index = match.end()
                continue
        match = _NUMBER_RE.match(text, index)
        if match and (char != "-" or _number_allowed(tokens)):
            literal = match.group(0)
            value: Any = float(literal) if "." in literal else int(literal)
            tokens.append(Token("NUMBER", value, position))
            index = match.end()
            continue
        match = _IDENT_RE.match(text, index)
        if match:
            word = match.group(0)
            upper = word.upper()
            if upper in ("AND", "OR", "NOT"):
                tokens.append(Token(upper, word, position))
            else:
                tokens.append(Token("IDENT", word, position))
            index = match.end()
            continue
        raise ParseError(
            Messages.ERROR_PARSE_UNEXPECTED.format(token=char, position=position),
            position=position,
        )
    return tokens


def _number_allowed(tokens: Sequence[Token]) -> bool:
    # A leading minus is a sign only where an operand is expected.
    return not tokens or tokens[-1].kind in ("OP", "LPAREN", "COMMA", "AND", "OR", "NOT")


def _read_string(text: str, start: int, offset: int) -> tuple[str, int]:
    quote = text[start]
    index = start + 1
    chars: list[str] = []
    while index < len(text):
        char = text[index]
        if char == "\\" and index + 1 < len(text):
            chars.append(text[index + 1])
            index += 2
            continue
        if char == quote:
            return "".join(chars), index + 1
        chars.append(char)
        index += 1
    raise ParseError(
        Messages.ERROR_PARSE_UNTERMINATED.format(position=offset + start),
        position=offset + start,
    )


# --- expression parser -----------------------------------------------------


class _ExpressionParser:
    def __init__(self, tokens: list[Token], *, end: int) -> None:
        self.tokens = tokens
        self.index = 0
        self.end = end
        self.depth = 0

    def peek(self) -> Token | None:
        if self.index < len(self.tokens):
            return self.tokens[self.index]
        return None

    def advance(self) -> Token:
        token = self.peek()
        if token is None:
            raise ParseError(Messages.ERROR_PARSE_END, position=self.end)
        self.index += 1
        return token

    def expect(self, kind: str) -> Token:
        token = self.advance()
        if token.kind != kind:
            raise _unexpected(token)
        return token

    def parse(self) -> Expression:
        expression = self.parse_or()
        token = self.peek()
        if token is not None:
            raise _unexpected(token)
        return expression

    def parse_or(self) -> Expression:
        operands = [self.parse_and()]
        while (token := self.peek()) is not None and token.kind == "OR":
            self.advance()
            operands.append(self.parse_and())
        return operands[0] if len(operands) == 1 else Or(tuple(operands))

    def parse_and(self) -> Expression:
        operands = [self.parse_unary()]
        while (token := self.peek()) is not None and token.kind == "AND":
            self.advance()
            operands.append(self.parse_unary())
        return operands[0] if len(operands) == 1 else And(tuple(operands))

    def enter(self, token: Token) -> None:
        self.depth += 1
        if self.depth > MAX_EXPRESSION_DEPTH:
            raise ParseError(
                Messages.ERROR_PARSE_DEPTH.format(limit=MAX_EXPRESSION_DEPTH),
                position=token.position,
            )

    def leave(self) -> None:
        self.depth -= 1

    def parse_unary(self) -> Expression:
        token = self.peek()
        if token is not None and token.kind == "NOT":
            self.advance()
            self.enter(token)
            operand = self.parse_unary()
            self.leave()
            return Not(operand)
        return self.parse_comparison()

    def parse_comparison(self) -> Expression:
        left = self.parse_primary()
        token = self.peek()
        if token is not None and token.kind == "OP":
            self.advance()
            return Compare(token.value, left, self.parse_primary())
        return left

    def parse_primary(self) -> Expression:
        token = self.advance()
        if token.kind == "LPAREN":
            self.enter(token)
            inner = self.parse_or()
            self.expect("RPAREN")
            self.leave()
            return inner
        if token.kind in ("STRING", "NUMBER"):
            return Literal(token.value)
        if token.kind == "IDENT":
            lowered = token.value.lower()
            following = self.peek()
            if following is not None and following.kind == "LPAREN":
                return self.parse_call(token)
            if lowered == "true":
                return Literal(True)
            if lowered == "false":
                return Literal(False)
            if lowered == "null":
                return Literal(None)
            return FieldRef(token.value)
        raise _unexpected(token)

    def parse_call(self, name_token: Token) -> Expression:
        name = name_token.value.lower()
        if name not in FUNCTIONS:
            raise ParseError(
                Messages.ERROR_PARSE_FUNCTION.format(name=name_token.value),
                position=name_token.position,
            )
        self.enter(self.expect("LPAREN"))
        args: list[Expression] = []
        token = self.peek()
        if token is not None and token.kind == "RPAREN":
            self.advance()
        else:
            while True:
                args.append(self.parse_or())
                closing = self.advance()
                if closing.kind == "RPAREN":
                    break
                if closing.kind != "COMMA":
                    raise _unexpected(closing)
        self.leave()
        if len(args) != FUNCTIONS[name]:
            raise ParseError(
                Messages.ERROR_PARSE_ARITY.format(name=name, count=FUNCTIONS[name]),
                position=name_token.position,
            )
        return Call(name, tuple(args))


def _unexpected(token: Token) -> ParseError:
    return ParseError(
        Messages.ERROR_PARSE_UNEXPECTED.format(token=str(token.value), position=token.position),
        position=token.position,
    )


def parse_expression(text: str, *, offset: int = 0) -> Expression:
    """Parse a WHERE-style boolean expression."""
    tokens = tokenize(text, offset=offset)
    if not tokens:
        raise ParseError(Messages.ERROR_PARSE_END, position=offset)
    return _ExpressionParser(tokens, end=offset + len(text)).parse()


def parse_from(text: str, *, offset: int = 0) -> tuple[Source, ...]:
    """Parse a FROM body: quoted folders and ``#tags`` joined with OR."""
    tokens = tokenize(text, offset=offset)
    sources: list[Source] = []
    expect_term = True
    for token in tokens:
        if expect_term:
            if token.kind == "STRING":
                sources.append(FolderSource(token.value))
            elif token.kind == "TAG":
                sources.append(TagSource(token.value))
            else:
                raise ParseError(
                    Messages.ERROR_PARSE_FROM.format(token=str(token.value)),
                    position=token.position,
                )
            expect_term = False
        elif token.kind == "OR":
            expect_term = True
        else:
            raise ParseError(
                Messages.ERROR_PARSE_FROM.format(token=str(token.value)),
                position=token.position,
            )
    if expect_term:
        raise ParseError(
            Messages.ERROR_PARSE_EMPTY_CLAUSE.format(clause="FROM"),
            position=offset + len(text),
        )
    return tuple(sources)


# --- clause splitting ------------------------------------------------------


@dataclass(frozen=True, slots=True)
class _Clause:
    keyword: str
    body: str
    position: int


def _top_level_positions(text: str):
    """Yield ``(index, char)`` for characters outside quotes and parentheses."""
    quote: str | None = None
    depth = 0
    index = 0
    while index < len(text):
        char = text[index]
        if quote:
            if char == "\\":
                index += 2
                continue
            if char == quote:
                quote = None
        elif char in "\"'":
            quote = char
        elif char == "(":
            depth += 1
        elif char == ")":
            depth = max(depth - 1, 0)
        elif depth == 0:
            yield index, char
        index += 1


def _split_clauses(text: str) -> tuple[str, list[_Clause]]:
    starts: list[tuple[int, str]] = []
    for index, _char in _top_level_positions(text):
        if index > 0 and _WORD_CHARS.match(text[index - 1]):
            continue
        for keyword in CLAUSE_ORDER:
            end = index + len(keyword)
            if text[index:end].upper() != keyword:
                continue
            if end < len(text) and _WORD_CHARS.match(text[end]):
                continue
            starts.append((index, keyword))
            break
    if not starts:
        return text, []
    head = text[: starts[0][0]]
    clauses: list[_Clause] = []
    for position, (start, keyword) in enumerate(starts):
        stop = starts[position + 1][0] if position + 1 < len(starts) else len(text)
        body_start = start + len(keyword)
        clauses.append(_Clause(keyword, text[body_start:stop], body_start))
    return head, clauses


def split_fields(text: str) -> list[str]:
    """Split a field list on top-level commas."""
    parts: list[str] = []
    last = 0
    for index, char in _top_level_positions(text):
        if char == ",":
            parts.append(text[last:index])
            last = index + 1
    parts.append(text[last:])
    return [part.strip() for part in parts]


def split_alias(raw: str) -> tuple[str, str | None]:
    """Split ``expr AS alias`` into its parts; the alias may be quoted."""
    top_level = {index for index, _ in _top_level_positions(raw)}
    match = None
    for candidate in _ALIAS_RE.finditer(raw):
        if candidate.start() in top_level:
            match = candidate
    if match is None:
        return raw.strip(), None
    expression = raw[: match.start()].strip()
    alias = raw[match.end() :].strip()
    if len(alias) >= 2 and alias[0] == alias[-1] and alias[0] in "\"'":
        alias = alias[1:-1]
    return expression, alias or None


def _parse_fields(kind: QueryKind, text: str, offset: int) -> tuple[FieldSpec, ...]:
    if not text.strip():
        return ()
    if kind is QueryKind.TASK:
        raise ParseError(Messages.ERROR_PARSE_TASK_FIELDS, position=offset)
    specs: list[FieldSpec] = []
    cursor = 0
    for raw in split_fields(text):
        if not raw:
            raise ParseError(Messages.ERROR_PARSE_FIELD, position=offset + cursor)
        local = text.find(raw, cursor)
        cursor = local + len(raw)
        expression_text, alias = split_alias(raw)
        expression = parse_expression(expression_text, offset=offset + local)
        specs.append(FieldSpec(raw=raw, expression=expression, alias=alias))
    if kind is QueryKind.LIST and len(specs) > 1:
        raise ParseError(Messages.ERROR_PARSE_LIST_FIELDS, position=offset)
    return tuple(specs)


def _parse_sort(body: str, offset: int) -> SortSpec:
    parts = body.split()
    if not parts or len(parts) > 2:
        raise ParseError(Messages.ERROR_PARSE_SORT.format(value=body.strip()), position=offset)
    name = parts[0]
    if not _IDENT_RE.fullmatch(name):
        raise ParseError(Messages.ERROR_PARSE_SORT.format(value=body.strip()), position=offset)
    direction = SortDirection.ASC
    if len(parts) == 2:
        word = parts[1].lower()
        if word in ("asc", "ascending"):
            direction = SortDirection.ASC
        elif word in ("desc", "descending"):
            direction = SortDirection.DESC
        else:
            raise ParseError(
                Messages.ERROR_PARSE_SORT.format(value=body.strip()), position=offset
            )
    return SortSpec(field=name, direction=direction)


def _parse_limit(body: str, offset: int) -> int:
    value = body.strip()
    if not _LIMIT_RE.fullmatch(value):
        raise ParseError(Messages.ERROR_PARSE_LIMIT.format(value=value), position=offset)
    return int(value)


def parse(query: str | None) -> QueryAST:
    """Parse *query* into a :class:`QueryAST`, raising :class:`ParseError`."""
    text = query or ""
    if not text.strip():
        return EMPTY_QUERY

    head, clauses = _split_clauses(text)
    leading = len(head) - len(head.lstrip())
    head_text = head.strip()
    kind_match = _KIND_RE.match(head_text)
    kind_word = kind_match.group(1) if kind_match else ""
    field_text = kind_match.group(2) if kind_match else ""
    try:
        kind = QueryKind(kind_word.upper())
    except ValueError:
        kind = None
    if kind is None or kind is QueryKind.EMPTY:
        token = kind_word or (clauses[0].keyword if clauses else text.strip())
        raise ParseError(Messages.ERROR_PARSE_UNKNOWN_KIND.format(token=token), position=leading)

    field_offset = leading + len(head_text) - len(field_text)
    field_specs = _parse_fields(kind, field_text, field_offset)

    seen: dict[str, _Clause] = {}
    last_rank = -1
    for clause in clauses:
        if clause.keyword in seen:
            raise ParseError(
                Messages.ERROR_PARSE_DUPLICATE.format(clause=clause.keyword),
                position=clause.position,
            )
        rank = CLAUSE_ORDER.index(clause.keyword)
        if rank < last_rank:
            raise ParseError(
                Messages.ERROR_PARSE_ORDER.format(clause=clause.keyword),
                position=clause.position,
            )
        last_rank = rank
        if not clause.body.strip():
            raise ParseError(
                Messages.ERROR_PARSE_EMPTY_CLAUSE.format(clause=clause.keyword),
                position=clause.position,
            )
        seen[clause.keyword] = clause

    sources: tuple[Source, ...] = ()
    source_text = ""
    if "FROM" in seen:
        clause = seen["FROM"]
        source_text = clause.body.strip()
        sources = parse_from(clause.body, offset=clause.position)

    where_text: str | None = None
    condition: Expression | None = None
    if "WHERE" in seen:
        clause = seen["WHERE"]
        where_text = clause.body.strip()
        condition = parse_expression(clause.body, offset=clause.position)

    sort = None
    if "SORT" in seen:
        clause = seen["SORT"]
        sort = _parse_sort(clause.body, clause.position)

    limit = None
    if "LIMIT" in seen:
        clause = seen["LIMIT"]
        limit = _parse_limit(clause.body, clause.position)

    return QueryAST(
        kind=kind,
        fields=tuple(spec.raw for spec in field_specs),
        source=source_text,
        where=where_text,
        sort=sort,
        limit=limit,
        field_specs=field_specs,
        sources=sources,
        condition=condition,
    )
