############################################################################################################################################
# Line Tokenizer
#
# Extracts named numbers from free form text lines as sent by microcontrollers:
#
#   {temp: 25, humidity: 60}            -> [("temp", 25.0), ("humidity", 60.0)]
#   temp:23.5 humidity:65.2             -> [("temp", 23.5), ("humidity", 65.2)]
#   x : 10 ; y : 20                     -> [("x", 10.0), ("y", 20.0)]
#   voltage 3.3, current 0.125          -> [("voltage", 3.3), ("current", 0.125)]
#   23.5 65.2 1013.25                   -> [] (no names, see bare_values)
#
# functions:
#   - strip_line(line)          remove [HH:MM:SS.mmm] prefix and line breaks
#   - classify_line(line)       LineKind.SKIP, LineKind.HEADER or LineKind.DATA
#   - tokenize(line)            named values, left to right, duplicates kept
#   - tokenize_strict(line)     regular expression alternative, only name:value without blanks
#   - bare_values(line)         unlabeled numbers of a line without any colon
#   - match_tokens(tokens)      tokenize on an already split and classified line
#   - extract_variable_names()  unique names over several tokenized lines
#
# A line is split on runs of blanks, tabs, commas and semicolons.
# Each token is tried against TOKEN_RULES in order, the first rule that produces a name and a
#   finite number wins and consumes its tokens. Tokens no rule accepts are skipped silently.
#
# This code is maintained by Urs Utzinger
############################################################################################################################################
#
import re
from enum import Enum
from typing import Callable, Iterable, List, NamedTuple, Optional, Tuple
#
from config import CONNECTING_PHRASE, TIMESTAMP_PREFIX
from varplot.Header_helper import has_header_keyword, parse_header_directive

############################################################################################################################################
# Tokens
############################################################################################################################################

class ParsedToken(NamedTuple):
    name: str
    value: float


class LineKind(Enum):
    SKIP   = "skip"                                                            # empty, status text or "header" word without directive
    HEADER = "header"                                                          # schema directive
    DATA   = "data"                                                            # zero or more values


TOKEN_SPLIT_RE = re.compile(r'[ \t,;]+')
LINE_BREAK_RE  = re.compile(r'[\r\n]+')
WRAPPERS       = "'\"()[]{}"                                                   # quotes, brackets, braces, parens

# signed integer, decimal or scientific literal, nothing else
NUMBER_RE = re.compile(r'[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?')

# name:value without blanks, name is an identifier
STRICT_PAIR_RE = re.compile(
    r'(?<![\w.:])'
    r'([A-Za-z_][A-Za-z0-9_]*)'
    r':'
    r'([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)'
    r'(?![\w.:])'
)


def parse_number(text: str) -> Optional[float]:
    """ Finite decimal number or None """
    text = text.strip(WRAPPERS)
    if NUMBER_RE.fullmatch(text) is None:
        return None
    value = float(text)
    if value != value or value in (float("inf"), float("-inf")):            # 1e999 overflows to inf
        return None
    return value


def clean_name(text: str) -> Optional[str]:
    """ Name without wrappers, None if empty or still containing a colon """
    name = text.strip(WRAPPERS).strip()
    if not name or ':' in name:
        return None
    return name

############################################################################################################################################
# Token Rules
#
# A rule receives the token list and the current position.
# It returns (name, value, number of tokens consumed) or None.
############################################################################################################################################

def rule_glued(tokens: List[str], i: int) -> Optional[Tuple[str, float, int]]:
    """ key:value """
    token = tokens[i].strip(WRAPPERS)
    if ':' not in token or token.startswith(':') or token.endswith(':'):
        return None
    key, _, value_text = token.partition(':')
    name  = clean_name(key)
    value = parse_number(value_text)
    if name is None or value is None:
        return None
    return name, value, 1


def rule_trailing_colon(tokens: List[str], i: int) -> Optional[Tuple[str, float, int]]:
    """ key: value """
    token = tokens[i].strip(WRAPPERS)
    if len(token) < 2 or not token.endswith(':') or i + 1 >= len(tokens):
        return None
    name  = clean_name(token[:-1])
    value = parse_number(tokens[i + 1])
    if name is None or value is None:
        return None
    return name, value, 2


def rule_standalone_colon(tokens: List[str], i: int) -> Optional[Tuple[str, float, int]]:
    """ key : value """
    if i + 2 >= len(tokens) or tokens[i + 1] != ':':
        return None
    name  = clean_name(tokens[i])
    value = parse_number(tokens[i + 2])
    if name is None or value is None:
        return None
    return name, value, 3


def rule_implicit(tokens: List[str], i: int) -> Optional[Tuple[str, float, int]]:
    """ key value, key must not be a number itself so that "123 456" stays unnamed """
    if i + 1 >= len(tokens):
        return None
    name = clean_name(tokens[i])
    if name is None or parse_number(name) is not None:
        return None
    value = parse_number(tokens[i + 1])
    if value is None:
        return None
    return name, value, 2


TOKEN_RULES: List[Tuple[str, Callable]] = [
    ("key:value",   rule_glued),
    ("key: value",  rule_trailing_colon),
    ("key : value", rule_standalone_colon),
    ("key value",   rule_implicit),
]

############################################################################################################################################
# Line Functions
############################################################################################################################################

def strip_line(line: str) -> str:
    """ Remove the leading [HH:MM:SS.mmm] time stamp and all line breaks """
    line = TIMESTAMP_PREFIX.sub("", line, count=1)
    return LINE_BREAK_RE.sub("", line)


def classify_line(line: str) -> LineKind:
    """
    Classify an already stripped line.

    Lines with the word "header" are never data. They are a HEADER when they
    have the directive shape "header name[:color] ...", otherwise SKIP.
    """
    if not line.strip() or CONNECTING_PHRASE in line:
        return LineKind.SKIP
    if has_header_keyword(line):
        if parse_header_directive(line) is not None:
            return LineKind.HEADER
        return LineKind.SKIP
    return LineKind.DATA


def split_tokens(line: str) -> List[str]:
    return [t for t in TOKEN_SPLIT_RE.split(line) if t]


def tokenize(line: str) -> List[ParsedToken]:
    """
    Named values of one text line, left to right.

    The time stamp prefix is removed first. Empty lines, status lines and
    lines containing the word "header" give an empty list.
    """
    line = strip_line(line)
    if classify_line(line) is not LineKind.DATA:
        return []

    return match_tokens(split_tokens(line))


def match_tokens(tokens: List[str]) -> List[ParsedToken]:
    """ Apply TOKEN_RULES left to right over an already split line """
    results = []
    i = 0
    n = len(tokens)
    while i < n:
        for _, rule in TOKEN_RULES:
            match = rule(tokens, i)
            if match is not None:
                name, value, consumed = match
                results.append(ParsedToken(name, value))
                i += consumed
                break
        else:
            i += 1
    return results


def tokenize_strict(line: str) -> List[ParsedToken]:
    """ Only identifier:number pairs without blanks, one regular expression pass """
    line = strip_line(line)
    if classify_line(line) is not LineKind.DATA:
        return []
    return [ParsedToken(name, float(value)) for name, value in STRICT_PAIR_RE.findall(line)]


def bare_values(line: str) -> List[float]:
    """
    Unlabeled numbers of a column style line such as "23.5 65.2 1013.25".

    Lines containing a colon are labeled data and return an empty list.
    Tokens that are not numbers are skipped.
    """
    line = strip_line(line)
    if ':' in line or classify_line(line) is not LineKind.DATA:
        return []
    return numeric_tokens(split_tokens(line))


def numeric_tokens(tokens: List[str]) -> List[float]:
    values = []
    for token in tokens:
        value = parse_number(token)
        if value is not None:
            values.append(value)
    return values


def extract_variable_names(parsed_lines: Iterable[Iterable[ParsedToken]]) -> List[str]:
    """ Unique names in order of first occurrence """
    names = {}
    for tokens in parsed_lines:
        for token in tokens:
            names.setdefault(token.name, None)
    return list(names)
