############################################################################################################################################
# Header Directive Helper
#
# A header line declares the variables of the stream and optionally their colors:
#
#   header temp:'red' humidity:"#3498db" pressure:rgb(0, 255, 0) light:orange count
#
#  - parse_header_directive(line) -> [(name, color), ...] or None if the line is not a directive
#  - has_header_keyword(line)     -> True if the word "header" appears anywhere in the line
#  - normalize_color(text)        -> color string or None if malformed
#
# Color forms: 'single quoted', "double quoted", #hex, rgb(r,g,b), rgba(r,g,b,a), named (letters only)
# Names follow the data token rules, "temp-1" and "123" are names, "a,b" are two names.
# A name without a usable color gets the first palette color not yet used in the same header.
#
# This code is maintained by Urs Utzinger
############################################################################################################################################
#
import re
from typing import List, Optional, Tuple
#
from config import COLORS, HEADER_KEYWORD

# "header" as a whole word, case insensitive, anywhere in the line
HEADER_KEYWORD_RE = re.compile(r'\b' + re.escape(HEADER_KEYWORD) + r'\b', re.IGNORECASE)

# "header <rest>" at start of the line, rest must not be empty
HEADER_DIRECTIVE_RE = re.compile(r'^\s*' + re.escape(HEADER_KEYWORD) + r'\s+(\S.*)$', re.IGNORECASE | re.DOTALL)

# characters of a variable name, same as a data token name: no blanks, separators, colons, quotes or brackets
NAME_CHARS = r"[^\s,;:'\"()\[\]{}\x00-\x1f]"

# "name" or "name: color"
#   group name:   variable name, e.g. temp, temp-1, 123
#   group single: 'color'
#   group double: "color"
#   group hex:    #rrggbb
#   group rgb:    rgb(...) or rgba(...)
#   group named:  letters only, e.g. red
#   group other:  anything else after the colon, malformed color
HEADER_ENTRY_RE = re.compile(
    r"(?P<name>" + NAME_CHARS + r"+)"
    r"(?:\s*:\s*(?!" + NAME_CHARS + r"+\s*:)"
    r"(?:'(?P<single>[^']*)'"
    r'|"(?P<double>[^"]*)"'
    r"|(?P<hex>#\w+)"
    r"|(?P<rgb>rgba?\s*\([^)]*\))"
    r"|(?P<named>[A-Za-z]+)(?=[\s,;]|$)"
    r"|(?P<other>\w*\([^)]*\)?|[^\s,;:]*)"
    r"))?",
    re.IGNORECASE
)

RGB_RE = re.compile(r'^rgba?\s*\(([^)]*)\)$', re.IGNORECASE)


def has_header_keyword(line: str) -> bool:
    return HEADER_KEYWORD_RE.search(line) is not None


def normalize_color(text: Optional[str]) -> Optional[str]:
    """
    Clean up a color specification.

    rgb/rgba calls are rewritten without blanks and cut to at most 4 components,
    3 components give rgb(...), 4 components give rgba(...).
    Fewer than 3 components or an empty string are malformed and return None.
    Everything else (hex, named, hsl, ...) is passed through trimmed.
    """
    if text is None:
        return None
    color = text.strip()
    if not color:
        return None
    match = RGB_RE.match(color)
    if match:
        components = [c.strip() for c in match.group(1).split(',')]
        components = [c for c in components if c != ""][:4]
        if len(components) == 3:
            return f"rgb({','.join(components)})"
        elif len(components) == 4:
            return f"rgba({','.join(components)})"
        else:
            return None
    return color


def parse_header_directive(line: str, palette: List[str] = COLORS) -> Optional[List[Tuple[str, str]]]:
    """
    Parse a header directive into an ordered list of (name, color).

    Returns None when the line is not a directive, for example
      "header: temperature, pressure"   colon glued to the keyword
      "header"                          no variables
    A name that appears twice keeps its first position and its last color.
    """
    match = HEADER_DIRECTIVE_RE.match(line)
    if not match:
        return None

    names  = []                                                                # declaration order
    colors = {}                                                                # name -> color or None
    for entry in HEADER_ENTRY_RE.finditer(match.group(1)):
        name = entry.group("name")
        raw = (entry.group("single") or entry.group("double") or entry.group("hex")
               or entry.group("rgb") or entry.group("named"))
        color = normalize_color(raw)
        if name not in colors:
            names.append(name)
            colors[name] = color
        elif color is not None:
            colors[name] = color

    if not names:
        return None

    # Fill in missing colors with palette entries not used by this header
    used = {c.lower() for c in colors.values() if c is not None}
    free = [c for c in palette if c.lower() not in used]
    result = []
    for idx, name in enumerate(names):
        color = colors[name]
        if color is None:
            color = free.pop(0) if free else palette[idx % len(palette)]
        result.append((name, color))
    return result
