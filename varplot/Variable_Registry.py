############################################################################################################################################
# Variable Registry
#
# Ordered set of named variables (data traces).
#
# functions:
#   - ensure(name, color_hint)  existing variable, or a new one appended at the end if auto update is on
#   - declare(entries)          replace all variables with [(name, color), ...] from a header directive
#   - rename(name, text)        change the display name
#   - recolor(name, color)      change the color
#   - remove(name)              delete one variable
#   - reset()                   delete all variables
#   - name_at(position)         name of the N-th variable in insertion order
# properties:
#   - names                     variable names in insertion order
#   - config                    [{"name", "display_name", "color"}, ...] copy for viewers
#   - auto_update               gate for creating variables from data lines
#
# Insertion order is append only. The index of a variable never changes while it exists,
#   removing a variable leaves a gap in the indices, not a renumbering.
#
# Urs Utzinger 2025
############################################################################################################################################
#
from typing import Dict, List, Optional, Tuple
#
from config import COLORS


class Variable:
    ''' One named data trace '''

    __slots__ = ("name", "display_name", "color", "index")

    def __init__(self, name: str, color: str, index: int, display_name: Optional[str] = None):
        self.name         = name                                               # identity, case sensitive
        self.display_name = display_name or name                               # user visible label
        self.color        = color                                              # css like color string
        self.index        = index                                              # insertion index

    def as_dict(self) -> Dict[str, str]:
        return {"name": self.name, "display_name": self.display_name, "color": self.color}

    def __repr__(self):
        return f"Variable({self.name!r}, color={self.color!r}, index={self.index})"


class VariableRegistry:
    '''
    Ordered registry of variables.

    - Grows when data lines introduce new names (auto update on).
    - Replaced as a whole by header directives.
    - Never shrinks during normal ingestion.
    '''

    def __init__(self, palette: List[str] = COLORS, auto_update: bool = True):
        if not palette:
            raise ValueError("palette needs at least one color")
        self._palette     = list(palette)
        self._variables   = {}                                                 # name -> Variable, dict keeps insertion order
        self._order       = []                                                 # names in insertion order
        self._next_index  = 0                                                  # next insertion index
        self.auto_update  = auto_update

    def __len__(self):
        return len(self._variables)

    def __contains__(self, name):
        return name in self._variables

    def __iter__(self):
        return iter(list(self._variables.values()))

    def get(self, name: str) -> Optional[Variable]:
        return self._variables.get(name)

    @property
    def palette(self) -> List[str]:
        return list(self._palette)

    def palette_color(self, hint: int) -> str:
        return self._palette[hint % len(self._palette)]

    def _append(self, name: str, color: str) -> Variable:
        variable = Variable(name, color, self._next_index)
        self._variables[name] = variable
        self._order.append(name)
        self._next_index += 1
        return variable

    def ensure(self, name: str, color_hint: int) -> Optional[Variable]:
        '''
        Return the variable called name.

        Unknown names are appended with palette color color_hint (modulo palette length)
        when auto update is on. With auto update off unknown names return None.
        '''
        variable = self._variables.get(name)
        if variable is not None:
            return variable
        if not self.auto_update:
            return None
        return self._append(name, self.palette_color(color_hint))

    def declare(self, entries: List[Tuple[str, str]]) -> None:
        ''' Replace all variables, insertion index restarts at 0 '''
        self.reset()
        for name, color in entries:
            if name in self._variables:
                self._variables[name].color = color
            else:
                self._append(name, color)

    def rename(self, name: str, display_name: str) -> bool:
        ''' Blank display names are ignored '''
        variable = self._variables.get(name)
        if variable is None or not display_name or not display_name.strip():
            return False
        variable.display_name = display_name.strip()
        return True

    def recolor(self, name: str, color: str) -> bool:
        variable = self._variables.get(name)
        if variable is None or not color:
            return False
        variable.color = color
        return True

    def remove(self, name: str) -> bool:
        if self._variables.pop(name, None) is None:
            return False
        self._order.remove(name)
        return True

    def reset(self) -> None:
        self._variables.clear()
        self._order.clear()
        self._next_index = 0

    def name_at(self, position: int) -> Optional[str]:
        ''' Name of the variable at position in insertion order or None '''
        if 0 <= position < len(self._variables):
            return self._order[position]
        return None

    @property
    def names(self) -> List[str]:
        return list(self._order)

    @property
    def config(self) -> List[Dict[str, str]]:
        return [v.as_dict() for v in self._variables.values()]
