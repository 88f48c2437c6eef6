############################################################################################################################################
# Raw Line Buffer
#
# Keeps the most recent text lines as received, header lines included, for a raw text view
#   and for saving the session as CSV text.
#
#  - append(line), extend(lines), clear()
#  - lines      copy of the kept lines, oldest first
#  - to_csv()   lines joined with newlines, ANSI color codes removed
#  - csv_filename(day) default file name "YYYY-MM-DD-muino-data_dump.csv"
#  - save(path) write to_csv() to a file
#
# This code is maintained by Urs Utzinger
############################################################################################################################################
#
from collections import deque
from datetime import date
from pathlib import Path
from typing import Iterable, List, Optional, Union
#
from config import ANSI_ESCAPE, CSV_FILENAME, ENCODING, MAX_TEXT_LINES


class RawLineBuffer:
    ''' Bounded record of raw text lines '''

    def __init__(self, max_lines: int = MAX_TEXT_LINES):
        if max_lines <= 0:
            raise ValueError("max_lines must be > 0")
        self._lines = deque(maxlen=max_lines)

    def __len__(self):
        return len(self._lines)

    @property
    def max_lines(self) -> int:
        return self._lines.maxlen

    def append(self, line: str) -> None:
        ''' Blank lines are not kept '''
        line = line.rstrip("\r\n")
        if line.strip():
            self._lines.append(line)

    def extend(self, lines: Iterable[str]) -> None:
        for line in lines:
            self.append(line)

    def clear(self) -> None:
        self._lines.clear()

    @property
    def lines(self) -> List[str]:
        return list(self._lines)

    def to_csv(self) -> str:
        return "\n".join(ANSI_ESCAPE.sub("", line) for line in self._lines)

    @staticmethod
    def csv_filename(day: Optional[date] = None) -> str:
        day = day or date.today()
        return CSV_FILENAME.format(date=day.strftime("%Y-%m-%d"))

    def save(self, path: Union[str, Path]) -> Path:
        path = Path(path)
        path.write_text(self.to_csv(), encoding=ENCODING)
        return path
