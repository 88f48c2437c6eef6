############################################################################################################################################
# QT Line Ingestion Helper
#
# Turns a stream of text lines into named, colored time series.
#
# Each line is
#  - stripped of its [HH:MM:SS.mmm] prefix
#  - classified as SKIP, HEADER or DATA
#  - HEADER: the variable registry is replaced and all series are cleared
#  - DATA:   name/value pairs are extracted, unknown names become variables (auto update on),
#            one sample is appended per variable present in the line
#  - lines without any colon and without named pairs are positional: the N-th number goes to
#            the N-th variable, or to "lineN" if there are not enough variables
#
# Consumers pull get_variable_config() and get_series_snapshot() at their own refresh rate,
#   the signals only announce that something changed.
#
# This code is maintained by Urs Utzinger
############################################################################################################################################
#
# ==============================================================================
# Configuration
# ==============================================================================
from config import ( DEBUGINGEST, PROFILEME, DEBUG_LEVEL, LOG_FORMAT,
                     COLORS, ENCODING, POSITIONAL_NAME,
                     MAX_SERIES_BYTES, SAMPLE_WIDTH, DEFAULT_VISIBLE_SAMPLES,
                     EXPORT_TEXT_LINES )
# ==============================================================================
# Imports
# ==============================================================================
#
# General Imports
# ----------------------------------------
import logging
import re
import time
import textwrap
from typing import Dict, Iterable, List, Optional, Tuple, Union
import numpy as np
#
# QT Libraries
# ----------------------------------------
try:
    from PyQt6.QtCore import QObject, pyqtSignal, pyqtSlot
except Exception:
    from PyQt5.QtCore import QObject, pyqtSignal, pyqtSlot
#
# Custom Helpers
# ----------------------------------------
from varplot.Line_Tokenizer import (LineKind, strip_line, classify_line,
                                    split_tokens, match_tokens, numeric_tokens)
from varplot.Header_helper import parse_header_directive
from varplot.Variable_Registry import VariableRegistry
from varplot.Series_Store import SeriesStore
from varplot.Raw_Line_Buffer import RawLineBuffer

TEXT_SPLIT_RE = re.compile(r'\r?\n')

############################################################################################################################################
# QLineIngestor
############################################################################################################################################

class QLineIngestor(QObject):
    """
    Line ingestion pipeline.

    Signals
        variablesChanged(list)     ordered [{"name", "display_name", "color"}, ...] after the registry changed
        seriesUpdated()            samples were appended or series were cleared
        samplesExceeded(bool)      memory ceiling was hit (True) or the store was cleared (False)
        logSignal(int, str)        log level and message

    Slots
        on_receivedLines(list)     lines as str, bytes or bytearray
        on_receivedText(str)       text chunk with line breaks
        on_resetBuffer()           schema reset
        on_autoVariableUpdate(bool)
        on_mtocRequest()           profiling report
    """

    variablesChanged  = pyqtSignal(list)
    seriesUpdated     = pyqtSignal()
    samplesExceeded   = pyqtSignal(bool)
    logSignal         = pyqtSignal(int, str)

    def __init__(self, parent=None,
                 palette: List[str] = COLORS,
                 max_bytes: int = MAX_SERIES_BYTES,
                 sample_width: int = SAMPLE_WIDTH,
                 max_lines: int = EXPORT_TEXT_LINES,
                 auto_update: bool = True):

        super().__init__(parent)

        self.instance_name = self.objectName() if self.objectName() else self.__class__.__name__

        self.logger = logging.getLogger(self.instance_name[:10])
        self.logger.setLevel(DEBUG_LEVEL)
        if not self.logger.handlers:
            sh = logging.StreamHandler()
            sh.setFormatter(logging.Formatter(LOG_FORMAT))
            self.logger.addHandler(sh)
        self.logger.propagate = False

        # Initialize profiling variables
        self.mtoc_process_lines = 0.
        self.lines_processed    = 0

        # Delegate encoding if parent has one
        if parent and hasattr(parent, "encoding"):
            self.encoding = parent.encoding
        else:
            self.encoding = ENCODING

        try:
            self.registry  = VariableRegistry(palette=palette, auto_update=auto_update)
            self.store     = SeriesStore(max_bytes=max_bytes, sample_width=sample_width)
            self.raw_lines = RawLineBuffer(max_lines=max_lines)
        except ValueError as exc:
            self.logger.log(
                logging.ERROR,
                f"[{self.instance_name[:15]:<15}]: Could not create ingestion pipeline: {exc}"
            )
            raise

        self.running = True

    # ==========================================================================
    # Line processing
    # ==========================================================================

    def process_line(self, raw: Union[str, bytes, bytearray]) -> LineKind:
        """
        Process one line and notify observers.

        Never raises for malformed text, such lines simply contribute nothing.
        """
        kind, schema_changed, appended = self._ingest(raw)
        self._notify(schema_changed, appended)
        return kind

    def process_lines(self, lines: Iterable[Union[str, bytes, bytearray]]) -> int:
        """
        Process a batch of lines, observers are notified once at the end.

        Returns the number of data lines that appended samples.
        """
        if PROFILEME:
            tic = time.perf_counter()

        schema_changed = False
        appended = False
        data_lines = 0
        for raw in lines:
            kind, changed, added = self._ingest(raw)
            schema_changed |= changed
            appended       |= added
            data_lines     += int(added and kind is LineKind.DATA)

        self._notify(schema_changed, appended)

        if PROFILEME:
            toc = time.perf_counter()
            self.mtoc_process_lines = max((toc - tic), self.mtoc_process_lines)

        return data_lines

    def process_text(self, text: Union[str, bytes, bytearray]) -> int:
        """ Process a chunk of text containing several lines """
        if isinstance(text, (bytes, bytearray)):
            text = text.decode(self.encoding, errors="replace")
        return self.process_lines(line for line in TEXT_SPLIT_RE.split(text) if line)

    def _ingest(self, raw) -> Tuple[LineKind, bool, bool]:
        """ Apply one line to registry and store, returns (kind, schema changed, samples appended) """
        if not self.running:
            return LineKind.SKIP, False, False

        if isinstance(raw, (bytes, bytearray)):
            raw = raw.decode(self.encoding, errors="replace")

        self.raw_lines.append(raw)
        self.lines_processed += 1

        line = strip_line(raw)
        kind = classify_line(line)

        if kind is LineKind.SKIP:
            return kind, False, False

        if kind is LineKind.HEADER:
            self._apply_header(line)
            return kind, True, True

        values = self._line_values(line)
        if not values:
            return kind, False, False

        size_before = len(self.registry)
        appended = False
        for name, (value, color_hint) in values.items():
            if color_hint is None:
                color_hint = len(self.registry)                                # next palette color
            variable = self.registry.ensure(name, color_hint)
            if variable is None:
                continue                                                       # auto update is off
            self.store.append(name, value)
            appended = True

        schema_changed = len(self.registry) != size_before
        if schema_changed:
            self.logSignal.emit(
                logging.DEBUG,
                f"[{self.instance_name[:15]:<15}]: New variables: {self.registry.names[size_before:]}"
            )

        if appended:
            self._enforce_limit()

        return kind, schema_changed, appended

    def _line_values(self, line: str) -> Dict[str, Tuple[float, Optional[int]]]:
        """
        Name -> (value, color hint) for one data line.
        Named pairs have no hint, they take the next palette color when created.

        A name that appears twice keeps its first position and takes the last value.
        """
        tokens = split_tokens(line)
        values = {}
        pairs = match_tokens(tokens)
        if pairs:
            for name, value in pairs:
                values[name] = (value, None)
            return values

        if ':' in line:
            return values

        # plain columns, a fallback name never reuses a name of the line or the registry
        for position, value in enumerate(numeric_tokens(tokens)):
            name = self.registry.name_at(position)
            if name is None or name in values:
                n = position + 1
                name = POSITIONAL_NAME.format(n)
                while name in values or name in self.registry:
                    n += 1
                    name = POSITIONAL_NAME.format(n)
            values[name] = (value, position)
        return values

    def _apply_header(self, line: str) -> None:
        entries = parse_header_directive(line, palette=self.registry.palette)
        was_exceeded = self.store.samples_exceeded
        self.registry.declare(entries)
        self.store.clear()
        for name in self.registry.names:
            self.store.create(name)
        if was_exceeded:
            self.samplesExceeded.emit(False)
        self.logSignal.emit(
            logging.INFO,
            f"[{self.instance_name[:15]:<15}]: Header declared {len(entries)} variables: {', '.join(self.registry.names)}"
        )

    def _enforce_limit(self) -> None:
        was_exceeded = self.store.samples_exceeded
        removed = self.store.enforce_limit()
        if removed and not was_exceeded:
            self.samplesExceeded.emit(True)
            self.logSignal.emit(
                logging.WARNING,
                f"[{self.instance_name[:15]:<15}]: Memory limit of {self.store.max_bytes} bytes reached, oldest samples are discarded."
            )

    def _notify(self, schema_changed: bool, appended: bool) -> None:
        if schema_changed:
            self.variablesChanged.emit(self.registry.config)
        if appended:
            self.seriesUpdated.emit()

    # ==========================================================================
    # Queries
    # ==========================================================================

    @property
    def samples_exceeded(self) -> bool:
        return self.store.samples_exceeded

    @property
    def auto_update(self) -> bool:
        return self.registry.auto_update

    def get_variable_config(self) -> List[Dict[str, str]]:
        """ Ordered [{"name", "display_name", "color"}, ...] """
        return self.registry.config

    def get_series_snapshot(self) -> Dict[str, np.ndarray]:
        """ Read only copies of all series in variable order, variables without samples give empty arrays """
        snap = self.store.snapshot(self.registry.names)
        out = {}
        for name in self.registry.names:
            data = snap.get(name)
            if data is None:
                data = np.empty(0, dtype=np.float64)
                data.flags.writeable = False
            out[name] = data
        return out

    def get_padded_snapshot(self, names: Optional[Iterable[str]] = None) -> Dict[str, np.ndarray]:
        """ Series front padded with NaN to equal length, see SeriesStore.padded_snapshot """
        if names is None:
            names = self.registry.names
        return self.store.padded_snapshot(names)

    def get_statistics(self, window: int = DEFAULT_VISIBLE_SAMPLES) -> List[Dict[str, object]]:
        """ min, max and current value of the newest window samples per variable """
        stats = []
        for variable in self.registry:
            vmin, vmax, current = self.store.statistics(variable.name, window)
            entry = variable.as_dict()
            entry.update({"min": vmin, "max": vmax, "current": current})
            stats.append(entry)
        return stats

    def export_csv(self, path=None) -> str:
        """ Raw lines as CSV text, written to path if one is given """
        text = self.raw_lines.to_csv()
        if path is not None:
            saved = self.raw_lines.save(path)
            self.logSignal.emit(
                logging.INFO,
                f"[{self.instance_name[:15]:<15}]: Saved {len(self.raw_lines)} lines to {saved}."
            )
        return text

    # ==========================================================================
    # User overrides
    # ==========================================================================

    def set_display_name(self, name: str, display_name: str) -> bool:
        if name not in self.registry:
            self._unknown_variable(name)
            return False
        if not self.registry.rename(name, display_name):
            return False
        self.variablesChanged.emit(self.registry.config)
        return True

    def set_color(self, name: str, color: str) -> bool:
        if name not in self.registry:
            self._unknown_variable(name)
            return False
        if not self.registry.recolor(name, color):
            return False
        self.variablesChanged.emit(self.registry.config)
        return True

    def delete_variable(self, name: str) -> bool:
        if not self.registry.remove(name):
            self._unknown_variable(name)
            return False
        self.store.remove(name)
        self.variablesChanged.emit(self.registry.config)
        self.seriesUpdated.emit()
        return True

    def set_auto_variable_update(self, enabled: bool) -> None:
        self.registry.auto_update = bool(enabled)
        self.logSignal.emit(
            logging.INFO,
            f"[{self.instance_name[:15]:<15}]: Automatic variable update {'enabled' if enabled else 'disabled'}."
        )

    def _unknown_variable(self, name: str) -> None:
        self.logSignal.emit(
            logging.WARNING,
            f"[{self.instance_name[:15]:<15}]: Variable {name!r} does not exist."
        )

    # ==========================================================================
    # Session
    # ==========================================================================

    def reset_all(self) -> None:
        """ Remove all variables and series """
        was_exceeded = self.store.samples_exceeded
        self.registry.reset()
        self.store.clear()
        if was_exceeded:
            self.samplesExceeded.emit(False)
        self.variablesChanged.emit([])
        self.seriesUpdated.emit()
        self.logSignal.emit(
            logging.INFO,
            f"[{self.instance_name[:15]:<15}]: Variables and series cleared."
        )

    def start(self) -> None:
        """ New session, series and raw lines are cleared, variables are kept """
        was_exceeded = self.store.samples_exceeded
        self.store.clear()
        self.raw_lines.clear()
        self.running = True
        if was_exceeded:
            self.samplesExceeded.emit(False)
        self.seriesUpdated.emit()
        self.logSignal.emit(
            logging.INFO,
            f"[{self.instance_name[:15]:<15}]: Started."
        )

    def stop(self) -> None:
        """ Lines are ignored until start() """
        self.running = False
        self.logSignal.emit(
            logging.INFO,
            f"[{self.instance_name[:15]:<15}]: Stopped."
        )

    def dispose(self) -> None:
        self.running = False
        was_exceeded = self.store.samples_exceeded
        self.registry.reset()
        self.store.clear()
        self.raw_lines.clear()
        self.variablesChanged.emit([])
        self.seriesUpdated.emit()
        if was_exceeded:
            self.samplesExceeded.emit(False)

    # ==========================================================================
    # Slots
    # ==========================================================================

    @pyqtSlot(list)
    def on_receivedLines(self, lines: list) -> None:
        """
        Parse a list of lines and add the values to the series
        """
        if DEBUGINGEST:
            tic = time.perf_counter()

        self.process_lines(lines)

        if DEBUGINGEST:
            toc = time.perf_counter()
            self.logSignal.emit(
                logging.DEBUG,
                f"[{self.instance_name[:15]:<15}]: {len(lines)} lines received: parsing took {1000 * (toc - tic):.3f} ms"
            )

    @pyqtSlot(str)
    def on_receivedText(self, text: str) -> None:
        self.process_text(text)

    @pyqtSlot()
    def on_resetBuffer(self) -> None:
        self.reset_all()

    @pyqtSlot(bool)
    def on_autoVariableUpdate(self, enabled: bool) -> None:
        self.set_auto_variable_update(enabled)

    @pyqtSlot()
    def on_mtocRequest(self) -> None:
        """
        Report the profiling information.
        """
        log_message = textwrap.dedent(f"""
            Ingestion Profiling
            =============================================================
            mtoc_process_lines      took {self.mtoc_process_lines*1000:.2f} ms
            lines processed              {self.lines_processed}
        """)
        self.logSignal.emit(-1, log_message)
        self.mtoc_process_lines = 0.
