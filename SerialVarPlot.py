#!/usr/bin/env python3
############################################################################################################################################
# Serial Variable Plotter
# ***********************
#
# Headless front end of the line ingestion pipeline.
#
# - SerialVarPlot.py data.txt   reads a recorded session and prints the statistics of every variable
# - SerialVarPlot.py            streams the simulated serial port and logs statistics every second
#
# A plotting front end connects to the same QLineIngestor signals and pulls
#   get_variable_config() and get_series_snapshot() every UPDATE_INTERVAL ms, as the update timer here does.
#
# Configurations can be changed in config.py
#
# This code is maintained by Urs Utzinger
############################################################################################################################################
# ==============================================================================
# Config
# ==============================================================================
from config import (
    VERSION, AUTHOR, DATE,
    LOG_OPTIONS, LOG_DEFAULT_LABEL, LOG_FORMAT, ENCODING,
    DEFAULT_VISIBLE_SAMPLES, REPORT_INTERVAL, UPDATE_INTERVAL,
)
# ==============================================================================
# Imports
# ==============================================================================
#
import argparse
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional
#
try:
    from PyQt6.QtCore import QCoreApplication, QObject, QTimer, pyqtSlot
except Exception:
    from PyQt5.QtCore import QCoreApplication, QObject, QTimer, pyqtSlot
#
from varplot.Qingest_helper import QLineIngestor
from varplot.Fake_Serial import QFakeSerial

############################################################################################################################################
# Helpers
############################################################################################################################################

def format_statistics(stats: List[dict]) -> str:
    """ Statistics table, one row per variable """

    def fmt(value):
        return "-" if value is None else f"{value:.4g}"

    rows = [f"{'name':<16} {'color':<18} {'min':>10} {'max':>10} {'current':>10}"]
    for entry in stats:
        rows.append(
            f"{entry['display_name'][:16]:<16} {entry['color'][:18]:<18} "
            f"{fmt(entry['min']):>10} {fmt(entry['max']):>10} {fmt(entry['current']):>10}"
        )
    return "\n".join(rows)


class varPlotter(QObject):
    """
    Wires a line source to the ingestion pipeline and reports what arrives.
    """

    def __init__(self, parent=None, logger=None, window: int = DEFAULT_VISIBLE_SAMPLES,
                 auto_update: bool = True):

        super().__init__(parent)

        self.instance_name = self.objectName() if self.objectName() else self.__class__.__name__

        if logger is None:
            self.logger = logging.getLogger(self.instance_name[:10])
            if not self.logger.handlers:
                sh = logging.StreamHandler()
                sh.setFormatter(logging.Formatter(LOG_FORMAT))
                self.logger.addHandler(sh)
            self.logger.propagate = False
        else:
            self.logger = logger

        self.window = window
        self.frames = 0                                                        # snapshots pulled since last report

        self.ingestor = QLineIngestor(self, auto_update=auto_update)
        self.ingestor.logSignal.connect(                    self.handle_log)
        self.ingestor.variablesChanged.connect(             self.on_variablesChanged)

        self.source      = None
        self.updateTimer = None
        self.reportTimer = None

    @pyqtSlot(int, str)
    def handle_log(self, level: int, message: str) -> None:
        """
        level: -1 = mtoc request, 0..50 = logging levels
        """
        if level > -1:
            self.logger.log(level, message)
        else:
            self.logger.log(logging.INFO, message)

    @pyqtSlot(list)
    def on_variablesChanged(self, config: list) -> None:
        self.handle_log(logging.INFO,
            f"[{self.instance_name[:15]:<15}]: Variables: {', '.join(v['display_name'] for v in config)}"
        )

    def replay(self, path: Path) -> str:
        """ Feed a recorded session, returns the statistics table """
        with open(path, "r", encoding=ENCODING, errors="replace") as f:
            n = self.ingestor.process_lines(f)
        self.handle_log(logging.INFO,
            f"[{self.instance_name[:15]:<15}]: {n} data lines read from {path}."
        )
        return format_statistics(self.ingestor.get_statistics(self.window))

    def simulate(self, interval: Optional[int] = None) -> None:
        """ Stream the simulated port until the application quits """
        if interval is None:
            self.source = QFakeSerial(self)
        else:
            self.source = QFakeSerial(self, interval=interval)
        self.source.logSignal.connect(                      self.handle_log)
        self.source.receivedLines.connect(                  self.ingestor.on_receivedLines)

        self.updateTimer = QTimer(self)
        self.updateTimer.setInterval(UPDATE_INTERVAL)
        self.updateTimer.timeout.connect(                   self.on_updateTimer)

        self.reportTimer = QTimer(self)
        self.reportTimer.setInterval(REPORT_INTERVAL)
        self.reportTimer.timeout.connect(                   self.on_reportTimer)

        self.ingestor.start()
        self.source.start()
        self.updateTimer.start()
        self.reportTimer.start()

    @pyqtSlot()
    def on_updateTimer(self) -> None:
        """ Pull a consistent snapshot, as a plot refresh would """
        self.ingestor.get_series_snapshot()
        self.frames += 1

    @pyqtSlot()
    def on_reportTimer(self) -> None:
        self.handle_log(logging.INFO,
            f"[{self.instance_name[:15]:<15}]: {self.frames} snapshots, "
            f"{self.ingestor.store.current_byte_size()} bytes\n"
            + format_statistics(self.ingestor.get_statistics(self.window))
        )
        self.frames = 0

    @pyqtSlot()
    def cleanup(self) -> None:
        for timer in (self.updateTimer, self.reportTimer):
            if timer is not None:
                timer.stop()
        if self.source is not None:
            self.source.stop()
        self.ingestor.on_mtocRequest()
        self.ingestor.dispose()

############################################################################################################################################
# Main
############################################################################################################################################

def main(argv: Optional[List[str]] = None) -> int:

    parser = argparse.ArgumentParser(
        prog="SerialVarPlot",
        description="Extract named variables from serial text lines",
        epilog="Without a file the simulated serial port is streamed until Ctrl-C.",
    )
    parser.add_argument("file", nargs="?", help="recorded session, one line per sample")
    parser.add_argument("-l", "--log", choices=list(LOG_OPTIONS), default=LOG_DEFAULT_LABEL,
                        help=f"log level (default: {LOG_DEFAULT_LABEL})")
    parser.add_argument("-w", "--window", type=int, default=DEFAULT_VISIBLE_SAMPLES,
                        help=f"statistics window in samples (default: {DEFAULT_VISIBLE_SAMPLES})")
    parser.add_argument("-i", "--interval", type=int, default=None,
                        help="simulated line interval in ms")
    parser.add_argument("--no-auto-update", action="store_true",
                        help="do not create variables from data lines")
    args = parser.parse_args(argv)

    # Logging
    root_logger = logging.getLogger("VarPlot")
    root_logger.setLevel(LOG_OPTIONS[args.log])
    if not root_logger.handlers:
        sh = logging.StreamHandler()
        sh.setFormatter(logging.Formatter(LOG_FORMAT))
        root_logger.addHandler(sh)
    root_logger.propagate = False

    root_logger.log(logging.INFO, f"Serial Variable Plotter {VERSION}, {AUTHOR} {DATE}")

    app = QCoreApplication.instance() or QCoreApplication(sys.argv[:1])
    plotter = varPlotter(logger=root_logger, window=args.window,
                         auto_update=not args.no_auto_update)

    if args.file:
        path = Path(args.file)
        if not path.is_file():
            root_logger.log(logging.ERROR, f"File {path} not found.")
            return 1
        print(plotter.replay(path))
        plotter.cleanup()
        return 0

    signal.signal(signal.SIGINT, lambda *_: app.quit())
    app.aboutToQuit.connect(plotter.cleanup)
    plotter.simulate(args.interval)

    # let Python see SIGINT while the Qt event loop runs
    keepAlive = QTimer()
    keepAlive.timeout.connect(lambda: None)
    keepAlive.start(200)

    try:
        exit_code = app.exec()                                                 # PyQt6
    except AttributeError:
        exit_code = app.exec_()                                                # PyQt5
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
