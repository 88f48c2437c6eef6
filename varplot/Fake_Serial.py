############################################################################################################################################
# Simulated Serial Port
#
# Produces the text a microcontroller would send when streaming three sine waves:
#
#   [12:34:56.789] header sin1:'#f92672' sin2:'#a6e22e' sin3:'#66d9ef'
#   [12:34:56.819] 0.0000	1.0000	0.0000
#   [12:34:56.849] 0.0500	0.9988	-0.0500
#
# functions:
#   - timestamp_prefix(now)            "[HH:MM:SS.mmm] "
#   - fake_header(colors, timestamp)   header directive for sin1, sin2, sin3
#   - fake_line(t, timestamp)          three tab separated sines, phase 0, pi/2, pi
#   - fake_stream(steps, ...)          header every header_every lines followed by data lines
#
# QFakeSerial emits receivedLines(list) from a QTimer, the same signal a serial worker emits,
#   so the ingestion pipeline can be exercised without hardware.
#
# This code is maintained by Urs Utzinger
############################################################################################################################################
#
from config import (COLORS, FAKE_DT, FAKE_HEADER_EVERY, FAKE_INTERVAL, FAKE_PORT_NAME,
                    DEBUG_LEVEL, LOG_FORMAT)
#
import logging
from datetime import datetime
from math import pi, sin
from typing import Iterator, List, Optional
#
try:
    from PyQt6.QtCore import Qt, QObject, QTimer, pyqtSignal, pyqtSlot
    PreciseTimerType = Qt.TimerType.PreciseTimer
except Exception:
    from PyQt5.QtCore import Qt, QObject, QTimer, pyqtSignal, pyqtSlot
    PreciseTimerType = Qt.PreciseTimer

############################################################################################################################################
# Text generation
############################################################################################################################################

def timestamp_prefix(now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    return f"[{now.strftime('%H:%M:%S')}.{now.microsecond // 1000:03d}] "


def fake_header(colors: List[str] = COLORS, timestamp: bool = True) -> str:
    """ Header directive declaring sin1..sin3 with the first three colors """
    entries = " ".join(f"sin{i + 1}:'{colors[i % len(colors)]}'" for i in range(3))
    line = f"header {entries}"
    return timestamp_prefix() + line if timestamp else line


def fake_line(t: float, timestamp: bool = True) -> str:
    """ sin(t), sin(t + pi/2), sin(t + pi) with four decimals, tab separated """
    values = "\t".join(f"{sin(t + phase):.4f}" for phase in (0., pi / 2, pi))
    return timestamp_prefix() + values if timestamp else values


def fake_stream(steps: int, dt: float = FAKE_DT, header_every: int = FAKE_HEADER_EVERY,
                colors: List[str] = COLORS, timestamp: bool = True) -> Iterator[str]:
    """
    Simulated session of steps data lines.

    A header precedes the first data line and every header_every-th data line after it.
    """
    if header_every <= 0:
        raise ValueError("header_every must be > 0")
    for step in range(steps):
        if step % header_every == 0:
            yield fake_header(colors, timestamp)
        yield fake_line(step * dt, timestamp)

############################################################################################################################################
# QFakeSerial
############################################################################################################################################

class QFakeSerial(QObject):
    """
    Timer driven simulated serial port.

    Signals
        receivedLines(list)    one batch of text lines per timer tick
        logSignal(int, str)
    """

    receivedLines = pyqtSignal(list)
    logSignal     = pyqtSignal(int, str)

    def __init__(self, parent=None, interval: int = FAKE_INTERVAL, dt: float = FAKE_DT,
                 header_every: int = FAKE_HEADER_EVERY, colors: List[str] = COLORS,
                 timestamp: bool = True):

        super().__init__(parent)

        self.instance_name = self.objectName() if self.objectName() else self.__class__.__name__

        self.logger = logging.getLogger(self.instance_name[:10])
        self.logger.setLevel(DEBUG_LEVEL)
        if not self.logger.handlers:
            sh = logging.StreamHandler()
            sh.setFormatter(logging.Formatter(LOG_FORMAT))
            self.logger.addHandler(sh)
        self.logger.propagate = False

        if header_every <= 0:
            self.logger.log(
                logging.ERROR,
                f"[{self.instance_name[:15]:<15}]: header_every needs to be positive"
            )
            raise ValueError("header_every must be > 0")

        self.port_name    = FAKE_PORT_NAME
        self.dt           = dt
        self.header_every = header_every
        self.colors       = list(colors)
        self.timestamp    = timestamp
        self.step         = 0

        self.timer = QTimer(self)
        self.timer.setTimerType(PreciseTimerType)
        self.timer.setInterval(interval)
        self.timer.timeout.connect(self.on_timer)

    @property
    def running(self) -> bool:
        return self.timer.isActive()

    def next_lines(self) -> List[str]:
        """ Lines of the next step, header first when due """
        lines = []
        if self.step % self.header_every == 0:
            lines.append(fake_header(self.colors, self.timestamp))
        lines.append(fake_line(self.step * self.dt, self.timestamp))
        self.step += 1
        return lines

    @pyqtSlot()
    def on_timer(self) -> None:
        self.receivedLines.emit(self.next_lines())

    @pyqtSlot()
    def start(self) -> None:
        self.step = 0
        self.receivedLines.emit(["Connecting ..."])
        self.timer.start()
        self.logSignal.emit(
            logging.INFO,
            f"[{self.instance_name[:15]:<15}]: Simulated port {self.port_name} opened."
        )

    @pyqtSlot()
    def stop(self) -> None:
        self.timer.stop()
        self.logSignal.emit(
            logging.INFO,
            f"[{self.instance_name[:15]:<15}]: Simulated port {self.port_name} closed after {self.step} lines."
        )
