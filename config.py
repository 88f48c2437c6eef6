################################################################################################################################
# Constants for Serial Variable Plotter
################################################################################################################################
import logging
import re
################################################################################################################################
# Constants General
VERSION                 = "0.1.0"                # this version
AUTHOR                  = "Urs Utzinger"         # me
DATE                    = "2025"                 # year of last update
################################################################################################################################
# Debug and Profiling
PROFILEME               = False                  # enable/disable profiling (measure execution time of functions)
DEBUGINGEST             = False                  # enable/disable line ingestion debugging
################################################################################################################################
# Colors
# Traces without a color from the header directive pick from this palette (cyclic)
COLORS = [
    "#f92672",                                   # pink
    "#a6e22e",                                   # green
    "#66d9ef",                                   # cyan
    "#fd971f",                                   # orange
    "#e6db74",                                   # yellow
    "#9e6ffe",                                   # purple
    "#cc6633",                                   # brown
    "#f8f8f2",                                   # white
    "#ae81ff",                                   # violet
    "#f4bf75",                                   # gold
    "#cfcfc2",                                   # light gray
    "#b6e354",                                   # lime
]
################################################################################################################################
# Constants Series Store
SAMPLE_WIDTH            = 8                      # [bytes] per sample, series are float64
MAX_SERIES_BYTES        = 100_000_000            # ~100 MB total for all series, oldest samples are trimmed beyond this
INITIAL_SERIES_CAPACITY = 1_024                  # samples allocated when a series is created, grows by half its size
DEFAULT_VISIBLE_SAMPLES = 8_196                  # statistics window (newest samples)
UPDATE_INTERVAL         = 40                     # [ms] 25 Hz presentation refresh, consumers pull snapshots at this rate
################################################################################################################################
# Constants Line Parsing
CONNECTING_PHRASE       = "Connecting"           # status text emitted while a port opens, never data
HEADER_KEYWORD          = "header"               # keyword of the schema directive
POSITIONAL_NAME         = "line{}"               # name for the N-th (1-based) unlabeled value without a variable
# [HH:MM:SS.mmm] prefix added by the serial monitor
TIMESTAMP_PREFIX        = re.compile(r'^\s*\[\d{1,2}:\d{2}:\d{2}(?:\.\d+)?\]\s*')
################################################################################################################################
# Constants Text Display
# Remove ANSI escape sequences
ANSI_ESCAPE             = re.compile(r'\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])')
ENCODING                = "utf-8"                # default encoding of received bytes
EXPORT_TEXT_LINES       = 200_000                # raw lines kept by the pipeline for the CSV export
MAX_TEXT_LINES          = 5_000                  # max number of raw lines kept
CSV_FILENAME            = "{date}-muino-data_dump.csv"
################################################################################################################################
# Constants Simulated Serial Port
FAKE_PORT_NAME          = "/dev/fake_serial"     # listed next to the real ports
FAKE_INTERVAL           = 30                     # [ms] between simulated lines
FAKE_DT                 = 0.05                   # phase increment per simulated line
FAKE_HEADER_EVERY       = 100                    # re-send the header directive every N lines
REPORT_INTERVAL         = 1_000                  # [ms] statistics report of the headless runner
###############################################################################################################################
# Constants LOGLEVEL Options
LOG_OPTIONS = {
    "NONE"     : logging.NOTSET,
    "DEBUG"    : logging.DEBUG,
    "INFO"     : logging.INFO,
    "WARNING"  : logging.WARNING,
    "ERROR"    : logging.ERROR,
    "CRITICAL" : logging.CRITICAL
}
LOG_DEFAULT_LABEL = "INFO"
LOG_DEFAULT_NAME = LOG_OPTIONS[LOG_DEFAULT_LABEL]
LOG_FORMAT = "[%(levelname)-8s] [%(name)-10s] %(message)s"
# logging level and priority
# CRITICAL  50
# ERROR     40
# WARNING   30
# INFO      20
# DEBUG     10
# NOTSET     0
DEBUG_LEVEL = LOG_DEFAULT_NAME
