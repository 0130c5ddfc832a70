from .analysis_queue import AnalysisQueue
from .dispatch import InlineDispatcher, UiDispatcher
from .display import ConsoleDisplay, DisplaySink, OscDisplayOut
from .framer import LineFramer
from .parser import Reading, parse_line
from .pipeline import Pipeline
from .sources import ByteSource, MockByteSource, SerialByteSource

__all__ = [
    "AnalysisQueue",
    "ByteSource",
    "ConsoleDisplay",
    "DisplaySink",
    "InlineDispatcher",
    "LineFramer",
    "MockByteSource",
    "OscDisplayOut",
    "Pipeline",
    "Reading",
    "SerialByteSource",
    "UiDispatcher",
    "parse_line",
]
