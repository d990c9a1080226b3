from .sinks import BufferSink, FileSink, MultiSink, TerminalSink, build_output

__all__ = ["BufferSink", "FileSink", "MultiSink", "TerminalSink", "build_output"]
