"""Out of Context: an LLM text stream that runs until its context window gives out."""

__version__ = "0.3.0"
