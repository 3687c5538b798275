"""lexsimple: LLM orchestration core for plain-language legal translation."""

__version__ = "0.1.0"
