"""citeflow - discover citations for documents across bibliographic indexes."""

__version__ = "0.1.0"
