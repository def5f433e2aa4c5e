"""ClipHistory: clipboard monitoring and a bounded, deduplicating history."""

__version__ = "0.1.0"
