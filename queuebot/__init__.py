"""QueueBot: category reclassification driven by an on-wiki command queue."""

__version__ = "1.0.0"
