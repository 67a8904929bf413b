"""Andy AI — chat orchestration and context management for a finance/tax assistant."""

__version__ = "0.3.0"
