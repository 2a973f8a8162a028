"""RWA-Core: real-world asset tokenization and DEX trading orchestration."""

__version__ = "0.1.0"
