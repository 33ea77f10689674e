"""Exceptions raised for structural input failures."""

from __future__ import annotations


class AnalysisError(RuntimeError):
    pass


class DataLoadError(AnalysisError):
    """An input file is missing, unreadable or has the wrong shape."""

    def __init__(self, path, message: str):
        self.path = str(path)
        super().__init__(f"{message}: {self.path}")


class ConfigError(AnalysisError):
    """Configuration or roster values failed validation."""

    def __init__(self, errors: list[str], source: str | None = None):
        self.errors = list(errors)
        header = f"Invalid configuration in {source}" if source else "Invalid configuration"
        super().__init__(header + ":\n" + "\n".join(f"  - {e}" for e in self.errors))
