"""Exception hierarchy for the alpha engine.

Expected conditions (thin history, denied orders, degenerate statistics)
never raise; these exceptions mark programmer or configuration errors.
"""


class AlphaEngineError(Exception):
    """Base class for all engine errors."""


class ConfigError(AlphaEngineError, ValueError):
    """Invalid configuration or risk-limit update."""


class UnknownPairError(AlphaEngineError, KeyError):
    """A pair operation referenced a pair that is not configured."""


class DataFormatError(AlphaEngineError, ValueError):
    """Malformed input record (e.g. a bad row in a replay file)."""
