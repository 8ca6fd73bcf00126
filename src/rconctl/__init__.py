"""rconctl - remote console controller for game servers."""

__version__ = "0.1.0"
