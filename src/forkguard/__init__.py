"""forkguard - selective upstream sync with banned-content enforcement."""

__version__ = "0.1.0"
