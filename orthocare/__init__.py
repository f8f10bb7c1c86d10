"""OrthoCare: dictated patient intake for orthopedic practice."""

__version__ = "0.1.0"
