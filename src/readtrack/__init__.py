"""readtrack - a personal reading tracker."""

__version__ = "0.1.0"
