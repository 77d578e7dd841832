"""theming-updater: publishes a themeable package for each new upstream release."""

__version__ = "0.3.0"
