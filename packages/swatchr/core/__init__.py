"""swatchr core: change-aware batch export of design assets."""

__version__ = "0.1.0"
