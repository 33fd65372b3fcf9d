"""ProfileBuilderX data layer: generic MongoDB repository and schema migrations."""

__version__ = "0.1.0"
