"""Migration modules, named ``<version>_<name>.py``. Loaded by path, not imported."""
