"""Project version constants.

These constants are written into every index manifest (``meta.json``) so that
an index directory can be traced back to the engine version that built it.
"""

ENGINE_NAME: str = "vanilla-lookup"
ENGINE_VERSION: str = "0.1.0"

INDEX_FORMAT_VERSION: int = 2
