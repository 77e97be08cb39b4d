"""codelingo: collaborative code editing with per-participant comment translation."""

import importlib.metadata

try:
    __version__ = importlib.metadata.version("codelingo")
except importlib.metadata.PackageNotFoundError:
    __version__ = "0.0.0"
