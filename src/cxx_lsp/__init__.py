"""
C/C++ Completion Language Server

A Language Server Protocol implementation that surfaces completions from a
slow, out-of-process analysis backend (clangd, ccls) without blocking the
editor, keeping asynchronous results consistent with the cursor context.
"""

__version__ = "0.1.0"

# Import on demand to avoid import errors
def get_server():
    from cxx_lsp.server import CxxLanguageServer
    return CxxLanguageServer

__all__ = ["get_server", "__version__"]
