"""
Entry point for running grant_mcp as a module.

Allows running the grant server via:
    python -m grant_mcp
    uv run python -m grant_mcp
"""

from grant_mcp.server import main

if __name__ == "__main__":
    main()
