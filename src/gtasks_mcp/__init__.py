"""Google Tasks MCP server.

Exposes Google Tasks lists and tasks to MCP clients, authorizing once on
behalf of a single user and reusing the saved grant afterwards.
"""

__version__ = "0.1.0"
