"""Enables running the server via: python -m statamic_mcp"""

from statamic_mcp.server import main

if __name__ == "__main__":
    main()
