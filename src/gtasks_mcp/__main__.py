import sys

from gtasks_mcp.cli import main

sys.exit(main())
