import sys

from ollama_mcp.cli import main

sys.exit(main())
