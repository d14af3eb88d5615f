"""Run the bridge server: ``python -m gemini_cli_bridge``."""

from gemini_cli_bridge import main

if __name__ == "__main__":
    main()
