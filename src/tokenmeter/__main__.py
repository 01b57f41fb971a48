"""Allow ``python -m tokenmeter``."""

import tokenmeter.cli as cli

if __name__ == "__main__":
    cli.main()
