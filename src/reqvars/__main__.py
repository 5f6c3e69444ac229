"""Run the CLI as ``python -m reqvars <command>``."""

from reqvars.cli import main

if __name__ == "__main__":
    main()
