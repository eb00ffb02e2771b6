"""Allow ``python -m oorep_seed``."""

from oorep_seed.cli.main import main

main()
