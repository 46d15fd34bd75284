"""Allow ``python -m vatcheck.cli`` execution."""

from vatcheck.cli.verify import main

main()
