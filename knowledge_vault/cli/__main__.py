"""Allow ``python -m knowledge_vault.cli`` execution."""

from knowledge_vault.cli.queue import main

main()
