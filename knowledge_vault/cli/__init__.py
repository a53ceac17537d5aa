"""Command-line tools for Knowledge Vault.

- ``python -m knowledge_vault.cli`` (``knowledge_vault.cli.queue``) lists,
  summarizes and edits the durable save queue offline.
"""
