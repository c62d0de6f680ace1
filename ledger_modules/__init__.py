"""
Document modules -- turn business documents into ledger effects.

Each module owns frozen document DTOs (models.py) and a service that
drives inventory movements and automatic journal entries through the
kernel.  All journal creation goes through journal_bridge.AutoJournalService.
"""
