"""
Meu Bolso - Source Package

Local persistence and domain layer for a personal finance tracker:
transactions, credit cards, investments, alerts and PIN-gated settings,
kept in a namespaced key/value store on the user's own machine.

DESIGN PRINCIPLES:
1. Storage layer is swappable (file, memory)
2. Routine CRUD never raises; failures show up in return values and logs
3. Every mutation is one read-modify-write of the affected collection(s)
4. Backups are a total snapshot, restores a total replace
"""

__version__ = "1.0.0"
__author__ = "Meu Bolso Team"
