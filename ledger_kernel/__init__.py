"""
Ledger Kernel

A double-entry journal engine with:
- Balance validation before persistence
- Monotonic entry numbering from a locked counter row
- Draft / pending / approved / posted / voided entry lifecycle
- Period control and opening-balance period transitions
"""

__version__ = "0.1.0"
