"""
Production Kernel

Per-article floor-quantity ledger for a garment factory:
- Conditional floor routing by linking type
- Quantity-conserving transfers between floors
- Quality-gated grading with repair reclassification
- Per-article serialized mutations with a hash-chained audit trail
"""

__version__ = "0.1.0"
