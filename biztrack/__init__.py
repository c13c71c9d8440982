"""
BizTrack - Source Package

A small-business bookkeeping core: clients, payments (including refunds)
and expenses, with derived financial summaries and reports.

DESIGN PRINCIPLES:
1. Show changes immediately, roll back exactly when storage refuses
2. Fail early, fail visibly
3. No silent corrections
4. Every change must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "BizTrack Team"
