"""
BGN / EUR Eurozone pricing toolkit

Dual currency price display and one-time catalog migration for stores
moving from the Bulgarian lev to the euro:
- Fixed-rate conversion with smart rounding
- Detection and annotation of already-rendered price text
- Resumable, batched migration of every catalog price from BGN to EUR
"""

__version__ = "2.2.1"
__author__ = "BGN Eurozone"
