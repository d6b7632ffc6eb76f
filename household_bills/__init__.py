"""
Household Bills - recurring bill scheduling and reconciliation engine.

A small transactional core for a household budgeting application:
- Pure, bounded occurrence generation from a recurrence rule
- Materialized, individually payable bill instances
- Atomic regeneration of the unpaid future when a schedule changes
- Paid history that reconciliation never touches
"""

__version__ = "0.1.0"
