"""
Payroll Kernel

Core of the payroll computation and approval engine:
- Typed error taxonomy with machine-readable codes
- Structured JSON logging with request-scoped context
- Payroll record persistence with a storage-level uniqueness guard
- Maker/checker/finance approval state machine
"""

__version__ = "0.1.0"
