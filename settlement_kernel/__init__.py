"""
Settlement Kernel

Shared foundation for the investor settlement engines:
- Typed exceptions with machine-readable codes
- Structured JSON logging
- Immutable domain records for property-month financial input
- Currency-derived rounding and tolerance
"""

__version__ = "0.1.0"
