"""
                Restaurant Orders

Order lifecycle and pricing engine for a multi-tenant restaurant
ordering platform: catalog-priced order placement, a guarded status
state machine, tenant-scoped reporting queries and restaurant reviews.
"""

__version__ = "1.0.0"
