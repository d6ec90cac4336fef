"""ERP Sync: scheduled coupon, catalog and stock synchronization jobs."""

__version__ = "1.4.0"
