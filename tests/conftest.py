import os

# Must be set before clinic_scheduling.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["CLINIC_TIMEZONE"] = "UTC"
os.environ["INVOICE_CANCELLATION_POLICY"] = "void_on_cancel"
os.environ["DB_LOG_SLOW_QUERIES"] = "false"
os.environ.pop("REDIS_URL", None)
os.environ.pop("REDIS_HOST", None)
