import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./clientops.db")

# Client portal base URL used in reminder links
CLIENT_PORTAL_URL = os.getenv("CLIENT_PORTAL_URL", "http://localhost:3000/client/portal")
CONTRACT_SIGNING_URL = os.getenv("CONTRACT_SIGNING_URL", "http://localhost:3000/contract/sign")
BUSINESS_NAME = os.getenv("BUSINESS_NAME", "ClientOps")

# Resend Email Configuration (fallback)
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "ClientOps <noreply@clientops.local>")

# Custom SMTP (preferred when configured)
SMTP_HOST = os.getenv("SMTP_HOST")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USERNAME = os.getenv("SMTP_USERNAME")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
SMTP_USE_TLS = os.getenv("SMTP_USE_TLS", "true").lower() == "true"

# Stalled approvals are escalated to this address
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL")

# Admin API - leave unset to disable the token check in local development
ADMIN_API_TOKEN = os.getenv("ADMIN_API_TOKEN")

# Scheduler
SCHEDULER_AUTOSTART = os.getenv("SCHEDULER_AUTOSTART", "true").lower() == "true"

SCHEDULER_ENABLE_INVOICE_REMINDERS = (
    os.getenv("SCHEDULER_ENABLE_INVOICE_REMINDERS", "true").lower() == "true"
)
SCHEDULER_ENABLE_CONTRACT_REMINDERS = (
    os.getenv("SCHEDULER_ENABLE_CONTRACT_REMINDERS", "true").lower() == "true"
)
SCHEDULER_ENABLE_WELCOME_SEQUENCES = (
    os.getenv("SCHEDULER_ENABLE_WELCOME_SEQUENCES", "true").lower() == "true"
)
SCHEDULER_ENABLE_APPROVAL_REMINDERS = (
    os.getenv("SCHEDULER_ENABLE_APPROVAL_REMINDERS", "true").lower() == "true"
)
SCHEDULER_ENABLE_PRIORITY_ESCALATION = (
    os.getenv("SCHEDULER_ENABLE_PRIORITY_ESCALATION", "true").lower() == "true"
)
SCHEDULER_ENABLE_OVERDUE_CHECK = (
    os.getenv("SCHEDULER_ENABLE_OVERDUE_CHECK", "true").lower() == "true"
)
SCHEDULER_ENABLE_SOFT_DELETE_CLEANUP = (
    os.getenv("SCHEDULER_ENABLE_SOFT_DELETE_CLEANUP", "true").lower() == "true"
)
SCHEDULER_ENABLE_ANALYTICS_CLEANUP = (
    os.getenv("SCHEDULER_ENABLE_ANALYTICS_CLEANUP", "true").lower() == "true"
)

# Cron expressions (minute hour day-of-month month day-of-week), UTC
REMINDER_CHECK_CRON = os.getenv("REMINDER_CHECK_CRON", "0 * * * *")  # Every hour at :00
APPROVAL_REMINDER_CRON = os.getenv("APPROVAL_REMINDER_CRON", "30 9 * * *")  # Daily at 9:30 AM
PRIORITY_ESCALATION_CRON = os.getenv("PRIORITY_ESCALATION_CRON", "0 6 * * *")  # Daily at 6 AM
OVERDUE_CHECK_CRON = os.getenv("OVERDUE_CHECK_CRON", "0 1 * * *")  # Daily at 1 AM
SOFT_DELETE_CLEANUP_CRON = os.getenv("SOFT_DELETE_CLEANUP_CRON", "0 2 * * *")  # Daily at 2 AM
ANALYTICS_CLEANUP_CRON = os.getenv("ANALYTICS_CLEANUP_CRON", "0 3 * * *")  # Daily at 3 AM

# Retention
ANALYTICS_RETENTION_DAYS = int(os.getenv("ANALYTICS_RETENTION_DAYS", "365"))
SOFT_DELETE_RETENTION_DAYS = int(os.getenv("SOFT_DELETE_RETENTION_DAYS", "30"))

# Approval reminders: days after the request is created, one reminder per interval
APPROVAL_REMINDER_INTERVALS = [
    int(value)
    for value in os.getenv("APPROVAL_REMINDER_INTERVALS", "1,3,7").split(",")
    if value.strip()
]
APPROVAL_STALL_DAYS = int(os.getenv("APPROVAL_STALL_DAYS", "14"))

# Redis (arq worker deployment only)
REDIS_URL = os.getenv("REDIS_URL")
