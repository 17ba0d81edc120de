"""
Session Reminder Worker Runner
Run this as a separate process when SESSION_REMINDERS_ENABLED is off in the API:
python run_reminder_worker.py
"""

import asyncio
import logging
import sys

from app.config import SESSION_REMINDER_INTERVAL_SECONDS, SESSION_REMINDER_LOOKAHEAD_HOURS
from app.services.session_reminders import SessionReminderScheduler

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

logger = logging.getLogger(__name__)


async def main():
    scheduler = SessionReminderScheduler(
        interval_seconds=SESSION_REMINDER_INTERVAL_SECONDS,
        lookahead_hours=SESSION_REMINDER_LOOKAHEAD_HOURS,
    )
    await scheduler.run_forever()


if __name__ == "__main__":
    logger.info("🚀 Starting Session Reminder Worker...")
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("👋 Reminder worker stopped by user")
    except Exception as e:
        logger.error(f"❌ Reminder worker crashed: {e}")
        sys.exit(1)
