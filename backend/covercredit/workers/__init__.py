"""Background workers"""
from .reminder_worker import ReminderWorker, TickResult

__all__ = ["ReminderWorker", "TickResult"]
