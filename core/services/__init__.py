# Services Module
from .database import Database
from .mail import MailService

__all__ = ["Database", "MailService"]
