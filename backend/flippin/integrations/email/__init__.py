from flippin.integrations.email.base import EmailProvider, EmailResult
from flippin.integrations.email.factory import build_email_provider

__all__ = ["EmailProvider", "EmailResult", "build_email_provider"]
