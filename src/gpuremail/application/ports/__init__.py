from gpuremail.application.ports.mail_store import (
    MailSessionFactory,
    MailStore,
    MailTransport,
    RawEmail,
)

__all__ = ["MailStore", "MailSessionFactory", "MailTransport", "RawEmail"]
