"""GPureMail gateway - stateless HTTP access to an IMAP/SMTP mailbox."""

__version__ = "0.1.0"
