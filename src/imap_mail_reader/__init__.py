"""IMAP Mail Reader - read and search an IMAP INBOX from the command line."""
