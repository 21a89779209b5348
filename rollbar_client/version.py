"""Notifier identity sent with every item."""

NAME = "rollbar-client"
VERSION = "0.1.0"

USER_AGENT = f"{NAME}/{VERSION}"

LANGUAGE = "python"
