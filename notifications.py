"""User-facing notifications for the seller pages."""

from flask import flash


class Notifier:
    """Anything with ``success(message)`` and ``error(message)``."""

    def success(self, message):
        raise NotImplementedError

    def error(self, message):
        raise NotImplementedError


class FlashNotifier(Notifier):
    """Queue messages with Flask's flash(); the base template renders them."""

    def success(self, message):
        flash(message, "success")

    def error(self, message):
        flash(message, "error")
