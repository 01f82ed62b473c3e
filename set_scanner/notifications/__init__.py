"""
Operator notifications.

Modules
-------
formatters : HTML message text for new signals, ledger closes and alerts.
telegram   : ``Notifier`` protocol, ``TelegramNotifier`` and ``LogNotifier``.
dispatcher : background, non-fatal delivery of scan events.
"""
