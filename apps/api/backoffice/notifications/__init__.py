from backoffice.notifications.dispatcher import (
    LoggingNotificationDispatcher,
    NotificationDispatcher,
    ProposalMessage,
    deliver_proposal,
    get_dispatcher,
    set_dispatcher,
)

__all__ = [
    "LoggingNotificationDispatcher",
    "NotificationDispatcher",
    "ProposalMessage",
    "deliver_proposal",
    "get_dispatcher",
    "set_dispatcher",
]
