from .broker import RealtimeBroker, Subscription, broker, chat_channel, game_channel

__all__ = [
    "RealtimeBroker",
    "Subscription",
    "broker",
    "chat_channel",
    "game_channel",
]
