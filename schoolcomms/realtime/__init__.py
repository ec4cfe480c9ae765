from schoolcomms.realtime.live_channel import ChannelState, LiveUpdateChannel, Watch
from schoolcomms.realtime.live_list import LiveList
from schoolcomms.realtime.poller import Poller
from schoolcomms.realtime.presence_tracker import PresenceIdentity, PresenceTracker
from schoolcomms.realtime.typing import TypingIndicator, typing_label

__all__ = [
    "ChannelState",
    "LiveList",
    "LiveUpdateChannel",
    "Poller",
    "PresenceIdentity",
    "PresenceTracker",
    "TypingIndicator",
    "Watch",
    "typing_label",
]
