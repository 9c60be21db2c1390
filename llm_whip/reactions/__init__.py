# llm_whip/reactions/__init__.py

"""
Reactions to reported matches: alert, sound, interrupt, webhook
"""
from .dispatcher import ReactionDispatcher, AlertWriter
from .keyboard import KeyboardController
from .notifier import (
    DesktopNotifier, SoundPlayer, WebhookNotifier, WebhookPayload, run_command
)
from .permissions import PermissionManager

__all__ = [
    'ReactionDispatcher',
    'AlertWriter',
    'KeyboardController',
    'DesktopNotifier',
    'SoundPlayer',
    'WebhookNotifier',
    'WebhookPayload',
    'run_command',
    'PermissionManager',
]
