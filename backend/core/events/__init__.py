"""
Event dispatch core: routes Kafka messages to the domain handlers.
"""

from .router import EventRouter, Route, TopicConfig

__all__ = [
    'EventRouter',
    'Route',
    'TopicConfig',
]
