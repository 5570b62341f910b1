"""
Topics: compositions grouping a patient's related clinical resources.
"""

from chartsync.topics.standalone import (
    create_topics_for_standalone_resources,
    standalone_topic_compositions,
)
from chartsync.topics.topic import (
    Topic,
    TopicStatus,
    active_status,
    is_active,
    is_encounter_active,
    load_topics,
    topics_from,
)

__all__ = [
    "Topic",
    "TopicStatus",
    "active_status",
    "is_active",
    "is_encounter_active",
    "load_topics",
    "topics_from",
    "create_topics_for_standalone_resources",
    "standalone_topic_compositions",
]
