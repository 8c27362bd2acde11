############################################################
#
# sitepress - Multilingual Site and Blog Backend
#
# metrics.py: Prometheus metric definitions
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Prometheus metrics shared by the services and exposed at /metrics."""

from prometheus_client import Counter, Gauge

POST_ACTIONS = Counter(
    "sitepress_post_actions_total",
    "Admin post actions",
    ["action", "outcome"],  # create/update, ok/validation/upload/persistence
)
TRANSLATIONS = Counter(
    "sitepress_translations_total",
    "Derived locale rows written by the translation dispatcher",
    ["locale", "outcome"],  # created/updated/failed
)
DISPATCH_QUEUE_DEPTH = Gauge(
    "sitepress_dispatch_queue_depth",
    "Translation jobs waiting in the dispatch queue",
)
DISPATCH_DROPPED = Counter(
    "sitepress_dispatch_dropped_total",
    "Translation jobs dropped because the queue was full or stopped",
)
IMAGE_OPTIMIZATIONS = Counter(
    "sitepress_image_optimizations_total",
    "Raw uploads processed by the image optimizer",
    ["outcome"],
)
