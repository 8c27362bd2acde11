############################################################
#
# sitepress - Multilingual Site and Blog Backend
#
# __init__.py: Service package initialization and exports
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Services for sitepress."""

from sitepress.app.services.dispatch_queue import DispatchQueue
from sitepress.app.services.image_optimizer import ImageOptimizer
from sitepress.app.services.post_service import PostService
from sitepress.app.services.translation import TranslationClient, TranslationDispatcher

__all__ = [
    "DispatchQueue",
    "ImageOptimizer",
    "PostService",
    "TranslationClient",
    "TranslationDispatcher",
]
