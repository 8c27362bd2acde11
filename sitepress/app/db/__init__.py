############################################################
#
# sitepress - Multilingual Site and Blog Backend
#
# __init__.py: Database package initialization and exports
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Database package for sitepress."""

from sitepress.app.db.base import Base
from sitepress.app.db.session import get_async_db_context, engine, AsyncSessionLocal

__all__ = ["Base", "get_async_db_context", "engine", "AsyncSessionLocal"]
