############################################################
#
# sitepress - Multilingual Site and Blog Backend
#
# __init__.py: Storage package initialization and exports
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Storage utilities for sitepress."""

from sitepress.app.storage.blob_store import BlobStore, UploadedObject

__all__ = ["BlobStore", "UploadedObject"]
