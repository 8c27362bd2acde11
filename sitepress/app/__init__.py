############################################################
#
# sitepress - Multilingual Site and Blog Backend
#
# __init__.py: Application package initialization
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""sitepress Application Package."""

from sitepress import __version__

__all__ = ["__version__"]
