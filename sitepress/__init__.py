############################################################
#
# sitepress - Multilingual Site and Blog Backend
#
# __init__.py: Package root and version
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""sitepress - multilingual site and blog backend."""

__version__ = "1.0.0"
