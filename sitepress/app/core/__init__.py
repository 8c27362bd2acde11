############################################################
#
# sitepress - Multilingual Site and Blog Backend
#
# __init__.py: Core domain logic
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Core application logic for sitepress."""
