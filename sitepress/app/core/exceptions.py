############################################################
#
# sitepress - Multilingual Site and Blog Backend
#
# exceptions.py: Application error taxonomy
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Application exceptions.

Admin actions recover ValidationError, UploadError and PersistenceError at
the route boundary and return the message to the user. DispatchError and
StorageError belong to the out-of-band pipelines (translation, image
optimization) and only surface in those endpoints' own responses.
"""

from typing import Optional


class SitepressError(Exception):
    """Base application error."""

    def __init__(self, message: str, code: Optional[str] = None):
        self.message = message
        self.code = code
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Convert to an error response body."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
        }


class ValidationError(SitepressError):
    """Missing required input, or a state transition that is not allowed."""


class UploadError(SitepressError):
    """The blob store rejected an upload."""


class StorageError(SitepressError):
    """A blob store read or housekeeping call failed."""


class PersistenceError(SitepressError):
    """A post row could not be written."""


class DispatchError(SitepressError):
    """An out-of-band translation or optimization step failed."""
