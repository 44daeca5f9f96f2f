"""
Exception types shared by the sync, store and site commands.
"""


class PhotofolioError(Exception):
    """
    Base class for errors reported to the user as a single message.
    """


class InvalidPath(PhotofolioError):
    """
    A photo path is too short to hold a collection, a section and a file name.
    """

    def __init__(self, path):
        self.path = tuple(path)
        super().__init__(f"path too short for a gallery photo: {'/'.join(self.path)}")


class MalformedCatalog(PhotofolioError):
    pass


class FetchFailure(PhotofolioError):
    pass


class DriveError(PhotofolioError):
    pass


class Cancelled(PhotofolioError):
    pass


class ConfigError(PhotofolioError):
    pass


class CommandError(PhotofolioError):
    pass
