from __future__ import annotations


class DispatchError(Exception):
    """Base for every failure a chat command can end with.

    Each subclass keeps the data its message needs so callers can match on the
    class instead of parsing text.
    """


class UnsupportedUrl(DispatchError):
    def __init__(self, url: str):
        self.url = url
        super().__init__(f"unsupported URL: {url}")


class NotAuthorized(DispatchError):
    def __init__(self):
        super().__init__("not authorized: commands from relayed or anonymous senders are not accepted")


class CouldNotGetChannelIdentifier(DispatchError):
    def __init__(self, url: str):
        self.url = url
        super().__init__(f"could not find channel identifier in {url}")


class InvalidTaskName(DispatchError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"invalid task name: {name!r}")


class FeatureNotImplemented(DispatchError):
    def __init__(self, what: str):
        self.what = what
        super().__init__(f"not implemented: {what}")


class ErrorListingFiles(DispatchError):
    def __init__(self, folder: str, detail: str = ""):
        self.folder = folder
        self.detail = detail
        text = f"error listing files for {folder}"
        if detail:
            text += f": {detail}"
        super().__init__(text)


class ErrorCreatingFolder(DispatchError):
    def __init__(self, folder: str, detail: str = ""):
        self.folder = folder
        self.detail = detail
        text = f"error creating folder {folder}"
        if detail:
            text += f": {detail}"
        super().__init__(text)


class IoError(DispatchError):
    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"I/O error: {detail}")


class Utf8DecodingError(DispatchError):
    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"UTF-8 decoding error: {detail}")
