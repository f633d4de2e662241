class PhotoLoadError(Exception):
    """A photo url could not be resolved to image bytes."""

    def __init__(self, photo_url, reason):
        super().__init__(f"{reason}: {photo_url}")
        self.photo_url = photo_url
        self.reason = reason


class NoCompositeAvailable(Exception):
    """Every composite has already been posted."""


class SocialPostError(Exception):
    """Neither social platform accepted the post."""

    def __init__(self, composite_id, message="Failed to post to any platform"):
        super().__init__(message)
        self.composite_id = composite_id


class CompositeClaimed(Exception):
    """Another caller is already posting this composite, or has posted it."""

    def __init__(self, composite_id):
        super().__init__(f"Composite {composite_id} is already being posted")
        self.composite_id = composite_id
