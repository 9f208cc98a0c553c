"""Exceptions raised while assembling a scene for rendering."""


class SceneError(ValueError):
    """A scene cannot be rendered as described.

    Raised before any kernel runs when the object tree references something
    the renderer cannot use: an unknown hittable, material or texture type,
    a primitive without a material, nested participating media, or an image
    texture that cannot be read.
    """
