"""Camera models for primary ray generation."""

from .thin_lens import ThinLensCamera, get_camera_info, setup_camera

__all__ = ["ThinLensCamera", "setup_camera", "get_camera_info"]
