"""
Volume control backends.
"""

from .controller import BaseVolumeController, MockVolumeController, check_volume
from .soundtrack import SoundtrackClient

__all__ = ["BaseVolumeController", "MockVolumeController", "SoundtrackClient", "check_volume"]
