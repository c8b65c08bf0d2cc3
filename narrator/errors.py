"""Error taxonomy for segmentation, synthesis and playback."""


class NarratorError(Exception):
    """Base class for narrator errors."""


class SegmentationError(NarratorError):
    """The segmenter produced an inconsistent walk. Always a defect."""


class SynthesisError(NarratorError):
    """Remote synthesis failed: network, auth, HTTP status or bad payload."""


class DeviceError(NarratorError):
    """The playback device rejected an operation."""


class StaleOperation(NarratorError):
    """An async completion was superseded by a newer playback request."""

    def __init__(self, captured: int, current: int):
        super().__init__(f"stale operation (epoch {captured}, now {current})")
        self.captured = captured
        self.current = current
