"""Errors raised by the sweeper core."""


class SweeperError(Exception):
    """Base class for engine and demo errors."""


class InvalidConfiguration(SweeperError):
    """Board dimensions or mine count cannot produce a valid board."""


class OutOfBounds(SweeperError):
    """A coordinate falls outside the grid."""

    def __init__(self, x: int, y: int, width: int, height: int):
        super().__init__(f"({x}, {y}) is outside the {width}x{height} board")
        self.x = x
        self.y = y


class TileFlagged(SweeperError):
    """Reveal attempted on a flagged tile."""


class TileNotHidden(SweeperError):
    """Flag toggled on a tile that is already revealed."""


class EmptyRecording(SweeperError):
    """Save attempted on a log with no real actions."""


class CorruptDemo(SweeperError):
    """Demo bytes are malformed, truncated or inconsistent."""
