class TestValidationError(ValueError):
    """Input brand context or creatives rejected before any external call."""

    __test__ = False


class PanelGenerationError(RuntimeError):
    """No usable persona panel could be produced; the run cannot proceed."""


class RunCancelled(RuntimeError):
    """The caller raised the cancel signal while reactions were being collected."""
