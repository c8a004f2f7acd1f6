#!/usr/bin/env python3
"""
Progress Reporting Module
Shared progress/status logging for pipeline components
"""


class ProgressReporter:
    """Mixin providing the progress_callback + print logging convention

    Every pipeline component that reports progress takes an optional
    callback and routes messages through log().
    """

    def __init__(self, progress_callback=None):
        """Initialize reporter

        Args:
            progress_callback: Optional function to call for progress updates
                              Signature: callback(message: str) -> None
        """
        self.progress_callback = progress_callback

    def log(self, message):
        """Send progress/status message

        Args:
            message: Message to log
        """
        if self.progress_callback:
            self.progress_callback(message)
        print(message)
