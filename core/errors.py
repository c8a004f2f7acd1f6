#!/usr/bin/env python3
"""
Errors Module
Exceptions raised by the export pipeline
"""


class ExportValidationError(ValueError):
    """Scene or animations failed validation; nothing was serialized

    Attributes:
        issues: Hard issues that blocked the export
        warnings: Non-blocking warnings collected alongside
    """

    def __init__(self, issues, warnings=None):
        self.issues = list(issues)
        self.warnings = list(warnings or [])
        summary = "; ".join(self.issues[:3])
        if len(self.issues) > 3:
            summary += f" (+{len(self.issues) - 3} more)"
        super().__init__(f"Export validation failed: {summary}")


class AnimationNotFoundError(KeyError):
    """No registry entry with the requested id"""

    def __init__(self, animation_id):
        self.animation_id = animation_id
        super().__init__(animation_id)

    def __str__(self):
        return f"No animation with id {self.animation_id!r}"
