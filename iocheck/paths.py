# Fully-qualified paths the rules match against.

from __future__ import annotations

IO_READ: tuple[str, ...] = ("std", "io", "Read")
IO_WRITE: tuple[str, ...] = ("std", "io", "Write")

# Conversion function the `?` operator lowers through before propagating.
TRY_INTO_RESULT: tuple[str, ...] = ("std", "ops", "Try", "into_result")
