"""Quiz and grading constants shared across the core and API layers."""

# Inclusive lower bounds, checked from the top down.
GRADE_THRESHOLDS: tuple[tuple[float, str], ...] = (
    (80.0, "A"),
    (50.0, "B"),
    (30.0, "C"),
)
FAILING_GRADE: str = "F"
GRADE_LETTERS: tuple[str, ...] = ("A", "B", "C", "F")
PERCENTAGE_DECIMALS: int = 2

TRUE_FALSE_OPTIONS: tuple[str, str] = ("True", "False")

DEFAULT_TIME_LIMIT_MINUTES: int = 30
DEFAULT_DURATION_VALUE: int = 30
DEFAULT_DURATION_UNIT: str = "days"
DURATION_UNITS: tuple[str, ...] = ("minutes", "days")
DEFAULT_MAX_ATTEMPTS: int = 1

ROOM_CODE_ALPHABET: str = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
ROOM_CODE_LENGTH: int = 6

# "name": attempts are grouped by quiz + normalized name.
# "ip": attempts are grouped by quiz + normalized name + client IP.
ATTEMPT_IDENTITY_POLICY: str = "name"
