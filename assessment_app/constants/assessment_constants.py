"""Assessment-related constants shared across core, server and client layers."""

OPTION_LETTERS: tuple[str, ...] = ("A", "B", "C", "D")
REQUIRED_OPTION_LETTERS: tuple[str, ...] = ("A", "B")
DEFAULT_QUESTION_MARKS: int = 1
DEFAULT_PASS_PERCENTAGE: float = 70.0
PERCENTAGE_DISPLAY_DECIMALS: int = 1
DEFAULT_PAGE_SIZE: int = 15
MAX_PAGE_SIZE: int = 100
