"""Catalog entities: boards, variations, puzzles and collections."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from gopuzzles.errors import InvalidArgument

BOARD_SIZE = 19

MAX_NAME_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 500
MAX_COMMENT_LENGTH = 200

PUZZLE_DIFFICULTY_RANGE = (1, 10)
COLLECTION_DIFFICULTY_RANGE = (1, 5)


class Stone(str, Enum):
    EMPTY = "empty"
    BLACK = "black"
    WHITE = "white"


class Color(str, Enum):
    BLACK = "black"
    WHITE = "white"

    @classmethod
    def parse(cls, value) -> "Color":
        try:
            return cls(value)
        except ValueError:
            raise InvalidArgument(f"Invalid color: {value!r}") from None


class Category(str, Enum):
    # Declaration order is the tie-break order for preferred categories.
    LIFE_AND_DEATH = "life-and-death"
    TESUJI = "tesuji"
    ENDGAME = "endgame"
    OPENING = "opening"
    MIDDLE_GAME = "middle-game"
    CAPTURING = "capturing"
    CONNECTION = "connection"
    OTHER = "other"

    @property
    def display_name(self) -> str:
        return " ".join(w.capitalize() for w in self.value.split("-"))

    @classmethod
    def parse(cls, value) -> "Category":
        try:
            return cls(value)
        except ValueError:
            raise InvalidArgument(f"Unknown category: {value!r}") from None


class EntityKind(str, Enum):
    """Catalog entities that carry view and like counters."""
    PUZZLE = "puzzle"
    COLLECTION = "collection"

    @classmethod
    def parse(cls, value) -> "EntityKind":
        try:
            return cls(value)
        except ValueError:
            raise InvalidArgument(f"Unknown entity kind: {value!r}") from None


_STONE_CHARS = {".": Stone.EMPTY, "X": Stone.BLACK, "O": Stone.WHITE}
_CHAR_FOR_STONE = {v: k for k, v in _STONE_CHARS.items()}

Board = list[list[Stone]]


def empty_board() -> Board:
    return [[Stone.EMPTY] * BOARD_SIZE for _ in range(BOARD_SIZE)]


def board_from_rows(rows: list[str]) -> Board:
    """Parse the text form of a board: 19 rows of `.`, `X` (black), `O` (white)."""
    if not isinstance(rows, list) or len(rows) != BOARD_SIZE:
        raise InvalidArgument(f"Initial position must have {BOARD_SIZE} rows")
    board: Board = []
    for i, row in enumerate(rows):
        row = row.replace(" ", "")
        if len(row) != BOARD_SIZE:
            raise InvalidArgument(f"Row {i} must have {BOARD_SIZE} cells, got {len(row)}")
        try:
            board.append([_STONE_CHARS[ch] for ch in row.upper()])
        except KeyError as e:
            raise InvalidArgument(f"Row {i} has an invalid cell {e.args[0]!r}") from None
    return board


def board_to_rows(board: Board) -> list[str]:
    return ["".join(_CHAR_FOR_STONE[Stone(c)] for c in row) for row in board]


@dataclass
class Move:
    row: int
    col: int
    color: Color
    move_number: int


@dataclass
class Variation:
    moves: list[Move] = field(default_factory=list)
    correct: bool = False
    comment: Optional[str] = None


@dataclass
class CompletionEvent:
    visitor_id: str
    move_count: Optional[int]
    completed_at: str


@dataclass
class Puzzle:
    id: str
    collection_id: str
    name: str
    difficulty: int
    category: Category
    next_to_play: Color
    initial_position: Board = field(default_factory=empty_board)
    variations: list[Variation] = field(default_factory=list)
    description: str = ""
    author: str = "Admin"
    views: int = 0
    likes: int = 0
    liked_by: set[str] = field(default_factory=set)
    attempt_count: int = 0
    completed_count: int = 0
    completions: list[CompletionEvent] = field(default_factory=list)
    created_at: Optional[str] = None


@dataclass
class Collection:
    id: str
    name: str
    difficulty: int
    description: str = ""
    private: bool = False
    color_transform: bool = False
    position_transform: bool = False
    author: str = "Admin"
    views: int = 0
    likes: int = 0
    liked_by: set[str] = field(default_factory=set)
    puzzle_ids: list[str] = field(default_factory=list)
    created_at: Optional[str] = None


@dataclass
class PuzzleSummary:
    """Flat puzzle row joined with its owning collection's name and privacy."""
    id: str
    collection_id: str
    collection_name: str
    collection_private: bool
    name: str
    difficulty: int
    category: Category
    views: int = 0
    likes: int = 0
    attempt_count: int = 0
    completed_count: int = 0


def _check_int_range(label: str, value, bounds: tuple[int, int]) -> None:
    lo, hi = bounds
    if isinstance(value, bool) or not isinstance(value, int) or not lo <= value <= hi:
        raise InvalidArgument(f"{label} must be an integer in [{lo}, {hi}], got {value!r}")


def _check_text(label: str, value: str, max_length: int, required: bool = False) -> None:
    if required and not (value or "").strip():
        raise InvalidArgument(f"{label} is required")
    if value and len(value) > max_length:
        raise InvalidArgument(f"{label} must be at most {max_length} characters")


def validate_board(board: Board) -> None:
    if len(board) != BOARD_SIZE or any(len(row) != BOARD_SIZE for row in board):
        raise InvalidArgument(f"Initial position must be a {BOARD_SIZE}x{BOARD_SIZE} grid")
    for row in board:
        for cell in row:
            try:
                Stone(cell)
            except ValueError:
                raise InvalidArgument(f"Invalid board cell: {cell!r}") from None


def validate_move(move: Move) -> None:
    for label, value in (("row", move.row), ("col", move.col)):
        _check_int_range(f"Move {label}", value, (0, BOARD_SIZE - 1))
    Color.parse(move.color)


def validate_puzzle(puzzle: Puzzle) -> None:
    """Raise InvalidArgument if the puzzle breaks a catalog invariant."""
    _check_text("Puzzle name", puzzle.name, MAX_NAME_LENGTH, required=True)
    _check_text("Puzzle description", puzzle.description, MAX_DESCRIPTION_LENGTH)
    _check_int_range("Puzzle difficulty", puzzle.difficulty, PUZZLE_DIFFICULTY_RANGE)
    Category.parse(puzzle.category)
    Color.parse(puzzle.next_to_play)
    validate_board(puzzle.initial_position)
    for variation in puzzle.variations:
        _check_text("Variation comment", variation.comment, MAX_COMMENT_LENGTH)
        for move in variation.moves:
            validate_move(move)


def validate_collection(collection: Collection) -> None:
    _check_text("Collection name", collection.name, MAX_NAME_LENGTH, required=True)
    _check_text("Collection description", collection.description, MAX_DESCRIPTION_LENGTH)
    _check_int_range("Collection difficulty", collection.difficulty, COLLECTION_DIFFICULTY_RANGE)
