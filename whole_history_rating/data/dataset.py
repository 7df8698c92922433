"""Tabular game input backed by Polars.

Expected columns:
- black, white: player names (cast to strings)
- winner: 'W', 'B' or 'D'
- day: integer time step
- handicap (optional): Elo advantage given to black, defaults to 0

Any other column is carried through to each game's ``extras``.
"""

from pathlib import Path
from typing import Any, Iterable, Iterator, List, Mapping, Optional, Union

import polars as pl

from ..core.match import FixedHandicap, Outcome
from ..exceptions import InvalidInputError
from .types import GameResult

REQUIRED_COLUMNS = ("black", "white", "winner", "day")
KNOWN_COLUMNS = REQUIRED_COLUMNS + ("handicap",)


class GameDataset:
    """
    Container for game records loaded from a DataFrame, parquet or CSV file.

    Rows are kept sorted by day (stable, so same-day games keep their input
    order) and are replayed into the registry in that order.
    """

    def __init__(self, df=None):
        """
        Initialize dataset.

        Args:
            df: Polars DataFrame (or anything pl.DataFrame accepts, such as a
                dict of columns) with at least black, white, winner, day
        """
        self._df: Optional[pl.DataFrame] = None

        if df is not None:
            self._load_dataframe(df)

    def _load_dataframe(self, df) -> None:
        if not isinstance(df, pl.DataFrame):
            df = pl.DataFrame(df)

        missing = set(REQUIRED_COLUMNS) - set(df.columns)
        if missing:
            raise ValueError(f"Missing required columns: {sorted(missing)}")

        if "handicap" not in df.columns:
            df = df.with_columns(pl.lit(0.0).alias("handicap"))

        try:
            df = df.with_columns(
                pl.col("black").cast(pl.Utf8),
                pl.col("white").cast(pl.Utf8),
                pl.col("winner").cast(pl.Utf8).str.strip_chars().str.to_uppercase(),
                pl.col("day").cast(pl.Int64),
                pl.col("handicap").cast(pl.Float64).fill_null(0.0),
            )
        except pl.exceptions.PolarsError as exc:
            raise InvalidInputError(f"Bad game table: {exc}") from exc

        nulls = [column for column in REQUIRED_COLUMNS if df[column].null_count()]
        if nulls:
            raise InvalidInputError(f"Bad game table: missing values in {nulls}")

        codes = [outcome.value for outcome in Outcome]
        bad = df.filter(~pl.col("winner").is_in(codes))
        if bad.height > 0:
            raise InvalidInputError(
                f"Unknown winner codes {sorted(set(bad['winner'].to_list()), key=str)}; expected {codes}"
            )

        self._df = df.sort("day", maintain_order=True)

    @classmethod
    def from_dataframe(cls, df) -> "GameDataset":
        return cls(df=df)

    @classmethod
    def from_parquet(cls, path: Union[str, Path]) -> "GameDataset":
        return cls(df=pl.read_parquet(path))

    @classmethod
    def from_csv(cls, path: Union[str, Path]) -> "GameDataset":
        return cls(df=pl.read_csv(path))

    @classmethod
    def from_records(cls, records: Iterable[Union[GameResult, Mapping[str, Any]]]) -> "GameDataset":
        """
        Build a dataset from GameResult records or plain dicts.

        Only fixed (numeric) handicaps can be stored in a table; extras
        become extra columns.
        """
        rows = []
        for record in records:
            if isinstance(record, GameResult):
                row = dict(record.extras)
                row.update(
                    black=record.black,
                    white=record.white,
                    winner=record.winner.value if isinstance(record.winner, Outcome) else record.winner,
                    day=record.day,
                    handicap=record.handicap,
                )
            else:
                row = dict(record)

            handicap = row.get("handicap", 0.0)
            if isinstance(handicap, FixedHandicap):
                handicap = handicap.value
            elif not isinstance(handicap, (int, float)) or isinstance(handicap, bool):
                raise InvalidInputError(f"Only numeric handicaps can be tabulated, got {handicap!r}")
            row["handicap"] = float(handicap)
            rows.append(row)

        if not rows:
            return cls(df=pl.DataFrame(schema={
                "black": pl.Utf8,
                "white": pl.Utf8,
                "winner": pl.Utf8,
                "day": pl.Int64,
                "handicap": pl.Float64,
            }))
        return cls(df=pl.DataFrame(rows))

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "GameDataset":
        """Load by file suffix (.parquet or .csv)."""
        suffix = Path(path).suffix.lower()
        if suffix in (".parquet", ".pq"):
            return cls.from_parquet(path)
        if suffix == ".csv":
            return cls.from_csv(path)
        raise ValueError(f"Unsupported file type: {suffix!r} (expected .parquet or .csv)")

    def _require_data(self) -> pl.DataFrame:
        if self._df is None:
            raise ValueError("No data loaded")
        return self._df

    @property
    def num_games(self) -> int:
        if self._df is None:
            return 0
        return self._df.height

    @property
    def players(self) -> List[str]:
        """Sorted unique player names."""
        df = self._require_data()
        return pl.concat([df["black"], df["white"]]).unique().sort().to_list()

    @property
    def days(self) -> List[int]:
        """Sorted unique days."""
        df = self._require_data()
        return df["day"].unique().sort().to_list()

    @property
    def min_day(self) -> int:
        df = self._require_data()
        if df.height == 0:
            raise ValueError("No data loaded")
        return int(df["day"].min())

    @property
    def max_day(self) -> int:
        df = self._require_data()
        if df.height == 0:
            raise ValueError("No data loaded")
        return int(df["day"].max())

    def filter_days(
        self,
        start_day: Optional[int] = None,
        end_day: Optional[int] = None,
    ) -> "GameDataset":
        """
        Create a new dataset restricted to a day range.

        Args:
            start_day: First day to include (inclusive)
            end_day: Last day to include (inclusive)
        """
        df = self._require_data()
        if start_day is not None:
            df = df.filter(pl.col("day") >= start_day)
        if end_day is not None:
            df = df.filter(pl.col("day") <= end_day)

        new_dataset = GameDataset()
        new_dataset._df = df
        return new_dataset

    def iter_games(self) -> Iterator[GameResult]:
        """Yield games in day order."""
        if self._df is None:
            return

        extra_columns = [c for c in self._df.columns if c not in KNOWN_COLUMNS]
        for row in self._df.iter_rows(named=True):
            yield GameResult(
                black=row["black"],
                white=row["white"],
                winner=row["winner"],
                day=row["day"],
                handicap=row["handicap"],
                extras={c: row[c] for c in extra_columns},
            )

    def to_dataframe(self) -> pl.DataFrame:
        return self._require_data().clone()

    def __len__(self) -> int:
        return self.num_games

    def __repr__(self) -> str:
        if self._df is None or self._df.height == 0:
            return "GameDataset(empty)"
        return (
            f"GameDataset(games={self.num_games:,}, players={len(self.players):,}, "
            f"days={len(self.days):,}, range=[{self.min_day}, {self.max_day}])"
        )
