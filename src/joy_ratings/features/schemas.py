# Schema definitions for the episode ratings dataset

# Columns of the painting elements source (plus one 0/1 column per element)
ELEMENTS_EPISODE_COLUMN: str = "EPISODE"
ELEMENTS_TITLE_COLUMN: str = "TITLE"

# Episode codes look like "S01E13"
EPISODE_CODE_PATTERN: str = r"^S(?P<season>\d+)E(?P<episode>\d+)$"

# Required columns of the ratings source
RATINGS_COLUMNS: tuple[str, ...] = (
    "season", "episode", "rating", "votes"
)

JOIN_KEYS: tuple[str, ...] = ("season", "episode")

# Identifier columns never used as predictors
ID_COLUMNS: tuple[str, ...] = ("season", "episode", "title")

TARGET_FEATURE: str = "rating"

POPULARITY_FEATURE: str = "votes"
