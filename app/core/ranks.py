from sqlalchemy import case

# Highest threshold first; a user holds the first rank whose minimum they reach.
RANK_THRESHOLDS = (
    (16, "Legendary Chef"),
    (11, "Master Chef"),
    (6, "Professional Chef"),
    (1, "Pro"),
)
DEFAULT_RANK = "Beginner"


def rank_for(posted_recipes: int) -> str:
    """Map a posted-recipe count to its rank label."""
    for minimum, label in RANK_THRESHOLDS:
        if posted_recipes >= minimum:
            return label
    return DEFAULT_RANK


def rank_expression(count):
    """
    The same mapping as a SQL CASE over ``count`` (a column expression), so a
    counter update can set the rank in the same statement.
    """
    return case(
        *[(count >= minimum, label) for minimum, label in RANK_THRESHOLDS],
        else_=DEFAULT_RANK,
    )
