# src/evaluation/outcome_rules.py
"""Rules that turn a prediction and an actual value into an outcome."""

from src.analysts.models import Action, Outcome

EPS_DENOMINATOR_FLOOR = 0.01


def percent_change(start: float, end: float) -> float:
    """Percent change from start to end."""
    return (end - start) / start * 100


def classify_rating(
    action: Action,
    change_percent: float,
    threshold_percent: float,
    neutral_band: bool = False,
) -> Outcome:
    """Classify a BUY/HOLD/SELL call against the realized move.

    BUY is correct when the move is at least +threshold, SELL when it is at
    most -threshold, HOLD when the move stays strictly inside the band.

    Args:
        action: The recommended action.
        change_percent: Realized (or benchmark-relative) move in percent.
        threshold_percent: Noise threshold in percent.
        neutral_band: When True, BUY/SELL moves inside the band are NEUTRAL
            instead of INCORRECT.

    Returns:
        Outcome of the call.
    """
    inside_band = -threshold_percent < change_percent < threshold_percent

    if action == Action.BUY:
        if change_percent >= threshold_percent:
            return Outcome.CORRECT
    elif action == Action.SELL:
        if change_percent <= -threshold_percent:
            return Outcome.CORRECT
    else:
        return Outcome.CORRECT if inside_band else Outcome.INCORRECT

    if neutral_band and inside_band:
        return Outcome.NEUTRAL
    return Outcome.INCORRECT


def within_tolerance(
    actual: float,
    predicted: float,
    tolerance_percent: float,
    floor: float | None = None,
) -> Outcome:
    """CORRECT when actual is within tolerance percent of predicted.

    Args:
        actual: Realized value.
        predicted: Predicted value.
        tolerance_percent: Allowed relative error in percent.
        floor: Minimum absolute denominator, for predictions near zero.
    """
    denominator = abs(predicted)
    if floor is not None:
        denominator = max(denominator, floor)
    error_percent = abs(actual - predicted) / denominator * 100
    return Outcome.CORRECT if error_percent <= tolerance_percent else Outcome.INCORRECT
