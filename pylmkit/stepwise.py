"""
Greedy stepwise model selection by AIC (in the manner of MASS::stepAIC).

A term is a single column name, or a tuple of column names that enter
and leave the model together (e.g. the coded columns of one factor).
"""

import logging
import pandas as pd
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple, Union

from ._core.families import Family
from .control import FitControl, StepControl
from .exceptions import SchemaError
from .fitter import fit
from .model import FittedModel

logger = logging.getLogger(__name__)

Term = Union[str, Tuple[str, ...]]

DIRECTIONS = ("forward", "backward", "both")


@dataclass(frozen=True)
class StepRecord:
    """One row of the selection trace."""
    step: int
    action: str         # 'start', '+' or '-'
    term: Optional[Term]
    criterion: float


@dataclass(frozen=True, eq=False)
class StepResult:
    """Selected model and the path that led to it."""
    model: FittedModel
    path: List[StepRecord] = field(default_factory=list)

    @property
    def anova(self) -> pd.DataFrame:
        """Trace as a table (like stepAIC's $anova)."""
        return pd.DataFrame({
            "Step": [f"{r.action} {_term_label(r.term)}" if r.term is not None else ""
                     for r in self.path],
            "AIC": [r.criterion for r in self.path],
        })


def _term_label(term: Term) -> str:
    return term if isinstance(term, str) else ":".join(term)


def _normalize_terms(candidates) -> List[Term]:
    terms = []
    for term in candidates:
        if isinstance(term, str):
            terms.append(term)
        else:
            term = tuple(term)
            if not term or not all(isinstance(c, str) for c in term):
                raise SchemaError(f"Invalid term: {term!r}")
            terms.append(term)
    if len(set(terms)) != len(terms):
        raise SchemaError("Duplicate candidate terms")
    return terms


def _columns(terms: Sequence[Term]) -> List[str]:
    columns = []
    for term in terms:
        columns.extend([term] if isinstance(term, str) else term)
    return columns


def select_path(
    data: pd.DataFrame,
    response: str,
    candidate_predictors: Sequence[Term],
    direction: str = "forward",
    family: Union[str, Family] = "gaussian",
    start: Optional[Sequence[Term]] = None,
    control: Optional[StepControl] = None,
    fit_control: Optional[FitControl] = None,
    **fit_kwargs
) -> StepResult:
    """
    Stepwise selection returning the selected model and its trace.

    See ``select`` for the parameters.
    """
    if direction not in DIRECTIONS:
        raise ValueError(
            f"Unknown direction: {direction!r}\n"
            f"Valid options: {', '.join(repr(d) for d in DIRECTIONS)}"
        )
    control = control or StepControl()
    control.validate()

    candidates = _normalize_terms(candidate_predictors)
    if start is None:
        current = [] if direction == "forward" else list(candidates)
    else:
        current = _normalize_terms(start)
        unknown = [t for t in current if t not in candidates]
        if unknown:
            raise SchemaError(f"Start terms not among the candidates: {unknown}")

    def ordered(terms):
        # Keep candidate-list order whatever the order of additions
        return [t for t in candidates if t in terms]

    def evaluate(terms):
        model = fit(data, response, _columns(ordered(terms)), family=family,
                    control=fit_control, **fit_kwargs)
        return model, model.information_criterion(control.k)

    model, criterion = evaluate(current)
    path = [StepRecord(0, "start", None, criterion)]
    logger.debug("Start: AIC=%.4f  %s ~ %s", criterion, response,
                 " + ".join(_term_label(t) for t in ordered(current)) or "1")

    for step in range(1, control.max_steps + 1):
        best = None

        if direction in ("forward", "both"):
            for term in candidates:
                if term in current:
                    continue
                trial_model, trial = evaluate(current + [term])
                logger.debug("  + %s  AIC=%.4f", _term_label(term), trial)
                if best is None or trial < best[0]:
                    best = (trial, "+", term, trial_model)

        if direction in ("backward", "both"):
            for term in ordered(current):
                reduced = [t for t in current if t != term]
                trial_model, trial = evaluate(reduced)
                logger.debug("  - %s  AIC=%.4f", _term_label(term), trial)
                if best is None or trial < best[0]:
                    best = (trial, "-", term, trial_model)

        if best is None or not best[0] < criterion - control.threshold:
            break

        criterion, action, term, model = best
        if action == "+":
            current = current + [term]
        else:
            current = [t for t in current if t != term]
        path.append(StepRecord(step, action, term, criterion))
        logger.debug("Step %d: %s %s  AIC=%.4f", step, action, _term_label(term), criterion)

    return StepResult(model=model, path=path)


def select(
    data: pd.DataFrame,
    response: str,
    candidate_predictors: Sequence[Term],
    direction: str = "forward",
    family: Union[str, Family] = "gaussian",
    start: Optional[Sequence[Term]] = None,
    control: Optional[StepControl] = None,
    fit_control: Optional[FitControl] = None,
    **fit_kwargs
) -> FittedModel:
    """
    Greedy stepwise selection by an information criterion.

    Parameters
    ----------
    data : DataFrame
        Dataset (categorical columns already expanded)
    response : str
        Response column
    candidate_predictors : list of terms
        Column names, or tuples of column names moved as one term.
        Their order breaks ties: the first-encountered term wins.
    direction : {'forward', 'backward', 'both'}
        'forward' starts from the intercept-only model and adds terms,
        'backward' starts from all candidates and removes them, 'both'
        (from all candidates unless ``start`` is given) considers
        additions before removals at each step.
    family : str or Family
        Passed to fit()
    start : list of terms, optional
        Initial model, overriding the direction's default
    control : StepControl, optional
        Penalty per parameter ``k``, improvement ``threshold``,
        ``max_steps``
    fit_control : FitControl, optional
        Passed to fit()

    Returns
    -------
    FittedModel
        The selected model, predictors in candidate-list order

    Examples
    --------
    >>> model = select(df, 'y', ['x1', 'x2', 'x3'], direction='backward')
    >>> model.predictors
    ('x1', 'x3')
    """
    return select_path(data, response, candidate_predictors, direction=direction,
                       family=family, start=start, control=control,
                       fit_control=fit_control, **fit_kwargs).model


__all__ = ["select", "select_path", "StepResult", "StepRecord"]
