"""
Forward stepwise predictor selection by adjusted R².

Each round every remaining candidate is tried alongside the predictors
already selected; the candidate giving the highest adjusted R² wins the
round and is kept if it beats the best score so far.  Selection stops at
the first round whose winner does not improve on it.
"""

import math
from dataclasses import dataclass, field
from typing import Optional, Tuple

import pandas as pd
from sklearn.base import BaseEstimator

from .dataset import Dataset
from .errors import InvalidInput, ModelFitError
from .model import LinearModel, LinearModelFitter


@dataclass(frozen=True)
class SelectionResult:
    """
    Outcome of a forward selection run.

    ``selected`` lists the accepted predictors in acceptance order and
    ``scores`` the adjusted R² reached right after each acceptance.
    ``rounds`` has one row per candidate fit (Round, Candidate, Adj_R2,
    Accepted).  ``model`` is the fit on the full accepted set, or None when
    nothing was accepted.
    """
    response: str
    selected: Tuple[str, ...]
    scores: Tuple[float, ...]
    threshold: float
    rounds: pd.DataFrame = field(repr=False, compare=False)
    model: Optional[LinearModel] = field(default=None, repr=False,
                                         compare=False)

    @property
    def final_score(self):
        """Adjusted R² of the accepted set (the threshold if empty)."""
        return self.scores[-1] if self.scores else self.threshold

    def __iter__(self):
        return iter(self.selected)

    def __len__(self):
        return len(self.selected)


def _check_candidates(dataset, response, candidates):
    if not isinstance(dataset, Dataset):
        raise InvalidInput(
            f"Expected a Dataset, got {type(dataset).__name__}")
    if isinstance(candidates, str):
        candidates = [candidates]
    candidates = list(candidates)
    if not candidates:
        raise InvalidInput("No candidate predictors given")
    if len(set(candidates)) != len(candidates):
        dupes = sorted({c for c in candidates if candidates.count(c) > 1})
        raise InvalidInput(f"Repeated candidate(s): {dupes}")
    if response in candidates:
        raise InvalidInput(
            f"Response {response!r} cannot be a candidate predictor")
    dataset.require_columns([response] + candidates)
    if not dataset.is_numeric(response):
        raise InvalidInput(f"Response {response!r} must be numeric")
    dataset.require_complete([response] + candidates)
    dataset.require_finite([response] + candidates)
    return candidates


class ForwardSelector(BaseEstimator):
    """
    Greedy forward selection maximising adjusted R².

    Parameters
    ----------
    fitter : object, optional
        Anything with ``fit(dataset, response, predictors)`` returning a
        model with an ``adj_r2`` attribute.  Defaults to
        :class:`~regstat.model.LinearModelFitter`.
    threshold : float, default=0.0
        Score the first winner must exceed to be accepted.  Use
        ``float('-inf')`` to always accept the first round's winner.
    verbose : bool, default=False
        Print one line per round.
    """

    def __init__(self, fitter=None, threshold=0.0, verbose=False):
        self.fitter = fitter
        self.threshold = threshold
        self.verbose = verbose

        # --- attributes set during select ---
        self.result_ = None
        self.selected_features_ = None
        self.scores_ = None

    def select(self, dataset, response, candidates):
        """
        Run forward selection.

        Parameters
        ----------
        dataset : Dataset
            Cleaned data; involved columns must have no missing values.
        response : str
            Numeric response column.
        candidates : sequence of str
            Candidate predictors.  Their order breaks ties: among equal
            adjusted R² values the earliest candidate wins.

        Returns
        -------
        SelectionResult

        Raises
        ------
        InvalidInput
            Empty or repeated candidates, response among candidates,
            unknown columns, categorical response, or missing or
            non-finite values.
        ModelFitError
            A candidate fit failed; ``error.candidate`` names it.  The
            whole selection is abandoned.
        """
        threshold = float(self.threshold)
        if math.isnan(threshold):
            raise InvalidInput("threshold must not be NaN")
        candidates = _check_candidates(dataset, response, candidates)
        fitter = self.fitter if self.fitter is not None else LinearModelFitter()

        selected = []
        remaining = list(candidates)
        scores = []
        rounds = []
        best_score = threshold
        best_model = None

        if self.verbose:
            print("=" * 70)
            print(f"FORWARD SELECTION: {response}  "
                  f"({len(candidates)} candidates, threshold={threshold:g})")
            print("-" * 70)

        rnd = 0
        while remaining:
            rnd += 1
            round_best, round_model, winner = -math.inf, None, None
            first_row = len(rounds)

            for cand in remaining:
                try:
                    model = fitter.fit(dataset, response, selected + [cand])
                except ModelFitError as exc:
                    raise ModelFitError(
                        f"Forward selection aborted in round {rnd}: adding "
                        f"{cand!r} to {selected} failed: {exc}",
                        predictors=selected + [cand], candidate=cand,
                    ) from exc
                score = model.adj_r2
                rounds.append({'Round': rnd, 'Candidate': cand,
                               'Adj_R2': score, 'Accepted': False})
                if winner is None or score > round_best:
                    round_best, round_model, winner = score, model, cand

            if not round_best > best_score:
                if self.verbose:
                    print(f"  Round {rnd}: {winner:24s}  "
                          f"adj R²={round_best:.4f} <= {best_score:.4f}  "
                          f"Reject -> STOP")
                break

            selected.append(winner)
            remaining.remove(winner)
            scores.append(round_best)
            best_score = round_best
            best_model = round_model
            for row in rounds[first_row:]:
                if row['Candidate'] == winner:
                    row['Accepted'] = True

            if self.verbose:
                print(f"  Round {rnd}: {winner:24s}  "
                      f"adj R²={round_best:.4f}  Add")

        if self.verbose:
            print("-" * 70)
            print(f"  Selected ({len(selected)}): {', '.join(selected) or '-'}")
            print("=" * 70)

        result = SelectionResult(
            response=response,
            selected=tuple(selected),
            scores=tuple(scores),
            threshold=threshold,
            rounds=pd.DataFrame(
                rounds, columns=['Round', 'Candidate', 'Adj_R2', 'Accepted']),
            model=best_model,
        )
        self.result_ = result
        self.selected_features_ = list(selected)
        self.scores_ = list(scores)
        return result


# ---------------------------------------------------------------------------
# Convenience function
# ---------------------------------------------------------------------------

def forward_select(dataset, response, candidates, threshold=0.0, fitter=None,
                   verbose=False):
    """
    One-liner convenience function.

    Returns
    -------
    list of str
        Selected predictors in the order they were accepted.
    """
    selector = ForwardSelector(fitter=fitter, threshold=threshold,
                               verbose=verbose)
    return list(selector.select(dataset, response, candidates).selected)
